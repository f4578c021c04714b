"""Shared route dependencies."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from rab_ledger.errors import Unauthorized
from rab_ledger.services import get_db
from rab_ledger.services.auth_service import RequestContext, resolve_context

bearer_scheme = HTTPBearer(auto_error=False)


def get_request_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> RequestContext:
    """Resolve the caller from the Authorization: Bearer header."""
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Missing bearer token")
    return resolve_context(db, credentials.credentials)
