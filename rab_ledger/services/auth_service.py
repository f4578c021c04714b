"""Authentication and request-context helpers.

Provides:
- bcrypt password hashing
- signed bearer tokens (JWT via python-jose)
- ``RequestContext``: the explicit, request-scoped identity passed into
  every service call
- role checks shared by the services
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from rab_ledger.config import settings
from rab_ledger.errors import Conflict, Forbidden, Unauthorized, ValidationError
from rab_ledger.models.program import MemberRole, Program, ProgramMember
from rab_ledger.models.user import User, UserRole

logger = logging.getLogger(__name__)

# Roster roles allowed to manage a program's budget and ledger
MANAGER_ROLES = frozenset({MemberRole.ADMIN, MemberRole.KETUA, MemberRole.BENDAHARA})


@dataclass(frozen=True)
class RequestContext:
    """Encapsulates the caller of one request."""

    user_id: int
    """The authenticated user."""

    role: UserRole
    """System-wide role of the authenticated user."""

    name: str = ""
    """Display name, used in log lines."""

    @property
    def is_admin(self) -> bool:
        """True if the caller is a system administrator."""
        return self.role == UserRole.ADMIN

    @classmethod
    def for_user(cls, user: User) -> "RequestContext":
        return cls(user_id=user.id, role=user.role, name=user.name)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: User, expires_minutes: int | None = None) -> tuple[str, datetime]:
    """Create a signed bearer token for a user.

    Args:
        user: Authenticated user
        expires_minutes: Lifetime override (default: settings.token_expiration_minutes)

    Returns:
        Tuple of (token, expiry timestamp)
    """
    now = datetime.now(timezone.utc)
    lifetime = settings.token_expiration_minutes if expires_minutes is None else expires_minutes
    expires_at = now + timedelta(minutes=lifetime)
    payload: dict[str, Any] = {
        "sub": str(user.id),
        "role": user.role.value,
        "iat": now,
        "exp": expires_at,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires_at


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a bearer token.

    Raises:
        Unauthorized: If the token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as e:
        logger.info("Rejected expired token")
        raise Unauthorized("Token expired, please log in again") from e
    except JWTError as e:
        logger.warning("Rejected invalid token: %s", e)
        raise Unauthorized("Invalid token") from e


def authenticate_user(db: Session, email: str, password: str) -> User:
    """Verify email/password credentials.

    Raises:
        Unauthorized: Unknown email, inactive account or wrong password
    """
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt for %s", email)
        raise Unauthorized("Invalid email or password")
    return user


def resolve_context(db: Session, token: str) -> RequestContext:
    """Turn a bearer token into a RequestContext.

    Raises:
        Unauthorized: If the token is invalid, expired, or the user is gone
    """
    payload = decode_access_token(token)
    try:
        user_id = int(payload.get("sub", ""))
    except (TypeError, ValueError) as e:
        raise Unauthorized("Invalid token subject") from e

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise Unauthorized("User no longer active")
    return RequestContext.for_user(user)


def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: UserRole = UserRole.MEMBER,
) -> User:
    """Create a user account (used by the management CLI and tests)."""
    if not name.strip():
        raise ValidationError("Name is required")
    if "@" not in email:
        raise ValidationError("A valid email is required")
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if db.query(User).filter(User.email == email.strip().lower()).first():
        raise Conflict(f"A user with email {email} already exists")

    user = User(
        name=name.strip(),
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created user id=%d email=%s role=%s", user.id, user.email, role.value)
    return user


def require_admin(ctx: RequestContext) -> None:
    if not ctx.is_admin:
        raise Forbidden("Administrator role required")


def get_membership(db: Session, program_id: int, user_id: int) -> ProgramMember | None:
    return (
        db.query(ProgramMember)
        .filter(ProgramMember.program_id == program_id, ProgramMember.user_id == user_id)
        .first()
    )


def require_program_manager(db: Session, ctx: RequestContext, program: Program) -> None:
    """Allow system admins and roster admins/ketua/bendahara."""
    if ctx.is_admin:
        return
    membership = get_membership(db, program.id, ctx.user_id)
    if membership is None or membership.role not in MANAGER_ROLES:
        raise Forbidden("Only program managers can perform this action")


def require_program_access(db: Session, ctx: RequestContext, program: Program) -> None:
    """Allow system admins and anyone on the roster."""
    if ctx.is_admin:
        return
    if get_membership(db, program.id, ctx.user_id) is None:
        raise Forbidden("You are not a member of this program")


__all__ = [
    "RequestContext",
    "MANAGER_ROLES",
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_access_token",
    "authenticate_user",
    "resolve_context",
    "create_user",
    "require_admin",
    "get_membership",
    "require_program_manager",
    "require_program_access",
]
