"""Management CLI: create the schema and user accounts.

Usage:
    python -m rab_ledger.cli.manage init-db
    python -m rab_ledger.cli.manage create-user --name "Siti" --email siti@example.org \
        --password secret123 [--admin]

Exit Codes:
    0 - Success
    1 - Failure: error reported on stderr/log, nothing committed
"""

import argparse
import logging
import sys

from dotenv import load_dotenv


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rab-ledger", description="RAB Ledger management")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create all database tables")

    create_user = commands.add_parser("create-user", help="Create a user account")
    create_user.add_argument("--name", required=True)
    create_user.add_argument("--email", required=True)
    create_user.add_argument("--password", required=True)
    create_user.add_argument(
        "--admin", action="store_true", help="Grant the system administrator role"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the management CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = build_parser().parse_args(argv)

    # Settings are read at import time, so .env must be loaded first
    load_dotenv()
    from rab_ledger.errors import AppError
    from rab_ledger.models import Base
    from rab_ledger.models.user import UserRole
    from rab_ledger.services import SessionLocal, engine
    from rab_ledger.services.auth_service import create_user
    from rab_ledger.services.logging import setup_server_logging

    setup_server_logging(log_file="", level_name=args.log_level)
    logger = logging.getLogger("rab_ledger.cli")

    try:
        Base.metadata.create_all(bind=engine)
        if args.command == "init-db":
            logger.info("Database tables created")
            return 0

        db = SessionLocal()
        try:
            user = create_user(
                db,
                name=args.name,
                email=args.email,
                password=args.password,
                role=UserRole.ADMIN if args.admin else UserRole.MEMBER,
            )
            logger.info("User %d created (%s)", user.id, user.role.value)
            return 0
        finally:
            db.close()

    except AppError as e:
        logger.error("%s: %s", e.code, e.message)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except Exception as e:
        logger.error("Command failed: %s", e, exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
