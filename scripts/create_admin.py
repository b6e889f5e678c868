#!/usr/bin/env python3
"""
Create an admin account, or promote an existing account to admin.

Usage:
    python scripts/create_admin.py owner@luckytriple.com --password 'S3cret!' --phone +233245550000
"""
import argparse
import getpass
import sys
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lucky_triple.core.logging import configure_logging, get_logger

configure_logging(level="INFO", json_output=False)
logger = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Provision a Lucky Triple admin account")
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("--password", help="Password for a new account (prompted if omitted)")
    parser.add_argument("--phone", default="", help="Phone number for SMS alerts")
    args = parser.parse_args()

    from lucky_triple.core.database import SessionLocal, init_db
    from lucky_triple.services.auth_service import AuthService

    init_db()
    password = args.password or getpass.getpass("Password: ")

    db = SessionLocal()
    try:
        account = AuthService(db).provision_admin(args.email, password, args.phone)
        logger.info(f"Admin ready: {account.email} ({account.id})")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to provision admin: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
