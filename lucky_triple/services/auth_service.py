"""
Account registration and login.
"""
import re
from datetime import datetime
from typing import Dict, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lucky_triple.core.auth import create_access_token, hash_password, verify_password
from lucky_triple.core.config import settings
from lucky_triple.core.errors import ValidationFailed
from lucky_triple.core.logging import get_logger
from lucky_triple.models import Account, AccountRole
from lucky_triple.repositories import AccountRepository
from lucky_triple.services.notification_service import NotificationPurpose, NotificationQueue

logger = get_logger(__name__)

_EMAIL_SHAPE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

WELCOME_MESSAGE = (
    "Welcome to Lucky Triple! Your account has been created successfully. "
    "Start playing and win big!"
)


def role_for_email(email: str, admin_emails: Optional[Set[str]] = None) -> AccountRole:
    """Admin only when the email is on the provisioning list; never inferred from its text."""
    provisioned = settings.ADMIN_EMAILS if admin_emails is None else admin_emails
    return AccountRole.ADMIN if email.strip().lower() in provisioned else AccountRole.PLAYER


class AuthService:
    """Creates accounts and issues session tokens."""

    def __init__(self, db: Session, admin_emails: Optional[Set[str]] = None):
        self.db = db
        self.accounts = AccountRepository(db)
        self.notifications = NotificationQueue(db)
        self.admin_emails = admin_emails

    def register(self, email: str, password: str, phone: str) -> Dict:
        """
        Create a player (or provisioned admin) account with a zero balance.

        Returns:
            {"account": Account, "token": str}
        """
        email = (email or "").strip().lower()
        phone = (phone or "").strip()
        if not email or not password or not phone:
            raise ValidationFailed("All fields are required")
        if not _EMAIL_SHAPE.match(email):
            raise ValidationFailed("Invalid email address")
        if not any(ch.isdigit() for ch in phone):
            raise ValidationFailed("Invalid phone number")

        if self.accounts.find_by_email(email):
            raise ValidationFailed("Email already exists")

        role = role_for_email(email, self.admin_emails)
        try:
            account = self.accounts.create(
                email=email,
                password_hash=hash_password(password),
                phone=phone,
                balance=0.0,
                role=role.value,
            )
            self.notifications.enqueue(phone, WELCOME_MESSAGE, NotificationPurpose.WELCOME, account.id)
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            self.db.rollback()
            raise ValidationFailed("Email already exists")

        logger.info(f"Account created: {email}", extra={"role": role.value})
        return {"account": account, "token": create_access_token(account)}

    def login(self, email: str, password: str) -> Dict:
        """Verify credentials, stamp last_login and issue a token."""
        account = self.accounts.find_by_email(email or "")
        if account is None or not verify_password(password or "", account.password_hash):
            raise ValidationFailed("Invalid credentials")

        account.last_login = datetime.utcnow()
        self.db.commit()
        return {"account": account, "token": create_access_token(account)}

    def provision_admin(self, email: str, password: str, phone: str) -> Account:
        """Create an admin account, or promote an existing one (used by scripts/create_admin.py)."""
        email = email.strip().lower()
        account = self.accounts.find_by_email(email)
        if account is None:
            account = self.accounts.create(
                email=email,
                password_hash=hash_password(password),
                phone=phone,
                balance=0.0,
                role=AccountRole.ADMIN.value,
            )
        else:
            account.role = AccountRole.ADMIN.value
        self.db.commit()
        logger.info(f"Admin provisioned: {email}")
        return account
