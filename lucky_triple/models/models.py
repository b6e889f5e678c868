"""
Database models for the Lucky Triple backend.

Tables:
- accounts: players and admins with their balance
- ledger_entries: balance-affecting events (deposit, withdrawal, bet, win, credit)
- wagers: one row per game play with before/after balance snapshot
- notification_logs: admin SMS broadcasts and their aggregate provider result
- game_settings: singleton bet bounds and payout multipliers
- outbound_notifications: SMS outbox drained by the notification dispatcher
"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Float, Integer, DateTime, ForeignKey, Boolean, Text, Index, JSON
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class AccountRole(str, enum.Enum):
    PLAYER = "player"
    ADMIN = "admin"


class LedgerKind(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    BET = "bet"
    WIN = "win"
    CREDIT = "credit"


class LedgerStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


class OutboxStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Account(Base):
    """Player or admin account. Balance is only written through AccountRepository.compare_and_set_balance."""
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    balance = Column(Float, nullable=False, default=0.0)
    role = Column(String(16), nullable=False, default=AccountRole.PLAYER.value, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    last_login = Column(DateTime, nullable=True)

    ledger_entries = relationship(
        "LedgerEntry",
        back_populates="account",
        foreign_keys="LedgerEntry.account_id",
        cascade="all, delete-orphan",
    )
    wagers = relationship("Wager", back_populates="account", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN.value

    def to_public_dict(self) -> dict:
        """Account representation without the credential hash."""
        return {
            "id": self.id,
            "email": self.email,
            "phone": self.phone,
            "balance": self.balance,
            "role": self.role,
            "is_admin": self.is_admin,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login": self.last_login.isoformat() if self.last_login else None,
        }


class LedgerEntry(Base):
    """A balance-affecting event. Withdrawals start pending; every other kind is written completed."""
    __tablename__ = "ledger_entries"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(16), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    status = Column(String(16), nullable=False, default=LedgerStatus.PENDING.value, index=True)
    reference = Column(String(255), nullable=True)
    details = Column(JSON, nullable=True)  # Free-form payload, e.g. the payment callback body
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    processed_at = Column(DateTime, nullable=True)
    processed_by = Column(String(36), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)

    account = relationship("Account", back_populates="ledger_entries", foreign_keys=[account_id])
    processor = relationship("Account", foreign_keys=[processed_by])

    __table_args__ = (
        Index("ix_ledger_entries_kind_status", "kind", "status"),
    )

    def to_dict(self, include_account: bool = False) -> dict:
        data = {
            "id": self.id,
            "account_id": self.account_id,
            "kind": self.kind,
            "amount": self.amount,
            "status": self.status,
            "reference": self.reference,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "processed_by": self.processed_by,
        }
        if include_account and self.account is not None:
            data["account"] = {"id": self.account.id, "email": self.account.email, "phone": self.account.phone}
        return data


class Wager(Base):
    """One play of the three-digit game."""
    __tablename__ = "wagers"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    bet_amount = Column(Float, nullable=False)
    guesses = Column(JSON, nullable=False)          # [d1, d2, d3]
    winning_numbers = Column(JSON, nullable=False)  # [d1, d2, d3]
    matches = Column(Integer, nullable=False)
    payout = Column(Float, nullable=False, default=0.0)
    profit = Column(Float, nullable=False)          # payout - bet, may be negative
    balance_before = Column(Float, nullable=False)
    balance_after = Column(Float, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    account = relationship("Account", back_populates="wagers")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bet_amount": self.bet_amount,
            "guesses": self.guesses,
            "winning_numbers": self.winning_numbers,
            "matches": self.matches,
            "payout": self.payout,
            "profit": self.profit,
            "balance_before": self.balance_before,
            "balance_after": self.balance_after,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class NotificationLog(Base):
    """Outcome of an admin SMS broadcast."""
    __tablename__ = "notification_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    phones = Column(JSON, nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(16), nullable=False)  # sent, failed
    sent_by = Column(String(36), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    response = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    sender = relationship("Account")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phones": self.phones,
            "message": self.message,
            "status": self.status,
            "sent_by": {"id": self.sender.id, "email": self.sender.email} if self.sender else None,
            "response": self.response,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class GameSettings(Base):
    """Singleton payout configuration, re-read at the start of every request that needs it."""
    __tablename__ = "game_settings"

    SINGLETON_ID = "default"

    id = Column(String(36), primary_key=True, default=SINGLETON_ID)
    house_fee = Column(Float, nullable=False, default=10.0)  # Informational only
    min_bet = Column(Float, nullable=False, default=1.0)
    max_bet = Column(Float, nullable=False, default=1000.0)
    one_match_multiplier = Column(Float, nullable=False, default=2.0)
    two_matches_multiplier = Column(Float, nullable=False, default=10.0)
    three_matches_multiplier = Column(Float, nullable=False, default=100.0)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_by = Column(String(36), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)

    def multiplier_for(self, matches: int) -> float:
        """Payout multiplier for a match count; zero matches never pays."""
        return {
            1: self.one_match_multiplier,
            2: self.two_matches_multiplier,
            3: self.three_matches_multiplier,
        }.get(matches, 0.0)

    def to_dict(self) -> dict:
        return {
            "house_fee": self.house_fee,
            "min_bet": self.min_bet,
            "max_bet": self.max_bet,
            "payout_multipliers": {
                "one_match": self.one_match_multiplier,
                "two_matches": self.two_matches_multiplier,
                "three_matches": self.three_matches_multiplier,
            },
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "updated_by": self.updated_by,
        }


class OutboundNotification(Base):
    """SMS waiting for (or done with) delivery by the dispatcher."""
    __tablename__ = "outbound_notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    phone = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    purpose = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default=OutboxStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(String(255), nullable=True)
    provider_response = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    sent_at = Column(DateTime, nullable=True)
    claimed_until = Column(DateTime, nullable=True)  # Set while a dispatcher is sending

    __table_args__ = (
        Index("ix_outbound_notifications_status_created", "status", "created_at"),
    )
