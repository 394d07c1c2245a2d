import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String, text

from app.core.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountStatus(str, enum.Enum):
    PENDING_VALIDATION = "PENDING_VALIDATION"
    VERIFIED = "VERIFIED"
    DELETED = "DELETED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    password = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    account_status = Column(
        String(32),
        default=AccountStatus.PENDING_VALIDATION.value,
        server_default=AccountStatus.PENDING_VALIDATION.value,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # a deleted user's email may be registered again
        Index(
            "uq_users_email_active",
            "email",
            unique=True,
            postgresql_where=text("account_status <> 'DELETED'"),
            sqlite_where=text("account_status <> 'DELETED'"),
        ),
    )
