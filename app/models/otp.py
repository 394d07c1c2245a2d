import enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text

from app.core.db import Base
from app.models.user import utcnow


class OtpStatus(str, enum.Enum):
    CREATED = "CREATED"
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"


class Otp(Base):
    __tablename__ = "otp"

    id = Column(Integer, primary_key=True, autoincrement=True)
    otp = Column(String(16), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    otp_status = Column(
        String(16),
        default=OtpStatus.CREATED.value,
        server_default=OtpStatus.CREATED.value,
        nullable=False,
    )

    __table_args__ = (
        # one CREATED otp per user
        Index(
            "uq_otp_user_active",
            "user_id",
            unique=True,
            postgresql_where=text("otp_status = 'CREATED'"),
            sqlite_where=text("otp_status = 'CREATED'"),
        ),
    )
