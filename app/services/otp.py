import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from app.core.db import Database
from app.core.errors import ActiveOtpConflictError, NotFoundError, wrap_db_errors
from app.models.otp import Otp, OtpStatus
from app.models.user import utcnow
from app.services.users import UserStore

logger = logging.getLogger(__name__)

OTP_TTL_SECONDS = 300
OTP_TTL = timedelta(seconds=OTP_TTL_SECONDS)


def is_expired(created_at: datetime, now: datetime | None = None) -> bool:
    if now is None:
        now = utcnow()
    if created_at.tzinfo is None:
        # SQLite hands back naive datetimes; everything is stored in UTC
        created_at = created_at.replace(tzinfo=timezone.utc)
    return now - created_at > OTP_TTL


def _set_status(otp_id: int, new_status: OtpStatus, *criteria):
    return (
        update(Otp)
        .where(Otp.id == otp_id, *criteria)
        .values(otp_status=new_status.value)
        .execution_options(synchronize_session=False)
    )


class OtpStore:
    def __init__(self, db: Database, users: UserStore):
        self.db = db
        self.users = users

    async def _expire_stale(self, session) -> None:
        cutoff = utcnow() - OTP_TTL
        result = await session.execute(
            update(Otp)
            .where(Otp.otp_status == OtpStatus.CREATED.value, Otp.created_at <= cutoff)
            .values(otp_status=OtpStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        if result.rowcount:
            logger.info("Expired stale OTPs", extra={"count": result.rowcount})

    async def _has_active(self, session, user_id: int) -> bool:
        result = await session.execute(
            select(Otp.id)
            .where(Otp.user_id == user_id, Otp.otp_status == OtpStatus.CREATED.value)
            .limit(1)
        )
        return result.first() is not None

    async def create(self, email: str, otp: str) -> Otp:
        logger.info("Creating OTP", extra={"email": email})
        with wrap_db_errors("creating", "OTP"):
            user = await self.users.find_by_email(email)
            if user is None:
                logger.warning("User not found while creating OTP", extra={"email": email})
                raise NotFoundError(f"User with email {email} not found")

            async with self.db.session() as session:
                await self._expire_stale(session)

                if await self._has_active(session, user.id):
                    logger.warning("Active OTP already exists", extra={"user_id": user.id, "email": email})
                    raise ActiveOtpConflictError()

                record = Otp(otp=otp, user_id=user.id, otp_status=OtpStatus.CREATED.value)
                session.add(record)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    await session.rollback()
                    raise ActiveOtpConflictError() from exc

        logger.info("OTP created", extra={"otp_id": record.id, "user_id": user.id})
        return record

    async def verify(self, user_id: int, email: str, otp: str) -> bool:
        """Consume a CREATED otp owned by (user_id, email).

        Returns False when the user does not match, no CREATED row carries the
        given value, or the row is older than ``OTP_TTL``; in that last case the
        row is moved to EXPIRED before returning.
        """
        with wrap_db_errors("verifying", "OTP"):
            user = await self.users.find_by_id_and_email(user_id, email)
            if user is None:
                logger.warning("User not found while verifying OTP", extra={"user_id": user_id, "email": email})
                return False

            async with self.db.session() as session:
                result = await session.execute(
                    select(Otp)
                    .where(
                        Otp.user_id == user.id,
                        Otp.otp == otp,
                        Otp.otp_status == OtpStatus.CREATED.value,
                    )
                    .order_by(Otp.id.desc())
                )
                record = result.scalars().first()
                if record is None:
                    logger.warning("OTP not found or no longer active", extra={"user_id": user_id})
                    return False

                if is_expired(record.created_at):
                    await session.execute(_set_status(record.id, OtpStatus.EXPIRED))
                    await session.commit()
                    logger.warning("OTP expired", extra={"user_id": user_id, "otp_id": record.id})
                    return False

                # conditional on CREATED so a concurrent verify cannot consume it twice
                result = await session.execute(
                    _set_status(record.id, OtpStatus.VERIFIED, Otp.otp_status == OtpStatus.CREATED.value)
                )
                await session.commit()

        if result.rowcount != 1:
            logger.warning("OTP could not be marked as verified", extra={"user_id": user_id, "otp_id": record.id})
            return False

        logger.info("OTP verified", extra={"user_id": user_id, "otp_id": record.id})
        return True
