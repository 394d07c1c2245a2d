import logging

from app.core.errors import NotFoundError, ValidationError
from app.services.otp import OtpStore
from app.services.otp_gateway import OtpGatewayClient
from app.services.password import hash_password
from app.services.users import UserStore

logger = logging.getLogger(__name__)


class PasswordResetService:
    def __init__(self, users: UserStore, otps: OtpStore, gateway: OtpGatewayClient):
        self.users = users
        self.otps = otps
        self.gateway = gateway

    async def reset(self, user_id: int, email: str | None, otp: str | None, new_password: str | None) -> None:
        """Replace the user's password once ``otp`` has been proven valid for (user_id, email).

        Steps run in order and stop at the first failure: field presence, OTP
        format (external service), user lookup, OTP consumption, password write.
        Nothing is written before the OTP is consumed.
        """
        if not otp or not email or not new_password:
            logger.warning("Password reset missing fields", extra={"user_id": user_id})
            raise ValidationError("OTP, email and password are required")

        if not await self.gateway.check_format(otp):
            logger.warning("Invalid OTP format received", extra={"user_id": user_id})
            raise ValidationError("Invalid OTP format")

        user = await self.users.find_by_id_and_email(user_id, email)
        if user is None:
            raise NotFoundError("User not found")

        if not await self.otps.verify(user_id, email, otp):
            logger.warning("OTP verification failed", extra={"user_id": user_id, "email": email})
            raise ValidationError("OTP is invalid or has expired")

        if not await self.users.update_password(user_id, hash_password(new_password)):
            raise ValidationError("Failed to update password")

        logger.info("Password reset", extra={"user_id": user_id, "email": email})
