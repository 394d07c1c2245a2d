import logging

from fastapi import APIRouter, Depends, status

from app.api.deps import get_app_settings, get_otp_store
from app.core.config import Settings
from app.schemas.envelope import Envelope
from app.schemas.otp import OtpCreateIn, OtpOut
from app.services.otp import OtpStore
from app.services.otp_gateway import OtpGatewayClient, get_otp_gateway

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _password_reset_url(settings: Settings, user_id: int) -> str:
    return f"{settings.password_reset_base_url.rstrip('/')}/users/{user_id}/password"


@router.post("/otp", status_code=status.HTTP_201_CREATED, response_model=Envelope[OtpOut])
async def create_otp(
    req: OtpCreateIn,
    otps: OtpStore = Depends(get_otp_store),
    gateway: OtpGatewayClient = Depends(get_otp_gateway),
    settings: Settings = Depends(get_app_settings),
):
    code = await gateway.generate()
    record = await otps.create(req.email, code)

    out = OtpOut.model_validate(record)
    out.url = _password_reset_url(settings, record.user_id)
    logger.info("OTP issued", extra={"email": req.email, "otp_id": record.id})
    return Envelope[OtpOut].ok("OTP created successfully", out)
