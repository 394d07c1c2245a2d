from fastapi import Depends, Request

from app.core.config import Settings
from app.core.db import Database, get_database
from app.services.otp import OtpStore
from app.services.otp_gateway import OtpGatewayClient, get_otp_gateway
from app.services.password_reset import PasswordResetService
from app.services.users import UserStore


def get_user_store(db: Database = Depends(get_database)) -> UserStore:
    return UserStore(db)


def get_otp_store(
    db: Database = Depends(get_database),
    users: UserStore = Depends(get_user_store),
) -> OtpStore:
    return OtpStore(db, users)


def get_password_reset_service(
    users: UserStore = Depends(get_user_store),
    otps: OtpStore = Depends(get_otp_store),
    gateway: OtpGatewayClient = Depends(get_otp_gateway),
) -> PasswordResetService:
    return PasswordResetService(users, otps, gateway)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
