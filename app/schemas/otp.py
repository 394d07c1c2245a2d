from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.user import Email


class OtpCreateIn(BaseModel):
    email: Email


class OtpOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    otp: str
    user_id: int
    created_at: datetime
    otp_status: str
    url: str = ""


class OtpCreationResponse(BaseModel):
    otp: str = Field(min_length=1)


class CheckOtpFormatRequest(BaseModel):
    otp: str


class CheckOtpFormatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_valid_otp: bool = Field(alias="isValidOtp")
