from datetime import datetime
from typing import Annotated

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _check_email_format(value: str) -> str:
    # format check only; the address is stored and matched exactly as sent
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError(f"value is not a valid email address: {exc}") from exc
    return value


Email = Annotated[str, AfterValidator(_check_email_format)]


class RegisterIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: Email
    password: str = Field(min_length=1)
    phone: str | None = Field(None, max_length=32)


class UserPatch(BaseModel):
    """Partial update; only fields present in the request body are written."""

    name: str | None = Field(None, max_length=120)
    email: Email | None = None
    phone: str | None = Field(None, max_length=32)


class PasswordResetIn(BaseModel):
    email: str | None = None
    otp: str | None = None
    password: str | None = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    email: str
    phone: str | None = None
    account_status: str
    created_at: datetime | None = None


class UserAuthOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    email: str
    phone: str | None = None
    password: str | None = None


class UserPageOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    users: list[UserOut]


class AccountStatusOut(BaseModel):
    account_status: str
