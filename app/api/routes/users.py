import logging

from fastapi import APIRouter, Depends, status

from app.api.deps import get_app_settings, get_password_reset_service, get_user_store
from app.core.config import Settings
from app.core.errors import NotFoundError, ValidationError
from app.schemas.envelope import Envelope
from app.schemas.user import (
    AccountStatusOut,
    PasswordResetIn,
    RegisterIn,
    UserAuthOut,
    UserOut,
    UserPageOut,
    UserPatch,
)
from app.services import password as password_service
from app.services.password_reset import PasswordResetService
from app.services.users import MAX_PAGE_SIZE, UserStore

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=Envelope[UserOut])
async def register(req: RegisterIn, users: UserStore = Depends(get_user_store)):
    user = await users.create(
        name=req.name,
        email=req.email,
        password_hash=password_service.hash_password(req.password),
        phone=req.phone,
    )
    return Envelope[UserOut].ok("User registered successfully", UserOut.model_validate(user))


@router.get("", response_model=Envelope[UserPageOut])
async def list_users(page: int = 1, size: int = 10, users: UserStore = Depends(get_user_store)):
    if page < 1:
        raise ValidationError("Page number must be greater than 0")
    if size < 1 or size > MAX_PAGE_SIZE:
        raise ValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}")

    result = await users.find_paginated(page, size)
    logger.info(
        "Users page fetched",
        extra={"total_items": result.total_items, "total_pages": result.total_pages, "page": result.current_page},
    )
    return Envelope[UserPageOut].ok(
        "Users retrieved successfully",
        UserPageOut(
            total_items=result.total_items,
            total_pages=result.total_pages,
            current_page=result.current_page,
            page_size=result.page_size,
            users=[UserOut.model_validate(u) for u in result.users],
        ),
    )


# declared before /{user_id} so "email" is never parsed as an id
@router.get("/email", response_model=Envelope[UserAuthOut])
async def get_user_by_email(
    value: str | None = None,
    users: UserStore = Depends(get_user_store),
    settings: Settings = Depends(get_app_settings),
):
    if not value:
        raise ValidationError("Query parameter 'value' is required")

    user = await users.find_by_email(value)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)

    out = UserAuthOut.model_validate(user)
    if not settings.expose_credential_hash:
        out.password = None
    return Envelope[UserAuthOut].ok("User retrieved successfully", out)


@router.get("/{user_id}", response_model=Envelope[UserOut])
async def get_user(user_id: int, users: UserStore = Depends(get_user_store)):
    user = await users.find_by_id(user_id)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    return Envelope[UserOut].ok("User retrieved successfully", UserOut.model_validate(user))


@router.put("/{user_id}", response_model=Envelope[UserOut])
async def update_user(user_id: int, patch: UserPatch, users: UserStore = Depends(get_user_store)):
    user = await users.update(user_id, patch)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    return Envelope[UserOut].ok("User updated successfully", UserOut.model_validate(user))


@router.delete("/{user_id}", response_model=Envelope)
async def delete_user(user_id: int, users: UserStore = Depends(get_user_store)):
    if await users.delete(user_id) is None:
        raise NotFoundError("User not found or already deleted")
    return Envelope.ok("User deleted successfully")


@router.patch("/{user_id}/password", response_model=Envelope)
async def reset_password(
    user_id: int,
    req: PasswordResetIn,
    reset_service: PasswordResetService = Depends(get_password_reset_service),
):
    await reset_service.reset(user_id, req.email, req.otp, req.password)
    return Envelope.ok("Password reset successfully")


@router.patch("/{user_id}/account_status", response_model=Envelope[AccountStatusOut])
async def verify_account(user_id: int, users: UserStore = Depends(get_user_store)):
    user = await users.find_by_id(user_id)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)

    new_status = await users.verify_account(user.id)
    if new_status is None:
        raise ValidationError("User has already been verified or deleted")
    return Envelope[AccountStatusOut].ok(
        "User verified successfully", AccountStatusOut(account_status=new_status.value)
    )
