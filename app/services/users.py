import asyncio
import logging
import math
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from app.core.db import Database
from app.core.errors import DuplicateEmailError, ValidationError, wrap_db_errors
from app.models.user import AccountStatus, User, utcnow
from app.schemas.user import UserPatch

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

_not_deleted = User.account_status != AccountStatus.DELETED.value


@dataclass
class UserPage:
    users: list[User]
    total_items: int
    total_pages: int
    current_page: int
    page_size: int


def clamp_pagination(page: int, size: int) -> tuple[int, int, int]:
    """Return ``(page, size, offset)`` with page >= 1 and size in [1, MAX_PAGE_SIZE]."""
    page = max(1, page)
    size = min(max(1, size), MAX_PAGE_SIZE)
    return page, size, (page - 1) * size


class UserStore:
    def __init__(self, db: Database):
        self.db = db

    async def _first(self, operation: str, *criteria) -> User | None:
        with wrap_db_errors(operation, "user"):
            async with self.db.session() as session:
                result = await session.execute(select(User).where(*criteria, _not_deleted))
                return result.scalars().first()

    async def _write(self, stmt, *, duplicate_email: bool = False):
        async with self.db.session() as session:
            try:
                result = await session.execute(stmt)
                row = result.scalar_one_or_none()
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if duplicate_email:
                    raise DuplicateEmailError() from exc
                raise
            return row

    async def _email_available(self, email: str, exclude_user_id: int | None = None) -> bool:
        existing = await self.find_by_email(email)
        if existing is None:
            return True
        if exclude_user_id is not None and existing.id == exclude_user_id:
            return True
        logger.warning(
            "Email already in use",
            extra={"email": email, "existing_user_id": existing.id, "current_user_id": exclude_user_id},
        )
        return False

    async def create(self, name: str, email: str, password_hash: str, phone: str | None = None) -> User:
        logger.info("Creating user", extra={"email": email})
        with wrap_db_errors("creating", "user"):
            if not await self._email_available(email):
                raise DuplicateEmailError()

            user = User(name=name, email=email, password=password_hash, phone=phone)
            async with self.db.session() as session:
                session.add(user)
                try:
                    await session.commit()
                except IntegrityError as exc:
                    # lost the race against a concurrent registration
                    await session.rollback()
                    raise DuplicateEmailError() from exc

        logger.info("User created", extra={"user_id": user.id, "email": email})
        return user

    async def find_by_id(self, user_id: int) -> User | None:
        return await self._first("fetching by id", User.id == user_id)

    async def find_by_email(self, email: str) -> User | None:
        return await self._first("fetching by email", User.email == email)

    async def find_by_id_and_email(self, user_id: int, email: str) -> User | None:
        return await self._first("fetching by id and email", User.id == user_id, User.email == email)

    async def _count_active(self) -> int:
        base_stmt = select(User.id).where(_not_deleted)
        async with self.db.session() as session:
            result = await session.execute(select(func.count()).select_from(base_stmt.subquery()))
            return result.scalar_one()

    async def _slice_active(self, size: int, offset: int) -> list[User]:
        stmt = (
            select(User)
            .where(_not_deleted)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset(offset)
            .limit(size)
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def find_paginated(self, page: int = 1, size: int = 10) -> UserPage:
        page, size, offset = clamp_pagination(page, size)
        logger.debug("Fetching users page", extra={"page": page, "size": size, "offset": offset})

        with wrap_db_errors("fetching paginated", "users"):
            total_items, users = await asyncio.gather(self._count_active(), self._slice_active(size, offset))

        return UserPage(
            users=users,
            total_items=total_items,
            total_pages=math.ceil(total_items / size),
            current_page=page,
            page_size=size,
        )

    async def update(self, user_id: int, patch: UserPatch) -> User | None:
        fields = patch.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No valid fields to update")
        if "email" in fields and fields["email"] is None:
            raise ValidationError("Email cannot be null")

        logger.info("Updating user", extra={"user_id": user_id, "fields": sorted(fields)})
        with wrap_db_errors("updating", "user"):
            if await self.find_by_id(user_id) is None:
                logger.warning("User not found for update", extra={"user_id": user_id})
                return None

            if "email" in fields and not await self._email_available(fields["email"], exclude_user_id=user_id):
                raise DuplicateEmailError("Email already exists on another user")

            stmt = (
                update(User)
                .where(User.id == user_id, _not_deleted)
                .values(**fields, updated_at=utcnow())
                .returning(User)
            )
            return await self._write(stmt, duplicate_email=True)

    async def update_password(self, user_id: int, password_hash: str) -> bool:
        logger.info("Updating user password", extra={"user_id": user_id})
        with wrap_db_errors("updating password of", "user"):
            stmt = (
                update(User)
                .where(User.id == user_id, _not_deleted)
                .values(password=password_hash, updated_at=utcnow())
                .returning(User.id)
            )
            updated_id = await self._write(stmt)

        if updated_id is None:
            logger.warning("User not found or deleted while changing password", extra={"user_id": user_id})
            return False
        return True

    async def delete(self, user_id: int) -> User | None:
        """Soft delete. Returns ``None`` when the user is missing or already deleted."""
        logger.info("Deleting user", extra={"user_id": user_id})
        with wrap_db_errors("deleting", "user"):
            stmt = (
                update(User)
                .where(User.id == user_id, _not_deleted)
                .values(account_status=AccountStatus.DELETED.value, updated_at=utcnow())
                .returning(User)
            )
            deleted = await self._write(stmt)

        if deleted is None:
            logger.warning("Attempt to delete missing or already deleted user", extra={"user_id": user_id})
        return deleted

    async def verify_account(self, user_id: int) -> AccountStatus | None:
        with wrap_db_errors("verifying", "user"):
            stmt = (
                update(User)
                .where(User.id == user_id, User.account_status == AccountStatus.PENDING_VALIDATION.value)
                .values(account_status=AccountStatus.VERIFIED.value, updated_at=utcnow())
                .returning(User.account_status)
            )
            new_status = await self._write(stmt)

        if new_status is None:
            logger.warning("User is not pending validation", extra={"user_id": user_id})
            return None
        logger.info("User account verified", extra={"user_id": user_id})
        return AccountStatus(new_status)
