import os
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select, update

os.environ.setdefault("LOG_JSON", "false")

from app.core.config import Settings
from app.core.db import Database
from app.models.otp import Otp
from app.models.user import User, utcnow
from app.services.otp import OtpStore
from app.services.otp_gateway import get_otp_gateway
from app.services.users import UserStore
from main import create_app


class FakeGateway:
    """Stands in for the external OTP service: six digits is the only valid format."""

    def __init__(self, codes=None, valid=True):
        self.codes = list(codes or ["482913", "123456", "654321", "111222"])
        self.valid = valid
        self.generated = 0
        self.checked: list[str] = []

    async def generate(self) -> str:
        self.generated += 1
        return self.codes.pop(0)

    async def check_format(self, otp: str) -> bool:
        self.checked.append(otp)
        return self.valid and len(otp) == 6 and otp.isdigit()


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "users.db"


@pytest.fixture
async def database(db_path):
    db = Database(f"sqlite+aiosqlite:///{db_path}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def user_store(database) -> UserStore:
    return UserStore(database)


@pytest.fixture
def otp_store(database, user_store) -> OtpStore:
    return OtpStore(database, user_store)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def settings(db_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{db_path}",
        db_connect_retries=1,
        db_connect_delay_s=0,
        log_json=False,
        password_reset_base_url="http://gateway.test/api/v1",
    )


@pytest.fixture
def client(settings, gateway):
    app = create_app(settings)
    app.dependency_overrides[get_otp_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c


@pytest.fixture
def add_user(database):
    async def _add(user_id: int, email: str, *, name: str = "Test User", password: str = "old-hash") -> User:
        user = User(id=user_id, name=name, email=email, password=password)
        async with database.session() as session:
            session.add(user)
            await session.commit()
        return user

    return _add


@pytest.fixture
def otp_row(database):
    async def _get(otp_id: int) -> Otp:
        async with database.session() as session:
            return (await session.execute(select(Otp).where(Otp.id == otp_id))).scalar_one()

    return _get


@pytest.fixture
def backdate_otp(database):
    async def _backdate(otp_id: int, minutes: float) -> None:
        async with database.session() as session:
            await session.execute(
                update(Otp.__table__)
                .where(Otp.__table__.c.id == otp_id)
                .values(created_at=utcnow() - timedelta(minutes=minutes))
            )
            await session.commit()

    return _backdate


@pytest.fixture
def backdate_otp_sync(db_path):
    """Same as ``backdate_otp`` for tests that drive the app through TestClient."""

    def _backdate(otp_id: int, minutes: float) -> None:
        engine = create_engine(f"sqlite:///{db_path}")
        with engine.begin() as conn:
            conn.execute(
                update(Otp.__table__)
                .where(Otp.__table__.c.id == otp_id)
                .values(created_at=utcnow() - timedelta(minutes=minutes))
            )
        engine.dispose()

    return _backdate
