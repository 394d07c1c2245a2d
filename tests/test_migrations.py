from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

ROOT = Path(__file__).resolve().parents[1]


def _alembic_config(db_path: Path) -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{db_path}")
    cfg.attributes["configure_logger"] = False
    return cfg


def test_upgrade_creates_schema_and_downgrade_removes_it(tmp_path):
    db_path = tmp_path / "migrated.db"
    cfg = _alembic_config(db_path)

    command.upgrade(cfg, "head")

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(engine)
        assert {"users", "otp"} <= set(inspector.get_table_names())
        assert {c["name"] for c in inspector.get_columns("users")} >= {
            "id", "name", "email", "password", "phone", "account_status", "created_at", "updated_at",
        }
        assert {c["name"] for c in inspector.get_columns("otp")} >= {
            "id", "otp", "user_id", "created_at", "otp_status",
        }
        user_indexes = {ix["name"]: ix for ix in inspector.get_indexes("users")}
        assert user_indexes["uq_users_email_active"]["unique"]
        otp_indexes = {ix["name"]: ix for ix in inspector.get_indexes("otp")}
        assert otp_indexes["uq_otp_user_active"]["unique"]

        command.downgrade(cfg, "base")
        inspector = inspect(engine)
        assert "users" not in inspector.get_table_names()
        assert "otp" not in inspector.get_table_names()
    finally:
        engine.dispose()
