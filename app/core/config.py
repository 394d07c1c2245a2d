from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_title: str = "User Data Service"
    api_version: str = "1.0.0"
    api_prefix: str = ""

    database_url: str = "sqlite+aiosqlite:///./users.db"
    db_echo: bool = False
    db_connect_retries: int = Field(5, description="Startup connection attempts before giving up")
    db_connect_delay_s: float = Field(5.0, description="Pause between startup connection attempts")
    db_create_tables: bool = True

    otp_service_url: str = "http://localhost:8084/api/otp"
    otp_service_timeout_s: float = 5.0
    password_reset_base_url: str = "http://localhost:8080/api/v1"

    # GET /users/email returns the stored hash to the auth service when enabled
    expose_credential_hash: bool = True

    log_level: str = "INFO"
    log_json: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
