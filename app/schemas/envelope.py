from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Envelope(BaseModel, Generic[T]):
    success: bool
    message: str
    data: T | None = None
    error: dict[str, Any] | None = None
    timestamp: str = Field(default_factory=_now_iso)

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "Envelope":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, error: dict[str, Any] | None = None) -> "Envelope":
        return cls(success=False, message=message, error=error)
