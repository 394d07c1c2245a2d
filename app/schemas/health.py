from pydantic import BaseModel


class HealthOut(BaseModel):
    status: str
    uptime: float
    version: str
