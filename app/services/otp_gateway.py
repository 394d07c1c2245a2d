import logging
from typing import TypeVar

import httpx
from fastapi import Request
from pydantic import BaseModel

from app.core.errors import OtpGatewayError
from app.schemas.otp import CheckOtpFormatRequest, CheckOtpFormatResponse, OtpCreationResponse

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class OtpGatewayClient:
    """Client for the external OTP service, which owns passcode generation and format rules."""

    def __init__(self, base_url: str, *, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        logger.info("OTP service client configured", extra={"base_url": self.base_url})

    async def _post(self, url: str, response_model: type[M], payload: BaseModel | None = None) -> M:
        try:
            resp = await self._client.post(url, json=payload.model_dump() if payload else None)
            resp.raise_for_status()
            return response_model.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            # pydantic's ValidationError and json decode errors are both ValueErrors
            logger.error("OTP service call failed", extra={"url": url, "error": str(exc)})
            raise OtpGatewayError() from exc

    async def generate(self) -> str:
        created = await self._post(self.base_url, OtpCreationResponse)
        return created.otp

    async def check_format(self, otp: str) -> bool:
        checked = await self._post(f"{self.base_url}/check", CheckOtpFormatResponse, CheckOtpFormatRequest(otp=otp))
        return checked.is_valid_otp

    async def aclose(self) -> None:
        await self._client.aclose()


def get_otp_gateway(request: Request) -> OtpGatewayClient:
    return request.app.state.otp_gateway
