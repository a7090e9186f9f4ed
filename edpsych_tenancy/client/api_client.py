"""
Thin JSON-over-HTTP client shared by the subscription and tenant user services.
Mirrors what the web front-end does with fetch(): JSON in, JSON out, session
cookie on every call, one error type for every non-2xx answer.
"""
import logging
from typing import Any

import httpx
from pydantic import BaseModel

from edpsych_tenancy.config import settings

logger = logging.getLogger("edpsych-tenancy")


class ApiError(Exception):
    """Non-2xx answer from the remote API."""

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


def _serialize(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, exclude_none=True, mode="json")
    return data


class ApiClient:
    """Async JSON client bound to one API origin and one session cookie."""

    def __init__(
        self,
        origin: str,
        *,
        session_token: str | None = None,
        cookie_name: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        cookies = {}
        if session_token:
            cookies[cookie_name or settings.session_cookie_name] = session_token
        self._client = httpx.AsyncClient(
            base_url=origin.rstrip("/"),
            headers={"Content-Type": "application/json"},
            cookies=cookies,
            timeout=timeout,
            transport=transport,
        )

    async def api_call(
        self,
        path: str,
        method: str = "GET",
        data: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """
        Issue one request and return the decoded JSON body.
        Empty 2xx bodies (204 No Content) come back as None.
        Raises ApiError on non-2xx; transport errors propagate untouched.
        """
        kwargs: dict[str, Any] = {}
        if data is not None:
            kwargs["json"] = _serialize(data)
        if params:
            kwargs["params"] = params

        logger.debug("%s %s", method, path)
        resp = await self._client.request(method, path, **kwargs)

        if not resp.is_success:
            try:
                payload = resp.json()
            except ValueError:
                payload = {}
            message = payload.get("message") if isinstance(payload, dict) else None
            if not message:
                message = f"API call failed: {resp.status_code}"
            logger.warning("%s %s -> %s: %s", method, path, resp.status_code, message)
            raise ApiError(message, status_code=resp.status_code, payload=payload)

        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def create_client(
    origin: str | None = None,
    session_token: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ApiClient:
    return ApiClient(
        origin or settings.api_origin,
        session_token=session_token if session_token is not None else settings.session_token,
        cookie_name=settings.session_cookie_name,
        timeout=settings.request_timeout,
        transport=transport,
    )
