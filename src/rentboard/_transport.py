"""HTTP transport for the PostgREST (Supabase REST) API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from rentboard._constants import REST_PREFIX, USER_AGENT
from rentboard._redact import redact_for_log
from rentboard.config import RentboardConfig
from rentboard.exceptions import RentboardApiError, RentboardTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Endpoint modules only see this protocol, so tests can pass a fake
    instead of :class:`RestTransport`.
    """

    async def get_json(self, path: str, params: Mapping[str, str] | None = None) -> Any:
        ...

    async def post_json(
        self,
        path: str,
        body: Mapping[str, Any],
        params: Mapping[str, str] | None = None,
        *,
        prefer: str | None = None,
    ) -> Any:
        ...


def _error_message(status: int, text: str) -> tuple[str, str]:
    """Extract ``(code, message)`` from a PostgREST error body."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return "", text[:200] or f"HTTP {status}"
    if not isinstance(payload, dict):
        return "", text[:200]
    code = str(payload.get("code") or "")
    message = str(payload.get("message") or payload.get("msg") or payload.get("error") or f"HTTP {status}")
    details = payload.get("details")
    if details:
        message = f"{message} ({details})"
    return code, message


class RestTransport:
    """aiohttp transport adding API-key auth and schema profile headers."""

    def __init__(self, config: RentboardConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self, *, write: bool, prefer: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
            "accept-profile": self._config.schema,
        }
        if self._config.api_key:
            headers["apikey"] = self._config.api_key
            headers["authorization"] = f"Bearer {self._config.api_key}"
        if write:
            headers["content-type"] = "application/json"
            headers["content-profile"] = self._config.schema
        if prefer:
            headers["prefer"] = prefer
        return headers

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}{REST_PREFIX}/{path.lstrip('/')}"

    async def get_json(self, path: str, params: Mapping[str, str] | None = None) -> Any:
        return await self._request("GET", path, params=params, headers=self._headers(write=False))

    async def post_json(
        self,
        path: str,
        body: Mapping[str, Any],
        params: Mapping[str, str] | None = None,
        *,
        prefer: str | None = None,
    ) -> Any:
        return await self._request(
            "POST",
            path,
            params=params,
            body=body,
            headers=self._headers(write=True, prefer=prefer),
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str],
        params: Mapping[str, str] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> Any:
        url = self._url(path)
        _logger.debug(
            "%s %s params=%s headers=%s body=%s",
            method,
            url,
            dict(params or {}),
            redact_for_log(headers),
            redact_for_log(body),
        )
        data = None if body is None else json.dumps(body, separators=(",", ":"), default=str)

        try:
            async with self._http.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except aiohttp.ClientError as exc:
            raise RentboardTransportError(f"Request to {path} failed: {exc}", endpoint=path) from exc
        except TimeoutError as exc:
            raise RentboardTransportError(f"Request to {path} timed out", endpoint=path) from exc

        if status >= 500:
            raise RentboardTransportError(
                f"HTTP {status} from {path}: {text[:200]}",
                status_code=status,
                endpoint=path,
            )
        if status >= 400:
            code, message = _error_message(status, text)
            raise RentboardApiError(message, code=code, endpoint=path, status_code=status)

        if not text.strip():
            return None
        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RentboardTransportError(
                f"Invalid JSON from {path}: {text[:200]}",
                status_code=status,
                endpoint=path,
            ) from exc
        _logger.debug("%s %s -> %s %s", method, path, status, redact_for_log(result, max_string=128))
        return result
