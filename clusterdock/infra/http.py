"""JSON-over-HTTP client shared by the gateway and inventory adapters.

One ``aiohttp.ClientSession`` per client, opened lazily on first request.
Every non-2xx answer and every transport failure surfaces as ``HttpError``;
callers translate it into their own domain error.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any

import aiohttp
from loguru import logger

from clusterdock.config import EndpointConfig

USER_AGENT = "clusterdock/0.1"


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    status: int
    body: str
    method: str = ""
    path: str = ""

    def __str__(self) -> str:
        where = f" ({self.method} {self.path})" if self.method else ""
        return f"HTTP {self.status}{where}: {self.body}"

    @property
    def transient(self) -> bool:
        """No response at all (status 0) or a 5xx from the service."""
        return self.status == 0 or self.status >= 500


class JsonClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._log = logger.bind(component="http", service=self._base_url)

    @classmethod
    def from_endpoint(cls, endpoint: EndpointConfig) -> JsonClient:
        return cls(endpoint.url, token=endpoint.token, timeout=endpoint.timeout)

    async def get(self, path: str, *, params: dict[str, str] | None = None) -> Any:
        return await self._call("GET", path, params=params)

    async def post(self, path: str, payload: dict[str, Any]) -> Any:
        return await self._call("POST", path, payload=payload)

    async def _call(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout, headers=self._headers)

        started = time.monotonic()
        try:
            async with self._session.request(
                method, self._base_url + path, json=payload, params=params,
            ) as resp:
                status = resp.status
                text = await resp.text()
        except aiohttp.ClientError as e:
            raise HttpError(0, str(e) or type(e).__name__, method, path) from e
        except TimeoutError as e:
            raise HttpError(0, f"no response within {self._timeout.total:g}s", method, path) from e

        self._log.debug(
            "{method} {path} → {status} in {ms:.0f} ms",
            method=method, path=path, status=status, ms=(time.monotonic() - started) * 1000,
        )
        if status >= 400:
            self._log.warning("{method} {path} failed with {status}: {body}",
                              method=method, path=path, status=status, body=text[:300])
            raise HttpError(status, text, method, path)
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise HttpError(status, f"response is not JSON: {e}", method, path) from e

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> JsonClient:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()
