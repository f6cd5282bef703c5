"""JSON-over-HTTP client for the GitHub REST API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp
from loguru import logger

# ─── Errors ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class HttpError(Exception):
    """Non-2xx reply or unusable body. ``status`` is 0 when no reply arrived."""

    status: int
    body: str

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.body}"


@dataclass(frozen=True, slots=True)
class Response[T]:
    status: int
    data: T | None


# ─── Auth ────────────────────────────────────────────────────────────


class Auth(Protocol):
    def headers(self) -> dict[str, str]: ...


class TokenAuth:
    """GitHub personal access / OAuth token."""

    def __init__(self, token: str) -> None:
        self._token = token

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"token {self._token}"}

    def __repr__(self) -> str:
        return "TokenAuth(token=***)"


# ─── Client ──────────────────────────────────────────────────────────


class HttpClient:
    """Lazily opened aiohttp session bound to one API base URL.

    Every failure surfaces as HttpError: error statuses keep their code,
    connection failures and timeouts use status 0.
    """

    def __init__(
        self,
        base_url: str,
        auth: Auth | None = None,
        *,
        timeout: float = 30,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._default_headers = default_headers or {}
        self._session: aiohttp.ClientSession | None = None
        self._log = logger.bind(component="http")

    def _session_for_request(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _headers(self) -> dict[str, str]:
        headers = dict(self._default_headers)
        if self._auth:
            headers.update(self._auth.headers())
        return headers

    async def post[T](
        self,
        path: str,
        *,
        json: dict[str, Any] | list[Any] | None = None,
        response_type: type[T],
    ) -> Response[T]:
        """POST a JSON body and decode the reply.

        An empty reply body yields ``data=None``; any other body must decode
        to ``response_type``.
        """
        url = f"{self._base_url}{path}"
        self._log.debug("POST {path}", path=path)
        try:
            async with self._session_for_request().post(
                url, headers=self._headers(), json=json
            ) as resp:
                status, data = await self._decode(resp)
        except aiohttp.ClientResponseError as e:
            raise HttpError(status=e.status, body=e.message) from e
        except (aiohttp.ClientError, TimeoutError) as e:
            raise HttpError(status=0, body=str(e) or type(e).__name__) from e

        if data is not None and not isinstance(data, response_type):
            raise HttpError(
                status=status,
                body=f"expected {response_type.__name__}, got {type(data).__name__}",
            )
        return Response(status=status, data=data)

    async def _decode(self, resp: aiohttp.ClientResponse) -> tuple[int, Any]:
        if resp.status >= 400:
            body = await resp.text()
            self._log.warning(
                "HTTP {status} from {url}: {body}",
                status=resp.status, url=str(resp.url), body=body[:500],
            )
            raise HttpError(status=resp.status, body=body)
        if not await resp.read():
            return resp.status, None
        try:
            return resp.status, await resp.json(content_type=None)
        except ValueError as e:
            raise HttpError(status=resp.status, body=f"invalid JSON: {e}") from e

    async def close(self) -> None:
        if self._session and not self._session.closed:
            self._log.debug("Closing HTTP session")
            await self._session.close()
