"""Outbound HTTP for enrichers with SSRF validation on every hop."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import httpcore
import httpx
import structlog

from learnd.core.config import settings
from learnd.core.errors import FetchError, InvalidURLError
from learnd.core.url_safety import Resolver, resolve_public_url, validate_public_url

logger = structlog.get_logger(__name__)

_REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


class PinnedNetworkBackend(httpcore.AsyncNetworkBackend):
    """Connects only to addresses that already passed validation.

    ``pins`` maps a request host to its checked addresses. The TCP connection
    goes to one of those addresses while TLS still verifies the original
    hostname, so a second DNS answer can never redirect the socket.
    """

    def __init__(
        self,
        pins: dict[str, list[str]],
        backend: httpcore.AsyncNetworkBackend | None = None,
    ) -> None:
        self._pins = pins
        self._backend = backend or httpcore.AnyIOBackend()

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        addresses = self._pins.get(host)
        if not addresses:
            raise httpcore.ConnectError(f"no validated address for host {host!r}")
        last_exc: httpcore.ConnectError | None = None
        for address in addresses:
            try:
                return await self._backend.connect_tcp(
                    address,
                    port,
                    timeout=timeout,
                    local_address=local_address,
                    socket_options=socket_options,
                )
            except httpcore.ConnectError as exc:
                last_exc = exc
        raise last_exc

    async def connect_unix_socket(
        self,
        path: str,
        timeout: float | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.AsyncNetworkStream:
        raise httpcore.ConnectError("unix sockets are not allowed")

    async def sleep(self, seconds: float) -> None:
        await self._backend.sleep(seconds)


class _PinnedTransport(httpx.AsyncHTTPTransport):
    def __init__(self, pins: dict[str, list[str]]) -> None:
        super().__init__(trust_env=False)
        # AsyncHTTPTransport takes no network backend; swap in a pool that uses ours.
        self._pool = httpcore.AsyncConnectionPool(
            ssl_context=httpx.create_ssl_context(),
            network_backend=PinnedNetworkBackend(pins),
        )


def _pin_key(url: str) -> str:
    # The host exactly as httpcore will hand it to connect_tcp.
    try:
        return httpx.URL(url).raw_host.decode("ascii")
    except (httpx.InvalidURL, UnicodeError) as exc:
        raise InvalidURLError(f"invalid URL: {exc}") from exc


@dataclass
class FetchedPage:
    url: str
    status_code: int
    headers: httpx.Headers
    content: bytes
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        return str(self.headers.get("content-type") or "").split(";")[0].strip().lower()

    def json(self) -> Any:
        return json.loads(self.content)


class SafeFetcher:
    """GET with bounded redirects, timeouts and body size.

    Redirects are followed manually so each ``Location`` target is validated
    with the same rules as the original URL before it is requested. Every
    connection is made to an address from that validation, never to a fresh
    DNS answer.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        max_bytes: int | None = None,
        max_redirects: int | None = None,
        user_agent: str | None = None,
        resolver: Resolver | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        self.max_bytes = max_bytes if max_bytes is not None else settings.FETCH_MAX_BYTES
        self.max_redirects = (
            max_redirects if max_redirects is not None else settings.FETCH_MAX_REDIRECTS
        )
        self.user_agent = user_agent or settings.FETCH_USER_AGENT
        self._resolver = resolver

    async def validate(self, url: str) -> None:
        """Raise InvalidURLError unless ``url`` is a public http(s) destination."""
        await validate_public_url(url, resolver=self._resolver)

    async def fetch(
        self,
        url: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> FetchedPage:
        """Fetch ``url`` and return the final response with a size-capped body.

        Raises InvalidURLError when the URL or any redirect target is unsafe and
        FetchError on transport failures or when the redirect cap is exceeded.
        Non-2xx responses are returned; callers decide what status they accept.
        """
        current_url = str(httpx.URL(url, params=params)) if params else str(url)
        request_headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
        }
        request_headers.update(headers or {})
        timeout = httpx.Timeout(self.timeout)
        pins: dict[str, list[str]] = {}

        async with httpx.AsyncClient(
            transport=_PinnedTransport(pins),
            timeout=timeout,
            follow_redirects=False,
            trust_env=False,
        ) as client:
            for _ in range(self.max_redirects + 1):
                _, addresses = await resolve_public_url(current_url, resolver=self._resolver)
                pins[_pin_key(current_url)] = addresses
                try:
                    async with client.stream("GET", current_url, headers=request_headers) as resp:
                        if resp.status_code in _REDIRECT_STATUSES:
                            location = str(resp.headers.get("location") or "").strip()
                            if not location:
                                raise FetchError("redirect without location header")
                            current_url = str(httpx.URL(current_url).join(location))
                            continue

                        content, truncated = await self._read_capped(resp)
                        if truncated:
                            logger.debug(
                                "safe_fetch.body_truncated",
                                url=current_url[:200],
                                max_bytes=self.max_bytes,
                            )
                        return FetchedPage(
                            url=str(resp.url),
                            status_code=resp.status_code,
                            headers=resp.headers,
                            content=content,
                            truncated=truncated,
                        )
                except httpx.HTTPError as exc:
                    raise FetchError(f"failed to fetch URL: {exc}") from exc

        raise FetchError(f"stopped after {self.max_redirects} redirects")

    async def _read_capped(self, resp: httpx.Response) -> tuple[bytes, bool]:
        chunks: list[bytes] = []
        seen = 0
        async for part in resp.aiter_bytes():
            if seen + len(part) > self.max_bytes:
                chunks.append(part[: self.max_bytes - seen])
                return b"".join(chunks), True
            chunks.append(part)
            seen += len(part)
        return b"".join(chunks), False
