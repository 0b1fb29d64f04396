"""HTTP fetching with a hard per-request deadline."""

from __future__ import annotations

import contextlib
import errno
import re
import socket
import ssl
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict

import httpx
import structlog

from ..config import ScraperSettings
from ..errors import FetchTimeoutError, NetworkError

_CHARSET_PATTERN = re.compile(r"charset=([^;]+)", re.IGNORECASE)
_CONNECTED_EVENTS = ("connection.connect_tcp.complete", "connection.start_tls.complete")


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    final_url: str
    status_code: int
    content_type: str | None
    charset: str | None
    headers: Dict[str, str]
    text: str
    bytes: int
    duration_ms: int


def extract_charset(content_type: str | None) -> str | None:
    """Return the ``charset=`` parameter of a Content-Type header, if any."""

    if not content_type:
        return None
    match = _CHARSET_PATTERN.search(content_type)
    return match.group(1).strip() if match else None


def transport_error_code(exc: BaseException) -> str:
    """Best-effort errno-style code for a transport failure."""

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return "ENOTFOUND"
        if isinstance(current, ssl.SSLError):
            return "ETLS"
        if isinstance(current, OSError) and current.errno in errno.errorcode:
            return errno.errorcode[current.errno]
        current = current.__cause__ or current.__context__
    return type(exc).__name__


class _Watchdog:
    """Shut down the request's socket once ``timeout`` seconds have passed.

    The socket is learnt from httpcore's trace events while connecting, or
    from the ``network_stream`` extension of a response on a pooled
    connection. Shutting it down wakes any read blocked on it.
    """

    def __init__(self, timeout: float) -> None:
        self._lock = threading.Lock()
        self._sock: socket.socket | None = None
        self._fired = threading.Event()
        self._timer = threading.Timer(timeout, self._fire)
        self._timer.daemon = True

    @property
    def expired(self) -> bool:
        return self._fired.is_set()

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    def trace(self, event_name: str, info: dict[str, Any]) -> None:
        if event_name in _CONNECTED_EVENTS:
            self.attach(info.get("return_value"))

    def attach(self, stream: Any) -> None:
        get_extra_info = getattr(stream, "get_extra_info", None)
        sock = get_extra_info("socket") if get_extra_info is not None else None
        if sock is None:
            return
        with self._lock:
            self._sock = sock
            if self._fired.is_set():
                self._shutdown()

    def _fire(self) -> None:
        with self._lock:
            self._fired.set()
            self._shutdown()

    def _shutdown(self) -> None:
        if self._sock is None:
            return
        # the socket may already be closed by a finished response
        with contextlib.suppress(OSError):
            self._sock.shutdown(socket.SHUT_RDWR)


class FetchClient:
    """Perform one timed GET per call; no retries."""

    def __init__(
        self,
        settings: ScraperSettings,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or structlog.get_logger("batch_scraper.fetcher")
        self._client = client or httpx.Client(follow_redirects=settings.follow_redirects)
        self._headers = {
            "User-Agent": settings.user_agent,
            "Accept": settings.accept,
        }

    def close(self) -> None:
        self._client.close()

    def fetch(self, url: str, timeout: float | None = None) -> FetchResponse:
        """GET ``url`` and read the whole body before ``timeout`` seconds elapse.

        The timeout bounds the call as a whole: when it elapses the socket is
        shut down and the call fails, whichever phase it was in.

        Raises:
            FetchTimeoutError: the deadline passed before the body was read.
            NetworkError: DNS, connection, TLS or protocol failure.
        """

        timeout = timeout or self.settings.request_timeout
        started = time.monotonic()
        watchdog = _Watchdog(timeout)
        watchdog.start()
        try:
            with self._client.stream(
                "GET",
                url,
                headers=self._headers,
                timeout=httpx.Timeout(timeout),
                extensions={"trace": watchdog.trace},
            ) as response:
                watchdog.attach(response.extensions.get("network_stream"))
                chunks: list[bytes] = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    if watchdog.expired:
                        break
                if watchdog.expired:
                    raise FetchTimeoutError(
                        f"Request to {url} exceeded {timeout:g}s while reading the body"
                    )
                body = b"".join(chunks)
        except FetchTimeoutError:
            raise
        except httpx.TimeoutException as exc:
            raise FetchTimeoutError(f"Request to {url} timed out after {timeout:g}s") from exc
        except (httpx.TransportError, httpx.InvalidURL) as exc:
            if watchdog.expired:
                raise FetchTimeoutError(f"Request to {url} timed out after {timeout:g}s") from exc
            raise NetworkError(
                str(exc) or type(exc).__name__, code=transport_error_code(exc)
            ) from exc
        finally:
            watchdog.cancel()

        duration_ms = int((time.monotonic() - started) * 1000)
        content_type = response.headers.get("content-type")
        return FetchResponse(
            url=url,
            final_url=str(response.url),
            status_code=response.status_code,
            content_type=content_type,
            charset=extract_charset(content_type),
            headers=dict(response.headers),
            text=self._decode(body, response),
            bytes=len(body),
            duration_ms=duration_ms,
        )

    @staticmethod
    def _decode(body: bytes, response: httpx.Response) -> str:
        encoding = response.charset_encoding or "utf-8"
        try:
            return body.decode(encoding, errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")


__all__ = ["FetchClient", "FetchResponse", "extract_charset", "transport_error_code"]
