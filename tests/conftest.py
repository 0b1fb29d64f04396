"""Pytest configuration providing isolated homes, stores and fake fetchers."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from batch_scraper.config import (
    ConfigLocator,
    ConfigRepository,
    ScraperSettings,
    StoreBackend,
    StoreConfig,
)
from batch_scraper.config.loader import HOME_ENV_VAR
from batch_scraper.engine import FetchClient, FetchResponse
from batch_scraper.errors import FetchTimeoutError, NetworkError
from batch_scraper.infra import SQLiteManager
from batch_scraper.logging_conf import configure_logging
from batch_scraper.store import MemoryJobStore, SQLiteJobStore

PAGE = """
<html>
  <head>
    <title>  Example page </title>
    <meta name="description" content="A page used in tests">
    <meta property="og:title" content="OG title">
    <meta property="og:image" content="https://a.test/cover.png">
  </head>
  <body>
    <h1>Main</h1>
    <h2>Sub one</h2><h2>Sub two</h2>
    <p>Hello
       world</p>
    <a href="/about">About us</a>
    <img src="/logo.png" alt="Logo">
  </body>
</html>
"""


@pytest.fixture(scope="session", autouse=True)
def _session_home(tmp_path_factory: pytest.TempPathFactory) -> Iterable[Path]:
    # Global log handlers are configured once per process, so point them at a
    # throwaway directory before anything logs.
    home = tmp_path_factory.mktemp("scraper-home")
    previous = os.environ.get(HOME_ENV_VAR)
    os.environ[HOME_ENV_VAR] = str(home)
    configure_logging()
    yield home
    if previous is None:
        os.environ.pop(HOME_ENV_VAR, None)
    else:
        os.environ[HOME_ENV_VAR] = previous


@pytest.fixture
def scraper_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv(HOME_ENV_VAR, str(tmp_path))
    return tmp_path


@pytest.fixture
def temp_config_repository(scraper_home: Path) -> ConfigRepository:
    return ConfigRepository(ConfigLocator(project_root=scraper_home))


@pytest.fixture
def settings() -> ScraperSettings:
    return ScraperSettings(store=StoreConfig(backend=StoreBackend.MEMORY))


@pytest.fixture
def memory_store() -> MemoryJobStore:
    return MemoryJobStore()


@pytest.fixture
def sqlite_store(tmp_path: Path) -> Iterable[SQLiteJobStore]:
    store = SQLiteJobStore(SQLiteManager(), tmp_path / "scraper.db")
    yield store
    store.close()


@pytest.fixture
def mock_fetch_client(settings: ScraperSettings) -> Iterable[Callable[..., FetchClient]]:
    """Build a :class:`FetchClient` whose transport is an ``httpx.MockTransport``."""

    clients: list[FetchClient] = []

    def _builder(handler: Callable[[httpx.Request], httpx.Response]) -> FetchClient:
        client = httpx.Client(
            transport=httpx.MockTransport(handler),
            follow_redirects=settings.follow_redirects,
        )
        fetch_client = FetchClient(settings, client=client)
        clients.append(fetch_client)
        return fetch_client

    yield _builder
    for fetch_client in clients:
        fetch_client.close()


def html_response(url: str, body: str = PAGE, status_code: int = 200) -> FetchResponse:
    encoded = body.encode("utf-8")
    return FetchResponse(
        url=url,
        final_url=url,
        status_code=status_code,
        content_type="text/html; charset=utf-8",
        charset="utf-8",
        headers={"content-type": "text/html; charset=utf-8"},
        text=body,
        bytes=len(encoded),
        duration_ms=3,
    )


class FakeFetcher:
    """Scripted stand-in for :class:`FetchClient`.

    ``script`` maps a URL to an HTML body, an ``int`` status code, or an
    exception instance to raise. Unknown URLs get :data:`PAGE`. Tracks the
    peak number of concurrent ``fetch`` calls.
    """

    def __init__(self, script: dict[str, Any] | None = None, delay: float = 0.0) -> None:
        self.script = script or {}
        self.delay = delay
        self.calls: list[tuple[str, float | None]] = []
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()

    def fetch(self, url: str, timeout: float | None = None) -> FetchResponse:
        with self._lock:
            self.calls.append((url, timeout))
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            outcome = self.script.get(url, PAGE)
            if isinstance(outcome, BaseException):
                raise outcome
            if isinstance(outcome, int):
                return html_response(url, status_code=outcome)
            return html_response(url, body=outcome)
        finally:
            with self._lock:
                self.in_flight -= 1

    def close(self) -> None:
        return


@pytest.fixture
def fake_fetcher() -> Callable[..., FakeFetcher]:
    return FakeFetcher


@pytest.fixture
def timeout_error() -> FetchTimeoutError:
    return FetchTimeoutError("Request to https://b.test/timeout timed out after 15s")


@pytest.fixture
def dns_error() -> NetworkError:
    return NetworkError("getaddrinfo ENOTFOUND nowhere.test", code="ENOTFOUND")


@pytest.fixture
def page_html() -> str:
    return PAGE


@dataclass
class Route:
    """How the local page server answers one path.

    ``header_delay`` holds the response back before the status line and
    ``stall`` keeps the connection open after part of the body was sent.
    """

    body: str = PAGE
    header_delay: float = 0.0
    stall: float = 0.0


class _PageHandler(BaseHTTPRequestHandler):
    server: "PageServer"

    def do_GET(self) -> None:
        route = self.server.routes.get(self.path)
        if route is None:
            self.send_error(404)
            return
        if route.header_delay and self.server.released.wait(route.header_delay):
            return
        body = route.body.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        # announce more than is sent so a stalled body is never complete
        self.send_header("Content-Length", str(len(body) + (1 if route.stall else 0)))
        self.end_headers()
        self.wfile.write(body)
        self.wfile.flush()
        if route.stall:
            self.server.released.wait(route.stall)

    def log_message(self, format: str, *args: Any) -> None:
        return


class PageServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), _PageHandler)
        self.routes: dict[str, Route] = {}
        self.released = threading.Event()

    def serve(self, path: str, **route: Any) -> str:
        """Register ``path`` with :class:`Route` options and return its URL."""

        self.routes[path] = Route(**route)
        host, port = self.server_address[:2]
        return f"http://{host}:{port}{path}"


@pytest.fixture
def page_server() -> Iterable[PageServer]:
    server = PageServer()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.released.set()
    server.shutdown()
    server.server_close()


@pytest.fixture
def live_fetch_client(settings: ScraperSettings) -> Iterable[FetchClient]:
    """A :class:`FetchClient` talking to real sockets, ignoring proxy variables."""

    fetch_client = FetchClient(
        settings, client=httpx.Client(follow_redirects=settings.follow_redirects, trust_env=False)
    )
    yield fetch_client
    fetch_client.close()
