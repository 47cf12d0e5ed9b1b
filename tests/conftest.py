"""Test fixtures and utilities for the XRift CLI."""

import email.message
import io
import json
import urllib.error
import urllib.parse
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

import xrift


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeNow:
    """Wall clock for timestamps; each call can be advanced explicitly."""

    def __init__(self, start: datetime | None = None) -> None:
        self.value = start or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.value

    def advance(self, **kwargs: float) -> None:
        self.value += timedelta(**kwargs)


class FakeResponse:
    def __init__(self, body: bytes) -> None:
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: Any) -> bool:
        return False


@pytest.fixture(autouse=True)
def config_dir(tmp_path: Path, monkeypatch: Any) -> Path:
    """Point the user config dir at a temp directory for every test."""
    path = tmp_path / "home" / ".xrift"
    monkeypatch.setenv("XRIFT_CONFIG_DIR", str(path))
    monkeypatch.delenv("XRIFT_API_URL", raising=False)
    monkeypatch.delenv("XRIFT_FRONTEND_URL", raising=False)
    return path


@pytest.fixture(autouse=True)
def block_real_browser(monkeypatch: Any) -> list[str]:
    """Never launch a real browser; record the URLs instead."""
    opened: list[str] = []

    def fake_open(url: str, *args: Any, **kwargs: Any) -> bool:
        opened.append(url)
        return True

    monkeypatch.setattr("xrift.webbrowser.open", fake_open)
    return opened


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def now() -> FakeNow:
    return FakeNow()


@pytest.fixture
def ctx(config_dir: Path, clock: FakeClock, now: FakeNow) -> xrift.ExecutionContext:
    """Isolated execution context with fake clocks and sequential uploads."""
    return xrift.ExecutionContext(
        config_dir,
        api_url="https://api.test",
        frontend_url="https://app.test",
        jobs=1,
        clock=clock,
        now=now,
        open_browser=lambda url: True,
    )


@pytest.fixture
def logged_in(ctx: xrift.ExecutionContext) -> str:
    """Store a credential for the test context."""
    token = "stored-token"
    xrift.save_auth_config(ctx, {"token": token})
    return token


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a project with xrift.json and an empty dist/ directory.

    Creates:
        <tmp_path>/my-world/
            xrift.json      {"world": {"distDir": "dist"}}
            dist/

    Returns:
        Path to the project root.
    """
    root = tmp_path / "my-world"
    (root / "dist").mkdir(parents=True)
    (root / "xrift.json").write_text(json.dumps({"world": {"distDir": "dist"}}))
    return root


@pytest.fixture
def world_config(project_root: Path) -> Callable:
    """Overwrite the "world" section of the project's xrift.json."""

    def _write(world: dict[str, Any]) -> None:
        (project_root / "xrift.json").write_text(json.dumps({"world": world}, indent=2))

    return _write


@pytest.fixture
def api_mock(monkeypatch: Any) -> Callable:
    """Mock urllib.request.urlopen with a route table.

    Returns a callable taking a dict that maps (method, path) or
    (method, full_url) to a (status, body) tuple, or to a callable that takes
    the recorded call dict and returns such a tuple. Bodies that are not bytes
    are JSON encoded. Status codes >= 400 raise HTTPError like urllib does.
    Unknown routes answer 404.

    Usage:
        def test_something(api_mock):
            mock = api_mock({
                ('GET', '/api/auth/verify-cli-token'): (200, {'valid': True}),
                ('PUT', '/upload/world.glb'): (200, b''),
            })
            ...
            assert mock['calls'][0]['method'] == 'GET'
    """

    def _create_mock(routes: dict[tuple[str, str], Any] | None = None) -> dict:
        calls: list[dict[str, Any]] = []
        routes = routes or {}

        def fake_urlopen(request: Any, timeout: float | None = None) -> FakeResponse:
            method = request.get_method()
            url = request.full_url
            path = urllib.parse.urlsplit(url).path

            data = request.data
            if hasattr(data, "read"):
                data = data.read()
            body: Any = data
            if data and request.get_header("Content-type") == "application/json":
                body = json.loads(data)

            call = {
                "method": method,
                "url": url,
                "path": path,
                "headers": dict(request.header_items()),
                "body": body,
            }
            calls.append(call)

            route = routes.get((method, url), routes.get((method, path)))
            if route is None:
                status, payload = 404, {"message": "not found"}
            elif callable(route):
                status, payload = route(call)
            else:
                status, payload = route

            raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
            if status >= 400:
                raise urllib.error.HTTPError(
                    url, status, "error", email.message.Message(), io.BytesIO(raw)
                )
            return FakeResponse(raw)

        monkeypatch.setattr("xrift.urllib.request.urlopen", fake_urlopen)
        return {"calls": calls, "routes": routes}

    return _create_mock
