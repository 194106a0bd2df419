"""End-to-end tests of the guard installed as HTTP middleware."""

from unittest.mock import Mock

import pytest
from fastapi import FastAPI, Response
from fastapi.testclient import TestClient

from simple_security.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from simple_security.core.config import SecuritySettings
from simple_security.core.middleware import RateLimitMiddleware, ScanningFilterMiddleware
from simple_security.core.rate_limit import WINDOW_SECONDS, RateLimitGuard
from simple_security.core.scan_filter import ScanningFilter
from simple_security.core.security_filter import add_simple_security_filter


def _downstream_app(calls: list[str]) -> FastAPI:
    app = FastAPI()

    @app.get("/products")
    async def products(id: int, response: Response) -> dict:
        calls.append(f"/products?id={id}")
        response.status_code = 201
        return {"id": id}

    @app.get("/{path:path}")
    async def catch_all(path: str) -> dict:
        calls.append(f"/{path}")
        return {"path": path}

    return app


def test_blocked_extension_returns_403_without_downstream_call() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(app, SecuritySettings(rate_limit_enabled=False))

    resp = TestClient(app).get("/config.env")

    assert resp.status_code == 403
    assert resp.content == b""
    assert calls == []


def test_script_in_query_string_returns_403() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(app, SecuritySettings())

    resp = TestClient(app).get("/index.html?x=<script>alert(1)</script>")

    assert resp.status_code == 403
    assert calls == []


def test_blocked_header_returns_403() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(app, SecuritySettings())

    resp = TestClient(app).get("/", headers={"Referer": "javascript:alert(1)"})

    assert resp.status_code == 403
    assert calls == []


def test_fixed_window_scenario_with_controlled_clock() -> None:
    calls: list[str] = []
    clock = Mock(return_value=100.0)
    log_action = Mock()
    app = _downstream_app(calls)
    limiter = InMemoryFixedWindowRateLimiter(limit=10, window_seconds=WINDOW_SECONDS, clock=clock)
    app.middleware("http")(RateLimitMiddleware(RateLimitGuard(limiter, log_action=log_action)))
    client = TestClient(app)

    statuses = [client.get("/home").status_code for _ in range(10)]
    assert statuses == [200] * 10

    clock.return_value = 100.5
    throttled = client.get("/home")
    assert throttled.status_code == 429
    assert throttled.text == "Too many requests"
    assert throttled.headers["content-type"].startswith("text/plain")
    assert len(calls) == 10
    log_action.assert_called_once()
    assert log_action.call_args.args[0].client_key == "testclient"
    assert log_action.call_args.args[0].path == "/home"

    clock.return_value = 101.0
    assert client.get("/home").status_code == 200
    assert limiter.snapshot("testclient").count == 1


def test_rate_limit_partitions_by_forwarded_for() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    limiter = InMemoryFixedWindowRateLimiter(
        limit=1, window_seconds=WINDOW_SECONDS, clock=Mock(return_value=5.0)
    )
    app.middleware("http")(RateLimitMiddleware(RateLimitGuard(limiter)))
    client = TestClient(app)

    a = {"X-Forwarded-For": "203.0.113.1, 10.0.0.1"}
    b = {"X-Forwarded-For": "203.0.113.2"}

    assert client.get("/", headers=a).status_code == 200
    assert client.get("/", headers=a).status_code == 429
    assert client.get("/", headers=b).status_code == 200


def test_benign_request_reaches_downstream_unchanged() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(
        app,
        SecuritySettings(
            filter_patterns_enabled=True,
            rate_limit_enabled=True,
            max_requests_per_second_per_ip=10,
        ),
    )

    resp = TestClient(app).get("/products?id=42")

    assert resp.status_code == 201
    assert resp.json() == {"id": 42}
    assert calls == ["/products?id=42"]


def test_rate_limiter_installed_by_helper_throttles() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    log_action = Mock()
    guard = add_simple_security_filter(
        app,
        SecuritySettings(rate_limit_enabled=True, max_requests_per_second_per_ip=2),
        log_action=log_action,
    )
    client = TestClient(app)

    assert guard is not None
    statuses = [client.get("/ping").status_code for _ in range(3)]

    # Three requests well within one second of each other
    assert statuses == [200, 200, 429]
    log_action.assert_called_once()


def test_scan_filter_runs_before_rate_limiter() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    guard = add_simple_security_filter(
        app,
        SecuritySettings(rate_limit_enabled=True, max_requests_per_second_per_ip=1),
    )
    client = TestClient(app)

    assert client.get("/wp-login.php").status_code == 403
    assert client.get("/home").status_code == 200
    assert guard.limiter.snapshot("testclient").count == 1


@pytest.mark.parametrize(
    "options",
    [
        SecuritySettings(filter_patterns_enabled=False, rate_limit_enabled=False),
        SecuritySettings(filter_patterns_enabled=False, rate_limit_enabled=True),
    ],
)
def test_disabled_filter_lets_attack_paths_through(options: SecuritySettings) -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(app, options)

    resp = TestClient(app).get("/config.env")

    assert resp.status_code == 200
    assert calls == ["/config.env"]


def test_default_options_filter_but_do_not_throttle() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    guard = add_simple_security_filter(app)
    client = TestClient(app)

    assert guard is None
    assert client.get("/shell.sh").status_code == 403
    assert all(client.get("/home").status_code == 200 for _ in range(25))


def test_scanning_filter_middleware_directly() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    app.middleware("http")(ScanningFilterMiddleware(ScanningFilter()))

    resp = TestClient(app).get("/ADMIN/WP-CONFIG.PHP")

    assert resp.status_code == 403
    assert calls == []


@pytest.mark.parametrize(
    "url",
    [
        "/x%23/wp-config.php",
        "/x%23/a.php",
        "/x%3F.php",
        "/docs%3Fpage=1/.git/config",
    ],
)
def test_encoded_path_delimiters_do_not_hide_the_path(url: str) -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(app, SecuritySettings())

    resp = TestClient(app).get(url)

    assert resp.status_code == 403
    assert calls == []


def test_encoded_question_mark_does_not_leak_into_query() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(app, SecuritySettings())

    resp = TestClient(app).get("/search%3Fterm/results?page=2")

    assert resp.status_code == 200
    assert calls == ["/search?term/results"]


@pytest.mark.parametrize(
    "name, values",
    [
        ("Referer", ["https://ok.example", "javascript:alert(1)"]),
        ("Cookie", ["theme=dark", "session=${jndi:ldap://x}"]),
        ("X-Forwarded-For", ["203.0.113.9", "10.0.0.1<script"]),
        ("X-Forwarded-Host", ["example.com", "example.com/../../etc/passwd"]),
    ],
)
def test_payload_in_repeated_header_line_is_blocked(name: str, values: list[str]) -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(app, SecuritySettings())

    resp = TestClient(app).get("/", headers=[(name, value) for value in values])

    assert resp.status_code == 403
    assert calls == []


def test_repeated_forwarded_for_partitions_by_first_entry() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    limiter = InMemoryFixedWindowRateLimiter(
        limit=1, window_seconds=WINDOW_SECONDS, clock=Mock(return_value=5.0)
    )
    app.middleware("http")(RateLimitMiddleware(RateLimitGuard(limiter)))
    client = TestClient(app)

    headers = [("X-Forwarded-For", "198.51.100.3, 10.0.0.1"), ("X-Forwarded-For", "10.0.0.2")]

    assert client.get("/", headers=headers).status_code == 200
    assert client.get("/", headers=headers).status_code == 429
    assert limiter.snapshot("198.51.100.3").count == 1


def test_blocked_under_root_path() -> None:
    calls: list[str] = []
    app = _downstream_app(calls)
    add_simple_security_filter(app, SecuritySettings())
    client = TestClient(app, root_path="/api")

    assert client.get("/backup/site.sql.env").status_code == 403
    assert client.get("/products?id=7").status_code == 201
    assert calls == ["/products?id=7"]
