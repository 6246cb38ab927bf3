"""Unit tests for the dashboard client against a mocked rooms service."""
from datetime import datetime

import httpx
import pytest

from facility.client import DashboardClient, FetchError
from facility.config import get_settings


def board(mode: str, rooms: list, **extra) -> dict:
    return {"mode": mode, "checked_at": "2024-01-01T09:30:00", "day": "Monday", "rooms": rooms, **extra}


ROOM = {"id": 1, "name": "Lab A-1", "code": "LAB-A1", "capacity": 30, "department_id": None, "is_available": True}


def make_client(handler) -> DashboardClient:
    return DashboardClient(base_url="http://rooms.test", token="t0k3n", transport=httpx.MockTransport(handler))


def test_refresh_applies_today_board():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=board("today", [{"room": ROOM, "status": "In Use"}]))

    with make_client(handler) as client:
        view = client.refresh(at=datetime(2024, 1, 1, 9, 30))

    assert view is not None
    assert view.mode == "today"
    assert [entry["room"]["name"] for entry in view.by_status("In Use")] == ["Lab A-1"]
    assert seen[0].url.path == "/rooms/status"
    assert seen[0].headers["Authorization"] == "Bearer t0k3n"
    assert seen[0].headers["X-Request-Generation"] == "1"


def test_search_enters_search_mode_and_pauses_auto_refresh():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        mode = "search" if request.url.path == "/rooms/search" else "today"
        return httpx.Response(200, json=board(mode, []))

    with make_client(handler) as client:
        client.search("Monday", "10:00", "11:00")
        assert client.search_mode is True
        assert client.auto_refresh_tick() is None
        assert paths == ["/rooms/search"]

        client.clear_search()
        assert client.search_mode is False
        assert client.view.mode == "today"
        assert paths == ["/rooms/search", "/rooms/status"]


def test_search_validates_window_before_fetching():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with make_client(handler) as client:
        with pytest.raises(ValueError):
            client.search("Monday", "11:00", "10:00")
        with pytest.raises(ValueError):
            client.search("Monday", "nine", "10:00")
        assert client.search_mode is False


def test_backend_error_raises_fetch_error_and_keeps_last_view():
    responses = iter(
        [
            httpx.Response(200, json=board("today", [{"room": ROOM, "status": "Available"}])),
            httpx.Response(503, json={"detail": "unavailable"}),
        ]
    )

    with make_client(lambda request: next(responses)) as client:
        first = client.refresh()
        with pytest.raises(FetchError):
            client.refresh()

        assert client.view is first
        assert client.error is not None


def test_stale_response_is_discarded():
    with make_client(lambda request: httpx.Response(200, json=board("today", []))) as client:
        older = client._begin()
        newer = client._begin()

        assert client._apply(newer, board("search", [])) is True
        assert client._apply(older, board("today", [])) is False
        assert client.view.mode == "search"
        assert client.view.generation == newer


def test_open_breaker_fails_fast():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    with make_client(handler) as client:
        threshold = get_settings().breaker_failure_threshold
        for _ in range(threshold):
            with pytest.raises(FetchError):
                client.refresh()
        with pytest.raises(FetchError) as exc_info:
            client.refresh()

    assert len(calls) == threshold
    assert "unavailable" in str(exc_info.value)
    assert client._breaker.opened


def routed(status_by_path: dict, calls: list):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        code = status_by_path.get(request.url.path, 200)
        if code != 200:
            return httpx.Response(code, json={"detail": "unavailable"})
        mode = "search" if request.url.path == "/rooms/search" else "today"
        return httpx.Response(200, json=board(mode, []))

    return handler


def test_failed_search_keeps_auto_refresh_running():
    calls = []

    with make_client(routed({"/rooms/search": 503}, calls)) as client:
        client.refresh()
        with pytest.raises(FetchError):
            client.search("Monday", "10:00", "11:00")

        assert client.view.mode == "today"
        assert client.search_mode is False
        assert client.auto_refresh_tick() is not None

    assert calls == ["/rooms/status", "/rooms/search", "/rooms/status"]


def test_failed_refresh_keeps_search_results_pinned():
    calls = []
    outcome = {"/rooms/status": 200}

    with make_client(routed(outcome, calls)) as client:
        client.search("Monday", "10:00", "11:00")
        outcome["/rooms/status"] = 503
        with pytest.raises(FetchError):
            client.clear_search()

        assert client.view.mode == "search"
        assert client.search_mode is True
        assert client.auto_refresh_tick() is None

    assert calls == ["/rooms/search", "/rooms/status"]


def test_auto_tick_is_skipped_while_search_is_in_flight():
    calls = []
    ticks = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/rooms/search":
            ticks.append(client.auto_refresh_tick())
            return httpx.Response(200, json=board("search", []))
        return httpx.Response(200, json=board("today", []))

    with make_client(handler) as client:
        client.search("Monday", "10:00", "11:00")

    assert ticks == [None]
    assert calls == ["/rooms/search"]
    assert client.view.mode == "search"


def test_auto_tick_issued_before_search_cannot_override_it():
    with make_client(routed({}, [])) as client:
        tick_generation = client._begin(automatic=True)
        client.search("Monday", "10:00", "11:00")

        assert client._apply(tick_generation, board("today", []), automatic=True) is False
        assert client.view.mode == "search"
        assert client.search_mode is True


def test_late_auto_tick_loses_to_search_issued_after_it():
    with make_client(routed({}, [])) as client:
        tick_generation = client._begin(automatic=True)
        search_generation = client._begin(search=True)

        # the tick's response lands first, the search is still pending
        assert client._apply(tick_generation, board("today", []), automatic=True) is False
        assert client._apply(search_generation, board("search", [])) is True
        assert client.search_mode is True
