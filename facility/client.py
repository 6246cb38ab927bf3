"""Dashboard view-model client for the rooms service.

The client pulls room-status snapshots over HTTP and keeps the newest one in
:attr:`DashboardClient.view`. Every fetch is tagged with a generation number;
a response that arrives after a newer one has been applied is discarded, so a
slow request can never overwrite fresher data.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import httpx
from circuitbreaker import CircuitBreaker, CircuitBreakerError

from .availability import parse_clock
from .config import get_settings

logger = logging.getLogger("facility.client")


class FetchError(RuntimeError):
    """A snapshot could not be fetched; nothing from that request was applied."""


@dataclass
class RoomBoardView:
    mode: str
    generation: int
    checked_at: datetime
    day: str
    rooms: List[Dict[str, Any]] = field(default_factory=list)
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    def by_status(self, status: str) -> List[Dict[str, Any]]:
        return [entry for entry in self.rooms if entry["status"] == status]


class DashboardClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        settings = get_settings()
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.Client(
            base_url=base_url or settings.dashboard_base_url,
            timeout=timeout if timeout is not None else settings.backend_timeout_seconds,
            headers=headers,
            transport=transport,
        )
        self._breaker = CircuitBreaker(
            failure_threshold=settings.breaker_failure_threshold,
            recovery_timeout=settings.breaker_recovery_seconds,
            expected_exception=httpx.HTTPError,
            name="facility-dashboard",
        )
        # only the decorated wrapper rejects calls while the breaker is open
        self._fetch = self._breaker(self._get_json)
        self._interval = settings.auto_refresh_seconds
        self._lock = threading.Lock()
        self._issued = 0
        self._applied = 0
        self._last_search = 0
        self._search_inflight: Optional[int] = None
        self._stop = threading.Event()
        self._worker: Optional[threading.Thread] = None

        self.view: Optional[RoomBoardView] = None
        self.error: Optional[str] = None
        self.search_mode = False

    def __enter__(self) -> "DashboardClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.stop_auto_refresh()
        self._http.close()

    def _begin(self, search: bool = False, automatic: bool = False) -> Optional[int]:
        """Issue the next generation; ``None`` means an automatic tick was skipped."""

        with self._lock:
            if automatic and (self.search_mode or self._search_inflight is not None):
                return None
            self._issued += 1
            if search:
                self._last_search = self._issued
                self._search_inflight = self._issued
            return self._issued

    def _get_json(self, path: str, params: Dict[str, Any], generation: int) -> Dict[str, Any]:
        response = self._http.get(path, params=params, headers={"X-Request-Generation": str(generation)})
        response.raise_for_status()
        return response.json()

    def _pull(self, path: str, params: Dict[str, Any], generation: int) -> Dict[str, Any]:
        try:
            return self._fetch(path, params, generation)
        except CircuitBreakerError as exc:
            message = "Room data is unavailable right now, try again shortly"
            self._fail(generation, message)
            raise FetchError(message) from exc
        except httpx.HTTPError as exc:
            message = f"Failed to load room status: {exc}"
            self._fail(generation, message)
            raise FetchError(message) from exc

    def _fail(self, generation: int, message: str) -> None:
        with self._lock:
            if self._search_inflight == generation:
                self._search_inflight = None
            if generation < self._applied:
                return
            self.error = message
        logger.warning("Fetch generation %d failed: %s", generation, message)

    def _apply(self, generation: int, payload: Dict[str, Any], automatic: bool = False) -> bool:
        view = RoomBoardView(
            mode=payload["mode"],
            generation=generation,
            checked_at=datetime.fromisoformat(payload["checked_at"]),
            day=payload["day"],
            rooms=payload["rooms"],
            start_time=payload.get("start_time"),
            end_time=payload.get("end_time"),
        )
        with self._lock:
            if self._search_inflight == generation:
                self._search_inflight = None
            if generation < self._applied:
                logger.debug("Discarding stale generation %d (applied %d)", generation, self._applied)
                return False
            if automatic and self._last_search > generation:
                logger.debug("Discarding automatic generation %d, search %d supersedes it", generation, self._last_search)
                return False
            self._applied = generation
            self.view = view
            self.error = None
            self.search_mode = view.mode == "search"
        return True

    def _load_today(self, at: Optional[datetime], automatic: bool) -> Optional[RoomBoardView]:
        generation = self._begin(automatic=automatic)
        if generation is None:
            return None
        params = {"at": at.isoformat()} if at else {}
        payload = self._pull("/rooms/status", params, generation)
        return self.view if self._apply(generation, payload, automatic=automatic) else None

    def refresh(self, at: Optional[datetime] = None) -> Optional[RoomBoardView]:
        """Pull today's status board, leaving search mode once it is applied.

        Returns the applied view, or ``None`` when a newer response already won.
        A failed refresh leaves the current view and mode untouched.
        """

        return self._load_today(at, automatic=False)

    def search(
        self, day: str, start_time: str, end_time: str, on_date: Optional[date] = None
    ) -> Optional[RoomBoardView]:
        start, end = parse_clock(start_time), parse_clock(end_time)
        if start is None or end is None:
            raise ValueError("start and end must be HH:MM times")
        if end <= start:
            raise ValueError("end time must be after start time")

        generation = self._begin(search=True)
        params: Dict[str, Any] = {"day": day, "start_time": start_time, "end_time": end_time}
        if on_date is not None:
            params["on_date"] = on_date.isoformat()
        payload = self._pull("/rooms/search", params, generation)
        return self.view if self._apply(generation, payload) else None

    def clear_search(self) -> Optional[RoomBoardView]:
        return self.refresh()

    def auto_refresh_tick(self) -> Optional[RoomBoardView]:
        """Periodic refresh entry point; a no-op while a search is displayed or in flight."""

        return self._load_today(None, automatic=True)

    def _run(self, interval: float) -> None:
        while not self._stop.wait(interval):
            try:
                self.auto_refresh_tick()
            except FetchError:
                # already recorded on self.error; next tick tries again
                continue

    def start_auto_refresh(self, interval: Optional[float] = None) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stop.clear()
        self._worker = threading.Thread(
            target=self._run, args=(interval or self._interval,), name="room-status-refresh", daemon=True
        )
        self._worker.start()

    def stop_auto_refresh(self) -> None:
        self._stop.set()
        if self._worker is not None:
            self._worker.join(timeout=1)
            self._worker = None
