"""
Live Tracking Sessions

Owns the refresh lifecycle of a device route view:
- Initial load with its own loading signal
- Timed auto-refresh for devices that were online when the view opened
- Manual out-of-band refresh
- Deterministic teardown that discards late results
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from ...core.errors import HistoryFetchFailedError
from ...models.tracking import Coordinate, Route
from .route_reconstructor import reconstruct


DEFAULT_REFRESH_INTERVAL = 20  # seconds


@dataclass(frozen=True)
class FitToRoute:
    """Request for the map to frame the whole route"""
    device_id: str
    coordinates: List[Coordinate]


FitListener = Callable[[FitToRoute], None]


@dataclass
class TrackingSession:
    """Handle for one open device route view"""
    device_id: str
    is_online: bool
    refresh_interval: float
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    route: Route = field(default_factory=Route)
    is_loading: bool = False
    last_refresh_time: Optional[datetime] = None
    closed: bool = False
    _refreshes_in_flight: int = field(default=0, repr=False)
    _timer_task: Optional[asyncio.Task] = field(default=None, repr=False)
    _pending: Set[asyncio.Task] = field(default_factory=set, repr=False)
    _listeners: List[FitListener] = field(default_factory=list, repr=False)

    @property
    def is_refreshing(self) -> bool:
        return self._refreshes_in_flight > 0

    @property
    def is_polling(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def add_fit_listener(self, listener: FitListener) -> None:
        self._listeners.append(listener)

    def _begin(self, initial: bool) -> None:
        if initial:
            self.is_loading = True
        else:
            self._refreshes_in_flight += 1

    def _end(self, initial: bool) -> None:
        if initial:
            self.is_loading = False
        else:
            self._refreshes_in_flight = max(0, self._refreshes_in_flight - 1)


class LiveTrackingService:
    """Opens, refreshes and closes live route views"""

    def __init__(self, api, refresh_interval: float = DEFAULT_REFRESH_INTERVAL):
        self.logger = logging.getLogger(__name__)
        self.api = api
        self.refresh_interval = refresh_interval
        self.sessions: Dict[str, TrackingSession] = {}

    @classmethod
    def from_config(cls, api, config) -> 'LiveTrackingService':
        return cls(api, refresh_interval=config.get_refresh_interval())

    async def open(self, device_id: str, is_online: bool,
                   on_fit_to_route: Optional[FitListener] = None) -> TrackingSession:
        """
        Open a live route view for a device

        Performs the initial load before returning. When the device is
        online, a recurring refresh is scheduled as well.

        Args:
            device_id: Device to track
            is_online: Device online flag at the moment the view opens
            on_fit_to_route: Optional listener for fit-to-route events

        Returns:
            The session handle
        """
        session = TrackingSession(
            device_id=device_id,
            is_online=is_online,
            refresh_interval=self.refresh_interval
        )
        if on_fit_to_route:
            session.add_fit_listener(on_fit_to_route)

        self.sessions[session.session_id] = session

        # The schedule is fixed by the online flag captured here. A device that
        # goes offline mid-session keeps being polled until the view reopens.
        if is_online:
            session._timer_task = asyncio.create_task(self._poll_loop(session))

        self.logger.info(
            f"Opened tracking session {session.session_id} for device {device_id} "
            f"(auto-refresh {'every ' + str(session.refresh_interval) + 's' if is_online else 'off'})"
        )

        await self._fetch(session, initial=True)
        return session

    async def refresh(self, session: TrackingSession, manual: bool = True) -> Optional[Route]:
        """
        Fetch the route now, outside the schedule

        Does not reset the timer. May race a scheduled refresh; whichever
        response arrives last is kept.

        Returns:
            The applied route, or None if nothing was applied
        """
        if session.closed:
            self.logger.debug(f"Ignoring refresh for closed session {session.session_id}")
            return None

        self.logger.debug(
            f"{'Manual' if manual else 'Scheduled'} refresh for device {session.device_id}"
        )
        return await self._fetch(session, initial=False)

    async def close(self, session: TrackingSession) -> None:
        """
        Close a session

        Cancels the refresh timer. Fetches still in flight complete but
        their results are discarded.
        """
        if session.closed:
            return

        session.closed = True
        self.sessions.pop(session.session_id, None)

        if session._timer_task:
            session._timer_task.cancel()
            try:
                await session._timer_task
            except asyncio.CancelledError:
                pass
            session._timer_task = None

        self.logger.info(f"Closed tracking session {session.session_id} for device {session.device_id}")

    async def close_all(self) -> None:
        for session in list(self.sessions.values()):
            await self.close(session)

    async def _poll_loop(self, session: TrackingSession) -> None:
        """Dispatch a refresh every interval without waiting for the previous one"""
        while not session.closed:
            await asyncio.sleep(session.refresh_interval)
            if session.closed:
                break
            task = asyncio.create_task(self.refresh(session, manual=False))
            session._pending.add(task)
            task.add_done_callback(session._pending.discard)

    async def _load_route(self, device_id: str) -> Route:
        try:
            raw_points = await self.api.get_location_history(device_id)
            return reconstruct(raw_points)
        except Exception as e:
            raise HistoryFetchFailedError(f"Failed to fetch location history for {device_id}: {e}") from e

    async def _fetch(self, session: TrackingSession, initial: bool) -> Optional[Route]:
        if session.closed:
            return None

        session._begin(initial)
        route = None
        error = None
        try:
            route = await self._load_route(session.device_id)
        except HistoryFetchFailedError as e:
            error = e
        finally:
            if not session.closed:
                session._end(initial)

        if session.closed:
            self.logger.debug(f"Discarding late result for closed session {session.session_id}")
            return None

        if error is not None:
            if initial:
                # No history is shown rather than an error
                session.route = Route()
                self.logger.warning(f"Initial load failed, showing empty route: {error}")
            else:
                self.logger.info(f"Refresh failed, keeping last known route: {error}")
            return None

        self._apply(session, route)
        return route

    def _apply(self, session: TrackingSession, route: Route) -> None:
        session.route = route
        session.last_refresh_time = datetime.now(timezone.utc)

        if len(route) >= 2:
            event = FitToRoute(session.device_id, route.coordinates())
            for listener in session._listeners:
                try:
                    listener(event)
                except Exception as e:
                    self.logger.error(f"Error in fit-to-route listener: {e}")
