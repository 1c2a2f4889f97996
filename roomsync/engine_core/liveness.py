"""
Liveness - Heartbeats and staleness.

Each device that holds a role periodically writes only its own
last_seen field. Every reader decides aliveness independently by
comparing heartbeat age against one shared window, re-sampling its
local clock on a tick so the answer changes even when no update is
pushed.

A role is claimable if it has no record, its record is stale, or its
stored status is not connected/ready.
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..errors import RoomSyncError, SessionNotFound
from .state import DeviceRecord, DeviceStatus, SessionState

logger = logging.getLogger(__name__)

LIVE_STATUSES = {DeviceStatus.CONNECTED, DeviceStatus.READY}


def heartbeat_age(record: DeviceRecord, now: float) -> float:
    return now - record.last_seen


def is_stale(record: DeviceRecord | None, now: float, stale_after: float) -> bool:
    """A missing record or one whose heartbeat is older than the window."""
    if record is None:
        return True
    return heartbeat_age(record, now) > stale_after


def is_alive(record: DeviceRecord | None, now: float, stale_after: float) -> bool:
    """Fresh heartbeat and a connected/ready status. Stale wins over status."""
    if is_stale(record, now, stale_after):
        return False
    return record.status in LIVE_STATUSES


def is_claimable(record: DeviceRecord | None, now: float, stale_after: float) -> bool:
    return not is_alive(record, now, stale_after)


def claimable_roles(
    session: SessionState,
    roles: list[str],
    now: float,
    stale_after: float,
) -> list[str]:
    """Roles a joining device may pick, in the given order."""
    return [r for r in roles if is_claimable(session.get_device(r), now, stale_after)]


def missing_roles(
    session: SessionState,
    roles: list[str],
    now: float,
    stale_after: float,
) -> list[str]:
    """Roles that do not currently have a live device."""
    return [r for r in roles if not is_alive(session.get_device(r), now, stale_after)]


def all_roles_alive(
    session: SessionState,
    roles: list[str],
    now: float,
    stale_after: float,
) -> bool:
    return not missing_roles(session, roles, now, stale_after)


@dataclass
class LivenessView:
    """Which roles are alive at a sampled instant."""
    sampled_at: float
    alive: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    def same_as(self, other: LivenessView | None) -> bool:
        return other is not None and self.alive == other.alive and self.missing == other.missing


class LivenessMonitor:
    """
    Keeps a liveness judgement current for a dashboard or join screen.

    Snapshots arrive via update(); the monitor also re-evaluates on its
    own tick and calls on_change whenever the alive/missing split moves.
    """

    def __init__(
        self,
        roles: list[str],
        stale_after: float,
        tick_seconds: float,
        clock: Callable[[], float],
        on_change: Callable[[LivenessView], None] | None = None,
    ):
        self.roles = roles
        self.stale_after = stale_after
        self.tick_seconds = tick_seconds
        self.clock = clock
        self.on_change = on_change

        self._session: SessionState | None = None
        self._last_view: LivenessView | None = None
        self._task: asyncio.Task | None = None

    def update(self, session: SessionState | None):
        """Feed the latest session snapshot (None once deleted)."""
        self._session = session
        self._publish()

    def evaluate(self) -> LivenessView:
        now = self.clock()
        if self._session is None:
            return LivenessView(sampled_at=now, missing=list(self.roles))
        missing = missing_roles(self._session, self.roles, now, self.stale_after)
        alive = [r for r in self.roles if r not in missing]
        return LivenessView(sampled_at=now, alive=alive, missing=missing)

    def _publish(self):
        view = self.evaluate()
        if not view.same_as(self._last_view):
            self._last_view = view
            if self.on_change:
                self.on_change(view)

    async def run(self):
        while True:
            self._publish()
            await asyncio.sleep(self.tick_seconds)

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None


class HeartbeatLoop:
    """
    Periodically calls `beat` for a device that holds a role.

    A failed beat is logged and the next tick tries again; the loop
    stops by itself once the session is gone.
    """

    def __init__(self, beat: Callable[[], Awaitable[None]], interval_seconds: float):
        self.beat = beat
        self.interval_seconds = interval_seconds
        self.beats_sent = 0
        self._task: asyncio.Task | None = None

    async def run(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.beat()
                self.beats_sent += 1
            except SessionNotFound:
                logger.info("Session gone, stopping heartbeat")
                return
            except RoomSyncError as e:
                logger.warning("Heartbeat failed: %s", e)

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
