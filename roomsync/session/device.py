"""
Device Client - The presentation device's side of a session.

The loop:
1. Player enters the join code on the device
2. Device picks one of the roles nobody live is holding and claims it
3. Device heartbeats while it holds the role
4. Every pushed session snapshot becomes a DeviceView: what to show,
   whether to (re)play the video, whether an answer box is needed
5. Answers typed on the device go to the controller
6. Device leaves → heartbeat stops, role marked disconnected
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator
import logging

from ..catalog import PuzzleCatalog, PuzzleDefinition
from ..engine_core.liveness import HeartbeatLoop
from ..engine_core.state import DeviceStatus, MediaEffect, SessionState, SessionStatus
from ..errors import SessionNotFound
from .controller import SessionController, SubmitResult

logger = logging.getLogger(__name__)


class DevicePhase(Enum):
    """Where the device is in its own flow."""
    IDLE = "idle"  # No session yet
    JOINED = "joined"  # Session found, no role held
    CLAIMED = "claimed"  # Holding a role
    LEFT = "left"


@dataclass
class DeviceView:
    """
    What a device should render for one session snapshot.

    play_video is true only when the video key differs from the last one
    this device rendered, which includes a fresh replay token.
    """
    session_status: SessionStatus
    media: MediaEffect
    play_video: bool = False
    puzzle: PuzzleDefinition | None = None  # Waiting for an answer on this device

    @property
    def awaiting_answer(self) -> bool:
        return self.session_status == SessionStatus.RUNNING and self.puzzle is not None


class DeviceClient:
    """
    Drives one presentation device.

    Usage:
        device = DeviceClient(controller)
        await device.join("K7Q2")
        await device.claim((await device.available_roles())[0])
        async for view in device.watch():
            render(view)
    """

    def __init__(self, controller: SessionController):
        self.controller = controller
        self.phase = DevicePhase.IDLE
        self.session_id: str | None = None
        self.role: str | None = None

        self._catalog: PuzzleCatalog | None = None
        self._last_video: str | None = None
        self._heartbeat: HeartbeatLoop | None = None

    async def join(self, join_code: str) -> SessionState:
        session = await self.controller.find_by_join_code(join_code)
        if session is None:
            raise SessionNotFound(join_code)
        self.session_id = session.session_id
        self._catalog = await self.controller.load_catalog(session.theme_id)
        self.phase = DevicePhase.JOINED
        return session

    async def available_roles(self) -> list[str]:
        return await self.controller.available_roles(self._require_session())

    async def claim(self, role: str) -> SessionState:
        """Claim a role and start heartbeating. Raises RoleUnavailable if taken."""
        session_id = self._require_session()
        session = await self.controller.claim_role(session_id, role)
        self.role = role
        self.phase = DevicePhase.CLAIMED

        self._heartbeat = HeartbeatLoop(
            beat=lambda: self.controller.heartbeat(session_id, role),
            interval_seconds=self.controller.settings.heartbeat_interval_seconds,
        )
        self._heartbeat.start()
        return session

    async def mark_ready(self):
        """Report that media is loaded and the device can present."""
        await self.controller.set_device_status(
            self._require_session(), self._require_role(), DeviceStatus.READY
        )

    async def submit(self, answer: str) -> SubmitResult:
        return await self.controller.submit_answer(
            self._require_session(), self._require_role(), answer
        )

    def view(self, session: SessionState) -> DeviceView:
        """Turn a session snapshot into what this device should display."""
        role = self._require_role()
        record = session.get_device(role)
        media = record.media if record else MediaEffect.empty()

        play_video = bool(media.video) and media.video != self._last_video
        self._last_video = media.video

        puzzle = None
        if self._catalog is not None:
            puzzle = self._catalog.trigger_at(session.current_puzzle, role)
        return DeviceView(
            session_status=session.status,
            media=media,
            play_video=play_video,
            puzzle=puzzle,
        )

    async def watch(self) -> AsyncIterator[DeviceView]:
        """Yield a view for every pushed snapshot until the session is deleted."""
        subscription = self.controller.store.subscribe(self._require_session())
        try:
            async for document in subscription:
                if document is None:
                    logger.info("Session %s was deleted", self.session_id)
                    return
                yield self.view(SessionState.from_document(document["id"], document))
        finally:
            subscription.close()

    async def leave(self):
        if self._heartbeat is not None:
            await self._heartbeat.stop()
            self._heartbeat = None
        if self.phase == DevicePhase.CLAIMED:
            try:
                await self.controller.set_device_status(
                    self._require_session(), self._require_role(), DeviceStatus.DISCONNECTED
                )
            except SessionNotFound:
                pass
        self.phase = DevicePhase.LEFT

    def _require_session(self) -> str:
        if self.session_id is None:
            raise RuntimeError("Device has not joined a session")
        return self.session_id

    def _require_role(self) -> str:
        if self.role is None:
            raise RuntimeError("Device has not claimed a role")
        return self.role
