"""
Session Controller - Creates, drives and removes sessions.

LIFECYCLE:
1. Admin creates a session for a theme → pending, pointer at the first
   trigger puzzle, short join code handed to the room
2. Devices join with the code and claim a role
3. Admin starts → primary role shows the opening media, running
4. During play:
   - A device submits an answer; a match resolves the trigger puzzle
   - Pause/resume are pure status flips
   - Reset/jump/ending rebuild state by replaying the catalog
   - Resync forces every device to replay its current video
5. The last trigger puzzle ends the session; the admin deletes it later

WRITES:
Every read-modify-write (solve, start, reconstruction, resync, claim)
is conditional on the version it read. On conflict the operation is
recomputed from a fresh snapshot a bounded number of times. Transient
store failures are surfaced, never retried.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, TypeVar
import logging
import random
import time
import uuid

from ..config import JOIN_CODE_ALPHABET, Settings
from ..errors import (
    ConcurrentUpdateError,
    DevicesNotReady,
    InvalidTransition,
    PuzzleNotFound,
    RoleUnavailable,
    SessionNotFound,
    VersionConflict,
)
from ..catalog import CatalogSource, PuzzleCatalog, PuzzleDefinition
from ..engine_core.state import DeviceRecord, DeviceStatus, SessionState, SessionStatus
from ..engine_core.resolver import SessionUpdate, TriggerResolver
from ..engine_core.reconstruction import Reconstruction, Reconstructor
from ..engine_core.liveness import LivenessView, claimable_roles, is_claimable, missing_roles
from ..store.base import SessionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (snapshot read, fields to write, value returned to the caller)
Computation = Callable[[], Awaitable[tuple[SessionState, dict[str, Any], T]]]


@dataclass
class SubmitResult:
    """Outcome of a device submitting an answer."""
    correct: bool
    message: str
    puzzle: PuzzleDefinition | None = None
    update: SessionUpdate | None = None


class SessionController:
    """
    The admin console's and devices' single entry point to sessions.

    Usage:
        controller = SessionController(store, catalog_source)
        session = await controller.create("lab")
        await controller.claim_role(session.session_id, "main")
        await controller.start(session.session_id)
        result = await controller.submit_answer(session.session_id, "main", "1234")
    """

    def __init__(
        self,
        store: SessionStore,
        catalog_source: CatalogSource,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.catalog_source = catalog_source
        self.settings = settings or Settings()
        self.clock = clock
        self.reconstructor = Reconstructor(
            store=store,
            catalog_source=catalog_source,
            primary_role=self.settings.primary_role,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, session_id: str) -> SessionState:
        document = await self.store.get(session_id)
        if document is None:
            raise SessionNotFound(session_id)
        return SessionState.from_document(session_id, document)

    async def list_sessions(self) -> list[SessionState]:
        """All sessions, newest first."""
        return [
            SessionState.from_document(doc["id"], doc)
            for doc in await self.store.list_all()
        ]

    async def find_by_join_code(self, join_code: str) -> SessionState | None:
        """
        Find the session a join code refers to.

        Codes are only intended to be unique, so an active session wins
        over an ended one and the newest wins among equals.
        """
        documents = await self.store.query(join_code=join_code.strip().upper())
        sessions = [SessionState.from_document(doc["id"], doc) for doc in documents]
        active = [s for s in sessions if s.is_active]
        candidates = active or sessions
        return candidates[0] if candidates else None

    async def load_catalog(self, theme_id: str) -> PuzzleCatalog:
        return await self.catalog_source.load(theme_id)

    async def hint(self, theme_id: str, code: str) -> PuzzleDefinition | None:
        """Look up a puzzle by its player-facing code (for the hint screen)."""
        catalog = await self.load_catalog(theme_id)
        return catalog.find_by_code(code.strip())

    async def liveness(self, session_id: str) -> LivenessView:
        session = await self.get(session_id)
        catalog = await self.load_catalog(session.theme_id)
        roles = catalog.all_roles(self.settings.primary_role)
        now = self.clock()
        missing = missing_roles(session, roles, now, self.settings.stale_after_seconds)
        return LivenessView(
            sampled_at=now,
            alive=[r for r in roles if r not in missing],
            missing=missing,
        )

    async def available_roles(self, session_id: str) -> list[str]:
        """Roles a joining device may claim right now."""
        session = await self.get(session_id)
        catalog = await self.load_catalog(session.theme_id)
        return claimable_roles(
            session,
            catalog.all_roles(self.settings.primary_role),
            self.clock(),
            self.settings.stale_after_seconds,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def generate_join_code(self) -> str:
        """
        A random code not used by any active session.

        Best effort: two admins creating sessions at the same instant
        could still draw the same code.
        """
        in_use = {
            doc.get("join_code")
            for doc in await self.store.list_all()
            if doc.get("status") != SessionStatus.ENDED.value
        }
        length = self.settings.join_code_length
        for _ in range(50):
            code = "".join(random.choices(JOIN_CODE_ALPHABET, k=length))
            if code not in in_use:
                return code
        raise ConcurrentUpdateError("Could not find an unused join code")

    async def create(self, theme_id: str, join_code: str | None = None) -> SessionState:
        """Create a pending session with the pointer at the first trigger puzzle."""
        catalog = await self.load_catalog(theme_id)
        code = join_code.strip().upper() if join_code else await self.generate_join_code()
        now = self.clock()

        session = SessionState(
            session_id="",
            theme_id=theme_id,
            status=SessionStatus.PENDING,
            join_code=code,
            current_puzzle=catalog.first_trigger_sequence(),
            created_at=now,
            updated_at=now,
        )
        session_id = await self.store.create(session.to_document())
        logger.info("Created session %s for theme %s (code %s)", session_id, theme_id, code)
        return await self.get(session_id)

    async def start(self, session_id: str, require_all_devices: bool = False) -> SessionState:
        """
        Start a pending session.

        The primary role shows the theme's opening media with a fresh
        replay token on its video, so a device that already played the
        same video plays it again.
        """
        session = await self.get(session_id)
        catalog = await self.load_catalog(session.theme_id)

        async def compute():
            current = await self.get(session_id)
            if current.status != SessionStatus.PENDING:
                raise InvalidTransition(
                    f"Cannot start session {session_id} from {current.status.value}"
                )
            now = self.clock()
            if require_all_devices:
                missing = missing_roles(
                    current,
                    catalog.all_roles(self.settings.primary_role),
                    now,
                    self.settings.stale_after_seconds,
                )
                if missing:
                    raise DevicesNotReady(missing)

            primary = self.settings.primary_role
            record = current.get_device(primary) or DeviceRecord.placeholder(now)
            opening = catalog.theme.opening.with_replay_token(self._replay_token())
            devices = current.with_device(primary, record.apply(opening)).devices
            fields = {
                "status": SessionStatus.RUNNING.value,
                "devices": {role: r.to_dict() for role, r in devices.items()},
            }
            return current, fields, None

        await self._transact(session_id, compute)
        logger.info("Started session %s", session_id)
        return await self.get(session_id)

    async def pause(self, session_id: str) -> SessionState:
        return await self._set_status(session_id, SessionStatus.PAUSED)

    async def resume(self, session_id: str) -> SessionState:
        return await self._set_status(session_id, SessionStatus.RUNNING)

    async def end(self, session_id: str) -> SessionState:
        """End the session explicitly. Device media is left as is."""
        return await self._set_status(session_id, SessionStatus.ENDED, allow_ended=True)

    async def _set_status(
        self,
        session_id: str,
        status: SessionStatus,
        allow_ended: bool = False,
    ) -> SessionState:
        # Pure status flip; last write wins
        session = await self.get(session_id)
        if session.status == SessionStatus.ENDED and not allow_ended:
            raise InvalidTransition(
                f"Session {session_id} has ended; reset or jump to continue"
            )
        await self.store.update(session_id, {"status": status.value})
        logger.info("Session %s: %s -> %s", session_id, session.status.value, status.value)
        return await self.get(session_id)

    async def delete(self, session_id: str):
        """Remove the session record permanently. Media objects are not touched."""
        await self.get(session_id)
        await self.store.delete(session_id)
        logger.info("Deleted session %s", session_id)

    # =========================================================================
    # Solving
    # =========================================================================

    async def solve(
        self,
        session_id: str,
        sequence: int,
        solving_role: str,
        catalog: PuzzleCatalog | None = None,
    ) -> SessionUpdate:
        """
        Apply a solved trigger puzzle to the session.

        The answer has already been checked. Solving a puzzle that is
        already solved re-applies its effects and refreshes its timestamp.
        """
        if catalog is None:
            session = await self.get(session_id)
            catalog = await self.load_catalog(session.theme_id)

        puzzle = catalog.get(sequence)
        if puzzle is None or not puzzle.is_trigger:
            raise PuzzleNotFound(f"No trigger puzzle with sequence {sequence}")
        resolver = TriggerResolver(catalog=catalog)

        async def compute():
            current = await self.get(session_id)
            update = resolver.resolve(current, puzzle, solving_role, self.clock())
            return current, update.to_fields(), update

        update = await self._transact(session_id, compute)
        for change in update.changes:
            logger.debug("Session %s: %s", session_id, change)
        logger.info(
            "Session %s: puzzle %s solved on '%s', next %s (%s)",
            session_id, sequence, solving_role, update.current_puzzle, update.status.value,
        )
        return update

    async def submit_answer(self, session_id: str, role: str, answer: str) -> SubmitResult:
        """
        Check an answer entered on a device and resolve the puzzle on a match.

        Only the trigger puzzle at the current pointer assigned to this
        role can be answered.
        """
        session = await self.get(session_id)
        if session.status != SessionStatus.RUNNING:
            return SubmitResult(correct=False, message="The game is not running")

        catalog = await self.load_catalog(session.theme_id)
        puzzle = catalog.trigger_at(session.current_puzzle, role)
        if puzzle is None:
            return SubmitResult(correct=False, message="No puzzle is waiting on this device")
        if not puzzle.matches(answer):
            return SubmitResult(correct=False, message="Incorrect answer", puzzle=puzzle)

        update = await self.solve(session_id, puzzle.sequence, role, catalog=catalog)
        return SubmitResult(correct=True, message="Correct", puzzle=puzzle, update=update)

    # =========================================================================
    # Reconstruction
    # =========================================================================

    async def reset(self, session_id: str) -> SessionState:
        """Back to the start: nothing solved, opening media, pending."""
        session = await self.get(session_id)
        catalog = await self.load_catalog(session.theme_id)
        return await self._reconstruct(
            session_id, catalog.first_trigger_sequence(), SessionStatus.PENDING
        )

    async def jump(self, session_id: str, target: int) -> SessionState:
        """Rebuild state as if every trigger puzzle before `target` was solved."""
        return await self._reconstruct(session_id, target, SessionStatus.RUNNING)

    async def jump_to_ending(self, session_id: str) -> SessionState:
        """Rebuild state with every trigger puzzle solved and end the session."""
        session = await self.get(session_id)
        catalog = await self.load_catalog(session.theme_id)
        return await self._reconstruct(
            session_id, catalog.ending_sequence(), SessionStatus.ENDED
        )

    async def resync_triggers(self, session_id: str) -> SessionState:
        """Rebuild state at the current pointer, keeping the status."""
        session = await self.get(session_id)
        return await self._reconstruct(session_id, session.current_puzzle, None)

    async def _reconstruct(
        self,
        session_id: str,
        target: int,
        status: SessionStatus | None,
    ) -> SessionState:
        session = await self.get(session_id)
        theme_id = session.theme_id

        async def compute():
            snapshot, result = await self.reconstructor.run(
                session_id, target, theme_id, self.clock()
            )
            fields = result.to_fields()
            if status is not None:
                fields["status"] = status.value
            return snapshot, fields, result

        result: Reconstruction = await self._transact(session_id, compute)
        logger.info(
            "Session %s reconstructed to %s (replayed %s), pointer %s",
            session_id, target, result.replayed, result.current_puzzle,
        )
        return await self.get(session_id)

    async def resync(self, session_id: str) -> SessionState:
        """
        Force every device showing a video to play it again.

        Used to recover a device that connected before an update reached
        it. Only the replay token changes; nothing else is touched.
        """
        async def compute():
            current = await self.get(session_id)
            token = self._replay_token()
            fields = {}
            for role, record in current.devices.items():
                if record.media.video:
                    media = record.media.with_replay_token(token)
                    fields[f"devices.{role}.media.video"] = media.video
            return current, fields, len(fields)

        count = await self._transact(session_id, compute)
        logger.info("Session %s: resynced %d device(s)", session_id, count)
        return await self.get(session_id)

    # =========================================================================
    # Devices
    # =========================================================================

    async def claim_role(self, session_id: str, role: str) -> SessionState:
        """
        Take a device role for the calling device.

        The check (no live holder) and the write happen as one conditional
        update, so two devices racing for the same role cannot both win.
        """
        _check_role(role)

        async def compute():
            current = await self.get(session_id)
            now = self.clock()
            existing = current.get_device(role)
            if not is_claimable(existing, now, self.settings.stale_after_seconds):
                raise RoleUnavailable(role)
            record = replace(
                existing or DeviceRecord.placeholder(now),
                status=DeviceStatus.CONNECTED,
                last_seen=now,
            )
            return current, {f"devices.{role}": record.to_dict()}, record

        await self._transact(session_id, compute)
        logger.info("Session %s: role '%s' claimed", session_id, role)
        return await self.get(session_id)

    async def heartbeat(self, session_id: str, role: str):
        """Refresh only this role's last_seen so concurrent changes survive."""
        _check_role(role)
        await self.store.update(session_id, {f"devices.{role}.last_seen": self.clock()})

    async def set_device_status(self, session_id: str, role: str, status: DeviceStatus):
        _check_role(role)
        await self.store.update(
            session_id,
            {
                f"devices.{role}.status": status.value,
                f"devices.{role}.last_seen": self.clock(),
            },
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _transact(self, session_id: str, compute: Computation) -> T:
        """
        Run a read-modify-write as a compare-and-swap on the version read.

        On a version conflict the computation runs again against a fresh
        snapshot, up to max_conflict_retries times.
        """
        attempts = self.settings.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            snapshot, fields, result = await compute()
            try:
                await self.store.update(session_id, fields, expected_version=snapshot.version)
                return result
            except VersionConflict as e:
                logger.warning("%s (attempt %d/%d)", e, attempt, attempts)
        raise ConcurrentUpdateError(
            f"Session {session_id} kept changing; gave up after {attempts} attempts"
        )

    def _replay_token(self) -> str:
        return f"{int(self.clock() * 1000)}-{uuid.uuid4().hex[:6]}"


def _check_role(role: str):
    # Roles are used as nested field names in partial updates
    if not role or "." in role:
        raise ValueError(f"Invalid device role: {role!r}")
