"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to controller calls
2. Formats engine state as response schemas

Errors raised by the engine propagate unchanged; the application maps
them to HTTP responses. This layer is framework-agnostic.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from ..catalog import InMemoryCatalog, JsonFileCatalog
from ..config import Settings
from ..engine_core.liveness import is_alive
from ..engine_core.resolver import SessionUpdate
from ..engine_core.state import DeviceStatus as EngineDeviceStatus, SessionState
from ..errors import SessionNotFound
from ..session import SessionController
from ..store import FileSessionStore, InMemorySessionStore
from .schemas import (
    # Requests
    CreateSessionRequest,
    JumpRequest,
    SolveRequest,
    # Responses
    AnswerResponse,
    DeviceInfo,
    HintResponse,
    LivenessResponse,
    MediaInfo,
    RolesResponse,
    SessionListResponse,
    SessionResponse,
    SolveResponse,
)


def build_controller(settings: Settings | None = None) -> SessionController:
    """
    Wire a controller from settings.

    A configured store path gives a file-backed store, otherwise sessions
    live in memory. Without a catalog path the catalog starts empty.
    """
    settings = settings or Settings.from_env()
    store = FileSessionStore(settings.store_path) if settings.store_path else InMemorySessionStore()
    catalog = JsonFileCatalog(settings.catalog_path) if settings.catalog_path else InMemoryCatalog()
    return SessionController(store=store, catalog_source=catalog, settings=settings)


@dataclass
class APIService:
    """
    Main API service for the admin console and devices.

    Usage:
        service = APIService(controller)
        session = await service.create_session(CreateSessionRequest(theme_id="lab"))
        await service.start_session(session.session_id)
    """
    controller: SessionController = field(default_factory=build_controller)

    @property
    def settings(self) -> Settings:
        return self.controller.settings

    # Sessions

    async def create_session(self, request: CreateSessionRequest) -> SessionResponse:
        session = await self.controller.create(request.theme_id, request.join_code)
        return self.session_to_response(session)

    async def get_session(self, session_id: str) -> SessionResponse:
        return self.session_to_response(await self.controller.get(session_id))

    async def find_by_join_code(self, join_code: str) -> SessionResponse:
        session = await self.controller.find_by_join_code(join_code)
        if session is None:
            raise SessionNotFound(join_code)
        return self.session_to_response(session)

    async def list_sessions(self) -> SessionListResponse:
        sessions = [self.session_to_response(s) for s in await self.controller.list_sessions()]
        return SessionListResponse(sessions=sessions, count=len(sessions))

    async def delete_session(self, session_id: str):
        await self.controller.delete(session_id)

    # Lifecycle

    async def start_session(self, session_id: str, require_all_devices: bool = False) -> SessionResponse:
        return self.session_to_response(
            await self.controller.start(session_id, require_all_devices=require_all_devices)
        )

    async def pause_session(self, session_id: str) -> SessionResponse:
        return self.session_to_response(await self.controller.pause(session_id))

    async def resume_session(self, session_id: str) -> SessionResponse:
        return self.session_to_response(await self.controller.resume(session_id))

    async def end_session(self, session_id: str) -> SessionResponse:
        return self.session_to_response(await self.controller.end(session_id))

    async def reset_session(self, session_id: str) -> SessionResponse:
        return self.session_to_response(await self.controller.reset(session_id))

    async def jump(self, session_id: str, request: JumpRequest) -> SessionResponse:
        return self.session_to_response(await self.controller.jump(session_id, request.target))

    async def jump_to_ending(self, session_id: str) -> SessionResponse:
        return self.session_to_response(await self.controller.jump_to_ending(session_id))

    async def resync(self, session_id: str) -> SessionResponse:
        return self.session_to_response(await self.controller.resync(session_id))

    async def resync_triggers(self, session_id: str) -> SessionResponse:
        return self.session_to_response(await self.controller.resync_triggers(session_id))

    async def solve(self, session_id: str, request: SolveRequest) -> SolveResponse:
        update = await self.controller.solve(session_id, request.sequence, request.role)
        return self._update_to_response(session_id, update)

    # Devices

    async def available_roles(self, session_id: str) -> RolesResponse:
        roles = await self.controller.available_roles(session_id)
        return RolesResponse(session_id=session_id, roles=roles)

    async def liveness(self, session_id: str) -> LivenessResponse:
        view = await self.controller.liveness(session_id)
        return LivenessResponse(
            session_id=session_id,
            sampled_at=view.sampled_at,
            alive=view.alive,
            missing=view.missing,
            all_connected=not view.missing,
        )

    async def claim_role(self, session_id: str, role: str) -> SessionResponse:
        return self.session_to_response(await self.controller.claim_role(session_id, role))

    async def heartbeat(self, session_id: str, role: str):
        await self.controller.heartbeat(session_id, role)

    async def set_device_status(self, session_id: str, role: str, status: str):
        await self.controller.set_device_status(session_id, role, EngineDeviceStatus(status))

    async def submit_answer(self, session_id: str, role: str, answer: str) -> AnswerResponse:
        result = await self.controller.submit_answer(session_id, role, answer)
        return AnswerResponse(
            session_id=session_id,
            correct=result.correct,
            message=result.message,
            puzzle_sequence=result.puzzle.sequence if result.puzzle else None,
            solve=self._update_to_response(session_id, result.update) if result.update else None,
        )

    async def hint(self, theme_id: str, code: str) -> HintResponse | None:
        puzzle = await self.controller.hint(theme_id, code)
        if puzzle is None:
            return None
        return HintResponse(theme_id=theme_id, code=puzzle.code, title=puzzle.title, hints=puzzle.hints)

    # Conversion

    def session_to_response(self, session: SessionState) -> SessionResponse:
        now = self.controller.clock()
        stale_after = self.settings.stale_after_seconds
        return SessionResponse(
            session_id=session.session_id,
            theme_id=session.theme_id,
            status=session.status.value,
            join_code=session.join_code,
            current_puzzle=session.current_puzzle,
            solved=session.solved,
            devices=[
                DeviceInfo(
                    role=role,
                    status=record.status.value,
                    last_seen=record.last_seen,
                    alive=is_alive(record, now, stale_after),
                    media=MediaInfo(**record.media.to_dict()),
                )
                for role, record in sorted(session.devices.items())
            ],
            created_at=session.created_at,
            updated_at=session.updated_at,
            version=session.version,
        )

    def _update_to_response(self, session_id: str, update: SessionUpdate) -> SolveResponse:
        return SolveResponse(
            session_id=session_id,
            current_puzzle=update.current_puzzle,
            status=update.status.value,
            changes=update.changes,
        )
