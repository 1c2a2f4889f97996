"""
FastAPI Application - REST API for the admin console and devices.

Endpoints:
    POST   /api/v1/sessions                          Create session
    GET    /api/v1/sessions                          List sessions
    GET    /api/v1/sessions/{id}                     Get session
    DELETE /api/v1/sessions/{id}                     Delete session
    GET    /api/v1/join/{code}                       Find session by join code
    POST   /api/v1/sessions/{id}/start               Start (optionally gated on devices)
    POST   /api/v1/sessions/{id}/pause               Pause
    POST   /api/v1/sessions/{id}/resume              Resume
    POST   /api/v1/sessions/{id}/end                 End
    POST   /api/v1/sessions/{id}/reset               Reset to the first puzzle
    POST   /api/v1/sessions/{id}/jump                Jump to a puzzle
    POST   /api/v1/sessions/{id}/ending              Jump to the ending
    POST   /api/v1/sessions/{id}/resync              Replay every device's video
    POST   /api/v1/sessions/{id}/resync-triggers     Rebuild state at the pointer
    POST   /api/v1/sessions/{id}/solve               Force a trigger puzzle solved
    GET    /api/v1/sessions/{id}/roles               Claimable roles
    GET    /api/v1/sessions/{id}/liveness            Alive/missing devices
    POST   /api/v1/sessions/{id}/devices/{role}/claim      Claim a role
    POST   /api/v1/sessions/{id}/devices/{role}/heartbeat  Heartbeat
    POST   /api/v1/sessions/{id}/devices/{role}/status     Report device status
    POST   /api/v1/sessions/{id}/devices/{role}/answer     Submit an answer
    GET    /api/v1/themes/{theme_id}/hints/{code}    Hints for a puzzle code
    WS     /api/v1/sessions/{id}/ws                  Session snapshots as they commit

All responses are JSON with explicit Pydantic schemas.
"""

from typing import Optional
import asyncio
import json
import logging

logger = logging.getLogger(__name__)

# Engine errors → HTTP status
STATUS_BY_ERROR_CODE = {
    "SESSION_NOT_FOUND": 404,
    "THEME_NOT_FOUND": 404,
    "PUZZLE_NOT_FOUND": 404,
    "VERSION_CONFLICT": 409,
    "CONCURRENT_UPDATE": 409,
    "ROLE_UNAVAILABLE": 409,
    "DEVICES_NOT_READY": 409,
    "INVALID_TRANSITION": 409,
    "CATALOG_UNAVAILABLE": 503,
    "STORE_WRITE_FAILED": 503,
}


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from .. import __version__
    from ..engine_core.state import SessionState
    from ..errors import PuzzleNotFound, RoomSyncError
    from .service import APIService
    from .schemas import (
        # Request models
        AnswerRequest,
        CreateSessionRequest,
        DeviceStatusRequest,
        JumpRequest,
        SolveRequest,
        StartSessionRequest,
        # Response models
        AnswerResponse,
        DeleteSessionResponse,
        ErrorResponse,
        HealthResponse,
        HintResponse,
        LivenessResponse,
        RolesResponse,
        SessionListResponse,
        SessionResponse,
        SolveResponse,
        # Enums
        ErrorCode,
    )

    api_service = service or APIService()

    app = FastAPI(
        title="RoomSync API",
        description="""
Escape room session coordination - one session, many presentation devices.

## Flow

1. Admin creates a session and reads out the join code
2. Each device joins with the code and claims a role
3. Admin starts the session; devices follow the session over the WebSocket
4. Devices submit answers; solved trigger puzzles change device media

## Error Codes

| Code | Status | Description |
|------|--------|-------------|
| `SESSION_NOT_FOUND` | 404 | Session does not exist |
| `THEME_NOT_FOUND` | 404 | Theme missing from the catalog |
| `PUZZLE_NOT_FOUND` | 404 | No such trigger puzzle or code |
| `ROLE_UNAVAILABLE` | 409 | Role held by a live device |
| `DEVICES_NOT_READY` | 409 | Start gated on missing devices |
| `INVALID_TRANSITION` | 409 | Not allowed from current status |
| `CONCURRENT_UPDATE` | 409 | Session kept changing, retry |
| `STORE_WRITE_FAILED` | 503 | Transient store failure |
| `CATALOG_UNAVAILABLE` | 503 | Catalog could not be read |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_service.settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(RoomSyncError)
    async def engine_error_handler(request: Request, exc: RoomSyncError):
        status_code = STATUS_BY_ERROR_CODE.get(exc.error_code, 500)
        if status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        details = None
        if hasattr(exc, "missing"):
            details = {"missing": exc.missing}
        elif hasattr(exc, "role"):
            details = {"role": exc.role}
        return make_error_response(ErrorCode(exc.error_code), exc.message, status_code, details)

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return make_error_response(ErrorCode.VALIDATION_ERROR, str(exc))

    error_responses = {
        404: {"model": ErrorResponse, "description": "Session not found"},
        409: {"model": ErrorResponse, "description": "Conflicting state"},
        503: {"model": ErrorResponse, "description": "Store or catalog unavailable"},
    }

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse, "description": "Unknown theme"}},
        tags=["Sessions"],
        summary="Create a new session",
    )
    async def create_session(request: CreateSessionRequest) -> SessionResponse:
        """Create a pending session for a theme. A join code is generated if not given."""
        return await api_service.create_session(request)

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List sessions, newest first",
    )
    async def list_sessions() -> SessionListResponse:
        return await api_service.list_sessions()

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Get a session",
    )
    async def get_session(session_id: str) -> SessionResponse:
        return await api_service.get_session(session_id)

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=DeleteSessionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Delete a session",
    )
    async def delete_session(session_id: str) -> DeleteSessionResponse:
        """Remove the session record permanently."""
        await api_service.delete_session(session_id)
        return DeleteSessionResponse(success=True, session_id=session_id)

    @app.get(
        "/api/v1/join/{join_code}",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Sessions"],
        summary="Find a session by join code",
    )
    async def find_by_join_code(join_code: str) -> SessionResponse:
        return await api_service.find_by_join_code(join_code)

    # =========================================================================
    # Admin Controls
    # =========================================================================

    @app.post(
        "/api/v1/sessions/{session_id}/start",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
        summary="Start a pending session",
    )
    async def start_session(
        session_id: str,
        request: Optional[StartSessionRequest] = None,
    ) -> SessionResponse:
        """
        Start the session. The primary device plays the theme opening.

        With `require_all_devices=true` the start is refused while any
        device role has no live device.
        """
        require_all = request.require_all_devices if request else False
        return await api_service.start_session(session_id, require_all_devices=require_all)

    @app.post(
        "/api/v1/sessions/{session_id}/pause",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
    )
    async def pause_session(session_id: str) -> SessionResponse:
        return await api_service.pause_session(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/resume",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
    )
    async def resume_session(session_id: str) -> SessionResponse:
        return await api_service.resume_session(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/end",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
    )
    async def end_session(session_id: str) -> SessionResponse:
        return await api_service.end_session(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/reset",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
        summary="Reset to the first puzzle",
    )
    async def reset_session(session_id: str) -> SessionResponse:
        return await api_service.reset_session(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/jump",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
        summary="Jump to a puzzle",
    )
    async def jump(session_id: str, request: JumpRequest) -> SessionResponse:
        """Rebuild every device as if all trigger puzzles before `target` were solved."""
        return await api_service.jump(session_id, request)

    @app.post(
        "/api/v1/sessions/{session_id}/ending",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
        summary="Jump to the ending",
    )
    async def jump_to_ending(session_id: str) -> SessionResponse:
        return await api_service.jump_to_ending(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/resync",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
        summary="Make every device replay its video",
    )
    async def resync(session_id: str) -> SessionResponse:
        return await api_service.resync(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/resync-triggers",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Admin"],
        summary="Rebuild device state at the current puzzle",
    )
    async def resync_triggers(session_id: str) -> SessionResponse:
        return await api_service.resync_triggers(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/solve",
        response_model=SolveResponse,
        responses=error_responses,
        tags=["Admin"],
        summary="Force a trigger puzzle solved",
    )
    async def solve(session_id: str, request: SolveRequest) -> SolveResponse:
        return await api_service.solve(session_id, request)

    # =========================================================================
    # Devices
    # =========================================================================

    @app.get(
        "/api/v1/sessions/{session_id}/roles",
        response_model=RolesResponse,
        responses=error_responses,
        tags=["Devices"],
        summary="Roles a joining device may claim",
    )
    async def available_roles(session_id: str) -> RolesResponse:
        return await api_service.available_roles(session_id)

    @app.get(
        "/api/v1/sessions/{session_id}/liveness",
        response_model=LivenessResponse,
        responses=error_responses,
        tags=["Devices"],
    )
    async def liveness(session_id: str) -> LivenessResponse:
        return await api_service.liveness(session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/devices/{role}/claim",
        response_model=SessionResponse,
        responses=error_responses,
        tags=["Devices"],
        summary="Claim a device role",
    )
    async def claim_role(session_id: str, role: str) -> SessionResponse:
        return await api_service.claim_role(session_id, role)

    @app.post(
        "/api/v1/sessions/{session_id}/devices/{role}/heartbeat",
        status_code=204,
        responses=error_responses,
        tags=["Devices"],
    )
    async def heartbeat(session_id: str, role: str):
        await api_service.heartbeat(session_id, role)

    @app.post(
        "/api/v1/sessions/{session_id}/devices/{role}/status",
        status_code=204,
        responses=error_responses,
        tags=["Devices"],
    )
    async def set_device_status(session_id: str, role: str, request: DeviceStatusRequest):
        await api_service.set_device_status(session_id, role, request.status.value)

    @app.post(
        "/api/v1/sessions/{session_id}/devices/{role}/answer",
        response_model=AnswerResponse,
        responses=error_responses,
        tags=["Devices"],
        summary="Submit an answer from a device",
    )
    async def submit_answer(session_id: str, role: str, request: AnswerRequest) -> AnswerResponse:
        return await api_service.submit_answer(session_id, role, request.answer)

    @app.get(
        "/api/v1/themes/{theme_id}/hints/{code}",
        response_model=HintResponse,
        responses=error_responses,
        tags=["Hints"],
        summary="Hints for a puzzle code",
    )
    async def get_hints(theme_id: str, code: str) -> HintResponse:
        response = await api_service.hint(theme_id, code)
        if response is None:
            raise PuzzleNotFound(f"No puzzle with code {code!r} in theme {theme_id}")
        return response

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/sessions/{session_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, session_id: str):
        """
        WebSocket for live session snapshots.

        Messages from server:
        - state_update: Session changed (the first one is the current state)
        - session_deleted: Session was deleted; the socket closes
        - pong: Reply to ping
        - error: Error occurred

        Messages from client:
        - ping: Keep-alive
        """
        await websocket.accept()
        try:
            await api_service.get_session(session_id)
        except RoomSyncError as e:
            await websocket.send_json({
                "type": "error",
                "payload": {"message": e.message, "error_code": e.error_code},
            })
            await websocket.close()
            return

        subscription = api_service.controller.store.subscribe(session_id)

        async def forward_snapshots():
            async for document in subscription:
                if document is None:
                    await websocket.send_json({"type": "session_deleted"})
                    await websocket.close()
                    return
                session = SessionState.from_document(document["id"], document)
                await websocket.send_json({
                    "type": "state_update",
                    "payload": api_service.session_to_response(session).model_dump(mode="json"),
                })

        forwarder = asyncio.create_task(forward_snapshots())
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                    if message.get("type") == "ping":
                        await websocket.send_json({"type": "pong"})
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })
        except WebSocketDisconnect:
            logger.debug("WebSocket for session %s disconnected", session_id)
        finally:
            subscription.close()
            forwarder.cancel()

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="roomsync",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "RoomSync API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# Create default app instance (only if FastAPI is available)
app = None
try:
    app = create_app()
except ImportError:
    pass
