"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between the admin console, the
presentation devices and the engine.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or was deleted
- THEME_NOT_FOUND: Theme missing from the catalog
- PUZZLE_NOT_FOUND: No trigger puzzle with that sequence
- CATALOG_UNAVAILABLE: Catalog could not be read
- STORE_WRITE_FAILED: Transient store failure, nothing was written
- VERSION_CONFLICT / CONCURRENT_UPDATE: Lost a race, retry from fresh state
- ROLE_UNAVAILABLE: Device role held by a live device
- DEVICES_NOT_READY: Start requested with devices missing
- INVALID_TRANSITION: Lifecycle change not allowed from current status
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class DeviceStatus(str, Enum):
    """Device connectivity values."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    READY = "ready"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    THEME_NOT_FOUND = "THEME_NOT_FOUND"
    PUZZLE_NOT_FOUND = "PUZZLE_NOT_FOUND"
    CATALOG_UNAVAILABLE = "CATALOG_UNAVAILABLE"
    STORE_WRITE_FAILED = "STORE_WRITE_FAILED"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"
    ROLE_UNAVAILABLE = "ROLE_UNAVAILABLE"
    DEVICES_NOT_READY = "DEVICES_NOT_READY"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class MediaInfo(BaseModel):
    """Media a device shows. Keys are opaque media store references."""
    video: Optional[str] = None
    image: Optional[str] = None
    text: Optional[str] = None
    audio: Optional[str] = None

    model_config = {"from_attributes": True}


class DeviceInfo(BaseModel):
    """One device role within a session."""
    role: str
    status: DeviceStatus
    last_seen: float
    alive: bool = Field(False, description="Fresh heartbeat and connected/ready")
    media: MediaInfo = Field(default_factory=MediaInfo)


# =============================================================================
# Request Models
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to create a session."""
    theme_id: str
    join_code: Optional[str] = Field(
        None, description="Leave empty to generate a 4-character code"
    )


class StartSessionRequest(BaseModel):
    require_all_devices: bool = Field(
        False, description="Refuse to start unless every role has a live device"
    )


class JumpRequest(BaseModel):
    """Jump to a puzzle: state as if every trigger puzzle before it was solved."""
    target: int = Field(..., ge=0, description="Puzzle sequence number")


class SolveRequest(BaseModel):
    """Force a trigger puzzle solved on behalf of a device (admin override)."""
    sequence: int
    role: str


class AnswerRequest(BaseModel):
    answer: str


class DeviceStatusRequest(BaseModel):
    status: DeviceStatus


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class SessionResponse(BaseModel):
    """Complete session state for the admin console and devices."""
    session_id: str
    theme_id: str
    status: SessionStatus
    join_code: str
    current_puzzle: int
    solved: dict[str, float] = Field(default_factory=dict)
    devices: list[DeviceInfo] = Field(default_factory=list)
    created_at: float = 0.0
    updated_at: float = 0.0
    version: int = 0
    api_version: str = "v1"


class SessionListResponse(BaseModel):
    """Response listing sessions, newest first."""
    sessions: list[SessionResponse]
    count: int


class SolveResponse(BaseModel):
    """Result of resolving a trigger puzzle."""
    session_id: str
    current_puzzle: int
    status: SessionStatus
    changes: list[str] = Field(default_factory=list)


class AnswerResponse(BaseModel):
    """Result of a device submitting an answer."""
    session_id: str
    correct: bool
    message: str
    puzzle_sequence: Optional[int] = None
    solve: Optional[SolveResponse] = None


class RolesResponse(BaseModel):
    session_id: str
    roles: list[str]


class LivenessResponse(BaseModel):
    session_id: str
    sampled_at: float
    alive: list[str]
    missing: list[str]
    all_connected: bool


class HintResponse(BaseModel):
    """Hints for a puzzle looked up by its code."""
    theme_id: str
    code: str
    title: str
    hints: list[str]


class DeleteSessionResponse(BaseModel):
    """Response after deleting a session."""
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
