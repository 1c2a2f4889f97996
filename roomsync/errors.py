"""
Errors raised by the engine.

Every error carries a machine-readable error_code and a single
human-readable message. The API layer maps codes to HTTP statuses.
Nothing here retries; callers re-read the last confirmed snapshot.
"""

from __future__ import annotations


class RoomSyncError(Exception):
    """Base class for all engine errors."""
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SessionNotFound(RoomSyncError):
    """The session record does not exist (never created or deleted)."""
    error_code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class ThemeNotFound(RoomSyncError):
    error_code = "THEME_NOT_FOUND"

    def __init__(self, theme_id: str):
        self.theme_id = theme_id
        super().__init__(f"Theme {theme_id} not found")


class PuzzleCatalogUnavailable(RoomSyncError):
    """The puzzle catalog could not be read."""
    error_code = "CATALOG_UNAVAILABLE"


class StoreWriteFailed(RoomSyncError):
    """A transient store or network failure. Never retried here."""
    error_code = "STORE_WRITE_FAILED"


class VersionConflict(RoomSyncError):
    """A conditional write lost against a newer committed version."""
    error_code = "VERSION_CONFLICT"

    def __init__(self, session_id: str, expected: int, actual: int):
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Session {session_id} changed concurrently "
            f"(expected version {expected}, found {actual})"
        )


class ConcurrentUpdateError(RoomSyncError):
    """Gave up after repeated version conflicts."""
    error_code = "CONCURRENT_UPDATE"


class RoleUnavailable(RoomSyncError):
    """The device role is held by a live device."""
    error_code = "ROLE_UNAVAILABLE"

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Device role '{role}' is already in use")


class DevicesNotReady(RoomSyncError):
    """Start was gated on every device being alive and some are not."""
    error_code = "DEVICES_NOT_READY"

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Devices not connected: {', '.join(missing)}")


class PuzzleNotFound(RoomSyncError):
    error_code = "PUZZLE_NOT_FOUND"


class InvalidTransition(RoomSyncError):
    """The requested lifecycle change is not allowed from the current status."""
    error_code = "INVALID_TRANSITION"
