"""
Session State - The shared session record and the per-device media it carries.

Design principles:
- Immutable-friendly: all mutations return new state
- Serializable: to_document()/from_document() round-trip through the store
- Full replacement: applying a MediaEffect overwrites all four media fields
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


REPLAY_TOKEN_PARAM = "resync"


class SessionStatus(Enum):
    """Lifecycle status of a session."""
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class DeviceStatus(Enum):
    """Connectivity status a device reports for itself."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    READY = "ready"


@dataclass(frozen=True)
class MediaEffect:
    """
    What a device should display.

    video is transient (plays once, then removed); image, text and audio
    are persistent until overwritten or cleared. Values are opaque media
    store keys, except text which is displayed as-is.
    """
    video: str | None = None
    image: str | None = None
    text: str | None = None
    audio: str | None = None

    @classmethod
    def empty(cls) -> MediaEffect:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.video or self.image or self.text or self.audio)

    def with_replay_token(self, token: str) -> MediaEffect:
        """
        Return a copy whose video key carries a fresh replay token.

        A client that already rendered the same key sees a different
        value and restarts playback. No video means nothing to replay.
        """
        if not self.video:
            return self
        base_key = strip_replay_token(self.video)
        return replace(self, video=f"{base_key}?{REPLAY_TOKEN_PARAM}={token}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "video": self.video,
            "image": self.image,
            "text": self.text,
            "audio": self.audio,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MediaEffect:
        if not data:
            return cls()
        return cls(
            video=data.get("video"),
            image=data.get("image"),
            text=data.get("text"),
            audio=data.get("audio"),
        )


def strip_replay_token(video_key: str) -> str:
    """Drop any query suffix from a video key."""
    return video_key.split("?", 1)[0]


@dataclass
class DeviceRecord:
    """
    Per-role connectivity and media state within a session.

    Records are created lazily: on first claim, or the first time a
    trigger targets the role.
    """
    status: DeviceStatus = DeviceStatus.DISCONNECTED
    last_seen: float = 0.0
    media: MediaEffect = field(default_factory=MediaEffect.empty)

    @classmethod
    def placeholder(cls, now: float) -> DeviceRecord:
        """A record for a role nobody has claimed yet."""
        return cls(status=DeviceStatus.DISCONNECTED, last_seen=now, media=MediaEffect.empty())

    def apply(self, effect: MediaEffect) -> DeviceRecord:
        """
        Return a record displaying exactly `effect`.

        This is a full replacement, not a merge: any field the effect
        leaves unset is cleared. Applying the same effect twice is a no-op.
        """
        return replace(
            self,
            media=MediaEffect(
                video=effect.video,
                image=effect.image,
                text=effect.text,
                audio=effect.audio,
            ),
        )

    def with_media(self, media: MediaEffect) -> DeviceRecord:
        return replace(self, media=media)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "last_seen": self.last_seen,
            "media": self.media.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceRecord:
        return cls(
            status=DeviceStatus(data.get("status") or DeviceStatus.DISCONNECTED.value),
            last_seen=float(data.get("last_seen") or 0.0),
            media=MediaEffect.from_dict(data.get("media")),
        )


@dataclass
class SessionState:
    """
    One play-through of a theme, as stored in the session store.

    current_puzzle is the sequence number of the lowest unsolved trigger
    puzzle, or one past the last trigger when none remain.
    solved maps puzzle code -> solve timestamp.
    """
    session_id: str
    theme_id: str
    status: SessionStatus = SessionStatus.PENDING
    join_code: str = ""
    current_puzzle: int = 1
    solved: dict[str, float] = field(default_factory=dict)
    devices: dict[str, DeviceRecord] = field(default_factory=dict)

    created_at: float = 0.0
    updated_at: float = 0.0

    # Store version this snapshot was read at (for conditional writes)
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status != SessionStatus.ENDED

    def get_device(self, role: str) -> DeviceRecord | None:
        return self.devices.get(role)

    def with_device(self, role: str, record: DeviceRecord) -> SessionState:
        """Return new state with one device record replaced."""
        new_devices = self.devices.copy()
        new_devices[role] = record
        return self._copy_with(devices=new_devices)

    def _copy_with(self, **kwargs) -> SessionState:
        """Create a copy with some fields replaced."""
        return replace(self, **kwargs)

    # ------------------------------------------------------------------
    # Store documents
    # ------------------------------------------------------------------

    def to_document(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible store document (without id/version)."""
        return {
            "theme_id": self.theme_id,
            "status": self.status.value,
            "join_code": self.join_code,
            "current_puzzle": self.current_puzzle,
            "solved": dict(self.solved),
            "devices": devices_to_document(self.devices),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, session_id: str, data: dict[str, Any]) -> SessionState:
        """
        Build state from a store document.

        Missing fields fall back to the values a freshly created
        session would have.
        """
        devices = {
            role: DeviceRecord.from_dict(device or {})
            for role, device in (data.get("devices") or {}).items()
        }
        current_puzzle = data.get("current_puzzle")
        return cls(
            session_id=session_id,
            theme_id=data.get("theme_id", ""),
            status=SessionStatus(data.get("status") or SessionStatus.PENDING.value),
            join_code=data.get("join_code") or "",
            current_puzzle=1 if current_puzzle is None else int(current_puzzle),
            solved=dict(data.get("solved") or {}),
            devices=devices,
            created_at=float(data.get("created_at") or 0.0),
            updated_at=float(data.get("updated_at") or 0.0),
            version=int(data.get("version") or 0),
        )


def devices_to_document(devices: dict[str, DeviceRecord]) -> dict[str, Any]:
    return {role: record.to_dict() for role, record in devices.items()}
