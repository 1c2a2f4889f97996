"""
Engine Core - Session state, trigger resolution and reconstruction.

The engine is the part with real invariants:
1. Applies one solved trigger puzzle incrementally (resolver)
2. Rebuilds state at any puzzle by replaying the catalog (reconstruction)
3. Judges device liveness from heartbeats (liveness)

Both the incremental and the replay path produce identical pointer and
device media for the same point in the catalog.
"""

from .state import (
    SessionState,
    SessionStatus,
    DeviceRecord,
    DeviceStatus,
    MediaEffect,
    strip_replay_token,
)
from .resolver import TriggerResolver, SessionUpdate, apply_puzzle_effects, resolve_solution
from .reconstruction import Reconstruction, Reconstructor, reconstruct, seed_devices
from .liveness import (
    HeartbeatLoop,
    LivenessMonitor,
    LivenessView,
    all_roles_alive,
    claimable_roles,
    is_alive,
    is_claimable,
    is_stale,
    missing_roles,
)

__all__ = [
    "SessionState",
    "SessionStatus",
    "DeviceRecord",
    "DeviceStatus",
    "MediaEffect",
    "strip_replay_token",
    "TriggerResolver",
    "SessionUpdate",
    "apply_puzzle_effects",
    "resolve_solution",
    "Reconstruction",
    "Reconstructor",
    "reconstruct",
    "seed_devices",
    "HeartbeatLoop",
    "LivenessMonitor",
    "LivenessView",
    "all_roles_alive",
    "claimable_roles",
    "is_alive",
    "is_claimable",
    "is_stale",
    "missing_roles",
]
