"""
Session Module - Lifecycle of live sessions and the devices in them.

A session represents one play-through of a theme:
- Created by the admin with a short join code
- Joined by presentation devices, each holding one role
- Advanced by solved trigger puzzles or by admin jumps
- Deleted explicitly by the admin

All coordination goes through the session store; devices and the
admin console never call each other.
"""

from .controller import SessionController, SubmitResult
from .device import DeviceClient, DevicePhase, DeviceView

__all__ = [
    "SessionController",
    "SubmitResult",
    "DeviceClient",
    "DevicePhase",
    "DeviceView",
]
