"""
RoomSync - Escape Room Session Coordination Engine

Coordinates a live, multi-device escape-room session. The engine provides:
- Session lifecycle (create, start, pause, resume, end, delete)
- Incremental trigger resolution when a puzzle is solved
- Deterministic reconstruction of device state at any puzzle
- Device liveness tracking and role claiming
"""

__version__ = "0.1.0"
