"""
Trigger Resolver - Applies the effect of one newly solved puzzle.

The resolver is the incremental path: given the current session and the
trigger puzzle that was just solved, it computes the combined update
(solved set, device map, pointer, status) to write back in one go.

Design principles:
- Pure function: (session, puzzle) -> SessionUpdate
- Never touches the store; the caller performs the single combined write
- Shares apply_puzzle_effects() with reconstruction so both paths agree
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .state import DeviceRecord, SessionState, SessionStatus, devices_to_document

if TYPE_CHECKING:
    from ..catalog import PuzzleCatalog, PuzzleDefinition


@dataclass
class SessionUpdate:
    """
    The combined field update produced by solving one puzzle.

    Contains:
    - The new solved set, device map, pointer and status
    - Human-readable changes (for logs and the admin console)
    """
    solved: dict[str, float]
    devices: dict[str, DeviceRecord]
    current_puzzle: int
    status: SessionStatus
    changes: list[str] = field(default_factory=list)

    @property
    def ended(self) -> bool:
        return self.status == SessionStatus.ENDED

    def to_fields(self) -> dict[str, Any]:
        """Store update payload."""
        return {
            "solved": dict(self.solved),
            "devices": devices_to_document(self.devices),
            "current_puzzle": self.current_puzzle,
            "status": self.status.value,
        }

    def applied_to(self, session: SessionState) -> SessionState:
        return session._copy_with(
            solved=dict(self.solved),
            devices=dict(self.devices),
            current_puzzle=self.current_puzzle,
            status=self.status,
        )


def apply_puzzle_effects(
    devices: dict[str, DeviceRecord],
    puzzle: PuzzleDefinition,
    local_role: str | None,
    now: float,
) -> tuple[dict[str, DeviceRecord], list[str]]:
    """
    Apply a trigger puzzle's local and remote effects to a device map.

    The local effect lands on `local_role` only if that role already has
    a record. Remote targets without a record get a disconnected
    placeholder first. Returns (new device map, changes).
    """
    new_devices = dict(devices)
    changes: list[str] = []

    if puzzle.effect is not None and local_role and local_role in new_devices:
        new_devices[local_role] = new_devices[local_role].apply(puzzle.effect)
        changes.append(f"Puzzle {puzzle.sequence} updated media on '{local_role}'")

    for trigger in puzzle.triggers:
        record = new_devices.get(trigger.target_role)
        if record is None:
            record = DeviceRecord.placeholder(now)
            changes.append(f"Created device record for '{trigger.target_role}'")
        new_devices[trigger.target_role] = record.apply(trigger.effect)
        changes.append(f"Puzzle {puzzle.sequence} triggered '{trigger.target_role}'")

    return new_devices, changes


@dataclass
class TriggerResolver:
    """
    Resolves a solved trigger puzzle against the session.

    Stateless - all state is in SessionState.
    Catalog provides the ordering used to advance the pointer.
    """
    catalog: PuzzleCatalog

    def resolve(
        self,
        session: SessionState,
        puzzle: PuzzleDefinition,
        solving_role: str,
        now: float,
    ) -> SessionUpdate:
        """
        Compute the update for `puzzle` solved on `solving_role`.

        Solution matching has already happened upstream.
        """
        if not puzzle.is_trigger:
            raise ValueError(f"Puzzle {puzzle.sequence} is not a trigger puzzle")

        # Re-solving overwrites the timestamp; membership is idempotent
        solved = dict(session.solved)
        solved[puzzle.code] = now

        devices, changes = apply_puzzle_effects(session.devices, puzzle, solving_role, now)

        next_puzzle = self.catalog.next_trigger_after(puzzle.sequence)
        if next_puzzle is not None:
            current_puzzle = next_puzzle.sequence
            status = session.status
        else:
            current_puzzle = puzzle.sequence + 1
            status = SessionStatus.ENDED
            changes.append("No trigger puzzles remain - session ended")

        return SessionUpdate(
            solved=solved,
            devices=devices,
            current_puzzle=current_puzzle,
            status=status,
            changes=changes,
        )


def resolve_solution(
    catalog: PuzzleCatalog,
    session: SessionState,
    puzzle: PuzzleDefinition,
    solving_role: str,
    now: float,
) -> SessionUpdate:
    """Convenience function to resolve without constructing a TriggerResolver."""
    return TriggerResolver(catalog=catalog).resolve(session, puzzle, solving_role, now)
