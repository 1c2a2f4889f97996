"""
Reconstruction - Rebuilds session state by replaying the catalog.

Used for "reset to start", "jump to puzzle K", "jump to ending" and
trigger resync. The result must equal what the incremental resolver
would produce had every trigger puzzle before the target been solved
in ascending order, starting from the seed state.

Seeding:
- Only roles already in the current session are seeded; their
  connectivity bookkeeping (status, last_seen) is kept
- The primary role shows the theme's opening effect
- Every other known role starts with empty media

Reconstruction never decides status. Callers combine the result with
the status they want and perform one combined write.

Known limitation: solve timestamps are stamped at call time, not
recovered from history.

The equality holds up to replay tokens: `start` adds one to the opening
video so devices play it again, while seeding shows the plain opening.
Compare videos with strip_replay_token() when checking both paths.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..errors import SessionNotFound
from .state import SessionState, DeviceRecord, MediaEffect, devices_to_document
from .resolver import apply_puzzle_effects

if TYPE_CHECKING:
    from ..catalog import PuzzleCatalog, CatalogSource
    from ..store.base import SessionStore


@dataclass
class Reconstruction:
    """Full replacement for {pointer, solved set, device map}."""
    current_puzzle: int
    solved: dict[str, float]
    devices: dict[str, DeviceRecord]
    replayed: list[int] = field(default_factory=list)  # Sequences applied, in order

    def to_fields(self) -> dict[str, Any]:
        return {
            "current_puzzle": self.current_puzzle,
            "solved": dict(self.solved),
            "devices": devices_to_document(self.devices),
        }


def seed_devices(
    session: SessionState,
    catalog: PuzzleCatalog,
    primary_role: str,
) -> dict[str, DeviceRecord]:
    """Reset media on every known role to its state before any puzzle."""
    opening = catalog.theme.opening
    seeded = {}
    for role, record in session.devices.items():
        if role == primary_role:
            seeded[role] = record.apply(opening)
        else:
            seeded[role] = record.apply(MediaEffect.empty())
    return seeded


def reconstruct(
    session: SessionState,
    catalog: PuzzleCatalog,
    target: int,
    primary_role: str,
    now: float,
) -> Reconstruction:
    """
    Replay every trigger puzzle with sequence < target.

    Pure: reads the session snapshot and catalog, returns the fields
    to write.
    """
    devices = seed_devices(session, catalog, primary_role)
    solved: dict[str, float] = {}
    replayed: list[int] = []

    for puzzle in catalog.triggers_before(target):
        solved[puzzle.code] = now
        devices, _ = apply_puzzle_effects(devices, puzzle, puzzle.role, now)
        replayed.append(puzzle.sequence)

    next_puzzle = catalog.next_trigger_from(target)
    current_puzzle = next_puzzle.sequence if next_puzzle is not None else target

    return Reconstruction(
        current_puzzle=current_puzzle,
        solved=solved,
        devices=devices,
        replayed=replayed,
    )


@dataclass
class Reconstructor:
    """
    Loads the inputs reconstruction needs and runs it.

    Usage:
        reconstructor = Reconstructor(store, catalog_source, primary_role="main")
        result = await reconstructor.run(session_id, target=5, theme_id="lab")
    """
    store: SessionStore
    catalog_source: CatalogSource
    primary_role: str

    async def run(
        self,
        session_id: str,
        target: int,
        theme_id: str,
        now: float,
    ) -> tuple[SessionState, Reconstruction]:
        """
        Reconstruct state for `target`.

        Returns the snapshot it was computed from (whose version the
        caller uses for its conditional write) and the result.
        Raises SessionNotFound, ThemeNotFound or PuzzleCatalogUnavailable.
        """
        catalog = await self.catalog_source.load(theme_id)
        document = await self.store.get(session_id)
        if document is None:
            raise SessionNotFound(session_id)
        session = SessionState.from_document(session_id, document)
        return session, reconstruct(session, catalog, target, self.primary_role, now)
