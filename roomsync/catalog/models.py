"""
Catalog Models - Themes and the ordered puzzles that belong to them.

The catalog is authored elsewhere and read-only here. A theme's
puzzles are totally ordered by sequence number; only trigger puzzles
change device media and advance the session.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..engine_core.state import MediaEffect


class PuzzleKind(Enum):
    """Kinds of puzzle."""
    PHYSICAL = "physical"  # Solved in the room, no device involvement
    TRIGGER = "trigger"  # Solution entered on a device changes media


@dataclass(frozen=True)
class RemoteTrigger:
    """An effect a trigger puzzle sends to some other device role."""
    target_role: str
    effect: MediaEffect

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteTrigger:
        return cls(
            target_role=data["target_role"],
            effect=MediaEffect.from_dict(data.get("effect")),
        )


@dataclass
class PuzzleDefinition:
    """
    A single puzzle in a theme.

    For trigger puzzles `role` is the device the answer is entered on,
    `effect` the media shown on that device, and `triggers` the effects
    fanned out to other roles. A trigger puzzle without an effect
    blanks its device.
    """
    puzzle_id: str
    theme_id: str
    sequence: int
    kind: PuzzleKind
    code: str  # Also used by players to look up hints
    solution: str = ""
    title: str = ""
    hints: list[str] = field(default_factory=list)

    role: str | None = None
    effect: MediaEffect | None = None
    triggers: list[RemoteTrigger] = field(default_factory=list)

    def __post_init__(self):
        if self.is_trigger and self.effect is None:
            self.effect = MediaEffect.empty()

    @property
    def is_trigger(self) -> bool:
        return self.kind == PuzzleKind.TRIGGER

    def matches(self, answer: str) -> bool:
        """Check a submitted answer (surrounding whitespace ignored)."""
        return answer.strip() == self.solution

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PuzzleDefinition:
        effect = data.get("effect")
        return cls(
            puzzle_id=str(data.get("id") or data["code"]),
            theme_id=data["theme_id"],
            sequence=int(data["sequence"]),
            kind=PuzzleKind(data.get("kind", PuzzleKind.PHYSICAL.value)),
            code=data["code"],
            solution=data.get("solution") or "",
            title=data.get("title") or "",
            hints=list(data.get("hints") or []),
            role=data.get("role"),
            effect=MediaEffect.from_dict(effect) if effect is not None else None,
            triggers=[RemoteTrigger.from_dict(t) for t in data.get("triggers") or []],
        )


@dataclass
class Theme:
    """A themed room. The opening effect is shown on the primary device at start."""
    theme_id: str
    title: str = ""
    opening: MediaEffect = field(default_factory=MediaEffect.empty)
    available_roles: list[str] = field(default_factory=list)
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Theme:
        return cls(
            theme_id=data["id"],
            title=data.get("title") or "",
            opening=MediaEffect.from_dict(data.get("opening")),
            available_roles=list(data.get("available_roles") or []),
            is_active=bool(data.get("is_active", True)),
        )


@dataclass
class PuzzleCatalog:
    """
    A theme together with its puzzles, sorted by sequence.

    All "next puzzle" questions the engines ask are answered here so the
    incremental and replay paths share one definition of ordering.
    """
    theme: Theme
    puzzles: list[PuzzleDefinition] = field(default_factory=list)

    def __post_init__(self):
        self.puzzles = sorted(self.puzzles, key=lambda p: p.sequence)

    def trigger_puzzles(self) -> list[PuzzleDefinition]:
        return [p for p in self.puzzles if p.is_trigger]

    def first_trigger_sequence(self) -> int:
        """Sequence of the first trigger puzzle, or 1 if there are none."""
        triggers = self.trigger_puzzles()
        return triggers[0].sequence if triggers else 1

    def next_trigger_after(self, sequence: int) -> PuzzleDefinition | None:
        """Smallest trigger puzzle with sequence strictly greater than `sequence`."""
        for puzzle in self.trigger_puzzles():
            if puzzle.sequence > sequence:
                return puzzle
        return None

    def next_trigger_from(self, sequence: int) -> PuzzleDefinition | None:
        """Smallest trigger puzzle with sequence >= `sequence`."""
        for puzzle in self.trigger_puzzles():
            if puzzle.sequence >= sequence:
                return puzzle
        return None

    def triggers_before(self, sequence: int) -> list[PuzzleDefinition]:
        return [p for p in self.trigger_puzzles() if p.sequence < sequence]

    def ending_sequence(self) -> int:
        """Pointer value meaning every trigger puzzle is solved."""
        triggers = self.trigger_puzzles()
        return triggers[-1].sequence + 1 if triggers else 1

    def get(self, sequence: int) -> PuzzleDefinition | None:
        for puzzle in self.puzzles:
            if puzzle.sequence == sequence:
                return puzzle
        return None

    def find_by_code(self, code: str) -> PuzzleDefinition | None:
        for puzzle in self.puzzles:
            if puzzle.code == code:
                return puzzle
        return None

    def trigger_at(self, sequence: int, role: str) -> PuzzleDefinition | None:
        """The trigger puzzle at `sequence` if it is answered on `role`."""
        puzzle = self.get(sequence)
        if puzzle and puzzle.is_trigger and puzzle.role == role:
            return puzzle
        return None

    def all_roles(self, primary_role: str) -> list[str]:
        """Primary role first, then the theme's other roles, without duplicates."""
        roles = [primary_role]
        for role in self.theme.available_roles:
            if role not in roles:
                roles.append(role)
        return roles
