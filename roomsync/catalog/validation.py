"""
Catalog Validation - Authoring consistency checks.

Authoring forms are responsible for producing a consistent catalog;
this report only surfaces what slipped through so it can be logged.
It never blocks a session from running.

Checks:
1. Sequence numbers are unique within a theme
2. Trigger puzzles have an assigned device role
3. Remote trigger targets are distinct and differ from the assigned role
4. Puzzle codes are unique (hint lookup relies on it)
5. Role names contain no "." (they are store field path segments)
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .models import PuzzleCatalog, PuzzleDefinition


@dataclass
class ValidationResult:
    """Result of validation, with errors and warnings."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_catalog(catalog: PuzzleCatalog) -> ValidationResult:
    """Validate a theme's puzzle catalog."""
    errors: list[str] = []
    warnings: list[str] = []

    seen_sequences: set[int] = set()
    seen_codes: set[str] = set()
    for puzzle in catalog.puzzles:
        if puzzle.sequence in seen_sequences:
            errors.append(f"Duplicate sequence number {puzzle.sequence}")
        seen_sequences.add(puzzle.sequence)

        if puzzle.code in seen_codes:
            warnings.append(f"Duplicate puzzle code '{puzzle.code}'")
        seen_codes.add(puzzle.code)

        if puzzle.is_trigger:
            errors.extend(_validate_trigger(puzzle))
        elif puzzle.effect or puzzle.triggers:
            warnings.append(
                f"Puzzle {puzzle.sequence} is physical but defines media; it will be ignored"
            )

    if not catalog.trigger_puzzles():
        warnings.append("No trigger puzzles defined - sessions end immediately")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def _validate_trigger(puzzle: PuzzleDefinition) -> list[str]:
    errors = []
    if not puzzle.role:
        errors.append(f"Trigger puzzle {puzzle.sequence} has no assigned device role")

    for role in [puzzle.role, *(t.target_role for t in puzzle.triggers)]:
        if role and "." in role:
            errors.append(f"Trigger puzzle {puzzle.sequence}: role '{role}' contains '.'")

    targets: set[str] = set()
    for trigger in puzzle.triggers:
        if trigger.target_role == puzzle.role:
            errors.append(
                f"Trigger puzzle {puzzle.sequence} targets its own role '{puzzle.role}'"
            )
        if trigger.target_role in targets:
            errors.append(
                f"Trigger puzzle {puzzle.sequence} targets '{trigger.target_role}' twice"
            )
        targets.add(trigger.target_role)
    return errors
