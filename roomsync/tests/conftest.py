"""
Pytest fixtures for RoomSync tests.
"""

import pytest

from ..catalog import (
    InMemoryCatalog,
    PuzzleCatalog,
    PuzzleDefinition,
    PuzzleKind,
    RemoteTrigger,
    Theme,
)
from ..config import Settings
from ..engine_core.state import MediaEffect
from ..session import SessionController
from ..store import InMemorySessionStore


class FakeClock:
    """Manually advanced clock so liveness tests do not sleep."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def physical(sequence: int, theme_id: str = "lab") -> PuzzleDefinition:
    return PuzzleDefinition(
        puzzle_id=f"p{sequence}",
        theme_id=theme_id,
        sequence=sequence,
        kind=PuzzleKind.PHYSICAL,
        code=f"P{sequence}",
        title=f"Physical {sequence}",
    )


def trigger(
    sequence: int,
    role: str,
    solution: str,
    effect: MediaEffect | None = None,
    triggers: list[RemoteTrigger] | None = None,
    theme_id: str = "lab",
) -> PuzzleDefinition:
    return PuzzleDefinition(
        puzzle_id=f"p{sequence}",
        theme_id=theme_id,
        sequence=sequence,
        kind=PuzzleKind.TRIGGER,
        code=f"P{sequence}",
        solution=solution,
        title=f"Trigger {sequence}",
        hints=[f"Look closer at clue {sequence}"],
        role=role,
        effect=effect,
        triggers=list(triggers or []),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def theme() -> Theme:
    return Theme(
        theme_id="lab",
        title="The Lab",
        opening=MediaEffect(image="lab/title.png", text="Welcome to the lab"),
        available_roles=["B"],
    )


@pytest.fixture
def puzzles() -> list[PuzzleDefinition]:
    """
    Two trigger puzzles between physical ones:
    seq2 plays video V on A; seq5 clears A and shows image I on B.
    """
    return [
        physical(1),
        trigger(2, "A", "1234", effect=MediaEffect(video="V")),
        physical(3),
        physical(4),
        trigger(
            5, "A", "OPEN",
            triggers=[RemoteTrigger(target_role="B", effect=MediaEffect(image="I"))],
        ),
    ]


@pytest.fixture
def catalog(theme: Theme, puzzles: list[PuzzleDefinition]) -> PuzzleCatalog:
    return PuzzleCatalog(theme=theme, puzzles=puzzles)


@pytest.fixture
def catalog_source(theme: Theme, puzzles: list[PuzzleDefinition]) -> InMemoryCatalog:
    return InMemoryCatalog(themes=[theme], puzzles=puzzles)


@pytest.fixture
def settings() -> Settings:
    return Settings(primary_role="A")


@pytest.fixture
def store(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def controller(store, catalog_source, settings, clock) -> SessionController:
    return SessionController(
        store=store,
        catalog_source=catalog_source,
        settings=settings,
        clock=clock,
    )
