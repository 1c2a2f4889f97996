"""
Catalog Sources - Where themes and puzzles are read from.

The authoring subsystem owns the catalog; this module only reads it.
Two sources are provided:
- InMemoryCatalog: built from objects (tests, embedding)
- JsonFileCatalog: a JSON file with "themes" and "puzzles" lists
"""

from __future__ import annotations
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from ..errors import PuzzleCatalogUnavailable, ThemeNotFound
from .models import PuzzleCatalog, PuzzleDefinition, Theme
from .validation import validate_catalog

logger = logging.getLogger(__name__)


class CatalogSource(ABC):
    """Read-only access to themes and their ordered puzzles."""

    @abstractmethod
    async def get_theme(self, theme_id: str) -> Theme:
        """Return the theme or raise ThemeNotFound."""

    @abstractmethod
    async def list_puzzles(self, theme_id: str) -> list[PuzzleDefinition]:
        """Return the theme's puzzles sorted by sequence."""

    async def load(self, theme_id: str) -> PuzzleCatalog:
        """Load a theme and its puzzles as one catalog."""
        theme = await self.get_theme(theme_id)
        puzzles = await self.list_puzzles(theme_id)
        catalog = PuzzleCatalog(theme=theme, puzzles=puzzles)

        result = validate_catalog(catalog)
        for problem in result.errors + result.warnings:
            logger.warning("Catalog %s: %s", theme_id, problem)
        return catalog


class InMemoryCatalog(CatalogSource):
    """Catalog held in memory."""

    def __init__(
        self,
        themes: list[Theme] | None = None,
        puzzles: list[PuzzleDefinition] | None = None,
    ):
        self._themes: dict[str, Theme] = {t.theme_id: t for t in themes or []}
        self._puzzles: list[PuzzleDefinition] = list(puzzles or [])

    def add_theme(self, theme: Theme, puzzles: list[PuzzleDefinition] | None = None):
        self._themes[theme.theme_id] = theme
        self._puzzles.extend(puzzles or [])

    async def get_theme(self, theme_id: str) -> Theme:
        theme = self._themes.get(theme_id)
        if theme is None:
            raise ThemeNotFound(theme_id)
        return theme

    async def list_puzzles(self, theme_id: str) -> list[PuzzleDefinition]:
        return sorted(
            (p for p in self._puzzles if p.theme_id == theme_id),
            key=lambda p: p.sequence,
        )

    def list_themes(self) -> list[Theme]:
        return list(self._themes.values())


class JsonFileCatalog(CatalogSource):
    """
    Catalog read from a JSON file.

    The file is re-read on every call so edits made by the authoring
    tools are picked up without a restart.

    Format:
        {
          "themes": [{"id": "...", "title": "...", "opening": {...},
                      "available_roles": ["tablet"]}],
          "puzzles": [{"theme_id": "...", "sequence": 1, "kind": "trigger",
                       "code": "...", "solution": "...", "role": "main",
                       "effect": {...}, "triggers": [...]}]
        }
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> InMemoryCatalog:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PuzzleCatalogUnavailable(f"Cannot read catalog {self.path}: {e}") from e

        try:
            themes = [Theme.from_dict(t) for t in data.get("themes", [])]
            puzzles = [PuzzleDefinition.from_dict(p) for p in data.get("puzzles", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise PuzzleCatalogUnavailable(f"Malformed catalog {self.path}: {e}") from e
        return InMemoryCatalog(themes=themes, puzzles=puzzles)

    async def get_theme(self, theme_id: str) -> Theme:
        return await self._read().get_theme(theme_id)

    async def list_puzzles(self, theme_id: str) -> list[PuzzleDefinition]:
        return await self._read().list_puzzles(theme_id)

    def list_themes(self) -> list[Theme]:
        return self._read().list_themes()

    async def load(self, theme_id: str) -> PuzzleCatalog:
        # One read for theme and puzzles so both come from the same file version
        return await self._read().load(theme_id)
