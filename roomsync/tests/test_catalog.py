"""
Tests for the puzzle catalog.

Tests:
- Ordering queries used by both engines
- Authoring validation
- JSON file catalog
"""

import asyncio
import json

import pytest

from ..catalog import (
    JsonFileCatalog,
    PuzzleCatalog,
    PuzzleDefinition,
    PuzzleKind,
    RemoteTrigger,
    Theme,
    validate_catalog,
)
from ..engine_core.state import MediaEffect
from ..errors import PuzzleCatalogUnavailable, ThemeNotFound
from .conftest import physical, trigger


class TestPuzzleCatalog:
    """Tests for catalog ordering queries."""

    def test_sorted_by_sequence(self, theme):
        """Puzzles are ordered by sequence regardless of input order."""
        catalog = PuzzleCatalog(theme=theme, puzzles=[physical(3), physical(1), physical(2)])
        assert [p.sequence for p in catalog.puzzles] == [1, 2, 3]

    def test_first_trigger(self, catalog):
        assert catalog.first_trigger_sequence() == 2

    def test_first_trigger_without_triggers(self, theme):
        """No trigger puzzles means the pointer starts at 1."""
        catalog = PuzzleCatalog(theme=theme, puzzles=[physical(1)])
        assert catalog.first_trigger_sequence() == 1
        assert catalog.ending_sequence() == 1

    def test_next_trigger_after_is_strict(self, catalog):
        assert catalog.next_trigger_after(2).sequence == 5
        assert catalog.next_trigger_after(1).sequence == 2
        assert catalog.next_trigger_after(5) is None

    def test_next_trigger_from_is_inclusive(self, catalog):
        assert catalog.next_trigger_from(2).sequence == 2
        assert catalog.next_trigger_from(3).sequence == 5
        assert catalog.next_trigger_from(6) is None

    def test_triggers_before(self, catalog):
        assert [p.sequence for p in catalog.triggers_before(5)] == [2]
        assert [p.sequence for p in catalog.triggers_before(6)] == [2, 5]
        assert catalog.triggers_before(2) == []

    def test_ending_sequence(self, catalog):
        """Ending is one past the last trigger puzzle."""
        assert catalog.ending_sequence() == 6

    def test_trigger_at_checks_role(self, catalog):
        assert catalog.trigger_at(2, "A").sequence == 2
        assert catalog.trigger_at(2, "B") is None
        assert catalog.trigger_at(3, "A") is None

    def test_find_by_code(self, catalog):
        assert catalog.find_by_code("P5").sequence == 5
        assert catalog.find_by_code("nope") is None

    def test_all_roles(self, catalog):
        """Primary role first, then the theme's roles without duplicates."""
        assert catalog.all_roles("A") == ["A", "B"]
        assert catalog.all_roles("B") == ["B"]


class TestPuzzleDefinition:
    """Tests for PuzzleDefinition parsing and matching."""

    def test_matches_trims_answer(self):
        puzzle = trigger(2, "A", "1234")
        assert puzzle.matches(" 1234\n")
        assert not puzzle.matches("1235")

    def test_from_dict(self):
        puzzle = PuzzleDefinition.from_dict({
            "id": "abc",
            "theme_id": "lab",
            "sequence": "5",
            "kind": "trigger",
            "code": "P5",
            "solution": "OPEN",
            "role": "A",
            "effect": {},
            "triggers": [{"target_role": "B", "effect": {"image": "I"}}],
        })
        assert puzzle.puzzle_id == "abc"
        assert puzzle.sequence == 5
        assert puzzle.kind == PuzzleKind.TRIGGER
        assert puzzle.effect == MediaEffect.empty()
        assert puzzle.triggers == [RemoteTrigger("B", MediaEffect(image="I"))]

    def test_from_dict_physical_without_effect(self):
        """Physical puzzles carry no effect."""
        puzzle = PuzzleDefinition.from_dict(
            {"theme_id": "lab", "sequence": 1, "code": "P1"}
        )
        assert puzzle.effect is None
        assert puzzle.kind == PuzzleKind.PHYSICAL
        assert puzzle.puzzle_id == "P1"

    @pytest.mark.parametrize("data", [{}, {"effect": None}])
    def test_from_dict_trigger_without_effect(self, data):
        """A trigger with a missing or null effect blanks its device."""
        puzzle = PuzzleDefinition.from_dict({
            "theme_id": "lab", "sequence": 5, "kind": "trigger",
            "code": "P5", "solution": "OPEN", "role": "A", **data,
        })
        assert puzzle.effect == MediaEffect.empty()


class TestValidation:
    """Tests for catalog validation."""

    def test_valid_catalog(self, catalog):
        result = validate_catalog(catalog)
        assert result.valid
        assert result.errors == []

    def test_duplicate_sequence(self, theme):
        catalog = PuzzleCatalog(theme=theme, puzzles=[physical(1), trigger(1, "A", "x")])
        result = validate_catalog(catalog)
        assert not result.valid
        assert any("Duplicate sequence" in e for e in result.errors)

    def test_trigger_without_role(self, theme):
        catalog = PuzzleCatalog(theme=theme, puzzles=[trigger(1, "", "x")])
        result = validate_catalog(catalog)
        assert any("no assigned device role" in e for e in result.errors)

    def test_trigger_targets_own_role(self, theme):
        puzzle = trigger(1, "A", "x", triggers=[RemoteTrigger("A", MediaEffect(image="I"))])
        result = validate_catalog(PuzzleCatalog(theme=theme, puzzles=[puzzle]))
        assert any("targets its own role" in e for e in result.errors)

    def test_duplicate_target(self, theme):
        puzzle = trigger(1, "A", "x", triggers=[
            RemoteTrigger("B", MediaEffect(image="I")),
            RemoteTrigger("B", MediaEffect(image="J")),
        ])
        result = validate_catalog(PuzzleCatalog(theme=theme, puzzles=[puzzle]))
        assert any("targets 'B' twice" in e for e in result.errors)

    def test_dotted_role_names(self, theme):
        puzzle = trigger(1, "A.1", "x", triggers=[RemoteTrigger("B.2", MediaEffect(image="I"))])
        result = validate_catalog(PuzzleCatalog(theme=theme, puzzles=[puzzle]))
        assert not result.valid
        assert any("role 'A.1' contains '.'" in e for e in result.errors)
        assert any("role 'B.2' contains '.'" in e for e in result.errors)

    def test_no_triggers_warns(self, theme):
        result = validate_catalog(PuzzleCatalog(theme=theme, puzzles=[physical(1)]))
        assert result.valid
        assert result.warnings


class TestJsonFileCatalog:
    """Tests for the JSON file catalog."""

    @pytest.fixture
    def catalog_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({
            "themes": [{
                "id": "lab",
                "title": "The Lab",
                "opening": {"video": "intro.mp4"},
                "available_roles": ["B"],
            }],
            "puzzles": [
                {"theme_id": "lab", "sequence": 5, "kind": "trigger", "code": "P5",
                 "solution": "OPEN", "role": "A", "effect": {},
                 "triggers": [{"target_role": "B", "effect": {"image": "I"}}]},
                {"theme_id": "lab", "sequence": 2, "kind": "trigger", "code": "P2",
                 "solution": "1234", "role": "A", "effect": {"video": "V"}},
                {"theme_id": "other", "sequence": 1, "kind": "physical", "code": "X1"},
            ],
        }), encoding="utf-8")
        return path

    def test_load(self, catalog_file):
        """Loads one theme with its puzzles in sequence order."""
        catalog = asyncio.run(JsonFileCatalog(catalog_file).load("lab"))
        assert catalog.theme.opening == MediaEffect(video="intro.mp4")
        assert [p.sequence for p in catalog.puzzles] == [2, 5]
        assert catalog.get(2).effect == MediaEffect(video="V")

    def test_list_themes(self, catalog_file):
        assert [t.theme_id for t in JsonFileCatalog(catalog_file).list_themes()] == ["lab"]

    def test_missing_theme(self, catalog_file):
        with pytest.raises(ThemeNotFound):
            asyncio.run(JsonFileCatalog(catalog_file).load("nope"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(PuzzleCatalogUnavailable):
            asyncio.run(JsonFileCatalog(tmp_path / "missing.json").load("lab"))

    def test_malformed_file(self, tmp_path):
        """Broken JSON and missing required keys both surface as unavailable."""
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        with pytest.raises(PuzzleCatalogUnavailable):
            asyncio.run(JsonFileCatalog(broken).load("lab"))

        incomplete = tmp_path / "incomplete.json"
        incomplete.write_text(json.dumps({"themes": [{"title": "no id"}]}), encoding="utf-8")
        with pytest.raises(PuzzleCatalogUnavailable):
            asyncio.run(JsonFileCatalog(incomplete).load("lab"))

    def test_reads_edits(self, catalog_file):
        """Edits to the file are picked up without a new source."""
        source = JsonFileCatalog(catalog_file)
        assert asyncio.run(source.get_theme("lab")).title == "The Lab"

        data = json.loads(catalog_file.read_text(encoding="utf-8"))
        data["themes"][0]["title"] = "The New Lab"
        catalog_file.write_text(json.dumps(data), encoding="utf-8")
        assert asyncio.run(source.get_theme("lab")).title == "The New Lab"
