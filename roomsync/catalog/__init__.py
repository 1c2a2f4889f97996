"""
Catalog - Read-only themes and puzzles.

The catalog is owned by the authoring subsystem. The engines only ask
it ordering questions: which trigger comes next, which come before N.
"""

from .models import PuzzleKind, RemoteTrigger, PuzzleDefinition, Theme, PuzzleCatalog
from .source import CatalogSource, InMemoryCatalog, JsonFileCatalog
from .validation import ValidationResult, validate_catalog

__all__ = [
    "PuzzleKind",
    "RemoteTrigger",
    "PuzzleDefinition",
    "Theme",
    "PuzzleCatalog",
    "CatalogSource",
    "InMemoryCatalog",
    "JsonFileCatalog",
    "ValidationResult",
    "validate_catalog",
]
