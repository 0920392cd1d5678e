"""Lazy, cached access to a JSON definition library keyed by id."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Generic, TypeVar

from combat_tracker.data import paths
from combat_tracker.data.errors import DataValidationError
from combat_tracker.data.json_loader import load_json

T = TypeVar("T")


class RepositoryBase(Generic[T]):
    """Reads one definitions file on first use and serves typed entries by id."""

    def __init__(self, filename: str, base_path: Path | str | None = None) -> None:
        self._path = paths.get_definitions_path(base_path) / filename
        self._definitions: Dict[str, T] | None = None

    def _build(self, raw: dict[str, object]) -> Dict[str, T]:
        """Convert the top-level JSON object into typed definitions."""
        raise NotImplementedError

    def _loaded(self) -> Dict[str, T]:
        if self._definitions is None:
            raw = load_json(self._path)
            if not isinstance(raw, dict):
                raise DataValidationError(f"Expected top-level object in {self._path}")
            self._definitions = self._build(raw)
        return self._definitions

    def get(self, def_id: str) -> T:
        """Return a definition by id; unknown ids raise KeyError."""
        return self._loaded()[def_id]

    def find(self, def_id: str) -> T | None:
        """Return a definition by id, or None when it does not resolve."""
        return self._loaded().get(def_id)

    def all(self) -> list[T]:
        """Return all definitions sorted by id."""
        definitions = self._loaded()
        return [definitions[key] for key in sorted(definitions)]

    @staticmethod
    def _require_mapping(value: object, context: str) -> dict[str, object]:
        if not isinstance(value, dict):
            raise DataValidationError(f"{context} must be an object/dict.")
        return value
