"""File-system storage for encounter payloads, one JSON file per encounter."""
from __future__ import annotations

import json
import re
import threading
from pathlib import Path
from typing import Any, Dict, List

from combat_tracker.data.errors import DataLoadError, DataValidationError
from combat_tracker.data.json_loader import load_json

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class EncounterFileStore:
    """Reads and writes raw encounter payloads under a base directory."""

    def __init__(self, base_dir: Path | str) -> None:
        self._base_dir = Path(base_dir)
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def list_ids(self) -> List[str]:
        """Return the ids of every stored encounter, sorted."""
        if not self._base_dir.exists():
            return []
        return sorted(path.stem.removeprefix("encounter_") for path in self._base_dir.glob("encounter_*.json"))

    def exists(self, encounter_id: str) -> bool:
        return self._path(encounter_id).exists()

    def read(self, encounter_id: str) -> Dict[str, Any]:
        """Load and parse the payload stored for the encounter."""
        raw = load_json(self._path(encounter_id))
        if not isinstance(raw, dict):
            raise DataLoadError(f"Encounter file for '{encounter_id}' is not a JSON object.")
        return raw

    def write(self, encounter_id: str, payload: Dict[str, Any]) -> None:
        """Persist the payload, replacing the file atomically."""
        path = self._path(encounter_id)
        with self._lock:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(path)

    def delete(self, encounter_id: str) -> None:
        path = self._path(encounter_id)
        with self._lock:
            if path.exists():
                path.unlink()

    def _path(self, encounter_id: str) -> Path:
        if not _SAFE_ID.match(encounter_id):
            raise DataValidationError(f"Invalid encounter id: {encounter_id!r}")
        return self._base_dir / f"encounter_{encounter_id}.json"
