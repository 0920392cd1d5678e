"""Actor library repository."""
from __future__ import annotations

from typing import Dict

from combat_tracker.data.errors import DataValidationError
from combat_tracker.data.repositories.base import RepositoryBase
from combat_tracker.domain.defs import ActorCategory, ActorDef

MIN_INITIATIVE_MODIFIER = -99
MAX_INITIATIVE_MODIFIER = 99
MAX_NAME_LENGTH = 100


class ActorsRepository(RepositoryBase[ActorDef]):
    """Loads and validates the actor library."""

    def __init__(self, base_path=None) -> None:
        super().__init__("actors.json", base_path)

    def _build(self, raw: dict[str, object]) -> Dict[str, ActorDef]:
        actors: Dict[str, ActorDef] = {}
        for raw_id, payload in raw.items():
            context = f"actor '{raw_id}'"
            actor_data = self._require_mapping(payload, context)
            missing = {"name", "category"} - actor_data.keys()
            if missing:
                raise DataValidationError(f"{context} missing fields: {sorted(missing)}")

            name = actor_data["name"]
            if not isinstance(name, str) or not name.strip():
                raise DataValidationError(f"{context} name must be a non-empty string.")
            if len(name) > MAX_NAME_LENGTH:
                raise DataValidationError(f"{context} name exceeds {MAX_NAME_LENGTH} characters.")

            modifier = actor_data.get("initiative_modifier", 0)
            if isinstance(modifier, bool) or not isinstance(modifier, int):
                raise DataValidationError(f"{context} initiative_modifier must be an integer.")
            if not MIN_INITIATIVE_MODIFIER <= modifier <= MAX_INITIATIVE_MODIFIER:
                raise DataValidationError(
                    f"{context} initiative_modifier must be between "
                    f"{MIN_INITIATIVE_MODIFIER} and {MAX_INITIATIVE_MODIFIER}."
                )

            actors[raw_id] = ActorDef(
                id=raw_id,
                name=name.strip(),
                category=self._require_category(actor_data["category"], context),
                initiative_modifier=modifier,
            )
        return actors

    @staticmethod
    def _require_category(value: object, context: str) -> ActorCategory:
        try:
            return ActorCategory(value)
        except ValueError as exc:
            raise DataValidationError(f"{context} has unknown category {value!r}.") from exc
