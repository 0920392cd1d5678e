"""Serialization helpers for encounter persistence."""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Mapping

from combat_tracker.domain.combat_models import (
    Combatant,
    ConditionAttachment,
    EncounterMeta,
    EncounterRecord,
)
from combat_tracker.domain.defs import ConditionType
from combat_tracker.services.errors import PersistenceError

SavePayload = Dict[str, Any]


class EncounterSaveService:
    """Converts encounter records to/from a validated, versioned payload."""

    SAVE_VERSION = 1

    def serialize(self, record: EncounterRecord) -> SavePayload:
        """Return a JSON-serializable payload for disk persistence."""
        return {
            "save_version": self.SAVE_VERSION,
            "encounter": self.serialize_meta(record.meta),
            "state": {
                "round_number": record.round_number,
                "active_combatant_id": record.active_combatant_id,
            },
            "combatants": [self.serialize_combatant(c) for c in record.combatants],
            "conditions": [self.serialize_attachment(a) for a in record.attachments],
        }

    def deserialize(self, payload: Mapping[str, Any]) -> EncounterRecord:
        """Rehydrate an EncounterRecord from a persisted payload."""
        if not isinstance(payload, Mapping):
            raise PersistenceError("Encounter data must be a JSON object.")
        if payload.get("save_version") != self.SAVE_VERSION:
            raise PersistenceError("Encounter save format is not supported.")
        state = self._require_dict(payload.get("state"), "state")
        meta = self.deserialize_meta(self._require_dict(payload.get("encounter"), "encounter"))

        round_number = self._require_int(state.get("round_number"), "state.round_number")
        if round_number < 1:
            raise PersistenceError("state.round_number must be at least 1.")
        active_id = self._coerce_optional_str(state.get("active_combatant_id"), "state.active_combatant_id")

        combatants = [
            self.deserialize_combatant(entry)
            for entry in self._require_list(payload.get("combatants"), "combatants")
        ]
        combatant_ids = [c.id for c in combatants]
        if len(set(combatant_ids)) != len(combatant_ids):
            raise PersistenceError("combatants contain duplicate ids.")

        attachments = [
            self.deserialize_attachment(entry)
            for entry in self._require_list(payload.get("conditions", []), "conditions")
        ]
        seen_pairs: set[tuple[str, ConditionType]] = set()
        for attachment in attachments:
            if attachment.combatant_id not in combatant_ids:
                raise PersistenceError(
                    f"Condition '{attachment.id}' references unknown combatant '{attachment.combatant_id}'."
                )
            pair = (attachment.combatant_id, attachment.condition_type)
            if pair in seen_pairs:
                raise PersistenceError(
                    f"Condition {attachment.condition_type.display_name} stored twice for '{attachment.combatant_id}'."
                )
            seen_pairs.add(pair)

        return EncounterRecord(
            meta=meta,
            round_number=round_number,
            active_combatant_id=active_id,
            combatants=tuple(combatants),
            attachments=tuple(attachments),
        )

    @staticmethod
    def serialize_meta(meta: EncounterMeta) -> Dict[str, Any]:
        return {
            "id": meta.id,
            "name": meta.name,
            "created_at": meta.created_at.isoformat(),
            "updated_at": meta.updated_at.isoformat(),
        }

    def deserialize_meta(self, value: Mapping[str, Any]) -> EncounterMeta:
        return EncounterMeta(
            id=self._require_str(value.get("id"), "encounter.id"),
            name=self._require_str(value.get("name"), "encounter.name"),
            created_at=self._require_datetime(value.get("created_at"), "encounter.created_at"),
            updated_at=self._require_datetime(value.get("updated_at"), "encounter.updated_at"),
        )

    @staticmethod
    def serialize_combatant(combatant: Combatant) -> Dict[str, Any]:
        return {
            "id": combatant.id,
            "base_actor_id": combatant.base_actor_id,
            "display_name": combatant.display_name,
            "added_order": combatant.added_order,
            "initiative": combatant.initiative,
            "initiative_modifier": combatant.initiative_modifier,
            "is_npc_like": combatant.is_npc_like,
            "tie_break_order": combatant.tie_break_order,
            "has_taken_turn": combatant.has_taken_turn,
        }

    def deserialize_combatant(self, value: Any) -> Combatant:
        data = self._require_dict(value, "combatants[]")
        combatant_id = self._require_str(data.get("id"), "combatants[].id")
        context = f"combatant '{combatant_id}'"
        return Combatant(
            id=combatant_id,
            base_actor_id=self._require_str(data.get("base_actor_id"), f"{context}.base_actor_id"),
            display_name=self._require_str(data.get("display_name"), f"{context}.display_name"),
            added_order=self._require_int(data.get("added_order"), f"{context}.added_order"),
            initiative=self._coerce_optional_number(data.get("initiative"), f"{context}.initiative"),
            initiative_modifier=self._require_int(
                data.get("initiative_modifier", 0), f"{context}.initiative_modifier"
            ),
            is_npc_like=self._require_bool(data.get("is_npc_like", True), f"{context}.is_npc_like"),
            tie_break_order=self._require_int(data.get("tie_break_order", 0), f"{context}.tie_break_order"),
            has_taken_turn=self._require_bool(data.get("has_taken_turn", False), f"{context}.has_taken_turn"),
        )

    @staticmethod
    def serialize_attachment(attachment: ConditionAttachment) -> Dict[str, Any]:
        return {
            "id": attachment.id,
            "combatant_id": attachment.combatant_id,
            "condition_id": attachment.condition_type.type_id,
            "applied_at_round": attachment.applied_at_round,
            "is_permanent": attachment.is_permanent,
            "remaining_duration": attachment.remaining_duration,
        }

    def deserialize_attachment(self, value: Any) -> ConditionAttachment:
        data = self._require_dict(value, "conditions[]")
        attachment_id = self._require_str(data.get("id"), "conditions[].id")
        context = f"condition '{attachment_id}'"
        condition_id = self._require_int(data.get("condition_id"), f"{context}.condition_id")
        try:
            condition_type = ConditionType.from_id(condition_id)
        except KeyError as exc:
            raise PersistenceError(f"{context} has unknown condition id {condition_id}.") from exc
        is_permanent = self._require_bool(data.get("is_permanent"), f"{context}.is_permanent")
        remaining = data.get("remaining_duration")
        if is_permanent:
            remaining = None
        else:
            remaining = self._require_int(remaining, f"{context}.remaining_duration")
        return ConditionAttachment(
            id=attachment_id,
            combatant_id=self._require_str(data.get("combatant_id"), f"{context}.combatant_id"),
            condition_type=condition_type,
            applied_at_round=self._require_int(data.get("applied_at_round"), f"{context}.applied_at_round"),
            is_permanent=is_permanent,
            remaining_duration=remaining,
        )

    @staticmethod
    def _require_str(value: Any, context: str) -> str:
        if not isinstance(value, str):
            raise PersistenceError(f"{context} must be a string.")
        return value

    @staticmethod
    def _require_int(value: Any, context: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise PersistenceError(f"{context} must be an integer.")
        return value

    @staticmethod
    def _require_bool(value: Any, context: str) -> bool:
        if not isinstance(value, bool):
            raise PersistenceError(f"{context} must be a boolean.")
        return value

    def _coerce_optional_str(self, value: Any, context: str) -> str | None:
        if value is None:
            return None
        return self._require_str(value, context)

    @staticmethod
    def _coerce_optional_number(value: Any, context: str) -> float | None:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise PersistenceError(f"{context} must be a finite number or null.")
        return float(value)

    @staticmethod
    def _require_datetime(value: Any, context: str) -> datetime:
        if not isinstance(value, str):
            raise PersistenceError(f"{context} must be an ISO timestamp string.")
        try:
            return datetime.fromisoformat(value)
        except ValueError as exc:
            raise PersistenceError(f"{context} is not a valid timestamp.") from exc

    @staticmethod
    def _require_dict(value: Any, context: str) -> Dict[str, Any]:
        if not isinstance(value, Mapping):
            raise PersistenceError(f"{context} must be an object.")
        return dict(value)

    @staticmethod
    def _require_list(value: Any, context: str) -> List[Any]:
        if not isinstance(value, list):
            raise PersistenceError(f"{context} must be a list.")
        return value
