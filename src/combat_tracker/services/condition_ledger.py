"""Bookkeeping for status conditions applied to combatants."""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, FrozenSet, Iterable, Tuple

from loguru import logger

from combat_tracker.core.rng import RNG
from combat_tracker.domain.combat_models import ConditionAttachment
from combat_tracker.domain.defs import ConditionType
from combat_tracker.services.errors import (
    DuplicateConditionError,
    InvalidDurationError,
    NotFoundError,
)
from combat_tracker.services.factories import make_instance_id


class ConditionLedger:
    """
    Authoritative in-memory store of condition attachments for one encounter.

    Each combatant holds at most one attachment per condition type. There is
    no read cache: every query and every mutation result is read back from
    the live map, so callers never see an attachment that was already
    replaced or swept.
    """

    def __init__(self, rng: RNG, attachments: Iterable[ConditionAttachment] = ()) -> None:
        self._rng = rng
        self._entries: Dict[str, Dict[ConditionType, ConditionAttachment]] = {}
        self._owners: Dict[str, str] = {}
        for attachment in attachments:
            self._store(attachment)

    # -----------------------
    # Reads
    # -----------------------
    def conditions_for(self, combatant_id: str) -> FrozenSet[ConditionAttachment]:
        return frozenset(self._entries.get(combatant_id, {}).values())

    def get(self, attachment_id: str) -> ConditionAttachment:
        combatant_id = self._owners.get(attachment_id)
        if combatant_id is None:
            raise NotFoundError(f"Condition '{attachment_id}' not found.")
        for attachment in self._entries[combatant_id].values():
            if attachment.id == attachment_id:
                return attachment
        raise NotFoundError(f"Condition '{attachment_id}' not found.")

    def all(self) -> Tuple[ConditionAttachment, ...]:
        """Return every attachment ordered by combatant then catalog id."""
        return tuple(
            attachment
            for combatant_id in sorted(self._entries)
            for attachment in sorted(
                self._entries[combatant_id].values(), key=lambda a: a.condition_type.type_id
            )
        )

    # -----------------------
    # Mutations
    # -----------------------
    def apply(
        self,
        combatant_id: str,
        condition_type: ConditionType,
        *,
        is_permanent: bool,
        duration: int | None,
        current_round: int,
    ) -> ConditionAttachment:
        """Attach a condition; the pair must be removed before re-applying."""
        self._validate_duration(is_permanent, duration)
        if condition_type in self._entries.get(combatant_id, {}):
            raise DuplicateConditionError(
                f"{condition_type.display_name} is already applied to combatant '{combatant_id}'."
            )
        attachment = ConditionAttachment(
            id=make_instance_id("cond", self._rng, taken=self._owners),
            combatant_id=combatant_id,
            condition_type=condition_type,
            applied_at_round=current_round,
            is_permanent=is_permanent,
            remaining_duration=None if is_permanent else duration,
        )
        self._store(attachment)
        logger.debug("Applied {} to {}", attachment.describe(), combatant_id)
        return self._read_back(combatant_id, condition_type)

    def remove(self, attachment_id: str) -> ConditionAttachment:
        attachment = self.get(attachment_id)
        self._discard(attachment)
        logger.debug("Removed {} from {}", attachment.condition_type.display_name, attachment.combatant_id)
        return attachment

    def replace(
        self,
        attachment_id: str,
        *,
        is_permanent: bool,
        duration: int | None,
        current_round: int,
    ) -> ConditionAttachment:
        """Remove an attachment and re-apply its type with new parameters."""
        existing = self.get(attachment_id)
        self._validate_duration(is_permanent, duration)
        self.remove(attachment_id)
        return self.apply(
            existing.combatant_id,
            existing.condition_type,
            is_permanent=is_permanent,
            duration=duration,
            current_round=current_round,
        )

    def remove_all_for(self, combatant_id: str) -> Tuple[ConditionAttachment, ...]:
        removed = tuple(self._entries.pop(combatant_id, {}).values())
        for attachment in removed:
            self._owners.pop(attachment.id, None)
        return removed

    def advance_round(self) -> Tuple[ConditionAttachment, ...]:
        """Count one round off every timed attachment and return the updated ones."""
        updated: list[ConditionAttachment] = []
        for attachment in self.all():
            if attachment.is_permanent:
                continue
            ticked = replace(attachment, remaining_duration=(attachment.remaining_duration or 0) - 1)
            self._store(ticked)
            updated.append(self._read_back(ticked.combatant_id, ticked.condition_type))
        return tuple(updated)

    def sweep_expired(self) -> Tuple[ConditionAttachment, ...]:
        """Delete timed attachments whose remaining duration reached zero."""
        expired = tuple(attachment for attachment in self.all() if attachment.is_expired)
        for attachment in expired:
            self._discard(attachment)
        if expired:
            logger.info("Swept {} expired condition(s)", len(expired))
        return expired

    # -----------------------
    # Helpers
    # -----------------------
    @staticmethod
    def _validate_duration(is_permanent: bool, duration: int | None) -> None:
        if is_permanent:
            return
        if duration is None or isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
            raise InvalidDurationError("Duration required for non-permanent conditions.")

    def _store(self, attachment: ConditionAttachment) -> None:
        self._entries.setdefault(attachment.combatant_id, {})[attachment.condition_type] = attachment
        self._owners[attachment.id] = attachment.combatant_id

    def _discard(self, attachment: ConditionAttachment) -> None:
        per_combatant = self._entries.get(attachment.combatant_id, {})
        per_combatant.pop(attachment.condition_type, None)
        if not per_combatant:
            self._entries.pop(attachment.combatant_id, None)
        self._owners.pop(attachment.id, None)

    def _read_back(self, combatant_id: str, condition_type: ConditionType) -> ConditionAttachment:
        return self._entries[combatant_id][condition_type]
