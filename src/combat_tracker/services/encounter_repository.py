"""Encounter persistence collaborator."""
from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Protocol, Sequence

from loguru import logger

from combat_tracker.data.encounter_store import EncounterFileStore
from combat_tracker.data.errors import DataError, DataIntegrityError
from combat_tracker.domain.combat_models import (
    Combatant,
    ConditionAttachment,
    EncounterMeta,
    EncounterRecord,
)
from combat_tracker.services.errors import PersistenceError
from combat_tracker.services.save_service import EncounterSaveService


class EncounterRepository(Protocol):
    """
    Storage contract used by the encounter session.

    Uniqueness violations surface as ``DataIntegrityError``; any other
    failure to read or write surfaces as ``PersistenceError``.
    """

    def list_encounters(self) -> List[EncounterMeta]:
        ...

    def load_encounter(self, encounter_id: str) -> EncounterRecord:
        ...

    def create_encounter(self, record: EncounterRecord) -> None:
        ...

    def delete_encounter(self, encounter_id: str) -> None:
        ...

    def save_encounter_state(
        self,
        encounter_id: str,
        round_number: int,
        active_combatant_id: str | None,
        combatants: Sequence[Combatant],
        updated_at: datetime,
    ) -> None:
        ...

    def insert_combatant(self, encounter_id: str, combatant: Combatant) -> None:
        ...

    def delete_combatant(self, encounter_id: str, combatant_id: str) -> None:
        ...

    def insert_condition(self, encounter_id: str, attachment: ConditionAttachment) -> None:
        ...

    def update_condition(self, encounter_id: str, attachment: ConditionAttachment) -> None:
        ...

    def delete_condition(self, encounter_id: str, attachment_id: str) -> None:
        ...


class JsonEncounterRepository:
    """EncounterRepository backed by one JSON file per encounter."""

    def __init__(self, store: EncounterFileStore, save_service: EncounterSaveService | None = None) -> None:
        self._store = store
        self._codec = save_service or EncounterSaveService()
        self._lock = threading.RLock()

    def list_encounters(self) -> List[EncounterMeta]:
        metas: List[EncounterMeta] = []
        for encounter_id in self._store.list_ids():
            try:
                metas.append(self.load_encounter(encounter_id).meta)
            except PersistenceError as exc:
                logger.warning("Skipping unreadable encounter {}: {}", encounter_id, exc)
        return sorted(metas, key=lambda meta: meta.updated_at, reverse=True)

    def load_encounter(self, encounter_id: str) -> EncounterRecord:
        with self._lock:
            try:
                if not self._store.exists(encounter_id):
                    raise PersistenceError(f"Encounter '{encounter_id}' does not exist.")
                payload = self._store.read(encounter_id)
            except DataError as exc:
                raise PersistenceError(f"Failed to read encounter '{encounter_id}': {exc}") from exc
            return self._codec.deserialize(payload)

    def create_encounter(self, record: EncounterRecord) -> None:
        with self._lock:
            try:
                exists = self._store.exists(record.meta.id)
            except DataError as exc:
                raise PersistenceError(f"Failed to create encounter '{record.meta.id}': {exc}") from exc
            if exists:
                raise DataIntegrityError(f"Encounter '{record.meta.id}' already exists.")
            self._write(record)
            logger.info("Created encounter '{}' ({})", record.meta.name, record.meta.id)

    def delete_encounter(self, encounter_id: str) -> None:
        with self._lock:
            try:
                self._store.delete(encounter_id)
            except (DataError, OSError) as exc:
                raise PersistenceError(f"Failed to delete encounter '{encounter_id}': {exc}") from exc

    def save_encounter_state(
        self,
        encounter_id: str,
        round_number: int,
        active_combatant_id: str | None,
        combatants: Sequence[Combatant],
        updated_at: datetime,
    ) -> None:
        """Replace round, active id and roster; conditions of dropped combatants go too."""

        def _apply(record: EncounterRecord) -> EncounterRecord:
            kept_ids = {c.id for c in combatants}
            return replace(
                record,
                meta=replace(record.meta, updated_at=updated_at),
                round_number=round_number,
                active_combatant_id=active_combatant_id,
                combatants=tuple(combatants),
                attachments=tuple(a for a in record.attachments if a.combatant_id in kept_ids),
            )

        self._mutate(encounter_id, _apply)
        logger.debug("Saved state of encounter {} (round {})", encounter_id, round_number)

    def insert_combatant(self, encounter_id: str, combatant: Combatant) -> None:
        def _apply(record: EncounterRecord) -> EncounterRecord:
            for existing in record.combatants:
                if existing.id == combatant.id or existing.display_name == combatant.display_name:
                    raise DataIntegrityError(
                        f"Combatant '{combatant.display_name}' already stored in encounter '{encounter_id}'."
                    )
            return replace(record, combatants=record.combatants + (combatant,))

        self._mutate(encounter_id, _apply)

    def delete_combatant(self, encounter_id: str, combatant_id: str) -> None:
        def _apply(record: EncounterRecord) -> EncounterRecord:
            return replace(
                record,
                combatants=tuple(c for c in record.combatants if c.id != combatant_id),
                attachments=tuple(a for a in record.attachments if a.combatant_id != combatant_id),
            )

        self._mutate(encounter_id, _apply)

    def insert_condition(self, encounter_id: str, attachment: ConditionAttachment) -> None:
        def _apply(record: EncounterRecord) -> EncounterRecord:
            if all(c.id != attachment.combatant_id for c in record.combatants):
                raise PersistenceError(
                    f"Combatant '{attachment.combatant_id}' is not stored in encounter '{encounter_id}'."
                )
            for existing in record.attachments:
                if existing.id == attachment.id or (
                    existing.combatant_id == attachment.combatant_id
                    and existing.condition_type is attachment.condition_type
                ):
                    raise DataIntegrityError(
                        f"{attachment.condition_type.display_name} already stored for '{attachment.combatant_id}'."
                    )
            return replace(record, attachments=record.attachments + (attachment,))

        self._mutate(encounter_id, _apply)

    def update_condition(self, encounter_id: str, attachment: ConditionAttachment) -> None:
        def _apply(record: EncounterRecord) -> EncounterRecord:
            if all(a.id != attachment.id for a in record.attachments):
                raise PersistenceError(f"Condition '{attachment.id}' is not stored in encounter '{encounter_id}'.")
            return replace(
                record,
                attachments=tuple(attachment if a.id == attachment.id else a for a in record.attachments),
            )

        self._mutate(encounter_id, _apply)

    def delete_condition(self, encounter_id: str, attachment_id: str) -> None:
        def _apply(record: EncounterRecord) -> EncounterRecord:
            return replace(record, attachments=tuple(a for a in record.attachments if a.id != attachment_id))

        self._mutate(encounter_id, _apply)

    def _mutate(self, encounter_id: str, change: Callable[[EncounterRecord], EncounterRecord]) -> None:
        with self._lock:
            self._write(change(self.load_encounter(encounter_id)))

    def _write(self, record: EncounterRecord) -> None:
        try:
            self._store.write(record.meta.id, self._codec.serialize(record))
        except (DataError, OSError, TypeError) as exc:
            raise PersistenceError(f"Failed to write encounter '{record.meta.id}': {exc}") from exc
