"""Interactive encounter session: state machine plus persistence."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, List, Mapping, Tuple

from loguru import logger

from combat_tracker.core.rng import RNG
from combat_tracker.core.types import TieBreakDirection
from combat_tracker.data.errors import DataError, DataIntegrityError
from combat_tracker.data.repositories import ActorsRepository
from combat_tracker.domain.combat_models import (
    Combatant,
    CombatSnapshot,
    ConditionAttachment,
    EncounterMeta,
    EncounterRecord,
)
from combat_tracker.domain.defs import ActorDef, ConditionType
from combat_tracker.domain.initiative import RollMode
from combat_tracker.services.combat_state_machine import (
    CombatantRemovedEvent,
    CombatEvent,
    CombatStateMachine,
    ConditionAppliedEvent,
    ConditionDurationChangedEvent,
    ConditionExpiredEvent,
    ConditionRemovedEvent,
    SnapshotListener,
)
from combat_tracker.services.encounter_repository import EncounterRepository
from combat_tracker.services.errors import (
    DuplicateError,
    DuplicateInstanceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from combat_tracker.services.factories import create_combatant, make_instance_id
from combat_tracker.services.save_dispatcher import SaveDispatcher, SaveWarning

AUTO_NAME_PREFIX = "ENCsave_"
MAX_ENCOUNTER_NAME_LENGTH = 100


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class InitiativeRollResult:
    """Result returned after a group initiative roll."""

    combatants: Tuple[Combatant, ...] = ()
    events: List[CombatEvent] = field(default_factory=list)


class EncounterSession:
    """
    Application service that runs one encounter at a time.

    Commands mutate the in-memory state synchronously and hand persistence
    to the ``SaveDispatcher``; condition changes and removals are written
    incrementally, while round, active combatant and roster are written by
    ``save()`` or, with ``autosave``, after every snapshot. Commands must be
    issued from inside a running event loop; outside one they raise
    ``ValidationError`` before any state changes.
    """

    def __init__(
        self,
        repository: EncounterRepository,
        actors_repo: ActorsRepository,
        rng: RNG,
        *,
        dispatcher: SaveDispatcher | None = None,
        autosave: bool = False,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repository = repository
        self._actors_repo = actors_repo
        self._rng = rng
        self._dispatcher = dispatcher or SaveDispatcher()
        self._autosave = autosave
        self._clock = clock
        self._machine = CombatStateMachine(rng)
        self._encounter_id: str | None = None
        self._loading = False
        self._machine.subscribe(self._on_snapshot)

    # -----------------------
    # Session state
    # -----------------------
    @property
    def machine(self) -> CombatStateMachine:
        return self._machine

    @property
    def is_loaded(self) -> bool:
        return self._encounter_id is not None

    @property
    def encounter_id(self) -> str:
        return self._require_loaded()

    @property
    def snapshot(self) -> CombatSnapshot:
        self._require_loaded()
        return self._machine.snapshot

    @property
    def warnings(self) -> Tuple[SaveWarning, ...]:
        return self._dispatcher.warnings

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self._machine.subscribe(listener)

    async def flush(self) -> None:
        """Wait for every background save issued so far."""
        await self._dispatcher.flush()

    # -----------------------
    # Checkpoints
    # -----------------------
    async def list_encounters(self) -> List[EncounterMeta]:
        return await self._dispatcher.run("list encounters", self._repository.list_encounters)

    async def load(self, encounter_id: str) -> CombatSnapshot:
        """
        Load an encounter and enter it.

        Combatants whose library actor no longer exists are dropped with
        their conditions. Fails with ``PersistenceError`` when nothing
        valid is left; the previous session state is kept in that case.
        """
        record = await self._dispatcher.run("load encounter", self._repository.load_encounter, encounter_id)
        record = self._reconcile_with_library(record)
        if not record.combatants:
            raise PersistenceError(f"Encounter '{encounter_id}' has no valid combatants.")

        self._loading = True
        try:
            snapshot = self._machine.initialize(record)
        finally:
            self._loading = False
        self._encounter_id = record.meta.id
        logger.info("Loaded encounter '{}' ({})", record.meta.name, record.meta.id)
        return snapshot

    async def save(self) -> None:
        """Write round, active combatant and roster; raises ``PersistenceError`` on failure."""
        encounter_id = self._require_loaded()
        record = self._machine.to_record()
        await self._dispatcher.run(
            "save encounter",
            self._repository.save_encounter_state,
            encounter_id,
            record.round_number,
            record.active_combatant_id,
            record.combatants,
            self._clock(),
        )
        logger.info("Saved encounter {} at round {}", encounter_id, record.round_number)

    async def save_as(self, name: str | None = None) -> EncounterMeta:
        """Copy the live encounter, conditions included, into a new stored encounter."""
        self._require_loaded()
        now = self._clock()
        meta = EncounterMeta(
            id=await self._new_encounter_id(),
            name=self._normalize_name(name, now),
            created_at=now,
            updated_at=now,
        )
        record = replace(self._machine.to_record(), meta=meta)
        await self._create(record)
        return meta

    async def create_encounter(self, name: str | None, actor_counts: Mapping[str, int]) -> EncounterMeta:
        """
        Store a new encounter holding ``count`` instances of each library actor.

        A blank name is replaced by an ``ENCsave_<timestamp>`` name. The new
        encounter is not entered; call ``load`` for that.
        """
        combatants: List[Combatant] = []
        for actor_id, count in actor_counts.items():
            if isinstance(count, bool) or not isinstance(count, int) or count < 1:
                raise ValidationError(f"Count for actor '{actor_id}' must be a positive integer.")
            actor = self._require_actor(actor_id)
            for _ in range(count):
                combatants.append(create_combatant(actor, combatants, self._rng))
        if not combatants:
            raise ValidationError("An encounter needs at least one combatant.")

        now = self._clock()
        meta = EncounterMeta(
            id=await self._new_encounter_id(),
            name=self._normalize_name(name, now),
            created_at=now,
            updated_at=now,
        )
        await self._create(EncounterRecord(meta=meta, combatants=tuple(combatants)))
        return meta

    async def add_combatant(self, base_actor_id: str, initiative: float | None = None) -> List[CombatEvent]:
        """Instantiate a library actor into the live encounter."""
        encounter_id = self._require_loaded()
        actor = self._require_actor(base_actor_id)
        combatant = self._machine.prepare_combatant(actor, initiative)
        try:
            await self._dispatcher.run(
                "add combatant", self._repository.insert_combatant, encounter_id, combatant
            )
        except DataIntegrityError as exc:
            raise DuplicateInstanceError(
                f"Could not add '{combatant.display_name}': the store already holds a clashing instance."
            ) from exc
        return self._machine.add_combatant(combatant)

    # -----------------------
    # Commands
    # -----------------------
    def next_turn(self) -> List[CombatEvent]:
        self._require_event_loop()
        return self._persist("Turn advance", self._machine.next_turn())

    def previous_turn(self) -> List[CombatEvent]:
        self._require_event_loop()
        return self._persist("Turn reversal", self._machine.previous_turn())

    def next_round(self) -> List[CombatEvent]:
        self._require_event_loop()
        return self._persist("Round advance", self._machine.next_round())

    def previous_round(self) -> List[CombatEvent]:
        self._require_event_loop()
        return self._persist("Round reversal", self._machine.previous_round())

    def roll_initiative(self, mode: RollMode) -> InitiativeRollResult:
        self._require_event_loop()
        events = self._machine.roll_initiative(mode)
        return InitiativeRollResult(combatants=self._machine.combatants, events=events)

    def set_initiative(self, combatant_id: str, value: float) -> List[CombatEvent]:
        self._require_event_loop()
        return self._machine.set_initiative(combatant_id, value)

    def move_in_tie(self, combatant_id: str, direction: TieBreakDirection) -> List[CombatEvent]:
        self._require_event_loop()
        return self._machine.move_in_tie(combatant_id, direction)

    def remove_combatant(self, combatant_id: str) -> List[CombatEvent]:
        self._require_event_loop()
        return self._persist("Combatant removal", self._machine.remove_combatant(combatant_id))

    def apply_condition(
        self,
        combatant_id: str,
        condition: ConditionType | int,
        *,
        is_permanent: bool,
        duration: int | None = None,
    ) -> List[CombatEvent]:
        self._require_event_loop()
        events = self._machine.apply_condition(
            combatant_id, condition, is_permanent=is_permanent, duration=duration
        )
        return self._persist("Condition change", events)

    def update_condition(
        self, attachment_id: str, *, is_permanent: bool, duration: int | None = None
    ) -> List[CombatEvent]:
        self._require_event_loop()
        events = self._machine.update_condition(attachment_id, is_permanent=is_permanent, duration=duration)
        return self._persist("Condition change", events)

    def remove_condition(self, attachment_id: str) -> List[CombatEvent]:
        self._require_event_loop()
        return self._persist("Condition change", self._machine.remove_condition(attachment_id))

    def conditions_for(self, combatant_id: str) -> Tuple[ConditionAttachment, ...]:
        return tuple(
            sorted(self._machine.conditions_for(combatant_id), key=lambda a: a.condition_type.type_id)
        )

    # -----------------------
    # Helpers
    # -----------------------
    def _require_loaded(self) -> str:
        if self._encounter_id is None:
            raise ValidationError("No encounter is loaded.")
        return self._encounter_id

    @staticmethod
    def _require_event_loop() -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError as exc:
            raise ValidationError("Session commands must be issued from inside a running event loop.") from exc

    def _find_actor(self, actor_id: str) -> ActorDef | None:
        try:
            return self._actors_repo.find(actor_id)
        except DataError as exc:
            raise PersistenceError(f"Actor library could not be read: {exc}") from exc

    def _require_actor(self, actor_id: str) -> ActorDef:
        actor = self._find_actor(actor_id)
        if actor is None:
            raise NotFoundError(f"Actor '{actor_id}' not found in the library.")
        return actor

    def _reconcile_with_library(self, record: EncounterRecord) -> EncounterRecord:
        kept: List[Combatant] = []
        for combatant in record.combatants:
            actor = self._find_actor(combatant.base_actor_id)
            if actor is None:
                logger.warning(
                    "Dropping {} from encounter {}: actor '{}' no longer exists",
                    combatant.display_name,
                    record.meta.id,
                    combatant.base_actor_id,
                )
                continue
            kept.append(replace(combatant, is_npc_like=actor.category.is_npc_like))
        kept_ids = {c.id for c in kept}
        return replace(
            record,
            combatants=tuple(kept),
            attachments=tuple(a for a in record.attachments if a.combatant_id in kept_ids),
            active_combatant_id=record.active_combatant_id if record.active_combatant_id in kept_ids else None,
        )

    def _normalize_name(self, name: str | None, now: datetime) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            return f"{AUTO_NAME_PREFIX}{now.strftime('%Y%m%d_%H%M%S')}"
        if len(cleaned) > MAX_ENCOUNTER_NAME_LENGTH:
            raise ValidationError(f"Encounter name exceeds {MAX_ENCOUNTER_NAME_LENGTH} characters.")
        return cleaned

    async def _new_encounter_id(self) -> str:
        taken = {meta.id for meta in await self.list_encounters()}
        return make_instance_id("enc", self._rng, taken=taken)

    async def _create(self, record: EncounterRecord) -> None:
        try:
            await self._dispatcher.run("create encounter", self._repository.create_encounter, record)
        except DataIntegrityError as exc:
            raise DuplicateError(f"Encounter '{record.meta.id}' already exists.") from exc

    def _persist(self, label: str, events: List[CombatEvent]) -> List[CombatEvent]:
        encounter_id = self._encounter_id
        if encounter_id is None:
            return events
        repo = self._repository
        for event in events:
            if isinstance(event, ConditionAppliedEvent):
                self._dispatcher.submit(label, repo.insert_condition, encounter_id, event.attachment)
            elif isinstance(event, ConditionDurationChangedEvent):
                self._dispatcher.submit(label, repo.update_condition, encounter_id, event.attachment)
            elif isinstance(event, (ConditionRemovedEvent, ConditionExpiredEvent)):
                self._dispatcher.submit(label, repo.delete_condition, encounter_id, event.attachment.id)
            elif isinstance(event, CombatantRemovedEvent):
                self._dispatcher.submit(label, repo.delete_combatant, encounter_id, event.combatant.id)
        return events

    def _on_snapshot(self, snapshot: CombatSnapshot) -> None:
        if not self._autosave or self._loading or self._encounter_id is None:
            return
        record = self._machine.to_record()
        self._dispatcher.submit_state(
            snapshot.version,
            "State update",
            self._repository.save_encounter_state,
            self._encounter_id,
            record.round_number,
            record.active_combatant_id,
            record.combatants,
            self._clock(),
        )
