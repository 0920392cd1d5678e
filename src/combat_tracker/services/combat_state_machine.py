"""Turn and round state machine for a single encounter."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Callable, FrozenSet, List, Sequence, Set, Tuple

from loguru import logger

from combat_tracker.core.rng import RNG
from combat_tracker.core.types import TieBreakDirection
from combat_tracker.domain.combat_models import (
    Combatant,
    CombatantView,
    CombatSnapshot,
    ConditionAttachment,
    EncounterMeta,
    EncounterRecord,
)
from combat_tracker.domain.defs import ActorDef, ConditionType
from combat_tracker.domain.initiative import RollMode, format_initiative, roll_for_group
from combat_tracker.domain.turn_order import detect_tied_players, resolve_tie, sort_combatants
from combat_tracker.services.condition_ledger import ConditionLedger
from combat_tracker.services.errors import DuplicateInstanceError, NotFoundError, ValidationError
from combat_tracker.services.factories import create_combatant

SnapshotListener = Callable[[CombatSnapshot], None]


@dataclass(slots=True)
class CombatEvent:
    """Base combat event."""


@dataclass(slots=True)
class InitiativeRolledEvent(CombatEvent):
    combatant_id: str
    combatant_name: str
    initiative: float
    description: str


@dataclass(slots=True)
class InitiativeSetEvent(CombatEvent):
    combatant_id: str
    combatant_name: str
    initiative: float


@dataclass(slots=True)
class TieReorderedEvent(CombatEvent):
    combatant_id: str
    combatant_name: str
    direction: TieBreakDirection


@dataclass(slots=True)
class TurnAdvancedEvent(CombatEvent):
    round_number: int
    combatant_id: str
    combatant_name: str


@dataclass(slots=True)
class TurnReversedEvent(CombatEvent):
    round_number: int
    combatant_id: str
    combatant_name: str


@dataclass(slots=True)
class RoundAdvancedEvent(CombatEvent):
    round_number: int
    active_combatant_id: str | None


@dataclass(slots=True)
class RoundReversedEvent(CombatEvent):
    round_number: int
    active_combatant_id: str | None


@dataclass(slots=True)
class CombatantAddedEvent(CombatEvent):
    combatant: Combatant


@dataclass(slots=True)
class CombatantRemovedEvent(CombatEvent):
    combatant: Combatant
    removed_conditions: Tuple[ConditionAttachment, ...] = ()


@dataclass(slots=True)
class ConditionAppliedEvent(CombatEvent):
    attachment: ConditionAttachment


@dataclass(slots=True)
class ConditionRemovedEvent(CombatEvent):
    attachment: ConditionAttachment


@dataclass(slots=True)
class ConditionDurationChangedEvent(CombatEvent):
    attachment: ConditionAttachment


@dataclass(slots=True)
class ConditionExpiredEvent(CombatEvent):
    attachment: ConditionAttachment


class CombatStateMachine:
    """
    Owns the live state of one encounter.

    The machine starts uninitialized and becomes ready once ``initialize``
    receives a loaded record. Mutators return the events they produced and
    publish a new, version-stamped ``CombatSnapshot`` to every subscriber.
    Turn and round advances are refused (empty event list, no snapshot)
    while ``can_progress`` is False.

    Stepping backwards never restores condition durations: a round that was
    counted off stays counted off.
    """

    def __init__(self, rng: RNG) -> None:
        self._rng = rng
        self._meta: EncounterMeta | None = None
        self._round_number = 1
        self._active_id: str | None = None
        self._combatants: Tuple[Combatant, ...] = ()
        self._ledger = ConditionLedger(rng)
        self._listeners: List[SnapshotListener] = []
        self._version = 0
        self._snapshot: CombatSnapshot | None = None

    # -----------------------
    # Lifecycle
    # -----------------------
    def initialize(self, record: EncounterRecord) -> CombatSnapshot:
        """Enter the ready state from a loaded encounter record."""
        self._meta = record.meta
        self._round_number = max(1, record.round_number)
        self._combatants = tuple(record.combatants)
        known_ids = {c.id for c in self._combatants}
        self._ledger = ConditionLedger(
            self._rng, (a for a in record.attachments if a.combatant_id in known_ids)
        )
        if record.active_combatant_id in known_ids:
            self._active_id = record.active_combatant_id
        else:
            self._active_id = self._top_with_initiative_id()
        logger.info(
            "Combat ready for '{}': round {}, {} combatant(s)",
            record.meta.name,
            self._round_number,
            len(self._combatants),
        )
        self._publish()
        assert self._snapshot is not None
        return self._snapshot

    @property
    def is_ready(self) -> bool:
        return self._meta is not None

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener and return a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -----------------------
    # Reads
    # -----------------------
    @property
    def snapshot(self) -> CombatSnapshot:
        self._require_ready()
        assert self._snapshot is not None
        return self._snapshot

    @property
    def meta(self) -> EncounterMeta:
        self._require_ready()
        assert self._meta is not None
        return self._meta

    @property
    def round_number(self) -> int:
        return self._round_number

    @property
    def active_combatant_id(self) -> str | None:
        return self._active_id

    @property
    def combatants(self) -> Tuple[Combatant, ...]:
        """Combatants in turn order."""
        return tuple(sort_combatants(self._combatants))

    @property
    def can_progress(self) -> bool:
        if not self._combatants:
            return False
        return all(c.has_initiative for c in self._combatants if not c.has_taken_turn)

    @property
    def is_first_turn(self) -> bool:
        return self._active_index() == 0

    @property
    def tied_combatant_ids(self) -> Set[str]:
        return detect_tied_players(self._combatants)

    def get_combatant(self, combatant_id: str) -> Combatant:
        for combatant in self._combatants:
            if combatant.id == combatant_id:
                return combatant
        raise NotFoundError(f"Combatant '{combatant_id}' not found.")

    def conditions_for(self, combatant_id: str) -> FrozenSet[ConditionAttachment]:
        self.get_combatant(combatant_id)
        return self._ledger.conditions_for(combatant_id)

    def to_record(self) -> EncounterRecord:
        """Return the current state in the shape the repository persists."""
        return EncounterRecord(
            meta=self.meta,
            round_number=self._round_number,
            active_combatant_id=self._active_id,
            combatants=self.combatants,
            attachments=self._ledger.all(),
        )

    # -----------------------
    # Initiative
    # -----------------------
    def roll_initiative(self, mode: RollMode) -> List[CombatEvent]:
        """Roll for the combatants selected by ``mode``; others keep their scores."""
        self._require_ready()
        if mode.kind == "specific":
            for combatant_id in mode.combatant_ids:
                self.get_combatant(combatant_id)
        self._combatants, rolls = roll_for_group(self._combatants, mode, self._rng)
        events: List[CombatEvent] = [
            InitiativeRolledEvent(
                combatant_id=combatant.id,
                combatant_name=combatant.display_name,
                initiative=roll.total,
                description=roll.describe(),
            )
            for combatant, roll in rolls
        ]
        if self._active_id is None:
            self._active_id = self._top_with_initiative_id()
        logger.info("Rolled initiative ({}) for {} combatant(s)", mode.kind, len(rolls))
        self._publish()
        return events

    def set_initiative(self, combatant_id: str, value: float) -> List[CombatEvent]:
        """Manually override a combatant's initiative."""
        self._require_ready()
        initiative = self._require_initiative(value)
        combatant = self.get_combatant(combatant_id)
        self._replace(replace(combatant, initiative=initiative, tie_break_order=0))
        if self._active_id is None:
            self._active_id = self._top_with_initiative_id()
        self._publish()
        return [
            InitiativeSetEvent(
                combatant_id=combatant.id, combatant_name=combatant.display_name, initiative=initiative
            )
        ]

    def move_in_tie(self, combatant_id: str, direction: TieBreakDirection) -> List[CombatEvent]:
        """Shift a tied player one slot among its peers; no-op when nothing can move."""
        self._require_ready()
        if direction not in ("left", "right"):
            raise ValidationError(f"Unknown tie-break direction: {direction!r}")
        combatant = self.get_combatant(combatant_id)
        reordered = resolve_tie(self._combatants, combatant_id, direction)
        if reordered is None:
            return []
        self._combatants = reordered
        self._publish()
        return [
            TieReorderedEvent(
                combatant_id=combatant.id, combatant_name=combatant.display_name, direction=direction
            )
        ]

    # -----------------------
    # Turns and rounds
    # -----------------------
    def next_turn(self) -> List[CombatEvent]:
        """Finish the active combatant's turn; rolls over into a new round when nobody is left."""
        self._require_ready()
        if not self.can_progress:
            return []
        ordered = self.combatants
        index = self._active_index(ordered)
        if index is None:
            return []
        self._replace(replace(ordered[index], has_taken_turn=True))

        upcoming = next((c for c in ordered[index + 1 :] if not c.has_taken_turn), None)
        if upcoming is None:
            return self.next_round()

        self._active_id = upcoming.id
        logger.debug("Round {}: turn passes to {}", self._round_number, upcoming.display_name)
        self._publish()
        return [
            TurnAdvancedEvent(
                round_number=self._round_number,
                combatant_id=upcoming.id,
                combatant_name=upcoming.display_name,
            )
        ]

    def previous_turn(self) -> List[CombatEvent]:
        """Hand the turn back to the preceding combatant, undoing its completion."""
        self._require_ready()
        if not self.can_progress:
            return []
        ordered = self.combatants
        index = self._active_index(ordered)
        if index is None or index <= 0:
            return []
        previous = ordered[index - 1]
        self._replace(replace(ordered[index], has_taken_turn=False))
        self._replace(replace(previous, has_taken_turn=False))
        self._active_id = previous.id
        logger.debug("Round {}: turn returns to {}", self._round_number, previous.display_name)
        self._publish()
        return [
            TurnReversedEvent(
                round_number=self._round_number,
                combatant_id=previous.id,
                combatant_name=previous.display_name,
            )
        ]

    def next_round(self) -> List[CombatEvent]:
        """Start the next round and count one round off every timed condition."""
        self._require_ready()
        if not self.can_progress:
            return []
        self._reset_turns()
        self._round_number += 1
        self._active_id = self._top_with_initiative_id()

        events: List[CombatEvent] = [
            RoundAdvancedEvent(round_number=self._round_number, active_combatant_id=self._active_id)
        ]
        ticked = self._ledger.advance_round()
        expired = self._ledger.sweep_expired()
        expired_ids = {attachment.id for attachment in expired}
        events.extend(ConditionDurationChangedEvent(a) for a in ticked if a.id not in expired_ids)
        events.extend(ConditionExpiredEvent(a) for a in expired)

        logger.info("Round {} begins", self._round_number)
        self._publish()
        return events

    def previous_round(self) -> List[CombatEvent]:
        """Step back one round; condition durations are not restored."""
        self._require_ready()
        if self._round_number <= 1:
            return []
        self._reset_turns()
        self._round_number -= 1
        self._active_id = self._top_with_initiative_id()
        logger.info("Stepped back to round {}", self._round_number)
        self._publish()
        return [RoundReversedEvent(round_number=self._round_number, active_combatant_id=self._active_id)]

    # -----------------------
    # Roster
    # -----------------------
    def prepare_combatant(self, actor: ActorDef, initiative: float | None = None) -> Combatant:
        """Build the combatant ``add_combatant`` would insert, without changing state."""
        self._require_ready()
        if initiative is not None:
            initiative = self._require_initiative(initiative)
        return create_combatant(actor, self._combatants, self._rng, initiative=initiative)

    def add_combatant(self, combatant: Combatant) -> List[CombatEvent]:
        self._require_ready()
        for existing in self._combatants:
            if existing.id == combatant.id or existing.display_name == combatant.display_name:
                raise DuplicateInstanceError(
                    f"Combatant '{combatant.display_name}' clashes with an existing instance."
                )
        self._combatants = self._combatants + (combatant,)
        if self._active_id is None:
            self._active_id = self._top_with_initiative_id()
        logger.info("Added {} to the encounter", combatant.display_name)
        self._publish()
        return [CombatantAddedEvent(combatant)]

    def remove_combatant(self, combatant_id: str) -> List[CombatEvent]:
        """Remove a combatant and its conditions, re-picking the active one if needed."""
        self._require_ready()
        combatant = self.get_combatant(combatant_id)
        self._combatants = tuple(c for c in self._combatants if c.id != combatant_id)
        removed_conditions = self._ledger.remove_all_for(combatant_id)
        if self._active_id == combatant_id:
            self._active_id = self._top_with_initiative_id()
        logger.info("Removed {} from the encounter", combatant.display_name)
        self._publish()
        return [CombatantRemovedEvent(combatant, removed_conditions)]

    # -----------------------
    # Conditions
    # -----------------------
    def apply_condition(
        self,
        combatant_id: str,
        condition: ConditionType | int,
        *,
        is_permanent: bool,
        duration: int | None = None,
    ) -> List[CombatEvent]:
        self._require_ready()
        self.get_combatant(combatant_id)
        attachment = self._ledger.apply(
            combatant_id,
            self._resolve_condition(condition),
            is_permanent=is_permanent,
            duration=duration,
            current_round=self._round_number,
        )
        self._publish()
        return [ConditionAppliedEvent(attachment)]

    def update_condition(
        self, attachment_id: str, *, is_permanent: bool, duration: int | None = None
    ) -> List[CombatEvent]:
        """Swap an attachment for a fresh one with new permanence or duration."""
        self._require_ready()
        previous = self._ledger.get(attachment_id)
        attachment = self._ledger.replace(
            attachment_id,
            is_permanent=is_permanent,
            duration=duration,
            current_round=self._round_number,
        )
        self._publish()
        return [ConditionRemovedEvent(previous), ConditionAppliedEvent(attachment)]

    def remove_condition(self, attachment_id: str) -> List[CombatEvent]:
        self._require_ready()
        attachment = self._ledger.remove(attachment_id)
        self._publish()
        return [ConditionRemovedEvent(attachment)]

    # -----------------------
    # Helpers
    # -----------------------
    def _require_ready(self) -> None:
        if self._meta is None:
            raise ValidationError("Combat has not been initialized.")

    @staticmethod
    def _require_initiative(value: object) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError(f"Initiative must be a finite number, got {value!r}.")
        return float(value)

    @staticmethod
    def _resolve_condition(condition: ConditionType | int) -> ConditionType:
        if isinstance(condition, ConditionType):
            return condition
        try:
            return ConditionType.from_id(condition)
        except KeyError as exc:
            raise NotFoundError(f"Unknown condition id: {condition}") from exc

    def _replace(self, updated: Combatant) -> None:
        self._combatants = tuple(updated if c.id == updated.id else c for c in self._combatants)

    def _reset_turns(self) -> None:
        self._combatants = tuple(
            replace(c, has_taken_turn=False) if c.has_taken_turn else c for c in self._combatants
        )

    def _top_with_initiative_id(self) -> str | None:
        top = next((c for c in sort_combatants(self._combatants) if c.has_initiative), None)
        return top.id if top else None

    def _active_index(self, ordered: Sequence[Combatant] | None = None) -> int | None:
        if self._active_id is None:
            return None
        for index, combatant in enumerate(ordered if ordered is not None else self.combatants):
            if combatant.id == self._active_id:
                return index
        return None

    def _publish(self) -> None:
        assert self._meta is not None
        self._version += 1
        ordered = self.combatants
        tied = detect_tied_players(ordered)
        active_index = self._active_index(ordered)
        views = tuple(
            CombatantView(
                id=c.id,
                base_actor_id=c.base_actor_id,
                display_name=c.display_name,
                initiative=c.initiative,
                initiative_display=format_initiative(c.initiative),
                is_npc_like=c.is_npc_like,
                is_active=c.id == self._active_id,
                is_tied=c.id in tied,
                has_taken_turn=c.has_taken_turn,
                conditions=tuple(
                    sorted(self._ledger.conditions_for(c.id), key=lambda a: a.condition_type.type_id)
                ),
            )
            for c in ordered
        )
        self._snapshot = CombatSnapshot(
            version=self._version,
            encounter_id=self._meta.id,
            encounter_name=self._meta.name,
            round_number=self._round_number,
            active_combatant_id=self._active_id,
            combatants=views,
            can_progress=self.can_progress,
            is_first_turn=active_index == 0,
            is_last_turn=active_index is not None and active_index == len(ordered) - 1,
        )
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Snapshot listener {!r} failed", listener)
