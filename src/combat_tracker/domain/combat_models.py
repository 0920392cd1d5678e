"""Combat domain models.

Records here are frozen: every mutation in the engine builds replacement
records with ``dataclasses.replace`` and a fresh tuple, so a snapshot handed
to a subscriber can never change underneath it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple

from combat_tracker.domain.defs import ConditionType


@dataclass(frozen=True, slots=True)
class Combatant:
    """One instance of a library actor taking part in an encounter."""

    id: str
    base_actor_id: str  # library actor id; may no longer resolve
    display_name: str
    added_order: int
    initiative: float | None = None
    initiative_modifier: int = 0
    is_npc_like: bool = True
    tie_break_order: int = 0
    has_taken_turn: bool = False

    @property
    def has_initiative(self) -> bool:
        return self.initiative is not None


@dataclass(frozen=True, slots=True)
class ConditionAttachment:
    """A status effect applied to one combatant, permanent or counted in rounds."""

    id: str
    combatant_id: str
    condition_type: ConditionType
    applied_at_round: int
    is_permanent: bool = False
    remaining_duration: int | None = None

    @property
    def is_expired(self) -> bool:
        return not self.is_permanent and (self.remaining_duration or 0) <= 0

    def describe(self) -> str:
        if self.is_permanent:
            return f"{self.condition_type.display_name} (permanent)"
        turns = "turn" if self.remaining_duration == 1 else "turns"
        return f"{self.condition_type.display_name} ({self.remaining_duration} {turns})"


@dataclass(frozen=True, slots=True)
class EncounterMeta:
    """Encounter bookkeeping owned by the persistence layer."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class EncounterRecord:
    """Unit exchanged with the encounter repository on load and save."""

    meta: EncounterMeta
    round_number: int = 1
    active_combatant_id: str | None = None
    combatants: Tuple[Combatant, ...] = ()
    attachments: Tuple[ConditionAttachment, ...] = ()


@dataclass(frozen=True, slots=True)
class CombatantView:
    """Presentation view of a combatant inside a snapshot."""

    id: str
    base_actor_id: str
    display_name: str
    initiative: float | None
    initiative_display: str
    is_npc_like: bool
    is_active: bool
    is_tied: bool
    has_taken_turn: bool
    conditions: Tuple[ConditionAttachment, ...] = ()


@dataclass(frozen=True, slots=True)
class CombatSnapshot:
    """Immutable picture of the encounter emitted after every mutation."""

    version: int
    encounter_id: str
    encounter_name: str
    round_number: int
    active_combatant_id: str | None
    combatants: Tuple[CombatantView, ...] = field(default_factory=tuple)
    can_progress: bool = False
    is_first_turn: bool = False
    is_last_turn: bool = False

    @property
    def active_index(self) -> int | None:
        for index, view in enumerate(self.combatants):
            if view.is_active:
                return index
        return None
