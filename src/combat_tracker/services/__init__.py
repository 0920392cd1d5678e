"""Service layer exports."""

from .errors import (
    CombatTrackerError,
    DuplicateConditionError,
    DuplicateError,
    DuplicateInstanceError,
    InvalidDurationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .condition_ledger import ConditionLedger
from .combat_state_machine import (
    CombatantAddedEvent,
    CombatantRemovedEvent,
    CombatEvent,
    CombatStateMachine,
    ConditionAppliedEvent,
    ConditionDurationChangedEvent,
    ConditionExpiredEvent,
    ConditionRemovedEvent,
    InitiativeRolledEvent,
    InitiativeSetEvent,
    RoundAdvancedEvent,
    RoundReversedEvent,
    TieReorderedEvent,
    TurnAdvancedEvent,
    TurnReversedEvent,
)
from .save_service import EncounterSaveService
from .save_dispatcher import SaveDispatcher, SaveWarning
from .encounter_repository import EncounterRepository, JsonEncounterRepository
from .encounter_session import EncounterSession, InitiativeRollResult

__all__ = [
    "CombatTrackerError",
    "DuplicateConditionError",
    "DuplicateError",
    "DuplicateInstanceError",
    "InvalidDurationError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
    "ConditionLedger",
    "CombatantAddedEvent",
    "CombatantRemovedEvent",
    "CombatEvent",
    "CombatStateMachine",
    "ConditionAppliedEvent",
    "ConditionDurationChangedEvent",
    "ConditionExpiredEvent",
    "ConditionRemovedEvent",
    "InitiativeRolledEvent",
    "InitiativeSetEvent",
    "RoundAdvancedEvent",
    "RoundReversedEvent",
    "TieReorderedEvent",
    "TurnAdvancedEvent",
    "TurnReversedEvent",
    "EncounterSaveService",
    "SaveDispatcher",
    "SaveWarning",
    "EncounterRepository",
    "JsonEncounterRepository",
    "EncounterSession",
    "InitiativeRollResult",
]
