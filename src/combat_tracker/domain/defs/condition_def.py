"""Catalog of the standard status conditions."""
from __future__ import annotations

from enum import Enum


class ConditionType(Enum):
    """Closed catalog keyed by stable integer ids."""

    BLINDED = (1, "Blinded", "You can't see")
    CHARMED = (2, "Charmed", "You are charmed")
    DEAFENED = (3, "Deafened", "You can't hear")
    EXHAUSTION = (4, "Exhaustion", "You are exhausted")
    FRIGHTENED = (5, "Frightened", "You are frightened")
    GRAPPLED = (6, "Grappled", "You are grappled")
    INCAPACITATED = (7, "Incapacitated", "You can't take actions or reactions")
    INVISIBLE = (8, "Invisible", "You can't be seen")
    PARALYZED = (9, "Paralyzed", "You are paralyzed")
    PETRIFIED = (10, "Petrified", "You are transformed into stone")
    POISONED = (11, "Poisoned", "You are poisoned")
    PRONE = (12, "Prone", "You are prone")
    RESTRAINED = (13, "Restrained", "You are restrained")
    STUNNED = (14, "Stunned", "You are stunned")
    UNCONSCIOUS = (15, "Unconscious", "You are unconscious")

    def __init__(self, type_id: int, display_name: str, description: str) -> None:
        self.type_id = type_id
        self.display_name = display_name
        self.description = description

    @classmethod
    def from_id(cls, type_id: int) -> "ConditionType":
        """Return the condition with the given catalog id."""
        for condition in cls:
            if condition.type_id == type_id:
                return condition
        raise KeyError(type_id)
