"""Actor library definition structures."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActorCategory(Enum):
    """Library grouping of actors; everything but players rolls NPC-style initiative."""

    PLAYER = "player"
    NPC = "npc"
    MONSTER = "monster"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return f"{self.name.capitalize()}s" if self is not ActorCategory.NPC else "NPCs"

    @property
    def is_npc_like(self) -> bool:
        return self is not ActorCategory.PLAYER


@dataclass(frozen=True, slots=True)
class ActorDef:
    """Reusable actor entry that combatants are instantiated from."""

    id: str
    name: str
    category: ActorCategory
    initiative_modifier: int = 0
