"""Domain definition exports."""

from .actor_def import ActorCategory, ActorDef
from .condition_def import ConditionType

__all__ = [
    "ActorCategory",
    "ActorDef",
    "ConditionType",
]
