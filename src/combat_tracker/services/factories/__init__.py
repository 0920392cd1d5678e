"""Factory helpers for runtime entities."""

from .combatant_factory import create_combatant
from .id_factory import make_instance_id

__all__ = [
    "create_combatant",
    "make_instance_id",
]
