"""Factory for creating combatants from actor library entries."""
from __future__ import annotations

from typing import Sequence

from combat_tracker.core.rng import RNG
from combat_tracker.domain.combat_models import Combatant
from combat_tracker.domain.defs import ActorDef
from combat_tracker.domain.naming import next_display_name

from .id_factory import make_instance_id


def create_combatant(
    actor: ActorDef,
    existing: Sequence[Combatant],
    rng: RNG,
    *,
    initiative: float | None = None,
) -> Combatant:
    """
    Instantiate ``actor`` next to the ``existing`` combatants.

    The modifier and category are copied now; later edits to the library
    entry do not reach combatants already in an encounter.
    """
    added_order = max((c.added_order for c in existing), default=-1) + 1
    return Combatant(
        id=make_instance_id("cmb", rng, taken={c.id for c in existing}),
        base_actor_id=actor.id,
        display_name=next_display_name(actor.name, (c.display_name for c in existing)),
        added_order=added_order,
        initiative=initiative,
        initiative_modifier=actor.initiative_modifier,
        is_npc_like=actor.category.is_npc_like,
    )
