"""Turn-order sorting and player tie handling."""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from loguru import logger

from combat_tracker.core.types import TieBreakDirection
from combat_tracker.domain.combat_models import Combatant
from combat_tracker.domain.initiative import is_integer_initiative


def _order_key(combatant: Combatant) -> Tuple[bool, float, int, int]:
    has_initiative = combatant.initiative is not None
    return (
        not has_initiative,
        -(combatant.initiative if has_initiative else 0.0),
        combatant.tie_break_order,
        combatant.added_order,
    )


def sort_combatants(combatants: Iterable[Combatant]) -> List[Combatant]:
    """
    Return combatants in turn order.

    Rolled combatants come first by descending initiative, then ascending
    tie-break order, then ascending added order. ``added_order`` is unique,
    so the order is total.
    """
    return sorted(combatants, key=_order_key)


def _is_tie_eligible(combatant: Combatant) -> bool:
    return not combatant.is_npc_like and is_integer_initiative(combatant.initiative)


def detect_tied_players(combatants: Iterable[Combatant]) -> Set[str]:
    """Return ids of players sharing an integer initiative with another player."""
    groups: Dict[int, List[str]] = {}
    for combatant in combatants:
        if not _is_tie_eligible(combatant):
            continue
        assert combatant.initiative is not None
        groups.setdefault(int(combatant.initiative), []).append(combatant.id)
    tied: Set[str] = set()
    for ids in groups.values():
        if len(ids) > 1:
            tied.update(ids)
    return tied


def resolve_tie(
    combatants: Sequence[Combatant], combatant_id: str, direction: TieBreakDirection
) -> Tuple[Combatant, ...] | None:
    """
    Move a tied player one slot left (earlier) or right (later) among its peers.

    Returns the updated combatants with tie-break orders rewritten 0..n-1 for
    the peer group, or None when there is nothing to change.
    """
    target = next((c for c in combatants if c.id == combatant_id), None)
    if target is None or not _is_tie_eligible(target):
        logger.warning("Combatant {} cannot be reordered manually", combatant_id)
        return None

    peers = sort_combatants(
        c for c in combatants if _is_tie_eligible(c) and c.initiative == target.initiative
    )
    if len(peers) <= 1:
        logger.warning("Combatant {} has no tie to resolve", combatant_id)
        return None

    index = next(i for i, peer in enumerate(peers) if peer.id == combatant_id)
    new_index = index - 1 if direction == "left" else index + 1
    if new_index < 0 or new_index >= len(peers):
        logger.debug("Combatant {} already at {} boundary", combatant_id, direction)
        return None

    peers.insert(new_index, peers.pop(index))
    new_orders = {peer.id: order for order, peer in enumerate(peers)}
    return tuple(
        replace(c, tie_break_order=new_orders[c.id]) if c.id in new_orders else c for c in combatants
    )
