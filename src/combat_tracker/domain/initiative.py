"""Initiative rolling.

Players roll plain ``d20 + modifier`` and always land on a whole number.
NPC-like combatants additionally lose a random fraction in [0.0001, 0.1999]
so their scores never collide with each other (or with a player's integer),
which leaves manual tie-breaking to player-versus-player ties only.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, Tuple

from loguru import logger

from combat_tracker.core.rng import RNG
from combat_tracker.core.types import RollModeName
from combat_tracker.domain.combat_models import Combatant

D20_SIDES = 20
NPC_PERTURBATION_STEPS = 1999  # 0.0001 .. 0.1999 in steps of 0.0001
DECIMAL_PLACES = 4


@dataclass(frozen=True, slots=True)
class InitiativeRoll:
    """Breakdown of a single initiative roll."""

    d20: int
    modifier: int
    perturbation: float
    total: float

    def describe(self) -> str:
        if self.modifier > 0:
            modifier_text = f"+{self.modifier}"
        elif self.modifier < 0:
            modifier_text = str(self.modifier)
        else:
            modifier_text = ""
        if self.perturbation:
            return f"d20({self.d20}){modifier_text} = {self.total:.4f} (tie-break -{self.perturbation:.4f})"
        return f"d20({self.d20}){modifier_text} = {int(self.total)}"


@dataclass(frozen=True, slots=True)
class RollMode:
    """Selects which combatants a group roll touches."""

    kind: RollModeName
    combatant_ids: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def all(cls) -> "RollMode":
        return cls("all")

    @classmethod
    def npc_only(cls) -> "RollMode":
        return cls("npc_only")

    @classmethod
    def specific(cls, combatant_ids: Iterable[str]) -> "RollMode":
        return cls("specific", frozenset(combatant_ids))

    def selects(self, combatant: Combatant) -> bool:
        if self.kind == "all":
            return True
        if self.kind == "npc_only":
            return combatant.is_npc_like
        return combatant.id in self.combatant_ids


def is_integer_initiative(value: float | None) -> bool:
    """Return True for whole-number scores, the player initiative scheme."""
    return value is not None and float(value).is_integer()


def format_initiative(value: float | None) -> str:
    if value is None:
        return "--"
    if is_integer_initiative(value):
        return str(int(value))
    return f"{value:.2f}"


def roll_initiative_detailed(modifier: int, is_npc_like: bool, rng: RNG) -> InitiativeRoll:
    """Roll d20 + modifier, perturbing NPC-like scores below the integer."""
    d20 = rng.randint(1, D20_SIDES)
    base = d20 + modifier
    if not is_npc_like:
        return InitiativeRoll(d20=d20, modifier=modifier, perturbation=0.0, total=float(base))
    perturbation = rng.randint(1, NPC_PERTURBATION_STEPS) / 10 ** DECIMAL_PLACES
    total = round(base - perturbation, DECIMAL_PLACES)
    return InitiativeRoll(d20=d20, modifier=modifier, perturbation=perturbation, total=total)


def roll_initiative(modifier: int, is_npc_like: bool, rng: RNG) -> float:
    return roll_initiative_detailed(modifier, is_npc_like, rng).total


def roll_for_group(
    combatants: Iterable[Combatant], mode: RollMode, rng: RNG
) -> Tuple[Tuple[Combatant, ...], Tuple[Tuple[Combatant, InitiativeRoll], ...]]:
    """
    Re-roll the combatants selected by ``mode``.

    Returns the full combatant tuple (unselected entries untouched) and the
    ``(updated combatant, roll)`` pairs for the ones that were rolled. A new
    score invalidates any manual tie-break ordering, so it is reset.
    """
    updated: list[Combatant] = []
    rolls: list[Tuple[Combatant, InitiativeRoll]] = []
    for combatant in combatants:
        if not mode.selects(combatant):
            updated.append(combatant)
            continue
        roll = roll_initiative_detailed(combatant.initiative_modifier, combatant.is_npc_like, rng)
        rolled = replace(combatant, initiative=roll.total, tie_break_order=0)
        logger.debug("Rolled initiative for {}: {}", combatant.display_name, roll.describe())
        updated.append(rolled)
        rolls.append((rolled, roll))
    return tuple(updated), tuple(rolls)
