from __future__ import annotations

from combat_tracker.core.rng import RNG
from combat_tracker.domain.combat_models import Combatant
from combat_tracker.domain.initiative import (
    InitiativeRoll,
    RollMode,
    format_initiative,
    is_integer_initiative,
    roll_for_group,
    roll_initiative,
    roll_initiative_detailed,
)


def _make_combatant(
    combatant_id: str,
    *,
    is_npc_like: bool,
    modifier: int = 0,
    added_order: int = 0,
    initiative: float | None = None,
) -> Combatant:
    return Combatant(
        id=combatant_id,
        base_actor_id=combatant_id,
        display_name=combatant_id.title(),
        added_order=added_order,
        initiative=initiative,
        initiative_modifier=modifier,
        is_npc_like=is_npc_like,
    )


def test_player_rolls_are_whole_numbers_in_range() -> None:
    rng = RNG(1)
    for _ in range(500):
        value = roll_initiative(3, False, rng)
        assert value.is_integer()
        assert 4 <= value <= 23


def test_npc_rolls_are_never_whole_numbers() -> None:
    rng = RNG(2)
    for _ in range(500):
        value = roll_initiative(2, True, rng)
        assert not value.is_integer()
        assert 2.8 < value < 22
        assert round(value, 4) == value


def test_npc_rolls_are_pairwise_distinct_with_overwhelming_frequency() -> None:
    rng = RNG(3)
    values = [roll_initiative(0, True, rng) for _ in range(200)]
    collisions = len(values) - len(set(values))
    # 20 * 1999 possible scores; a handful of birthday collisions at most.
    assert collisions <= 3


def test_detailed_roll_reports_breakdown() -> None:
    roll = roll_initiative_detailed(1, True, RNG(4))
    assert 1 <= roll.d20 <= 20
    assert roll.modifier == 1
    assert 0.0001 <= roll.perturbation <= 0.1999
    assert roll.total == round(roll.d20 + 1 - roll.perturbation, 4)


def test_describe_player_and_npc_rolls() -> None:
    player = InitiativeRoll(d20=14, modifier=3, perturbation=0.0, total=17.0)
    npc = InitiativeRoll(d20=9, modifier=1, perturbation=0.1235, total=9.8765)
    flat = InitiativeRoll(d20=5, modifier=-2, perturbation=0.0, total=3.0)

    assert player.describe() == "d20(14)+3 = 17"
    assert npc.describe() == "d20(9)+1 = 9.8765 (tie-break -0.1235)"
    assert flat.describe() == "d20(5)-2 = 3"


def test_format_initiative() -> None:
    assert format_initiative(None) == "--"
    assert format_initiative(12.0) == "12"
    assert format_initiative(11.8765) == "11.88"
    assert is_integer_initiative(12.0)
    assert not is_integer_initiative(11.5)
    assert not is_integer_initiative(None)


def test_roll_all_respects_class_schemes() -> None:
    combatants = [
        _make_combatant("aria", is_npc_like=False, modifier=3, added_order=0),
        _make_combatant("goblin", is_npc_like=True, modifier=2, added_order=1),
        _make_combatant("brom", is_npc_like=False, modifier=1, added_order=2),
    ]
    updated, rolls = roll_for_group(combatants, RollMode.all(), RNG(5))

    assert len(rolls) == 3
    for combatant in updated:
        assert combatant.initiative is not None
        assert combatant.initiative.is_integer() is (not combatant.is_npc_like)


def test_roll_npc_only_leaves_players_untouched() -> None:
    combatants = [
        _make_combatant("aria", is_npc_like=False, added_order=0, initiative=15.0),
        _make_combatant("goblin", is_npc_like=True, added_order=1),
    ]
    updated, rolls = roll_for_group(combatants, RollMode.npc_only(), RNG(6))

    assert [combatant.id for combatant, _ in rolls] == ["goblin"]
    assert updated[0] is combatants[0]
    assert updated[1].initiative is not None


def test_roll_specific_resets_tie_break_order() -> None:
    tied = Combatant(
        id="aria",
        base_actor_id="aria",
        display_name="Aria",
        added_order=0,
        initiative=12.0,
        is_npc_like=False,
        tie_break_order=1,
    )
    other = _make_combatant("brom", is_npc_like=False, added_order=1, initiative=12.0)
    updated, rolls = roll_for_group([tied, other], RollMode.specific(["aria"]), RNG(7))

    assert len(rolls) == 1
    assert updated[0].tie_break_order == 0
    assert updated[1] is other
