from __future__ import annotations

import pytest

from combat_tracker.core.rng import RNG
from combat_tracker.domain.combat_models import ConditionAttachment
from combat_tracker.domain.defs import ConditionType
from combat_tracker.services.condition_ledger import ConditionLedger
from combat_tracker.services.errors import (
    DuplicateConditionError,
    InvalidDurationError,
    NotFoundError,
    ValidationError,
)


def _make_ledger(*attachments: ConditionAttachment) -> ConditionLedger:
    return ConditionLedger(RNG(21), attachments)


def test_apply_returns_read_back_attachment() -> None:
    ledger = _make_ledger()
    attachment = ledger.apply(
        "x", ConditionType.POISONED, is_permanent=False, duration=2, current_round=1
    )

    assert attachment.remaining_duration == 2
    assert attachment.applied_at_round == 1
    assert ledger.conditions_for("x") == frozenset({attachment})
    assert ledger.get(attachment.id) is attachment


def test_apply_same_type_twice_is_rejected() -> None:
    ledger = _make_ledger()
    ledger.apply("x", ConditionType.PRONE, is_permanent=True, duration=None, current_round=1)

    with pytest.raises(DuplicateConditionError):
        ledger.apply("x", ConditionType.PRONE, is_permanent=False, duration=3, current_round=1)

    other = ledger.apply("y", ConditionType.PRONE, is_permanent=True, duration=None, current_round=1)
    assert other.combatant_id == "y"


@pytest.mark.parametrize("duration", [None, 0, -1])
def test_timed_condition_requires_positive_duration(duration: int | None) -> None:
    ledger = _make_ledger()

    with pytest.raises(InvalidDurationError):
        ledger.apply("x", ConditionType.STUNNED, is_permanent=False, duration=duration, current_round=1)
    assert ledger.all() == ()


def test_invalid_duration_is_a_validation_error() -> None:
    assert issubclass(InvalidDurationError, ValidationError)


def test_permanent_condition_ignores_duration() -> None:
    ledger = _make_ledger()
    attachment = ledger.apply(
        "x", ConditionType.BLINDED, is_permanent=True, duration=5, current_round=3
    )

    assert attachment.remaining_duration is None
    assert attachment.describe() == "Blinded (permanent)"


def test_remove_unknown_attachment_raises() -> None:
    with pytest.raises(NotFoundError):
        _make_ledger().remove("cond_missing")


def test_replace_swaps_parameters() -> None:
    ledger = _make_ledger()
    original = ledger.apply("x", ConditionType.CHARMED, is_permanent=False, duration=3, current_round=1)

    replaced = ledger.replace(original.id, is_permanent=True, duration=None, current_round=2)

    assert replaced.is_permanent
    assert replaced.applied_at_round == 2
    assert ledger.conditions_for("x") == frozenset({replaced})
    with pytest.raises(NotFoundError):
        ledger.get(original.id)


def test_failed_replace_leaves_ledger_untouched() -> None:
    ledger = _make_ledger()
    original = ledger.apply("x", ConditionType.CHARMED, is_permanent=False, duration=3, current_round=1)

    with pytest.raises(InvalidDurationError):
        ledger.replace(original.id, is_permanent=False, duration=0, current_round=2)

    assert ledger.conditions_for("x") == frozenset({original})


def test_two_round_condition_is_swept_after_two_rounds() -> None:
    ledger = _make_ledger()
    attachment = ledger.apply("x", ConditionType.FRIGHTENED, is_permanent=False, duration=2, current_round=1)
    permanent = ledger.apply("x", ConditionType.PRONE, is_permanent=True, duration=None, current_round=1)

    ticked = ledger.advance_round()
    assert [a.remaining_duration for a in ticked] == [1]
    assert ledger.sweep_expired() == ()

    ledger.advance_round()
    expired = ledger.sweep_expired()

    assert [a.id for a in expired] == [attachment.id]
    assert ledger.conditions_for("x") == frozenset({permanent})


def test_remove_all_for_combatant() -> None:
    ledger = _make_ledger()
    ledger.apply("x", ConditionType.PRONE, is_permanent=True, duration=None, current_round=1)
    ledger.apply("x", ConditionType.GRAPPLED, is_permanent=False, duration=1, current_round=1)
    kept = ledger.apply("y", ConditionType.PRONE, is_permanent=True, duration=None, current_round=1)

    removed = ledger.remove_all_for("x")

    assert len(removed) == 2
    assert ledger.conditions_for("x") == frozenset()
    assert ledger.all() == (kept,)


def test_ledger_seeds_from_existing_attachments() -> None:
    stored = ConditionAttachment(
        id="cond_1",
        combatant_id="x",
        condition_type=ConditionType.RESTRAINED,
        applied_at_round=1,
        remaining_duration=4,
    )
    ledger = _make_ledger(stored)

    assert ledger.get("cond_1") == stored
    with pytest.raises(DuplicateConditionError):
        ledger.apply("x", ConditionType.RESTRAINED, is_permanent=True, duration=None, current_round=2)
