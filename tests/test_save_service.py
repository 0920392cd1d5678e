from __future__ import annotations

import copy
from datetime import datetime, timezone

import pytest

from combat_tracker.domain.combat_models import (
    Combatant,
    ConditionAttachment,
    EncounterMeta,
    EncounterRecord,
)
from combat_tracker.domain.defs import ConditionType
from combat_tracker.services.errors import PersistenceError
from combat_tracker.services.save_service import EncounterSaveService


def _make_record() -> EncounterRecord:
    stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    return EncounterRecord(
        meta=EncounterMeta(id="enc_1", name="Crypt", created_at=stamp, updated_at=stamp),
        round_number=3,
        active_combatant_id="cmb_2",
        combatants=(
            Combatant(
                id="cmb_1",
                base_actor_id="aria",
                display_name="Aria",
                added_order=0,
                initiative=17.0,
                initiative_modifier=3,
                is_npc_like=False,
                tie_break_order=1,
                has_taken_turn=True,
            ),
            Combatant(
                id="cmb_2",
                base_actor_id="goblin",
                display_name="Goblin",
                added_order=1,
                initiative=12.8765,
                initiative_modifier=2,
            ),
        ),
        attachments=(
            ConditionAttachment(
                id="cond_1",
                combatant_id="cmb_2",
                condition_type=ConditionType.GRAPPLED,
                applied_at_round=2,
                remaining_duration=1,
            ),
            ConditionAttachment(
                id="cond_2",
                combatant_id="cmb_1",
                condition_type=ConditionType.EXHAUSTION,
                applied_at_round=1,
                is_permanent=True,
            ),
        ),
    )


def test_serialize_payload_shape() -> None:
    payload = EncounterSaveService().serialize(_make_record())

    assert payload["save_version"] == EncounterSaveService.SAVE_VERSION
    assert payload["encounter"]["created_at"] == "2024-05-01T12:00:00+00:00"
    assert payload["state"] == {"round_number": 3, "active_combatant_id": "cmb_2"}
    assert payload["combatants"][0]["tie_break_order"] == 1
    assert payload["conditions"][0]["condition_id"] == ConditionType.GRAPPLED.type_id


def test_deserialize_restores_record() -> None:
    service = EncounterSaveService()
    record = _make_record()

    assert service.deserialize(service.serialize(record)) == record


def test_missing_optional_condition_list_is_tolerated() -> None:
    service = EncounterSaveService()
    payload = service.serialize(_make_record())
    del payload["conditions"]

    assert service.deserialize(payload).attachments == ()


def _broken(mutate) -> dict:
    payload = EncounterSaveService().serialize(_make_record())
    broken = copy.deepcopy(payload)
    mutate(broken)
    return broken


@pytest.mark.parametrize(
    "mutate",
    [
        lambda p: p.update(save_version=99),
        lambda p: p.pop("state"),
        lambda p: p["state"].update(round_number=0),
        lambda p: p["encounter"].update(created_at="yesterday"),
        lambda p: p["combatants"][0].update(initiative="high"),
        lambda p: p["combatants"][0].update(added_order=1.5),
        lambda p: p["combatants"][1].update(id="cmb_1"),
        lambda p: p["conditions"][0].update(combatant_id="cmb_missing"),
        lambda p: p["conditions"][0].update(condition_id=42),
        lambda p: p["conditions"][1].update(combatant_id="cmb_2", condition_id=6),
        lambda p: p["conditions"][0].update(remaining_duration=None),
    ],
)
def test_deserialize_rejects_corrupt_payloads(mutate) -> None:
    with pytest.raises(PersistenceError):
        EncounterSaveService().deserialize(_broken(mutate))


def test_deserialize_rejects_non_mapping() -> None:
    with pytest.raises(PersistenceError):
        EncounterSaveService().deserialize(["not", "a", "dict"])  # type: ignore[arg-type]
