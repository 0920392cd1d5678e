from __future__ import annotations

import json
from pathlib import Path

import pytest

from combat_tracker.data.errors import DataLoadError, DataValidationError
from combat_tracker.data.repositories import ActorsRepository
from combat_tracker.domain.defs import ActorCategory


def _write_actors(tmp_path: Path, payload: object) -> Path:
    (tmp_path / "actors.json").write_text(json.dumps(payload), encoding="utf-8")
    return tmp_path


def test_bundled_actor_library_loads() -> None:
    repo = ActorsRepository()
    goblin = repo.get("goblin")

    assert goblin.name == "Goblin"
    assert goblin.category is ActorCategory.MONSTER
    assert goblin.category.is_npc_like
    assert not repo.get("aria").category.is_npc_like
    assert [actor.id for actor in repo.all()] == sorted(actor.id for actor in repo.all())


def test_find_returns_none_for_unknown_actor() -> None:
    repo = ActorsRepository()

    assert repo.find("dragon") is None
    with pytest.raises(KeyError):
        repo.get("dragon")


def test_actor_name_is_trimmed(tmp_path: Path) -> None:
    base = _write_actors(tmp_path, {"bard": {"name": "  Lute  ", "category": "player"}})

    actor = ActorsRepository(base_path=base).get("bard")

    assert actor.name == "Lute"
    assert actor.initiative_modifier == 0


@pytest.mark.parametrize(
    "entry",
    [
        {"category": "player"},
        {"name": "", "category": "player"},
        {"name": "X" * 101, "category": "player"},
        {"name": "Bad", "category": "dragon"},
        {"name": "Bad", "category": "npc", "initiative_modifier": 100},
        {"name": "Bad", "category": "npc", "initiative_modifier": "3"},
        {"name": "Bad", "category": "npc", "initiative_modifier": True},
    ],
)
def test_invalid_actor_entries_are_rejected(tmp_path: Path, entry: dict) -> None:
    base = _write_actors(tmp_path, {"bad": entry})

    with pytest.raises(DataValidationError):
        ActorsRepository(base_path=base).all()


def test_missing_actor_file_raises_load_error(tmp_path: Path) -> None:
    with pytest.raises(DataLoadError):
        ActorsRepository(base_path=tmp_path).all()
