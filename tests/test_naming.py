from combat_tracker.domain.naming import next_display_name


def test_first_instance_has_no_suffix() -> None:
    assert next_display_name("Goblin", []) == "Goblin"


def test_second_instance_gets_suffix_two() -> None:
    assert next_display_name("Goblin", ["Goblin"]) == "Goblin 2"


def test_smallest_free_suffix_is_reused() -> None:
    assert next_display_name("Goblin", ["Goblin", "Goblin 3"]) == "Goblin 2"


def test_plain_name_reused_when_free() -> None:
    assert next_display_name("Goblin", ["Goblin 2"]) == "Goblin"


def test_other_actor_names_do_not_interfere() -> None:
    assert next_display_name("Ogre", ["Goblin", "Goblin 2"]) == "Ogre"
