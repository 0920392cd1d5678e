def test_import_combat_tracker_package() -> None:
    import importlib

    module = importlib.import_module("combat_tracker")
    assert module.__version__


def test_import_rng_no_side_effects() -> None:
    from combat_tracker.core.rng import RNG

    rng = RNG(42)
    value = rng.randint(0, 1)
    assert value in (0, 1)


def test_import_services_exports() -> None:
    from combat_tracker.services import CombatStateMachine, EncounterSession, SaveDispatcher

    assert CombatStateMachine is not None
    assert EncounterSession is not None
    assert SaveDispatcher is not None
