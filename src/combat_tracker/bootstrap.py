"""Wiring for a ready-to-use encounter session."""
from __future__ import annotations

from pathlib import Path

from loguru import logger

from combat_tracker.config import TrackerConfig
from combat_tracker.core.log import configure_logging
from combat_tracker.core.rng import RNG
from combat_tracker.data.encounter_store import EncounterFileStore
from combat_tracker.data.repositories import ActorsRepository
from combat_tracker.services.encounter_repository import JsonEncounterRepository
from combat_tracker.services.encounter_session import EncounterSession
from combat_tracker.services.save_dispatcher import FailureCallback, SaveDispatcher


def build_session(
    config: TrackerConfig,
    *,
    definitions_path: Path | str | None = None,
    on_save_failure: FailureCallback | None = None,
    configure_logs: bool = True,
) -> EncounterSession:
    """Build an ``EncounterSession`` backed by JSON files under ``config.data_dir``."""
    if configure_logs:
        configure_logging(config.log_level)
    repository = JsonEncounterRepository(EncounterFileStore(config.data_dir))
    session = EncounterSession(
        repository,
        ActorsRepository(base_path=definitions_path),
        RNG(config.rng_seed),
        dispatcher=SaveDispatcher(on_failure=on_save_failure),
        autosave=config.autosave,
    )
    logger.debug("Session ready (data dir {}, autosave {})", config.data_dir, config.autosave)
    return session
