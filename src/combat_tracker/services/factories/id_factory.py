"""Utilities for creating deterministic instance identifiers."""
from __future__ import annotations

from typing import Container

from combat_tracker.core.rng import RNG


def make_instance_id(prefix: str, rng: RNG, taken: Container[str] = ()) -> str:
    """Generate an identifier from the provided RNG that is not already taken."""
    while True:
        candidate = f"{prefix}_{rng.randint(100000, 999999)}"
        if candidate not in taken:
            return candidate
