"""Display-name helpers for multiple instances of one actor."""
from __future__ import annotations

from typing import Iterable


def next_display_name(base_name: str, names_in_use: Iterable[str]) -> str:
    """
    Return the first free name in the sequence ``base``, ``base 2``, ``base 3``...

    The plain name counts as instance one, so a lone instance is never
    suffixed and a name held by a live combatant is never handed out again.
    """
    taken = set(names_in_use)
    if base_name not in taken:
        return base_name
    instance = 2
    while f"{base_name} {instance}" in taken:
        instance += 1
    return f"{base_name} {instance}"
