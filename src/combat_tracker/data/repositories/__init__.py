"""Repository exports."""

from .actors_repo import ActorsRepository

__all__ = [
    "ActorsRepository",
]
