"""Shared type aliases for the core, domain and service layers."""
from typing import Literal

RollModeName = Literal["all", "npc_only", "specific"]
TieBreakDirection = Literal["left", "right"]

__all__ = ["RollModeName", "TieBreakDirection"]
