"""Saber arena: the reference two-player game used for self-play training."""

from .config import RewardConfig, SaberArenaConfig
from .saber_arena import SaberArenaGame

__all__ = ["RewardConfig", "SaberArenaConfig", "SaberArenaGame"]
