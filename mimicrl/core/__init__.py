"""Environment contract and seat controllers."""

from .controllers import (PlayerController, PolicyController, RandomController,
                          ZeroController)
from .game_core import (ActionSpace, ActionSpaceType, GameCore, GameState,
                        Outcome)

__all__ = [
    "ActionSpace",
    "ActionSpaceType",
    "GameCore",
    "GameState",
    "Outcome",
    "PlayerController",
    "PolicyController",
    "RandomController",
    "ZeroController",
]
