"""
Environment contract shared by every arena game the trainer can drive.

A game core advances a fixed number of players in lock-step: each call to
``step`` receives one action vector per player and returns the next
observations, the per-player rewards, and the episode termination flag.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Outcome(Enum):
    """Per-player result of a finished episode."""

    WIN = "win"
    LOSS = "loss"
    TIE = "tie"


class ActionSpaceType(Enum):
    """Kind of a single action dimension."""

    DISCRETE = "discrete"
    CONTINUOUS = "continuous"


@dataclass
class ActionSpace:
    """Description of one action dimension.

    Discrete dimensions are binary (pressed / not pressed); continuous
    dimensions carry a real value.
    """

    type: ActionSpaceType

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionSpace":
        return cls(type=ActionSpaceType(data["type"]))


@dataclass
class GameState:
    """Snapshot returned by ``reset`` and ``step``."""

    observations: List[List[float]]
    rewards: List[float]
    done: bool = False
    outcome: Optional[List[Outcome]] = None
    info: Dict[str, Any] = field(default_factory=dict)


class GameCore(ABC):
    """Interface every trainable game implements."""

    @abstractmethod
    def reset(self) -> GameState:
        """Start a new episode and return its initial state."""

    @abstractmethod
    def step(self, actions: List[List[float]], delta_time: float) -> GameState:
        """Advance the simulation by ``delta_time`` seconds.

        Args:
            actions: One action vector per player, indexed by seat
            delta_time: Simulated seconds for this tick

        Returns:
            Next game state. ``outcome`` is populated when ``done`` is set.
        """

    @abstractmethod
    def get_num_players(self) -> int:
        pass

    @abstractmethod
    def get_observation_size(self) -> int:
        pass

    @abstractmethod
    def get_action_size(self) -> int:
        pass

    @abstractmethod
    def get_action_spaces(self) -> List[ActionSpace]:
        pass

    def get_outcome(self) -> Optional[List[Outcome]]:
        """Outcome of the last finished episode, if the game tracks one."""
        return None
