"""Controllers that decide actions for seats the trainer does not own."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from .game_core import ActionSpace, ActionSpaceType

if TYPE_CHECKING:
    from mimicrl.policy.agent import PolicyAgent


class PlayerController(ABC):
    """Maps an observation to an action vector."""

    @abstractmethod
    def decide(self, observation: List[float]) -> List[float]:
        pass


class RandomController(PlayerController):
    """Uniformly random behaviour.

    Discrete dimensions are pressed with probability 0.5, continuous
    dimensions draw from a standard normal.
    """

    def __init__(self, action_spaces: List[ActionSpace], seed: Optional[int] = None):
        self.action_spaces = list(action_spaces)
        self.rng = np.random.default_rng(seed)

    def decide(self, observation: List[float]) -> List[float]:
        action = []
        for space in self.action_spaces:
            if space.type is ActionSpaceType.DISCRETE:
                action.append(1.0 if self.rng.random() < 0.5 else 0.0)
            else:
                action.append(float(self.rng.standard_normal()))
        return action


class ZeroController(PlayerController):
    """Always returns the all-zero action (a player that stands still)."""

    def __init__(self, action_size: int):
        self.action_size = action_size

    def decide(self, observation: List[float]) -> List[float]:
        return [0.0] * self.action_size


class PolicyController(PlayerController):
    """Drives a seat with a (typically frozen) policy agent."""

    def __init__(self, agent: "PolicyAgent"):
        self.agent = agent

    def decide(self, observation: List[float]) -> List[float]:
        if not self.agent.is_active:
            self.agent.activate()
        return self.agent.act(observation).action
