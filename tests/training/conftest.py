"""
Shared fixtures for training tests.
"""

from typing import List, Optional

import pytest

from mimicrl.core.game_core import (ActionSpace, ActionSpaceType, GameCore,
                                    GameState, Outcome)

OUTCOME_CYCLE = [
    [Outcome.WIN, Outcome.LOSS],
    [Outcome.LOSS, Outcome.WIN],
    [Outcome.TIE, Outcome.TIE],
]


class CountdownGame(GameCore):
    """Deterministic two-player game that ends after a fixed number of ticks.

    Every non-terminal tick pays ``tick_reward`` to each seat; the terminal
    tick pays +1 / -1 / 0 according to an outcome that cycles through
    win, loss and tie.
    """

    def __init__(
        self,
        episode_ticks: int = 20,
        tick_reward: float = 0.1,
        omit_outcome: bool = False,
    ):
        self.episode_ticks = episode_ticks
        self.tick_reward = tick_reward
        self.omit_outcome = omit_outcome
        self.ticks = 0
        self.episodes = 0
        self.resets = 0
        self.received_actions: List[List[List[float]]] = []

    def _observations(self) -> List[List[float]]:
        progress = self.ticks / self.episode_ticks
        return [[progress, 0.0, 1.0], [progress, 1.0, 0.0]]

    def reset(self) -> GameState:
        self.ticks = 0
        self.resets += 1
        return GameState(observations=self._observations(), rewards=[0.0, 0.0])

    def step(self, actions, delta_time) -> GameState:
        self.received_actions.append([list(a) for a in actions])
        self.ticks += 1
        if self.ticks < self.episode_ticks:
            return GameState(
                observations=self._observations(),
                rewards=[self.tick_reward, self.tick_reward],
            )

        outcome: Optional[List[Outcome]] = OUTCOME_CYCLE[self.episodes % 3]
        self.episodes += 1
        rewards = [
            1.0 if o is Outcome.WIN else -1.0 if o is Outcome.LOSS else 0.0
            for o in outcome
        ]
        return GameState(
            observations=self._observations(),
            rewards=rewards,
            done=True,
            outcome=None if self.omit_outcome else outcome,
        )

    def get_num_players(self) -> int:
        return 2

    def get_observation_size(self) -> int:
        return 3

    def get_action_size(self) -> int:
        return 2

    def get_action_spaces(self) -> List[ActionSpace]:
        return [ActionSpace(ActionSpaceType.DISCRETE), ActionSpace(ActionSpaceType.DISCRETE)]


@pytest.fixture
def countdown_game():
    return CountdownGame


@pytest.fixture
def small_config_kwargs():
    """Config values that keep a training iteration to a few milliseconds."""
    return dict(
        policy_hidden_layers=[8],
        value_hidden_layers=[8],
        rollout_max_length=20,
        mini_batch_size=8,
        epochs=2,
        yield_interval=5,
        auto_save_interval=0,
        seed=0,
    )
