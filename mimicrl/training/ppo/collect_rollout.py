"""
Rollout collection for PPO training.

A collector owns one game core and fills a fixed-length buffer for the
trained seat, playing against an opponent that is re-sampled at every episode
start. Collection is a coroutine: it yields to the event loop every
``yield_interval`` transitions so several collectors (and the host
application) can share one thread.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from tqdm import tqdm

from mimicrl.core.controllers import PlayerController, RandomController
from mimicrl.core.game_core import GameCore, GameState, Outcome
from mimicrl.policy.agent import PolicyAgent

from .config import PPOConfig
from .logger import logger
from .rollout_buffer import RolloutBuffer, Transition
from .scheduler import yield_now


class MissingOutcomeError(ValueError):
    """A game core ended an episode without reporting per-player outcomes."""


@dataclass
class EpisodeResult:
    """Summary of one finished episode from the trained seat's view."""

    outcome: List[Outcome]
    trained_outcome: Outcome
    length: int  # Transitions (decisions) in the episode
    total_reward: float


@dataclass
class RolloutResult:
    buffer: RolloutBuffer
    last_value: float
    episodes: List[EpisodeResult] = field(default_factory=list)


class RolloutCollector:
    """Fills rollout buffers from one environment instance."""

    def __init__(
        self,
        game_core: GameCore,
        config: PPOConfig,
        agent: Optional[PolicyAgent] = None,
        sample_opponent: Optional[Callable[[], Optional[PlayerController]]] = None,
        on_episode_end: Optional[Callable[[EpisodeResult], None]] = None,
        collector_id: int = 0,
    ):
        """Initialize the collector.

        Args:
            game_core: Environment this collector drives exclusively
            config: PPO configuration (rollout section)
            agent: Shared policy agent for the trained seat
            sample_opponent: Called at every episode start; None falls back to random
            on_episode_end: Called synchronously when an episode terminates
            collector_id: Index used for logging and progress bar placement
        """
        if config.trained_seat >= game_core.get_num_players():
            raise ValueError(
                f"trained_seat {config.trained_seat} out of range for "
                f"{game_core.get_num_players()} players"
            )

        self.game_core = game_core
        self.set_config(config)
        self.agent = agent
        self.sample_opponent = sample_opponent
        self.on_episode_end = on_episode_end
        self.collector_id = collector_id
        self.default_opponent = RandomController(
            game_core.get_action_spaces(),
            seed=None if config.seed is None else config.seed + 1000 + collector_id,
        )
        self.logger = logger.bind(component="rollout", id=f"collector-{collector_id}")

    def set_agent(self, agent: PolicyAgent) -> None:
        self.agent = agent

    def set_config(self, config: PPOConfig) -> None:
        self.config = config
        self.ticks_per_action = max(
            1, math.ceil(config.action_interval_seconds / config.delta_time - 1e-9)
        )

    async def collect_rollout(self) -> RolloutResult:
        """Collect exactly ``rollout_max_length`` transitions.

        Returns:
            Buffer with resolved ``next_value`` fields, the bootstrap value of
            the state following the last transition, and finished episodes.
        """
        if self.agent is None:
            raise RuntimeError("RolloutCollector has no agent; call set_agent first")

        agent = self.agent
        cfg = self.config
        seat = cfg.trained_seat

        agent.activate()
        buffer = RolloutBuffer(cfg.rollout_max_length)
        episodes: List[EpisodeResult] = []

        state = self.game_core.reset()
        opponent = self._next_opponent()
        episode_length = 0
        episode_reward = 0.0

        with tqdm(
            total=cfg.rollout_max_length,
            desc=f"Collecting Rollout {self.collector_id}",
            unit="step",
            leave=False,
            ncols=100,
            position=self.collector_id,
            disable=not cfg.show_progress,
        ) as pbar:
            while not buffer.is_full:
                observation = list(state.observations[seat])
                result = agent.act(observation)
                actions = self._joint_actions(state, result.action, opponent)

                # Hold the action for the whole interval
                reward = 0.0
                for _ in range(self.ticks_per_action):
                    state = self.game_core.step(actions, cfg.delta_time)
                    reward += state.rewards[seat]
                    if state.done:
                        break

                if state.done and not state.outcome:
                    raise MissingOutcomeError(
                        f"{type(self.game_core).__name__} ended an episode without outcome metadata"
                    )

                buffer.add(
                    Transition(
                        observation=observation,
                        action=list(result.action),
                        reward=reward,
                        done=state.done,
                        value=result.value,
                        log_prob=result.log_prob,
                        outcome=list(state.outcome) if state.done else None,
                    )
                )
                episode_length += 1
                episode_reward += reward

                if state.done:
                    episode = EpisodeResult(
                        outcome=list(state.outcome),
                        trained_outcome=state.outcome[seat],
                        length=episode_length,
                        total_reward=episode_reward,
                    )
                    episodes.append(episode)
                    self._notify_episode_end(episode)

                    state = self.game_core.reset()
                    opponent = self._next_opponent()
                    episode_length = 0
                    episode_reward = 0.0

                pbar.update(1)
                if len(buffer) % cfg.yield_interval == 0:
                    pbar.set_postfix({"episodes": len(episodes)})
                    await yield_now()

        last_value = agent.estimate_value(state.observations[seat])
        buffer.resolve_next_values(last_value)

        return RolloutResult(buffer=buffer, last_value=last_value, episodes=episodes)

    def _next_opponent(self) -> PlayerController:
        opponent = None
        if self.sample_opponent is not None:
            try:
                opponent = self.sample_opponent()
            except Exception:
                self.logger.exception("Opponent sampling failed, using random opponent")
        return opponent or self.default_opponent

    def _joint_actions(
        self, state: GameState, action: List[float], opponent: PlayerController
    ) -> List[List[float]]:
        actions = []
        for player in range(self.game_core.get_num_players()):
            if player == self.config.trained_seat:
                actions.append(action)
            else:
                actions.append(opponent.decide(state.observations[player]))
        return actions

    def _notify_episode_end(self, episode: EpisodeResult) -> None:
        if self.on_episode_end is None:
            return
        try:
            self.on_episode_end(episode)
        except Exception:
            self.logger.exception("Episode-end callback raised")
