"""
Training session orchestrator.

Runs the self-play PPO loop as an asyncio task on the caller's event loop:

    idle --start--> training --pause--> paused --resume--> training
      ^                 |                                     |
      +------stop-------+---- max_games reached ----> completed

Each iteration fans out every collector concurrently, waits for all of them
(no partial batches), computes GAE per buffer, trains once on the pooled
batch, then reports progress. Control requests are only observed at the
cooperative yield points.
"""

import asyncio
import time
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from mimicrl.core.controllers import PlayerController
from mimicrl.core.game_core import GameCore
from mimicrl.model.model_saver import ModelSaver
from mimicrl.policy.agent import PolicyAgent
from mimicrl.policy.bundle import decode_bundle

from .collect_rollout import (EpisodeResult, MissingOutcomeError,
                              RolloutCollector, RolloutResult)
from .config import PPOConfig
from .events import TrainingObserver
from .logger import logger
from .metrics import TrainingMetrics, rollout_statistics
from .opponent_pool import OpponentPool
from .ppo_trainer import PPOTrainer
from .rollout_buffer import build_training_batch
from .scheduler import yield_now

SUPPORTED_ALGORITHMS = ("PPO",)

# Baked into the agent's networks and generator at construction
FROZEN_AFTER_BUILD = (
    "policy_hidden_layers",
    "value_hidden_layers",
    "activation",
    "initial_std",
    "seed",
)


class SessionState(Enum):
    IDLE = "idle"
    TRAINING = "training"
    PAUSED = "paused"
    COMPLETED = "completed"


class TrainingSession:
    """Owns the agent, trainer, collectors and metrics of one training run."""

    def __init__(
        self,
        game_core_factory: Callable[[], GameCore],
        config: Optional[PPOConfig] = None,
        opponent_pool: Optional[OpponentPool] = None,
        model_saver: Optional[ModelSaver] = None,
        observers: Optional[List[TrainingObserver]] = None,
    ):
        """Initialize the session.

        Args:
            game_core_factory: Creates an independent game instance per collector
            config: PPO configuration (defaults if None)
            opponent_pool: Opponent pool; created from config if None
            model_saver: Destination for checkpoints; saving is skipped if None
            observers: Event observers
        """
        self.game_core_factory = game_core_factory
        self.config = config or PPOConfig()
        self.game_core = game_core_factory()
        self.opponent_pool = opponent_pool
        self.model_saver = model_saver
        self.observers: List[TrainingObserver] = list(observers or [])

        self.state = SessionState.IDLE
        self.metrics = TrainingMetrics()
        self.agent: Optional[PolicyAgent] = None
        self.trainer: Optional[PPOTrainer] = None
        self.collectors: List[RolloutCollector] = []

        self.iteration = 0
        self.last_progress: Optional[Dict[str, Any]] = None
        self._task: Optional[asyncio.Task] = None
        self._iteration_episodes: List[EpisodeResult] = []
        self._last_autosave_games = 0

        self.logger = logger.bind(component="session")

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Build agent, trainer, opponent pool and collectors.

        Raises:
            ValueError: For an unsupported algorithm or an invalid trained seat
        """
        self._check_config(self.config)

        if self.agent is None:
            self.agent = PolicyAgent(
                observation_size=self.game_core.get_observation_size(),
                action_size=self.game_core.get_action_size(),
                action_spaces=self.game_core.get_action_spaces(),
                policy_hidden_layers=self.config.policy_hidden_layers,
                value_hidden_layers=self.config.value_hidden_layers,
                activation=self.config.activation,
                initial_std=self.config.initial_std,
                seed=self.config.seed,
            )
        self.trainer = PPOTrainer(self.config, self.agent)

        if self.opponent_pool is None:
            self.opponent_pool = OpponentPool(
                self.game_core,
                storage_path=self.config.opponent_pool_path,
                seed=self.config.seed,
            )

        self._create_collectors()
        self.logger.info(
            f"Initialized {len(self.collectors)} collector(s) for agent {self.agent.agent_id}"
        )

    def _check_config(self, config: PPOConfig) -> None:
        if config.algorithm.upper() not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported training algorithm: {config.algorithm}")

        num_players = self.game_core.get_num_players()
        if not 0 <= config.trained_seat < num_players:
            raise ValueError(
                f"trained_seat {config.trained_seat} out of range for {num_players} players"
            )

    def _create_collectors(self) -> None:
        self.collectors = [
            RolloutCollector(
                game_core=self.game_core_factory(),
                config=self.config,
                agent=self.agent,
                sample_opponent=self._sample_opponent,
                on_episode_end=self._handle_episode_end,
                collector_id=i,
            )
            for i in range(self.config.num_rollouts)
        ]

    def add_observer(self, observer: TrainingObserver) -> None:
        self.observers.append(observer)

    def remove_observer(self, observer: TrainingObserver) -> None:
        if observer in self.observers:
            self.observers.remove(observer)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Launch the training loop on the running event loop and return.

        Raises:
            RuntimeError: If called outside a running event loop
        """
        if self.state is not SessionState.IDLE:
            self.logger.warning(f"start() ignored in state {self.state.value}")
            return

        loop = asyncio.get_running_loop()
        if self.trainer is None:
            self.initialize()
        if not self.collectors:
            self._create_collectors()

        self.metrics.reset()
        self.iteration = 0
        self._last_autosave_games = 0
        self.state = SessionState.TRAINING
        self._task = loop.create_task(self._training_loop())
        self.logger.info(f"Training started (max_games={self.config.max_games})")

    def pause(self) -> None:
        """Stop before the next iteration. No-op unless training."""
        if self.state is SessionState.TRAINING:
            self.state = SessionState.PAUSED
            self.logger.info("Training paused")

    def resume(self) -> None:
        """Continue a paused session. No-op unless paused."""
        if self.state is not SessionState.PAUSED:
            return
        loop = asyncio.get_running_loop()
        self.state = SessionState.TRAINING
        self.logger.info("Training resumed")
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._training_loop())

    def stop(self) -> None:
        """Return to idle from any state, discarding in-flight rollouts."""
        if self.state is SessionState.IDLE:
            return

        self.state = SessionState.IDLE
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.collectors = []
        self.logger.info("Training stopped")
        self.save_model()

    async def wait(self) -> None:
        """Wait until the current training task finishes (completed, paused or stopped).

        Raises:
            MissingOutcomeError: If the game core ended an episode without outcomes
        """
        if self._task is None:
            return
        await asyncio.wait([self._task])
        if not self._task.cancelled() and self._task.exception() is not None:
            raise self._task.exception()

    async def run(self) -> TrainingMetrics:
        """Start training and wait for it to finish."""
        self.start()
        await self.wait()
        return self.metrics

    @property
    def is_training(self) -> bool:
        return self.state is SessionState.TRAINING

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _training_loop(self) -> None:
        while self.state is SessionState.TRAINING:
            try:
                await yield_now()
                if self.state is not SessionState.TRAINING:
                    break
                await self._run_iteration()
            except MissingOutcomeError:
                self.logger.exception("Game core does not report outcomes; training aborted")
                self.state = SessionState.IDLE
                self.collectors = []
                raise
            except Exception:
                self.logger.exception(f"Training iteration {self.iteration} failed")
            await yield_now()

    async def _run_iteration(self) -> None:
        self.iteration += 1
        self._iteration_episodes = []

        if self.opponent_pool.storage_path is not None:
            self.opponent_pool.load()
        for collector in self.collectors:
            collector.set_agent(self.agent)
        self._notify("on_rollout_start", self.iteration)

        results = await self._collect_all()

        batch = build_training_batch(
            [result.buffer for result in results],
            self.config.discount_factor,
            self.config.gae_lambda,
        )
        await yield_now()

        if len(batch) > 0:
            self.trainer.train(batch)
        await yield_now()

        snapshot = self._progress_snapshot(len(batch))
        self.last_progress = snapshot
        self.logger.info(
            f"Iteration {self.iteration}: games={self.metrics.games_completed} "
            f"win_rate={self.metrics.win_rate:.3f} "
            f"avg_reward={snapshot['rollout']['reward_avg']:.3f} "
            f"entropy={snapshot['policy_entropy']:.4f}"
        )
        self._notify("on_training_progress", snapshot)
        if self.state is SessionState.IDLE:
            # Stopped by an observer
            return

        self._maybe_auto_save()
        if self.metrics.games_completed >= self.config.max_games:
            self._complete_training()

    async def _collect_all(self) -> List[RolloutResult]:
        tasks = [asyncio.ensure_future(c.collect_rollout()) for c in self.collectors]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    def _sample_opponent(self) -> PlayerController:
        return self.opponent_pool.sample_controller()

    def _handle_episode_end(self, episode: EpisodeResult) -> None:
        self._iteration_episodes.append(episode)
        self.metrics.record_episode(
            episode.trained_outcome, episode.length, episode.total_reward
        )
        self._notify("on_episode_end", episode)

    def _progress_snapshot(self, num_samples: int) -> Dict[str, Any]:
        stats = self.trainer.get_stats()
        return {
            "iteration": self.iteration,
            "samples": num_samples,
            "metrics": self.metrics.summary(),
            "rollout": rollout_statistics(self._iteration_episodes),
            "policy_entropy": stats.entropy,
            "trainer": stats.to_dict(),
            "games_per_hour": self.metrics.games_per_hour(),
            "progress_percentage": self.metrics.progress_percentage(self.config.max_games),
        }

    def _maybe_auto_save(self) -> None:
        interval = self.config.auto_save_interval
        if interval <= 0:
            return
        if self.metrics.games_completed - self._last_autosave_games >= interval:
            self._last_autosave_games = self.metrics.games_completed
            self.save_model()

    def _complete_training(self) -> None:
        self.state = SessionState.COMPLETED
        self.logger.info(
            f"Training completed after {self.metrics.games_completed} games "
            f"(win_rate={self.metrics.win_rate:.3f})"
        )
        self.save_model(is_final=True)
        self._notify("on_training_complete", self.metrics)

    def _notify(self, event: str, *args: Any) -> None:
        for observer in list(self.observers):
            try:
                getattr(observer, event)(*args)
            except Exception:
                self.logger.exception(f"Observer {type(observer).__name__}.{event} raised")

    # ------------------------------------------------------------------
    # Weights and persistence
    # ------------------------------------------------------------------

    def _require_agent(self) -> PolicyAgent:
        if self.agent is None:
            raise RuntimeError("Session has no agent; call initialize() first")
        return self.agent

    def export_agent_weights(self) -> Dict[str, Any]:
        agent = self._require_agent()
        metadata = {
            "exported_at": time.time(),
            "games_completed": self.metrics.games_completed,
            "win_rate": self.metrics.win_rate,
            "iteration": self.iteration,
        }
        return agent.to_bundle(metadata=metadata).to_dict()

    def import_agent_weights(self, data: Dict[str, Any]) -> None:
        """Replace the trained agent with one built from ``data``.

        Raises:
            ValueError: If the bundle is malformed or does not fit the game
        """
        bundle = decode_bundle(data, self.game_core.get_action_spaces())
        if bundle.observation_size != self.game_core.get_observation_size():
            raise ValueError(
                f"Invalid agent weights bundle: observation size {bundle.observation_size} "
                f"does not match game ({self.game_core.get_observation_size()})"
            )
        if bundle.action_size != self.game_core.get_action_size():
            raise ValueError(
                f"Invalid agent weights bundle: action size {bundle.action_size} "
                f"does not match game ({self.game_core.get_action_size()})"
            )

        agent = PolicyAgent.from_bundle(bundle, seed=self.config.seed)
        self.agent = agent
        if self.trainer is not None:
            self.trainer.set_agent(agent)
        for collector in self.collectors:
            collector.set_agent(agent)
        self.logger.info(f"Imported agent weights as {agent.agent_id}")

    def snapshot_opponent(self, label: str, weight: float = 1.0):
        """Freeze the current policy into the opponent pool."""
        agent = self._require_agent()
        if self.opponent_pool is None:
            raise RuntimeError("Session has no opponent pool; call initialize() first")
        return self.opponent_pool.add_policy(label, agent.to_bundle(), weight=weight)

    def save_model(self, is_final: bool = False):
        """Best-effort checkpoint; failures are logged, never raised."""
        if self.model_saver is None or self.agent is None:
            return None
        try:
            return self.model_saver.save_agent_checkpoint(
                self.export_agent_weights(),
                metrics=self.metrics.summary(),
                config=self.config,
                is_final=is_final,
            )
        except Exception:
            self.logger.exception("Failed to save model")
            return None

    def update_training_params(self, **changes: Any) -> None:
        """Change configuration values; they apply from the next iteration.

        Raises:
            ValueError: For unknown fields, values failing validation, or
                network fields changed after the agent was built
        """
        unknown = [key for key in changes if not hasattr(self.config, key)]
        if unknown:
            raise ValueError(f"Unknown training parameters: {unknown}")

        if self.agent is not None:
            frozen = [
                key
                for key in FROZEN_AFTER_BUILD
                if key in changes and changes[key] != getattr(self.config, key)
            ]
            if frozen:
                raise ValueError(f"Cannot change {frozen} after the agent has been built")

        candidate = replace(self.config, **changes)
        self._check_config(candidate)

        self.config = candidate
        if self.trainer is not None:
            self.trainer.config = self.config
            self.trainer.set_learning_rate(self.config.learning_rate)
        if self.collectors:
            if "num_rollouts" in changes:
                self._create_collectors()
            else:
                for collector in self.collectors:
                    collector.set_config(self.config)

    def get_status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "is_training": self.is_training,
            "iteration": self.iteration,
            "agent_id": self.agent.agent_id if self.agent else None,
            "num_collectors": len(self.collectors),
            "num_opponents": len(self.opponent_pool.options) if self.opponent_pool else 0,
            "metrics": self.metrics.summary(),
            "trainer": self.trainer.get_stats().to_dict() if self.trainer else None,
            "last_progress": self.last_progress,
        }
