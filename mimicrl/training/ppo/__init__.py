"""
PPO self-play training for two-player arena games.

The trained agent plays one seat; the other seat is driven by opponents drawn
from a weighted pool of random and frozen policies. Rollouts from several
game instances are collected concurrently on one asyncio event loop, pooled,
and used for a clipped-surrogate PPO update.

Key Components:
- TrainingSession: State machine and async training loop
- RolloutCollector: Frame-skipped experience collection with cooperative yields
- RolloutBuffer / compute_gae: Transition storage and advantage estimation
- PPOTrainer: Optimizer and minibatch PPO updates
- OpponentPool: Weighted random / frozen-policy opponents

Usage:
    from mimicrl.game import SaberArenaGame
    from mimicrl.training.ppo import PPOConfig, TrainingSession

    session = TrainingSession(SaberArenaGame, PPOConfig(max_games=500))
    metrics = asyncio.run(session.run())

Or run directly:
    python scripts/train_ppo.py
"""

from .collect_rollout import (EpisodeResult, MissingOutcomeError,
                              RolloutCollector, RolloutResult)
from .config import PPOConfig
from .events import TrainingObserver
from .metrics import TrainingMetrics
from .opponent_pool import OpponentOption, OpponentPool, OpponentType
from .ppo_trainer import PPOTrainer, TrainingStats
from .rollout_buffer import (RolloutBuffer, TrainingBatch, Transition,
                             build_training_batch, compute_gae)
from .train_ppo import PPOTrainingManager
from .training_session import SessionState, TrainingSession

__all__ = [
    # Main classes
    "PPOConfig",
    "PPOTrainer",
    "PPOTrainingManager",
    "TrainingSession",
    "SessionState",
    "TrainingStats",
    # Experience collection
    "RolloutCollector",
    "RolloutResult",
    "EpisodeResult",
    "MissingOutcomeError",
    "RolloutBuffer",
    "Transition",
    "TrainingBatch",
    "build_training_batch",
    "compute_gae",
    # Opponents
    "OpponentPool",
    "OpponentOption",
    "OpponentType",
    # Monitoring
    "TrainingMetrics",
    "TrainingObserver",
]

# Version info
__version__ = "1.0.0"
__description__ = "PPO self-play training for two-player arena games"
