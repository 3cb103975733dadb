"""
PPO trainer: owns the optimizer and running statistics for one policy agent.
"""

from dataclasses import asdict, dataclass, replace
from typing import Dict

import torch

from mimicrl.policy.agent import PolicyAgent

from .config import PPOConfig
from .logger import logger
from .rollout_buffer import TrainingBatch
from .update_policy import update_policy


@dataclass
class TrainingStats:
    """Statistics from the most recent update plus cumulative counters."""

    policy_loss: float = 0.0
    value_loss: float = 0.0
    entropy: float = 0.0
    kl_divergence: float = 0.0
    clip_fraction: float = 0.0
    grad_norm: float = 0.0
    total_updates: int = 0
    total_samples: int = 0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


class PPOTrainer:
    """Clipped-surrogate PPO over a single ``PolicyAgent``."""

    def __init__(self, config: PPOConfig, agent: PolicyAgent):
        self.config = config
        self.agent = agent
        self.optimizer = self._create_optimizer()
        self.stats = TrainingStats()
        self.generator = torch.Generator()
        if config.seed is not None:
            self.generator.manual_seed(config.seed)
        self.logger = logger.bind(component="ppo_trainer", id=agent.agent_id)

    def _create_optimizer(self) -> torch.optim.Optimizer:
        return torch.optim.Adam(self.agent.parameters(), lr=self.config.learning_rate)

    def set_agent(self, agent: PolicyAgent) -> None:
        """Train a different agent; optimizer state starts fresh."""
        self.agent = agent
        self.optimizer = self._create_optimizer()
        self.logger = logger.bind(component="ppo_trainer", id=agent.agent_id)

    def set_learning_rate(self, learning_rate: float) -> None:
        if learning_rate <= 0:
            raise ValueError("learning_rate must be positive")
        for group in self.optimizer.param_groups:
            group["lr"] = learning_rate

    def train(self, batch: TrainingBatch) -> TrainingStats:
        """Update the agent on one pooled batch. Empty batches are a no-op."""
        if len(batch) == 0:
            self.logger.debug("Empty batch, skipping update")
            return self.get_stats()

        update_stats = update_policy(
            agent=self.agent,
            optimizer=self.optimizer,
            batch=batch,
            config=self.config,
            generator=self.generator,
        )

        if update_stats["num_updates"] > 0:
            self.stats.policy_loss = update_stats["policy_loss"]
            self.stats.value_loss = update_stats["value_loss"]
            self.stats.entropy = update_stats["entropy"]
            self.stats.kl_divergence = update_stats["kl_divergence"]
            self.stats.clip_fraction = update_stats["clip_fraction"]
            self.stats.grad_norm = update_stats["grad_norm"]
        self.stats.total_updates += int(update_stats["num_updates"])
        self.stats.total_samples += len(batch)

        self.logger.debug(
            f"Update on {len(batch)} samples: "
            f"policy_loss={self.stats.policy_loss:.4f} "
            f"value_loss={self.stats.value_loss:.4f} "
            f"entropy={self.stats.entropy:.4f} "
            f"kl={self.stats.kl_divergence:.5f}"
        )
        return self.get_stats()

    def get_stats(self) -> TrainingStats:
        return replace(self.stats)

    def reset_stats(self) -> None:
        self.stats = TrainingStats()
