"""
Rollout buffer for PPO training.

Stores one collector's transitions and computes GAE advantages for on-policy
learning. A buffer always holds a fixed number of transitions and is not
aligned to episode boundaries: episodes may end anywhere inside it and the
last one is usually cut off.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import torch

from mimicrl.core.game_core import Outcome


@dataclass
class Transition:
    """Single step of experience for the trained seat."""

    observation: List[float]
    action: List[float]
    reward: float
    done: bool
    value: float
    log_prob: float
    next_value: Optional[float] = None
    outcome: Optional[List[Outcome]] = None


def compute_gae(
    rewards: Sequence[float],
    values: Sequence[float],
    next_values: Sequence[float],
    dones: Sequence[bool],
    discount_factor: float,
    gae_lambda: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Generalized advantage estimation over one buffer.

    ``next_values`` must already be zero for terminal steps; ``dones`` also
    stops the advantage recursion from leaking across episode boundaries.

    Returns:
        Tuple of (advantages, returns) where ``returns = advantages + values``
    """
    n = len(rewards)
    if n == 0:
        raise ValueError("Cannot compute advantages for an empty buffer")
    if not (len(values) == len(next_values) == len(dones) == n):
        raise ValueError("rewards, values, next_values and dones must have the same length")

    rewards = np.asarray(rewards, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    next_values = np.asarray(next_values, dtype=np.float64)
    not_done = 1.0 - np.asarray(dones, dtype=np.float64)

    advantages = np.zeros(n, dtype=np.float64)
    gae = 0.0

    # Work backwards through the trajectory
    for step in reversed(range(n)):
        # TD error: δ = r + γ * V(s') - V(s)
        delta = rewards[step] + discount_factor * next_values[step] - values[step]
        # A = δ + γ * λ * (1 - done) * A_next
        gae = delta + discount_factor * gae_lambda * not_done[step] * gae
        advantages[step] = gae

    return advantages, advantages + values


class RolloutBuffer:
    """Fixed-length transition store for one collector invocation."""

    def __init__(self, max_length: int):
        if max_length <= 0:
            raise ValueError("max_length must be positive")
        self.max_length = max_length
        self.transitions: List[Transition] = []

    def __len__(self) -> int:
        return len(self.transitions)

    def __iter__(self) -> Iterator[Transition]:
        return iter(self.transitions)

    def __getitem__(self, index: int) -> Transition:
        return self.transitions[index]

    @property
    def is_full(self) -> bool:
        return len(self.transitions) >= self.max_length

    def add(self, transition: Transition) -> None:
        if self.is_full:
            raise ValueError(f"Buffer is full ({len(self.transitions)} >= {self.max_length})")
        self.transitions.append(transition)

    def resolve_next_values(self, last_value: float) -> None:
        """Fill ``next_value`` once the rollout is complete.

        Terminal steps get 0, every other step takes the following
        transition's value, and the final slot takes ``last_value``.
        """
        count = len(self.transitions)
        for i, transition in enumerate(self.transitions):
            if transition.done:
                transition.next_value = 0.0
            elif i + 1 < count:
                transition.next_value = self.transitions[i + 1].value
            else:
                transition.next_value = last_value

    def compute_advantages_and_returns(
        self, discount_factor: float, gae_lambda: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        if any(t.next_value is None for t in self.transitions):
            raise ValueError("next_value must be resolved before computing advantages")
        return compute_gae(
            rewards=[t.reward for t in self.transitions],
            values=[t.value for t in self.transitions],
            next_values=[t.next_value for t in self.transitions],
            dones=[t.done for t in self.transitions],
            discount_factor=discount_factor,
            gae_lambda=gae_lambda,
        )

    def clear(self) -> None:
        self.transitions = []

    def get_episode_stats(self) -> Dict[str, float]:
        """Statistics over the episodes that finished inside this buffer."""
        episode_rewards = []
        current = 0.0
        for transition in self.transitions:
            current += transition.reward
            if transition.done:
                episode_rewards.append(current)
                current = 0.0

        if not episode_rewards:
            return {"mean_episode_reward": 0.0, "num_episodes": 0}

        return {
            "mean_episode_reward": float(np.mean(episode_rewards)),
            "num_episodes": len(episode_rewards),
        }


@dataclass
class TrainingBatch:
    """Pooled experience from every collector, ready for a PPO update."""

    observations: torch.Tensor
    actions: torch.Tensor
    log_probs: torch.Tensor
    values: torch.Tensor
    advantages: torch.Tensor
    returns: torch.Tensor

    def __len__(self) -> int:
        return self.observations.shape[0]

    def get_batches(
        self, batch_size: int, generator: Optional[torch.Generator] = None
    ) -> List[Dict[str, torch.Tensor]]:
        """Shuffled minibatches covering the whole batch once."""
        total = len(self)
        indices = torch.randperm(total, generator=generator)

        batches = []
        for start in range(0, total, batch_size):
            batch_indices = indices[start : start + batch_size]
            batches.append(
                {
                    "observations": self.observations[batch_indices],
                    "actions": self.actions[batch_indices],
                    "log_probs": self.log_probs[batch_indices],
                    "values": self.values[batch_indices],
                    "advantages": self.advantages[batch_indices],
                    "returns": self.returns[batch_indices],
                }
            )
        return batches


def build_training_batch(
    buffers: Sequence[RolloutBuffer], discount_factor: float, gae_lambda: float
) -> TrainingBatch:
    """Run GAE on each buffer independently, then concatenate."""
    transitions: List[Transition] = []
    advantages = []
    returns = []

    for buffer in buffers:
        if len(buffer) == 0:
            continue
        buffer_advantages, buffer_returns = buffer.compute_advantages_and_returns(
            discount_factor, gae_lambda
        )
        transitions.extend(buffer.transitions)
        advantages.append(buffer_advantages)
        returns.append(buffer_returns)

    if not transitions:
        return TrainingBatch(
            observations=torch.zeros((0, 0)),
            actions=torch.zeros((0, 0)),
            log_probs=torch.zeros(0),
            values=torch.zeros(0),
            advantages=torch.zeros(0),
            returns=torch.zeros(0),
        )

    return TrainingBatch(
        observations=torch.tensor([t.observation for t in transitions], dtype=torch.float32),
        actions=torch.tensor([t.action for t in transitions], dtype=torch.float32),
        log_probs=torch.tensor([t.log_prob for t in transitions], dtype=torch.float32),
        values=torch.tensor([t.value for t in transitions], dtype=torch.float32),
        advantages=torch.as_tensor(np.concatenate(advantages), dtype=torch.float32),
        returns=torch.as_tensor(np.concatenate(returns), dtype=torch.float32),
    )
