"""
Configuration for PPO self-play training.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class PPOConfig:
    """Configuration for PPO self-play training."""

    algorithm: str = "PPO"

    # Network parameters
    policy_hidden_layers: List[int] = field(default_factory=lambda: [64, 64])
    value_hidden_layers: List[int] = field(default_factory=lambda: [64, 64])
    activation: str = "relu"
    initial_std: float = 0.1  # Gaussian std for continuous action dimensions

    # Rollout parameters
    rollout_max_length: int = 4096  # Transitions per collector per iteration
    delta_time: float = 0.05  # Simulated seconds per environment tick
    action_interval_seconds: float = 0.2  # Each action is held this long (frame skip)
    yield_interval: int = 10  # Transitions between cooperative yields
    num_rollouts: int = 1  # Collectors run concurrently per iteration
    trained_seat: int = 0

    # PPO algorithm parameters
    learning_rate: float = 1e-3
    mini_batch_size: int = 64
    epochs: int = 4
    discount_factor: float = 0.99
    gae_lambda: float = 0.95
    clip_ratio: float = 0.2
    value_loss_coeff: float = 0.5
    entropy_coeff: float = 0.01
    max_grad_norm: float = 0.5
    normalize_advantages: bool = True

    # Session parameters
    max_games: int = 10_000  # Stop after this many completed episodes
    auto_save_interval: int = 50  # Games between auto-saves (0 disables)

    # Paths
    model_dir: str = "model"
    opponent_pool_path: Optional[str] = None  # JSON file, in-memory pool if None
    progress_chart_path: Optional[str] = None

    # Logging
    show_progress: bool = False  # tqdm bars for rollout and update phases

    seed: Optional[int] = None

    def __post_init__(self):
        """Validate configuration."""
        if self.learning_rate <= 0:
            raise ValueError("learning_rate must be positive")

        if not (0 < self.discount_factor <= 1):
            raise ValueError("discount_factor must be in (0, 1]")

        if not (0 <= self.gae_lambda <= 1):
            raise ValueError("gae_lambda must be in [0, 1]")

        if self.clip_ratio <= 0:
            raise ValueError("clip_ratio must be positive")

        if self.rollout_max_length <= 0:
            raise ValueError("rollout_max_length must be positive")

        if self.mini_batch_size <= 0:
            raise ValueError("mini_batch_size must be positive")

        if self.epochs <= 0:
            raise ValueError("epochs must be positive")

        if self.delta_time <= 0:
            raise ValueError("delta_time must be positive")

        if self.action_interval_seconds <= 0:
            raise ValueError("action_interval_seconds must be positive")

        if self.yield_interval <= 0:
            raise ValueError("yield_interval must be positive")

        if self.num_rollouts <= 0:
            raise ValueError("num_rollouts must be positive")

        if self.trained_seat < 0:
            raise ValueError("trained_seat must be non-negative")

        if self.max_grad_norm <= 0:
            raise ValueError("max_grad_norm must be positive")

        if self.value_loss_coeff < 0 or self.entropy_coeff < 0:
            raise ValueError("loss coefficients must be non-negative")

        if self.max_games <= 0:
            raise ValueError("max_games must be positive")

        if self.auto_save_interval < 0:
            raise ValueError("auto_save_interval must be non-negative")

        if self.initial_std <= 0:
            raise ValueError("initial_std must be positive")
