"""
Utility functions for PPO training.
"""

import os
from typing import List

from .config import PPOConfig


def format_training_time(seconds: float) -> str:
    """Format training time in human-readable format.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def validate_config(config: PPOConfig) -> List[str]:
    """Check a configuration against its runtime environment.

    Field ranges are enforced by ``PPOConfig`` itself; this covers the
    combinations and filesystem conditions it cannot see.

    Args:
        config: PPO configuration to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    issues = []

    if config.algorithm.upper() != "PPO":
        issues.append(f"Unsupported algorithm: {config.algorithm}")

    # Batch size should be reachable with one iteration's samples
    total_samples = config.rollout_max_length * config.num_rollouts
    if config.mini_batch_size > total_samples:
        issues.append(
            f"Mini-batch size ({config.mini_batch_size}) larger than samples per "
            f"iteration ({total_samples})"
        )

    if config.action_interval_seconds < config.delta_time:
        issues.append(
            f"Action interval ({config.action_interval_seconds}s) shorter than one "
            f"tick ({config.delta_time}s)"
        )

    if os.path.exists(config.model_dir) and not os.path.isdir(config.model_dir):
        issues.append(f"Model directory is not a directory: {config.model_dir}")

    if config.opponent_pool_path and os.path.isdir(config.opponent_pool_path):
        issues.append(f"Opponent pool path is a directory: {config.opponent_pool_path}")

    return issues


def print_training_header(config: PPOConfig):
    """Print training configuration header.

    Args:
        config: PPO configuration
    """
    print("=" * 80)
    print("PPO SELF-PLAY TRAINING")
    print("=" * 80)
    print(f"Max Games: {config.max_games:,}")
    print(f"Rollout Length: {config.rollout_max_length:,}")
    print(f"Parallel Rollouts: {config.num_rollouts}")
    print(f"Mini-batch Size: {config.mini_batch_size}")
    print(f"Epochs: {config.epochs}")
    print(f"Learning Rate: {config.learning_rate}")
    print(f"Discount Factor: {config.discount_factor}")
    print(f"GAE Lambda: {config.gae_lambda}")
    print(f"Policy Layers: {config.policy_hidden_layers}")
    print("=" * 80)
