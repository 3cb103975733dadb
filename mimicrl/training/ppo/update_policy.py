"""
Standalone PPO policy update with a tqdm progress bar.

Kept separate from ``PPOTrainer`` so the loss can be exercised directly.
"""

from dataclasses import replace
from typing import Dict, Optional

import torch
import torch.nn.functional as F
from tqdm import tqdm

from mimicrl.policy.agent import PolicyAgent

from .config import PPOConfig
from .logger import logger
from .rollout_buffer import TrainingBatch

log = logger.bind(component="ppo_trainer")


def clipped_surrogate_loss(
    new_log_probs: torch.Tensor,
    old_log_probs: torch.Tensor,
    advantages: torch.Tensor,
    clip_ratio: float,
) -> torch.Tensor:
    """PPO clipped policy loss: -mean(min(r·A, clip(r, 1-ε, 1+ε)·A))."""
    ratio = torch.exp(new_log_probs - old_log_probs)
    surr1 = ratio * advantages
    surr2 = torch.clamp(ratio, 1.0 - clip_ratio, 1.0 + clip_ratio) * advantages
    return -torch.min(surr1, surr2).mean()


def normalize_advantages(advantages: torch.Tensor) -> torch.Tensor:
    """Zero-mean, unit-std copy of ``advantages``; constant or single-sample input is returned unchanged."""
    if advantages.numel() < 2:
        return advantages
    std = advantages.std()
    if std <= 1e-8:
        return advantages
    return (advantages - advantages.mean()) / (std + 1e-8)


def update_policy(
    agent: PolicyAgent,
    optimizer: torch.optim.Optimizer,
    batch: TrainingBatch,
    config: PPOConfig,
    generator: Optional[torch.Generator] = None,
) -> Dict[str, float]:
    """Run ``config.epochs`` passes of minibatch PPO updates over ``batch``.

    Args:
        agent: Agent whose parameters are optimized in place
        optimizer: Optimizer over ``agent.parameters()``
        batch: Pooled experience with advantages and returns (not modified)
        config: PPO configuration
        generator: RNG for minibatch shuffling

    Returns:
        Dictionary with averaged training statistics
    """
    agent.train()

    update_stats = {
        "policy_loss": 0.0,
        "value_loss": 0.0,
        "entropy": 0.0,
        "kl_divergence": 0.0,
        "clip_fraction": 0.0,
        "grad_norm": 0.0,
    }

    if config.normalize_advantages:
        batch = replace(batch, advantages=normalize_advantages(batch.advantages))

    batches_per_epoch = (len(batch) + config.mini_batch_size - 1) // config.mini_batch_size
    total_batches = 0
    params = agent.parameters()

    with tqdm(
        total=batches_per_epoch * config.epochs,
        desc="Policy Update",
        unit="batch",
        leave=False,
        ncols=100,
        disable=not config.show_progress,
    ) as pbar:
        for epoch in range(config.epochs):
            for minibatch in batch.get_batches(config.mini_batch_size, generator):
                old_log_probs = minibatch["log_probs"]
                mb_advantages = minibatch["advantages"]

                new_log_probs, entropy, values = agent.evaluate_actions(
                    minibatch["observations"], minibatch["actions"]
                )

                policy_loss = clipped_surrogate_loss(
                    new_log_probs, old_log_probs, mb_advantages, config.clip_ratio
                )
                value_loss = F.mse_loss(values, minibatch["returns"])
                entropy_mean = entropy.mean()

                total_loss = (
                    policy_loss
                    + config.value_loss_coeff * value_loss
                    - config.entropy_coeff * entropy_mean
                )

                if not torch.isfinite(total_loss):
                    log.warning(f"Non-finite loss {total_loss.item()}, skipping minibatch")
                    pbar.update(1)
                    continue

                optimizer.zero_grad()
                total_loss.backward()
                grad_norm = torch.nn.utils.clip_grad_norm_(params, config.max_grad_norm)

                if not torch.isfinite(grad_norm):
                    log.warning("Non-finite gradients, skipping minibatch")
                    optimizer.zero_grad()
                    pbar.update(1)
                    continue

                optimizer.step()

                with torch.no_grad():
                    ratio = torch.exp(new_log_probs - old_log_probs)
                    kl_div = (old_log_probs - new_log_probs).abs().mean()
                    clip_fraction = (
                        ((ratio - 1.0).abs() > config.clip_ratio).float().mean()
                    )

                update_stats["policy_loss"] += policy_loss.item()
                update_stats["value_loss"] += value_loss.item()
                update_stats["entropy"] += entropy_mean.item()
                update_stats["kl_divergence"] += kl_div.item()
                update_stats["clip_fraction"] += clip_fraction.item()
                update_stats["grad_norm"] += grad_norm.item()
                total_batches += 1

                pbar.set_postfix(
                    {
                        "epoch": f"{epoch+1}/{config.epochs}",
                        "p_loss": f"{policy_loss.item():.4f}",
                        "v_loss": f"{value_loss.item():.4f}",
                        "kl": f"{kl_div.item():.6f}",
                    }
                )
                pbar.update(1)

    if total_batches > 0:
        for key in update_stats:
            update_stats[key] /= total_batches
    update_stats["num_updates"] = total_batches

    agent.eval()
    return update_stats
