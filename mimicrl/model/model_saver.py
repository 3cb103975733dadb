"""
Model checkpointing for self-play training.
"""

import time
from pathlib import Path
from typing import Any, Dict, Optional

import torch

CURRENT_MODEL = "current_model.pth"
FINAL_MODEL = "final_model.pth"


class ModelSaver:
    """Manages agent checkpoints on disk."""

    def __init__(self, model_dir: str = "model"):
        """Initialize model saver.

        Args:
            model_dir: Directory to save model checkpoints
        """
        self.model_dir = Path(model_dir)
        self.model_dir.mkdir(parents=True, exist_ok=True)

    def save_agent_checkpoint(
        self,
        bundle: Dict[str, Any],
        metrics: Optional[Dict[str, Any]] = None,
        config: Optional[Any] = None,
        is_final: bool = False,
    ) -> Path:
        """Save an agent bundle.

        The latest checkpoint always overwrites ``current_model.pth``; the
        final checkpoint of a completed run goes to ``final_model.pth``.

        Args:
            bundle: Encoded agent bundle
            metrics: Training metrics summary
            config: Training configuration
            is_final: Whether this is the final checkpoint

        Returns:
            Path of the written checkpoint
        """
        filename = FINAL_MODEL if is_final else CURRENT_MODEL

        checkpoint_data = {
            "agent": bundle,
            "ppo": {
                "metrics": metrics or {},
                "config": vars(config) if config is not None else None,
                "saved_at": time.time(),
                "phase": "completed" if is_final else "training",
            },
        }

        checkpoint_path = self.model_dir / filename
        torch.save(checkpoint_data, checkpoint_path)

        if is_final:
            print(f"Final PPO checkpoint saved: {checkpoint_path}")

        return checkpoint_path
