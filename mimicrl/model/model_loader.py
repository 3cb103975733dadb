import os
from typing import Any, Dict, Optional, Sequence

import torch

from mimicrl.core.game_core import ActionSpace
from mimicrl.policy.agent import PolicyAgent


class ModelLoader:
    def __init__(self, model_path: str):
        """Initialize model loader with checkpoint path.

        Args:
            model_path: Path to a checkpoint written by ``ModelSaver``
        """
        self.model_path = model_path
        self.checkpoint_data: Optional[Dict[str, Any]] = None

    def load_checkpoint(self) -> Dict[str, Any]:
        """Read the checkpoint and validate its structure.

        Returns:
            The raw checkpoint dictionary
        """
        if not os.path.exists(self.model_path):
            raise FileNotFoundError(f"Model file not found: {self.model_path}")

        # Checkpoints hold plain Python containers only
        checkpoint = torch.load(self.model_path, map_location="cpu", weights_only=False)

        if not isinstance(checkpoint, dict):
            raise ValueError("Checkpoint is not a dictionary")

        required_components = ["agent"]
        missing_components = [
            comp for comp in required_components if comp not in checkpoint
        ]
        if missing_components:
            raise ValueError(f"Missing required components: {missing_components}")

        self.checkpoint_data = checkpoint
        return checkpoint

    def get_bundle(self) -> Dict[str, Any]:
        if self.checkpoint_data is None:
            self.load_checkpoint()
        return self.checkpoint_data["agent"]

    def load_agent(
        self, action_spaces: Optional[Sequence[ActionSpace]] = None
    ) -> PolicyAgent:
        """Build a policy agent from the checkpoint."""
        return PolicyAgent.from_bundle(self.get_bundle(), action_spaces=action_spaces)

    def get_metrics(self) -> Dict[str, Any]:
        if self.checkpoint_data is None:
            self.load_checkpoint()
        return self.checkpoint_data.get("ppo", {}).get("metrics", {})
