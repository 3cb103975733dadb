"""Observer interface for training-session events."""

from typing import Any, Dict

from .collect_rollout import EpisodeResult
from .metrics import TrainingMetrics


class TrainingObserver:
    """Receives training-session events. Override the hooks you need.

    Hooks run synchronously inside the training loop; exceptions they raise
    are logged by the session and never interrupt training.
    """

    def on_rollout_start(self, iteration: int) -> None:
        pass

    def on_episode_end(self, episode: EpisodeResult) -> None:
        pass

    def on_training_progress(self, snapshot: Dict[str, Any]) -> None:
        pass

    def on_training_complete(self, metrics: TrainingMetrics) -> None:
        pass
