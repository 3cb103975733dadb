"""
Tests for the training progress chart.
"""

from mimicrl.core.game_core import Outcome
from mimicrl.training.ppo.metrics import TrainingMetrics
from mimicrl.visualization.progress_chart import plot_training_progress


class TestProgressChart:
    def test_writes_png(self, tmp_path):
        metrics = TrainingMetrics()
        for i in range(30):
            outcome = [Outcome.WIN, Outcome.LOSS, Outcome.TIE][i % 3]
            metrics.record_episode(outcome, 10 + i, float(i % 5) - 2.0)

        path = plot_training_progress(metrics, str(tmp_path / "charts" / "progress.png"), window=5)

        assert path.exists()
        assert path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"

    def test_empty_metrics(self, tmp_path):
        path = plot_training_progress(TrainingMetrics(), str(tmp_path / "empty.png"))
        assert path.exists()
