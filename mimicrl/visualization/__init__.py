from .progress_chart import plot_training_progress

__all__ = ["plot_training_progress"]
