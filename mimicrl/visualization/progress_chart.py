"""Training progress chart rendered with matplotlib."""

from pathlib import Path

import matplotlib.pyplot as plt

from mimicrl.training.ppo.metrics import TrainingMetrics


def plot_training_progress(metrics: TrainingMetrics, output_path: str, window: int = 50) -> Path:
    """Save win-rate and reward moving averages to a PNG.

    Args:
        metrics: Metrics of a training run
        output_path: Destination image path
        window: Moving-average window in games

    Returns:
        Path of the written image
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    games = range(1, metrics.games_completed + 1)
    fig, (ax_win, ax_reward) = plt.subplots(2, 1, figsize=(10, 7), sharex=True)

    ax_win.plot(games, metrics.win_rate_history(window), color="tab:green", label="Win rate")
    ax_win.set_ylim(0.0, 1.0)
    ax_win.set_ylabel(f"Win rate ({window}-game avg)")
    ax_win.grid(True, alpha=0.3)
    ax_win.legend(loc="upper left")

    ax_reward.plot(games, metrics.reward_history, color="tab:blue", alpha=0.25, label="Reward")
    ax_reward.plot(
        games,
        metrics.moving_average(metrics.reward_history, window),
        color="tab:blue",
        label=f"{window}-game avg",
    )
    ax_reward.set_xlabel("Games")
    ax_reward.set_ylabel("Episode reward")
    ax_reward.grid(True, alpha=0.3)
    ax_reward.legend(loc="upper left")

    fig.suptitle(
        f"Self-play training: {metrics.games_completed} games, "
        f"win rate {metrics.win_rate:.2%}"
    )
    fig.tight_layout()
    fig.savefig(path, dpi=100)
    plt.close(fig)
    return path
