"""
Cumulative training metrics.

Counters are updated once per completed episode; every derived statistic is
computed on read from the counters and histories.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from mimicrl.core.game_core import Outcome


@dataclass
class TrainingMetrics:
    games_completed: int = 0
    wins: int = 0
    losses: int = 0
    ties: int = 0
    total_reward: float = 0.0
    reward_history: List[float] = field(default_factory=list)
    game_length_history: List[int] = field(default_factory=list)
    outcome_history: List[str] = field(default_factory=list)
    start_time: Optional[float] = None

    def record_episode(self, outcome: Outcome, length: int, reward: float) -> None:
        """Count one finished episode for the trained seat."""
        self.games_completed += 1
        if outcome is Outcome.WIN:
            self.wins += 1
        elif outcome is Outcome.LOSS:
            self.losses += 1
        else:
            self.ties += 1
        self.total_reward += reward
        self.reward_history.append(float(reward))
        self.game_length_history.append(int(length))
        self.outcome_history.append(outcome.value)

    def reset(self) -> None:
        self.games_completed = 0
        self.wins = 0
        self.losses = 0
        self.ties = 0
        self.total_reward = 0.0
        self.reward_history = []
        self.game_length_history = []
        self.outcome_history = []
        self.start_time = time.time()

    # Derived statistics

    @property
    def win_rate(self) -> float:
        return self.wins / self.games_completed if self.games_completed else 0.0

    @property
    def loss_rate(self) -> float:
        return self.losses / self.games_completed if self.games_completed else 0.0

    @property
    def tie_rate(self) -> float:
        return self.ties / self.games_completed if self.games_completed else 0.0

    @property
    def average_reward(self) -> float:
        return self.total_reward / self.games_completed if self.games_completed else 0.0

    @property
    def average_game_length(self) -> float:
        if not self.game_length_history:
            return 0.0
        return float(np.mean(self.game_length_history))

    @property
    def training_time(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.time() - self.start_time

    def reward_stats(self, window: Optional[int] = None) -> Dict[str, float]:
        """Average, min, max and std of episode rewards (last ``window`` if set)."""
        rewards = self.reward_history[-window:] if window else self.reward_history
        if not rewards:
            return {"avg": 0.0, "min": 0.0, "max": 0.0, "std": 0.0}
        values = np.asarray(rewards)
        return {
            "avg": float(values.mean()),
            "min": float(values.min()),
            "max": float(values.max()),
            "std": float(values.std()),
        }

    def recent_reward_stats(self, count: int = 100) -> Dict[str, float]:
        return self.reward_stats(window=count)

    def moving_average(self, values: List[float], window: int = 50) -> np.ndarray:
        """Trailing mean over ``window`` points (shorter at the start)."""
        if not values:
            return np.zeros(0)
        data = np.asarray(values, dtype=np.float64)
        cumulative = np.cumsum(np.insert(data, 0, 0.0))
        result = np.empty(len(data))
        for i in range(len(data)):
            start = max(0, i + 1 - window)
            result[i] = (cumulative[i + 1] - cumulative[start]) / (i + 1 - start)
        return result

    def win_rate_history(self, window: int = 50) -> np.ndarray:
        wins = [1.0 if o == Outcome.WIN.value else 0.0 for o in self.outcome_history]
        return self.moving_average(wins, window)

    def games_per_hour(self) -> float:
        elapsed = self.training_time
        if elapsed <= 0:
            return 0.0
        return self.games_completed / elapsed * 3600

    def progress_percentage(self, target_games: int) -> float:
        if target_games <= 0:
            return 0.0
        return min(100.0, self.games_completed / target_games * 100)

    def is_improving(self, window: int = 50) -> bool:
        """True when the latest ``window`` rewards beat the ``window`` before."""
        if len(self.reward_history) < 2 * window:
            return False
        recent = np.mean(self.reward_history[-window:])
        previous = np.mean(self.reward_history[-2 * window : -window])
        return bool(recent > previous)

    def summary(self) -> Dict[str, Any]:
        return {
            "games_completed": self.games_completed,
            "wins": self.wins,
            "losses": self.losses,
            "ties": self.ties,
            "win_rate": self.win_rate,
            "loss_rate": self.loss_rate,
            "tie_rate": self.tie_rate,
            "average_reward": self.average_reward,
            "average_game_length": self.average_game_length,
            "reward_stats": self.reward_stats(),
            "recent_reward_stats": self.recent_reward_stats(),
            "training_time": self.training_time,
        }


def rollout_statistics(episodes) -> Dict[str, Any]:
    """Per-iteration statistics from the episodes finished in one rollout phase."""
    counted = list(episodes)
    total = len(counted)
    wins = sum(1 for e in counted if e.trained_outcome is Outcome.WIN)
    losses = sum(1 for e in counted if e.trained_outcome is Outcome.LOSS)
    ties = total - wins - losses
    rewards = [e.total_reward for e in counted]
    lengths = [e.length for e in counted]

    return {
        "episodes": total,
        "wins": wins,
        "losses": losses,
        "ties": ties,
        "win_rate": wins / total if total else 0.0,
        "loss_rate": losses / total if total else 0.0,
        "tie_rate": ties / total if total else 0.0,
        "average_game_length": float(np.mean(lengths)) if lengths else 0.0,
        "reward_avg": float(np.mean(rewards)) if rewards else 0.0,
        "reward_min": float(np.min(rewards)) if rewards else 0.0,
        "reward_max": float(np.max(rewards)) if rewards else 0.0,
    }
