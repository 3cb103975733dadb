"""
Configuration for the saber arena game.
"""

import math
from dataclasses import dataclass, field


@dataclass
class RewardConfig:
    """Terminal rewards and per-step shaping for the saber arena."""

    win: float = 1.0
    loss: float = -1.0
    tie: float = 0.0
    time_penalty: float = -0.05  # Per simulated second
    max_game_length: float = 60.0  # Seconds before the episode ends in a tie
    distance_penalty_factor: float = 0.0
    delta_distance_reward_factor: float = 0.1  # Reward for closing the gap

    def __post_init__(self):
        if self.max_game_length <= 0:
            raise ValueError("max_game_length must be positive")
        if self.distance_penalty_factor < 0:
            raise ValueError("distance_penalty_factor must be non-negative")


@dataclass
class SaberArenaConfig:
    """Arena geometry, fighter kinematics and rewards."""

    # Arena
    arena_width: float = 12.0
    arena_height: float = 12.0
    spawn_min_distance: float = 3.0
    spawn_attempts: int = 100

    # Fighters
    player_radius: float = 0.5
    movement_speed: float = 5.0  # Units per second

    # Sabers
    saber_length: float = 2.0
    saber_rotation_speed: float = 2 * math.pi  # Radians per second
    saber_collision_tolerance: float = 0.1

    rewards: RewardConfig = field(default_factory=RewardConfig)

    def __post_init__(self):
        if self.arena_width <= 0 or self.arena_height <= 0:
            raise ValueError("arena dimensions must be positive")
        if self.player_radius <= 0:
            raise ValueError("player_radius must be positive")
        if 2 * self.player_radius >= min(self.arena_width, self.arena_height):
            raise ValueError("player_radius too large for the arena")
        if self.movement_speed < 0:
            raise ValueError("movement_speed must be non-negative")
        if self.saber_length < 0:
            raise ValueError("saber_length must be non-negative")
        if self.saber_rotation_speed <= 0:
            raise ValueError("saber_rotation_speed must be positive")
