"""
Two-fighter saber arena.

Each fighter is a circle that moves with WASD-style binary inputs while a
saber attached to its centre spins at a constant rate. A saber touching the
opponent's body ends the episode; both sabers landing on the same tick is a
tie, as is running out the clock.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from mimicrl.core.game_core import (ActionSpace, ActionSpaceType, GameCore,
                                    GameState, Outcome)

from .config import SaberArenaConfig

NUM_PLAYERS = 2
OBSERVATION_SIZE = 9
ACTION_SIZE = 4  # W, A, S, D
TIMEOUT_EPSILON = 1e-9


@dataclass
class Fighter:
    """Mutable per-episode state of one fighter."""

    position: np.ndarray
    saber_angle: float
    alive: bool = True
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))

    def saber_tip(self, length: float) -> np.ndarray:
        return self.position + length * np.array(
            [math.cos(self.saber_angle), math.sin(self.saber_angle)]
        )


def point_segment_distance(
    point: np.ndarray, start: np.ndarray, end: np.ndarray
) -> float:
    """Shortest distance between ``point`` and the segment ``start``-``end``."""
    segment = end - start
    length_sq = float(segment @ segment)
    if length_sq == 0.0:
        return float(np.linalg.norm(point - start))
    t = float(np.clip((point - start) @ segment / length_sq, 0.0, 1.0))
    return float(np.linalg.norm(point - (start + t * segment)))


class SaberArenaGame(GameCore):
    """Headless saber duel implementing the ``GameCore`` contract."""

    def __init__(
        self, config: Optional[SaberArenaConfig] = None, seed: Optional[int] = None
    ):
        self.config = config or SaberArenaConfig()
        self.rng = np.random.default_rng(seed)

        self.fighters: List[Fighter] = []
        self.step_count = 0
        self.elapsed_time = 0.0
        self.done = True
        self.outcome: Optional[List[Outcome]] = None
        self.previous_distance: Optional[float] = None

    # ------------------------------------------------------------------
    # GameCore contract
    # ------------------------------------------------------------------

    def reset(self) -> GameState:
        positions = self._spawn_positions()
        self.fighters = [
            Fighter(position=pos, saber_angle=float(self.rng.uniform(-math.pi, math.pi)))
            for pos in positions
        ]
        self.step_count = 0
        self.elapsed_time = 0.0
        self.done = False
        self.outcome = None
        self.previous_distance = self._fighter_distance()

        return GameState(
            observations=[self._observation_for(i) for i in range(NUM_PLAYERS)],
            rewards=[0.0] * NUM_PLAYERS,
        )

    def step(self, actions: List[List[float]], delta_time: float) -> GameState:
        if self.done:
            return GameState(
                observations=[self._observation_for(i) for i in range(NUM_PLAYERS)],
                rewards=[0.0] * NUM_PLAYERS,
                done=True,
                outcome=self.outcome,
            )

        self.step_count += 1
        self.elapsed_time = self.step_count * delta_time

        for fighter, action in zip(self.fighters, actions):
            self._apply_action(fighter, action, delta_time)
        for fighter in self.fighters:
            fighter.saber_angle = self._wrap_angle(
                fighter.saber_angle + self.config.saber_rotation_speed * delta_time
            )

        outcome = self._resolve_outcome()
        if outcome is not None:
            self.done = True
            self.outcome = outcome
            for fighter in self.fighters:
                fighter.alive = False

        rewards = [self._reward_for(i, delta_time) for i in range(NUM_PLAYERS)]

        return GameState(
            observations=[self._observation_for(i) for i in range(NUM_PLAYERS)],
            rewards=rewards,
            done=self.done,
            outcome=self.outcome,
            info={"step_count": self.step_count, "elapsed_time": self.elapsed_time},
        )

    def get_num_players(self) -> int:
        return NUM_PLAYERS

    def get_observation_size(self) -> int:
        return OBSERVATION_SIZE

    def get_action_size(self) -> int:
        return ACTION_SIZE

    def get_action_spaces(self) -> List[ActionSpace]:
        return [ActionSpace(ActionSpaceType.DISCRETE) for _ in range(ACTION_SIZE)]

    def get_outcome(self) -> Optional[List[Outcome]]:
        return self.outcome if self.done else None

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def _spawn_positions(self) -> List[np.ndarray]:
        cfg = self.config
        radius = cfg.player_radius
        positions: List[np.ndarray] = []

        for index in range(NUM_PLAYERS):
            position = None
            for _ in range(cfg.spawn_attempts):
                candidate = np.array(
                    [
                        self.rng.uniform(radius, cfg.arena_width - radius),
                        self.rng.uniform(radius, cfg.arena_height - radius),
                    ]
                )
                if all(
                    np.linalg.norm(candidate - other) >= cfg.spawn_min_distance
                    for other in positions
                ):
                    position = candidate
                    break

            if position is None:
                # Opposite walls
                x = radius + 1 if index == 0 else cfg.arena_width - (radius + 1)
                position = np.array([x, cfg.arena_height / 2])
            positions.append(position)

        return positions

    def _apply_action(
        self, fighter: Fighter, action: List[float], delta_time: float
    ) -> None:
        if not fighter.alive or action is None:
            return

        up, left, down, right = (1.0 if a else 0.0 for a in action[:ACTION_SIZE])
        direction = np.array([right - left, down - up])
        norm = float(np.linalg.norm(direction))
        if norm > 0:
            direction /= norm

        fighter.velocity = direction * self.config.movement_speed
        radius = self.config.player_radius
        new_position = fighter.position + fighter.velocity * delta_time
        fighter.position = np.array(
            [
                np.clip(new_position[0], radius, self.config.arena_width - radius),
                np.clip(new_position[1], radius, self.config.arena_height - radius),
            ]
        )

    def _saber_hits(self) -> List[Tuple[int, int]]:
        """Return (attacker, victim) pairs whose saber touches the victim."""
        cfg = self.config
        reach = cfg.player_radius + cfg.saber_collision_tolerance
        hits = []
        for attacker_idx, attacker in enumerate(self.fighters):
            tip = attacker.saber_tip(cfg.saber_length)
            for victim_idx, victim in enumerate(self.fighters):
                if victim_idx == attacker_idx:
                    continue
                distance = point_segment_distance(victim.position, attacker.position, tip)
                if distance <= reach:
                    hits.append((attacker_idx, victim_idx))
        return hits

    def _resolve_outcome(self) -> Optional[List[Outcome]]:
        if self.elapsed_time >= self.config.rewards.max_game_length - TIMEOUT_EPSILON:
            return [Outcome.TIE, Outcome.TIE]

        hits = self._saber_hits()
        if not hits:
            return None
        if len(hits) > 1:
            return [Outcome.TIE, Outcome.TIE]

        winner = hits[0][0]
        return [Outcome.WIN if i == winner else Outcome.LOSS for i in range(NUM_PLAYERS)]

    def _reward_for(self, player_index: int, delta_time: float) -> float:
        rewards = self.config.rewards

        if self.done and self.outcome is not None:
            result = self.outcome[player_index]
            if result is Outcome.WIN:
                return rewards.win
            if result is Outcome.LOSS:
                return rewards.loss
            return rewards.tie

        reward = rewards.time_penalty * delta_time

        # Distance shaping only applies to seat 0
        if player_index == 0:
            distance = self._fighter_distance()
            reward -= rewards.distance_penalty_factor * distance * delta_time
            if self.previous_distance is not None:
                reward += rewards.delta_distance_reward_factor * (
                    self.previous_distance - distance
                )
            self.previous_distance = distance

        return reward

    def _fighter_distance(self) -> float:
        return float(np.linalg.norm(self.fighters[0].position - self.fighters[1].position))

    def _observation_for(self, player_index: int) -> List[float]:
        cfg = self.config
        me = self.fighters[player_index]
        other = self.fighters[1 - player_index]

        def angle01(angle: float) -> float:
            return (angle + math.pi) / (2 * math.pi)

        return [
            float(me.position[0] / cfg.arena_width),
            float(me.position[1] / cfg.arena_height),
            float(other.position[0] / cfg.arena_width),
            float(other.position[1] / cfg.arena_height),
            angle01(me.saber_angle),
            angle01(other.saber_angle),
            1.0 if me.alive else 0.0,
            1.0 if other.alive else 0.0,
            min(self.elapsed_time / cfg.rewards.max_game_length, 1.0),
        ]

    @staticmethod
    def _wrap_angle(angle: float) -> float:
        return (angle + math.pi) % (2 * math.pi) - math.pi
