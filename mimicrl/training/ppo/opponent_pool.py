"""
Weighted pool of self-play opponents.

The pool always contains at least one option. Each option is either the
random controller or a frozen policy stored as a serialized bundle; policy
agents are built lazily on first use and cached until the game core changes.
A bundle that cannot be turned into a working agent makes that draw fall
back to the random opponent instead of failing the rollout; it is not rebuilt
again until the game core changes or the pool is reloaded.
"""

import json
import random
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from mimicrl.core.controllers import (PlayerController, PolicyController,
                                      RandomController)
from mimicrl.core.game_core import GameCore
from mimicrl.policy.agent import PolicyAgent
from mimicrl.policy.bundle import AgentBundle, decode_bundle

from .logger import logger

RANDOM_OPTION_ID = "random"


class OpponentType(Enum):
    RANDOM = "random"
    POLICY = "policy"


@dataclass
class OpponentOption:
    id: str
    label: str
    type: OpponentType
    weight: float = 1.0
    policy_data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type.value,
            "weight": self.weight,
            "policy_data": self.policy_data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpponentOption":
        return cls(
            id=str(data["id"]),
            label=str(data.get("label", data["id"])),
            type=OpponentType(data["type"]),
            weight=max(0.0, float(data.get("weight", 1.0))),
            policy_data=data.get("policy_data"),
        )


@dataclass
class OpponentSelection:
    """Result of one draw from the pool."""

    id: str
    label: str
    type: OpponentType
    controller: PlayerController


def default_option() -> OpponentOption:
    return OpponentOption(
        id=RANDOM_OPTION_ID, label="Random", type=OpponentType.RANDOM, weight=1.0
    )


class OpponentPool:
    """Weighted sampling over random and frozen-policy opponents."""

    def __init__(
        self,
        game_core: GameCore,
        storage_path: Optional[str] = None,
        seed: Optional[int] = None,
    ):
        self.storage_path = Path(storage_path) if storage_path else None
        self.rng = random.Random(seed)
        self.options: List[OpponentOption] = [default_option()]
        self._agent_cache: Dict[str, PolicyAgent] = {}
        self._failed_options: Set[str] = set()
        self.logger = logger.bind(component="opponent_pool")

        self.game_core = game_core
        self.random_controller = RandomController(
            game_core.get_action_spaces(), seed=self.rng.randrange(2**32)
        )

        if self.storage_path is not None and self.storage_path.exists():
            self.load()

    def set_game_core(self, game_core: GameCore) -> None:
        """Switch to a new game; cached agents may no longer fit its shapes."""
        self.game_core = game_core
        self.random_controller = RandomController(
            game_core.get_action_spaces(), seed=self.rng.randrange(2**32)
        )
        self._agent_cache.clear()
        self._failed_options.clear()

    # ------------------------------------------------------------------
    # Option management
    # ------------------------------------------------------------------

    def get_options(self) -> List[OpponentOption]:
        return [OpponentOption(**vars(option)) for option in self.options]

    def add_policy(self, label: str, bundle: Any, weight: float = 1.0) -> OpponentOption:
        """Add a frozen policy.

        Args:
            label: Display name
            bundle: Raw bundle dict (any known version) or ``AgentBundle``
            weight: Relative sampling weight (clamped to >= 0)

        Raises:
            ValueError: If ``bundle`` carries no usable network data
        """
        if bundle is None:
            raise ValueError("Policy bundle is required")
        if not isinstance(bundle, AgentBundle):
            bundle = decode_bundle(bundle, self.game_core.get_action_spaces())

        option = OpponentOption(
            id=f"policy-{uuid.uuid4().hex[:8]}",
            label=label,
            type=OpponentType.POLICY,
            weight=max(0.0, float(weight)),
            policy_data=bundle.to_dict(),
        )
        self.options.append(option)
        self.logger.info(f"Added opponent '{label}' ({option.id}) with weight {option.weight}")
        self.persist()
        return option

    def remove_option(self, option_id: str) -> bool:
        remaining = [o for o in self.options if o.id != option_id]
        removed = len(remaining) != len(self.options)
        self.options = remaining or [default_option()]
        self._agent_cache.pop(option_id, None)
        self._failed_options.discard(option_id)
        self.persist()
        return removed

    def update_weight(self, option_id: str, weight: float) -> None:
        for option in self.options:
            if option.id == option_id:
                option.weight = max(0.0, float(weight))
                self.persist()
                return
        raise KeyError(f"Unknown opponent option: {option_id}")

    def reset(self) -> None:
        self.options = [default_option()]
        self._agent_cache.clear()
        self._failed_options.clear()
        self.persist()

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample(self) -> OpponentSelection:
        """Draw an opponent with probability proportional to its weight."""
        total = sum(option.weight for option in self.options)
        if total <= 0:
            return self._random_selection()

        threshold = self.rng.random() * total
        cumulative = 0.0
        chosen = self.options[-1]
        for option in self.options:
            cumulative += option.weight
            if threshold < cumulative:
                chosen = option
                break

        if chosen.type is OpponentType.RANDOM:
            return self._random_selection(chosen)

        agent = self._get_agent(chosen)
        if agent is None:
            return self._random_selection()
        return OpponentSelection(
            id=chosen.id,
            label=chosen.label,
            type=OpponentType.POLICY,
            controller=PolicyController(agent),
        )

    def sample_controller(self) -> PlayerController:
        return self.sample().controller

    def _random_selection(self, option: Optional[OpponentOption] = None) -> OpponentSelection:
        option = option or default_option()
        return OpponentSelection(
            id=option.id,
            label=option.label,
            type=OpponentType.RANDOM,
            controller=self.random_controller,
        )

    def _get_agent(self, option: OpponentOption) -> Optional[PolicyAgent]:
        if option.id in self._agent_cache:
            return self._agent_cache[option.id]
        if option.id in self._failed_options:
            return None

        try:
            agent = PolicyAgent.from_bundle(
                option.policy_data,
                action_spaces=self.game_core.get_action_spaces(),
                agent_id=option.id,
                seed=self.rng.randrange(2**32),
            )
            if agent.observation_size != self.game_core.get_observation_size():
                raise ValueError(
                    f"observation size {agent.observation_size} does not match game "
                    f"({self.game_core.get_observation_size()})"
                )
            if agent.action_size != self.game_core.get_action_size():
                raise ValueError(
                    f"action size {agent.action_size} does not match game "
                    f"({self.game_core.get_action_size()})"
                )
        except (ValueError, KeyError, TypeError, RuntimeError) as e:
            self.logger.warning(
                f"Opponent '{option.label}' ({option.id}) unusable, falling back to random: {e}"
            )
            self._failed_options.add(option.id)
            return None

        agent.activate()
        self._agent_cache[option.id] = agent
        return agent

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def persist(self) -> None:
        if self.storage_path is None:
            return
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.storage_path, "w") as f:
            json.dump({"options": [o.to_dict() for o in self.options]}, f)

    def load(self) -> None:
        """Reload options from storage, falling back to the default pool."""
        if self.storage_path is None or not self.storage_path.exists():
            return
        try:
            with open(self.storage_path) as f:
                data = json.load(f)
            options = [OpponentOption.from_dict(o) for o in data.get("options", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            self.logger.warning(f"Could not load opponent pool from {self.storage_path}: {e}")
            options = []

        self.options = options or [default_option()]
        # Option ids are never reused, so cached agents stay valid
        ids = {o.id for o in self.options}
        self._agent_cache = {k: v for k, v in self._agent_cache.items() if k in ids}
        self._failed_options.clear()
