"""
Serialized agent bundles.

A bundle is the plain-data (JSON compatible) form of a policy agent: network
architectures, flattened weights and the learnable action std. Two layouts
exist in the wild and are modelled as a tagged union keyed by ``version``:

* ``1.0.0``: full agent export, self-describing (observation size, action
  spaces, architectures, weights, std, metadata).
* ``legacy``: bare ``{"policy", "value", "learnable_std"}`` dictionaries as
  written by older opponent pools. Carries no action-space description, so the
  caller must supply one.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import torch
import torch.nn as nn

from mimicrl.core.game_core import ActionSpace

from .data_types import NetworkArchitecture


class BundleVersion(Enum):
    LEGACY = "legacy"
    V1 = "1.0.0"


CURRENT_VERSION = BundleVersion.V1


@dataclass
class SerializedNetwork:
    architecture: NetworkArchitecture
    weights: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {"architecture": self.architecture.to_dict(), "weights": self.weights}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SerializedNetwork":
        if not isinstance(data, dict) or "architecture" not in data or "weights" not in data:
            raise ValueError("Invalid agent weights bundle: network missing architecture or weights")
        return cls(
            architecture=NetworkArchitecture.from_dict(data["architecture"]),
            weights=list(data["weights"]),
        )


@dataclass
class AgentBundle:
    """Decoded bundle, independent of the layout it was read from."""

    observation_size: int
    action_size: int
    action_spaces: List[ActionSpace]
    policy_network: SerializedNetwork
    value_network: SerializedNetwork
    learnable_std: Optional[List[float]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    version: BundleVersion = CURRENT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Encode in the current layout."""
        std = self.learnable_std or []
        return {
            "version": CURRENT_VERSION.value,
            "observation_size": self.observation_size,
            "action_size": self.action_size,
            "action_spaces": [space.to_dict() for space in self.action_spaces],
            "network_architecture": {
                "policy_hidden_layers": list(self.policy_network.architecture.hidden_layers),
                "value_hidden_layers": list(self.value_network.architecture.hidden_layers),
                "activation": self.policy_network.architecture.activation,
            },
            "policy_network": self.policy_network.to_dict(),
            "value_network": self.value_network.to_dict(),
            "learnable_std": {"data": list(std), "shape": [len(std)], "dtype": "float32"},
            "metadata": dict(self.metadata),
        }


def serialize_tensor(tensor: torch.Tensor) -> Dict[str, Any]:
    tensor = tensor.detach().cpu()
    return {
        "data": tensor.flatten().tolist(),
        "shape": list(tensor.shape),
        "dtype": str(tensor.dtype).replace("torch.", ""),
    }


def serialize_network(network: nn.Module, architecture: NetworkArchitecture) -> SerializedNetwork:
    weights = [serialize_tensor(t) for t in network.state_dict().values()]
    return SerializedNetwork(architecture=architecture, weights=weights)


def load_network_weights(network: nn.Module, weights: List[Dict[str, Any]]) -> None:
    """Copy serialized weights into ``network`` in state-dict order.

    Raises:
        ValueError: If the number of tensors or any tensor shape differs.
    """
    state = network.state_dict()
    if len(weights) != len(state):
        raise ValueError(
            f"Invalid agent weights bundle: expected {len(state)} tensors, got {len(weights)}"
        )

    new_state = {}
    for (name, current), entry in zip(state.items(), weights):
        shape = [int(dim) for dim in entry.get("shape", [])]
        if shape != list(current.shape):
            raise ValueError(
                f"Invalid agent weights bundle: {name} has shape {shape}, "
                f"expected {list(current.shape)}"
            )
        new_state[name] = torch.tensor(entry["data"], dtype=current.dtype).reshape(shape)

    network.load_state_dict(new_state)


def _std_values(raw: Any) -> Optional[List[float]]:
    if raw is None:
        return None
    if isinstance(raw, dict):
        raw = raw.get("data")
    if raw is None:
        return None
    return [float(v) for v in raw]


def _decode_v1(data: Dict[str, Any], action_spaces: Optional[List[ActionSpace]]) -> AgentBundle:
    for key in ("observation_size", "action_size", "policy_network", "value_network"):
        if key not in data:
            raise ValueError(f"Invalid agent weights bundle: missing '{key}'")

    spaces = [ActionSpace.from_dict(s) for s in data.get("action_spaces", [])]
    if not spaces and action_spaces is not None:
        spaces = list(action_spaces)

    return AgentBundle(
        observation_size=int(data["observation_size"]),
        action_size=int(data["action_size"]),
        action_spaces=spaces,
        policy_network=SerializedNetwork.from_dict(data["policy_network"]),
        value_network=SerializedNetwork.from_dict(data["value_network"]),
        learnable_std=_std_values(data.get("learnable_std")),
        metadata=dict(data.get("metadata") or {}),
        version=BundleVersion.V1,
    )


def _decode_legacy(data: Dict[str, Any], action_spaces: Optional[List[ActionSpace]]) -> AgentBundle:
    policy = data.get("policy")
    value = data.get("value")
    if policy is None or value is None:
        raise ValueError("Invalid agent weights bundle: legacy bundle needs 'policy' and 'value'")
    if action_spaces is None:
        raise ValueError("Legacy bundles need the game's action spaces to be decoded")

    policy_network = SerializedNetwork.from_dict(policy)
    return AgentBundle(
        observation_size=policy_network.architecture.input_size,
        action_size=policy_network.architecture.output_size,
        action_spaces=list(action_spaces),
        policy_network=policy_network,
        value_network=SerializedNetwork.from_dict(value),
        learnable_std=_std_values(data.get("learnable_std")),
        version=BundleVersion.LEGACY,
    )


_DECODERS: Dict[BundleVersion, Callable[..., AgentBundle]] = {
    BundleVersion.V1: _decode_v1,
    BundleVersion.LEGACY: _decode_legacy,
}


def bundle_version(data: Dict[str, Any]) -> BundleVersion:
    """Read the layout tag of a raw bundle. Untagged bundles are legacy."""
    if not isinstance(data, dict):
        raise ValueError("Invalid agent weights bundle: expected a mapping")
    tag = data.get("version", BundleVersion.LEGACY.value)
    try:
        return BundleVersion(tag)
    except ValueError:
        raise ValueError(f"Unsupported agent bundle version: {tag!r}") from None


def decode_bundle(
    data: Dict[str, Any], action_spaces: Optional[List[ActionSpace]] = None
) -> AgentBundle:
    """Decode a raw bundle of any known version."""
    return _DECODERS[bundle_version(data)](data, action_spaces)
