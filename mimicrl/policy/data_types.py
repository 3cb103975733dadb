"""
Data types and configuration for the policy and value networks.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

ACTIVATIONS = ("relu", "tanh", "sigmoid", "elu", "leaky_relu")
WEIGHT_INITS = ("orthogonal", "xavier", "normal")


@dataclass
class NetworkArchitecture:
    """
    Shape of a fully connected network.

    Attributes:
        input_size: Observation size fed into the network
        hidden_layers: Width of each hidden layer, in order
        output_size: Number of outputs (action size for the policy, 1 for value)
        activation: Hidden-layer activation name
        weight_init: Weight initialization strategy
        weight_gain: Gain (or std for ``normal``) applied by the initializer
    """

    input_size: int
    output_size: int
    hidden_layers: List[int] = field(default_factory=lambda: [64, 64])
    activation: str = "relu"
    weight_init: str = "orthogonal"
    weight_gain: float = 1.0

    def __post_init__(self):
        """Validate architecture parameters."""
        if self.input_size <= 0:
            raise ValueError("input_size must be positive")

        if self.output_size <= 0:
            raise ValueError("output_size must be positive")

        if any(width <= 0 for width in self.hidden_layers):
            raise ValueError("hidden layer widths must be positive")

        if self.activation not in ACTIVATIONS:
            raise ValueError(f"activation must be one of: {', '.join(ACTIVATIONS)}")

        if self.weight_init not in WEIGHT_INITS:
            raise ValueError(f"weight_init must be one of: {', '.join(WEIGHT_INITS)}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_size": self.input_size,
            "hidden_layers": list(self.hidden_layers),
            "output_size": self.output_size,
            "activation": self.activation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkArchitecture":
        return cls(
            input_size=int(data["input_size"]),
            output_size=int(data["output_size"]),
            hidden_layers=[int(width) for width in data.get("hidden_layers", [])],
            activation=data.get("activation", "relu"),
        )


@dataclass
class ActResult:
    """
    Output of a single ``PolicyAgent.act`` call.

    Attributes:
        action: Action vector, one entry per action dimension
        value: Critic estimate for the observation
        log_prob: Log-likelihood of ``action`` under the current policy
    """

    action: List[float]
    value: float
    log_prob: float
