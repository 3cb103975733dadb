"""Fully connected policy and value networks."""

import torch
import torch.nn as nn

from .data_types import NetworkArchitecture

_ACTIVATION_LAYERS = {
    "relu": nn.ReLU,
    "tanh": nn.Tanh,
    "sigmoid": nn.Sigmoid,
    "elu": nn.ELU,
    "leaky_relu": nn.LeakyReLU,
}


class MLP(nn.Module):
    """Multi-layer perceptron with a linear output layer.

    Used for both the policy (one logit / mean per action dimension) and the
    value function (a single scalar).
    """

    def __init__(self, architecture: NetworkArchitecture):
        super().__init__()
        self.architecture = architecture

        layers = []
        in_features = architecture.input_size
        for width in architecture.hidden_layers:
            layers.append(nn.Linear(in_features, width))
            layers.append(_ACTIVATION_LAYERS[architecture.activation]())
            in_features = width
        layers.append(nn.Linear(in_features, architecture.output_size))

        self.layers = nn.Sequential(*layers)
        self._initialize_weights()

    def _initialize_weights(self) -> None:
        """Initialize weights according to the architecture."""
        for layer in self.layers:
            if isinstance(layer, nn.Linear):
                if self.architecture.weight_init == "orthogonal":
                    nn.init.orthogonal_(layer.weight, gain=self.architecture.weight_gain)
                elif self.architecture.weight_init == "xavier":
                    nn.init.xavier_uniform_(layer.weight, gain=self.architecture.weight_gain)
                elif self.architecture.weight_init == "normal":
                    nn.init.normal_(layer.weight, std=self.architecture.weight_gain)
                else:
                    raise ValueError(f"Unknown weight_init: {self.architecture.weight_init}")

                nn.init.zeros_(layer.bias)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """Forward pass.

        Args:
            x: Observations [batch_size, input_size]

        Returns:
            Outputs [batch_size, output_size]
        """
        return self.layers(x)


def build_policy_network(architecture: NetworkArchitecture) -> MLP:
    return MLP(architecture)


def build_value_network(architecture: NetworkArchitecture) -> MLP:
    if architecture.output_size != 1:
        raise ValueError("value network must have a single output")
    return MLP(architecture)
