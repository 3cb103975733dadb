"""
Policy agent: stochastic actor plus critic over a mixed action space.

Discrete dimensions are independent Bernoulli variables (several can be
pressed at once); continuous dimensions are Gaussian with a learnable
per-dimension standard deviation. The log-likelihood of a full action is the
sum of the per-dimension log-likelihoods.
"""

import uuid
from typing import List, Optional, Sequence, Tuple, Union

import torch
import torch.nn as nn
from torch.distributions import Bernoulli, Normal

from mimicrl.core.game_core import ActionSpace, ActionSpaceType

from .bundle import (AgentBundle, decode_bundle, load_network_weights,
                     serialize_network)
from .data_types import ActResult, NetworkArchitecture
from .networks import MLP, build_policy_network, build_value_network

MIN_STD = 1e-3


class PolicyAgent:
    """Actor-critic agent used by the trainer and by frozen opponents."""

    def __init__(
        self,
        observation_size: int,
        action_size: int,
        action_spaces: Optional[Sequence[ActionSpace]] = None,
        policy_hidden_layers: Optional[List[int]] = None,
        value_hidden_layers: Optional[List[int]] = None,
        activation: str = "relu",
        initial_std: Union[float, Sequence[float]] = 0.1,
        agent_id: Optional[str] = None,
        seed: Optional[int] = None,
        build_networks: bool = True,
    ):
        """Initialize the agent.

        Args:
            observation_size: Length of one observation vector
            action_size: Number of action dimensions
            action_spaces: Per-dimension action space (all discrete if None)
            policy_hidden_layers: Hidden widths of the policy MLP
            value_hidden_layers: Hidden widths of the value MLP
            activation: Hidden activation for both networks
            initial_std: Initial Gaussian std, scalar or one per dimension
            agent_id: Identifier used in logs; generated if None
            seed: Seed for the agent's private sampling generator
            build_networks: Construct fresh networks immediately
        """
        if observation_size <= 0:
            raise ValueError("observation_size must be positive")
        if action_size <= 0:
            raise ValueError("action_size must be positive")

        if action_spaces is None:
            action_spaces = [ActionSpace(ActionSpaceType.DISCRETE) for _ in range(action_size)]
        if len(action_spaces) != action_size:
            raise ValueError(
                f"action_spaces length ({len(action_spaces)}) must equal action_size ({action_size})"
            )

        if isinstance(initial_std, (int, float)):
            stds = [float(initial_std)] * action_size
        else:
            stds = [float(s) for s in initial_std]
            if len(stds) != action_size:
                raise ValueError(
                    f"initial_std length ({len(stds)}) must equal action_size ({action_size})"
                )
        if any(s <= 0 for s in stds):
            raise ValueError("initial_std must be positive")

        self.observation_size = observation_size
        self.action_size = action_size
        self.action_spaces = list(action_spaces)
        if policy_hidden_layers is None:
            policy_hidden_layers = [64, 64]
        if value_hidden_layers is None:
            value_hidden_layers = policy_hidden_layers
        self.policy_hidden_layers = list(policy_hidden_layers)
        self.value_hidden_layers = list(value_hidden_layers)
        self.activation = activation
        self.agent_id = agent_id or f"agent-{uuid.uuid4().hex[:8]}"

        self._discrete_idx = torch.tensor(
            [i for i, s in enumerate(self.action_spaces) if s.type is ActionSpaceType.DISCRETE],
            dtype=torch.long,
        )
        self._continuous_idx = torch.tensor(
            [i for i, s in enumerate(self.action_spaces) if s.type is ActionSpaceType.CONTINUOUS],
            dtype=torch.long,
        )

        self.action_std = nn.Parameter(torch.tensor(stds, dtype=torch.float32))
        self.generator = torch.Generator()
        if seed is not None:
            self.generator.manual_seed(seed)

        self.policy_network: Optional[MLP] = None
        self.value_network: Optional[MLP] = None
        self.is_active = False
        self.deterministic = False

        if build_networks:
            self.build_networks()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @property
    def policy_architecture(self) -> NetworkArchitecture:
        return NetworkArchitecture(
            input_size=self.observation_size,
            output_size=self.action_size,
            hidden_layers=self.policy_hidden_layers,
            activation=self.activation,
        )

    @property
    def value_architecture(self) -> NetworkArchitecture:
        return NetworkArchitecture(
            input_size=self.observation_size,
            output_size=1,
            hidden_layers=self.value_hidden_layers,
            activation=self.activation,
        )

    def build_networks(self) -> None:
        self.policy_network = build_policy_network(self.policy_architecture)
        self.value_network = build_value_network(self.value_architecture)

    def parameters(self) -> List[nn.Parameter]:
        """All trainable parameters: policy, value and action std."""
        self._require_networks()
        return (
            list(self.policy_network.parameters())
            + list(self.value_network.parameters())
            + [self.action_std]
        )

    def train(self) -> None:
        self._require_networks()
        self.policy_network.train()
        self.value_network.train()

    def eval(self) -> None:
        self._require_networks()
        self.policy_network.eval()
        self.value_network.eval()

    # ------------------------------------------------------------------
    # Mode switches
    # ------------------------------------------------------------------

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False

    def set_deterministic(self, deterministic: bool) -> None:
        """Take the most likely action instead of sampling."""
        self.deterministic = deterministic

    # ------------------------------------------------------------------
    # Acting
    # ------------------------------------------------------------------

    def act(self, observation: Sequence[float]) -> ActResult:
        """Choose an action for one observation.

        Returns the all-zero action while the agent is inactive.

        Raises:
            RuntimeError: If the networks have not been built
            ValueError: If the observation has the wrong size
        """
        self._require_networks()
        obs = self._observation_tensor(observation)

        with torch.no_grad():
            value = self.value_network(obs).squeeze(-1)
            if not self.is_active:
                return ActResult(
                    action=[0.0] * self.action_size, value=float(value[0]), log_prob=0.0
                )

            outputs = self.policy_network(obs)
            if torch.isnan(outputs).any() or torch.isinf(outputs).any():
                raise RuntimeError(f"Policy network for {self.agent_id} produced NaN/Inf outputs")

            action = self._select_action(outputs)
            log_prob, _ = self._log_prob_and_entropy(outputs, action)

        return ActResult(
            action=action[0].tolist(), value=float(value[0]), log_prob=float(log_prob[0])
        )

    def estimate_value(self, observation: Sequence[float]) -> float:
        """Critic estimate for one observation, without sampling."""
        self._require_networks()
        obs = self._observation_tensor(observation)
        with torch.no_grad():
            return float(self.value_network(obs).squeeze(-1)[0])

    def evaluate_actions(
        self, observations: torch.Tensor, actions: torch.Tensor
    ) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        """Differentiable log-probs, entropies and values for a batch.

        Args:
            observations: [batch_size, observation_size]
            actions: [batch_size, action_size]

        Returns:
            Tuple of (log_probs [batch_size], entropy [batch_size], values [batch_size])
        """
        self._require_networks()
        outputs = self.policy_network(observations)
        if torch.isnan(outputs).any() or torch.isinf(outputs).any():
            raise RuntimeError("Policy network producing NaN/Inf values during training")

        log_probs, entropy = self._log_prob_and_entropy(outputs, actions)
        values = self.value_network(observations).squeeze(-1)
        return log_probs, entropy, values

    def _select_action(self, outputs: torch.Tensor) -> torch.Tensor:
        action = torch.zeros_like(outputs)

        if self._discrete_idx.numel() > 0:
            probs = torch.sigmoid(outputs[:, self._discrete_idx])
            if self.deterministic:
                pressed = (probs > 0.5).float()
            else:
                pressed = torch.bernoulli(probs, generator=self.generator)
            action[:, self._discrete_idx] = pressed

        if self._continuous_idx.numel() > 0:
            means = outputs[:, self._continuous_idx]
            if self.deterministic:
                action[:, self._continuous_idx] = means
            else:
                std = self._continuous_std().expand_as(means)
                noise = torch.randn(means.shape, generator=self.generator)
                action[:, self._continuous_idx] = means + std * noise

        return action

    def _log_prob_and_entropy(
        self, outputs: torch.Tensor, actions: torch.Tensor
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        batch_size = outputs.shape[0]
        log_prob = torch.zeros(batch_size)
        entropy = torch.zeros(batch_size)

        if self._discrete_idx.numel() > 0:
            dist = Bernoulli(logits=outputs[:, self._discrete_idx])
            log_prob = log_prob + dist.log_prob(actions[:, self._discrete_idx]).sum(-1)
            entropy = entropy + dist.entropy().sum(-1)

        if self._continuous_idx.numel() > 0:
            means = outputs[:, self._continuous_idx]
            dist = Normal(means, self._continuous_std().expand_as(means))
            log_prob = log_prob + dist.log_prob(actions[:, self._continuous_idx]).sum(-1)
            entropy = entropy + dist.entropy().sum(-1)

        return log_prob, entropy

    def _continuous_std(self) -> torch.Tensor:
        return self.action_std[self._continuous_idx].clamp(min=MIN_STD)

    def _observation_tensor(self, observation: Sequence[float]) -> torch.Tensor:
        if len(observation) != self.observation_size:
            raise ValueError(
                f"Observation size mismatch: expected {self.observation_size}, "
                f"got {len(observation)}"
            )
        return torch.as_tensor(observation, dtype=torch.float32).reshape(1, -1)

    def _require_networks(self) -> None:
        if self.policy_network is None or self.value_network is None:
            raise RuntimeError(f"Agent {self.agent_id} used before its networks were built")

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_bundle(self, metadata: Optional[dict] = None) -> AgentBundle:
        self._require_networks()
        return AgentBundle(
            observation_size=self.observation_size,
            action_size=self.action_size,
            action_spaces=list(self.action_spaces),
            policy_network=serialize_network(self.policy_network, self.policy_architecture),
            value_network=serialize_network(self.value_network, self.value_architecture),
            learnable_std=self.action_std.detach().tolist(),
            metadata=dict(metadata or {}),
        )

    def load_bundle(self, bundle: AgentBundle) -> None:
        """Overwrite this agent's weights with ``bundle``.

        Raises:
            ValueError: If the bundle's shapes do not match this agent.
        """
        self._require_networks()
        if bundle.observation_size != self.observation_size:
            raise ValueError(
                f"Invalid agent weights bundle: observation size {bundle.observation_size} "
                f"does not match {self.observation_size}"
            )
        if bundle.action_size != self.action_size:
            raise ValueError(
                f"Invalid agent weights bundle: action size {bundle.action_size} "
                f"does not match {self.action_size}"
            )

        load_network_weights(self.policy_network, bundle.policy_network.weights)
        load_network_weights(self.value_network, bundle.value_network.weights)

        if bundle.learnable_std:
            if len(bundle.learnable_std) != self.action_size:
                raise ValueError("Invalid agent weights bundle: learnable_std has wrong length")
            with torch.no_grad():
                self.action_std.copy_(torch.tensor(bundle.learnable_std, dtype=torch.float32))

    @classmethod
    def from_bundle(
        cls,
        data: Union[AgentBundle, dict],
        action_spaces: Optional[Sequence[ActionSpace]] = None,
        agent_id: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> "PolicyAgent":
        """Build a new agent from a raw or decoded bundle."""
        bundle = data if isinstance(data, AgentBundle) else decode_bundle(data, action_spaces)
        spaces = bundle.action_spaces or action_spaces
        policy_arch = bundle.policy_network.architecture

        agent = cls(
            observation_size=bundle.observation_size,
            action_size=bundle.action_size,
            action_spaces=spaces,
            policy_hidden_layers=policy_arch.hidden_layers,
            value_hidden_layers=bundle.value_network.architecture.hidden_layers,
            activation=policy_arch.activation,
            initial_std=0.1,
            agent_id=agent_id,
            seed=seed,
        )
        agent.load_bundle(bundle)
        return agent

    def clone(self, agent_id: Optional[str] = None) -> "PolicyAgent":
        """Independent copy with the same weights."""
        return PolicyAgent.from_bundle(self.to_bundle(), agent_id=agent_id)
