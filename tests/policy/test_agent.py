"""
Tests for the policy agent.
"""

import pytest
import torch

from mimicrl.core.game_core import ActionSpace, ActionSpaceType
from mimicrl.policy.agent import PolicyAgent
from mimicrl.policy.data_types import NetworkArchitecture

DISCRETE = ActionSpace(ActionSpaceType.DISCRETE)
CONTINUOUS = ActionSpace(ActionSpaceType.CONTINUOUS)


def make_agent(**kwargs) -> PolicyAgent:
    params = dict(
        observation_size=4,
        action_size=3,
        policy_hidden_layers=[16],
        value_hidden_layers=[16],
        seed=0,
    )
    params.update(kwargs)
    return PolicyAgent(**params)


class TestNetworkArchitecture:
    """Test NetworkArchitecture validation."""

    def test_round_trip_dict(self):
        arch = NetworkArchitecture(input_size=4, output_size=2, hidden_layers=[8, 8])
        assert NetworkArchitecture.from_dict(arch.to_dict()) == arch

    def test_validation(self):
        with pytest.raises(ValueError):
            NetworkArchitecture(input_size=0, output_size=2)
        with pytest.raises(ValueError):
            NetworkArchitecture(input_size=4, output_size=2, activation="swish")


class TestPolicyAgentConstruction:
    """Test PolicyAgent construction and validation."""

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            PolicyAgent(0, 2)
        with pytest.raises(ValueError):
            PolicyAgent(3, 0)

    def test_action_spaces_length(self):
        with pytest.raises(ValueError):
            PolicyAgent(3, 2, action_spaces=[DISCRETE])

    def test_std_validation(self):
        with pytest.raises(ValueError):
            PolicyAgent(3, 2, initial_std=0.0)
        with pytest.raises(ValueError):
            PolicyAgent(3, 2, initial_std=[0.1, 0.1, 0.1])

    def test_starts_inactive(self):
        agent = make_agent()
        assert agent.is_active is False
        assert agent.deterministic is False

    def test_parameters_include_std(self):
        agent = make_agent()
        params = agent.parameters()
        assert any(p is agent.action_std for p in params)


class TestPolicyAgentActing:
    """Test act(), estimate_value() and evaluate_actions()."""

    def test_act_without_networks_raises(self):
        agent = make_agent(build_networks=False)
        with pytest.raises(RuntimeError):
            agent.act([0.0] * 4)

    def test_observation_size_mismatch(self):
        agent = make_agent()
        agent.activate()
        with pytest.raises(ValueError):
            agent.act([0.0] * 5)

    def test_inactive_returns_zero_action(self):
        agent = make_agent()
        result = agent.act([0.1, 0.2, 0.3, 0.4])
        assert result.action == [0.0, 0.0, 0.0]
        assert result.log_prob == 0.0
        assert result.value == pytest.approx(agent.estimate_value([0.1, 0.2, 0.3, 0.4]))

    def test_discrete_actions_are_binary(self):
        agent = make_agent()
        agent.activate()
        for _ in range(20):
            result = agent.act([0.5, -0.5, 0.1, 0.0])
            assert set(result.action) <= {0.0, 1.0}

    def test_log_prob_matches_bernoulli(self):
        """The reported log-prob is the sum of per-dimension Bernoulli log-probs."""
        agent = make_agent()
        agent.activate()
        obs = [0.3, -0.2, 0.7, 0.1]

        result = agent.act(obs)

        with torch.no_grad():
            logits = agent.policy_network(torch.tensor([obs]))[0]
        probs = torch.sigmoid(logits)
        action = torch.tensor(result.action)
        expected = torch.sum(
            action * torch.log(probs) + (1 - action) * torch.log(1 - probs)
        )
        assert result.log_prob == pytest.approx(expected.item(), abs=1e-5)

    def test_deterministic_mode(self):
        """Deterministic acting presses exactly the dimensions with p > 0.5."""
        agent = make_agent()
        agent.activate()
        agent.set_deterministic(True)
        obs = [0.3, -0.2, 0.7, 0.1]

        with torch.no_grad():
            probs = torch.sigmoid(agent.policy_network(torch.tensor([obs]))[0])
        expected = [1.0 if p > 0.5 else 0.0 for p in probs.tolist()]

        assert agent.act(obs).action == expected
        assert agent.act(obs).action == expected

    def test_seeded_sampling_is_reproducible(self):
        first = make_agent(seed=5)
        second = make_agent(seed=5)
        second.load_bundle(first.to_bundle())
        first.activate()
        second.activate()
        obs = [0.1, 0.2, 0.3, 0.4]
        assert [first.act(obs).action for _ in range(10)] == [
            second.act(obs).action for _ in range(10)
        ]

    def test_mixed_action_space(self):
        """Continuous dimensions sample from a Gaussian around the mean."""
        agent = make_agent(action_spaces=[DISCRETE, CONTINUOUS, CONTINUOUS], initial_std=0.5)
        agent.activate()
        obs = [0.1, 0.2, 0.3, 0.4]

        actions = [agent.act(obs).action for _ in range(30)]

        assert all(a[0] in (0.0, 1.0) for a in actions)
        assert len({a[1] for a in actions}) > 1

    def test_evaluate_actions_matches_act(self):
        """Batch evaluation reproduces the log-prob and value from act()."""
        agent = make_agent(action_spaces=[DISCRETE, CONTINUOUS, DISCRETE])
        agent.activate()
        observations = [[0.1, 0.2, 0.3, 0.4], [-0.4, 0.0, 0.9, 0.2]]
        results = [agent.act(obs) for obs in observations]

        with torch.no_grad():
            log_probs, entropy, values = agent.evaluate_actions(
                torch.tensor(observations), torch.tensor([r.action for r in results])
            )

        for i, result in enumerate(results):
            assert log_probs[i].item() == pytest.approx(result.log_prob, abs=1e-5)
            assert values[i].item() == pytest.approx(result.value, abs=1e-5)
        assert entropy.shape == (2,)

    def test_evaluate_actions_is_differentiable(self):
        agent = make_agent()
        log_probs, entropy, values = agent.evaluate_actions(
            torch.zeros(2, 4), torch.ones(2, 3)
        )
        (log_probs.sum() + values.sum()).backward()
        assert agent.policy_network.layers[0].weight.grad is not None


class TestPolicyAgentSerialization:
    """Test bundle export and import."""

    def test_bundle_round_trip(self):
        """An agent rebuilt from its bundle behaves identically."""
        agent = make_agent(action_spaces=[DISCRETE, CONTINUOUS, DISCRETE])
        with torch.no_grad():
            agent.action_std.fill_(0.3)
        data = agent.to_bundle(metadata={"games": 5}).to_dict()

        restored = PolicyAgent.from_bundle(data)

        assert restored.action_spaces == agent.action_spaces
        assert restored.action_std.tolist() == pytest.approx([0.3, 0.3, 0.3])
        obs = [0.1, 0.2, 0.3, 0.4]
        assert restored.estimate_value(obs) == pytest.approx(agent.estimate_value(obs))
        agent.set_deterministic(True)
        restored.set_deterministic(True)
        agent.activate()
        restored.activate()
        assert restored.act(obs).action == pytest.approx(agent.act(obs).action)

    def test_incompatible_bundle_raises(self):
        agent = make_agent()
        other = make_agent(observation_size=5)
        with pytest.raises(ValueError, match="Invalid agent weights bundle"):
            agent.load_bundle(other.to_bundle())

    def test_mismatched_hidden_layers_raise(self):
        agent = make_agent()
        other = make_agent(policy_hidden_layers=[32])
        with pytest.raises(ValueError, match="Invalid agent weights bundle"):
            agent.load_bundle(other.to_bundle())

    def test_clone_is_independent(self):
        agent = make_agent()
        clone = agent.clone(agent_id="copy")

        with torch.no_grad():
            for param in clone.policy_network.parameters():
                param.add_(1.0)

        assert clone.agent_id == "copy"
        first = agent.policy_network.layers[0].weight
        second = clone.policy_network.layers[0].weight
        assert not torch.allclose(first, second)
