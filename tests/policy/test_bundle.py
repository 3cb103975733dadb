"""
Tests for agent bundle versions.
"""

import json

import pytest

from mimicrl.core.game_core import ActionSpace, ActionSpaceType
from mimicrl.policy.agent import PolicyAgent
from mimicrl.policy.bundle import BundleVersion, bundle_version, decode_bundle

SPACES = [ActionSpace(ActionSpaceType.DISCRETE)] * 2


def v1_bundle() -> dict:
    agent = PolicyAgent(3, 2, policy_hidden_layers=[4], value_hidden_layers=[4], seed=0)
    return agent.to_bundle(metadata={"label": "test"}).to_dict()


def legacy_bundle() -> dict:
    data = v1_bundle()
    return {
        "policy": data["policy_network"],
        "value": data["value_network"],
        "learnable_std": data["learnable_std"]["data"],
    }


class TestBundleVersion:
    """Test version tagging and dispatch."""

    def test_current_layout(self):
        data = v1_bundle()
        assert data["version"] == "1.0.0"
        assert data["learnable_std"]["shape"] == [2]
        assert data["network_architecture"]["policy_hidden_layers"] == [4]
        assert bundle_version(data) is BundleVersion.V1

    def test_json_compatible(self):
        data = v1_bundle()
        assert decode_bundle(json.loads(json.dumps(data))).metadata == {"label": "test"}

    def test_untagged_is_legacy(self):
        assert bundle_version(legacy_bundle()) is BundleVersion.LEGACY

    def test_unknown_version_raises(self):
        data = v1_bundle()
        data["version"] = "9.9.9"
        with pytest.raises(ValueError, match="Unsupported"):
            decode_bundle(data)

    def test_non_mapping_raises(self):
        with pytest.raises(ValueError):
            bundle_version(["not", "a", "bundle"])


class TestDecodeBundle:
    """Test decoding of both layouts."""

    def test_decode_v1(self):
        bundle = decode_bundle(v1_bundle())
        assert bundle.version is BundleVersion.V1
        assert bundle.observation_size == 3
        assert bundle.action_size == 2
        assert bundle.action_spaces == SPACES

    def test_legacy_needs_action_spaces(self):
        with pytest.raises(ValueError, match="action spaces"):
            decode_bundle(legacy_bundle())

    def test_decode_legacy(self):
        bundle = decode_bundle(legacy_bundle(), SPACES)
        assert bundle.version is BundleVersion.LEGACY
        assert bundle.observation_size == 3
        assert bundle.action_size == 2
        assert bundle.metadata == {}

    def test_legacy_agent_matches_original(self):
        """An agent built from a legacy bundle reproduces the original weights."""
        original = PolicyAgent(3, 2, policy_hidden_layers=[4], value_hidden_layers=[4], seed=0)
        data = original.to_bundle().to_dict()
        legacy = {"policy": data["policy_network"], "value": data["value_network"]}

        restored = PolicyAgent.from_bundle(legacy, action_spaces=SPACES)

        obs = [0.2, 0.4, 0.6]
        assert restored.estimate_value(obs) == pytest.approx(original.estimate_value(obs))

    def test_missing_network_raises(self):
        data = v1_bundle()
        del data["value_network"]
        with pytest.raises(ValueError, match="Invalid agent weights bundle"):
            decode_bundle(data)

    def test_shape_mismatch_raises(self):
        data = v1_bundle()
        data["policy_network"]["weights"][0]["shape"] = [5, 3]
        with pytest.raises(ValueError, match="Invalid agent weights bundle"):
            PolicyAgent.from_bundle(data)
