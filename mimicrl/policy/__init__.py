"""
Policy package: actor-critic agent, its networks and bundle serialization.
"""

from .agent import PolicyAgent
from .bundle import AgentBundle, BundleVersion, decode_bundle
from .data_types import ActResult, NetworkArchitecture
from .networks import MLP

__all__ = [
    "ActResult",
    "AgentBundle",
    "BundleVersion",
    "MLP",
    "NetworkArchitecture",
    "PolicyAgent",
    "decode_bundle",
]
