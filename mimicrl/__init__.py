"""MimicRL: self-play reinforcement learning for arena games."""

__version__ = "1.0.0"
