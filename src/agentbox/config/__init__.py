"""Configuration models and loading."""

from agentbox.config.app import AgentboxConfig, load_config

__all__ = ["AgentboxConfig", "load_config"]
