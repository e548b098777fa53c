"""CLI commands for edge AI dispatch."""

from . import chat, models

__all__ = ["chat", "models"]
