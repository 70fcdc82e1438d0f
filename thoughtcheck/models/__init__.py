"""Data models for thoughts and their connections."""

from .thoughts import Connection, Thought, ThoughtMetrics, ThoughtType

__all__ = ["Thought", "ThoughtType", "Connection", "ThoughtMetrics"]
