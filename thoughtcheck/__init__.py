"""Thoughtcheck - verification pipeline for LLM reasoning assistants."""

__version__ = "0.1.0"
