"""Verification tool catalog and built-in tools."""

from .calculator import CALCULATOR_TOOL_NAME, make_calculator_handler, register_calculator
from .catalog import RegisteredTool, ToolCatalog

__all__ = [
    "ToolCatalog",
    "RegisteredTool",
    "CALCULATOR_TOOL_NAME",
    "make_calculator_handler",
    "register_calculator",
]
