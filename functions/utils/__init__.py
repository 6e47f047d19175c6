"""Utility modules for Drew functions."""

from utils.turn_logger import (
    log_turn_start,
    log_route_decision,
    log_tool_executed,
    log_iterations_exhausted,
    log_turn_complete,
)

__all__ = [
    "log_turn_start",
    "log_route_decision",
    "log_tool_executed",
    "log_iterations_exhausted",
    "log_turn_complete",
]
