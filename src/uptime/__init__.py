"""Uptime simulation package public façade."""

from .config import DEFAULT_CONFIG, GameConfig
from .runtime import GameSession, RNGService, reduce, tick
from .state import GameState, RunSummary, clone_state, create_initial_state, summarize_run

__all__ = [
    "DEFAULT_CONFIG",
    "GameConfig",
    "GameSession",
    "GameState",
    "RNGService",
    "RunSummary",
    "clone_state",
    "create_initial_state",
    "reduce",
    "summarize_run",
    "tick",
]
