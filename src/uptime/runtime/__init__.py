"""Simulation runtime: the tick engine, the command reducer and persistence."""

from .engine import system_is_up, tick
from .reducer import (
    Command,
    DebugSpawnIncident,
    ExecuteAction,
    ExecuteExternalAction,
    LoadState,
    MitigateIncident,
    SetSpeed,
    SpawnExternalIncident,
    TogglePause,
    TrackIncidentTarget,
    reduce,
)
from .rng_service import RNGService
from .session import GameSession
from .snapshot import SnapshotError, deserialize_state, load_snapshot, save_snapshot, serialize_state, state_signature

__all__ = [
    "Command",
    "DebugSpawnIncident",
    "ExecuteAction",
    "ExecuteExternalAction",
    "GameSession",
    "LoadState",
    "MitigateIncident",
    "RNGService",
    "SetSpeed",
    "SnapshotError",
    "SpawnExternalIncident",
    "TogglePause",
    "TrackIncidentTarget",
    "deserialize_state",
    "load_snapshot",
    "reduce",
    "save_snapshot",
    "serialize_state",
    "state_signature",
    "system_is_up",
    "tick",
]
