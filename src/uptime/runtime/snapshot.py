from __future__ import annotations

import gzip
import json
import logging
from dataclasses import fields, is_dataclass
from enum import Enum
from hashlib import sha256
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Tuple

from ..state import ActionInProgress, GameState, RecentTarget
from ..world.architecture import Architecture, ArchitectureEdge
from ..world.components import ComponentNode, ComponentType, OperationalMode, Scaling, metrics_from_dict, metrics_to_dict
from ..world.incidents import ActiveIncident, GeneratedEffects, GeneratedIncident, IncidentSeverity, SuggestedAction
from .rng_service import RNGService

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = "uptime_state_v1"
SAVE_KEY = "uptime_save"


class SnapshotError(ValueError):
    """Raised when a saved payload cannot be turned back into a ``GameState``."""


def _plain(obj: Any) -> Any:
    if isinstance(obj, ComponentNode):
        payload = {f.name: _plain(getattr(obj, f.name)) for f in fields(obj) if f.name != "metrics"}
        payload["metrics"] = metrics_to_dict(obj.metrics)
        return payload
    if is_dataclass(obj):
        return {f.name: _plain(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Mapping):
        return {str(k): _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_plain(item) for item in obj]
    return obj


def serialize_state(state: GameState) -> Dict[str, Any]:
    arch = state.architecture
    payload: Dict[str, Any] = {}
    for f in fields(state):
        if f.name in ("architecture", "action_cooldowns", "unlocked_features"):
            continue
        payload[f.name] = _plain(getattr(state, f.name))
    payload["architecture"] = {
        "nodes": [[node_id, _plain(node)] for node_id, node in arch.nodes.items()],
        "edges": [_plain(edge) for edge in arch.edges],
        "counters": dict(sorted(arch.counters.items())),
    }
    payload["action_cooldowns"] = [[action_id, until] for action_id, until in sorted(state.action_cooldowns.items())]
    payload["unlocked_features"] = sorted(state.unlocked_features)
    payload["schema_version"] = SNAPSHOT_SCHEMA_VERSION
    return payload


# --- decoding -------------------------------------------------------------


def _known(cls: type, data: Mapping[str, Any], *, skip: Tuple[str, ...] = ()) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names and k not in skip}


def _node_from_dict(data: Mapping[str, Any]) -> ComponentNode:
    try:
        component_type = ComponentType(data["type"])
        metrics = metrics_from_dict(dict(data["metrics"]))
        scaling = Scaling(**_known(Scaling, data["scaling"]))
    except KeyError as exc:
        raise SnapshotError(f"node {data.get('id')!r} is missing {exc}") from exc
    except ValueError as exc:
        raise SnapshotError(f"node {data.get('id')!r}: {exc}") from exc
    kwargs = _known(ComponentNode, data, skip=("type", "metrics", "scaling", "operational_mode", "features"))
    return ComponentNode(
        type=component_type,
        metrics=metrics,
        scaling=scaling,
        operational_mode=OperationalMode(data.get("operational_mode", OperationalMode.NORMAL.value)),
        features=dict(data.get("features") or {}),
        **kwargs,
    )


def _architecture_from_dict(data: Mapping[str, Any] | None) -> Architecture:
    if not data or "nodes" not in data:
        raise SnapshotError("snapshot has no architecture node list")
    nodes: Dict[str, ComponentNode] = {}
    for entry in data["nodes"]:
        node_id, node_data = entry
        nodes[str(node_id)] = _node_from_dict(node_data)
    edges = [ArchitectureEdge(**_known(ArchitectureEdge, edge)) for edge in data.get("edges", [])]
    counters = {str(k): int(v) for k, v in dict(data.get("counters") or {}).items()}
    return Architecture(nodes=nodes, edges=edges, counters=counters)


def _generated_from_dict(data: Mapping[str, Any]) -> GeneratedIncident:
    effects = data.get("effects")
    return GeneratedIncident(
        severity=IncidentSeverity(data["severity"]),
        effects=GeneratedEffects(**_known(GeneratedEffects, effects)) if effects else None,
        suggested_actions=[SuggestedAction(**_known(SuggestedAction, s)) for s in data.get("suggested_actions", [])],
        logs=list(data.get("logs", [])),
        **_known(GeneratedIncident, data, skip=("severity", "effects", "suggested_actions", "logs")),
    )


def _incident_from_dict(data: Mapping[str, Any]) -> ActiveIncident:
    generated = data.get("generated")
    return ActiveIncident(
        severity=IncidentSeverity(data["severity"]),
        generated=_generated_from_dict(generated) if generated else None,
        related_incident_ids=list(data.get("related_incident_ids", [])),
        **_known(ActiveIncident, data, skip=("severity", "generated", "related_incident_ids")),
    )


def deserialize_state(data: Mapping[str, Any]) -> GameState:
    if not isinstance(data, Mapping):
        raise SnapshotError(f"snapshot state must be an object, not {type(data).__name__}")
    version = data.get("schema_version")
    if version != SNAPSHOT_SCHEMA_VERSION:
        raise SnapshotError(f"unsupported snapshot schema {version!r}")
    if "seed" not in data:
        raise SnapshotError("snapshot has no seed")

    try:
        architecture = _architecture_from_dict(data.get("architecture"))
    except SnapshotError:
        raise
    except (AttributeError, TypeError, ValueError) as exc:
        raise SnapshotError(f"bad architecture record: {exc}") from exc
    try:
        incidents = [_incident_from_dict(item) for item in data.get("active_incidents", [])]
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise SnapshotError(f"bad incident record: {exc}") from exc

    structured = (
        "architecture",
        "active_incidents",
        "actions_in_progress",
        "recent_incident_targets",
        "action_cooldowns",
        "unlocked_features",
        "uptime_window",
    )
    try:
        return GameState(
            architecture=architecture,
            active_incidents=incidents,
            actions_in_progress=[ActionInProgress(**_known(ActionInProgress, a)) for a in data.get("actions_in_progress", [])],
            recent_incident_targets=[RecentTarget(**_known(RecentTarget, t)) for t in data.get("recent_incident_targets", [])],
            action_cooldowns={str(action_id): float(until) for action_id, until in data.get("action_cooldowns", [])},
            unlocked_features=set(data.get("unlocked_features", [])),
            uptime_window=[float(v) for v in data.get("uptime_window", [])],
            **_known(GameState, data, skip=structured),
        )
    except (AttributeError, TypeError, ValueError) as exc:
        raise SnapshotError(f"bad state record: {exc}") from exc


# --- files and stores -----------------------------------------------------


def _canonical_dumps(data: Mapping[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def state_signature(state: GameState) -> str:
    return sha256(_canonical_dumps(serialize_state(state)).encode("utf-8")).hexdigest()


def save_snapshot(
    state: GameState, path: Path, *, rng: RNGService | None = None, gzip_output: bool = True
) -> str:
    snapshot = {"state": serialize_state(state), "rng": rng.snapshot() if rng is not None else None}
    payload = _canonical_dumps(snapshot).encode("utf-8")
    digest = sha256(payload).hexdigest()

    path.parent.mkdir(parents=True, exist_ok=True)
    if gzip_output:
        with gzip.open(path, "wb") as fp:
            fp.write(payload)
    else:
        with open(path, "wb") as fp:
            fp.write(payload)
    return digest


def load_snapshot(path: Path) -> Tuple[GameState, RNGService | None]:
    if not path.exists():
        raise FileNotFoundError(path)

    with open(path, "rb") as fp:
        raw = fp.read()
    if raw[:2] == b"\x1f\x8b":
        raw = gzip.decompress(raw)
    try:
        data = json.loads(raw.decode("utf-8"))
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"{path} is not a snapshot: {exc}") from exc
    if "state" not in data:
        raise SnapshotError(f"{path} has no state section")
    rng_payload = data.get("rng")
    return deserialize_state(data["state"]), RNGService.restore(rng_payload) if rng_payload else None


def save_game(store: MutableMapping[str, str], state: GameState) -> None:
    store[SAVE_KEY] = _canonical_dumps(serialize_state(state))


def load_game(store: Mapping[str, str]) -> GameState | None:
    """Return the saved state, or ``None`` when nothing usable is stored."""

    raw = store.get(SAVE_KEY)
    if raw is None:
        return None
    try:
        return deserialize_state(json.loads(raw))
    except (json.JSONDecodeError, SnapshotError) as exc:
        logger.warning("ignoring unreadable save: %s", exc)
        return None


__all__: List[str] = [
    "SAVE_KEY",
    "SNAPSHOT_SCHEMA_VERSION",
    "SnapshotError",
    "deserialize_state",
    "load_game",
    "load_snapshot",
    "save_game",
    "save_snapshot",
    "serialize_state",
    "state_signature",
]
