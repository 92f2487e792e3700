from __future__ import annotations

import copy
import gzip
import json

import pytest

from uptime.runtime.engine import tick
from uptime.runtime.reducer import DebugSpawnIncident, ExecuteAction, MitigateIncident, SpawnExternalIncident, reduce
from uptime.runtime.rng_service import RNGService
from uptime.runtime.snapshot import (
    SAVE_KEY,
    SnapshotError,
    deserialize_state,
    load_game,
    load_snapshot,
    save_game,
    save_snapshot,
    serialize_state,
    state_signature,
)
from uptime.state import GameState, create_initial_state
from uptime.world.incidents import GeneratedEffects, GeneratedIncident, IncidentSeverity, SuggestedAction


def _make_busy_state() -> tuple[GameState, RNGService]:
    rng = RNGService("snapshot")
    state = create_initial_state("snapshot")
    state.cash = 20_000.0
    for _ in range(5):
        state = tick(state, rng, 1.0)

    state = reduce(state, ExecuteAction("add_app_instance"), rng)
    state = reduce(state, ExecuteAction("add_worker_instance"), rng)
    state = reduce(state, DebugSpawnIncident("traffic_spike", "app"), rng)
    state = reduce(state, DebugSpawnIncident("cache_stampede", "cache"), rng)
    payload = GeneratedIncident(
        incident_id="gm-7",
        name="Replica Drift",
        target_node_id="db_primary",
        severity=IncidentSeverity.CRIT,
        category="DATABASE",
        logs=["ERROR replica lag 4200ms"],
        effects=GeneratedEffects(latency_multiplier=1.4, metric_effects={"replicationLag": 50}),
        suggested_actions=[
            SuggestedAction(action_name="Resync Replica", cost=200, duration_seconds=60, metric_improvements={"replicationLag": -400})
        ],
    )
    state = reduce(state, SpawnExternalIncident(payload), rng)
    spike = next(i for i in state.active_incidents if i.definition_id == "traffic_spike")
    state = reduce(state, MitigateIncident(spike.id, "scale_up_app"), rng)
    for _ in range(3):
        state = tick(state, rng, 1.0)
    return state, rng


def test_busy_state_fixture_is_rich_enough() -> None:
    state, _ = _make_busy_state()

    assert len(state.active_incidents) >= 3
    assert len(state.actions_in_progress) >= 2
    assert {"app_2", "workers_2"} <= set(state.architecture.nodes)


def test_round_trip_preserves_signature() -> None:
    state, _ = _make_busy_state()

    restored = deserialize_state(json.loads(json.dumps(serialize_state(state))))

    assert state_signature(restored) == state_signature(state)
    generated = next(i for i in restored.active_incidents if i.is_generated)
    assert generated.generated.suggested_actions[0].action_name == "Resync Replica"
    assert generated.severity is IncidentSeverity.CRIT


def test_restored_state_replays_identically() -> None:
    state, rng = _make_busy_state()
    restored = deserialize_state(serialize_state(state))
    rng_copy = copy.deepcopy(rng)

    for _ in range(60):
        state = tick(state, rng, 1.0)
        restored = tick(restored, rng_copy, 1.0)

    assert state_signature(restored) == state_signature(state)


def test_snapshot_file_round_trip(tmp_path) -> None:
    state, rng = _make_busy_state()
    path = tmp_path / "runs" / "snap.json.gz"

    digest = save_snapshot(state, path, rng=rng)
    loaded, loaded_rng = load_snapshot(path)

    assert len(digest) == 64
    with open(path, "rb") as fp:
        assert fp.read(2) == b"\x1f\x8b"
    assert state_signature(loaded) == state_signature(state)
    assert loaded_rng is not None
    assert loaded_rng.signature() == rng.signature()


def test_plain_snapshot_file_without_rng(tmp_path) -> None:
    state = create_initial_state("plain")
    path = tmp_path / "snap.json"

    save_snapshot(state, path, gzip_output=False)
    loaded, loaded_rng = load_snapshot(path)

    assert loaded_rng is None
    assert state_signature(loaded) == state_signature(state)


def test_bad_payloads_raise_snapshot_error(tmp_path) -> None:
    data = serialize_state(create_initial_state("bad"))

    with pytest.raises(SnapshotError):
        deserialize_state({**data, "schema_version": "other"})
    with pytest.raises(SnapshotError):
        deserialize_state({**data, "architecture": {}})
    no_seed = dict(data)
    del no_seed["seed"]
    with pytest.raises(SnapshotError):
        deserialize_state(no_seed)

    path = tmp_path / "junk.gz"
    path.write_bytes(gzip.compress(b"not json"))
    with pytest.raises(SnapshotError):
        load_snapshot(path)
    with pytest.raises(FileNotFoundError):
        load_snapshot(tmp_path / "missing.json")


def test_save_and_load_game_store() -> None:
    store: dict = {}
    state = create_initial_state("store")

    assert load_game(store) is None
    save_game(store, state)
    loaded = load_game(store)

    assert loaded is not None
    assert state_signature(loaded) == state_signature(state)

    store[SAVE_KEY] = "{broken"
    assert load_game(store) is None


def test_malformed_records_surface_as_snapshot_errors() -> None:
    data = serialize_state(create_initial_state("malformed"))
    broken_edges = {**data["architecture"], "edges": [{"weight": 1.0}]}

    with pytest.raises(SnapshotError):
        deserialize_state({**data, "actions_in_progress": [{"action_id": "hotfix"}]})
    with pytest.raises(SnapshotError):
        deserialize_state({**data, "architecture": broken_edges})
    with pytest.raises(SnapshotError):
        deserialize_state([data])

    store = {SAVE_KEY: json.dumps({**data, "actions_in_progress": [{"action_id": "hotfix"}]})}
    assert load_game(store) is None
