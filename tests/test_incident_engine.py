from __future__ import annotations

import pytest

from uptime.config import IncidentConfig
from uptime.runtime.incident_engine import (
    apply_incident_effects,
    apply_mitigation,
    resolve_incidents,
    spawn_catalog_incident,
    spawn_generated_incident,
    spawn_incidents,
)
from uptime.runtime.rng_service import RNGService
from uptime.state import GameState, create_initial_state
from uptime.world.components import OperationalMode
from uptime.world.incidents import (
    INCIDENTS,
    GeneratedEffects,
    GeneratedIncident,
    IncidentSeverity,
)


def _make_state() -> GameState:
    return create_initial_state("incidents")


def _make_generated(name: str, *, target: str = "cache", category: str = "DATABASE", **kwargs) -> GeneratedIncident:
    return GeneratedIncident(
        incident_id=name.lower().replace(" ", "-"),
        name=name,
        target_node_id=target,
        severity=IncidentSeverity.WARN,
        category=category,
        **kwargs,
    )


def test_related_incidents_link_both_ways_and_share_fixes() -> None:
    state = _make_state()
    first = spawn_generated_incident(state, _make_generated("Cache Evictions"))
    second = spawn_generated_incident(state, _make_generated("Cache Fragmentation"))

    assert second.id in first.related_incident_ids
    assert first.id in second.related_incident_ids
    assert first.root_cause_shared and second.root_cause_shared

    apply_mitigation(state, first, 1.0)
    assert second.mitigation_level == pytest.approx(1.0)

    resolved = resolve_incidents(state)
    assert {incident.id for incident in resolved} == {first.id, second.id}
    assert state.resolved_incidents == 2
    assert state.active_incidents == []


def test_incidents_outside_window_or_category_stay_unlinked() -> None:
    state = _make_state()
    first = spawn_generated_incident(state, _make_generated("Cache Evictions"))
    other_category = spawn_generated_incident(state, _make_generated("Cache Breach", category="SECURITY"))
    state.current_time = 61.0
    late = spawn_generated_incident(state, _make_generated("Cache Warmup"))

    assert first.related_incident_ids == []
    assert other_category.related_incident_ids == []
    assert late.related_incident_ids == []


def test_duplicate_generated_incident_returns_none() -> None:
    state = _make_state()
    spawn_generated_incident(state, _make_generated("Cache Evictions"))

    assert spawn_generated_incident(state, _make_generated("Cache Evictions")) is None
    assert state.total_incidents == 1


def test_mitigation_is_monotonic_and_capped() -> None:
    state = _make_state()
    incident = spawn_catalog_incident(state, INCIDENTS["cache_stampede"], "cache")

    incident.add_mitigation(0.6)
    incident.add_mitigation(-0.5)
    assert incident.mitigation_level == pytest.approx(0.6)
    incident.add_mitigation(0.9)
    assert incident.mitigation_level == 1.0


def test_escalation_spawns_successor_once() -> None:
    state = _make_state()
    incident = spawn_catalog_incident(state, INCIDENTS["traffic_spike"], "app")

    report = apply_incident_effects(state, 90.0)

    assert report.escalated == [incident.id]
    successors = [i for i in state.active_incidents if i.definition_id == "app_overload"]
    assert len(successors) == 1
    assert successors[0].severity is IncidentSeverity.CRIT

    apply_incident_effects(state, 90.0)
    assert len([i for i in state.active_incidents if i.definition_id == "app_overload"]) == 1


def test_outage_timer_forces_node_down() -> None:
    state = _make_state()
    spawn_catalog_incident(state, INCIDENTS["app_overload"], "app")

    report = apply_incident_effects(state, 240.0)

    app = state.architecture.nodes["app"]
    assert report.outages == ["app"]
    assert app.health == 0.0
    assert app.operational_mode is OperationalMode.DOWN


def test_mitigation_dampens_catalog_effects() -> None:
    state = _make_state()
    incident = spawn_catalog_incident(state, INCIDENTS["traffic_spike"], "app")
    app = state.architecture.nodes["app"]

    app.latency = 100.0
    apply_incident_effects(state, 1.0)
    assert app.latency == pytest.approx(130.0)

    incident.mitigation_level = 1.0
    app.latency = 100.0
    apply_incident_effects(state, 1.0)
    assert app.latency == pytest.approx(109.0)


def test_generated_metric_effects_scale_with_dt() -> None:
    state = _make_state()
    effects = GeneratedEffects(metric_effects={"hitRate": -0.01})
    spawn_generated_incident(state, _make_generated("Cache Evictions", effects=effects))

    apply_incident_effects(state, 10.0)

    assert state.architecture.nodes["cache"].metrics.hit_rate == pytest.approx(0.75)


def test_incident_on_removed_node_is_skipped() -> None:
    state = _make_state()
    incident = spawn_catalog_incident(state, INCIDENTS["cache_stampede"], "cache")
    del state.architecture.nodes["cache"]

    report = apply_incident_effects(state, 1.0)

    assert report.outages == []
    assert state.active_incidents == [incident]


def test_generated_incident_auto_resolves_after_window() -> None:
    state = _make_state()
    spawn_generated_incident(state, _make_generated("Cache Evictions"))

    state.current_time = 300.0
    assert resolve_incidents(state) == []

    state.current_time = 301.0
    assert len(resolve_incidents(state)) == 1
    assert state.active_incidents == []


def test_catalog_spawns_can_be_disabled() -> None:
    state = _make_state()
    cfg = IncidentConfig(catalog_spawns_enabled=False)

    assert spawn_incidents(state, RNGService("off"), 600.0, cfg) == []


def test_spawning_is_deterministic_and_never_duplicates() -> None:
    def run():
        state = _make_state()
        state.tech_debt = 80.0
        for node in state.architecture.nodes.values():
            node.utilization = 0.95
        rng = RNGService("spawn")
        for _ in range(5):
            spawn_incidents(state, rng, 60.0)
        return state

    a, b = run(), run()
    pairs = [(i.definition_id, i.target_node_id) for i in a.active_incidents]

    assert pairs == [(i.definition_id, i.target_node_id) for i in b.active_incidents]
    assert len(pairs) == len(set(pairs))
