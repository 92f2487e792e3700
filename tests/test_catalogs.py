from __future__ import annotations

from uptime.world.actions import ACTIONS, GLOBAL_TARGET
from uptime.world.architecture import create_initial_architecture
from uptime.world.incidents import INCIDENTS


def test_resolution_options_reference_known_actions() -> None:
    missing = {
        (incident.id, option)
        for incident in INCIDENTS.values()
        for option in incident.resolution_options
        if option not in ACTIONS
    }
    assert missing == set()


def test_escalations_reference_known_incidents() -> None:
    for incident in INCIDENTS.values():
        if incident.escalates_to is not None:
            assert incident.escalates_to in INCIDENTS
            assert incident.escalation_time_seconds


def test_action_targets_exist_in_initial_architecture() -> None:
    node_ids = set(create_initial_architecture().nodes)
    for action in ACTIONS.values():
        assert action.target == GLOBAL_TARGET or action.target in node_ids, action.id


def test_incident_targets_have_a_node_in_initial_architecture() -> None:
    types = {node.type for node in create_initial_architecture().nodes.values()}
    for incident in INCIDENTS.values():
        assert set(incident.target_types) & types, incident.id


def test_escalation_only_incidents_never_spawn_on_their_own() -> None:
    escalated = {incident.escalates_to for incident in INCIDENTS.values() if incident.escalates_to}
    for incident_id in escalated:
        assert INCIDENTS[incident_id].base_rate_per_minute == 0.0


def test_actions_have_sane_costs_and_timings() -> None:
    for action in ACTIONS.values():
        assert action.one_time_cost >= 0
        assert action.duration_seconds >= 0
        assert action.cooldown_seconds >= 0
        assert 0.0 < action.success_chance <= 1.0
