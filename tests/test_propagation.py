from __future__ import annotations

import pytest

from uptime.runtime.propagation import propagate_load
from uptime.world.architecture import Architecture, create_initial_architecture
from uptime.world.components import ARCHETYPES, ComponentType, OperationalMode, node_from_archetype


def _make_edge_chain() -> Architecture:
    arch = Architecture()
    for node_id, component_type in (
        ("dns", ComponentType.DNS),
        ("cdn", ComponentType.CDN),
        ("waf", ComponentType.WAF),
        ("glb", ComponentType.GLB),
    ):
        node = node_from_archetype(node_id, ARCHETYPES[component_type])
        node.base_error = 0.0
        node.capacity = 1_000_000.0
        arch.nodes[node_id] = node
    arch.connect("dns", "cdn", 1.0)
    arch.connect("cdn", "waf", 0.7)
    arch.connect("waf", "glb", 0.95)
    return arch


def test_weighted_load_along_edge_chain() -> None:
    arch = _make_edge_chain()

    propagate_load(arch, 1_000.0)

    assert arch.nodes["dns"].load_in == pytest.approx(1_000.0)
    assert arch.nodes["cdn"].load_in == pytest.approx(1_000.0)
    assert arch.nodes["waf"].load_in == pytest.approx(700.0)
    assert arch.nodes["glb"].load_in == pytest.approx(665.0)
    assert arch.nodes["waf"].load_out == pytest.approx(665.0)
    assert arch.nodes["glb"].load_out == 0.0


def test_errors_reduce_forwarded_load() -> None:
    arch = _make_edge_chain()
    arch.nodes["cdn"].base_error = 0.1

    propagate_load(arch, 1_000.0)

    assert arch.nodes["waf"].load_in == pytest.approx(1_000.0 * 0.7 * 0.9)


def test_disabled_and_locked_nodes_get_no_load() -> None:
    arch = create_initial_architecture()
    arch.nodes["cache"].enabled = False

    propagate_load(arch, 500.0)

    assert arch.nodes["cache"].load_in == 0.0
    assert arch.nodes["cache"].utilization == 0.0
    assert arch.nodes["servicemesh"].load_in == 0.0
    assert arch.nodes["servicemesh"].utilization == 0.0
    assert arch.nodes["app"].load_in > 0.0


def test_missing_root_zeroes_everything() -> None:
    arch = create_initial_architecture()
    propagate_load(arch, 500.0)
    arch.nodes["dns"].enabled = False

    propagate_load(arch, 500.0)

    assert all(node.load_in == 0.0 for node in arch.nodes.values())
    assert all(node.utilization == 0.0 for node in arch.nodes.values())


def test_cycles_visit_each_node_once() -> None:
    arch = _make_edge_chain()
    arch.connect("glb", "cdn", 1.0)

    propagate_load(arch, 1_000.0)

    assert arch.nodes["glb"].load_in == pytest.approx(665.0)
    assert arch.nodes["cdn"].load_in == pytest.approx(1_665.0)


def test_overloaded_node_goes_down() -> None:
    arch = _make_edge_chain()
    arch.nodes["waf"].capacity = 100.0

    propagate_load(arch, 1_000.0)

    waf = arch.nodes["waf"]
    assert waf.utilization == pytest.approx(7.0)
    assert waf.operational_mode is OperationalMode.DOWN
    assert waf.error_rate == 1.0
    assert arch.nodes["glb"].load_in == 0.0


def test_missing_root_settles_latency_and_errors_at_idle_values() -> None:
    arch = create_initial_architecture()
    arch.nodes["dns"].enabled = False
    cdn = arch.nodes["cdn"]

    for _ in range(5):
        cdn.latency *= 10.0
        cdn.error_rate = 0.9
        propagate_load(arch, 500.0)

    assert cdn.latency == pytest.approx(cdn.base_latency)
    assert cdn.error_rate == pytest.approx(cdn.base_error)
    assert cdn.operational_mode is OperationalMode.NORMAL


def test_unreached_active_node_resets_each_pass() -> None:
    arch = create_initial_architecture()
    mesh = arch.nodes["servicemesh"]
    mesh.enabled = True
    mesh.locked = False
    mesh.latency = 9_999.0
    mesh.error_rate = 0.5
    mesh.operational_mode = OperationalMode.DOWN

    propagate_load(arch, 500.0)

    assert mesh.load_in == 0.0
    assert mesh.latency == pytest.approx(mesh.base_latency)
    assert mesh.error_rate == pytest.approx(mesh.base_error)
    assert mesh.operational_mode is OperationalMode.NORMAL
