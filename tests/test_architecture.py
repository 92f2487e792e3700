from __future__ import annotations

from uptime.world.architecture import (
    add_component,
    create_initial_architecture,
    remove_component,
    remove_highest_instance,
    split_service,
)
from uptime.world.components import ComponentType


def test_initial_topology() -> None:
    arch = create_initial_architecture()

    assert len(arch.nodes) == 15
    assert not arch.nodes["servicemesh"].active
    assert arch.nodes["app"].scaling.current == 2
    assert arch.counters["app"] == 1
    assert [edge.target for edge in arch.outgoing("app")] == ["cache", "db_primary", "queue", "storage"]


def test_add_component_clones_base_and_resolves_placeholders() -> None:
    arch = create_initial_architecture()
    arch.nodes["app"].metrics.avg_cpu_percent = 55.0

    node = add_component(
        arch,
        ComponentType.APP,
        "app",
        redundancy_group="app_cluster",
        connections=(("apigw", "target", 0.5), ("target", "cache", 0.6)),
    )

    assert node is not None
    assert node.id == "app_2"
    assert node.instance_number == 2
    assert node.metrics.avg_cpu_percent == 55.0
    assert node.metrics is not arch.nodes["app"].metrics
    assert any(e.source == "apigw" and e.target == "app_2" and e.weight == 0.5 for e in arch.edges)
    assert any(e.source == "app_2" and e.target == "cache" for e in arch.edges)


def test_add_component_with_missing_base_is_noop() -> None:
    arch = create_initial_architecture()
    before = len(arch.nodes)

    assert add_component(arch, ComponentType.APP, "nope") is None
    assert len(arch.nodes) == before


def test_remove_component_drops_edges() -> None:
    arch = create_initial_architecture()

    removed = remove_component(arch, "cache")

    assert removed is not None
    assert "cache" not in arch.nodes
    assert not any(edge.touches("cache") for edge in arch.edges)
    assert remove_component(arch, "cache") is None


def test_remove_highest_instance_keeps_last_member() -> None:
    arch = create_initial_architecture()
    add_component(arch, ComponentType.APP, "app", redundancy_group="app_cluster")
    add_component(arch, ComponentType.APP, "app", redundancy_group="app_cluster")

    removed = remove_highest_instance(arch, ComponentType.APP, "app_cluster")
    assert removed is not None and removed.id == "app_3"
    removed = remove_highest_instance(arch, ComponentType.APP, "app_cluster")
    assert removed is not None and removed.id == "app_2"
    assert remove_highest_instance(arch, ComponentType.APP, "app_cluster") is None
    assert "app" in arch.nodes


def test_split_service_is_idempotent() -> None:
    arch = create_initial_architecture()

    auth = split_service(arch, "Auth", ComponentType.APP, 30)

    assert auth is not None
    assert auth.id == "auth"
    assert any(e.source == "app" and e.target == "auth" and e.weight == 0.3 for e in arch.edges)
    assert any(e.source == "auth" and e.target == "db_primary" for e in arch.edges)
    assert split_service(arch, "Auth", ComponentType.APP, 30) is None


def test_counter_skips_colliding_ids() -> None:
    arch = create_initial_architecture()
    add_component(arch, ComponentType.APP, "app", redundancy_group="app_cluster")
    arch.counters["app"] = 1

    node = add_component(arch, ComponentType.APP, "app", redundancy_group="app_cluster")

    assert node is not None
    assert node.id == "app_3"
