"""Directed request-flow graph and the mutations player actions apply to it."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from .components import (
    ARCHETYPES,
    ComponentNode,
    ComponentType,
    Scaling,
    create_component_node,
    node_from_archetype,
)

logger = logging.getLogger(__name__)

PLACEHOLDERS = ("source", "target")

EdgeSpec = Tuple[str, str, float]


@dataclass(slots=True)
class ArchitectureEdge:
    source: str
    target: str
    weight: float

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id


@dataclass(slots=True)
class Architecture:
    nodes: Dict[str, ComponentNode] = field(default_factory=dict)
    edges: List[ArchitectureEdge] = field(default_factory=list)
    counters: Dict[str, int] = field(default_factory=dict)

    def get(self, node_id: str) -> ComponentNode | None:
        return self.nodes.get(node_id)

    def outgoing(self, node_id: str) -> Iterator[ArchitectureEdge]:
        return (edge for edge in self.edges if edge.source == node_id)

    def enabled_nodes(self) -> Iterator[ComponentNode]:
        return (node for node in self.nodes.values() if node.enabled)

    def connect(self, source: str, target: str, weight: float) -> ArchitectureEdge:
        edge = ArchitectureEdge(source, target, max(0.0, min(1.0, weight)))
        self.edges.append(edge)
        return edge

    def group_members(self, group: str, component_type: ComponentType | None = None) -> List[ComponentNode]:
        return [
            node
            for node in self.nodes.values()
            if node.redundancy_group == group and (component_type is None or node.type is component_type)
        ]


# id, archetype, redundancy group
_INITIAL_NODES: Sequence[Tuple[str, ComponentType, str | None]] = (
    ("dns", ComponentType.DNS, None),
    ("cdn", ComponentType.CDN, None),
    ("waf", ComponentType.WAF, None),
    ("glb", ComponentType.GLB, None),
    ("rlb", ComponentType.RLB, None),
    ("apigw", ComponentType.APIGW, "apigw_cluster"),
    ("app", ComponentType.APP, "app_cluster"),
    ("servicemesh", ComponentType.SERVICE_MESH, None),
    ("cache", ComponentType.CACHE, "cache_cluster"),
    ("queue", ComponentType.QUEUE, None),
    ("workers", ComponentType.WORKERS, "worker_pool"),
    ("db_primary", ComponentType.DB_PRIMARY, None),
    ("db_replica", ComponentType.DB_REPLICA, "db_replicas"),
    ("storage", ComponentType.OBJECT_STORAGE, None),
    ("observability", ComponentType.OBSERVABILITY, None),
)

_INITIAL_EDGES: Sequence[EdgeSpec] = (
    ("dns", "cdn", 1.0),
    ("cdn", "waf", 0.7),
    ("waf", "glb", 0.95),
    ("glb", "rlb", 1.0),
    ("rlb", "apigw", 1.0),
    ("apigw", "app", 1.0),
    ("app", "cache", 0.6),
    ("app", "db_primary", 0.5),
    ("app", "queue", 0.2),
    ("app", "storage", 0.1),
    ("queue", "workers", 1.0),
    ("workers", "db_primary", 0.8),
    ("db_primary", "db_replica", 1.0),
)


def counter_key(component_type: ComponentType) -> str:
    return component_type.value.lower()


def create_initial_architecture() -> Architecture:
    """The starting topology: fifteen archetype nodes wired along the main request path."""

    architecture = Architecture()
    for node_id, component_type, group in _INITIAL_NODES:
        node = node_from_archetype(node_id, ARCHETYPES[component_type])
        if group is not None:
            node.redundancy_group = group
            node.is_primary = True
            node.instance_number = 1
        architecture.nodes[node_id] = node
        key = counter_key(component_type)
        architecture.counters[key] = architecture.counters.get(key, 0) + 1

    mesh = architecture.nodes["servicemesh"]
    mesh.enabled = False
    mesh.locked = True

    for source, target, weight in _INITIAL_EDGES:
        architecture.connect(source, target, weight)
    return architecture


def _next_instance_id(architecture: Architecture, component_type: ComponentType) -> Tuple[str, int]:
    key = counter_key(component_type)
    counter = architecture.counters.get(key, 0) + 1
    while True:
        node_id = key if counter == 1 else f"{key}_{counter}"
        if node_id not in architecture.nodes:
            architecture.counters[key] = counter
            return node_id, counter
        counter += 1


def add_component(
    architecture: Architecture,
    component_type: ComponentType,
    base_node_id: str,
    *,
    redundancy_group: str | None = None,
    is_primary: bool = False,
    connections: Iterable[EdgeSpec] = (),
) -> ComponentNode | None:
    """Clone ``base_node_id`` into a fresh node and wire ``connections``.

    ``'source'`` and ``'target'`` in a connection resolve to the new node id.
    Returns ``None`` without touching the graph when the base node is gone.
    """

    base = architecture.get(base_node_id)
    if base is None:
        logger.debug("add_component skipped: base node %s missing", base_node_id)
        return None

    node_id, counter = _next_instance_id(architecture, component_type)
    name = base.name if counter == 1 else f"{base.name} {counter}"
    node = create_component_node(component_type, node_id, name, base)
    node.redundancy_group = redundancy_group or base.redundancy_group
    node.is_primary = is_primary
    node.instance_number = counter
    architecture.nodes[node_id] = node

    for source, target, weight in connections:
        source = node_id if source in PLACEHOLDERS else source
        target = node_id if target in PLACEHOLDERS else target
        architecture.connect(source, target, weight)
    logger.debug("added component %s (%s) group=%s", node_id, component_type.value, node.redundancy_group)
    return node


def _detach(architecture: Architecture, node_id: str) -> ComponentNode | None:
    node = architecture.nodes.pop(node_id, None)
    if node is None:
        return None
    architecture.edges = [edge for edge in architecture.edges if not edge.touches(node_id)]
    return node


def remove_component(architecture: Architecture, node_id: str) -> ComponentNode | None:
    node = _detach(architecture, node_id)
    if node is None:
        return None
    key = counter_key(node.type)
    architecture.counters[key] = max(0, architecture.counters.get(key, 1) - 1)
    logger.debug("removed component %s", node_id)
    return node


def remove_highest_instance(
    architecture: Architecture, component_type: ComponentType, group: str
) -> ComponentNode | None:
    """Drop the member of ``group`` with the largest instance number.

    The last remaining member is never removed.
    """

    members = architecture.group_members(group, component_type)
    if len(members) <= 1:
        return None
    members.sort(key=lambda node: node.instance_number or 0, reverse=True)
    node = _detach(architecture, members[0].id)
    key = counter_key(component_type)
    architecture.counters[key] = max(1, architecture.counters.get(key, 1) - 1)
    logger.debug("removed highest instance %s from %s", members[0].id, group)
    return node


def split_service(
    architecture: Architecture,
    service_name: str,
    component_type: ComponentType,
    traffic_percentage: float,
    *,
    template_id: str = "app",
) -> ComponentNode | None:
    service_id = service_name.lower()
    if service_id in architecture.nodes:
        return None
    template = architecture.get(template_id)
    if template is None:
        return None

    hardened = service_id in ("auth", "payment")
    node = ComponentNode(
        id=service_id,
        type=component_type,
        name=f"{service_name} Service",
        capacity=template.capacity * 0.5,
        base_latency=template.base_latency * 0.8,
        base_error=template.base_error * 0.7,
        reliability_score=0.95,
        security_score=0.98 if hardened else 0.9,
        scaling=Scaling(minimum=1, maximum=5, current=1),
        cost_per_sec=template.cost_per_sec * 0.6,
        metrics=copy.deepcopy(template.metrics),
        latency=template.base_latency * 0.8,
        error_rate=template.base_error * 0.7,
        features=dict(template.features),
        redundancy_group=f"{service_id}_cluster",
        is_primary=True,
        instance_number=1,
    )
    architecture.nodes[service_id] = node

    architecture.connect(template_id, service_id, traffic_percentage / 100.0)
    if hardened:
        architecture.connect(service_id, "db_primary", 0.3)
    if service_id != "notification":
        architecture.connect(service_id, "cache", 0.4)

    key = counter_key(component_type)
    architecture.counters[key] = architecture.counters.get(key, 0) + 1
    logger.debug("split %s service off %s at %.0f%% of traffic", service_id, template_id, traffic_percentage)
    return node


__all__ = [
    "Architecture",
    "ArchitectureEdge",
    "EdgeSpec",
    "add_component",
    "counter_key",
    "create_initial_architecture",
    "remove_component",
    "remove_highest_instance",
    "split_service",
]
