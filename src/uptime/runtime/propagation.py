from __future__ import annotations

from collections import deque
from typing import Deque, Set

from ..config import PerformanceConfig
from ..world.architecture import Architecture
from ..world.components import ComponentNode
from .formulas import compute_error_rate, compute_latency, node_capacity, operational_mode


def _settle(node: ComponentNode, utilization: float, cfg: PerformanceConfig) -> None:
    node.utilization = utilization
    node.latency = compute_latency(node.base_latency, utilization, cfg)
    node.error_rate = compute_error_rate(node.base_error, utilization, node.health, cfg)
    node.operational_mode = operational_mode(node.health, utilization, cfg)


def propagate_load(
    architecture: Architecture,
    ingress_rps: float,
    *,
    root_id: str = "dns",
    cfg: PerformanceConfig = PerformanceConfig(),
) -> None:
    """Breadth-first load propagation from ``root_id``, in place.

    Each enabled, unlocked node is visited at most once.  Forwarded load is
    ``load_in * weight * (1 - error_rate)``.  Nodes that are never reached keep
    zero load for the tick and settle at their idle latency and error rate.
    """

    for node in architecture.nodes.values():
        node.load_in = 0.0
        node.load_out = 0.0

    root = architecture.get(root_id)
    if root is None or not root.active:
        for node in architecture.nodes.values():
            _settle(node, 0.0, cfg)
        return

    root.load_in = ingress_rps
    visited: Set[str] = set()
    queue: Deque[str] = deque([root_id])
    while queue:
        node_id = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        node = architecture.get(node_id)
        if node is None or not node.active:
            continue

        capacity = node_capacity(node)
        _settle(node, node.load_in / capacity if capacity > 0 else 0.0, cfg)

        for edge in architecture.outgoing(node_id):
            target = architecture.get(edge.target)
            if target is None or not target.active:
                continue
            forwarded = node.load_in * edge.weight * (1 - node.error_rate)
            target.load_in += forwarded
            node.load_out += forwarded
            if edge.target not in visited:
                queue.append(edge.target)

    for node_id, node in architecture.nodes.items():
        if node_id not in visited:
            _settle(node, 0.0, cfg)


__all__ = ["propagate_load"]
