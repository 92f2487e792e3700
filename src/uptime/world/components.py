"""Component archetypes, node records and per-archetype metric variants.

Each archetype carries its own strongly-typed metric dataclass.  The handful of
operations that cut across all archetypes (clamping, compact serialisation for
the incident collaborator, bottleneck classification) are written as matches
over the variant rather than by probing attribute names at runtime.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import ClassVar, Dict, Iterator, List, Tuple, Type, Union


class ComponentType(str, Enum):
    DNS = "DNS"
    CDN = "CDN"
    WAF = "WAF"
    GLB = "GLB"
    RLB = "RLB"
    APIGW = "APIGW"
    APP = "APP"
    SERVICE_MESH = "SERVICE_MESH"
    CACHE = "CACHE"
    QUEUE = "QUEUE"
    WORKERS = "WORKERS"
    DB_PRIMARY = "DB_PRIMARY"
    DB_REPLICA = "DB_REPLICA"
    OBJECT_STORAGE = "OBJECT_STORAGE"
    OBSERVABILITY = "OBSERVABILITY"


class OperationalMode(str, Enum):
    NORMAL = "normal"
    DEGRADED = "degraded"
    DOWN = "down"


@dataclass(slots=True)
class DnsMetrics:
    kind: ClassVar[str] = "dns"
    queries_per_second: float = 0.0
    cache_hit_rate: float = 0.85
    ttl: float = 300.0
    propagation_delay: float = 5.0
    zones_configured: int = 3
    dnssec: bool = True
    anycast: bool = False


@dataclass(slots=True)
class CdnMetrics:
    kind: ClassVar[str] = "cdn"
    edge_locations: int = 5
    cache_hit_rate: float = 0.75
    bandwidth_gbps: float = 1.0
    cache_size_gb: float = 10.0
    ttl: float = 3_600.0
    requests_per_second: float = 0.0
    compression_enabled: bool = True
    http2_enabled: bool = True


@dataclass(slots=True)
class WafMetrics:
    kind: ClassVar[str] = "waf"
    requests_per_second: float = 0.0
    blocked_requests_percent: float = 0.01
    ruleset_version: str = "1.0"
    inspection_latency: float = 2.0
    false_positive_rate: float = 0.001
    bot_protection: bool = True
    rate_limit_rps: float = 1_000.0


@dataclass(slots=True)
class LoadBalancerMetrics:
    kind: ClassVar[str] = "load_balancer"
    instances: int = 1
    connections_per_instance: float = 0.0
    max_connections_per_instance: int = 10_000
    health_check_interval: float = 5.0
    failed_health_checks: int = 0
    requests_per_second: float = 0.0
    algorithm: str = "round-robin"
    sticky_session: bool = False


@dataclass(slots=True)
class ApiGatewayMetrics:
    kind: ClassVar[str] = "api_gateway"
    requests_per_second: float = 0.0
    concurrent_connections: int = 0
    max_connections: int = 5_000
    rate_limit_hit_rate: float = 0.0
    transformation_latency: float = 5.0
    rate_limiting_enabled: bool = False
    authentication_method: str = "jwt"
    caching_enabled: bool = False


@dataclass(slots=True)
class AppClusterMetrics:
    kind: ClassVar[str] = "app_cluster"
    instances: int = 1
    cpu_cores_per_instance: int = 2
    memory_gb_per_instance: float = 4.0
    avg_cpu_percent: float = 0.0
    avg_memory_percent: float = 0.0
    requests_per_second: float = 0.0
    active_connections: int = 0
    deployment_version: str = "1.0.0"
    autoscaling: bool = False
    min_instances: int = 1
    max_instances: int = 10


@dataclass(slots=True)
class CacheMetrics:
    kind: ClassVar[str] = "cache"
    size_gb: float = 8.0
    max_size_gb: float = 16.0
    hit_rate: float = 0.85
    eviction_rate: float = 0.0
    keys_stored: int = 0
    avg_ttl: float = 300.0
    memory_fragmentation: float = 0.05
    connections_active: int = 0
    eviction_policy: str = "lru"
    persistence_enabled: bool = False
    clustering_enabled: bool = False


@dataclass(slots=True)
class QueueMetrics:
    kind: ClassVar[str] = "queue"
    messages_queued: int = 0
    max_queue_depth: int = 10_000
    enqueued_per_second: float = 0.0
    dequeued_per_second: float = 0.0
    avg_message_age: float = 0.0
    dead_letter_queue_size: int = 0
    consumer_count: int = 1
    visibility_timeout: float = 30.0
    durability: str = "disk"
    retry_policy: str = "exponential"
    max_retries: int = 3


@dataclass(slots=True)
class WorkersMetrics:
    kind: ClassVar[str] = "workers"
    instances: int = 1
    cpu_cores_per_worker: int = 2
    memory_gb_per_worker: float = 4.0
    jobs_processed_per_sec: float = 0.0
    avg_job_duration: float = 2.0
    failed_jobs_percent: float = 0.0
    queue_backlog: int = 0
    concurrency: int = 5
    timeout: float = 60.0
    auto_scaling: bool = False


@dataclass(slots=True)
class DatabaseMetrics:
    kind: ClassVar[str] = "database"
    connections: int = 0
    max_connections: int = 100
    queries_per_second: float = 0.0
    avg_query_latency: float = 10.0
    slow_queries_percent: float = 0.0
    replication_lag: float = 0.0
    storage_gb: float = 50.0
    max_storage_gb: float = 500.0
    connection_pool_size: int = 20
    index_hit_rate: float = 0.95
    cache_hit_rate: float = 0.8
    index_efficiency: float = 0.95
    replication_type: str = "none"
    backups_enabled: bool = True


@dataclass(slots=True)
class ObjectStorageMetrics:
    kind: ClassVar[str] = "object_storage"
    stored_gb: float = 100.0
    max_storage_gb: float = 1_000.0
    requests_per_second: float = 0.0
    bandwidth_gbps: float = 1.0
    avg_object_size_kb: float = 100.0
    object_count: int = 0
    cold_storage_percent: float = 0.0
    replication: int = 3
    lifecycle: bool = False
    encryption: bool = True


@dataclass(slots=True)
class ServiceMeshMetrics:
    kind: ClassVar[str] = "service_mesh"
    services_managed: int = 0
    requests_per_second: float = 0.0
    circuit_breakers_open: int = 0
    retry_rate: float = 0.05
    mutual_tls_percent: float = 0.0
    sidecar_overhead: float = 5.0
    tracing_enabled: bool = False
    rate_limiting_enabled: bool = False
    circuit_breaker_enabled: bool = False


@dataclass(slots=True)
class ObservabilityMetrics:
    kind: ClassVar[str] = "observability"
    metrics_per_second: float = 0.0
    logs_per_second: float = 0.0
    traces_per_second: float = 0.0
    retention_days: int = 7
    storage_gb: float = 10.0
    query_latency: float = 50.0
    alerts_configured: int = 0
    dashboards_count: int = 1
    level: str = "BASIC"
    sampling_rate: float = 1.0
    retention_policy: str = "7d"


ComponentMetrics = Union[
    DnsMetrics,
    CdnMetrics,
    WafMetrics,
    LoadBalancerMetrics,
    ApiGatewayMetrics,
    AppClusterMetrics,
    CacheMetrics,
    QueueMetrics,
    WorkersMetrics,
    DatabaseMetrics,
    ObjectStorageMetrics,
    ServiceMeshMetrics,
    ObservabilityMetrics,
]

METRICS_BY_TYPE: Dict[ComponentType, Type[ComponentMetrics]] = {
    ComponentType.DNS: DnsMetrics,
    ComponentType.CDN: CdnMetrics,
    ComponentType.WAF: WafMetrics,
    ComponentType.GLB: LoadBalancerMetrics,
    ComponentType.RLB: LoadBalancerMetrics,
    ComponentType.APIGW: ApiGatewayMetrics,
    ComponentType.APP: AppClusterMetrics,
    ComponentType.SERVICE_MESH: ServiceMeshMetrics,
    ComponentType.CACHE: CacheMetrics,
    ComponentType.QUEUE: QueueMetrics,
    ComponentType.WORKERS: WorkersMetrics,
    ComponentType.DB_PRIMARY: DatabaseMetrics,
    ComponentType.DB_REPLICA: DatabaseMetrics,
    ComponentType.OBJECT_STORAGE: ObjectStorageMetrics,
    ComponentType.OBSERVABILITY: ObservabilityMetrics,
}

METRICS_BY_KIND: Dict[str, Type[ComponentMetrics]] = {cls.kind: cls for cls in METRICS_BY_TYPE.values()}


def default_metrics(component_type: ComponentType) -> ComponentMetrics:
    metrics = METRICS_BY_TYPE[component_type]()
    if component_type is ComponentType.DB_REPLICA:
        metrics.replication_type = "async"
    return metrics


@dataclass(slots=True)
class Scaling:
    minimum: int
    maximum: int
    current: int
    cooldown_until: float = 0.0

    def clamp(self, value: int) -> int:
        return max(self.minimum, min(self.maximum, value))


@dataclass(slots=True)
class ComponentNode:
    id: str
    type: ComponentType
    name: str
    capacity: float
    base_latency: float
    base_error: float
    reliability_score: float
    security_score: float
    scaling: Scaling
    cost_per_sec: float
    metrics: ComponentMetrics
    enabled: bool = True
    locked: bool = False
    health: float = 1.0
    utilization: float = 0.0
    latency: float = 0.0
    error_rate: float = 0.0
    load_in: float = 0.0
    load_out: float = 0.0
    operational_mode: OperationalMode = OperationalMode.NORMAL
    features: Dict[str, object] = field(default_factory=dict)
    redundancy_group: str | None = None
    is_primary: bool = False
    instance_number: int | None = None

    @property
    def active(self) -> bool:
        return self.enabled and not self.locked

    def feature_on(self, name: str) -> bool:
        return bool(self.features.get(name))


@dataclass(frozen=True)
class ComponentArchetype:
    type: ComponentType
    name: str
    capacity: float
    base_latency: float
    base_error: float
    reliability: float
    security: float
    scaling: Tuple[int, int, int]
    cost_per_sec: float
    features: Tuple[Tuple[str, object], ...] = ()


ARCHETYPES: Dict[ComponentType, ComponentArchetype] = {
    ComponentType.DNS: ComponentArchetype(ComponentType.DNS, "DNS", 100_000, 5, 0.0001, 0.999, 0.9, (1, 1, 1), 0.01),
    ComponentType.CDN: ComponentArchetype(
        ComponentType.CDN, "CDN", 50_000, 20, 0.001, 0.99, 0.8, (1, 5, 1), 0.05, (("cache_ttl", 300),)
    ),
    ComponentType.WAF: ComponentArchetype(
        ComponentType.WAF,
        "WAF",
        30_000,
        5,
        0.001,
        0.98,
        0.95,
        (1, 3, 1),
        0.15,
        (("rate_limit", 0), ("bot_protection", False)),
    ),
    ComponentType.GLB: ComponentArchetype(ComponentType.GLB, "Global LB", 50_000, 10, 0.0005, 0.999, 0.85, (1, 3, 1), 0.2),
    ComponentType.RLB: ComponentArchetype(ComponentType.RLB, "Regional LB", 30_000, 5, 0.001, 0.995, 0.85, (1, 5, 1), 0.1),
    ComponentType.APIGW: ComponentArchetype(
        ComponentType.APIGW, "API Gateway", 20_000, 15, 0.002, 0.99, 0.9, (1, 10, 1), 0.2, (("rate_limit", 0),)
    ),
    ComponentType.APP: ComponentArchetype(
        ComponentType.APP,
        "App Cluster",
        5_000,
        50,
        0.005,
        0.95,
        0.8,
        (2, 50, 2),
        0.3,
        (("autoscaling", False), ("circuit_breaker", False), ("retries", False), ("canary_deploy", False)),
    ),
    ComponentType.SERVICE_MESH: ComponentArchetype(
        ComponentType.SERVICE_MESH, "Service Mesh", 50_000, 3, 0.0001, 0.995, 0.95, (1, 1, 1), 0.5, (("enabled", False),)
    ),
    ComponentType.CACHE: ComponentArchetype(ComponentType.CACHE, "Redis Cache", 10_000, 2, 0.001, 0.98, 0.85, (1, 10, 1), 0.1),
    ComponentType.QUEUE: ComponentArchetype(ComponentType.QUEUE, "Message Queue", 5_000, 10, 0.002, 0.97, 0.85, (1, 5, 1), 0.08),
    ComponentType.WORKERS: ComponentArchetype(ComponentType.WORKERS, "Workers", 2_000, 100, 0.01, 0.95, 0.8, (1, 30, 2), 0.25),
    ComponentType.DB_PRIMARY: ComponentArchetype(
        ComponentType.DB_PRIMARY,
        "DB Primary",
        3_000,
        20,
        0.003,
        0.99,
        0.9,
        (1, 1, 1),
        0.5,
        (("connection_pool", False), ("max_connections", 100)),
    ),
    ComponentType.DB_REPLICA: ComponentArchetype(ComponentType.DB_REPLICA, "DB Replica", 1_000, 25, 0.003, 0.98, 0.9, (0, 3, 0), 0.4),
    ComponentType.OBJECT_STORAGE: ComponentArchetype(
        ComponentType.OBJECT_STORAGE, "Object Storage", 10_000, 30, 0.001, 0.9999, 0.95, (1, 1, 1), 0.05
    ),
    ComponentType.OBSERVABILITY: ComponentArchetype(
        ComponentType.OBSERVABILITY, "Observability", 100_000, 0, 0.0, 0.98, 0.9, (1, 1, 1), 0.05
    ),
}


def node_from_archetype(node_id: str, archetype: ComponentArchetype, *, name: str | None = None) -> ComponentNode:
    low, high, current = archetype.scaling
    return ComponentNode(
        id=node_id,
        type=archetype.type,
        name=name or archetype.name,
        capacity=float(archetype.capacity),
        base_latency=float(archetype.base_latency),
        base_error=float(archetype.base_error),
        reliability_score=archetype.reliability,
        security_score=archetype.security,
        scaling=Scaling(minimum=low, maximum=high, current=current),
        cost_per_sec=archetype.cost_per_sec,
        metrics=default_metrics(archetype.type),
        latency=float(archetype.base_latency),
        error_rate=float(archetype.base_error),
        features=dict(archetype.features),
    )


def create_component_node(
    component_type: ComponentType,
    node_id: str,
    name: str,
    base: ComponentNode | None = None,
) -> ComponentNode:
    """Build a fresh node, cloning static figures and metrics from ``base`` when given."""

    if base is None:
        return node_from_archetype(node_id, ARCHETYPES[component_type], name=name)
    maximum = base.scaling.maximum or 10
    metrics = copy.deepcopy(base.metrics)
    clamp_all(metrics)
    return ComponentNode(
        id=node_id,
        type=component_type,
        name=name,
        capacity=base.capacity,
        base_latency=base.base_latency,
        base_error=base.base_error,
        reliability_score=base.reliability_score,
        security_score=base.security_score,
        scaling=Scaling(minimum=1, maximum=max(1, maximum), current=1),
        cost_per_sec=base.cost_per_sec,
        metrics=metrics,
        latency=base.base_latency,
        error_rate=base.base_error,
        features=dict(base.features),
        redundancy_group=base.redundancy_group,
    )


# --- metric field access -------------------------------------------------

_FIELD_INDEX: Dict[type, Dict[str, str]] = {}


def _normalise_key(key: str) -> str:
    return key.replace("_", "").lower()


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def resolve_metric_field(metrics: ComponentMetrics, key: str) -> str | None:
    """Map a collaborator key such as ``avgCPUPercent`` onto a dataclass field."""

    cls = type(metrics)
    index = _FIELD_INDEX.get(cls)
    if index is None:
        index = {_normalise_key(f.name): f.name for f in fields(cls)}
        _FIELD_INDEX[cls] = index
    return index.get(_normalise_key(key))


def metric_items(metrics: ComponentMetrics) -> Iterator[Tuple[str, object]]:
    for f in fields(metrics):
        yield f.name, getattr(metrics, f.name)


def metrics_to_dict(metrics: ComponentMetrics) -> Dict[str, object]:
    payload: Dict[str, object] = {"kind": metrics.kind}
    payload.update(metric_items(metrics))
    return payload


def metrics_from_dict(payload: Dict[str, object]) -> ComponentMetrics:
    kind = payload.get("kind")
    cls = METRICS_BY_KIND.get(str(kind))
    if cls is None:
        raise ValueError(f"Unknown metrics kind: {kind!r}")
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in payload.items() if k in known})


# --- clamping ------------------------------------------------------------

MAX_DURATION_MS = 3_600_000.0
MAX_BACKLOG = 100_000
MAX_EVICTION_RATE = 100_000.0

_DURATION_FIELDS = {
    "ttl",
    "avg_ttl",
    "propagation_delay",
    "replication_lag",
    "avg_message_age",
    "timeout",
    "visibility_timeout",
    "health_check_interval",
}

_RATIO_FIELDS = {"index_efficiency", "memory_fragmentation"}


def _bounded(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _clamp_by_name(name: str, value: float) -> float:
    if name.endswith("_percent"):
        return _bounded(value, 0.0, 100.0)
    if name.endswith("_rate") or name in _RATIO_FIELDS:
        return _bounded(value, 0.0, 1.0)
    if "latency" in name or "duration" in name or name in _DURATION_FIELDS:
        return _bounded(value, 0.0, MAX_DURATION_MS)
    if name.endswith("_gb") or name.endswith("_count") or name in {"instances", "keys_stored", "zones_configured", "edge_locations"}:
        return float(max(0, round(value)))
    return max(0.0, value)


def clamp_metric(metrics: ComponentMetrics, name: str, value: float) -> float:
    """Saturate ``value`` for ``metrics.<name>`` to its realistic bounds."""

    match metrics:
        case DatabaseMetrics() if name == "connections":
            return float(_bounded(round(value), 0, metrics.max_connections))
        case DatabaseMetrics() if name == "storage_gb":
            return _bounded(value, 0.0, metrics.max_storage_gb)
        case ApiGatewayMetrics() if name == "concurrent_connections":
            return float(_bounded(round(value), 0, metrics.max_connections))
        case CacheMetrics() if name == "size_gb":
            return _bounded(value, 0.0, metrics.max_size_gb)
        case CacheMetrics() if name == "eviction_rate":
            return float(_bounded(round(value), 0, MAX_EVICTION_RATE))
        case ObjectStorageMetrics() if name == "stored_gb":
            return _bounded(value, 0.0, metrics.max_storage_gb)
        case QueueMetrics() if name == "messages_queued":
            return float(_bounded(round(value), 0, metrics.max_queue_depth))
        case WorkersMetrics() if name == "queue_backlog":
            return float(_bounded(round(value), 0, MAX_BACKLOG))
        case AppClusterMetrics() if name == "instances":
            return float(_bounded(round(value), metrics.min_instances, metrics.max_instances))
    return _clamp_by_name(name, value)


def _store(metrics: ComponentMetrics, name: str, value: float) -> None:
    current = getattr(metrics, name)
    if isinstance(current, int) and not isinstance(current, bool):
        setattr(metrics, name, int(round(value)))
    else:
        setattr(metrics, name, float(value))


def clamp_all(metrics: ComponentMetrics) -> None:
    for name, value in list(metric_items(metrics)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        _store(metrics, name, clamp_metric(metrics, name, value))


def apply_metric_delta(metrics: ComponentMetrics, key: str, delta: object, *, fraction: float = 1.0) -> bool:
    """Apply ``delta * fraction`` to a metric, returning whether anything changed.

    Boolean deltas overwrite boolean fields.  Unknown keys, string fields and
    type mismatches are ignored.
    """

    name = resolve_metric_field(metrics, key)
    if name is None:
        return False
    current = getattr(metrics, name)
    if isinstance(delta, bool):
        if isinstance(current, bool):
            setattr(metrics, name, delta)
            return True
        return False
    if isinstance(current, bool) or not isinstance(current, (int, float)) or not isinstance(delta, (int, float)):
        return False
    _store(metrics, name, clamp_metric(metrics, name, current + delta * fraction))
    return True


# --- collaborator views --------------------------------------------------


def compact_metric_dump(metrics: ComponentMetrics) -> Dict[str, object]:
    """All numeric and boolean metrics, camelCased and rounded to 2 places."""

    dump: Dict[str, object] = {}
    for name, value in metric_items(metrics):
        if isinstance(value, bool):
            dump[_camel(name)] = value
        elif isinstance(value, (int, float)):
            dump[_camel(name)] = round(value, 2)
    return dump


def serialize_for_collaborator(metrics: ComponentMetrics) -> Dict[str, object]:
    match metrics:
        case CacheMetrics():
            return {
                "sizeGB": metrics.size_gb,
                "maxSizeGB": metrics.max_size_gb,
                "hitRate": round(metrics.hit_rate, 2),
                "evictionRate": round(metrics.eviction_rate),
                "keysStored": metrics.keys_stored,
                "memoryFragmentation": round(metrics.memory_fragmentation, 2),
            }
        case WorkersMetrics():
            return {
                "instances": metrics.instances,
                "queueBacklog": metrics.queue_backlog,
                "jobsProcessedPerSec": round(metrics.jobs_processed_per_sec, 1),
                "avgJobDuration": round(metrics.avg_job_duration),
                "failedJobsPercent": round(metrics.failed_jobs_percent, 2),
                "concurrency": metrics.concurrency,
            }
        case DatabaseMetrics():
            return {
                "connections": metrics.connections,
                "maxConnections": metrics.max_connections,
                "queriesPerSecond": round(metrics.queries_per_second),
                "avgQueryLatency": round(metrics.avg_query_latency),
                "slowQueriesPercent": round(metrics.slow_queries_percent, 2),
                "replicationLag": round(metrics.replication_lag),
                "storageGB": round(metrics.storage_gb),
                "maxStorageGB": metrics.max_storage_gb,
            }
        case QueueMetrics():
            return {
                "messagesQueued": metrics.messages_queued,
                "maxQueueDepth": metrics.max_queue_depth,
                "enqueuedPerSecond": round(metrics.enqueued_per_second),
                "dequeuedPerSecond": round(metrics.dequeued_per_second),
                "avgMessageAge": round(metrics.avg_message_age),
                "deadLetterQueueSize": metrics.dead_letter_queue_size,
            }
        case AppClusterMetrics():
            return {
                "instances": metrics.instances,
                "maxInstances": metrics.max_instances,
                "avgCPUPercent": round(metrics.avg_cpu_percent),
                "avgMemoryPercent": round(metrics.avg_memory_percent),
                "requestsPerSecond": round(metrics.requests_per_second),
                "activeConnections": metrics.active_connections,
            }
        case ApiGatewayMetrics():
            return {
                "requestsPerSecond": round(metrics.requests_per_second),
                "concurrentConnections": metrics.concurrent_connections,
                "maxConnections": metrics.max_connections,
                "rateLimitHitRate": round(metrics.rate_limit_hit_rate, 2),
                "transformationLatency": round(metrics.transformation_latency),
            }
        case CdnMetrics():
            return {
                "cacheHitRate": round(metrics.cache_hit_rate, 2),
                "bandwidthGbps": round(metrics.bandwidth_gbps, 1),
                "cacheSizeGB": metrics.cache_size_gb,
                "requestsPerSecond": round(metrics.requests_per_second),
            }
        case _:
            return {}


@dataclass(frozen=True)
class BottleneckStatus:
    is_bottleneck: bool
    severity: str = "low"
    reason: str | None = None


_CLEAR = BottleneckStatus(False)


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def bottleneck_status(metrics: ComponentMetrics) -> BottleneckStatus:
    match metrics:
        case CacheMetrics():
            if metrics.hit_rate < 0.4:
                return BottleneckStatus(True, "high", "Low cache hit rate")
            if metrics.eviction_rate > 100:
                return BottleneckStatus(True, "medium", "High eviction rate")
            if _ratio(metrics.size_gb, metrics.max_size_gb) > 0.9:
                return BottleneckStatus(True, "medium", "Cache near capacity")
        case WorkersMetrics():
            if metrics.queue_backlog > 200:
                return BottleneckStatus(True, "critical", "High queue backlog")
            if metrics.failed_jobs_percent > 0.1:
                return BottleneckStatus(True, "high", "High job failure rate")
            if metrics.avg_job_duration > 60:
                return BottleneckStatus(True, "medium", "Slow job processing")
        case DatabaseMetrics():
            if _ratio(metrics.connections, metrics.max_connections) > 0.9:
                return BottleneckStatus(True, "critical", "Connection pool exhaustion")
            if metrics.slow_queries_percent > 0.2:
                return BottleneckStatus(True, "high", "High slow query rate")
            if _ratio(metrics.storage_gb, metrics.max_storage_gb) > 0.9:
                return BottleneckStatus(True, "high", "Storage near capacity")
            if metrics.replication_lag > 1000:
                return BottleneckStatus(True, "medium", "High replication lag")
        case QueueMetrics():
            if _ratio(metrics.messages_queued, metrics.max_queue_depth) > 0.8:
                return BottleneckStatus(True, "critical", "Queue near capacity")
            if metrics.avg_message_age > 60:
                return BottleneckStatus(True, "high", "Messages aging in queue")
            if metrics.dead_letter_queue_size > 100:
                return BottleneckStatus(True, "medium", "High dead letter queue")
        case AppClusterMetrics():
            if metrics.avg_cpu_percent > 85:
                return BottleneckStatus(True, "high", "High CPU usage")
            if metrics.avg_memory_percent > 85:
                return BottleneckStatus(True, "high", "High memory usage")
            if metrics.instances >= metrics.max_instances:
                return BottleneckStatus(True, "medium", "At max scaling")
        case ApiGatewayMetrics():
            if _ratio(metrics.concurrent_connections, metrics.max_connections) > 0.9:
                return BottleneckStatus(True, "critical", "Connection limit reached")
            if metrics.rate_limit_hit_rate > 0.3:
                return BottleneckStatus(True, "medium", "High rate limit hits")
        case CdnMetrics():
            if metrics.cache_hit_rate < 0.5:
                return BottleneckStatus(True, "medium", "Poor cache performance")
            if metrics.bandwidth_gbps > 80:
                return BottleneckStatus(True, "high", "Bandwidth saturation")
        case _:
            pass
    return _CLEAR


def sync_scaled_metrics(node: ComponentNode, delta: int) -> None:
    """Reflect a scaling change in the node's archetype metrics."""

    match node.metrics:
        case AppClusterMetrics() | LoadBalancerMetrics():
            node.metrics.instances = node.scaling.current
        case WorkersMetrics():
            node.metrics.instances = node.scaling.current
            if delta > 0:
                node.metrics.queue_backlog = int(round(max(0, node.metrics.queue_backlog * 0.7)))
        case _:
            pass


__all__: List[str] = [
    "ARCHETYPES",
    "ApiGatewayMetrics",
    "AppClusterMetrics",
    "BottleneckStatus",
    "CacheMetrics",
    "CdnMetrics",
    "ComponentArchetype",
    "ComponentMetrics",
    "ComponentNode",
    "ComponentType",
    "DatabaseMetrics",
    "DnsMetrics",
    "LoadBalancerMetrics",
    "METRICS_BY_KIND",
    "METRICS_BY_TYPE",
    "ObjectStorageMetrics",
    "ObservabilityMetrics",
    "OperationalMode",
    "QueueMetrics",
    "Scaling",
    "ServiceMeshMetrics",
    "WafMetrics",
    "WorkersMetrics",
    "apply_metric_delta",
    "bottleneck_status",
    "clamp_all",
    "clamp_metric",
    "compact_metric_dump",
    "create_component_node",
    "default_metrics",
    "metric_items",
    "metrics_from_dict",
    "metrics_to_dict",
    "node_from_archetype",
    "resolve_metric_field",
    "serialize_for_collaborator",
    "sync_scaled_metrics",
]
