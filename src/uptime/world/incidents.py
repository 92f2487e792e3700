"""Incident catalog and live incident records.

Catalog definitions are immutable.  Live incidents are mutable slots
dataclasses owned by a single :class:`~uptime.state.GameState`; generated
incidents carry the collaborator's payload inline instead of a catalog
reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Tuple

from .components import ComponentType

GENERATED_DEFINITION_ID = "ai_generated"


class IncidentSeverity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    CRIT = "CRIT"

    @property
    def weight(self) -> int:
        return _SEVERITY_WEIGHTS[self]


_SEVERITY_WEIGHTS = {IncidentSeverity.INFO: 1, IncidentSeverity.WARN: 2, IncidentSeverity.CRIT: 3}


class IncidentCategory(str, Enum):
    TRAFFIC = "TRAFFIC"
    SECURITY = "SECURITY"
    DEPLOY = "DEPLOY"
    DNS = "DNS"
    COMPUTE = "COMPUTE"
    DATABASE = "DATABASE"
    QUEUE = "QUEUE"
    EXTERNAL = "EXTERNAL"
    OBSERVABILITY = "OBSERVABILITY"
    OPTIMIZATION = "OPTIMIZATION"


@dataclass(frozen=True)
class SpawnPreconditions:
    min_utilization: float | None = None
    max_utilization: float | None = None
    feature_disabled: str | None = None
    min_tech_debt: float | None = None
    min_error_rate: float | None = None


@dataclass(frozen=True)
class IncidentEffects:
    utilization_multiplier: float | None = None
    latency_multiplier: float | None = None
    error_multiplier: float | None = None
    health_decay_per_sec: float | None = None
    capacity_multiplier: float | None = None


@dataclass(frozen=True)
class IncidentDefinition:
    id: str
    name: str
    description: str
    category: IncidentCategory
    severity: IncidentSeverity
    target_types: Tuple[ComponentType, ...]
    base_rate_per_minute: float
    effects: IncidentEffects
    resolution_options: Tuple[str, ...]
    preconditions: SpawnPreconditions = SpawnPreconditions()
    escalates_to: str | None = None
    escalation_time_seconds: float | None = None
    time_to_outage_seconds: float | None = None
    auto_resolve_seconds: float | None = None


@dataclass(slots=True)
class SuggestedAction:
    action_name: str
    description: str = ""
    cost: float = 0.0
    duration_seconds: float = 0.0
    effectiveness: float = 0.0
    action_id: str | None = None
    metric_improvements: Dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class GeneratedEffects:
    error_multiplier: float | None = None
    latency_multiplier: float | None = None
    utilization_multiplier: float | None = None
    health_decay_per_sec: float | None = None
    metric_effects: Dict[str, object] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return (
            self.error_multiplier is None
            and self.latency_multiplier is None
            and self.utilization_multiplier is None
            and self.health_decay_per_sec is None
            and not self.metric_effects
        )


@dataclass(slots=True)
class GeneratedIncident:
    """Incident payload produced by the incident-generation collaborator."""

    incident_id: str
    name: str
    target_node_id: str
    severity: IncidentSeverity
    category: str
    description: str = ""
    logs: List[str] = field(default_factory=list)
    effects: GeneratedEffects | None = None
    suggested_actions: List[SuggestedAction] = field(default_factory=list)
    auto_resolve_seconds: float | None = None


@dataclass(slots=True)
class ActiveIncident:
    id: str
    definition_id: str
    target_node_id: str
    severity: IncidentSeverity
    start_time: float
    escalation_timer: float = 0.0
    outage_timer: float = 0.0
    auto_resolve_seconds: float | None = None
    mitigation_level: float = 0.0
    mitigation_progress: float = 0.0
    generated: GeneratedIncident | None = None
    related_incident_ids: List[str] = field(default_factory=list)
    root_cause_shared: bool = False

    @property
    def is_generated(self) -> bool:
        return self.generated is not None

    @property
    def name(self) -> str:
        if self.generated is not None:
            return self.generated.name
        definition = INCIDENTS.get(self.definition_id)
        return definition.name if definition else self.definition_id

    @property
    def category(self) -> str | None:
        if self.generated is not None:
            return self.generated.category
        definition = INCIDENTS.get(self.definition_id)
        return definition.category.value if definition else None

    def add_mitigation(self, amount: float) -> None:
        self.mitigation_level = min(1.0, self.mitigation_level + max(0.0, amount))
        self.mitigation_progress = max(self.mitigation_progress, self.mitigation_level)

    def find_suggested_action(self, action_id: str) -> SuggestedAction | None:
        """Match an ``ai_<snake_name>`` action id back to its suggestion."""

        if self.generated is None:
            return None
        needle = action_id.removeprefix("ai_").replace("_", " ").lower()[:15]
        for suggestion in self.generated.suggested_actions:
            if needle and needle in suggestion.action_name.lower():
                return suggestion
        return None


def _define(*definitions: IncidentDefinition) -> Mapping[str, IncidentDefinition]:
    return {definition.id: definition for definition in definitions}


INCIDENTS: Mapping[str, IncidentDefinition] = _define(
    IncidentDefinition(
        id="traffic_spike",
        name="Traffic Spike",
        description="Sudden surge of requests is saturating the app tier.",
        category=IncidentCategory.TRAFFIC,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.APP,),
        base_rate_per_minute=0.3,
        preconditions=SpawnPreconditions(min_utilization=0.8),
        effects=IncidentEffects(utilization_multiplier=1.5, latency_multiplier=1.3),
        escalates_to="app_overload",
        escalation_time_seconds=90,
        resolution_options=("scale_up_app", "enable_waf_rate_limit", "enable_circuit_breaker"),
        auto_resolve_seconds=180,
    ),
    IncidentDefinition(
        id="app_overload",
        name="App Tier Overload",
        description="App instances are dropping requests under sustained overload.",
        category=IncidentCategory.COMPUTE,
        severity=IncidentSeverity.CRIT,
        target_types=(ComponentType.APP,),
        base_rate_per_minute=0.0,
        effects=IncidentEffects(
            utilization_multiplier=1.8, error_multiplier=2.0, latency_multiplier=2.0, health_decay_per_sec=0.002
        ),
        time_to_outage_seconds=240,
        resolution_options=("scale_up_app", "enable_circuit_breaker", "restart_app"),
        auto_resolve_seconds=600,
    ),
    IncidentDefinition(
        id="memory_leak",
        name="Memory Leak",
        description="Resident memory keeps climbing between deploys.",
        category=IncidentCategory.COMPUTE,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.APP, ComponentType.WORKERS),
        base_rate_per_minute=0.2,
        preconditions=SpawnPreconditions(min_tech_debt=20),
        effects=IncidentEffects(latency_multiplier=1.4, health_decay_per_sec=0.001),
        escalates_to="oom_kill",
        escalation_time_seconds=120,
        resolution_options=("restart_app", "rollback_deploy", "hotfix"),
    ),
    IncidentDefinition(
        id="oom_kill",
        name="OOM Killer",
        description="Processes are being killed for exceeding their memory limits.",
        category=IncidentCategory.COMPUTE,
        severity=IncidentSeverity.CRIT,
        target_types=(ComponentType.APP, ComponentType.WORKERS),
        base_rate_per_minute=0.0,
        effects=IncidentEffects(error_multiplier=2.5, health_decay_per_sec=0.003),
        time_to_outage_seconds=180,
        resolution_options=("restart_app", "hotfix"),
    ),
    IncidentDefinition(
        id="cache_stampede",
        name="Cache Stampede",
        description="Hot keys expired together and every request is missing the cache.",
        category=IncidentCategory.DATABASE,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.CACHE,),
        base_rate_per_minute=0.15,
        preconditions=SpawnPreconditions(min_utilization=0.7),
        effects=IncidentEffects(error_multiplier=1.5, latency_multiplier=1.8),
        resolution_options=("scale_up_cache", "flush_cache"),
        auto_resolve_seconds=240,
    ),
    IncidentDefinition(
        id="db_connection_exhaustion",
        name="DB Connection Exhaustion",
        description="The primary has run out of client connections.",
        category=IncidentCategory.DATABASE,
        severity=IncidentSeverity.CRIT,
        target_types=(ComponentType.DB_PRIMARY,),
        base_rate_per_minute=0.15,
        preconditions=SpawnPreconditions(min_utilization=0.7, feature_disabled="connection_pool"),
        effects=IncidentEffects(error_multiplier=2.5, latency_multiplier=2.0),
        time_to_outage_seconds=300,
        resolution_options=("enable_connection_pool", "restart_db"),
    ),
    IncidentDefinition(
        id="slow_queries",
        name="Slow Queries",
        description="Unindexed queries are piling up on the database.",
        category=IncidentCategory.DATABASE,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.DB_PRIMARY, ComponentType.DB_REPLICA),
        base_rate_per_minute=0.2,
        preconditions=SpawnPreconditions(min_tech_debt=30),
        effects=IncidentEffects(latency_multiplier=1.8),
        resolution_options=("optimize_db_queries", "restart_db"),
        auto_resolve_seconds=300,
    ),
    IncidentDefinition(
        id="replication_lag",
        name="Replication Lag",
        description="Read replicas are serving stale data.",
        category=IncidentCategory.DATABASE,
        severity=IncidentSeverity.INFO,
        target_types=(ComponentType.DB_REPLICA,),
        base_rate_per_minute=0.1,
        preconditions=SpawnPreconditions(min_utilization=0.5),
        effects=IncidentEffects(latency_multiplier=1.3),
        resolution_options=("scale_up_db_replica",),
        auto_resolve_seconds=180,
    ),
    IncidentDefinition(
        id="queue_backlog",
        name="Queue Backlog",
        description="Jobs are enqueued faster than workers can drain them.",
        category=IncidentCategory.QUEUE,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.QUEUE, ComponentType.WORKERS),
        base_rate_per_minute=0.2,
        preconditions=SpawnPreconditions(min_utilization=0.8),
        effects=IncidentEffects(utilization_multiplier=1.4, latency_multiplier=1.5),
        resolution_options=("scale_up_workers", "drain_queue"),
        auto_resolve_seconds=240,
    ),
    IncidentDefinition(
        id="ddos_attack",
        name="DDoS Attack",
        description="A botnet is flooding the edge with junk traffic.",
        category=IncidentCategory.SECURITY,
        severity=IncidentSeverity.CRIT,
        target_types=(ComponentType.WAF, ComponentType.CDN),
        base_rate_per_minute=0.05,
        preconditions=SpawnPreconditions(feature_disabled="bot_protection"),
        effects=IncidentEffects(utilization_multiplier=2.0, error_multiplier=2.0, health_decay_per_sec=0.001),
        time_to_outage_seconds=300,
        resolution_options=("enable_bot_protection", "enable_waf_rate_limit", "scale_up_cdn"),
        auto_resolve_seconds=600,
    ),
    IncidentDefinition(
        id="bad_deploy",
        name="Bad Deploy",
        description="The latest release is throwing errors in production.",
        category=IncidentCategory.DEPLOY,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.APP,),
        base_rate_per_minute=0.1,
        preconditions=SpawnPreconditions(feature_disabled="canary_deploy"),
        effects=IncidentEffects(error_multiplier=2.0),
        resolution_options=("rollback_deploy", "hotfix"),
    ),
    IncidentDefinition(
        id="dns_propagation",
        name="DNS Propagation Delay",
        description="A record change is still propagating to resolvers.",
        category=IncidentCategory.DNS,
        severity=IncidentSeverity.INFO,
        target_types=(ComponentType.DNS,),
        base_rate_per_minute=0.05,
        effects=IncidentEffects(latency_multiplier=1.5),
        resolution_options=("flush_dns_cache",),
        auto_resolve_seconds=120,
    ),
    IncidentDefinition(
        id="cdn_degradation",
        name="CDN Provider Degradation",
        description="The upstream CDN provider is running at reduced capacity.",
        category=IncidentCategory.EXTERNAL,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.CDN,),
        base_rate_per_minute=0.05,
        effects=IncidentEffects(capacity_multiplier=0.5, latency_multiplier=1.5),
        resolution_options=("purge_cdn_cache", "scale_up_cdn"),
        auto_resolve_seconds=300,
    ),
    IncidentDefinition(
        id="storage_pressure",
        name="Storage Pressure",
        description="Object storage throughput is throttled near its quota.",
        category=IncidentCategory.EXTERNAL,
        severity=IncidentSeverity.INFO,
        target_types=(ComponentType.OBJECT_STORAGE,),
        base_rate_per_minute=0.05,
        preconditions=SpawnPreconditions(min_utilization=0.6),
        effects=IncidentEffects(latency_multiplier=1.2),
        resolution_options=("add_storage_capacity",),
        auto_resolve_seconds=300,
    ),
    IncidentDefinition(
        id="observability_gap",
        name="Observability Gap",
        description="Dashboards are missing data for part of the fleet.",
        category=IncidentCategory.OBSERVABILITY,
        severity=IncidentSeverity.INFO,
        target_types=(ComponentType.OBSERVABILITY,),
        base_rate_per_minute=0.03,
        effects=IncidentEffects(),
        resolution_options=("upgrade_observability_metrics",),
        auto_resolve_seconds=300,
    ),
    IncidentDefinition(
        id="certificate_expiry",
        name="Certificate Expiry",
        description="A TLS certificate has expired and handshakes are failing.",
        category=IncidentCategory.SECURITY,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.RLB, ComponentType.APIGW),
        base_rate_per_minute=0.03,
        effects=IncidentEffects(error_multiplier=3.0),
        time_to_outage_seconds=600,
        resolution_options=("renew_certificate",),
    ),
    IncidentDefinition(
        id="elevated_errors",
        name="Elevated Error Rate",
        description="A dependency is flapping and requests are failing intermittently.",
        category=IncidentCategory.COMPUTE,
        severity=IncidentSeverity.WARN,
        target_types=(ComponentType.APP, ComponentType.APIGW),
        base_rate_per_minute=0.15,
        preconditions=SpawnPreconditions(min_error_rate=0.05),
        effects=IncidentEffects(error_multiplier=1.5),
        resolution_options=("rollback_deploy", "enable_retries"),
        auto_resolve_seconds=240,
    ),
)


def severity_score(incidents: List[ActiveIncident]) -> int:
    return sum(incident.severity.weight for incident in incidents)


__all__ = [
    "ActiveIncident",
    "GENERATED_DEFINITION_ID",
    "GeneratedEffects",
    "GeneratedIncident",
    "INCIDENTS",
    "IncidentCategory",
    "IncidentDefinition",
    "IncidentEffects",
    "IncidentSeverity",
    "SpawnPreconditions",
    "SuggestedAction",
    "severity_score",
]
