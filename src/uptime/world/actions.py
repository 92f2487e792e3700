"""Player action catalog.

Three tables are merged into :data:`ACTIONS`: day-to-day operational actions,
architecture changes that add or remove nodes, and cost-saving or revenue
actions.  Definitions are frozen; the reducer interprets their effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple

from .architecture import EdgeSpec
from .components import ComponentType

GLOBAL_TARGET = "global"


@dataclass(frozen=True)
class ActionRequirements:
    min_cash: float | None = None
    min_users: float | None = None
    node_enabled: str | None = None
    feature_enabled: str | None = None
    observability_level: str | None = None
    unlocked_feature: str | None = None


@dataclass(frozen=True)
class StatChanges:
    capacity: float = 0.0
    reliability: float = 0.0
    security: float = 0.0
    latency: float = 0.0
    error_rate: float = 0.0
    mttr_multiplier: float = 0.0


@dataclass(frozen=True)
class FeatureToggle:
    feature: str
    value: object


@dataclass(frozen=True)
class ScaleNode:
    node_id: str
    delta: int


@dataclass(frozen=True)
class AddComponent:
    type: ComponentType
    base_node_id: str
    connections: Tuple[EdgeSpec, ...] = ()
    redundancy_group: str | None = None
    is_primary: bool = False


@dataclass(frozen=True)
class SplitService:
    service_name: str
    type: ComponentType
    traffic_percentage: float


@dataclass(frozen=True)
class ActionEffects:
    stat_changes: StatChanges | None = None
    feature_toggle: FeatureToggle | None = None
    tech_debt: float = 0.0
    reputation_delta: float = 0.0
    enable_node: str | None = None
    scale_node: ScaleNode | None = None
    downtime_risk: float = 0.0
    add_component: AddComponent | None = None
    remove_component: str | None = None
    split_service: SplitService | None = None


@dataclass(frozen=True)
class ActionDefinition:
    id: str
    name: str
    description: str
    category: str
    target: str
    one_time_cost: float
    duration_seconds: float
    cooldown_seconds: float
    effects: ActionEffects = ActionEffects()
    requires: ActionRequirements | None = None
    success_chance: float = 1.0
    # Display-only; billing always comes from enabled nodes.
    recurring_cost_delta: float = 0.0

    @property
    def is_global(self) -> bool:
        return self.target == GLOBAL_TARGET


def _scale(action_id: str, name: str, node_id: str, delta: int, cost: float, cooldown: float) -> ActionDefinition:
    verb = "Add" if delta > 0 else "Remove"
    return ActionDefinition(
        id=action_id,
        name=name,
        description=f"{verb} {abs(delta)} instance(s) on {node_id}",
        category="SCALING",
        target=node_id,
        one_time_cost=cost,
        duration_seconds=30,
        cooldown_seconds=cooldown,
        effects=ActionEffects(scale_node=ScaleNode(node_id, delta)),
    )


def _toggle(
    action_id: str,
    name: str,
    description: str,
    node_id: str,
    feature: str,
    value: object,
    cost: float,
    *,
    duration: float = 60,
    cooldown: float = 120,
    requires: ActionRequirements | None = None,
    **extra: object,
) -> ActionDefinition:
    return ActionDefinition(
        id=action_id,
        name=name,
        description=description,
        category="RELIABILITY",
        target=node_id,
        one_time_cost=cost,
        duration_seconds=duration,
        cooldown_seconds=cooldown,
        requires=requires,
        effects=ActionEffects(feature_toggle=FeatureToggle(feature, value), **extra),
    )


BASE_ACTIONS: Tuple[ActionDefinition, ...] = (
    _scale("scale_up_app", "Scale App +1", "app", 1, 300, 30),
    _scale("scale_up_workers", "Scale Workers +1", "workers", 1, 200, 30),
    _scale("scale_up_cache", "Scale Cache +1", "cache", 1, 250, 45),
    _scale("scale_up_apigw", "Scale API Gateway +1", "apigw", 1, 250, 45),
    _scale("scale_up_cdn", "Scale CDN +1", "cdn", 1, 200, 60),
    ActionDefinition(
        id="scale_up_db_replica",
        name="Scale DB Replicas +1",
        description="Bring another read replica online",
        category="SCALING",
        target="db_replica",
        one_time_cost=600,
        duration_seconds=60,
        cooldown_seconds=120,
        requires=ActionRequirements(unlocked_feature="db_replica"),
        effects=ActionEffects(scale_node=ScaleNode("db_replica", 1)),
    ),
    ActionDefinition(
        id="restart_app",
        name="Rolling Restart App",
        description="Restart app instances one at a time",
        category="OPERATIONS",
        target="app",
        one_time_cost=50,
        duration_seconds=20,
        cooldown_seconds=60,
        effects=ActionEffects(stat_changes=StatChanges(reliability=0.001), downtime_risk=0.1),
    ),
    ActionDefinition(
        id="restart_db",
        name="Restart Database",
        description="Fail over and restart the primary",
        category="OPERATIONS",
        target="db_primary",
        one_time_cost=150,
        duration_seconds=45,
        cooldown_seconds=180,
        effects=ActionEffects(stat_changes=StatChanges(reliability=0.001), downtime_risk=0.2),
    ),
    ActionDefinition(
        id="rollback_deploy",
        name="Rollback Deploy",
        description="Revert the app to the previous release",
        category="DEPLOY",
        target="app",
        one_time_cost=100,
        duration_seconds=60,
        cooldown_seconds=120,
        effects=ActionEffects(stat_changes=StatChanges(error_rate=-0.001), tech_debt=2),
    ),
    ActionDefinition(
        id="hotfix",
        name="Ship Hotfix",
        description="Patch forward quickly at the cost of tech debt",
        category="DEPLOY",
        target="app",
        one_time_cost=150,
        duration_seconds=45,
        cooldown_seconds=90,
        effects=ActionEffects(tech_debt=10),
        success_chance=0.9,
    ),
    ActionDefinition(
        id="flush_cache",
        name="Flush Cache",
        description="Drop every key and let the cache warm again",
        category="OPERATIONS",
        target="cache",
        one_time_cost=50,
        duration_seconds=0,
        cooldown_seconds=60,
        effects=ActionEffects(downtime_risk=0.05),
    ),
    ActionDefinition(
        id="flush_dns_cache",
        name="Flush DNS Cache",
        description="Force resolvers to pick up the new records",
        category="OPERATIONS",
        target="dns",
        one_time_cost=50,
        duration_seconds=0,
        cooldown_seconds=60,
    ),
    ActionDefinition(
        id="purge_cdn_cache",
        name="Purge CDN Cache",
        description="Invalidate edge caches and fail over to a healthy provider region",
        category="OPERATIONS",
        target="cdn",
        one_time_cost=75,
        duration_seconds=0,
        cooldown_seconds=90,
    ),
    ActionDefinition(
        id="drain_queue",
        name="Drain Queue",
        description="Temporarily boost consumers to work off the backlog",
        category="OPERATIONS",
        target="queue",
        one_time_cost=100,
        duration_seconds=30,
        cooldown_seconds=90,
        effects=ActionEffects(stat_changes=StatChanges(capacity=1_000)),
    ),
    ActionDefinition(
        id="renew_certificate",
        name="Renew Certificate",
        description="Issue and roll out a fresh TLS certificate",
        category="SECURITY",
        target="rlb",
        one_time_cost=100,
        duration_seconds=0,
        cooldown_seconds=300,
    ),
    ActionDefinition(
        id="add_storage_capacity",
        name="Raise Storage Quota",
        description="Request a higher throughput tier from the storage provider",
        category="SCALING",
        target="storage",
        one_time_cost=300,
        duration_seconds=60,
        cooldown_seconds=300,
        effects=ActionEffects(stat_changes=StatChanges(capacity=5_000)),
    ),
    _toggle(
        "enable_circuit_breaker",
        "Enable Circuit Breaker",
        "Fail fast on unhealthy dependencies",
        "app",
        "circuit_breaker",
        True,
        400,
        stat_changes=StatChanges(reliability=0.02),
    ),
    _toggle("enable_retries", "Enable Retries", "Retry idempotent calls with backoff", "app", "retries", True, 200),
    _toggle(
        "enable_canary_deploy",
        "Enable Canary Deploys",
        "Ship to a slice of traffic before everyone",
        "app",
        "canary_deploy",
        True,
        600,
        requires=ActionRequirements(unlocked_feature="canary_deploy"),
    ),
    _toggle(
        "enable_connection_pool",
        "Enable Connection Pool",
        "Pool database connections between app and primary",
        "db_primary",
        "connection_pool",
        True,
        300,
        duration=45,
    ),
    _toggle(
        "enable_bot_protection",
        "Enable Bot Protection",
        "Challenge suspicious clients at the edge",
        "waf",
        "bot_protection",
        True,
        500,
        stat_changes=StatChanges(security=0.03),
    ),
    _toggle(
        "enable_waf_rate_limit",
        "Enable WAF Rate Limit",
        "Cap per-client request rate at the WAF",
        "waf",
        "rate_limit",
        500,
        300,
        duration=30,
    ),
    ActionDefinition(
        id="enable_service_mesh",
        name="Deploy Service Mesh",
        description="Unlock and enable the service mesh",
        category="ARCHITECTURE",
        target="servicemesh",
        one_time_cost=2_000,
        duration_seconds=180,
        cooldown_seconds=600,
        requires=ActionRequirements(min_users=50_000),
        effects=ActionEffects(enable_node="servicemesh", tech_debt=5),
    ),
    ActionDefinition(
        id="upgrade_observability_metrics",
        name="Upgrade Observability: Metrics",
        description="Dashboards and alerting on key metrics",
        category="OBSERVABILITY",
        target="observability",
        one_time_cost=800,
        duration_seconds=60,
        cooldown_seconds=300,
        requires=ActionRequirements(observability_level="BASIC"),
    ),
    ActionDefinition(
        id="upgrade_observability_traces",
        name="Upgrade Observability: Traces",
        description="End-to-end request tracing",
        category="OBSERVABILITY",
        target="observability",
        one_time_cost=1_500,
        duration_seconds=90,
        cooldown_seconds=300,
        requires=ActionRequirements(observability_level="METRICS"),
    ),
    ActionDefinition(
        id="increase_price",
        name="Raise Prices 20%",
        description="Charge more per user per day",
        category="REVENUE",
        target=GLOBAL_TARGET,
        one_time_cost=0,
        duration_seconds=0,
        cooldown_seconds=900,
        effects=ActionEffects(reputation_delta=-5),
    ),
    ActionDefinition(
        id="hire_sre",
        name="Hire an SRE",
        description="A dedicated reliability engineer cuts time to repair",
        category="TEAM",
        target=GLOBAL_TARGET,
        one_time_cost=3_000,
        duration_seconds=0,
        cooldown_seconds=3_600,
        requires=ActionRequirements(min_users=20_000),
    ),
)


DYNAMIC_ACTIONS: Tuple[ActionDefinition, ...] = (
    ActionDefinition(
        id="add_db_replica",
        name="Add Database Replica",
        description="Deploy read replica for high availability and read scaling",
        category="DATABASE",
        target=GLOBAL_TARGET,
        one_time_cost=800,
        recurring_cost_delta=0.08,
        duration_seconds=120,
        cooldown_seconds=120,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.DB_REPLICA,
                "db_replica",
                (("db_primary", "target", 1.0), ("app", "target", 0.15)),
                redundancy_group="db_replicas",
            ),
            reputation_delta=5,
        ),
    ),
    ActionDefinition(
        id="add_db_pooler",
        name="Add Connection Pooler",
        description="PgBouncer-style pooler to optimize database connections",
        category="DATABASE",
        target=GLOBAL_TARGET,
        one_time_cost=400,
        recurring_cost_delta=0.03,
        duration_seconds=90,
        cooldown_seconds=180,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.DB_PRIMARY, "db_primary", (("app", "target", 0.5), ("target", "db_primary", 1.0))
            ),
            tech_debt=-5,
        ),
    ),
    ActionDefinition(
        id="add_app_instance",
        name="Add App Instance",
        description="Horizontal scaling - add another app server",
        category="SCALING",
        target=GLOBAL_TARGET,
        one_time_cost=500,
        recurring_cost_delta=0.05,
        duration_seconds=60,
        cooldown_seconds=60,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.APP,
                "app",
                (
                    ("apigw", "target", 0.5),
                    ("target", "cache", 0.6),
                    ("target", "db_primary", 0.5),
                    ("target", "queue", 0.2),
                ),
                redundancy_group="app_cluster",
            ),
            reputation_delta=3,
        ),
    ),
    ActionDefinition(
        id="remove_app_instance",
        name="Remove App Instance",
        description="Scale down to save costs (requires 2+ instances)",
        category="COST_OPTIMIZATION",
        target=GLOBAL_TARGET,
        one_time_cost=0,
        recurring_cost_delta=-0.05,
        duration_seconds=45,
        cooldown_seconds=90,
        requires=ActionRequirements(min_cash=0),
        effects=ActionEffects(tech_debt=5),
    ),
    ActionDefinition(
        id="split_auth_service",
        name="Split Auth Service",
        description="Extract authentication into microservice",
        category="ARCHITECTURE",
        target=GLOBAL_TARGET,
        one_time_cost=1_200,
        recurring_cost_delta=0.04,
        duration_seconds=240,
        cooldown_seconds=300,
        success_chance=0.95,
        effects=ActionEffects(
            split_service=SplitService("Auth", ComponentType.APP, 30), tech_debt=10, reputation_delta=10
        ),
    ),
    ActionDefinition(
        id="split_payment_service",
        name="Split Payment Service",
        description="Extract payments into PCI-compliant microservice",
        category="ARCHITECTURE",
        target=GLOBAL_TARGET,
        one_time_cost=1_500,
        recurring_cost_delta=0.06,
        duration_seconds=240,
        cooldown_seconds=300,
        success_chance=0.92,
        effects=ActionEffects(
            split_service=SplitService("Payment", ComponentType.APP, 20), tech_debt=12, reputation_delta=15
        ),
    ),
    ActionDefinition(
        id="split_notification_service",
        name="Split Notification Service",
        description="Extract notifications into async microservice",
        category="ARCHITECTURE",
        target=GLOBAL_TARGET,
        one_time_cost=800,
        recurring_cost_delta=0.03,
        duration_seconds=180,
        cooldown_seconds=240,
        success_chance=0.97,
        effects=ActionEffects(split_service=SplitService("Notification", ComponentType.APP, 15), tech_debt=8),
    ),
    ActionDefinition(
        id="add_worker_instance",
        name="Add Worker Instance",
        description="Scale async job processing capacity",
        category="SCALING",
        target=GLOBAL_TARGET,
        one_time_cost=400,
        recurring_cost_delta=0.04,
        duration_seconds=45,
        cooldown_seconds=45,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.WORKERS,
                "workers",
                (("queue", "target", 0.5), ("target", "db_primary", 0.8)),
                redundancy_group="worker_pool",
            )
        ),
    ),
    ActionDefinition(
        id="remove_worker_instance",
        name="Remove Worker Instance",
        description="Scale down workers to save costs (requires 2+ instances)",
        category="COST_OPTIMIZATION",
        target=GLOBAL_TARGET,
        one_time_cost=0,
        recurring_cost_delta=-0.04,
        duration_seconds=30,
        cooldown_seconds=60,
    ),
    ActionDefinition(
        id="add_cache_node",
        name="Add Redis Cluster Node",
        description="Add cache node for better hit rate and capacity",
        category="PERFORMANCE",
        target=GLOBAL_TARGET,
        one_time_cost=600,
        recurring_cost_delta=0.05,
        duration_seconds=90,
        cooldown_seconds=120,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.CACHE, "cache", (("app", "target", 0.3),), redundancy_group="cache_cluster"
            )
        ),
    ),
    ActionDefinition(
        id="add_cdn_edge",
        name="Add CDN Edge Location",
        description="Deploy CDN edge in new geographic region",
        category="PERFORMANCE",
        target="cdn",
        one_time_cost=400,
        recurring_cost_delta=0.03,
        duration_seconds=120,
        cooldown_seconds=90,
        effects=ActionEffects(stat_changes=StatChanges(capacity=10_000, latency=-5), reputation_delta=5),
    ),
    ActionDefinition(
        id="remove_cache_emergency",
        name="Disable Cache (Emergency)",
        description="Turn off cache to save costs - increases DB load",
        category="COST_OPTIMIZATION",
        target="cache",
        one_time_cost=0,
        recurring_cost_delta=-0.05,
        duration_seconds=30,
        cooldown_seconds=180,
        effects=ActionEffects(tech_debt=20, downtime_risk=0.3),
    ),
    ActionDefinition(
        id="add_apigw_instance",
        name="Add API Gateway Instance",
        description="Add redundant API Gateway for HA",
        category="SCALING",
        target=GLOBAL_TARGET,
        one_time_cost=600,
        recurring_cost_delta=0.04,
        duration_seconds=90,
        cooldown_seconds=120,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.APIGW,
                "apigw",
                (("rlb", "target", 0.5), ("target", "app", 1.0)),
                redundancy_group="apigw_cluster",
            ),
            reputation_delta=5,
        ),
    ),
    ActionDefinition(
        id="enable_anycast_dns",
        name="Enable Anycast DNS",
        description="DNS responds from nearest global location",
        category="PERFORMANCE",
        target="dns",
        one_time_cost=400,
        recurring_cost_delta=0.02,
        duration_seconds=60,
        cooldown_seconds=90,
        effects=ActionEffects(stat_changes=StatChanges(latency=-3, reliability=0.001), reputation_delta=3),
    ),
    ActionDefinition(
        id="add_distributed_tracing",
        name="Add Distributed Tracing",
        description="See request flow across services - faster debugging",
        category="OBSERVABILITY",
        target="observability",
        one_time_cost=600,
        recurring_cost_delta=0.03,
        duration_seconds=90,
        cooldown_seconds=120,
        effects=ActionEffects(stat_changes=StatChanges(mttr_multiplier=-0.2), tech_debt=-10),
    ),
    ActionDefinition(
        id="add_log_aggregation",
        name="Add Log Aggregation",
        description="Centralized logging - find issues faster",
        category="OBSERVABILITY",
        target="observability",
        one_time_cost=500,
        recurring_cost_delta=0.025,
        duration_seconds=75,
        cooldown_seconds=90,
        effects=ActionEffects(stat_changes=StatChanges(mttr_multiplier=-0.15), tech_debt=-8),
    ),
    ActionDefinition(
        id="enable_autoscaling",
        name="Enable Auto-Scaling",
        description="Instances auto-add/remove based on load",
        category="COST_OPTIMIZATION",
        target="app",
        one_time_cost=500,
        duration_seconds=90,
        cooldown_seconds=120,
        effects=ActionEffects(
            feature_toggle=FeatureToggle("autoscaling", True), tech_debt=-5, reputation_delta=5
        ),
    ),
    ActionDefinition(
        id="compress_static_assets",
        name="Compress Static Assets",
        description="Reduce CDN bandwidth costs, faster page loads",
        category="COST_OPTIMIZATION",
        target="cdn",
        one_time_cost=100,
        recurring_cost_delta=-0.01,
        duration_seconds=30,
        cooldown_seconds=60,
        effects=ActionEffects(stat_changes=StatChanges(latency=-2)),
    ),
    ActionDefinition(
        id="add_ddos_protection",
        name="Add DDoS Protection",
        description="Layer 7 protection - prevents attacks",
        category="SECURITY",
        target="waf",
        one_time_cost=900,
        recurring_cost_delta=0.06,
        duration_seconds=120,
        cooldown_seconds=180,
        effects=ActionEffects(stat_changes=StatChanges(security=0.05, reliability=0.01), reputation_delta=10),
    ),
    ActionDefinition(
        id="add_rate_limiting",
        name="Add Rate Limiting Layer",
        description="Prevent abuse and protect from traffic spikes",
        category="SECURITY",
        target="apigw",
        one_time_cost=400,
        recurring_cost_delta=0.02,
        duration_seconds=60,
        cooldown_seconds=90,
        effects=ActionEffects(
            feature_toggle=FeatureToggle("rate_limit", 1_000),
            stat_changes=StatChanges(security=0.03),
            reputation_delta=5,
        ),
    ),
    ActionDefinition(
        id="enable_e2e_encryption",
        name="Enable End-to-End Encryption",
        description="Encrypt data in transit - compliance benefit",
        category="SECURITY",
        target="rlb",
        one_time_cost=700,
        recurring_cost_delta=0.03,
        duration_seconds=90,
        cooldown_seconds=120,
        effects=ActionEffects(stat_changes=StatChanges(security=0.08, latency=5), reputation_delta=12),
    ),
    ActionDefinition(
        id="add_priority_queue",
        name="Add Priority Queue",
        description="High/low priority lanes - critical jobs first",
        category="ARCHITECTURE",
        target=GLOBAL_TARGET,
        one_time_cost=600,
        recurring_cost_delta=0.03,
        duration_seconds=90,
        cooldown_seconds=120,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.QUEUE, "queue", (("app", "target", 0.15), ("target", "workers", 1.0))
            ),
            reputation_delta=8,
        ),
    ),
    ActionDefinition(
        id="add_dead_letter_queue",
        name="Add Dead Letter Queue",
        description="Store failed jobs for analysis - reduces data loss",
        category="RELIABILITY",
        target=GLOBAL_TARGET,
        one_time_cost=300,
        recurring_cost_delta=0.02,
        duration_seconds=60,
        cooldown_seconds=90,
        effects=ActionEffects(
            add_component=AddComponent(ComponentType.QUEUE, "queue", (("workers", "target", 0.05),)),
            tech_debt=-5,
            reputation_delta=5,
        ),
    ),
    ActionDefinition(
        id="add_message_bus",
        name="Add Message Bus",
        description="Kafka-style event streaming - event-driven architecture",
        category="ARCHITECTURE",
        target=GLOBAL_TARGET,
        one_time_cost=1_400,
        recurring_cost_delta=0.08,
        duration_seconds=180,
        cooldown_seconds=240,
        success_chance=0.95,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.QUEUE,
                "queue",
                (("app", "target", 0.25), ("target", "workers", 1.0), ("target", "db_primary", 0.2)),
            ),
            tech_debt=15,
            reputation_delta=10,
        ),
    ),
    ActionDefinition(
        id="add_search_service",
        name="Add Search Service",
        description="Elasticsearch cluster - offload complex queries from DB",
        category="ARCHITECTURE",
        target=GLOBAL_TARGET,
        one_time_cost=1_400,
        recurring_cost_delta=0.09,
        duration_seconds=200,
        cooldown_seconds=300,
        success_chance=0.93,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.DB_PRIMARY, "db_primary", (("app", "target", 0.2), ("db_primary", "target", 0.5))
            ),
            tech_debt=12,
            reputation_delta=8,
        ),
    ),
    ActionDefinition(
        id="add_reverse_proxy",
        name="Add Reverse Proxy",
        description="Nginx/HAProxy - SSL termination and routing",
        category="INFRASTRUCTURE",
        target="rlb",
        one_time_cost=300,
        recurring_cost_delta=0.02,
        duration_seconds=60,
        cooldown_seconds=90,
        effects=ActionEffects(
            add_component=AddComponent(ComponentType.RLB, "rlb", (("glb", "target", 1.0), ("target", "apigw", 1.0))),
            stat_changes=StatChanges(security=0.02),
        ),
    ),
    ActionDefinition(
        id="enable_multi_az",
        name="Enable Multi-AZ Failover",
        description="Deploy DB replica in different availability zone",
        category="RELIABILITY",
        target=GLOBAL_TARGET,
        one_time_cost=1_200,
        recurring_cost_delta=0.1,
        duration_seconds=180,
        cooldown_seconds=300,
        effects=ActionEffects(
            add_component=AddComponent(
                ComponentType.DB_REPLICA, "db_replica", (("db_primary", "target", 1.0),), redundancy_group="db_replicas"
            ),
            reputation_delta=15,
        ),
    ),
)


COST_SAVING_ACTIONS: Tuple[ActionDefinition, ...] = (
    ActionDefinition(
        id="scale_down_app",
        name="Scale Down App -1",
        description="Reduce app instances to save costs (if load permits)",
        category="COST_OPTIMIZATION",
        target="app",
        one_time_cost=0,
        recurring_cost_delta=-0.15,
        duration_seconds=30,
        cooldown_seconds=60,
        effects=ActionEffects(scale_node=ScaleNode("app", -1)),
    ),
    ActionDefinition(
        id="scale_down_workers",
        name="Scale Down Workers -1",
        description="Reduce worker instances to cut costs",
        category="COST_OPTIMIZATION",
        target="workers",
        one_time_cost=0,
        recurring_cost_delta=-0.12,
        duration_seconds=30,
        cooldown_seconds=60,
        effects=ActionEffects(scale_node=ScaleNode("workers", -1)),
    ),
    ActionDefinition(
        id="optimize_db_queries",
        name="Optimize Database Queries",
        description="Refactor slow queries to reduce DB load",
        category="OPTIMIZATION",
        target="db_primary",
        one_time_cost=500,
        duration_seconds=60,
        cooldown_seconds=300,
        effects=ActionEffects(stat_changes=StatChanges(capacity=500, latency=-5), reputation_delta=10),
    ),
    ActionDefinition(
        id="compress_assets",
        name="Compress Static Assets",
        description="Enable gzip/brotli to reduce bandwidth costs",
        category="OPTIMIZATION",
        target="cdn",
        one_time_cost=200,
        recurring_cost_delta=-0.08,
        duration_seconds=30,
        cooldown_seconds=600,
        effects=ActionEffects(stat_changes=StatChanges(latency=-10)),
    ),
    ActionDefinition(
        id="optimize_cache_ttl",
        name="Optimize Cache TTL",
        description="Tune cache expiration for a better hit rate",
        category="OPTIMIZATION",
        target="cache",
        one_time_cost=100,
        duration_seconds=20,
        cooldown_seconds=180,
        effects=ActionEffects(stat_changes=StatChanges(capacity=200), reputation_delta=5),
    ),
    ActionDefinition(
        id="consolidate_instances",
        name="Consolidate Instances",
        description="Merge underutilized instances to reduce costs",
        category="COST_OPTIMIZATION",
        target=GLOBAL_TARGET,
        one_time_cost=300,
        recurring_cost_delta=-0.25,
        duration_seconds=90,
        cooldown_seconds=300,
        success_chance=0.9,
        effects=ActionEffects(tech_debt=5),
    ),
    ActionDefinition(
        id="price_increase",
        name="Increase Pricing +10%",
        description="Raise prices if reputation is high",
        category="REVENUE",
        target=GLOBAL_TARGET,
        one_time_cost=0,
        duration_seconds=0,
        cooldown_seconds=600,
        requires=ActionRequirements(min_cash=0),
    ),
    ActionDefinition(
        id="marketing_campaign",
        name="Marketing Campaign",
        description="Boost user acquisition",
        category="REVENUE",
        target=GLOBAL_TARGET,
        one_time_cost=1_000,
        duration_seconds=120,
        cooldown_seconds=180,
        effects=ActionEffects(reputation_delta=15),
    ),
    ActionDefinition(
        id="code_cleanup",
        name="Code Cleanup Sprint",
        description="Reduce tech debt for a more reliable system",
        category="OPTIMIZATION",
        target=GLOBAL_TARGET,
        one_time_cost=400,
        duration_seconds=60,
        cooldown_seconds=180,
        effects=ActionEffects(tech_debt=-30, reputation_delta=10),
    ),
    ActionDefinition(
        id="performance_audit",
        name="Performance Audit",
        description="Identify bottlenecks and optimize critical paths",
        category="OPTIMIZATION",
        target="app",
        one_time_cost=600,
        duration_seconds=90,
        cooldown_seconds=300,
        effects=ActionEffects(stat_changes=StatChanges(latency=-20), reputation_delta=15),
    ),
)


def _index(*tables: Tuple[ActionDefinition, ...]) -> Dict[str, ActionDefinition]:
    index: Dict[str, ActionDefinition] = {}
    for table in tables:
        for definition in table:
            if definition.id in index:
                raise ValueError(f"Duplicate action id: {definition.id}")
            index[definition.id] = definition
    return index


ACTIONS: Mapping[str, ActionDefinition] = _index(BASE_ACTIONS, DYNAMIC_ACTIONS, COST_SAVING_ACTIONS)


__all__ = [
    "ACTIONS",
    "ActionDefinition",
    "ActionEffects",
    "ActionRequirements",
    "AddComponent",
    "BASE_ACTIONS",
    "COST_SAVING_ACTIONS",
    "DYNAMIC_ACTIONS",
    "FeatureToggle",
    "GLOBAL_TARGET",
    "ScaleNode",
    "SplitService",
    "StatChanges",
]
