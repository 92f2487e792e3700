"""Tunable constants for the simulation, grouped per subsystem."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Tuple


@dataclass(slots=True)
class StartingConfig:
    users: float = 10_000.0
    cash: float = 4_000.0
    pricing: float = 25.0  # per user per day
    reputation: float = 80.0
    tech_debt: float = 0.0
    alert_fatigue: float = 0.0
    observability_level: str = "BASIC"
    start_day_of_week: int = 1
    start_hour: int = 9


@dataclass(slots=True)
class EconomyConfig:
    bankruptcy_threshold: float = -2_000.0
    reputation_grace_seconds: float = 60.0


@dataclass(slots=True)
class GrowthConfig:
    base_growth_rate: float = 1.0
    reputation_tiers: Tuple[Tuple[float, float], ...] = ((70.0, 2.5), (50.0, 2.0), (30.0, 1.5))
    poor_reputation_multiplier: float = 1.0
    high_latency_threshold: float = 3_000.0
    high_latency_multiplier: float = 0.8
    high_error_threshold: float = 0.2
    high_error_multiplier: float = 0.8
    base_churn_rate: float = 0.05
    downtime_churn_bonus: float = 0.3
    latency_churn_bonus: float = 0.05
    error_churn_bonus: float = 0.1
    downtime_uptime_threshold: float = 0.9
    users_per_rate_unit: float = 1_000.0
    marketing_multiplier: float = 1.5
    marketing_duration: float = 120.0


@dataclass(slots=True)
class ReputationConfig:
    base_recovery: float = 0.05
    recovery_min_uptime: float = 0.95
    recovery_max_error: float = 0.05
    uptime_bonuses: Tuple[Tuple[float, float], ...] = ((0.999, 0.5), (0.99, 0.3), (0.95, 0.1))
    poor_uptime_threshold: float = 0.90
    poor_uptime_penalty: float = -0.8
    bad_uptime_threshold: float = 0.95
    bad_uptime_penalty: float = -0.3
    error_penalties: Tuple[Tuple[float, float], ...] = ((0.2, -0.3), (0.1, -0.1))
    incident_severity_multiplier: float = 0.2
    severity_divisor: float = 10.0


@dataclass(slots=True)
class IncidentConfig:
    base_difficulty: float = 1.0
    max_difficulty_time_factor: float = 1.5
    difficulty_time_scale: float = 3_600.0
    difficulty_user_tiers: Tuple[Tuple[float, float], ...] = ((200_000.0, 1.2), (100_000.0, 1.1))
    max_hazard_cap: float = 3.0
    utilization_threshold: float = 0.9
    utilization_factor: float = 1.5
    error_threshold: float = 0.1
    error_factor: float = 2.0
    tech_debt_factor: float = 0.5
    security_factor: float = 0.5
    mitigation_per_action: float = 1.0
    immediate_mitigation_on_start: float = 0.3
    mitigation_impact_ceiling: float = 0.7
    max_health_decay_per_sec: float = 0.003
    max_error_multiplier: float = 3.0
    max_latency_multiplier: float = 2.5
    max_utilization_multiplier: float = 2.0
    generated_auto_resolve_seconds: float = 300.0
    related_window_seconds: float = 60.0
    recent_target_window_seconds: float = 60.0
    recent_target_history: int = 5
    improvement_fraction_on_start: float = 0.3
    catalog_spawns_enabled: bool = True


@dataclass(slots=True)
class ActionTimingConfig:
    fast: Tuple[float, float] = (10.0, 30.0)
    medium: Tuple[float, float] = (30.0, 120.0)
    slow: Tuple[float, float] = (60.0, 300.0)
    very_slow: Tuple[float, float] = (120.0, 1_800.0)

    def timing(self, speed: str) -> Tuple[float, float]:
        match speed:
            case "fast":
                return self.fast
            case "medium":
                return self.medium
            case "slow":
                return self.slow
            case "very_slow":
                return self.very_slow
        raise KeyError(speed)


@dataclass(slots=True)
class SimulationConfig:
    default_dt: float = 1.0
    uptime_window_size: int = 300
    autosave_interval: float = 30.0
    root_node_id: str = "dns"
    critical_node_ids: Tuple[str, ...] = ("dns", "app", "db_primary")
    critical_health_threshold: float = 0.3
    uptime_error_ceiling: float = 0.5
    uptime_latency_ceiling: float = 5_000.0
    excluded_global_types: Tuple[str, ...] = ("OBSERVABILITY",)
    generation_interval: float = 30.0


@dataclass(slots=True)
class ActivityConfig:
    baseline_rate: float = 0.5
    weekday_bonus: float = 0.2
    business_hours_bonus: float = 0.3
    evening_bonus: float = 0.4
    night_penalty: float = 0.3
    business_hours: Tuple[int, int] = (9, 17)
    evening_hours: Tuple[int, int] = (18, 22)
    night_hours: Tuple[int, int] = (1, 6)
    weekdays: Tuple[int, int] = (1, 5)
    min_rate: float = 0.1
    active_user_fraction: float = 0.01


@dataclass(slots=True)
class StressConfig:
    alert_fatigue_per_incident: float = 0.1
    alert_rules: int = 5
    alert_fatigue_per_rule: float = 0.05
    alert_fatigue_growth_cap: float = 2.0
    alert_fatigue_decay: float = 1.0
    burnout_per_crit_incident: float = 0.5
    burnout_decay: float = 0.5
    tech_debt_decay: float = 0.1
    ceiling: float = 100.0


@dataclass(slots=True)
class PerformanceConfig:
    latency_normal: float = 0.7
    latency_stressed: float = 1.0
    latency_overload_factor: float = 5.0
    error_utilization_threshold: float = 0.8
    error_overload_factor: float = 5.0
    down_health: float = 0.3
    down_utilization: float = 3.0
    degraded_health: float = 0.7
    degraded_utilization: float = 1.5


@dataclass(slots=True)
class MilestoneConfig:
    user_unlocks: Tuple[Tuple[str, float], ...] = (
        ("canary_deploy", 10_000.0),
        ("db_replica", 50_000.0),
        ("multi_region", 100_000.0),
    )
    streak_unlocks: Tuple[Tuple[str, float], ...] = (("advanced_observability", 1_200.0),)


def _env_api_key() -> str:
    return os.environ.get("OPENAI_API_KEY", "")


@dataclass(slots=True)
class LLMConfig:
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    api_key: str = field(default_factory=_env_api_key)
    incident_temperature: float = 1.2
    task_temperature: float = 1.0
    max_tokens: int = 1_500
    timeout: float = 30.0
    history_limit: int = 20


@dataclass(slots=True)
class GameConfig:
    starting: StartingConfig = field(default_factory=StartingConfig)
    economy: EconomyConfig = field(default_factory=EconomyConfig)
    growth: GrowthConfig = field(default_factory=GrowthConfig)
    reputation: ReputationConfig = field(default_factory=ReputationConfig)
    incidents: IncidentConfig = field(default_factory=IncidentConfig)
    actions: ActionTimingConfig = field(default_factory=ActionTimingConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    activity: ActivityConfig = field(default_factory=ActivityConfig)
    stress: StressConfig = field(default_factory=StressConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    milestones: MilestoneConfig = field(default_factory=MilestoneConfig)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "GameConfig":
        """Return a copy with dotted ``section.field`` keys replaced.

        Unknown sections or fields raise ``KeyError`` so typos in test setups
        surface immediately.
        """

        grouped: Dict[str, Dict[str, Any]] = {}
        for dotted, value in overrides.items():
            section, _, name = dotted.partition(".")
            if not name:
                raise KeyError(f"Override key must be 'section.field': {dotted!r}")
            grouped.setdefault(section, {})[name] = value

        updates: Dict[str, Any] = {}
        section_names = {f.name for f in fields(self)}
        for section, values in grouped.items():
            if section not in section_names:
                raise KeyError(f"Unknown config section: {section!r}")
            current = getattr(self, section)
            known = {f.name for f in fields(current)}
            unknown = sorted(set(values) - known)
            if unknown:
                raise KeyError(f"Unknown fields for {section}: {unknown}")
            updates[section] = replace(current, **values)
        return replace(self, **updates)


DEFAULT_CONFIG = GameConfig()


__all__ = [
    "ActionTimingConfig",
    "ActivityConfig",
    "DEFAULT_CONFIG",
    "EconomyConfig",
    "GameConfig",
    "GrowthConfig",
    "IncidentConfig",
    "LLMConfig",
    "MilestoneConfig",
    "PerformanceConfig",
    "ReputationConfig",
    "SimulationConfig",
    "StartingConfig",
    "StressConfig",
]
