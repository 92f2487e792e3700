"""Stateless metric formulas.

Every function takes its tuning section explicitly and reads nothing else, so
the engine stays a pure function of state, seed and the ``dt`` sequence.
"""

from __future__ import annotations

from ..config import (
    ActivityConfig,
    GrowthConfig,
    IncidentConfig,
    PerformanceConfig,
    ReputationConfig,
    StressConfig,
)
from ..world.components import ComponentNode, OperationalMode

SECONDS_PER_DAY = 86_400.0


def activity_rate(hour_of_day: int, day_of_week: int, cfg: ActivityConfig = ActivityConfig()) -> float:
    rate = cfg.baseline_rate
    if cfg.weekdays[0] <= day_of_week <= cfg.weekdays[1]:
        rate += cfg.weekday_bonus
    if cfg.business_hours[0] <= hour_of_day <= cfg.business_hours[1]:
        rate += cfg.business_hours_bonus
    if cfg.evening_hours[0] <= hour_of_day <= cfg.evening_hours[1]:
        rate += cfg.evening_bonus
    if cfg.night_hours[0] <= hour_of_day <= cfg.night_hours[1]:
        rate -= cfg.night_penalty
    return max(cfg.min_rate, rate)


def ingress_rps(users: float, hour_of_day: int, day_of_week: int, cfg: ActivityConfig = ActivityConfig()) -> float:
    return max(0.0, users * activity_rate(hour_of_day, day_of_week, cfg) * cfg.active_user_fraction)


def compute_latency(base_latency: float, utilization: float, cfg: PerformanceConfig = PerformanceConfig()) -> float:
    if utilization <= cfg.latency_normal:
        return base_latency
    if utilization <= cfg.latency_stressed:
        return base_latency * (1 + (utilization - cfg.latency_normal) * 3)
    overload = utilization - cfg.latency_stressed
    return base_latency * (1.9 + (overload * cfg.latency_overload_factor) ** 1.5)


def compute_error_rate(
    base_error: float, utilization: float, health: float, cfg: PerformanceConfig = PerformanceConfig()
) -> float:
    error = base_error
    if utilization > cfg.error_utilization_threshold:
        error += ((utilization - cfg.error_utilization_threshold) * cfg.error_overload_factor) ** 2 * 0.1
    if health < 1.0:
        error += (1 - health) * 0.3
    return max(0.0, min(1.0, error))


def operational_mode(health: float, utilization: float, cfg: PerformanceConfig = PerformanceConfig()) -> OperationalMode:
    if health < cfg.down_health or utilization > cfg.down_utilization:
        return OperationalMode.DOWN
    if health < cfg.degraded_health or utilization > cfg.degraded_utilization:
        return OperationalMode.DEGRADED
    return OperationalMode.NORMAL


def node_capacity(node: ComponentNode) -> float:
    return node.capacity * node.scaling.current


def compute_revenue(users: float, pricing: float, reputation: float, uptime: float) -> float:
    return users * pricing / SECONDS_PER_DAY * (reputation / 100.0) * max(0.3, uptime)


def compute_growth_rate(
    reputation: float,
    latency: float,
    error_rate: float,
    marketing_multiplier: float = 1.0,
    cfg: GrowthConfig = GrowthConfig(),
) -> float:
    rate = cfg.base_growth_rate
    for threshold, multiplier in cfg.reputation_tiers:
        if reputation > threshold:
            rate *= multiplier
            break
    else:
        rate *= cfg.poor_reputation_multiplier
    if latency > cfg.high_latency_threshold:
        rate *= cfg.high_latency_multiplier
    if error_rate > cfg.high_error_threshold:
        rate *= cfg.high_error_multiplier
    return rate * marketing_multiplier


def compute_churn_rate(latency: float, error_rate: float, down: bool, cfg: GrowthConfig = GrowthConfig()) -> float:
    churn = cfg.base_churn_rate
    if down:
        churn += cfg.downtime_churn_bonus
    if latency > cfg.high_latency_threshold:
        churn += cfg.latency_churn_bonus
    if error_rate > cfg.high_error_threshold:
        churn += cfg.error_churn_bonus
    return churn


def compute_reputation_delta(
    uptime: float, error_rate: float, incident_severity: float, cfg: ReputationConfig = ReputationConfig()
) -> float:
    """Per-second reputation drift.

    ``incident_severity`` is the summed severity weight already divided by
    ``cfg.severity_divisor``.
    """

    delta = 0.0
    if uptime > cfg.recovery_min_uptime and error_rate < cfg.recovery_max_error:
        delta += cfg.base_recovery

    for threshold, bonus in cfg.uptime_bonuses:
        if uptime > threshold:
            delta += bonus
            break
    else:
        if uptime < cfg.poor_uptime_threshold:
            delta += cfg.poor_uptime_penalty
        elif uptime < cfg.bad_uptime_threshold:
            delta += cfg.bad_uptime_penalty

    for threshold, penalty in cfg.error_penalties:
        if error_rate > threshold:
            delta += penalty
            break

    return delta - incident_severity * cfg.incident_severity_multiplier


def compute_alert_fatigue_growth(active_incidents: int, cfg: StressConfig = StressConfig()) -> float:
    growth = active_incidents * cfg.alert_fatigue_per_incident + cfg.alert_rules * cfg.alert_fatigue_per_rule
    return min(cfg.alert_fatigue_growth_cap, growth)


def compute_mttr_multiplier(
    observability_level: str, alert_fatigue: float, burnout: float, sre_hired: bool, bonus: float = 0.0
) -> float:
    """Time-to-repair scale applied to mitigating actions; below 1 is faster.

    ``bonus`` is the summed (negative) ``mttr_multiplier`` stat change from
    tooling actions and is floored so repairs never become instant.
    """

    multiplier = 1.0
    if observability_level == "METRICS":
        multiplier *= 0.7
    elif observability_level == "TRACES":
        multiplier *= 0.5
    multiplier *= 1 + (alert_fatigue / 100.0) * 0.5
    multiplier *= 1 + (burnout / 100.0) * 0.8
    if sre_hired:
        multiplier *= 0.6
    return multiplier * max(0.2, 1.0 + bonus)


def compute_hazard_multiplier(
    utilization: float,
    error_rate: float,
    tech_debt: float,
    security_score: float,
    difficulty: float,
    cfg: IncidentConfig = IncidentConfig(),
) -> float:
    multiplier = difficulty
    if utilization > cfg.utilization_threshold:
        multiplier *= 1 + (utilization - cfg.utilization_threshold) * cfg.utilization_factor
    if error_rate > cfg.error_threshold:
        multiplier *= 1 + error_rate * cfg.error_factor
    multiplier *= 1 + (tech_debt / 100.0) * cfg.tech_debt_factor
    multiplier *= 1.5 - security_score * cfg.security_factor
    return max(0.0, min(multiplier, cfg.max_hazard_cap))


def compute_difficulty_multiplier(elapsed_seconds: float, peak_users: float, cfg: IncidentConfig = IncidentConfig()) -> float:
    difficulty = cfg.base_difficulty
    difficulty *= min(cfg.max_difficulty_time_factor, 1 + elapsed_seconds / cfg.difficulty_time_scale)
    for users, multiplier in cfg.difficulty_user_tiers:
        if peak_users > users:
            difficulty *= multiplier
            break
    return difficulty


__all__ = [
    "activity_rate",
    "compute_alert_fatigue_growth",
    "compute_churn_rate",
    "compute_difficulty_multiplier",
    "compute_error_rate",
    "compute_growth_rate",
    "compute_hazard_multiplier",
    "compute_latency",
    "compute_mttr_multiplier",
    "compute_reputation_delta",
    "compute_revenue",
    "ingress_rps",
    "node_capacity",
    "operational_mode",
]
