"""The per-tick state transition.

``tick`` never mutates its input: it deep-copies the state, runs the twelve
steps in a fixed order on the copy and returns it.  Paused or finished games
are returned unchanged (the same object).
"""

from __future__ import annotations

import logging

from ..config import DEFAULT_CONFIG, GameConfig
from ..state import GameState, clone_state
from ..world.components import ComponentType, OperationalMode
from ..world.incidents import severity_score
from . import formulas
from .incident_engine import (
    apply_improvements,
    apply_incident_effects,
    apply_mitigation,
    resolve_incidents,
    spawn_incidents,
)
from .propagation import propagate_load
from .rng_service import RNGService

logger = logging.getLogger(__name__)

BANKRUPTCY_REASON = "Bankruptcy - Cash depleted"
REPUTATION_REASON = "Reputation destroyed - users lost trust"
COLLAPSE_REASON = "Multiple critical outages - system collapse"


def _advance_clock(state: GameState, dt: float, config: GameConfig) -> None:
    state.current_time += dt
    hours = config.starting.start_hour + state.elapsed / 3_600.0
    state.hour_of_day = int(hours % 24)
    state.day_of_week = int((config.starting.start_day_of_week + hours // 24) % 7)


def _update_global_metrics(state: GameState, config: GameConfig) -> None:
    excluded = {ComponentType(name) for name in config.simulation.excluded_global_types}
    counted = [node for node in state.architecture.enabled_nodes() if node.type not in excluded]
    if not counted:
        state.global_error_rate = 0.0
        state.global_latency_p95 = 0.0
        return
    state.global_error_rate = sum(node.error_rate for node in counted) / len(counted)
    state.global_latency_p95 = sum(node.latency for node in counted) / len(counted)


def system_is_up(state: GameState, config: GameConfig = DEFAULT_CONFIG) -> bool:
    sim = config.simulation
    for node_id in sim.critical_node_ids:
        node = state.architecture.get(node_id)
        if node is None or not node.enabled or node.operational_mode is OperationalMode.DOWN:
            return False
        if node.health < sim.critical_health_threshold:
            return False
    return state.global_error_rate < sim.uptime_error_ceiling and state.global_latency_p95 < sim.uptime_latency_ceiling


def _update_uptime(state: GameState, dt: float, config: GameConfig) -> None:
    up = system_is_up(state, config)
    window = state.uptime_window
    window.append(1.0 if up else 0.0)
    overflow = len(window) - config.simulation.uptime_window_size
    if overflow > 0:
        del window[:overflow]
    state.uptime = sum(window) / len(window)
    state.best_uptime = max(state.best_uptime, state.uptime)
    if up:
        state.uptime_streak += dt
        state.longest_streak = max(state.longest_streak, state.uptime_streak)
    else:
        state.uptime_streak = 0.0


def _update_business(state: GameState, dt: float, config: GameConfig) -> None:
    state.costs = sum(node.cost_per_sec * node.scaling.current for node in state.architecture.enabled_nodes())
    state.revenue = formulas.compute_revenue(state.users, state.pricing, state.reputation, state.uptime)
    cash_delta = (state.revenue - state.costs) * dt
    state.cash += cash_delta
    state.total_profit += cash_delta

    growth_cfg = config.growth
    marketing = growth_cfg.marketing_multiplier if state.current_time < state.marketing_until else 1.0
    growth = formulas.compute_growth_rate(
        state.reputation, state.global_latency_p95, state.global_error_rate, marketing, growth_cfg
    )
    churn = formulas.compute_churn_rate(
        state.global_latency_p95,
        state.global_error_rate,
        state.uptime < growth_cfg.downtime_uptime_threshold,
        growth_cfg,
    )
    state.users = max(0.0, state.users + (growth - churn) * state.users * dt / growth_cfg.users_per_rate_unit)
    state.peak_users = max(state.peak_users, state.users)

    rep_cfg = config.reputation
    severity = severity_score(state.active_incidents) / rep_cfg.severity_divisor
    delta = formulas.compute_reputation_delta(state.uptime, state.global_error_rate, severity, rep_cfg)
    state.reputation = max(0.0, min(100.0, state.reputation + delta * dt))


def _unlock_milestones(state: GameState, config: GameConfig) -> None:
    milestones = config.milestones
    for feature, users in milestones.user_unlocks:
        if feature not in state.unlocked_features and state.peak_users >= users:
            state.unlocked_features.add(feature)
            logger.debug("unlocked %s at %.0f users", feature, state.peak_users)
    for feature, streak in milestones.streak_unlocks:
        if feature not in state.unlocked_features and state.longest_streak >= streak:
            state.unlocked_features.add(feature)
            logger.debug("unlocked %s after %.0fs streak", feature, state.longest_streak)


def _prune_recent_targets(state: GameState, config: GameConfig) -> None:
    window = config.incidents.recent_target_window_seconds
    state.recent_incident_targets = [
        target for target in state.recent_incident_targets if state.current_time - target.timestamp < window
    ]


def advance_actions(state: GameState, config: GameConfig = DEFAULT_CONFIG) -> None:
    """Refresh progress for display and finalize actions whose end time has passed.

    Finalizing against an incident or node that no longer exists is a no-op.
    """

    per_action = config.incidents.mitigation_per_action
    now = state.current_time
    for action in state.actions_in_progress:
        duration = action.duration
        action.progress = 1.0 if duration <= 0 else min(1.0, max(0.0, now - action.start_time) / duration)

    for incident in state.active_incidents:
        running = next(
            (
                action
                for action in state.actions_in_progress
                if action.mitigating_incident_id == incident.id and now < action.end_time
            ),
            None,
        )
        if running is None:
            incident.mitigation_progress = incident.mitigation_level
        else:
            incident.mitigation_progress = min(1.0, incident.mitigation_level + running.progress * per_action)

    remaining = []
    for action in state.actions_in_progress:
        if now < action.end_time:
            remaining.append(action)
            continue
        incident = state.find_incident(action.mitigating_incident_id)
        if incident is not None:
            apply_mitigation(state, incident, per_action)
            incident.mitigation_progress = incident.mitigation_level
            if action.action_id.startswith("ai_"):
                node = state.architecture.get(incident.target_node_id)
                remainder = 1.0 - config.incidents.improvement_fraction_on_start
                apply_improvements(node, incident.find_suggested_action(action.action_id), remainder)
        logger.debug("action %s (%s) completed", action.id, action.action_id)
    state.actions_in_progress = remaining


def check_game_over(state: GameState, dt: float, config: GameConfig = DEFAULT_CONFIG) -> None:
    economy = config.economy
    reason = None
    if state.cash < economy.bankruptcy_threshold:
        reason = BANKRUPTCY_REASON

    if state.reputation <= 0:
        state.reputation_zero_timer += dt
        if state.reputation_zero_timer >= economy.reputation_grace_seconds:
            reason = REPUTATION_REASON
    else:
        state.reputation_zero_timer = 0.0

    if state.uptime < 0.5 and state.uptime_streak == 0 and state.crit_count() >= 3:
        reason = COLLAPSE_REASON

    if reason is not None and not state.game_over:
        state.game_over = True
        state.game_over_reason = reason
        logger.info("game over at t=%.0f: %s", state.elapsed, reason)


def _update_stress(state: GameState, dt: float, config: GameConfig) -> None:
    stress = config.stress
    ceiling = stress.ceiling
    fatigue = formulas.compute_alert_fatigue_growth(len(state.active_incidents), stress)
    state.alert_fatigue = max(0.0, min(ceiling, state.alert_fatigue + (fatigue - stress.alert_fatigue_decay) * dt))
    burnout = state.crit_count() * stress.burnout_per_crit_incident
    state.burnout = max(0.0, min(ceiling, state.burnout + (burnout - stress.burnout_decay) * dt))
    state.tech_debt = max(0.0, min(ceiling, state.tech_debt - stress.tech_debt_decay * dt))


def tick(state: GameState, rng: RNGService, dt: float, config: GameConfig = DEFAULT_CONFIG) -> GameState:
    if state.paused or state.game_over:
        return state

    new = clone_state(state)
    _advance_clock(new, dt, config)
    new.rps = formulas.ingress_rps(new.users, new.hour_of_day, new.day_of_week, config.activity)
    propagate_load(new.architecture, new.rps, root_id=config.simulation.root_node_id, cfg=config.performance)
    report = apply_incident_effects(new, dt, config.incidents)
    for incident_id in report.escalated:
        logger.info("incident %s escalated at t=%.0f", incident_id, new.elapsed)
    for node_id in report.outages:
        logger.warning("%s went down at t=%.0f", node_id, new.elapsed)
    _update_global_metrics(new, config)
    _update_uptime(new, dt, config)
    _update_business(new, dt, config)
    _unlock_milestones(new, config)
    _prune_recent_targets(new, config)
    spawn_incidents(new, rng, dt, config.incidents)
    resolve_incidents(new)
    advance_actions(new, config)
    check_game_over(new, dt, config)
    _update_stress(new, dt, config)
    return new


__all__ = [
    "BANKRUPTCY_REASON",
    "COLLAPSE_REASON",
    "REPUTATION_REASON",
    "advance_actions",
    "check_game_over",
    "system_is_up",
    "tick",
]
