from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from ..config import IncidentConfig
from ..state import GameState
from ..world.components import ComponentNode, OperationalMode, apply_metric_delta
from ..world.incidents import (
    GENERATED_DEFINITION_ID,
    INCIDENTS,
    ActiveIncident,
    GeneratedIncident,
    IncidentCategory,
    IncidentDefinition,
    IncidentSeverity,
    SuggestedAction,
)
from .formulas import compute_difficulty_multiplier, compute_hazard_multiplier
from .rng_service import RNGService

logger = logging.getLogger(__name__)

# error, latency multipliers and health decay per severity, scaled by the mitigation factor
_SEVERITY_FALLBACK: Mapping[IncidentSeverity, tuple[float, float, float]] = {
    IncidentSeverity.CRIT: (3.0, 2.5, 0.02),
    IncidentSeverity.WARN: (1.5, 1.3, 0.0),
    IncidentSeverity.INFO: (0.0, 1.1, 0.0),
}


@dataclass(slots=True)
class _NodeEffects:
    error: float = 1.0
    latency: float = 1.0
    utilization: float = 1.0
    health_decay: float = 0.0
    touched: bool = False

    def scale(self, *, error: float = 1.0, latency: float = 1.0, utilization: float = 1.0) -> None:
        self.error *= error
        self.latency *= latency
        self.utilization *= utilization
        self.touched = True

    def decay(self, amount: float) -> None:
        self.health_decay += amount
        self.touched = True


@dataclass(slots=True)
class EffectReport:
    escalated: List[str] = field(default_factory=list)
    outages: List[str] = field(default_factory=list)


def _dampen(multiplier: float | None, factor: float) -> float:
    if not multiplier:
        return 1.0
    return 1.0 + (multiplier - 1.0) * factor


def mitigation_factor(state: GameState, incident: ActiveIncident, cfg: IncidentConfig) -> float:
    in_flight = any(action.mitigating_incident_id == incident.id for action in state.actions_in_progress)
    bump = cfg.immediate_mitigation_on_start if in_flight else 0.0
    return 1.0 - min(1.0, incident.mitigation_level * cfg.mitigation_impact_ceiling + bump)


def _collect_generated(
    incident: ActiveIncident, node: ComponentNode, factor: float, effects: _NodeEffects, dt: float
) -> None:
    payload = incident.generated
    if payload.category == IncidentCategory.OPTIMIZATION.value:
        return
    generated = payload.effects
    if generated is not None and not generated.is_empty():
        effects.scale(
            error=_dampen(generated.error_multiplier, factor),
            latency=_dampen(generated.latency_multiplier, factor),
            utilization=_dampen(generated.utilization_multiplier, factor),
        )
        if generated.health_decay_per_sec:
            effects.decay(generated.health_decay_per_sec * factor)
        for key, delta in generated.metric_effects.items():
            if isinstance(delta, bool) or not isinstance(delta, (int, float)):
                continue
            apply_metric_delta(node.metrics, key, delta, fraction=factor * dt)
        return

    error, latency, decay = _SEVERITY_FALLBACK[incident.severity]
    effects.scale(error=1.0 + error * factor, latency=1.0 + latency * factor)
    if decay:
        effects.decay(decay * factor)


def _collect_catalog(definition: IncidentDefinition, factor: float, effects: _NodeEffects) -> None:
    spec = definition.effects
    utilization = _dampen(spec.utilization_multiplier, factor)
    if spec.capacity_multiplier:
        utilization /= max(0.05, _dampen(spec.capacity_multiplier, factor))
    effects.scale(
        error=_dampen(spec.error_multiplier, factor),
        latency=_dampen(spec.latency_multiplier, factor),
        utilization=utilization,
    )
    if spec.health_decay_per_sec:
        effects.decay(spec.health_decay_per_sec * factor)


def apply_incident_effects(state: GameState, dt: float, cfg: IncidentConfig = IncidentConfig()) -> EffectReport:
    """Fold every live incident into its target node, then advance escalation and outage timers.

    Multipliers from incidents sharing a target compound before the caps in
    ``cfg`` are applied once per node.  Incidents whose target has been
    removed are skipped.
    """

    nodes = state.architecture.nodes
    per_node: Dict[str, _NodeEffects] = {}
    escalations: List[ActiveIncident] = []
    report = EffectReport()

    for incident in list(state.active_incidents):
        node = nodes.get(incident.target_node_id)
        if node is None:
            continue
        factor = mitigation_factor(state, incident, cfg)
        effects = per_node.setdefault(node.id, _NodeEffects())

        if incident.is_generated:
            _collect_generated(incident, node, factor, effects, dt)
            continue

        definition = INCIDENTS.get(incident.definition_id)
        if definition is None:
            continue
        _collect_catalog(definition, factor, effects)

        if definition.escalation_time_seconds and incident.escalation_timer > 0:
            incident.escalation_timer -= dt
            if incident.escalation_timer <= 0 and definition.escalates_to:
                escalated = INCIDENTS.get(definition.escalates_to)
                if escalated is not None:
                    escalations.append(_new_catalog_incident(state, escalated, node.id))
                    report.escalated.append(incident.id)
                    logger.debug("incident %s escalated to %s on %s", incident.id, escalated.id, node.id)

        if definition.time_to_outage_seconds and incident.outage_timer > 0:
            incident.outage_timer -= dt
            if incident.outage_timer <= 0:
                node.health = 0.0
                node.operational_mode = OperationalMode.DOWN
                report.outages.append(node.id)
                logger.debug("incident %s forced %s down", incident.id, node.id)

    for node_id, effects in per_node.items():
        if not effects.touched:
            continue
        node = nodes[node_id]
        node.error_rate = min(1.0, node.error_rate * min(effects.error, cfg.max_error_multiplier))
        node.latency *= min(effects.latency, cfg.max_latency_multiplier)
        node.utilization *= min(effects.utilization, cfg.max_utilization_multiplier)
        if effects.health_decay:
            decay = min(effects.health_decay, cfg.max_health_decay_per_sec)
            node.health = max(0.0, node.health - decay * dt)

    for incident in escalations:
        _register(state, incident, cfg)
    return report


# --- spawning ------------------------------------------------------------


def _eligible(state: GameState, definition: IncidentDefinition, node: ComponentNode) -> bool:
    if not node.active or node.type not in definition.target_types:
        return False
    pre = definition.preconditions
    if pre.min_utilization is not None and node.utilization < pre.min_utilization:
        return False
    if pre.max_utilization is not None and node.utilization > pre.max_utilization:
        return False
    if pre.feature_disabled is not None and node.feature_on(pre.feature_disabled):
        return False
    if pre.min_tech_debt is not None and state.tech_debt < pre.min_tech_debt:
        return False
    if pre.min_error_rate is not None and node.error_rate < pre.min_error_rate:
        return False
    for incident in state.active_incidents:
        if incident.definition_id == definition.id and incident.target_node_id == node.id:
            return False
    return True


def spawn_incidents(
    state: GameState, rng: RNGService, dt: float, cfg: IncidentConfig = IncidentConfig()
) -> List[ActiveIncident]:
    if not cfg.catalog_spawns_enabled:
        return []
    difficulty = compute_difficulty_multiplier(state.elapsed, state.peak_users, cfg)
    spawned: List[ActiveIncident] = []
    for definition in INCIDENTS.values():
        if definition.base_rate_per_minute <= 0:
            continue
        candidates = [node for node in state.architecture.nodes.values() if _eligible(state, definition, node)]
        if not candidates:
            continue
        scope = {"incident": definition.id}
        target = rng.choice("spawn:target", candidates, scope=scope)
        hazard = compute_hazard_multiplier(
            target.utilization, target.error_rate, state.tech_debt, target.security_score, difficulty, cfg
        )
        probability = definition.base_rate_per_minute * hazard * (dt / 60.0)
        if rng.chance("spawn:roll", probability, scope=scope):
            incident = spawn_catalog_incident(state, definition, target.id, cfg)
            spawned.append(incident)
            logger.debug("spawned %s on %s (p=%.4f)", definition.id, target.id, probability)
    return spawned


def _new_catalog_incident(state: GameState, definition: IncidentDefinition, target_id: str) -> ActiveIncident:
    return ActiveIncident(
        id=state.next_incident_id(),
        definition_id=definition.id,
        target_node_id=target_id,
        severity=definition.severity,
        start_time=state.current_time,
        escalation_timer=definition.escalation_time_seconds or 0.0,
        outage_timer=definition.time_to_outage_seconds or 0.0,
        auto_resolve_seconds=definition.auto_resolve_seconds,
    )


def _register(state: GameState, incident: ActiveIncident, cfg: IncidentConfig) -> None:
    link_related(state, incident, cfg)
    state.active_incidents.append(incident)
    state.total_incidents += 1


def spawn_catalog_incident(
    state: GameState, definition: IncidentDefinition, target_id: str, cfg: IncidentConfig = IncidentConfig()
) -> ActiveIncident:
    incident = _new_catalog_incident(state, definition, target_id)
    _register(state, incident, cfg)
    return incident


def find_duplicate(state: GameState, payload: GeneratedIncident, cfg: IncidentConfig = IncidentConfig()) -> ActiveIncident | None:
    for incident in state.active_incidents:
        if incident.generated is None or incident.generated.name != payload.name:
            continue
        return incident
    for incident in state.active_incidents:
        if (
            incident.target_node_id == payload.target_node_id
            and incident.name == payload.name
            and state.current_time - incident.start_time < cfg.related_window_seconds
        ):
            return incident
    return None


def spawn_generated_incident(
    state: GameState, payload: GeneratedIncident, cfg: IncidentConfig = IncidentConfig()
) -> ActiveIncident | None:
    """Insert a collaborator incident unless an equivalent one is already live."""

    duplicate = find_duplicate(state, payload, cfg)
    if duplicate is not None:
        logger.debug("dropping duplicate generated incident %r (matches %s)", payload.name, duplicate.id)
        return None
    incident = ActiveIncident(
        id=state.next_generated_id(),
        definition_id=GENERATED_DEFINITION_ID,
        target_node_id=payload.target_node_id,
        severity=payload.severity,
        start_time=state.current_time,
        auto_resolve_seconds=payload.auto_resolve_seconds or cfg.generated_auto_resolve_seconds,
        generated=payload,
    )
    _register(state, incident, cfg)
    logger.debug("generated incident %s %r on %s", incident.id, payload.name, payload.target_node_id)
    return incident


def link_related(state: GameState, incident: ActiveIncident, cfg: IncidentConfig = IncidentConfig()) -> List[ActiveIncident]:
    """Link ``incident`` both ways with live incidents sharing its target and category."""

    related = [
        other
        for other in state.active_incidents
        if other.id != incident.id
        and other.target_node_id == incident.target_node_id
        and other.category is not None
        and other.category == incident.category
        and incident.start_time - other.start_time < cfg.related_window_seconds
    ]
    for other in related:
        if other.id not in incident.related_incident_ids:
            incident.related_incident_ids.append(other.id)
        if incident.id not in other.related_incident_ids:
            other.related_incident_ids.append(incident.id)
        other.root_cause_shared = True
    if related:
        incident.root_cause_shared = True
    return related


# --- mitigation and resolution -------------------------------------------


def apply_mitigation(state: GameState, incident: ActiveIncident, amount: float) -> None:
    """Bank ``amount`` on ``incident`` and on every incident sharing its root cause."""

    incident.add_mitigation(amount)
    for related_id in incident.related_incident_ids:
        related = state.find_incident(related_id)
        if related is not None:
            related.add_mitigation(amount)


def apply_improvements(node: ComponentNode | None, suggestion: SuggestedAction | None, fraction: float) -> int:
    if node is None or suggestion is None:
        return 0
    changed = 0
    for key, improvement in suggestion.metric_improvements.items():
        if apply_metric_delta(node.metrics, key, improvement, fraction=fraction):
            changed += 1
    return changed


def resolve_incidents(state: GameState) -> List[ActiveIncident]:
    resolved: List[ActiveIncident] = []
    remaining: List[ActiveIncident] = []
    for incident in state.active_incidents:
        if not incident.is_generated and incident.definition_id not in INCIDENTS:
            continue
        expired = (
            incident.auto_resolve_seconds is not None
            and state.current_time - incident.start_time > incident.auto_resolve_seconds
        )
        if incident.mitigation_level >= 1.0 or expired:
            resolved.append(incident)
            logger.debug("resolved %s (%s)", incident.id, "expired" if expired else "mitigated")
        else:
            remaining.append(incident)
    state.active_incidents = remaining
    state.resolved_incidents += len(resolved)
    return resolved


__all__ = [
    "EffectReport",
    "apply_improvements",
    "apply_incident_effects",
    "apply_mitigation",
    "find_duplicate",
    "link_related",
    "mitigation_factor",
    "resolve_incidents",
    "spawn_catalog_incident",
    "spawn_generated_incident",
    "spawn_incidents",
]
