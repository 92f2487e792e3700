"""Player and collaborator commands applied to a ``GameState``.

``reduce`` is the only entry point.  Rejected commands return the very object
that was passed in; accepted ones work on a deep copy.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Union

from ..config import DEFAULT_CONFIG, GameConfig
from ..state import ActionInProgress, GameState, RecentTarget, clone_state
from ..world.actions import ACTIONS, ActionDefinition, ActionEffects, ActionRequirements, StatChanges
from ..world.architecture import add_component, remove_component, remove_highest_instance, split_service
from ..world.components import ComponentNode, ComponentType, OperationalMode, sync_scaled_metrics
from ..world.incidents import INCIDENTS, ActiveIncident, GeneratedIncident
from .formulas import compute_mttr_multiplier
from .incident_engine import apply_improvements, apply_mitigation, spawn_catalog_incident, spawn_generated_incident
from .rng_service import RNGService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TogglePause:
    pass


@dataclass(frozen=True)
class SetSpeed:
    speed: float


@dataclass(frozen=True)
class ExecuteAction:
    action_id: str
    mitigating_incident_id: str | None = None


@dataclass(frozen=True)
class MitigateIncident:
    incident_id: str
    action_id: str


@dataclass(frozen=True)
class ExecuteExternalAction:
    name: str
    cost: float
    duration_seconds: float
    incident_id: str


@dataclass(frozen=True)
class SpawnExternalIncident:
    payload: GeneratedIncident


@dataclass(frozen=True)
class TrackIncidentTarget:
    node_id: str


@dataclass(frozen=True)
class LoadState:
    state: GameState


@dataclass(frozen=True)
class DebugSpawnIncident:
    definition_id: str
    target_node_id: str


Command = Union[
    TogglePause,
    SetSpeed,
    ExecuteAction,
    MitigateIncident,
    ExecuteExternalAction,
    SpawnExternalIncident,
    TrackIncidentTarget,
    LoadState,
    DebugSpawnIncident,
]


def _reject(state: GameState, command: object, reason: str) -> GameState:
    logger.debug("rejected %s: %s", type(command).__name__, reason)
    return state


def external_action_id(name: str) -> str:
    return "ai_" + re.sub(r"\s+", "_", name.strip().lower())


# --- checks ---------------------------------------------------------------


def unmet_requirement(state: GameState, requires: ActionRequirements | None) -> str | None:
    if requires is None:
        return None
    if requires.min_cash is not None and state.cash < requires.min_cash:
        return f"needs cash >= {requires.min_cash}"
    if requires.min_users is not None and state.users < requires.min_users:
        return f"needs users >= {requires.min_users}"
    if requires.node_enabled is not None:
        node = state.architecture.get(requires.node_enabled)
        if node is None or not node.enabled:
            return f"needs node {requires.node_enabled} enabled"
    if requires.feature_enabled is not None:
        if not any(node.feature_on(requires.feature_enabled) for node in state.architecture.nodes.values()):
            return f"needs feature {requires.feature_enabled}"
    if requires.observability_level is not None and state.observability_level != requires.observability_level:
        return f"needs observability {requires.observability_level}"
    if requires.unlocked_feature is not None and requires.unlocked_feature not in state.unlocked_features:
        return f"needs unlock {requires.unlocked_feature}"
    return None


def cooldown_active(state: GameState, action_id: str) -> bool:
    until = state.action_cooldowns.get(action_id)
    return until is not None and state.current_time < until


# --- effects --------------------------------------------------------------


def _recover_mode(node: ComponentNode) -> None:
    if node.operational_mode is OperationalMode.DEGRADED and node.health >= 0.7:
        node.operational_mode = OperationalMode.NORMAL
    elif node.operational_mode is OperationalMode.DOWN and node.health >= 0.5:
        node.operational_mode = OperationalMode.DEGRADED


def _apply_stat_changes(state: GameState, node: ComponentNode | None, changes: StatChanges) -> None:
    state.mttr_bonus += changes.mttr_multiplier
    if node is None:
        return
    if changes.capacity:
        node.capacity = max(0.0, node.capacity + changes.capacity)
        node.health = min(1.0, node.health + 0.1)
    if changes.reliability:
        node.reliability_score = max(0.0, min(1.0, node.reliability_score + changes.reliability))
        node.health = min(1.0, node.health + 0.05)
    if changes.security:
        node.security_score = max(0.0, min(1.0, node.security_score + changes.security))
    if changes.latency:
        node.base_latency = max(0.0, node.base_latency + changes.latency)
    if changes.error_rate:
        node.base_error = max(0.0, min(1.0, node.base_error + changes.error_rate))
    _recover_mode(node)


def _apply_special(state: GameState, definition: ActionDefinition, config: GameConfig) -> None:
    arch = state.architecture
    match definition.id:
        case "price_increase":
            state.pricing *= 1.1
        case "increase_price":
            state.pricing *= 1.2
        case "marketing_campaign":
            state.marketing_until = state.current_time + config.growth.marketing_duration
        case "upgrade_observability_metrics":
            state.observability_level = "METRICS"
        case "upgrade_observability_traces":
            state.observability_level = "TRACES"
        case "hire_sre":
            state.sre_hired = True
        case "remove_app_instance":
            remove_highest_instance(arch, ComponentType.APP, "app_cluster")
        case "remove_worker_instance":
            remove_highest_instance(arch, ComponentType.WORKERS, "worker_pool")
        case "remove_cache_emergency":
            cache = arch.get("cache")
            if cache is not None:
                cache.enabled = False


def apply_effects(
    state: GameState, definition: ActionDefinition, rng: RNGService, config: GameConfig = DEFAULT_CONFIG
) -> None:
    """Apply ``definition``'s effects to ``state`` in place."""

    effects: ActionEffects = definition.effects
    arch = state.architecture
    target = None if definition.is_global else arch.get(definition.target)

    _apply_special(state, definition, config)

    if effects.stat_changes is not None:
        _apply_stat_changes(state, target, effects.stat_changes)
    if effects.feature_toggle is not None and target is not None:
        target.features[effects.feature_toggle.feature] = effects.feature_toggle.value
    if effects.tech_debt:
        state.tech_debt = max(0.0, min(100.0, state.tech_debt + effects.tech_debt))
    if effects.reputation_delta:
        state.reputation = max(0.0, min(100.0, state.reputation + effects.reputation_delta))

    if effects.enable_node is not None:
        node = arch.get(effects.enable_node)
        if node is not None:
            node.enabled = True
            node.locked = False

    if effects.scale_node is not None:
        node = arch.get(effects.scale_node.node_id)
        if node is not None:
            before = node.scaling.current
            node.scaling.current = node.scaling.clamp(before + effects.scale_node.delta)
            delta = node.scaling.current - before
            if delta > 0:
                node.health = min(1.0, node.health + 0.15)
                _recover_mode(node)
            if delta:
                sync_scaled_metrics(node, delta)

    if effects.downtime_risk > 0 and target is not None:
        if rng.rand("action:downtime", scope={"action": definition.id}) < effects.downtime_risk:
            target.health = max(0.3, target.health - 0.5)
            target.operational_mode = OperationalMode.DEGRADED
            logger.debug("%s caused downtime on %s", definition.id, target.id)

    if effects.add_component is not None:
        spec = effects.add_component
        add_component(
            arch,
            spec.type,
            spec.base_node_id,
            redundancy_group=spec.redundancy_group,
            is_primary=spec.is_primary,
            connections=spec.connections,
        )
    if effects.remove_component is not None:
        remove_component(arch, effects.remove_component)
    if effects.split_service is not None:
        spec = effects.split_service
        split_service(arch, spec.service_name, spec.type, spec.traffic_percentage)


# --- commands -------------------------------------------------------------


def _execute_action(
    state: GameState, command: ExecuteAction, rng: RNGService, config: GameConfig
) -> GameState:
    definition = ACTIONS.get(command.action_id)
    if definition is None:
        return _reject(state, command, f"unknown action {command.action_id}")
    if definition.one_time_cost > 0 and state.cash < definition.one_time_cost:
        return _reject(state, command, f"cannot afford {definition.id}")
    missing = unmet_requirement(state, definition.requires)
    if missing is not None:
        return _reject(state, command, missing)
    if cooldown_active(state, definition.id):
        return _reject(state, command, f"{definition.id} on cooldown")

    if definition.success_chance < 1.0:
        roll = rng.rand("action:success", scope={"action": definition.id})
        if roll > definition.success_chance:
            new = clone_state(state)
            new.action_cooldowns[definition.id] = new.current_time + definition.cooldown_seconds
            logger.debug("%s failed (roll %.3f > %.2f)", definition.id, roll, definition.success_chance)
            return new

    new = clone_state(state)
    new.cash -= definition.one_time_cost
    new.action_cooldowns[definition.id] = new.current_time + definition.cooldown_seconds
    apply_effects(new, definition, rng, config)

    incident = new.find_incident(command.mitigating_incident_id)
    if definition.duration_seconds > 0:
        duration = definition.duration_seconds
        if incident is not None:
            duration *= compute_mttr_multiplier(
                new.observability_level, new.alert_fatigue, new.burnout, new.sre_hired, new.mttr_bonus
            )
            apply_mitigation(new, incident, config.incidents.immediate_mitigation_on_start)
        new.actions_in_progress.append(
            ActionInProgress(
                id=new.next_action_id(),
                action_id=definition.id,
                start_time=new.current_time,
                end_time=new.current_time + duration,
                target_node_id=None if definition.is_global else definition.target,
                mitigating_incident_id=incident.id if incident is not None else None,
            )
        )
    elif incident is not None:
        apply_mitigation(new, incident, config.incidents.mitigation_per_action)
    logger.debug("executed %s (incident=%s)", definition.id, command.mitigating_incident_id)
    return new


def can_mitigate(incident: ActiveIncident, action_id: str) -> bool:
    if action_id not in ACTIONS:
        return False
    if incident.is_generated:
        return True
    definition = INCIDENTS.get(incident.definition_id)
    return definition is not None and action_id in definition.resolution_options


def _mitigate_incident(
    state: GameState, command: MitigateIncident, rng: RNGService, config: GameConfig
) -> GameState:
    incident = state.find_incident(command.incident_id)
    if incident is None:
        return _reject(state, command, f"unknown incident {command.incident_id}")
    if not can_mitigate(incident, command.action_id):
        return _reject(state, command, f"{command.action_id} does not resolve {incident.definition_id}")
    return _execute_action(state, ExecuteAction(command.action_id, incident.id), rng, config)


def _execute_external_action(state: GameState, command: ExecuteExternalAction, config: GameConfig) -> GameState:
    if state.find_incident(command.incident_id) is None:
        return _reject(state, command, f"unknown incident {command.incident_id}")
    if state.cash < command.cost:
        return _reject(state, command, f"cannot afford {command.name!r}")

    new = clone_state(state)
    incident = new.find_incident(command.incident_id)
    action_id = external_action_id(command.name)
    apply_mitigation(new, incident, config.incidents.immediate_mitigation_on_start)
    suggestion = None
    if incident.generated is not None:
        suggestion = next(
            (s for s in incident.generated.suggested_actions if s.action_name == command.name),
            None,
        )
    apply_improvements(
        new.architecture.get(incident.target_node_id), suggestion, config.incidents.improvement_fraction_on_start
    )
    new.cash -= command.cost
    new.actions_in_progress.append(
        ActionInProgress(
            id=new.next_action_id(),
            action_id=action_id,
            start_time=new.current_time,
            end_time=new.current_time + max(0.0, command.duration_seconds),
            target_node_id=incident.target_node_id,
            mitigating_incident_id=incident.id,
        )
    )
    logger.debug("external action %s on %s", action_id, incident.id)
    return new


def reduce(
    state: GameState, command: Command, rng: RNGService, config: GameConfig = DEFAULT_CONFIG
) -> GameState:
    match command:
        case TogglePause():
            new = clone_state(state)
            new.paused = not new.paused
            return new
        case SetSpeed(speed=speed):
            if speed <= 0:
                return _reject(state, command, f"speed must be positive, got {speed}")
            new = clone_state(state)
            new.speed = speed
            return new
        case ExecuteAction():
            return _execute_action(state, command, rng, config)
        case MitigateIncident():
            return _mitigate_incident(state, command, rng, config)
        case ExecuteExternalAction():
            return _execute_external_action(state, command, config)
        case SpawnExternalIncident(payload=payload):
            new = clone_state(state)
            if spawn_generated_incident(new, payload, config.incidents) is None:
                return _reject(state, command, f"duplicate incident {payload.name!r}")
            return new
        case TrackIncidentTarget(node_id=node_id):
            new = clone_state(state)
            new.recent_incident_targets.append(RecentTarget(node_id, new.current_time))
            new.recent_incident_targets = new.recent_incident_targets[-config.incidents.recent_target_history :]
            return new
        case LoadState(state=loaded):
            return clone_state(loaded)
        case DebugSpawnIncident(definition_id=definition_id, target_node_id=target_id):
            definition = INCIDENTS.get(definition_id)
            if definition is None or state.architecture.get(target_id) is None:
                return _reject(state, command, f"cannot spawn {definition_id} on {target_id}")
            new = clone_state(state)
            spawn_catalog_incident(new, definition, target_id, config.incidents)
            return new
    return _reject(state, command, "unknown command")


__all__ = [
    "Command",
    "DebugSpawnIncident",
    "ExecuteAction",
    "ExecuteExternalAction",
    "LoadState",
    "MitigateIncident",
    "SetSpeed",
    "SpawnExternalIncident",
    "TogglePause",
    "TrackIncidentTarget",
    "apply_effects",
    "can_mitigate",
    "cooldown_active",
    "external_action_id",
    "reduce",
    "unmet_requirement",
]
