"""Incident-generation collaborator.

The session keeps a short chat history with a language model and turns its
JSON replies into :class:`~uptime.world.incidents.GeneratedIncident` payloads.
Everything that can go wrong on the wire (HTTP errors, malformed JSON, missing
fields) is logged and reported as ``None``; the simulation simply gets one
fewer incident that cycle.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..config import LLMConfig
from ..runtime.rng_service import RNGService
from ..state import GameState
from ..world.components import bottleneck_status, compact_metric_dump, serialize_for_collaborator
from ..world.incidents import GeneratedEffects, GeneratedIncident, IncidentSeverity, SuggestedAction
from .llm import ChatClient, Message, clean_json_text

logger = logging.getLogger(__name__)

RAMP_SECONDS = 600.0
# (progress ceiling, crit share, warn share); INFO takes the remainder.
SEVERITY_RAMP = ((0.33, 0.05, 0.35), (0.83, 0.20, 0.50), (float("inf"), 0.50, 0.35))

SYSTEM_PROMPT = """You are the game master of "UPTIME 99.99", a DevOps incident simulation.

Generate specific, creative incidents grounded in the component metrics you are
given. The architecture is dynamic: components can have several instances
(app, app_2, workers, workers_2, ...) grouped by redundancyGroup, and split
services (auth, payment, notification, search) may exist. Target specific
instances, spread incidents across the infrastructure and avoid nodes listed
under "Avoid".

Effects must be impactful but fair:
- CRIT: errorMultiplier 2-3, latencyMultiplier 2-2.5, healthDecayPerSec <= 0.003
- WARN: errorMultiplier 1.3-1.8, latencyMultiplier 1.2-1.6, healthDecayPerSec <= 0.001
- INFO: latencyMultiplier 1.1-1.3 only; OPTIMIZATION incidents have no negative effects
Keep metricEffects small (hitRate -0.1..-0.3, connections 5-20, queueBacklog 50-200).

Every suggested action must carry metricImprovements; never suggest "monitor" or
"review". Use plain JSON numbers (100, -50), never a unary plus.

Respond with JSON only:
{"incidentId": "...", "incidentName": "...", "description": "...",
 "severity": "INFO|WARN|CRIT", "category": "TRAFFIC|SECURITY|DEPLOY|COMPUTE|DATABASE|QUEUE|EXTERNAL|OPTIMIZATION",
 "targetNodeId": "...", "logs": "line1\\nline2",
 "effects": {"errorMultiplier": 1.5, "latencyMultiplier": 1.3, "utilizationMultiplier": 1.2,
             "healthDecayPerSec": 0.001, "metricEffects": {"hitRate": -0.2}},
 "suggestedActions": [{"actionName": "...", "description": "...", "cost": 500,
                       "durationSeconds": 30, "effectiveness": 0.9,
                       "metricImprovements": {"hitRate": 0.15}}],
 "autoResolveSeconds": 300}"""

_SEVERITY_HINTS = {
    IncidentSeverity.CRIT: "Serious threat (pool exhausted, OOM, queue 95%)",
    IncidentSeverity.WARN: "Moderate problem (DB 80/100, hit rate 60%)",
    IncidentSeverity.INFO: "Minor issue or optimization opportunity",
}


def _severity(value: str) -> IncidentSeverity:
    try:
        return IncidentSeverity(value.upper())
    except ValueError:
        return IncidentSeverity.WARN


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EffectsModel(_Payload):
    error_multiplier: float | None = Field(default=None, alias="errorMultiplier")
    latency_multiplier: float | None = Field(default=None, alias="latencyMultiplier")
    utilization_multiplier: float | None = Field(default=None, alias="utilizationMultiplier")
    health_decay_per_sec: float | None = Field(default=None, alias="healthDecayPerSec")
    metric_effects: Dict[str, float | bool] = Field(default_factory=dict, alias="metricEffects")


class SuggestedActionModel(_Payload):
    action_name: str = Field(alias="actionName")
    description: str = ""
    cost: float = 0.0
    duration_seconds: float = Field(default=0.0, alias="durationSeconds")
    effectiveness: float = 0.0
    action_id: str | None = Field(default=None, alias="actionId")
    metric_improvements: Dict[str, float | bool] = Field(default_factory=dict, alias="metricImprovements")


class IncidentResponse(_Payload):
    incident_id: str = Field(alias="incidentId", min_length=1)
    incident_name: str = Field(alias="incidentName", min_length=1)
    target_node_id: str = Field(alias="targetNodeId", min_length=1)
    description: str = ""
    severity: str = "WARN"
    category: str = "EXTERNAL"
    logs: str | List[str] = ""
    effects: EffectsModel | None = None
    suggested_actions: List[SuggestedActionModel] = Field(default_factory=list, alias="suggestedActions")
    escalation_warning: str | None = Field(default=None, alias="escalationWarning")
    auto_resolve_seconds: float | None = Field(default=None, alias="autoResolveSeconds")

    def to_generated(self) -> GeneratedIncident:
        logs = self.logs.splitlines() if isinstance(self.logs, str) else list(self.logs)
        effects = None
        if self.effects is not None:
            effects = GeneratedEffects(**self.effects.model_dump())
        return GeneratedIncident(
            incident_id=self.incident_id,
            name=self.incident_name,
            target_node_id=self.target_node_id,
            severity=_severity(self.severity),
            category=self.category.upper(),
            description=self.description,
            logs=[line for line in logs if line.strip()],
            effects=effects,
            suggested_actions=[SuggestedAction(**action.model_dump()) for action in self.suggested_actions],
            auto_resolve_seconds=self.auto_resolve_seconds,
        )


class MetricsUpdate(_Payload):
    health_changes: Dict[str, float] = Field(default_factory=dict, alias="healthChanges")
    metrics_adjustments: Dict[str, float] = Field(default_factory=dict, alias="metricsAdjustments")
    reputation_delta: float = Field(default=0.0, alias="reputationDelta")
    next_incident_hint: str | None = Field(default=None, alias="nextIncidentHint")


def parse_incident(text: str) -> IncidentResponse | None:
    try:
        return IncidentResponse.model_validate_json(clean_json_text(text))
    except ValidationError as exc:
        logger.warning("discarding malformed incident reply: %s", exc)
        return None


def parse_metrics_update(text: str) -> MetricsUpdate | None:
    try:
        return MetricsUpdate.model_validate_json(clean_json_text(text))
    except ValidationError as exc:
        logger.warning("discarding malformed metrics update: %s", exc)
        return None


def required_severity(state: GameState, rng: RNGService) -> IncidentSeverity:
    progress = min(1.0, state.elapsed / RAMP_SECONDS)
    roll = rng.rand("gm:severity")
    for ceiling, crit, warn in SEVERITY_RAMP:
        if progress < ceiling:
            break
    if roll < crit:
        return IncidentSeverity.CRIT
    if roll < crit + warn:
        return IncidentSeverity.WARN
    return IncidentSeverity.INFO


def serialize_state(state: GameState) -> str:
    nodes = []
    for node_id, node in state.architecture.nodes.items():
        if not node.enabled:
            continue
        entry: Dict[str, object] = {
            "id": node_id,
            "type": node.type.value,
            "scaling": node.scaling.current,
            "util": round(node.utilization * 100),
            "health": round(node.health * 100),
            "err": round(node.error_rate * 1000) / 10,
        }
        entry.update(compact_metric_dump(node.metrics))
        nodes.append(entry)
    return json.dumps(
        {
            "users": int(state.users),
            "uptime": round(state.uptime * 100),
            "cash": int(state.cash),
            "rep": int(state.reputation),
            "rps": int(state.rps),
            "errorRate": round(state.global_error_rate, 3),
            "latency": round(state.global_latency_p95),
            "incidents": len(state.active_incidents),
            "nodes": nodes,
        },
        separators=(",", ":"),
    )


def build_incident_prompt(state: GameState, severity: IncidentSeverity, *, recent_window: float = 60.0) -> str:
    enabled = [node for node in state.architecture.nodes.values() if node.enabled]

    bottlenecks = []
    for node in enabled:
        status = bottleneck_status(node.metrics)
        if node.utilization > 0.8 or node.error_rate > 0.1 or node.health < 0.5 or status.is_bottleneck:
            detail = (
                f"{node.name} ({node.id}) - util:{round(node.utilization * 100)}%, "
                f"err:{round(node.error_rate * 100)}%, health:{round(node.health * 100)}%, "
                f"scaling:x{node.scaling.current}"
            )
            if status.is_bottleneck:
                detail += f", {status.severity}: {status.reason} {json.dumps(serialize_for_collaborator(node.metrics))}"
            bottlenecks.append(detail)

    groups: Dict[str, int] = {}
    for node in enabled:
        if node.redundancy_group:
            groups[node.redundancy_group] = groups.get(node.redundancy_group, 0) + 1

    recent = [
        target.node_id
        for target in state.recent_incident_targets
        if state.current_time - target.timestamp < recent_window
    ]
    node_list = ", ".join(
        f"{node.id} ({node.type.value}{', group:' + node.redundancy_group if node.redundancy_group else ''})"
        for node in enabled
    )
    active = ",".join(f"{i.target_node_id}:{i.severity.value}" for i in state.active_incidents)
    avoid = ",".join(recent)
    return (
        f"Generate incident. State: {serialize_state(state)}\n\n"
        f"Nodes: {node_list}\n"
        f"Redundancy: {', '.join(f'{g}: {n} instances' for g, n in groups.items()) or 'None'}\n"
        f"Bottlenecks: {', '.join(bottlenecks) or 'None'}\n"
        f"Active: {active or 'None'}\n"
        f"Avoid: {avoid or 'None'}\n\n"
        f'REQUIRED: severity="{severity.value}"\n'
        f"{_SEVERITY_HINTS[severity]}\n\n"
        "Rules:\n"
        '1. Be specific: "Memory Leak - 6GB Leaked", not "High Latency"\n'
        "2. Match metrics: queue>100 -> workers, conn>80 -> db, hitRate<60 -> cache, cpu>80 -> app\n"
        f"3. Target not in: {avoid or 'none'}\n"
        '4. Actions are concrete fixes, e.g. "Scale workers 2->5"\n\n'
        "Respond JSON only."
    )


class GameMasterSession:
    """One conversation with the incident-generation model.

    Owned by the caller; there is no module-level instance.
    """

    def __init__(self, chat: ChatClient, config: LLMConfig | None = None):
        self.chat = chat
        self.config = config or chat.config
        self.history: List[Message] = []
        self.started = False
        self.incidents_generated = 0

    async def start(self, state: GameState) -> None:
        """Open the conversation; transport errors propagate to the caller."""

        if self.started:
            return
        self.history = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Game session started. Initial state: {serialize_state(state)}. "
                "Begin monitoring and prepare to generate contextual incidents.",
            },
        ]
        reply = await self.chat.complete(self.history, temperature=self.config.incident_temperature)
        self.history.append({"role": "assistant", "content": reply})
        self.started = True
        logger.info("game master session started")

    async def _exchange(self, prompt: str) -> str | None:
        self.history = [self.history[0], {"role": "user", "content": prompt}]
        try:
            reply = await self.chat.complete(self.history, temperature=self.config.incident_temperature)
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as exc:
            logger.warning("game master request failed: %s", exc)
            return None
        self.history.append({"role": "assistant", "content": reply})
        return reply

    async def generate_incident(self, state: GameState, rng: RNGService) -> GeneratedIncident | None:
        if not self.started or state.paused or state.game_over:
            return None
        severity = required_severity(state, rng)
        reply = await self._exchange(build_incident_prompt(state, severity))
        if reply is None:
            return None
        parsed = parse_incident(reply)
        if parsed is None:
            return None
        incident = parsed.to_generated()
        if incident.severity is not severity:
            logger.debug("overriding reply severity %s with %s", incident.severity.value, severity.value)
            incident.severity = severity
        self.incidents_generated += 1
        return incident

    async def report_action(
        self, action_name: str, target_node: str, incident_id: str | None, state: GameState
    ) -> MetricsUpdate | None:
        if not self.started:
            return None
        mitigation = f" to mitigate incident {incident_id}" if incident_id else ""
        prompt = (
            f'User executed action: "{action_name}" targeting {target_node}{mitigation}. '
            f"Current system state: {serialize_state(state)}.\n\n"
            "Analyze the effectiveness of this action and respond with a JSON object containing:\n"
            '{"healthChanges": {"nodeId": delta}, '
            '"metricsAdjustments": {"errorRate": delta, "latency": delta, "utilization": delta}, '
            '"reputationDelta": number, "nextIncidentHint": "brief hint"}'
        )
        reply = await self._exchange(prompt)
        return parse_metrics_update(reply) if reply is not None else None

    def log_user_action(self, action_name: str, target_node: str, context: str = "") -> None:
        self.history.append({"role": "user", "content": f"[Player Action] {action_name} on {target_node}. {context}".rstrip()})
        limit = self.config.history_limit
        if len(self.history) > limit + 1:
            self.history = [self.history[0], *self.history[-limit:]]

    def summary(self) -> str:
        return (
            f"Session started: {self.started}\n"
            f"Incidents generated: {self.incidents_generated}\n"
            f"Messages: {len(self.history)}"
        )


__all__ = [
    "EffectsModel",
    "GameMasterSession",
    "IncidentResponse",
    "MetricsUpdate",
    "SuggestedActionModel",
    "build_incident_prompt",
    "parse_incident",
    "parse_metrics_update",
    "required_severity",
    "serialize_state",
]
