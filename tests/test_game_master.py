from __future__ import annotations

import json

import httpx
import pytest

from uptime.config import LLMConfig
from uptime.interfaces.game_master import (
    GameMasterSession,
    build_incident_prompt,
    parse_incident,
    parse_metrics_update,
    required_severity,
)
from uptime.interfaces.llm import ChatClient, clean_json_text
from uptime.runtime.rng_service import RNGService
from uptime.state import RecentTarget, create_initial_state
from uptime.world.incidents import IncidentSeverity

INCIDENT_REPLY = {
    "incidentId": "gm-42",
    "incidentName": "Redis Eviction Storm - 40% Keys Lost",
    "description": "maxmemory reached, LRU evicting hot keys",
    "severity": "info",
    "category": "database",
    "targetNodeId": "cache",
    "logs": "WARN evicted 12000 keys\n\nERROR hit rate 0.41",
    "effects": {"latencyMultiplier": 1.4, "metricEffects": {"hitRate": -0.2}},
    "suggestedActions": [
        {
            "actionName": "Raise maxmemory to 16GB",
            "cost": 400,
            "durationSeconds": 45,
            "effectiveness": 0.8,
            "metricImprovements": {"hitRate": 0.25},
        }
    ],
}


class _FixedRNG(RNGService):
    def __init__(self, value: float):
        super().__init__(seed="fixed")
        self.value = value

    def rand(self, stream_key, *, scope=None):
        return self.value


def _completion(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def test_clean_json_text_strips_fences_and_unary_plus() -> None:
    raw = '```json\n{"cost": +500, "delta": -2}\n```'
    assert clean_json_text(raw) == '{"cost": 500, "delta": -2}'


def test_parse_incident_maps_camel_case_payload() -> None:
    parsed = parse_incident(json.dumps(INCIDENT_REPLY))

    assert parsed is not None
    incident = parsed.to_generated()
    assert incident.name == "Redis Eviction Storm - 40% Keys Lost"
    assert incident.severity is IncidentSeverity.INFO
    assert incident.category == "DATABASE"
    assert incident.logs == ["WARN evicted 12000 keys", "ERROR hit rate 0.41"]
    assert incident.effects.latency_multiplier == 1.4
    assert incident.effects.metric_effects == {"hitRate": -0.2}
    assert incident.suggested_actions[0].metric_improvements == {"hitRate": 0.25}
    assert incident.suggested_actions[0].duration_seconds == 45


def test_unknown_severity_falls_back_to_warn() -> None:
    parsed = parse_incident(json.dumps({**INCIDENT_REPLY, "severity": "apocalyptic"}))
    assert parsed.to_generated().severity is IncidentSeverity.WARN


def test_malformed_incident_is_discarded() -> None:
    assert parse_incident("not json at all") is None
    assert parse_incident(json.dumps({k: v for k, v in INCIDENT_REPLY.items() if k != "targetNodeId"})) is None
    assert parse_incident(json.dumps({**INCIDENT_REPLY, "incidentName": ""})) is None


def test_parse_metrics_update() -> None:
    update = parse_metrics_update('{"healthChanges": {"app": 0.1}, "reputationDelta": +2, "nextIncidentHint": "db"}')

    assert update is not None
    assert update.health_changes == {"app": 0.1}
    assert update.reputation_delta == 2
    assert update.next_incident_hint == "db"


def test_required_severity_ramps_with_elapsed_time() -> None:
    early = create_initial_state("ramp")
    late = create_initial_state("ramp")
    late.current_time = 900.0

    assert required_severity(early, _FixedRNG(0.0)) is IncidentSeverity.CRIT
    assert required_severity(early, _FixedRNG(0.3)) is IncidentSeverity.WARN
    assert required_severity(early, _FixedRNG(0.99)) is IncidentSeverity.INFO
    assert required_severity(late, _FixedRNG(0.3)) is IncidentSeverity.CRIT


def test_prompt_lists_required_severity_and_avoided_targets() -> None:
    state = create_initial_state("prompt")
    state.current_time = 30.0
    state.recent_incident_targets.append(RecentTarget("cache", 10.0))
    state.architecture.nodes["workers"].metrics.queue_backlog = 500

    prompt = build_incident_prompt(state, IncidentSeverity.CRIT)

    assert 'REQUIRED: severity="CRIT"' in prompt
    assert "Avoid: cache" in prompt
    assert "High queue backlog" in prompt
    assert "servicemesh" not in prompt.split("Nodes:")[1].split("\n")[0]


@pytest.mark.asyncio
async def test_session_generates_incident_with_forced_severity() -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if len(requests) == 1:
            return _completion("Monitoring started.")
        return _completion(json.dumps(INCIDENT_REPLY))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        chat = ChatClient(LLMConfig(api_key="test-key"), client=http)
        session = GameMasterSession(chat)
        state = create_initial_state("gm")

        await session.start(state)
        incident = await session.generate_incident(state, _FixedRNG(0.0))

    assert session.started
    assert incident is not None
    assert incident.severity is IncidentSeverity.CRIT
    assert session.incidents_generated == 1
    assert requests[0].headers["Authorization"] == "Bearer test-key"
    assert requests[0].url.path.endswith("/chat/completions")
    body = json.loads(requests[1].content)
    assert body["temperature"] == pytest.approx(1.2)
    assert [m["role"] for m in body["messages"]] == ["system", "user"]


@pytest.mark.asyncio
async def test_http_failure_yields_no_incident() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return _completion("ok")
        return httpx.Response(503, json={"error": "overloaded"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        session = GameMasterSession(ChatClient(LLMConfig(api_key="k"), client=http))
        state = create_initial_state("gm")
        await session.start(state)

        assert await session.generate_incident(state, RNGService("gm")) is None
        assert session.incidents_generated == 0


@pytest.mark.asyncio
async def test_not_started_or_paused_session_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        session = GameMasterSession(ChatClient(LLMConfig(api_key="k"), client=http))
        state = create_initial_state("gm")

        assert await session.generate_incident(state, RNGService("gm")) is None
        session.started = True
        state.paused = True
        assert await session.generate_incident(state, RNGService("gm")) is None


@pytest.mark.asyncio
async def test_start_propagates_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "bad key"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        session = GameMasterSession(ChatClient(LLMConfig(api_key="k"), client=http))
        with pytest.raises(httpx.HTTPStatusError):
            await session.start(create_initial_state("gm"))
    assert not session.started


@pytest.mark.asyncio
async def test_report_action_parses_metrics_update() -> None:
    replies = iter(["ready", '{"healthChanges": {"cache": 0.2}, "reputationDelta": 1}'])

    def handler(request: httpx.Request) -> httpx.Response:
        return _completion(next(replies))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        session = GameMasterSession(ChatClient(LLMConfig(api_key="k"), client=http))
        state = create_initial_state("gm")
        await session.start(state)
        update = await session.report_action("Flush Cache", "cache", "inc-1", state)

    assert update is not None
    assert update.health_changes == {"cache": 0.2}


def test_history_is_trimmed_behind_system_prompt() -> None:
    chat = ChatClient(LLMConfig(api_key="k", history_limit=3), client=httpx.AsyncClient())
    session = GameMasterSession(chat)
    session.history = [{"role": "system", "content": "sys"}]

    for i in range(10):
        session.log_user_action(f"action {i}", "app")

    assert len(session.history) == 4
    assert session.history[0]["role"] == "system"
    assert session.history[-1]["content"] == "[Player Action] action 9 on app."
    assert "Incidents generated: 0" in session.summary()
