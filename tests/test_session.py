from __future__ import annotations

import asyncio

import httpx
import pytest

from uptime.config import DEFAULT_CONFIG, LLMConfig
from uptime.interfaces.game_master import GameMasterSession
from uptime.interfaces.llm import ChatClient
from uptime.runtime.reducer import SetSpeed
from uptime.runtime.rng_service import RNGService
from uptime.runtime.session import GameSession
from uptime.runtime.snapshot import SAVE_KEY, load_game
from uptime.state import create_initial_state
from uptime.world.incidents import GeneratedIncident, IncidentSeverity

QUIET = DEFAULT_CONFIG.with_overrides({"incidents.catalog_spawns_enabled": False})


def _make_payload(name: str = "Worker Pool Starved") -> GeneratedIncident:
    return GeneratedIncident(
        incident_id="gm-1",
        name=name,
        target_node_id="workers",
        severity=IncidentSeverity.WARN,
        category="QUEUE",
    )


def _make_session(**kwargs) -> GameSession:
    return GameSession(create_initial_state("session", config=QUIET), RNGService("session"), config=QUIET, **kwargs)


class _StubGameMaster:
    def __init__(self):
        self.started = False
        self.calls = 0

    async def start(self, state):
        self.started = True

    async def generate_incident(self, state, rng):
        self.calls += 1
        await asyncio.sleep(0)
        return _make_payload()


def test_arrivals_merge_before_tick_and_track_target() -> None:
    session = _make_session()
    session.arrivals.append(_make_payload())

    state = session.step(1.0)

    assert [incident.name for incident in state.active_incidents] == ["Worker Pool Starved"]
    assert state.active_incidents[0].start_time == 0.0
    assert state.recent_incident_targets[-1].node_id == "workers"
    assert session.arrivals == []


def test_duplicate_arrival_is_not_tracked() -> None:
    session = _make_session()
    session.arrivals.append(_make_payload())
    session.step(1.0)
    session.arrivals.append(_make_payload())

    state = session.step(1.0)

    assert len(state.active_incidents) == 1
    assert len(state.recent_incident_targets) == 1


def test_speed_scales_simulated_dt() -> None:
    session = _make_session()
    session.dispatch(SetSpeed(3.0))

    state = session.step(1.0)

    assert state.current_time == pytest.approx(3.0)


@pytest.mark.asyncio
async def test_run_advances_and_autosaves() -> None:
    session = _make_session()
    store: dict = {}

    state = await session.run(60.0, 1.0, store=store)

    assert state.current_time == pytest.approx(60.0)
    saved = load_game(store)
    assert saved is not None
    assert saved.current_time >= 30.0
    assert SAVE_KEY in store


@pytest.mark.asyncio
async def test_run_stops_when_paused() -> None:
    session = _make_session()
    session.state.paused = True

    state = await session.run(10.0, 1.0)

    assert state.current_time == 0.0


@pytest.mark.asyncio
async def test_game_master_incidents_arrive_in_later_steps() -> None:
    game_master = _StubGameMaster()
    session = _make_session(game_master=game_master)

    await session.start_game_master()
    state = await session.run(90.0, 1.0)
    await session.close()

    assert game_master.started
    assert state.ai_session_active
    assert game_master.calls >= 1
    generated = [incident for incident in state.active_incidents if incident.is_generated]
    assert len(generated) == 1
    assert generated[0].start_time > 30.0


@pytest.mark.asyncio
async def test_rejected_game_master_start_leaves_the_run_going() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "bad key"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        session = _make_session(game_master=GameMasterSession(ChatClient(LLMConfig(api_key="k"), client=http)))

        assert await session.start_game_master() is False
        state = await session.run(5.0, 1.0)
        await session.close()

    assert session.game_master is None
    assert not state.ai_session_active
    assert state.current_time == pytest.approx(5.0)
