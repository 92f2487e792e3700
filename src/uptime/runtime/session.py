"""Single-threaded asyncio orchestration around the pure core.

The session owns the live ``GameState``.  Each ``step`` first merges any
incidents the game master produced since the last step, then ticks, then
schedules the next generation request without awaiting it.  Nothing the
collaborator does can block or fail a tick.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Iterable, List, MutableMapping

import httpx

from ..config import DEFAULT_CONFIG, GameConfig
from ..state import GameState, clone_state
from ..world.incidents import GeneratedIncident
from .engine import tick
from .reducer import Command, SpawnExternalIncident, TrackIncidentTarget, reduce
from .rng_service import RNGService
from .snapshot import save_game

if TYPE_CHECKING:
    from ..interfaces.game_master import GameMasterSession

logger = logging.getLogger(__name__)

Autopilot = Callable[[GameState], Iterable[Command]]


class GameSession:
    def __init__(
        self,
        state: GameState,
        rng: RNGService,
        *,
        config: GameConfig = DEFAULT_CONFIG,
        game_master: "GameMasterSession | None" = None,
    ):
        self.state = state
        self.rng = rng
        self.config = config
        self.game_master = game_master
        self.arrivals: List[GeneratedIncident] = []
        self._pending: asyncio.Task | None = None
        self._last_request = state.current_time
        self._last_autosave = state.current_time

    async def start_game_master(self) -> bool:
        """Open the game master conversation; on failure the run continues without it."""

        if self.game_master is None:
            return False
        try:
            await self.game_master.start(self.state)
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as exc:
            logger.warning("game master unavailable, continuing without it: %s", exc)
            self.game_master = None
            return False
        state = clone_state(self.state)
        state.ai_session_active = True
        self.state = state
        return True

    def dispatch(self, command: Command) -> GameState:
        self.state = reduce(self.state, command, self.rng, self.config)
        return self.state

    def _merge_arrivals(self) -> None:
        arrivals, self.arrivals = self.arrivals, []
        for payload in arrivals:
            before = self.state
            self.dispatch(SpawnExternalIncident(payload))
            if self.state is not before:
                self.dispatch(TrackIncidentTarget(payload.target_node_id))

    def _on_generated(self, task: asyncio.Task) -> None:
        if self._pending is task:
            self._pending = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("incident generation failed: %s", exc)
            return
        incident = task.result()
        if incident is not None:
            self.arrivals.append(incident)

    def _maybe_request_incident(self) -> None:
        if self.game_master is None or self._pending is not None:
            return
        if self.state.current_time - self._last_request < self.config.simulation.generation_interval:
            return
        self._last_request = self.state.current_time
        task = asyncio.get_running_loop().create_task(self.game_master.generate_incident(self.state, self.rng))
        task.add_done_callback(self._on_generated)
        self._pending = task

    def step(self, dt: float | None = None) -> GameState:
        """Advance one frame of ``dt`` wall seconds, scaled by the state's speed.

        Requires a running event loop when a game master is attached.
        """

        self._merge_arrivals()
        dt = self.config.simulation.default_dt if dt is None else dt
        self.state = tick(self.state, self.rng, dt * self.state.speed, self.config)
        self._maybe_request_incident()
        return self.state

    def autosave(self, store: MutableMapping[str, str]) -> bool:
        if self.state.current_time - self._last_autosave < self.config.simulation.autosave_interval:
            return False
        save_game(store, self.state)
        self._last_autosave = self.state.current_time
        return True

    async def run(
        self,
        seconds: float,
        dt: float | None = None,
        *,
        autopilot: Autopilot | None = None,
        store: MutableMapping[str, str] | None = None,
    ) -> GameState:
        """Step until ``seconds`` of simulated time pass or the game ends."""

        dt = self.config.simulation.default_dt if dt is None else dt
        end = self.state.current_time + seconds
        while self.state.current_time < end and not self.state.game_over:
            if autopilot is not None:
                for command in autopilot(self.state):
                    self.dispatch(command)
            before = self.state.current_time
            self.step(dt)
            if store is not None:
                self.autosave(store)
            # yield so in-flight collaborator requests can finish
            await asyncio.sleep(0)
            if self.state.current_time == before:
                break
        return self.state

    async def close(self) -> None:
        task, self._pending = self._pending, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = ["Autopilot", "GameSession"]
