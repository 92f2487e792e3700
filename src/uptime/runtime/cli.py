from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import List, Sequence

from ..config import DEFAULT_CONFIG, LLMConfig
from ..state import GameState, create_initial_state, summarize_run
from ..world.actions import ACTIONS
from ..world.incidents import INCIDENTS
from .reducer import Command, ExecuteAction, MitigateIncident, cooldown_active, unmet_requirement
from .rng_service import RNGService
from .session import GameSession
from .snapshot import save_snapshot

logger = logging.getLogger(__name__)

SCALE_UTILIZATION = 0.8


def _affordable(state: GameState, action_id: str) -> bool:
    definition = ACTIONS.get(action_id)
    if definition is None or definition.one_time_cost > state.cash:
        return False
    return not cooldown_active(state, action_id) and unmet_requirement(state, definition.requires) is None


def autopilot(state: GameState) -> List[Command]:
    """Naive operator: mitigate the oldest unattended incident, scale the hottest tier."""

    commands: List[Command] = []
    attended = {action.mitigating_incident_id for action in state.actions_in_progress}
    for incident in sorted(state.active_incidents, key=lambda i: i.start_time):
        if incident.id in attended or incident.is_generated:
            continue
        definition = INCIDENTS.get(incident.definition_id)
        options = definition.resolution_options if definition else ()
        choice = next((option for option in options if _affordable(state, option)), None)
        if choice is not None:
            commands.append(MitigateIncident(incident.id, choice))
            break

    scalers = {
        definition.effects.scale_node.node_id: definition.id
        for definition in ACTIONS.values()
        if definition.effects.scale_node is not None and definition.effects.scale_node.delta > 0
    }
    candidates = [
        node
        for node in state.architecture.nodes.values()
        if node.active
        and node.id in scalers
        and node.scaling.current < node.scaling.maximum
        and node.utilization > SCALE_UTILIZATION
    ]
    if candidates:
        hottest = max(candidates, key=lambda node: node.utilization)
        if _affordable(state, scalers[hottest.id]):
            commands.append(ExecuteAction(scalers[hottest.id]))
    return commands


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a headless uptime simulation")
    parser.add_argument("--seed", default="uptime", help="Seed for the deterministic RNG")
    parser.add_argument("--seconds", type=float, default=600.0, help="Simulated seconds to run")
    parser.add_argument("--dt", type=float, default=DEFAULT_CONFIG.simulation.default_dt, help="Seconds per tick")
    parser.add_argument("--autopilot", action="store_true", help="Let a simple policy react to incidents")
    parser.add_argument("--save", type=Path, help="Write a gzip snapshot of the final state")
    parser.add_argument(
        "--game-master",
        action="store_true",
        help="Generate extra incidents through the chat-completions API (needs OPENAI_API_KEY)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> GameState:
    rng = RNGService(args.seed)
    state = create_initial_state(args.seed)
    game_master = None
    chat = None
    if args.game_master:
        from ..interfaces.game_master import GameMasterSession
        from ..interfaces.llm import ChatClient

        chat = ChatClient(LLMConfig())
        game_master = GameMasterSession(chat)

    session = GameSession(state, rng, game_master=game_master)
    try:
        await session.start_game_master()
        await session.run(args.seconds, args.dt, autopilot=autopilot if args.autopilot else None)
    finally:
        await session.close()
        if chat is not None:
            await chat.aclose()

    if args.save:
        digest = save_snapshot(session.state, args.save, rng=rng)
        logger.info("saved snapshot to %s (%s)", args.save, digest[:12])
    return session.state


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    state = asyncio.run(_run(args))
    print(json.dumps(summarize_run(state).to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
