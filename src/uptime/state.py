"""The aggregate game state threaded through the engine and the reducer."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Set

from .config import DEFAULT_CONFIG, GameConfig
from .world.architecture import Architecture, create_initial_architecture
from .world.incidents import ActiveIncident, IncidentSeverity


@dataclass(slots=True)
class ActionInProgress:
    id: str
    action_id: str
    start_time: float
    end_time: float
    target_node_id: str | None = None
    mitigating_incident_id: str | None = None
    progress: float = 0.0

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(slots=True)
class RecentTarget:
    node_id: str
    timestamp: float


@dataclass(slots=True)
class GameState:
    seed: str
    architecture: Architecture
    start_time: float = 0.0
    current_time: float = 0.0
    day_of_week: int = 1
    hour_of_day: int = 9
    paused: bool = False
    speed: float = 1.0
    ai_session_active: bool = False
    recent_incident_targets: List[RecentTarget] = field(default_factory=list)

    users: float = 0.0
    peak_users: float = 0.0
    rps: float = 0.0
    cash: float = 0.0
    revenue: float = 0.0
    costs: float = 0.0
    pricing: float = 0.0
    reputation: float = 0.0
    marketing_until: float = 0.0

    global_error_rate: float = 0.0
    global_latency_p95: float = 0.0
    uptime: float = 1.0
    best_uptime: float = 1.0
    uptime_window: List[float] = field(default_factory=list)
    uptime_streak: float = 0.0
    longest_streak: float = 0.0

    tech_debt: float = 0.0
    alert_fatigue: float = 0.0
    burnout: float = 0.0
    observability_level: str = "BASIC"
    sre_hired: bool = False
    mttr_bonus: float = 0.0

    active_incidents: List[ActiveIncident] = field(default_factory=list)
    resolved_incidents: int = 0
    total_incidents: int = 0
    actions_in_progress: List[ActionInProgress] = field(default_factory=list)
    action_cooldowns: Dict[str, float] = field(default_factory=dict)
    unlocked_features: Set[str] = field(default_factory=set)

    game_over: bool = False
    game_over_reason: str | None = None
    reputation_zero_timer: float = 0.0
    total_profit: float = 0.0

    incident_seq: int = 0
    generated_seq: int = 0
    action_seq: int = 0

    @property
    def elapsed(self) -> float:
        return self.current_time - self.start_time

    def find_incident(self, incident_id: str | None) -> ActiveIncident | None:
        if incident_id is None:
            return None
        for incident in self.active_incidents:
            if incident.id == incident_id:
                return incident
        return None

    def crit_count(self) -> int:
        return sum(1 for incident in self.active_incidents if incident.severity is IncidentSeverity.CRIT)

    def next_incident_id(self) -> str:
        self.incident_seq += 1
        return f"inc-{self.incident_seq}"

    def next_generated_id(self) -> str:
        self.generated_seq += 1
        return f"gen-{self.generated_seq}"

    def next_action_id(self) -> str:
        self.action_seq += 1
        return f"act-{self.action_seq}"


def create_initial_state(seed: str, *, start_time: float = 0.0, config: GameConfig = DEFAULT_CONFIG) -> GameState:
    starting = config.starting
    return GameState(
        seed=seed,
        architecture=create_initial_architecture(),
        start_time=start_time,
        current_time=start_time,
        day_of_week=starting.start_day_of_week,
        hour_of_day=starting.start_hour,
        users=starting.users,
        peak_users=starting.users,
        cash=starting.cash,
        pricing=starting.pricing,
        reputation=starting.reputation,
        uptime_window=[1.0] * config.simulation.uptime_window_size,
        tech_debt=starting.tech_debt,
        alert_fatigue=starting.alert_fatigue,
        observability_level=starting.observability_level,
    )


def clone_state(state: GameState) -> GameState:
    """Deep copy: the clone shares no mutable sub-object with ``state``."""

    return copy.deepcopy(state)


@dataclass(slots=True)
class RunSummary:
    seed: str
    duration: float
    peak_users: float
    best_uptime: float
    longest_streak: float
    incidents_resolved: int
    total_profit: float
    final_cash: float
    final_reputation: float
    game_over_reason: str | None = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "seed": self.seed,
            "duration": round(self.duration, 3),
            "peak_users": round(self.peak_users, 3),
            "best_uptime": round(self.best_uptime, 6),
            "longest_streak": round(self.longest_streak, 3),
            "incidents_resolved": self.incidents_resolved,
            "total_profit": round(self.total_profit, 2),
            "final_cash": round(self.final_cash, 2),
            "final_reputation": round(self.final_reputation, 3),
            "game_over_reason": self.game_over_reason,
        }


def summarize_run(state: GameState) -> RunSummary:
    return RunSummary(
        seed=state.seed,
        duration=state.elapsed,
        peak_users=state.peak_users,
        best_uptime=state.best_uptime,
        longest_streak=state.longest_streak,
        incidents_resolved=state.resolved_incidents,
        total_profit=state.total_profit,
        final_cash=state.cash,
        final_reputation=state.reputation,
        game_over_reason=state.game_over_reason,
    )


__all__ = [
    "ActionInProgress",
    "GameState",
    "RecentTarget",
    "RunSummary",
    "clone_state",
    "create_initial_state",
    "summarize_run",
]
