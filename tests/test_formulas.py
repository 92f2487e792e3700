from __future__ import annotations

import pytest

from uptime.config import IncidentConfig
from uptime.runtime import formulas
from uptime.world.components import OperationalMode


def test_hazard_multiplier_is_capped() -> None:
    hazard = formulas.compute_hazard_multiplier(
        utilization=5.0, error_rate=0.9, tech_debt=100.0, security_score=0.0, difficulty=1.8
    )
    assert hazard == pytest.approx(IncidentConfig().max_hazard_cap)


def test_hazard_multiplier_baseline() -> None:
    hazard = formulas.compute_hazard_multiplier(0.5, 0.0, 0.0, 1.0, 1.0)
    assert hazard == pytest.approx(1.0)


def test_difficulty_grows_with_time_and_users() -> None:
    assert formulas.compute_difficulty_multiplier(0.0, 10_000.0) == pytest.approx(1.0)
    assert formulas.compute_difficulty_multiplier(1_800.0, 10_000.0) == pytest.approx(1.5)
    assert formulas.compute_difficulty_multiplier(7_200.0, 250_000.0) == pytest.approx(1.5 * 1.2)


def test_latency_curve() -> None:
    assert formulas.compute_latency(10.0, 0.5) == pytest.approx(10.0)
    assert formulas.compute_latency(10.0, 0.9) == pytest.approx(16.0)
    assert formulas.compute_latency(10.0, 1.2) == pytest.approx(10.0 * (1.9 + 1.0))


def test_error_rate_includes_overload_and_health() -> None:
    assert formulas.compute_error_rate(0.01, 0.5, 1.0) == pytest.approx(0.01)
    assert formulas.compute_error_rate(0.0, 1.0, 1.0) == pytest.approx(0.1)
    assert formulas.compute_error_rate(0.0, 0.5, 0.5) == pytest.approx(0.15)
    assert formulas.compute_error_rate(0.5, 10.0, 0.0) == 1.0


def test_operational_mode_thresholds() -> None:
    assert formulas.operational_mode(1.0, 0.5) is OperationalMode.NORMAL
    assert formulas.operational_mode(0.6, 0.5) is OperationalMode.DEGRADED
    assert formulas.operational_mode(1.0, 1.6) is OperationalMode.DEGRADED
    assert formulas.operational_mode(0.2, 0.5) is OperationalMode.DOWN
    assert formulas.operational_mode(1.0, 3.5) is OperationalMode.DOWN


def test_revenue_scales_with_reputation_and_uptime_floor() -> None:
    full = formulas.compute_revenue(86_400.0, 1.0, 100.0, 1.0)
    assert full == pytest.approx(1.0)
    assert formulas.compute_revenue(86_400.0, 1.0, 50.0, 0.0) == pytest.approx(0.5 * 0.3)


def test_growth_and_churn() -> None:
    assert formulas.compute_growth_rate(80.0, 100.0, 0.0) == pytest.approx(2.5)
    assert formulas.compute_growth_rate(20.0, 4_000.0, 0.3) == pytest.approx(0.64)
    assert formulas.compute_growth_rate(80.0, 100.0, 0.0, 1.5) == pytest.approx(3.75)
    assert formulas.compute_churn_rate(100.0, 0.0, False) == pytest.approx(0.05)
    assert formulas.compute_churn_rate(4_000.0, 0.3, True) == pytest.approx(0.5)


def test_reputation_delta_bands() -> None:
    assert formulas.compute_reputation_delta(1.0, 0.0, 0.0) == pytest.approx(0.55)
    assert formulas.compute_reputation_delta(0.5, 0.3, 0.0) == pytest.approx(-1.1)
    assert formulas.compute_reputation_delta(1.0, 0.0, 0.5) == pytest.approx(0.45)


def test_mttr_multiplier_floors_bonus() -> None:
    assert formulas.compute_mttr_multiplier("BASIC", 0.0, 0.0, False) == pytest.approx(1.0)
    assert formulas.compute_mttr_multiplier("TRACES", 0.0, 0.0, True) == pytest.approx(0.3)
    assert formulas.compute_mttr_multiplier("BASIC", 0.0, 0.0, False, bonus=-5.0) == pytest.approx(0.2)


def test_activity_rate_has_floor() -> None:
    assert formulas.activity_rate(10, 2) == pytest.approx(1.0)
    assert formulas.activity_rate(3, 6) == pytest.approx(0.2)
    assert formulas.ingress_rps(10_000.0, 10, 2) == pytest.approx(100.0)
