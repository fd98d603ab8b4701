"""
Pytest configuration and fixtures for kinempc tests.

This module provides shared fixtures for testing:
- Configuration fixtures
- State and path fixtures
- Stub NLP backends
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import pytest

from kinempc.config import MPCConfig
from kinempc.dynamics import KinematicBicycleModel
from kinempc.solver import NLPProblem, NLPSolution, NLPSolver
from kinempc.types import PathPolynomial, VehicleState


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def mpc_config() -> MPCConfig:
    """Default typed configuration."""
    return MPCConfig()


@pytest.fixture
def short_config() -> MPCConfig:
    """Configuration with a short horizon for index-level checks."""
    from dataclasses import replace

    config = MPCConfig()
    return replace(config, planner=replace(config.planner, horizon=4))


# =============================================================================
# State and Path Fixtures
# =============================================================================


@pytest.fixture
def on_path_state(mpc_config) -> VehicleState:
    """Vehicle on the x-axis, aligned with it, at the reference speed."""
    return VehicleState(x=0.0, y=0.0, psi=0.0, v=mpc_config.reference.v, cte=0.0, epsi=0.0)


@pytest.fixture
def offset_state(mpc_config) -> VehicleState:
    """Vehicle one meter to the right of a straight path."""
    return VehicleState(x=0.0, y=-1.0, psi=0.0, v=mpc_config.reference.v, cte=-1.0, epsi=0.0)


@pytest.fixture
def straight_path() -> PathPolynomial:
    """The x-axis."""
    return PathPolynomial.from_coefficients([0.0, 0.0, 0.0, 0.0])


@pytest.fixture
def curved_path() -> PathPolynomial:
    """A gentle left-hand curve."""
    return PathPolynomial.from_coefficients([0.5, 0.05, 0.002, -1e-5])


# =============================================================================
# Stub Backends
# =============================================================================


class FixedSolutionSolver(NLPSolver):
    """Returns a preset vector and status; records the problem it was given."""

    name = "fixed"

    def __init__(self, x: Optional[np.ndarray] = None, status: str = "Solve_Succeeded",
                 success: bool = True, objective: float = 0.0):
        self.x = x
        self.status = status
        self.success = success
        self.objective = objective
        self.problems = []

    def solve(self, problem: NLPProblem) -> NLPSolution:
        self.problems.append(problem)
        x = np.zeros(problem.n_vars) if self.x is None else np.asarray(self.x, dtype=float)
        return NLPSolution(
            status=self.status,
            success=self.success,
            x=x,
            objective=self.objective,
            iterations=7,
        )


class RolloutSolver(NLPSolver):
    """Feasible-point backend: applies a constant actuator pair from the pinned state.

    The initial state is read back from the constraint bounds, so the result
    is only correct if the controller pinned it there.
    """

    name = "rollout"

    def __init__(self, lf: float, dt: float, polynomial: PathPolynomial,
                 delta: float = 0.0, a: float = 0.0):
        self.model = KinematicBicycleModel(lf=lf, dt=dt)
        self.polynomial = polynomial
        self.delta = delta
        self.a = a

    def solve(self, problem: NLPProblem) -> NLPSolution:
        n_states = 6
        N = problem.n_constraints // n_states
        initial = [problem.lbg[i * N] for i in range(n_states)]

        steering = np.full(N - 1, self.delta)
        throttle = np.full(N - 1, self.a)
        states = self.model.rollout(initial, steering, throttle, self.polynomial)

        x = np.concatenate([states.T.ravel(), steering, throttle])
        f, _ = problem.evaluator(x)
        return NLPSolution(status="Solve_Succeeded", success=True, x=x, objective=float(f))


@pytest.fixture
def fixed_solver_cls():
    return FixedSolutionSolver


@pytest.fixture
def rollout_solver_cls():
    return RolloutSolver


# =============================================================================
# Temporary Files Fixtures
# =============================================================================


@pytest.fixture
def temp_config_file(tmp_path) -> Path:
    """Create a temporary configuration file."""
    import yaml

    config = {
        "planner": {
            "horizon": 15,
            "timestep": 0.05,
        },
        "reference": {
            "v": 40.0,
        },
    }

    config_path = tmp_path / "test_config.yml"
    with open(config_path, "w") as f:
        yaml.dump(config, f)

    return config_path


# =============================================================================
# Marker Registrations
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "requires_casadi: marks tests that require CasADi"
    )


@pytest.fixture
def skip_without_casadi():
    """Skip test if CasADi is not available."""
    pytest.importorskip("casadi")
