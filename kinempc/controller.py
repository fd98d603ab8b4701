"""
Receding-horizon controller.

Each call to ``KinematicMPC.solve`` formulates the problem for the measured
state and path polynomial, solves it from an all-zero initial guess and
extracts the first actuator pair and the predicted trajectory. Nothing is
carried over between calls.
"""

import time
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from kinempc.config import MPCConfig
from kinempc.exceptions import SolverError
from kinempc.formulation import ProblemFormulator
from kinempc.layout import VariableLayout
from kinempc.logging import LOG_DEBUG, LOG_WARN, profile_scope, timed
from kinempc.solver import NLPProblem, NLPSolution, NLPSolver, SolverOptions, create_backend
from kinempc.types import STATE_NAMES, MPCResult, PathPolynomial, VehicleState

# Bound used for state variables; IPOPT treats anything above 1e19 as infinite.
UNBOUNDED = float(np.finfo(np.float32).max)


def variable_bounds(layout: VariableLayout, config: MPCConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Box bounds on the flat decision vector.

    States are unbounded, steering is limited to the configured maximum angle
    and acceleration to the normalized throttle range.
    """
    lower = np.empty(layout.n_vars)
    upper = np.empty(layout.n_vars)

    lower[: layout.delta_start] = -UNBOUNDED
    upper[: layout.delta_start] = UNBOUNDED

    max_radians = config.vehicle.max_steering_rad
    lower[layout.delta_start : layout.a_start] = -max_radians
    upper[layout.delta_start : layout.a_start] = max_radians

    lower[layout.a_start :] = -config.vehicle.max_throttle
    upper[layout.a_start :] = config.vehicle.max_throttle

    return lower, upper


def constraint_bounds(layout: VariableLayout, state: VehicleState) -> Tuple[np.ndarray, np.ndarray]:
    """Equality bounds: zero everywhere except the pinned initial state."""
    lower = np.zeros(layout.n_constraints)
    upper = np.zeros(layout.n_constraints)

    for name, value in zip(STATE_NAMES, state.as_tuple()):
        lower[layout.offsets[name]] = value
        upper[layout.offsets[name]] = value

    return lower, upper


class KinematicMPC:
    """
    Horizon solver for the kinematic bicycle model.

    Holds only the immutable configuration, the variable layout derived from
    it and the NLP backend.
    """

    def __init__(self, config: Optional[MPCConfig] = None, backend: Optional[NLPSolver] = None):
        """
        Args:
            config: Controller configuration (validated here)
            backend: NLP backend; defaults to the one named in the config
        """
        self.config = config or MPCConfig()
        self.config.validate()

        self.layout = VariableLayout(self.config.planner.horizon)
        self.formulator = ProblemFormulator(self.config, self.layout)
        self.backend = backend or create_backend(self.config.solver)
        self.options = SolverOptions.from_config(self.config.solver)

    @timed
    def build_problem(
        self,
        state: VehicleState,
        polynomial: PathPolynomial,
    ) -> NLPProblem:
        """Formulate the NLP for one cycle (no solve)."""
        lay = self.layout
        lbx, ubx = variable_bounds(lay, self.config)
        lbg, ubg = constraint_bounds(lay, state)

        return NLPProblem(
            evaluator=self.formulator.formulate(polynomial),
            x0=np.zeros(lay.n_vars),
            lbx=lbx,
            ubx=ubx,
            lbg=lbg,
            ubg=ubg,
            options=self.options,
        )

    def solve(
        self,
        state: Union[VehicleState, Sequence[float]],
        polynomial: Union[PathPolynomial, Sequence[float]],
    ) -> MPCResult:
        """
        Solve one receding-horizon problem.

        Args:
            state: Measured state (x, y, psi, v, cte, epsi)
            polynomial: Path coefficients, constant term first

        Returns:
            MPCResult; check ``success`` before using ``command``
        """
        if not isinstance(state, VehicleState):
            state = VehicleState.from_array(state)
        if not isinstance(polynomial, PathPolynomial):
            polynomial = PathPolynomial.from_coefficients(polynomial)

        problem = self.build_problem(state, polynomial)

        start = time.perf_counter()
        with profile_scope(f"{self.backend.name} solve"):
            solution = self.backend.solve(problem)
        elapsed = time.perf_counter() - start

        LOG_DEBUG(f"Cost {solution.objective}")
        if not solution.success:
            LOG_WARN(f"MPC solve failed with status '{solution.status}'")

        return self._extract(solution, elapsed)

    def _extract(self, solution: NLPSolution, elapsed: float) -> MPCResult:
        lay = self.layout
        x = np.asarray(solution.x, dtype=float)
        if x.shape != (lay.n_vars,):
            raise SolverError(f"backend returned {x.shape} values, expected ({lay.n_vars},)")

        states = lay.states(x)
        trajectory = [(float(states[t, 0]), float(states[t, 1])) for t in range(1, lay.horizon)]

        return MPCResult(
            success=solution.success,
            status=solution.status,
            objective=solution.objective,
            solution=x,
            states=states,
            steering=lay.block(x, "delta").copy(),
            throttle=lay.block(x, "a").copy(),
            trajectory=trajectory,
            iterations=solution.iterations,
            solve_time=elapsed,
        )
