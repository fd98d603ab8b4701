"""
Problem formulation: cost and dynamics constraints over the flat layout.

The evaluator mirrors the classic ``FG_eval`` callback: given the flat
decision vector it returns the scalar cost and the ``6N`` constraint
expressions. It is generic over the numeric type so the same code builds the
CasADi expression graph (exact derivatives for IPOPT) and evaluates plain
floats for checks.
"""

import math
from types import ModuleType
from typing import List, Sequence, Tuple

from kinempc.config import MPCConfig
from kinempc.exceptions import ConfigValidationError
from kinempc.dynamics import KinematicBicycleModel
from kinempc.layout import VariableLayout
from kinempc.types import STATE_NAMES, PathPolynomial


class FGEvaluator:
    """Cost and constraint evaluator for one control cycle.

    Holds only immutable data (configuration, layout, polynomial), so two
    evaluators built from the same inputs behave identically.
    """

    def __init__(self, polynomial: PathPolynomial, config: MPCConfig, layout: VariableLayout):
        self.polynomial = polynomial
        self.config = config
        self.layout = layout
        self.model = KinematicBicycleModel.from_config(config)

    def __call__(self, vars: Sequence, ops: ModuleType = math) -> Tuple[object, List]:
        return self.cost(vars), self.constraints(vars, ops)

    def cost(self, vars: Sequence):
        """Weighted tracking, actuation and smoothness cost."""
        lay = self.layout
        N = lay.horizon
        w = self.config.weights
        ref = self.config.reference

        cost = 0

        # Reference state tracking
        for t in range(N):
            cost += w.cte * (vars[lay.cte_start + t] - ref.cte) ** 2
            cost += w.epsi * (vars[lay.epsi_start + t] - ref.epsi) ** 2
            cost += w.v * (vars[lay.v_start + t] - ref.v) ** 2

        # Actuator use
        for t in range(N - 1):
            cost += w.actuator * vars[lay.delta_start + t] ** 2
            cost += w.actuator * vars[lay.a_start + t] ** 2

        # Change between sequential actuations
        for t in range(N - 2):
            cost += w.steering_rate * (vars[lay.delta_start + t + 1] - vars[lay.delta_start + t]) ** 2
            cost += w.throttle_rate * (vars[lay.a_start + t + 1] - vars[lay.a_start + t]) ** 2

        return cost

    def constraints(self, vars: Sequence, ops: ModuleType = math) -> List:
        """Initial-state identities followed by the model equalities.

        Entry ``start + t`` of each state block is zero when the trajectory
        obeys the model between t-1 and t; entry ``start`` is the variable
        itself and gets pinned through its bounds.
        """
        lay = self.layout
        N = lay.horizon
        starts = [lay.offsets[name] for name in STATE_NAMES]

        g = [0] * lay.n_constraints
        for start in starts:
            g[start] = vars[start]

        for t in range(1, N):
            prev = lay.state_at(vars, t - 1)
            curr = lay.state_at(vars, t)
            delta0, a0 = lay.actuators_at(vars, t - 1)

            predicted = self.model.step(prev, delta0, a0, self.polynomial, ops)
            for start, value, model_value in zip(starts, curr, predicted):
                g[start + t] = value - model_value

        return g


class ProblemFormulator:
    """Builds the per-cycle evaluator from the shared configuration.

    The planner and vehicle sections are validated up front, so a bad
    horizon, timestep or Lf fails here rather than inside the solver.
    """

    def __init__(self, config: MPCConfig, layout: VariableLayout = None):
        config.planner.validate()
        config.vehicle.validate()
        self.config = config
        self.layout = layout or VariableLayout(config.planner.horizon)
        if self.layout.horizon != config.planner.horizon:
            raise ConfigValidationError(
                "planner.horizon",
                f"layout horizon {self.layout.horizon} does not match",
                config.planner.horizon,
            )

    def formulate(self, polynomial: PathPolynomial) -> FGEvaluator:
        return FGEvaluator(polynomial, self.config, self.layout)
