"""
kinempc - receding-horizon Model Predictive Control for a kinematic vehicle.

Each control cycle solves a short-horizon nonlinear program over a kinematic
bicycle model (CasADi + IPOPT) and returns the first steering/throttle pair
together with the predicted trajectory.

Basic Usage:
    from kinempc import KinematicMPC, VehicleState, PathPolynomial

    controller = KinematicMPC()
    result = controller.solve(
        VehicleState(x=0, y=-1, psi=0, v=130, cte=-1, epsi=0),
        PathPolynomial.from_coefficients([0, 0, 0, 0]),
    )
    if result.success:
        steering, throttle = result.command.steering_angle, result.command.throttle

For more control:
    from kinempc.config import MPCConfig, ConfigManager
    from kinempc.solver import NLPSolver, CasadiIpoptSolver
    from kinempc.exceptions import SolverFailedError
"""

from __future__ import annotations

__version__ = "0.1.0"

# =============================================================================
# Core API
# =============================================================================

from kinempc.config import (
    ConfigManager,
    CostWeights,
    MPCConfig,
    PlannerConfig,
    ReferenceConfig,
    SolverConfig,
    VehicleConfig,
    create_default_config,
    load_config,
)

from kinempc.types import (
    ActuatorCommand,
    MPCResult,
    PathPolynomial,
    VehicleState,
)

from kinempc.layout import VariableLayout
from kinempc.dynamics import KinematicBicycleModel
from kinempc.formulation import FGEvaluator, ProblemFormulator

from kinempc.solver import (
    CasadiIpoptSolver,
    NLPProblem,
    NLPSolution,
    NLPSolver,
    SolverOptions,
    create_backend,
)

from kinempc.controller import (
    KinematicMPC,
    constraint_bounds,
    variable_bounds,
)

from kinempc.runner import (
    ClosedLoopResult,
    run_closed_loop,
)

# =============================================================================
# Logging
# =============================================================================

from kinempc.logging import (
    LOG_DEBUG,
    LOG_INFO,
    LOG_WARN,
    LOG_ERROR,
    SolveTimer,
    TimingSummary,
    profile_scope,
    get_logger,
    setup_logging,
    timed,
)

# =============================================================================
# Exceptions
# =============================================================================

from kinempc.exceptions import (
    KineMPCError,
    ConfigurationError,
    ConfigNotFoundError,
    ConfigValidationError,
    SolverError,
    SolverFailedError,
    SolverBackendError,
    FormulationError,
    InvalidStateError,
    InvalidPolynomialError,
)

__all__ = [
    "__version__",
    # Config
    "ConfigManager",
    "CostWeights",
    "MPCConfig",
    "PlannerConfig",
    "ReferenceConfig",
    "SolverConfig",
    "VehicleConfig",
    "create_default_config",
    "load_config",
    # Types
    "ActuatorCommand",
    "MPCResult",
    "PathPolynomial",
    "VehicleState",
    # Formulation
    "VariableLayout",
    "KinematicBicycleModel",
    "FGEvaluator",
    "ProblemFormulator",
    # Solver
    "CasadiIpoptSolver",
    "NLPProblem",
    "NLPSolution",
    "NLPSolver",
    "SolverOptions",
    "create_backend",
    # Controller
    "KinematicMPC",
    "constraint_bounds",
    "variable_bounds",
    # Runner
    "ClosedLoopResult",
    "run_closed_loop",
    # Logging
    "LOG_DEBUG",
    "LOG_INFO",
    "LOG_WARN",
    "LOG_ERROR",
    "SolveTimer",
    "TimingSummary",
    "profile_scope",
    "get_logger",
    "setup_logging",
    "timed",
    # Exceptions
    "KineMPCError",
    "ConfigurationError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "SolverError",
    "SolverFailedError",
    "SolverBackendError",
    "FormulationError",
    "InvalidStateError",
    "InvalidPolynomialError",
]
