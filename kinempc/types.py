"""
Core data structures for kinematic MPC.

- VehicleState: measured state at the start of a control cycle
- PathPolynomial: cubic reference path in vehicle-local coordinates
- ActuatorCommand: the only values fed back to the vehicle
- MPCResult: everything one solve produced, including its status
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from kinempc.exceptions import (
    InvalidPolynomialError,
    InvalidStateError,
    SolverFailedError,
)

STATE_NAMES = ("x", "y", "psi", "v", "cte", "epsi")
ACTUATOR_NAMES = ("delta", "a")
POLY_ORDER = 4


# =============================================================================
# Inputs
# =============================================================================

@dataclass(frozen=True)
class VehicleState:
    """
    Vehicle state: (x, y, psi, v, cte, epsi)

    Attributes:
        x: Position x-coordinate [m]
        y: Position y-coordinate [m]
        psi: Heading [rad]
        v: Speed
        cte: Cross-track error [m]
        epsi: Heading error [rad]
    """
    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float

    def __post_init__(self):
        for name in STATE_NAMES:
            if not math.isfinite(getattr(self, name)):
                raise InvalidStateError(name, "must be finite")

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, psi, v, cte, epsi]."""
        return np.array([self.x, self.y, self.psi, self.v, self.cte, self.epsi], dtype=float)

    def as_tuple(self) -> Tuple[float, ...]:
        return (self.x, self.y, self.psi, self.v, self.cte, self.epsi)

    @classmethod
    def from_array(cls, arr: Sequence[float]) -> "VehicleState":
        """Create from a length-6 sequence."""
        if len(arr) != len(STATE_NAMES):
            raise InvalidStateError("state", f"expected {len(STATE_NAMES)} values, got {len(arr)}")
        return cls(*(float(value) for value in arr))


@dataclass(frozen=True)
class PathPolynomial:
    """
    Cubic path y = c0 + c1*x + c2*x^2 + c3*x^3 in vehicle-local coordinates.

    Shorter coefficient sequences are zero-padded; longer ones are rejected
    rather than truncated, since dropping terms silently changes the path.
    """
    coefficients: Tuple[float, float, float, float]

    def __post_init__(self):
        coeffs = tuple(float(c) for c in self.coefficients)
        if not coeffs:
            raise InvalidPolynomialError("at least one coefficient is required")
        if len(coeffs) > POLY_ORDER:
            raise InvalidPolynomialError(
                f"degree must be <= {POLY_ORDER - 1}, got {len(coeffs)} coefficients",
                list(coeffs),
            )
        if not all(math.isfinite(c) for c in coeffs):
            raise InvalidPolynomialError("coefficients must be finite", list(coeffs))
        coeffs = coeffs + (0.0,) * (POLY_ORDER - len(coeffs))
        object.__setattr__(self, "coefficients", coeffs)

    @classmethod
    def from_coefficients(cls, coeffs: Sequence[float]) -> "PathPolynomial":
        """Create from coefficients ordered constant -> cubic term."""
        return cls(tuple(np.asarray(coeffs, dtype=float).ravel()))

    def __getitem__(self, i: int) -> float:
        return self.coefficients[i]

    def evaluate(self, x):
        """Path y-value at x (works on floats and symbolic expressions)."""
        c = self.coefficients
        return c[0] + c[1] * x + c[2] * x * x + c[3] * x * x * x

    def slope(self, x):
        """First derivative dy/dx at x."""
        c = self.coefficients
        return c[1] + 2 * c[2] * x + 3 * c[3] * x * x


# =============================================================================
# Outputs
# =============================================================================

@dataclass(frozen=True)
class ActuatorCommand:
    """
    Actuator pair applied to the vehicle.

    Attributes:
        steering_angle: Steering angle [rad], positive steers right
        throttle: Normalized throttle (> 0) or brake (< 0) in [-1, 1]
    """
    steering_angle: float
    throttle: float

    def to_array(self) -> np.ndarray:
        return np.array([self.steering_angle, self.throttle])


@dataclass
class MPCResult:
    """
    Result of one receding-horizon solve.

    ``status`` is the solver's own status string. When ``success`` is False
    the remaining fields hold whatever the solver last had and must not be
    applied; ``command`` raises in that case.
    """
    success: bool
    status: str
    objective: float
    solution: np.ndarray
    states: np.ndarray
    steering: np.ndarray
    throttle: np.ndarray
    trajectory: List[Tuple[float, float]] = field(default_factory=list)
    iterations: Optional[int] = None
    solve_time: float = 0.0

    @property
    def command(self) -> ActuatorCommand:
        """First actuator pair of the plan."""
        if not self.success:
            raise SolverFailedError(self.status, self.iterations)
        return ActuatorCommand(
            steering_angle=float(self.steering[0]),
            throttle=float(self.throttle[0]),
        )

    @property
    def initial_state(self) -> VehicleState:
        """Predicted state at t=0 (pinned to the measurement)."""
        return VehicleState.from_array(self.states[0])

    def to_dict(self) -> dict:
        """JSON-friendly summary of the solve."""
        return {
            "success": self.success,
            "status": self.status,
            "objective": float(self.objective),
            "steering": float(self.steering[0]) if len(self.steering) else None,
            "throttle": float(self.throttle[0]) if len(self.throttle) else None,
            "trajectory": [[float(x), float(y)] for x, y in self.trajectory],
            "iterations": self.iterations,
            "solve_time": self.solve_time,
        }
