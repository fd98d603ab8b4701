"""
Kinematic bicycle model with cross-track and heading error propagation.

The update is written once and evaluated over any numeric type that supports
+, -, *, / and whose ``ops`` namespace provides ``cos``, ``sin`` and ``atan``:
``math`` for floats, ``casadi`` for SX/MX symbols.
"""

import math
from types import ModuleType
from typing import Sequence, Tuple

import numpy as np

from kinempc.config import MPCConfig
from kinempc.types import PathPolynomial


class KinematicBicycleModel:
    """
    Discrete-time kinematic bicycle model (explicit Euler).

    State: [x, y, psi, v, cte, epsi]
    Input: [delta, a] (steering angle, normalized acceleration)

        x'    = x + v*cos(psi)*dt
        y'    = y + v*sin(psi)*dt
        psi'  = psi - v*delta/Lf*dt
        v'    = v + a*dt
        cte'  = (f(x) - y) + v*sin(epsi)*dt
        epsi' = (psi - atan(f'(x))) - v*delta/Lf*dt

    Positive delta steers right, hence the negative sign in the heading
    update.
    """

    def __init__(self, lf: float, dt: float):
        self.lf = lf
        self.dt = dt

    @classmethod
    def from_config(cls, config: MPCConfig) -> "KinematicBicycleModel":
        return cls(lf=config.vehicle.lf, dt=config.planner.timestep)

    def step(
        self,
        state: Sequence,
        delta,
        a,
        polynomial: PathPolynomial,
        ops: ModuleType = math,
    ) -> Tuple:
        """Propagate ``state`` one timestep under actuators (delta, a)."""
        x0, y0, psi0, v0, cte0, epsi0 = state
        dt = self.dt
        Lf = self.lf

        f0 = polynomial.evaluate(x0)
        psides0 = ops.atan(polynomial.slope(x0))

        return (
            x0 + v0 * ops.cos(psi0) * dt,
            y0 + v0 * ops.sin(psi0) * dt,
            psi0 - v0 * delta / Lf * dt,
            v0 + a * dt,
            (f0 - y0) + (v0 * ops.sin(epsi0) * dt),
            (psi0 - psides0) - v0 * delta / Lf * dt,
        )

    def rollout(
        self,
        state: Sequence[float],
        steering: Sequence[float],
        throttle: Sequence[float],
        polynomial: PathPolynomial,
    ) -> np.ndarray:
        """Numerically integrate an actuator sequence from ``state``.

        Returns:
            Array of shape (len(steering) + 1, 6), first row ``state``.
        """
        states = [tuple(float(s) for s in state)]
        for delta, a in zip(steering, throttle):
            states.append(self.step(states[-1], float(delta), float(a), polynomial))
        return np.array(states)

    def residuals(
        self,
        states: np.ndarray,
        steering: Sequence[float],
        throttle: Sequence[float],
        polynomial: PathPolynomial,
    ) -> np.ndarray:
        """Per-step model mismatch of a (N, 6) state trajectory.

        Row t-1 holds ``states[t] - step(states[t-1], u[t-1])`` for t >= 1.
        """
        states = np.asarray(states, dtype=float)
        out = np.zeros((len(states) - 1, states.shape[1]))
        for t in range(1, len(states)):
            predicted = self.step(
                states[t - 1], float(steering[t - 1]), float(throttle[t - 1]), polynomial
            )
            out[t - 1] = states[t] - np.array(predicted)
        return out
