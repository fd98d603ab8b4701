"""
Flat decision-variable layout.

The NLP backend only sees one flat vector. Its block order is

    x[0:N] y[0:N] psi[0:N] v[0:N] cte[0:N] epsi[0:N] delta[0:N-1] a[0:N-1]

and the constraint vector repeats the six state blocks. Every index into
either vector goes through a VariableLayout so formulator and solver cannot
disagree on offsets.
"""

from dataclasses import dataclass
from typing import Dict

import numpy as np

from kinempc.exceptions import ConfigValidationError
from kinempc.types import ACTUATOR_NAMES, STATE_NAMES


@dataclass(frozen=True)
class VariableLayout:
    """Block offsets for a horizon of ``horizon`` timesteps."""

    horizon: int

    def __post_init__(self):
        if isinstance(self.horizon, bool) or not isinstance(self.horizon, int):
            raise ConfigValidationError("planner.horizon", "must be an integer", self.horizon)
        if self.horizon < 2:
            raise ConfigValidationError("planner.horizon", "must be >= 2", self.horizon)

    @property
    def n_states(self) -> int:
        return len(STATE_NAMES)

    @property
    def n_actuators(self) -> int:
        return len(ACTUATOR_NAMES)

    @property
    def n_vars(self) -> int:
        return self.horizon * self.n_states + (self.horizon - 1) * self.n_actuators

    @property
    def n_constraints(self) -> int:
        return self.horizon * self.n_states

    @property
    def offsets(self) -> Dict[str, int]:
        """Start index of every block, in layout order."""
        N = self.horizon
        offsets = {name: i * N for i, name in enumerate(STATE_NAMES)}
        offsets["delta"] = self.n_states * N
        offsets["a"] = offsets["delta"] + N - 1
        return offsets

    @property
    def x_start(self) -> int:
        return self.offsets["x"]

    @property
    def y_start(self) -> int:
        return self.offsets["y"]

    @property
    def psi_start(self) -> int:
        return self.offsets["psi"]

    @property
    def v_start(self) -> int:
        return self.offsets["v"]

    @property
    def cte_start(self) -> int:
        return self.offsets["cte"]

    @property
    def epsi_start(self) -> int:
        return self.offsets["epsi"]

    @property
    def delta_start(self) -> int:
        return self.offsets["delta"]

    @property
    def a_start(self) -> int:
        return self.offsets["a"]

    def block_length(self, name: str) -> int:
        return self.horizon if name in STATE_NAMES else self.horizon - 1

    def index(self, name: str, t: int) -> int:
        """Flat index of block ``name`` at timestep ``t``."""
        if not 0 <= t < self.block_length(name):
            raise IndexError(f"timestep {t} out of range for block '{name}'")
        return self.offsets[name] + t

    def state_at(self, vars, t: int) -> tuple:
        """The six state entries of ``vars`` at timestep ``t``."""
        return tuple(vars[self.index(name, t)] for name in STATE_NAMES)

    def actuators_at(self, vars, t: int) -> tuple:
        """(delta, a) entries of ``vars`` at timestep ``t``."""
        return vars[self.index("delta", t)], vars[self.index("a", t)]

    def block(self, vector: np.ndarray, name: str) -> np.ndarray:
        """Slice of a numeric flat vector holding block ``name``."""
        start = self.offsets[name]
        return np.asarray(vector)[start:start + self.block_length(name)]

    def states(self, vector: np.ndarray) -> np.ndarray:
        """Reshape the state blocks of a numeric vector to (N, 6)."""
        N = self.horizon
        return np.asarray(vector, dtype=float)[: self.n_states * N].reshape(self.n_states, N).T
