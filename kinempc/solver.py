"""
NLP solver interface and the CasADi/IPOPT backend.

The controller only depends on ``NLPSolver.solve(problem) -> NLPSolution``;
any backend able to minimize the evaluator's cost subject to its equality
constraints and box bounds can be substituted (tests use stub backends).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional

import casadi as cs
import numpy as np

from kinempc.config import SolverConfig
from kinempc.exceptions import SolverBackendError
from kinempc.logging import LOG_DEBUG


@dataclass(frozen=True)
class SolverOptions:
    """Options understood by every backend."""
    print_level: int = 0
    max_cpu_time: float = 0.5
    max_iterations: int = 3000
    tolerance: float = 1e-8

    @classmethod
    def from_config(cls, config: SolverConfig) -> "SolverOptions":
        return cls(
            print_level=config.print_level,
            max_cpu_time=config.max_cpu_time,
            max_iterations=config.max_iterations,
            tolerance=config.tolerance,
        )


@dataclass
class NLPProblem:
    """
    Problem handed to a backend:

        min  f(x)
        s.t. lbg <= g(x) <= ubg
             lbx <=  x   <= ubx

    ``evaluator(vars, ops)`` returns ``(f, g)``.
    """
    evaluator: Callable
    x0: np.ndarray
    lbx: np.ndarray
    ubx: np.ndarray
    lbg: np.ndarray
    ubg: np.ndarray
    options: SolverOptions = field(default_factory=SolverOptions)

    @property
    def n_vars(self) -> int:
        return len(self.x0)

    @property
    def n_constraints(self) -> int:
        return len(self.lbg)


@dataclass
class NLPSolution:
    """Backend output; ``status`` is passed through unmodified."""
    status: str
    success: bool
    x: np.ndarray
    objective: float
    iterations: Optional[int] = None


class NLPSolver(ABC):
    """Capability interface for a nonlinear program solver."""

    name = "abstract"

    @abstractmethod
    def solve(self, problem: NLPProblem) -> NLPSolution:
        pass


class CasadiIpoptSolver(NLPSolver):
    """
    IPOPT through CasADi's ``nlpsol``.

    The evaluator is traced once per solve with SX symbols; CasADi derives
    the exact sparse Jacobian and Hessian of the resulting graph.
    """

    name = "ipopt"

    def _ipopt_options(self, options: SolverOptions) -> dict:
        return {
            "ipopt.print_level": options.print_level,
            "print_time": options.print_level > 0,
            "ipopt.sb": "yes",
            "ipopt.max_cpu_time": options.max_cpu_time,
            "ipopt.max_iter": options.max_iterations,
            "ipopt.tol": options.tolerance,
            "error_on_fail": False,
        }

    def solve(self, problem: NLPProblem) -> NLPSolution:
        x = cs.SX.sym("vars", problem.n_vars)
        f, g = problem.evaluator(x, cs)
        nlp = {"x": x, "f": f, "g": cs.vertcat(*g)}

        try:
            solver = cs.nlpsol("kinempc", "ipopt", nlp, self._ipopt_options(problem.options))
        except RuntimeError as e:
            raise SolverBackendError(self.name, str(e)) from e

        sol = solver(
            x0=problem.x0,
            lbx=problem.lbx,
            ubx=problem.ubx,
            lbg=problem.lbg,
            ubg=problem.ubg,
        )
        stats = solver.stats()
        status = str(stats.get("return_status", "Unknown"))
        LOG_DEBUG(f"IPOPT return status: {status}")

        return NLPSolution(
            status=status,
            success=bool(stats.get("success", False)),
            x=np.asarray(sol["x"], dtype=float).ravel(),
            objective=float(sol["f"]),
            iterations=stats.get("iter_count"),
        )


BACKENDS = {
    CasadiIpoptSolver.name: CasadiIpoptSolver,
}


def create_backend(config: SolverConfig) -> NLPSolver:
    """Instantiate the backend named in the solver configuration."""
    try:
        return BACKENDS[config.backend]()
    except KeyError:
        raise SolverBackendError(config.backend, f"available: {sorted(BACKENDS)}") from None
