"""
Closed-loop execution runner.

Drives the controller the way a vehicle loop does: solve, apply the first
actuator pair, advance the state with the kinematic model, repeat.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from kinempc.controller import KinematicMPC
from kinempc.dynamics import KinematicBicycleModel
from kinempc.logging import LOG_INFO, LOG_WARN, SolveTimer, TimingSummary
from kinempc.types import ActuatorCommand, PathPolynomial, VehicleState


@dataclass
class ClosedLoopResult:
    """Record of a closed-loop run."""
    states: List[VehicleState] = field(default_factory=list)
    commands: List[ActuatorCommand] = field(default_factory=list)
    statuses: List[str] = field(default_factory=list)
    failures: int = 0
    timing: TimingSummary = TimingSummary(0.0, 0.0, 0)

    @property
    def steps(self) -> int:
        return len(self.commands)

    def to_dict(self) -> dict:
        return {
            "steps": self.steps,
            "failures": self.failures,
            "statuses": list(self.statuses),
            "trajectory": [[s.x, s.y] for s in self.states],
            "commands": [[c.steering_angle, c.throttle] for c in self.commands],
            "solve_time_ms": self.timing._asdict(),
        }


def fallback_command(controller: KinematicMPC) -> ActuatorCommand:
    """Command applied when a solve fails: straight wheels, full braking."""
    return ActuatorCommand(steering_angle=0.0, throttle=-controller.config.vehicle.max_throttle)


def run_closed_loop(
    controller: KinematicMPC,
    initial_state: VehicleState,
    polynomial: PathPolynomial,
    steps: int = 50,
    plant: Optional[KinematicBicycleModel] = None,
) -> ClosedLoopResult:
    """
    Run the receding-horizon loop for a fixed number of cycles.

    Args:
        controller: Configured KinematicMPC
        initial_state: State at the first cycle
        polynomial: Reference path, fixed for the whole run
        steps: Number of control cycles
        plant: Model used to advance the state (defaults to the controller's)

    Returns:
        ClosedLoopResult with visited states (steps + 1) and applied commands
    """
    plant = plant or KinematicBicycleModel.from_config(controller.config)
    timer = SolveTimer("closed loop", budget_ms=controller.config.solver.max_cpu_time * 1000.0)
    result = ClosedLoopResult(states=[initial_state])

    state = initial_state
    LOG_INFO(f"Starting closed loop for {steps} steps...")

    for step in range(steps):
        with timer.measure():
            output = controller.solve(state, polynomial)
        result.statuses.append(output.status)

        if output.success:
            command = output.command
        else:
            result.failures += 1
            command = fallback_command(controller)
            LOG_WARN(f"Step {step}: solve failed ({output.status}), braking")

        result.commands.append(command)
        state = VehicleState.from_array(
            plant.step(state.as_tuple(), command.steering_angle, command.throttle, polynomial)
        )
        result.states.append(state)

        if step % 10 == 0:
            LOG_INFO(
                f"Step {step}: position=({state.x:.2f}, {state.y:.2f}), "
                f"cte={state.cte:.3f}, epsi={state.epsi:.3f}"
            )

    result.timing = timer.summary()
    timer.log_summary()
    LOG_INFO(f"Closed loop completed after {steps} steps ({result.failures} failed solves)")
    return result


def max_abs_cte(result: ClosedLoopResult) -> float:
    """Largest cross-track error magnitude visited during a run."""
    return float(np.max(np.abs([s.cte for s in result.states])))
