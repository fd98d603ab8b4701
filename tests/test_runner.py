"""
Tests for the closed-loop runner.
"""

import numpy as np
import pytest

from kinempc.controller import KinematicMPC
from kinempc.dynamics import KinematicBicycleModel
from kinempc.runner import ClosedLoopResult, fallback_command, max_abs_cte, run_closed_loop
from kinempc.types import VehicleState


class TestRunClosedLoop:

    def test_applies_first_actuator_pair(self, mpc_config, curved_path, rollout_solver_cls):
        backend = rollout_solver_cls(mpc_config.vehicle.lf, mpc_config.planner.timestep,
                                     curved_path, delta=0.02, a=0.3)
        controller = KinematicMPC(mpc_config, backend=backend)
        initial = VehicleState(x=0.0, y=0.0, psi=0.0, v=20.0, cte=0.5, epsi=0.0)

        result = run_closed_loop(controller, initial, curved_path, steps=5)

        assert result.steps == 5
        assert len(result.states) == 6
        assert result.failures == 0
        assert result.statuses == ["Solve_Succeeded"] * 5
        for command in result.commands:
            assert command.steering_angle == pytest.approx(0.02)
            assert command.throttle == pytest.approx(0.3)

        model = KinematicBicycleModel.from_config(mpc_config)
        for before, after in zip(result.states, result.states[1:]):
            expected = model.step(before.as_tuple(), 0.02, 0.3, curved_path)
            assert after.as_tuple() == pytest.approx(expected)

    def test_failed_solve_brakes(self, mpc_config, straight_path, on_path_state, fixed_solver_cls):
        backend = fixed_solver_cls(status="Infeasible_Problem_Detected", success=False)
        controller = KinematicMPC(mpc_config, backend=backend)

        result = run_closed_loop(controller, on_path_state, straight_path, steps=3)

        assert result.failures == 3
        assert all(c.steering_angle == 0.0 for c in result.commands)
        assert all(c.throttle == -1.0 for c in result.commands)
        speeds = [s.v for s in result.states]
        assert np.allclose(np.diff(speeds), -1.0 * mpc_config.planner.timestep)

    def test_custom_plant(self, mpc_config, straight_path, on_path_state, rollout_solver_cls):
        backend = rollout_solver_cls(mpc_config.vehicle.lf, mpc_config.planner.timestep,
                                     straight_path)
        controller = KinematicMPC(mpc_config, backend=backend)
        plant = KinematicBicycleModel(lf=mpc_config.vehicle.lf, dt=0.2)

        result = run_closed_loop(controller, on_path_state, straight_path, steps=2, plant=plant)

        assert result.states[-1].x == pytest.approx(2 * 0.2 * on_path_state.v)

    def test_timing_recorded(self, mpc_config, straight_path, on_path_state, fixed_solver_cls):
        controller = KinematicMPC(mpc_config, backend=fixed_solver_cls())
        result = run_closed_loop(controller, on_path_state, straight_path, steps=4)

        assert result.timing.count == 4
        assert 0.0 <= result.timing.mean_ms <= result.timing.max_ms
        assert result.timing.over_budget == 0


class TestHelpers:

    def test_fallback_command_uses_throttle_limit(self, mpc_config, fixed_solver_cls):
        command = fallback_command(KinematicMPC(mpc_config, backend=fixed_solver_cls()))
        assert command.steering_angle == 0.0
        assert command.throttle == -mpc_config.vehicle.max_throttle

    def test_max_abs_cte(self):
        result = ClosedLoopResult(states=[
            VehicleState(0, 0, 0, 10, 0.2, 0),
            VehicleState(0, 0, 0, 10, -0.7, 0),
            VehicleState(0, 0, 0, 10, 0.1, 0),
        ])
        assert max_abs_cte(result) == pytest.approx(0.7)

    def test_to_dict(self, mpc_config, straight_path, on_path_state, fixed_solver_cls):
        controller = KinematicMPC(mpc_config, backend=fixed_solver_cls())
        data = run_closed_loop(controller, on_path_state, straight_path, steps=2).to_dict()

        assert data["steps"] == 2
        assert data["failures"] == 0
        assert len(data["trajectory"]) == 3
        assert data["commands"] == [[0.0, 0.0], [0.0, 0.0]]
        assert data["solve_time_ms"]["count"] == 2


@pytest.mark.integration
@pytest.mark.slow
class TestClosedLoopWithIpopt:

    def test_stays_on_straight_path(self, skip_without_casadi, mpc_config, on_path_state,
                                    straight_path):
        result = run_closed_loop(KinematicMPC(mpc_config), on_path_state, straight_path, steps=10)

        assert result.failures == 0
        assert max_abs_cte(result) < 1e-2
