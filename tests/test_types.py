"""
Tests for the input and output data structures.
"""

import math

import numpy as np
import pytest

from kinempc.exceptions import InvalidPolynomialError, InvalidStateError, SolverFailedError
from kinempc.types import ActuatorCommand, MPCResult, PathPolynomial, VehicleState


class TestVehicleState:

    def test_to_array_order(self):
        state = VehicleState(x=1.0, y=2.0, psi=0.3, v=4.0, cte=-0.5, epsi=0.1)
        assert np.allclose(state.to_array(), [1.0, 2.0, 0.3, 4.0, -0.5, 0.1])

    def test_from_array(self):
        state = VehicleState.from_array(np.array([1, 2, 3, 4, 5, 6]))
        assert state.psi == 3.0
        assert state.epsi == 6.0

    def test_from_array_wrong_length(self):
        with pytest.raises(InvalidStateError):
            VehicleState.from_array([0.0] * 5)

    def test_non_finite_rejected(self):
        with pytest.raises(InvalidStateError) as excinfo:
            VehicleState(x=0.0, y=0.0, psi=0.0, v=math.nan, cte=0.0, epsi=0.0)
        assert excinfo.value.details["state"] == "v"

    def test_is_read_only(self):
        state = VehicleState.from_array([0.0] * 6)
        with pytest.raises(AttributeError):
            state.x = 1.0


class TestPathPolynomial:

    def test_evaluate_and_slope(self):
        poly = PathPolynomial.from_coefficients([1.0, 2.0, 3.0, 4.0])
        assert poly.evaluate(2.0) == pytest.approx(1 + 4 + 12 + 32)
        assert poly.slope(2.0) == pytest.approx(2 + 12 + 48)

    def test_short_coefficients_are_padded(self):
        poly = PathPolynomial.from_coefficients([0.5, 0.1])
        assert poly.coefficients == (0.5, 0.1, 0.0, 0.0)
        assert poly.evaluate(10.0) == pytest.approx(1.5)

    def test_higher_degree_rejected(self):
        with pytest.raises(InvalidPolynomialError):
            PathPolynomial.from_coefficients([0.0, 0.0, 0.0, 0.0, 1e-6])

    def test_empty_rejected(self):
        with pytest.raises(InvalidPolynomialError):
            PathPolynomial.from_coefficients([])

    def test_non_finite_rejected(self):
        with pytest.raises(InvalidPolynomialError):
            PathPolynomial.from_coefficients([0.0, math.inf])

    def test_indexing(self):
        poly = PathPolynomial.from_coefficients([1.0, 2.0, 3.0, 4.0])
        assert poly[3] == 4.0


def _result(success: bool, status: str = "Solve_Succeeded") -> MPCResult:
    N = 3
    return MPCResult(
        success=success,
        status=status,
        objective=1.5,
        solution=np.zeros(6 * N + 2 * (N - 1)),
        states=np.zeros((N, 6)),
        steering=np.array([0.1, 0.2]),
        throttle=np.array([-0.3, 0.0]),
        trajectory=[(1.0, 0.0), (2.0, 0.0)],
        iterations=11,
    )


class TestMPCResult:

    def test_command_on_success(self):
        command = _result(True).command
        assert command == ActuatorCommand(steering_angle=0.1, throttle=-0.3)

    def test_command_on_failure_raises(self):
        with pytest.raises(SolverFailedError) as excinfo:
            _result(False, "Maximum_CpuTime_Exceeded").command
        assert excinfo.value.status == "Maximum_CpuTime_Exceeded"
        assert excinfo.value.details["iterations"] == 11

    def test_to_dict(self):
        d = _result(True).to_dict()
        assert d["status"] == "Solve_Succeeded"
        assert d["steering"] == pytest.approx(0.1)
        assert d["trajectory"] == [[1.0, 0.0], [2.0, 0.0]]
