"""
Unit tests for the PID controller.
"""

import pytest

from robot_control.errors import ConfigurationError
from robot_control.pid import PIDController


class TestPIDController:
    """Test suite for PIDController"""

    @pytest.fixture
    def pid(self) -> PIDController:
        """Create a controller with all three terms active"""
        return PIDController(kp=2.0, ki=0.5, kd=0.1)

    def test_default_gains(self) -> None:
        """Test default gains are proportional-only"""
        pid = PIDController()

        assert (pid.kp, pid.ki, pid.kd) == (1.0, 0.0, 0.0)

    def test_zero_error_gives_zero_output(self, pid: PIDController) -> None:
        """Test that a fresh controller with zero error outputs zero"""
        assert pid.control(0.0, 0.1) == 0.0

    def test_proportional_term(self) -> None:
        """Test output = kp * error for a P controller"""
        pid = PIDController(kp=2.0, ki=0.0, kd=0.0)

        assert pid.control(3.0, 0.1) == pytest.approx(6.0)

    def test_integral_accumulates(self) -> None:
        """Test rectangular integration of the error"""
        pid = PIDController(kp=0.0, ki=1.0, kd=0.0)

        assert pid.control(1.0, 0.5) == pytest.approx(0.5)
        assert pid.control(1.0, 0.5) == pytest.approx(1.0)
        assert pid.integral == pytest.approx(1.0)

    def test_derivative_uses_previous_error(self) -> None:
        """Test finite-difference derivative against the stored error"""
        pid = PIDController(kp=0.0, ki=0.0, kd=1.0)

        assert pid.control(1.0, 0.1) == pytest.approx(10.0)
        assert pid.control(1.0, 0.1) == pytest.approx(0.0)
        assert pid.prev_error == 1.0

    @pytest.mark.parametrize("dt", [0.0, -0.01])
    def test_rejects_non_positive_dt(self, pid: PIDController, dt: float) -> None:
        """Test that dt <= 0 raises without touching state"""
        pid.control(1.0, 0.1)
        integral, prev = pid.integral, pid.prev_error

        with pytest.raises(ConfigurationError):
            pid.control(2.0, dt)

        assert pid.integral == integral
        assert pid.prev_error == prev

    def test_replay_after_reset(self, pid: PIDController) -> None:
        """Test that reset_state makes a sequence reproducible"""
        errors = [0.3, -0.1, 0.7, 0.0, -0.4]
        first = [pid.control(e, 0.05) for e in errors]

        pid.reset_state()
        second = [pid.control(e, 0.05) for e in errors]

        assert first == second

    def test_set_gains_keeps_state(self, pid: PIDController) -> None:
        """Test that gain updates leave integral and previous error alone"""
        pid.control(1.0, 0.1)
        pid.set_gains(kp=5.0)

        assert pid.kp == 5.0
        assert pid.ki == 0.5
        assert pid.integral == pytest.approx(0.1)

    def test_diagnostics(self, pid: PIDController) -> None:
        """Test diagnostic dictionary contents"""
        pid.control(1.0, 0.1)
        diag = pid.get_diagnostics()

        assert diag["kp"] == 2.0
        assert diag["prev_error"] == 1.0
        assert diag["integral"] == pytest.approx(0.1)
