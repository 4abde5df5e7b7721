"""PID controller for scalar error signals.

This module provides a stateful feedback controller that can replace LQR as
the balancing strategy for the cart-pendulum, or drive any other scalar
error to zero.
"""

from typing import Dict, Optional

from .config import PID_KD, PID_KI, PID_KP
from .errors import ConfigurationError


class PIDController:
    """Textbook PID controller with rectangular integration.

    Control law:
        integral += error * dt
        output = kp * error + ki * integral + kd * (error - previous) / dt
        previous = error

    Attributes:
        kp: Proportional gain (default: 1.0)
        ki: Integral gain (default: 0.0)
        kd: Derivative gain (default: 0.0)
        integral: Accumulated integral of error
        prev_error: Error from the previous call
    """

    def __init__(self, kp: float = PID_KP, ki: float = PID_KI, kd: float = PID_KD):
        """Initialize the controller with zero integral and previous error.

        Args:
            kp: Proportional gain
            ki: Integral gain
            kd: Derivative gain
        """
        self.kp = kp
        self.ki = ki
        self.kd = kd

        # Integral state (accumulated error)
        self.integral: float = 0.0

        # Previous error for derivative computation
        self.prev_error: float = 0.0

    def control(self, error: float, dt: float) -> float:
        """Compute the control output for the current error.

        Args:
            error: Setpoint minus measurement
            dt: Time step since last call (seconds), must be positive

        Returns:
            Control output

        Raises:
            ConfigurationError: If dt is not positive. Controller state is
                not modified in that case.
        """
        if not dt > 0:
            raise ConfigurationError(f"PID time step must be positive, got {dt}")

        self.integral += error * dt
        derivative = (error - self.prev_error) / dt
        output = self.kp * error + self.ki * self.integral + self.kd * derivative
        self.prev_error = error
        return output

    def reset_state(self) -> None:
        """Clear integral and previous error, keeping the gains.

        Call this when restarting a simulation without losing tuning.
        """
        self.integral = 0.0
        self.prev_error = 0.0

    def set_gains(
        self, kp: Optional[float] = None, ki: Optional[float] = None, kd: Optional[float] = None
    ) -> None:
        """Update any subset of gains without touching controller state."""
        if kp is not None:
            self.kp = kp
        if ki is not None:
            self.ki = ki
        if kd is not None:
            self.kd = kd

    def get_diagnostics(self) -> Dict[str, float]:
        """Get diagnostic information for logging and debugging.

        Returns:
            Dictionary containing gains and internal state
        """
        return {
            "kp": self.kp,
            "ki": self.ki,
            "kd": self.kd,
            "integral": self.integral,
            "prev_error": self.prev_error,
        }
