"""Error types raised by the control and localization algorithms.

Hierarchy:
    RobotControlError
    ├── NumericalError
    │   ├── InverseFailedError   (fatal for the current control tick)
    │   └── NonConvergentError   (best-effort result attached)
    ├── DegenerateWeightsError   (all particle weights collapsed)
    └── ConfigurationError       (also a ValueError)
"""

from typing import Any, Optional


class RobotControlError(Exception):
    """Base class for all robot_control errors."""


class NumericalError(RobotControlError):
    """A numerical computation could not produce a trustworthy result."""


class InverseFailedError(NumericalError):
    """Pseudo-inverse could not be computed within tolerance.

    Callers should treat the controller as unavailable for this tick and
    fall back (hold the last command, switch controller, or halt).
    """


class NonConvergentError(NumericalError):
    """Riccati iteration hit max_iter without meeting the tolerance.

    Attributes:
        solution: The best-effort DareSolution reached before giving up.
    """

    def __init__(self, message: str, solution: Optional[Any] = None) -> None:
        super().__init__(message)
        self.solution = solution


class DegenerateWeightsError(RobotControlError):
    """Particle weights sum to zero (or a non-finite value)."""


class ConfigurationError(RobotControlError, ValueError):
    """Invalid parameter rejected at construction or configuration time."""
