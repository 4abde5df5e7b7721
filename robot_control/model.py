"""
Inverted pendulum on a cart: linear state-space model.

This module provides the linearized continuous-time model of a cart carrying
an inverted pendulum, and its first-order (Euler) discretization into the
pair (A, B) used by the controllers:

    x[k+1] = A x[k] + B u[k]

State vector: [x, x_dot, theta, theta_dot]
    x:         cart position (m)
    x_dot:     cart velocity (m/s)
    theta:     bar angle from upright (rad)
    theta_dot: bar angular velocity (rad/s)

Input: horizontal force on the cart (N).
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

import numpy as np

from .config import GRAVITY, PENDULUM_L_BAR, PENDULUM_M_BALL, PENDULUM_M_CART
from .errors import ConfigurationError
from .linalg import as_matrix, eye, mat_vec

NX = 4  # Number of states
NU = 1  # Number of inputs


@dataclass
class PendulumModel:
    """Physical parameters of the cart-pendulum."""

    l_bar: float = PENDULUM_L_BAR  # m, length of bar
    m_cart: float = PENDULUM_M_CART  # kg, mass of cart
    m_ball: float = PENDULUM_M_BALL  # kg, mass of ball
    g: float = GRAVITY  # m/s²

    def __post_init__(self) -> None:
        """Reject non-physical parameters"""
        for name in ("l_bar", "m_cart", "m_ball", "g"):
            value = getattr(self, name)
            if not value > 0:
                raise ConfigurationError(f"PendulumModel.{name} must be positive, got {value}")

    def continuous_matrices(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Continuous-time system matrices linearized about the upright position.

        Returns:
            Tuple of (A_c, B_c) with shapes (4, 4) and (4, 1)
        """
        l, M, m, g = self.l_bar, self.m_cart, self.m_ball, self.g

        A_c = np.array([
            [0.0, 1.0, 0.0, 0.0],
            [0.0, 0.0, m * g / M, 0.0],
            [0.0, 0.0, 0.0, 1.0],
            [0.0, 0.0, g * (M + m) / (l * M), 0.0],
        ])
        B_c = np.array([
            [0.0],
            [1.0 / M],
            [0.0],
            [1.0 / (l * M)],
        ])
        return A_c, B_c

    def step(self, x: np.ndarray, u: float, A: np.ndarray, B: np.ndarray) -> np.ndarray:
        """
        Advance the state one tick: x[k+1] = A x[k] + B u[k].

        Args:
            x: Current state (4,)
            u: Control force (scalar or length-1 array)
            A: Discrete state matrix (4, 4)
            B: Discrete input matrix (4, 1)

        Returns:
            Next state (4,)
        """
        u_vec = np.atleast_1d(np.asarray(u, dtype=np.float64))
        return mat_vec(A, x) + mat_vec(B, u_vec)

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for logging."""
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "PendulumModel":
        """Build a model from a dictionary, ignoring unknown keys."""
        known = {k: float(v) for k, v in values.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def euler_discretize(
    A_c: np.ndarray, B_c: np.ndarray, dt: float
) -> Tuple[np.ndarray, np.ndarray]:
    """
    First-order discretization of a continuous linear system.

        A_d = I + A_c * dt
        B_d = B_c * dt

    Args:
        A_c: Continuous state matrix (n, n)
        B_c: Continuous input matrix (n, m)
        dt: Sample interval (s)

    Returns:
        Tuple of (A_d, B_d)

    Raises:
        ConfigurationError: If dt is not positive
    """
    if not dt > 0:
        raise ConfigurationError(f"Sample interval dt must be positive, got {dt}")

    A_c = as_matrix(A_c)
    B_c = as_matrix(B_c)
    if A_c.shape[0] != A_c.shape[1] or B_c.shape[0] != A_c.shape[0]:
        raise ValueError(f"Incompatible system shapes: A {A_c.shape}, B {B_c.shape}")

    return eye(A_c.shape[0]) + A_c * dt, B_c * dt


def discretize(model: PendulumModel, dt: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Discretized (A, B) pair of the cart-pendulum for sample interval dt.

    Pure function of its inputs: the same model and dt always yield the
    same matrices.

    Example:
        >>> A, B = discretize(PendulumModel(), 0.1)
        >>> A.shape, B.shape
        ((4, 4), (4, 1))
    """
    A_c, B_c = model.continuous_matrices()
    return euler_discretize(A_c, B_c, dt)
