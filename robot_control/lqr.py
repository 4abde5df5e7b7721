"""Discrete-time LQR control via fixed-point Riccati iteration.

Solves the infinite-horizon problem

    minimize   sum_k  x[k]ᵀ Q x[k] + u[k]ᵀ R u[k]
    subject to x[k+1] = A x[k] + B u[k]

by iterating the Discrete Algebraic Riccati Equation (DARE) from P0 = Q:

    P[n+1] = AᵀPA - (AᵀPB)(R + BᵀPB)⁺(BᵀPA) + Q

until the largest absolute entry of P[n+1] - P[n] falls below epsilon.
The optimal gain and control law are then

    K = (R + BᵀPB)⁺(BᵀPA)
    u = -K x

where ⁺ is a pseudo-inverse that discards singular values <= epsilon.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .config import LQR_EPSILON, LQR_MAX_ITER, LQR_Q_DIAG, LQR_R_DIAG
from .errors import ConfigurationError, NonConvergentError
from .linalg import (
    as_matrix,
    diag,
    is_positive_definite,
    is_positive_semidefinite,
    max_abs_diff,
    pseudo_inverse,
    spectral_radius,
)
from .model import PendulumModel, discretize


@dataclass
class DareSolution:
    """Result of a Riccati iteration.

    Attributes:
        P: Final Riccati matrix (converged, or the last iterate)
        iterations: Number of Riccati updates performed
        converged: True if the tolerance was met before max_iter
        residuals: max|P[n+1] - P[n]| for every update, in order
    """

    P: np.ndarray
    iterations: int
    converged: bool
    residuals: List[float] = field(default_factory=list)

    @property
    def residual(self) -> float:
        """Residual of the final update (inf if no update ran)."""
        return self.residuals[-1] if self.residuals else float("inf")


def _check_system(A, B, Q, R):
    """Convert inputs to matrices and verify their shapes agree."""
    A, B, Q, R = as_matrix(A), as_matrix(B), as_matrix(Q), as_matrix(R)
    n, m = B.shape
    if A.shape != (n, n):
        raise ValueError(f"A must be {n}x{n} to match B {B.shape}, got {A.shape}")
    if Q.shape != (n, n):
        raise ValueError(f"Q must be {n}x{n}, got {Q.shape}")
    if R.shape != (m, m):
        raise ValueError(f"R must be {m}x{m}, got {R.shape}")
    return A, B, Q, R


def riccati_step(
    P: np.ndarray,
    A: np.ndarray,
    B: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    epsilon: float,
) -> np.ndarray:
    """Apply one DARE update to P.

    Raises:
        InverseFailedError: If R + BᵀPB cannot be pseudo-inverted
    """
    AT = A.T
    BT = B.T
    inv = pseudo_inverse(R + BT @ P @ B, epsilon)
    return AT @ P @ A - (AT @ P @ B) @ inv @ (BT @ P @ A) + Q


def iterate_dare(
    A: np.ndarray,
    B: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    epsilon: float = LQR_EPSILON,
    max_iter: int = LQR_MAX_ITER,
    P0: Optional[np.ndarray] = None,
) -> DareSolution:
    """Run the Riccati fixed-point iteration and report how it went.

    Args:
        A: Discrete state matrix (n, n)
        B: Discrete input matrix (n, m)
        Q: State cost (n, n), symmetric PSD
        R: Input cost (m, m), symmetric PD
        epsilon: Convergence tolerance and pseudo-inverse cutoff
        max_iter: Maximum number of updates
        P0: Optional warm start. Defaults to Q.

    Returns:
        DareSolution holding P[n+1] on convergence, or the last iterate

    Raises:
        InverseFailedError: If a pseudo-inverse fails during iteration
    """
    A, B, Q, R = _check_system(A, B, Q, R)
    P = Q.copy() if P0 is None else as_matrix(P0).copy()
    if P.shape != Q.shape:
        raise ValueError(f"Warm start P0 must have shape {Q.shape}, got {P.shape}")

    residuals: List[float] = []
    for i in range(1, max_iter + 1):
        P_next = riccati_step(P, A, B, Q, R, epsilon)
        residual = max_abs_diff(P_next, P)
        residuals.append(residual)
        if residual < epsilon:
            return DareSolution(P=P_next, iterations=i, converged=True, residuals=residuals)
        P = P_next

    return DareSolution(P=P, iterations=max_iter, converged=False, residuals=residuals)


def _accept(solution: DareSolution, epsilon: float, strict: bool) -> np.ndarray:
    """Surface non-convergence as a warning (or an error when strict)."""
    if not solution.converged:
        message = (
            f"DARE did not converge in {solution.iterations} iterations "
            f"(residual {solution.residual:.3e} >= epsilon {epsilon:.3e})"
        )
        if strict:
            raise NonConvergentError(message, solution)
        logging.warning(message)
    return solution.P


def solve_dare(
    A: np.ndarray,
    B: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    epsilon: float = LQR_EPSILON,
    max_iter: int = LQR_MAX_ITER,
    P0: Optional[np.ndarray] = None,
    strict: bool = False,
) -> np.ndarray:
    """Solve the discrete-time algebraic Riccati equation.

    Returns the best-effort P when max_iter is exhausted and logs a warning.
    With strict=True a NonConvergentError is raised instead.

    Raises:
        InverseFailedError: If a pseudo-inverse fails during iteration
        NonConvergentError: If strict and the tolerance was not met
    """
    solution = iterate_dare(A, B, Q, R, epsilon, max_iter, P0)
    return _accept(solution, epsilon, strict)


def gain_from_riccati(
    P: np.ndarray, A: np.ndarray, B: np.ndarray, R: np.ndarray, epsilon: float
) -> np.ndarray:
    """K = (R + BᵀPB)⁺(BᵀPA), shape (m, n)."""
    BT = B.T
    inv = pseudo_inverse(BT @ P @ B + R, epsilon)
    return inv @ (BT @ P @ A)


def lqr_gain(
    A: np.ndarray,
    B: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    epsilon: float = LQR_EPSILON,
    max_iter: int = LQR_MAX_ITER,
) -> np.ndarray:
    """Infinite-horizon discrete LQR gain K (m, n).

    Raises:
        InverseFailedError: If R + BᵀPB cannot be pseudo-inverted
    """
    A, B, Q, R = _check_system(A, B, Q, R)
    P = solve_dare(A, B, Q, R, epsilon, max_iter)
    return gain_from_riccati(P, A, B, R, epsilon)


def lqr_control(
    x: np.ndarray,
    A: np.ndarray,
    B: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    epsilon: float = LQR_EPSILON,
    max_iter: int = LQR_MAX_ITER,
) -> np.ndarray:
    """Optimal control u = -K x, shape (m,).

    Raises:
        InverseFailedError: If R + BᵀPB cannot be pseudo-inverted
    """
    K = lqr_gain(A, B, Q, R, epsilon, max_iter)
    return -K @ np.asarray(x, dtype=np.float64).ravel()


def closed_loop_eigenvalues(A: np.ndarray, B: np.ndarray, K: np.ndarray) -> np.ndarray:
    """Eigenvalues of A - BK."""
    return np.linalg.eigvals(as_matrix(A) - as_matrix(B) @ as_matrix(K))


def is_stable(A: np.ndarray, B: np.ndarray, K: np.ndarray, tol: float = 1e-9) -> bool:
    """True when every closed-loop eigenvalue lies in the closed unit disk."""
    return spectral_radius(as_matrix(A) - as_matrix(B) @ as_matrix(K)) <= 1.0 + tol


@dataclass
class LQRSettings:
    """Tunable LQR cost weights and solver settings."""

    Q: np.ndarray = field(default_factory=lambda: diag(LQR_Q_DIAG))
    R: np.ndarray = field(default_factory=lambda: diag(LQR_R_DIAG))
    epsilon: float = LQR_EPSILON
    max_iter: int = LQR_MAX_ITER

    def __post_init__(self) -> None:
        """Validate cost matrices and solver limits"""
        self.Q = as_matrix(self.Q).copy()
        self.R = as_matrix(self.R).copy()

        if self.Q.shape[0] != self.Q.shape[1] or not is_positive_semidefinite(self.Q):
            raise ConfigurationError(f"Q must be symmetric positive semi-definite, got\n{self.Q}")
        if self.R.shape[0] != self.R.shape[1] or not is_positive_definite(self.R):
            raise ConfigurationError(f"R must be symmetric positive definite, got\n{self.R}")
        if not self.epsilon > 0:
            raise ConfigurationError(f"epsilon must be positive, got {self.epsilon}")
        if int(self.max_iter) != self.max_iter or self.max_iter <= 0:
            raise ConfigurationError(f"max_iter must be a positive integer, got {self.max_iter}")
        self.max_iter = int(self.max_iter)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "Q_diag": np.diag(self.Q).tolist(),
            "R_diag": np.diag(self.R).tolist(),
            "epsilon": self.epsilon,
            "max_iter": self.max_iter,
        }


class LQRController:
    """LQR state-feedback controller for the cart-pendulum.

    The gain is recomputed from scratch on every call to control(), since dt
    may change between ticks. With warm_start=True the previous Riccati
    solution seeds the next iteration instead of Q.

    Attributes:
        model: Physical plant parameters
        settings: Cost weights and solver settings
        warm_start: Reuse the last Riccati solution as P0
        last_gain: Gain from the most recent successful computation
        last_solution: DareSolution from the most recent successful computation
    """

    def __init__(
        self,
        model: Optional[PendulumModel] = None,
        settings: Optional[LQRSettings] = None,
        warm_start: bool = False,
        strict: bool = False,
    ) -> None:
        """Initialize the controller.

        Args:
            model: Plant parameters. Default: PendulumModel()
            settings: LQR settings. Default: LQRSettings()
            warm_start: Seed each Riccati iteration with the previous P
            strict: Raise NonConvergentError instead of warning

        Raises:
            ConfigurationError: If the cost matrices do not match the plant
        """
        self.model = model if model is not None else PendulumModel()
        self.settings = settings if settings is not None else LQRSettings()
        self.warm_start = warm_start
        self.strict = strict
        self._check_dimensions(self.settings)

        self.last_gain: Optional[np.ndarray] = None
        self.last_solution: Optional[DareSolution] = None
        self._last_A: Optional[np.ndarray] = None
        self._last_B: Optional[np.ndarray] = None

    def _check_dimensions(self, settings: LQRSettings) -> None:
        _, B_c = self.model.continuous_matrices()
        n, m = B_c.shape
        if settings.Q.shape != (n, n) or settings.R.shape != (m, m):
            raise ConfigurationError(
                f"Cost matrices Q {settings.Q.shape} / R {settings.R.shape} "
                f"do not match a plant with {n} states and {m} inputs"
            )

    def gain(self, dt: float) -> np.ndarray:
        """Compute the LQR gain for the plant discretized at dt.

        Raises:
            InverseFailedError: If the pseudo-inverse fails; the controller's
                stored state is left untouched.
        """
        A, B = discretize(self.model, dt)
        s = self.settings
        P0 = None
        if self.warm_start and self.last_solution is not None:
            P0 = self.last_solution.P

        solution = iterate_dare(A, B, s.Q, s.R, s.epsilon, s.max_iter, P0)
        P = _accept(solution, s.epsilon, self.strict)
        K = gain_from_riccati(P, A, B, s.R, s.epsilon)

        self.last_solution = solution
        self.last_gain = K
        self._last_A, self._last_B = A, B
        return K

    def control(self, x: np.ndarray, dt: float) -> float:
        """Compute the control force u = -K x for state x."""
        K = self.gain(dt)
        u = -K @ np.asarray(x, dtype=np.float64).ravel()
        return float(u[0])

    def configure(self, **changes: Any) -> None:
        """Update settings (Q, R, epsilon, max_iter) with validation.

        Invalid values raise ConfigurationError and leave the current
        settings in place.
        """
        new_settings = dataclasses.replace(self.settings, **changes)
        self._check_dimensions(new_settings)
        self.settings = new_settings
        self.reset()

    def reset(self) -> None:
        """Drop cached gain and warm-start state."""
        self.last_gain = None
        self.last_solution = None
        self._last_A = None
        self._last_B = None

    def get_diagnostics(self) -> Dict[str, Any]:
        """Get diagnostic information for logging and debugging.

        Returns:
            Dictionary containing solver iterations, convergence flag, final
            residual, gain and closed-loop spectral radius (None before the
            first successful control computation).
        """
        if self.last_solution is None or self.last_gain is None:
            return {
                "iterations": None,
                "converged": None,
                "residual": None,
                "gain": None,
                "spectral_radius": None,
            }
        return {
            "iterations": self.last_solution.iterations,
            "converged": self.last_solution.converged,
            "residual": self.last_solution.residual,
            "gain": self.last_gain.ravel().tolist(),
            "spectral_radius": spectral_radius(self._last_A - self._last_B @ self.last_gain),
        }
