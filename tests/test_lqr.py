"""
Unit tests for the Riccati solver and LQR controller.

scipy.linalg.solve_discrete_are serves as an independent reference solution.
"""

import logging

import numpy as np
import pytest
import scipy.linalg

from robot_control import lqr
from robot_control.errors import ConfigurationError, InverseFailedError, NonConvergentError
from robot_control.linalg import diag, frobenius_diff
from robot_control.lqr import (
    LQRController,
    LQRSettings,
    closed_loop_eigenvalues,
    gain_from_riccati,
    is_stable,
    iterate_dare,
    lqr_control,
    lqr_gain,
    riccati_step,
    solve_dare,
)
from robot_control.model import PendulumModel, discretize


@pytest.fixture
def scalar_system():
    """Unstable scalar plant x[k+1] = 1.1 x[k] + u[k] with unit costs"""
    return (np.array([[1.1]]), np.array([[1.0]]), np.array([[1.0]]), np.array([[1.0]]))


@pytest.fixture
def double_integrator():
    """Discrete double integrator with dt = 0.1 and identity costs"""
    A = np.array([[1.0, 0.1], [0.0, 1.0]])
    B = np.array([[0.0], [0.1]])
    return A, B, np.eye(2), np.array([[1.0]])


class TestRiccatiIteration:
    """Test suite for the DARE fixed-point iteration"""

    def test_residuals_decrease_monotonically(self, scalar_system) -> None:
        """Test that max|P[n+1] - P[n]| shrinks on every update"""
        A, B, Q, R = scalar_system
        solution = iterate_dare(A, B, Q, R, epsilon=1e-10, max_iter=200)

        assert solution.converged
        assert len(solution.residuals) == solution.iterations
        for prev, curr in zip(solution.residuals, solution.residuals[1:]):
            assert curr <= prev

    def test_frobenius_steps_shrink_on_decoupled_plant(self) -> None:
        """Test that ||P[n+1] - P[n]||_F shrinks on a two-input plant"""
        A = np.diag([1.1, 0.5])
        B = np.eye(2)
        Q = np.eye(2)
        R = np.eye(2)
        P = Q
        steps = []

        for _ in range(100):
            P_next = riccati_step(P, A, B, Q, R, 1e-9)
            steps.append(frobenius_diff(P_next, P))
            P = P_next
            if steps[-1] < 1e-9:
                break

        assert steps[-1] < 1e-9
        for prev, curr in zip(steps, steps[1:]):
            assert curr < prev

    def test_iterates_increase_in_loewner_order(self, double_integrator) -> None:
        """Test that P[n+1] - P[n] stays positive semi-definite from P0 = Q"""
        A, B, Q, R = double_integrator
        P = Q
        changes = []

        for _ in range(300):
            P_next = riccati_step(P, A, B, Q, R, 1e-9)
            D = P_next - P
            assert np.min(np.linalg.eigvalsh(0.5 * (D + D.T))) >= -1e-9
            changes.append(frobenius_diff(P_next, P))
            P = P_next

        assert changes[-1] < 1e-3 * changes[0]

    def test_idempotent_at_fixed_point(self, scalar_system) -> None:
        """Test that one more update moves a converged P by less than epsilon"""
        A, B, Q, R = scalar_system
        eps = 1e-6
        P = solve_dare(A, B, Q, R, epsilon=eps, max_iter=500)

        P_next = riccati_step(P, A, B, Q, R, eps)

        assert np.max(np.abs(P_next - P)) < eps

    def test_matches_scipy_reference(self, double_integrator) -> None:
        """Test agreement with scipy's DARE solver"""
        A, B, Q, R = double_integrator
        P = solve_dare(A, B, Q, R, epsilon=1e-9, max_iter=5000)
        P_ref = scipy.linalg.solve_discrete_are(A, B, Q, R)

        assert np.allclose(P, P_ref, rtol=1e-5, atol=1e-5)

    def test_scalar_matches_closed_form(self, scalar_system) -> None:
        """Test the scalar fixed point P = a²PR/(R+P) + Q"""
        A, B, Q, R = scalar_system
        P = solve_dare(A, B, Q, R, epsilon=1e-12, max_iter=500)[0, 0]

        assert P == pytest.approx(1.21 * P / (1.0 + P) + 1.0, abs=1e-9)

    def test_starts_from_q(self, scalar_system) -> None:
        """Test that a single update starts from P0 = Q"""
        A, B, Q, R = scalar_system
        solution = iterate_dare(A, B, Q, R, epsilon=1e-12, max_iter=1)

        # P1 = a² Q R / (R + Q) + Q = 1.21 / 2 + 1
        assert not solution.converged
        assert solution.residuals[0] == pytest.approx(0.605)
        assert np.allclose(solution.P, [[1.605]])

    def test_warm_start(self, scalar_system) -> None:
        """Test that seeding with the solution converges in one update"""
        A, B, Q, R = scalar_system
        P = solve_dare(A, B, Q, R, epsilon=1e-10, max_iter=500)

        solution = iterate_dare(A, B, Q, R, epsilon=1e-8, max_iter=500, P0=P)

        assert solution.converged
        assert solution.iterations == 1

    def test_shape_mismatch(self, scalar_system) -> None:
        """Test that Q must match the state dimension"""
        A, B, _, R = scalar_system
        with pytest.raises(ValueError):
            iterate_dare(A, B, np.eye(2), R)


class TestNonConvergence:
    """Test suite for exhausting max_iter"""

    def test_warns_and_returns_last_iterate(self, double_integrator, caplog) -> None:
        """Test the default best-effort behavior"""
        A, B, Q, R = double_integrator

        with caplog.at_level(logging.WARNING):
            P = solve_dare(A, B, Q, R, epsilon=1e-9, max_iter=2)

        assert P.shape == (2, 2)
        assert np.all(np.isfinite(P))
        assert "did not converge" in caplog.text

    def test_strict_raises_with_solution(self, double_integrator) -> None:
        """Test that strict mode raises and carries the partial solution"""
        A, B, Q, R = double_integrator

        with pytest.raises(NonConvergentError) as excinfo:
            solve_dare(A, B, Q, R, epsilon=1e-9, max_iter=2, strict=True)

        assert excinfo.value.solution is not None
        assert excinfo.value.solution.iterations == 2
        assert not excinfo.value.solution.converged


class TestInverseFailure:
    """Test suite for pseudo-inverse failures during iteration"""

    def test_zero_input_matrix_and_cost(self) -> None:
        """Test that R + BᵀPB = 0 aborts the iteration"""
        A, B = np.eye(2), np.zeros((2, 1))

        with pytest.raises(InverseFailedError):
            iterate_dare(A, B, np.eye(2), np.array([[0.0]]))


class TestGainAndControl:
    """Test suite for gain computation and the control law"""

    def test_gain_shape_and_sign(self, double_integrator) -> None:
        """Test K is m×n and u = -K x opposes a positive offset"""
        A, B, Q, R = double_integrator
        K = lqr_gain(A, B, Q, R, epsilon=1e-9, max_iter=5000)
        u = lqr_control([1.0, 0.0], A, B, Q, R, epsilon=1e-9, max_iter=5000)

        assert K.shape == (1, 2)
        assert u.shape == (1,)
        assert u[0] < 0.0
        assert np.allclose(u, -K @ np.array([1.0, 0.0]))

    def test_gain_matches_scipy(self, double_integrator) -> None:
        """Test the gain against K computed from scipy's P"""
        A, B, Q, R = double_integrator
        P_ref = scipy.linalg.solve_discrete_are(A, B, Q, R)
        K_ref = np.linalg.solve(R + B.T @ P_ref @ B, B.T @ P_ref @ A)

        K = lqr_gain(A, B, Q, R, epsilon=1e-9, max_iter=5000)

        assert np.allclose(K, K_ref, atol=1e-4)

    def test_closed_loop_is_stable(self, double_integrator) -> None:
        """Test that A - BK has all eigenvalues inside the unit disk"""
        A, B, Q, R = double_integrator
        K = lqr_gain(A, B, Q, R, epsilon=1e-9, max_iter=5000)

        assert is_stable(A, B, K)
        assert np.max(np.abs(closed_loop_eigenvalues(A, B, K))) < 1.0

    def test_pendulum_gain_is_stabilizing(self) -> None:
        """Test the default pendulum design at dt = 0.1"""
        A, B = discretize(PendulumModel(), 0.1)
        s = LQRSettings()
        P = solve_dare(A, B, s.Q, s.R, s.epsilon, s.max_iter)
        K = gain_from_riccati(P, A, B, s.R, s.epsilon)

        # Cart position is not penalized, so one eigenvalue may sit on the unit circle
        assert is_stable(A, B, K, tol=1e-6)


class TestLQRSettings:
    """Test suite for LQRSettings validation"""

    def test_defaults(self) -> None:
        """Test default weights and solver limits"""
        s = LQRSettings()

        assert np.array_equal(s.Q, diag(0, 1, 1, 0))
        assert np.array_equal(s.R, [[0.01]])
        assert s.epsilon == 0.01
        assert s.max_iter == 150

    @pytest.mark.parametrize(
        "changes",
        [
            {"Q": diag(1, -1, 1, 1)},
            {"R": [[0.0]]},
            {"R": [[-1.0]]},
            {"epsilon": 0.0},
            {"max_iter": 0},
            {"max_iter": 2.5},
        ],
    )
    def test_rejects_invalid_values(self, changes) -> None:
        """Test that invalid settings raise ConfigurationError"""
        with pytest.raises(ConfigurationError):
            LQRSettings(**changes)

    def test_cost_matrices_are_copied(self) -> None:
        """Test that later edits to the caller's arrays bypass nothing"""
        Q = diag(0, 1, 1, 0)
        R = np.array([[0.01]])
        s = LQRSettings(Q=Q, R=R)

        Q[1, 1] = -3.0
        R[0, 0] = -5.0

        assert s.R[0, 0] == 0.01
        assert s.Q[1, 1] == 1.0
        assert not np.shares_memory(s.R, R)

    def test_to_dict(self) -> None:
        """Test dictionary export for logging"""
        d = LQRSettings().to_dict()

        assert d["Q_diag"] == [0.0, 1.0, 1.0, 0.0]
        assert d["R_diag"] == [0.01]


class TestLQRController:
    """Test suite for the stateful LQR controller"""

    @pytest.fixture
    def controller(self) -> LQRController:
        """Create a controller for the default pendulum"""
        return LQRController()

    def test_diagnostics_before_first_call(self, controller: LQRController) -> None:
        """Test that diagnostics are empty until a gain is computed"""
        assert controller.get_diagnostics()["gain"] is None

    def test_control_and_diagnostics(self, controller: LQRController) -> None:
        """Test a control computation populates diagnostics"""
        u = controller.control(np.array([0.0, 0.0, 0.1, 0.0]), 0.1)
        diag_ = controller.get_diagnostics()

        assert isinstance(u, float)
        assert np.isfinite(u)
        assert diag_["iterations"] >= 1
        assert len(diag_["gain"]) == 4
        assert diag_["spectral_radius"] <= 1.0 + 1e-6

    def test_control_is_linear_in_state(self, controller: LQRController) -> None:
        """Test that doubling the state doubles the force"""
        x = np.array([0.1, -0.2, 0.05, 0.0])
        u1 = controller.control(x, 0.1)
        u2 = controller.control(2 * x, 0.1)

        assert u2 == pytest.approx(2 * u1)

    def test_configure_updates_settings(self, controller: LQRController) -> None:
        """Test that configure validates, applies and resets"""
        controller.control(np.zeros(4), 0.1)
        controller.configure(R=[[0.1]])

        assert controller.settings.R[0, 0] == 0.1
        assert controller.last_gain is None

    def test_configure_rejects_invalid(self, controller: LQRController) -> None:
        """Test that invalid changes leave settings untouched"""
        with pytest.raises(ConfigurationError):
            controller.configure(epsilon=-1.0)
        with pytest.raises(ConfigurationError):
            controller.configure(Q=np.eye(2))

        assert controller.settings.epsilon == 0.01
        assert controller.settings.Q.shape == (4, 4)

    def test_rejects_mismatched_costs(self) -> None:
        """Test that cost matrices must match the plant dimensions"""
        with pytest.raises(ConfigurationError):
            LQRController(settings=LQRSettings(Q=np.eye(2)))

    def test_inverse_failure_keeps_last_gain(self, controller: LQRController, monkeypatch) -> None:
        """Test that a failed computation leaves stored state untouched"""
        controller.control(np.zeros(4), 0.1)
        K = controller.last_gain.copy()

        def fail(matrix, epsilon):
            raise InverseFailedError("forced")

        monkeypatch.setattr(lqr, "pseudo_inverse", fail)

        with pytest.raises(InverseFailedError):
            controller.control(np.zeros(4), 0.1)
        assert np.array_equal(controller.last_gain, K)

    def test_warm_start_reduces_iterations(self) -> None:
        """Test that a warm-started controller converges faster on the next tick"""
        controller = LQRController(warm_start=True, settings=LQRSettings(max_iter=1000))
        controller.control(np.zeros(4), 0.1)
        cold = controller.last_solution.iterations

        controller.control(np.zeros(4), 0.1)

        assert controller.last_solution.iterations <= cold
