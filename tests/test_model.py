"""
Unit tests for the cart-pendulum model.
"""

import numpy as np
import pytest

from robot_control.errors import ConfigurationError
from robot_control.model import NU, NX, PendulumModel, discretize, euler_discretize


class TestPendulumModel:
    """Test suite for PendulumModel"""

    @pytest.fixture
    def model(self) -> PendulumModel:
        """Create a model with default parameters"""
        return PendulumModel()

    def test_default_parameters(self, model: PendulumModel) -> None:
        """Test default physical constants"""
        assert model.l_bar == 2.0
        assert model.m_cart == 1.0
        assert model.m_ball == 1.0
        assert model.g == 9.81

    def test_continuous_matrices(self, model: PendulumModel) -> None:
        """Test linearized matrices for the default parameters"""
        A_c, B_c = model.continuous_matrices()

        assert A_c.shape == (NX, NX)
        assert B_c.shape == (NX, NU)
        assert A_c[0, 1] == 1.0
        assert A_c[1, 2] == pytest.approx(9.81)  # m g / M
        assert A_c[2, 3] == 1.0
        assert A_c[3, 2] == pytest.approx(9.81)  # g (M + m) / (l M)
        assert np.allclose(B_c.ravel(), [0.0, 1.0, 0.0, 0.5])

    @pytest.mark.parametrize("field", ["l_bar", "m_cart", "m_ball", "g"])
    def test_rejects_non_positive_parameters(self, field: str) -> None:
        """Test that non-physical parameters raise ConfigurationError"""
        with pytest.raises(ConfigurationError):
            PendulumModel(**{field: 0.0})

    def test_step(self, model: PendulumModel) -> None:
        """Test one linear step from rest with unit force"""
        A, B = discretize(model, 0.1)
        x_next = model.step(np.zeros(4), 1.0, A, B)

        assert x_next.shape == (4,)
        assert np.allclose(x_next, [0.0, 0.1, 0.0, 0.05])

    def test_dict_round_trip(self, model: PendulumModel) -> None:
        """Test that from_dict ignores unknown keys"""
        values = model.to_dict()
        values["unused"] = 3
        values["l_bar"] = 1.5

        restored = PendulumModel.from_dict(values)

        assert restored.l_bar == 1.5
        assert restored.m_cart == model.m_cart


class TestDiscretization:
    """Test suite for Euler discretization"""

    def test_euler_formula(self) -> None:
        """Test A_d = I + A_c dt and B_d = B_c dt"""
        A_c = np.array([[0.0, 1.0], [-2.0, -3.0]])
        B_c = np.array([[0.0], [1.0]])

        A_d, B_d = euler_discretize(A_c, B_c, 0.5)

        assert np.allclose(A_d, [[1.0, 0.5], [-1.0, -0.5]])
        assert np.allclose(B_d, [[0.0], [0.5]])

    @pytest.mark.parametrize("dt", [0.0, -0.1])
    def test_rejects_non_positive_dt(self, dt: float) -> None:
        """Test that dt <= 0 raises ConfigurationError"""
        with pytest.raises(ConfigurationError):
            discretize(PendulumModel(), dt)

    def test_rejects_incompatible_shapes(self) -> None:
        """Test that B must have as many rows as A"""
        with pytest.raises(ValueError):
            euler_discretize(np.eye(3), np.ones((2, 1)), 0.1)

    def test_pure_function(self) -> None:
        """Test that the same inputs give the same matrices"""
        A1, B1 = discretize(PendulumModel(), 0.1)
        A2, B2 = discretize(PendulumModel(), 0.1)

        assert np.array_equal(A1, A2)
        assert np.array_equal(B1, B2)
