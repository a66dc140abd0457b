# Copyright (C) 2025 Gil Benezer
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Unit Tests for Adaptive Control Functions

Tests cover:
- Reference model matrices (1st and 2nd order)
- Bilinear discretization and the discrete reference step
- Adaptation input matrix
- Lyapunov equation solution and validation
- Trapezoidal adaptive law
- Output bounding and anti-windup offset
- Default combination law and state conversion

Test Structure:
- TestReferenceMatrices: build_reference_matrices()
- TestBilinearDiscretization: discretize_bilinear(), step_reference_model()
- TestAdaptionInputMatrix: build_adaption_input_matrix()
- TestLyapunov: solve_lyapunov(), check_lyapunov_pd(), check_lyapunov_decrease()
- TestAdaptiveLaw: trapezoidal_adaption_step()
- TestSaturation: bound_output(), anti_windup_offset()
- TestCombination: linear_combination(), bias_regressor(), as_state_vector()
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from mrac.control.adaptive_control_functions import (
    anti_windup_offset,
    as_state_vector,
    bias_regressor,
    bound_output,
    build_adaption_input_matrix,
    build_reference_matrices,
    check_lyapunov_decrease,
    check_lyapunov_pd,
    discretize_bilinear,
    linear_combination,
    solve_lyapunov,
    step_reference_model,
    trapezoidal_adaption_step,
)
from mrac.types import SaturationStatus

# ============================================================================
# Test Fixtures and Utilities
# ============================================================================


class AdaptiveControlTestCase(unittest.TestCase):
    """Base class with common reference models."""

    def setUp(self):
        # 1st order, tau = 0.5
        self.A1 = np.array([[-2.0]])
        self.B1 = np.array([[2.0]])

        # 2nd order, wn = 2, zeta = 0.7
        self.A2 = np.array([[0.0, 1.0], [-4.0, -2.8]])
        self.B2 = np.array([[0.0], [4.0]])

        self.rtol = 1e-7
        self.atol = 1e-10

    def assert_positive_definite(self, M: np.ndarray, name: str = "Matrix"):
        """Assert matrix is positive definite."""
        eigenvalues = np.linalg.eigvalsh(M)
        self.assertTrue(
            np.all(eigenvalues > 0),
            f"{name} is not positive definite. Min eigenvalue: {np.min(eigenvalues)}",
        )

    def assert_symmetric(self, M: np.ndarray, name: str = "Matrix"):
        """Assert matrix is symmetric."""
        assert_allclose(M, M.T, rtol=self.rtol, atol=self.atol, err_msg=f"{name} is not symmetric")


# ============================================================================
# Reference Model
# ============================================================================


class TestReferenceMatrices(AdaptiveControlTestCase):
    """Test continuous reference model construction."""

    def test_first_order(self):
        A, B = build_reference_matrices(1, time_constant=0.5)

        assert_allclose(A, self.A1)
        assert_allclose(B, self.B1)

    def test_second_order(self):
        A, B = build_reference_matrices(2, natural_frequency=2.0, damping_ratio=0.7)

        assert_allclose(A, self.A2)
        assert_allclose(B, self.B2)

    def test_unit_dc_gain(self):
        """-A^-1 B maps a constant command onto the first state only."""
        for A, B in (
            build_reference_matrices(1, time_constant=0.2),
            build_reference_matrices(2, natural_frequency=5.0, damping_ratio=0.9),
        ):
            steady_state = -np.linalg.solve(A, B)[:, 0]
            self.assertAlmostEqual(steady_state[0], 1.0)
            assert_allclose(steady_state[1:], 0.0, atol=1e-12)

    def test_unsupported_order(self):
        with self.assertRaises(ValueError):
            build_reference_matrices(3, time_constant=0.5)

    def test_non_positive_time_constant(self):
        for tau in (0.0, -0.5, 1e-9, None):
            with self.subTest(tau=tau):
                with self.assertRaises(ValueError):
                    build_reference_matrices(1, time_constant=tau)

    def test_non_positive_second_order_coefficients(self):
        with self.assertRaises(ValueError):
            build_reference_matrices(2, natural_frequency=0.0, damping_ratio=0.7)
        with self.assertRaises(ValueError):
            build_reference_matrices(2, natural_frequency=2.0, damping_ratio=-0.1)
        with self.assertRaises(ValueError):
            build_reference_matrices(2, natural_frequency=2.0)


# ============================================================================
# Bilinear Discretization
# ============================================================================


class TestBilinearDiscretization(AdaptiveControlTestCase):
    """Test discretize_bilinear() and the discrete reference step."""

    def assert_bilinear_identities(self, A, B, dt):
        model = discretize_bilinear(A, B, dt)
        I = np.eye(A.shape[0])
        lhs = I - dt / 2.0 * A

        assert_allclose(lhs @ model["matrix_a"], I + dt / 2.0 * A, rtol=1e-9, atol=1e-12)
        assert_allclose(lhs @ model["matrix_b"], dt * B, rtol=1e-9, atol=1e-12)
        self.assertEqual(model["dt"], dt)

    def test_first_order_values(self):
        model = discretize_bilinear(self.A1, self.B1, 0.01)

        assert_allclose(model["matrix_a"], [[0.99 / 1.01]])
        assert_allclose(model["matrix_b"], [[0.02 / 1.01]])

    def test_identities_first_order(self):
        for tau in (0.05, 0.5, 3.0):
            for dt in (0.001, 0.01, 0.1):
                with self.subTest(tau=tau, dt=dt):
                    A, B = build_reference_matrices(1, time_constant=tau)
                    self.assert_bilinear_identities(A, B, dt)

    def test_identities_second_order(self):
        for wn in (0.5, 2.0, 10.0):
            for zeta in (0.3, 0.7, 1.5):
                with self.subTest(wn=wn, zeta=zeta):
                    A, B = build_reference_matrices(2, natural_frequency=wn, damping_ratio=zeta)
                    self.assert_bilinear_identities(A, B, 0.01)

    def test_stable_model_stays_stable(self):
        """Hurwitz A maps inside the unit disk for any dt."""
        for dt in (0.001, 0.1, 10.0):
            model = discretize_bilinear(self.A2, self.B2, dt)
            self.assertTrue(np.all(np.abs(np.linalg.eigvals(model["matrix_a"])) < 1.0))

    def test_non_positive_dt(self):
        for dt in (0.0, -0.01):
            with self.subTest(dt=dt):
                with self.assertRaises(ValueError):
                    discretize_bilinear(self.A1, self.B1, dt)

    def test_singular_transform(self):
        """I - dt/2 A = 0 for A = 2 and dt = 1."""
        with self.assertRaises(np.linalg.LinAlgError):
            discretize_bilinear(np.array([[2.0]]), np.array([[1.0]]), 1.0)

    def test_shape_mismatch(self):
        with self.assertRaises(ValueError):
            discretize_bilinear(self.A2, self.B1, 0.01)
        with self.assertRaises(ValueError):
            discretize_bilinear(np.zeros((2, 3)), self.B2, 0.01)

    def test_step_reference_model(self):
        model = discretize_bilinear(self.A1, self.B1, 0.01)
        x_ref = step_reference_model(
            model["matrix_a"], model["matrix_b"], np.array([0.5]), 1.0, 0.0
        )

        expected = model["matrix_a"] @ [0.5] + model["matrix_b"][:, 0] * 0.5
        assert_allclose(x_ref, expected)

    def test_step_reference_model_converges_to_command(self):
        model = discretize_bilinear(self.A2, self.B2, 0.01)
        x_ref = np.zeros(2)
        for _ in range(2000):
            x_ref = step_reference_model(model["matrix_a"], model["matrix_b"], x_ref, 0.8, 0.8)

        assert_allclose(x_ref, [0.8, 0.0], atol=1e-6)


# ============================================================================
# Adaptation Input Matrix
# ============================================================================


class TestAdaptionInputMatrix(AdaptiveControlTestCase):

    def test_first_order(self):
        assert_allclose(build_adaption_input_matrix(1), [[1.0]])

    def test_second_order(self):
        assert_allclose(build_adaption_input_matrix(2, natural_frequency=3.0), [[0.0], [9.0]])

    def test_second_order_requires_frequency(self):
        with self.assertRaises(ValueError):
            build_adaption_input_matrix(2)

    def test_unsupported_order(self):
        with self.assertRaises(ValueError):
            build_adaption_input_matrix(0)


# ============================================================================
# Lyapunov
# ============================================================================


class TestLyapunov(AdaptiveControlTestCase):
    """Test the Lyapunov solution and its validation."""

    def test_scalar_solution(self):
        """-2P - 2P = -1 gives P = 0.25."""
        sol = solve_lyapunov(self.A1)

        assert_allclose(sol["matrix_p"], [[0.25]])
        assert_allclose(sol["matrix_q"], np.eye(1))
        self.assertTrue(sol["is_positive_definite"])
        self.assertLess(sol["residual"], 1e-12)

    def test_second_order_solution(self):
        Q = np.diag([2.0, 0.5])
        sol = solve_lyapunov(self.A2, Q)
        P = sol["matrix_p"]

        assert_allclose(self.A2.T @ P + P @ self.A2, -Q, atol=1e-10)
        self.assert_symmetric(P, "P")
        self.assert_positive_definite(P, "P")

    def test_wrong_weight_shape(self):
        with self.assertRaises(ValueError):
            solve_lyapunov(self.A2, np.eye(3))

    def test_unstable_model_not_positive_definite(self):
        sol = solve_lyapunov(np.array([[1.0]]))

        self.assertFalse(sol["is_positive_definite"])

    def test_pd_identity(self):
        self.assertTrue(check_lyapunov_pd(self.A2, np.eye(2)))

    def test_pd_rejects_non_symmetric(self):
        self.assertFalse(check_lyapunov_pd(self.A2, np.array([[1.0, 0.5], [0.0, 1.0]])))

    def test_pd_rejects_indefinite(self):
        self.assertFalse(check_lyapunov_pd(self.A2, np.diag([1.0, -1.0])))

    def test_pd_rejects_semidefinite(self):
        self.assertFalse(check_lyapunov_pd(self.A2, np.diag([1.0, 0.0])))

    def test_pd_rejects_wrong_shape(self):
        self.assertFalse(check_lyapunov_pd(self.A2, np.eye(1)))
        self.assertFalse(check_lyapunov_pd(self.A1, np.eye(2)))

    def test_pd_rejects_non_finite(self):
        self.assertFalse(check_lyapunov_pd(self.A1, np.array([[np.nan]])))

    def test_decrease_condition(self):
        P = solve_lyapunov(self.A2)["matrix_p"]

        self.assertTrue(check_lyapunov_decrease(self.A2, P))
        self.assertFalse(check_lyapunov_decrease(self.A1, np.array([[-1.0]])))
        self.assertFalse(check_lyapunov_decrease(self.A1, np.eye(2)))


# ============================================================================
# Adaptive Law
# ============================================================================


class TestAdaptiveLaw(AdaptiveControlTestCase):

    def test_trapezoidal_step(self):
        law = trapezoidal_adaption_step(
            np.array([1.0]), np.array([0.2]), np.array([0.0]), np.array([[10.0]]), 0.01
        )

        assert_allclose(law, [1.01])

    def test_zero_gain_keeps_law(self):
        law_previous = np.array([0.3, -1.2])
        law = trapezoidal_adaption_step(
            law_previous, np.array([5.0, 2.0]), np.array([-3.0, 7.0]), np.zeros((2, 2)), 0.01
        )

        assert_allclose(law, law_previous)

    def test_diagonal_gain_per_component(self):
        law = trapezoidal_adaption_step(
            np.zeros(2), np.array([1.0, 1.0]), np.array([1.0, 1.0]), np.diag([1.0, 3.0]), 0.1
        )

        assert_allclose(law, [0.1, 0.3])


# ============================================================================
# Saturation and Anti-Windup
# ============================================================================


class TestSaturation(AdaptiveControlTestCase):

    def test_bound_output(self):
        self.assertEqual(bound_output(1.5, 1.0, -1.0), (1.0, SaturationStatus.HIGH))
        self.assertEqual(bound_output(-2.0, 1.0, -1.0), (-1.0, SaturationStatus.LOW))
        self.assertEqual(bound_output(0.2, 1.0, -1.0), (0.2, SaturationStatus.NONE))

    def test_bound_output_on_bound_is_not_saturated(self):
        self.assertEqual(bound_output(1.0, 1.0, -1.0), (1.0, SaturationStatus.NONE))

    def test_bound_output_infinite_bounds(self):
        self.assertEqual(bound_output(1e12, np.inf, -np.inf), (1e12, SaturationStatus.NONE))

    def test_status_values(self):
        self.assertEqual(int(SaturationStatus.HIGH), 1)
        self.assertEqual(int(SaturationStatus.NONE), 0)
        self.assertEqual(int(SaturationStatus.LOW), -1)

    def test_anti_windup_offset_opposes_overshoot(self):
        self.assertEqual(anti_windup_offset(3.0, 1.0, -1.0), -2.0)
        self.assertEqual(anti_windup_offset(-1.5, 1.0, -1.0), 0.5)
        self.assertEqual(anti_windup_offset(0.5, 1.0, -1.0), 0.0)

    def test_anti_windup_offset_inverted_bounds(self):
        with self.assertRaises(ValueError):
            anti_windup_offset(0.0, -1.0, 1.0)


# ============================================================================
# Combination Law
# ============================================================================


class TestCombination(AdaptiveControlTestCase):

    def test_default_gains_pass_command_through(self):
        u = linear_combination(np.zeros(2), 1.0, 0.0, np.array([3.0, -4.0]), 0.7, 1.0)

        self.assertAlmostEqual(u, 0.7)

    def test_linear_combination(self):
        u = linear_combination(np.array([-2.0]), 4.0, 0.5, np.array([0.5]), 1.0, 1.0)

        self.assertAlmostEqual(u, -1.0 + 4.0 - 0.5)

    def test_bias_regressor(self):
        self.assertEqual(bias_regressor(np.array([10.0, -3.0])), 1.0)

    def test_as_state_vector(self):
        assert_allclose(as_state_vector(0.3, 1), [0.3])
        assert_allclose(as_state_vector([[1.0], [2.0]], 2), [1.0, 2.0])

    def test_as_state_vector_wrong_size(self):
        with self.assertRaises(ValueError):
            as_state_vector([1.0, 2.0], 1)


if __name__ == "__main__":
    unittest.main()
