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
Adaptive Control Functions

Pure stateless functions behind the Model Reference Adaptive Controller:

**Model Building:**
- Reference model matrices - 1st and 2nd order
- Bilinear (Tustin) discretization
- Adaptation input matrix
- Algebraic Lyapunov equation

**Validation:**
- Lyapunov solution positive definiteness
- Lyapunov decrease condition

**Per-Cycle Numerics:**
- Trapezoidal adaptive law step
- Output bounding and anti-windup offset
- Default combination law and nonlinear regressor

All functions are pure (no side effects, no state) and work like scipy.
Invalid arguments raise ValueError; singular matrices raise
numpy.linalg.LinAlgError. The controller turns both into Status results.

Mathematical Background
-----------------------
Reference models:
    1st order: dx/dt = -x/tau + r/tau
    2nd order: d2x/dt2 = -2 zeta wn dx/dt - wn^2 x + wn^2 r

Bilinear transform (s = 2/dt (z-1)/(z+1)):
    A_d = (I - dt/2 A)^-1 (I + dt/2 A)
    B_d = (I - dt/2 A)^-1 dt B

Lyapunov equation:
    A' P + P A = -Q,  P = P' > 0  iff  A is Hurwitz (for Q > 0)

Trapezoidal adaptive law:
    K[k] = K[k-1] + dt/2 Gamma (s[k] + s[k-1])

Usage
-----
>>> from mrac.control.adaptive_control_functions import (
...     build_reference_matrices,
...     discretize_bilinear,
...     solve_lyapunov,
... )
>>> A, B = build_reference_matrices(1, time_constant=0.5)
>>> model = discretize_bilinear(A, B, dt=0.01)
>>> sol = solve_lyapunov(A)
>>> sol['is_positive_definite']
True
"""

from typing import Optional, Tuple

import numpy as np
from scipy import linalg

from mrac.types.adaptive_control import (
    DiscreteReferenceModel,
    LyapunovSolution,
    SaturationStatus,
)
from mrac.types.core import (
    ArrayLike,
    CostMatrix,
    GainMatrix,
    InputMatrix,
    LyapunovMatrix,
    StateMatrix,
    StateVector,
)

SUPPORTED_MODEL_ORDERS = (1, 2)

# Coefficients below this are treated as non-positive
COEFFICIENT_EPSILON = 1e-6

# ============================================================================
# Reference Model
# ============================================================================


def build_reference_matrices(
    model_order: int,
    time_constant: Optional[float] = None,
    natural_frequency: Optional[float] = None,
    damping_ratio: Optional[float] = None,
) -> Tuple[StateMatrix, InputMatrix]:
    """
    Build the continuous-time reference model (A_ref, B_ref).

    Parameters
    ----------
    model_order : int
        1 or 2
    time_constant : Optional[float]
        tau > 0, required for order 1
    natural_frequency : Optional[float]
        wn > 0, required for order 2
    damping_ratio : Optional[float]
        zeta > 0, required for order 2

    Returns
    -------
    Tuple[StateMatrix, InputMatrix]
        A_ref (n, n) and B_ref (n, 1)

    Raises
    ------
    ValueError
        If the order is unsupported or a required coefficient is missing
        or non-positive

    Examples
    --------
    >>> A, B = build_reference_matrices(1, time_constant=0.5)
    >>> A  # array([[-2.]])
    >>>
    >>> A, B = build_reference_matrices(2, natural_frequency=2.0, damping_ratio=0.7)
    >>> A  # array([[ 0. ,  1. ], [-4. , -2.8]])
    >>> B  # array([[0.], [4.]])

    Notes
    -----
    Both models have unit DC gain, so a constant command r drives the
    reference state to [r] (order 1) or [r, 0] (order 2).
    """
    if model_order not in SUPPORTED_MODEL_ORDERS:
        raise ValueError(
            f"model_order must be one of {SUPPORTED_MODEL_ORDERS}, got {model_order}"
        )

    if model_order == 1:
        if time_constant is None or not time_constant > COEFFICIENT_EPSILON:
            raise ValueError(
                f"1st-order reference model requires a positive time constant, got {time_constant}"
            )
        A = np.array([[-1.0 / time_constant]])
        B = np.array([[1.0 / time_constant]])
        return A, B

    if natural_frequency is None or not natural_frequency > COEFFICIENT_EPSILON:
        raise ValueError(
            f"2nd-order reference model requires a positive natural frequency, got {natural_frequency}"
        )
    if damping_ratio is None or not damping_ratio > COEFFICIENT_EPSILON:
        raise ValueError(
            f"2nd-order reference model requires a positive damping ratio, got {damping_ratio}"
        )

    wn_sq = natural_frequency * natural_frequency
    A = np.array([[0.0, 1.0], [-wn_sq, -2.0 * damping_ratio * natural_frequency]])
    B = np.array([[0.0], [wn_sq]])
    return A, B


def discretize_bilinear(A: StateMatrix, B: InputMatrix, dt: float) -> DiscreteReferenceModel:
    """
    Discretize (A, B) with the bilinear (trapezoidal) transform.

        A_d = (I - dt/2 A)^-1 (I + dt/2 A)
        B_d = (I - dt/2 A)^-1 dt B

    Parameters
    ----------
    A : StateMatrix
        Continuous state matrix (n, n)
    B : InputMatrix
        Continuous input matrix (n, 1)
    dt : float
        Sampling interval, must be positive

    Returns
    -------
    DiscreteReferenceModel
        Dictionary with 'matrix_a', 'matrix_b' and 'dt'

    Raises
    ------
    ValueError
        If dt is not positive or shapes are inconsistent
    LinAlgError
        If (I - dt/2 A) is singular or numerically singular

    Examples
    --------
    >>> A, B = build_reference_matrices(1, time_constant=0.5)
    >>> model = discretize_bilinear(A, B, dt=0.01)
    >>> model['matrix_a']  # array([[0.98019802]])

    Notes
    -----
    The bilinear transform maps the open left half-plane onto the open
    unit disk, so a stable reference model stays stable for any dt > 0.
    The inverse is computed here, once per dt, and never inside the
    control cycle.
    """
    if not dt > 0.0:
        raise ValueError(f"dt must be positive, got {dt}")

    A_np = np.asarray(A, dtype=float)
    B_np = np.asarray(B, dtype=float)

    if A_np.ndim != 2 or A_np.shape[0] != A_np.shape[1]:
        raise ValueError(f"A must be square, got shape {A_np.shape}")
    nx = A_np.shape[0]
    if B_np.ndim != 2 or B_np.shape[0] != nx:
        raise ValueError(f"B must have {nx} rows, got shape {B_np.shape}")

    I = np.eye(nx)
    factor = dt / 2.0
    lhs = I - factor * A_np

    if not np.linalg.cond(lhs) < 1.0 / np.finfo(float).eps:
        raise np.linalg.LinAlgError(
            f"(I - dt/2 A) is singular for dt={dt}; bilinear transform undefined"
        )

    inv_term = np.linalg.inv(lhs)
    result: DiscreteReferenceModel = {
        "matrix_a": inv_term @ (I + factor * A_np),
        "matrix_b": inv_term @ (dt * B_np),
        "dt": float(dt),
    }
    return result


def step_reference_model(
    matrix_a: StateMatrix,
    matrix_b: InputMatrix,
    state_previous: StateVector,
    command: float,
    command_previous: float,
) -> StateVector:
    """
    Advance the discrete reference model one step.

    x_ref[k] = A_d x_ref[k-1] + B_d (r[k] + r[k-1]) / 2
    """
    return matrix_a @ state_previous + matrix_b[:, 0] * (0.5 * (command + command_previous))


# ============================================================================
# Adaptation Model
# ============================================================================


def build_adaption_input_matrix(
    model_order: int, natural_frequency: Optional[float] = None
) -> InputMatrix:
    """
    Build B_adapt, the input direction used in sigma = e' P B_adapt.

    Order 1: [[1]]; order 2: [[0], [wn^2]].
    """
    if model_order == 1:
        return np.array([[1.0]])
    if model_order == 2:
        if natural_frequency is None:
            raise ValueError("2nd-order adaptation model requires the natural frequency")
        return np.array([[0.0], [natural_frequency * natural_frequency]])
    raise ValueError(
        f"model_order must be one of {SUPPORTED_MODEL_ORDERS}, got {model_order}"
    )


def solve_lyapunov(A: StateMatrix, Q: Optional[CostMatrix] = None) -> LyapunovSolution:
    """
    Solve the continuous algebraic Lyapunov equation A' P + P A = -Q.

    Parameters
    ----------
    A : StateMatrix
        Continuous reference matrix (n, n); must be Hurwitz for P > 0
    Q : Optional[CostMatrix]
        Symmetric positive definite weighting (n, n). Default is identity.

    Returns
    -------
    LyapunovSolution
        Dictionary containing:
            - matrix_p: Solution P (n, n)
            - matrix_q: Weighting used
            - residual: ||A'P + PA + Q||_F
            - is_positive_definite: Result of check_lyapunov_pd(A, P)

    Raises
    ------
    ValueError
        If A is not square or Q has the wrong shape
    LinAlgError
        If the solver fails or returns non-finite values (A has a pair
        of eigenvalues summing to zero)

    Examples
    --------
    >>> A = np.array([[-2.0]])
    >>> solve_lyapunov(A)['matrix_p']  # array([[0.25]])
    >>>
    >>> A = np.array([[0.0, 1.0], [-4.0, -2.8]])
    >>> sol = solve_lyapunov(A, Q=np.diag([1.0, 1.0]))
    >>> sol['is_positive_definite']  # True

    Notes
    -----
    Uses scipy.linalg.solve_continuous_lyapunov, which solves
    a X + X a^H = q; here a = A' and q = -Q.
    """
    A_np = np.asarray(A, dtype=float)
    if A_np.ndim != 2 or A_np.shape[0] != A_np.shape[1]:
        raise ValueError(f"A must be square, got shape {A_np.shape}")
    nx = A_np.shape[0]

    if Q is None:
        Q_np = np.eye(nx)
    else:
        Q_np = np.asarray(Q, dtype=float)
        if Q_np.shape != (nx, nx):
            raise ValueError(f"Q must be ({nx}, {nx}), got {Q_np.shape}")

    P = linalg.solve_continuous_lyapunov(A_np.T, -Q_np)
    if not np.all(np.isfinite(P)):
        raise np.linalg.LinAlgError("Lyapunov solver returned non-finite values")

    residual = np.linalg.norm(A_np.T @ P + P @ A_np + Q_np, ord="fro")

    result: LyapunovSolution = {
        "matrix_p": P,
        "matrix_q": Q_np,
        "residual": float(residual),
        "is_positive_definite": check_lyapunov_pd(A_np, P),
    }
    return result


# ============================================================================
# Lyapunov Validation
# ============================================================================


def check_lyapunov_pd(
    A: StateMatrix,
    P: LyapunovMatrix,
    tolerance: float = 1e-8,
) -> bool:
    """
    Check that P is a symmetric positive definite Lyapunov matrix for A.

    Parameters
    ----------
    A : StateMatrix
        Reference model matrix (n, n); fixes the expected dimension
    P : LyapunovMatrix
        Candidate solution (n, n)
    tolerance : float
        Absolute tolerance of the symmetry test

    Returns
    -------
    bool
        True iff P has the shape of A, P = P' within tolerance, and all
        eigenvalues of P are strictly positive

    Examples
    --------
    >>> A = np.array([[0.0, 1.0], [-4.0, -2.8]])
    >>> check_lyapunov_pd(A, np.eye(2))  # True
    >>> check_lyapunov_pd(A, np.diag([1.0, -1.0]))  # False, indefinite
    >>> check_lyapunov_pd(A, np.array([[1.0, 0.5], [0.0, 1.0]]))  # False, not symmetric
    """
    A_np = np.asarray(A, dtype=float)
    P_np = np.asarray(P, dtype=float)

    if P_np.ndim != 2 or P_np.shape[0] != P_np.shape[1]:
        return False
    if A_np.ndim == 2 and P_np.shape != A_np.shape:
        return False
    if not np.all(np.isfinite(P_np)):
        return False
    if not np.allclose(P_np, P_np.T, rtol=0.0, atol=tolerance):
        return False

    eigenvalues = np.linalg.eigvalsh(P_np)
    return bool(np.all(eigenvalues > 0.0))


def check_lyapunov_decrease(A: StateMatrix, P: LyapunovMatrix, tolerance: float = 1e-8) -> bool:
    """
    Check that V(e) = e' P e decreases along dx/dt = A x.

    True iff Q = -(A' P + P A) is symmetric positive definite. Used for a
    P supplied by configuration instead of solved from a known Q.
    """
    A_np = np.asarray(A, dtype=float)
    P_np = np.asarray(P, dtype=float)
    if A_np.shape != P_np.shape:
        return False
    Q = -(A_np.T @ P_np + P_np @ A_np)
    return check_lyapunov_pd(A_np, Q, tolerance=tolerance)


# ============================================================================
# Adaptive Law
# ============================================================================


def trapezoidal_adaption_step(
    law_previous: np.ndarray,
    signal_current: np.ndarray,
    signal_previous: np.ndarray,
    gain: GainMatrix,
    dt: float,
) -> np.ndarray:
    """
    One trapezoidal integration step of an adaptive law.

        law[k] = law[k-1] + dt/2 gain (signal[k] + signal[k-1])

    Parameters
    ----------
    law_previous : np.ndarray
        Adapted gain at k-1, shape (m,)
    signal_current, signal_previous : np.ndarray
        Driving signal at k and k-1, shape (m,)
    gain : GainMatrix
        Adaptation gain (m, m)
    dt : float
        Sampling interval

    Returns
    -------
    np.ndarray
        Adapted gain at k, shape (m,)

    Examples
    --------
    >>> trapezoidal_adaption_step(
    ...     np.array([1.0]), np.array([0.2]), np.array([0.0]), np.array([[10.0]]), 0.01
    ... )  # array([1.01])
    """
    return law_previous + 0.5 * dt * (gain @ (signal_current + signal_previous))


# ============================================================================
# Saturation and Anti-Windup
# ============================================================================


def bound_output(value: float, upper: float, lower: float) -> Tuple[float, SaturationStatus]:
    """
    Clamp a value to [lower, upper] and report which bound was hit.

    Examples
    --------
    >>> bound_output(1.5, 1.0, -1.0)  # (1.0, SaturationStatus.HIGH)
    >>> bound_output(0.2, 1.0, -1.0)  # (0.2, SaturationStatus.NONE)
    """
    if value > upper:
        return float(upper), SaturationStatus.HIGH
    if value < lower:
        return float(lower), SaturationStatus.LOW
    return float(value), SaturationStatus.NONE


def anti_windup_offset(command: float, upper: float, lower: float) -> float:
    """
    Signed distance from a command back into [lower, upper].

    Negative when the command overshoots the upper bound, positive when it
    undershoots the lower bound, zero inside the bounds.

    Raises
    ------
    ValueError
        If upper < lower
    """
    if upper < lower:
        raise ValueError(f"upper bound {upper} is below lower bound {lower}")
    if command > upper:
        return float(upper - command)
    if command < lower:
        return float(lower - command)
    return 0.0


# ============================================================================
# Combination Law
# ============================================================================


def linear_combination(
    state_gain: np.ndarray,
    input_gain: float,
    nonlinear_gain: float,
    state: StateVector,
    command: float,
    regressor: float,
) -> float:
    """
    Default MRAC control law.

        u = K_x' x + K_r r - theta phi(x)

    With K_x = 0, K_r = 1 and theta = 0 (the default initial gains) the
    controller passes the command through unchanged.
    """
    return float(state_gain @ state + input_gain * command - nonlinear_gain * regressor)


def bias_regressor(state: StateVector) -> float:
    """Constant basis phi(x) = 1; theta then estimates a matched input offset."""
    return 1.0


def as_state_vector(state: ArrayLike, model_order: int) -> StateVector:
    """
    Convert a measured state to a float vector of length model_order.

    Raises
    ------
    ValueError
        If the state has the wrong number of elements
    """
    x = np.asarray(state, dtype=float).reshape(-1)
    if x.shape != (model_order,):
        raise ValueError(
            f"state must have {model_order} element(s) for a model of order {model_order}, "
            f"got shape {np.shape(state)}"
        )
    return x


__all__ = [
    "SUPPORTED_MODEL_ORDERS",
    "build_reference_matrices",
    "discretize_bilinear",
    "step_reference_model",
    "build_adaption_input_matrix",
    "solve_lyapunov",
    "check_lyapunov_pd",
    "check_lyapunov_decrease",
    "trapezoidal_adaption_step",
    "bound_output",
    "anti_windup_offset",
    "linear_combination",
    "bias_regressor",
    "as_state_vector",
]
