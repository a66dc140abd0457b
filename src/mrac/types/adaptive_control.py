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
Adaptive Control Types

Result and diagnostic types for Model Reference Adaptive Control (MRAC):
- Saturation status of the reference and control subsystems
- Discretized reference model
- Lyapunov equation solution
- Initialization report and per-cycle diagnostics
- Signatures of the pluggable combination law and nonlinear regressor

Mathematical Background
----------------------
Reference model (continuous):
    dx_ref/dt = A_ref x_ref + B_ref r

Control law (default combination):
    u = K_x' x + K_r r - theta * phi(x)

Adaptive laws (e = x_ref - x, sigma = e' P B):
    dK_x/dt   =  Gamma_x x sigma
    dK_r/dt   =  Gamma_r r sigma
    dtheta/dt = -Gamma_theta phi(x) sigma

P solves the Lyapunov equation A_ref' P + P A_ref = -Q.

Usage
-----
>>> from mrac.types.adaptive_control import SaturationStatus, MracDiagnostics
>>>
>>> u = controller.control(command, state, dt)
>>> if controller.control_saturation_status() == SaturationStatus.HIGH:
...     print("actuator saturated at its upper bound")
"""

from enum import IntEnum
from typing import Callable

import numpy as np
from typing_extensions import TypedDict

from .core import (
    InputMatrix,
    LyapunovMatrix,
    StateMatrix,
    StateVector,
)
from .utilities import Status


# ============================================================================
# Saturation
# ============================================================================


class SaturationStatus(IntEnum):
    """
    Tri-state saturation flag.

    The integer values match the status codes consumed by diagnostics
    collaborators: 1 above the upper bound, -1 below the lower bound,
    0 inside the bounds.
    """

    LOW = -1
    NONE = 0
    HIGH = 1


# ============================================================================
# Model Building Results
# ============================================================================


class DiscreteReferenceModel(TypedDict):
    """
    Discrete-time reference model from the bilinear transform.

    Fields
    ------
    matrix_a : StateMatrix
        A_d = (I - dt/2 A)^-1 (I + dt/2 A), shape (n, n)
    matrix_b : InputMatrix
        B_d = (I - dt/2 A)^-1 dt B, shape (n, 1)
    dt : float
        Sampling interval used for the conversion
    """

    matrix_a: StateMatrix
    matrix_b: InputMatrix
    dt: float


class LyapunovSolution(TypedDict):
    """
    Solution of A' P + P A = -Q.

    Fields
    ------
    matrix_p : LyapunovMatrix
        Solution P (n, n)
    matrix_q : np.ndarray
        Weighting Q used (n, n)
    residual : float
        Frobenius norm of A' P + P A + Q
    is_positive_definite : bool
        True if P is symmetric positive definite

    Examples
    --------
    >>> sol: LyapunovSolution = solve_lyapunov(np.array([[-2.0]]))
    >>> sol['matrix_p']  # array([[0.25]])
    """

    matrix_p: LyapunovMatrix
    matrix_q: np.ndarray
    residual: float
    is_positive_definite: bool


class InitReport(TypedDict):
    """
    Outcome of MracController.init().

    Fields
    ------
    reference_model : Status
        Result of set_reference_model + build_reference_model
    adaption_model : Status
        Result of set_adaption_model + build_adaption_model
    saturation : Status
        Result of loading the saturation bounds
    """

    reference_model: Status
    adaption_model: Status
    saturation: Status


class MracDiagnostics(TypedDict):
    """
    Read-only snapshot of the controller after a cycle.

    Meant for logging and monitoring collaborators; the control loop itself
    never reads it.

    Fields
    ------
    reference_state : StateVector
        Current reference state (n,)
    tracking_error : StateVector
        x_ref - x at the current step (n,)
    state_adaption_gain : np.ndarray
        Adapted state gain K_x (n,)
    input_adaption_gain : float
        Adapted feedforward gain K_r
    nonlinear_adaption_gain : float
        Adapted nonlinear-component gain theta
    anti_windup_compensation : np.ndarray
        Correction applied in the next adaptation step (n,)
    reference_saturation_status : SaturationStatus
    control_saturation_status : SaturationStatus
    control : float
        Last bounded control command
    reference_model_enabled : bool
    adaption_model_enabled : bool
    """

    reference_state: StateVector
    tracking_error: StateVector
    state_adaption_gain: np.ndarray
    input_adaption_gain: float
    nonlinear_adaption_gain: float
    anti_windup_compensation: np.ndarray
    reference_saturation_status: SaturationStatus
    control_saturation_status: SaturationStatus
    control: float
    reference_model_enabled: bool
    adaption_model_enabled: bool


# ============================================================================
# Pluggable Callables
# ============================================================================

CombinationLaw = Callable[[np.ndarray, float, float, StateVector, float, float], float]
"""
Final combination step of the controller.

Signature: (state_gain, input_gain, nonlinear_gain, state, command, regressor) -> raw control

Examples
--------
>>> def proportional_only(k_x, k_r, theta, x, r, phi):
...     return float(k_r * r)
"""

NonlinearRegressor = Callable[[StateVector], float]
"""
Basis function phi(x) of the nonlinear-component adaptive law.
"""


__all__ = [
    "SaturationStatus",
    "DiscreteReferenceModel",
    "LyapunovSolution",
    "InitReport",
    "MracDiagnostics",
    "CombinationLaw",
    "NonlinearRegressor",
]
