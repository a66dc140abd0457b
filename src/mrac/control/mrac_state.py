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
Mutable State of the MRAC Controller

Three aggregates, each sized from the model order when constructed:

- ReferenceModelState: continuous and discrete reference matrices and the
  reference state history
- AdaptionModelState: adaptation gains and ratios, Lyapunov matrix, and the
  histories of the driving signals and adapted gains of the three laws
- SaturationState: bounds, saturation statuses and anti-windup compensation

All of them are owned by a single controller instance.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from mrac.control.adaptive_control_functions import SUPPORTED_MODEL_ORDERS
from mrac.control.history import TwoStepHistory
from mrac.types.adaptive_control import SaturationStatus


def _check_order(model_order: int):
    if model_order not in SUPPORTED_MODEL_ORDERS:
        raise ValueError(
            f"model_order must be one of {SUPPORTED_MODEL_ORDERS}, got {model_order}"
        )


# ============================================================================
# Reference Model
# ============================================================================


@dataclass
class ReferenceModelState:
    """
    Reference system of the controller.

    Attributes
    ----------
    model_order : int
        1 or 2
    matrix_a, matrix_b : np.ndarray
        Continuous A_ref (n, n) and B_ref (n, 1)
    matrix_a_discrete, matrix_b_discrete : np.ndarray
        Bilinear discretization of (A_ref, B_ref)
    natural_frequency : Optional[float]
        wn of a 2nd-order model, reused by the adaptation input matrix
    dt : Optional[float]
        Sampling interval of the discretization (None until built)
    state : TwoStepHistory
        Reference state at k and k-1
    configured : bool
        True once continuous matrices were built from a valid configuration
    enabled : bool
        True once the discretization succeeded
    """

    model_order: int
    matrix_a: np.ndarray = field(init=False)
    matrix_b: np.ndarray = field(init=False)
    matrix_a_discrete: np.ndarray = field(init=False)
    matrix_b_discrete: np.ndarray = field(init=False)
    natural_frequency: Optional[float] = field(init=False, default=None)
    dt: Optional[float] = field(init=False, default=None)
    state: TwoStepHistory = field(init=False)
    configured: bool = field(init=False, default=False)
    enabled: bool = field(init=False, default=False)

    def __post_init__(self):
        _check_order(self.model_order)
        n = self.model_order
        self.matrix_a = np.zeros((n, n))
        self.matrix_b = np.zeros((n, 1))
        self.matrix_a_discrete = np.zeros((n, n))
        self.matrix_b_discrete = np.zeros((n, 1))
        self.state = TwoStepHistory(n)


# ============================================================================
# Adaptation Model
# ============================================================================


@dataclass
class AdaptionModelState:
    """
    Adaptation system of the controller.

    Attributes
    ----------
    model_order : int
        1 or 2
    gamma_state : np.ndarray
        State adaptation gain, diagonal (n, n)
    gamma_input : np.ndarray
        Desired command adaptation gain (1, 1)
    gamma_nonlinear : np.ndarray
        Nonlinear-component adaptation gain (1, 1)
    ratio_state, ratio_input, ratio_nonlinear : float
        Adjustable convergence ratios (default 1.0)
    matrix_p : np.ndarray
        Lyapunov matrix P (n, n)
    matrix_p_configured : Optional[np.ndarray]
        P given by the configuration, used instead of solving for it
    matrix_q : np.ndarray
        Lyapunov weighting Q (n, n)
    matrix_b : np.ndarray
        B_adapt (n, 1)
    signal_state, signal_input, signal_nonlinear : TwoStepHistory
        Driving signals of the three laws at k and k-1
    gain_state, gain_input, gain_nonlinear : TwoStepHistory
        Adapted gains K_x (n,), K_r (1,), theta (1,) at k and k-1
    gain_state_init, gain_input_init, gain_nonlinear_init : np.ndarray
        Configuration-time initial gains
    enabled : bool
        True once P was built and validated
    """

    model_order: int
    gamma_state: np.ndarray = field(init=False)
    gamma_input: np.ndarray = field(init=False)
    gamma_nonlinear: np.ndarray = field(init=False)
    ratio_state: float = field(init=False, default=1.0)
    ratio_input: float = field(init=False, default=1.0)
    ratio_nonlinear: float = field(init=False, default=1.0)
    matrix_p: np.ndarray = field(init=False)
    matrix_p_configured: Optional[np.ndarray] = field(init=False, default=None)
    matrix_q: np.ndarray = field(init=False)
    matrix_b: np.ndarray = field(init=False)
    signal_state: TwoStepHistory = field(init=False)
    signal_input: TwoStepHistory = field(init=False)
    signal_nonlinear: TwoStepHistory = field(init=False)
    gain_state: TwoStepHistory = field(init=False)
    gain_input: TwoStepHistory = field(init=False)
    gain_nonlinear: TwoStepHistory = field(init=False)
    gain_state_init: np.ndarray = field(init=False)
    gain_input_init: np.ndarray = field(init=False)
    gain_nonlinear_init: np.ndarray = field(init=False)
    configured: bool = field(init=False, default=False)
    enabled: bool = field(init=False, default=False)

    def __post_init__(self):
        _check_order(self.model_order)
        n = self.model_order
        self.gamma_state = np.zeros((n, n))
        self.gamma_input = np.zeros((1, 1))
        self.gamma_nonlinear = np.zeros((1, 1))
        self.matrix_p = np.zeros((n, n))
        self.matrix_q = np.eye(n)
        self.matrix_b = np.zeros((n, 1))
        self.signal_state = TwoStepHistory(n)
        self.signal_input = TwoStepHistory(1)
        self.signal_nonlinear = TwoStepHistory(1)
        self.gain_state_init = np.zeros(n)
        self.gain_input_init = np.ones(1)
        self.gain_nonlinear_init = np.zeros(1)
        self.gain_state = TwoStepHistory(n, self.gain_state_init)
        self.gain_input = TwoStepHistory(1, self.gain_input_init)
        self.gain_nonlinear = TwoStepHistory(1, self.gain_nonlinear_init)

    def reset_signals(self):
        self.signal_state.fill(0.0)
        self.signal_input.fill(0.0)
        self.signal_nonlinear.fill(0.0)

    def reset_gains(self):
        self.gain_state.fill(self.gain_state_init)
        self.gain_input.fill(self.gain_input_init)
        self.gain_nonlinear.fill(self.gain_nonlinear_init)


# ============================================================================
# Saturation and Anti-Windup
# ============================================================================


@dataclass
class SaturationState:
    """
    Saturation bounds, statuses and anti-windup compensation.

    Attributes
    ----------
    model_order : int
        1 or 2; sets the dimension of the compensation vector
    bound_reference_high, bound_reference_low : float
        Bounds of the first reference state
    bound_control_high, bound_control_low : float
        Actuator bounds
    status_reference, status_control : SaturationStatus
        Result of the latest comparison against the bounds
    gain_anti_windup : float
        Scalar anti-windup gain
    compensation : TwoStepHistory
        Anti-windup compensation vector (n,) at k and k-1
    """

    model_order: int
    bound_reference_high: float = 1.0
    bound_reference_low: float = -1.0
    bound_control_high: float = 1.0
    bound_control_low: float = -1.0
    status_reference: SaturationStatus = SaturationStatus.NONE
    status_control: SaturationStatus = SaturationStatus.NONE
    gain_anti_windup: float = 0.0
    compensation: TwoStepHistory = field(init=False)

    def __post_init__(self):
        _check_order(self.model_order)
        self.compensation = TwoStepHistory(self.model_order)

    def reset(self):
        self.status_reference = SaturationStatus.NONE
        self.status_control = SaturationStatus.NONE
        self.compensation.fill(0.0)
