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
Model Reference Adaptive Controller

Single-input/single-output MRAC for actuation systems (throttle/brake,
steering). Once per control cycle the controller advances a 1st or 2nd
order reference model, adapts state, feedforward and nonlinear-component
gains from the tracking error, and returns a bounded actuator command.

Architecture
------------
- Model building and all numerics live in adaptive_control_functions.py
  (pure functions); this class owns the mutable state and sequences them.
- Setup operations return Status results and never raise for bad
  configuration. A subsystem that cannot be built stays disabled and
  control() degrades:
    * reference model disabled: unity compensator, u = r (bounded)
    * adaptation disabled: fixed initial gains, no adaptation
- control() is overridable, and the final combination step is a callable
  selected at construction.
"""

import logging
import warnings
from typing import Optional

import numpy as np

from mrac.control.adaptive_control_functions import (
    SUPPORTED_MODEL_ORDERS,
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
from mrac.control.config import MracConfig
from mrac.control.history import TwoStepHistory
from mrac.control.mrac_state import (
    AdaptionModelState,
    ReferenceModelState,
    SaturationState,
)
from mrac.types.adaptive_control import (
    CombinationLaw,
    InitReport,
    MracDiagnostics,
    NonlinearRegressor,
    SaturationStatus,
)
from mrac.types.core import ArrayLike, GainMatrix, StateMatrix, LyapunovMatrix
from mrac.types.utilities import ErrorCode, MracModelWarning, Status

logger = logging.getLogger(__name__)


def _init_error(message: str) -> Status:
    return Status(ErrorCode.CONTROL_INIT_ERROR, message)


def _fill_diagonal(values, size: int) -> np.ndarray:
    """Entries for a length-`size` vector; the last given value fills the rest."""
    values = list(values)
    return np.array([values[min(i, len(values) - 1)] for i in range(size)], dtype=float)


class MracController:
    """
    Model Reference Adaptive Controller for an actuation system.

    Control law (default combination):
        u = K_x' x + K_r r - theta phi(x)

    Adaptive laws, integrated with the trapezoidal rule every cycle
    (e = x_ref - x, c = anti-windup compensation, sigma = (e + c)' P B_adapt):
        K_x   <- Gamma_x  * ratio_state     * x sigma
        K_r   <- Gamma_r  * ratio_input     * r sigma
        theta <- Gamma_th * ratio_nonlinear * (-phi(x) sigma)

    Attributes
    ----------
    combination_law : CombinationLaw
        Final combination of adapted gains, state and command
    nonlinear_regressor : NonlinearRegressor
        Basis phi(x) of the nonlinear-component law

    Examples
    --------
    >>> config = MracConfig(
    ...     model_order=1,
    ...     reference_time_constant=0.5,
    ...     adaption_state_gain=(2.0,),
    ...     adaption_desired_gain=2.0,
    ...     control_bound_high=5.0,
    ...     control_bound_low=-5.0,
    ... )
    >>> controller = MracController(config, dt=0.01)
    >>> controller.reference_model_enabled, controller.adaption_model_enabled
    (True, True)
    >>>
    >>> x = np.zeros(1)
    >>> for k in range(500):
    ...     u = controller.control(1.0, x, 0.01)
    ...     x = plant_step(x, u)
    >>>
    >>> controller.current_reference_state()
    >>> controller.control_saturation_status()  # SaturationStatus.NONE

    Notes
    -----
    - Not thread-safe; the caller must serialize access.
    - No matrix inversion happens inside control() unless dt changes.
    """

    def __init__(
        self,
        config: Optional[MracConfig] = None,
        dt: Optional[float] = None,
        combination_law: CombinationLaw = linear_combination,
        nonlinear_regressor: NonlinearRegressor = bias_regressor,
    ):
        """
        Create the controller and, if a configuration is given, initialize it.

        Args:
            config: Controller configuration. Without one the controller is
                created unconfigured (order 1, everything disabled) and
                init() must be called before it adapts.
            dt: Sampling interval [s], required together with config.
            combination_law: Final combination step (default linear MRAC law)
            nonlinear_regressor: phi(x) of the nonlinear law (default phi = 1)
        """
        self.combination_law = combination_law
        self.nonlinear_regressor = nonlinear_regressor

        self._config: Optional[MracConfig] = None
        self._dt: float = 0.01
        self._init_report: Optional[InitReport] = None
        self._resize(1)

        if config is not None:
            if dt is None:
                raise ValueError("dt is required when a configuration is given")
            self.init(config, dt)

    def _resize(self, model_order: int):
        self._model_order = model_order
        self._reference = ReferenceModelState(model_order)
        self._adaption = AdaptionModelState(model_order)
        self._saturation = SaturationState(model_order)
        self._input = TwoStepHistory(1)
        self._state = TwoStepHistory(model_order)
        self._tracking_error = np.zeros(model_order)
        self._control_previous = 0.0

    # ========================================================================
    # Initialization
    # ========================================================================

    def init(self, config: MracConfig, dt: float) -> InitReport:
        """
        Configure and build every subsystem.

        Order: reference model -> discretization -> adaptation model ->
        Lyapunov build. A failure disables only the affected subsystem;
        each one is reported with an MracModelWarning and in the returned
        InitReport.

        Args:
            config: Controller configuration
            dt: Sampling interval [s]

        Returns:
            InitReport with the status of each subsystem
        """
        self._config = config
        self._dt = dt
        if config.model_order in SUPPORTED_MODEL_ORDERS:
            self._resize(config.model_order)
        else:
            self._resize(self._model_order)

        saturation_status = self.set_saturation_model(config)

        reference_status = self.set_reference_model(config)
        if reference_status.ok():
            reference_status = self.build_reference_model(dt)

        adaption_status = self.set_adaption_model(config)
        if adaption_status.ok():
            adaption_status = self.build_adaption_model()

        for name, status in (
            ("saturation bounds", saturation_status),
            ("reference model", reference_status),
            ("adaption model", adaption_status),
        ):
            if not status.ok():
                warnings.warn(
                    f"MRAC {name} disabled: {status.message}",
                    MracModelWarning,
                    stacklevel=2,
                )

        if not self._reference.enabled:
            logger.debug("MRAC will work as a unity compensator until the reference model is built")

        self._init_report = {
            "reference_model": reference_status,
            "adaption_model": adaption_status,
            "saturation": saturation_status,
        }
        return self._init_report

    def set_saturation_model(self, config: MracConfig) -> Status:
        """
        Load reference/control saturation bounds.

        Bounds may be infinite; NaN or inverted bounds keep the previous ones.
        """
        pairs = (
            ("reference", config.reference_bound_high, config.reference_bound_low),
            ("control", config.control_bound_high, config.control_bound_low),
        )
        for name, high, low in pairs:
            if np.isnan(high) or np.isnan(low) or high < low:
                return _init_error(
                    f"{name} saturation bounds [{low}, {high}] are not a valid interval"
                )

        self._saturation.bound_reference_high = float(config.reference_bound_high)
        self._saturation.bound_reference_low = float(config.reference_bound_low)
        self._saturation.bound_control_high = float(config.control_bound_high)
        self._saturation.bound_control_low = float(config.control_bound_low)
        return Status.OK()

    # ========================================================================
    # Reference Model
    # ========================================================================

    def set_reference_model(self, config: MracConfig) -> Status:
        """
        Validate the reference model coefficients and build continuous A_ref, B_ref.

        A different model order re-sizes every state aggregate. The reference
        model stays disabled until build_reference_model() succeeds; the next
        control() call rebuilds it, and the adaptation model, at its dt.
        """
        order = config.model_order
        if order not in SUPPORTED_MODEL_ORDERS:
            self._reference.configured = False
            self._reference.enabled = False
            return _init_error(
                f"mrac model order {order} is not supported; expected one of {SUPPORTED_MODEL_ORDERS}"
            )

        try:
            A, B = build_reference_matrices(
                order,
                time_constant=config.reference_time_constant,
                natural_frequency=config.reference_natural_frequency,
                damping_ratio=config.reference_damping_ratio,
            )
        except ValueError as e:
            self._reference.configured = False
            self._reference.enabled = False
            return _init_error(f"reference model parameters are not reasonable: {e}")

        if order != self._model_order:
            logger.debug("MRAC model order changed from %d to %d", self._model_order, order)
            saturation = self._saturation
            self._resize(order)
            self._saturation.bound_reference_high = saturation.bound_reference_high
            self._saturation.bound_reference_low = saturation.bound_reference_low
            self._saturation.bound_control_high = saturation.bound_control_high
            self._saturation.bound_control_low = saturation.bound_control_low

        self._reference.matrix_a = A
        self._reference.matrix_b = B
        self._reference.configured = True
        self._reference.enabled = False
        self._reference.natural_frequency = config.reference_natural_frequency
        # Discrete matrices are stale until the next build
        self._reference.dt = None
        # The adaptation model depends on A_ref and must be rebuilt
        self._adaption.enabled = False
        return Status.OK()

    def build_reference_model(self, dt: float) -> Status:
        """
        Discretize the reference model with the bilinear transform.

        Must be re-run whenever dt changes; control() does so automatically.
        """
        ref = self._reference
        ref.enabled = False
        if not ref.configured:
            return _init_error("reference model is not configured")

        try:
            model = discretize_bilinear(ref.matrix_a, ref.matrix_b, dt)
        except (ValueError, np.linalg.LinAlgError) as e:
            return _init_error(f"reference model discretization failed: {e}")

        ref.matrix_a_discrete = model["matrix_a"]
        ref.matrix_b_discrete = model["matrix_b"]
        ref.dt = model["dt"]
        ref.enabled = True
        self._dt = dt
        logger.debug("MRAC reference model discretized with dt=%g", dt)
        return Status.OK()

    # ========================================================================
    # Adaptation Model
    # ========================================================================

    def set_adaption_model(self, config: MracConfig) -> Status:
        """
        Validate and size the adaptation gains, ratios and initial gains.

        The adaptation model stays disabled until build_adaption_model()
        succeeds.
        """
        adp = self._adaption
        adp.configured = False
        adp.enabled = False
        n = self._model_order

        if config.model_order != n:
            return _init_error(
                f"adaption model order {config.model_order} does not match "
                f"the reference model order {n}"
            )

        def _sized(name, values):
            if not 1 <= len(values) <= n:
                raise ValueError(f"{name} needs 1 to {n} entries, got {len(values)}")
            return _fill_diagonal(values, n)

        try:
            gamma_state = _sized("adaption_state_gain", config.adaption_state_gain)
            gain_state_init = _sized("initial_state_gain", config.initial_state_gain)
            weight = _sized("lyapunov_weight", config.lyapunov_weight)
        except ValueError as e:
            return _init_error(str(e))

        non_negative = {
            "adaption_state_gain": gamma_state,
            "adaption_desired_gain": config.adaption_desired_gain,
            "adaption_nonlinear_gain": config.adaption_nonlinear_gain,
            "adaption_state_ratio": config.adaption_state_ratio,
            "adaption_input_ratio": config.adaption_input_ratio,
            "adaption_nonlinear_ratio": config.adaption_nonlinear_ratio,
            "anti_windup_compensation_gain": config.anti_windup_compensation_gain,
        }
        for name, value in non_negative.items():
            value = np.asarray(value, dtype=float)
            if not np.all(np.isfinite(value)) or np.any(value < 0.0):
                return _init_error(f"{name} must be finite and non-negative, got {value}")

        if not np.all(np.isfinite(gain_state_init)) or not np.isfinite(
            [config.initial_input_gain, config.initial_nonlinear_gain]
        ).all():
            return _init_error("initial adaptive gains must be finite")

        if not np.all(weight > 0.0) or not np.all(np.isfinite(weight)):
            return _init_error(f"lyapunov_weight must be positive, got {weight}")

        matrix_p = None
        if config.adaption_matrix_p is not None:
            if len(config.adaption_matrix_p) != n * n:
                return _init_error(
                    f"adaption_matrix_p needs {n * n} entries for model order {n}, "
                    f"got {len(config.adaption_matrix_p)}"
                )
            matrix_p = np.array(config.adaption_matrix_p, dtype=float).reshape(n, n)

        adp.gamma_state = np.diag(gamma_state)
        adp.gamma_input = np.array([[config.adaption_desired_gain]], dtype=float)
        adp.gamma_nonlinear = np.array([[config.adaption_nonlinear_gain]], dtype=float)
        adp.ratio_state = float(config.adaption_state_ratio)
        adp.ratio_input = float(config.adaption_input_ratio)
        adp.ratio_nonlinear = float(config.adaption_nonlinear_ratio)
        adp.matrix_q = np.diag(weight)
        adp.matrix_p_configured = matrix_p
        adp.gain_state_init = gain_state_init
        adp.gain_input_init = np.array([config.initial_input_gain], dtype=float)
        adp.gain_nonlinear_init = np.array([config.initial_nonlinear_gain], dtype=float)
        adp.reset_gains()
        adp.reset_signals()
        adp.configured = True

        self._saturation.gain_anti_windup = float(config.anti_windup_compensation_gain)
        return Status.OK()

    def build_adaption_model(self) -> Status:
        """
        Build B_adapt and the Lyapunov matrix P, then validate P.

        Without a configured P, solves A_ref' P + P A_ref = -Q. A configured
        P must be symmetric positive definite and make -(A_ref' P + P A_ref)
        positive definite as well. On failure the controller keeps running
        without adaptation.
        """
        adp = self._adaption
        ref = self._reference
        adp.enabled = False

        if not adp.configured:
            return _init_error("adaption model is not configured")
        if not ref.configured:
            return _init_error("adaption model requires a valid reference model")

        try:
            adp.matrix_b = build_adaption_input_matrix(self._model_order, ref.natural_frequency)
            if adp.matrix_p_configured is None:
                matrix_p = solve_lyapunov(ref.matrix_a, adp.matrix_q)["matrix_p"]
            else:
                matrix_p = adp.matrix_p_configured
                if not check_lyapunov_decrease(ref.matrix_a, matrix_p):
                    return _init_error(
                        "configured adaption matrix P does not satisfy the Lyapunov "
                        "decrease condition for the reference model"
                    )
        except (ValueError, np.linalg.LinAlgError) as e:
            return _init_error(f"solving the Lyapunov equation failed: {e}")

        if not self.check_lyapunov_pd(ref.matrix_a, matrix_p):
            return _init_error(
                "solution of the algebraic Lyapunov equation is not symmetric positive definite"
            )

        adp.matrix_p = matrix_p
        adp.enabled = True
        logger.debug("MRAC adaption model built, P=%s", matrix_p.tolist())
        return Status.OK()

    def check_lyapunov_pd(self, matrix_a: StateMatrix, matrix_p: LyapunovMatrix) -> bool:
        """True iff matrix_p is symmetric positive definite (shape of matrix_a)."""
        return check_lyapunov_pd(matrix_a, matrix_p)

    # ========================================================================
    # Adaptive Law and Anti-Windup
    # ========================================================================

    def adaption(self, law: TwoStepHistory, signal: TwoStepHistory, gain: GainMatrix):
        """
        One trapezoidal step of an adaptive law, then shift its history.

            law[k] = law[k-1] + dt/2 gain (signal[k] + signal[k-1])
        """
        current, previous = signal.as_tuple()
        law.push(trapezoidal_adaption_step(law.current, current, previous, gain, self._dt))

    def anti_windup_compensation(self, control_command: float, upper_bound: float, lower_bound: float):
        """
        Compute the anti-windup correction for the next adaptation step.

        The offset back into [lower_bound, upper_bound] (opposing any
        overshoot) is scaled by the anti-windup gain and placed in the first
        component of the compensation vector.
        """
        compensation = np.zeros(self._model_order)
        compensation[0] = self._saturation.gain_anti_windup * anti_windup_offset(
            control_command, upper_bound, lower_bound
        )
        self._saturation.compensation.push(compensation)

    def _update_adaption(self, state: np.ndarray, command: float):
        adp = self._adaption
        error = self._tracking_error + self._saturation.compensation.current
        sigma = float(error @ adp.matrix_p @ adp.matrix_b[:, 0])
        regressor = float(self.nonlinear_regressor(state))

        adp.signal_state.push(state * sigma)
        adp.signal_input.push([command * sigma])
        adp.signal_nonlinear.push([-regressor * sigma])

        self.adaption(adp.gain_state, adp.signal_state, adp.gamma_state * adp.ratio_state)
        self.adaption(adp.gain_input, adp.signal_input, adp.gamma_input * adp.ratio_input)
        self.adaption(adp.gain_nonlinear, adp.signal_nonlinear, adp.gamma_nonlinear * adp.ratio_nonlinear)

    # ========================================================================
    # Control
    # ========================================================================

    def control(self, command: float, state: ArrayLike, dt: float) -> float:
        """
        Compute the actuator command for one control cycle.

        Args:
            command: Original command r (input of the actuation system)
            state: Measured actuation state x, n = model order elements
            dt: Sampling interval [s]

        Returns:
            Bounded control command

        Raises:
            ValueError: If state does not have model-order elements
        """
        x = as_state_vector(state, self._model_order)
        r = float(command)
        ref = self._reference
        sat = self._saturation

        if ref.configured and (ref.dt is None or not np.isclose(dt, ref.dt, rtol=1e-9, atol=0.0)):
            reapplied = ref.dt is None
            status = self.build_reference_model(dt)
            logger.debug("MRAC reference model rebuilt for dt=%g: %s", dt, status)
            ref.dt = dt
            if reapplied and status.ok() and self._adaption.configured and not self._adaption.enabled:
                status = self.build_adaption_model()
                logger.debug("MRAC adaption model rebuilt: %s", status)

        self._input.push([r])
        self._state.push(x)

        if ref.enabled:
            r_previous = float(self._input.previous[0])
            x_ref = step_reference_model(
                ref.matrix_a_discrete, ref.matrix_b_discrete, ref.state.current, r, r_previous
            )
            x_ref[0], sat.status_reference = bound_output(
                x_ref[0], sat.bound_reference_high, sat.bound_reference_low
            )
            ref.state.push(x_ref)
            self._tracking_error = x_ref - x

            if self._adaption.enabled:
                self._update_adaption(x, r)

            control_unbounded = self.combination_law(
                self._adaption.gain_state.current,
                float(self._adaption.gain_input.current[0]),
                float(self._adaption.gain_nonlinear.current[0]),
                x,
                r,
                float(self.nonlinear_regressor(x)),
            )
        else:
            logger.debug("MRAC reference model disabled; passing command %g through", r)
            sat.status_reference = SaturationStatus.NONE
            self._tracking_error = np.zeros(self._model_order)
            control_unbounded = r

        control, sat.status_control = bound_output(
            control_unbounded, sat.bound_control_high, sat.bound_control_low
        )
        self.anti_windup_compensation(control_unbounded, sat.bound_control_high, sat.bound_control_low)
        self._control_previous = control
        return control

    # ========================================================================
    # Reset
    # ========================================================================

    def reset(self):
        """
        Reset states, adaptive gains and externally set adaption ratios.

        Built models are kept.
        """
        self.reset_states()
        self.reset_gains()
        if self._config is not None and self._adaption.configured:
            self._adaption.ratio_state = float(self._config.adaption_state_ratio)
            self._adaption.ratio_input = float(self._config.adaption_input_ratio)
            self._adaption.ratio_nonlinear = float(self._config.adaption_nonlinear_ratio)

    def reset_states(self):
        """Clear signal histories, saturation statuses and anti-windup compensation."""
        self._reference.state.fill(0.0)
        self._adaption.reset_signals()
        self._saturation.reset()
        self._input.fill(0.0)
        self._state.fill(0.0)
        self._tracking_error = np.zeros(self._model_order)
        self._control_previous = 0.0

    def reset_gains(self):
        """Restore the adaptive gains to their configuration-time values."""
        self._adaption.reset_gains()

    # ========================================================================
    # Tuning
    # ========================================================================

    def _checked_ratio(self, name: str, ratio: float) -> float:
        if ratio < 0.0:
            warnings.warn(
                f"MRAC {name} adaption rate {ratio} is negative; set to 0",
                MracModelWarning,
                stacklevel=3,
            )
            return 0.0
        return float(ratio)

    def set_state_adaption_rate(self, ratio_state: float):
        self._adaption.ratio_state = self._checked_ratio("state", ratio_state)

    def set_input_adaption_rate(self, ratio_input: float):
        self._adaption.ratio_input = self._checked_ratio("input", ratio_input)

    def set_nonlinear_adaption_rate(self, ratio_nonlinear: float):
        self._adaption.ratio_nonlinear = self._checked_ratio("nonlinear", ratio_nonlinear)

    def state_adaption_rate(self) -> float:
        return self._adaption.ratio_state

    def input_adaption_rate(self) -> float:
        return self._adaption.ratio_input

    def nonlinear_adaption_rate(self) -> float:
        return self._adaption.ratio_nonlinear

    # ========================================================================
    # Introspection
    # ========================================================================

    @property
    def model_order(self) -> int:
        return self._model_order

    @property
    def dt(self) -> float:
        return self._dt

    @property
    def config(self) -> Optional[MracConfig]:
        return self._config

    @property
    def init_report(self) -> Optional[InitReport]:
        return self._init_report

    @property
    def reference_model_enabled(self) -> bool:
        return self._reference.enabled

    @property
    def adaption_model_enabled(self) -> bool:
        return self._adaption.enabled

    def reference_saturation_status(self) -> SaturationStatus:
        return self._saturation.status_reference

    def control_saturation_status(self) -> SaturationStatus:
        return self._saturation.status_control

    def current_reference_state(self) -> float:
        return float(self._reference.state.current[0])

    def current_state_adaption_gain(self) -> float:
        return float(self._adaption.gain_state.current[0])

    def current_input_adaption_gain(self) -> float:
        return float(self._adaption.gain_input.current[0])

    def current_nonlinear_adaption_gain(self) -> float:
        return float(self._adaption.gain_nonlinear.current[0])

    def anti_windup_compensation_vector(self) -> np.ndarray:
        return self._saturation.compensation.current

    def previous_control(self) -> float:
        return self._control_previous

    def reference_matrices(self):
        """Continuous (A_ref, B_ref) and discrete (A_d, B_d) reference matrices."""
        ref = self._reference
        return (
            ref.matrix_a.copy(),
            ref.matrix_b.copy(),
            ref.matrix_a_discrete.copy(),
            ref.matrix_b_discrete.copy(),
        )

    def lyapunov_matrix(self) -> LyapunovMatrix:
        return self._adaption.matrix_p.copy()

    def diagnostics(self) -> MracDiagnostics:
        """Snapshot of the controller for logging and monitoring."""
        result: MracDiagnostics = {
            "reference_state": self._reference.state.current,
            "tracking_error": self._tracking_error.copy(),
            "state_adaption_gain": self._adaption.gain_state.current,
            "input_adaption_gain": self.current_input_adaption_gain(),
            "nonlinear_adaption_gain": self.current_nonlinear_adaption_gain(),
            "anti_windup_compensation": self._saturation.compensation.current,
            "reference_saturation_status": self._saturation.status_reference,
            "control_saturation_status": self._saturation.status_control,
            "control": self._control_previous,
            "reference_model_enabled": self._reference.enabled,
            "adaption_model_enabled": self._adaption.enabled,
        }
        return result

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(model_order={self._model_order}, dt={self._dt}, "
            f"reference_model_enabled={self._reference.enabled}, "
            f"adaption_model_enabled={self._adaption.enabled})"
        )
