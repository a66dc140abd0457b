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
MRAC Controller Configuration

Immutable container for the tunable parameters of the adaptive controller,
with dictionary and JSON round-trip.

Only structural checks happen here (known keys, numeric values). Whether
the values make physical sense is decided by the controller's setup
operations, which report problems as Status results instead of raising.

Examples
--------
>>> config = MracConfig(model_order=1, reference_time_constant=0.5)
>>> save_mrac_config(config, 'mrac.json')
>>> load_mrac_config('mrac.json') == config
True
"""

import json
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional, Tuple


class MracConfigurationError(ValueError):
    """Raised when a configuration mapping cannot be turned into an MracConfig"""
    pass


_SEQUENCE_FIELDS = frozenset([
    "adaption_state_gain",
    "initial_state_gain",
    "adaption_matrix_p",
    "lyapunov_weight",
])


@dataclass(frozen=True)
class MracConfig:
    """
    Tunable parameters of the MRAC controller.

    Attributes
    ----------
    model_order : int
        Order of the reference/adaptation model (1 or 2)
    reference_time_constant : float
        tau of the 1st-order reference model [s]
    reference_natural_frequency : float
        wn of the 2nd-order reference model [rad/s]
    reference_damping_ratio : float
        zeta of the 2nd-order reference model
    adaption_state_gain : Tuple[float, ...]
        Diagonal of the state adaptation gain; the last entry fills the rest
    adaption_desired_gain : float
        Adaptation gain of the feedforward (desired command) law
    adaption_nonlinear_gain : float
        Adaptation gain of the nonlinear-component law
    adaption_state_ratio, adaption_input_ratio, adaption_nonlinear_ratio : float
        Convergence ratios scaling each adaptation gain
    initial_state_gain : Tuple[float, ...]
        Initial K_x; the last entry fills the rest
    initial_input_gain : float
        Initial K_r
    initial_nonlinear_gain : float
        Initial theta
    adaption_matrix_p : Optional[Tuple[float, ...]]
        Row-major Lyapunov matrix P (n*n entries). None solves for P.
    lyapunov_weight : Tuple[float, ...]
        Diagonal of Q in A'P + PA = -Q; the last entry fills the rest
    reference_bound_high, reference_bound_low : float
        Saturation bounds of the first reference state
    control_bound_high, control_bound_low : float
        Actuator saturation bounds
    anti_windup_compensation_gain : float
        Scalar gain of the anti-windup correction
    """

    model_order: int = 1
    reference_time_constant: float = 0.0
    reference_natural_frequency: float = 0.0
    reference_damping_ratio: float = 0.0
    adaption_state_gain: Tuple[float, ...] = (0.0,)
    adaption_desired_gain: float = 0.0
    adaption_nonlinear_gain: float = 0.0
    adaption_state_ratio: float = 1.0
    adaption_input_ratio: float = 1.0
    adaption_nonlinear_ratio: float = 1.0
    initial_state_gain: Tuple[float, ...] = (0.0,)
    initial_input_gain: float = 1.0
    initial_nonlinear_gain: float = 0.0
    adaption_matrix_p: Optional[Tuple[float, ...]] = None
    lyapunov_weight: Tuple[float, ...] = (1.0,)
    reference_bound_high: float = 1.0
    reference_bound_low: float = -1.0
    control_bound_high: float = 1.0
    control_bound_low: float = -1.0
    anti_windup_compensation_gain: float = 0.0

    def __post_init__(self):
        # Lists are accepted for convenience and frozen into tuples
        for name in _SEQUENCE_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, (int, float)):
                value = (value,)
            object.__setattr__(self, name, tuple(float(v) for v in value))

    # ========================================================================
    # Conversion
    # ========================================================================

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MracConfig":
        """
        Build a configuration from a plain mapping.

        Raises
        ------
        MracConfigurationError
            On unknown keys or values that are not numeric
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise MracConfigurationError(f"Unknown MRAC configuration keys: {unknown}")

        kwargs: Dict[str, Any] = {}
        for name, value in data.items():
            try:
                if name == "model_order":
                    if isinstance(value, bool) or int(value) != value:
                        raise TypeError("model order must be an integer")
                    kwargs[name] = int(value)
                elif name in _SEQUENCE_FIELDS:
                    if value is None:
                        kwargs[name] = None
                    elif isinstance(value, (int, float)):
                        kwargs[name] = (float(value),)
                    else:
                        kwargs[name] = tuple(float(v) for v in value)
                else:
                    kwargs[name] = float(value)
            except (TypeError, ValueError) as e:
                raise MracConfigurationError(
                    f"Invalid value for '{name}': {value!r} ({e})"
                ) from e

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Plain mapping suitable for json.dump."""
        data = asdict(self)
        for name in _SEQUENCE_FIELDS:
            if data[name] is not None:
                data[name] = list(data[name])
        return data

    def with_updates(self, **changes) -> "MracConfig":
        """Copy of this configuration with some fields replaced."""
        return replace(self, **changes)


def load_mrac_config(filename: str) -> MracConfig:
    """
    Load a configuration from a JSON file.

    Raises
    ------
    MracConfigurationError
        If the file is not a JSON object or holds invalid entries
    """
    with open(filename, "r") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise MracConfigurationError(f"{filename} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MracConfigurationError(
            f"{filename} must contain a JSON object, got {type(data).__name__}"
        )
    return MracConfig.from_dict(data)


def save_mrac_config(config: MracConfig, filename: str):
    """Save a configuration to a JSON file (created/overwritten)."""
    with open(filename, "w") as f:
        json.dump(config.to_dict(), f, indent=2)


__all__ = [
    "MracConfig",
    "MracConfigurationError",
    "load_mrac_config",
    "save_mrac_config",
]
