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
Adaptive Control Design and Execution
=====================================

Model Reference Adaptive Control (MRAC) for single-input actuation systems.

Controller
----------
>>> from mrac.control import MracController, MracConfig
>>>
>>> config = MracConfig(model_order=1, reference_time_constant=0.5)
>>> controller = MracController(config, dt=0.01)
>>> u = controller.control(command, state, dt=0.01)

Functional Interface
--------------------
>>> from mrac.control import (
...     build_reference_matrices,
...     discretize_bilinear,
...     solve_lyapunov,
...     check_lyapunov_pd,
... )
>>>
>>> A, B = build_reference_matrices(2, natural_frequency=2.0, damping_ratio=0.7)
>>> model = discretize_bilinear(A, B, dt=0.01)
>>> P = solve_lyapunov(A)['matrix_p']
>>> check_lyapunov_pd(A, P)  # True

Authors
-------
Gil Benezer

License
-------
GNU Affero General Public License v3.0
"""

# Classes
from .config import MracConfig, MracConfigurationError, load_mrac_config, save_mrac_config
from .controllers import MracController
from .history import TwoStepHistory

# Functional interface
from .adaptive_control_functions import (
    anti_windup_offset,
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

# Export public API
__all__ = [
    # Classes
    "MracController",
    "MracConfig",
    "MracConfigurationError",
    "TwoStepHistory",
    # Configuration files
    "load_mrac_config",
    "save_mrac_config",
    # Model building functions
    "build_reference_matrices",
    "discretize_bilinear",
    "step_reference_model",
    "build_adaption_input_matrix",
    "solve_lyapunov",
    # Validation functions
    "check_lyapunov_pd",
    "check_lyapunov_decrease",
    # Per-cycle functions
    "trapezoidal_adaption_step",
    "bound_output",
    "anti_windup_offset",
    "linear_combination",
    "bias_regressor",
]
