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
Type Definitions

Central import point for the type definitions of the adaptive controller.

Module Organization
------------------
- core: Arrays, vectors, matrices
- adaptive_control: Saturation status, model building results, diagnostics
- utilities: Status results and warning categories
"""

from .core import (
    ArrayLike,
    CostMatrix,
    GainMatrix,
    InputMatrix,
    LyapunovMatrix,
    NumpyArray,
    SignalVector,
    StateMatrix,
    StateVector,
)
from .adaptive_control import (
    CombinationLaw,
    DiscreteReferenceModel,
    InitReport,
    LyapunovSolution,
    MracDiagnostics,
    NonlinearRegressor,
    SaturationStatus,
)
from .utilities import (
    ErrorCode,
    MracModelWarning,
    Status,
)

__all__ = [
    # Core
    "ArrayLike",
    "NumpyArray",
    "StateVector",
    "SignalVector",
    "StateMatrix",
    "InputMatrix",
    "GainMatrix",
    "CostMatrix",
    "LyapunovMatrix",
    # Adaptive control
    "SaturationStatus",
    "DiscreteReferenceModel",
    "LyapunovSolution",
    "InitReport",
    "MracDiagnostics",
    "CombinationLaw",
    "NonlinearRegressor",
    # Utilities
    "ErrorCode",
    "Status",
    "MracModelWarning",
]
