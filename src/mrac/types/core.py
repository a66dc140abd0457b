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
Core Types - Fundamental Building Blocks

Defines the basic array types used throughout the adaptive controller:
- Semantic vector types (state, command, adaptive signals)
- Matrix types (reference dynamics, input maps, gains, Lyapunov weights)

All arrays are NumPy; matrices are 1x1 or 2x2.

Usage
-----
>>> from mrac.types.core import StateVector, StateMatrix, GainMatrix
>>>
>>> def feedback(x: StateVector, K: GainMatrix) -> float:
...     return float(K @ x)
"""

from typing import Sequence, Union

import numpy as np


# ============================================================================
# Basic Array Types
# ============================================================================

ArrayLike = Union[np.ndarray, Sequence[float], float]
"""
Anything np.asarray() accepts as a numeric array.

Inputs from the wider control stack may arrive as lists or scalars;
the controller converts them with ``np.asarray(..., dtype=float)`` at
its boundary.
"""

NumpyArray = np.ndarray


# ============================================================================
# Vector Types
# ============================================================================

StateVector = np.ndarray
"""
Measured or reference state vector (n,), n = model order.

Order 1: x = [y]
Order 2: x = [y, dy/dt]

Examples
--------
>>> x: StateVector = np.array([0.3, 0.0])
"""

SignalVector = np.ndarray
"""
Driving signal of an adaptive law at one step.

State law: x * sigma (n,); input and nonlinear laws: (1,).
"""


# ============================================================================
# Matrix Types - Semantic Naming by Role
# ============================================================================

StateMatrix = np.ndarray
"""
State matrix (n, n).

Uses:
- Continuous reference dynamics: A_ref
- Discrete reference dynamics: A_d = (I - dt/2 A)^-1 (I + dt/2 A)

Examples
--------
>>> A_ref: StateMatrix = np.array([[0.0, 1.0], [-4.0, -2.8]])
"""

InputMatrix = np.ndarray
"""
Input matrix B (n, 1).

Maps the scalar command into the state derivative:
    Continuous: dx/dt = A x + B r
    Discrete:   x[k] = A_d x[k-1] + B_d (r[k] + r[k-1]) / 2
"""

GainMatrix = np.ndarray
"""
Adaptation gain Gamma.

- State law: diagonal (n, n)
- Input / nonlinear laws: (1, 1)
"""

CostMatrix = np.ndarray
"""
Symmetric positive definite weighting Q (n, n) of the Lyapunov equation
A' P + P A = -Q.
"""

LyapunovMatrix = np.ndarray
"""
Solution P (n, n) of the algebraic Lyapunov equation.

Must be symmetric positive definite for the adaptive law to be stable.
"""


__all__ = [
    "ArrayLike",
    "NumpyArray",
    "StateVector",
    "SignalVector",
    "StateMatrix",
    "InputMatrix",
    "GainMatrix",
    "CostMatrix",
    "LyapunovMatrix",
]
