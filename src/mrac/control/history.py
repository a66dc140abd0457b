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
Two-step signal history used by the trapezoidal adaptive laws.
"""

from typing import Tuple, Union

import numpy as np


class TwoStepHistory:
    """
    Fixed-size ring buffer holding a signal at steps k and k-1.

    ``push`` moves the head instead of copying the current slot into the
    previous one, and the accessors return copies, so a value read before
    a push is never changed by it.

    Attributes
    ----------
    size : int
        Number of elements of the stored signal

    Examples
    --------
    >>> h = TwoStepHistory(1)
    >>> h.push([2.0])
    >>> h.current, h.previous
    (array([2.]), array([0.]))
    >>> h.push([3.0])
    >>> h.current, h.previous
    (array([3.]), array([2.]))
    """

    def __init__(self, size: int, fill: Union[float, np.ndarray] = 0.0):
        if size < 1:
            raise ValueError(f"history size must be positive, got {size}")
        self.size = size
        self._buffer = np.zeros((2, size))
        self._head = 0
        self.fill(fill)

    @property
    def current(self) -> np.ndarray:
        """Value at step k."""
        return self._buffer[self._head].copy()

    @property
    def previous(self) -> np.ndarray:
        """Value at step k-1."""
        return self._buffer[1 - self._head].copy()

    def push(self, value) -> None:
        """Store the value for a new step; the old current becomes previous."""
        value = np.asarray(value, dtype=float).reshape(-1)
        if value.shape != (self.size,):
            raise ValueError(f"expected {self.size} element(s), got shape {value.shape}")
        self._head = 1 - self._head
        self._buffer[self._head] = value

    def fill(self, value: Union[float, np.ndarray]) -> None:
        """Set both steps to the same value."""
        self._buffer[:] = np.broadcast_to(np.asarray(value, dtype=float).reshape(-1), (2, self.size))
        self._head = 0

    def as_tuple(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.current, self.previous

    def __repr__(self) -> str:
        return f"TwoStepHistory(current={self.current}, previous={self.previous})"
