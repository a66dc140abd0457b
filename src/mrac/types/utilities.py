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
Utility Types

Status results and warning categories shared by the setup operations of the
adaptive controller.

Setup operations never raise for bad configuration. They return a
``Status`` carrying an error code and a human-readable reason, and the
controller keeps running with whatever subsystems could be built.

Usage
-----
>>> status = controller.set_reference_model(config)
>>> if not status.ok():
...     print(f"{status.code.name}: {status.message}")
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Outcome codes for controller setup operations."""

    OK = 0
    CONTROL_INIT_ERROR = 1


@dataclass(frozen=True)
class Status:
    """
    Result of a setup operation.

    Attributes
    ----------
    code : ErrorCode
        ErrorCode.OK on success
    message : str
        Reason for the failure (empty on success)

    Examples
    --------
    >>> Status.OK().ok()
    True
    >>> Status(ErrorCode.CONTROL_INIT_ERROR, "model order 3 not supported").ok()
    False
    """

    code: ErrorCode = ErrorCode.OK
    message: str = ""

    @classmethod
    def OK(cls) -> "Status":
        return cls(ErrorCode.OK, "")

    def ok(self) -> bool:
        return self.code is ErrorCode.OK

    def __str__(self) -> str:
        if self.ok():
            return "OK"
        return f"{self.code.name}: {self.message}"


class MracModelWarning(UserWarning):
    """Issued when a controller subsystem is left disabled or a tuning value is coerced."""


__all__ = [
    "ErrorCode",
    "Status",
    "MracModelWarning",
]
