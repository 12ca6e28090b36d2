# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List, Tuple


class PowerFlowError(Exception):
    """Base class for exceptions in this module."""
    pass


class SlackError(PowerFlowError):
    """Exception raised when there is a problem with the slack bus in a power flow study."""
    def __init__(self, message="Invalid or undefined slack bus configuration"):
        self.message = message
        super().__init__(self.message)


class RectangularJacobianError(PowerFlowError):
    """Exception raised when the Jacobian matrix used in power flow calculation is not square."""
    def __init__(self, rows, columns, message="Jacobian matrix must be square"):
        self.rows = rows
        self.columns = columns
        self.message = f"{message}: found {rows}x{columns}"
        super().__init__(self.message)


class ConsistencyError(PowerFlowError):
    """
    Exception raised when several controllers regulate the same quantity with different set points
    """
    def __init__(self, controlled: str, setpoints: List[Tuple[str, float]],
                 message="Inconsistent voltage set points"):
        """

        :param controlled: name of the controlled element
        :param setpoints: list of (controller name, set point value)
        :param message: message header
        """
        self.controlled = controlled
        self.setpoints = setpoints
        details = ", ".join(f"{name}: {value}" for name, value in setpoints)
        self.message = f"{message} on {controlled} ({details})"
        super().__init__(self.message)


class SlackDistributionFailureError(PowerFlowError):
    """Exception raised when the slack active power could not be distributed and the policy is to throw."""
    def __init__(self, message="Failed to distribute slack bus active power mismatch"):
        self.message = message
        super().__init__(self.message)
