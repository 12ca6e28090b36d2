# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Union
import numpy as np
from FlowCalEngine.basic_structures import Vec

NumOrVec = Union[float, Vec]


class PerUnitContext:
    """
    Per unit bases of one power flow.
    The power base is common, the voltage base of every bus is its nominal voltage.
    This object is passed explicitly to whatever needs to convert values.
    """

    def __init__(self, Sbase: float = 100.0):
        """

        :param Sbase: base power (MVA)
        """
        self.Sbase = float(Sbase)

    def zb(self, vnom: NumOrVec) -> NumOrVec:
        """
        Base impedance
        :param vnom: nominal voltage (kV)
        :return: Ohm
        """
        return vnom * vnom / self.Sbase

    def power_to_pu(self, val: NumOrVec) -> NumOrVec:
        """
        MW, MVAr or MVA to p.u.
        """
        return val / self.Sbase

    def power_from_pu(self, val: NumOrVec) -> NumOrVec:
        """
        p.u. to MW, MVAr or MVA
        """
        return val * self.Sbase

    @staticmethod
    def voltage_to_pu(val: NumOrVec, vnom: NumOrVec) -> NumOrVec:
        """
        kV to p.u.
        """
        return val / vnom

    @staticmethod
    def voltage_from_pu(val: NumOrVec, vnom: NumOrVec) -> NumOrVec:
        """
        p.u. to kV
        """
        return val * vnom

    def ib(self, vnom: NumOrVec) -> NumOrVec:
        """
        Base current
        :param vnom: nominal voltage (kV)
        :return: A
        """
        return self.Sbase * 1000.0 / (np.sqrt(3.0) * vnom)

    def current_to_pu(self, val: NumOrVec, vnom: NumOrVec) -> NumOrVec:
        """
        A to p.u.
        """
        return val / self.ib(vnom)

    def current_from_pu(self, val: NumOrVec, vnom: NumOrVec) -> NumOrVec:
        """
        p.u. to A
        """
        return val * self.ib(vnom)
