# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union
from FlowCalEngine.enumerations import DeviceType, BranchSide
from FlowCalEngine.Devices.Parents.editable_device import EditableDevice
from FlowCalEngine.Devices.Substation.bus import Bus


class BranchParent(EditableDevice):
    """
    This class serves to represent the basic branch
    All other branches inherit from this one
    """

    def __init__(self,
                 name: str,
                 idtag: Union[str, None],
                 bus_from: Bus,
                 bus_to: Bus,
                 r: float,
                 x: float,
                 connected1: bool,
                 connected2: bool,
                 device_type: DeviceType):
        """

        :param name: name of the branch
        :param idtag: UUID code
        :param bus_from: bus at the side 1
        :param bus_to: bus at the side 2
        :param r: series resistance (Ohm)
        :param x: series reactance (Ohm)
        :param connected1: is the side 1 terminal connected?
        :param connected2: is the side 2 terminal connected?
        :param device_type: device_type (passed on)
        """

        EditableDevice.__init__(self,
                                name=name,
                                idtag=idtag,
                                device_type=device_type)

        self.bus_from: Bus = bus_from

        self.bus_to: Bus = bus_to

        self.R = float(r)

        self.X = float(x)

        self.connected1 = bool(connected1)

        self.connected2 = bool(connected2)

        # results written back after a power flow (MW, MVAr), NaN when the terminal is open
        self.p1 = float('nan')
        self.q1 = float('nan')
        self.p2 = float('nan')
        self.q2 = float('nan')

        self.register(key='bus_from', units='', tpe=DeviceType.BusDevice, definition='Side 1 bus')
        self.register(key='bus_to', units='', tpe=DeviceType.BusDevice, definition='Side 2 bus')
        self.register(key='R', units='Ohm', tpe=float, definition='Series resistance')
        self.register(key='X', units='Ohm', tpe=float, definition='Series reactance')
        self.register(key='connected1', units='', tpe=bool, definition='Side 1 connected')
        self.register(key='connected2', units='', tpe=bool, definition='Side 2 connected')

    def get_bus(self, side: BranchSide) -> Bus:
        """
        Get the bus of a terminal
        :param side: BranchSide
        :return: Bus
        """
        return self.bus_from if side == BranchSide.One else self.bus_to

    def is_connected(self, side: BranchSide) -> bool:
        return self.connected1 if side == BranchSide.One else self.connected2

    def disconnect(self, side: Union[BranchSide, None] = None) -> None:
        """
        Open one or both terminals
        :param side: BranchSide, both if None
        """
        if side is None or side == BranchSide.One:
            self.connected1 = False
        if side is None or side == BranchSide.Two:
            self.connected2 = False

    def get_flow(self, side: BranchSide):
        """
        Get the solved flow at one terminal
        :param side: BranchSide
        :return: P (MW), Q (MVAr)
        """
        if side == BranchSide.One:
            return self.p1, self.q1
        else:
            return self.p2, self.q2
