# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union
from FlowCalEngine.enumerations import DeviceType
from FlowCalEngine.Devices.Parents.branch_parent import BranchParent
from FlowCalEngine.Devices.Substation.bus import Bus


class Line(BranchParent):
    """
    AC line, pi model with the shunt admittance split per side
    """

    def __init__(self,
                 bus_from: Bus = None,
                 bus_to: Bus = None,
                 name: str = 'Line',
                 idtag: Union[str, None] = None,
                 r: float = 1e-20,
                 x: float = 1e-5,
                 g1: float = 0.0,
                 b1: float = 0.0,
                 g2: float = 0.0,
                 b2: float = 0.0,
                 connected1: bool = True,
                 connected2: bool = True):
        """
        Line constructor
        :param bus_from: side 1 bus
        :param bus_to: side 2 bus
        :param name: name of the line
        :param idtag: UUID code
        :param r: resistance (Ohm)
        :param x: reactance (Ohm)
        :param g1: side 1 shunt conductance (S)
        :param b1: side 1 shunt susceptance (S)
        :param g2: side 2 shunt conductance (S)
        :param b2: side 2 shunt susceptance (S)
        :param connected1: side 1 connected?
        :param connected2: side 2 connected?
        """
        BranchParent.__init__(self,
                              name=name,
                              idtag=idtag,
                              bus_from=bus_from,
                              bus_to=bus_to,
                              r=r,
                              x=x,
                              connected1=connected1,
                              connected2=connected2,
                              device_type=DeviceType.LineDevice)

        self.G1 = float(g1)
        self.B1 = float(b1)
        self.G2 = float(g2)
        self.B2 = float(b2)

        self.register(key='G1', units='S', tpe=float, definition='Side 1 shunt conductance')
        self.register(key='B1', units='S', tpe=float, definition='Side 1 shunt susceptance')
        self.register(key='G2', units='S', tpe=float, definition='Side 2 shunt conductance')
        self.register(key='B2', units='S', tpe=float, definition='Side 2 shunt susceptance')
