# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union, List
import numpy as np
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import DeviceType
from FlowCalEngine.Devices.Parents.injection_parent import InjectionParent
from FlowCalEngine.Devices.Substation.bus import Bus


class Shunt(InjectionParent):
    """
    Linear switched shunt compensator (section k has a susceptance of k times b_per_section)
    """

    def __init__(self,
                 bus: Union[Bus, None] = None,
                 name: str = 'shunt',
                 idtag: Union[str, None] = None,
                 g: float = 0.0,
                 b_per_section: float = 0.0,
                 max_sections: int = 1,
                 section: int = 1,
                 voltage_control_on: bool = False,
                 target_v: float = 0.0,
                 target_deadband: float = 0.0,
                 regulated_bus: Union[Bus, None] = None,
                 active: bool = True):
        """
        Shunt constructor
        :param bus: connection bus
        :param name: name
        :param idtag: UUID code
        :param g: conductance (S)
        :param b_per_section: susceptance of one section (S), positive is capacitive
        :param max_sections: number of sections
        :param section: connected sections
        :param voltage_control_on: does the shunt regulate a voltage?
        :param target_v: voltage target (kV)
        :param target_deadband: voltage deadband (kV)
        :param regulated_bus: regulated bus (the connection bus if None)
        :param active: in service?
        """
        InjectionParent.__init__(self,
                                 name=name,
                                 idtag=idtag,
                                 bus=bus,
                                 active=active,
                                 device_type=DeviceType.ShuntDevice)

        self.G = float(g)
        self.b_per_section = float(b_per_section)
        self.max_sections = int(max_sections)
        self.section = int(section)
        self.voltage_control_on = bool(voltage_control_on)
        self.target_v = float(target_v)
        self.target_deadband = float(target_deadband)
        self.regulated_bus: Union[Bus, None] = regulated_bus

        if not (0 <= self.section <= self.max_sections):
            raise ValueError(f"Section {self.section} out of range [0, {self.max_sections}]")

        # results written back after a power flow
        self.solved_section: Union[int, None] = None
        self.q = float('nan')

        self.register(key='G', units='S', tpe=float, definition='Conductance')
        self.register(key='b_per_section', units='S', tpe=float, definition='Susceptance per section')
        self.register(key='max_sections', units='', tpe=int, definition='Number of sections')
        self.register(key='section', units='', tpe=int, definition='Connected sections')
        self.register(key='voltage_control_on', units='', tpe=bool, definition='Voltage regulation enabled')
        self.register(key='target_v', units='kV', tpe=float, definition='Voltage target')
        self.register(key='target_deadband', units='kV', tpe=float, definition='Voltage deadband')
        self.register(key='regulated_bus', units='', tpe=DeviceType.BusDevice, definition='Regulated bus')

    def get_b_steps(self) -> Vec:
        """
        Susceptance of every section count (S)
        :return: array of max_sections + 1 values
        """
        return np.arange(self.max_sections + 1, dtype=float) * self.b_per_section

    def get_regulated_bus(self) -> Bus:
        return self.bus if self.regulated_bus is None else self.regulated_bus
