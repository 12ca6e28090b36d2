# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union, TYPE_CHECKING
from FlowCalEngine.enumerations import DeviceType
from FlowCalEngine.Devices.Parents.editable_device import EditableDevice

if TYPE_CHECKING:
    from FlowCalEngine.Devices.Aggregation.area import Area


class Bus(EditableDevice):
    """
    The Bus object is the container of all the possible devices that can be attached to
    a bus bar or substation. Such objects can be loads, voltage controlled generators,
    static generators, batteries, shunt elements, etc.

    The voltage state (v, angle) is written back here after every power flow, so that
    a subsequent solve can start from it (see VoltageInitMode.PREVIOUS).
    """

    def __init__(self,
                 name="Bus",
                 idtag: Union[str, None] = None,
                 vnom: float = 10.0,
                 area: Union[Area, None] = None,
                 v: Union[float, None] = None,
                 angle: Union[float, None] = None,
                 active: bool = True):
        """
        Bus constructor
        :param name: name of the bus
        :param idtag: unique identifier of the device
        :param vnom: nominal voltage in kV
        :param area: Area this bus belongs to (optional)
        :param v: voltage magnitude in kV (solved or provided initial value)
        :param angle: voltage angle in degrees (solved or provided initial value)
        :param active: is the bus in service?
        """

        EditableDevice.__init__(self,
                                name=name,
                                idtag=idtag,
                                device_type=DeviceType.BusDevice)

        self.Vnom = float(vnom)

        self.area: Union[Area, None] = area

        # state (kV, deg), None means unknown
        self.v: Union[float, None] = v

        self.angle: Union[float, None] = angle

        self.active = bool(active)

        self.register(key='Vnom', units='kV', tpe=float, definition='Nominal line voltage of the bus.')
        self.register(key='area', units='', tpe=DeviceType.AreaDevice, definition='Area of the bus')
        self.register(key='v', units='kV', tpe=float, definition='Voltage magnitude')
        self.register(key='angle', units='deg', tpe=float, definition='Voltage angle')
        self.register(key='active', units='', tpe=bool, definition='Is the bus active?')

    def has_state(self) -> bool:
        """
        Does this bus store a voltage state?
        :return: bool
        """
        return self.v is not None and self.angle is not None
