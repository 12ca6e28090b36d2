# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union
from FlowCalEngine.enumerations import DeviceType
from FlowCalEngine.Devices.Parents.editable_device import EditableDevice
from FlowCalEngine.Devices.Substation.bus import Bus


class InjectionParent(EditableDevice):
    """
    Parent class for Injections
    """

    def __init__(self,
                 name: str,
                 idtag: Union[str, None],
                 bus: Union[Bus, None],
                 active: bool,
                 device_type: DeviceType):
        """
        InjectionTemplate
        :param name: Name of the device
        :param idtag: unique id of the device (if None or "" a new one is generated)
        :param bus: Bus object
        :param active: active state
        :param device_type: DeviceType
        """

        EditableDevice.__init__(self,
                                name=name,
                                idtag=idtag,
                                device_type=device_type)

        self.bus = bus

        self.active = bool(active)

        self.register(key='bus', units='', tpe=DeviceType.BusDevice, definition='Connection bus')
        self.register(key='active', units='', tpe=bool, definition='Is the injection active?')
