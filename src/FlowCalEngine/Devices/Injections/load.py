# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union
from FlowCalEngine.enumerations import DeviceType
from FlowCalEngine.Devices.Parents.injection_parent import InjectionParent
from FlowCalEngine.Devices.Substation.bus import Bus


class Load(InjectionParent):
    """
    Constant power load (consumption convention)
    """

    def __init__(self,
                 bus: Union[Bus, None] = None,
                 name: str = 'Load',
                 idtag: Union[str, None] = None,
                 p: float = 0.0,
                 q: float = 0.0,
                 participating: bool = True,
                 active: bool = True):
        """
        Load constructor
        :param bus: connection bus
        :param name: name
        :param idtag: UUID code
        :param p: active power consumption (MW)
        :param q: reactive power consumption (MVAr)
        :param participating: does the load take part in the slack distribution (load balance type)
        :param active: in service?
        """
        InjectionParent.__init__(self,
                                 name=name,
                                 idtag=idtag,
                                 bus=bus,
                                 active=active,
                                 device_type=DeviceType.LoadDevice)

        self.P = float(p)
        self.Q = float(q)
        self.participating = bool(participating)

        # active power after the slack distribution (MW)
        self.p_solved = float('nan')

        self.register(key='P', units='MW', tpe=float, definition='Active power')
        self.register(key='Q', units='MVAr', tpe=float, definition='Reactive power')
        self.register(key='participating', units='', tpe=bool, definition='Participates in the slack')
