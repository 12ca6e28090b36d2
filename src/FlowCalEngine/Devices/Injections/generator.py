# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union
from FlowCalEngine.enumerations import DeviceType
from FlowCalEngine.Devices.Parents.injection_parent import InjectionParent
from FlowCalEngine.Devices.Substation.bus import Bus


class Generator(InjectionParent):
    """
    Voltage controlled generator.
    Generation convention: positive P and Q are produced
    """

    def __init__(self,
                 bus: Union[Bus, None] = None,
                 name: str = 'gen',
                 idtag: Union[str, None] = None,
                 target_p: float = 0.0,
                 target_q: float = 0.0,
                 target_v: float = 0.0,
                 voltage_regulator_on: bool = False,
                 regulated_bus: Union[Bus, None] = None,
                 min_p: float = -9999.0,
                 max_p: float = 9999.0,
                 min_q: float = -9999.0,
                 max_q: float = 9999.0,
                 droop: float = 4.0,
                 participation_factor: float = 0.0,
                 participating: bool = True,
                 slope: float = 0.0,
                 standby: bool = False,
                 low_voltage_threshold: float = 0.0,
                 high_voltage_threshold: float = 0.0,
                 low_target_v: float = 0.0,
                 high_target_v: float = 0.0,
                 active: bool = True):
        """
        Generator constructor
        :param bus: connection bus
        :param name: name of the generator
        :param idtag: UUID code
        :param target_p: active power set point (MW)
        :param target_q: reactive power set point (MVAr), used when not regulating the voltage
        :param target_v: voltage set point (kV) of the regulated bus
        :param voltage_regulator_on: does the generator regulate a voltage?
        :param regulated_bus: remotely regulated bus (the connection bus if None)
        :param min_p: minimum active power (MW)
        :param max_p: maximum active power (MW)
        :param min_q: minimum reactive power (MVAr)
        :param max_q: maximum reactive power (MVAr)
        :param droop: droop (%) used to share the slack proportionally to max_p / droop
        :param participation_factor: explicit slack participation factor
        :param participating: does the generator take part in the slack distribution?
        :param slope: voltage / reactive power slope (kV/MVAr) of the regulation
        :param standby: is the voltage regulation in standby, monitoring the voltage band?
        :param low_voltage_threshold: lower bound (kV) of the monitored voltage band
        :param high_voltage_threshold: upper bound (kV) of the monitored voltage band
        :param low_target_v: voltage set point (kV) taken below the band
        :param high_target_v: voltage set point (kV) taken above the band
        :param active: is the generator in service?
        """
        InjectionParent.__init__(self,
                                 name=name,
                                 idtag=idtag,
                                 bus=bus,
                                 active=active,
                                 device_type=DeviceType.GeneratorDevice)

        self.target_p = float(target_p)
        self.target_q = float(target_q)
        self.target_v = float(target_v)
        self.voltage_regulator_on = bool(voltage_regulator_on)
        self.regulated_bus: Union[Bus, None] = regulated_bus
        self.min_p = float(min_p)
        self.max_p = float(max_p)
        self.min_q = float(min_q)
        self.max_q = float(max_q)
        self.droop = float(droop)
        self.participation_factor = float(participation_factor)
        self.participating = bool(participating)
        self.slope = float(slope)
        self.standby = bool(standby)
        self.low_voltage_threshold = float(low_voltage_threshold)
        self.high_voltage_threshold = float(high_voltage_threshold)
        self.low_target_v = float(low_target_v)
        self.high_target_v = float(high_target_v)

        # results written back after a power flow
        self.p = float('nan')
        self.q = float('nan')

        self.register(key='target_p', units='MW', tpe=float, definition='Active power set point')
        self.register(key='target_q', units='MVAr', tpe=float, definition='Reactive power set point')
        self.register(key='target_v', units='kV', tpe=float, definition='Voltage set point')
        self.register(key='voltage_regulator_on', units='', tpe=bool, definition='Voltage regulation enabled')
        self.register(key='regulated_bus', units='', tpe=DeviceType.BusDevice, definition='Regulated bus')
        self.register(key='min_p', units='MW', tpe=float, definition='Minimum active power')
        self.register(key='max_p', units='MW', tpe=float, definition='Maximum active power')
        self.register(key='min_q', units='MVAr', tpe=float, definition='Minimum reactive power')
        self.register(key='max_q', units='MVAr', tpe=float, definition='Maximum reactive power')
        self.register(key='droop', units='%', tpe=float, definition='Frequency droop')
        self.register(key='participation_factor', units='', tpe=float, definition='Slack participation factor')
        self.register(key='participating', units='', tpe=bool, definition='Participates in the slack')
        self.register(key='slope', units='kV/MVAr', tpe=float, definition='Voltage regulation slope')
        self.register(key='standby', units='', tpe=bool, definition='Voltage regulation in standby')
        self.register(key='low_voltage_threshold', units='kV', tpe=float, definition='Standby low voltage threshold')
        self.register(key='high_voltage_threshold', units='kV', tpe=float,
                      definition='Standby high voltage threshold')
        self.register(key='low_target_v', units='kV', tpe=float, definition='Standby low voltage set point')
        self.register(key='high_target_v', units='kV', tpe=float, definition='Standby high voltage set point')

    def get_regulated_bus(self) -> Bus:
        return self.bus if self.regulated_bus is None else self.regulated_bus
