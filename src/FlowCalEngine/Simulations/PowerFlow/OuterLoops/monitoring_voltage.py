# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple
import numpy as np

from FlowCalEngine.enumerations import OuterLoopStatus
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult


class MonitoringVoltageOuterLoop(OuterLoop):
    """
    Switches the buses of the standby generators from PQ to PV when their controlled voltage
    leaves the monitored band, with the low or the high set point of the generator
    """

    name = 'Voltage monitoring'

    def check_voltage_band(self, ctx: OuterLoopContext) -> List[Tuple[int, float]]:
        """
        Standby controller buses whose controlled voltage is out of the band
        :param ctx: OuterLoopContext
        :return: [(controller bus, new voltage set point)]
        """
        system = ctx.system
        v = system.get_v()
        switches = list()
        for i in np.where(system.monitoring_bus & ~system.gen_vc_on)[0]:
            r = system.gen_controlled_bus[i]
            if v[r] > system.high_v_threshold[i]:
                switches.append((int(i), float(system.high_target_v[i])))
            elif v[r] < system.low_v_threshold[i]:
                switches.append((int(i), float(system.low_target_v[i])))
        return switches

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        names = system.nc.bus_data.names
        vnom = system.nc.bus_data.Vnom

        switches = self.check_voltage_band(ctx)

        for i, v_target in switches:
            r = system.gen_controlled_bus[i]
            system.gen_vc_on[i] = True
            system.monitoring_bus[i] = False
            system.ctrl_bus_q_spec[i] = 0.0
            system.gen_v_target[r] = v_target
            ctx.logger.add_info("Standby automaton activated, bus switched PQ to PV",
                                device=names[i],
                                value=f"{v_target * vnom[r]:.4f} kV",
                                device_class='Bus')

        if len(switches):
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)
