# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple
import numpy as np

from FlowCalEngine.basic_structures import Vec, IntVec
from FlowCalEngine.enumerations import OuterLoopStatus
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult

# maximum number of PQ to PV switches of a bus in one run
MAX_SWITCH_PQ_PV = 3

# reactive power tolerance on the limits (p.u.)
Q_LIMIT_EPS = 1e-5


def get_strongest_bus(system: AcEquationSystem, buses: IntVec) -> int:
    """
    Bus that keeps the voltage control when all of them would lose it:
    highest nominal voltage, then highest active generation, then name
    :param system: AcEquationSystem
    :param buses: candidate controller buses
    :return: bus index
    """
    nc = system.nc
    gd = nc.generator_data
    ctrl = system.gen_ctrl_mask
    p_ctrl = np.bincount(gd.bus_idx[ctrl], weights=gd.p[ctrl], minlength=nc.nbus)
    keys = [(-nc.bus_data.Vnom[i], -p_ctrl[i], str(nc.bus_data.names[i]), int(i)) for i in buses]
    return sorted(keys)[0][3]


class ReactiveLimitsOuterLoop(OuterLoop):
    """
    Switches the generator buses between voltage control (PV) and fixed reactive power (PQ)
    according to the reactive power limits of their generators
    """

    name = 'Reactive limits'

    def initialize(self, ctx: OuterLoopContext) -> None:
        ctx.data['pq_pv_switch_count'] = np.zeros(ctx.system.nbus, dtype=int)

    def check_pv_to_pq(self, ctx: OuterLoopContext, q: Vec) -> List[Tuple[int, int]]:
        """
        Controller buses whose reactive power violates a limit
        :param ctx: OuterLoopContext
        :param q: reactive power of the controlling generators per bus (p.u.)
        :return: [(bus, limit type)] with limit type -1 for the minimum, 1 for the maximum
        """
        system = ctx.system
        switches = list()
        for i in np.where(system.get_pv_buses())[0]:
            if q[i] < system.gen_qmin_bus[i] - Q_LIMIT_EPS:
                switches.append((int(i), -1))
            elif q[i] > system.gen_qmax_bus[i] + Q_LIMIT_EPS:
                switches.append((int(i), 1))
        return switches

    def check_pq_to_pv(self, ctx: OuterLoopContext) -> List[int]:
        """
        Controller buses at a limit whose controlled voltage came back to the feasible side of the target
        :param ctx: OuterLoopContext
        :return: bus indices
        """
        system = ctx.system
        count = ctx.data['pq_pv_switch_count']
        v = system.get_v()
        candidates = np.where(system.is_gen_controller & ~system.gen_vc_on & ~system.gen_vc_suspended
                              & (system.q_limit_type != 0))[0]
        buses = list()
        for i in candidates:
            if system.bus_slope[i] != 0.0:
                continue
            r = system.gen_controlled_bus[i]
            at_min = system.q_limit_type[i] == -1 and v[r] < system.gen_v_target[r]
            at_max = system.q_limit_type[i] == 1 and v[r] > system.gen_v_target[r]
            if at_min or at_max:
                if count[i] < MAX_SWITCH_PQ_PV:
                    buses.append(int(i))
                else:
                    ctx.logger.add_info("Bus kept at its reactive limit, too many switches",
                                        device=system.nc.bus_data.names[i], value=int(count[i]),
                                        device_class='Bus')
        return buses

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        names = system.nc.bus_data.names
        Sbase = system.nc.Sbase
        q = system.get_q_controller(system.compute_state().Sbus)

        pv_to_pq = self.check_pv_to_pq(ctx, q)
        pq_to_pv = self.check_pq_to_pv(ctx)

        n_pv = int(np.sum(system.get_pv_buses()))
        if len(pv_to_pq) and len(pv_to_pq) == n_pv and len(pq_to_pv) == 0:
            strongest = get_strongest_bus(system, np.array([i for i, _ in pv_to_pq], dtype=int))
            pv_to_pq = [(i, t) for i, t in pv_to_pq if i != strongest]
            ctx.logger.add_warning("All the generator buses reach a reactive limit, "
                                   "the strongest one keeps the voltage control",
                                   device=names[strongest], device_class='Bus')

        for i, limit_type in pv_to_pq:
            q_lim = system.gen_qmin_bus[i] if limit_type == -1 else system.gen_qmax_bus[i]
            system.gen_vc_on[i] = False
            system.q_limit_type[i] = limit_type
            system.ctrl_bus_q_spec[i] = q_lim
            ctx.logger.add_info("Bus switched PV to PQ",
                                device=names[i],
                                value=f"{q[i] * Sbase:.4f} MVAr",
                                expected_value=f"{q_lim * Sbase:.4f} MVAr",
                                device_class='Bus')

        count = ctx.data['pq_pv_switch_count']
        for i in pq_to_pv:
            system.gen_vc_on[i] = True
            system.q_limit_type[i] = 0
            count[i] += 1
            ctx.logger.add_info("Bus switched PQ to PV", device=names[i], device_class='Bus')

        if len(pv_to_pq) or len(pq_to_pv):
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)
