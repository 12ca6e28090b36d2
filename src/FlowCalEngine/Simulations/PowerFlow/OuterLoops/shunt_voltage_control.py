# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List
import numpy as np

from FlowCalEngine.enumerations import OuterLoopStatus, EquationType
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.discrete_controls import (ControllerContext,
                                                                               position_to_reach,
                                                                               direction_of,
                                                                               set_shunt_section,
                                                                               round_b_to_closest_section)
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.transformer_voltage_control import get_gen_controlled_buses

MAX_DIRECTION_CHANGE = 2

# deadband used when the shunts have none (kV)
MIN_TARGET_DEADBAND_KV = 0.1

SENSI_EPS = 1e-6


class ShuntVoltageControlOuterLoop(OuterLoop):
    """
    Continuous shunt voltage control: the susceptance is solved as a variable for the
    first Newton-Raphson run and then rounded to the closest section
    """

    name = 'Shunt voltage control'

    def initialize(self, ctx: OuterLoopContext) -> None:
        system = ctx.system
        system.bsh_enabled[:] = True
        system.update()

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        if ctx.iteration > 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        enabled = np.where(system.bsh_enabled)[0]
        if len(enabled) == 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        for k in enabled:
            section = round_b_to_closest_section(system, k)
            system.bsh_enabled[k] = False
            ctx.logger.add_info("Shunt rounded to the closest section",
                                device=ctx.nc.shunt_data.names[system.bsh_idx[k]], value=section,
                                device_class='Shunt')
        system.update()
        return OuterLoopResult(OuterLoopStatus.UNSTABLE)


class IncrementalShuntVoltageControlOuterLoop(OuterLoop):
    """
    Discrete shunt voltage control: sections are connected or disconnected one by one
    from the voltage sensitivities
    """

    name = 'Incremental shunt voltage control'

    def initialize(self, ctx: OuterLoopContext) -> None:
        system = ctx.system
        system.bsh_enabled[:] = False
        system.update()
        ctx.data['controllers'] = {int(k): ControllerContext(MAX_DIRECTION_CHANGE) for k in range(system.nshb)}

    def get_half_deadband(self, ctx: OuterLoopContext, bus: int, controllers: List[int]) -> float:
        db = ctx.nc.shunt_data.v_deadband[ctx.system.bsh_idx[controllers]]
        db = db[db > 0.0]
        if len(db):
            return float(np.min(db)) / 2.0
        return MIN_TARGET_DEADBAND_KV / ctx.nc.bus_data.Vnom[bus] / 2.0

    def move(self, ctx: OuterLoopContext, k: int, delta_b: float) -> float:
        """
        Connect or disconnect at most one section
        :return: susceptance change achieved
        """
        system = ctx.system
        sd = ctx.nc.shunt_data
        sh = system.bsh_idx[k]
        steps = sd.b_steps[sh]
        controller: ControllerContext = ctx.data['controllers'][k]
        section = sd.section[sh]
        new_section = position_to_reach(steps, section, delta_b, max_shift=1,
                                        allowed_direction=controller.allowed_direction)
        if new_section == section:
            return 0.0

        controller.update_allowed_direction(direction_of(steps, section, new_section))
        set_shunt_section(system, k, new_section)
        return steps[new_section] - steps[section]

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        sd = ctx.nc.shunt_data
        v = system.get_v()
        gen_controlled = get_gen_controlled_buses(system)

        groups = dict()
        for k in range(system.nshb):
            groups.setdefault(int(system.bsh_reg_bus[k]), list()).append(k)

        to_control = dict()
        for r, controllers in groups.items():
            if gen_controlled[r]:
                continue
            diff_v = system.bsh_v_target[controllers[0]] - v[r]
            if abs(diff_v) > self.get_half_deadband(ctx, r, controllers):
                to_control[r] = (controllers, diff_v)

        if len(to_control) == 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        ks = [k for controllers, _ in to_control.values() for k in controllers]
        rows = [system.get_row(EquationType.SHUNT_TARGET_B, k) for k in ks]
        dxdt = system.compute_sensitivities(np.array(rows, dtype=int))
        column = {k: j for j, k in enumerate(ks)}

        moved = False
        for r, (controllers, diff_v) in to_control.items():
            half_db = self.get_half_deadband(ctx, r, controllers)
            sensi = {k: dxdt[system.iv + r, column[k]] for k in controllers}

            # the largest shunts move first
            usable = sorted([k for k in controllers if abs(sensi[k]) > SENSI_EPS],
                            key=lambda k: -np.max(np.abs(sd.b_steps[system.bsh_idx[k]])))

            remaining = diff_v
            changed = True
            while changed and abs(remaining) > half_db:
                changed = False
                for k in usable:
                    if abs(remaining) <= half_db:
                        break
                    d_b = self.move(ctx, k, remaining / sensi[k])
                    if d_b != 0.0:
                        remaining -= d_b * sensi[k]
                        changed = True
                        moved = True

        if moved:
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)
