# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Dict, List
import numpy as np

from FlowCalEngine.basic_structures import BoolVec
from FlowCalEngine.enumerations import OuterLoopStatus, EquationType
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.discrete_controls import (ControllerContext,
                                                                               position_to_reach,
                                                                               direction_of,
                                                                               set_rho_position,
                                                                               round_rho_to_closest_tap)

# steps of the after generator control
INITIAL = 'INITIAL'
CONTROL = 'CONTROL'
COMPLETE = 'COMPLETE'

# ratio range tolerance
RHO_EPS = 1e-8

DEFAULT_MAX_TAP_SHIFT = 3
MAX_DIRECTION_CHANGE = 2

# deadband used when the transformers have none (kV)
MIN_TARGET_DEADBAND_KV = 0.1

# sensitivities below this are not usable
SENSI_EPS = 1e-6


def get_gen_controlled_buses(system: AcEquationSystem) -> BoolVec:
    """
    Buses whose voltage is controlled by generators at the moment
    """
    pv = system.get_pv_buses()
    controlled = np.zeros(system.nbus, dtype=bool)
    controlled[system.gen_controlled_bus[pv]] = True
    return controlled


def is_connected_to_step_up_transformers_only(system: AcEquationSystem, bus: int) -> bool:
    """
    Is the bus only connected to transformers that raise its voltage?
    """
    bd = system.nc.branch_data
    vnom = system.nc.bus_data.Vnom
    branches = np.where(bd.closed & ((bd.F == bus) | (bd.T == bus)))[0]
    if len(branches) == 0:
        return False
    for br in branches:
        other = bd.T[br] if bd.F[br] == bus else bd.F[br]
        if not bd.is_transformer[br] or vnom[other] <= vnom[bus]:
            return False
    return True


def get_max_controlled_nominal_voltage(system: AcEquationSystem) -> float:
    """
    Largest nominal voltage of the buses controlled by transformers that change the voltage level
    :return: kV, -1 if there is none
    """
    bd = system.nc.branch_data
    vnom = system.nc.bus_data.Vnom
    v_max = -1.0
    for r in np.unique(system.rho_reg_bus[system.rho_is_v]):
        ctrl = np.where(system.rho_is_v & (system.rho_reg_bus == r))[0]
        br = system.rho_br[ctrl]
        if np.all(vnom[bd.F[br]] != vnom[bd.T[br]]):
            v_max = max(v_max, vnom[r])
    return v_max


def get_voltage_controllers(system: AcEquationSystem) -> Dict[int, List[int]]:
    """
    Voltage controlling ratio variables grouped by controlled bus
    """
    groups = dict()
    for k in np.where(system.rho_is_v)[0]:
        groups.setdefault(int(system.rho_reg_bus[k]), list()).append(int(k))
    return groups


class TransformerVoltageControlOuterLoop(OuterLoop):
    """
    Continuous transformer voltage control run after the generator voltage control:
    the ratios are solved as variables, frozen at their bounds when needed and finally
    rounded to the closest tap
    """

    name = 'Transformer voltage control'

    def initialize(self, ctx: OuterLoopContext) -> None:
        system = ctx.system
        system.rho_enabled[system.rho_is_v] = False
        system.update()
        ctx.data['step'] = INITIAL

    def get_half_deadband(self, ctx: OuterLoopContext, k: int) -> float:
        return ctx.nc.rtc_data.deadband[ctx.system.rho_rtc[k]] / 2.0

    def suspend_generators(self, ctx: OuterLoopContext) -> None:
        """
        Stop the voltage control of the generators at and below the limit nominal voltage
        """
        system = ctx.system
        vnom = ctx.nc.bus_data.Vnom
        limit = ctx.options.generator_voltage_control_min_nominal_voltage
        if limit < 0:
            limit = get_max_controlled_nominal_voltage(system)

        for i in np.where(system.get_pv_buses())[0]:
            r = system.gen_controlled_bus[i]
            if vnom[r] <= limit and not is_connected_to_step_up_transformers_only(system, int(i)):
                system.gen_vc_suspended[i] = True
                ctx.logger.add_info("Generator voltage control suspended for the transformer voltage control",
                                    device=ctx.nc.bus_data.names[i], value=vnom[r], expected_value=limit,
                                    device_class='Bus')

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        step = ctx.data['step']

        if step == INITIAL:
            v = system.get_v()
            for k in np.where(system.rho_is_v)[0]:
                r = system.rho_reg_bus[k]
                if abs(system.rho_v_target[k] - v[r]) > self.get_half_deadband(ctx, k):
                    system.rho_enabled[k] = True

            if not np.any(system.rho_enabled & system.rho_is_v):
                ctx.data['step'] = COMPLETE
                return OuterLoopResult(OuterLoopStatus.STABLE)

            self.suspend_generators(ctx)

            # the suspended buses keep the reactive power they deliver now
            q = system.get_q_controller(system.compute_state().Sbus)
            system.ctrl_bus_q_spec = np.where(system.gen_vc_suspended, q, system.ctrl_bus_q_spec)

            ctx.data['step'] = CONTROL
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        elif step == CONTROL:
            rho = system.get_rho()
            enabled = np.where(system.rho_enabled & system.rho_is_v)[0]
            out_of_range = [k for k in enabled
                            if rho[k] < system.rho_min[k] - RHO_EPS or rho[k] > system.rho_max[k] + RHO_EPS]

            if len(out_of_range):
                for k in out_of_range:
                    position = round_rho_to_closest_tap(system, k)
                    system.rho_enabled[k] = False
                    ctx.logger.add_info("Ratio out of the tap range, frozen at the bound",
                                        device=ctx.nc.rtc_data.names[system.rho_rtc[k]], value=position,
                                        device_class='RatioTapChanger')
                system.update()
                return OuterLoopResult(OuterLoopStatus.UNSTABLE)

            for k in enabled:
                round_rho_to_closest_tap(system, k)
                system.rho_enabled[k] = False

            system.gen_vc_suspended[:] = False
            ctx.data['step'] = COMPLETE
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)


class IncrementalTransformerVoltageControlOuterLoop(OuterLoop):
    """
    Discrete transformer voltage control: the taps are moved from the voltage sensitivities,
    a few positions per outer iteration
    """

    name = 'Incremental transformer voltage control'

    def initialize(self, ctx: OuterLoopContext) -> None:
        system = ctx.system
        system.rho_enabled[system.rho_is_v] = False
        system.update()
        ctx.data['controllers'] = {int(k): ControllerContext(MAX_DIRECTION_CHANGE)
                                   for k in np.where(system.rho_is_v)[0]}

    def get_half_deadband(self, ctx: OuterLoopContext, bus: int, controllers: List[int]) -> float:
        """
        Half of the smallest deadband of the controllers of a bus
        """
        system = ctx.system
        db = ctx.nc.rtc_data.deadband[system.rho_rtc[controllers]]
        db = db[db > 0.0]
        if len(db):
            return float(np.min(db)) / 2.0
        return MIN_TARGET_DEADBAND_KV / ctx.nc.bus_data.Vnom[bus] / 2.0

    def move(self, ctx: OuterLoopContext, k: int, delta_r1: float, max_shift: int) -> float:
        """
        Move the tap of a ratio variable towards a ratio change
        :return: ratio change achieved
        """
        system = ctx.system
        rd = ctx.nc.rtc_data
        rtc = system.rho_rtc[k]
        steps = rd.r1_steps[rtc]
        controller: ControllerContext = ctx.data['controllers'][k]
        position = rd.position[rtc]
        new_position = position_to_reach(steps, position, delta_r1, max_shift=max_shift,
                                         allowed_direction=controller.allowed_direction)
        if new_position == position:
            return 0.0

        controller.update_allowed_direction(direction_of(steps, position, new_position))
        set_rho_position(system, k, new_position)
        return steps[new_position] - steps[position]

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        names = ctx.nc.bus_data.names
        v = system.get_v()
        gen_controlled = get_gen_controlled_buses(system)

        to_control = dict()
        for r, controllers in get_voltage_controllers(system).items():
            if gen_controlled[r]:
                continue
            diff_v = system.rho_v_target[controllers[0]] - v[r]
            if abs(diff_v) > self.get_half_deadband(ctx, r, controllers):
                to_control[r] = (controllers, diff_v)

        if len(to_control) == 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        ks = [k for controllers, _ in to_control.values() for k in controllers]
        rows = [system.get_row(EquationType.BRANCH_TARGET_RHO1, k) for k in ks]
        dxdt = system.compute_sensitivities(np.array(rows, dtype=int))
        column = {k: j for j, k in enumerate(ks)}

        moved = False
        at_limit = list()
        for r, (controllers, diff_v) in to_control.items():
            sensi = {k: dxdt[system.iv + r, column[k]] for k in controllers}
            usable = [k for k in controllers if abs(sensi[k]) > SENSI_EPS]
            half_db = self.get_half_deadband(ctx, r, controllers)
            bus_moved = False

            if len(usable) == 1:
                k = usable[0]
                if abs(self.move(ctx, k, diff_v / sensi[k], DEFAULT_MAX_TAP_SHIFT)) > 0.0:
                    bus_moved = True

            elif len(usable) > 1:
                # one tap at a time on every controller until the voltage is expected in the deadband
                remaining = diff_v
                changed = True
                while changed and abs(remaining) > half_db:
                    changed = False
                    for k in usable:
                        if abs(remaining) <= half_db:
                            break
                        d_r1 = self.move(ctx, k, remaining / sensi[k], 1)
                        if d_r1 != 0.0:
                            remaining -= d_r1 * sensi[k]
                            changed = True
                            bus_moved = True

            if bus_moved:
                moved = True
            else:
                at_limit.append(r)

        if len(at_limit):
            ctx.logger.add_info("Transformers of the controlled buses at their tap limits",
                                value=", ".join(str(names[r]) for r in at_limit))

        if moved:
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)
