# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List
import numpy as np

from FlowCalEngine.basic_structures import Mat, Vec
from FlowCalEngine.enumerations import OuterLoopStatus, EquationType, PhaseRegulationMode
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.discrete_controls import (ControllerContext,
                                                                               UNLIMITED_SHIFT,
                                                                               next_position,
                                                                               position_to_reach,
                                                                               position_to_exceed,
                                                                               direction_of,
                                                                               set_alpha_position,
                                                                               round_alpha_to_closest_tap)

MAX_DIRECTION_CHANGE = 2
MAX_TAP_SHIFT = UNLIMITED_SHIFT

# deadband used when the phase shifters have none (MW)
MIN_TARGET_DEADBAND_MW = 1.0

SENSI_EPS = 1e-6

# share of the excess current of another limiter above which a cross impact is reported
PHASE_SHIFT_CROSS_IMPACT_MARGIN = 0.75


def get_controlled_p(system: AcEquationSystem) -> Vec:
    """
    Active power at the regulated terminal of every phase variable (p.u.)
    """
    st = system.compute_state()
    return st.get_flow(system.alpha_reg_br, system.alpha_reg_side).real


def get_controlled_i(system: AcEquationSystem) -> Vec:
    """
    Current module at the regulated terminal of every phase variable (p.u.)
    """
    st = system.compute_state()
    return st.get_current(system.alpha_reg_br, system.alpha_reg_side)


def get_controllers(system: AcEquationSystem, mode: PhaseRegulationMode) -> List[int]:
    return [int(k) for k in range(system.nalpha) if system.alpha_mode[k] == mode]


class PhaseControlOuterLoop(OuterLoop):
    """
    Continuous phase control: the active power controlling phase shifters are solved as
    variables for the first Newton-Raphson run and rounded to the closest tap, then the
    current limiters move one tap at a time while their current exceeds the limit
    """

    name = 'Phase control'

    def initialize(self, ctx: OuterLoopContext) -> None:
        system = ctx.system
        for k in get_controllers(system, PhaseRegulationMode.ACTIVE_POWER_CONTROL):
            system.alpha_enabled[k] = True
        system.update()

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        if ctx.iteration == 0:
            return self.first_iteration(ctx)
        return self.next_iteration(ctx)

    def first_iteration(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        for k in get_controllers(system, PhaseRegulationMode.ACTIVE_POWER_CONTROL):
            a1 = system.get_alpha()[k]
            round_alpha_to_closest_tap(system, k)
            system.alpha_enabled[k] = False
            ctx.logger.add_info("Phase shift rounded to the closest tap",
                                device=ctx.nc.ptc_data.names[system.alpha_ptc[k]],
                                value=np.rad2deg(a1),
                                expected_value=np.rad2deg(system.get_alpha()[k]),
                                device_class='PhaseTapChanger')
        system.update()

        if system.nalpha == 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)
        return OuterLoopResult(OuterLoopStatus.UNSTABLE)

    def next_iteration(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        pd = ctx.nc.ptc_data
        limiters = get_controllers(system, PhaseRegulationMode.CURRENT_LIMITER)
        if len(limiters) == 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        i = get_controlled_i(system)
        over = [k for k in limiters if i[k] > system.alpha_p_target[k]]
        if len(over) == 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        rows = np.array([system.get_row(EquationType.BRANCH_TARGET_I, k) for k in over], dtype=int)
        system.compute(system.x, compute_jac=True)
        grad = system.get_measurement_gradient(rows)

        moved = False
        for j, k in enumerate(over):
            ptc = system.alpha_ptc[k]
            steps = pd.a1_steps[ptc]
            # decrease the phase shift when the current grows with it
            di_da = grad[j, system.ialpha + k]
            direction = -1.0 if di_da > 0 else 1.0
            new_position = next_position(steps, pd.position[ptc], direction)
            if new_position > -1:
                set_alpha_position(system, k, new_position)
                moved = True
            else:
                ctx.logger.add_warning("Current limiter at the end of its tap range",
                                       device=pd.names[ptc], value=i[k], expected_value=system.alpha_p_target[k],
                                       device_class='PhaseTapChanger')

        if moved:
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)


class IncrementalPhaseControlOuterLoop(OuterLoop):
    """
    Discrete phase control: the taps move from the sensitivities of the regulated
    active power or current to the phase shifts
    """

    name = 'Incremental phase control'

    def initialize(self, ctx: OuterLoopContext) -> None:
        system = ctx.system
        system.alpha_enabled[:] = False
        system.update()
        ctx.data['controllers'] = {k: ControllerContext(MAX_DIRECTION_CHANGE) for k in range(system.nalpha)}

    def get_half_deadband(self, ctx: OuterLoopContext, k: int) -> float:
        db = ctx.nc.ptc_data.deadband[ctx.system.alpha_ptc[k]]
        return max(db, MIN_TARGET_DEADBAND_MW / ctx.nc.Sbase) / 2.0

    def get_sensitivities(self, system: AcEquationSystem, tpe: EquationType) -> Mat:
        """
        Change of the regulated quantities for a phase shift of one degree
        :param system: AcEquationSystem
        :param tpe: BRANCH_TARGET_P or BRANCH_TARGET_I
        :return: Mat (nalpha, nalpha) with one row per regulated quantity and one column per phase variable
        """
        alpha_rows = np.array([system.get_row(EquationType.BRANCH_TARGET_ALPHA1, k)
                               for k in range(system.nalpha)], dtype=int)
        dxdt = system.compute_sensitivities(alpha_rows) * np.deg2rad(1.0)
        rows = np.array([system.get_row(tpe, k) for k in range(system.nalpha)], dtype=int)
        return system.get_measurement_gradient(rows) @ dxdt

    def move(self, ctx: OuterLoopContext, k: int, da: float, exceed: bool) -> float:
        """
        Move a phase shifter towards a phase shift change
        :return: phase shift change achieved (rad)
        """
        system = ctx.system
        pd = ctx.nc.ptc_data
        ptc = system.alpha_ptc[k]
        steps = pd.a1_steps[ptc]
        position = pd.position[ptc]
        controller: ControllerContext = ctx.data['controllers'][k]
        if exceed:
            new_position = position_to_exceed(steps, position, da, max_shift=MAX_TAP_SHIFT,
                                              allowed_direction=controller.allowed_direction)
        else:
            new_position = position_to_reach(steps, position, da, max_shift=MAX_TAP_SHIFT,
                                             allowed_direction=controller.allowed_direction)
        if new_position == position:
            return 0.0

        controller.update_allowed_direction(direction_of(steps, position, new_position))
        set_alpha_position(system, k, new_position)
        return steps[new_position] - steps[position]

    def check_current_limiters(self, ctx: OuterLoopContext, limiters: List[int]) -> bool:
        system = ctx.system
        names = ctx.nc.ptc_data.names
        i = get_controlled_i(system)
        over = [k for k in limiters if i[k] > system.alpha_p_target[k]]
        if len(over) == 0:
            return False

        a2i = self.get_sensitivities(system, EquationType.BRANCH_TARGET_I)
        moved = False
        for k in over:
            if abs(a2i[k, k]) <= SENSI_EPS:
                continue
            di = system.alpha_p_target[k] - i[k]
            da = np.deg2rad(di / a2i[k, k])
            discrete_da = self.move(ctx, k, da, exceed=True)
            if discrete_da != 0.0:
                moved = True

                # impact of this move on the other limiters above their limit
                for m in over:
                    if m != k and i[m] > system.alpha_p_target[m]:
                        di_cross = np.rad2deg(discrete_da) * a2i[m, k]
                        if di_cross > PHASE_SHIFT_CROSS_IMPACT_MARGIN * (i[m] - system.alpha_p_target[m]):
                            ctx.logger.add_warning("Phase shifter tap change significantly impacts the current of "
                                                   "another limiter above its limit",
                                                   device=names[system.alpha_ptc[k]],
                                                   value=names[system.alpha_ptc[m]],
                                                   device_class='PhaseTapChanger')
        return moved

    def check_active_power_controls(self, ctx: OuterLoopContext, controllers: List[int]) -> bool:
        system = ctx.system
        p = get_controlled_p(system)
        out = [k for k in controllers if abs(p[k] - system.alpha_p_target[k]) > self.get_half_deadband(ctx, k)]
        if len(out) == 0:
            return False

        a2p = self.get_sensitivities(system, EquationType.BRANCH_TARGET_P)
        moved = False
        for k in out:
            if abs(a2p[k, k]) <= SENSI_EPS:
                continue
            dp = system.alpha_p_target[k] - p[k]
            da = np.deg2rad(dp / a2p[k, k])
            if self.move(ctx, k, da, exceed=False) != 0.0:
                moved = True
        return moved

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        limiters = get_controllers(system, PhaseRegulationMode.CURRENT_LIMITER)
        apc = get_controllers(system, PhaseRegulationMode.ACTIVE_POWER_CONTROL)

        moved = False
        if len(limiters) and self.check_current_limiters(ctx, limiters):
            moved = True
        if len(apc) and self.check_active_power_controls(ctx, apc):
            moved = True

        if moved:
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)
