# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np

from FlowCalEngine.enumerations import OuterLoopStatus, EquationType
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.discrete_controls import (ControllerContext,
                                                                               position_to_reach,
                                                                               direction_of,
                                                                               set_rho_position)

DEFAULT_MAX_TAP_SHIFT = 3
MAX_DIRECTION_CHANGE = 2

# deadband used when the transformers have none (MVAr)
MIN_TARGET_DEADBAND_MVAR = 0.1

SENSI_EPS = 1e-6


class IncrementalTransformerReactivePowerControlOuterLoop(OuterLoop):
    """
    Moves the taps of the reactive power controlling transformers so that the reactive power
    at their regulated side reaches the target
    """

    name = 'Incremental transformer reactive power control'

    def initialize(self, ctx: OuterLoopContext) -> None:
        system = ctx.system
        q_ctrl = np.where(~system.rho_is_v)[0]
        system.rho_enabled[q_ctrl] = False
        system.update()
        ctx.data['controllers'] = {int(k): ControllerContext(MAX_DIRECTION_CHANGE) for k in q_ctrl}

    def get_half_deadband(self, ctx: OuterLoopContext, k: int) -> float:
        db = ctx.nc.rtc_data.deadband[ctx.system.rho_rtc[k]]
        return max(db, MIN_TARGET_DEADBAND_MVAR / ctx.nc.Sbase) / 2.0

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        rd = ctx.nc.rtc_data
        controllers = ctx.data['controllers']
        if len(controllers) == 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        st = system.compute_state()
        q = st.get_flow(system.rho_br, system.rho_q_side).imag

        to_control = [k for k in controllers.keys()
                      if abs(system.rho_q_target[k] - q[k]) > self.get_half_deadband(ctx, k)]
        if len(to_control) == 0:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        rho_rows = np.array([system.get_row(EquationType.BRANCH_TARGET_RHO1, k) for k in to_control], dtype=int)
        q_rows = np.array([system.get_row(EquationType.BRANCH_TARGET_Q, k) for k in to_control], dtype=int)
        dxdt = system.compute_sensitivities(rho_rows)
        grad = system.get_measurement_gradient(q_rows)

        moved = False
        for j, k in enumerate(to_control):
            sensi = float(grad[j, :] @ dxdt[:, j])
            if abs(sensi) < SENSI_EPS:
                continue

            rtc = system.rho_rtc[k]
            steps = rd.r1_steps[rtc]
            position = rd.position[rtc]
            controller: ControllerContext = controllers[k]
            delta_r1 = (system.rho_q_target[k] - q[k]) / sensi
            new_position = position_to_reach(steps, position, delta_r1, max_shift=DEFAULT_MAX_TAP_SHIFT,
                                             allowed_direction=controller.allowed_direction)
            if new_position != position:
                controller.update_allowed_direction(direction_of(steps, position, new_position))
                set_rho_position(system, k, new_position)
                moved = True
            else:
                ctx.logger.add_info("Reactive power controlling transformer cannot move further",
                                    device=rd.names[rtc], value=position, device_class='RatioTapChanger')

        if moved:
            system.update()
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)
