# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np

from FlowCalEngine.enumerations import OuterLoopStatus, SlackDistributionFailureBehavior
from FlowCalEngine.exceptions import SlackDistributionFailureError
from FlowCalEngine.DataStructures.numerical_circuit import NumericalCircuit
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.active_power_distribution import (ActivePowerDistribution,
                                                                                       DistributionResult,
                                                                                       P_RESIDUE_EPS)


def get_reference_generator(nc: NumericalCircuit, slack: int) -> int:
    """
    First in service generator of the slack bus
    :param nc: NumericalCircuit
    :param slack: slack bus index
    :return: generator index, -1 if there is none
    """
    gd = nc.generator_data
    idx = np.where(gd.active & (gd.bus_idx == slack))[0]
    return int(idx[0]) if len(idx) else -1


class DistributedSlackOuterLoop(OuterLoop):
    """
    Shares the active power of the slack bus among the participating units
    """

    name = 'Distributed slack'

    def initialize(self, ctx: OuterLoopContext) -> None:
        ctx.data['distribution'] = ActivePowerDistribution(balance_type=ctx.options.balance_type,
                                                          logger=ctx.logger)
        ctx.data['reference_generator'] = get_reference_generator(ctx.nc, ctx.system.slack)

    def get_failure_behavior(self, ctx: OuterLoopContext) -> SlackDistributionFailureBehavior:
        """
        Failure behaviour, DISTRIBUTE_ON_REFERENCE_GENERATOR falls back to FAIL without reference generator
        """
        behavior = ctx.options.slack_distribution_failure_behavior
        if (behavior == SlackDistributionFailureBehavior.DISTRIBUTE_ON_REFERENCE_GENERATOR
                and ctx.data['reference_generator'] < 0):
            behavior = SlackDistributionFailureBehavior.FAIL
        return behavior

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        Sbase = ctx.nc.Sbase
        mismatch = ctx.system.get_slack_mismatch()

        if abs(mismatch) <= ctx.options.slack_bus_p_max_mismatch / Sbase or abs(mismatch) <= P_RESIDUE_EPS:
            return OuterLoopResult(OuterLoopStatus.STABLE)

        distribution: ActivePowerDistribution = ctx.data['distribution']
        reference = ctx.data['reference_generator']
        result = distribution.run(nc=ctx.nc,
                                  bus_mask=np.ones(ctx.nc.nbus, dtype=bool),
                                  mismatch=mismatch,
                                  reference_generator=reference)
        distributed = mismatch - result.remaining
        ctx.distributed_p += distributed

        if abs(result.remaining) > P_RESIDUE_EPS:
            msg = "Failed to distribute slack bus active power mismatch, %.2f MW remains" % (result.remaining * Sbase)
            return self.handle_failure(ctx, result, distributed, msg)

        ctx.logger.add_info("Slack bus active power distributed",
                            value=f"{mismatch * Sbase:.4f} MW in {result.iteration} iteration(s)")
        return OuterLoopResult(OuterLoopStatus.UNSTABLE)

    def handle_failure(self, ctx: OuterLoopContext, result: DistributionResult, distributed: float,
                       msg: str) -> OuterLoopResult:
        """
        Apply the distribution failure behaviour
        :param ctx: OuterLoopContext
        :param result: DistributionResult
        :param distributed: power distributed by this check (p.u.)
        :param msg: failure message
        :return: OuterLoopResult
        """
        behavior = self.get_failure_behavior(ctx)

        if behavior == SlackDistributionFailureBehavior.THROW:
            raise SlackDistributionFailureError(msg)

        elif behavior == SlackDistributionFailureBehavior.LEAVE_ON_SLACK_BUS:
            ctx.logger.add_warning(msg)
            return OuterLoopResult(OuterLoopStatus.UNSTABLE if result.moved else OuterLoopStatus.STABLE, msg)

        elif behavior == SlackDistributionFailureBehavior.FAIL:
            ctx.logger.add_error(msg)
            # nothing is solved again, so the injections stay as solved
            ActivePowerDistribution.restore(ctx.nc, result.previous)
            ctx.distributed_p -= distributed
            return OuterLoopResult(OuterLoopStatus.FAILED, msg)

        elif behavior == SlackDistributionFailureBehavior.DISTRIBUTE_ON_REFERENCE_GENERATOR:
            gd = ctx.nc.generator_data
            reference = ctx.data['reference_generator']
            gd.p[reference] += result.remaining
            ctx.distributed_p += result.remaining
            ctx.logger.add_info("Remaining slack active power put on the reference generator",
                                device=gd.names[reference],
                                value=f"{result.remaining * ctx.nc.Sbase:.4f} MW",
                                device_class='Generator')
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        else:
            raise ValueError(f"Unknown slack distribution failure behavior {behavior}")
