# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Dict, Tuple
import numpy as np

from FlowCalEngine.basic_structures import Vec, BoolVec
from FlowCalEngine.enumerations import OuterLoopStatus, SlackDistributionFailureBehavior
from FlowCalEngine.exceptions import SlackDistributionFailureError
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.active_power_distribution import (ActivePowerDistribution,
                                                                                       DistributionResult,
                                                                                       P_RESIDUE_EPS)
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.distributed_slack import (DistributedSlackOuterLoop,
                                                                               get_reference_generator)

NO_AREA = "NO_AREA"


def get_area_interchange(system: AcEquationSystem) -> Vec:
    """
    Active power leaving every interchange controlled area through its boundaries
    :param system: AcEquationSystem
    :return: interchange per controlled area (p.u.), in the order of system.area_idx
    """
    st = system.compute_state()
    return system.area_boundary_matrix @ np.r_[st.Sf.real, st.St.real]


def allocate_slack_participation(system: AcEquationSystem) -> Dict[str, float]:
    """
    Share of the slack bus mismatch that every area has to take.
    A slack bus without area is shared by the areas it touches whose boundaries do not
    include the touching branches, or is left to the buses without area.
    :param system: AcEquationSystem
    :return: {area name or NO_AREA: factor}
    """
    nc = system.nc
    names = nc.area_data.names
    bus_areas = nc.bus_data.areas
    slack = system.slack
    controlled = set(int(a) for a in system.area_idx)

    a = int(bus_areas[slack])
    if a in controlled:
        return {names[a]: 1.0}

    bd = nc.branch_data
    touching = np.where(bd.closed & ((bd.F == slack) | (bd.T == slack)))[0]
    sharing = set()
    for br in touching:
        for bus in (bd.F[br], bd.T[br]):
            other = int(bus_areas[bus])
            if other in controlled:
                boundary_branches, _ = nc.area_data.get_boundaries(other)
                if not np.any(np.isin(touching, boundary_branches)):
                    sharing.add(other)

    if len(sharing):
        system.logger.add_warning("Slack bus without area shared by the areas it connects to",
                                  device=nc.bus_data.names[slack],
                                  value=", ".join(sorted(str(names[x]) for x in sharing)),
                                  device_class='Bus')
        return {names[x]: 1.0 / len(sharing) for x in sharing}

    return {NO_AREA: 1.0}


def mismatches_to_str(remaining: Dict[str, float], iterations: Dict[str, int], Sbase: float) -> str:
    """
    Text of the per area mismatches, sorted by area name
    """
    return ", ".join("%s: %.2f MW (%d it.)" % (name, remaining[name] * Sbase, iterations[name])
                     for name in sorted(remaining.keys()))


class AreaInterchangeControlOuterLoop(OuterLoop):
    """
    Drives the active power interchange of every area to its target while distributing the slack.
    Without controlled areas in the island it behaves as the distributed slack loop.
    """

    name = 'Area interchange control'

    def __init__(self):
        self.no_area_loop = DistributedSlackOuterLoop()

    def initialize(self, ctx: OuterLoopContext) -> None:
        system = ctx.system
        if system.narea_eq == 0:
            self.no_area_loop.initialize(ctx)
            return

        nc = ctx.nc
        controlled = np.isin(nc.bus_data.areas, system.area_idx)
        ctx.data['distribution'] = ActivePowerDistribution(balance_type=ctx.options.balance_type, logger=ctx.logger)
        ctx.data['buses_without_area'] = ~controlled
        ctx.data['area_buses'] = {nc.area_data.names[a]: nc.bus_data.areas == a for a in system.area_idx}
        ctx.data['slack_participation'] = allocate_slack_participation(system)
        ctx.data['reference_generator'] = get_reference_generator(nc, system.slack)

        for a in system.excluded_areas:
            ctx.logger.add_warning("Area with boundaries out of the island, interchange control disabled",
                                   device=nc.area_data.names[a], device_class='Area')

    def lower_than_max_mismatch(self, ctx: OuterLoopContext, mismatch: float) -> bool:
        return (abs(mismatch) <= ctx.options.area_interchange_p_max_mismatch / ctx.nc.Sbase
                or abs(mismatch) <= P_RESIDUE_EPS)

    def get_slack_injection(self, ctx: OuterLoopContext, name: str, slack_mismatch: float) -> float:
        return ctx.data['slack_participation'].get(name, 0.0) * slack_mismatch

    def distribute(self, ctx: OuterLoopContext,
                   to_distribute: Dict[str, Tuple[BoolVec, float]]) -> Dict[str, DistributionResult]:
        """
        Run the active power distribution on several bus sets
        :param ctx: OuterLoopContext
        :param to_distribute: {name: (bus mask, mismatch)}
        :return: {name: DistributionResult}
        """
        distribution: ActivePowerDistribution = ctx.data['distribution']
        reference = ctx.data['reference_generator']
        results = dict()
        for name, (mask, mismatch) in to_distribute.items():
            ref = reference if reference > -1 and mask[ctx.system.slack] else -1
            results[name] = distribution.run(nc=ctx.nc, bus_mask=mask, mismatch=mismatch, reference_generator=ref)
        return results

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        system = ctx.system
        if system.narea_eq == 0:
            return self.no_area_loop.check(ctx)

        names = [ctx.nc.area_data.names[a] for a in system.area_idx]
        area_buses = ctx.data['area_buses']
        slack_mismatch = system.get_slack_mismatch()
        interchange = get_area_interchange(system)

        interchange_mismatch = {name: interchange[j] - system.area_target[j] for j, name in enumerate(names)}
        with_slack = {name: m + self.get_slack_injection(ctx, name, slack_mismatch)
                      for name, m in interchange_mismatch.items()}

        # first balance the areas, taking their share of the slack into account
        to_balance = {name: (area_buses[name], m) for name, m in with_slack.items()
                      if not self.lower_than_max_mismatch(ctx, m)}
        if len(to_balance):
            results = self.distribute(ctx, to_balance)
            return self.build_result(ctx, to_balance, results)

        # then the interchanges alone, and the slack share of the buses without area
        remaining_interchange = {name: m for name, m in interchange_mismatch.items()
                                 if not self.lower_than_max_mismatch(ctx, m)}
        no_area_slack = self.get_slack_injection(ctx, NO_AREA, slack_mismatch)

        if len(remaining_interchange) == 0 and self.lower_than_max_mismatch(ctx, no_area_slack):
            return OuterLoopResult(OuterLoopStatus.STABLE)

        mismatch = -sum(remaining_interchange.values()) + no_area_slack
        to_distribute = {NO_AREA: (ctx.data['buses_without_area'], mismatch)}
        results = self.distribute(ctx, to_distribute)

        to_split = results[NO_AREA].remaining
        if self.lower_than_max_mismatch(ctx, to_split) or len(names) == 0:
            return self.build_result(ctx, to_distribute, results)

        # the buses without area could not take it, the areas share it equally
        to_distribute = {name: (area_buses[name], to_split / len(names)) for name in names}
        results = self.distribute(ctx, to_distribute)
        return self.build_result(ctx, to_distribute, results)

    def build_result(self, ctx: OuterLoopContext, distributed: Dict[str, Tuple[BoolVec, float]],
                     results: Dict[str, DistributionResult]) -> OuterLoopResult:
        """
        Compose the loop result from the distribution results
        :param ctx: OuterLoopContext
        :param distributed: {name: (bus mask, mismatch)} that was distributed
        :param results: {name: DistributionResult}
        :return: OuterLoopResult
        """
        Sbase = ctx.nc.Sbase
        remaining = {name: r.remaining for name, r in results.items() if abs(r.remaining) > P_RESIDUE_EPS}
        iterations = {name: r.iteration for name, r in results.items()}
        total = sum(distributed[name][1] - r.remaining for name, r in results.items())
        moved = any(r.moved for r in results.values())
        ctx.distributed_p += total

        if len(remaining):
            msg = ("Failed to distribute interchange active power mismatch. "
                   "Remaining mismatches (with iterations): [{}]".format(mismatches_to_str(remaining, iterations,
                                                                                          Sbase)))
            behavior = ctx.options.slack_distribution_failure_behavior
            if behavior == SlackDistributionFailureBehavior.DISTRIBUTE_ON_REFERENCE_GENERATOR:
                ctx.logger.add_error("Distribution on the reference generator is not supported by the area "
                                     "interchange control, failing instead")
                behavior = SlackDistributionFailureBehavior.FAIL

            if behavior == SlackDistributionFailureBehavior.THROW:
                raise SlackDistributionFailureError(msg)

            elif behavior == SlackDistributionFailureBehavior.LEAVE_ON_SLACK_BUS:
                ctx.logger.add_warning(msg)
                return OuterLoopResult(OuterLoopStatus.UNSTABLE if moved else OuterLoopStatus.STABLE, msg)

            elif behavior == SlackDistributionFailureBehavior.FAIL:
                ctx.logger.add_error(msg)
                for r in results.values():
                    ActivePowerDistribution.restore(ctx.nc, r.previous)
                ctx.distributed_p -= total
                return OuterLoopResult(OuterLoopStatus.FAILED, msg)

            else:
                raise ValueError(f"Unknown slack distribution failure behavior {behavior}")

        if moved:
            iterations_txt = mismatches_to_str({name: d[1] for name, d in distributed.items()}, iterations, Sbase)
            ctx.logger.add_info("Distributed area interchange mismatches (with iterations)", value=iterations_txt)
            return OuterLoopResult(OuterLoopStatus.UNSTABLE)

        return OuterLoopResult(OuterLoopStatus.STABLE)
