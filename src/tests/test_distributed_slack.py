# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest

from FlowCalEngine.enumerations import BalanceType, SlackDistributionFailureBehavior, SolverStatus
from FlowCalEngine.exceptions import SlackDistributionFailureError
from FlowCalEngine.Compilers.circuit_to_data import compile_numerical_circuit
from FlowCalEngine.Devices.test_networks import four_bus_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.active_power_distribution import (ActivePowerDistribution,
                                                                                       get_generation_factors)


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(use_reactive_limits=False,
                            slack_bus_p_max_mismatch=1e-3,
                            **kwargs)


def test_distributed_slack():
    """
    The 2 MW missing are shared by the two generators in proportion to their maximum power
    """
    grid = four_bus_network()
    res = multi_island_pf(grid, get_options())

    island = res.islands[0]
    assert res.converged
    assert np.isclose(island.distributed_p, 2.0, atol=1e-2)
    assert abs(island.slack_p_mismatch) <= 1e-2
    assert np.allclose(res.gen_p, [3.0, 2.0], atol=1e-2)

    # the dispatch is written back to the generators
    assert np.isclose(grid.generators[0].p, res.gen_p[0])


def test_proportional_to_load():
    """
    With the load balance type the loads are reduced instead
    """
    grid = four_bus_network()
    res = multi_island_pf(grid, get_options(balance_type=BalanceType.PROPORTIONAL_TO_LOAD))

    assert res.converged
    assert np.allclose(res.gen_p, [2.0, 1.0], atol=1e-6)

    # 1 MW and 4 MW loads take 0.4 MW and 1.6 MW of the reduction
    assert np.allclose(res.load_p, [0.6, 2.4], atol=1e-2)


def test_distribution_failure():
    """
    Generators without margin cannot take the mismatch
    """
    grid = four_bus_network()
    for gen in grid.generators:
        gen.max_p = gen.target_p

    res = multi_island_pf(grid, get_options(slack_distribution_failure_behavior=SlackDistributionFailureBehavior.FAIL))
    assert res.islands[0].status == SolverStatus.SOLVER_FAILED

    res = multi_island_pf(grid, get_options(
        slack_distribution_failure_behavior=SlackDistributionFailureBehavior.LEAVE_ON_SLACK_BUS))
    assert res.islands[0].status == SolverStatus.CONVERGED
    assert np.isclose(res.islands[0].slack_p_mismatch, 2.0, atol=1e-2)

    with pytest.raises(SlackDistributionFailureError):
        multi_island_pf(grid, get_options(slack_distribution_failure_behavior=SlackDistributionFailureBehavior.THROW))


def test_distribute_on_reference_generator():
    """
    What the participants cannot take goes to the first generator of the slack bus, beyond its limit
    """
    grid = four_bus_network()
    for gen in grid.generators:
        gen.max_p = gen.target_p

    res = multi_island_pf(grid, get_options(
        slack_distribution_failure_behavior=SlackDistributionFailureBehavior.DISTRIBUTE_ON_REFERENCE_GENERATOR))

    island = res.islands[0]
    assert island.status == SolverStatus.CONVERGED
    assert np.isclose(island.distributed_p, 2.0, atol=1e-2)
    assert np.allclose(res.gen_p, [4.0, 1.0], atol=1e-2)


def test_active_power_distribution_limits():
    """
    A generator stops at its limit and the others take the rest
    """
    grid = four_bus_network()
    grid.generators[0].max_p = 2.2
    nc = compile_numerical_circuit(grid)

    distribution = ActivePowerDistribution(balance_type=BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX)
    result = distribution.run(nc=nc, bus_mask=np.ones(nc.nbus, dtype=bool), mismatch=0.02)

    assert result.moved
    assert result.iteration == 2
    assert np.isclose(result.remaining, 0.0, atol=1e-9)
    assert np.allclose(nc.generator_data.p * nc.Sbase, [2.2, 2.8])

    # a second run gives the former moves back before distributing, so nothing changes
    result = distribution.run(nc=nc, bus_mask=np.ones(nc.nbus, dtype=bool), mismatch=0.0)
    assert not result.moved
    assert np.allclose(nc.generator_data.p * nc.Sbase, [2.2, 2.8])


def test_generation_factors():
    """
    Participation keys of every generation balance type
    """
    p = np.array([1.0, -2.0, 3.0])
    pmin = np.array([0.0, -5.0, 1.0])
    pmax = np.array([4.0, 0.0, 3.0])
    droop = np.array([4.0, 0.0, 2.0])
    pf = np.array([0.5, -1.0, 2.0])

    def factors(balance_type, mismatch=1.0):
        return get_generation_factors(balance_type=balance_type, p=p, pmin=pmin, pmax=pmax, droop=droop,
                                      participation_factor=pf, mismatch=mismatch)

    assert np.allclose(factors(BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX), [1.0, 0.0, 1.5])
    assert np.allclose(factors(BalanceType.PROPORTIONAL_TO_GENERATION_P), [1.0, 2.0, 3.0])
    assert np.allclose(factors(BalanceType.PROPORTIONAL_TO_GENERATION_PARTICIPATION_FACTOR), [0.5, 0.0, 2.0])
    assert np.allclose(factors(BalanceType.PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN, 1.0), [3.0, 2.0, 0.0])
    assert np.allclose(factors(BalanceType.PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN, -1.0), [1.0, 3.0, 2.0])

    with pytest.raises(ValueError):
        factors(BalanceType.PROPORTIONAL_TO_LOAD)
