# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest

from FlowCalEngine.enumerations import SlackDistributionFailureBehavior, SolverStatus, SlackBusSelectionMode
from FlowCalEngine.exceptions import SlackDistributionFailureError
from FlowCalEngine.Devices.test_networks import one_area_network, two_area_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf


def get_options(behavior: SlackDistributionFailureBehavior) -> PowerFlowOptions:
    return PowerFlowOptions(area_interchange_control=True,
                            slack_bus_p_max_mismatch=1e-3,
                            slack_distribution_failure_behavior=behavior)


def get_first_slack_options() -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            area_interchange_control=True,
                            slack_bus_p_max_mismatch=1e-3)


def get_grid(min_p: float = 0.0):
    grid = one_area_network()
    grid.generators[0].min_p = min_p
    return grid


def test_interchange_reached():
    """
    The area generation drops until the area exports its target
    """
    grid = get_grid()
    res = multi_island_pf(grid, get_options(SlackDistributionFailureBehavior.LEAVE_ON_SLACK_BUS))

    island = res.islands[0]
    assert res.converged
    assert np.isclose(island.area_interchange['a1'], -10.0, atol=2.0)
    assert np.isclose(res.area_interchange[0], -10.0, atol=2.0)
    assert np.isclose(res.gen_p[0], 70.0, atol=2.0)
    assert abs(island.slack_p_mismatch) <= 1.0


def test_leave_on_slack_bus():
    """
    The generator stops at its minimum and the rest stays on the slack bus
    """
    grid = get_grid(min_p=90.0)
    res = multi_island_pf(grid, get_options(SlackDistributionFailureBehavior.LEAVE_ON_SLACK_BUS))

    island = res.islands[0]
    assert island.status == SolverStatus.CONVERGED
    assert np.isclose(island.distributed_p, -10.0, atol=1e-3)
    assert np.isclose(island.slack_p_mismatch, -20.0, atol=1e-3)
    assert np.isclose(res.gen_p[0], 90.0, atol=1e-3)
    assert 'a1: -20.00 MW' in island.message


def test_fail():
    """
    The failure stops the outer loops and nothing is distributed
    """
    grid = get_grid(min_p=90.0)
    res = multi_island_pf(grid, get_options(SlackDistributionFailureBehavior.FAIL))

    island = res.islands[0]
    assert island.status == SolverStatus.SOLVER_FAILED
    assert not res.converged
    assert np.isclose(island.distributed_p, 0.0, atol=1e-3)
    assert np.isclose(island.slack_p_mismatch, -30.0, atol=1e-3)
    assert np.isclose(res.gen_p[0], 100.0, atol=1e-3)


def test_throw():
    """
    The failure is raised with the remaining mismatch of every area
    """
    grid = get_grid(min_p=90.0)

    with pytest.raises(SlackDistributionFailureError) as e:
        multi_island_pf(grid, get_options(SlackDistributionFailureBehavior.THROW))

    assert '[a1: -20.00 MW (1 it.)]' in e.value.message


def test_two_areas():
    """
    Every area reaches its own interchange target
    """
    grid = two_area_network()
    res = multi_island_pf(grid, get_first_slack_options())

    assert res.converged
    assert np.allclose(res.area_interchange, [30.0, 0.0], atol=2.0)
    assert np.allclose(res.gen_p, [90.0, 40.0], atol=3.0)


def test_area_removal():
    """
    Removing an area does not change the interchange reached by the others
    """
    grid = two_area_network()
    res = multi_island_pf(grid, get_first_slack_options())

    grid = two_area_network()
    grid.delete_area(grid.areas[1])
    res2 = multi_island_pf(grid, get_first_slack_options())

    assert res2.converged
    assert len(res2.area_interchange) == 1
    assert np.isclose(res2.area_interchange[0], 30.0, atol=2.0)
    assert abs(res2.area_interchange[0] - res.area_interchange[0]) <= 2.0
