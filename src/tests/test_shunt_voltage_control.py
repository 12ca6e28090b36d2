# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.enumerations import SlackBusSelectionMode, ShuntVoltageControlMode
from FlowCalEngine.Devices.test_networks import shunt_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            use_reactive_limits=False,
                            **kwargs)


def test_shunt_without_control():
    """
    The disconnected shunt delivers nothing
    """
    grid = shunt_network()
    res = multi_island_pf(grid, get_options())

    assert res.converged
    assert res.shunt_solved_section[0] == 0
    assert np.isclose(res.shunt_q[0], 0.0)
    assert abs(res.Vm[2] - 393.0) > 2.5


def test_shunt_voltage_control():
    """
    The susceptance is solved continuously and rounded to the closest section
    """
    grid = shunt_network()
    res = multi_island_pf(grid, get_options(shunt_voltage_control=True))

    assert res.converged
    assert res.shunt_requested_section[0] == 0
    assert res.shunt_solved_section[0] > 0
    assert abs(res.Vm[2] - 393.0) <= 2.5

    # a capacitive shunt consumes negative reactive power
    assert res.shunt_q[0] < 0.0

    shunt = grid.shunts[0]
    assert shunt.section == 0
    assert shunt.solved_section == res.shunt_solved_section[0]
    assert np.isclose(shunt.q, res.shunt_q[0])


def test_incremental_shunt_voltage_control():
    """
    The sections are connected one by one and the voltage moves towards the target
    """
    res0 = multi_island_pf(shunt_network(), get_options())

    grid = shunt_network()
    res = multi_island_pf(grid, get_options(shunt_voltage_control=True,
                                            shunt_voltage_control_mode=ShuntVoltageControlMode.INCREMENTAL))

    assert res.converged
    assert 0 < res.shunt_solved_section[0] <= 2
    assert abs(res.Vm[2] - 393.0) < abs(res0.Vm[2] - 393.0)
    assert grid.shunts[0].section == 0


def test_non_plausible_shunt_target():
    """
    A target far from the nominal voltage disables the control and the shunt stays as it is
    """
    grid = shunt_network()
    grid.shunts[0].target_v = 4000.0
    logger = Logger()
    res = multi_island_pf(grid, get_options(shunt_voltage_control=True), logger=logger)

    assert res.converged
    assert res.shunt_solved_section[0] == 0
    assert len(logger.find("Non plausible voltage target")) == 1
