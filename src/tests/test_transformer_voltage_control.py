# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

from FlowCalEngine.enumerations import SlackBusSelectionMode, TransformerVoltageControlMode
from FlowCalEngine.Devices.test_networks import transformer_voltage_control_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            use_reactive_limits=False,
                            **kwargs)


def get_grid():
    grid = transformer_voltage_control_network()
    rtc = grid.get_branch_by_name('T2wT').ratio_tap_changer
    rtc.regulating = True
    return grid, rtc


def test_no_control():
    """
    Without the control the tap stays where it was requested
    """
    grid, rtc = get_grid()
    res = multi_island_pf(grid, get_options())

    assert res.converged
    assert res.rtc_solved_position[0] == 0
    assert abs(res.Vm[2] - 34.0) > 0.5


def test_voltage_control():
    """
    The ratio is solved continuously and rounded to the tap that brings the voltage closest to its target
    """
    grid, rtc = get_grid()
    res = multi_island_pf(grid, get_options(transformer_voltage_control=True))

    assert res.converged
    assert res.rtc_solved_position[0] == 3
    assert res.rtc_requested_position[0] == 0
    assert abs(res.Vm[2] - 34.0) <= 0.5

    assert rtc.tap_position == 0
    assert rtc.solved_tap_position == 3


def test_incremental_voltage_control():
    """
    The incremental control moves the tap until the voltage lies in the dead band
    """
    grid, rtc = get_grid()
    options = get_options(transformer_voltage_control=True,
                          transformer_voltage_control_mode=TransformerVoltageControlMode.INCREMENTAL_VOLTAGE_CONTROL)
    res = multi_island_pf(grid, options)

    assert res.converged
    assert res.rtc_solved_position[0] > 0
    assert abs(res.Vm[2] - 34.0) <= 0.5


def test_regulated_generator_bus():
    """
    A transformer regulating a generator bus at the generator target does not move
    """
    grid, rtc = get_grid()
    rtc.regulated_bus = grid.get_bus_by_name('BUS_1')
    rtc.target_v = 135.0
    res = multi_island_pf(grid, get_options(transformer_voltage_control=True))

    assert res.converged
    assert res.rtc_solved_position[0] == 0
    assert np.isclose(res.Vm[0], 135.0, atol=1e-3)
