# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

import pytest

from FlowCalEngine.enumerations import SlackBusSelectionMode, SolverStatus, VoltageInitMode, StateVectorScalingMode
from FlowCalEngine.Devices.Substation.bus import Bus
from FlowCalEngine.Devices.Branches.line import Line
from FlowCalEngine.Devices.Injections.load import Load
from FlowCalEngine.Devices.test_networks import eurostag_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_driver import PowerFlowDriver
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            use_reactive_limits=False,
                            **kwargs)


def test_eurostag():
    """
    Compare the voltages and flows of the 4-bus tutorial grid with the reference results
    """
    grid = eurostag_network()
    res = multi_island_pf(grid, get_options())

    assert res.converged
    assert len(res.islands) == 1
    assert res.islands[0].status == SolverStatus.CONVERGED
    assert res.islands[0].slack_bus_name == 'NGEN'
    assert res.iterations == 3

    assert np.allclose(res.Vm, [24.5, 402.143, 389.953, 147.578], atol=1e-2)
    assert np.allclose(res.Va, [0.0, -2.325965, -5.832329, -11.940451], atol=1e-3)

    # both parallel lines carry the same flow
    for k in range(2):
        assert np.isclose(res.Sf[k].real, 302.444, atol=1e-2)
        assert np.isclose(res.Sf[k].imag, 98.74, atol=1e-2)
        assert np.isclose(res.St[k].real, -300.434, atol=1e-2)
        assert np.isclose(res.St[k].imag, -137.188, atol=1e-2)

    # generation convention
    assert np.isclose(res.gen_q[0], 225.279, atol=1e-2)
    assert np.isclose(res.load_p[0], 600.0)


def test_power_balance():
    """
    The slack generation covers the load and the losses
    """
    grid = eurostag_network()
    res = multi_island_pf(grid, get_options())

    losses = np.sum((res.Sf + res.St).real)
    assert losses > 0.0
    assert np.isclose(np.sum(res.Sbus.real), losses, atol=1e-2)
    assert np.isclose(res.gen_p[0], 607.0)
    assert np.isclose(res.islands[0].slack_p_mismatch, losses - 7.0, atol=1e-2)


def test_open_line_side():
    """
    A line open at one side has no flow at that side and the other line carries the power
    """
    grid = eurostag_network()
    grid.get_branch_by_name('NHV1_NHV2_1').connected1 = False
    res = multi_island_pf(grid, get_options())

    assert res.converged
    assert np.isnan(res.Sf[0])
    assert np.isnan(res.If[0])
    assert np.isfinite(res.St[0])
    assert np.allclose(res.Vm[1:], [400.277, 374.537, 141.103], atol=1e-2)
    assert np.isclose(res.Sf[1].real, 609.544, atol=1e-2)


def test_open_line_both_sides():
    """
    A line open at both sides has undefined flows at both ends and the rest of the grid is solved
    """
    grid = eurostag_network()
    line = grid.get_branch_by_name('NHV1_NHV2_1')
    line.connected1 = False
    line.connected2 = False
    res = multi_island_pf(grid, get_options())

    assert res.converged
    assert len(res.islands) == 1
    assert np.isnan(res.Sf[0])
    assert np.isnan(res.St[0])
    assert np.isnan(res.If[0])
    assert np.isnan(res.It[0])
    assert np.all(np.isfinite(res.Sf[1:]))
    assert np.all(np.isfinite(res.Vm))

    # the remaining line carries the whole load
    assert res.Sf[1].real > 600.0
    losses = np.sum((res.Sf[1:] + res.St[1:]).real)
    assert np.isclose(np.sum(res.Sbus.real), losses, atol=1e-2)


def test_warm_start_is_stable():
    """
    Solving again from the previous solution does not move the state
    """
    grid = eurostag_network()
    res1 = multi_island_pf(grid, get_options())

    res2 = multi_island_pf(grid, get_options(voltage_init_mode=VoltageInitMode.PREVIOUS))

    assert res2.converged
    assert res2.iterations <= 1
    assert np.allclose(res1.Vm, res2.Vm, atol=1e-3)
    assert np.allclose(res1.Va, res2.Va, atol=1e-3)


def test_island_without_generator():
    """
    An island without voltage control is not calculated and its results stay undefined
    """
    grid = eurostag_network()
    b5 = grid.add_bus(Bus(name='B5', vnom=150.0))
    b6 = grid.add_bus(Bus(name='B6', vnom=150.0))
    grid.add_line(Line(bus_from=b5, bus_to=b6, name='L56', r=1.0, x=10.0))
    grid.add_load(b6, Load(name='LD6', p=10.0, q=1.0))

    res = multi_island_pf(grid, get_options())

    assert len(res.islands) == 2
    assert res.islands[0].status == SolverStatus.CONVERGED
    assert res.islands[1].status == SolverStatus.NO_CALCULATION

    # the calculated island is still converged
    assert res.converged
    assert np.all(np.isfinite(res.Vm[:4]))
    assert np.all(np.isnan(res.Vm[4:]))
    # L56 is the third line, the transformers come after the lines
    assert np.isnan(res.Sf[2])
    assert np.all(np.isfinite(res.Sf[[0, 1, 3, 4]]))


def test_driver_writes_back():
    """
    The driver writes the solved state to the devices and keeps the requested tap positions
    """
    grid = eurostag_network()
    driver = PowerFlowDriver(grid, get_options())
    driver.run()

    assert driver.results.converged
    assert len(driver.convergence_reports) == 1
    assert len(driver.logger.find('Island 0 converged')) == 1

    nload = grid.get_bus_by_name('NLOAD')
    assert np.isclose(nload.v, 147.578, atol=1e-2)
    assert np.isclose(nload.angle, -11.940451, atol=1e-3)

    line = grid.get_branch_by_name('NHV1_NHV2_1')
    assert np.isclose(line.p1, 302.444, atol=1e-2)
    assert np.isclose(line.q2, -137.188, atol=1e-2)

    assert np.isclose(grid.generators[0].q, 225.279, atol=1e-2)
    assert np.isclose(grid.loads[0].p_solved, 600.0)

    rtc = grid.get_branch_by_name('NHV2_NLOAD').ratio_tap_changer
    assert rtc.tap_position == 1
    assert rtc.solved_tap_position == 1

    df = driver.results.get_bus_df()
    assert list(df.index) == ['NGEN', 'NHV1', 'NHV2', 'NLOAD']


@pytest.mark.parametrize("init_mode, scaling", [(VoltageInitMode.DC_VALUES, StateVectorScalingMode.NONE),
                                                (VoltageInitMode.UNIFORM, StateVectorScalingMode.MAX_VOLTAGE_CHANGE),
                                                (VoltageInitMode.UNIFORM, StateVectorScalingMode.LINE_SEARCH)])
def test_initialization_and_scaling(init_mode, scaling):
    """
    The initial state and the step limitation change the path, not the solution
    """
    grid = eurostag_network()
    res = multi_island_pf(grid, get_options(voltage_init_mode=init_mode, state_vector_scaling=scaling))

    assert res.converged
    assert np.allclose(res.Vm, [24.5, 402.143, 389.953, 147.578], atol=1e-2)
    assert np.allclose(res.Va, [0.0, -2.325965, -5.832329, -11.940451], atol=1e-3)


def test_result_tables():
    grid = eurostag_network()
    res = multi_island_pf(grid, get_options())

    df = res.get_branch_df()
    assert list(df.index) == ['NHV1_NHV2_1', 'NHV1_NHV2_2', 'NGEN_NHV1', 'NHV2_NLOAD']
    assert np.isclose(df['Pf'].values[0], 302.444, atol=1e-2)
    assert np.all(df['Ploss'].values >= 0.0)

    df = res.get_tap_changer_df()
    assert list(df['Requested'].values) == [1]
    assert list(df['Solved'].values) == [1]

    assert np.isclose(res.get_generator_df()['P'].values[0], 607.0)
    assert res.get_report_dataframe()['Status'].values[0] == str(SolverStatus.CONVERGED)
