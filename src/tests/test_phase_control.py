# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

from FlowCalEngine.enumerations import (SlackBusSelectionMode, PhaseRegulationMode, PhaseShifterControlMode,
                                        BranchSide)
from FlowCalEngine.Devices.test_networks import phase_shifter_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf

L1 = 0
L2 = 1
PS1 = 2


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            use_reactive_limits=False,
                            **kwargs)


def set_active_power_control(grid, value: float, side: BranchSide):
    ptc = grid.get_branch_by_name('PS1').phase_tap_changer
    ptc.regulating = True
    ptc.regulation_mode = PhaseRegulationMode.ACTIVE_POWER_CONTROL
    ptc.regulation_value = value
    ptc.target_deadband = 1.0
    ptc.regulated_side = side
    return ptc


def test_base_case():
    """
    With the phase shifter at its neutral tap the two paths share the load
    """
    grid = phase_shifter_network()
    res = multi_island_pf(grid, get_options())

    assert res.converged
    assert np.isclose(res.Sf[L1].real, 50.089, atol=1e-2)
    assert np.isclose(res.Sf[L2].real, 50.048, atol=1e-2)
    assert np.isclose(res.Vm[1], 385.698, atol=1e-2)


def test_fixed_tap():
    """
    Moving the tap by hand pushes the power to the phase shifter path
    """
    grid = phase_shifter_network()
    grid.get_branch_by_name('PS1').phase_tap_changer.tap_position = 2
    res = multi_island_pf(grid, get_options())

    assert res.converged
    assert np.isclose(res.Sf[L2].real, 83.587, atol=1e-2)
    assert np.isclose(res.St[L2].real, -83.487, atol=1e-2)
    assert np.isclose(res.Sf[L1].real, 16.541, atol=1e-2)
    assert np.isclose(res.tap_angle[PS1], 5.0)


def test_active_power_control_side_one():
    """
    Continuous control rounded to the closest tap
    """
    grid = phase_shifter_network()
    ptc = set_active_power_control(grid, 83.0, BranchSide.One)
    res = multi_island_pf(grid, get_options(phase_shifter_regulation=True))

    assert res.converged
    assert res.ptc_solved_position[0] == 2
    assert res.ptc_requested_position[0] == 1
    assert np.isclose(res.Sf[L2].real, 83.587, atol=1e-2)

    # the requested tap is kept in the device
    assert ptc.tap_position == 1
    assert ptc.solved_tap_position == 2


def test_active_power_control_side_two():
    """
    Regulating the side 2 power reverses the sign of the target
    """
    grid = phase_shifter_network()
    set_active_power_control(grid, 83.0, BranchSide.Two)
    res = multi_island_pf(grid, get_options(phase_shifter_regulation=True))

    assert res.converged
    assert res.ptc_solved_position[0] == 0
    assert np.isclose(res.Sf[L2].real, 16.528, atol=1e-2)


def test_incremental_active_power_control():
    """
    The incremental control reaches the same tap from the sensitivities
    """
    grid = phase_shifter_network()
    set_active_power_control(grid, 83.0, BranchSide.One)
    options = get_options(phase_shifter_regulation=True,
                          phase_shifter_control_mode=PhaseShifterControlMode.INCREMENTAL)
    res = multi_island_pf(grid, options)

    assert res.converged
    assert res.ptc_solved_position[0] == 2
    assert np.isclose(res.Sf[L2].real, 83.587, atol=1e-2)


def test_initial_tap_position():
    """
    The next run may start from the solved tap
    """
    grid = phase_shifter_network()
    set_active_power_control(grid, 83.0, BranchSide.One)
    multi_island_pf(grid, get_options(phase_shifter_regulation=True))

    grid.get_branch_by_name('PS1').phase_tap_changer.regulating = False
    res = multi_island_pf(grid, get_options(use_initial_tap_position=True))

    assert res.ptc_requested_position[0] == 2
    assert np.isclose(res.Sf[L2].real, 83.587, atol=1e-2)


def set_current_limiter(grid, limit: float):
    ptc = grid.get_branch_by_name('PS1').phase_tap_changer
    ptc.tap_position = 2
    ptc.regulating = True
    ptc.regulation_mode = PhaseRegulationMode.CURRENT_LIMITER
    ptc.regulation_value = limit
    ptc.regulated_side = BranchSide.One
    return ptc


def test_current_limiter_inactive():
    """
    A current limiter below its limit keeps its tap
    """
    grid = phase_shifter_network()
    set_current_limiter(grid, 1000.0)
    res = multi_island_pf(grid, get_options(phase_shifter_regulation=True))

    assert res.converged
    assert res.ptc_solved_position[0] == 2
    assert res.If[PS1] < 1000.0


def test_current_limiter():
    """
    The limiter steps its tap down until the current is under the limit (A)
    """
    grid = phase_shifter_network()
    ptc = set_current_limiter(grid, 100.0)
    res0 = multi_island_pf(grid, get_options())
    assert res0.If[PS1] > 100.0

    res = multi_island_pf(grid, get_options(phase_shifter_regulation=True))

    assert res.converged
    assert res.ptc_solved_position[0] == 1
    assert res.If[PS1] < 100.0
    assert ptc.tap_position == 2
