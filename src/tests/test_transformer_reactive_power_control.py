# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

from FlowCalEngine.enumerations import SlackBusSelectionMode, RatioRegulationMode, BranchSide
from FlowCalEngine.Devices.Branches.transformer import Transformer2W
from FlowCalEngine.Devices.test_networks import transformer_voltage_control_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf

T2WT = 1  # index of the regulating transformer, lines come first


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            use_reactive_limits=False,
                            **kwargs)


def get_grid(tap_position: int = 0, target_q: float = 0.0):
    """
    The 33 kV load is fed by two parallel transformers, the tap of the first one sets
    the reactive power circulating between them
    """
    grid = transformer_voltage_control_network()
    b2 = grid.get_bus_by_name('BUS_2')
    b3 = grid.get_bus_by_name('BUS_3')
    grid.add_transformer2w(Transformer2W(bus_from=b2, bus_to=b3, name='T2', r=17.0, x=10.0,
                                         rated_u1=132.0, rated_u2=33.0))

    rtc = grid.get_branch_by_name('T2wT').ratio_tap_changer
    rtc.tap_position = tap_position
    rtc.regulating = True
    rtc.regulation_mode = RatioRegulationMode.REACTIVE_POWER
    rtc.regulated_side = BranchSide.One
    rtc.target_q = target_q
    rtc.target_deadband = 0.2
    return grid, rtc


def test_reactive_power_control():
    """
    The tap moves so that the reactive power of the transformer approaches the target
    """
    # the target is the reactive power found with the tap at position 2
    grid, _ = get_grid(tap_position=2)
    ref = multi_island_pf(grid, get_options())
    target_q = float(ref.Sf[T2WT].imag)

    grid, rtc = get_grid(tap_position=0, target_q=target_q)
    res0 = multi_island_pf(grid, get_options())
    assert res0.rtc_solved_position[0] == 0

    grid, rtc = get_grid(tap_position=0, target_q=target_q)
    res = multi_island_pf(grid, get_options(transformer_reactive_power_control=True))

    assert res.converged
    assert res.rtc_requested_position[0] == 0
    assert res.rtc_solved_position[0] != 0
    assert abs(res.Sf[T2WT].imag - target_q) < abs(res0.Sf[T2WT].imag - target_q)
    assert rtc.tap_position == 0
    assert rtc.solved_tap_position == res.rtc_solved_position[0]
