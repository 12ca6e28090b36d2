# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest

from FlowCalEngine.enumerations import SlackBusSelectionMode
from FlowCalEngine.exceptions import SlackError
from FlowCalEngine.Compilers.circuit_to_data import compile_numerical_circuit
from FlowCalEngine.Devices.test_networks import eurostag_network, one_area_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions


def test_compile_eurostag():
    """
    Check the per unit values of the compiled circuit
    """
    grid = eurostag_network()
    nc = compile_numerical_circuit(grid)

    assert nc.nbus == 4
    assert nc.nbr == 4
    assert nc.Sbase == 100.0

    # the lines come first, then the transformers
    assert list(nc.branch_data.names) == ['NHV1_NHV2_1', 'NHV1_NHV2_2', 'NGEN_NHV1', 'NHV2_NLOAD']
    assert np.allclose(nc.branch_data.R[:2], 3.0 / 1444.0)
    assert np.allclose(nc.branch_data.X[:2], 33.0 / 1444.0)
    assert np.isclose(nc.pu.zb(380.0), 1444.0)

    # injections in p.u.
    assert np.isclose(nc.generator_data.p[0], 6.07)
    assert np.isclose(nc.load_data.p[0], 6.0)

    # the tap changer starts at its requested position
    assert nc.nrtc == 1
    assert nc.rtc_data.position[0] == 1


def test_islands():
    """
    Opening the two parallel lines splits the grid in two islands
    """
    grid = eurostag_network()
    for name in ['NHV1_NHV2_1', 'NHV1_NHV2_2']:
        line = grid.get_branch_by_name(name)
        line.connected1 = False
        line.connected2 = False

    nc = compile_numerical_circuit(grid)
    islands = nc.split_into_islands()

    assert len(islands) == 2
    assert np.array_equal(islands[0].bus_data.original_idx, [0, 1])
    assert np.array_equal(islands[1].bus_data.original_idx, [2, 3])

    # the generator lies in the first island and the load in the second
    assert islands[0].generator_data.nelm == 1
    assert islands[0].load_data.nelm == 0
    assert islands[1].load_data.nelm == 1

    # the open lines belong to no island
    assert islands[0].nbr == 1
    assert islands[1].nbr == 1
    assert islands[1].branch_data.names[0] == 'NHV2_NLOAD'


def test_area_compilation():
    """
    The area keeps its buses, its target and its boundary
    """
    nc = compile_numerical_circuit(one_area_network())

    assert nc.narea == 1
    assert np.isclose(nc.area_data.interchange_target[0], -0.1)
    assert np.array_equal(nc.bus_data.areas, [0, 0, -1])


def test_missing_slack_name():
    """
    The NAME slack selection needs a bus name
    """
    options = PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.NAME)

    with pytest.raises(SlackError):
        compile_numerical_circuit(eurostag_network(), options=options)


def test_tap_changer_pointers_without_phase_shifters():
    """
    A grid with a ratio tap changer and no phase shifter keeps valid tap changer pointers in its islands
    """
    nc = compile_numerical_circuit(eurostag_network())
    assert nc.nptc == 0

    islands = nc.split_into_islands()

    assert len(islands) == 1
    assert np.array_equal(islands[0].branch_data.rtc_idx, [-1, -1, -1, 0])
    assert np.array_equal(islands[0].branch_data.ptc_idx, [-1, -1, -1, -1])
