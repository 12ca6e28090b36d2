# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

from FlowCalEngine.enumerations import SlackBusSelectionMode
from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.Devices.multi_circuit import MultiCircuit
from FlowCalEngine.Devices.Substation.bus import Bus
from FlowCalEngine.Devices.Branches.line import Line
from FlowCalEngine.Devices.Injections.generator import Generator
from FlowCalEngine.Devices.Injections.load import Load
from FlowCalEngine.Devices.test_networks import eurostag_network
from FlowCalEngine.Compilers.circuit_to_data import compile_numerical_circuit
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf
from FlowCalEngine.Simulations.PowerFlow.voltage_target_checker import (get_controlled_buses, get_branch_graph,
                                                                        get_neighbours, TransferImpedance,
                                                                        check_voltage_targets, fix_voltage_targets)


def get_close_generators_grid() -> MultiCircuit:
    """
    Two generators joined by a 1 Ohm line, regulating 400 kV and 420 kV:

        b1 (g1) ---(l12, 1 Ohm)--- b2 (g2)
             \\                    /
        (l13, 10 Ohm)       (l23, 10 Ohm)
                 \\              /
                   b3 (load 100 MW)
    """
    grid = MultiCircuit(name='close generators', Sbase=100)

    b1 = grid.add_bus(Bus(name='b1', vnom=400.0))
    b2 = grid.add_bus(Bus(name='b2', vnom=400.0))
    b3 = grid.add_bus(Bus(name='b3', vnom=400.0))

    grid.add_generator(b1, Generator(name='g1', target_p=50.0, target_v=400.0, voltage_regulator_on=True))
    grid.add_generator(b2, Generator(name='g2', target_p=50.0, target_v=420.0, voltage_regulator_on=True))
    grid.add_load(b3, Load(name='load3', p=100.0, q=10.0))

    grid.add_line(Line(bus_from=b1, bus_to=b2, name='l12', r=0.0, x=1.0))
    grid.add_line(Line(bus_from=b1, bus_to=b3, name='l13', r=0.0, x=10.0))
    grid.add_line(Line(bus_from=b2, bus_to=b3, name='l23', r=0.0, x=10.0))

    return grid


def get_remote_control_grid(with_second_generator: bool) -> MultiCircuit:
    """
    Tutorial grid where the generator regulates NHV2 at 437 kV (1.15 p.u.) from its 24 kV bus
    """
    grid = eurostag_network()
    grid.generators[0].regulated_bus = grid.get_bus_by_name('NHV2')
    grid.generators[0].target_v = 437.0
    if with_second_generator:
        grid.add_generator(grid.get_bus_by_name('NLOAD'),
                           Generator(name='GEN2', target_p=0.0, target_v=150.0, voltage_regulator_on=True))
    return grid


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            use_reactive_limits=False,
                            **kwargs)


def test_controlled_buses_priority():
    """
    The generator target wins over the transformer target on the same bus
    """
    grid = eurostag_network()
    grid.add_generator(grid.get_bus_by_name('NLOAD'),
                       Generator(name='GEN2', target_p=0.0, target_v=150.0, voltage_regulator_on=True))
    nc = compile_numerical_circuit(grid, get_options(transformer_voltage_control=True))

    targets = get_controlled_buses(nc)

    assert sorted(targets.keys()) == [0, 3]
    assert np.isclose(targets[0], 24.5 / 24.0)
    assert np.isclose(targets[3], 1.0)


def test_neighbours():
    """
    The exploration stops at the requested number of branches
    """
    nc = compile_numerical_circuit(eurostag_network())
    graph = get_branch_graph(nc)

    # NGEN, NHV1, NHV2, NLOAD
    assert sorted(get_neighbours(graph, 0, 1)) == [1]
    assert sorted(get_neighbours(graph, 0, 2)) == [1, 2]
    assert sorted(get_neighbours(graph, 2, 2)) == [0, 1, 3]


def test_transfer_impedance():
    """
    The 1 Ohm line in parallel with the 20 Ohm path, on the 1600 Ohm base
    """
    nc = compile_numerical_circuit(get_close_generators_grid())
    y = TransferImpedance(nc, get_options())

    z = 1.0 / (1.0 / 1.0 + 1.0 / 20.0) / 1600.0
    assert np.isclose(abs(y.get_z(0, 1)), z, rtol=1e-6)
    assert np.isclose(abs(y.get_z(1, 0)), z, rtol=1e-6)


def test_incompatible_targets():
    """
    20 kV over 0.95 Ohm gives an indicator of 84, above the default threshold
    """
    nc = compile_numerical_circuit(get_close_generators_grid())

    res = check_voltage_targets(nc, slack=0, options=get_options())

    assert len(res.incompatible_targets) == 1
    t = res.incompatible_targets[0]
    assert (t.bus1, t.bus2) == (0, 1)
    assert np.isclose(t.indicator, 0.05 / (1.0 / 1680.0), rtol=1e-6)
    assert len(res.unrealistic_targets) == 0

    res = check_voltage_targets(nc, slack=0, options=get_options(target_voltage_plausibility_indicator_threshold=100.0))
    assert res.is_empty()


def test_fix_incompatible_targets():
    """
    With equal references the first bus by name loses its voltage control
    """
    nc = compile_numerical_circuit(get_close_generators_grid())
    logger = Logger()

    res = fix_voltage_targets(nc, slack=0, options=get_options(), logger=logger)

    assert res.fixed_controlled_buses == [0]
    assert list(nc.generator_data.voltage_control) == [False, True]
    assert len(logger.find('have incompatible target voltages')) == 1


def test_power_flow_with_fixed_targets():
    """
    The power flow runs with the remaining generator holding its 420 kV
    """
    logger = Logger()
    res = multi_island_pf(get_close_generators_grid(), get_options(fix_voltage_targets=True), logger=logger)

    assert res.converged
    assert np.isclose(res.Vm[1], 420.0, atol=1e-3)
    assert len(logger.find('have incompatible target voltages')) == 1


def test_unrealistic_remote_target():
    """
    Holding NHV2 at 1.15 p.u. would drag the generator bus far from 1 p.u.
    """
    nc = compile_numerical_circuit(get_remote_control_grid(with_second_generator=False))

    res = check_voltage_targets(nc, slack=0, options=get_options())

    assert len(res.incompatible_targets) == 0
    assert len(res.unrealistic_targets) == 1
    assert res.unrealistic_targets[0].controller_bus == 0
    assert res.unrealistic_targets[0].estimated_dv > 0.1

    # the only controller bus keeps its voltage control
    logger = Logger()
    res = fix_voltage_targets(nc, slack=0, options=get_options(), logger=logger)
    assert len(res.disabled_controller_buses) == 0
    assert nc.generator_data.voltage_control[0]


def test_fix_unrealistic_remote_target():
    """
    With another voltage controller left, the remote controller stops controlling
    """
    nc = compile_numerical_circuit(get_remote_control_grid(with_second_generator=True))
    logger = Logger()

    res = fix_voltage_targets(nc, slack=0, options=get_options(), logger=logger)

    assert res.disabled_controller_buses == [0]
    assert list(nc.generator_data.voltage_control) == [False, True]
    assert len(logger.find('Unrealistic target voltage')) == 1

    res = multi_island_pf(get_remote_control_grid(with_second_generator=True),
                          get_options(fix_voltage_targets=True))
    assert res.converged
    assert np.isclose(res.Vm[3], 150.0, atol=1e-3)
