# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

from FlowCalEngine.enumerations import SlackBusSelectionMode
from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.Devices.Injections.generator import Generator
from FlowCalEngine.Devices.test_networks import eurostag_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf


def get_grid(low_voltage_threshold: float, high_voltage_threshold: float):
    """
    Tutorial grid (147.578 kV at NLOAD) with a standby static compensator at the load bus
    """
    grid = eurostag_network()
    nload = grid.get_bus_by_name('NLOAD')
    grid.add_generator(nload, Generator(name='SVC', target_p=0.0, target_q=0.0, target_v=150.0,
                                        voltage_regulator_on=True, min_q=-500.0, max_q=500.0,
                                        standby=True,
                                        low_voltage_threshold=low_voltage_threshold,
                                        high_voltage_threshold=high_voltage_threshold,
                                        low_target_v=149.0,
                                        high_target_v=151.0))
    return grid


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            **kwargs)


def test_voltage_in_band():
    """
    The standby compensator stays at zero reactive power while the voltage is in its band
    """
    logger = Logger()
    res = multi_island_pf(get_grid(145.0, 155.0), get_options(), logger=logger)

    assert res.converged
    assert np.isclose(res.Vm[3], 147.578, atol=1e-2)
    assert np.isclose(res.gen_q[1], 0.0, atol=1e-6)
    assert len(logger.find('Standby automaton activated, bus switched PQ to PV')) == 0


def test_low_voltage():
    """
    Below the band the compensator regulates the voltage at its low set point
    """
    logger = Logger()
    res = multi_island_pf(get_grid(148.0, 155.0), get_options(), logger=logger)

    assert res.converged
    assert res.islands[0].outer_loop_iterations >= 1
    assert np.isclose(res.Vm[3], 149.0, atol=1e-3)
    assert res.gen_q[1] > 0.0
    assert len(logger.find('Standby automaton activated, bus switched PQ to PV')) == 1


def test_high_voltage():
    """
    Above the band the compensator regulates the voltage at its high set point
    """
    res = multi_island_pf(get_grid(140.0, 147.0), get_options())

    assert res.converged
    assert np.isclose(res.Vm[3], 151.0, atol=1e-3)


def test_without_voltage_monitoring():
    """
    Without voltage monitoring the compensator regulates its own set point from the start
    """
    res = multi_island_pf(get_grid(145.0, 155.0), get_options(voltage_monitoring=False))

    assert res.converged
    assert res.islands[0].outer_loop_iterations == 0
    assert np.isclose(res.Vm[3], 150.0, atol=1e-3)


def test_standby_next_to_a_voltage_controller():
    """
    A standby compensator sharing its bus with a regulating generator is discarded
    """
    grid = get_grid(148.0, 155.0)
    nload = grid.get_bus_by_name('NLOAD')
    grid.add_generator(nload, Generator(name='GEN2', target_p=0.0, target_v=150.0, voltage_regulator_on=True,
                                        min_q=-500.0, max_q=500.0))
    logger = Logger()
    res = multi_island_pf(grid, get_options(), logger=logger)

    assert res.converged
    assert np.isclose(res.Vm[3], 150.0, atol=1e-3)
    assert np.isclose(res.gen_q[1], 0.0, atol=1e-6)
    assert len(logger.find('Voltage controllers and standby generators at the same bus, '
                           'standby generators discarded')) == 1
