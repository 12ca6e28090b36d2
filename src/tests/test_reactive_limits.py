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


def get_grid():
    """
    Tutorial grid with a small voltage controlling generator at the load bus
    """
    grid = eurostag_network()
    nload = grid.get_bus_by_name('NLOAD')
    grid.add_generator(nload, Generator(name='GEN2', target_p=0.0, target_v=150.0, voltage_regulator_on=True,
                                        min_q=-20.0, max_q=20.0))
    return grid


def get_options(use_reactive_limits: bool) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            use_reactive_limits=use_reactive_limits)


def test_without_limits():
    """
    Without limits the generator holds its voltage whatever the reactive power it takes
    """
    res = multi_island_pf(get_grid(), get_options(use_reactive_limits=False))

    assert res.converged
    assert np.isclose(res.Vm[3], 150.0, atol=1e-3)
    assert res.gen_q[1] > 20.0


def test_max_limit():
    """
    The generator reaches its maximum reactive power and stops controlling the voltage
    """
    logger = Logger()
    res = multi_island_pf(get_grid(), get_options(use_reactive_limits=True), logger=logger)

    assert res.converged
    assert np.isclose(res.gen_q[1], 20.0, atol=1e-3)
    assert 147.578 < res.Vm[3] < 150.0
    assert len(logger.find('Bus switched PV to PQ')) == 1

    # the slack generator keeps the voltage control
    assert np.isclose(res.Vm[0], 24.5, atol=1e-3)
