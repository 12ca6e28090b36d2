# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest

from FlowCalEngine.enumerations import EquationType, VariableType, SlackBusSelectionMode
from FlowCalEngine.exceptions import ConsistencyError
from FlowCalEngine.Compilers.circuit_to_data import compile_numerical_circuit
from FlowCalEngine.Devices.Injections.generator import Generator
from FlowCalEngine.Devices.test_networks import eurostag_network, transformer_voltage_control_network, shunt_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf


def get_options(**kwargs) -> PowerFlowOptions:
    return PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.FIRST,
                            distributed_slack=False,
                            use_reactive_limits=False,
                            **kwargs)


def test_state_vector_layout():
    """
    Without controls the state holds the bus voltages only
    """
    options = get_options()
    nc = compile_numerical_circuit(eurostag_network(), options=options)
    system = AcEquationSystem(nc=nc, slack=0, options=options)

    assert system.nvar == 2 * nc.nbus
    assert system.nrho == 0
    assert system.nalpha == 0
    assert system.nshb == 0
    assert system.iphi == nc.nbus
    assert system.get_column(VariableType.BUS_PHI, 2) == nc.nbus + 2

    # as many active equations as variables
    assert int(np.sum(system.active)) == system.nvar

    # the generator bus controls its voltage and the slack angle is fixed
    assert system.is_gen_controller[0]
    assert system.active[system.get_row(EquationType.BUS_TARGET_V, 0)]
    assert not system.active[system.get_row(EquationType.BUS_TARGET_Q, 0)]
    assert system.active[system.get_row(EquationType.BUS_TARGET_PHI, 0)]
    assert not system.active[system.get_row(EquationType.BUS_TARGET_P, 0)]

    # the load bus has its P and Q equations
    assert system.active[system.get_row(EquationType.BUS_TARGET_P, 3)]
    assert system.active[system.get_row(EquationType.BUS_TARGET_Q, 3)]


def test_ratio_variable():
    """
    A voltage controlling transformer adds its ratio to the state, held fixed until the control starts
    """
    options = get_options(transformer_voltage_control=True)
    nc = compile_numerical_circuit(eurostag_network(), options=options)
    system = AcEquationSystem(nc=nc, slack=0, options=options)

    assert system.nrho == 1
    assert system.irho == 2 * nc.nbus
    assert system.nvar == 2 * nc.nbus + 1
    assert len(system.x) == system.nvar
    assert system.active[system.get_row(EquationType.BRANCH_TARGET_RHO1, 0)]
    assert np.isclose(system.get_rho()[0], nc.branch_data.r1[system.rho_br[0]])

    system.rho_enabled[0] = True
    system.update()
    assert not system.active[system.get_row(EquationType.BRANCH_TARGET_RHO1, 0)]
    assert system.active[system.get_row(EquationType.BUS_TARGET_V, 3)]
    assert int(np.sum(system.active)) == system.nvar


def test_flat_start_mismatch():
    """
    At flat start the only power mismatches come from the injections
    """
    options = get_options()
    nc = compile_numerical_circuit(eurostag_network(), options=options)
    system = AcEquationSystem(nc=nc, slack=0, options=options)

    x = system.get_x_from_network(v=np.ones(nc.nbus), phi=np.zeros(nc.nbus))
    ret = system.compute(x, compute_jac=True)

    assert len(ret.f) == system.nvar
    assert ret.J.shape == (system.nvar, system.nvar)

    # the load bus P mismatch is the load itself (calculated - specified)
    row = system.get_active_position(np.array([system.get_row(EquationType.BUS_TARGET_P, 3)]))[0]
    assert np.isclose(ret.f[row], 6.0, atol=1e-2)


def test_inconsistent_generator_targets():
    """
    Generators regulating the same bus at different voltages are rejected
    """
    grid = eurostag_network()
    ngen = grid.get_bus_by_name('NGEN')
    grid.add_generator(ngen, Generator(name='GEN2', target_p=10.0, target_v=24.0, voltage_regulator_on=True))

    options = get_options()
    nc = compile_numerical_circuit(grid, options=options)

    with pytest.raises(ConsistencyError) as e:
        AcEquationSystem(nc=nc, slack=0, options=options)

    assert e.value.controlled == 'NGEN'
    assert len(e.value.setpoints) == 2


def test_inconsistent_generator_transformer_targets():
    """
    A transformer regulating a generator bus at another voltage is rejected before solving
    """
    grid = transformer_voltage_control_network()
    rtc = grid.get_branch_by_name('T2wT').ratio_tap_changer
    rtc.regulating = True
    rtc.regulated_bus = grid.get_bus_by_name('BUS_1')
    rtc.target_v = 130.0

    with pytest.raises(ConsistencyError) as e:
        multi_island_pf(grid, get_options(transformer_voltage_control=True))

    assert e.value.controlled == 'BUS_1'
    assert e.value.setpoints[0][0] == 'GEN_1'
    assert np.allclose([v for _, v in e.value.setpoints], [135.0, 130.0], atol=1e-6)


def test_inconsistent_generator_shunt_targets():
    """
    A shunt regulating a generator bus at another voltage is rejected before solving
    """
    grid = shunt_network()
    shunt = grid.shunts[0]
    shunt.regulated_bus = grid.get_bus_by_name('b1')

    with pytest.raises(ConsistencyError) as e:
        multi_island_pf(grid, get_options(shunt_voltage_control=True))

    assert e.value.controlled == 'b1'
    assert len(e.value.setpoints) == 2


def test_consistent_targets_of_different_devices():
    """
    Devices of different types may regulate the same bus at the same voltage
    """
    grid = transformer_voltage_control_network()
    rtc = grid.get_branch_by_name('T2wT').ratio_tap_changer
    rtc.regulating = True
    rtc.regulated_bus = grid.get_bus_by_name('BUS_1')
    rtc.target_v = 135.0

    options = get_options(transformer_voltage_control=True)
    nc = compile_numerical_circuit(grid, options=options)
    system = AcEquationSystem(nc=nc, slack=0, options=options)

    assert system.nrho == 1
