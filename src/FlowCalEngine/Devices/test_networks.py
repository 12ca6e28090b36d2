# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

"""
Small reference grids used to validate the power flow
"""

import numpy as np

from FlowCalEngine.enumerations import BranchSide, PhaseRegulationMode, RatioRegulationMode
from FlowCalEngine.Devices.multi_circuit import MultiCircuit
from FlowCalEngine.Devices.Substation.bus import Bus
from FlowCalEngine.Devices.Aggregation.area import Area
from FlowCalEngine.Devices.Branches.line import Line
from FlowCalEngine.Devices.Branches.transformer import Transformer2W
from FlowCalEngine.Devices.Branches.tap_changer import TapStep, RatioTapChanger, PhaseTapChanger
from FlowCalEngine.Devices.Injections.generator import Generator
from FlowCalEngine.Devices.Injections.load import Load
from FlowCalEngine.Devices.Injections.shunt import Shunt


def eurostag_network() -> MultiCircuit:
    """
    4-bus tutorial grid:

        NGEN --(NGEN_NHV1)-- NHV1 ==(NHV1_NHV2_1, NHV1_NHV2_2)== NHV2 --(NHV2_NLOAD)-- NLOAD

    The generator (607 MW) regulates NGEN at 24.5 kV and the load consumes 600 MW + 200 MVAr
    :return: MultiCircuit
    """
    grid = MultiCircuit(name='eurostag', Sbase=100)

    ngen = grid.add_bus(Bus(name='NGEN', vnom=24.0))
    nhv1 = grid.add_bus(Bus(name='NHV1', vnom=380.0))
    nhv2 = grid.add_bus(Bus(name='NHV2', vnom=380.0))
    nload = grid.add_bus(Bus(name='NLOAD', vnom=150.0))

    grid.add_transformer2w(Transformer2W(bus_from=ngen, bus_to=nhv1, name='NGEN_NHV1',
                                         r=0.24 / 1300.0 * 1444.0,
                                         x=np.sqrt(10.0 * 10.0 - 0.24 * 0.24) / 1300.0 * 1444.0,
                                         rated_u1=24.0, rated_u2=400.0))

    for name in ['NHV1_NHV2_1', 'NHV1_NHV2_2']:
        grid.add_line(Line(bus_from=nhv1, bus_to=nhv2, name=name,
                           r=3.0, x=33.0, b1=386e-6 / 2.0, b2=386e-6 / 2.0))

    # ratio correction so that the nominal tap matches the 158 kV / 150 kV rating
    a = (158.0 / 150.0) / (400.0 / 380.0)
    rtc = RatioTapChanger(steps=[TapStep(rho=0.85 * a), TapStep(rho=a), TapStep(rho=1.15 * a)],
                          tap_position=1,
                          regulating=True,
                          regulation_mode=RatioRegulationMode.VOLTAGE,
                          target_v=158.0,
                          regulated_bus=nload,
                          name='NHV2_NLOAD_RTC')
    grid.add_transformer2w(Transformer2W(bus_from=nhv2, bus_to=nload, name='NHV2_NLOAD',
                                         r=0.21 / 1000.0 * 225.0,
                                         x=np.sqrt(18.0 * 18.0 - 0.21 * 0.21) / 1000.0 * 225.0,
                                         rated_u1=400.0, rated_u2=158.0,
                                         ratio_tap_changer=rtc))

    grid.add_generator(ngen, Generator(name='GEN', target_p=607.0, target_q=301.0, target_v=24.5,
                                       voltage_regulator_on=True, min_p=-9999.99, max_p=9999.99))

    grid.add_load(nload, Load(name='LOAD', p=600.0, q=200.0))

    return grid


def phase_shifter_network() -> MultiCircuit:
    """
    Phase shifter grid:

        G1                   LD2
        |          L1        |
        |  ----------------- |
        B1                   B2
           --------B3-------
              PS1       L2

    PS1 has three taps (-5, 0, 5 deg) and sits at its middle one
    :return: MultiCircuit
    """
    grid = MultiCircuit(name='phase shifter', Sbase=100)

    b1 = grid.add_bus(Bus(name='B1', vnom=380.0))
    b2 = grid.add_bus(Bus(name='B2', vnom=380.0))
    b3 = grid.add_bus(Bus(name='B3', vnom=380.0))

    grid.add_generator(b1, Generator(name='G1', target_p=100.0, target_v=400.0, voltage_regulator_on=True,
                                     min_p=50.0, max_p=150.0))
    grid.add_load(b2, Load(name='LD2', p=100.0, q=50.0))

    grid.add_line(Line(bus_from=b1, bus_to=b2, name='L1', r=4.0, x=200.0))

    ptc = PhaseTapChanger(steps=[TapStep(alpha=-5.0), TapStep(alpha=0.0), TapStep(alpha=5.0)],
                          tap_position=1,
                          regulating=False,
                          regulation_mode=PhaseRegulationMode.FIXED_TAP,
                          regulation_value=200.0,
                          name='PS1_PTC')
    grid.add_transformer2w(Transformer2W(bus_from=b1, bus_to=b3, name='PS1', r=2.0, x=100.0,
                                         rated_u1=380.0, rated_u2=380.0, phase_tap_changer=ptc))

    grid.add_line(Line(bus_from=b3, bus_to=b2, name='L2', r=2.0, x=100.0))

    return grid


def transformer_voltage_control_network() -> MultiCircuit:
    """
    Grid with a ratio tap changer feeding a 33 kV load:

        G1        LD2      LD3
        |    L12   |        |
        |  ------- |        |
        B1         B2      B3
                     \\    /
                      T2wT

    The tap changer does not regulate and sits at its lowest tap
    :return: MultiCircuit
    """
    grid = MultiCircuit(name='transformer voltage control', Sbase=100)

    b1 = grid.add_bus(Bus(name='BUS_1', vnom=132.0))
    b2 = grid.add_bus(Bus(name='BUS_2', vnom=132.0))
    b3 = grid.add_bus(Bus(name='BUS_3', vnom=33.0))

    grid.add_generator(b1, Generator(name='GEN_1', target_p=25.0, target_v=135.0, voltage_regulator_on=True,
                                     min_p=0.0, max_p=140.0))
    grid.add_load(b2, Load(name='LOAD_2', p=11.2, q=7.5))
    grid.add_load(b3, Load(name='LOAD_3', p=5.0, q=0.0))

    grid.add_line(Line(bus_from=b1, bus_to=b2, name='LINE_12', r=1.05, x=10.0, g1=0.0000005))

    rtc = RatioTapChanger(steps=[TapStep(rho=0.9), TapStep(rho=1.0), TapStep(rho=1.05), TapStep(rho=1.1)],
                          tap_position=0,
                          regulating=False,
                          regulation_mode=RatioRegulationMode.VOLTAGE,
                          target_v=34.0,
                          target_deadband=1.0,
                          regulated_bus=b3,
                          name='T2wT_RTC')
    grid.add_transformer2w(Transformer2W(bus_from=b2, bus_to=b3, name='T2wT', r=17.0, x=10.0,
                                         rated_u1=132.0, rated_u2=33.0, ratio_tap_changer=rtc))

    return grid


def shunt_network() -> MultiCircuit:
    """
    Grid with a switched shunt regulating its own bus:

        b1 --(l1)-- b2 --(l2)-- b3
        |           |           |
        g1         ld1        SHUNT

    The shunt has two sections of 1 mS, none connected
    :return: MultiCircuit
    """
    grid = MultiCircuit(name='shunt', Sbase=100)

    b1 = grid.add_bus(Bus(name='b1', vnom=400.0))
    b2 = grid.add_bus(Bus(name='b2', vnom=400.0))
    b3 = grid.add_bus(Bus(name='b3', vnom=400.0))

    grid.add_generator(b1, Generator(name='g1', target_p=101.3664, target_v=390.0, voltage_regulator_on=True,
                                     min_p=0.0, max_p=150.0))
    grid.add_load(b2, Load(name='ld1', p=101.0, q=150.0))

    grid.add_shunt(b3, Shunt(name='SHUNT', b_per_section=1e-3, max_sections=2, section=0,
                             voltage_control_on=True, target_v=393.0, target_deadband=5.0))

    grid.add_line(Line(bus_from=b1, bus_to=b2, name='l1', r=1.0, x=3.0))
    grid.add_line(Line(bus_from=b3, bus_to=b2, name='l2', r=1.0, x=3.0))

    return grid


def one_area_network() -> MultiCircuit:
    """
    Single controlled area exporting to a bus out of any area:

        g1 100 MW
           |
          b1 ---(l12)--- b2 ---(l23)--- b3
           |                            |
        load1 60 MW                  load3 10 MW
        <------------------------>
                 Area a1

    The area has to export 10 MW, measured at the b3 side of l23
    :return: MultiCircuit
    """
    grid = MultiCircuit(name='one area', Sbase=100)

    a1 = grid.add_area(Area(name='a1', interchange_target=-10.0))

    b1 = grid.add_bus(Bus(name='b1', vnom=400.0, area=a1))
    b2 = grid.add_bus(Bus(name='b2', vnom=400.0, area=a1))
    b3 = grid.add_bus(Bus(name='b3', vnom=400.0))

    grid.add_generator(b1, Generator(name='g1', target_p=100.0, target_v=400.0, voltage_regulator_on=True,
                                     min_p=0.0, max_p=150.0))
    grid.add_load(b1, Load(name='load1', p=60.0, q=10.0))
    grid.add_load(b3, Load(name='load3', p=10.0, q=5.0))

    grid.add_line(Line(bus_from=b1, bus_to=b2, name='l12', r=0.0, x=1.0))
    l23 = grid.add_line(Line(bus_from=b2, bus_to=b3, name='l23', r=0.0, x=1.0))

    a1.add_boundary(l23, BranchSide.Two)

    return grid


def two_area_network() -> MultiCircuit:
    """
    Two controlled areas feeding a bus out of any area:

        b1 (g1 100 MW, load1 60 MW) ---(l12)--- b2 (g2 50 MW, load2 40 MW)
               \\                               /
              (l13)                        (l23)
                  \\                         /
                    b3 (load3 30 MW, no area)

    a1 (b1) has to export 30 MW and a2 (b2) nothing, both measured at their own side
    :return: MultiCircuit
    """
    grid = MultiCircuit(name='two areas', Sbase=100)

    a1 = grid.add_area(Area(name='a1', interchange_target=30.0))
    a2 = grid.add_area(Area(name='a2', interchange_target=0.0))

    b1 = grid.add_bus(Bus(name='b1', vnom=400.0, area=a1))
    b2 = grid.add_bus(Bus(name='b2', vnom=400.0, area=a2))
    b3 = grid.add_bus(Bus(name='b3', vnom=400.0))

    grid.add_generator(b1, Generator(name='g1', target_p=100.0, target_v=400.0, voltage_regulator_on=True,
                                     min_p=0.0, max_p=150.0))
    grid.add_generator(b2, Generator(name='g2', target_p=50.0, target_v=400.0, voltage_regulator_on=True,
                                     min_p=0.0, max_p=100.0))
    grid.add_load(b1, Load(name='load1', p=60.0, q=10.0))
    grid.add_load(b2, Load(name='load2', p=40.0, q=10.0))
    grid.add_load(b3, Load(name='load3', p=30.0, q=5.0))

    l12 = grid.add_line(Line(bus_from=b1, bus_to=b2, name='l12', r=0.0, x=1.0))
    l13 = grid.add_line(Line(bus_from=b1, bus_to=b3, name='l13', r=0.0, x=1.0))
    l23 = grid.add_line(Line(bus_from=b2, bus_to=b3, name='l23', r=0.0, x=1.0))

    a1.add_boundary(l12, BranchSide.One)
    a1.add_boundary(l13, BranchSide.One)
    a2.add_boundary(l12, BranchSide.Two)
    a2.add_boundary(l23, BranchSide.One)

    return grid


def four_bus_network() -> MultiCircuit:
    """
    4-bus meshed grid with 3 MW of generation and 5 MW of load:

        b1 (g1 2 MW) --- b2 (d2 1 MW)
         |  \\            |
         |    \\          |
        b4 (g4 1 MW) --- b3 (d3 4 MW)

    :return: MultiCircuit
    """
    grid = MultiCircuit(name='four bus', Sbase=100)

    b1 = grid.add_bus(Bus(name='b1', vnom=1.0))
    b2 = grid.add_bus(Bus(name='b2', vnom=1.0))
    b3 = grid.add_bus(Bus(name='b3', vnom=1.0))
    b4 = grid.add_bus(Bus(name='b4', vnom=1.0))

    grid.add_generator(b1, Generator(name='g1', target_p=2.0, target_v=1.0, voltage_regulator_on=True,
                                     min_p=0.0, max_p=10.0))
    grid.add_generator(b4, Generator(name='g4', target_p=1.0, target_v=1.0, voltage_regulator_on=True,
                                     min_p=0.0, max_p=10.0))
    grid.add_load(b2, Load(name='d2', p=1.0))
    grid.add_load(b3, Load(name='d3', p=4.0))

    for f, t, name in [(b1, b4, 'l14'), (b1, b2, 'l12'), (b2, b3, 'l23'), (b3, b4, 'l34'), (b1, b3, 'l13')]:
        grid.add_line(Line(bus_from=f, bus_to=t, name=name, r=0.0, x=0.1))

    return grid
