# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from __future__ import annotations

from typing import Dict, Union
import numpy as np

from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.enumerations import (RatioRegulationMode, PhaseRegulationMode,
                                        SlackBusSelectionMode)
from FlowCalEngine.exceptions import SlackError
from FlowCalEngine.Devices.multi_circuit import MultiCircuit
from FlowCalEngine.Devices.Branches.transformer import Transformer2W
from FlowCalEngine.Devices.Branches.tap_changer import RatioTapChanger, PhaseTapChanger
from FlowCalEngine.DataStructures.per_unit import PerUnitContext
from FlowCalEngine.DataStructures.numerical_circuit import NumericalCircuit
from FlowCalEngine.DataStructures.bus_data import BusData
from FlowCalEngine.DataStructures.branch_data import BranchData
from FlowCalEngine.DataStructures.generator_data import GeneratorData
from FlowCalEngine.DataStructures.load_data import LoadData
from FlowCalEngine.DataStructures.shunt_data import ShuntData
from FlowCalEngine.DataStructures.tap_changer_data import RatioTapData, PhaseTapData, TapChangerData
from FlowCalEngine.DataStructures.area_data import AreaData
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions


def is_plausible_voltage(v: float, options: PowerFlowOptions) -> bool:
    """
    Is a voltage target (p.u.) plausible?
    :param v: voltage target (p.u.)
    :param options: PowerFlowOptions
    :return: bool
    """
    return options.min_plausible_target_voltage <= v <= options.max_plausible_target_voltage


def get_bus_data(bus_data: BusData,
                 circuit: MultiCircuit,
                 areas_dict: Dict[int, int]) -> None:
    """

    :param bus_data: BusData
    :param circuit: MultiCircuit
    :param areas_dict: {id(area): index}
    """
    for i, bus in enumerate(circuit.buses):
        bus_data.original_idx[i] = i
        bus_data.names[i] = bus.name
        bus_data.idtag[i] = bus.idtag
        bus_data.Vnom[i] = bus.Vnom
        bus_data.active[i] = bus.active

        if bus.has_state():
            bus_data.v0[i] = bus.v / bus.Vnom
            bus_data.angle0[i] = np.deg2rad(bus.angle)

        if bus.area is not None:
            bus_data.areas[i] = areas_dict.get(id(bus.area), -1)


def get_generator_data(data: GeneratorData,
                       circuit: MultiCircuit,
                       bus_dict: Dict[int, int],
                       bus_data: BusData,
                       pu: PerUnitContext,
                       options: PowerFlowOptions,
                       logger: Logger) -> None:
    """

    :param data: GeneratorData
    :param circuit: MultiCircuit
    :param bus_dict: {id(bus): index}
    :param bus_data: BusData
    :param pu: PerUnitContext
    :param options: PowerFlowOptions
    :param logger: Logger
    """
    for k, elm in enumerate(circuit.generators):
        i = bus_dict[id(elm.bus)]
        data.original_idx[k] = k
        data.names[k] = elm.name
        data.idtag[k] = elm.idtag
        data.bus_idx[k] = i
        data.active[k] = elm.active and bus_data.active[i]

        data.p0[k] = pu.power_to_pu(elm.target_p)
        data.p[k] = data.p0[k]
        data.q[k] = pu.power_to_pu(elm.target_q)
        data.pmin[k] = pu.power_to_pu(elm.min_p)
        data.pmax[k] = pu.power_to_pu(elm.max_p)
        data.qmin[k] = pu.power_to_pu(elm.min_q)
        data.qmax[k] = pu.power_to_pu(elm.max_q)
        data.droop[k] = elm.droop
        data.participation_factor[k] = elm.participation_factor
        data.participating[k] = elm.participating

        reg_bus = elm.get_regulated_bus()
        r = bus_dict[id(reg_bus)]
        data.regulated_bus[k] = r
        vnom = bus_data.Vnom[r]
        data.v[k] = pu.voltage_to_pu(elm.target_v, vnom)
        data.slope[k] = elm.slope * pu.Sbase / vnom

        if elm.voltage_regulator_on:
            if not bus_data.active[r]:
                logger.add_warning("Regulated bus not in service, voltage control disabled",
                                   device=elm.name, device_class='Generator')
            elif not is_plausible_voltage(data.v[k], options):
                logger.add_warning("Non plausible voltage target, voltage control disabled",
                                   device=elm.name, value=data.v[k], device_class='Generator')
            else:
                data.voltage_control[k] = True

        if data.voltage_control[k] and elm.standby and options.voltage_monitoring:
            data.standby[k] = True
            data.low_v_threshold[k] = pu.voltage_to_pu(elm.low_voltage_threshold, vnom)
            data.high_v_threshold[k] = pu.voltage_to_pu(elm.high_voltage_threshold, vnom)
            data.low_target_v[k] = pu.voltage_to_pu(elm.low_target_v, vnom)
            data.high_target_v[k] = pu.voltage_to_pu(elm.high_target_v, vnom)


def get_load_data(data: LoadData,
                  circuit: MultiCircuit,
                  bus_dict: Dict[int, int],
                  bus_data: BusData,
                  pu: PerUnitContext) -> None:
    """

    :param data: LoadData
    :param circuit: MultiCircuit
    :param bus_dict: {id(bus): index}
    :param bus_data: BusData
    :param pu: PerUnitContext
    """
    for k, elm in enumerate(circuit.loads):
        i = bus_dict[id(elm.bus)]
        data.original_idx[k] = k
        data.names[k] = elm.name
        data.idtag[k] = elm.idtag
        data.bus_idx[k] = i
        data.active[k] = elm.active and bus_data.active[i]
        data.p0[k] = pu.power_to_pu(elm.P)
        data.p[k] = data.p0[k]
        data.q[k] = pu.power_to_pu(elm.Q)
        data.participating[k] = elm.participating


def get_shunt_data(data: ShuntData,
                   circuit: MultiCircuit,
                   bus_dict: Dict[int, int],
                   bus_data: BusData,
                   pu: PerUnitContext,
                   options: PowerFlowOptions,
                   logger: Logger) -> None:
    """

    :param data: ShuntData
    :param circuit: MultiCircuit
    :param bus_dict: {id(bus): index}
    :param bus_data: BusData
    :param pu: PerUnitContext
    :param options: PowerFlowOptions
    :param logger: Logger
    """
    for k, elm in enumerate(circuit.shunts):
        i = bus_dict[id(elm.bus)]
        zb = pu.zb(bus_data.Vnom[i])
        data.original_idx[k] = k
        data.names[k] = elm.name
        data.idtag[k] = elm.idtag
        data.bus_idx[k] = i
        data.active[k] = elm.active and bus_data.active[i]
        data.g[k] = elm.G * zb
        data.b_steps[k] = elm.get_b_steps() * zb
        data.section[k] = elm.section
        data.initial_section[k] = elm.section
        data.b[k] = data.b_steps[k][elm.section]

        r = bus_dict[id(elm.get_regulated_bus())]
        data.regulated_bus[k] = r
        data.v_target[k] = pu.voltage_to_pu(elm.target_v, bus_data.Vnom[r])
        data.v_deadband[k] = pu.voltage_to_pu(elm.target_deadband, bus_data.Vnom[r])

        if elm.voltage_control_on and options.shunt_voltage_control:
            if not is_plausible_voltage(data.v_target[k], options):
                logger.add_warning("Non plausible voltage target, voltage control disabled",
                                   device=elm.name, value=data.v_target[k], device_class='Shunt')
            else:
                data.voltage_control[k] = True


def fill_tap_steps(data: TapChangerData,
                   k: int,
                   tc: Union[RatioTapChanger, PhaseTapChanger],
                   rated_ratio: float,
                   base_ratio: float,
                   options: PowerFlowOptions) -> None:
    """
    Convert the steps of a tap changer to per unit pi model modifiers
    :param data: TapChangerData
    :param k: tap changer index
    :param tc: RatioTapChanger or PhaseTapChanger
    :param rated_ratio: rated_u2 / rated_u1
    :param base_ratio: vnom2 / vnom1
    :param options: PowerFlowOptions
    """
    data.names[k] = tc.name
    data.original_idx[k] = k
    data.r1_steps[k] = tc.get_rho_array() * rated_ratio / base_ratio
    data.a1_steps[k] = np.deg2rad(tc.get_alpha_array())
    data.r_factor[k] = np.array([1.0 + s.r / 100.0 for s in tc.steps])
    data.x_factor[k] = np.array([1.0 + s.x / 100.0 for s in tc.steps])
    data.g_factor[k] = np.array([1.0 + s.g / 100.0 for s in tc.steps])
    data.b_factor[k] = np.array([1.0 + s.b / 100.0 for s in tc.steps])
    data.initial_position[k] = tc.starting_position(options.use_initial_tap_position)
    data.position[k] = data.initial_position[k]


def get_branch_data(data: BranchData,
                    rtc_data: RatioTapData,
                    ptc_data: PhaseTapData,
                    circuit: MultiCircuit,
                    bus_dict: Dict[int, int],
                    bus_data: BusData,
                    pu: PerUnitContext,
                    options: PowerFlowOptions,
                    logger: Logger) -> Dict[int, int]:
    """
    Compile the branches pi model and their tap changers
    :param data: BranchData
    :param rtc_data: RatioTapData
    :param ptc_data: PhaseTapData
    :param circuit: MultiCircuit
    :param bus_dict: {id(bus): index}
    :param bus_data: BusData
    :param pu: PerUnitContext
    :param options: PowerFlowOptions
    :param logger: Logger
    :return: {id(branch): index}
    """
    branch_dict = circuit.get_branch_index_dict()
    i_rtc = 0
    i_ptc = 0

    for k, elm in enumerate(circuit.get_branches()):
        f = bus_dict[id(elm.bus_from)]
        t = bus_dict[id(elm.bus_to)]
        vnom1 = bus_data.Vnom[f]
        vnom2 = bus_data.Vnom[t]
        zb = pu.zb(vnom2)

        data.original_idx[k] = k
        data.names[k] = elm.name
        data.idtag[k] = elm.idtag
        data.F[k] = f
        data.T[k] = t
        data.connected1[k] = elm.connected1 and bus_data.active[f]
        data.connected2[k] = elm.connected2 and bus_data.active[t]
        data.base_ratio[k] = vnom2 / vnom1
        data.R0[k] = elm.R / zb
        data.X0[k] = elm.X / zb

        if isinstance(elm, Transformer2W):
            data.is_transformer[k] = True
            data.G10[k] = elm.G * zb
            data.B10[k] = elm.B * zb
            rated_ratio = elm.rated_u2 / elm.rated_u1
        else:
            data.G10[k] = elm.G1 * zb
            data.B10[k] = elm.B1 * zb
            data.G20[k] = elm.G2 * zb
            data.B20[k] = elm.B2 * zb
            rated_ratio = 1.0

        data.R[k] = data.R0[k]
        data.X[k] = data.X0[k]
        data.G1[k] = data.G10[k]
        data.B1[k] = data.B10[k]
        data.G2[k] = data.G20[k]
        data.B2[k] = data.B20[k]
        data.r1[k] = rated_ratio / data.base_ratio[k]
        data.a1[k] = 0.0

        if not isinstance(elm, Transformer2W):
            continue

        if elm.ratio_tap_changer is not None:
            tc = elm.ratio_tap_changer
            fill_tap_steps(data=rtc_data, k=i_rtc, tc=tc, rated_ratio=rated_ratio,
                           base_ratio=data.base_ratio[k], options=options)
            rtc_data.branch_idx[i_rtc] = k
            rtc_data.regulating[i_rtc] = tc.regulating
            rtc_data.regulated_side[i_rtc] = tc.regulated_side.value
            data.rtc_idx[k] = i_rtc

            reg_bus = tc.regulated_bus if tc.regulated_bus is not None else elm.bus_to
            r = bus_dict[id(reg_bus)]
            rtc_data.regulated_bus[i_rtc] = r
            rtc_data.v_target[i_rtc] = pu.voltage_to_pu(tc.target_v, bus_data.Vnom[r])
            rtc_data.q_target[i_rtc] = pu.power_to_pu(tc.target_q)

            if tc.regulation_mode == RatioRegulationMode.VOLTAGE:
                rtc_data.deadband[i_rtc] = pu.voltage_to_pu(tc.target_deadband, bus_data.Vnom[r])
                if tc.regulating and options.transformer_voltage_control:
                    if is_plausible_voltage(rtc_data.v_target[i_rtc], options):
                        rtc_data.voltage_control[i_rtc] = True
                    else:
                        logger.add_warning("Non plausible voltage target, voltage control disabled",
                                           device=elm.name, value=rtc_data.v_target[i_rtc],
                                           device_class='RatioTapChanger')
            else:
                rtc_data.deadband[i_rtc] = pu.power_to_pu(tc.target_deadband)
                if tc.regulating and options.transformer_reactive_power_control:
                    rtc_data.reactive_control[i_rtc] = True

            rtc_data.apply_position(i_rtc, rtc_data.position[i_rtc], data)
            i_rtc += 1

        elif elm.phase_tap_changer is not None:
            tc = elm.phase_tap_changer
            fill_tap_steps(data=ptc_data, k=i_ptc, tc=tc, rated_ratio=rated_ratio,
                           base_ratio=data.base_ratio[k], options=options)
            ptc_data.branch_idx[i_ptc] = k
            ptc_data.mode[i_ptc] = tc.regulation_mode
            ptc_data.regulated_side[i_ptc] = tc.regulated_side.value
            data.ptc_idx[k] = i_ptc

            reg_branch = tc.regulated_branch if tc.regulated_branch is not None else elm
            reg_idx = branch_dict.get(id(reg_branch), -1)
            ptc_data.regulated_branch[i_ptc] = reg_idx

            if tc.regulation_mode == PhaseRegulationMode.CURRENT_LIMITER and reg_idx > -1:
                side_bus = reg_branch.get_bus(tc.regulated_side)
                ptc_data.target[i_ptc] = pu.current_to_pu(tc.regulation_value, side_bus.Vnom)
            else:
                ptc_data.target[i_ptc] = pu.power_to_pu(tc.regulation_value)
            ptc_data.deadband[i_ptc] = pu.power_to_pu(tc.target_deadband)

            if tc.regulating and tc.regulation_mode != PhaseRegulationMode.FIXED_TAP \
                    and options.phase_shifter_regulation:
                if reg_idx == -1:
                    logger.add_warning("Regulated branch not found, phase control disabled",
                                       device=elm.name, device_class='PhaseTapChanger')
                else:
                    ptc_data.regulating[i_ptc] = True

            ptc_data.apply_position(i_ptc, ptc_data.position[i_ptc], data)
            i_ptc += 1

    return branch_dict


def get_area_data(data: AreaData,
                  circuit: MultiCircuit,
                  bus_data: BusData,
                  branch_dict: Dict[int, int],
                  pu: PerUnitContext) -> None:
    """

    :param data: AreaData
    :param circuit: MultiCircuit
    :param bus_data: BusData
    :param branch_dict: {id(branch): index}
    :param pu: PerUnitContext
    """
    data.nbus_total = data.get_buses_count(bus_data.areas)

    ii = 0
    for a, area in enumerate(circuit.areas):
        data.original_idx[a] = a
        data.names[a] = area.name
        data.idtag[a] = area.idtag
        if area.is_interchange_controlled:
            data.interchange_target[a] = pu.power_to_pu(area.interchange_target)

        for boundary in area.boundaries:
            data.boundary_area[ii] = a
            data.boundary_branch[ii] = branch_dict.get(id(boundary.branch), -1)
            data.boundary_side[ii] = boundary.side.value
            ii += 1


def compile_numerical_circuit(circuit: MultiCircuit,
                              options: Union[PowerFlowOptions, None] = None,
                              logger: Union[Logger, None] = None) -> NumericalCircuit:
    """
    Compile a NumericalCircuit from a MultiCircuit
    :param circuit: MultiCircuit instance
    :param options: PowerFlowOptions, the defaults if None
    :param logger: Logger instance
    :return: NumericalCircuit instance
    """
    if options is None:
        options = PowerFlowOptions()

    if logger is None:
        logger = Logger()

    if options.slack_bus_selection_mode == SlackBusSelectionMode.NAME:
        if circuit.get_bus_by_name(options.slack_bus_name) is None:
            raise SlackError(f"Slack bus {options.slack_bus_name} not found")

    n_rtc = sum(1 for tr in circuit.transformers2w if tr.ratio_tap_changer is not None)
    n_ptc = sum(1 for tr in circuit.transformers2w if tr.phase_tap_changer is not None)

    nc = NumericalCircuit(nbus=circuit.get_bus_number(),
                          nbr=circuit.get_branch_number(),
                          ngen=len(circuit.generators),
                          nload=len(circuit.loads),
                          nshunt=len(circuit.shunts),
                          nrtc=n_rtc,
                          nptc=n_ptc,
                          narea=len(circuit.areas),
                          nboundary=sum(len(a.boundaries) for a in circuit.areas),
                          Sbase=circuit.Sbase)

    bus_dict = circuit.get_bus_index_dict()
    areas_dict = {id(elm): i for i, elm in enumerate(circuit.areas)}

    get_bus_data(bus_data=nc.bus_data,
                 circuit=circuit,
                 areas_dict=areas_dict)

    get_generator_data(data=nc.generator_data,
                       circuit=circuit,
                       bus_dict=bus_dict,
                       bus_data=nc.bus_data,
                       pu=nc.pu,
                       options=options,
                       logger=logger)

    get_load_data(data=nc.load_data,
                  circuit=circuit,
                  bus_dict=bus_dict,
                  bus_data=nc.bus_data,
                  pu=nc.pu)

    get_shunt_data(data=nc.shunt_data,
                   circuit=circuit,
                   bus_dict=bus_dict,
                   bus_data=nc.bus_data,
                   pu=nc.pu,
                   options=options,
                   logger=logger)

    branch_dict = get_branch_data(data=nc.branch_data,
                                  rtc_data=nc.rtc_data,
                                  ptc_data=nc.ptc_data,
                                  circuit=circuit,
                                  bus_dict=bus_dict,
                                  bus_data=nc.bus_data,
                                  pu=nc.pu,
                                  options=options,
                                  logger=logger)

    get_area_data(data=nc.area_data,
                  circuit=circuit,
                  bus_data=nc.bus_data,
                  branch_dict=branch_dict,
                  pu=nc.pu)

    return nc
