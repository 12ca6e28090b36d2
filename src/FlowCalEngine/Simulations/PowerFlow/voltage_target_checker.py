# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Callable, Dict, List, Tuple, Union
import numpy as np
import networkx as nx
import scipy.sparse as sp

from FlowCalEngine.basic_structures import BoolVec, Logger
from FlowCalEngine.enumerations import EquationType
from FlowCalEngine.DataStructures.numerical_circuit import NumericalCircuit
from FlowCalEngine.Topology.admittance_matrices import compute_admittances
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_factorization
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem


class IncompatibleTarget:
    """
    Two close controlled buses whose voltage targets are too far apart
    """

    def __init__(self, bus1: int, bus2: int, indicator: float):
        """

        :param bus1: first controlled bus index
        :param bus2: second controlled bus index
        :param indicator: target voltage difference over the transfer impedance (p.u.)
        """
        self.bus1 = bus1
        self.bus2 = bus2
        self.indicator = indicator

    def __repr__(self):
        return f"IncompatibleTarget({self.bus1}, {self.bus2}, {self.indicator})"


class UnrealisticTarget:
    """
    Remote voltage control that would drag the voltage of its controller bus far from 1 p.u.
    """

    def __init__(self, controller_bus: int, estimated_dv: float):
        """

        :param controller_bus: controller bus index
        :param estimated_dv: estimated voltage deviation of the controller bus (p.u.)
        """
        self.controller_bus = controller_bus
        self.estimated_dv = estimated_dv

    def __repr__(self):
        return f"UnrealisticTarget({self.controller_bus}, {self.estimated_dv})"


class VoltageTargetCheckResult:
    """
    Findings of the voltage targets check of an island
    """

    def __init__(self):
        self.incompatible_targets: List[IncompatibleTarget] = list()
        self.unrealistic_targets: List[UnrealisticTarget] = list()

        # controlled buses whose controllers were disabled
        self.fixed_controlled_buses: List[int] = list()

        # controller buses whose generators stopped controlling
        self.disabled_controller_buses: List[int] = list()

    def is_empty(self) -> bool:
        return len(self.incompatible_targets) == 0 and len(self.unrealistic_targets) == 0


def get_controlled_buses(nc: NumericalCircuit) -> Dict[int, float]:
    """
    Voltage controlled buses with their highest priority target:
    generator first, then transformer, then shunt
    :param nc: NumericalCircuit of an island
    :return: {bus index: target voltage (p.u.)}
    """
    gd = nc.generator_data
    rd = nc.rtc_data
    sd = nc.shunt_data
    closed = nc.branch_data.closed

    targets: Dict[int, float] = dict()

    for k in np.where(sd.active & sd.voltage_control & (sd.regulated_bus > -1))[0]:
        targets[int(sd.regulated_bus[k])] = float(sd.v_target[k])

    for k in np.where(rd.voltage_control & (rd.regulated_bus > -1))[0]:
        if closed[rd.branch_idx[k]]:
            targets[int(rd.regulated_bus[k])] = float(rd.v_target[k])

    for k in np.where(get_generator_controllers(nc))[0]:
        targets[int(gd.regulated_bus[k])] = float(gd.v[k])

    return targets


def get_generator_controllers(nc: NumericalCircuit) -> BoolVec:
    """
    Generators that control a voltage from the start
    :param nc: NumericalCircuit
    :return: BoolVec (ngen)
    """
    gd = nc.generator_data
    return gd.active & gd.voltage_control & ~gd.standby & (gd.regulated_bus > -1)


def get_branch_graph(nc: NumericalCircuit) -> nx.Graph:
    """
    Graph of the buses joined by the closed branches
    :param nc: NumericalCircuit
    :return: networkx Graph
    """
    bd = nc.branch_data
    graph = nx.Graph()
    graph.add_nodes_from(range(nc.nbus))
    for k in np.where(bd.closed)[0]:
        graph.add_edge(int(bd.F[k]), int(bd.T[k]))
    return graph


def get_neighbours(graph: nx.Graph, bus: int, depth: int) -> List[int]:
    """
    Buses reachable from a bus with at most depth branches
    :param graph: networkx Graph
    :param bus: bus index
    :param depth: maximum number of branches
    :return: bus indices, the bus excluded
    """
    lengths = nx.single_source_shortest_path_length(graph, bus, cutoff=depth)
    return [b for b in lengths.keys() if b != bus]


class TransferImpedance:
    """
    Impedance seen between two buses, computed with the second bus grounded
    """

    def __init__(self, nc: NumericalCircuit, options: PowerFlowOptions):
        bd = nc.branch_data
        adm = compute_admittances(R=bd.R, X=bd.X, G1=bd.G1, B1=bd.B1, G2=bd.G2, B2=bd.B2,
                                  r1=bd.r1, a1=bd.a1, connected1=bd.connected1, connected2=bd.connected2,
                                  F=bd.F, T=bd.T, nbus=nc.nbus)
        self.Ybus: sp.csc_matrix = adm.Ybus
        self.nbus = nc.nbus
        self.sparse_solver = options.sparse_solver
        self._factorizations: Dict[int, Callable] = dict()

    def get_z(self, i: int, j: int) -> complex:
        """
        Impedance between the buses i and j (p.u.)
        """
        if j not in self._factorizations:
            keep = np.delete(np.arange(self.nbus), j)
            Yred = self.Ybus[keep, :][:, keep].tocsc()
            self._factorizations[j] = get_factorization(Yred, self.sparse_solver)

        pos = i if i < j else i - 1
        e = np.zeros(self.nbus - 1, dtype=complex)
        e[pos] = 1.0
        return complex(self._factorizations[j](e)[pos])


def check_incompatible_targets(nc: NumericalCircuit,
                               targets: Dict[int, float],
                               options: PowerFlowOptions) -> List[IncompatibleTarget]:
    """
    Find the pairs of close controlled buses whose targets cannot be held together
    :param nc: NumericalCircuit of an island
    :param targets: {controlled bus: target voltage (p.u.)}
    :param options: PowerFlowOptions
    :return: list of IncompatibleTarget, every pair once
    """
    if len(targets) < 2:
        return list()

    graph = get_branch_graph(nc)
    y = TransferImpedance(nc, options)
    found = list()
    for bus in sorted(targets.keys()):
        for other in get_neighbours(graph, bus, options.controlled_bus_neighbors_exploration_depth):
            if other <= bus or other not in targets:
                continue
            z = abs(y.get_z(bus, other))
            dv = abs(targets[bus] - targets[other])
            indicator = dv / z
            if indicator > options.target_voltage_plausibility_indicator_threshold:
                found.append(IncompatibleTarget(bus1=bus, bus2=int(other), indicator=indicator))
    return found


def check_unrealistic_targets(system: AcEquationSystem, options: PowerFlowOptions) -> List[UnrealisticTarget]:
    """
    Estimate, from the flat start sensitivities, the voltage of the remote controller buses
    :param system: AcEquationSystem at its flat start
    :param options: PowerFlowOptions
    :return: list of UnrealisticTarget
    """
    pv = system.get_pv_buses()
    remote = np.where(pv & (system.gen_controlled_bus != np.arange(system.nbus)))[0]
    if len(remote) == 0:
        return list()

    controlled = list()
    rows = list()
    for r in np.unique(system.gen_controlled_bus[remote]):
        row = system.get_row(EquationType.BUS_TARGET_V, int(r))
        if system.active[row]:
            controlled.append(int(r))
            rows.append(row)

    if len(rows) == 0:
        return list()

    dxdt = system.compute_sensitivities(np.array(rows, dtype=int))
    col = {r: j for j, r in enumerate(controlled)}

    found = list()
    for i in remote:
        r = int(system.gen_controlled_bus[i])
        if r not in col:
            continue
        sensi = dxdt[system.iv + i, col[r]]
        estimated_dv = (system.gen_v_target[r] - 1.0) * sensi
        if abs(estimated_dv) > options.controller_bus_acceptable_voltage_drop:
            found.append(UnrealisticTarget(controller_bus=int(i), estimated_dv=float(estimated_dv)))
    return found


def resolve_incompatible_targets(nc: NumericalCircuit,
                                 incompatible: List[IncompatibleTarget]) -> List[Tuple[int, IncompatibleTarget]]:
    """
    Choose the controlled buses whose controllers are disabled: the most referenced bus
    of every pair, by decreasing indicator, or the first name when both are referenced equally
    :param nc: NumericalCircuit
    :param incompatible: list of IncompatibleTarget
    :return: [(controlled bus to fix, pair that decided it)]
    """
    names = nc.bus_data.names
    count: Dict[int, int] = dict()
    for t in incompatible:
        count[t.bus1] = count.get(t.bus1, 0) + 1
        count[t.bus2] = count.get(t.bus2, 0) + 1

    to_fix = list()
    fixed = set()
    for t in sorted(incompatible, key=lambda x: -abs(x.indicator)):
        if t.bus1 in fixed or t.bus2 in fixed:
            continue
        if count[t.bus1] == count[t.bus2]:
            bus = t.bus1 if str(names[t.bus1]) < str(names[t.bus2]) else t.bus2
        else:
            bus = t.bus1 if count[t.bus1] > count[t.bus2] else t.bus2
        fixed.add(bus)
        to_fix.append((bus, t))
    return to_fix


def disable_voltage_controllers(nc: NumericalCircuit, bus: int) -> List[str]:
    """
    Disable every voltage controller of a controlled bus
    :param nc: NumericalCircuit
    :param bus: controlled bus index
    :return: names of the disabled devices
    """
    gd = nc.generator_data
    rd = nc.rtc_data
    sd = nc.shunt_data

    gen = gd.voltage_control & (gd.regulated_bus == bus)
    rtc = rd.voltage_control & (rd.regulated_bus == bus)
    sh = sd.voltage_control & (sd.regulated_bus == bus)

    gd.voltage_control[gen] = False
    rd.voltage_control[rtc] = False
    sd.voltage_control[sh] = False

    return [str(n) for n in gd.names[gen]] + [str(n) for n in rd.names[rtc]] + [str(n) for n in sd.names[sh]]


def get_controller_bus_count(nc: NumericalCircuit) -> int:
    """
    Number of buses with generators controlling a voltage
    """
    gd = nc.generator_data
    return len(np.unique(gd.bus_idx[get_generator_controllers(nc)]))


def check_voltage_targets(nc: NumericalCircuit,
                          slack: int,
                          options: PowerFlowOptions,
                          logger: Union[Logger, None] = None) -> VoltageTargetCheckResult:
    """
    Find the incompatible and the unrealistic voltage targets of an island
    :param nc: NumericalCircuit of an island
    :param slack: slack bus index
    :param options: PowerFlowOptions
    :param logger: Logger
    :return: VoltageTargetCheckResult
    """
    result = VoltageTargetCheckResult()
    result.incompatible_targets = check_incompatible_targets(nc, get_controlled_buses(nc), options)
    system = AcEquationSystem(nc=nc, slack=slack, options=options, logger=logger)
    result.unrealistic_targets = check_unrealistic_targets(system, options)
    return result


def fix_voltage_targets(nc: NumericalCircuit,
                        slack: int,
                        options: PowerFlowOptions,
                        logger: Logger) -> VoltageTargetCheckResult:
    """
    Disable the voltage controls whose targets are incompatible or unrealistic.
    The incompatible targets are fixed first, then the remote controller buses with
    an unrealistic target stop controlling while more than one controller bus is left.
    :param nc: NumericalCircuit of an island, modified
    :param slack: slack bus index
    :param options: PowerFlowOptions
    :param logger: Logger
    :return: VoltageTargetCheckResult
    """
    names = nc.bus_data.names
    vnom = nc.bus_data.Vnom
    gd = nc.generator_data

    targets = get_controlled_buses(nc)
    result = VoltageTargetCheckResult()
    result.incompatible_targets = check_incompatible_targets(nc, targets, options)

    for bus, t in resolve_incompatible_targets(nc, result.incompatible_targets):
        disabled = disable_voltage_controllers(nc, bus)
        result.fixed_controlled_buses.append(bus)
        logger.add_warning(f"Controlled buses {names[t.bus1]} and {names[t.bus2]} have incompatible "
                           f"target voltages, voltage controllers disabled: {', '.join(disabled)}",
                           device=str(names[bus]),
                           value=t.indicator,
                           expected_value=options.target_voltage_plausibility_indicator_threshold,
                           device_class='Bus')

    system = AcEquationSystem(nc=nc, slack=slack, options=options, logger=logger)
    result.unrealistic_targets = check_unrealistic_targets(system, options)

    remaining = get_controller_bus_count(nc)
    for t in result.unrealistic_targets:
        if remaining <= 1:
            break
        i = t.controller_bus
        r = system.gen_controlled_bus[i]
        gd.voltage_control[gd.bus_idx == i] = False
        result.disabled_controller_buses.append(i)
        remaining -= 1
        logger.add_warning(f"Unrealistic target voltage of {system.gen_v_target[r] * vnom[r]} kV "
                           f"at {names[r]}, controller bus voltage control disabled",
                           device=str(names[i]),
                           value=t.estimated_dv,
                           expected_value=options.controller_bus_acceptable_voltage_drop,
                           device_class='Bus')

    return result
