# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from __future__ import annotations

from typing import Dict, List, Tuple, Union
from dataclasses import dataclass
import numpy as np
import scipy.sparse as sp

from FlowCalEngine.basic_structures import Vec, CxVec, IntVec, BoolVec, Mat, Logger, CsrMat
from FlowCalEngine.enumerations import EquationType, VariableType, PhaseRegulationMode
from FlowCalEngine.exceptions import ConsistencyError
from FlowCalEngine.DataStructures.numerical_circuit import NumericalCircuit
from FlowCalEngine.Topology.admittance_matrices import compute_admittances, AdmittanceMatrices
from FlowCalEngine.Simulations.Derivatives.matpower_derivatives import (dSbus_dV_matpower, dSbr_dV_matpower,
                                                                        dSbr_dtap, dIbr_dV, dIbr_dtap,
                                                                        abs_derivative)
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.equation_system_template import EquationSystemTemplate
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Utils.NumericalMethods.common import ConvexFunctionResult
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_factorization

# set points closer than this are considered the same (p.u.)
TARGET_VOLTAGE_EPS = 1e-6


@dataclass
class AcState:
    """
    Electrical state computed from a state vector
    """
    V: CxVec  # complex bus voltages
    r1: Vec  # side 1 ratio of every branch
    a1: Vec  # side 1 phase shift of every branch
    b_shunt: Vec  # susceptance of every shunt
    adm: AdmittanceMatrices
    Sbus: CxVec  # calculated power injections, shunt devices included
    Sf: CxVec  # power entering the branches at side 1
    St: CxVec  # power entering the branches at side 2
    If: CxVec  # current entering the branches at side 1
    It: CxVec  # current entering the branches at side 2

    @property
    def v(self) -> Vec:
        return np.abs(self.V)

    @property
    def phi(self) -> Vec:
        return np.angle(self.V)

    def get_flow(self, br: Union[int, IntVec], side: Union[int, IntVec]) -> CxVec:
        """
        Power entering the branch at the given side
        """
        return np.where(np.asarray(side) == 1, self.Sf[br], self.St[br])

    def get_current(self, br: Union[int, IntVec], side: Union[int, IntVec]) -> Vec:
        """
        Current module entering the branch at the given side
        """
        return np.where(np.asarray(side) == 1, np.abs(self.If[br]), np.abs(self.It[br]))


def _group_by(keys: IntVec) -> Dict[int, List[int]]:
    """
    Positions of the array grouped by value, in order of appearance
    :param keys: IntVec
    :return: {key: [positions]}
    """
    groups = dict()
    for k, key in enumerate(keys):
        groups.setdefault(int(key), list()).append(k)
    return groups


def _ref_matrix(ref: IntVec, col_offset: int, ncol: int) -> CsrMat:
    """
    Matrix with one row per element where row k = e_k - e_ref[k] for elements with a reference
    :param ref: reference element of every element (-1 or itself for none)
    :param col_offset: first column of the elements
    :param ncol: number of columns
    :return: csr matrix (len(ref), ncol)
    """
    n = len(ref)
    idx = np.where((ref > -1) & (ref != np.arange(n)))[0]
    rows = np.r_[idx, idx]
    cols = np.r_[idx, ref[idx]] + col_offset
    data = np.r_[np.ones(len(idx)), -np.ones(len(idx))]
    return sp.csr_matrix((data, (rows, cols)), shape=(n, ncol))


def _unit_matrix(n: int, col_offset: int, ncol: int) -> CsrMat:
    return sp.csr_matrix((np.ones(n), (np.arange(n), np.arange(n) + col_offset)), shape=(n, ncol))


class AcEquationSystem(EquationSystemTemplate):
    """
    AC power flow equations in polar coordinates.

    State vector: [v (nbus), phi (nbus), r1 (nrho), a1 (nalpha), b (nshb)]

    Every bus has its P, Q, V, V with slope, phase and distributed Q equations, every ratio variable
    its reactive power, fixed ratio and distributed ratio equations, every phase variable its
    active power, current and fixed angle equations, every susceptance variable its fixed and
    distributed susceptance equations and every interchange controlled area its active power equation.
    The control state decides which of them are active.
    """

    def __init__(self, nc: NumericalCircuit, slack: int, options: PowerFlowOptions,
                 logger: Union[Logger, None] = None):
        """

        :param nc: NumericalCircuit of an island
        :param slack: slack bus index
        :param options: PowerFlowOptions
        :param logger: Logger
        """
        self.nc = nc
        self.slack = int(slack)
        self.options = options
        self.logger = logger if logger is not None else Logger()

        self.nbus = nc.nbus
        self.nbr = nc.nbr

        self._build_generator_controls()
        self._build_ratio_controls()
        self._build_phase_controls()
        self._build_shunt_controls()
        self._build_area_controls()
        self._check_cross_controls()

        nb = self.nbus
        self.nrho = len(self.rho_rtc)
        self.nalpha = len(self.alpha_ptc)
        self.nshb = len(self.bsh_idx)
        self.narea_eq = len(self.area_idx)

        # variable offsets
        self.iv = 0
        self.iphi = nb
        self.irho = 2 * nb
        self.ialpha = self.irho + self.nrho
        self.ib = self.ialpha + self.nalpha

        var_blocks = [(VariableType.BUS_V, nb),
                      (VariableType.BUS_PHI, nb),
                      (VariableType.BRANCH_RHO1, self.nrho),
                      (VariableType.BRANCH_ALPHA1, self.nalpha),
                      (VariableType.SHUNT_B, self.nshb)]

        eq_blocks = [(EquationType.BUS_TARGET_P, nb),
                     (EquationType.BUS_TARGET_Q, nb),
                     (EquationType.BUS_TARGET_V, nb),
                     (EquationType.BUS_TARGET_V_WITH_SLOPE, nb),
                     (EquationType.BUS_TARGET_PHI, nb),
                     (EquationType.BRANCH_TARGET_P, self.nalpha),
                     (EquationType.BRANCH_TARGET_I, self.nalpha),
                     (EquationType.BRANCH_TARGET_Q, self.nrho),
                     (EquationType.BRANCH_TARGET_RHO1, self.nrho),
                     (EquationType.BRANCH_TARGET_ALPHA1, self.nalpha),
                     (EquationType.SHUNT_TARGET_B, self.nshb),
                     (EquationType.DISTR_Q, nb),
                     (EquationType.DISTR_RHO, self.nrho),
                     (EquationType.DISTR_SHUNT_B, self.nshb),
                     (EquationType.AREA_TARGET_P, self.narea_eq)]

        self.eq_offset: Dict[EquationType, int] = dict()
        off = 0
        for tpe, n in eq_blocks:
            self.eq_offset[tpe] = off
            off += n

        EquationSystemTemplate.__init__(
            self,
            var_types=np.array([tpe for tpe, n in var_blocks for _ in range(n)], dtype=object),
            var_elements=np.array([i for _, n in var_blocks for i in range(n)], dtype=int),
            eq_types=np.array([tpe for tpe, n in eq_blocks for _ in range(n)], dtype=object),
            eq_elements=np.array([i for _, n in eq_blocks for i in range(n)], dtype=int)
        )

        # in the area equations the element is the area index
        if self.narea_eq:
            a0 = self.eq_offset[EquationType.AREA_TARGET_P]
            self.eq_elements[a0:a0 + self.narea_eq] = self.area_idx
            self._eq_index = {(tpe, int(elm)): i for i, (tpe, elm) in enumerate(zip(self.eq_types,
                                                                                     self.eq_elements))}

        # per bus results of the last update
        self.bus_v_target = np.ones(nb)
        self.slope_bus = np.zeros(nb, dtype=bool)
        self.distr_q_ref = np.full(nb, -1, dtype=int)
        self.distr_rho_ref = np.full(self.nrho, -1, dtype=int)
        self.distr_b_ref = np.full(self.nshb, -1, dtype=int)

        # last evaluation
        self.J_all: Union[sp.csr_matrix, None] = None
        self.f_all: Union[Vec, None] = None

        self.x = self.get_x_from_network(v=np.ones(nb), phi=np.zeros(nb))
        self.update()

    # ------------------------------------------------------------------------------------------------------------------
    # construction of the controls
    # ------------------------------------------------------------------------------------------------------------------

    def _build_generator_controls(self) -> None:
        """
        Voltage controlling generators, grouped by controller bus
        """
        gd = self.nc.generator_data
        nb = self.nbus

        self.is_gen_controller: BoolVec = np.zeros(nb, dtype=bool)
        self.gen_controlled_bus: IntVec = np.full(nb, -1, dtype=int)
        self.gen_v_target: Vec = np.full(nb, np.nan)  # per controlled bus
        self.gen_ctrl_mask: BoolVec = np.zeros(gd.nelm, dtype=bool)

        regulating = gd.active & gd.voltage_control
        monitoring = regulating & gd.standby
        for i in np.unique(gd.bus_idx[monitoring]):
            at_bus = gd.bus_idx == i
            if np.any(regulating & ~gd.standby & at_bus):
                self.logger.add_warning("Voltage controllers and standby generators at the same bus, "
                                        "standby generators discarded",
                                        device=self.nc.bus_data.names[i], device_class='Bus')
                regulating[monitoring & at_bus] = False
                monitoring[at_bus] = False
            elif np.sum(monitoring & at_bus) > 1:
                self.logger.add_warning("Several standby generators at the same bus, "
                                        "all of them regulate the voltage",
                                        device=self.nc.bus_data.names[i], device_class='Bus')
                monitoring[at_bus] = False

        setpoints: Dict[int, List[Tuple[str, float]]] = dict()
        for k in range(gd.nelm):
            if not regulating[k]:
                continue

            i = gd.bus_idx[k]
            r = gd.regulated_bus[k]
            if r < 0:
                self.logger.add_warning("Regulated bus out of the island, voltage control disabled",
                                        device=gd.names[k], device_class='Generator')
                continue

            if -1 < self.gen_controlled_bus[i] != r:
                self.logger.add_warning("Generators of the same bus regulate different buses, "
                                        "voltage control disabled",
                                        device=gd.names[k], device_class='Generator')
                continue

            self.gen_controlled_bus[i] = r
            self.is_gen_controller[i] = True
            self.gen_ctrl_mask[k] = True
            setpoints.setdefault(int(r), list()).append((gd.names[k], gd.v[k]))

        vnom = self.nc.bus_data.Vnom
        for r, sp_list in setpoints.items():
            values = np.array([v for _, v in sp_list])
            if values.max() - values.min() > TARGET_VOLTAGE_EPS:
                raise ConsistencyError(controlled=str(self.nc.bus_data.names[r]),
                                       setpoints=[(name, v * vnom[r]) for name, v in sp_list],
                                       message="Generators with inconsistent target voltages")
            self.gen_v_target[r] = values[0]

        ctrl = self.gen_ctrl_mask
        fixed = gd.active & ~ctrl
        self.gen_qmin_bus: Vec = np.bincount(gd.bus_idx[ctrl], weights=gd.qmin[ctrl], minlength=nb)
        self.gen_qmax_bus: Vec = np.bincount(gd.bus_idx[ctrl], weights=gd.qmax[ctrl], minlength=nb)
        self.q_fixed_bus: Vec = np.bincount(gd.bus_idx[fixed], weights=gd.q[fixed], minlength=nb)

        # reactive power of the controller buses when they do not control
        self.ctrl_bus_q_spec: Vec = np.bincount(gd.bus_idx[ctrl], weights=gd.q[ctrl], minlength=nb)

        # standby generators stay PQ until their controlled voltage leaves the band
        self.monitoring_bus: BoolVec = np.zeros(nb, dtype=bool)
        self.low_v_threshold: Vec = np.full(nb, np.nan)
        self.high_v_threshold: Vec = np.full(nb, np.nan)
        self.low_target_v: Vec = np.full(nb, np.nan)
        self.high_target_v: Vec = np.full(nb, np.nan)
        for k in np.where(monitoring & ctrl)[0]:
            i = gd.bus_idx[k]
            self.monitoring_bus[i] = True
            self.low_v_threshold[i] = gd.low_v_threshold[k]
            self.high_v_threshold[i] = gd.high_v_threshold[k]
            self.low_target_v[i] = gd.low_target_v[k]
            self.high_target_v[i] = gd.high_target_v[k]

        self.gen_vc_on: BoolVec = self.is_gen_controller.copy()
        self.gen_vc_on[self.monitoring_bus] = False
        self.gen_vc_suspended: BoolVec = np.zeros(nb, dtype=bool)
        self.q_limit_type: IntVec = np.zeros(nb, dtype=int)  # 1: max, -1: min

        # reactive power slope, only for a single local generator
        n_ctrl = np.bincount(gd.bus_idx[ctrl], minlength=nb)
        self.bus_slope: Vec = np.zeros(nb)
        for k in np.where(ctrl & (gd.slope != 0.0))[0]:
            i = gd.bus_idx[k]
            if n_ctrl[i] == 1 and self.gen_controlled_bus[i] == i:
                self.bus_slope[i] = gd.slope[k]
            else:
                self.logger.add_warning("Voltage slope only applies to a single local generator, slope ignored",
                                        device=gd.names[k], device_class='Generator')

    def _build_ratio_controls(self) -> None:
        """
        Ratio variables of the voltage and reactive power controlling transformers
        """
        rd = self.nc.rtc_data
        bd = self.nc.branch_data
        closed = bd.closed

        idx = list()
        for k in range(rd.nelm):
            if not (rd.voltage_control[k] or rd.reactive_control[k]):
                continue
            if not closed[rd.branch_idx[k]]:
                self.logger.add_warning("Transformer not closed at both sides, tap control disabled",
                                        device=rd.names[k], device_class='RatioTapChanger')
                continue
            if rd.voltage_control[k] and rd.regulated_bus[k] < 0:
                self.logger.add_warning("Regulated bus out of the island, tap control disabled",
                                        device=rd.names[k], device_class='RatioTapChanger')
                continue
            idx.append(k)

        self.rho_rtc: IntVec = np.array(idx, dtype=int)
        self.rho_br: IntVec = rd.branch_idx[self.rho_rtc]
        self.rho_is_v: BoolVec = rd.voltage_control[self.rho_rtc].copy()
        self.rho_reg_bus: IntVec = np.where(self.rho_is_v, rd.regulated_bus[self.rho_rtc], -1)
        self.rho_v_target: Vec = rd.v_target[self.rho_rtc].copy()
        self.rho_q_target: Vec = rd.q_target[self.rho_rtc].copy()
        self.rho_q_side: IntVec = rd.regulated_side[self.rho_rtc].copy()
        self.rho_enabled: BoolVec = np.zeros(len(idx), dtype=bool)
        self.rho_target: Vec = bd.r1[self.rho_br].copy()
        self.rho_min: Vec = np.array([np.min(rd.r1_steps[k]) for k in self.rho_rtc], dtype=float)
        self.rho_max: Vec = np.array([np.max(rd.r1_steps[k]) for k in self.rho_rtc], dtype=float)

        for r, group in _group_by(self.rho_reg_bus).items():
            if r < 0:
                continue
            values = self.rho_v_target[group]
            if values.max() - values.min() > TARGET_VOLTAGE_EPS:
                vnom = self.nc.bus_data.Vnom[r]
                raise ConsistencyError(controlled=str(self.nc.bus_data.names[r]),
                                       setpoints=[(rd.names[self.rho_rtc[j]], self.rho_v_target[j] * vnom)
                                                  for j in group],
                                       message="Transformers with inconsistent target voltages")

    def _build_phase_controls(self) -> None:
        """
        Phase variables of the regulating phase shifters
        """
        pd = self.nc.ptc_data
        bd = self.nc.branch_data
        closed = bd.closed
        bridges = self.nc.get_bridges() if pd.nelm else np.zeros(self.nbr, dtype=bool)

        idx = list()
        for k in range(pd.nelm):
            if not pd.is_regulating(k):
                continue
            br = pd.branch_idx[k]
            reg = pd.regulated_branch[k]
            if not closed[br]:
                self.logger.add_warning("Phase shifter not closed at both sides, phase control disabled",
                                        device=pd.names[k], device_class='PhaseTapChanger')
            elif reg < 0 or not closed[reg]:
                self.logger.add_warning("Regulated branch out of the island or disconnected at a side, "
                                        "phase control disabled",
                                        device=pd.names[k], device_class='PhaseTapChanger')
            elif bridges[br]:
                self.logger.add_warning("Phase shifter needed for the island connectivity, phase control disabled",
                                        device=pd.names[k], device_class='PhaseTapChanger')
            else:
                idx.append(k)

        self.alpha_ptc: IntVec = np.array(idx, dtype=int)
        self.alpha_br: IntVec = pd.branch_idx[self.alpha_ptc]
        self.alpha_reg_br: IntVec = pd.regulated_branch[self.alpha_ptc]
        self.alpha_reg_side: IntVec = pd.regulated_side[self.alpha_ptc]
        self.alpha_mode = pd.mode[self.alpha_ptc]
        self.alpha_p_target: Vec = pd.target[self.alpha_ptc].copy()
        self.alpha_enabled: BoolVec = np.zeros(len(idx), dtype=bool)
        self.alpha_target: Vec = bd.a1[self.alpha_br].copy()

    def _build_shunt_controls(self) -> None:
        """
        Susceptance variables of the voltage controlling shunts
        """
        sd = self.nc.shunt_data

        idx = list()
        for k in range(sd.nelm):
            if not (sd.active[k] and sd.voltage_control[k]):
                continue
            if sd.regulated_bus[k] < 0:
                self.logger.add_warning("Regulated bus out of the island, voltage control disabled",
                                        device=sd.names[k], device_class='Shunt')
                continue
            idx.append(k)

        self.bsh_idx: IntVec = np.array(idx, dtype=int)
        self.bsh_reg_bus: IntVec = sd.regulated_bus[self.bsh_idx]
        self.bsh_v_target: Vec = sd.v_target[self.bsh_idx].copy()
        self.bsh_enabled: BoolVec = np.zeros(len(idx), dtype=bool)
        self.bsh_target: Vec = sd.b[self.bsh_idx].copy()

        for r, group in _group_by(self.bsh_reg_bus).items():
            values = self.bsh_v_target[group]
            if values.max() - values.min() > TARGET_VOLTAGE_EPS:
                vnom = self.nc.bus_data.Vnom[r]
                raise ConsistencyError(controlled=str(self.nc.bus_data.names[r]),
                                       setpoints=[(sd.names[self.bsh_idx[j]], self.bsh_v_target[j] * vnom)
                                                  for j in group],
                                       message="Shunts with inconsistent target voltages")

    def _build_area_controls(self) -> None:
        """
        Interchange controlled areas lying in this island
        """
        ad = self.nc.area_data
        nbus_area = ad.get_buses_count(self.nc.bus_data.areas)
        controlled = np.isfinite(ad.interchange_target) & (nbus_area > 0)

        self.area_idx: IntVec = np.where(controlled & ~ad.fragmented)[0]
        self.excluded_areas: IntVec = np.where(controlled & ad.fragmented)[0]
        self.area_target: Vec = ad.interchange_target[self.area_idx].copy()

        # boundary terminals matrix: one row per area, one column per branch terminal (side 1 block, side 2 block)
        rows, cols = list(), list()
        for j, a in enumerate(self.area_idx):
            branches, sides = ad.get_boundaries(a)
            for br, side in zip(branches, sides):
                rows.append(j)
                cols.append(br + (side - 1) * self.nbr)
        self.area_boundary_matrix = sp.csr_matrix((np.ones(len(rows)), (rows, cols)),
                                                  shape=(len(self.area_idx), 2 * self.nbr))

    def _check_cross_controls(self) -> None:
        """
        Reject the buses regulated by devices of different types with different targets
        """
        gd = self.nc.generator_data
        rd = self.nc.rtc_data
        sd = self.nc.shunt_data
        vnom = self.nc.bus_data.Vnom

        setpoints: Dict[int, List[Tuple[str, float]]] = dict()
        for k in np.where(self.gen_ctrl_mask)[0]:
            r = int(self.gen_controlled_bus[gd.bus_idx[k]])
            setpoints.setdefault(r, list()).append((gd.names[k], self.gen_v_target[r]))
        for j, r in enumerate(self.rho_reg_bus):
            if r > -1:
                setpoints.setdefault(int(r), list()).append((rd.names[self.rho_rtc[j]], self.rho_v_target[j]))
        for j, r in enumerate(self.bsh_reg_bus):
            setpoints.setdefault(int(r), list()).append((sd.names[self.bsh_idx[j]], self.bsh_v_target[j]))

        for r, sp_list in setpoints.items():
            values = np.array([v for _, v in sp_list])
            if values.max() - values.min() > TARGET_VOLTAGE_EPS:
                raise ConsistencyError(controlled=str(self.nc.bus_data.names[r]),
                                       setpoints=[(name, v * vnom[r]) for name, v in sp_list],
                                       message="Controllers of different types with inconsistent target voltages")

    # ------------------------------------------------------------------------------------------------------------------
    # state vector
    # ------------------------------------------------------------------------------------------------------------------

    def get_x_from_network(self, v: Vec, phi: Vec) -> Vec:
        """
        Compose a state vector from the bus voltages and the devices current values
        :param v: voltage modules (p.u.)
        :param phi: voltage angles (rad)
        :return: state vector
        """
        x = np.zeros(self.nvar)
        x[self.iv:self.iv + self.nbus] = v
        x[self.iphi:self.iphi + self.nbus] = phi
        x[self.irho:self.irho + self.nrho] = self.nc.branch_data.r1[self.rho_br]
        x[self.ialpha:self.ialpha + self.nalpha] = self.nc.branch_data.a1[self.alpha_br]
        x[self.ib:self.ib + self.nshb] = self.nc.shunt_data.b[self.bsh_idx]
        return x

    def get_v(self, x: Union[Vec, None] = None) -> Vec:
        x = self.x if x is None else x
        return x[self.iv:self.iv + self.nbus]

    def get_phi(self, x: Union[Vec, None] = None) -> Vec:
        x = self.x if x is None else x
        return x[self.iphi:self.iphi + self.nbus]

    def get_rho(self, x: Union[Vec, None] = None) -> Vec:
        x = self.x if x is None else x
        return x[self.irho:self.irho + self.nrho]

    def get_alpha(self, x: Union[Vec, None] = None) -> Vec:
        x = self.x if x is None else x
        return x[self.ialpha:self.ialpha + self.nalpha]

    def get_b(self, x: Union[Vec, None] = None) -> Vec:
        x = self.x if x is None else x
        return x[self.ib:self.ib + self.nshb]

    def fix_rho(self, k: int, r1: float) -> None:
        """
        Set the value of a ratio variable and its fixed target
        :param k: ratio variable index
        :param r1: ratio
        """
        self.rho_target[k] = r1
        self.x[self.irho + k] = r1

    def fix_alpha(self, k: int, a1: float) -> None:
        self.alpha_target[k] = a1
        self.x[self.ialpha + k] = a1

    def fix_b(self, k: int, b: float) -> None:
        self.bsh_target[k] = b
        self.x[self.ib + k] = b

    # ------------------------------------------------------------------------------------------------------------------
    # equations activation
    # ------------------------------------------------------------------------------------------------------------------

    def get_pv_buses(self) -> BoolVec:
        """
        Controller buses whose generators control the voltage at the moment
        """
        return self.is_gen_controller & self.gen_vc_on & ~self.gen_vc_suspended

    def update(self) -> None:
        """
        Recompute the active equations from the control state
        """
        nb = self.nbus
        o = self.eq_offset
        a = np.zeros(self.neq, dtype=bool)

        a[o[EquationType.BUS_TARGET_P]:o[EquationType.BUS_TARGET_P] + nb] = True
        a[o[EquationType.BUS_TARGET_P] + self.slack] = False
        a[o[EquationType.BUS_TARGET_PHI] + self.slack] = True

        # generator voltage control
        pv = self.get_pv_buses()
        gen_controlled = np.zeros(nb, dtype=bool)
        gen_controlled[self.gen_controlled_bus[pv]] = True
        bus_v_target = np.where(gen_controlled, self.gen_v_target, 1.0)

        self.distr_q_ref = np.full(nb, -1, dtype=int)
        for c, group in _group_by(self.gen_controlled_bus[pv]).items():
            ctrl_buses = np.where(pv)[0][group]
            self.distr_q_ref[ctrl_buses] = ctrl_buses[0]
            a[o[EquationType.DISTR_Q] + ctrl_buses[1:]] = True

        # reactive power equations where the generators do not control the voltage
        a[o[EquationType.BUS_TARGET_Q]:o[EquationType.BUS_TARGET_Q] + nb] = ~pv

        # transformer voltage control
        rho_v_on = self.rho_enabled & self.rho_is_v
        if self.nrho:
            rho_v_on &= ~gen_controlled[np.maximum(self.rho_reg_bus, 0)]
        rtc_controlled = np.zeros(nb, dtype=bool)
        rtc_controlled[self.rho_reg_bus[rho_v_on]] = True
        self.distr_rho_ref = np.full(self.nrho, -1, dtype=int)
        for r, group in _group_by(self.rho_reg_bus[rho_v_on]).items():
            ks = np.where(rho_v_on)[0][group]
            bus_v_target[r] = self.rho_v_target[ks[0]]
            self.distr_rho_ref[ks] = ks[0]
            a[o[EquationType.DISTR_RHO] + ks[1:]] = True
        a[o[EquationType.BRANCH_TARGET_RHO1]:o[EquationType.BRANCH_TARGET_RHO1] + self.nrho] = ~rho_v_on

        # shunt voltage control
        b_on = self.bsh_enabled.copy()
        if self.nshb:
            b_on &= ~gen_controlled[self.bsh_reg_bus] & ~rtc_controlled[self.bsh_reg_bus]
        sh_controlled = np.zeros(nb, dtype=bool)
        sh_controlled[self.bsh_reg_bus[b_on]] = True
        self.distr_b_ref = np.full(self.nshb, -1, dtype=int)
        for r, group in _group_by(self.bsh_reg_bus[b_on]).items():
            ks = np.where(b_on)[0][group]
            bus_v_target[r] = self.bsh_v_target[ks[0]]
            self.distr_b_ref[ks] = ks[0]
            a[o[EquationType.DISTR_SHUNT_B] + ks[1:]] = True
        a[o[EquationType.SHUNT_TARGET_B]:o[EquationType.SHUNT_TARGET_B] + self.nshb] = ~b_on

        # voltage equations, with slope for a single local generator
        v_controlled = gen_controlled | rtc_controlled | sh_controlled
        n_pv_per_controlled = np.bincount(self.gen_controlled_bus[pv], minlength=nb)
        self.slope_bus = (gen_controlled & pv & (self.gen_controlled_bus == np.arange(nb))
                          & (self.bus_slope != 0.0) & (n_pv_per_controlled == 1))
        a[o[EquationType.BUS_TARGET_V]:o[EquationType.BUS_TARGET_V] + nb] = v_controlled & ~self.slope_bus
        a[o[EquationType.BUS_TARGET_V_WITH_SLOPE]:o[EquationType.BUS_TARGET_V_WITH_SLOPE] + nb] = self.slope_bus
        self.bus_v_target = bus_v_target

        # phase control
        a[o[EquationType.BRANCH_TARGET_P]:o[EquationType.BRANCH_TARGET_P] + self.nalpha] = self.alpha_enabled
        a[o[EquationType.BRANCH_TARGET_ALPHA1]:o[EquationType.BRANCH_TARGET_ALPHA1] + self.nalpha] = \
            ~self.alpha_enabled

        self.active = a
        self.check_dimensions()

    # ------------------------------------------------------------------------------------------------------------------
    # evaluation
    # ------------------------------------------------------------------------------------------------------------------

    def get_p_spec(self) -> Vec:
        return self.nc.generator_data.get_p_per_bus() - self.nc.load_data.get_p_per_bus()

    def get_q_spec(self) -> Vec:
        """
        Specified reactive power injection of the buses where the Q equation applies
        """
        pv = self.get_pv_buses()
        q_ctrl = np.where(self.is_gen_controller & ~pv, self.ctrl_bus_q_spec, 0.0)
        return self.q_fixed_bus + q_ctrl - self.nc.load_data.get_q_per_bus()

    def get_q_controller(self, Sbus: CxVec) -> Vec:
        """
        Reactive power delivered by the voltage controlling generators of every bus
        :param Sbus: calculated power injections
        :return: Vec (nbus)
        """
        return Sbus.imag + self.nc.load_data.get_q_per_bus() - self.q_fixed_bus

    def compute_state(self, x: Union[Vec, None] = None) -> AcState:
        """
        Compute the electrical state of a state vector
        :param x: state vector, the current one if None
        :return: AcState
        """
        x = self.x if x is None else x
        bd = self.nc.branch_data
        sd = self.nc.shunt_data
        nb = self.nbus

        v = self.get_v(x)
        V = v * np.exp(1j * self.get_phi(x))

        r1 = bd.r1.copy()
        r1[self.rho_br] = self.get_rho(x)
        a1 = bd.a1.copy()
        a1[self.alpha_br] = self.get_alpha(x)
        b_shunt = sd.b.copy()
        b_shunt[self.bsh_idx] = self.get_b(x)

        adm = compute_admittances(R=bd.R, X=bd.X, G1=bd.G1, B1=bd.B1, G2=bd.G2, B2=bd.B2,
                                  r1=r1, a1=a1, connected1=bd.connected1, connected2=bd.connected2,
                                  F=bd.F, T=bd.T, nbus=nb)

        g_bus = np.bincount(sd.bus_idx[sd.active], weights=sd.g[sd.active], minlength=nb)
        b_bus = np.bincount(sd.bus_idx[sd.active], weights=b_shunt[sd.active], minlength=nb)

        Sbus = V * np.conj(adm.Ybus @ V) + (g_bus - 1j * b_bus) * v * v
        If = adm.Yf @ V
        It = adm.Yt @ V
        Sf = V[bd.F] * np.conj(If)
        St = V[bd.T] * np.conj(It)

        return AcState(V=V, r1=r1, a1=a1, b_shunt=b_shunt, adm=adm, Sbus=Sbus, Sf=Sf, St=St, If=If, It=It)

    def _branch_rows(self, br: IntVec, side: IntVec) -> IntVec:
        return br + (side - 1) * self.nbr

    def compute_all(self, x: Vec, compute_jac: bool = True) -> Tuple[Vec, Union[sp.csr_matrix, None]]:
        """
        Evaluate all the equations, active or not
        :param x: state vector
        :param compute_jac: compute the Jacobian as well
        :return: f (neq), J (neq, nvar)
        """
        st = self.compute_state(x)
        bd = self.nc.branch_data
        sd = self.nc.shunt_data
        nb = self.nbus
        nbr = self.nbr
        nvar = self.nvar
        v = self.get_v(x)

        q_ctrl = self.get_q_controller(st.Sbus)
        Sbr = np.r_[st.Sf, st.St]
        Ibr = np.r_[st.If, st.It]

        alpha_rows = self._branch_rows(self.alpha_reg_br, self.alpha_reg_side)
        alpha_i_target = np.where(self.alpha_mode == PhaseRegulationMode.CURRENT_LIMITER, self.alpha_p_target, 0.0)
        rho_q_rows = np.where(self.rho_is_v, self._branch_rows(self.rho_br, np.full(self.nrho, 2)),
                              self._branch_rows(self.rho_br, self.rho_q_side))
        slope = np.where(self.slope_bus, self.bus_slope, 0.0)
        D_q = _ref_matrix(self.distr_q_ref, 0, nb)

        f = np.r_[
            st.Sbus.real - self.get_p_spec(),
            st.Sbus.imag - self.get_q_spec(),
            v - self.bus_v_target,
            v + slope * q_ctrl - self.bus_v_target,
            self.get_phi(x),
            Sbr[alpha_rows].real - self.alpha_p_target,
            np.abs(Ibr[alpha_rows]) - alpha_i_target,
            Sbr[rho_q_rows].imag - np.where(self.rho_is_v, 0.0, self.rho_q_target),
            self.get_rho(x) - self.rho_target,
            self.get_alpha(x) - self.alpha_target,
            self.get_b(x) - self.bsh_target,
            D_q @ q_ctrl,
            _ref_matrix(self.distr_rho_ref, 0, self.nrho) @ self.get_rho(x),
            _ref_matrix(self.distr_b_ref, 0, self.nshb) @ self.get_b(x),
            self.area_boundary_matrix @ Sbr.real - self.area_target
        ]

        if not compute_jac:
            return f, None

        # bus injections
        dS_dVa, dS_dVm = dSbus_dV_matpower(st.adm.Ybus, st.V)
        g_bus = np.bincount(sd.bus_idx[sd.active], weights=sd.g[sd.active], minlength=nb)
        b_bus = np.bincount(sd.bus_idx[sd.active], weights=st.b_shunt[sd.active], minlength=nb)
        dS_dVm = dS_dVm + sp.diags(2.0 * (g_bus - 1j * b_bus) * v)

        ys = 1.0 / (bd.R + 1j * bd.X)
        y1 = bd.G1 + 1j * bd.B1
        dSf_dr1, dSf_da1, dSt_dr1, dSt_da1 = dSbr_dtap(st.V, bd.F, bd.T, ys, y1, st.r1, st.a1)
        dIf_dr1, dIf_da1, dIt_dr1, dIt_da1 = dIbr_dtap(st.V, bd.F, bd.T, ys, y1, st.r1, st.a1)

        k_rho = np.arange(self.nrho)
        k_alpha = np.arange(self.nalpha)

        def branch_var_matrix(values: CxVec, br: IntVec, k: IntVec) -> sp.csr_matrix:
            return sp.csr_matrix((values[br], (br, k)), shape=(nbr, len(k)), dtype=complex)

        def bus_var_matrix(dSf: CxVec, dSt: CxVec, br: IntVec, k: IntVec) -> sp.csr_matrix:
            rows = np.r_[bd.F[br], bd.T[br]]
            cols = np.r_[k, k]
            return sp.csr_matrix((np.r_[dSf[br], dSt[br]], (rows, cols)), shape=(nb, len(k)), dtype=complex)

        dS_dr1 = bus_var_matrix(dSf_dr1, dSt_dr1, self.rho_br, k_rho)
        dS_da1 = bus_var_matrix(dSf_da1, dSt_da1, self.alpha_br, k_alpha)
        dS_db = sp.csr_matrix((-1j * v[sd.bus_idx[self.bsh_idx]] ** 2, (sd.bus_idx[self.bsh_idx], np.arange(self.nshb))),
                              shape=(nb, self.nshb), dtype=complex)

        dS = sp.hstack([dS_dVm, dS_dVa, dS_dr1, dS_da1, dS_db], format='csr')
        J_P = dS.real
        J_Q = dS.imag

        # branch terminals
        dSf_dVa, dSf_dVm, dSt_dVa, dSt_dVm = dSbr_dV_matpower(st.adm.Yf, st.adm.Yt, st.V, bd.F, bd.T,
                                                              st.adm.Cf, st.adm.Ct)
        zeros_b = sp.csr_matrix((nbr, self.nshb), dtype=complex)
        dSbr = sp.vstack([
            sp.hstack([dSf_dVm, dSf_dVa, branch_var_matrix(dSf_dr1, self.rho_br, k_rho),
                       branch_var_matrix(dSf_da1, self.alpha_br, k_alpha), zeros_b]),
            sp.hstack([dSt_dVm, dSt_dVa, branch_var_matrix(dSt_dr1, self.rho_br, k_rho),
                       branch_var_matrix(dSt_da1, self.alpha_br, k_alpha), zeros_b])
        ], format='csr')

        dIf_dVa, dIf_dVm, dIt_dVa, dIt_dVm = dIbr_dV(st.adm.Yf, st.adm.Yt, st.V)
        dIbr = sp.vstack([
            sp.hstack([dIf_dVm, dIf_dVa, branch_var_matrix(dIf_dr1, self.rho_br, k_rho),
                       branch_var_matrix(dIf_da1, self.alpha_br, k_alpha), zeros_b]),
            sp.hstack([dIt_dVm, dIt_dVa, branch_var_matrix(dIt_dr1, self.rho_br, k_rho),
                       branch_var_matrix(dIt_da1, self.alpha_br, k_alpha), zeros_b])
        ], format='csr')
        dIabs = abs_derivative(Ibr, dIbr).tocsr()

        J_V = _unit_matrix(nb, self.iv, nvar)
        J_Qctrl = J_Q  # the fixed injections do not depend on the state

        J = sp.vstack([
            J_P,
            J_Q,
            J_V,
            J_V + sp.diags(slope) @ J_Qctrl,
            _unit_matrix(nb, self.iphi, nvar),
            dSbr[alpha_rows, :].real,
            dIabs[alpha_rows, :],
            dSbr[rho_q_rows, :].imag,
            _unit_matrix(self.nrho, self.irho, nvar),
            _unit_matrix(self.nalpha, self.ialpha, nvar),
            _unit_matrix(self.nshb, self.ib, nvar),
            D_q @ J_Qctrl,
            _ref_matrix(self.distr_rho_ref, self.irho, nvar),
            _ref_matrix(self.distr_b_ref, self.ib, nvar),
            self.area_boundary_matrix @ dSbr.real
        ], format='csr')

        return f, J

    def compute(self, x: Vec, compute_jac: bool = True) -> ConvexFunctionResult:
        """
        Evaluate the active equations
        :param x: state vector
        :param compute_jac: compute the Jacobian as well
        :return: ConvexFunctionResult
        """
        f_all, J_all = self.compute_all(x, compute_jac=compute_jac)
        self.f_all = f_all
        if J_all is not None:
            self.J_all = J_all
            J = J_all[self.active, :].tocsc()
        else:
            J = None

        return ConvexFunctionResult(f=f_all[self.active], J=J)

    def get_tolerances(self, default_eps: float) -> Vec:
        """
        Tolerance of every active equation for the per equation type criteria
        :param default_eps: not used
        :return: Vec
        """
        o = self.options
        Sbase = self.nc.Sbase
        tol_power = o.max_active_power_mismatch / Sbase
        tol = {
            EquationType.BUS_TARGET_P: tol_power,
            EquationType.BUS_TARGET_Q: o.max_reactive_power_mismatch / Sbase,
            EquationType.BUS_TARGET_V: o.max_voltage_mismatch,
            EquationType.BUS_TARGET_V_WITH_SLOPE: o.max_voltage_mismatch,
            EquationType.BUS_TARGET_PHI: o.max_angle_mismatch,
            EquationType.BRANCH_TARGET_P: tol_power,
            EquationType.BRANCH_TARGET_Q: o.max_reactive_power_mismatch / Sbase,
            EquationType.BRANCH_TARGET_I: tol_power,
            EquationType.BRANCH_TARGET_RHO1: o.max_ratio_mismatch,
            EquationType.BRANCH_TARGET_ALPHA1: o.max_angle_mismatch,
            EquationType.SHUNT_TARGET_B: o.max_susceptance_mismatch,
            EquationType.DISTR_Q: o.max_reactive_power_mismatch / Sbase,
            EquationType.DISTR_RHO: o.max_ratio_mismatch,
            EquationType.DISTR_SHUNT_B: o.max_susceptance_mismatch,
            EquationType.AREA_TARGET_P: tol_power,
        }
        return np.array([tol[tpe] for tpe in self.get_active_equation_types()], dtype=float)

    # ------------------------------------------------------------------------------------------------------------------
    # sensitivities
    # ------------------------------------------------------------------------------------------------------------------

    def compute_sensitivities(self, rows: IntVec) -> Mat:
        """
        Derivative of the state vector w.r.t the targets of the given active equations,
        solving J dx/dt = e_row at the current state
        :param rows: active equation rows
        :return: Mat (nvar, len(rows))
        """
        res = self.compute(self.x, compute_jac=True)
        pos = self.get_active_position(np.asarray(rows, dtype=int))
        solve = get_factorization(res.J, self.options.sparse_solver)
        dxdt = np.zeros((self.nvar, len(pos)))
        for j, p in enumerate(pos):
            e = np.zeros(self.nvar)
            e[p] = 1.0
            dxdt[:, j] = solve(e)
        return dxdt

    def get_measurement_gradient(self, rows: IntVec) -> Mat:
        """
        Gradient of the calculated part of the given equations w.r.t the state vector
        (the last evaluation is used)
        :param rows: equation rows, active or not
        :return: Mat (len(rows), nvar)
        """
        if self.J_all is None:
            self.compute(self.x, compute_jac=True)
        return self.J_all[np.asarray(rows, dtype=int), :].toarray()

    def get_slack_mismatch(self, Sbus: Union[CxVec, None] = None) -> float:
        """
        Active power of the slack bus that is not specified (p.u.)
        """
        if Sbus is None:
            Sbus = self.compute_state().Sbus
        return float(Sbus.real[self.slack] - self.get_p_spec()[self.slack])
