# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Dict, List, Union
import numpy as np
import pandas as pd

from FlowCalEngine.basic_structures import Vec, CxVec, IntVec, StrVec, ConvergenceReport
from FlowCalEngine.enumerations import SolverStatus, OuterLoopStatus
from FlowCalEngine.Simulations.results_template import ResultsTemplate


class IslandResult:
    """
    Outcome of the power flow of one island
    """

    def __init__(self,
                 status: SolverStatus = SolverStatus.NO_CALCULATION,
                 iterations: int = 0,
                 outer_loop_iterations: int = 0,
                 outer_loop_status: OuterLoopStatus = OuterLoopStatus.STABLE,
                 slack_bus_name: str = '',
                 slack_bus_idx: int = -1,
                 slack_p_mismatch: float = np.nan,
                 distributed_p: float = 0.0,
                 area_interchange: Union[Dict[str, float], None] = None,
                 excluded_areas: Union[List[str], None] = None,
                 message: str = ''):
        """

        :param status: SolverStatus of the island
        :param iterations: Newton-Raphson iterations of all the runs
        :param outer_loop_iterations: number of Newton-Raphson runs requested by the outer loops
        :param outer_loop_status: status of the last outer loop check
        :param slack_bus_name: name of the slack bus
        :param slack_bus_idx: index of the slack bus in the whole circuit
        :param slack_p_mismatch: active power left on the slack bus (MW)
        :param distributed_p: active power moved by the slack distribution (MW)
        :param area_interchange: {area name: interchange (MW)} of the controlled areas
        :param excluded_areas: names of the areas excluded from the interchange control
        :param message: failure message
        """
        self.status = status
        self.iterations = iterations
        self.outer_loop_iterations = outer_loop_iterations
        self.outer_loop_status = outer_loop_status
        self.slack_bus_name = slack_bus_name
        self.slack_bus_idx = slack_bus_idx
        self.slack_p_mismatch = slack_p_mismatch
        self.distributed_p = distributed_p
        self.area_interchange: Dict[str, float] = area_interchange if area_interchange is not None else dict()
        self.excluded_areas: List[str] = excluded_areas if excluded_areas is not None else list()
        self.message = message

    @property
    def converged(self) -> bool:
        return self.status == SolverStatus.CONVERGED

    def __str__(self):
        val = (f"{self.status} after {self.iterations} iterations and {self.outer_loop_iterations} "
               f"outer loop iterations, slack {self.slack_bus_name} mismatch {self.slack_p_mismatch:.4f} MW")
        if self.message:
            val += f" ({self.message})"
        return val


class NumericPowerFlowResults:
    """
    Arrays of the power flow of one island, in physical units
    """

    def __init__(self,
                 V: CxVec,
                 Sbus: CxVec,
                 Sf: CxVec,
                 St: CxVec,
                 If: Vec,
                 It: Vec,
                 tap_module: Vec,
                 tap_angle: Vec,
                 rtc_position: IntVec,
                 ptc_position: IntVec,
                 shunt_section: IntVec,
                 shunt_q: Vec,
                 gen_p: Vec,
                 gen_q: Vec,
                 load_p: Vec,
                 area_interchange: Vec,
                 island: IslandResult):
        """
        Object to store the results of the power flow of an island
        :param V: Voltage vector (p.u.)
        :param Sbus: Calculated power vector (MVA)
        :param Sf: Power entering the branches at side 1 (MVA), NaN where open
        :param St: Power entering the branches at side 2 (MVA), NaN where open
        :param If: Current module at side 1 (A)
        :param It: Current module at side 2 (A)
        :param tap_module: side 1 ratio of the branches
        :param tap_angle: side 1 phase shift of the branches (deg)
        :param rtc_position: solved ratio tap changer positions
        :param ptc_position: solved phase tap changer positions
        :param shunt_section: solved shunt sections
        :param shunt_q: shunt reactive power (MVAr)
        :param gen_p: generator active power (MW)
        :param gen_q: generator reactive power (MVAr)
        :param load_p: load active power (MW)
        :param area_interchange: interchange of every area (MW), NaN if not computable in the island
        :param island: IslandResult
        """
        self.V = V
        self.Sbus = Sbus
        self.Sf = Sf
        self.St = St
        self.If = If
        self.It = It
        self.tap_module = tap_module
        self.tap_angle = tap_angle
        self.rtc_position = rtc_position
        self.ptc_position = ptc_position
        self.shunt_section = shunt_section
        self.shunt_q = shunt_q
        self.gen_p = gen_p
        self.gen_q = gen_q
        self.load_p = load_p
        self.area_interchange = area_interchange
        self.island = island


class PowerFlowResults(ResultsTemplate):
    """
    A **PowerFlowResults** object is created as an attribute of the PowerFlowDriver
    (as PowerFlowDriver.results) when the power flow is run. It gives access to the
    solved state of all the islands.
    """

    def __init__(self,
                 bus_names: StrVec,
                 bus_vnom: Vec,
                 branch_names: StrVec,
                 gen_names: StrVec,
                 load_names: StrVec,
                 sh_names: StrVec,
                 rtc_names: StrVec,
                 ptc_names: StrVec,
                 area_names: StrVec):
        """

        :param bus_names: list of bus names
        :param bus_vnom: bus nominal voltages (kV)
        :param branch_names: list of branch names
        :param gen_names: list of generator names
        :param load_names: list of load names
        :param sh_names: list of shunt names
        :param rtc_names: list of ratio tap changer names
        :param ptc_names: list of phase tap changer names
        :param area_names: list of area names
        """
        ResultsTemplate.__init__(self, name='Power flow')

        n = len(bus_names)
        m = len(branch_names)

        self.bus_names: StrVec = np.array(bus_names, dtype=object)
        self.bus_vnom: Vec = np.array(bus_vnom, dtype=float)
        self.branch_names: StrVec = np.array(branch_names, dtype=object)
        self.gen_names: StrVec = np.array(gen_names, dtype=object)
        self.load_names: StrVec = np.array(load_names, dtype=object)
        self.sh_names: StrVec = np.array(sh_names, dtype=object)
        self.rtc_names: StrVec = np.array(rtc_names, dtype=object)
        self.ptc_names: StrVec = np.array(ptc_names, dtype=object)
        self.area_names: StrVec = np.array(area_names, dtype=object)

        # the elements of the islands without calculation stay undefined
        self.voltage: CxVec = np.full(n, np.nan, dtype=complex)
        self.Sbus: CxVec = np.full(n, np.nan, dtype=complex)

        self.Sf: CxVec = np.full(m, np.nan, dtype=complex)
        self.St: CxVec = np.full(m, np.nan, dtype=complex)
        self.If: Vec = np.full(m, np.nan, dtype=float)
        self.It: Vec = np.full(m, np.nan, dtype=float)
        self.tap_module: Vec = np.full(m, np.nan, dtype=float)
        self.tap_angle: Vec = np.full(m, np.nan, dtype=float)

        self.rtc_requested_position: IntVec = np.zeros(len(rtc_names), dtype=int)
        self.rtc_solved_position: IntVec = np.zeros(len(rtc_names), dtype=int)
        self.ptc_requested_position: IntVec = np.zeros(len(ptc_names), dtype=int)
        self.ptc_solved_position: IntVec = np.zeros(len(ptc_names), dtype=int)

        self.shunt_requested_section: IntVec = np.zeros(len(sh_names), dtype=int)
        self.shunt_solved_section: IntVec = np.zeros(len(sh_names), dtype=int)
        self.shunt_q: Vec = np.full(len(sh_names), np.nan, dtype=float)

        self.gen_p: Vec = np.full(len(gen_names), np.nan, dtype=float)
        self.gen_q: Vec = np.full(len(gen_names), np.nan, dtype=float)
        self.load_p: Vec = np.full(len(load_names), np.nan, dtype=float)

        self.area_interchange: Vec = np.full(len(area_names), np.nan, dtype=float)

        self.islands: List[IslandResult] = list()
        self.convergence_reports: List[ConvergenceReport] = list()

        self.register(name='bus_names', tpe=StrVec)
        self.register(name='bus_vnom', tpe=Vec, units='kV')
        self.register(name='branch_names', tpe=StrVec)
        self.register(name='gen_names', tpe=StrVec)
        self.register(name='load_names', tpe=StrVec)
        self.register(name='sh_names', tpe=StrVec)
        self.register(name='rtc_names', tpe=StrVec)
        self.register(name='ptc_names', tpe=StrVec)
        self.register(name='area_names', tpe=StrVec)

        self.register(name='voltage', tpe=CxVec, units='p.u.')
        self.register(name='Sbus', tpe=CxVec, units='MVA')
        self.register(name='Sf', tpe=CxVec, units='MVA')
        self.register(name='St', tpe=CxVec, units='MVA')
        self.register(name='If', tpe=Vec, units='A')
        self.register(name='It', tpe=Vec, units='A')
        self.register(name='tap_module', tpe=Vec, units='p.u.')
        self.register(name='tap_angle', tpe=Vec, units='deg')

        self.register(name='rtc_requested_position', tpe=IntVec)
        self.register(name='rtc_solved_position', tpe=IntVec)
        self.register(name='ptc_requested_position', tpe=IntVec)
        self.register(name='ptc_solved_position', tpe=IntVec)
        self.register(name='shunt_requested_section', tpe=IntVec)
        self.register(name='shunt_solved_section', tpe=IntVec)
        self.register(name='shunt_q', tpe=Vec, units='MVAr')

        self.register(name='gen_p', tpe=Vec, units='MW')
        self.register(name='gen_q', tpe=Vec, units='MVAr')
        self.register(name='load_p', tpe=Vec, units='MW')

        self.register(name='area_interchange', tpe=Vec, units='MW')

    @property
    def converged(self) -> bool:
        """
        Did all the calculated islands converge?
        :return: True / False
        """
        calculated = [island for island in self.islands if island.status != SolverStatus.NO_CALCULATION]
        if len(calculated) == 0:
            return False

        val = True
        for island in calculated:
            val *= island.converged
        return bool(val)

    @property
    def error(self) -> float:
        val = 0.0
        for conv in self.convergence_reports:
            val = max(val, conv.error())
        return val

    @property
    def elapsed(self) -> float:
        val = 0.0
        for conv in self.convergence_reports:
            val = max(val, conv.elapsed())
        return val

    @property
    def iterations(self) -> int:
        """
        Largest number of Newton-Raphson iterations of an island
        """
        val = 0
        for island in self.islands:
            val = max(val, island.iterations)
        return val

    @property
    def distributed_p(self) -> float:
        """
        Active power distributed in all the islands (MW)
        """
        return float(sum(island.distributed_p for island in self.islands))

    @property
    def Vm(self) -> Vec:
        """
        Voltage module (kV)
        """
        return np.abs(self.voltage) * self.bus_vnom

    @property
    def Va(self) -> Vec:
        """
        Voltage angle (deg)
        """
        return np.angle(self.voltage, deg=True)

    def apply_from_island(self,
                          results: NumericPowerFlowResults,
                          b_idx: IntVec,
                          br_idx: IntVec,
                          gen_idx: IntVec,
                          load_idx: IntVec,
                          sh_idx: IntVec,
                          rtc_idx: IntVec,
                          ptc_idx: IntVec) -> None:
        """
        Apply results from another island circuit to the circuit results represented
        here.
        :param results: NumericPowerFlowResults from an island circuit
        :param b_idx: bus original indices
        :param br_idx: branch original indices
        :param gen_idx: generator original indices
        :param load_idx: load original indices
        :param sh_idx: shunt original indices
        :param rtc_idx: ratio tap changer original indices
        :param ptc_idx: phase tap changer original indices
        :return: None
        """
        self.voltage[b_idx] = results.V
        self.Sbus[b_idx] = results.Sbus

        self.Sf[br_idx] = results.Sf
        self.St[br_idx] = results.St
        self.If[br_idx] = results.If
        self.It[br_idx] = results.It
        self.tap_module[br_idx] = results.tap_module
        self.tap_angle[br_idx] = results.tap_angle

        self.rtc_solved_position[rtc_idx] = results.rtc_position
        self.ptc_solved_position[ptc_idx] = results.ptc_position
        self.shunt_solved_section[sh_idx] = results.shunt_section
        self.shunt_q[sh_idx] = results.shunt_q

        self.gen_p[gen_idx] = results.gen_p
        self.gen_q[gen_idx] = results.gen_q
        self.load_p[load_idx] = results.load_p

        computed = np.isfinite(results.area_interchange)
        self.area_interchange[computed] = results.area_interchange[computed]

        self.islands.append(results.island)

    def get_report_dataframe(self) -> pd.DataFrame:
        """
        Get a DataFrame with one row per island
        :return: DataFrame
        """
        data = {'Status': [str(island.status) for island in self.islands],
                'Iterations': [island.iterations for island in self.islands],
                'Outer loop iterations': [island.outer_loop_iterations for island in self.islands],
                'Slack bus': [island.slack_bus_name for island in self.islands],
                'Slack mismatch (MW)': [island.slack_p_mismatch for island in self.islands],
                'Distributed (MW)': [island.distributed_p for island in self.islands],
                'Message': [island.message for island in self.islands]}
        return pd.DataFrame(data)

    def get_bus_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the buses results
        :return: DataFrame
        """
        return pd.DataFrame(data={'Vm': self.Vm,
                                  'Va': self.Va,
                                  'P': self.Sbus.real,
                                  'Q': self.Sbus.imag},
                            index=self.bus_names)

    def get_branch_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the branches results
        :return: DataFrame
        """
        return pd.DataFrame(data={'Pf': self.Sf.real,
                                  'Qf': self.Sf.imag,
                                  'Pt': self.St.real,
                                  'Qt': self.St.imag,
                                  'If': self.If,
                                  'It': self.It,
                                  'Ploss': (self.Sf + self.St).real,
                                  'Qloss': (self.Sf + self.St).imag},
                            index=self.branch_names)

    def get_tap_changer_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the requested and solved tap positions
        :return: DataFrame
        """
        names = np.r_[self.rtc_names, self.ptc_names]
        return pd.DataFrame(data={'Requested': np.r_[self.rtc_requested_position, self.ptc_requested_position],
                                  'Solved': np.r_[self.rtc_solved_position, self.ptc_solved_position]},
                            index=names)

    def get_generator_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the generators results
        :return: DataFrame
        """
        return pd.DataFrame(data={'P': self.gen_p, 'Q': self.gen_q}, index=self.gen_names)
