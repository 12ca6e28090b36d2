# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from __future__ import annotations

from typing import List, Union
import numpy as np
from scipy.sparse import csc_matrix

from FlowCalEngine.basic_structures import Logger, IntVec, BoolVec
import FlowCalEngine.Topology.topology as tp
from FlowCalEngine.DataStructures.per_unit import PerUnitContext
from FlowCalEngine.DataStructures.bus_data import BusData
from FlowCalEngine.DataStructures.branch_data import BranchData
from FlowCalEngine.DataStructures.generator_data import GeneratorData
from FlowCalEngine.DataStructures.load_data import LoadData
from FlowCalEngine.DataStructures.shunt_data import ShuntData
from FlowCalEngine.DataStructures.tap_changer_data import RatioTapData, PhaseTapData
from FlowCalEngine.DataStructures.area_data import AreaData


class NumericalCircuit:
    """
    Class storing the calculation information of the devices
    """

    def __init__(self,
                 nbus: int,
                 nbr: int,
                 ngen: int,
                 nload: int,
                 nshunt: int,
                 nrtc: int,
                 nptc: int,
                 narea: int,
                 nboundary: int,
                 Sbase: float = 100.0):
        """
        Numerical circuit
        :param nbus: Number of buses
        :param nbr: Number of branches
        :param ngen: Number of generators
        :param nload: Number of loads
        :param nshunt: Number of shunts
        :param nrtc: Number of ratio tap changers
        :param nptc: Number of phase tap changers
        :param narea: Number of areas
        :param nboundary: Number of area boundary terminals
        :param Sbase: Base power (MVA)
        """
        self.pu = PerUnitContext(Sbase=Sbase)

        self.bus_data: BusData = BusData(nbus=nbus)
        self.branch_data: BranchData = BranchData(nelm=nbr, nbus=nbus)
        self.generator_data: GeneratorData = GeneratorData(nelm=ngen, nbus=nbus)
        self.load_data: LoadData = LoadData(nelm=nload, nbus=nbus)
        self.shunt_data: ShuntData = ShuntData(nelm=nshunt, nbus=nbus)
        self.rtc_data: RatioTapData = RatioTapData(nelm=nrtc)
        self.ptc_data: PhaseTapData = PhaseTapData(nelm=nptc)
        self.area_data: AreaData = AreaData(nelm=narea, nboundary=nboundary)

    @property
    def Sbase(self) -> float:
        return self.pu.Sbase

    @property
    def nbus(self) -> int:
        return self.bus_data.nbus

    @property
    def nbr(self) -> int:
        return self.branch_data.nelm

    @property
    def ngen(self) -> int:
        return self.generator_data.nelm

    @property
    def nload(self) -> int:
        return self.load_data.nelm

    @property
    def nshunt(self) -> int:
        return self.shunt_data.nelm

    @property
    def nrtc(self) -> int:
        return self.rtc_data.nelm

    @property
    def nptc(self) -> int:
        return self.ptc_data.nelm

    @property
    def narea(self) -> int:
        return self.area_data.nelm

    def copy(self) -> "NumericalCircuit":
        """
        Deep copy of the numerical circuit
        :return: NumericalCircuit
        """
        return self.get_island(bus_idx=np.arange(self.nbus))

    def compute_adjacency_matrix(self) -> csc_matrix:
        """
        Compute the bus adjacency matrix through the branches closed at both sides
        :return: csc_matrix
        """
        return tp.get_adjacency_matrix(C_branch_bus=self.branch_data.get_C_branch_bus(),
                                       bus_active=self.bus_data.active)

    def get_bridges(self) -> BoolVec:
        """
        Branches whose opening would split this circuit
        :return: BoolVec (nbr)
        """
        return tp.get_bridges(F=self.branch_data.F, T=self.branch_data.T, closed=self.branch_data.closed)

    def get_bus_branch_count(self) -> IntVec:
        return tp.get_bus_branch_count(nbus=self.nbus,
                                       F=self.branch_data.F,
                                       T=self.branch_data.T,
                                       closed=self.branch_data.closed)

    def get_island(self, bus_idx: IntVec, logger: Union[Logger, None] = None) -> "NumericalCircuit":
        """
        Get the island corresponding to the given buses
        :param bus_idx: array of bus indices
        :param logger: Logger
        :return: NumericalCircuit
        """
        if logger is None:
            logger = Logger()

        # this is an array to map the old indices to the new indices
        # it is used by the structures to re-map the bus indices
        bus_map = np.full(self.nbus, -1, dtype=int)
        bus_map[bus_idx] = np.arange(len(bus_idx))

        br_idx = tp.get_island_branch_indices(bus_map=bus_map,
                                              connected1=self.branch_data.connected1,
                                              connected2=self.branch_data.connected2,
                                              F=self.branch_data.F,
                                              T=self.branch_data.T)

        gen_idx = tp.get_island_monopole_indices(bus_map=bus_map,
                                                 elm_active=self.generator_data.active,
                                                 elm_bus=self.generator_data.bus_idx)

        load_idx = tp.get_island_monopole_indices(bus_map=bus_map,
                                                  elm_active=self.load_data.active,
                                                  elm_bus=self.load_data.bus_idx)

        shunt_idx = tp.get_island_monopole_indices(bus_map=bus_map,
                                                   elm_active=self.shunt_data.active,
                                                   elm_bus=self.shunt_data.bus_idx)

        branch_map = np.full(self.nbr, -1, dtype=int)
        branch_map[br_idx] = np.arange(len(br_idx))

        rtc_idx = np.where(branch_map[self.rtc_data.branch_idx] > -1)[0] if self.nrtc else np.zeros(0, dtype=int)
        ptc_idx = np.where(branch_map[self.ptc_data.branch_idx] > -1)[0] if self.nptc else np.zeros(0, dtype=int)

        nc = NumericalCircuit(nbus=len(bus_idx),
                              nbr=len(br_idx),
                              ngen=len(gen_idx),
                              nload=len(load_idx),
                              nshunt=len(shunt_idx),
                              nrtc=len(rtc_idx),
                              nptc=len(ptc_idx),
                              narea=self.narea,
                              nboundary=self.area_data.nboundary,
                              Sbase=self.Sbase)

        nc.bus_data = self.bus_data.slice(elm_idx=bus_idx)
        nc.branch_data = self.branch_data.slice(elm_idx=br_idx, bus_map=bus_map)
        nc.generator_data = self.generator_data.slice(elm_idx=gen_idx, bus_map=bus_map)
        nc.load_data = self.load_data.slice(elm_idx=load_idx, bus_map=bus_map)
        nc.shunt_data = self.shunt_data.slice(elm_idx=shunt_idx, bus_map=bus_map)
        nc.rtc_data = self.rtc_data.slice(elm_idx=rtc_idx, branch_map=branch_map, bus_map=bus_map)
        nc.ptc_data = self.ptc_data.slice(elm_idx=ptc_idx, branch_map=branch_map, bus_map=bus_map)
        nc.area_data = self.area_data.slice(branch_map=branch_map, bus_areas=nc.bus_data.areas)

        # re-map the tap changer pointers of the branches
        rtc_map = np.full(self.nrtc, -1, dtype=int)
        rtc_map[rtc_idx] = np.arange(len(rtc_idx))
        ptc_map = np.full(self.nptc, -1, dtype=int)
        ptc_map[ptc_idx] = np.arange(len(ptc_idx))
        # the trailing -1 maps the branches without tap changer
        nc.branch_data.rtc_idx = np.r_[rtc_map, -1][nc.branch_data.rtc_idx]
        nc.branch_data.ptc_idx = np.r_[ptc_map, -1][nc.branch_data.ptc_idx]

        for a in np.where(nc.area_data.fragmented)[0]:
            logger.add_warning("Area boundaries split between islands, interchange not controlled",
                               device=nc.area_data.names[a])

        return nc

    def split_into_islands(self,
                           ignore_single_node_islands: bool = False,
                           logger: Union[Logger, None] = None) -> List["NumericalCircuit"]:
        """
        Split circuit into islands
        :param ignore_single_node_islands: ignore islands composed of only one bus
        :param logger: Logger
        :return: List[NumericCircuit]
        """
        if logger is None:
            logger = Logger()

        # find the matching islands
        adj = self.compute_adjacency_matrix()

        idx_islands = tp.find_islands(adj=adj, active=self.bus_data.active)

        circuit_islands = list()  # type: List[NumericalCircuit]

        for island_bus_indices in idx_islands:
            if ignore_single_node_islands and len(island_bus_indices) <= 1:
                continue

            island = self.get_island(island_bus_indices, logger=logger)
            circuit_islands.append(island)

        return circuit_islands
