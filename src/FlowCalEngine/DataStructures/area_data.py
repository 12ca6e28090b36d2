# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, StrVec


class AreaData:
    """
    AreaData
    The bus membership is stored in BusData.areas
    """

    def __init__(self, nelm: int, nboundary: int):
        """
        Area data arrays
        :param nelm: number of areas
        :param nboundary: number of boundary terminals of all the areas
        """
        self.nelm: int = nelm
        self.names: StrVec = np.empty(nelm, dtype=object)
        self.idtag: StrVec = np.empty(nelm, dtype=object)

        # scheduled export (p.u.), NaN when the interchange is not controlled
        self.interchange_target: Vec = np.full(nelm, np.nan, dtype=float)

        # number of buses of the area in the complete grid
        self.nbus_total: IntVec = np.zeros(nelm, dtype=int)

        # boundary terminals
        self.nboundary: int = nboundary
        self.boundary_area: IntVec = np.zeros(nboundary, dtype=int)
        self.boundary_branch: IntVec = np.zeros(nboundary, dtype=int)
        self.boundary_side: IntVec = np.ones(nboundary, dtype=int)

        # areas whose buses or boundaries fall in several islands
        self.fragmented: BoolVec = np.zeros(nelm, dtype=bool)

        self.original_idx: IntVec = np.zeros(nelm, dtype=int)

    def size(self) -> int:
        return self.nelm

    def slice(self, branch_map: IntVec, bus_areas: IntVec) -> "AreaData":
        """
        Get the areas as seen from an island.
        All the areas are kept (so that the bus area indices stay valid), the
        boundaries outside the island get -1 and the incomplete areas are flagged fragmented.
        :param branch_map: map from the old branch index to the new branch index (-1 if not in the island)
        :param bus_areas: area index of the island buses
        :return: new AreaData instance
        """
        data = AreaData(nelm=self.nelm, nboundary=self.nboundary)
        data.names = self.names.copy()
        data.idtag = self.idtag.copy()
        data.interchange_target = self.interchange_target.copy()
        data.nbus_total = self.nbus_total.copy()
        data.boundary_area = self.boundary_area.copy()
        data.boundary_side = self.boundary_side.copy()
        data.boundary_branch = np.where(self.boundary_branch > -1, branch_map[self.boundary_branch], -1)
        data.original_idx = self.original_idx.copy()

        nbus_island = np.bincount(bus_areas[bus_areas > -1], minlength=self.nelm)
        for a in range(self.nelm):
            if nbus_island[a] > 0:
                bd = data.boundary_area == a
                lost_boundaries = np.any(data.boundary_branch[bd] == -1)
                data.fragmented[a] = lost_boundaries or nbus_island[a] < self.nbus_total[a]

        return data

    def get_buses_count(self, bus_areas: IntVec) -> IntVec:
        """
        Number of buses of each area among the given ones
        :param bus_areas: area index per bus
        :return: IntVec (nelm)
        """
        return np.bincount(bus_areas[bus_areas > -1], minlength=self.nelm)

    def get_boundaries(self, a: int):
        """
        Get the boundaries of an area
        :param a: area index
        :return: branch indices, sides
        """
        bd = self.boundary_area == a
        return self.boundary_branch[bd], self.boundary_side[bd]
