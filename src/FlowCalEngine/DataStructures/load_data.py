# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, StrVec


class LoadData:
    """
    LoadData (per unit, consumption convention)
    """

    def __init__(self, nelm: int, nbus: int):
        """
        Load data arrays
        :param nelm: number of loads
        :param nbus: number of buses
        """
        self.nelm: int = nelm
        self.nbus: int = nbus

        self.names: StrVec = np.empty(nelm, dtype=object)
        self.idtag: StrVec = np.empty(nelm, dtype=object)

        self.active: BoolVec = np.zeros(nelm, dtype=bool)
        self.bus_idx: IntVec = np.zeros(nelm, dtype=int)

        # active power, modified by the slack distribution when balancing on the loads
        self.p: Vec = np.zeros(nelm, dtype=float)
        self.p0: Vec = np.zeros(nelm, dtype=float)
        self.q: Vec = np.zeros(nelm, dtype=float)

        self.participating: BoolVec = np.zeros(nelm, dtype=bool)

        self.original_idx: IntVec = np.zeros(nelm, dtype=int)

    def slice(self, elm_idx: IntVec, bus_map: IntVec) -> "LoadData":
        """
        Slice load data by given indices
        :param elm_idx: array of element indices
        :param bus_map: map from the old bus index to the new bus index (-1 if not in the island)
        :return: new LoadData instance
        """

        data = LoadData(nelm=len(elm_idx), nbus=int(np.sum(bus_map > -1)))

        data.names = self.names[elm_idx]
        data.idtag = self.idtag[elm_idx]

        data.active = self.active[elm_idx]
        data.p = self.p[elm_idx]
        data.p0 = self.p0[elm_idx]
        data.q = self.q[elm_idx]
        data.participating = self.participating[elm_idx]

        data.bus_idx = bus_map[self.bus_idx[elm_idx]]

        data.original_idx = self.original_idx[elm_idx]

        return data

    def copy(self) -> "LoadData":
        """
        Get a deep copy of this object
        :return: new LoadData instance
        """
        data = LoadData(nelm=self.nelm, nbus=self.nbus)

        for key, val in self.__dict__.items():
            if isinstance(val, np.ndarray):
                setattr(data, key, val.copy())

        return data

    def size(self) -> int:
        """
        Get size of the structure
        :return:
        """
        return self.nelm

    def get_p_per_bus(self) -> Vec:
        return np.bincount(self.bus_idx, weights=self.p * self.active, minlength=self.nbus)

    def get_q_per_bus(self) -> Vec:
        return np.bincount(self.bus_idx, weights=self.q * self.active, minlength=self.nbus)
