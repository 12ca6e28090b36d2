# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from scipy.sparse import csc_matrix, coo_matrix
from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, StrVec, CxVec


class BranchData:
    """
    BranchData
    Pi model of every branch, in per unit:
    the side 1 voltage is multiplied by r1·exp(j·a1) before entering the series admittance.
    """

    def __init__(self, nelm: int, nbus: int):
        """
        Branch data arrays
        :param nelm: number of branches
        :param nbus: number of buses
        """
        self.nelm: int = nelm
        self.nbus: int = nbus

        self.names: StrVec = np.empty(nelm, dtype=object)
        self.idtag: StrVec = np.empty(nelm, dtype=object)

        self.F: IntVec = np.zeros(nelm, dtype=int)
        self.T: IntVec = np.zeros(nelm, dtype=int)

        self.connected1: BoolVec = np.ones(nelm, dtype=bool)
        self.connected2: BoolVec = np.ones(nelm, dtype=bool)

        self.is_transformer: BoolVec = np.zeros(nelm, dtype=bool)

        # values of the nominal step, the tap steps modify them in %
        self.R0: Vec = np.zeros(nelm, dtype=float)
        self.X0: Vec = np.zeros(nelm, dtype=float)
        self.G10: Vec = np.zeros(nelm, dtype=float)
        self.B10: Vec = np.zeros(nelm, dtype=float)
        self.G20: Vec = np.zeros(nelm, dtype=float)
        self.B20: Vec = np.zeros(nelm, dtype=float)

        # values in use
        self.R: Vec = np.zeros(nelm, dtype=float)
        self.X: Vec = np.zeros(nelm, dtype=float)
        self.G1: Vec = np.zeros(nelm, dtype=float)
        self.B1: Vec = np.zeros(nelm, dtype=float)
        self.G2: Vec = np.zeros(nelm, dtype=float)
        self.B2: Vec = np.zeros(nelm, dtype=float)
        self.r1: Vec = np.ones(nelm, dtype=float)
        self.a1: Vec = np.zeros(nelm, dtype=float)

        # ratio of the per unit bases (vnom2 / vnom1), r1 = rated ratio · step rho / base ratio
        self.base_ratio: Vec = np.ones(nelm, dtype=float)

        # index of the tap changer of each branch, -1 if none
        self.rtc_idx: IntVec = np.full(nelm, -1, dtype=int)
        self.ptc_idx: IntVec = np.full(nelm, -1, dtype=int)

        self.original_idx: IntVec = np.zeros(nelm, dtype=int)

    def slice(self, elm_idx: IntVec, bus_map: IntVec) -> "BranchData":
        """
        Slice branch data by given indices
        :param elm_idx: array of branch indices
        :param bus_map: map from the old bus index to the new bus index (-1 if not in the island)
        :return: new BranchData instance
        """
        data = BranchData(nelm=len(elm_idx), nbus=int(np.sum(bus_map > -1)))

        data.names = self.names[elm_idx]
        data.idtag = self.idtag[elm_idx]

        data.connected1 = self.connected1[elm_idx]
        data.connected2 = self.connected2[elm_idx]
        data.is_transformer = self.is_transformer[elm_idx]

        data.R0 = self.R0[elm_idx]
        data.X0 = self.X0[elm_idx]
        data.G10 = self.G10[elm_idx]
        data.B10 = self.B10[elm_idx]
        data.G20 = self.G20[elm_idx]
        data.B20 = self.B20[elm_idx]

        data.R = self.R[elm_idx]
        data.X = self.X[elm_idx]
        data.G1 = self.G1[elm_idx]
        data.B1 = self.B1[elm_idx]
        data.G2 = self.G2[elm_idx]
        data.B2 = self.B2[elm_idx]
        data.r1 = self.r1[elm_idx]
        data.a1 = self.a1[elm_idx]
        data.base_ratio = self.base_ratio[elm_idx]

        data.rtc_idx = self.rtc_idx[elm_idx]
        data.ptc_idx = self.ptc_idx[elm_idx]

        # Remapping of the buses, the open side points to the connected one
        f = bus_map[self.F[elm_idx]]
        t = bus_map[self.T[elm_idx]]
        data.F = np.where(data.connected1, f, t)
        data.T = np.where(data.connected2, t, f)

        data.original_idx = self.original_idx[elm_idx]

        return data

    def copy(self) -> "BranchData":
        """
        Get a deep copy of this object
        :return: new BranchData instance
        """
        data = BranchData(nelm=self.nelm, nbus=self.nbus)

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

    @property
    def closed(self) -> BoolVec:
        """
        Branches connected at both sides
        """
        return self.connected1 & self.connected2

    @property
    def active(self) -> BoolVec:
        """
        Branches connected at one side at least
        """
        return self.connected1 | self.connected2

    def get_series_admittance(self) -> CxVec:
        """
        Series admittance ys = 1 / (R + jX)
        :return: CxVec
        """
        return 1.0 / (self.R + 1j * self.X)

    def get_C_branch_bus(self) -> csc_matrix:
        """
        Branch-bus incidence of the branches connected at both sides (+1 at F, +1 at T)
        :return: csc_matrix (nelm, nbus)
        """
        idx = np.where(self.closed)[0]
        i = np.r_[idx, idx]
        j = np.r_[self.F[idx], self.T[idx]]
        data = np.ones(len(i), dtype=int)
        return coo_matrix((data, (i, j)), shape=(self.nelm, self.nbus), dtype=int).tocsc()

    def get_connected_incidences(self):
        """
        Incidence matrices of the connected terminals
        :return: Cf (nelm, nbus), Ct (nelm, nbus) as csc_matrix
        """
        idx = np.arange(self.nelm)
        Cf = coo_matrix((self.connected1.astype(float), (idx, self.F)), shape=(self.nelm, self.nbus)).tocsc()
        Ct = coo_matrix((self.connected2.astype(float), (idx, self.T)), shape=(self.nelm, self.nbus)).tocsc()
        return Cf, Ct
