# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, StrVec


class BusData:
    """
    BusData
    """

    def __init__(self, nbus: int):
        """
        Bus data arrays
        :param nbus: number of buses
        """
        self.nbus: int = nbus
        self.idtag: StrVec = np.empty(nbus, dtype=object)
        self.names: StrVec = np.empty(nbus, dtype=object)
        self.active: BoolVec = np.ones(nbus, dtype=bool)
        self.Vnom: Vec = np.ones(nbus, dtype=float)

        # stored state (p.u. and radians), NaN when unknown
        self.v0: Vec = np.full(nbus, np.nan, dtype=float)
        self.angle0: Vec = np.full(nbus, np.nan, dtype=float)

        # index of the area of each bus, -1 if none
        self.areas: IntVec = np.full(nbus, -1, dtype=int)

        self.original_idx: IntVec = np.zeros(nbus, dtype=int)

    def slice(self, elm_idx: IntVec) -> "BusData":
        """
        Slice this data structure
        :param elm_idx: array of bus indices
        :return: instance of BusData
        """

        data = BusData(nbus=len(elm_idx))

        data.names = self.names[elm_idx]
        data.idtag = self.idtag[elm_idx]
        data.active = self.active[elm_idx]
        data.Vnom = self.Vnom[elm_idx]
        data.v0 = self.v0[elm_idx]
        data.angle0 = self.angle0[elm_idx]
        data.areas = self.areas[elm_idx]

        data.original_idx = self.original_idx[elm_idx]

        return data

    def size(self) -> int:
        """
        Get size of the structure
        :return:
        """

        return self.nbus

    def copy(self) -> "BusData":
        """
        Deep copy of this structure
        :return: instance of BusData
        """

        data = BusData(nbus=self.nbus)

        data.names = self.names.copy()
        data.idtag = self.idtag.copy()
        data.active = self.active.copy()
        data.Vnom = self.Vnom.copy()
        data.v0 = self.v0.copy()
        data.angle0 = self.angle0.copy()
        data.areas = self.areas.copy()

        data.original_idx = self.original_idx.copy()

        return data

    def has_stored_state(self) -> BoolVec:
        """
        Mask of the buses that store a voltage from a former solve
        :return: BoolVec
        """
        return np.isfinite(self.v0) & np.isfinite(self.angle0)
