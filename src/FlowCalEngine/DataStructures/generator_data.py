# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, StrVec


class GeneratorData:
    """
    GeneratorData (per unit, generation convention)
    """

    def __init__(self, nelm: int, nbus: int):
        """
        Generator data arrays
        :param nelm: number of generator
        :param nbus: number of buses
        """
        self.nelm: int = nelm
        self.nbus: int = nbus
        self.names: StrVec = np.empty(nelm, dtype=object)
        self.idtag: StrVec = np.empty(nelm, dtype=object)

        self.active: BoolVec = np.zeros(nelm, dtype=bool)
        self.bus_idx: IntVec = np.zeros(nelm, dtype=int)

        # active power set point, modified by the slack distribution
        self.p: Vec = np.zeros(nelm, dtype=float)

        # active power set point given by the user
        self.p0: Vec = np.zeros(nelm, dtype=float)

        self.q: Vec = np.zeros(nelm, dtype=float)

        # voltage set point in p.u. of the regulated bus nominal voltage
        self.v: Vec = np.ones(nelm, dtype=float)
        self.voltage_control: BoolVec = np.zeros(nelm, dtype=bool)
        self.regulated_bus: IntVec = np.full(nelm, -1, dtype=int)
        self.slope: Vec = np.zeros(nelm, dtype=float)

        # standby voltage regulation, values in p.u. of the regulated bus nominal voltage
        self.standby: BoolVec = np.zeros(nelm, dtype=bool)
        self.low_v_threshold: Vec = np.zeros(nelm, dtype=float)
        self.high_v_threshold: Vec = np.zeros(nelm, dtype=float)
        self.low_target_v: Vec = np.zeros(nelm, dtype=float)
        self.high_target_v: Vec = np.zeros(nelm, dtype=float)

        self.pmin: Vec = np.zeros(nelm, dtype=float)
        self.pmax: Vec = np.zeros(nelm, dtype=float)
        self.qmin: Vec = np.zeros(nelm, dtype=float)
        self.qmax: Vec = np.zeros(nelm, dtype=float)

        self.droop: Vec = np.zeros(nelm, dtype=float)
        self.participation_factor: Vec = np.zeros(nelm, dtype=float)
        self.participating: BoolVec = np.zeros(nelm, dtype=bool)

        self.original_idx: IntVec = np.zeros(nelm, dtype=int)

    def slice(self, elm_idx: IntVec, bus_map: IntVec) -> "GeneratorData":
        """
        Slice generator data by given indices
        :param elm_idx: array of element indices
        :param bus_map: map from the old bus index to the new bus index (-1 if not in the island)
        :return: new GeneratorData instance
        """

        data = GeneratorData(nelm=len(elm_idx), nbus=int(np.sum(bus_map > -1)))

        data.names = self.names[elm_idx]
        data.idtag = self.idtag[elm_idx]

        data.active = self.active[elm_idx]
        data.p = self.p[elm_idx]
        data.p0 = self.p0[elm_idx]
        data.q = self.q[elm_idx]
        data.v = self.v[elm_idx]
        data.voltage_control = self.voltage_control[elm_idx]
        data.slope = self.slope[elm_idx]
        data.standby = self.standby[elm_idx]
        data.low_v_threshold = self.low_v_threshold[elm_idx]
        data.high_v_threshold = self.high_v_threshold[elm_idx]
        data.low_target_v = self.low_target_v[elm_idx]
        data.high_target_v = self.high_target_v[elm_idx]

        data.pmin = self.pmin[elm_idx]
        data.pmax = self.pmax[elm_idx]
        data.qmin = self.qmin[elm_idx]
        data.qmax = self.qmax[elm_idx]

        data.droop = self.droop[elm_idx]
        data.participation_factor = self.participation_factor[elm_idx]
        data.participating = self.participating[elm_idx]

        data.bus_idx = bus_map[self.bus_idx[elm_idx]]

        # the regulated bus may fall in another island
        reg = self.regulated_bus[elm_idx]
        data.regulated_bus = np.where(reg > -1, bus_map[reg], -1)

        data.original_idx = self.original_idx[elm_idx]

        return data

    def copy(self) -> "GeneratorData":
        """
        Get a deep copy of this object
        :return: new GeneratorData instance
        """
        data = GeneratorData(nelm=self.nelm, nbus=self.nbus)

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
        """
        Active power set point summed per bus
        :return: Vec (nbus)
        """
        return np.bincount(self.bus_idx, weights=self.p * self.active, minlength=self.nbus)
