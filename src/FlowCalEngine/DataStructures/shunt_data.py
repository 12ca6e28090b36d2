# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List
import numpy as np
from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, StrVec


class ShuntData:
    """
    ShuntData (per unit)
    The consumed power of a shunt is (g - jb)·v²
    """

    def __init__(self, nelm: int, nbus: int):
        """
        Shunt data arrays
        :param nelm: number of shunts
        :param nbus: number of buses
        """
        self.nelm: int = nelm
        self.nbus: int = nbus

        self.names: StrVec = np.empty(nelm, dtype=object)
        self.idtag: StrVec = np.empty(nelm, dtype=object)

        self.active: BoolVec = np.zeros(nelm, dtype=bool)
        self.bus_idx: IntVec = np.zeros(nelm, dtype=int)

        self.g: Vec = np.zeros(nelm, dtype=float)

        # susceptance of the connected sections
        self.b: Vec = np.zeros(nelm, dtype=float)

        # susceptance of every number of connected sections (ragged)
        self.b_steps: List[Vec] = [np.zeros(1, dtype=float) for _ in range(nelm)]

        self.section: IntVec = np.zeros(nelm, dtype=int)
        self.initial_section: IntVec = np.zeros(nelm, dtype=int)

        self.voltage_control: BoolVec = np.zeros(nelm, dtype=bool)
        self.regulated_bus: IntVec = np.full(nelm, -1, dtype=int)
        self.v_target: Vec = np.ones(nelm, dtype=float)
        self.v_deadband: Vec = np.zeros(nelm, dtype=float)

        self.original_idx: IntVec = np.zeros(nelm, dtype=int)

    def slice(self, elm_idx: IntVec, bus_map: IntVec) -> "ShuntData":
        """
        Slice shunt data by given indices
        :param elm_idx: array of element indices
        :param bus_map: map from the old bus index to the new bus index (-1 if not in the island)
        :return: new ShuntData instance
        """

        data = ShuntData(nelm=len(elm_idx), nbus=int(np.sum(bus_map > -1)))

        data.names = self.names[elm_idx]
        data.idtag = self.idtag[elm_idx]

        data.active = self.active[elm_idx]
        data.g = self.g[elm_idx]
        data.b = self.b[elm_idx]
        data.b_steps = [self.b_steps[k].copy() for k in elm_idx]
        data.section = self.section[elm_idx]
        data.initial_section = self.initial_section[elm_idx]

        data.voltage_control = self.voltage_control[elm_idx]
        data.v_target = self.v_target[elm_idx]
        data.v_deadband = self.v_deadband[elm_idx]

        data.bus_idx = bus_map[self.bus_idx[elm_idx]]
        reg = self.regulated_bus[elm_idx]
        data.regulated_bus = np.where(reg > -1, bus_map[reg], -1)

        data.original_idx = self.original_idx[elm_idx]

        return data

    def copy(self) -> "ShuntData":
        """
        Get a deep copy of this object
        :return: new ShuntData instance
        """
        data = self.slice(elm_idx=np.arange(self.nelm), bus_map=np.arange(self.nbus))
        return data

    def size(self) -> int:
        """
        Get size of the structure
        :return:
        """
        return self.nelm

    def set_section(self, k: int, section: int) -> None:
        """
        Connect a number of sections
        :param k: shunt index
        :param section: number of sections
        """
        self.section[k] = section
        self.b[k] = self.b_steps[k][section]

    def get_b_min(self, k: int) -> float:
        return float(np.min(self.b_steps[k]))

    def get_b_max(self, k: int) -> float:
        return float(np.max(self.b_steps[k]))
