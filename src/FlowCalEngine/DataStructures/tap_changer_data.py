# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List
import numpy as np
from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, StrVec, ObjVec
from FlowCalEngine.enumerations import PhaseRegulationMode
from FlowCalEngine.DataStructures.branch_data import BranchData


class TapChangerData:
    """
    Common arrays of the ratio and phase tap changers.
    The steps are stored in per unit, ready to be applied on the branch pi model.
    """

    def __init__(self, nelm: int):
        """

        :param nelm: number of tap changers
        """
        self.nelm: int = nelm

        self.names: StrVec = np.empty(nelm, dtype=object)

        # branch that carries the tap changer
        self.branch_idx: IntVec = np.zeros(nelm, dtype=int)

        # position in use
        self.position: IntVec = np.zeros(nelm, dtype=int)

        # position requested by the user
        self.initial_position: IntVec = np.zeros(nelm, dtype=int)

        # per step values (ragged)
        self.r1_steps: List[Vec] = [np.ones(1) for _ in range(nelm)]
        self.a1_steps: List[Vec] = [np.zeros(1) for _ in range(nelm)]
        self.r_factor: List[Vec] = [np.ones(1) for _ in range(nelm)]
        self.x_factor: List[Vec] = [np.ones(1) for _ in range(nelm)]
        self.g_factor: List[Vec] = [np.ones(1) for _ in range(nelm)]
        self.b_factor: List[Vec] = [np.ones(1) for _ in range(nelm)]

        self.regulating: BoolVec = np.zeros(nelm, dtype=bool)

        # full deadband of the regulated quantity (p.u.)
        self.deadband: Vec = np.zeros(nelm, dtype=float)

        self.original_idx: IntVec = np.zeros(nelm, dtype=int)

    def size(self) -> int:
        return self.nelm

    def _slice_into(self, data: "TapChangerData", elm_idx: IntVec, branch_map: IntVec) -> None:
        """
        Fill the common arrays of a sliced structure
        :param data: TapChangerData to fill
        :param elm_idx: tap changer indices
        :param branch_map: map from the old branch index to the new branch index
        """
        data.names = self.names[elm_idx]
        data.branch_idx = branch_map[self.branch_idx[elm_idx]]
        data.position = self.position[elm_idx]
        data.initial_position = self.initial_position[elm_idx]
        data.r1_steps = [self.r1_steps[k] for k in elm_idx]
        data.a1_steps = [self.a1_steps[k] for k in elm_idx]
        data.r_factor = [self.r_factor[k] for k in elm_idx]
        data.x_factor = [self.x_factor[k] for k in elm_idx]
        data.g_factor = [self.g_factor[k] for k in elm_idx]
        data.b_factor = [self.b_factor[k] for k in elm_idx]
        data.regulating = self.regulating[elm_idx]
        data.deadband = self.deadband[elm_idx]
        data.original_idx = self.original_idx[elm_idx]

    def high_position(self, k: int) -> int:
        return len(self.r1_steps[k]) - 1

    def apply_position(self, k: int, position: int, branch_data: BranchData) -> None:
        """
        Move a tap changer and update the pi model of its branch
        :param k: tap changer index
        :param position: new position
        :param branch_data: BranchData to modify
        """
        self.position[k] = position
        br = self.branch_idx[k]
        branch_data.r1[br] = self.r1_steps[k][position]
        branch_data.a1[br] = self.a1_steps[k][position]
        branch_data.R[br] = branch_data.R0[br] * self.r_factor[k][position]
        branch_data.X[br] = branch_data.X0[br] * self.x_factor[k][position]
        branch_data.G1[br] = branch_data.G10[br] * self.g_factor[k][position]
        branch_data.B1[br] = branch_data.B10[br] * self.b_factor[k][position]
        branch_data.G2[br] = branch_data.G20[br] * self.g_factor[k][position]
        branch_data.B2[br] = branch_data.B20[br] * self.b_factor[k][position]


class RatioTapData(TapChangerData):
    """
    Ratio tap changers
    """

    def __init__(self, nelm: int):
        """

        :param nelm: number of ratio tap changers
        """
        TapChangerData.__init__(self, nelm=nelm)

        self.voltage_control: BoolVec = np.zeros(nelm, dtype=bool)
        self.reactive_control: BoolVec = np.zeros(nelm, dtype=bool)

        self.regulated_bus: IntVec = np.full(nelm, -1, dtype=int)
        self.v_target: Vec = np.ones(nelm, dtype=float)

        # reactive power target at the regulated side
        self.q_target: Vec = np.zeros(nelm, dtype=float)
        self.regulated_side: IntVec = np.full(nelm, 2, dtype=int)

    def slice(self, elm_idx: IntVec, branch_map: IntVec, bus_map: IntVec) -> "RatioTapData":
        """
        Slice ratio tap changer data by given indices
        :param elm_idx: tap changer indices
        :param branch_map: map from the old branch index to the new branch index
        :param bus_map: map from the old bus index to the new bus index
        :return: new RatioTapData instance
        """
        data = RatioTapData(nelm=len(elm_idx))
        self._slice_into(data, elm_idx=elm_idx, branch_map=branch_map)

        data.voltage_control = self.voltage_control[elm_idx]
        data.reactive_control = self.reactive_control[elm_idx]
        data.v_target = self.v_target[elm_idx]
        data.q_target = self.q_target[elm_idx]
        data.regulated_side = self.regulated_side[elm_idx]

        reg = self.regulated_bus[elm_idx]
        data.regulated_bus = np.where(reg > -1, bus_map[reg], -1)

        return data

    def copy(self) -> "RatioTapData":
        return self.slice(elm_idx=np.arange(self.nelm),
                          branch_map=np.arange(int(np.max(self.branch_idx, initial=-1)) + 1),
                          bus_map=np.arange(int(np.max(self.regulated_bus, initial=-1)) + 1))


class PhaseTapData(TapChangerData):
    """
    Phase tap changers
    """

    def __init__(self, nelm: int):
        """

        :param nelm: number of phase tap changers
        """
        TapChangerData.__init__(self, nelm=nelm)

        self.mode: ObjVec = np.full(nelm, PhaseRegulationMode.FIXED_TAP, dtype=object)

        # active power target (p.u.) or current limit (p.u.)
        self.target: Vec = np.zeros(nelm, dtype=float)

        # branch whose terminal is regulated, -1 if lost
        self.regulated_branch: IntVec = np.full(nelm, -1, dtype=int)
        self.regulated_side: IntVec = np.ones(nelm, dtype=int)

    def slice(self, elm_idx: IntVec, branch_map: IntVec, bus_map: IntVec) -> "PhaseTapData":
        """
        Slice phase tap changer data by given indices
        :param elm_idx: tap changer indices
        :param branch_map: map from the old branch index to the new branch index
        :param bus_map: map from the old bus index to the new bus index (unused, kept for symmetry)
        :return: new PhaseTapData instance
        """
        data = PhaseTapData(nelm=len(elm_idx))
        self._slice_into(data, elm_idx=elm_idx, branch_map=branch_map)

        data.mode = self.mode[elm_idx]
        data.target = self.target[elm_idx]
        data.regulated_side = self.regulated_side[elm_idx]

        reg = self.regulated_branch[elm_idx]
        data.regulated_branch = np.where(reg > -1, branch_map[reg], -1)

        return data

    def copy(self) -> "PhaseTapData":
        n_br = int(max(np.max(self.branch_idx, initial=-1), np.max(self.regulated_branch, initial=-1))) + 1
        return self.slice(elm_idx=np.arange(self.nelm),
                          branch_map=np.arange(n_br),
                          bus_map=np.zeros(0, dtype=int))

    def is_regulating(self, k: int) -> bool:
        """
        Is the phase tap changer regulating something?
        :param k: index
        :return: bool
        """
        return bool(self.regulating[k]) and self.mode[k] != PhaseRegulationMode.FIXED_TAP
