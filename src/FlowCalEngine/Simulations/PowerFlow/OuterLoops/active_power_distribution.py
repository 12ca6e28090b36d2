# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple, Union
from dataclasses import dataclass, field
import numpy as np

from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, Logger
from FlowCalEngine.enumerations import BalanceType
from FlowCalEngine.DataStructures.numerical_circuit import NumericalCircuit

# active power residue (p.u.), 1e-3 MW on a 100 MVA base
P_RESIDUE_EPS = 1e-5


@dataclass
class DistributionResult:
    """
    Outcome of one active power distribution
    """
    iteration: int
    remaining: float  # mismatch left undistributed (p.u.)
    moved: bool  # did the injections change compared to the state before the distribution?
    previous: List[Tuple[str, int, float]] = field(default_factory=list)  # (family, index, p before the run)


def get_generation_factors(balance_type: BalanceType, p: Vec, pmin: Vec, pmax: Vec, droop: Vec,
                           participation_factor: Vec, mismatch: float) -> Vec:
    """
    Participation key of the generators, zero for the generators that do not participate
    :param balance_type: BalanceType
    :param p: active power (p.u.)
    :param pmin: minimum active power (p.u.)
    :param pmax: maximum active power (p.u.)
    :param droop: droop
    :param participation_factor: explicit participation factors
    :param mismatch: mismatch to distribute, its sign matters for the remaining margin key
    :return: Vec
    """
    if balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX:
        with np.errstate(divide='ignore', invalid='ignore'):
            return np.where(droop != 0.0, pmax / np.where(droop != 0.0, droop, 1.0), 0.0)

    elif balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_P:
        return np.abs(p)

    elif balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_PARTICIPATION_FACTOR:
        return np.where(participation_factor > 0.0, participation_factor, 0.0)

    elif balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN:
        if mismatch > 0:
            return np.maximum(0.0, pmax - p)
        else:
            return np.maximum(0.0, p - pmin)

    else:
        raise ValueError(f"{balance_type} is not a generation balance type")


class ActivePowerDistribution:
    """
    Shares an active power mismatch among the participating generators (or loads).

    Every run starts from the initial set points of the participants, so the mismatch
    handed to the run is the one of the current state and the moves of the former runs
    are given back before distributing again.
    """

    def __init__(self, balance_type: BalanceType, logger: Union[Logger, None] = None):
        """

        :param balance_type: BalanceType
        :param logger: Logger
        """
        self.balance_type = balance_type
        self.logger = logger if logger is not None else Logger()

    @property
    def element_type(self) -> str:
        return 'load' if self.balance_type == BalanceType.PROPORTIONAL_TO_LOAD else 'generation'

    def get_generators(self, nc: NumericalCircuit, bus_mask: BoolVec) -> IntVec:
        """
        Generators that may participate
        :param nc: NumericalCircuit
        :param bus_mask: buses whose injections take part
        :return: generator indices
        """
        gd = nc.generator_data
        ok = gd.active & gd.participating & bus_mask[gd.bus_idx] & (gd.p0 >= gd.pmin) & (gd.p0 <= gd.pmax)
        return np.where(ok)[0]

    def get_loads(self, nc: NumericalCircuit, bus_mask: BoolVec) -> IntVec:
        ld = nc.load_data
        return np.where(ld.active & ld.participating & bus_mask[ld.bus_idx])[0]

    def reset_to_initial_state(self, nc: NumericalCircuit, bus_mask: BoolVec,
                               reference_generator: int = -1) -> Tuple[float, List[Tuple[str, int, float]]]:
        """
        Put the participants back at their initial set point
        :param nc: NumericalCircuit
        :param bus_mask: participating buses
        :param reference_generator: generator that may hold a former remainder, -1 if none
        :return: power given back to the mismatch (p.u.), [(family, index, previous p)]
        """
        gd = nc.generator_data
        ld = nc.load_data
        reverted = 0.0
        previous = list()

        gens = list(self.get_generators(nc, bus_mask)) if self.element_type == 'generation' else list()
        if reference_generator > -1 and reference_generator not in gens:
            gens.append(reference_generator)

        for k in gens:
            reverted += gd.p[k] - gd.p0[k]
            previous.append(('generation', int(k), gd.p[k]))
            gd.p[k] = gd.p0[k]

        if self.element_type == 'load':
            for k in self.get_loads(nc, bus_mask):
                # a load reduction is a generation increase
                reverted -= ld.p[k] - ld.p0[k]
                previous.append(('load', int(k), ld.p[k]))
                ld.p[k] = ld.p0[k]

        return reverted, previous

    @staticmethod
    def has_moved(nc: NumericalCircuit, previous: List[Tuple[str, int, float]]) -> bool:
        """
        Did the injections move significantly since they were captured?
        """
        total = 0.0
        for family, k, p_prev in previous:
            p = nc.generator_data.p[k] if family == 'generation' else nc.load_data.p[k]
            total += abs(p - p_prev)
        return total > P_RESIDUE_EPS * 0.9

    @staticmethod
    def restore(nc: NumericalCircuit, previous: List[Tuple[str, int, float]]) -> None:
        """
        Put the injections back where they were before a distribution
        :param nc: NumericalCircuit
        :param previous: [(family, index, previous p)] captured by the distribution
        """
        for family, k, p_prev in previous:
            if family == 'generation':
                nc.generator_data.p[k] = p_prev
            else:
                nc.load_data.p[k] = p_prev

    def _generation_step(self, nc: NumericalCircuit, elements: List[int], factors: Vec,
                         remaining: float) -> Tuple[float, List[int]]:
        """
        One distribution round over the generators
        :return: power distributed, generators still free
        """
        gd = nc.generator_data
        norm_factors = factors / np.sum(factors)
        done = 0.0
        free = list()
        for k, factor in zip(elements, norm_factors):
            p = gd.p[k]
            p_min = gd.pmin[k]
            p_max = gd.pmax[k]

            # the generation sign is kept
            if p < 0:
                p_max = min(p_max, 0.0)
            else:
                p_min = max(p_min, 0.0)

            new_p = p + remaining * factor
            if remaining > 0 and new_p > p_max:
                new_p = p_max
            elif remaining < 0 and new_p < p_min:
                new_p = p_min
            else:
                free.append(k)

            if new_p != p:
                gd.p[k] = new_p
                done += new_p - p

        return done, free

    def _load_step(self, nc: NumericalCircuit, elements: List[int], factors: Vec,
                   remaining: float) -> Tuple[float, List[int]]:
        """
        One distribution round over the loads, a positive mismatch reduces the consumption
        :return: power distributed, loads still free
        """
        ld = nc.load_data
        norm_factors = factors / np.sum(factors)
        done = 0.0
        free = list()
        for k, factor in zip(elements, norm_factors):
            p = ld.p[k]
            new_p = p - remaining * factor

            # the consumption sign is kept
            if (p >= 0 > new_p) or (p < 0 < new_p):
                new_p = 0.0
            else:
                free.append(k)

            if new_p != p:
                ld.p[k] = new_p
                done += p - new_p

        return done, free

    def run(self, nc: NumericalCircuit, bus_mask: BoolVec, mismatch: float,
            reference_generator: int = -1) -> DistributionResult:
        """
        Distribute an active power mismatch
        :param nc: NumericalCircuit
        :param bus_mask: buses whose injections take part
        :param mismatch: active power to add to the participants (p.u.)
        :param reference_generator: generator put back at its set point as well, -1 if none
        :return: DistributionResult
        """
        reverted, previous = self.reset_to_initial_state(nc, bus_mask, reference_generator)
        remaining = mismatch + reverted

        if self.element_type == 'load':
            elements = self.get_loads(nc, bus_mask)
            key = np.abs(nc.load_data.p[elements])
            step = self._load_step
        else:
            gd = nc.generator_data
            elements = self.get_generators(nc, bus_mask)
            key = get_generation_factors(balance_type=self.balance_type,
                                         p=gd.p[elements],
                                         pmin=gd.pmin[elements],
                                         pmax=gd.pmax[elements],
                                         droop=gd.droop[elements],
                                         participation_factor=gd.participation_factor[elements],
                                         mismatch=remaining)
            step = self._generation_step

        factor_of = {int(k): f for k, f in zip(elements, key) if f != 0.0}
        participants = list(factor_of.keys())

        iteration = 0
        while len(participants) and abs(remaining) > P_RESIDUE_EPS:
            factors = np.array([factor_of[k] for k in participants])
            if np.sum(factors) <= 0.0:
                break
            done, participants = step(nc, participants, factors, remaining)
            remaining -= done
            iteration += 1

        return DistributionResult(iteration=iteration,
                                  remaining=remaining,
                                  moved=self.has_moved(nc, previous),
                                  previous=previous)
