# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union
import numpy as np
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.Utils.NumericalMethods.common import find_closest_number
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem

INCREASE = 1
DECREASE = -1
BOTH = 0

UNLIMITED_SHIFT = 2 ** 31 - 1


class ControllerContext:
    """
    Direction memory of an incrementally moved controller.
    After max_direction_change reversals the controller may only keep moving the way it went last.
    """

    def __init__(self, max_direction_change: int):
        """

        :param max_direction_change: number of direction reversals allowed
        """
        self.max_direction_change = max_direction_change
        self.direction_change_count = 0
        self.previous_direction: Union[int, None] = None
        self.allowed_direction = BOTH

    def update_allowed_direction(self, direction: int) -> None:
        """
        Register a move
        :param direction: INCREASE or DECREASE
        """
        if self.previous_direction is not None and self.previous_direction != direction:
            self.direction_change_count += 1
            if self.direction_change_count >= self.max_direction_change:
                self.allowed_direction = direction
        self.previous_direction = direction


def next_position(steps: Vec, position: int, delta: float) -> int:
    """
    Neighbour position that changes the stepped value in the sign of delta
    :param steps: stepped values (monotonic)
    :param position: current position
    :param delta: wanted change
    :return: position, -1 if there is none
    """
    current = steps[position]
    for candidate in (position - 1, position + 1):
        if 0 <= candidate < len(steps):
            change = steps[candidate] - current
            if change * delta > 0:
                return candidate
    return -1


def _is_allowed(steps: Vec, position: int, candidate: int, allowed_direction: int) -> bool:
    if allowed_direction == BOTH:
        return True
    return np.sign(steps[candidate] - steps[position]) == allowed_direction


def position_to_reach(steps: Vec, position: int, delta: float,
                      max_shift: int = UNLIMITED_SHIFT, allowed_direction: int = BOTH) -> int:
    """
    Walk the positions in the direction of delta and keep the one whose value is closest to value + delta
    :param steps: stepped values (monotonic)
    :param position: current position
    :param delta: wanted change of the stepped value
    :param max_shift: maximum number of positions to move
    :param allowed_direction: INCREASE, DECREASE or BOTH (direction of the stepped value)
    :return: new position (the current one if no move is possible)
    """
    target = steps[position] + delta
    best = position
    best_distance = abs(steps[position] - target)
    p = position
    shift = 0
    while shift < max_shift:
        n = next_position(steps, p, delta)
        if n < 0 or not _is_allowed(steps, position, n, allowed_direction):
            break
        distance = abs(steps[n] - target)
        if distance < best_distance:
            best = n
            best_distance = distance
        else:
            break
        p = n
        shift += 1
    return best


def position_to_exceed(steps: Vec, position: int, delta: float,
                       max_shift: int = UNLIMITED_SHIFT, allowed_direction: int = BOTH) -> int:
    """
    Walk the positions in the direction of delta until the change of the value reaches delta
    :param steps: stepped values (monotonic)
    :param position: current position
    :param delta: wanted change of the stepped value
    :param max_shift: maximum number of positions to move
    :param allowed_direction: INCREASE, DECREASE or BOTH (direction of the stepped value)
    :return: new position, the last reachable one if delta cannot be reached
    """
    p = position
    shift = 0
    while shift < max_shift and abs(steps[p] - steps[position]) < abs(delta):
        n = next_position(steps, p, delta)
        if n < 0 or not _is_allowed(steps, position, n, allowed_direction):
            break
        p = n
        shift += 1
    return p


def direction_of(steps: Vec, old_position: int, new_position: int) -> int:
    """
    Direction of the stepped value between two positions
    """
    return INCREASE if steps[new_position] > steps[old_position] else DECREASE


def set_rho_position(system: AcEquationSystem, k: int, position: int) -> None:
    """
    Move the tap of a ratio variable and fix the variable at the tap ratio
    :param system: AcEquationSystem
    :param k: ratio variable index
    :param position: tap position
    """
    rd = system.nc.rtc_data
    rtc = system.rho_rtc[k]
    rd.apply_position(rtc, position, system.nc.branch_data)
    system.fix_rho(k, rd.r1_steps[rtc][position])


def set_alpha_position(system: AcEquationSystem, k: int, position: int) -> None:
    """
    Move the tap of a phase variable and fix the variable at the tap angle
    :param system: AcEquationSystem
    :param k: phase variable index
    :param position: tap position
    """
    pd = system.nc.ptc_data
    ptc = system.alpha_ptc[k]
    pd.apply_position(ptc, position, system.nc.branch_data)
    system.fix_alpha(k, pd.a1_steps[ptc][position])


def set_shunt_section(system: AcEquationSystem, k: int, section: int) -> None:
    """
    Connect a number of sections of a susceptance variable and fix the variable there
    :param system: AcEquationSystem
    :param k: susceptance variable index
    :param section: number of sections
    """
    sd = system.nc.shunt_data
    sh = system.bsh_idx[k]
    sd.set_section(sh, section)
    system.fix_b(k, sd.b[sh])


def round_rho_to_closest_tap(system: AcEquationSystem, k: int) -> int:
    """
    Round the continuous ratio of a variable to the closest tap
    :return: tap position
    """
    rtc = system.rho_rtc[k]
    position, _ = find_closest_number(system.nc.rtc_data.r1_steps[rtc], system.get_rho()[k])
    set_rho_position(system, k, position)
    return position


def round_alpha_to_closest_tap(system: AcEquationSystem, k: int) -> int:
    """
    Round the continuous phase shift of a variable to the closest tap
    :return: tap position
    """
    ptc = system.alpha_ptc[k]
    position, _ = find_closest_number(system.nc.ptc_data.a1_steps[ptc], system.get_alpha()[k])
    set_alpha_position(system, k, position)
    return position


def round_b_to_closest_section(system: AcEquationSystem, k: int) -> int:
    """
    Round the continuous susceptance of a variable to the closest section
    :return: section
    """
    sh = system.bsh_idx[k]
    section, _ = find_closest_number(system.nc.shunt_data.b_steps[sh], system.get_b()[k])
    set_shunt_section(system, k, section)
    return section
