# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

from FlowCalEngine.Simulations.PowerFlow.OuterLoops.discrete_controls import (ControllerContext, next_position,
                                                                              position_to_reach, position_to_exceed,
                                                                              direction_of, INCREASE, DECREASE, BOTH)

STEPS = np.array([0.9, 1.0, 1.05, 1.1])


def test_next_position():
    """
    The neighbour position follows the sign of the change
    """
    assert next_position(STEPS, 1, 0.01) == 2
    assert next_position(STEPS, 1, -0.01) == 0
    assert next_position(STEPS, 0, -0.1) == -1
    assert next_position(STEPS, 3, 0.1) == -1

    # decreasing steps
    assert next_position(np.array([1.1, 1.0, 0.9]), 0, -0.05) == 1


def test_position_to_reach():
    """
    The position closest to the wanted value is kept
    """
    # 0.9 + 0.12 = 1.02 is closer to 1.0 than to 1.05
    assert position_to_reach(STEPS, 0, 0.12) == 1

    # a null shift budget does not move
    assert position_to_reach(STEPS, 0, 0.12, max_shift=0) == 0

    # a change smaller than half a step does not move
    assert position_to_reach(STEPS, 1, 0.01) == 1


def test_position_to_exceed():
    """
    The walk goes on until the wanted change is exceeded
    """
    assert position_to_exceed(STEPS, 0, 0.12) == 2

    # beyond the last step the last one is kept
    assert position_to_exceed(STEPS, 0, 1.0) == 3

    # the move is limited by the shift budget
    assert position_to_exceed(STEPS, 0, 1.0, max_shift=1) == 1

    # a forbidden direction does not move
    assert position_to_exceed(STEPS, 0, 0.12, allowed_direction=DECREASE) == 0


def test_direction_of():
    assert direction_of(STEPS, 0, 2) == INCREASE
    assert direction_of(STEPS, 3, 1) == DECREASE


def test_controller_context():
    """
    After the allowed number of reversals only the last direction remains
    """
    ctx = ControllerContext(max_direction_change=2)
    assert ctx.allowed_direction == BOTH

    ctx.update_allowed_direction(INCREASE)
    ctx.update_allowed_direction(DECREASE)
    assert ctx.direction_change_count == 1
    assert ctx.allowed_direction == BOTH

    ctx.update_allowed_direction(INCREASE)
    assert ctx.direction_change_count == 2
    assert ctx.allowed_direction == INCREASE
