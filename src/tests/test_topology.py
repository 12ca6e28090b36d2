# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest
from scipy.sparse import csc_matrix

from FlowCalEngine.enumerations import SlackBusSelectionMode
from FlowCalEngine.exceptions import SlackError
import FlowCalEngine.Topology.topology as tp

NAMES = np.array(['a', 'b', 'c'], dtype=object)
VNOM = np.array([10.0, 400.0, 400.0])
BRANCH_COUNT = np.array([1, 1, 3])


def select(mode, gen_bus=None, gen_pmax=None, gen_active=None, name=None):
    gen_bus = np.array([0]) if gen_bus is None else gen_bus
    gen_pmax = np.array([100.0]) if gen_pmax is None else gen_pmax
    gen_active = np.array([True]) if gen_active is None else gen_active
    return tp.select_slack_bus(mode=mode, bus_names=NAMES, vnom=VNOM, branch_count=BRANCH_COUNT,
                               gen_bus=gen_bus, gen_pmax=gen_pmax, gen_active=gen_active,
                               slack_bus_name=name)


def test_slack_selection_modes():
    """
    Every mode picks its own bus
    """
    assert select(SlackBusSelectionMode.FIRST) == 0

    # the most meshed among the highest voltage buses
    assert select(SlackBusSelectionMode.MOST_MESHED) == 2

    assert select(SlackBusSelectionMode.NAME, name='b') == 1

    assert select(SlackBusSelectionMode.LARGEST_GENERATOR,
                  gen_bus=np.array([0, 1]),
                  gen_pmax=np.array([100.0, 300.0]),
                  gen_active=np.array([True, False])) == 0


def test_slack_selection_errors():
    """
    A slack that cannot be found raises SlackError
    """
    with pytest.raises(SlackError):
        select(SlackBusSelectionMode.NAME, name='z')

    with pytest.raises(SlackError):
        select(SlackBusSelectionMode.NAME)

    with pytest.raises(SlackError):
        select(SlackBusSelectionMode.LARGEST_GENERATOR, gen_active=np.array([False]))

    with pytest.raises(SlackError):
        tp.select_slack_bus(mode=SlackBusSelectionMode.FIRST,
                            bus_names=np.array([], dtype=object),
                            vnom=np.array([]),
                            branch_count=np.array([], dtype=int),
                            gen_bus=np.array([], dtype=int),
                            gen_pmax=np.array([]),
                            gen_active=np.array([], dtype=bool))


def test_find_islands():
    """
    The largest island comes first
    """
    rows = np.array([0, 1, 1, 2])
    cols = np.array([1, 0, 2, 1])
    adj = csc_matrix((np.ones(4), (rows, cols)), shape=(4, 4))

    islands = tp.find_islands(adj=adj, active=np.ones(4, dtype=bool))

    assert len(islands) == 2
    assert np.array_equal(islands[0], [0, 1, 2])
    assert np.array_equal(islands[1], [3])

    # inactive buses belong to no island
    islands = tp.find_islands(adj=adj, active=np.array([True, True, True, False]))
    assert len(islands) == 1


def test_bridges_and_branch_count():
    """
    Triangle 0-1-2, bridge 2-3 and double circuit 3-4
    """
    F = np.array([0, 1, 2, 2, 3, 3])
    T = np.array([1, 2, 0, 3, 4, 4])
    closed = np.ones(6, dtype=bool)

    bridges = tp.get_bridges(F=F, T=T, closed=closed)
    assert np.array_equal(bridges, [False, False, False, True, False, False])

    count = tp.get_bus_branch_count(nbus=5, F=F, T=T, closed=closed)
    assert np.array_equal(count, [2, 2, 3, 3, 2])
