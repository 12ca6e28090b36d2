# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from __future__ import annotations

from typing import List, Union
import numpy as np
import numba as nb
import networkx as nx
from scipy.sparse import csc_matrix, diags
from scipy.sparse.csgraph import connected_components
from FlowCalEngine.basic_structures import IntVec, BoolVec, Vec, StrVec
from FlowCalEngine.enumerations import SlackBusSelectionMode
from FlowCalEngine.exceptions import SlackError


def get_adjacency_matrix(C_branch_bus: csc_matrix, bus_active: BoolVec) -> csc_matrix:
    """
    Compute the adjacency matrix
    :param C_branch_bus: Branch-bus connectivity matrix (only the closed branches)
    :param bus_active: array of buses availability
    :return: Adjacency matrix
    """
    # Connectivity node - Connectivity node connectivity matrix
    C_bus_bus = diags(bus_active.astype(int)) @ (C_branch_bus.T @ C_branch_bus)

    return C_bus_bus.tocsc()


def find_islands(adj: csc_matrix, active: BoolVec) -> List[IntVec]:
    """
    Method to get the islands of a graph
    :param adj: adjacency
    :param active: active state of the nodes
    :return: list of islands, where each element is a list of the node indices of the island,
             sorted by decreasing size
    """
    n_comp, labels = connected_components(csgraph=adj, directed=False, return_labels=True)

    islands = list()
    for c in range(n_comp):
        idx = np.where((labels == c) & active)[0]
        if len(idx) > 0:
            islands.append(idx)

    # the largest island first, then by the lowest bus index
    islands.sort(key=lambda x: (-len(x), x[0]))

    return islands


@nb.njit(cache=True)
def get_island_monopole_indices(bus_map: IntVec, elm_active: BoolVec, elm_bus: IntVec) -> IntVec:
    """
    Get the indices of the single bus devices that fall in the island
    :param bus_map: map from the old bus index to the island bus index (-1 if not in the island)
    :param elm_active: device active state
    :param elm_bus: device bus index
    :return: device indices
    """
    n_elm = len(elm_active)
    indices = np.zeros(n_elm, dtype=np.int64)

    ii = 0
    for k in range(n_elm):
        if elm_active[k] and bus_map[elm_bus[k]] > -1:
            indices[ii] = k
            ii += 1

    return indices[:ii]


@nb.njit(cache=True)
def get_island_branch_indices(bus_map: IntVec, connected1: BoolVec, connected2: BoolVec,
                              F: IntVec, T: IntVec) -> IntVec:
    """
    Get the indices of the branches that fall in the island.
    A branch open at one side belongs to the island of its connected side,
    a branch open at both sides belongs to no island.
    :param bus_map: map from the old bus index to the island bus index (-1 if not in the island)
    :param connected1: side 1 connection state
    :param connected2: side 2 connection state
    :param F: side 1 bus indices
    :param T: side 2 bus indices
    :return: branch indices
    """
    n_elm = len(connected1)
    indices = np.zeros(n_elm, dtype=np.int64)

    ii = 0
    for k in range(n_elm):
        if connected1[k] and connected2[k]:
            ok = bus_map[F[k]] > -1 and bus_map[T[k]] > -1
        elif connected1[k]:
            ok = bus_map[F[k]] > -1
        elif connected2[k]:
            ok = bus_map[T[k]] > -1
        else:
            ok = False

        if ok:
            indices[ii] = k
            ii += 1

    return indices[:ii]


def get_bridges(F: IntVec, T: IntVec, closed: BoolVec) -> BoolVec:
    """
    Find the branches whose loss splits the graph
    :param F: side 1 bus indices
    :param T: side 2 bus indices
    :param closed: branches closed at both sides (the others are ignored)
    :return: boolean array, True for the bridges
    """
    graph = nx.Graph()
    multiplicity = dict()
    for k in np.where(closed)[0]:
        f, t = int(F[k]), int(T[k])
        if f == t:
            continue
        key = (min(f, t), max(f, t))
        multiplicity[key] = multiplicity.get(key, 0) + 1
        graph.add_edge(f, t)

    bridge_set = set()
    for f, t in nx.bridges(graph):
        key = (min(f, t), max(f, t))

        # parallel branches are never bridges
        if multiplicity[key] == 1:
            bridge_set.add(key)

    is_bridge = np.zeros(len(F), dtype=bool)
    for k in np.where(closed)[0]:
        is_bridge[k] = (min(F[k], T[k]), max(F[k], T[k])) in bridge_set

    return is_bridge


def get_bus_branch_count(nbus: int, F: IntVec, T: IntVec, closed: BoolVec) -> IntVec:
    """
    Number of closed branches connected to every bus
    :param nbus: number of buses
    :param F: side 1 bus indices
    :param T: side 2 bus indices
    :param closed: branches closed at both sides
    :return: IntVec (nbus)
    """
    return (np.bincount(F[closed], minlength=nbus) + np.bincount(T[closed], minlength=nbus)).astype(int)


def select_slack_bus(mode: SlackBusSelectionMode,
                     bus_names: StrVec,
                     vnom: Vec,
                     branch_count: IntVec,
                     gen_bus: IntVec,
                     gen_pmax: Vec,
                     gen_active: BoolVec,
                     slack_bus_name: Union[str, None] = None) -> int:
    """
    Select the slack bus of an island
    :param mode: SlackBusSelectionMode
    :param bus_names: names of the island buses
    :param vnom: nominal voltages of the island buses
    :param branch_count: number of closed branches per island bus
    :param gen_bus: island bus index of the generators
    :param gen_pmax: maximum active power of the generators
    :param gen_active: active state of the generators
    :param slack_bus_name: bus name for the NAME mode
    :return: index of the slack bus in the island
    """
    nbus = len(bus_names)
    if nbus == 0:
        raise SlackError("Cannot select a slack bus in an empty island")

    if mode == SlackBusSelectionMode.FIRST:
        return 0

    elif mode == SlackBusSelectionMode.MOST_MESHED:
        # among the highest voltage buses, the one with the most branches
        candidates = np.where(vnom >= np.max(vnom) * 0.9)[0]
        return int(candidates[np.argmax(branch_count[candidates])])

    elif mode == SlackBusSelectionMode.NAME:
        if slack_bus_name is None:
            raise SlackError("The slack bus name is not set")

        idx = np.where(bus_names == slack_bus_name)[0]
        if len(idx) == 0:
            raise SlackError(f"Slack bus {slack_bus_name} not found")
        return int(idx[0])

    elif mode == SlackBusSelectionMode.LARGEST_GENERATOR:
        if not np.any(gen_active):
            raise SlackError("No generator to hold the slack")
        pmax = np.where(gen_active, gen_pmax, -np.inf)
        return int(gen_bus[np.argmax(pmax)])

    else:
        raise SlackError(f"Unknown slack bus selection mode {mode}")
