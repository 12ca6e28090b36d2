# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple
import numpy as np
import scipy.sparse as sp

from FlowCalEngine.basic_structures import Vec, Logger
from FlowCalEngine.enumerations import VoltageInitMode, SparseSolver
from FlowCalEngine.DataStructures.numerical_circuit import NumericalCircuit
from FlowCalEngine.Utils.NumericalMethods.common import has_nan
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_linear_solver


def get_uniform_voltage(nc: NumericalCircuit) -> Tuple[Vec, Vec]:
    """
    Flat start
    :param nc: NumericalCircuit
    :return: v (p.u.), phi (rad)
    """
    return np.ones(nc.nbus), np.zeros(nc.nbus)


def get_dc_voltage(nc: NumericalCircuit, slack: int, sparse_solver: SparseSolver) -> Tuple[Vec, Vec]:
    """
    Angles from a DC power flow with the susceptances 1/x and the phase shifts of the branches.
    P_ft = (phi_f - phi_t + a1) / x
    :param nc: NumericalCircuit
    :param slack: slack bus index (reference angle)
    :param sparse_solver: linear solver to use
    :return: v (p.u.), phi (rad)
    """
    bd = nc.branch_data
    nbus = nc.nbus
    closed = bd.closed & (bd.X != 0.0)
    idx = np.where(closed)[0]
    nbr = len(idx)

    b = 1.0 / bd.X[idx]
    A = sp.csc_matrix((np.r_[np.ones(nbr), -np.ones(nbr)],
                       (np.r_[np.arange(nbr), np.arange(nbr)], np.r_[bd.F[idx], bd.T[idx]])),
                      shape=(nbr, nbus))

    Bbus = (A.T @ sp.diags(b) @ A).tocsc()
    P = nc.generator_data.get_p_per_bus() - nc.load_data.get_p_per_bus()
    Pshift = A.T @ (b * bd.a1[idx])

    no_slack = np.r_[np.arange(slack), np.arange(slack + 1, nbus)]
    phi = np.zeros(nbus)
    if len(no_slack):
        solve = get_linear_solver(sparse_solver)
        phi[no_slack] = solve(Bbus[np.ix_(no_slack, no_slack)], (P - Pshift)[no_slack])

    return np.ones(nbus), phi


def get_previous_voltage(nc: NumericalCircuit) -> Tuple[Vec, Vec]:
    """
    Voltages stored in the buses by a former power flow, flat where absent
    :param nc: NumericalCircuit
    :return: v (p.u.), phi (rad)
    """
    stored = nc.bus_data.has_stored_state()
    v = np.where(stored, nc.bus_data.v0, 1.0)
    phi = np.where(stored, nc.bus_data.angle0, 0.0)
    return v, phi


def initialize_voltage(nc: NumericalCircuit,
                       slack: int,
                       mode: VoltageInitMode,
                       sparse_solver: SparseSolver,
                       logger: Logger) -> Tuple[Vec, Vec]:
    """
    Starting voltage of the Newton-Raphson
    :param nc: NumericalCircuit
    :param slack: slack bus index
    :param mode: VoltageInitMode
    :param sparse_solver: SparseSolver used by the DC initialization
    :param logger: Logger
    :return: v (p.u.), phi (rad)
    """
    if mode == VoltageInitMode.UNIFORM:
        return get_uniform_voltage(nc)

    elif mode == VoltageInitMode.DC_VALUES:
        try:
            v, phi = get_dc_voltage(nc, slack, sparse_solver)
        except RuntimeError as e:
            logger.add_warning("DC initialization failed, using a flat start", value=str(e))
            return get_uniform_voltage(nc)

        if has_nan(phi):
            logger.add_warning("DC initialization failed, using a flat start")
            return get_uniform_voltage(nc)
        return v, phi

    elif mode == VoltageInitMode.PREVIOUS:
        return get_previous_voltage(nc)

    else:
        raise ValueError(f"Unknown voltage initialization mode {mode}")
