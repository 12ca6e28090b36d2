# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
import scipy.sparse as sp
from FlowCalEngine.basic_structures import Vec, CxVec, IntVec, BoolVec


class AdmittanceMatrices:
    """
    Class to store admittance matrices
    """

    def __init__(self,
                 Ybus: sp.csc_matrix,
                 Yf: sp.csc_matrix,
                 Yt: sp.csc_matrix,
                 Cf: sp.csc_matrix,
                 Ct: sp.csc_matrix,
                 yff: CxVec,
                 yft: CxVec,
                 ytf: CxVec,
                 ytt: CxVec):
        """
        Constructor
        :param Ybus: Admittance matrix
        :param Yf: Admittance matrix of the branches with their "from" bus
        :param Yt: Admittance matrix of the branches with their "to" bus
        :param Cf: Connectivity matrix of the branches with their "from" bus
        :param Ct: Connectivity matrix of the branches with their "to" bus
        :param yff: admittance from-from primitives vector
        :param yft: admittance from-to primitives vector
        :param ytf: admittance to-from primitives vector
        :param ytt: admittance to-to primitives vector
        """
        self.Ybus = Ybus

        self.Yf = Yf

        self.Yt = Yt

        self.Cf = Cf

        self.Ct = Ct

        self.yff = yff

        self.yft = yft

        self.ytf = ytf

        self.ytt = ytt


def compute_primitives(R: Vec, X: Vec, G1: Vec, B1: Vec, G2: Vec, B2: Vec,
                       r1: Vec, a1: Vec, connected1: BoolVec, connected2: BoolVec):
    """
    Branch primitive admittances.
    An open side is reduced into an equivalent shunt at the connected side.
    :param R: series resistance (p.u.)
    :param X: series reactance (p.u.)
    :param G1: side 1 shunt conductance (p.u.)
    :param B1: side 1 shunt susceptance (p.u.)
    :param G2: side 2 shunt conductance (p.u.)
    :param B2: side 2 shunt susceptance (p.u.)
    :param r1: side 1 ratio
    :param a1: side 1 phase shift (rad)
    :param connected1: side 1 connection state
    :param connected2: side 2 connection state
    :return: yff, yft, ytf, ytt
    """
    ys = 1.0 / (R + 1j * X)
    y1 = G1 + 1j * B1
    y2 = G2 + 1j * B2

    closed = connected1 & connected2
    only1 = connected1 & ~connected2
    only2 = ~connected1 & connected2

    yff = np.where(closed, r1 * r1 * (ys + y1), 0.0 + 0.0j)
    yft = np.where(closed, -ys * r1 * np.exp(-1j * a1), 0.0 + 0.0j)
    ytf = np.where(closed, -ys * r1 * np.exp(1j * a1), 0.0 + 0.0j)
    ytt = np.where(closed, ys + y2, 0.0 + 0.0j)

    if np.any(only1):
        yff[only1] = (r1 * r1 * (ys + y1 - ys * ys / (ys + y2)))[only1]

    if np.any(only2):
        ytt[only2] = (ys + y2 - ys * ys / (ys + y1))[only2]

    return yff, yft, ytf, ytt


def compute_admittances(R: Vec, X: Vec, G1: Vec, B1: Vec, G2: Vec, B2: Vec,
                        r1: Vec, a1: Vec,
                        connected1: BoolVec, connected2: BoolVec,
                        F: IntVec, T: IntVec, nbus: int) -> AdmittanceMatrices:
    """
    Compute the complete admittance matrices of the AC branches.
    The shunt devices are not included, their power is accounted for in the bus balance.
    :param R: series resistance (p.u.)
    :param X: series reactance (p.u.)
    :param G1: side 1 shunt conductance (p.u.)
    :param B1: side 1 shunt susceptance (p.u.)
    :param G2: side 2 shunt conductance (p.u.)
    :param B2: side 2 shunt susceptance (p.u.)
    :param r1: side 1 ratio
    :param a1: side 1 phase shift (rad)
    :param connected1: side 1 connection state
    :param connected2: side 2 connection state
    :param F: side 1 bus indices (the connected side index at an open side)
    :param T: side 2 bus indices (the connected side index at an open side)
    :param nbus: number of buses
    :return: AdmittanceMatrices
    """
    nbr = len(R)
    idx = np.arange(nbr)
    Cf = sp.csc_matrix((np.ones(nbr), (idx, F)), shape=(nbr, nbus))
    Ct = sp.csc_matrix((np.ones(nbr), (idx, T)), shape=(nbr, nbus))

    yff, yft, ytf, ytt = compute_primitives(R=R, X=X, G1=G1, B1=B1, G2=G2, B2=B2, r1=r1, a1=a1,
                                            connected1=connected1, connected2=connected2)

    # compose the matrices
    Yf = sp.diags(yff) @ Cf + sp.diags(yft) @ Ct
    Yt = sp.diags(ytf) @ Cf + sp.diags(ytt) @ Ct
    Ybus = Cf.T @ Yf + Ct.T @ Yt

    return AdmittanceMatrices(Ybus=Ybus.tocsc(), Yf=Yf.tocsc(), Yt=Yt.tocsc(), Cf=Cf, Ct=Ct,
                              yff=yff, yft=yft, ytf=ytf, ytt=ytt)
