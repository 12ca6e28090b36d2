# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from typing import Tuple
from scipy.sparse import diags, csc_matrix
from FlowCalEngine.basic_structures import CxVec, IntVec, Vec


def dSbus_dV_matpower(Ybus: csc_matrix, V: CxVec) -> Tuple[csc_matrix, csc_matrix]:
    """
    Derivatives of the power Injections w.r.t the voltage
    :param Ybus: Admittance matrix
    :param V: complex voltage arrays
    :return: dSbus_dVa, dSbus_dVm
    """
    diagV = diags(V)
    diagE = diags(V / np.abs(V))
    Ibus = Ybus @ V
    diagIbus = diags(Ibus)

    dSbus_dVa = 1j * diagV @ np.conj(diagIbus - Ybus @ diagV)  # dSbus / dVa
    dSbus_dVm = diagV @ np.conj(Ybus @ diagE) + np.conj(diagIbus) @ diagE  # dSbus / dVm

    return dSbus_dVa.tocsc(), dSbus_dVm.tocsc()


def dSbr_dV_matpower(Yf: csc_matrix, Yt: csc_matrix, V: CxVec,
                     F: IntVec, T: IntVec,
                     Cf: csc_matrix, Ct: csc_matrix) -> Tuple[csc_matrix, csc_matrix, csc_matrix, csc_matrix]:
    """
    Derivatives of the branch power w.r.t the branch voltage modules and angles
    :param Yf: Admittances matrix of the Branches with the "from" buses
    :param Yt: Admittances matrix of the Branches with the "to" buses
    :param V: Array of voltages
    :param F: Array of branch "from" bus indices
    :param T: Array of branch "to" bus indices
    :param Cf: Connectivity matrix of the Branches with the "from" buses
    :param Ct: Connectivity matrix of the Branches with the "to" buses
    :return: dSf_dVa, dSf_dVm, dSt_dVa, dSt_dVm
    """
    Yfc = np.conj(Yf)
    Ytc = np.conj(Yt)
    Vc = np.conj(V)
    Ifc = Yfc @ Vc  # conjugate  of "from"  current
    Itc = Ytc @ Vc  # conjugate of "to" current

    diagIfc = diags(Ifc)
    diagItc = diags(Itc)
    Vf = V[F]
    Vt = V[T]
    diagVf = diags(Vf)
    diagVt = diags(Vt)
    diagVc = diags(Vc)

    Vnorm = V / np.abs(V)
    diagVnorm = diags(Vnorm)
    diagV = diags(V)

    CVf = Cf @ diagV
    CVt = Ct @ diagV
    CVnf = Cf @ diagVnorm
    CVnt = Ct @ diagVnorm

    dSf_dVa = 1j * (diagIfc @ CVf - diagVf @ Yfc @ diagVc)
    dSf_dVm = diagVf @ np.conj(Yf @ diagVnorm) + diagIfc @ CVnf
    dSt_dVa = 1j * (diagItc @ CVt - diagVt @ Ytc @ diagVc)
    dSt_dVm = diagVt @ np.conj(Yt @ diagVnorm) + diagItc @ CVnt

    return dSf_dVa.tocsc(), dSf_dVm.tocsc(), dSt_dVa.tocsc(), dSt_dVm.tocsc()


def dSbr_dtap(V: CxVec, F: IntVec, T: IntVec,
              ys: CxVec, y1: CxVec, r1: Vec, a1: Vec) -> Tuple[CxVec, CxVec, CxVec, CxVec]:
    """
    Derivatives of the branch powers w.r.t the side 1 ratio and phase shift of the same branch

    Yff = r1² (ys + y1)
    Yft = -ys r1 exp(-j a1)
    Ytf = -ys r1 exp(j a1)

    :param V: Array of voltages
    :param F: Array of branch "from" bus indices
    :param T: Array of branch "to" bus indices
    :param ys: series admittances
    :param y1: side 1 shunt admittances
    :param r1: side 1 ratios
    :param a1: side 1 phase shifts (rad)
    :return: dSf_dr1, dSf_da1, dSt_dr1, dSt_da1 (one value per branch)
    """
    Vf = V[F]
    Vt = V[T]
    e_n = np.exp(-1j * a1)
    e_p = np.exp(1j * a1)

    dSf_dr1 = 2.0 * r1 * np.conj(ys + y1) * np.abs(Vf) ** 2 + Vf * np.conj(Vt) * np.conj(-ys * e_n)
    dSf_da1 = Vf * np.conj(Vt) * np.conj(1j * ys * r1 * e_n)
    dSt_dr1 = Vt * np.conj(Vf) * np.conj(-ys * e_p)
    dSt_da1 = Vt * np.conj(Vf) * np.conj(-1j * ys * r1 * e_p)

    return dSf_dr1, dSf_da1, dSt_dr1, dSt_da1


def dIbr_dV(Yf: csc_matrix, Yt: csc_matrix, V: CxVec) -> Tuple[csc_matrix, csc_matrix, csc_matrix, csc_matrix]:
    """
    Derivatives of the complex branch currents w.r.t the voltage angles and modules
    :param Yf: Admittances matrix of the Branches with the "from" buses
    :param Yt: Admittances matrix of the Branches with the "to" buses
    :param V: Array of voltages
    :return: dIf_dVa, dIf_dVm, dIt_dVa, dIt_dVm
    """
    diagV = diags(V)
    diagE = diags(V / np.abs(V))

    dIf_dVa = 1j * Yf @ diagV
    dIf_dVm = Yf @ diagE
    dIt_dVa = 1j * Yt @ diagV
    dIt_dVm = Yt @ diagE

    return dIf_dVa.tocsc(), dIf_dVm.tocsc(), dIt_dVa.tocsc(), dIt_dVm.tocsc()


def dIbr_dtap(V: CxVec, F: IntVec, T: IntVec,
              ys: CxVec, y1: CxVec, r1: Vec, a1: Vec) -> Tuple[CxVec, CxVec, CxVec, CxVec]:
    """
    Derivatives of the complex branch currents w.r.t the side 1 ratio and phase shift of the same branch
    :param V: Array of voltages
    :param F: Array of branch "from" bus indices
    :param T: Array of branch "to" bus indices
    :param ys: series admittances
    :param y1: side 1 shunt admittances
    :param r1: side 1 ratios
    :param a1: side 1 phase shifts (rad)
    :return: dIf_dr1, dIf_da1, dIt_dr1, dIt_da1 (one value per branch)
    """
    Vf = V[F]
    Vt = V[T]
    e_n = np.exp(-1j * a1)
    e_p = np.exp(1j * a1)

    dIf_dr1 = 2.0 * r1 * (ys + y1) * Vf - ys * e_n * Vt
    dIf_da1 = 1j * ys * r1 * e_n * Vt
    dIt_dr1 = -ys * e_p * Vf
    dIt_da1 = -1j * ys * r1 * e_p * Vf

    return dIf_dr1, dIf_da1, dIt_dr1, dIt_da1


def abs_derivative(I: CxVec, dI: csc_matrix) -> csc_matrix:
    """
    Derivative of the current modules from the derivative of the complex currents
    d|I|/dx = Re(conj(I) dI/dx) / |I|, zero where there is no current
    :param I: complex currents
    :param dI: derivatives of the complex currents (one row per current)
    :return: real csc_matrix
    """
    Iabs = np.abs(I)
    k = np.zeros(len(I), dtype=complex)
    nz = Iabs > 1e-12
    k[nz] = np.conj(I[nz]) / Iabs[nz]
    return (diags(k) @ dI).real.tocsc()
