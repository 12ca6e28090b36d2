# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Union
from collections.abc import Callable
from scipy.sparse import csc_matrix
from scipy.sparse.linalg import spsolve as scipy_spsolve, splu, factorized
from FlowCalEngine.basic_structures import Vec, Mat
from FlowCalEngine.enumerations import SparseSolver

# list of available linear algebra frameworks
available_sparse_solvers = [SparseSolver.SuperLU, SparseSolver.UMFPACK]

preferred_type = SparseSolver.SuperLU


def super_lu_linsolver(A: csc_matrix, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
    """
    SuperLU wrapper function for linear system solve A x = b
    :param A: System matrix
    :param b: right hand side
    :return: solution
    """
    return splu(A).solve(b)


def get_linear_solver(solver_type: SparseSolver = preferred_type) -> Callable[[csc_matrix, Union[Vec, Mat]],
                                                                               Union[Vec, Mat]]:
    """
    Provide the chosen linear solver_type function pointer to
    solve linear systems of the type A x = b, with x = f(A,b)
    :param solver_type: SparseSolver option
    :return: function pointer f(A, b)
    """
    if solver_type == SparseSolver.SuperLU:
        return super_lu_linsolver

    elif solver_type == SparseSolver.UMFPACK:
        return scipy_spsolve

    else:
        raise Exception('Unrecognized LU solver ' + str(solver_type))


def get_factorization(A: csc_matrix,
                      solver_type: SparseSolver = preferred_type) -> Callable[[Union[Vec, Mat]], Union[Vec, Mat]]:
    """
    Factorize A once to solve several right hand sides
    :param A: System matrix
    :param solver_type: SparseSolver option
    :return: function pointer f(b) = A^-1 b
    """
    if solver_type == SparseSolver.SuperLU:
        return splu(A).solve

    elif solver_type == SparseSolver.UMFPACK:
        return factorized(A)

    else:
        raise Exception('Unrecognized LU solver ' + str(solver_type))
