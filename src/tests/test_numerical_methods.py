# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from scipy.sparse import csc_matrix

from FlowCalEngine.enumerations import SparseSolver
from FlowCalEngine.Utils.NumericalMethods.common import find_closest_number, has_nan, max_abs, norm
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_linear_solver, get_factorization


def test_find_closest_number():
    """
    The closest step is found in increasing and decreasing tables
    """
    assert find_closest_number(np.array([0.9, 1.0, 1.05, 1.1]), 1.04) == (2, 1.05)
    assert find_closest_number(np.array([10.0, 5.0, 0.0, -5.0]), -1.0) == (2, 0.0)
    assert find_closest_number(np.zeros(0), 3.0) == (-1, 3.0)


def test_norms():
    x = np.array([3.0, -4.0])
    assert np.isclose(norm(x), 5.0, atol=1e-12)
    assert np.isclose(max_abs(x), 4.0, atol=1e-12)
    assert not has_nan(x)
    assert has_nan(np.array([1.0, np.nan]))
    assert has_nan(np.array([np.inf]))


def test_sparse_solvers():
    """
    Both solvers and both factorizations give the same solution
    """
    A = csc_matrix(np.array([[4.0, 1.0, 0.0],
                             [1.0, 3.0, 1.0],
                             [0.0, 1.0, 2.0]]))
    b = np.array([1.0, 2.0, 3.0])
    expected = np.linalg.solve(A.toarray(), b)

    for solver in [SparseSolver.SuperLU, SparseSolver.UMFPACK]:
        x = get_linear_solver(solver)(A, b)
        assert np.allclose(x, expected, atol=1e-10)

        solve = get_factorization(A, solver)
        assert np.allclose(solve(b), expected, atol=1e-10)
        assert np.allclose(solve(2.0 * b), 2.0 * expected, atol=1e-10)
