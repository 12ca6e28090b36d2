# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from scipy.sparse import csc_matrix

from FlowCalEngine.enumerations import (SolverStatus, VariableType, EquationType, StateVectorScalingMode,
                                        NewtonRaphsonStoppingCriteriaType)
from FlowCalEngine.Utils.NumericalMethods.common import ConvexFunctionResult
from FlowCalEngine.Utils.NumericalMethods.newton_raphson import newton_raphson
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.equation_system_template import EquationSystemTemplate


class SquareRootProblem(EquationSystemTemplate):
    """
    f(x) = x^2 - c
    """

    def __init__(self, c: float):
        EquationSystemTemplate.__init__(self,
                                        var_types=np.array([VariableType.BUS_V], dtype=object),
                                        var_elements=np.array([0], dtype=int),
                                        eq_types=np.array([EquationType.BUS_TARGET_V], dtype=object),
                                        eq_elements=np.array([0], dtype=int))
        self.c = c
        self.active[:] = True

    def update(self) -> None:
        pass

    def compute(self, x, compute_jac: bool = True) -> ConvexFunctionResult:
        f = np.array([x[0] * x[0] - self.c])
        J = csc_matrix(np.array([[2.0 * x[0]]])) if compute_jac else None
        return ConvexFunctionResult(f=f, J=J)


def test_newton_raphson_converges():
    """
    The solution of x^2 = 4 starting from 3 is 2
    """
    problem = SquareRootProblem(c=4.0)
    res = newton_raphson(problem=problem, x0=np.array([3.0]), eps=1e-10)

    assert res.converged
    assert res.status == SolverStatus.CONVERGED
    assert np.isclose(res.x[0], 2.0, atol=1e-8)
    assert res.iterations > 0


def test_newton_raphson_initial_point_solution():
    """
    A solution given as initial point takes no iteration
    """
    problem = SquareRootProblem(c=4.0)
    res = newton_raphson(problem=problem, x0=np.array([2.0]))

    assert res.converged
    assert res.iterations == 0
    assert res.x[0] == 2.0


def test_newton_raphson_max_iterations():
    """
    The iterations budget is respected
    """
    problem = SquareRootProblem(c=4.0)
    res = newton_raphson(problem=problem, x0=np.array([10.0]), max_iter=1)

    assert not res.converged
    assert res.status == SolverStatus.MAX_ITERATION_REACHED
    assert res.iterations == 1


def test_newton_raphson_line_search():
    """
    The line search reaches the same solution
    """
    problem = SquareRootProblem(c=9.0)
    res = newton_raphson(problem=problem, x0=np.array([1.0]), eps=1e-10,
                         scaling=StateVectorScalingMode.LINE_SEARCH)

    assert res.converged
    assert np.isclose(res.x[0], 3.0, atol=1e-8)


def test_newton_raphson_per_equation_type():
    """
    The per equation type criteria uses the tolerances of the problem
    """
    problem = SquareRootProblem(c=2.0)
    res = newton_raphson(problem=problem, x0=np.array([1.0]), eps=1e-12,
                         stopping_criteria=NewtonRaphsonStoppingCriteriaType.PER_EQUATION_TYPE)

    assert res.converged
    assert np.isclose(res.x[0], np.sqrt(2.0), atol=1e-10)


def test_newton_raphson_singular_jacobian():
    """
    A null derivative stops the method with a failure
    """
    problem = SquareRootProblem(c=4.0)
    res = newton_raphson(problem=problem, x0=np.array([0.0]))

    assert res.status == SolverStatus.SOLVER_FAILED
    assert not res.converged
