# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from __future__ import annotations

from typing import Union, TYPE_CHECKING
from dataclasses import dataclass
import numpy as np

from FlowCalEngine.basic_structures import Vec, Logger
from FlowCalEngine.enumerations import (SolverStatus, NewtonRaphsonStoppingCriteriaType, StateVectorScalingMode,
                                        SparseSolver, VariableType)
from FlowCalEngine.Utils.NumericalMethods.common import ConvexFunctionResult, has_nan, max_abs
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_linear_solver

if TYPE_CHECKING:
    from FlowCalEngine.Simulations.PowerFlow.EquationSystem.equation_system_template import EquationSystemTemplate
    from FlowCalEngine.Simulations.PowerFlow.EquationSystem.observers import PowerFlowObserver

MAX_VOLTAGE_CHANGE = 0.1  # p.u.
MAX_ANGLE_CHANGE = np.deg2rad(10.0)  # rad
LINE_SEARCH_MAX_ITER = 10


@dataclass
class NewtonRaphsonResult:
    """
    Newton-Raphson outcome
    """
    status: SolverStatus
    iterations: int
    norm: float
    x: Vec

    @property
    def converged(self) -> bool:
        return self.status == SolverStatus.CONVERGED


def check_convergence(ret: ConvexFunctionResult,
                      criteria: NewtonRaphsonStoppingCriteriaType,
                      eps: float,
                      tolerances: Union[Vec, None] = None) -> bool:
    """
    Stopping test
    :param ret: ConvexFunctionResult
    :param criteria: NewtonRaphsonStoppingCriteriaType
    :param eps: per equation tolerance of the uniform criteria
    :param tolerances: per equation tolerances of the per equation type criteria
    :return: converged?
    """
    if criteria == NewtonRaphsonStoppingCriteriaType.UNIFORM:
        return ret.compute_f_error() < eps * np.sqrt(max(len(ret.f), 1))

    elif criteria == NewtonRaphsonStoppingCriteriaType.PER_EQUATION_TYPE:
        return bool(np.all(np.abs(ret.f) < tolerances))

    else:
        raise ValueError(f"Unknown stopping criteria {criteria}")


def max_voltage_change_scale(dx: Vec, is_v: np.ndarray, is_phi: np.ndarray) -> float:
    """
    Step length so that no voltage module changes more than 0.1 p.u. and no angle more than 10 degrees
    :param dx: Newton step
    :param is_v: mask of the voltage module variables
    :param is_phi: mask of the voltage angle variables
    :return: step length in (0, 1]
    """
    scale = 1.0
    dv = max_abs(dx[is_v]) if np.any(is_v) else 0.0
    dphi = max_abs(dx[is_phi]) if np.any(is_phi) else 0.0
    if dv > MAX_VOLTAGE_CHANGE:
        scale = min(scale, MAX_VOLTAGE_CHANGE / dv)
    if dphi > MAX_ANGLE_CHANGE:
        scale = min(scale, MAX_ANGLE_CHANGE / dphi)
    return scale


def newton_raphson(problem: "EquationSystemTemplate",
                   x0: Vec,
                   max_iter: int = 15,
                   stopping_criteria: NewtonRaphsonStoppingCriteriaType = NewtonRaphsonStoppingCriteriaType.UNIFORM,
                   eps: float = 1e-4,
                   scaling: StateVectorScalingMode = StateVectorScalingMode.NONE,
                   sparse_solver: SparseSolver = SparseSolver.SuperLU,
                   observer: Union["PowerFlowObserver", None] = None,
                   verbose: int = 0,
                   logger: Union[Logger, None] = None) -> NewtonRaphsonResult:
    """
    Newton-Raphson to solve f(x) = 0 over the active equations of an equation system:

        J(x) dx = f(x)
        x = x - dx

    :param problem: EquationSystemTemplate
    :param x0: initial state vector
    :param max_iter: maximum number of iterations
    :param stopping_criteria: NewtonRaphsonStoppingCriteriaType
    :param eps: per equation tolerance of the uniform criteria
    :param scaling: StateVectorScalingMode applied to every step
    :param sparse_solver: linear solver
    :param observer: PowerFlowObserver
    :param verbose: Display console information
    :param logger: Logger instance
    :return: NewtonRaphsonResult
    """
    if logger is None:
        logger = Logger()

    linear_solver = get_linear_solver(sparse_solver)
    tolerances = problem.get_tolerances(eps)
    is_v = problem.var_types == VariableType.BUS_V
    is_phi = problem.var_types == VariableType.BUS_PHI

    # evaluation of the initial point
    x = x0.copy()
    ret = problem.compute(x, compute_jac=True)
    error = ret.compute_f_error()
    iteration = 0

    if check_convergence(ret, stopping_criteria, eps, tolerances):
        status = SolverStatus.CONVERGED
    else:
        status = SolverStatus.RUNNING

    if verbose > 1:
        print(f'NR it {iteration}, error {error}')

    while status == SolverStatus.RUNNING:

        if iteration >= max_iter:
            status = SolverStatus.MAX_ITERATION_REACHED
            break

        # compute update step: J x Δx = Δf
        try:
            dx = linear_solver(ret.J, ret.f)
        except (RuntimeError, ValueError) as e:
            logger.add_error(f"Newton-Raphson's Jacobian is singular @iter {iteration}", value=str(e))
            status = SolverStatus.SOLVER_FAILED
            break

        if has_nan(dx):
            logger.add_error(f"Newton-Raphson's Jacobian is singular @iter {iteration}")
            status = SolverStatus.SOLVER_FAILED
            break

        iteration += 1

        if scaling == StateVectorScalingMode.MAX_VOLTAGE_CHANGE:
            x = x - max_voltage_change_scale(dx, is_v, is_phi) * dx
            ret = problem.compute(x, compute_jac=True)

        elif scaling == StateVectorScalingMode.LINE_SEARCH:
            mu = 1.0
            l_iter = 0
            x2 = x - dx
            ret2 = problem.compute(x2, compute_jac=False)
            while ret2.compute_f_error() > error and l_iter < LINE_SEARCH_MAX_ITER:
                mu *= 0.5
                x2 = x - mu * dx
                ret2 = problem.compute(x2, compute_jac=False)
                l_iter += 1
            x = x2
            ret = problem.compute(x, compute_jac=True)

        else:
            x = x - dx
            ret = problem.compute(x, compute_jac=True)

        error = ret.compute_f_error()

        if verbose > 1:
            print(f'NR it {iteration}, error {error}')

        if observer is not None:
            observer.after_iteration(iteration, x.copy(), error)

        if has_nan(ret.f):
            logger.add_error(f"Newton-Raphson diverged @iter {iteration}")
            status = SolverStatus.SOLVER_FAILED
            break

        if check_convergence(ret, stopping_criteria, eps, tolerances):
            status = SolverStatus.CONVERGED

    return NewtonRaphsonResult(status=status, iterations=iteration, norm=error, x=x)
