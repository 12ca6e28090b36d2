# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple
import numpy as np
from FlowCalEngine.basic_structures import Vec, IntVec, BoolVec, ObjVec
from FlowCalEngine.enumerations import EquationType, VariableType
from FlowCalEngine.exceptions import RectangularJacobianError
from FlowCalEngine.Utils.NumericalMethods.common import ConvexFunctionResult


class EquationSystemTemplate:
    """
    Equation system solved by the Newton-Raphson core.

    The variables and the equations are tables of (type, element) rows.
    All the equations that may ever be used are stored, and a mask tells
    which of them take part in the current problem.
    """

    def __init__(self, var_types: ObjVec, var_elements: IntVec, eq_types: ObjVec, eq_elements: IntVec):
        """

        :param var_types: VariableType of every state variable
        :param var_elements: element index of every state variable
        :param eq_types: EquationType of every equation
        :param eq_elements: element index of every equation
        """
        self.var_types: ObjVec = var_types
        self.var_elements: IntVec = var_elements

        self.eq_types: ObjVec = eq_types
        self.eq_elements: IntVec = eq_elements

        self.active: BoolVec = np.zeros(len(eq_types), dtype=bool)

        # state vector
        self.x: Vec = np.zeros(len(var_types), dtype=float)

        self._eq_index = {(tpe, int(elm)): i for i, (tpe, elm) in enumerate(zip(eq_types, eq_elements))}
        self._var_index = {(tpe, int(elm)): i for i, (tpe, elm) in enumerate(zip(var_types, var_elements))}

    @property
    def nvar(self) -> int:
        return len(self.var_types)

    @property
    def neq(self) -> int:
        return len(self.eq_types)

    def get_row(self, tpe: EquationType, elm: int) -> int:
        """
        Index of an equation among all the equations
        :param tpe: EquationType
        :param elm: element index
        :return: row index, -1 if the equation does not exist
        """
        return self._eq_index.get((tpe, int(elm)), -1)

    def get_column(self, tpe: VariableType, elm: int) -> int:
        """
        Index of a variable in the state vector
        :param tpe: VariableType
        :param elm: element index
        :return: column index, -1 if the variable does not exist
        """
        return self._var_index.get((tpe, int(elm)), -1)

    def get_active_rows(self) -> IntVec:
        return np.where(self.active)[0]

    def get_active_position(self, rows: IntVec) -> IntVec:
        """
        Position of the given equations among the active ones
        :param rows: equation rows (must be active)
        :return: positions in the reduced system
        """
        pos = np.cumsum(self.active) - 1
        return pos[rows]

    def get_active_equation_types(self) -> ObjVec:
        return self.eq_types[self.active]

    def get_active_equations(self) -> Tuple[ObjVec, IntVec]:
        return self.eq_types[self.active], self.eq_elements[self.active]

    def check_dimensions(self) -> None:
        """
        The active equations must match the state variables
        """
        n_active = int(np.sum(self.active))
        if n_active != self.nvar:
            raise RectangularJacobianError(rows=n_active, columns=self.nvar)

    def update(self) -> None:
        """
        Recompute the active equations from the control state
        """
        raise NotImplementedError()

    def get_tolerances(self, default_eps: float) -> Vec:
        """
        Tolerance of every active equation
        :param default_eps: tolerance to use
        :return: Vec
        """
        return np.full(int(np.sum(self.active)), default_eps)

    def compute(self, x: Vec, compute_jac: bool = True) -> ConvexFunctionResult:
        """
        Evaluate the active equations
        :param x: state vector
        :param compute_jac: compute the Jacobian as well
        :return: ConvexFunctionResult (f = calculated - target, J = df/dx)
        """
        raise NotImplementedError()
