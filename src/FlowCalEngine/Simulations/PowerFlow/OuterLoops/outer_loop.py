# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Any, Dict, Union
from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.enumerations import OuterLoopStatus
from FlowCalEngine.DataStructures.numerical_circuit import NumericalCircuit
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions


class OuterLoopResult:
    """
    Outcome of an outer loop check
    """

    def __init__(self, status: OuterLoopStatus, message: str = ""):
        """

        :param status: OuterLoopStatus
        :param message: explanation, mandatory for the FAILED status
        """
        self.status = status
        self.message = message

    def __str__(self):
        if self.message:
            return f"{self.status}: {self.message}"
        return str(self.status)


class OuterLoopContext:
    """
    Run state of one outer loop.
    A new context is created for every power flow run, so nothing survives between runs.
    """

    def __init__(self, system: AcEquationSystem, options: PowerFlowOptions, logger: Union[Logger, None] = None):
        """

        :param system: AcEquationSystem of the island
        :param options: PowerFlowOptions
        :param logger: Logger
        """
        self.system: AcEquationSystem = system
        self.nc: NumericalCircuit = system.nc
        self.options: PowerFlowOptions = options
        self.logger: Logger = logger if logger is not None else Logger()

        # number of Newton-Raphson runs requested by this loop
        self.iteration: int = 0

        # number of Newton-Raphson runs requested by all the loops
        self.total_iterations: int = 0

        # free storage of the loop
        self.data: Dict[str, Any] = dict()

        # active power moved by this loop (p.u.)
        self.distributed_p: float = 0.0


class OuterLoop:
    """
    Control applied between Newton-Raphson runs.

    initialize is called once before the first Newton-Raphson run, check after every converged run.
    A check that changes the control state must call system.update() and return UNSTABLE.
    """

    name = 'Outer loop'

    def initialize(self, ctx: OuterLoopContext) -> None:
        """
        Set the initial control state
        :param ctx: OuterLoopContext
        """
        pass

    def check(self, ctx: OuterLoopContext) -> OuterLoopResult:
        """
        Inspect the converged state and change the control state if needed
        :param ctx: OuterLoopContext
        :return: OuterLoopResult
        """
        raise NotImplementedError()

    def __str__(self):
        return self.name

    def __repr__(self):
        return self.name
