# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Union
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import SolverStatus


class PowerFlowObserver:
    """
    Read only callbacks of the power flow solver.
    The state vectors handed to the callbacks are copies.
    """

    def before_newton_raphson(self, outer_loop_iteration: int, x: Vec) -> None:
        pass

    def after_iteration(self, iteration: int, x: Vec, error: float) -> None:
        pass

    def after_newton_raphson(self, status: SolverStatus, iterations: int, error: float) -> None:
        pass

    def after_outer_loop(self, outer_loop_iteration: int, loop_name: str, status_name: str) -> None:
        pass


class ObserverList(PowerFlowObserver):
    """
    Forwards the callbacks to several observers
    """

    def __init__(self, observers: Union[List[PowerFlowObserver], None] = None):
        self.observers: List[PowerFlowObserver] = observers if observers is not None else list()

    def add(self, observer: PowerFlowObserver) -> None:
        self.observers.append(observer)

    def before_newton_raphson(self, outer_loop_iteration: int, x: Vec) -> None:
        for obs in self.observers:
            obs.before_newton_raphson(outer_loop_iteration, x.copy())

    def after_iteration(self, iteration: int, x: Vec, error: float) -> None:
        for obs in self.observers:
            obs.after_iteration(iteration, x.copy(), error)

    def after_newton_raphson(self, status: SolverStatus, iterations: int, error: float) -> None:
        for obs in self.observers:
            obs.after_newton_raphson(status, iterations, error)

    def after_outer_loop(self, outer_loop_iteration: int, loop_name: str, status_name: str) -> None:
        for obs in self.observers:
            obs.after_outer_loop(outer_loop_iteration, loop_name, status_name)
