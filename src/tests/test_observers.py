# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np

from FlowCalEngine.enumerations import SolverStatus
from FlowCalEngine.Devices.test_networks import eurostag_network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.observers import PowerFlowObserver, ObserverList


class RecordingObserver(PowerFlowObserver):

    def __init__(self):
        self.before = list()
        self.iterations = list()
        self.after = list()
        self.outer_loops = list()

    def before_newton_raphson(self, outer_loop_iteration, x):
        self.before.append((outer_loop_iteration, x.copy()))

    def after_iteration(self, iteration, x, error):
        self.iterations.append((iteration, error))

    def after_newton_raphson(self, status, iterations, error):
        self.after.append((status, iterations, error))

    def after_outer_loop(self, outer_loop_iteration, loop_name, status_name):
        self.outer_loops.append((outer_loop_iteration, loop_name, status_name))


def test_power_flow_callbacks(eurostag_grid):
    """
    Every Newton-Raphson run is announced and closed, and every iteration is reported
    """
    obs = RecordingObserver()
    res = multi_island_pf(eurostag_grid, PowerFlowOptions(), observer=obs)

    assert res.converged
    assert len(obs.before) >= 1
    assert len(obs.before) == len(obs.after)
    assert obs.before[0][0] == 0
    assert len(obs.iterations) == sum(it for _, it, _ in obs.after)
    assert obs.after[-1][0] == SolverStatus.CONVERGED

    # the reactive limits and the distributed slack are checked at least once
    names = set(name for _, name, _ in obs.outer_loops)
    assert len(names) >= 2


def test_observer_list():
    """
    The observer list forwards every callback to all its observers with copies of the state
    """
    a = RecordingObserver()
    b = RecordingObserver()
    obs = ObserverList([a])
    obs.add(b)

    x = np.array([1.0, 2.0])
    obs.before_newton_raphson(3, x)
    obs.after_iteration(1, x, 0.5)
    obs.after_newton_raphson(SolverStatus.CONVERGED, 1, 1e-9)
    obs.after_outer_loop(0, 'Reactive limits', 'STABLE')

    for o in (a, b):
        assert o.before[0][0] == 3
        assert np.allclose(o.before[0][1], x)
        assert o.iterations == [(1, 0.5)]
        assert o.after == [(SolverStatus.CONVERGED, 1, 1e-9)]
        assert o.outer_loops == [(0, 'Reactive limits', 'STABLE')]

    a.before[0][1][0] = 10.0
    assert x[0] == 1.0
    assert b.before[0][1][0] == 1.0


class OverwritingObserver(PowerFlowObserver):

    def before_newton_raphson(self, outer_loop_iteration, x):
        x[:] = 0.5

    def after_iteration(self, iteration, x, error):
        x[:] = 0.5


def test_observer_cannot_change_the_solve(eurostag_grid):
    """
    Writing into the state received by an observer leaves the solution untouched
    """
    ref = multi_island_pf(eurostag_network(), PowerFlowOptions())
    res = multi_island_pf(eurostag_grid, PowerFlowOptions(), observer=OverwritingObserver())

    assert res.converged
    assert res.iterations == ref.iterations
    assert np.allclose(res.Vm, ref.Vm, atol=1e-6)
    assert np.allclose(res.Va, ref.Va, atol=1e-6)
