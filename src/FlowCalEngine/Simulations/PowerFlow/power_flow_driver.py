# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union, List
import numpy as np

from FlowCalEngine.basic_structures import ConvergenceReport
from FlowCalEngine.Devices.multi_circuit import MultiCircuit
from FlowCalEngine.Simulations.driver_template import DriverTemplate
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.observers import PowerFlowObserver


class PowerFlowDriver(DriverTemplate):
    name = 'Power Flow'

    """
    Power flow wrapper
    """

    def __init__(self, grid: MultiCircuit,
                 options: Union[PowerFlowOptions, None] = None,
                 observer: Union[PowerFlowObserver, None] = None):
        """
        PowerFlowDriver class constructor
        :param grid: MultiCircuit instance
        :param options: PowerFlowOptions instance (optional)
        :param observer: PowerFlowObserver (optional)
        """

        DriverTemplate.__init__(self, grid=grid)

        # Options to use
        self.options: PowerFlowOptions = PowerFlowOptions() if options is None else options

        self.observer: Union[PowerFlowObserver, None] = observer

        self.results: Union[PowerFlowResults, None] = None

        self.convergence_reports: List[ConvergenceReport] = list()

    def add_report(self) -> None:
        """
        Add a report of the results (in-place)
        """
        for i, elm in enumerate(self.grid.generators):
            q = self.results.gen_q[i]
            if np.isfinite(q) and not (elm.min_q - 1e-6 <= q <= elm.max_q + 1e-6):
                self.logger.add_warning("Generator Q out of bounds",
                                        device=elm.name,
                                        value=q,
                                        expected_value=f"[{elm.min_q}, {elm.max_q}]",
                                        device_class='Generator')

        for island in self.results.islands:
            if island.message != '':
                self.logger.add_info(island.message, device=island.slack_bus_name)

    def run(self) -> None:
        """
        Run the power flow of the grid
        """
        self.tic()

        self.results = multi_island_pf(multi_circuit=self.grid,
                                       options=self.options,
                                       logger=self.logger,
                                       observer=self.observer)
        self.convergence_reports = self.results.convergence_reports

        self.add_report()

        self.toc()

        if self.options.verbose > 0:
            for report in self.convergence_reports:
                print(report.to_dataframe())

        # log the convergence of every island
        for i, report in enumerate(self.convergence_reports):
            self.logger.add_info(f"Island {i} converged" if report.converged() else f"Island {i} did not converge",
                                 value=report.error(),
                                 expected_value=report.iterations())
