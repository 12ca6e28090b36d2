# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import time

from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.Devices.multi_circuit import MultiCircuit


class DriverTemplate:
    """
    Base of the simulation drivers: a grid, a logger, the results and the elapsed time
    """
    name = 'Template'

    def __init__(self, grid: MultiCircuit):
        """
        Constructor
        :param grid: MultiCircuit instance
        """
        self.grid: MultiCircuit = grid

        self.results = None

        self.elapsed = 0.0

        self.logger = Logger()

        self.__start = time.time()

    def tic(self, skip_logger=False):
        """
        Register start of time
        """
        self.__start = time.time()

        if not skip_logger:
            self.logger.add_info(msg=f"{self.name} started")

    def toc(self, skip_logger=False):
        """
        Register end of time
        :param skip_logger: skip logging this?
        """
        self.elapsed = time.time() - self.__start

        if not skip_logger:
            self.logger.add_info(msg=f"{self.name} ended", value=f"{self.elapsed:.4f} s")

    def run(self):
        raise NotImplementedError()
