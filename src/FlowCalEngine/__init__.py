# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from FlowCalEngine.__version__ import __FlowCalEngine_VERSION__
from FlowCalEngine.enumerations import *
from FlowCalEngine.exceptions import (PowerFlowError, SlackError, ConsistencyError,
                                      SlackDistributionFailureError)
from FlowCalEngine.basic_structures import Logger, ConvergenceReport
from FlowCalEngine.Devices import *
from FlowCalEngine.Simulations import *
from FlowCalEngine.Compilers.circuit_to_data import compile_numerical_circuit
