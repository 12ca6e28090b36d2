# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_results import (PowerFlowResults, NumericPowerFlowResults,
                                                                    IslandResult)
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf, multi_island_pf_nc, solve_island
from FlowCalEngine.Simulations.PowerFlow.power_flow_driver import PowerFlowDriver
from FlowCalEngine.Simulations.PowerFlow.voltage_target_checker import (check_voltage_targets, fix_voltage_targets,
                                                                        VoltageTargetCheckResult)
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.observers import PowerFlowObserver, ObserverList
