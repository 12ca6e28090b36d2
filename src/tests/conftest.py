# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import pytest

from FlowCalEngine.Devices.multi_circuit import MultiCircuit
from FlowCalEngine.Devices.test_networks import eurostag_network


@pytest.fixture
def eurostag_grid() -> MultiCircuit:
    """
    Fresh copy of the 4-bus tutorial grid, the power flow writes its state back to the devices
    """
    return eurostag_network()
