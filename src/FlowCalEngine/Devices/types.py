# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Union
from FlowCalEngine.Devices.Branches.line import Line
from FlowCalEngine.Devices.Branches.transformer import Transformer2W

BRANCH_TYPES = Union[
    Line,
    Transformer2W
]
