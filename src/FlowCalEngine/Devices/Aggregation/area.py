# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union, List, TYPE_CHECKING
from FlowCalEngine.enumerations import DeviceType, BranchSide
from FlowCalEngine.Devices.Parents.editable_device import EditableDevice

if TYPE_CHECKING:
    from FlowCalEngine.Devices.types import BRANCH_TYPES


class AreaBoundary:
    """
    Terminal of a branch through which an area exchanges power.
    The flow counted is the one entering the branch at that terminal
    """

    def __init__(self, branch: BRANCH_TYPES, side: BranchSide = BranchSide.One):
        """

        :param branch: boundary branch
        :param side: terminal at which the exchanged flow is measured
        """
        self.branch = branch
        self.side = side

    def __str__(self):
        return f"{self.branch.name}:{self.side}"


class Area(EditableDevice):

    def __init__(self, name: str = 'Area', idtag: Union[str, None] = None,
                 interchange_target: Union[float, None] = None,
                 boundaries: Union[List[AreaBoundary], None] = None):
        """
        Area constructor
        :param name: name of the area
        :param idtag: UUID code
        :param interchange_target: scheduled net export of the area (MW), None if not controlled
        :param boundaries: list of AreaBoundary
        """
        EditableDevice.__init__(self,
                                name=name,
                                idtag=idtag,
                                device_type=DeviceType.AreaDevice)

        self.interchange_target: Union[float, None] = interchange_target

        self.boundaries: List[AreaBoundary] = boundaries if boundaries is not None else list()

        self.register(key='interchange_target', units='MW', tpe=float,
                      definition='Scheduled active power exported by the area')
        self.register(key='boundaries', units='', tpe=list, definition='Boundary branch terminals')

    def add_boundary(self, branch: BRANCH_TYPES, side: BranchSide = BranchSide.One) -> AreaBoundary:
        """
        Add a boundary terminal
        :param branch: branch
        :param side: terminal at which the exchanged flow is measured
        :return: AreaBoundary
        """
        boundary = AreaBoundary(branch=branch, side=side)
        self.boundaries.append(boundary)
        return boundary

    @property
    def is_interchange_controlled(self) -> bool:
        return self.interchange_target is not None
