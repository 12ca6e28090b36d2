# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from uuid import uuid4
from typing import List, Dict, Union
import FlowCalEngine.Devices as dev
from FlowCalEngine.Devices.types import BRANCH_TYPES


class MultiCircuit:
    """
    The concept of circuit should be easy enough to understand. It represents a set of
    nodes (:ref:`buses<Bus>`) and :ref:`Branches<Branch>` (lines, transformers).

    The MultiCircuit may contain islands, the power flow splits it into
    independent islands before solving. The buses and branches form a general graph:
    the branches reference their buses and the devices reference their bus, the
    compiled numerical structures address everything by integer index.

    .. code:: ipython3

        from FlowCalEngine.Devices.multi_circuit import MultiCircuit
        grid = MultiCircuit(name="My grid")

    """

    def __init__(self,
                 name: str = '',
                 Sbase: float = 100,
                 idtag: Union[str, None] = None):
        """
        class constructor
        :param name: name of the circuit
        :param Sbase: base power in MVA
        :param idtag: unique identifier
        """
        self.name: str = name

        self.idtag: str = uuid4().hex if idtag is None else idtag

        # Base power (MVA)
        self.Sbase: float = Sbase

        self._buses: List[dev.Bus] = list()
        self._lines: List[dev.Line] = list()
        self._transformers2w: List[dev.Transformer2W] = list()
        self._generators: List[dev.Generator] = list()
        self._loads: List[dev.Load] = list()
        self._shunts: List[dev.Shunt] = list()
        self._areas: List[dev.Area] = list()

    def __str__(self):
        return str(self.name)

    # ------------------------------------------------------------------------------------------------------------------
    # Buses
    # ------------------------------------------------------------------------------------------------------------------

    @property
    def buses(self) -> List[dev.Bus]:
        return self._buses

    def add_bus(self, obj: Union[None, dev.Bus] = None) -> dev.Bus:
        """
        Add a Bus object to the grid.
        :param obj: Bus object, created if None
        :return: Bus
        """
        if obj is None:
            obj = dev.Bus()

        self._buses.append(obj)

        return obj

    def get_bus_number(self) -> int:
        return len(self._buses)

    def get_bus_names(self) -> List[str]:
        return [b.name for b in self._buses]

    def get_bus_index_dict(self) -> Dict[int, int]:
        """
        Get the bus to index dictionary (by object identity)
        :return: {id(bus): int}
        """
        return {id(b): i for i, b in enumerate(self._buses)}

    def get_bus_by_name(self, name: str) -> Union[dev.Bus, None]:
        for bus in self._buses:
            if bus.name == name:
                return bus
        return None

    # ------------------------------------------------------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------------------------------------------------------

    @property
    def lines(self) -> List[dev.Line]:
        return self._lines

    @property
    def transformers2w(self) -> List[dev.Transformer2W]:
        return self._transformers2w

    def add_line(self, obj: dev.Line) -> dev.Line:
        """
        Add a line object
        :param obj: Line instance
        """
        self._lines.append(obj)
        return obj

    def add_transformer2w(self, obj: dev.Transformer2W) -> dev.Transformer2W:
        """
        Add a transformer object
        :param obj: Transformer2W instance
        """
        self._transformers2w.append(obj)
        return obj

    def get_branches(self) -> List[BRANCH_TYPES]:
        """
        Return all the branch objects
        This order must be respected during the compilation
        :return: lines + transformers 2w
        """
        return self._lines + self._transformers2w

    def get_branch_number(self) -> int:
        return len(self._lines) + len(self._transformers2w)

    def get_branch_names(self) -> List[str]:
        return [b.name for b in self.get_branches()]

    def get_branch_index_dict(self) -> Dict[int, int]:
        """
        Get the branch to index dictionary (by object identity)
        :return: {id(branch): int}
        """
        return {id(b): i for i, b in enumerate(self.get_branches())}

    def get_branch_by_name(self, name: str) -> Union[BRANCH_TYPES, None]:
        for branch in self.get_branches():
            if branch.name == name:
                return branch
        return None

    # ------------------------------------------------------------------------------------------------------------------
    # Injections
    # ------------------------------------------------------------------------------------------------------------------

    @property
    def generators(self) -> List[dev.Generator]:
        return self._generators

    @property
    def loads(self) -> List[dev.Load]:
        return self._loads

    @property
    def shunts(self) -> List[dev.Shunt]:
        return self._shunts

    def add_generator(self, bus: dev.Bus, api_obj: Union[None, dev.Generator] = None) -> dev.Generator:
        """
        Add a generator
        :param bus: Main bus
        :param api_obj: Generator object (optional)
        :return: Generator object (created if api_obj is None)
        """
        if api_obj is None:
            api_obj = dev.Generator()
        api_obj.bus = bus

        if api_obj.name == 'gen':
            api_obj.name += '@' + bus.name

        self._generators.append(api_obj)

        return api_obj

    def add_load(self, bus: dev.Bus, api_obj: Union[None, dev.Load] = None) -> dev.Load:
        """
        Add a load
        :param bus: Main bus
        :param api_obj: Load object (optional)
        :return: Load object (created if api_obj is None)
        """
        if api_obj is None:
            api_obj = dev.Load()
        api_obj.bus = bus

        if api_obj.name == 'Load':
            api_obj.name += '@' + bus.name

        self._loads.append(api_obj)

        return api_obj

    def add_shunt(self, bus: dev.Bus, api_obj: Union[None, dev.Shunt] = None) -> dev.Shunt:
        """
        Add a shunt
        :param bus: Main bus
        :param api_obj: Shunt object (optional)
        :return: Shunt object (created if api_obj is None)
        """
        if api_obj is None:
            api_obj = dev.Shunt()
        api_obj.bus = bus

        if api_obj.name == 'shunt':
            api_obj.name += '@' + bus.name

        self._shunts.append(api_obj)

        return api_obj

    def get_generator_names(self) -> List[str]:
        return [g.name for g in self._generators]

    def get_shunt_names(self) -> List[str]:
        return [s.name for s in self._shunts]

    # ------------------------------------------------------------------------------------------------------------------
    # Areas
    # ------------------------------------------------------------------------------------------------------------------

    @property
    def areas(self) -> List[dev.Area]:
        return self._areas

    def add_area(self, obj: dev.Area) -> dev.Area:
        """
        Add an area
        :param obj: Area
        :return: Area
        """
        self._areas.append(obj)
        return obj

    def get_area_names(self) -> List[str]:
        return [a.name for a in self._areas]

    def delete_area(self, obj: dev.Area) -> None:
        """
        Delete an area, its buses become area-less
        :param obj: Area
        """
        for bus in self._buses:
            if bus.area is obj:
                bus.area = None
        self._areas.remove(obj)
