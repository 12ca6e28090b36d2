# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Any, Dict, Union

from FlowCalEngine.basic_structures import Vec, CxVec, IntVec, StrVec


class ResultsProperty:
    """
    ResultsProperty
    """

    def __init__(self, name: str, tpe: Union[type, Vec, CxVec, IntVec, StrVec], units: str = ''):
        """
        ResultsProperty
        :param name: name of the property
        :param tpe: type of the property (Vec, CxVec, ...)
        :param units: units of the values
        """
        self.name = name

        self.tpe = tpe

        self.units = units

    def __str__(self):
        return self.name


class ResultsTemplate:
    """
    ResultsTemplate
    """

    def __init__(self, name: str):
        """
        Results template class
        :param name: Name of the class
        """
        self.name: str = name

        self.data_variables: Dict[str, ResultsProperty] = dict()

    def register(self, name: str, tpe: Union[type, Vec, CxVec, IntVec, StrVec], units: str = ''):
        """
        Register a results variable
        :param name: name of the variable to register (is checked)
        :param tpe: type of the variable
        :param units: units of the values
        """

        assert (hasattr(self, name))  # the property must exist, this avoids bugs when registering

        self.data_variables[name] = ResultsProperty(name=name, tpe=tpe, units=units)

    def get_arrays(self) -> Dict[str, Any]:
        """
        Get the registered variables
        :return: {name: value}
        """
        return {name: getattr(self, name) for name in self.data_variables.keys()}

    def get_units(self, name: str) -> str:
        """
        Units of a registered variable
        :param name: name of the variable
        :return: units
        """
        return self.data_variables[name].units
