# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import uuid
from typing import List, Dict, Any, Union, Type
from FlowCalEngine.enumerations import DeviceType

# types that can be assigned to a registered property
PROP_TYPES = Union[Type[int], Type[bool], Type[float], Type[str], Any]


def parse_idtag(val: Union[str, None]) -> str:
    """
    idtag setter
    :param val: any string or None
    """
    if val is None:
        return uuid.uuid4().hex  # generate a proper UUIDv4 string
    elif isinstance(val, str):
        if len(val) == 0:
            return uuid.uuid4().hex
        else:
            return val
    else:
        raise ValueError(f"Not a valid idtag: {val}")


class DeviceProp:
    """
    Registered device property
    """

    def __init__(self,
                 prop_name: str,
                 units: str,
                 tpe: PROP_TYPES,
                 definition: str):
        """
        Device property
        :param prop_name: name of the attribute
        :param units: units of the property
        :param tpe: data type
        :param definition: Definition of the property
        """
        self.name = prop_name

        self.units = units

        self.tpe = tpe

        self.definition = definition

    def __str__(self):
        return self.name

    def __repr__(self):
        return "prop:" + self.name


class EditableDevice:
    """
    This is the main device class from which all inherit
    """

    def __init__(self,
                 name: str,
                 idtag: Union[str, None],
                 device_type: DeviceType):
        """
        Class to generalize any editable device
        :param name: Asset's name
        :param idtag: unique ID, if not provided it is generated
        :param device_type: DeviceType instance
        """

        self._idtag = parse_idtag(val=idtag)

        self.name: str = name

        self.device_type: DeviceType = device_type

        # list of registered properties
        self.property_list: List[DeviceProp] = list()

        self.registered_properties: Dict[str, DeviceProp] = dict()

        self.register(key='name', units='', tpe=str, definition='Name of the device.')

    def __str__(self) -> str:
        """
        Name of the object
        :return: string
        """
        return self.name

    def __repr__(self) -> str:
        return self.idtag + '::' + self.name

    @property
    def idtag(self) -> str:
        """
        idtag getter
        :return: string, hopefully an UUIDv4
        """
        return self._idtag

    @idtag.setter
    def idtag(self, val: Union[str, None]):
        self._idtag = parse_idtag(val)

    def register(self,
                 key: str,
                 tpe: PROP_TYPES,
                 units: str = '',
                 definition: str = ''):
        """
        Register property
        The property must exist
        :param key: key (attribute name)
        :param tpe: type of the attribute
        :param units: string with the declared units
        :param definition: Definition of the property
        """
        assert (hasattr(self, key))  # the property must exist, this avoids bugs when registering

        if key in self.registered_properties.keys():
            raise Exception(f"Property {key} already registered!")

        prop = DeviceProp(prop_name=key, units=units, tpe=tpe, definition=definition)

        self.registered_properties[key] = prop

        self.property_list.append(prop)

    def get_property_list(self) -> List[DeviceProp]:
        """
        Get the list of registered properties
        :return: list of DeviceProp
        """
        return self.property_list

    def to_dict(self) -> Dict[str, Any]:
        """
        Get the registered properties and their current values
        :return: {property name: value}
        """
        data = dict()
        for key, prop in self.registered_properties.items():
            val = getattr(self, key)
            if hasattr(val, 'name') and not isinstance(val, (int, float, str, bool)):
                data[key] = str(val)
            else:
                data[key] = val
        return data
