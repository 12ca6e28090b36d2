# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union
from FlowCalEngine.enumerations import DeviceType
from FlowCalEngine.Devices.Parents.branch_parent import BranchParent
from FlowCalEngine.Devices.Substation.bus import Bus
from FlowCalEngine.Devices.Branches.tap_changer import RatioTapChanger, PhaseTapChanger, TapStep


class Transformer2W(BranchParent):
    """
    Two winding transformer.
    The series impedance and the magnetising admittance are referred to the side 2 voltage,
    the magnetising admittance sits entirely on side 1.
    A transformer may carry a ratio tap changer or a phase tap changer (not both).
    """

    def __init__(self,
                 bus_from: Bus = None,
                 bus_to: Bus = None,
                 name: str = 'Transformer',
                 idtag: Union[str, None] = None,
                 r: float = 1e-20,
                 x: float = 1e-5,
                 g: float = 0.0,
                 b: float = 0.0,
                 rated_u1: float = 1.0,
                 rated_u2: float = 1.0,
                 ratio_tap_changer: Union[RatioTapChanger, None] = None,
                 phase_tap_changer: Union[PhaseTapChanger, None] = None,
                 connected1: bool = True,
                 connected2: bool = True):
        """
        Transformer constructor
        :param bus_from: side 1 bus
        :param bus_to: side 2 bus
        :param name: name
        :param idtag: UUID code
        :param r: resistance at side 2 (Ohm)
        :param x: reactance at side 2 (Ohm)
        :param g: magnetising conductance (S)
        :param b: magnetising susceptance (S)
        :param rated_u1: rated voltage of the side 1 winding (kV)
        :param rated_u2: rated voltage of the side 2 winding (kV)
        :param ratio_tap_changer: RatioTapChanger (optional)
        :param phase_tap_changer: PhaseTapChanger (optional)
        :param connected1: side 1 connected?
        :param connected2: side 2 connected?
        """
        BranchParent.__init__(self,
                              name=name,
                              idtag=idtag,
                              bus_from=bus_from,
                              bus_to=bus_to,
                              r=r,
                              x=x,
                              connected1=connected1,
                              connected2=connected2,
                              device_type=DeviceType.Transformer2WDevice)

        if ratio_tap_changer is not None and phase_tap_changer is not None:
            raise ValueError(f"Transformer {name} cannot have a ratio and a phase tap changer at the same time")

        self.G = float(g)
        self.B = float(b)
        self.rated_u1 = float(rated_u1)
        self.rated_u2 = float(rated_u2)

        self.ratio_tap_changer: Union[RatioTapChanger, None] = ratio_tap_changer
        self.phase_tap_changer: Union[PhaseTapChanger, None] = phase_tap_changer

        self.register(key='G', units='S', tpe=float, definition='Magnetising conductance')
        self.register(key='B', units='S', tpe=float, definition='Magnetising susceptance')
        self.register(key='rated_u1', units='kV', tpe=float, definition='Side 1 rated voltage')
        self.register(key='rated_u2', units='kV', tpe=float, definition='Side 2 rated voltage')

    @property
    def tap_changer(self) -> Union[RatioTapChanger, PhaseTapChanger, None]:
        """
        The tap changer in use, if any
        """
        if self.ratio_tap_changer is not None:
            return self.ratio_tap_changer
        return self.phase_tap_changer

    def get_tap_step(self, use_initial_tap_position: bool = False) -> TapStep:
        """
        Get the tap step the power flow starts from
        :param use_initial_tap_position: start from the last solved position
        :return: TapStep
        """
        tc = self.tap_changer
        if tc is None:
            return TapStep()
        return tc.get_step(tc.starting_position(use_initial_tap_position))
