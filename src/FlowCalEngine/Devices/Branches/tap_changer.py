# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import List, Union, TYPE_CHECKING
import numpy as np
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import DeviceType, BranchSide, RatioRegulationMode, PhaseRegulationMode
from FlowCalEngine.Devices.Parents.editable_device import EditableDevice

if TYPE_CHECKING:
    from FlowCalEngine.Devices.Substation.bus import Bus
    from FlowCalEngine.Devices.types import BRANCH_TYPES


class TapStep:
    """
    One position of a tap changer
    """

    def __init__(self, rho: float = 1.0, alpha: float = 0.0,
                 r: float = 0.0, x: float = 0.0, g: float = 0.0, b: float = 0.0):
        """

        :param rho: ratio multiplier of the rated ratio (p.u.)
        :param alpha: phase shift (deg)
        :param r: resistance variation (%)
        :param x: reactance variation (%)
        :param g: conductance variation (%)
        :param b: susceptance variation (%)
        """
        self.rho = float(rho)
        self.alpha = float(alpha)
        self.r = float(r)
        self.x = float(x)
        self.g = float(g)
        self.b = float(b)

    def __repr__(self):
        return f"TapStep(rho={self.rho}, alpha={self.alpha})"


class TapChanger(EditableDevice):
    """
    Discrete tap changer, the positions are 0-based indices of the steps list
    """

    def __init__(self,
                 name: str,
                 steps: Union[List[TapStep], None],
                 tap_position: int,
                 regulating: bool,
                 target_deadband: float,
                 device_type: DeviceType):
        """

        :param name: name
        :param steps: list of TapStep
        :param tap_position: current (requested) position
        :param regulating: is the regulation on?
        :param target_deadband: full deadband of the regulated quantity
        :param device_type: DeviceType
        """
        EditableDevice.__init__(self, name=name, idtag=None, device_type=device_type)

        self.steps: List[TapStep] = steps if steps is not None else [TapStep()]

        self.tap_position = int(tap_position)

        # position found by the last power flow (None if never solved)
        self.solved_tap_position: Union[int, None] = None

        self.regulating = bool(regulating)

        self.target_deadband = float(target_deadband)

        if not (0 <= self.tap_position < len(self.steps)):
            raise ValueError(f"Tap position {self.tap_position} out of range [0, {len(self.steps) - 1}]")

        self.register(key='tap_position', units='', tpe=int, definition='Requested tap position')
        self.register(key='solved_tap_position', units='', tpe=int, definition='Tap position found by the power flow')
        self.register(key='regulating', units='', tpe=bool, definition='Is the regulation enabled?')
        self.register(key='target_deadband', units='', tpe=float, definition='Regulation deadband (full width)')

    @property
    def low_position(self) -> int:
        return 0

    @property
    def high_position(self) -> int:
        return len(self.steps) - 1

    def get_step(self, position: Union[int, None] = None) -> TapStep:
        """
        Get a tap step
        :param position: position, the current one if None
        :return: TapStep
        """
        return self.steps[self.tap_position if position is None else position]

    def get_rho_array(self) -> Vec:
        return np.array([s.rho for s in self.steps], dtype=float)

    def get_alpha_array(self) -> Vec:
        return np.array([s.alpha for s in self.steps], dtype=float)

    def starting_position(self, use_initial_tap_position: bool) -> int:
        """
        Position from which a power flow starts
        :param use_initial_tap_position: start from the last solved position, when there is one
        :return: position
        """
        if use_initial_tap_position and self.solved_tap_position is not None:
            return self.solved_tap_position
        return self.tap_position


class RatioTapChanger(TapChanger):
    """
    Ratio tap changer, regulates a bus voltage or a branch reactive power
    """

    def __init__(self,
                 steps: Union[List[TapStep], None] = None,
                 tap_position: int = 0,
                 regulating: bool = False,
                 regulation_mode: RatioRegulationMode = RatioRegulationMode.VOLTAGE,
                 target_v: float = 0.0,
                 target_q: float = 0.0,
                 target_deadband: float = 0.0,
                 regulated_bus: Union[Bus, None] = None,
                 regulated_side: BranchSide = BranchSide.Two,
                 name: str = 'RTC'):
        """

        :param steps: list of TapStep
        :param tap_position: current position
        :param regulating: is the regulation on?
        :param regulation_mode: RatioRegulationMode
        :param target_v: voltage target (kV)
        :param target_q: reactive power target (MVAr) at the regulated side
        :param target_deadband: deadband (kV or MVAr)
        :param regulated_bus: regulated bus (voltage mode), the side 2 bus if None
        :param regulated_side: side whose reactive power is regulated (reactive power mode)
        :param name: name
        """
        TapChanger.__init__(self, name=name, steps=steps, tap_position=tap_position, regulating=regulating,
                            target_deadband=target_deadband, device_type=DeviceType.RatioTapChangerDevice)

        self.regulation_mode = regulation_mode
        self.target_v = float(target_v)
        self.target_q = float(target_q)
        self.regulated_bus: Union[Bus, None] = regulated_bus
        self.regulated_side = regulated_side

        self.register(key='regulation_mode', units='', tpe=RatioRegulationMode, definition='Regulation mode')
        self.register(key='target_v', units='kV', tpe=float, definition='Voltage target')
        self.register(key='target_q', units='MVAr', tpe=float, definition='Reactive power target')
        self.register(key='regulated_bus', units='', tpe=DeviceType.BusDevice, definition='Regulated bus')
        self.register(key='regulated_side', units='', tpe=BranchSide, definition='Regulated side')


class PhaseTapChanger(TapChanger):
    """
    Phase tap changer, regulates the active power or limits the current of a branch
    """

    def __init__(self,
                 steps: Union[List[TapStep], None] = None,
                 tap_position: int = 0,
                 regulating: bool = False,
                 regulation_mode: PhaseRegulationMode = PhaseRegulationMode.FIXED_TAP,
                 regulation_value: float = 0.0,
                 target_deadband: float = 0.0,
                 regulated_branch: Union[BRANCH_TYPES, None] = None,
                 regulated_side: BranchSide = BranchSide.One,
                 name: str = 'PTC'):
        """

        :param steps: list of TapStep
        :param tap_position: current position
        :param regulating: is the regulation on?
        :param regulation_mode: PhaseRegulationMode
        :param regulation_value: active power target (MW) or current limit (A)
        :param target_deadband: deadband (MW)
        :param regulated_branch: branch whose terminal is regulated, the owner if None
        :param regulated_side: regulated terminal of that branch
        :param name: name
        """
        TapChanger.__init__(self, name=name, steps=steps, tap_position=tap_position, regulating=regulating,
                            target_deadband=target_deadband, device_type=DeviceType.PhaseTapChangerDevice)

        self.regulation_mode = regulation_mode
        self.regulation_value = float(regulation_value)
        self.regulated_branch: Union[BRANCH_TYPES, None] = regulated_branch
        self.regulated_side = regulated_side

        self.register(key='regulation_mode', units='', tpe=PhaseRegulationMode, definition='Regulation mode')
        self.register(key='regulation_value', units='MW or A', tpe=float, definition='Regulation target')
        self.register(key='regulated_branch', units='', tpe=DeviceType.LineDevice, definition='Regulated branch')
        self.register(key='regulated_side', units='', tpe=BranchSide, definition='Regulated terminal')
