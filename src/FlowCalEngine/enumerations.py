# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from enum import Enum


class DeviceType(Enum):
    """
    Device types
    """
    BusDevice = 'Bus'
    AreaDevice = 'Area'
    LineDevice = 'Line'
    Transformer2WDevice = 'Transformer'
    GeneratorDevice = 'Generator'
    LoadDevice = 'Load'
    ShuntDevice = 'Shunt'
    RatioTapChangerDevice = 'Ratio tap changer'
    PhaseTapChangerDevice = 'Phase tap changer'
    SimulationOptionsDevice = 'Simulation options'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return DeviceType[s]
        except KeyError:
            return s


class BranchSide(Enum):
    """
    Branch terminal
    """
    One = 1
    Two = 2

    def __str__(self):
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return BranchSide[s]
        except KeyError:
            return s


class SlackBusSelectionMode(Enum):
    """
    How the slack bus of each island is chosen
    """
    FIRST = 'First'
    MOST_MESHED = 'Most meshed'
    NAME = 'Name'
    LARGEST_GENERATOR = 'Largest generator'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SlackBusSelectionMode[s]
        except KeyError:
            return s


class VoltageInitMode(Enum):
    """
    Starting point of the Newton-Raphson state vector
    """
    UNIFORM = 'Uniform'
    DC_VALUES = 'DC values'
    PREVIOUS = 'Previous values'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return VoltageInitMode[s]
        except KeyError:
            return s


class TransformerVoltageControlMode(Enum):
    """
    Transformer voltage control outer loop flavour
    """
    AFTER_GENERATOR_VOLTAGE_CONTROL = 'After generator voltage control'
    INCREMENTAL_VOLTAGE_CONTROL = 'Incremental voltage control'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return TransformerVoltageControlMode[s]
        except KeyError:
            return s


class ShuntVoltageControlMode(Enum):
    """
    Shunt voltage control outer loop flavour
    """
    CONTINUOUS_WITH_DISCRETISATION = 'Continuous with discretisation'
    INCREMENTAL = 'Incremental'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return ShuntVoltageControlMode[s]
        except KeyError:
            return s


class PhaseShifterControlMode(Enum):
    """
    Phase shifter outer loop flavour
    """
    CONTINUOUS_WITH_DISCRETISATION = 'Continuous with discretisation'
    INCREMENTAL = 'Incremental'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return PhaseShifterControlMode[s]
        except KeyError:
            return s


class PhaseRegulationMode(Enum):
    """
    Regulation mode of a phase tap changer
    """
    FIXED_TAP = 'Fixed tap'
    CURRENT_LIMITER = 'Current limiter'
    ACTIVE_POWER_CONTROL = 'Active power control'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return PhaseRegulationMode[s]
        except KeyError:
            return s


class RatioRegulationMode(Enum):
    """
    Regulation mode of a ratio tap changer
    """
    VOLTAGE = 'Voltage'
    REACTIVE_POWER = 'Reactive power'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return RatioRegulationMode[s]
        except KeyError:
            return s


class SlackDistributionFailureBehavior(Enum):
    """
    What to do when the slack power cannot be fully distributed
    """
    LEAVE_ON_SLACK_BUS = 'Leave on slack bus'
    FAIL = 'Fail'
    THROW = 'Throw'
    DISTRIBUTE_ON_REFERENCE_GENERATOR = 'Distribute on reference generator'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SlackDistributionFailureBehavior[s]
        except KeyError:
            return s


class BalanceType(Enum):
    """
    Key used to share an active power mismatch
    """
    PROPORTIONAL_TO_GENERATION_P_MAX = 'Proportional to Pmax'
    PROPORTIONAL_TO_GENERATION_P = 'Proportional to P'
    PROPORTIONAL_TO_GENERATION_PARTICIPATION_FACTOR = 'Proportional to participation factor'
    PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN = 'Proportional to remaining margin'
    PROPORTIONAL_TO_LOAD = 'Proportional to load'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return BalanceType[s]
        except KeyError:
            return s


class NewtonRaphsonStoppingCriteriaType(Enum):
    """
    Newton-Raphson convergence test
    """
    UNIFORM = 'Uniform'
    PER_EQUATION_TYPE = 'Per equation type'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return NewtonRaphsonStoppingCriteriaType[s]
        except KeyError:
            return s


class StateVectorScalingMode(Enum):
    """
    Step limitation applied to the Newton-Raphson increment
    """
    NONE = 'None'
    MAX_VOLTAGE_CHANGE = 'Max voltage change'
    LINE_SEARCH = 'Line search'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return StateVectorScalingMode[s]
        except KeyError:
            return s


class SolverStatus(Enum):
    """
    Status of the solution of one island
    """
    RUNNING = 'Running'
    CONVERGED = 'Converged'
    MAX_ITERATION_REACHED = 'Max iteration reached'
    SOLVER_FAILED = 'Solver failed'
    NO_CALCULATION = 'No calculation'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SolverStatus[s]
        except KeyError:
            return s


class OuterLoopStatus(Enum):
    """
    Verdict of an outer loop check
    """
    STABLE = 'Stable'
    UNSTABLE = 'Unstable'
    FAILED = 'Failed'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class VariableType(Enum):
    """
    State variables of the AC equation system
    """
    BUS_V = 'v'
    BUS_PHI = 'phi'
    BRANCH_RHO1 = 'r1'
    BRANCH_ALPHA1 = 'a1'
    SHUNT_B = 'b'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class EquationType(Enum):
    """
    Equations of the AC equation system
    """
    BUS_TARGET_P = 'bus_p'
    BUS_TARGET_Q = 'bus_q'
    BUS_TARGET_V = 'bus_v'
    BUS_TARGET_V_WITH_SLOPE = 'bus_v_slope'
    BUS_TARGET_PHI = 'bus_phi'
    BRANCH_TARGET_P = 'branch_p'
    BRANCH_TARGET_Q = 'branch_q'
    BRANCH_TARGET_I = 'branch_i'
    BRANCH_TARGET_RHO1 = 'branch_rho1'
    BRANCH_TARGET_ALPHA1 = 'branch_alpha1'
    SHUNT_TARGET_B = 'shunt_b'
    DISTR_Q = 'distr_q'
    DISTR_RHO = 'distr_rho'
    DISTR_SHUNT_B = 'distr_b'
    AREA_TARGET_P = 'area_p'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class SparseSolver(Enum):
    """
    Sparse solvers to use
    """
    UMFPACK = 'UMFPACK'
    SuperLU = 'SuperLU'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SparseSolver[s]
        except KeyError:
            return s


class LogSeverity(Enum):
    """
    Enumeration of logs severities
    """
    Error = 'Error'
    Warning = 'Warning'
    Information = 'Information'
    Divergence = 'Divergence'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return LogSeverity[s]
        except KeyError:
            return s
