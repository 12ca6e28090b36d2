# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Union
from FlowCalEngine.enumerations import (SlackBusSelectionMode, BalanceType, VoltageInitMode,
                                        NewtonRaphsonStoppingCriteriaType, StateVectorScalingMode,
                                        TransformerVoltageControlMode, ShuntVoltageControlMode,
                                        PhaseShifterControlMode, SlackDistributionFailureBehavior, SparseSolver)
from FlowCalEngine.Simulations.options_template import OptionsTemplate


class PowerFlowOptions(OptionsTemplate):
    """
    Power flow options
    """

    def __init__(self,
                 slack_bus_selection_mode: SlackBusSelectionMode = SlackBusSelectionMode.MOST_MESHED,
                 slack_bus_name: Union[str, None] = None,
                 distributed_slack: bool = True,
                 balance_type: BalanceType = BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX,
                 area_interchange_control: bool = False,
                 area_interchange_p_max_mismatch: float = 2.0,
                 slack_bus_p_max_mismatch: float = 1.0,
                 voltage_init_mode: VoltageInitMode = VoltageInitMode.UNIFORM,
                 max_iter: int = 15,
                 max_outer_loop_iter: int = 20,
                 stopping_criteria: NewtonRaphsonStoppingCriteriaType = NewtonRaphsonStoppingCriteriaType.UNIFORM,
                 conv_eps_per_eq: float = 1e-4,
                 max_active_power_mismatch: float = 1e-2,
                 max_reactive_power_mismatch: float = 1e-2,
                 max_voltage_mismatch: float = 1e-4,
                 max_angle_mismatch: float = 1e-5,
                 max_ratio_mismatch: float = 1e-5,
                 max_susceptance_mismatch: float = 1e-4,
                 state_vector_scaling: StateVectorScalingMode = StateVectorScalingMode.NONE,
                 use_reactive_limits: bool = True,
                 transformer_voltage_control: bool = False,
                 transformer_voltage_control_mode: TransformerVoltageControlMode =
                 TransformerVoltageControlMode.AFTER_GENERATOR_VOLTAGE_CONTROL,
                 transformer_reactive_power_control: bool = False,
                 shunt_voltage_control: bool = False,
                 shunt_voltage_control_mode: ShuntVoltageControlMode =
                 ShuntVoltageControlMode.CONTINUOUS_WITH_DISCRETISATION,
                 phase_shifter_regulation: bool = False,
                 phase_shifter_control_mode: PhaseShifterControlMode =
                 PhaseShifterControlMode.CONTINUOUS_WITH_DISCRETISATION,
                 slack_distribution_failure_behavior: SlackDistributionFailureBehavior =
                 SlackDistributionFailureBehavior.LEAVE_ON_SLACK_BUS,
                 generator_voltage_control_min_nominal_voltage: float = -1.0,
                 min_plausible_target_voltage: float = 0.8,
                 max_plausible_target_voltage: float = 1.2,
                 use_initial_tap_position: bool = False,
                 voltage_monitoring: bool = True,
                 fix_voltage_targets: bool = False,
                 controlled_bus_neighbors_exploration_depth: int = 2,
                 target_voltage_plausibility_indicator_threshold: float = 75.0,
                 controller_bus_acceptable_voltage_drop: float = 0.1,
                 sparse_solver: SparseSolver = SparseSolver.SuperLU,
                 verbose: int = 0):
        """
        Power flow options class
        :param slack_bus_selection_mode: how the slack bus of every island is chosen
        :param slack_bus_name: name of the slack bus when slack_bus_selection_mode is NAME
        :param distributed_slack: distribute the slack active power mismatch over the participating units
        :param balance_type: participation key of the slack distribution
        :param area_interchange_control: drive the areas interchange to their target
        :param area_interchange_p_max_mismatch: tolerance of the area interchange (MW)
        :param slack_bus_p_max_mismatch: tolerance of the slack bus active power mismatch (MW)
        :param voltage_init_mode: starting point of the Newton-Raphson
        :param max_iter: Maximum number of iterations for the power flow numerical method
        :param max_outer_loop_iter: Maximum number of iterations for the controls outer loop
        :param stopping_criteria: Newton-Raphson stopping criteria
        :param conv_eps_per_eq: per equation tolerance of the uniform stopping criteria
        :param max_active_power_mismatch: P tolerance of the per equation type criteria (MW)
        :param max_reactive_power_mismatch: Q tolerance of the per equation type criteria (MVAr)
        :param max_voltage_mismatch: V tolerance of the per equation type criteria (p.u.)
        :param max_angle_mismatch: angle tolerance of the per equation type criteria (rad)
        :param max_ratio_mismatch: ratio tolerance of the per equation type criteria (p.u.)
        :param max_susceptance_mismatch: susceptance tolerance of the per equation type criteria (p.u.)
        :param state_vector_scaling: step limiting heuristic applied to the Newton-Raphson correction
        :param use_reactive_limits: switch the generators from PV to PQ at their reactive power limits
        :param transformer_voltage_control: enable the transformers voltage regulation
        :param transformer_voltage_control_mode: transformer voltage control algorithm
        :param transformer_reactive_power_control: enable the transformers reactive power regulation
        :param shunt_voltage_control: enable the shunts voltage regulation
        :param shunt_voltage_control_mode: shunt voltage control algorithm
        :param phase_shifter_regulation: enable the phase shifters regulation
        :param phase_shifter_control_mode: phase shifter control algorithm
        :param slack_distribution_failure_behavior: what to do when the slack cannot be distributed
        :param generator_voltage_control_min_nominal_voltage: generators on buses below this nominal voltage (kV)
                                                               stop regulating while the transformers regulate,
                                                               negative to derive it from the transformers
        :param min_plausible_target_voltage: lowest plausible voltage target (p.u.)
        :param max_plausible_target_voltage: highest plausible voltage target (p.u.)
        :param use_initial_tap_position: start from the tap positions found by the last power flow
        :param voltage_monitoring: switch the standby generators to voltage control out of their voltage band
        :param fix_voltage_targets: disable the voltage controls with incompatible or unrealistic targets before solving
        :param controlled_bus_neighbors_exploration_depth: number of branches explored around a controlled bus
                                                           to find the other controlled buses
        :param target_voltage_plausibility_indicator_threshold: highest target voltage difference over transfer
                                                                impedance of two controlled buses (p.u.)
        :param controller_bus_acceptable_voltage_drop: highest estimated voltage deviation of a remote
                                                       controller bus (p.u.)
        :param sparse_solver: linear solver of the Jacobian systems
        :param verbose: Print additional details in the console (0: no details, 1: some details, 2: all details)
        """
        OptionsTemplate.__init__(self, name='PowerFlowOptions')

        self.slack_bus_selection_mode = slack_bus_selection_mode

        self.slack_bus_name = slack_bus_name

        self.distributed_slack = distributed_slack

        self.balance_type = balance_type

        self.area_interchange_control = area_interchange_control

        self.area_interchange_p_max_mismatch = area_interchange_p_max_mismatch

        self.slack_bus_p_max_mismatch = slack_bus_p_max_mismatch

        self.voltage_init_mode = voltage_init_mode

        self.max_iter = max_iter

        self.max_outer_loop_iter = max_outer_loop_iter

        self.stopping_criteria = stopping_criteria

        self.conv_eps_per_eq = conv_eps_per_eq

        self.max_active_power_mismatch = max_active_power_mismatch

        self.max_reactive_power_mismatch = max_reactive_power_mismatch

        self.max_voltage_mismatch = max_voltage_mismatch

        self.max_angle_mismatch = max_angle_mismatch

        self.max_ratio_mismatch = max_ratio_mismatch

        self.max_susceptance_mismatch = max_susceptance_mismatch

        self.state_vector_scaling = state_vector_scaling

        self.use_reactive_limits = use_reactive_limits

        self.transformer_voltage_control = transformer_voltage_control

        self.transformer_voltage_control_mode = transformer_voltage_control_mode

        self.transformer_reactive_power_control = transformer_reactive_power_control

        self.shunt_voltage_control = shunt_voltage_control

        self.shunt_voltage_control_mode = shunt_voltage_control_mode

        self.phase_shifter_regulation = phase_shifter_regulation

        self.phase_shifter_control_mode = phase_shifter_control_mode

        self.slack_distribution_failure_behavior = slack_distribution_failure_behavior

        self.generator_voltage_control_min_nominal_voltage = generator_voltage_control_min_nominal_voltage

        self.min_plausible_target_voltage = min_plausible_target_voltage

        self.max_plausible_target_voltage = max_plausible_target_voltage

        self.use_initial_tap_position = use_initial_tap_position

        self.voltage_monitoring = voltage_monitoring

        self.fix_voltage_targets = fix_voltage_targets

        self.controlled_bus_neighbors_exploration_depth = controlled_bus_neighbors_exploration_depth

        self.target_voltage_plausibility_indicator_threshold = target_voltage_plausibility_indicator_threshold

        self.controller_bus_acceptable_voltage_drop = controller_bus_acceptable_voltage_drop

        self.sparse_solver = sparse_solver

        self.verbose = verbose

        self.register(key="slack_bus_selection_mode", tpe=SlackBusSelectionMode)
        self.register(key="slack_bus_name", tpe=str)
        self.register(key="distributed_slack", tpe=bool)
        self.register(key="balance_type", tpe=BalanceType)
        self.register(key="area_interchange_control", tpe=bool)
        self.register(key="area_interchange_p_max_mismatch", tpe=float, units='MW')
        self.register(key="slack_bus_p_max_mismatch", tpe=float, units='MW')
        self.register(key="voltage_init_mode", tpe=VoltageInitMode)
        self.register(key="max_iter", tpe=int)
        self.register(key="max_outer_loop_iter", tpe=int)
        self.register(key="stopping_criteria", tpe=NewtonRaphsonStoppingCriteriaType)
        self.register(key="conv_eps_per_eq", tpe=float)
        self.register(key="max_active_power_mismatch", tpe=float, units='MW')
        self.register(key="max_reactive_power_mismatch", tpe=float, units='MVAr')
        self.register(key="max_voltage_mismatch", tpe=float, units='p.u.')
        self.register(key="max_angle_mismatch", tpe=float, units='rad')
        self.register(key="max_ratio_mismatch", tpe=float, units='p.u.')
        self.register(key="max_susceptance_mismatch", tpe=float, units='p.u.')
        self.register(key="state_vector_scaling", tpe=StateVectorScalingMode)
        self.register(key="use_reactive_limits", tpe=bool)
        self.register(key="transformer_voltage_control", tpe=bool)
        self.register(key="transformer_voltage_control_mode", tpe=TransformerVoltageControlMode)
        self.register(key="transformer_reactive_power_control", tpe=bool)
        self.register(key="shunt_voltage_control", tpe=bool)
        self.register(key="shunt_voltage_control_mode", tpe=ShuntVoltageControlMode)
        self.register(key="phase_shifter_regulation", tpe=bool)
        self.register(key="phase_shifter_control_mode", tpe=PhaseShifterControlMode)
        self.register(key="slack_distribution_failure_behavior", tpe=SlackDistributionFailureBehavior)
        self.register(key="generator_voltage_control_min_nominal_voltage", tpe=float, units='kV')
        self.register(key="min_plausible_target_voltage", tpe=float, units='p.u.')
        self.register(key="max_plausible_target_voltage", tpe=float, units='p.u.')
        self.register(key="use_initial_tap_position", tpe=bool)
        self.register(key="voltage_monitoring", tpe=bool)
        self.register(key="fix_voltage_targets", tpe=bool)
        self.register(key="controlled_bus_neighbors_exploration_depth", tpe=int)
        self.register(key="target_voltage_plausibility_indicator_threshold", tpe=float, units='p.u.')
        self.register(key="controller_bus_acceptable_voltage_drop", tpe=float, units='p.u.')
        self.register(key="sparse_solver", tpe=SparseSolver)
        self.register(key="verbose", tpe=int)
