# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import time
from typing import List, Tuple, Union
import numpy as np

from FlowCalEngine.basic_structures import Vec, CxVec, Logger, ConvergenceReport
from FlowCalEngine.enumerations import (SolverStatus, OuterLoopStatus, TransformerVoltageControlMode,
                                        ShuntVoltageControlMode, PhaseShifterControlMode)
from FlowCalEngine.exceptions import SlackError
from FlowCalEngine.Devices.multi_circuit import MultiCircuit
from FlowCalEngine.DataStructures.numerical_circuit import NumericalCircuit
from FlowCalEngine.Compilers.circuit_to_data import compile_numerical_circuit
import FlowCalEngine.Topology.topology as tp
from FlowCalEngine.Utils.NumericalMethods.newton_raphson import newton_raphson, NewtonRaphsonResult
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_results import (PowerFlowResults, NumericPowerFlowResults,
                                                                    IslandResult)
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.ac_equation_system import AcEquationSystem, AcState
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.initializers import initialize_voltage
from FlowCalEngine.Simulations.PowerFlow.EquationSystem.observers import PowerFlowObserver
from FlowCalEngine.Simulations.PowerFlow.voltage_target_checker import fix_voltage_targets
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.monitoring_voltage import MonitoringVoltageOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.reactive_limits import ReactiveLimitsOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.transformer_voltage_control import (
    TransformerVoltageControlOuterLoop, IncrementalTransformerVoltageControlOuterLoop)
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.shunt_voltage_control import (
    ShuntVoltageControlOuterLoop, IncrementalShuntVoltageControlOuterLoop)
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.transformer_reactive_power_control import (
    IncrementalTransformerReactivePowerControlOuterLoop)
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.phase_control import (PhaseControlOuterLoop,
                                                                          IncrementalPhaseControlOuterLoop)
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.distributed_slack import DistributedSlackOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.area_interchange import (AreaInterchangeControlOuterLoop,
                                                                             get_area_interchange)


def get_outer_loops(options: PowerFlowOptions) -> List[OuterLoop]:
    """
    Outer loops enabled by the options, in their execution order
    :param options: PowerFlowOptions
    :return: list of OuterLoop
    """
    loops = list()

    if options.voltage_monitoring:
        loops.append(MonitoringVoltageOuterLoop())

    if options.use_reactive_limits:
        loops.append(ReactiveLimitsOuterLoop())

    if options.transformer_voltage_control:
        if options.transformer_voltage_control_mode == TransformerVoltageControlMode.AFTER_GENERATOR_VOLTAGE_CONTROL:
            loops.append(TransformerVoltageControlOuterLoop())
        elif options.transformer_voltage_control_mode == TransformerVoltageControlMode.INCREMENTAL_VOLTAGE_CONTROL:
            loops.append(IncrementalTransformerVoltageControlOuterLoop())
        else:
            raise ValueError(f"Unknown transformer voltage control mode {options.transformer_voltage_control_mode}")

    if options.shunt_voltage_control:
        if options.shunt_voltage_control_mode == ShuntVoltageControlMode.CONTINUOUS_WITH_DISCRETISATION:
            loops.append(ShuntVoltageControlOuterLoop())
        elif options.shunt_voltage_control_mode == ShuntVoltageControlMode.INCREMENTAL:
            loops.append(IncrementalShuntVoltageControlOuterLoop())
        else:
            raise ValueError(f"Unknown shunt voltage control mode {options.shunt_voltage_control_mode}")

    if options.transformer_reactive_power_control:
        loops.append(IncrementalTransformerReactivePowerControlOuterLoop())

    if options.phase_shifter_regulation:
        if options.phase_shifter_control_mode == PhaseShifterControlMode.CONTINUOUS_WITH_DISCRETISATION:
            loops.append(PhaseControlOuterLoop())
        elif options.phase_shifter_control_mode == PhaseShifterControlMode.INCREMENTAL:
            loops.append(IncrementalPhaseControlOuterLoop())
        else:
            raise ValueError(f"Unknown phase shifter control mode {options.phase_shifter_control_mode}")

    if options.area_interchange_control:
        loops.append(AreaInterchangeControlOuterLoop())
    elif options.distributed_slack:
        loops.append(DistributedSlackOuterLoop())

    return loops


def has_generator_voltage_control(nc: NumericalCircuit) -> bool:
    """
    Is there any generator able to control a voltage in the circuit?
    :param nc: NumericalCircuit
    :return: bool
    """
    gd = nc.generator_data
    return bool(np.any(gd.active & gd.voltage_control & (gd.regulated_bus > -1)))


def select_slack(nc: NumericalCircuit, options: PowerFlowOptions) -> int:
    """
    Select the slack bus of an island
    :param nc: NumericalCircuit of the island
    :param options: PowerFlowOptions
    :return: slack bus index in the island
    """
    gd = nc.generator_data
    return tp.select_slack_bus(mode=options.slack_bus_selection_mode,
                               bus_names=nc.bus_data.names,
                               vnom=nc.bus_data.Vnom,
                               branch_count=nc.get_bus_branch_count(),
                               gen_bus=gd.bus_idx,
                               gen_pmax=gd.pmax,
                               gen_active=gd.active,
                               slack_bus_name=options.slack_bus_name)


def run_newton_raphson(system: AcEquationSystem,
                       options: PowerFlowOptions,
                       observer: PowerFlowObserver,
                       outer_loop_iteration: int,
                       report: ConvergenceReport,
                       logger: Logger) -> NewtonRaphsonResult:
    """
    Run the Newton-Raphson from the current state of the equation system (warm start)
    :param system: AcEquationSystem, its state is updated
    :param options: PowerFlowOptions
    :param observer: PowerFlowObserver
    :param outer_loop_iteration: number of outer loop iterations so far
    :param report: ConvergenceReport to add the run to
    :param logger: Logger
    :return: NewtonRaphsonResult
    """
    observer.before_newton_raphson(outer_loop_iteration, system.x.copy())

    tic = time.time()
    res = newton_raphson(problem=system,
                         x0=system.x,
                         max_iter=options.max_iter,
                         stopping_criteria=options.stopping_criteria,
                         eps=options.conv_eps_per_eq,
                         scaling=options.state_vector_scaling,
                         sparse_solver=options.sparse_solver,
                         observer=observer,
                         verbose=options.verbose,
                         logger=logger)
    elapsed = time.time() - tic

    system.x = res.x
    report.add(method='Newton-Raphson',
               converged=res.converged,
               error=res.norm,
               elapsed=elapsed,
               iterations=res.iterations)

    observer.after_newton_raphson(res.status, res.iterations, res.norm)

    if options.verbose > 0:
        print(f"Newton-Raphson: {res.status} in {res.iterations} iterations, error {res.norm}")

    return res


def run_outer_loops(system: AcEquationSystem,
                    loops: List[OuterLoop],
                    contexts: List[OuterLoopContext],
                    options: PowerFlowOptions,
                    observer: PowerFlowObserver,
                    report: ConvergenceReport,
                    logger: Logger) -> Tuple[NewtonRaphsonResult, int, int, OuterLoopResult]:
    """
    Solve the equation system and run the outer loops until all of them are stable.

    Every loop is checked in turn and the Newton-Raphson is run again after each unstable
    check. The whole list is checked again while the outer loops trigger new Newton-Raphson
    iterations, until a run fails, a loop fails or the outer iterations budget is spent.

    :param system: AcEquationSystem with its initial state
    :param loops: OuterLoop list in execution order
    :param contexts: OuterLoopContext of every loop
    :param options: PowerFlowOptions
    :param observer: PowerFlowObserver
    :param report: ConvergenceReport
    :param logger: Logger
    :return: last NewtonRaphsonResult, Newton-Raphson iterations, outer loop iterations, last OuterLoopResult
    """
    max_outer = options.max_outer_loop_iter

    nr = run_newton_raphson(system, options, observer, 0, report, logger)
    nr_iterations = nr.iterations
    total = 0
    last = OuterLoopResult(OuterLoopStatus.STABLE)

    if not nr.converged:
        return nr, nr_iterations, total, last

    while True:
        old_nr_iterations = nr_iterations

        for loop, ctx in zip(loops, contexts):

            while True:
                ctx.total_iterations = total
                last = loop.check(ctx)
                observer.after_outer_loop(total, loop.name, last.status.name)

                if options.verbose > 0:
                    print(f"{loop.name} ({ctx.iteration}): {last}")

                if last.status != OuterLoopStatus.UNSTABLE:
                    break

                nr = run_newton_raphson(system, options, observer, total + 1, report, logger)
                nr_iterations += nr.iterations
                total += 1
                ctx.iteration += 1

                if not nr.converged or total >= max_outer:
                    break

            if not nr.converged or last.status == OuterLoopStatus.FAILED or total >= max_outer:
                break

        if (nr_iterations <= old_nr_iterations or not nr.converged
                or last.status == OuterLoopStatus.FAILED or total >= max_outer):
            break

    return nr, nr_iterations, total, last


def __split_reactive_power_into_devices(nc: NumericalCircuit, system: AcEquationSystem, Sbus: CxVec) -> Vec:
    """
    This function splits the reactive power delivered at the voltage controlling buses into
    reactive power per generator, proportionally to their reactive power ranges
    :param nc: NumericalCircuit
    :param system: AcEquationSystem
    :param Sbus: calculated power injections (p.u.)
    :return: reactive power of every generator (p.u.)
    """
    gd = nc.generator_data
    q = gd.q.copy()

    ctrl = system.gen_ctrl_mask
    if not np.any(ctrl):
        return q

    q_bus = system.get_q_controller(Sbus)
    q_range = np.where(ctrl, np.maximum(gd.qmax - gd.qmin, 0.0), 0.0)
    range_per_bus = np.bincount(gd.bus_idx[ctrl], weights=q_range[ctrl], minlength=nc.nbus)
    count_per_bus = np.bincount(gd.bus_idx[ctrl], minlength=nc.nbus)

    for k in np.where(ctrl)[0]:
        i = gd.bus_idx[k]
        if range_per_bus[i] > 0.0:
            q[k] = q_bus[i] * q_range[k] / range_per_bus[i]
        else:
            q[k] = q_bus[i] / count_per_bus[i]

    return q


def get_areas_interchange(nc: NumericalCircuit, st: AcState) -> Vec:
    """
    Interchange of the areas that are complete in the island
    :param nc: NumericalCircuit of the island
    :param st: AcState
    :return: interchange per area (p.u.), NaN for the areas not computable here
    """
    ad = nc.area_data
    nbus_area = ad.get_buses_count(nc.bus_data.areas)
    interchange = np.full(ad.nelm, np.nan)
    for a in range(ad.nelm):
        if nbus_area[a] > 0 and not ad.fragmented[a]:
            branches, sides = ad.get_boundaries(a)
            interchange[a] = float(np.sum(st.get_flow(branches, sides).real)) if len(branches) else 0.0
    return interchange


def get_no_calculation_results(nc: NumericalCircuit, message: str) -> NumericPowerFlowResults:
    """
    Results of an island that is not solved: undefined state and devices at their initial values
    :param nc: NumericalCircuit of the island
    :param message: reason
    :return: NumericPowerFlowResults
    """
    return NumericPowerFlowResults(V=np.full(nc.nbus, np.nan, dtype=complex),
                                   Sbus=np.full(nc.nbus, np.nan, dtype=complex),
                                   Sf=np.full(nc.nbr, np.nan, dtype=complex),
                                   St=np.full(nc.nbr, np.nan, dtype=complex),
                                   If=np.full(nc.nbr, np.nan),
                                   It=np.full(nc.nbr, np.nan),
                                   tap_module=nc.branch_data.r1.copy(),
                                   tap_angle=np.rad2deg(nc.branch_data.a1),
                                   rtc_position=nc.rtc_data.position.copy(),
                                   ptc_position=nc.ptc_data.position.copy(),
                                   shunt_section=nc.shunt_data.section.copy(),
                                   shunt_q=np.full(nc.nshunt, np.nan),
                                   gen_p=np.full(nc.ngen, np.nan),
                                   gen_q=np.full(nc.ngen, np.nan),
                                   load_p=np.full(nc.nload, np.nan),
                                   area_interchange=np.full(nc.narea, np.nan),
                                   island=IslandResult(status=SolverStatus.NO_CALCULATION, message=message))


def solve_island(nc: NumericalCircuit,
                 options: PowerFlowOptions,
                 logger: Logger,
                 observer: Union[PowerFlowObserver, None] = None) -> Tuple[NumericPowerFlowResults, ConvergenceReport]:
    """
    Run the power flow of one island with its outer loops
    :param nc: NumericalCircuit of the island (its devices are moved by the controls)
    :param options: PowerFlowOptions
    :param logger: Logger
    :param observer: PowerFlowObserver (optional)
    :return: NumericPowerFlowResults, ConvergenceReport
    """
    if observer is None:
        observer = PowerFlowObserver()

    report = ConvergenceReport()
    Sbase = nc.Sbase
    slack = select_slack(nc, options)

    if options.fix_voltage_targets:
        fix_voltage_targets(nc=nc, slack=slack, options=options, logger=logger)

    # raises ConsistencyError before any iteration
    system = AcEquationSystem(nc=nc, slack=slack, options=options, logger=logger)

    v, phi = initialize_voltage(nc=nc,
                                slack=slack,
                                mode=options.voltage_init_mode,
                                sparse_solver=options.sparse_solver,
                                logger=logger)
    system.x = system.get_x_from_network(v=v, phi=phi)

    loops = get_outer_loops(options)
    contexts = [OuterLoopContext(system=system, options=options, logger=logger) for _ in loops]
    for loop, ctx in zip(loops, contexts):
        loop.initialize(ctx)

    nr, nr_iterations, total, last = run_outer_loops(system=system,
                                                     loops=loops,
                                                     contexts=contexts,
                                                     options=options,
                                                     observer=observer,
                                                     report=report,
                                                     logger=logger)

    message = last.message
    if not nr.converged:
        status = nr.status
    elif last.status == OuterLoopStatus.FAILED:
        status = SolverStatus.SOLVER_FAILED
    elif total >= options.max_outer_loop_iter:
        status = SolverStatus.MAX_ITERATION_REACHED
        logger.add_warning("Maximum number of outer loop iterations reached",
                           device=str(nc.bus_data.names[slack]), value=total)
    else:
        status = SolverStatus.CONVERGED

    st = system.compute_state()
    bd = nc.branch_data
    vnom = nc.bus_data.Vnom

    Sf = st.Sf * Sbase
    St = st.St * Sbase
    If = nc.pu.current_from_pu(np.abs(st.If), vnom[bd.F])
    It = nc.pu.current_from_pu(np.abs(st.It), vnom[bd.T])

    # open terminals have no flow
    Sf[~bd.connected1] = np.nan
    St[~bd.connected2] = np.nan
    If[~bd.connected1] = np.nan
    It[~bd.connected2] = np.nan

    sd = nc.shunt_data
    v_abs = st.v
    shunt_q = -st.b_shunt * v_abs[sd.bus_idx] ** 2 * sd.active * Sbase

    area_names = nc.area_data.names
    island = IslandResult(status=status,
                          iterations=nr_iterations,
                          outer_loop_iterations=total,
                          outer_loop_status=last.status,
                          slack_bus_name=str(nc.bus_data.names[slack]),
                          slack_bus_idx=int(nc.bus_data.original_idx[slack]),
                          slack_p_mismatch=system.get_slack_mismatch(st.Sbus) * Sbase,
                          distributed_p=sum(ctx.distributed_p for ctx in contexts) * Sbase,
                          area_interchange={area_names[a]: p * Sbase
                                            for a, p in zip(system.area_idx, get_area_interchange(system))},
                          excluded_areas=[area_names[a] for a in system.excluded_areas],
                          message=message)

    results = NumericPowerFlowResults(V=st.V,
                                      Sbus=st.Sbus * Sbase,
                                      Sf=Sf,
                                      St=St,
                                      If=If,
                                      It=It,
                                      tap_module=st.r1,
                                      tap_angle=np.rad2deg(st.a1),
                                      rtc_position=nc.rtc_data.position.copy(),
                                      ptc_position=nc.ptc_data.position.copy(),
                                      shunt_section=sd.section.copy(),
                                      shunt_q=shunt_q,
                                      gen_p=nc.generator_data.p * Sbase,
                                      gen_q=__split_reactive_power_into_devices(nc, system, st.Sbus) * Sbase,
                                      load_p=nc.load_data.p * Sbase,
                                      area_interchange=get_areas_interchange(nc, st) * Sbase,
                                      island=island)

    return results, report


def multi_island_pf_nc(nc: NumericalCircuit,
                       options: PowerFlowOptions,
                       logger: Union[Logger, None] = None,
                       observer: Union[PowerFlowObserver, None] = None) -> PowerFlowResults:
    """
    Multiple islands power flow (this is the most generic power flow function)
    :param nc: NumericalCircuit instance
    :param options: PowerFlowOptions instance
    :param logger: logger
    :param observer: PowerFlowObserver (optional)
    :return: PowerFlowResults instance
    """
    if logger is None:
        logger = Logger()

    # declare results
    results = PowerFlowResults(bus_names=nc.bus_data.names,
                               bus_vnom=nc.bus_data.Vnom,
                               branch_names=nc.branch_data.names,
                               gen_names=nc.generator_data.names,
                               load_names=nc.load_data.names,
                               sh_names=nc.shunt_data.names,
                               rtc_names=nc.rtc_data.names,
                               ptc_names=nc.ptc_data.names,
                               area_names=nc.area_data.names)

    results.rtc_requested_position = nc.rtc_data.initial_position.copy()
    results.rtc_solved_position = nc.rtc_data.position.copy()
    results.ptc_requested_position = nc.ptc_data.initial_position.copy()
    results.ptc_solved_position = nc.ptc_data.position.copy()
    results.shunt_requested_section = nc.shunt_data.initial_section.copy()
    results.shunt_solved_section = nc.shunt_data.section.copy()

    # compute islands
    islands = nc.split_into_islands(ignore_single_node_islands=False, logger=logger)

    for i, island in enumerate(islands):

        if not has_generator_voltage_control(island):
            logger.add_info('No generator voltage control in the island', str(i))
            island_res = get_no_calculation_results(island, 'No generator voltage control')
            report = None
        else:
            try:
                island_res, report = solve_island(nc=island, options=options, logger=logger, observer=observer)
            except SlackError as e:
                logger.add_info('No slack nodes in the island', str(i), value=e.message)
                island_res = get_no_calculation_results(island, e.message)
                report = None

        results.apply_from_island(results=island_res,
                                  b_idx=island.bus_data.original_idx,
                                  br_idx=island.branch_data.original_idx,
                                  gen_idx=island.generator_data.original_idx,
                                  load_idx=island.load_data.original_idx,
                                  sh_idx=island.shunt_data.original_idx,
                                  rtc_idx=island.rtc_data.original_idx,
                                  ptc_idx=island.ptc_data.original_idx)

        if report is not None:
            results.convergence_reports.append(report)

    return results


def update_grid_state(multi_circuit: MultiCircuit, results: PowerFlowResults) -> None:
    """
    Write the solved state back to the devices.
    The requested tap positions and sections are kept, the solved ones are stored apart
    :param multi_circuit: MultiCircuit
    :param results: PowerFlowResults of the circuit
    """
    vm = results.Vm
    va = results.Va
    for i, bus in enumerate(multi_circuit.buses):
        if np.isfinite(vm[i]):
            bus.v = float(vm[i])
            bus.angle = float(va[i])

    for k, branch in enumerate(multi_circuit.get_branches()):
        branch.p1 = float(results.Sf[k].real)
        branch.q1 = float(results.Sf[k].imag)
        branch.p2 = float(results.St[k].real)
        branch.q2 = float(results.St[k].imag)

    rtc_list = [tr.ratio_tap_changer for tr in multi_circuit.transformers2w if tr.ratio_tap_changer is not None]
    for k, tc in enumerate(rtc_list):
        tc.solved_tap_position = int(results.rtc_solved_position[k])

    ptc_list = [tr.phase_tap_changer for tr in multi_circuit.transformers2w if tr.phase_tap_changer is not None]
    for k, tc in enumerate(ptc_list):
        tc.solved_tap_position = int(results.ptc_solved_position[k])

    for k, elm in enumerate(multi_circuit.shunts):
        elm.solved_section = int(results.shunt_solved_section[k])
        elm.q = float(results.shunt_q[k])

    for k, elm in enumerate(multi_circuit.generators):
        elm.p = float(results.gen_p[k])
        elm.q = float(results.gen_q[k])

    for k, elm in enumerate(multi_circuit.loads):
        elm.p_solved = float(results.load_p[k])


def multi_island_pf(multi_circuit: MultiCircuit,
                    options: PowerFlowOptions,
                    logger: Union[Logger, None] = None,
                    observer: Union[PowerFlowObserver, None] = None) -> PowerFlowResults:
    """
    Multiple islands power flow of a MultiCircuit, the solved state is written back to its devices
    :param multi_circuit: MultiCircuit instance
    :param options: PowerFlowOptions instance
    :param logger: list of events to add to
    :param observer: PowerFlowObserver (optional)
    :return: PowerFlowResults instance
    """
    if logger is None:
        logger = Logger()

    nc = compile_numerical_circuit(circuit=multi_circuit, options=options, logger=logger)

    res = multi_island_pf_nc(nc=nc, options=options, logger=logger, observer=observer)

    update_grid_state(multi_circuit=multi_circuit, results=res)

    return res
