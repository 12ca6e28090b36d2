# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest

from FlowCalEngine.basic_structures import Logger, ConvergenceReport
from FlowCalEngine.enumerations import SlackBusSelectionMode
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_worker import multi_island_pf


def test_logger():
    """
    Entries are counted by severity, searchable, mergeable and exported as a table
    """
    logger = Logger()
    logger.add_info("Bus switched PV to PQ", device='NGEN', value=1.2)
    logger.add_warning("Non plausible target voltage", device='GEN', device_class='Generator')
    logger.add_error("Newton-Raphson diverged @iter 3")

    other = Logger()
    other.add_warning("Area with boundaries out of the island, interchange control disabled")
    logger += other

    assert len(logger) == 4
    assert logger.info_count() == 1
    assert logger.warning_count() == 2
    assert logger.error_count() == 1
    assert len(logger.find('PV to PQ')) == 1
    assert len(logger.find('not logged')) == 0

    df = logger.to_df()
    assert df.shape == (4, 6)
    assert list(df['Device'].values[:2]) == ['NGEN', 'GEN']
    assert df['Value'].values[0] == '1.2'


def test_convergence_report():
    report = ConvergenceReport()
    assert not report.converged()
    assert report.error() == 0.0

    report.add(method='Newton-Raphson', converged=True, error=1e-4, elapsed=0.5, iterations=3)
    report.add(method='Newton-Raphson', converged=True, error=1e-9, elapsed=0.25, iterations=2)

    assert report.converged()
    assert report.error() == 1e-9
    assert report.iterations() == 5
    assert np.isclose(report.elapsed(), 0.75, atol=1e-12)
    assert report.to_dataframe().shape == (2, 5)


def test_options_properties():
    """
    The options expose their registered properties and values
    """
    options = PowerFlowOptions(max_iter=30)
    data = options.to_dict()

    assert data['max_iter'] == 30
    assert data['slack_bus_selection_mode'] == str(SlackBusSelectionMode.MOST_MESHED)
    assert 'use_reactive_limits' in [p.name for p in options.get_property_list()]

    with pytest.raises(Exception):
        options.register(key='max_iter', tpe=int)


def test_results_units(eurostag_grid):
    """
    The registered result arrays carry their units
    """
    res = multi_island_pf(eurostag_grid, PowerFlowOptions())

    arrays = res.get_arrays()
    assert len(arrays['gen_p']) == 1
    assert res.get_units('Sf') == 'MVA'
    assert res.get_units('If') == 'A'
