#!/usr/bin/env python3
# TrailTrack - GPS track filtering and activity statistics
# Copyright (C) 2024 TrailTrack Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Tests for runtime option resolution.
"""
import os
import sys

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.errors import ConfigurationError
from core.options import (
    tracking_defaults,
    resolve_tracking_config,
    resolve_statistics_options,
    resolve_processing_options,
)
import config


def test_tracking_defaults():
    """Defaults mirror config.py."""
    cfg = resolve_tracking_config()
    assert cfg == tracking_defaults()
    assert cfg['max_speed_threshold'] == config.MAX_SPEED_THRESHOLD
    assert cfg['max_accuracy_threshold'] == config.MAX_ACCURACY_THRESHOLD
    assert cfg['kalman_filter_enabled'] is True


def test_overrides_merged():
    """Overrides replace only the named keys."""
    cfg = resolve_tracking_config({'max_speed_threshold': 12.5, 'accuracy': 'balanced'})
    assert cfg['max_speed_threshold'] == 12.5
    assert cfg['accuracy'] == 'balanced'
    assert cfg['interval_ms'] == config.DEFAULT_INTERVAL_MS


def test_defaults_not_shared():
    """Mutating a resolved config does not leak into the next one."""
    resolve_tracking_config()['max_speed_threshold'] = 1.0
    assert resolve_tracking_config()['max_speed_threshold'] == config.MAX_SPEED_THRESHOLD


@pytest.mark.parametrize("overrides", [
    {'max_speed': 10.0},
    {'max_speed_threshold': 0.0},
    {'max_speed_threshold': -5.0},
    {'max_speed_threshold': float('nan')},
    {'max_speed_threshold': True},
    {'max_speed_threshold': '50'},
    {'max_accuracy_threshold': 1e9},
    {'accuracy': 'extreme'},
    {'kalman_filter_enabled': 'yes'},
    {'interval_ms': 0},
])
def test_invalid_tracking_overrides(overrides):
    """Unknown keys, wrong types and out-of-range values raise."""
    with pytest.raises(ConfigurationError):
        resolve_tracking_config(overrides)


def test_distance_filter_allows_zero():
    """Zero distance filter means every fix."""
    assert resolve_tracking_config({'distance_filter_m': 0.0})['distance_filter_m'] == 0.0


@pytest.mark.parametrize("overrides", [
    {'smoothing_window': 0},
    {'smoothing_window': 5.0},
    {'elevation_threshold': -1.0},
    {'min_split_distance': 0.0},
    {'exclude_paused_time': 1},
])
def test_invalid_statistics_options(overrides):
    """Statistics options are validated the same way."""
    with pytest.raises(ConfigurationError):
        resolve_statistics_options(overrides)


def test_statistics_options():
    """Valid statistics overrides are kept."""
    opts = resolve_statistics_options({'smoothing_window': 7, 'elevation_threshold': 0.0})
    assert opts['smoothing_window'] == 7
    assert opts['elevation_threshold'] == 0.0
    assert opts['min_split_distance'] == config.MIN_SPLIT_DISTANCE


def test_processing_options():
    """Batch processing options default to the stricter stored-run thresholds."""
    opts = resolve_processing_options()
    assert opts['outlier_speed_threshold'] == config.BATCH_OUTLIER_SPEED_THRESHOLD
    with pytest.raises(ConfigurationError):
        resolve_processing_options({'simplify_tolerance': -1.0})
