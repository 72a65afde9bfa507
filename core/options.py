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
Runtime configuration resolution.

Defaults come from config.py; overrides are merged on top and validated.
Anything unknown, mistyped or outside sane bounds raises ConfigurationError
instead of being silently replaced.
"""
import math

try:
    from .. import config
except ImportError:
    import config

from .errors import ConfigurationError


def tracking_defaults():
    """Default tracking configuration (fresh dict on every call)."""
    return {
        'accuracy': getattr(config, 'DEFAULT_ACCURACY_MODE', 'high'),
        'interval_ms': getattr(config, 'DEFAULT_INTERVAL_MS', 1000),
        'distance_filter_m': getattr(config, 'DEFAULT_DISTANCE_FILTER_M', 0.0),
        'adaptive_throttling': getattr(config, 'DEFAULT_ADAPTIVE_THROTTLING', True),
        'kalman_filter_enabled': getattr(config, 'KALMAN_FILTER_ENABLED', True),
        'outlier_detection_enabled': getattr(config, 'OUTLIER_DETECTION_ENABLED', True),
        'max_speed_threshold': getattr(config, 'MAX_SPEED_THRESHOLD', 50.0),
        'max_accuracy_threshold': getattr(config, 'MAX_ACCURACY_THRESHOLD', 100.0),
    }


def statistics_defaults():
    """Default statistics options (fresh dict on every call)."""
    return {
        'smoothing_window': getattr(config, 'SMOOTHING_WINDOW', 5),
        'elevation_threshold': getattr(config, 'ELEVATION_THRESHOLD', 3.0),
        'min_split_distance': getattr(config, 'MIN_SPLIT_DISTANCE', 950.0),
        'exclude_paused_time': getattr(config, 'EXCLUDE_PAUSED_TIME', True),
    }


def check_number(name, value, bounds, integer=False):
    """
    Validates a numeric option against (min, max, min_inclusive) bounds.

    Args:
        name: option name (used in the error message)
        value: value to validate
        bounds: tuple (min_value, max_value, min_inclusive); max is inclusive
        integer: require an int

    Returns:
        the value, unchanged

    Raises:
        ConfigurationError: if the value is mistyped or out of bounds
    """
    # bool is an int subclass but never a sensible threshold
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"'{name}' must be a number, got {value!r}")
    if integer and not isinstance(value, int):
        raise ConfigurationError(f"'{name}' must be an integer, got {value!r}")
    if not math.isfinite(value):
        raise ConfigurationError(f"'{name}' must be finite, got {value!r}")

    min_value, max_value, min_inclusive = bounds
    too_low = value < min_value if min_inclusive else value <= min_value
    if too_low or value > max_value:
        opening = '[' if min_inclusive else '('
        raise ConfigurationError(
            f"'{name}'={value!r} outside sane range {opening}{min_value}, {max_value}]"
        )
    return value


def check_flag(name, value):
    if not isinstance(value, bool):
        raise ConfigurationError(f"'{name}' must be a boolean, got {value!r}")
    return value


def _merge(defaults, overrides, kind):
    resolved = dict(defaults)
    if not overrides:
        return resolved
    unknown = sorted(set(overrides) - set(defaults))
    if unknown:
        raise ConfigurationError(f"Unknown {kind} option(s): {', '.join(unknown)}")
    resolved.update(overrides)
    return resolved


def resolve_tracking_config(overrides=None):
    """
    Merge overrides over the tracking defaults and validate the result.

    Args:
        overrides: dict with any of the keys returned by tracking_defaults()

    Returns:
        dict: complete, validated tracking configuration

    Raises:
        ConfigurationError
    """
    cfg = _merge(tracking_defaults(), overrides, 'tracking')

    modes = getattr(config, 'ACCURACY_MODES', ('high', 'balanced', 'low'))
    if cfg['accuracy'] not in modes:
        raise ConfigurationError(
            f"'accuracy' must be one of {', '.join(modes)}, got {cfg['accuracy']!r}"
        )
    check_number('interval_ms', cfg['interval_ms'], config.INTERVAL_MS_BOUNDS)
    check_number('distance_filter_m', cfg['distance_filter_m'], config.DISTANCE_FILTER_M_BOUNDS)
    check_number('max_speed_threshold', cfg['max_speed_threshold'], config.MAX_SPEED_THRESHOLD_BOUNDS)
    check_number('max_accuracy_threshold', cfg['max_accuracy_threshold'],
                 config.MAX_ACCURACY_THRESHOLD_BOUNDS)
    for flag in ('adaptive_throttling', 'kalman_filter_enabled', 'outlier_detection_enabled'):
        check_flag(flag, cfg[flag])
    return cfg


def resolve_statistics_options(overrides=None):
    """
    Merge overrides over the statistics defaults and validate the result.

    Raises:
        ConfigurationError
    """
    opts = _merge(statistics_defaults(), overrides, 'statistics')
    check_number('smoothing_window', opts['smoothing_window'], config.SMOOTHING_WINDOW_BOUNDS,
                 integer=True)
    check_number('elevation_threshold', opts['elevation_threshold'],
                 config.ELEVATION_THRESHOLD_BOUNDS)
    check_number('min_split_distance', opts['min_split_distance'],
                 config.MIN_SPLIT_DISTANCE_BOUNDS)
    check_flag('exclude_paused_time', opts['exclude_paused_time'])
    return opts


def processing_defaults():
    """Default batch track processing options (fresh dict on every call)."""
    return {
        'outlier_speed_threshold': getattr(config, 'BATCH_OUTLIER_SPEED_THRESHOLD', 10.0),
        'outlier_accuracy_threshold': getattr(config, 'BATCH_OUTLIER_ACCURACY_THRESHOLD', 100.0),
        'interpolation_enabled': getattr(config, 'INTERPOLATION_ENABLED', True),
        'simplify_tolerance': getattr(config, 'SIMPLIFY_TOLERANCE_M', 5.0),
        'elevation_threshold': getattr(config, 'ELEVATION_THRESHOLD', 3.0),
    }


def resolve_processing_options(overrides=None):
    """
    Merge overrides over the batch processing defaults and validate the result.

    Raises:
        ConfigurationError
    """
    opts = _merge(processing_defaults(), overrides, 'processing')
    check_number('outlier_speed_threshold', opts['outlier_speed_threshold'],
                 config.MAX_SPEED_THRESHOLD_BOUNDS)
    check_number('outlier_accuracy_threshold', opts['outlier_accuracy_threshold'],
                 config.MAX_ACCURACY_THRESHOLD_BOUNDS)
    check_number('simplify_tolerance', opts['simplify_tolerance'], config.SIMPLIFY_TOLERANCE_BOUNDS)
    check_number('elevation_threshold', opts['elevation_threshold'],
                 config.ELEVATION_THRESHOLD_BOUNDS)
    check_flag('interpolation_enabled', opts['interpolation_enabled'])
    return opts
