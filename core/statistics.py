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
Activity statistics engine.
Distance, duration, pace, elevation gain/loss, per-kilometer splits and
maximum speed for an accepted track.

All functions are pure and stateless: they read an immutable point
sequence and return fresh values, so live and final statistics can be
computed concurrently without locking.
"""
import logging

import numpy as np

try:
    from .. import config
except ImportError:
    import config

from .geo import haversine_array
from .options import resolve_statistics_options
from .structures import (
    ActivityStatistics,
    Split,
    MS_TO_S,
    METERS_PER_KM,
    empty_statistics,
)

logger = logging.getLogger(__name__)


def _segment_distances(points):
    return haversine_array([p.latitude for p in points], [p.longitude for p in points])


def calculate_cumulative_distance(points):
    """
    Running distance at each point.

    Returns:
        np.ndarray: same length as points, starting at 0.0, nondecreasing
    """
    if not points:
        return np.zeros(0)
    return np.concatenate(([0.0], np.cumsum(_segment_distances(points))))


def calculate_total_distance(points):
    """Total great-circle distance over consecutive points, in meters."""
    if len(points) < 2:
        return 0.0
    return float(np.sum(_segment_distances(points)))


def calculate_duration(activity, exclude_paused_time=True):
    """
    Activity duration in seconds.

    The session collaborator supplies `duration_sec` already pause-adjusted;
    it is trusted when pauses are excluded. Otherwise, or when it is
    missing, the wall-clock span `ended_at_ms - started_at_ms` is used.
    Pauses are not inferred from gaps in the track.

    Args:
        activity: dict with optional 'started_at_ms', 'ended_at_ms', 'duration_sec'
        exclude_paused_time: prefer the pause-adjusted duration

    Returns:
        float: duration in seconds
    """
    activity = activity or {}
    started = activity.get('started_at_ms')
    ended = activity.get('ended_at_ms')
    stored = activity.get('duration_sec')

    if started is None or ended is None:
        return float(stored or 0.0)

    total = (ended - started) / MS_TO_S
    if not exclude_paused_time:
        return float(total)
    return float(stored or total)


def calculate_average_pace(distance_m, duration_sec):
    """Seconds per kilometer; 0.0 when distance or duration is not positive."""
    if not distance_m > 0 or not duration_sec > 0:
        return 0.0
    return float(duration_sec / distance_m * METERS_PER_KM)


def smooth_elevation_data(points, window_size=None):
    """
    Centered moving average of altitude.

    For each point carrying altitude, the mean altitude of the points in
    [i - window//2, i + window//2] that carry altitude. Points without
    altitude pass through untouched and contribute nothing to their
    neighbours' averages.

    Args:
        points: sequence of fixes
        window_size: points in the window (default: config.SMOOTHING_WINDOW)

    Returns:
        list of fixes with smoothed altitude (the input, unchanged, when the
        track is not longer than the window or the window is 1 or less)
    """
    if window_size is None:
        window_size = getattr(config, 'SMOOTHING_WINDOW', 5)
    if len(points) <= window_size or window_size <= 1:
        return list(points)

    half = window_size // 2
    has_alt = np.array([p.altitude is not None for p in points])
    altitudes = np.array([p.altitude if p.altitude is not None else 0.0 for p in points],
                         dtype=float)

    # Prefix sums give every window sum and member count in one pass
    alt_sums = np.concatenate(([0.0], np.cumsum(altitudes)))
    alt_counts = np.concatenate(([0], np.cumsum(has_alt)))
    n = len(points)
    starts = np.maximum(np.arange(n) - half, 0)
    ends = np.minimum(np.arange(n) + half, n - 1) + 1
    window_sums = alt_sums[ends] - alt_sums[starts]
    window_counts = alt_counts[ends] - alt_counts[starts]

    smoothed = []
    for i, point in enumerate(points):
        if not has_alt[i]:
            smoothed.append(point)
        else:
            smoothed.append(point._replace(altitude=float(window_sums[i] / window_counts[i])))
    return smoothed


def calculate_elevation_statistics(points, threshold=None):
    """
    Elevation gain/loss with a jitter threshold, plus raw ascent/descent.

    Walks consecutive altitudes of the points carrying altitude. Deltas with
    |delta| >= threshold count towards gain/loss; every delta counts towards
    ascent/descent.

    Args:
        points: sequence of fixes (normally already smoothed)
        threshold: meters (default: config.ELEVATION_THRESHOLD)

    Returns:
        dict: {
            'elev_gain_m', 'elev_loss_m', 'total_ascent', 'total_descent',
            'min_elevation', 'max_elevation'   # None with < 2 altitude points
        }
    """
    if threshold is None:
        threshold = getattr(config, 'ELEVATION_THRESHOLD', 3.0)

    altitudes = np.array([p.altitude for p in points if p.altitude is not None], dtype=float)
    if len(altitudes) < 2:
        return {
            'elev_gain_m': 0.0,
            'elev_loss_m': 0.0,
            'total_ascent': 0.0,
            'total_descent': 0.0,
            'min_elevation': None,
            'max_elevation': None,
        }

    deltas = np.diff(altitudes)
    significant = np.abs(deltas) >= threshold

    return {
        'elev_gain_m': float(np.sum(deltas[significant & (deltas > 0)])),
        'elev_loss_m': float(-np.sum(deltas[significant & (deltas < 0)])),
        'total_ascent': float(np.sum(deltas[deltas > 0])),
        'total_descent': float(-np.sum(deltas[deltas < 0])),
        'min_elevation': float(np.min(altitudes)),
        'max_elevation': float(np.max(altitudes)),
    }


def calculate_kilometer_splits(points, min_split_distance=None):
    """
    Per-kilometer splits.

    A split closes at the first point where the cumulative distance reaches
    max(km_index * 1000, min_split_distance). Each split covers the actual
    distance and time since the previous boundary, so it can be slightly
    longer than 1000 m; its pace is computed over that actual distance.

    Args:
        points: sequence of fixes in chronological order
        min_split_distance: meters (default: config.MIN_SPLIT_DISTANCE)

    Returns:
        list of Split ordered by km_index, starting at 1, without gaps
    """
    if min_split_distance is None:
        min_split_distance = getattr(config, 'MIN_SPLIT_DISTANCE', 950.0)
    split_length = getattr(config, 'SPLIT_DISTANCE_M', 1000.0)
    if len(points) < 2:
        return []

    cumulative = calculate_cumulative_distance(points)
    splits = []
    km_index = 1
    last_time = points[0].timestamp
    last_distance = 0.0

    for i in range(1, len(points)):
        current = float(cumulative[i])
        if current >= max(km_index * split_length, min_split_distance):
            current_time = points[i].timestamp
            duration = (current_time - last_time) / MS_TO_S
            distance = current - last_distance
            pace = duration / distance * METERS_PER_KM if distance > 0 else 0.0
            splits.append(Split(km_index=km_index, duration_sec=duration,
                                pace_sec_per_km=pace, distance_m=distance))
            last_time = current_time
            last_distance = current
            km_index += 1

    return splits


def calculate_max_speed(points):
    """
    Maximum speed in m/s.

    Device-reported speeds are used when any point carries one; otherwise
    the fastest consecutive-point distance/time is derived.
    """
    reported = [p.speed for p in points if p.speed is not None]
    if reported:
        return float(max(reported))
    if len(points) < 2:
        return 0.0

    distances = _segment_distances(points)
    dts = np.diff(np.array([p.timestamp for p in points], dtype=float)) / MS_TO_S
    moving = dts > 0
    if not np.any(moving):
        return 0.0
    return float(np.max(distances[moving] / dts[moving]))


def calculate_activity_statistics(points, activity=None, options=None):
    """
    Comprehensive statistics for an accepted track.

    Args:
        points: sequence of accepted fixes in chronological order
        activity: dict with session timing ('started_at_ms', 'ended_at_ms',
            'duration_sec'); see calculate_duration
        options: statistics option overrides (see core.options)

    Returns:
        ActivityStatistics; all zeros for fewer than 2 points

    Raises:
        ConfigurationError: for invalid options
    """
    opts = resolve_statistics_options(options)

    if len(points) < 2:
        logger.debug("Degenerate track (%d points), returning empty statistics", len(points))
        return empty_statistics()

    duration_sec = calculate_duration(activity, opts['exclude_paused_time'])
    distance_m = calculate_total_distance(points)
    avg_pace = calculate_average_pace(distance_m, duration_sec)

    smoothed = smooth_elevation_data(points, opts['smoothing_window'])
    elevation = calculate_elevation_statistics(smoothed, opts['elevation_threshold'])

    splits = calculate_kilometer_splits(points, opts['min_split_distance'])
    max_speed = calculate_max_speed(points)

    return ActivityStatistics(
        duration_sec=duration_sec,
        distance_m=distance_m,
        avg_pace_sec_per_km=avg_pace,
        elev_gain_m=elevation['elev_gain_m'],
        elev_loss_m=elevation['elev_loss_m'],
        split_km=tuple(splits),
        max_speed=max_speed,
        min_elevation=elevation['min_elevation'],
        max_elevation=elevation['max_elevation'],
        total_ascent=elevation['total_ascent'],
        total_descent=elevation['total_descent'],
    )


def statistics_to_dict(stats):
    """JSON-friendly view of ActivityStatistics."""
    result = stats._asdict()
    result['split_km'] = [split._asdict() for split in stats.split_km]
    return result
