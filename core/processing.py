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
Batch track processing for stored runs.

Stricter post-hoc cleanup than the live pipeline: outlier removal against
the last kept point, gap detection with linear interpolation, thresholded
elevation changes and encoded polylines.
"""
import logging

try:
    from .. import config
except ImportError:
    import config

from .geo import fix_distance_m, bearing_deg
from .options import resolve_processing_options
from .simplify import simplify_polyline, encode_polyline
from .statistics import calculate_total_distance
from .structures import SOURCE_GPS, MS_TO_S

logger = logging.getLogger(__name__)


def _instantaneous_speed(a, b):
    dt = (b.timestamp - a.timestamp) / MS_TO_S
    return fix_distance_m(a, b) / dt if dt > 0 else 0.0


def filter_outliers(points, speed_threshold=None, accuracy_threshold=None):
    """
    Drops points with poor accuracy or an implausible jump from the last kept point.

    Args:
        points: sequence of fixes in chronological order
        speed_threshold: m/s (default: config.BATCH_OUTLIER_SPEED_THRESHOLD)
        accuracy_threshold: meters (default: config.BATCH_OUTLIER_ACCURACY_THRESHOLD)

    Returns:
        tuple: (filtered points, number of dropped points)
    """
    if speed_threshold is None:
        speed_threshold = getattr(config, 'BATCH_OUTLIER_SPEED_THRESHOLD', 10.0)
    if accuracy_threshold is None:
        accuracy_threshold = getattr(config, 'BATCH_OUTLIER_ACCURACY_THRESHOLD', 100.0)

    if len(points) <= 1:
        return list(points), 0

    filtered = []
    outliers = 0
    for point in points:
        if point.accuracy > accuracy_threshold:
            outliers += 1
            continue
        if filtered and _instantaneous_speed(filtered[-1], point) > speed_threshold:
            outliers += 1
            continue
        filtered.append(point)

    if outliers:
        logger.debug(f"Dropped {outliers} outlier(s) out of {len(points)} points")
    return filtered, outliers


def detect_gaps(points, max_gap_sec=None, max_gap_m=None):
    """
    Finds consecutive pairs separated by too much time or distance.

    Returns:
        list of dict: {'start_index', 'end_index', 'duration', 'distance'}
        with duration in seconds and distance in meters
    """
    if max_gap_sec is None:
        max_gap_sec = getattr(config, 'GAP_MAX_DURATION_S', 30.0)
    if max_gap_m is None:
        max_gap_m = getattr(config, 'GAP_MAX_DISTANCE_M', 200.0)

    gaps = []
    for i in range(1, len(points)):
        prev, current = points[i - 1], points[i]
        duration = (current.timestamp - prev.timestamp) / MS_TO_S
        distance = fix_distance_m(prev, current)
        if duration > max_gap_sec or distance > max_gap_m:
            gaps.append({
                'start_index': i - 1,
                'end_index': i,
                'duration': duration,
                'distance': distance,
            })
    return gaps


def interpolate_between(start, end):
    """
    Synthetic points filling the time between two fixes.

    One point per INTERPOLATION_STEP_S seconds, placed linearly in degree
    space. Gaps shorter than INTERPOLATION_MIN_GAP_S or longer than
    INTERPOLATION_MAX_GAP_S are left empty. Synthetic points carry the
    average speed, the start-to-end bearing and a degraded accuracy.
    """
    min_gap = getattr(config, 'INTERPOLATION_MIN_GAP_S', 5.0)
    max_gap = getattr(config, 'INTERPOLATION_MAX_GAP_S', 120.0)
    step = getattr(config, 'INTERPOLATION_STEP_S', 5.0)
    accuracy_factor = getattr(config, 'INTERPOLATION_ACCURACY_FACTOR', 1.5)

    duration = (end.timestamp - start.timestamp) / MS_TO_S
    if duration < min_gap or duration > max_gap:
        return []

    count = int(duration // step) - 1
    if count <= 0:
        return []

    segments = count + 1
    lat_step = (end.latitude - start.latitude) / segments
    lon_step = (end.longitude - start.longitude) / segments
    time_step = (end.timestamp - start.timestamp) / segments
    has_altitude = start.altitude is not None and end.altitude is not None
    alt_step = (end.altitude - start.altitude) / segments if has_altitude else 0.0

    speed = fix_distance_m(start, end) / duration
    heading = bearing_deg(start.latitude, start.longitude, end.latitude, end.longitude)
    accuracy = max(start.accuracy, end.accuracy) * accuracy_factor

    return [
        start._replace(
            latitude=start.latitude + lat_step * i,
            longitude=start.longitude + lon_step * i,
            altitude=start.altitude + alt_step * i if has_altitude else None,
            accuracy=accuracy,
            speed=speed,
            heading=heading,
            timestamp=int(round(start.timestamp + time_step * i)),
            source=SOURCE_GPS,
        )
        for i in range(1, count + 1)
    ]


def interpolate_gaps(points, enabled=None):
    """
    Fills detected gaps with interpolated points.

    Returns:
        tuple: (points with interpolations inserted, number of inserted points)
    """
    if enabled is None:
        enabled = getattr(config, 'INTERPOLATION_ENABLED', True)
    if not enabled or len(points) <= 1:
        return list(points), 0

    gaps = detect_gaps(points)
    if not gaps:
        return list(points), 0

    result = []
    inserted = 0
    current = 0
    for gap in gaps:
        result.extend(points[current:gap['start_index'] + 1])
        synthetic = interpolate_between(points[gap['start_index']], points[gap['end_index']])
        result.extend(synthetic)
        inserted += len(synthetic)
        current = gap['end_index']
    result.extend(points[current:])

    return result, inserted


def calculate_elevation_changes(points, threshold=None):
    """
    Raw thresholded gain and loss over consecutive pairs carrying altitude.

    Unlike core.statistics, no smoothing is applied and a pair with a
    missing altitude on either side is skipped.

    Returns:
        tuple: (gain_m, loss_m)
    """
    if threshold is None:
        threshold = getattr(config, 'ELEVATION_THRESHOLD', 3.0)

    gain = loss = 0.0
    for prev, current in zip(points, points[1:]):
        if prev.altitude is None or current.altitude is None:
            continue
        change = current.altitude - prev.altitude
        if abs(change) >= threshold:
            if change > 0:
                gain += change
            else:
                loss -= change
    return gain, loss


def process_track_points(points, options=None):
    """
    Full cleanup of a stored track.

    Args:
        points: sequence of fixes in chronological order
        options: processing option overrides (see core.options.processing_defaults)

    Returns:
        dict: {
            'filtered_points', 'interpolated_points',
            'polyline', 'simplified_polyline',
            'elevation_gain', 'elevation_loss', 'total_distance',
            'outlier_count', 'interpolation_count'
        }

    Raises:
        ConfigurationError: for invalid options
    """
    opts = resolve_processing_options(options)

    if not points:
        return {
            'filtered_points': [],
            'interpolated_points': [],
            'polyline': '',
            'simplified_polyline': '',
            'elevation_gain': 0.0,
            'elevation_loss': 0.0,
            'total_distance': 0.0,
            'outlier_count': 0,
            'interpolation_count': 0,
        }

    filtered, outlier_count = filter_outliers(
        points, opts['outlier_speed_threshold'], opts['outlier_accuracy_threshold']
    )
    interpolated, interpolation_count = interpolate_gaps(filtered, opts['interpolation_enabled'])
    gain, loss = calculate_elevation_changes(interpolated, opts['elevation_threshold'])
    simplified = simplify_polyline(interpolated, opts['simplify_tolerance'])

    logger.info(f"Processed {len(points)} points: {outlier_count} outliers, "
                f"{interpolation_count} interpolated, {len(simplified)} after simplification")

    return {
        'filtered_points': filtered,
        'interpolated_points': interpolated,
        'polyline': encode_polyline(interpolated),
        'simplified_polyline': encode_polyline(simplified),
        'elevation_gain': gain,
        'elevation_loss': loss,
        'total_distance': calculate_total_distance(interpolated),
        'outlier_count': outlier_count,
        'interpolation_count': interpolation_count,
    }
