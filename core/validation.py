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
Track validation module.
Single point for all track data-quality checks run before statistics.
Errors invalidate the track; warnings are advisory only.
"""
import logging

# Import config for threshold values
try:
    from .. import config
    from ..locales.strings import VALIDATION_ERRORS, VALIDATION_WARNINGS
except ImportError:
    import config
    from locales.strings import VALIDATION_ERRORS, VALIDATION_WARNINGS

from .geo import fix_distance_m
from .structures import MS_TO_S

logger = logging.getLogger(__name__)


def validate_track_points(points):
    """
    Unified function for validating a track before computing statistics.

    Args:
        points: sequence of fixes

    Returns:
        dict: {
            'is_valid': bool - False if any error was found
            'errors': list of str
            'warnings': list of str
        }
    """
    errors = []
    warnings = []

    if not points:
        errors.append(VALIDATION_ERRORS['no_points'])
        return {'is_valid': False, 'errors': errors, 'warnings': warnings}

    if len(points) < 2:
        errors.append(VALIDATION_ERRORS['too_few_points'])
        return {'is_valid': False, 'errors': errors, 'warnings': warnings}

    # 1. Coordinates and accuracy
    _check_points(points, errors, warnings)

    # 2. Elevation coverage
    _check_elevation_coverage(points, warnings)

    # 3. Speed plausibility
    _check_speeds(points, warnings)

    # 4. Time ordering
    _check_time_order(points, warnings)

    if errors:
        logger.info(f"Track failed validation with {len(errors)} error(s)")

    return {'is_valid': not errors, 'errors': errors, 'warnings': warnings}


def _check_points(points, errors, warnings):
    """Check coordinate ranges and reported accuracy."""
    max_accuracy = getattr(config, 'VALIDATION_MAX_ACCURACY_M', 100.0)

    for i, point in enumerate(points):
        if abs(point.latitude) > 90 or abs(point.longitude) > 180:
            errors.append(VALIDATION_ERRORS['invalid_coordinates'].format(
                index=i, lat=point.latitude, lon=point.longitude
            ))
        if point.accuracy is not None and point.accuracy > max_accuracy:
            warnings.append(VALIDATION_WARNINGS['poor_accuracy'].format(
                index=i, accuracy=point.accuracy
            ))


def _check_elevation_coverage(points, warnings):
    """Check how many points carry altitude."""
    min_ratio = getattr(config, 'VALIDATION_MIN_ELEVATION_RATIO', 0.5)
    with_elevation = sum(1 for p in points if p.altitude is not None)
    if with_elevation < len(points) * min_ratio:
        warnings.append(VALIDATION_WARNINGS['low_elevation_coverage'].format(ratio=min_ratio))


def _check_speeds(points, warnings):
    """Count points whose reported or implied speed is implausible."""
    threshold = getattr(config, 'VALIDATION_MAX_SPEED_MS', 50.0)
    suspicious = 0

    for i, point in enumerate(points):
        if point.speed is not None and point.speed > threshold:
            suspicious += 1
            continue
        if i == 0:
            continue
        prev = points[i - 1]
        dt = (point.timestamp - prev.timestamp) / MS_TO_S
        if dt > 0 and fix_distance_m(prev, point) / dt > threshold:
            suspicious += 1

    if suspicious > 0:
        warnings.append(VALIDATION_WARNINGS['suspicious_speed'].format(
            count=suspicious, threshold=threshold
        ))


def _check_time_order(points, warnings):
    """Check timestamps strictly increase."""
    for i in range(1, len(points)):
        if points[i].timestamp <= points[i - 1].timestamp:
            warnings.append(VALIDATION_WARNINGS['not_chronological'].format(index=i))
