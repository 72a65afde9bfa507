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
Track compaction for storage and rendering.
Douglas-Peucker simplification and Google encoded polylines.
"""
import math

import numpy as np

try:
    from .. import config
except ImportError:
    import config

from .geo import perpendicular_distance_m


def simplify_polyline(points, tolerance=None):
    """
    Douglas-Peucker line simplification.

    The farthest point from the chord first-last is kept when it lies more
    than `tolerance` meters away and both halves are simplified in turn;
    otherwise the run collapses to its endpoints. Runs are processed from
    an explicit stack, which keeps exactly the points the recursive
    formulation keeps.

    Args:
        points: sequence of fixes
        tolerance: meters (default: config.SIMPLIFY_TOLERANCE_M)

    Returns:
        list: kept points in original order; always starts and ends with
        the first and last input point. Inputs of 2 points or fewer are
        returned unchanged (as a new list).
    """
    if tolerance is None:
        tolerance = getattr(config, 'SIMPLIFY_TOLERANCE_M', 5.0)

    n = len(points)
    if n <= 2:
        return list(points)

    keep = np.zeros(n, dtype=bool)
    keep[0] = keep[-1] = True

    stack = [(0, n - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue

        max_distance = 0.0
        max_index = first
        for i in range(first + 1, last):
            distance = perpendicular_distance_m(points[i], points[first], points[last])
            if distance > max_distance:
                max_distance = distance
                max_index = i

        if max_distance > tolerance:
            keep[max_index] = True
            stack.append((max_index, last))
            stack.append((first, max_index))

    return [points[i] for i in np.flatnonzero(keep)]


def _round_half_away(value):
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def _encode_signed(num):
    num = ~(num << 1) if num < 0 else num << 1
    chunks = []
    while num >= 0x20:
        chunks.append(chr((0x20 | (num & 0x1f)) + 63))
        num >>= 5
    chunks.append(chr(num + 63))
    return ''.join(chunks)


def encode_polyline(points, precision=None):
    """
    Encodes fixes as a Google encoded polyline string.

    Args:
        points: sequence of fixes
        precision: coordinate multiplier (default: config.POLYLINE_PRECISION)

    Returns:
        str: encoded polyline ('' for no points)
    """
    if precision is None:
        precision = getattr(config, 'POLYLINE_PRECISION', 1e5)

    encoded = []
    prev_lat = prev_lon = 0
    for point in points:
        lat = _round_half_away(point.latitude * precision)
        lon = _round_half_away(point.longitude * precision)
        encoded.append(_encode_signed(lat - prev_lat))
        encoded.append(_encode_signed(lon - prev_lon))
        prev_lat, prev_lon = lat, lon
    return ''.join(encoded)
