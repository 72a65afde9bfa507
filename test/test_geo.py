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
Tests for geospatial primitives: haversine distance, bearing,
point-to-segment distance and route bounds.
"""
import math
import os
import sys

import numpy as np
import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.geo import (
    haversine_m,
    haversine_array,
    fix_distance_m,
    bearing_deg,
    perpendicular_distance_m,
    calculate_route_bounds,
    calculate_route_center,
    wrap_longitude,
)
from core.structures import make_fix

# One degree of arc on the mean-radius sphere
METERS_PER_DEGREE = 6371000.0 * math.pi / 180.0


def point(lat, lon, timestamp=0):
    return make_fix(lat, lon, 5.0, timestamp)


def test_haversine_identical_points_is_zero():
    """Distance from a point to itself is exactly zero."""
    assert haversine_m(47.3769, 8.5417, 47.3769, 8.5417) == 0.0


def test_haversine_one_degree_latitude():
    """One degree along a meridian equals R * pi / 180."""
    assert haversine_m(0.0, 0.0, 1.0, 0.0) == pytest.approx(METERS_PER_DEGREE, rel=1e-9)


def test_haversine_is_symmetric():
    """d(a, b) == d(b, a)."""
    forward = haversine_m(51.5007, -0.1246, 40.6892, -74.0445)
    backward = haversine_m(40.6892, -74.0445, 51.5007, -0.1246)
    assert forward == pytest.approx(backward, rel=1e-12)
    assert forward == pytest.approx(5574840, rel=1e-3)


def test_haversine_antipodal_points():
    """Antipodal points are half the circumference apart."""
    assert haversine_m(0.0, 0.0, 0.0, 180.0) == pytest.approx(METERS_PER_DEGREE * 180.0, rel=1e-9)


def test_haversine_array_matches_scalar():
    """Vectorised segment distances agree with the scalar formula."""
    lats = [47.0, 47.001, 47.003, 47.0035]
    lons = [8.0, 8.002, 8.001, 8.004]
    distances = haversine_array(lats, lons)

    assert len(distances) == 3
    for i, d in enumerate(distances):
        assert d == pytest.approx(haversine_m(lats[i], lons[i], lats[i + 1], lons[i + 1]), rel=1e-12)


def test_haversine_array_short_input():
    """Fewer than two samples give no segments."""
    assert len(haversine_array([], [])) == 0
    assert len(haversine_array([1.0], [2.0])) == 0


def test_fix_distance():
    """Distance between fixes uses their coordinates."""
    a = point(0.0, 0.0)
    b = point(0.001, 0.0, 1000)
    assert fix_distance_m(a, b) == pytest.approx(METERS_PER_DEGREE * 0.001, rel=1e-9)


@pytest.mark.parametrize("lat2,lon2,expected", [
    (1.0, 0.0, 0.0),
    (0.0, 1.0, 90.0),
    (-1.0, 0.0, 180.0),
    (0.0, -1.0, 270.0),
])
def test_bearing_cardinal_directions(lat2, lon2, expected):
    """Bearing from the origin along the cardinal directions."""
    assert bearing_deg(0.0, 0.0, lat2, lon2) == pytest.approx(expected, abs=1e-9)


def test_bearing_range():
    """Bearing always lies in [0, 360)."""
    for lat2, lon2 in [(0.5, -0.5), (-0.5, -0.5), (0.0, -1e-12)]:
        bearing = bearing_deg(0.0, 0.0, lat2, lon2)
        assert 0.0 <= bearing < 360.0


def test_perpendicular_distance_point_on_segment():
    """A point on the segment is at zero distance."""
    assert perpendicular_distance_m(point(0.0, 0.0005), point(0.0, 0.0), point(0.0, 0.001)) \
        == pytest.approx(0.0, abs=1e-6)


def test_perpendicular_distance_offset_point():
    """Offset from the middle of an east-west segment is measured north-south."""
    distance = perpendicular_distance_m(point(0.0001, 0.0005), point(0.0, 0.0), point(0.0, 0.001))
    assert distance == pytest.approx(METERS_PER_DEGREE * 0.0001, rel=1e-6)


def test_perpendicular_distance_clamps_to_segment():
    """Beyond the end, distance is measured to the end point."""
    start, end = point(0.0, 0.0), point(0.0, 0.001)
    beyond = point(0.0, 0.002)
    assert perpendicular_distance_m(beyond, start, end) == pytest.approx(fix_distance_m(beyond, end))


def test_perpendicular_distance_zero_length_segment():
    """A degenerate segment falls back to the distance to its start."""
    start = point(10.0, 10.0)
    other = point(10.001, 10.0)
    assert perpendicular_distance_m(other, start, start) == pytest.approx(fix_distance_m(other, start))


def test_route_bounds_empty():
    """No points, no bounds."""
    assert calculate_route_bounds([]) is None
    assert calculate_route_center([]) is None


def test_route_bounds_padding():
    """Bounds are padded by a fraction of the span on each side."""
    points = [point(10.0, 20.0), point(11.0, 22.0)]
    bounds = calculate_route_bounds(points, padding=0.1)

    assert bounds['north'] == pytest.approx(11.1)
    assert bounds['south'] == pytest.approx(9.9)
    assert bounds['east'] == pytest.approx(22.2)
    assert bounds['west'] == pytest.approx(19.8)


def test_route_center():
    """Center is the middle of the unpadded bounds."""
    center = calculate_route_center([point(10.0, 20.0), point(12.0, 24.0), point(11.0, 21.0)])
    assert center == {'latitude': pytest.approx(11.0), 'longitude': pytest.approx(22.0)}
    assert isinstance(center['latitude'], float) and not isinstance(center['latitude'], np.floating)


@pytest.mark.parametrize("lon, expected", [
    (0.0, 0.0),
    (180.0, 180.0),
    (-180.0, -180.0),
    (180.5, -179.5),
    (-180.5, 179.5),
    (-359.9998, 0.0002),
    (540.0, 180.0),
])
def test_wrap_longitude(lon, expected):
    """Longitudes and longitude differences come back into [-180, 180]."""
    assert wrap_longitude(lon) == pytest.approx(expected)
