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
Geospatial primitives.
Great-circle distance (scalar and vectorised), bearing, point-to-segment
distance and route bounds.
"""
import math

import numpy as np

try:
    from .. import config
except ImportError:
    import config


def haversine_m(lat1, lon1, lat2, lon2):
    """
    Great-circle distance between two points in meters.

    Symmetric, and exactly 0.0 for identical points.

    Args:
        lat1, lon1: first point in degrees
        lat2, lon2: second point in degrees

    Returns:
        float: distance in meters
    """
    r = getattr(config, 'EARTH_RADIUS_M', 6371000.0)
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    a = min(a, 1.0)
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return r * c


def haversine_array(lats, lons):
    """
    Distances between consecutive samples of a track.

    Args:
        lats: array-like of latitudes in degrees
        lons: array-like of longitudes in degrees

    Returns:
        np.ndarray of length len(lats) - 1 (empty for fewer than 2 samples)
    """
    lats = np.asarray(lats, dtype=float)
    lons = np.asarray(lons, dtype=float)
    if len(lats) < 2:
        return np.zeros(0)

    r = getattr(config, 'EARTH_RADIUS_M', 6371000.0)
    phi = np.radians(lats)
    d_phi = np.radians(np.diff(lats))
    d_lambda = np.radians(np.diff(lons))

    a = np.sin(d_phi / 2.0) ** 2 + np.cos(phi[:-1]) * np.cos(phi[1:]) * np.sin(d_lambda / 2.0) ** 2
    a = np.clip(a, 0.0, 1.0)
    c = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))
    return r * c


def wrap_longitude(lon):
    """Brings a longitude (or longitude difference) back into [-180, 180]."""
    if lon > 180.0:
        return lon - 360.0 * math.ceil((lon - 180.0) / 360.0)
    if lon < -180.0:
        return lon + 360.0 * math.ceil((-180.0 - lon) / 360.0)
    return lon


def fix_distance_m(a, b):
    """Haversine distance between two fixes."""
    return haversine_m(a.latitude, a.longitude, b.latitude, b.longitude)


def bearing_deg(lat1, lon1, lat2, lon2):
    """Initial bearing from the first point to the second, in [0, 360)."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lambda = math.radians(lon2 - lon1)

    y = math.sin(d_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lambda)
    bearing = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # (-tiny + 360) % 360 can round to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def perpendicular_distance_m(point, line_start, line_end):
    """
    Distance in meters from a point to the segment line_start-line_end.

    The closest point is found in degree space and clamped to the segment;
    the distance to it is measured with the haversine formula. A zero-length
    segment degrades to the distance to its single point.

    Args:
        point, line_start, line_end: objects with latitude/longitude

    Returns:
        float: distance in meters
    """
    a = point.latitude - line_start.latitude
    b = point.longitude - line_start.longitude
    c = line_end.latitude - line_start.latitude
    d = line_end.longitude - line_start.longitude

    len_sq = c * c + d * d
    if len_sq == 0:
        return haversine_m(point.latitude, point.longitude,
                           line_start.latitude, line_start.longitude)

    param = (a * c + b * d) / len_sq
    if param < 0:
        closest_lat, closest_lon = line_start.latitude, line_start.longitude
    elif param > 1:
        closest_lat, closest_lon = line_end.latitude, line_end.longitude
    else:
        closest_lat = line_start.latitude + param * c
        closest_lon = line_start.longitude + param * d

    return haversine_m(point.latitude, point.longitude, closest_lat, closest_lon)


def calculate_route_bounds(points, padding=0.1):
    """
    Bounding box of a route, padded by a fraction of its extent.

    Args:
        points: sequence of fixes
        padding: fraction of the latitude/longitude span added on each side

    Returns:
        dict: {'north', 'south', 'east', 'west'} or None for an empty route
    """
    if not points:
        return None

    lats = np.array([p.latitude for p in points], dtype=float)
    lons = np.array([p.longitude for p in points], dtype=float)
    north, south = float(lats.max()), float(lats.min())
    east, west = float(lons.max()), float(lons.min())

    lat_padding = (north - south) * padding
    lon_padding = (east - west) * padding
    return {
        'north': north + lat_padding,
        'south': south - lat_padding,
        'east': east + lon_padding,
        'west': west - lon_padding,
    }


def calculate_route_center(points):
    """Center of the unpadded route bounds, or None for an empty route."""
    bounds = calculate_route_bounds(points, padding=0.0)
    if bounds is None:
        return None
    return {
        'latitude': (bounds['north'] + bounds['south']) / 2.0,
        'longitude': (bounds['east'] + bounds['west']) / 2.0,
    }
