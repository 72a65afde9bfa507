#!/usr/bin/env python3
# TrailTrack - GPS track filtering and activity statistics
# Copyright (C) 2024 TrailTrack Contributors
#
# Shared data-structure definitions used across the tracking pipeline.
# Centralising these keeps field layouts in one place and makes the data
# flow between the pipeline, the session and the statistics engine explicit.

"""
Core record layouts used in the TrailTrack pipeline.

All records are namedtuples: immutable, cheap to copy and safe to share
between the thread delivering fixes and whoever computes statistics.

Fix (``Fix``)
-------------
Produced by the sensor collaborator (or ``parsers.nmea_handler``), consumed
by ``core.filters.process_fix``. An accepted fix is a track point::

    (
        latitude,      # 0 – degrees, [-90, 90]
        longitude,     # 1 – degrees, [-180, 180]
        altitude,      # 2 – meters above sea level, or None
        accuracy,      # 3 – horizontal accuracy in meters, >= 0
        speed,         # 4 – device-reported speed in m/s, or None
        heading,       # 5 – degrees [0, 360), or None
        timestamp,     # 6 – milliseconds from epoch
        source,        # 7 – gps | network | passive | error | unavailable
    )

Filter state (``FilterState``)
------------------------------
Owned by exactly one tracking session; replaced (never mutated) by every
call to ``process_fix``::

    (
        lat, lon,        # current smoothed position estimate
        v_lat, v_lon,    # velocity estimate, degrees per second
        initialized,     # False until the first fix seeded the estimate
        history,         # tuple of the last FILTER_HISTORY_SIZE accepted fixes
    )

Split (``Split``)
-----------------
One per completed kilometer, ``km_index`` starting at 1::

    (km_index, duration_sec, pace_sec_per_km, distance_m)

Activity statistics (``ActivityStatistics``)
--------------------------------------------
Returned by ``core.statistics.calculate_activity_statistics``.
"""

from collections import namedtuple

Fix = namedtuple('Fix', [
    'latitude',
    'longitude',
    'altitude',
    'accuracy',
    'speed',
    'heading',
    'timestamp',
    'source',
])

FilterState = namedtuple('FilterState', [
    'lat',
    'lon',
    'v_lat',
    'v_lon',
    'initialized',
    'history',
])

Split = namedtuple('Split', [
    'km_index',
    'duration_sec',
    'pace_sec_per_km',
    'distance_m',
])

ActivityStatistics = namedtuple('ActivityStatistics', [
    'duration_sec',
    'distance_m',
    'avg_pace_sec_per_km',
    'elev_gain_m',
    'elev_loss_m',
    'split_km',
    'max_speed',
    'min_elevation',
    'max_elevation',
    'total_ascent',
    'total_descent',
])

SessionState = namedtuple('SessionState', [
    'status',
    'start_time',
    'last_accepted_fix',
    'paused_at',
    'paused_total_ms',
    'end_time',
])

# Fix sources
SOURCE_GPS = 'gps'
SOURCE_NETWORK = 'network'
SOURCE_PASSIVE = 'passive'
SOURCE_ERROR = 'error'
SOURCE_UNAVAILABLE = 'unavailable'
FIX_SOURCES = (SOURCE_GPS, SOURCE_NETWORK, SOURCE_PASSIVE, SOURCE_ERROR, SOURCE_UNAVAILABLE)
PASSTHROUGH_SOURCES = (SOURCE_ERROR, SOURCE_UNAVAILABLE)

# Session statuses
STATUS_INACTIVE = 'inactive'
STATUS_ACTIVE = 'active'
STATUS_PAUSED = 'paused'
STATUS_COMPLETED = 'completed'

# Rejection reasons reported to the diagnostic callback
REJECT_MALFORMED = 'malformed'
REJECT_ACCURACY = 'accuracy'
REJECT_SPEED = 'speed'

# Unit conversion constants
MS_TO_S = 1000.0          # milliseconds to seconds conversion factor
METERS_PER_KM = 1000.0


def make_fix(latitude, longitude, accuracy, timestamp, source='gps',
             altitude=None, speed=None, heading=None):
    """
    Build a validated Fix.

    Raises:
        ValidationError: if any field is malformed or out of range
    """
    from .filters import validate_fix

    fix = Fix(latitude, longitude, altitude, accuracy, speed, heading, timestamp, source)
    validate_fix(fix)
    return fix


def empty_statistics():
    """All-zero statistics for tracks too short to measure."""
    return ActivityStatistics(
        duration_sec=0.0,
        distance_m=0.0,
        avg_pace_sec_per_km=0.0,
        elev_gain_m=0.0,
        elev_loss_m=0.0,
        split_km=(),
        max_speed=0.0,
        min_elevation=None,
        max_elevation=None,
        total_ascent=0.0,
        total_descent=0.0,
    )
