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
NMEA file handler - replays a recorded NMEA log as a stream of raw fixes.
"""
import pynmea2
import logging
import os
import sys
from datetime import datetime, timezone

# Add parent directory to path for config import
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

import config

from core.errors import ValidationError
from core.structures import Fix, make_fix, SOURCE_GPS, SOURCE_UNAVAILABLE

logger = logging.getLogger('nmea_handler')


def _time_key(t):
    return (t.hour, t.minute, t.second, t.microsecond)


def convert_nmea_to_milliseconds(date, time_of_day):
    """Returns UTC time in milliseconds from epoch, or None without a date."""
    if date is None or time_of_day is None:
        return None
    dt = datetime.combine(date, time_of_day).replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def _optional_float(value):
    if value is None or value == '':
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _read_sentences(file_path):
    """
    Parses RMC and GGA sentences.

    Returns:
        tuple: (list of (rmc_msg, date), dict time_key -> gga_msg)
    """
    rmc_messages = []
    gga_by_time = {}
    current_date = None

    with open(file_path, 'r') as f:
        for line in f:
            stripped = line.strip()
            if not stripped.startswith('$'):
                continue
            try:
                msg = pynmea2.parse(stripped)
            except pynmea2.ParseError as e:
                logger.debug(f"NMEA line parse error: {stripped} - {e}")
                continue

            if msg.sentence_type == 'RMC':
                if getattr(msg, 'datestamp', None):
                    current_date = msg.datestamp
                if getattr(msg, 'timestamp', None) is None:
                    logger.debug(f"Skipped RMC without time: {stripped}")
                    continue
                rmc_messages.append((msg, current_date))
            elif msg.sentence_type == 'GGA':
                if getattr(msg, 'timestamp', None) is not None:
                    gga_by_time[_time_key(msg.timestamp)] = msg

    return rmc_messages, gga_by_time


def _rmc_to_fix(rmc, date, gga):
    timestamp = convert_nmea_to_milliseconds(date, rmc.timestamp)
    if timestamp is None:
        logger.debug(f"Skipped RMC without date: {rmc}")
        return None

    hdop = _optional_float(getattr(gga, 'horizontal_dil', None)) if gga is not None else None
    accuracy = (hdop * getattr(config, 'NMEA_UERE_M', 5.0) if hdop is not None
                else getattr(config, 'NMEA_DEFAULT_ACCURACY_M', 10.0))

    if getattr(rmc, 'status', 'A') == 'V':
        return Fix(0.0, 0.0, None, accuracy, None, None, timestamp, SOURCE_UNAVAILABLE)

    knots = _optional_float(getattr(rmc, 'spd_over_grnd', None))
    speed = knots * getattr(config, 'KNOTS_TO_MS', 0.514444) if knots is not None else None
    heading = _optional_float(getattr(rmc, 'true_course', None))
    if heading is not None:
        heading %= 360.0
    altitude = _optional_float(getattr(gga, 'altitude', None)) if gga is not None else None

    try:
        return make_fix(rmc.latitude, rmc.longitude, accuracy, timestamp, source=SOURCE_GPS,
                        altitude=altitude, speed=speed, heading=heading)
    except ValidationError as e:
        logger.debug(f"Skipped malformed RMC fix at {timestamp}: {e}")
        return None


def extract_fixes(file_path):
    """
    Reads an NMEA log and returns raw fixes in file order.

    Position, speed and heading come from $GPRMC; altitude and HDOP from the
    $GPGGA with the same time of day. Accuracy is HDOP * NMEA_UERE_M, or
    NMEA_DEFAULT_ACCURACY_M without HDOP. RMC status 'V' yields a fix with
    source 'unavailable'.

    Args:
        file_path: path to NMEA file

    Returns:
        list of Fix
    """
    rmc_messages, gga_by_time = _read_sentences(file_path)

    fixes = []
    for rmc, date in rmc_messages:
        fix = _rmc_to_fix(rmc, date, gga_by_time.get(_time_key(rmc.timestamp)))
        if fix is not None:
            fixes.append(fix)

    logger.info(f"Extracted {len(fixes)} fixes from {len(rmc_messages)} RMC sentences")
    return fixes


def calculate_gps_frequency(timestamp_milliseconds):
    """
    Calculates GPS frequency in Hz from timestamps in milliseconds.
    """
    if len(timestamp_milliseconds) < 2:
        return 0

    interval_sum = 0
    for i in range(1, len(timestamp_milliseconds)):
        time_diff = timestamp_milliseconds[i] - timestamp_milliseconds[i - 1]
        if 0 < time_diff < 5000:
            interval_sum += time_diff

    average_interval = interval_sum / (len(timestamp_milliseconds) - 1)
    gps_frequency = 1000 / average_interval if average_interval > 0 else 0
    return round(gps_frequency, 2)
