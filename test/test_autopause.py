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
Tests for speed-based auto-pause detection.
"""
import os
import sys

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.autopause import AutoPauseDetector, AUTO_PAUSE, AUTO_RESUME
from core.structures import Fix


def fix_at(timestamp, speed):
    return Fix(47.0, 8.0, None, 5.0, speed, None, timestamp, 'gps')


def feed(detector, samples):
    return [detector.process(fix_at(t, speed)) for t, speed in samples]


def test_pauses_after_time_threshold():
    """Standing still for the time threshold triggers a single auto-pause."""
    detector = AutoPauseDetector(speed_threshold=0.5, time_threshold=10.0)
    events = feed(detector, [(t * 1000, 0.1) for t in range(0, 16)])

    assert events.count(AUTO_PAUSE) == 1
    assert events.index(AUTO_PAUSE) == 10
    assert detector.auto_paused


def test_movement_resets_timer():
    """A fast fix in between restarts the stationary clock."""
    detector = AutoPauseDetector(speed_threshold=0.5, time_threshold=10.0)
    events = feed(detector, [(0, 0.0), (8000, 0.0), (9000, 2.0), (15000, 0.0), (24000, 0.0)])

    assert AUTO_PAUSE not in events
    assert detector.time_below_threshold(24000) == pytest.approx(9.0)


def test_resume_on_movement():
    """The first fast fix while auto-paused reports a resume."""
    detector = AutoPauseDetector(speed_threshold=0.5, time_threshold=5.0)
    events = feed(detector, [(0, 0.0), (5000, 0.0), (6000, 0.0), (7000, 1.5), (8000, 1.5)])

    assert events == [None, AUTO_PAUSE, None, AUTO_RESUME, None]
    assert not detector.auto_paused


def test_missing_speed_counts_as_stationary():
    """Fixes without a reported speed count as standing still."""
    detector = AutoPauseDetector(speed_threshold=0.5, time_threshold=2.0)
    assert feed(detector, [(0, None), (2000, None)]) == [None, AUTO_PAUSE]


def test_reset():
    """reset() forgets the stationary period and the paused flag."""
    detector = AutoPauseDetector(speed_threshold=0.5, time_threshold=1.0)
    feed(detector, [(0, 0.0), (1000, 0.0)])
    detector.reset()

    assert not detector.auto_paused
    assert detector.time_below_threshold(5000) == 0.0
    assert detector.consecutive_low_speed_count == 0


def test_defaults_from_config():
    """Thresholds default to the configured values."""
    detector = AutoPauseDetector()
    assert detector.speed_threshold == 0.5
    assert detector.time_threshold == 20.0
