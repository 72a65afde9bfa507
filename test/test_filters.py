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
Tests for the real-time filtering pipeline: validation, outlier rejection,
Kalman smoothing, bounded history and determinism.
"""
import math
import os
import sys

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.errors import ValidationError
from core.filters import (
    initial_filter_state,
    validate_fix,
    is_outlier,
    apply_kalman_filter,
    update_history,
    recent_speed_variance,
    process_fix,
)
from core.geo import fix_distance_m
from core.options import resolve_tracking_config
from core.structures import Fix, make_fix
import config


def raw_fix(lat, lon, timestamp, accuracy=5.0, source='gps', speed=None):
    return Fix(lat, lon, None, accuracy, speed, None, timestamp, source)


def walk(count, step_deg=0.0001, interval_ms=1000):
    """Fixes moving north about 11 m per interval."""
    return [raw_fix(47.0 + i * step_deg, 8.0, i * interval_ms) for i in range(count)]


def run(fixes, cfg=None):
    state = initial_filter_state()
    rejected = []
    accepted = []
    for fix in fixes:
        state, out = process_fix(state, fix, cfg, lambda f, reason: rejected.append(reason))
        accepted.append(out)
    return state, accepted, rejected


def test_first_fix_accepted_unmodified():
    """The first fix seeds the filter and is emitted as received."""
    fix = raw_fix(47.0, 8.0, 0)
    state, out = process_fix(initial_filter_state(), fix)

    assert out == fix
    assert state.initialized
    assert (state.lat, state.lon) == (47.0, 8.0)
    assert state.history == (fix,)


def test_second_fix_blended_with_gain():
    """With zero velocity the second fix lands halfway between estimate and measurement."""
    state, _ = process_fix(initial_filter_state(), raw_fix(0.0, 0.0, 0))
    state, out = process_fix(state, raw_fix(0.0001, 0.0, 1000))

    assert out.latitude == pytest.approx(0.00005, abs=1e-12)
    assert out.longitude == pytest.approx(0.0, abs=1e-12)
    assert state.v_lat == pytest.approx(0.00005, abs=1e-12)


def test_pipeline_is_deterministic():
    """Same fixes and config give bit-identical output."""
    fixes = walk(25)
    first_state, first_out, _ = run(fixes)
    second_state, second_out, _ = run(fixes)

    assert first_out == second_out
    assert first_state == second_state


def test_poor_accuracy_rejected():
    """Accuracy worse than 100 m is rejected and leaves state untouched."""
    state, _ = process_fix(initial_filter_state(), raw_fix(47.0, 8.0, 0))
    reasons = []
    new_state, out = process_fix(state, raw_fix(47.0001, 8.0, 1000, accuracy=150.0), None,
                                 lambda f, reason: reasons.append(reason))

    assert out is None
    assert new_state == state
    assert reasons == ['accuracy']


def test_accuracy_at_threshold_accepted():
    """Exactly 100 m is still acceptable."""
    _, out = process_fix(initial_filter_state(), raw_fix(47.0, 8.0, 0, accuracy=100.0))
    assert out is not None


def test_speed_outlier_rejected():
    """A 1 km jump in one second is an outlier."""
    state, _ = process_fix(initial_filter_state(), raw_fix(47.0, 8.0, 0))
    reasons = []
    _, out = process_fix(state, raw_fix(47.01, 8.0, 1000), None,
                         lambda f, reason: reasons.append(reason))

    assert out is None
    assert reasons == ['speed']


def test_speed_check_skipped_without_time_step():
    """A fix with the same timestamp is not judged on speed."""
    history = (raw_fix(47.0, 8.0, 1000),)
    cfg = resolve_tracking_config()
    assert is_outlier(raw_fix(47.01, 8.0, 1000), history, cfg) is None


@pytest.mark.parametrize("source", ['error', 'unavailable'])
def test_unavailable_fix_passes_through(source):
    """Error and unavailable fixes bypass validation and filtering."""
    state, _ = process_fix(initial_filter_state(), raw_fix(47.0, 8.0, 0))
    bogus = raw_fix(float('nan'), 0.0, 1000, accuracy=9999.0, source=source)
    new_state, out = process_fix(state, bogus)

    assert out is bogus
    assert new_state is state


@pytest.mark.parametrize("fix", [
    raw_fix(float('nan'), 8.0, 0),
    raw_fix(47.0, float('inf'), 0),
    raw_fix(91.0, 8.0, 0),
    raw_fix(47.0, -180.5, 0),
    raw_fix(47.0, 8.0, 0, accuracy=-1.0),
    raw_fix(47.0, 8.0, 0, source='bluetooth'),
    raw_fix(47.0, 8.0, 0, speed=float('nan')),
])
def test_malformed_fix_rejected(fix):
    """Malformed fixes are rejected silently with reason 'malformed'."""
    reasons = []
    state, out = process_fix(initial_filter_state(), fix, None,
                             lambda f, reason: reasons.append(reason))

    assert out is None
    assert reasons == ['malformed']
    assert not state.initialized


def test_validate_fix_reports_field():
    """ValidationError names the offending field."""
    with pytest.raises(ValidationError) as excinfo:
        validate_fix(Fix(47.0, 8.0, None, 5.0, None, 360.0, 0, 'gps'))
    assert excinfo.value.field == 'heading'


def test_make_fix_validates():
    """make_fix refuses out-of-range coordinates."""
    with pytest.raises(ValidationError):
        make_fix(100.0, 8.0, 5.0, 0)
    assert make_fix(47.0, 8.0, 5.0, 0).source == 'gps'


def test_history_bounded():
    """History never holds more than FILTER_HISTORY_SIZE fixes, oldest evicted first."""
    state, accepted, rejected = run(walk(15))

    assert not rejected
    assert len(state.history) == config.FILTER_HISTORY_SIZE
    assert state.history == tuple(accepted[-config.FILTER_HISTORY_SIZE:])


def test_update_history_keeps_newest():
    """update_history drops the oldest entries beyond the limit."""
    history = ()
    for i in range(5):
        history = update_history(history, i, size=3)
    assert history == (2, 3, 4)


def test_kalman_disabled_passes_positions():
    """With smoothing off, accepted fixes keep their measured positions."""
    fixes = walk(5)
    _, accepted, _ = run(fixes, resolve_tracking_config({'kalman_filter_enabled': False}))
    assert accepted == fixes


def test_outlier_detection_disabled():
    """With outlier detection off, poor accuracy is accepted."""
    cfg = resolve_tracking_config({'outlier_detection_enabled': False})
    _, out = process_fix(initial_filter_state(), raw_fix(47.0, 8.0, 0, accuracy=150.0), cfg)
    assert out is not None


def test_kalman_non_positive_time_step_keeps_velocity():
    """A repeated timestamp blends against the estimate without touching velocity."""
    state, _ = process_fix(initial_filter_state(), raw_fix(0.0, 0.0, 0))
    state, _ = process_fix(state, raw_fix(0.0001, 0.0, 1000))
    velocity = (state.v_lat, state.v_lon)

    new_state, out = apply_kalman_filter(state, raw_fix(0.0002, 0.0, 1000))

    assert (new_state.v_lat, new_state.v_lon) == velocity
    assert out.latitude == pytest.approx(state.lat + 0.5 * (0.0002 - state.lat))


def test_kalman_output_stays_in_range():
    """Smoothed coordinates near the pole never leave [-90, 90]."""
    state, _ = process_fix(initial_filter_state(), raw_fix(89.9999, 0.0, 0))
    for i in range(1, 20):
        state, out = process_fix(state, raw_fix(90.0, 0.0, i * 1000))
        assert out is None or -90.0 <= out.latitude <= 90.0


def test_recent_speed_variance():
    """Constant speed has zero variance; alternating speed does not."""
    steady = walk(5)
    assert recent_speed_variance(tuple(steady)) == pytest.approx(0.0, abs=1e-9)

    jerky = (raw_fix(47.0, 8.0, 0), raw_fix(47.0001, 8.0, 1000),
             raw_fix(47.0001, 8.0, 2000), raw_fix(47.0002, 8.0, 3000))
    assert recent_speed_variance(jerky) > 0.0
    assert math.isfinite(recent_speed_variance(()))


def test_track_across_antimeridian_stays_on_course():
    """Fixes crossing +/-180 longitude are smoothed the short way round and all accepted."""
    lons = [179.9996, 179.9998, 180.0, -179.9998, -179.9996, -179.9994]
    fixes = [raw_fix(0.0, lon, i * 1000) for i, lon in enumerate(lons)]

    state, accepted, rejected = run(fixes)

    assert rejected == []
    for fix, out in zip(fixes, accepted):
        assert -180.0 <= out.longitude <= 180.0
        assert fix_distance_m(fix, out) < 30.0
    assert -180.0 <= state.lon <= 180.0
