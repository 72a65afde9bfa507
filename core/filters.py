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
Real-time location filtering module.
Per-fix validation, outlier rejection, single-gain Kalman smoothing,
bounded history and the adaptive throttling hook.

Everything here is a pure function of (FilterState, Fix, config): no wall
clock, no randomness, no I/O. The same ordered fixes with the same config
always produce bit-identical output.
"""
import logging
import math
import numbers

import numpy as np

# Import config for default values
try:
    from .. import config
except ImportError:
    import config

from .errors import ValidationError
from .geo import fix_distance_m, wrap_longitude
from .options import tracking_defaults
from .structures import (
    FilterState,
    FIX_SOURCES,
    PASSTHROUGH_SOURCES,
    REJECT_MALFORMED,
    REJECT_ACCURACY,
    REJECT_SPEED,
    MS_TO_S,
)

logger = logging.getLogger(__name__)


def initial_filter_state():
    """Fresh, uninitialized filter state with an empty history."""
    return FilterState(lat=0.0, lon=0.0, v_lat=0.0, v_lon=0.0, initialized=False, history=())


def _is_finite_number(value):
    return (isinstance(value, numbers.Real)
            and not isinstance(value, bool)
            and math.isfinite(value))


def validate_fix(fix):
    """
    Checks every field of a fix.

    Args:
        fix: Fix to validate

    Raises:
        ValidationError: on the first malformed field (NaN/Infinity,
            out-of-range coordinates, negative accuracy or speed,
            heading outside [0, 360), unknown source)
    """
    if not _is_finite_number(fix.latitude) or not -90.0 <= fix.latitude <= 90.0:
        raise ValidationError('latitude', fix.latitude, 'must be a valid latitude (-90 to 90)')
    if not _is_finite_number(fix.longitude) or not -180.0 <= fix.longitude <= 180.0:
        raise ValidationError('longitude', fix.longitude, 'must be a valid longitude (-180 to 180)')
    if not _is_finite_number(fix.accuracy) or fix.accuracy < 0:
        raise ValidationError('accuracy', fix.accuracy, 'must be a non-negative number')
    if fix.altitude is not None and not _is_finite_number(fix.altitude):
        raise ValidationError('altitude', fix.altitude, 'must be a finite number or None')
    if fix.speed is not None and (not _is_finite_number(fix.speed) or fix.speed < 0):
        raise ValidationError('speed', fix.speed, 'must be a non-negative number or None')
    if fix.heading is not None and (not _is_finite_number(fix.heading)
                                    or not 0.0 <= fix.heading < 360.0):
        raise ValidationError('heading', fix.heading, 'must be between 0 and 360 degrees or None')
    if not _is_finite_number(fix.timestamp):
        raise ValidationError('timestamp', fix.timestamp, 'must be milliseconds from epoch')
    if fix.source not in FIX_SOURCES:
        raise ValidationError('source', fix.source, f"must be one of {', '.join(FIX_SOURCES)}")


def is_outlier(fix, history, cfg):
    """
    Outlier check against the accuracy and implied-speed thresholds.

    Args:
        fix: candidate fix (already validated)
        history: tuple of previously accepted fixes, oldest first
        cfg: resolved tracking configuration

    Returns:
        str rejection reason, or None if the fix is plausible
    """
    if fix.accuracy > cfg['max_accuracy_threshold']:
        return REJECT_ACCURACY

    if history:
        last = history[-1]
        dt = (fix.timestamp - last.timestamp) / MS_TO_S
        if dt > 0:
            implied_speed = fix_distance_m(last, fix) / dt
            if implied_speed > cfg['max_speed_threshold']:
                return REJECT_SPEED

    return None


def apply_kalman_filter(state, fix, gain=None):
    """
    Simplified single-gain Kalman smoothing of a fix position.

    Not a multivariate filter: there is no covariance propagation. The
    position is predicted from the stored velocity, blended with the
    measurement using a fixed gain, and the velocity is re-estimated from
    the blended correction.

    The first fix seeds the estimate (zero velocity) and is returned as is.
    A non-positive time step blends against the current estimate and keeps
    the stored velocity.

    Args:
        state: FilterState before this fix
        fix: validated, accepted fix
        gain: blend factor (default: config.KALMAN_GAIN)

    Returns:
        tuple: (new FilterState, smoothed Fix); history is left untouched
    """
    if gain is None:
        gain = getattr(config, 'KALMAN_GAIN', 0.5)

    if not state.initialized:
        return state._replace(lat=fix.latitude, lon=fix.longitude,
                              v_lat=0.0, v_lon=0.0, initialized=True), fix

    if state.history:
        dt = (fix.timestamp - state.history[-1].timestamp) / MS_TO_S
    else:
        dt = getattr(config, 'KALMAN_DEFAULT_DT', 1.0)

    if dt > 0:
        predicted_lat = state.lat + state.v_lat * dt
        predicted_lon = state.lon + state.v_lon * dt
    else:
        predicted_lat = state.lat
        predicted_lon = state.lon

    filtered_lat = predicted_lat + gain * (fix.latitude - predicted_lat)
    # Shortest way round, so a track crossing the antimeridian is not pulled through 0
    filtered_lon = predicted_lon + gain * wrap_longitude(fix.longitude - predicted_lon)

    if dt > 0:
        v_lat = (filtered_lat - predicted_lat) / dt
        v_lon = (filtered_lon - predicted_lon) / dt
    else:
        v_lat, v_lon = state.v_lat, state.v_lon

    filtered_lon = wrap_longitude(filtered_lon)
    new_state = state._replace(lat=filtered_lat, lon=filtered_lon, v_lat=v_lat, v_lon=v_lon)
    out_lat = min(90.0, max(-90.0, filtered_lat))
    return new_state, fix._replace(latitude=out_lat, longitude=filtered_lon)


def update_history(history, fix, size=None):
    """Append a fix to the bounded history, evicting the oldest entries."""
    if size is None:
        size = getattr(config, 'FILTER_HISTORY_SIZE', 10)
    history = history + (fix,)
    if len(history) > size:
        history = history[-size:]
    return history


def recent_speed_variance(history):
    """
    Variance of the implied speeds between consecutive history entries.

    Returns:
        float: variance in (m/s)^2, 0.0 with fewer than two speed samples
    """
    speeds = []
    for prev, curr in zip(history, history[1:]):
        dt = (curr.timestamp - prev.timestamp) / MS_TO_S
        if dt > 0:
            speeds.append(fix_distance_m(prev, curr) / dt)
    if len(speeds) < 2:
        return 0.0
    return float(np.var(speeds))


def apply_adaptive_throttling(fix, history, cfg):
    """
    Adaptive sampling hook.

    Every accepted fix is forwarded unchanged; only the recent-speed
    variance the sampling cadence would be derived from is computed.
    """
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Recent speed variance %.4f over %d fixes (interval %s ms)",
                     recent_speed_variance(history), len(history), cfg['interval_ms'])
    return fix


def process_fix(state, raw, cfg=None, on_reject=None):
    """
    Runs one raw fix through the filtering pipeline.

    Steps: pass-through of error/unavailable fixes, validation, outlier
    rejection, Kalman smoothing, history update, adaptive throttling.
    Rejections are silent: the returned fix is None and on_reject, if
    given, is called with (raw, reason).

    Args:
        state: FilterState owned by the calling session
        raw: Fix from the sensor collaborator
        cfg: resolved tracking configuration (default: config defaults)
        on_reject: optional diagnostic callback(fix, reason)

    Returns:
        tuple: (new FilterState, accepted Fix or None)
    """
    if cfg is None:
        cfg = tracking_defaults()

    if getattr(raw, 'source', None) in PASSTHROUGH_SOURCES:
        return state, raw

    try:
        validate_fix(raw)
    except ValidationError as e:
        logger.debug(f"Fix rejected as malformed: {e}")
        if on_reject is not None:
            on_reject(raw, REJECT_MALFORMED)
        return state, None

    if cfg['outlier_detection_enabled']:
        reason = is_outlier(raw, state.history, cfg)
        if reason is not None:
            logger.debug(f"Fix rejected as {reason} outlier: {raw}")
            if on_reject is not None:
                on_reject(raw, reason)
            return state, None

    processed = raw
    if cfg['kalman_filter_enabled']:
        state, processed = apply_kalman_filter(state, raw)

    state = state._replace(history=update_history(state.history, processed))

    if cfg['adaptive_throttling']:
        processed = apply_adaptive_throttling(processed, state.history, cfg)

    return state, processed
