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
Tracking session lifecycle.

    inactive -> active -> (paused <-> active) -> completed

The transition functions are pure over SessionState and raise StateError
for anything else. TrackingSession wires them to the filtering pipeline,
the subscriber channel and the one-session-per-process registry.
"""
import logging
import threading
import time

from .autopause import AUTO_PAUSE, AUTO_RESUME
from .errors import StateError, PermissionDeniedError, ValidationError
from .filters import initial_filter_state, process_fix, validate_fix
from .options import resolve_tracking_config
from .publisher import FixPublisher
from .statistics import calculate_activity_statistics
from .structures import (
    SessionState,
    STATUS_INACTIVE,
    STATUS_ACTIVE,
    STATUS_PAUSED,
    STATUS_COMPLETED,
    PASSTHROUGH_SOURCES,
    MS_TO_S,
)

logger = logging.getLogger(__name__)


def _now_ms():
    return int(time.time() * 1000)


def new_session_state():
    return SessionState(status=STATUS_INACTIVE, start_time=None, last_accepted_fix=None,
                        paused_at=None, paused_total_ms=0, end_time=None)


def _require(state, action, *allowed):
    if state.status not in allowed:
        raise StateError(f"Cannot {action} a session that is {state.status}")


def start_session(state, now_ms):
    """inactive -> active."""
    _require(state, 'start', STATUS_INACTIVE)
    return SessionState(status=STATUS_ACTIVE, start_time=now_ms, last_accepted_fix=None,
                        paused_at=None, paused_total_ms=0, end_time=None)


def pause_session(state, now_ms):
    """active -> paused."""
    _require(state, 'pause', STATUS_ACTIVE)
    return state._replace(status=STATUS_PAUSED, paused_at=now_ms)


def resume_session(state, now_ms):
    """paused -> active; the time spent paused is added to paused_total_ms."""
    _require(state, 'resume', STATUS_PAUSED)
    paused_for = max(0, now_ms - state.paused_at)
    return state._replace(status=STATUS_ACTIVE, paused_at=None,
                          paused_total_ms=state.paused_total_ms + paused_for)


def stop_session(state, now_ms):
    """active | paused -> completed."""
    _require(state, 'stop', STATUS_ACTIVE, STATUS_PAUSED)
    paused_total = state.paused_total_ms
    if state.status == STATUS_PAUSED:
        paused_total += max(0, now_ms - state.paused_at)
    return state._replace(status=STATUS_COMPLETED, paused_at=None,
                          paused_total_ms=paused_total, end_time=now_ms)


def active_duration_sec(state, now_ms=None):
    """
    Pause-adjusted session duration in seconds.

    Args:
        state: SessionState
        now_ms: reference time for a session still running

    Returns:
        float: 0.0 for a session that never started
    """
    if state.start_time is None:
        return 0.0
    end = state.end_time
    if end is None:
        end = now_ms if now_ms is not None else _now_ms()
    paused = state.paused_total_ms
    if state.paused_at is not None:
        paused += max(0, end - state.paused_at)
    return max(0.0, (end - state.start_time - paused) / MS_TO_S)


def session_activity(state, now_ms=None):
    """Timing dict consumed by core.statistics.calculate_duration."""
    if state.start_time is None:
        return {}
    end = state.end_time
    if end is None:
        end = now_ms if now_ms is not None else _now_ms()
    return {
        'started_at_ms': state.start_time,
        'ended_at_ms': end,
        'duration_sec': active_duration_sec(state, end),
    }


class SessionRegistry:
    """Allows at most one active or paused tracking session at a time."""

    def __init__(self):
        self._lock = threading.Lock()
        self._owner = None

    @property
    def active_session(self):
        with self._lock:
            return self._owner

    def acquire(self, session):
        with self._lock:
            if self._owner is not None and self._owner is not session:
                raise StateError("Another tracking session is already active")
            self._owner = session

    def release(self, session):
        with self._lock:
            if self._owner is session:
                self._owner = None


_default_registry = SessionRegistry()


def default_registry():
    return _default_registry


class TrackingSession:
    """
    One tracking session: lifecycle, filter state and fix delivery.

    handle_fix() is synchronous, free of I/O and never waits on subscribers;
    it is meant to be called from whatever thread delivers sensor fixes.

    Args:
        tracking_config: tracking option overrides (see core.options)
        registry: SessionRegistry (default: the process-wide registry)
        permission: optional callable returning True when tracking may start
        auto_pause: optional AutoPauseDetector
        on_reject: optional diagnostic callback(fix, reason)
        publisher: FixPublisher (default: a new one)
        clock: callable returning milliseconds (default: wall clock); every
            pause and resume, manual or automatic, is stamped with it so
            device clock skew never reaches paused_total_ms
    """

    def __init__(self, tracking_config=None, registry=None, permission=None, auto_pause=None,
                 on_reject=None, publisher=None, clock=None):
        self.config = resolve_tracking_config(tracking_config)
        self.registry = registry if registry is not None else _default_registry
        self.permission = permission
        self.auto_pause = auto_pause
        self.on_reject = on_reject
        self.publisher = publisher if publisher is not None else FixPublisher()
        self._clock = clock or _now_ms
        self._lock = threading.RLock()
        self.state = new_session_state()
        self.filter_state = None
        self.accepted_count = 0
        self.rejected_count = 0
        self._auto_paused = False

    @property
    def status(self):
        return self.state.status

    @property
    def dropped_fix_count(self):
        """Fixes published but never delivered to some subscriber."""
        return self.publisher.dropped_count

    def subscribe(self, callback):
        """Registers a subscriber for accepted fixes; returns unsubscribe."""
        return self.publisher.subscribe(callback)

    def _time(self, now_ms):
        return now_ms if now_ms is not None else self._clock()

    def start(self, now_ms=None):
        with self._lock:
            _require(self.state, 'start', STATUS_INACTIVE)
            if self.permission is not None and not self.permission():
                raise PermissionDeniedError("Location permission was not granted")
            self.registry.acquire(self)
            self.state = start_session(self.state, self._time(now_ms))
            self.filter_state = initial_filter_state()
            self._auto_paused = False
            if self.auto_pause is not None:
                self.auto_pause.reset()
            logger.info("Tracking session started at %s", self.state.start_time)
            return self.state

    def pause(self, now_ms=None):
        with self._lock:
            self.state = pause_session(self.state, self._time(now_ms))
            self._auto_paused = False
            logger.info("Tracking session paused at %s", self.state.paused_at)
            return self.state

    def resume(self, now_ms=None):
        with self._lock:
            self.state = resume_session(self.state, self._time(now_ms))
            self._auto_paused = False
            logger.info("Tracking session resumed")
            return self.state

    def stop(self, now_ms=None):
        """
        Completes the session and clears all pipeline-owned state.

        Queued fixes are delivered to subscribers before this returns, up to
        the publisher close timeout. Any fix a subscriber never received is
        counted in dropped_fix_count and logged as a warning.
        """
        with self._lock:
            self.state = stop_session(self.state, self._time(now_ms))
            self.filter_state = None
            self._auto_paused = False
            if self.auto_pause is not None:
                self.auto_pause.reset()
            self.registry.release(self)
        self.publisher.close(wait=True)
        dropped = self.dropped_fix_count
        if dropped:
            logger.warning("Subscribers missed %d fixes of this session", dropped)
        logger.info("Tracking session completed: %d accepted, %d rejected fixes",
                    self.accepted_count, self.rejected_count)
        return self.state

    def _report_rejection(self, fix, reason):
        self.rejected_count += 1
        if self.on_reject is None:
            return
        try:
            self.on_reject(fix, reason)
        except Exception:
            logger.exception("Rejection callback failed")

    def _check_auto_resume(self, raw):
        try:
            validate_fix(raw)
        except ValidationError:
            return False
        if self.auto_pause.process(raw) == AUTO_RESUME:
            self.state = resume_session(self.state, self._clock())
            self._auto_paused = False
            logger.info("Tracking session auto-resumed on fix %s", raw.timestamp)
            return True
        return False

    def handle_fix(self, raw):
        """
        Processes one raw fix from the sensor collaborator.

        Returns:
            the accepted (possibly smoothed) Fix, or None when the session is
            not active or the fix was rejected
        """
        with self._lock:
            if self.state.status == STATUS_PAUSED:
                if not (self._auto_paused and self.auto_pause is not None):
                    return None
                if raw.source in PASSTHROUGH_SOURCES or not self._check_auto_resume(raw):
                    return None
            if self.state.status != STATUS_ACTIVE:
                return None

            self.filter_state, fix = process_fix(self.filter_state, raw, self.config,
                                                 self._report_rejection)
            if fix is None:
                return None

            if fix.source not in PASSTHROUGH_SOURCES:
                self.accepted_count += 1
                self.state = self.state._replace(last_accepted_fix=fix)
                if self.auto_pause is not None and self.auto_pause.process(fix) == AUTO_PAUSE:
                    self.state = pause_session(self.state, self._clock())
                    self._auto_paused = True
                    logger.info("Tracking session auto-paused on fix %s", fix.timestamp)

            self.publisher.publish(fix)
            return fix

    def summarize(self, points, options=None, now_ms=None):
        """
        Statistics for the accumulated track using this session's timing.

        Args:
            points: accepted fixes, normally read back from persistence
            options: statistics option overrides

        Returns:
            ActivityStatistics
        """
        activity = session_activity(self.state, self._time(now_ms) if self.state.end_time is None else None)
        return calculate_activity_statistics(points, activity, options)
