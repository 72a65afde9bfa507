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
Speed-based auto-pause detection.

Time below the speed threshold is measured with fix timestamps, not a
wall-clock timer, so replaying the same fixes gives the same decisions.
"""
import logging

try:
    from .. import config
except ImportError:
    import config

from .structures import MS_TO_S

logger = logging.getLogger(__name__)

AUTO_PAUSE = 'auto_pause'
AUTO_RESUME = 'auto_resume'


class AutoPauseDetector:
    """
    Watches accepted fixes and reports when the athlete stopped or restarted.

    Args:
        speed_threshold: m/s below which the athlete counts as stopped
            (default: config.AUTO_PAUSE_SPEED_THRESHOLD)
        time_threshold: seconds below threshold before auto-pausing
            (default: config.AUTO_PAUSE_TIME_THRESHOLD)
    """

    def __init__(self, speed_threshold=None, time_threshold=None):
        if speed_threshold is None:
            speed_threshold = getattr(config, 'AUTO_PAUSE_SPEED_THRESHOLD', 0.5)
        if time_threshold is None:
            time_threshold = getattr(config, 'AUTO_PAUSE_TIME_THRESHOLD', 20.0)
        self.speed_threshold = speed_threshold
        self.time_threshold = time_threshold
        self.reset()

    def reset(self):
        self.below_threshold_since = None
        self.consecutive_low_speed_count = 0
        self.last_speed = 0.0
        self.auto_paused = False

    def time_below_threshold(self, now_ms):
        if self.below_threshold_since is None:
            return 0.0
        return (now_ms - self.below_threshold_since) / MS_TO_S

    def process(self, fix):
        """
        Feeds one accepted fix.

        A fix without a reported speed counts as stationary.

        Returns:
            AUTO_PAUSE, AUTO_RESUME or None
        """
        speed = fix.speed or 0.0
        self.last_speed = speed

        if speed >= self.speed_threshold:
            self.below_threshold_since = None
            self.consecutive_low_speed_count = 0
            if self.auto_paused:
                self.auto_paused = False
                logger.debug(f"Auto-resume at {fix.timestamp} (speed {speed:.2f} m/s)")
                return AUTO_RESUME
            return None

        if self.below_threshold_since is None:
            self.below_threshold_since = fix.timestamp
            self.consecutive_low_speed_count = 1
        else:
            self.consecutive_low_speed_count += 1

        if not self.auto_paused and self.time_below_threshold(fix.timestamp) >= self.time_threshold:
            self.auto_paused = True
            logger.debug(f"Auto-pause at {fix.timestamp} after "
                         f"{self.consecutive_low_speed_count} slow fixes")
            return AUTO_PAUSE
        return None
