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
Configuration file for TrailTrack.
Contains all constants and default settings for fix filtering,
track simplification and activity statistics.

Runtime overrides are validated in core/options.py.
"""

# Geodesy
EARTH_RADIUS_M = 6371000.0  # Mean Earth radius used by the haversine formula

# ============================================================
# Location Filtering Pipeline
# ============================================================

# Sampling request (forwarded to the sensor collaborator)
DEFAULT_ACCURACY_MODE = 'high'     # high | balanced | low
ACCURACY_MODES = ('high', 'balanced', 'low')
DEFAULT_INTERVAL_MS = 1000         # Requested interval between fixes
DEFAULT_DISTANCE_FILTER_M = 0.0    # Minimum movement between fixes (0 = every fix)
DEFAULT_ADAPTIVE_THROTTLING = True

# Outlier rejection
OUTLIER_DETECTION_ENABLED = True
MAX_SPEED_THRESHOLD = 50.0         # m/s (180 km/h); faster implied speed = outlier
MAX_ACCURACY_THRESHOLD = 100.0     # meters; worse reported accuracy = outlier

# Simplified single-gain Kalman smoothing
KALMAN_FILTER_ENABLED = True
KALMAN_GAIN = 0.5                  # Fixed blend between prediction and measurement
KALMAN_DEFAULT_DT = 1.0            # Seconds, used when no previous fix is known

# Bounded history of accepted fixes
FILTER_HISTORY_SIZE = 10

# Sane bounds for runtime overrides: (min, max, min_inclusive); max is inclusive
MAX_SPEED_THRESHOLD_BOUNDS = (0.0, 1000.0, False)
MAX_ACCURACY_THRESHOLD_BOUNDS = (0.0, 10000.0, False)
INTERVAL_MS_BOUNDS = (0, 3600000, False)
DISTANCE_FILTER_M_BOUNDS = (0.0, 10000.0, True)

# ============================================================
# Subscriber notification
# ============================================================
PUBLISHER_QUEUE_SIZE = 1000        # Per-subscriber backlog before fixes are dropped
PUBLISHER_CLOSE_TIMEOUT = 5.0      # Seconds to wait for subscriber drain on close

# ============================================================
# Statistics Engine
# ============================================================
SMOOTHING_WINDOW = 5               # Points in the centered elevation moving average
ELEVATION_THRESHOLD = 3.0          # meters; smaller deltas are altitude jitter
MIN_SPLIT_DISTANCE = 950.0         # meters; earliest point a km split may close
SPLIT_DISTANCE_M = 1000.0          # Nominal split length
EXCLUDE_PAUSED_TIME = True

SMOOTHING_WINDOW_BOUNDS = (1, 101, True)
ELEVATION_THRESHOLD_BOUNDS = (0.0, 1000.0, True)
MIN_SPLIT_DISTANCE_BOUNDS = (0.0, 1000.0, False)

# ============================================================
# Track validation (advisory warnings)
# ============================================================
VALIDATION_MAX_ACCURACY_M = 100.0
VALIDATION_MAX_SPEED_MS = 50.0
VALIDATION_MIN_ELEVATION_RATIO = 0.5

# ============================================================
# Track simplification
# ============================================================
SIMPLIFY_TOLERANCE_M = 5.0         # Douglas-Peucker tolerance
POLYLINE_PRECISION = 1e5           # Google encoded polyline precision
SIMPLIFY_TOLERANCE_BOUNDS = (0.0, 1000.0, True)

# ============================================================
# Batch track processing
# ============================================================
BATCH_OUTLIER_SPEED_THRESHOLD = 10.0     # m/s (36 km/h) for stored runs
BATCH_OUTLIER_ACCURACY_THRESHOLD = 100.0 # meters
INTERPOLATION_ENABLED = True
GAP_MAX_DURATION_S = 30.0          # Longer gaps are interpolated
GAP_MAX_DISTANCE_M = 200.0         # Longer jumps are interpolated
INTERPOLATION_MIN_GAP_S = 5.0      # Gaps shorter than this are left alone
INTERPOLATION_MAX_GAP_S = 120.0    # Gaps longer than this are left alone
INTERPOLATION_STEP_S = 5.0         # One synthetic point every N seconds
INTERPOLATION_ACCURACY_FACTOR = 1.5

# ============================================================
# Auto-pause detection
# ============================================================
AUTO_PAUSE_SPEED_THRESHOLD = 0.5   # m/s
AUTO_PAUSE_TIME_THRESHOLD = 20.0   # seconds below threshold before pausing

# ============================================================
# NMEA replay
# ============================================================
KNOTS_TO_MS = 0.514444
NMEA_UERE_M = 5.0                  # User equivalent range error; accuracy = HDOP * UERE
NMEA_DEFAULT_ACCURACY_M = 10.0     # Accuracy when no HDOP is available
