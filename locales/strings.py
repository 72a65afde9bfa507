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
Localization strings for TrailTrack.
English dictionary for validation reports and CLI errors.
"""

# CLI errors
ERRORS = {
    'file_not_found': "File not found: {file_path}",
    'no_fixes': "No usable GPS fixes found in {file_path}",
}

# Validation errors - the track cannot be measured
VALIDATION_ERRORS = {
    'no_points': "No track points provided",
    'too_few_points': "At least 2 track points required for statistics calculation",
    'invalid_coordinates': "Invalid coordinates at point {index}: lat={lat}, lon={lon}",
}

# Validation warnings - advisory only
VALIDATION_WARNINGS = {
    'poor_accuracy': "Poor GPS accuracy at point {index}: {accuracy}m",
    'low_elevation_coverage': "Less than {ratio:.0%} of track points have elevation data",
    'suspicious_speed': "{count} track points have suspicious speed values (>{threshold:g} m/s)",
    'not_chronological': "Track points not in chronological order at index {index}",
}
