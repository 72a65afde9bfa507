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
Exception types raised by TrailTrack.

Rejected fixes are not errors: the filtering pipeline drops them silently
and reports them only through its diagnostic callback. Tracks too short to
measure are not errors either; the statistics engine returns zeroed
statistics for them.
"""


class TrailTrackError(Exception):
    """Base class for all TrailTrack errors."""


class ValidationError(TrailTrackError, ValueError):
    """A fix or track point carries a malformed or out-of-range field."""

    def __init__(self, field, value, reason):
        super().__init__(f"Validation failed for field '{field}': {reason}. Got: {value}")
        self.field = field
        self.value = value
        self.reason = reason


class ConfigurationError(TrailTrackError, ValueError):
    """A configuration option is unknown, mistyped or outside sane bounds."""


class StateError(TrailTrackError):
    """Illegal tracking session transition."""


class PermissionDeniedError(StateError):
    """The permission collaborator refused to let tracking start."""
