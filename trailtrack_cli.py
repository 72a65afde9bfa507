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
TrailTrack CLI entry point.

Replays a recorded NMEA log through a tracking session and prints the
activity statistics as JSON.
"""
import json
import os
import sys
import argparse
import logging
from collections import Counter

# Add script directory to path for imports
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
if SCRIPT_DIR not in sys.path:
    sys.path.insert(0, SCRIPT_DIR)

from core.geo import calculate_route_bounds, calculate_route_center
from core.processing import process_track_points
from core.publisher import FixPublisher
from core.session import TrackingSession
from core.simplify import simplify_polyline, encode_polyline
from core.statistics import statistics_to_dict
from core.structures import PASSTHROUGH_SOURCES, STATUS_ACTIVE, STATUS_PAUSED
from core.validation import validate_track_points
from parsers.nmea_handler import extract_fixes, calculate_gps_frequency
from locales.strings import ERRORS

logger = logging.getLogger('trailtrack_cli')


class TrackLog:
    """Subscriber collecting accepted track points, the way persistence would."""

    def __init__(self):
        self.points = []

    def __call__(self, fix):
        if fix.source not in PASSTHROUGH_SOURCES:
            self.points.append(fix)


def replay_fixes(fixes, tracking_config=None, registry=None):
    """
    Feeds recorded fixes through a TrackingSession timed by the fixes themselves.

    Args:
        fixes: raw fixes in recording order (at least one)
        tracking_config: tracking option overrides
        registry: SessionRegistry (default: the process-wide registry)

    Returns:
        tuple: (completed session, accepted track points, rejection reason counts)
    """
    reasons = Counter()
    track = TrackLog()
    # Unbounded backlog: a replay must not lose points to a slow subscriber
    session = TrackingSession(tracking_config, registry=registry,
                              on_reject=lambda fix, reason: reasons.update([reason]),
                              publisher=FixPublisher(max_queue_size=0))
    session.subscribe(track)

    session.start(now_ms=fixes[0].timestamp)
    try:
        for fix in fixes:
            session.handle_fix(fix)
    finally:
        if session.status in (STATUS_ACTIVE, STATUS_PAUSED):
            session.stop(now_ms=fixes[-1].timestamp)

    return session, track.points, dict(reasons)


def build_report(nmea_file, fixes, tracking_config, statistics_options, simplify_tolerance):
    """Assembles the JSON report for a replayed log."""
    session, points, reasons = replay_fixes(fixes, tracking_config)

    stats = session.summarize(points, statistics_options)
    simplified = simplify_polyline(points, simplify_tolerance)
    processing_options = {} if simplify_tolerance is None else {'simplify_tolerance': simplify_tolerance}
    processed = process_track_points(points, processing_options)

    return {
        "success": True,
        "file": os.path.basename(nmea_file),
        "gps_frequency": calculate_gps_frequency([f.timestamp for f in fixes]),
        "fixes": {
            "total": len(fixes),
            "accepted": session.accepted_count,
            "rejected": session.rejected_count,
            "rejection_reasons": reasons,
            "undelivered": session.dropped_fix_count,
            "track_points": len(points),
            "simplified_points": len(simplified),
        },
        "statistics": statistics_to_dict(stats),
        "bounds": calculate_route_bounds(points),
        "center": calculate_route_center(points),
        "validation": validate_track_points(points),
        "polyline": encode_polyline(points),
        "simplified_polyline": encode_polyline(simplified),
        "post_processing": {
            "outlier_count": processed['outlier_count'],
            "interpolation_count": processed['interpolation_count'],
            "elevation_gain": processed['elevation_gain'],
            "elevation_loss": processed['elevation_loss'],
            "total_distance": processed['total_distance'],
        },
    }


def print_error(message):
    error_response = {
        "success": False,
        "error": message
    }
    print(json.dumps(error_response, ensure_ascii=False, indent=2))
    sys.exit(1)


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(description='GPS track filtering and activity statistics from NMEA data')
    parser.add_argument('nmea_file', help='Path to NMEA file')
    parser.add_argument('--no-kalman', dest='kalman', action='store_false', help='Disable Kalman smoothing')
    parser.add_argument('--no-outliers', dest='outliers', action='store_false', help='Disable outlier rejection')
    parser.add_argument('--max-speed', type=float, help='Outlier speed threshold in m/s', default=None)
    parser.add_argument('--max-accuracy', type=float, help='Outlier accuracy threshold in meters', default=None)
    parser.add_argument('--smoothing-window', type=int, help='Elevation smoothing window (points)', default=None)
    parser.add_argument('--elevation-threshold', type=float, help='Elevation gain/loss threshold in meters', default=None)
    parser.add_argument('--min-split-distance', type=float, help='Minimum distance for the first split in meters', default=None)
    parser.add_argument('--simplify-tolerance', type=float, help='Douglas-Peucker tolerance in meters', default=None)
    parser.add_argument('--verbose', action='store_true', help='Log progress to stderr')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.ERROR,
        format='%(levelname)s: %(message)s',
        stream=sys.stderr
    )

    tracking_config = {
        'kalman_filter_enabled': args.kalman,
        'outlier_detection_enabled': args.outliers,
    }
    if args.max_speed is not None:
        tracking_config['max_speed_threshold'] = args.max_speed
    if args.max_accuracy is not None:
        tracking_config['max_accuracy_threshold'] = args.max_accuracy

    statistics_options = {}
    if args.smoothing_window is not None:
        statistics_options['smoothing_window'] = args.smoothing_window
    if args.elevation_threshold is not None:
        statistics_options['elevation_threshold'] = args.elevation_threshold
    if args.min_split_distance is not None:
        statistics_options['min_split_distance'] = args.min_split_distance

    try:
        if not os.path.exists(args.nmea_file):
            print_error(ERRORS['file_not_found'].format(file_path=args.nmea_file))

        fixes = extract_fixes(args.nmea_file)
        if not fixes:
            print_error(ERRORS['no_fixes'].format(file_path=args.nmea_file))

        response = build_report(args.nmea_file, fixes, tracking_config,
                                statistics_options, args.simplify_tolerance)
        print(json.dumps(response, ensure_ascii=False, indent=2))

    except Exception as e:
        logger.debug("Replay failed", exc_info=True)
        print_error(f"Error: {str(e)}")


if __name__ == "__main__":
    main()
