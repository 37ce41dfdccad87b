"""Example usage of CrowdingTracker and the feed extractors."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import crowdtrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crowdtrack import CrowdingTracker, MTAFeedClient, extract_arrivals
from crowdtrack.alerts import fetch_alerts, filter_alerts
from crowdtrack.elevators import fetch_current_outages, outage_summary
from crowdtrack.rail import get_rail_summary
from crowdtrack.scoring import dominant_factor_explanation, get_dominant_factor, score_description
from crowdtrack.segments import get_line_segments

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_route_crowding(tracker: CrowdingTracker, route_id: str):
    """
    Display crowding for a subway line, segment by segment.

    Args:
        tracker: Crowding tracker to query.
        route_id: Subway line (e.g. "A" or "6").
    """
    print(f"\n{'='*70}")
    print(f"Crowding for the {route_id} line")
    print(f"{'='*70}\n")

    result = tracker.route_crowding(route_id, max_segments=len(get_line_segments(route_id)))
    if result is None:
        print("  No live data for this line")
        return

    print(f"Overall: {result.avg_level} ({result.avg_score}/100)")
    print(f"  {score_description(result.avg_score, result.avg_level)}\n")

    print("SEGMENTS:")
    print("-" * 70)
    for segment in result.segments:
        factor, value = get_dominant_factor(segment.factors)
        print(
            f"  {segment.segment_name:<20} {segment.direction}  "
            f"{segment.crowding_level:<6} {segment.crowding_score:3d}  "
            f"({dominant_factor_explanation(factor).lower()}, {value:.2f})"
        )

    alerts = filter_alerts(fetch_alerts(tracker.client), route_id=route_id, active_only=True)
    print("\n" + "=" * 70)
    print("SERVICE ALERTS:")
    print("-" * 70)
    if alerts:
        for alert in alerts:
            print(f"\n[{alert.severity}] {alert.alert_type}:")
            print(f"  {alert.header_text}")
    else:
        print("  No service alerts")


def print_next_trains(client: MTAFeedClient, route_id: str, station_id: str):
    """Display the next trains of a line at a station."""
    feed = client.get_feed_for_route(route_id)
    arrivals = extract_arrivals(feed, "subway", route_id=route_id, station_id=station_id, limit=6)

    print(f"\nNEXT {route_id} TRAINS AT {station_id}:")
    if not arrivals:
        print("  No arrivals found")
    for arrival in arrivals:
        print(f"  {arrival.direction}: {arrival.minutes_away:2d} min ({arrival.headsign or arrival.trip_id})")


def print_network_summary(tracker: CrowdingTracker):
    """Display network crowding, railroad activity and elevator outages."""
    network = tracker.network_crowding()
    print(f"\nNetwork crowding: {network.avg_level} ({network.avg_score}/100)")
    for route in sorted(network.routes, key=lambda r: r.avg_score, reverse=True):
        print(f"  {route.route_id:<4} {route.avg_level:<6} {route.avg_score:3d}")

    for mode in ("lirr", "metro-north"):
        summary = get_rail_summary(tracker.client, mode)
        live = "live" if summary["is_live"] else "schedule only"
        print(f"\n{mode}: {summary['total_trains']} trains ({live})")

    outages = outage_summary(fetch_current_outages(tracker.client))
    print(
        f"\nElevator/escalator outages: {outages['total_outages']} "
        f"({outages['ada_outages']} affecting ADA access)"
    )


if __name__ == "__main__":
    try:
        with CrowdingTracker() as tracker:
            if len(sys.argv) > 1:
                # Command line mode: route and optional station
                route = sys.argv[1].upper()
                print_route_crowding(tracker, route)
                if len(sys.argv) > 2:
                    print_next_trains(tracker.client, route, sys.argv[2].upper())
            else:
                print_network_summary(tracker)
    except KeyboardInterrupt:
        print("\nInterrupted")
    except Exception as e:
        logger.error(f"Failed to fetch data: {e}", exc_info=True)
        sys.exit(1)
