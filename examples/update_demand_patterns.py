"""Regenerate the bundled demand pattern table from NY open data ridership."""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import crowdtrack
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from crowdtrack.demand import (
    DEMAND_PATTERNS_PATH,
    RIDERSHIP_WEEKS,
    build_demand_patterns,
    fetch_ridership,
    save_demand_patterns,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--weeks", type=int, default=RIDERSHIP_WEEKS, help="Weeks of ridership to average")
    parser.add_argument("--output", default=str(DEMAND_PATTERNS_PATH), help="Where to write the table")
    args = parser.parse_args()

    rows = fetch_ridership(weeks=args.weeks)
    if not rows:
        logger.error("No ridership data fetched, keeping the existing table")
        sys.exit(1)

    data = build_demand_patterns(rows, weeks=args.weeks)
    save_demand_patterns(data, args.output)

    info = data["rush_hour_info"]
    print(f"Stations: {data['metadata']['station_count']}")
    print(f"Average rush demand: {info['avg_rush_demand']}")
    print(f"Average off-peak demand: {info['avg_off_peak_demand']}")
    print(f"Rush multiplier: {info['rush_multiplier']}x")


if __name__ == "__main__":
    main()
