"""Recompute every place and city safety score, then clear the score cache.

Usage: python scripts/recompute_scores.py [--city CITY_ID ...] [--strategy simple|weighted]
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from safetrail.container import ScoringContainer  # noqa: E402
from safetrail.obs.logging import configure_logging  # noqa: E402
from safetrail.scoring.jobs import recompute_scores  # noqa: E402
from safetrail.settings import Settings  # noqa: E402


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--city", dest="cities", action="append", help="limit to this city id (repeatable)")
    parser.add_argument("--strategy", choices=("simple", "weighted"), help="override PLACE_SCORING_STRATEGY")
    parser.add_argument("--env-file", default=".env", help="dotenv file to load before reading settings")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)
    load_dotenv(args.env_file)
    config = Settings()
    if args.strategy:
        config.place_scoring_strategy = args.strategy
    configure_logging(config)

    container = await ScoringContainer.connect(config)
    try:
        summary = await recompute_scores.run(container, city_ids=args.cities)
    finally:
        await container.close()

    print(
        f"places={summary.places_updated} fallback={summary.places_fallback} "
        f"cities={summary.cities_updated} cache_cleared={summary.cache_keys_cleared}"
    )
    for place_id in summary.fallback_place_ids:
        print(f"  fallback: place {place_id}")
    return 1 if summary.places_fallback else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
