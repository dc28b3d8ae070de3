#!/usr/bin/env python3
"""
Recommendation refresh entry point.

Called by cron or an external scheduler to recompute recommendations for one
user or for every active user, or to print store statistics.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Add src to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from dotenv import load_dotenv

load_dotenv(project_root / ".env")

from rental_recs.application.jobs import RecommendationRefreshJob
from rental_recs.infrastructure.data import DataConfig, RepositoryManager

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main() -> int:
    """Main function for command-line usage"""
    import argparse

    parser = argparse.ArgumentParser(description='Refresh property recommendations')
    parser.add_argument('--command', choices=['refresh', 'loop', 'stats', 'show'],
                        default='refresh', help='Command to execute')
    parser.add_argument('--user-id', type=int, default=None,
                        help='Limit refresh/show to one user')
    parser.add_argument('--force', action='store_true',
                        help='Recompute even when a fresh cached list exists')
    parser.add_argument('--interval', type=float, default=3600.0,
                        help='Seconds between sweeps for the loop command')
    parser.add_argument('--skip-schema', action='store_true',
                        help='Do not create the recommendation table on startup')

    args = parser.parse_args()
    config = DataConfig()

    async with RepositoryManager(config, ensure_schema=not args.skip_schema) as factory:
        service = factory.get_recommendation_service()

        if args.command == 'refresh':
            job = RecommendationRefreshJob(service)
            result = await job.run_once(user_id=args.user_id, force=args.force or None)
            summary = result.summary
            if summary:
                print(f"Processed: {summary.processed}  Refreshed: {summary.refreshed}  "
                      f"Skipped: {summary.skipped}  Failed: {summary.failed}")
            if result.error_message:
                print(f"Error: {result.error_message}")
            return 0 if result.success else 1

        if args.command == 'loop':
            job = RecommendationRefreshJob(service)
            await job.run_forever(args.interval, force=args.force)
            return 0

        if args.command == 'show':
            if args.user_id is None:
                parser.error("--user-id is required for show")
            recommendations = await service.get_recommendations(args.user_id)
            for rec in recommendations:
                reasons = ", ".join(reason.value for reason in rec.reasons)
                print(f"{rec.property_id:>10}  {rec.score:>7.2f}  {reasons}")
            return 0

        stats = await service.get_recommendation_stats()
        print(f"Total: {stats.total_recommendations}  Active: {stats.active_recommendations}")
        print(f"Shown: {stats.shown_count}  Clicked: {stats.clicked_count}  Booked: {stats.booked_count}")
        print(f"CTR: {stats.click_through_rate}%  Conversion: {stats.conversion_rate}%")
        print(f"Average score: {stats.average_score}")
        for reason, count in stats.top_performing_reasons.items():
            print(f"  {reason}: {count}")
        return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
