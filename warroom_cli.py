#!/usr/bin/env python3
"""
War Room CLI

Fetches one league-week from Platform A or Platform B and prints the
normalized matchups, battle-royale rankings, or a player's score breakdown.

Usage:
    python warroom_cli.py --platform A --league 1048293 --week 3
    python warroom_cli.py --platform B --league 88412 --week 3 --rankings
    python warroom_cli.py --platform A --league 1048293 --week 3 --player 00-0036322
"""

import argparse
import asyncio
import logging
import os
import sys

from warroom import LeagueRef, NoDataAvailable, PlatformSource, RateLimited, SnapshotNotFound
from warroom.config import CONFIG_ENV_VAR, clear_config_cache, get_config
from warroom.logging_config import setup_logging
from warroom.service import WarRoomService, build_service


def print_matchups(snapshots) -> None:
    for snapshot in snapshots:
        home = snapshot.home
        print(f'\n[{snapshot.snapshot_id.matchup_id}] {snapshot.status.value.upper()}')
        print(f'  {home.name:<28} {home.score:7.2f}  (proj {home.projected_score:.2f})')
        if snapshot.away is not None:
            away = snapshot.away
            print(f'  {away.name:<28} {away.score:7.2f}  (proj {away.projected_score:.2f})')
        else:
            print('  (no opponent)')


def print_rankings(rankings) -> None:
    print(f'\n{"Rank":>4}  {"Team":<20} {"Score":>8} {"Survival":>9}  Status')
    for ranking in rankings:
        print(
            f'{ranking.rank:>4}  {ranking.team_id:<20} {ranking.raw_score:8.2f} '
            f'{ranking.survival_probability:9.0%}  {ranking.status.value}'
        )


def print_breakdown(breakdown) -> None:
    print(f'\n{breakdown.player_id} week {breakdown.week} ({breakdown.rule_source.value}, {breakdown.confidence})')
    for item in breakdown.items:
        print(
            f'  {item.display_name:<28} {item.raw_value:8.1f} x {item.points_per_unit:6.2f} = {item.total_points:7.2f}'
        )
    print(f'  {"Total":<28} {breakdown.total_score:28.2f}')
    if breakdown.has_discrepancy:
        print(
            f'  ⚠️  computed {breakdown.computed_total:.2f} differs from reported {breakdown.reported_total:.2f}'
        )
    elif breakdown.is_estimate:
        print('  (estimate only)')


async def run(service: WarRoomService, args) -> int:
    league = LeagueRef(args.league, PlatformSource(args.platform))
    service.track(league, args.week)
    try:
        if args.player:
            print_breakdown(await service.get_breakdown(args.player, league, args.week))
        elif args.rankings:
            print_rankings(await service.get_rankings(league, args.week))
        else:
            print_matchups(await service.get_matchups(league, args.week))
    except RateLimited as e:
        print(f'❌ Rate limited by platform {args.platform}; retry after {e.retry_after or "a while"}s')
        return 1
    except NoDataAvailable as e:
        print(f'❌ No data available: {e}')
        return 1
    except SnapshotNotFound as e:
        print(f'⚠️  {e}')
        return 1
    finally:
        await service.aclose()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Cross-platform fantasy matchup reconciliation")
    parser.add_argument(
        "--platform", "-p",
        choices=["A", "B"],
        required=True,
        help="Platform the league lives on",
    )
    parser.add_argument(
        "--league", "-l",
        required=True,
        help="League id on that platform",
    )
    parser.add_argument(
        "--week", "-w",
        type=int,
        required=True,
        help="Week (scoring period) to fetch",
    )
    parser.add_argument(
        "--rankings",
        action="store_true",
        help="Show battle-royale rankings instead of matchups",
    )
    parser.add_argument(
        "--player",
        default=None,
        help="Canonical player id to show a score breakdown for",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to an alternate warroom_config.json",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors",
    )

    args = parser.parse_args()

    setup_logging(log_to_file=False, level=logging.WARNING if args.quiet else None)

    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config
        clear_config_cache()

    config = get_config()
    print(f"Fetching week {args.week} of league {args.league} on platform {args.platform} ({config.season})...")

    service = build_service(config)
    sys.exit(asyncio.run(run(service, args)))


if __name__ == "__main__":
    main()
