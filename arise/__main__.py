"""
arise.__main__ — Entry point for ``python -m arise``
=====================================================

Wiring:
1. Load .env (DATABASE_URL).
2. Load config.yaml (soft settings; defaults when absent).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Build the ProgressionService and load the profile.
5. Replay an event log, or just print the status.

Run with::

    python -m arise replay events.jsonl
    python -m arise status
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from dotenv import load_dotenv

from arise.config import AriseConfig, load_config
from arise.constants import STAT_ABBREVIATIONS
from arise.database.engine import create_db_engine, init_db
from arise.services.progression_service import ProgressionService
from arise.services.replay_service import replay_file
from arise.services.shared_state import DatabaseSharedState

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("arise")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="arise", description="Arise progression engine")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--profile", help="Override the profile name from config")
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Feed a JSON-lines event log through the engine")
    replay.add_argument("events", help="Path to the .jsonl event log")

    sub.add_parser("status", help="Print the current progression summary")
    return parser


def _print_status(service: ProgressionService) -> None:
    snap = service.snapshot
    info = service.get_current_level()
    stats = service.get_effective_stats()
    pools = snap.resource_pools

    print(f"Rank {service.get_rank()}  ·  Level {info.level}  "
          f"({info.current_level_xp}/{info.xp_required_for_next} XP, {snap.total_xp} total)")
    print("  ".join(f"{STAT_ABBREVIATIONS[s]} {v}" for s, v in stats.items())
          + f"  ·  {snap.unallocated_stat_points} unallocated")
    print(f"HP {pools.hp}/{pools.max_hp}  ·  Mana {pools.mana}/{pools.max_mana}")
    print(f"Title: {snap.active_title or '—'}  ·  "
          f"{snap.achievement_count} achievements, {len(snap.unlocked_titles)} titles")
    for quest in service.get_daily_quest_state().values():
        mark = "✓" if quest["completed"] else " "
        print(f"  [{mark}] {quest['name']}: {quest['progress']:g}/{quest['target']:g}")


def main(argv: list[str] | None = None) -> int:
    """Bootstrap the engine and run one command."""
    args = _build_parser().parse_args(argv)

    # 1. Environment variables.
    load_dotenv()

    # 2. Soft configuration.
    try:
        cfg = load_config(args.config)
    except FileNotFoundError:
        logger.info("No %s found; using defaults", args.config)
        cfg = AriseConfig()
    if args.profile:
        cfg = dataclasses.replace(cfg, profile_name=args.profile)
    logging.getLogger().setLevel(cfg.log_level)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Service.
    service = ProgressionService(engine, cfg, shared_state=DatabaseSharedState(engine))
    service.load()

    # 5. Command.
    if args.command == "replay":
        summary = replay_file(service, args.events)
        print(f"Replayed {summary.processed} events "
              f"({summary.skipped} skipped): +{summary.xp_awarded} XP, "
              f"+{summary.levels_gained} levels")
        for rank in summary.promotions:
            print(f"  Rank up → {rank}")
        for name in summary.unlocked:
            print(f"  Achievement: {name}")
    else:
        service.flush()

    _print_status(service)
    return 0


if __name__ == "__main__":
    sys.exit(main())
