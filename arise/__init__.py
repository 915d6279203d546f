"""
Arise — A Progression Rules Engine for Chat Activity
=====================================================
Turns raw chat activity (messages sent, characters typed, channels visited,
time spent, critical hits) into experience, levels, hunter ranks, stats,
achievements, equippable titles and daily quests.  Detection of activity and
rendering of the overlay live in the host application; this package is the
deterministic core they feed events into and read snapshots out of.

Package layout::

    arise/
    ├── __main__.py        # CLI entry point (replay / status)
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Leveling curve (single canonical implementation)
    ├── errors.py          # Exception taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   └── models.py      # Snapshot slots + shared keyed state
    ├── engine/
    │   ├── events.py      # Inbound event envelopes + content flags
    │   ├── snapshot.py    # ProgressionSnapshot + (de)serialisation
    │   ├── stats.py       # Stats, perception buffs, resource pools
    │   ├── quality.py     # Additive XP bonuses
    │   ├── reward.py      # XP award pipeline
    │   ├── ranks.py       # Rank ladder + promotion
    │   ├── achievements.py # Achievement conditions, catalog, titles
    │   ├── quests.py      # Daily quest tracker
    │   └── progression.py # Snapshot transitions tying it all together
    └── services/
        ├── snapshot_store.py      # Validated save/load with backup slot
        ├── shared_state.py        # Cross-subsystem keyed storage
        ├── save_scheduler.py      # Debounced / immediate flushes
        ├── progression_service.py # Inbound events + outbound queries
        └── replay_service.py      # JSON-lines event replay
"""

__version__ = "0.1.0"
