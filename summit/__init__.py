"""
Summit — Gamification Bookkeeping for a Membership Community
=============================================================
Tracks daily activity streaks, keeps an append-only point ledger with
weekly/monthly leaderboards, gates once-per-day challenges, and unlocks
badges when a member's metrics cross catalog thresholds.

Package layout::

    summit/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Badge category / icon variants
    ├── errors.py          # AuthRequired, AlreadyCompleted, StorageError, NotFound
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default settings + badge catalog
    ├── engine/
    │   ├── streaks.py     # Streak state machine + trusted "today"
    │   ├── points.py      # Balance arithmetic + period rollover
    │   ├── badges.py      # Badge rules engine
    │   ├── changes.py     # Change events + in-process ChangeFeed
    │   └── cache.py       # In-memory badge catalog + settings
    ├── services/
    │   ├── context.py     # MemberContext passed into every call
    │   ├── member_service.py     # Profiles + leaderboard
    │   ├── ledger_service.py     # Point credits
    │   ├── streak_service.py     # Daily activity recording
    │   ├── challenge_service.py  # Daily challenge completion
    │   ├── badge_service.py      # Metric assembly + badge awards
    │   ├── admin_service.py      # Audit-logged admin mutations
    │   ├── reconciliation_service.py  # Ledger vs. counter drift repair
    │   └── realtime.py           # PG LISTEN/NOTIFY bridge
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → MemberContext, shared singletons
        └── routes/        # Public, member, admin, realtime endpoints
"""

__version__ = "0.1.0"
