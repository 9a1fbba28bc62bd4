"""
summit.database.seed — Default Settings & Badge Catalog Seeder
===============================================================

Baseline rows seeded on startup so a fresh database is immediately usable.

Idempotent — only inserts keys / badge names that don't already exist.
Admin edits are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from summit.database.models import ActionType, Badge, RequirementType, Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    f"points.{ActionType.ACHIEVEMENT_POSTED}": (
        10, "points", "Points for sharing an achievement",
    ),
    f"points.{ActionType.DISCUSSION_CREATED}": (
        5, "points", "Points for starting a discussion",
    ),
    f"points.{ActionType.GOAL_COMPLETED}": (
        25, "points", "Points for completing a goal",
    ),
    f"points.{ActionType.MEETING_ATTENDED}": (
        15, "points", "Points for attending a meeting",
    ),
    "leaderboard.size": (100, "display", "Members shown on each leaderboard tab"),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Default badge catalogue
# ---------------------------------------------------------------------------
# (name, description, icon_name, category, requirement_type, requirement_value)
DEFAULT_BADGES: list[tuple[str, str, str, str, str, int]] = [
    ("First Points", "Earn your first points", "star", "engagement",
     RequirementType.POINTS, 1),
    ("Point Collector", "Earn 500 points", "zap", "engagement",
     RequirementType.POINTS, 500),
    ("Top Contributor", "Earn 2,500 points", "crown", "engagement",
     RequirementType.POINTS, 2500),
    ("On Fire", "Keep a 7-day streak", "flame", "streaks",
     RequirementType.STREAK, 7),
    ("Unstoppable", "Reach a 30-day best streak", "rocket", "streaks",
     RequirementType.LONGEST_STREAK, 30),
    ("Challenger", "Complete 5 daily challenges", "target", "engagement",
     RequirementType.CHALLENGES_COMPLETED, 5),
    ("Achiever", "Share 10 achievements", "trophy", "achievements",
     RequirementType.ACHIEVEMENTS, 10),
    ("Goal Getter", "Complete 5 goals", "medal", "goals",
     RequirementType.GOALS_COMPLETED, 5),
    ("Conversation Starter", "Start 10 discussions", "message", "social",
     RequirementType.DISCUSSIONS, 10),
    ("Regular", "Attend 5 meetings", "users", "social",
     RequirementType.MEETINGS_ATTENDED, 5),
]


# ---------------------------------------------------------------------------
# Seeders
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist."""
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            existing = session.get(Setting, key)
            if existing is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)


def seed_default_badges(engine: Engine) -> None:
    """Insert catalog badges whose names are not present yet."""
    with Session(engine) as session:
        existing = set(session.scalars(select(Badge.name)).all())
        inserted = 0
        for name, desc, icon, category, req_type, req_value in DEFAULT_BADGES:
            if name in existing:
                continue
            session.add(Badge(
                name=name,
                description=desc,
                icon_name=icon,
                category=category,
                requirement_type=str(req_type),
                requirement_value=req_value,
            ))
            inserted += 1
        session.commit()

    if inserted:
        logger.info("Seeded %d default badges.", inserted)
