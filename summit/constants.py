"""
summit.constants — Shared Constants & Presentation Helpers
===========================================================

Single source of truth for badge categories, badge icons and leaderboard
presentation.  Badge rows store plain strings; these enums are the closed
set of variants the API resolves them to.
"""

from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# Badge categories
# ---------------------------------------------------------------------------
class BadgeCategory(enum.StrEnum):
    GOALS = "goals"
    SOCIAL = "social"
    ENGAGEMENT = "engagement"
    STREAKS = "streaks"
    ACHIEVEMENTS = "achievements"
    OTHER = "other"


# (gradient_from, gradient_to) hex pairs
CATEGORY_GRADIENTS: dict[BadgeCategory, tuple[str, str]] = {
    BadgeCategory.GOALS: ("#22c55e", "#059669"),
    BadgeCategory.SOCIAL: ("#3b82f6", "#0891b2"),
    BadgeCategory.ENGAGEMENT: ("#a855f7", "#db2777"),
    BadgeCategory.STREAKS: ("#f97316", "#dc2626"),
    BadgeCategory.ACHIEVEMENTS: ("#eab308", "#d97706"),
    BadgeCategory.OTHER: ("#6b7280", "#4b5563"),
}


def parse_category(raw: str | None) -> BadgeCategory:
    """Map a stored category string onto :class:`BadgeCategory`."""
    try:
        return BadgeCategory((raw or "").strip().lower())
    except ValueError:
        return BadgeCategory.OTHER


def category_style(raw: str | None) -> dict[str, str]:
    category = parse_category(raw)
    start, end = CATEGORY_GRADIENTS[category]
    return {"category": category.value, "gradient_from": start, "gradient_to": end}


# ---------------------------------------------------------------------------
# Badge icons
# ---------------------------------------------------------------------------
class BadgeIcon(enum.StrEnum):
    TROPHY = "trophy"
    TARGET = "target"
    MESSAGE = "message"
    USERS = "users"
    FLAME = "flame"
    STAR = "star"
    ZAP = "zap"
    AWARD = "award"
    CROWN = "crown"
    SHIELD = "shield"
    HEART = "heart"
    BOOK = "book"
    ROCKET = "rocket"
    MEDAL = "medal"


def resolve_icon(icon_name: str | None) -> BadgeIcon:
    """Return the icon variant for *icon_name*; unknown names render as AWARD."""
    try:
        return BadgeIcon((icon_name or "").strip().lower())
    except ValueError:
        return BadgeIcon.AWARD


# ---------------------------------------------------------------------------
# Leaderboard presentation
# ---------------------------------------------------------------------------
RANK_BADGES: list[str] = ["\U0001f451", "\U0001f948", "\U0001f949"]  # 👑🥈🥉

LEADERBOARD_PERIODS: tuple[str, ...] = ("total", "weekly", "monthly")
