"""
tests/test_points.py — Point Ledger Arithmetic Unit Tests
==========================================================
"""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest

from summit.database.models import ActionType
from summit.engine.points import (
    DEFAULT_ACTION_POINTS,
    PointBalance,
    apply_credit,
    current_view,
    period_keys,
    points_for_action,
)


class TestPeriodKeys:
    def test_iso_week_and_month(self):
        assert period_keys(date(2024, 1, 2)) == ("2024-W01", "2024-01")

    def test_iso_week_crosses_year(self):
        # 2024-12-30 is a Monday in ISO week 1 of 2025
        assert period_keys(date(2024, 12, 30)) == ("2025-W01", "2024-12")


class TestApplyCredit:
    def test_credits_accumulate(self):
        day = date(2024, 1, 2)
        balance = apply_credit(PointBalance(), 10, day)
        balance = apply_credit(balance, 5, day)
        assert balance.total_points == 15
        assert balance.weekly_points == 15
        assert balance.monthly_points == 15

    def test_zero_amount_rejected(self):
        with pytest.raises(ValueError, match="non-zero"):
            apply_credit(PointBalance(), 0, date(2024, 1, 2))

    def test_negative_amount_is_a_debit(self):
        balance = apply_credit(PointBalance(), 10, date(2024, 1, 2))
        balance = apply_credit(balance, -4, date(2024, 1, 2))
        assert balance.total_points == 6

    def test_new_week_resets_weekly_only(self):
        balance = apply_credit(PointBalance(), 10, date(2024, 1, 2))
        balance = apply_credit(balance, 5, date(2024, 1, 9))
        assert balance.total_points == 15
        assert balance.weekly_points == 5
        assert balance.monthly_points == 15
        assert balance.week_key == "2024-W02"

    def test_new_month_resets_monthly(self):
        balance = apply_credit(PointBalance(), 10, date(2024, 1, 31))
        balance = apply_credit(balance, 5, date(2024, 2, 1))
        assert balance.monthly_points == 5
        assert balance.month_key == "2024-02"
        # Same ISO week, so weekly keeps counting
        assert balance.weekly_points == 15


class TestCurrentView:
    def test_stale_periods_read_as_zero(self):
        balance = apply_credit(PointBalance(), 10, date(2024, 1, 2))
        view = current_view(balance, date(2024, 3, 1))
        assert view.total_points == 10
        assert view.weekly_points == 0
        assert view.monthly_points == 0

    def test_current_periods_unchanged(self):
        balance = apply_credit(PointBalance(), 10, date(2024, 1, 2))
        assert current_view(balance, date(2024, 1, 3)) == balance


class TestPointsForAction:
    def test_defaults_without_cache(self):
        assert points_for_action(ActionType.GOAL_COMPLETED) == 25

    def test_reads_setting_from_cache(self):
        cache = MagicMock()
        cache.get_int.return_value = 40
        assert points_for_action(ActionType.MEETING_ATTENDED, cache) == 40
        cache.get_int.assert_called_once_with(
            "points.meeting_attended", DEFAULT_ACTION_POINTS[ActionType.MEETING_ATTENDED],
        )

    @pytest.mark.parametrize("action", [ActionType.DAILY_CHALLENGE, ActionType.MANUAL_AWARD])
    def test_actions_without_fixed_value(self, action):
        with pytest.raises(ValueError):
            points_for_action(action)
