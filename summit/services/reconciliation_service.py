"""
summit.services.reconciliation_service — Point Total Reconciliation
====================================================================

Periodic job that validates cached ``user_points.total_points`` against
the ``point_transactions`` ledger and corrects drift if found.

How it works:
    1. Query ``SUM(points)`` from ``point_transactions`` grouped by user_id.
    2. Compare against the stored ``user_points.total_points``.
    3. If there is a mismatch, overwrite the total with the ledger sum.
    4. Log all corrections for audit.

Weekly and monthly counters are NOT reconciled: they are period windows
over the ledger and reset on their own at the next rollover.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, func, select

from summit.database.engine import get_session, insert_if_absent
from summit.database.models import PointTransaction, UserPoints

logger = logging.getLogger(__name__)


def reconcile_point_totals(engine: Engine) -> dict:
    """Validate cached totals against the ledger and fix drift.

    Returns ``{"checked": N, "corrected": M, "corrections": [...]}``.
    """
    corrections: list[dict] = []

    with get_session(engine) as session:
        # Ground truth: SUM(points) per member from the ledger
        truth_rows = session.execute(
            select(
                PointTransaction.user_id,
                func.sum(PointTransaction.points).label("actual"),
            )
            .group_by(PointTransaction.user_id)
        ).all()
        truth_map: dict[str, int] = {
            row.user_id: int(row.actual or 0) for row in truth_rows
        }

        totals: dict[str, UserPoints] = {
            row.user_id: row
            for row in session.scalars(select(UserPoints).with_for_update()).all()
        }

        checked = 0

        for user_id, actual in truth_map.items():
            checked += 1
            row = totals.get(user_id)
            stored = row.total_points if row is not None else 0

            if stored != actual:
                corrections.append({
                    "user_id": user_id,
                    "stored": stored,
                    "actual": actual,
                    "diff": actual - stored,
                })
                if row is None:
                    insert_if_absent(
                        session, UserPoints,
                        user_id=user_id, total_points=actual,
                        weekly_points=0, monthly_points=0,
                    )
                else:
                    row.total_points = actual

        # Balances with no ledger rows at all (orphans)
        for user_id, row in totals.items():
            if user_id not in truth_map and row.total_points:
                checked += 1
                corrections.append({
                    "user_id": user_id,
                    "stored": row.total_points,
                    "actual": 0,
                    "diff": -row.total_points,
                })
                row.total_points = 0

    if corrections:
        logger.warning(
            "Point reconciliation: corrected %d/%d totals: %s",
            len(corrections), checked, corrections,
        )
    else:
        logger.info("Point reconciliation: all %d totals match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
        "timestamp": datetime.now(UTC).isoformat(),
    }
