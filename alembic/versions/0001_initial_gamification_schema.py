"""Initial gamification schema

Revision ID: 0001a7c3e9b2
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001a7c3e9b2"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True,
    )


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("member_tier", sa.String(30), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=True),
        sa.Column("achievements_count", sa.Integer(), nullable=True),
        sa.Column("goals_completed", sa.Integer(), nullable=True),
        sa.Column("discussions_count", sa.Integer(), nullable=True),
        sa.Column("meetings_attended", sa.Integer(), nullable=True),
        _timestamp("joined_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "user_points",
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("total_points", sa.Integer(), nullable=True),
        sa.Column("weekly_points", sa.Integer(), nullable=True),
        sa.Column("monthly_points", sa.Integer(), nullable=True),
        sa.Column("week_key", sa.String(8), nullable=True),
        sa.Column("month_key", sa.String(7), nullable=True),
        _timestamp("updated_at"),
    )
    op.create_index("ix_user_points_total_desc", "user_points", ["total_points"])

    op.create_table(
        "point_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_point_transactions_user_time", "point_transactions", ["user_id", "created_at"],
    )
    op.create_index("ix_point_transactions_action", "point_transactions", ["action_type"])

    op.create_table(
        "user_streaks",
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("current_streak", sa.Integer(), nullable=True),
        sa.Column("longest_streak", sa.Integer(), nullable=True),
        sa.Column("last_activity_date", sa.Date(), nullable=True),
        _timestamp("updated_at"),
        sa.CheckConstraint("current_streak >= 0", name="ck_user_streaks_current_nonneg"),
        sa.CheckConstraint(
            "longest_streak >= current_streak", name="ck_user_streaks_longest_max",
        ),
    )

    op.create_table(
        "daily_challenges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("challenge_type", sa.String(50), nullable=False),
        sa.Column("points_reward", sa.Integer(), nullable=True),
        sa.Column("active_date", sa.Date(), nullable=False, unique=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "user_challenge_completions",
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "challenge_id", sa.Integer(),
            sa.ForeignKey("daily_challenges.id", ondelete="CASCADE"), primary_key=True,
        ),
        _timestamp("completed_at"),
    )

    op.create_table(
        "badges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon_name", sa.String(30), nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("requirement_type", sa.String(30), nullable=False),
        sa.Column("requirement_value", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=True),
        _timestamp("created_at"),
    )

    op.create_table(
        "user_badges",
        sa.Column(
            "user_id", sa.String(36),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "badge_id", sa.Integer(),
            sa.ForeignKey("badges.id", ondelete="CASCADE"), primary_key=True,
        ),
        _timestamp("earned_at"),
        sa.Column("granted_by", sa.String(36), nullable=True),
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _timestamp("updated_at"),
    )
    op.create_index("ix_settings_category", "settings", ["category"])

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        _timestamp("timestamp"),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"],
    )


def downgrade() -> None:
    op.drop_table("admin_log")
    op.drop_table("settings")
    op.drop_table("user_badges")
    op.drop_table("badges")
    op.drop_table("user_challenge_completions")
    op.drop_table("daily_challenges")
    op.drop_table("user_streaks")
    op.drop_table("point_transactions")
    op.drop_table("user_points")
    op.drop_table("profiles")
