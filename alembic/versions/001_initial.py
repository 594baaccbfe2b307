"""Initial league night schema: players, league days, nights, check-ins, partnerships, matches, notification_log.

Revision ID: 001_initial
Revises:
"""

from alembic import op
import sqlalchemy as sa


revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # -----------------------------------------------------------------------
    # 1. Players and league roles
    # -----------------------------------------------------------------------
    op.create_table(
        "player",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False, server_default=""),
        sa.Column("skill_level", sa.String(), nullable=True),
        sa.Column("cell_phone", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "league_membership",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("league_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="member"),
        sa.UniqueConstraint("league_id", "player_id", name="uq_league_member"),
    )
    op.create_index("ix_league_membership_league_id", "league_membership", ["league_id"])
    op.create_index("ix_league_membership_player_id", "league_membership", ["player_id"])

    # -----------------------------------------------------------------------
    # 2. Weekly template and its dated instances
    # -----------------------------------------------------------------------
    op.create_table(
        "league_day",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("league_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("court_labels", sa.JSON(), nullable=True),
    )
    op.create_index("ix_league_day_league_id", "league_day", ["league_id"])

    op.create_table(
        "league_night_instance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("league_id", sa.Integer(), nullable=False),
        sa.Column("league_day_id", sa.Integer(), sa.ForeignKey("league_day.id"), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("courts", sa.JSON(), nullable=False),
        sa.Column("auto_assignment_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("auto_started_at", sa.DateTime(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("league_id", "date", name="uq_league_night_date"),
    )
    op.create_index("ix_league_night_instance_league_id", "league_night_instance", ["league_id"])

    # -----------------------------------------------------------------------
    # 3. Check-ins - at most one active row per (night, player)
    # -----------------------------------------------------------------------
    op.create_table(
        "check_in",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("instance_id", sa.Integer(), sa.ForeignKey("league_night_instance.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("checked_in_at", sa.DateTime(), nullable=False),
        sa.Column("checked_out_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_check_in_instance_id", "check_in", ["instance_id"])
    op.create_index("ix_check_in_player_id", "check_in", ["player_id"])
    op.create_index(
        "uq_check_in_active",
        "check_in",
        ["instance_id", "player_id"],
        unique=True,
        sqlite_where=sa.text("is_active = 1"),
        postgresql_where=sa.text("is_active"),
    )

    # -----------------------------------------------------------------------
    # 4. Partnership requests and confirmed partnerships
    # -----------------------------------------------------------------------
    op.create_table(
        "partnership_request",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("instance_id", sa.Integer(), sa.ForeignKey("league_night_instance.id"), nullable=False),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("requested_id", sa.Integer(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_partnership_request_instance_id", "partnership_request", ["instance_id"])
    op.create_index("ix_partnership_request_requester_id", "partnership_request", ["requester_id"])
    op.create_index("ix_partnership_request_requested_id", "partnership_request", ["requested_id"])

    op.create_table(
        "confirmed_partnership",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("instance_id", sa.Integer(), sa.ForeignKey("league_night_instance.id"), nullable=False),
        sa.Column("player1_id", sa.Integer(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("player2_id", sa.Integer(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("confirmed_at", sa.DateTime(), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_confirmed_partnership_instance_id", "confirmed_partnership", ["instance_id"])
    op.create_index("ix_confirmed_partnership_player1_id", "confirmed_partnership", ["player1_id"])
    op.create_index("ix_confirmed_partnership_player2_id", "confirmed_partnership", ["player2_id"])

    # -----------------------------------------------------------------------
    # 5. Matches - one active match per court per night
    # -----------------------------------------------------------------------
    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("instance_id", sa.Integer(), sa.ForeignKey("league_night_instance.id"), nullable=False),
        sa.Column("partnership1_id", sa.Integer(), sa.ForeignKey("confirmed_partnership.id"), nullable=False),
        sa.Column("partnership2_id", sa.Integer(), sa.ForeignKey("confirmed_partnership.id"), nullable=False),
        sa.Column("court_number", sa.Integer(), nullable=False),
        sa.Column("court_label", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("team1_score", sa.Integer(), nullable=True),
        sa.Column("team2_score", sa.Integer(), nullable=True),
        sa.Column("pending_team1_score", sa.Integer(), nullable=True),
        sa.Column("pending_team2_score", sa.Integer(), nullable=True),
        sa.Column("pending_submitted_by_partnership_id", sa.Integer(), nullable=True),
        sa.Column("score_status", sa.String(), nullable=False, server_default="none"),
        sa.Column("assigned_by", sa.String(), nullable=False, server_default="auto"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("partnership1_id <> partnership2_id", name="ck_match_distinct_partnerships"),
    )
    op.create_index("ix_match_instance_id", "match", ["instance_id"])
    op.create_index("ix_match_partnership1_id", "match", ["partnership1_id"])
    op.create_index("ix_match_partnership2_id", "match", ["partnership2_id"])
    op.create_index(
        "uq_match_active_court",
        "match",
        ["instance_id", "court_number"],
        unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    # -----------------------------------------------------------------------
    # 6. notification_log - record of every player text
    # -----------------------------------------------------------------------
    op.create_table(
        "notification_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("instance_id", sa.Integer(), sa.ForeignKey("league_night_instance.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("phone_number", sa.String(), nullable=False),
        sa.Column("message_body", sa.String(), nullable=False),
        sa.Column("message_type", sa.String(), nullable=False),
        sa.Column("twilio_sid", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="queued"),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notification_log_instance_id", "notification_log", ["instance_id"])


def downgrade():
    op.drop_index("ix_notification_log_instance_id", table_name="notification_log")
    op.drop_table("notification_log")

    op.drop_index("uq_match_active_court", table_name="match")
    op.drop_index("ix_match_partnership2_id", table_name="match")
    op.drop_index("ix_match_partnership1_id", table_name="match")
    op.drop_index("ix_match_instance_id", table_name="match")
    op.drop_table("match")

    op.drop_index("ix_confirmed_partnership_player2_id", table_name="confirmed_partnership")
    op.drop_index("ix_confirmed_partnership_player1_id", table_name="confirmed_partnership")
    op.drop_index("ix_confirmed_partnership_instance_id", table_name="confirmed_partnership")
    op.drop_table("confirmed_partnership")

    op.drop_index("ix_partnership_request_requested_id", table_name="partnership_request")
    op.drop_index("ix_partnership_request_requester_id", table_name="partnership_request")
    op.drop_index("ix_partnership_request_instance_id", table_name="partnership_request")
    op.drop_table("partnership_request")

    op.drop_index("uq_check_in_active", table_name="check_in")
    op.drop_index("ix_check_in_player_id", table_name="check_in")
    op.drop_index("ix_check_in_instance_id", table_name="check_in")
    op.drop_table("check_in")

    op.drop_index("ix_league_night_instance_league_id", table_name="league_night_instance")
    op.drop_table("league_night_instance")

    op.drop_index("ix_league_day_league_id", table_name="league_day")
    op.drop_table("league_day")

    op.drop_index("ix_league_membership_player_id", table_name="league_membership")
    op.drop_index("ix_league_membership_league_id", table_name="league_membership")
    op.drop_table("league_membership")

    op.drop_table("player")
