"""Initial migration: create board, participant, tournament, group, enrollment and match tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create board table
    op.create_table(
        "board",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create participant table
    op.create_table(
        "participant",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("board_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["board.id"]),
    )
    op.create_index("ix_participant_board_id", "participant", ["board_id"])

    # Create tournament table
    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("board_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("phase", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("group_sizes", sa.JSON(), nullable=False),
        sa.Column("win_points", sa.Integer(), nullable=False),
        sa.Column("draw_points", sa.Integer(), nullable=False),
        sa.Column("loss_points", sa.Integer(), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["board_id"], ["board.id"]),
    )
    op.create_index("ix_tournament_board_id", "tournament", ["board_id"])

    # Create tournamentgroup table
    op.create_table(
        "tournamentgroup",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.UniqueConstraint("tournament_id", "position", name="uq_tournament_group_position"),
    )
    op.create_index("ix_tournamentgroup_tournament_id", "tournamentgroup", ["tournament_id"])

    # Create tournamentparticipant table (enrollment + group membership)
    op.create_table(
        "tournamentparticipant",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("participant_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("group_position", sa.Integer(), nullable=True),
        sa.Column("seed", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["participant_id"], ["participant.id"]),
        sa.ForeignKeyConstraint(["group_id"], ["tournamentgroup.id"]),
        sa.UniqueConstraint("tournament_id", "participant_id", name="uq_tournament_participant"),
    )
    op.create_index("ix_tournamentparticipant_tournament_id", "tournamentparticipant", ["tournament_id"])
    op.create_index("ix_tournamentparticipant_participant_id", "tournamentparticipant", ["participant_id"])
    op.create_index("ix_tournamentparticipant_group_id", "tournamentparticipant", ["group_id"])

    # Create match table (group fixtures carry group_id, knockout fixtures tournament_id)
    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("tournament_id", sa.Integer(), nullable=True),
        sa.Column("player1_id", sa.Integer(), nullable=False),
        sa.Column("player2_id", sa.Integer(), nullable=False),
        sa.Column("player1_score", sa.Integer(), nullable=False),
        sa.Column("player2_score", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("round", sa.String(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["tournamentgroup.id"]),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["player1_id"], ["participant.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["participant.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["participant.id"]),
        sa.UniqueConstraint("group_id", "match_number", name="uq_match_group_number"),
        sa.UniqueConstraint("tournament_id", "round", "match_number", name="uq_match_knockout_number"),
        sa.CheckConstraint("player1_id <> player2_id", name="ck_match_distinct_players"),
        sa.CheckConstraint(
            "(group_id IS NULL AND tournament_id IS NOT NULL) OR (group_id IS NOT NULL AND tournament_id IS NULL)",
            name="ck_match_single_scope",
        ),
        sa.CheckConstraint("player1_score >= 0 AND player2_score >= 0", name="ck_match_scores_non_negative"),
    )
    op.create_index("ix_match_group_id", "match", ["group_id"])
    op.create_index("ix_match_tournament_id", "match", ["tournament_id"])


def downgrade() -> None:
    op.drop_table("match")
    op.drop_table("tournamentparticipant")
    op.drop_table("tournamentgroup")
    op.drop_table("tournament")
    op.drop_table("participant")
    op.drop_table("board")
