"""create proposal link access and analytics schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "proposals",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("advisor_id", sa.String(), nullable=False),
        sa.Column("client_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("slide_order", sa.JSON(), nullable=True),
        sa.Column("disabled_slides", sa.JSON(), nullable=True),
        sa.Column("pdf_path", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["advisor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_proposals_advisor_id"), "proposals", ["advisor_id"], unique=False)

    op.create_table(
        "proposal_links",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("proposal_id", sa.String(), nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("recipient_email", sa.String(), nullable=False),
        sa.Column("recipient_name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("allow_download", sa.Boolean(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("sent_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sent_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_proposal_links_proposal_id"), "proposal_links", ["proposal_id"], unique=False)
    op.create_index(op.f("ix_proposal_links_token"), "proposal_links", ["token"], unique=True)
    op.create_index(op.f("ix_proposal_links_created_at"), "proposal_links", ["created_at"], unique=False)

    op.create_table(
        "link_otps",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("link_id", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("session_token", sa.String(), nullable=True),
        sa.Column("session_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["link_id"], ["proposal_links.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_link_otps_link_id"), "link_otps", ["link_id"], unique=False)
    op.create_index(op.f("ix_link_otps_session_token"), "link_otps", ["session_token"], unique=False)
    op.create_index(op.f("ix_link_otps_created_at"), "link_otps", ["created_at"], unique=False)

    op.create_table(
        "link_views",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("link_id", sa.String(), nullable=False),
        sa.Column("viewer_ip", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("device_type", sa.String(), nullable=True),
        sa.Column("referrer", sa.String(), nullable=True),
        sa.Column("is_unique_visitor", sa.Boolean(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["link_id"], ["proposal_links.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_link_views_link_id"), "link_views", ["link_id"], unique=False)
    op.create_index(op.f("ix_link_views_session_id"), "link_views", ["session_id"], unique=False)
    op.create_index(op.f("ix_link_views_started_at"), "link_views", ["started_at"], unique=False)

    op.create_table(
        "slide_analytics",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("view_id", sa.String(), nullable=False),
        sa.Column("link_id", sa.String(), nullable=False),
        sa.Column("slide_index", sa.Integer(), nullable=False),
        sa.Column("slide_title", sa.String(), nullable=True),
        sa.Column("time_entered", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("time_exited", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_seconds", sa.Numeric(10, 2), nullable=True),
        sa.ForeignKeyConstraint(["view_id"], ["link_views.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["link_id"], ["proposal_links.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_slide_analytics_view_id"), "slide_analytics", ["view_id"], unique=False)
    op.create_index(op.f("ix_slide_analytics_link_id"), "slide_analytics", ["link_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_slide_analytics_link_id"), table_name="slide_analytics")
    op.drop_index(op.f("ix_slide_analytics_view_id"), table_name="slide_analytics")
    op.drop_table("slide_analytics")
    op.drop_index(op.f("ix_link_views_started_at"), table_name="link_views")
    op.drop_index(op.f("ix_link_views_session_id"), table_name="link_views")
    op.drop_index(op.f("ix_link_views_link_id"), table_name="link_views")
    op.drop_table("link_views")
    op.drop_index(op.f("ix_link_otps_created_at"), table_name="link_otps")
    op.drop_index(op.f("ix_link_otps_session_token"), table_name="link_otps")
    op.drop_index(op.f("ix_link_otps_link_id"), table_name="link_otps")
    op.drop_table("link_otps")
    op.drop_index(op.f("ix_proposal_links_created_at"), table_name="proposal_links")
    op.drop_index(op.f("ix_proposal_links_token"), table_name="proposal_links")
    op.drop_index(op.f("ix_proposal_links_proposal_id"), table_name="proposal_links")
    op.drop_table("proposal_links")
    op.drop_index(op.f("ix_proposals_advisor_id"), table_name="proposals")
    op.drop_table("proposals")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
