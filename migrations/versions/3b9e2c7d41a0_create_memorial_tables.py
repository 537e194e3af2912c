"""create memorial request and memorial tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "3b9e2c7d41a0"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "memorial_requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("requester_name", sa.String(length=200), nullable=False),
        sa.Column("requester_email", sa.String(length=320), nullable=False),
        sa.Column("loved_one_name", sa.String(length=200), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("death_date", sa.Date(), nullable=True),
        sa.Column("story_notes", sa.Text(), nullable=False),
        sa.Column("media_uploads", sa.JSON(), nullable=False),
        sa.Column("location_info", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Numeric(10, 8), nullable=True),
        sa.Column("longitude", sa.Numeric(11, 8), nullable=True),
        sa.Column("country", sa.String(length=120), nullable=True),
        sa.Column("tier_selected", sa.String(length=32), nullable=False),
        sa.Column("preservation_addon", sa.Boolean(), nullable=False),
        sa.Column("preservation_billing_cycle", sa.String(length=16), nullable=True),
        sa.Column("discount_requested", sa.Boolean(), nullable=False),
        sa.Column("discount_type", sa.String(length=32), nullable=True),
        sa.Column("documentation_upload", sa.Text(), nullable=True),
        sa.Column("payment_amount", sa.Integer(), nullable=False),
        sa.Column("payment_status", sa.String(length=16), nullable=False),
        sa.Column("payment_reference", sa.String(length=255), nullable=True),
        sa.Column("request_status", sa.String(length=16), nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_memorial_requests_request_status",
        "memorial_requests",
        ["request_status"],
    )

    op.create_table(
        "memorials",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "request_id",
            sa.String(length=36),
            sa.ForeignKey("memorial_requests.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("death_date", sa.Date(), nullable=True),
        sa.Column("story_text", sa.Text(), nullable=False),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("video_link", sa.Text(), nullable=True),
        sa.Column("audio_narration_link", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Numeric(10, 8), nullable=True),
        sa.Column("longitude", sa.Numeric(11, 8), nullable=True),
        sa.Column("location_visibility", sa.String(length=16), nullable=False),
        sa.Column("qr_code_url", sa.Text(), nullable=False),
        sa.Column("public_url", sa.String(length=255), nullable=False),
        sa.Column("published_status", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("public_url", name="uq_memorials_public_url"),
    )
    op.create_index(
        "ix_memorials_published_status", "memorials", ["published_status"]
    )


def downgrade() -> None:
    op.drop_index("ix_memorials_published_status", table_name="memorials")
    op.drop_table("memorials")
    op.drop_index(
        "ix_memorial_requests_request_status", table_name="memorial_requests"
    )
    op.drop_table("memorial_requests")
