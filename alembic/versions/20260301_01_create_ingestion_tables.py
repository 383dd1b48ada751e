"""Create ingestion, cache and job bookkeeping tables.

Revision ID: 20260301_01
Revises:
Create Date: 2026-03-01 00:00:00
"""

# pylint: disable=invalid-name,missing-module-docstring

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20260301_01"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade():
    """Create the six tables, skipping any that already exist."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("apod_mood"):
        op.create_table(
            "apod_mood",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("apod_date", sa.Date(), nullable=False),
            sa.Column("nasa_id", sa.String(length=64), nullable=True),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("url", sa.String(length=512), nullable=False),
            sa.Column(
                "media_type",
                sa.String(length=32),
                nullable=False,
                server_default="image",
            ),
            sa.Column("mood", sa.String(length=64), nullable=True),
            sa.Column("mood_score", sa.Float(), nullable=True),
            sa.Column("color_palette", sa.Text(), nullable=True),
            sa.Column("ai_summary", sa.Text(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_apod_mood_id", "apod_mood", ["id"])
        op.create_index(
            "ix_apod_mood_apod_date", "apod_mood", ["apod_date"], unique=True
        )

    if not inspector.has_table("neows_objects"):
        op.create_table(
            "neows_objects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("neo_id", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("estimated_diameter", sa.Text(), nullable=False),
            sa.Column(
                "is_potentially_hazardous",
                sa.Boolean(),
                nullable=False,
                server_default=sa.false(),
            ),
            sa.Column("close_approach", sa.Text(), nullable=True),
            sa.Column("orbit_data", sa.Text(), nullable=True),
            sa.Column("close_approach_date", sa.Date(), nullable=True),
            sa.Column("miss_distance_km", sa.Float(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_neows_objects_id", "neows_objects", ["id"])
        op.create_index(
            "ix_neows_objects_neo_id", "neows_objects", ["neo_id"], unique=True
        )
        op.create_index(
            "ix_neows_objects_close_approach_date",
            "neows_objects",
            ["close_approach_date"],
        )

    if not inspector.has_table("mars_images"):
        op.create_table(
            "mars_images",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("nasa_id", sa.BigInteger(), nullable=False),
            sa.Column("rover", sa.String(length=32), nullable=False),
            sa.Column("sol", sa.Integer(), nullable=False),
            sa.Column("camera", sa.String(length=50), nullable=False),
            sa.Column("img_src", sa.String(length=512), nullable=False),
            sa.Column("earth_date", sa.Date(), nullable=False),
            sa.Column("labels", sa.Text(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_mars_images_id", "mars_images", ["id"])
        op.create_index(
            "ix_mars_images_nasa_id", "mars_images", ["nasa_id"], unique=True
        )
        for column in ("rover", "sol", "camera", "earth_date"):
            op.create_index(f"ix_mars_images_{column}", "mars_images", [column])

    if not inspector.has_table("nasa_cache"):
        op.create_table(
            "nasa_cache",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("cache_key", sa.String(length=128), nullable=False),
            sa.Column("path", sa.String(length=255), nullable=False),
            sa.Column("payload", sa.Text(), nullable=False),
            sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_nasa_cache_cache_key", "nasa_cache", ["cache_key"], unique=True
        )
        op.create_index("ix_nasa_cache_expires_at", "nasa_cache", ["expires_at"])

    if not inspector.has_table("job_locks"):
        op.create_table(
            "job_locks",
            sa.Column("name", sa.String(length=128), nullable=False),
            sa.Column("owner", sa.String(length=64), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("name"),
        )

    if not inspector.has_table("failed_jobs"):
        op.create_table(
            "failed_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job", sa.String(length=128), nullable=False),
            sa.Column("params", sa.Text(), nullable=False, server_default="{}"),
            sa.Column("exception", sa.Text(), nullable=False),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column(
                "failed_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_failed_jobs_job", "failed_jobs", ["job"])


def downgrade():
    """Drop every table created above."""
    for table in (
        "failed_jobs",
        "job_locks",
        "nasa_cache",
        "mars_images",
        "neows_objects",
        "apod_mood",
    ):
        op.drop_table(table)
