"""create irradiance dataset, version, point, cache and import job tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None

_MONTHS = [f"m{month:02d}" for month in range(1, 13)]


def _series_columns() -> list[sa.Column]:
    columns: list[sa.Column] = []
    for prefix in ("", "dhi_", "dni_"):
        columns.extend(sa.Column(f"{prefix}{key}", sa.Float(), nullable=True) for key in _MONTHS)
    return columns


def upgrade() -> None:
    op.create_table(
        "irradiance_datasets",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("provider", sa.String(length=120), nullable=False),
        sa.Column("resolution_km", sa.Float(), nullable=True),
        sa.Column("default_unit", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("ix_irradiance_datasets_provider", "irradiance_datasets", ["provider"], unique=False)

    op.create_table(
        "irradiance_dataset_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dataset_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_tag", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("row_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("checksum_sha256", sa.String(length=64), nullable=True),
        sa.Column("source_note", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("ingested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["dataset_id"], ["irradiance_datasets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dataset_id", "version_tag", name="uq_irradiance_versions_dataset_tag"),
    )
    op.create_index(
        "ix_irradiance_versions_dataset_status",
        "irradiance_dataset_versions",
        ["dataset_id", "status"],
        unique=False,
    )
    op.create_index("ix_irradiance_versions_status", "irradiance_dataset_versions", ["status"], unique=False)

    op.create_table(
        "irradiance_points_monthly",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("version_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lon", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=32), nullable=False),
        *_series_columns(),
        sa.ForeignKeyConstraint(["version_id"], ["irradiance_dataset_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_irradiance_points_version_id", "irradiance_points_monthly", ["version_id"], unique=False)
    op.create_index(
        "ix_irradiance_points_version_lat_lon",
        "irradiance_points_monthly",
        ["version_id", "lat", "lon"],
        unique=False,
    )

    op.create_table(
        "irradiance_lookup_cache",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("version_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lat_round", sa.Float(), nullable=False),
        sa.Column("lon_round", sa.Float(), nullable=False),
        sa.Column("series", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("point_lat", sa.Float(), nullable=False),
        sa.Column("point_lon", sa.Float(), nullable=False),
        sa.Column("distance_km", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["version_id"], ["irradiance_dataset_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "version_id",
            "lat_round",
            "lon_round",
            name="uq_irradiance_lookup_cache_version_coord",
        ),
    )

    op.create_table(
        "irradiance_import_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dataset_key", sa.String(length=64), nullable=False),
        sa.Column("version_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("row_count", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("request_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["version_id"], ["irradiance_dataset_versions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_irradiance_import_jobs_dataset_key", "irradiance_import_jobs", ["dataset_key"], unique=False)
    op.create_index("ix_irradiance_import_jobs_status", "irradiance_import_jobs", ["status"], unique=False)
    op.create_index("ix_irradiance_import_jobs_created_at", "irradiance_import_jobs", ["created_at"], unique=False)

    op.create_table(
        "irradiance_import_job_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("job_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("level", sa.String(length=8), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(["job_id"], ["irradiance_import_jobs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_irradiance_import_job_logs_job_ts",
        "irradiance_import_job_logs",
        ["job_id", "timestamp"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_irradiance_import_job_logs_job_ts", table_name="irradiance_import_job_logs")
    op.drop_table("irradiance_import_job_logs")
    op.drop_index("ix_irradiance_import_jobs_created_at", table_name="irradiance_import_jobs")
    op.drop_index("ix_irradiance_import_jobs_status", table_name="irradiance_import_jobs")
    op.drop_index("ix_irradiance_import_jobs_dataset_key", table_name="irradiance_import_jobs")
    op.drop_table("irradiance_import_jobs")
    op.drop_table("irradiance_lookup_cache")
    op.drop_index("ix_irradiance_points_version_lat_lon", table_name="irradiance_points_monthly")
    op.drop_index("ix_irradiance_points_version_id", table_name="irradiance_points_monthly")
    op.drop_table("irradiance_points_monthly")
    op.drop_index("ix_irradiance_versions_status", table_name="irradiance_dataset_versions")
    op.drop_index("ix_irradiance_versions_dataset_status", table_name="irradiance_dataset_versions")
    op.drop_table("irradiance_dataset_versions")
    op.drop_index("ix_irradiance_datasets_provider", table_name="irradiance_datasets")
    op.drop_table("irradiance_datasets")
