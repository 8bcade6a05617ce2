"""Service master schema.

Sources:
  - data_store.py   (service_settings, task_categories, service_tasks,
                     interval_presets, service_templates, template_tasks,
                     equipment, service_records)

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "3f9a1c2d7b10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _auto_pk():
    return sa.Column("id", sa.Integer, primary_key=True, autoincrement=True)


def _ts_default():
    """CURRENT_TIMESTAMP default usable on both dialects."""
    return sa.text("CURRENT_TIMESTAMP")


def _timestamps(updated=True):
    columns = [sa.Column("created_at", sa.TIMESTAMP, server_default=_ts_default())]
    if updated:
        columns.append(sa.Column("updated_at", sa.TIMESTAMP, server_default=_ts_default()))
    return columns


# ---------------------------------------------------------------------------
# upgrade
# ---------------------------------------------------------------------------

def upgrade() -> None:
    op.create_table(
        "service_settings",
        _auto_pk(),
        sa.Column("pending_before_hours", sa.Integer, nullable=False, server_default="20"),
        sa.Column("pending_after_hours", sa.Integer, nullable=False, server_default="15"),
        sa.Column("master_admin_code", sa.Text, nullable=False, server_default=""),
        *_timestamps(),
        sa.CheckConstraint("pending_before_hours >= 0", name="ck_settings_before"),
        sa.CheckConstraint("pending_after_hours >= 0", name="ck_settings_after"),
    )

    op.create_table(
        "task_categories",
        _auto_pk(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("color", sa.Text, nullable=False, server_default="#64748b"),
        *_timestamps(),
    )

    op.create_table(
        "service_tasks",
        _auto_pk(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("estimated_duration", sa.Integer, nullable=False, server_default="0"),
        sa.Column("category_id", sa.Integer,
                  sa.ForeignKey("task_categories.id", ondelete="SET NULL")),
        sa.Column("auto_apply", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("idx_service_tasks_category", "service_tasks", ["category_id"])

    op.create_table(
        "interval_presets",
        _auto_pk(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("intervals", sa.Text, nullable=False, server_default="[]"),  # JSON list of hours
        *_timestamps(),
    )

    op.create_table(
        "service_templates",
        _auto_pk(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("preset_id", sa.Integer,
                  sa.ForeignKey("interval_presets.id", ondelete="SET NULL")),
        *_timestamps(),
    )

    op.create_table(
        "template_tasks",
        _auto_pk(),
        sa.Column("template_id", sa.Integer,
                  sa.ForeignKey("service_templates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("task_id", sa.Integer,
                  sa.ForeignKey("service_tasks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("intervals", sa.Text, nullable=False, server_default="[]"),
        *_timestamps(updated=False),
        sa.UniqueConstraint("template_id", "task_id", name="uq_template_task"),
    )
    op.create_index("idx_template_tasks_template", "template_tasks", ["template_id"])

    op.create_table(
        "equipment",
        _auto_pk(),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("serial_number", sa.Text, nullable=False),
        sa.Column("current_hours", sa.Float, nullable=False, server_default="0"),
        sa.Column("template_id", sa.Integer,
                  sa.ForeignKey("service_templates.id", ondelete="SET NULL")),
        *_timestamps(),
    )

    op.create_table(
        "service_records",
        _auto_pk(),
        sa.Column("equipment_id", sa.Integer,
                  sa.ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False),
        sa.Column("task_id", sa.Integer, sa.ForeignKey("service_tasks.id"), nullable=False),
        sa.Column("template_id", sa.Integer,
                  sa.ForeignKey("service_templates.id", ondelete="SET NULL")),
        sa.Column("scheduled_interval", sa.Integer, nullable=False),
        sa.Column("performed_by", sa.Text, nullable=False),
        sa.Column("service_date", sa.Text, nullable=False),
        sa.Column("actual_hours", sa.Float, nullable=False, server_default="0"),
        sa.Column("notes", sa.Text, nullable=False, server_default=""),
        *_timestamps(updated=False),
        sa.UniqueConstraint("equipment_id", "task_id", "scheduled_interval",
                            name="uq_record_cell"),
    )
    op.create_index("idx_service_records_equipment", "service_records", ["equipment_id"])


# ---------------------------------------------------------------------------
# downgrade
# ---------------------------------------------------------------------------

def downgrade() -> None:
    # Children before parents
    tables = [
        "service_records",
        "equipment",
        "template_tasks",
        "service_templates",
        "interval_presets",
        "service_tasks",
        "task_categories",
        "service_settings",
    ]
    for table in tables:
        op.drop_table(table)
