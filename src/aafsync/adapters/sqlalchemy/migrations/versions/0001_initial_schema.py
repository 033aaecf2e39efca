"""Initial directory schema.

Revision ID: 0001
Revises:
Create Date: 2026-09-28
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from aafsync.adapters.sqlalchemy.mappings import StringListType, UTCDateTime

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

ENUM = sa.String(16)


def upgrade() -> None:
    op.create_table(
        "structure",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("external_id", sa.String(64), nullable=True),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("siren", sa.String(32), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("zip_code", sa.String(16), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("fax", sa.String(32), nullable=True),
        sa.Column("sync_enabled", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_structure"),
        sa.UniqueConstraint("external_id", name="uq_structure_external_id"),
    )
    op.create_table(
        "grade",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("external_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("rattach", sa.String(32), nullable=True),
        sa.Column("stat", sa.String(32), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_grade"),
        sa.UniqueConstraint("external_id", name="uq_grade_external_id"),
    )
    op.create_table(
        "subject",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("external_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_subject"),
        sa.UniqueConstraint("external_id", name="uq_subject_external_id"),
    )
    op.create_table(
        "structure_group",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.Column("structure_id", sa.String(32), nullable=False),
        sa.Column("feed_name", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(
            ["structure_id"],
            ["structure.id"],
            name="fk_structure_group_structure_id_structure",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_structure_group"),
        sa.UniqueConstraint(
            "structure_id", "type", "feed_name", name="uq_structure_group_structure_id"
        ),
    )
    op.create_table(
        "group_grade",
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("grade_id", sa.String(32), nullable=False),
        sa.ForeignKeyConstraint(
            ["group_id"],
            ["structure_group.id"],
            name="fk_group_grade_group_id_structure_group",
        ),
        sa.ForeignKeyConstraint(["grade_id"], ["grade.id"], name="fk_group_grade_grade_id_grade"),
        sa.PrimaryKeyConstraint("group_id", "grade_id", name="pk_group_grade"),
    )
    op.create_table(
        "person",
        sa.Column("id", sa.String(16), nullable=False),
        sa.Column("external_id", sa.String(64), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("gender", sa.String(1), nullable=True),
        sa.Column("birthdate", sa.Date(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("zip_code", sa.String(16), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("country", sa.String(), nullable=True),
        sa.Column("attachment_id", sa.String(64), nullable=True),
        sa.Column("grade_id", sa.String(32), nullable=True),
        sa.ForeignKeyConstraint(["grade_id"], ["grade.id"], name="fk_person_grade_id_grade"),
        sa.PrimaryKeyConstraint("id", name="pk_person"),
        sa.UniqueConstraint("external_id", name="uq_person_external_id"),
    )
    op.create_index("ix_person_attachment_id", "person", ["attachment_id"])
    op.create_table(
        "phone",
        sa.Column("person_id", sa.String(16), nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.Column("number", sa.String(32), nullable=False),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"], name="fk_phone_person_id_person"),
        sa.PrimaryKeyConstraint("person_id", "type", "number", name="pk_phone"),
    )
    op.create_table(
        "email",
        sa.Column("person_id", sa.String(16), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"], name="fk_email_person_id_person"),
        sa.PrimaryKeyConstraint("person_id", "address", "type", name="pk_email"),
    )
    op.create_table(
        "profile",
        sa.Column("person_id", sa.String(16), nullable=False),
        sa.Column("structure_id", sa.String(32), nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.ForeignKeyConstraint(["person_id"], ["person.id"], name="fk_profile_person_id_person"),
        sa.ForeignKeyConstraint(
            ["structure_id"], ["structure.id"], name="fk_profile_structure_id_structure"
        ),
        sa.PrimaryKeyConstraint("person_id", "structure_id", "type", name="pk_profile"),
    )
    op.create_table(
        "membership",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("person_id", sa.String(16), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("role", ENUM, nullable=False),
        sa.Column("subject_id", sa.String(32), nullable=True),
        sa.ForeignKeyConstraint(
            ["person_id"], ["person.id"], name="fk_membership_person_id_person"
        ),
        sa.ForeignKeyConstraint(
            ["group_id"],
            ["structure_group.id"],
            name="fk_membership_group_id_structure_group",
        ),
        sa.ForeignKeyConstraint(
            ["subject_id"], ["subject.id"], name="fk_membership_subject_id_subject"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_membership"),
    )
    op.create_index("ix_membership_person_id", "membership", ["person_id"])
    op.create_table(
        "parent_link",
        sa.Column("student_id", sa.String(16), nullable=False),
        sa.Column("guardian_id", sa.String(16), nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.Column("financial", sa.Boolean(), nullable=False),
        sa.Column("legal", sa.Boolean(), nullable=False),
        sa.Column("contact", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["student_id"], ["person.id"], name="fk_parent_link_student_id_person"
        ),
        sa.ForeignKeyConstraint(
            ["guardian_id"], ["person.id"], name="fk_parent_link_guardian_id_person"
        ),
        sa.PrimaryKeyConstraint("student_id", "guardian_id", name="pk_parent_link"),
    )
    op.create_table(
        "id_counter",
        sa.Column("name", sa.String(32), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("name", name="pk_id_counter"),
    )
    op.create_table(
        "run_lease",
        sa.Column("key", sa.String(32), nullable=False),
        sa.Column("owner", sa.String(64), nullable=False),
        sa.Column("acquired_at", UTCDateTime(), nullable=False),
        sa.Column("expires_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("key", name="pk_run_lease"),
    )
    op.create_table(
        "sync_run",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("started_at", UTCDateTime(), nullable=False),
        sa.Column("finished_at", UTCDateTime(), nullable=True),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("source_date", UTCDateTime(), nullable=True),
        sa.Column("format", ENUM, nullable=False),
        sa.Column("mode", ENUM, nullable=False),
        sa.Column("categories", StringListType(), nullable=False),
        sa.Column("structure_ids", StringListType(), nullable=False),
        sa.Column("applied", sa.Boolean(), nullable=False),
        sa.Column("added", sa.Integer(), nullable=False),
        sa.Column("changed", sa.Integer(), nullable=False),
        sa.Column("removed", sa.Integer(), nullable=False),
        sa.Column("error_count", sa.Integer(), nullable=False),
        sa.Column("exception", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_sync_run"),
    )
    op.create_index("ix_sync_run_started_at", "sync_run", ["started_at"])


def downgrade() -> None:
    op.drop_index("ix_sync_run_started_at", table_name="sync_run")
    op.drop_table("sync_run")
    op.drop_table("run_lease")
    op.drop_table("id_counter")
    op.drop_table("parent_link")
    op.drop_index("ix_membership_person_id", table_name="membership")
    op.drop_table("membership")
    op.drop_table("profile")
    op.drop_table("email")
    op.drop_table("phone")
    op.drop_index("ix_person_attachment_id", table_name="person")
    op.drop_table("person")
    op.drop_table("group_grade")
    op.drop_table("structure_group")
    op.drop_table("subject")
    op.drop_table("grade")
    op.drop_table("structure")
