"""SQLAlchemy table metadata for the directory store.

Domain aggregates are plain slotted dataclasses, so the store is described with
Core tables only and the repositories assemble aggregates from rows.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, cast

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
)

from aafsync.domain.model import (
    EmailType,
    FeedFormat,
    GroupType,
    LinkType,
    MembershipRole,
    PhoneType,
    ProfileType,
    RunMode,
)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class StringListType(TypeDecorator[list[str]]):
    """Sorted list of strings stored as a JSON array."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: list[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(sorted(str(item) for item in value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> list[str]:
        _ = dialect
        if value is None:
            return []
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return []
        items = cast(list[Any], loaded)
        return [item for item in items if isinstance(item, str)]


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

# Reference data --------------------------------------------------------------

structure_table = Table(
    "structure",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("external_id", String(64), nullable=True, unique=True),
    Column("code", String(32), nullable=True),
    Column("name", String, nullable=True),
    Column("siren", String(32), nullable=True),
    Column("address", String, nullable=True),
    Column("zip_code", String(16), nullable=True),
    Column("city", String, nullable=True),
    Column("phone", String(32), nullable=True),
    Column("fax", String(32), nullable=True),
    Column("sync_enabled", Boolean, nullable=False, default=False),
)

grade_table = Table(
    "grade",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("external_id", String(64), nullable=True, unique=True),
    Column("name", String, nullable=True),
    Column("rattach", String(32), nullable=True),
    Column("stat", String(32), nullable=True),
)

subject_table = Table(
    "subject",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("external_id", String(64), nullable=True, unique=True),
    Column("name", String, nullable=True),
)

group_table = Table(
    "structure_group",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", Enum(GroupType, native_enum=False), nullable=False),
    Column("structure_id", String(32), ForeignKey("structure.id"), nullable=False),
    Column("feed_name", String, nullable=True),
    Column("name", String, nullable=True),
    Column("description", String, nullable=True),
    UniqueConstraint("structure_id", "type", "feed_name"),
)

group_grade_table = Table(
    "group_grade",
    metadata,
    Column("group_id", Integer, ForeignKey("structure_group.id"), primary_key=True),
    Column("grade_id", String(32), ForeignKey("grade.id"), primary_key=True),
)

# Persons ---------------------------------------------------------------------

person_table = Table(
    "person",
    metadata,
    Column("id", String(16), primary_key=True),
    Column("external_id", String(64), nullable=True, unique=True),
    Column("first_name", String, nullable=True),
    Column("last_name", String, nullable=True),
    Column("gender", String(1), nullable=True),
    Column("birthdate", Date, nullable=True),
    Column("address", String, nullable=True),
    Column("zip_code", String(16), nullable=True),
    Column("city", String, nullable=True),
    Column("country", String, nullable=True),
    Column("attachment_id", String(64), nullable=True),
    Column("grade_id", String(32), ForeignKey("grade.id"), nullable=True),
)

Index("ix_person_attachment_id", person_table.c.attachment_id)

phone_table = Table(
    "phone",
    metadata,
    Column("person_id", String(16), ForeignKey("person.id"), primary_key=True),
    Column("type", Enum(PhoneType, native_enum=False), primary_key=True),
    Column("number", String(32), primary_key=True),
)

email_table = Table(
    "email",
    metadata,
    Column("person_id", String(16), ForeignKey("person.id"), primary_key=True),
    Column("address", String, primary_key=True),
    Column("type", Enum(EmailType, native_enum=False), primary_key=True),
)

profile_table = Table(
    "profile",
    metadata,
    Column("person_id", String(16), ForeignKey("person.id"), primary_key=True),
    Column("structure_id", String(32), ForeignKey("structure.id"), primary_key=True),
    Column("type", Enum(ProfileType, native_enum=False), primary_key=True),
)

membership_table = Table(
    "membership",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("person_id", String(16), ForeignKey("person.id"), nullable=False),
    Column("group_id", Integer, ForeignKey("structure_group.id"), nullable=False),
    Column("role", Enum(MembershipRole, native_enum=False), nullable=False),
    Column("subject_id", String(32), ForeignKey("subject.id"), nullable=True),
)

Index("ix_membership_person_id", membership_table.c.person_id)

parent_link_table = Table(
    "parent_link",
    metadata,
    Column("student_id", String(16), ForeignKey("person.id"), primary_key=True),
    Column("guardian_id", String(16), ForeignKey("person.id"), primary_key=True),
    Column("type", Enum(LinkType, native_enum=False), nullable=False),
    Column("financial", Boolean, nullable=False, default=False),
    Column("legal", Boolean, nullable=False, default=False),
    Column("contact", Boolean, nullable=False, default=False),
)

# Bookkeeping -----------------------------------------------------------------

id_counter_table = Table(
    "id_counter",
    metadata,
    Column("name", String(32), primary_key=True),
    Column("value", Integer, nullable=False),
)

run_lease_table = Table(
    "run_lease",
    metadata,
    Column("key", String(32), primary_key=True),
    Column("owner", String(64), nullable=False),
    Column("acquired_at", UTCDateTime(), nullable=False),
    Column("expires_at", UTCDateTime(), nullable=False),
)

sync_run_table = Table(
    "sync_run",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("finished_at", UTCDateTime(), nullable=True),
    Column("source", String, nullable=True),
    Column("source_date", UTCDateTime(), nullable=True),
    Column("format", Enum(FeedFormat, native_enum=False), nullable=False),
    Column("mode", Enum(RunMode, native_enum=False), nullable=False),
    Column("categories", StringListType(), nullable=False),
    Column("structure_ids", StringListType(), nullable=False),
    Column("applied", Boolean, nullable=False, default=False),
    Column("added", Integer, nullable=False, default=0),
    Column("changed", Integer, nullable=False, default=0),
    Column("removed", Integer, nullable=False, default=0),
    Column("error_count", Integer, nullable=False, default=0),
    Column("exception", Text, nullable=True),
)

Index("ix_sync_run_started_at", sync_run_table.c.started_at)
