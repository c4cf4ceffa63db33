"""
This file contains SQLModel database models for the Physician Finder.

The Dagster pipeline writes the physicians table; the FastAPI layer reads it
and manages users, organizations and finder instances.

Search on the physicians table needs the pg_trgm and postgis extensions and a
trigger that keeps full_name_tsv in sync. install_search_extensions() sets
those up and is safe to run repeatedly.
"""

import os
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from sqlalchemy import JSON, Column, DateTime, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy import text as sql_text
from sqlalchemy.dialects.postgresql import JSONB, TSVECTOR
from sqlalchemy.types import UserDefinedType
from sqlmodel import Field, Relationship, SQLModel, create_engine


# Load env variables
load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://localhost/physician_finder")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Geography(UserDefinedType):
    """PostGIS geography point. Values are bound as (E)WKT strings."""

    cache_ok = True

    def get_col_spec(self, **kw):
        return "geography(Point, 4326)"


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")
TSVectorType = TSVECTOR().with_variant(Text(), "sqlite")
GeographyType = Geography().with_variant(Text(), "sqlite")


def _timestamp_column(**kwargs) -> Column:
    return Column(DateTime(timezone=True), nullable=False, default=utcnow, **kwargs)


# Enums
class UserRole(str, Enum):
    admin = "admin"
    member = "member"


class PhysicianStatus(str, Enum):
    active = "A"
    inactive = "I"
    deactivated = "D"
    retired = "R"


class Gender(str, Enum):
    male = "M"
    female = "F"
    other = "X"


class FinderDomainStatus(str, Enum):
    pending = "pending"
    verified = "verified"
    failed = "failed"
    inactive = "inactive"


def _code_enum_column(enum_cls, name: str, nullable: bool = True) -> Column:
    """Enum column that stores the NPPES code ("A", "M", ...) instead of the member name."""
    return Column(
        SAEnum(enum_cls, name=name, values_callable=lambda e: [m.value for m in e]),
        nullable=nullable,
    )


# Table 1: Physician
class Physician(SQLModel, table=True):
    __tablename__ = "physicians"
    __table_args__ = {"extend_existing": True}

    npi: str = Field(primary_key=True, max_length=10)  # National Provider Identifier
    first_name: str
    last_name: str
    middle_name: Optional[str] = None
    suffix: Optional[str] = None
    credential: Optional[str] = None
    gender: Optional[Gender] = Field(default=None, sa_column=_code_enum_column(Gender, "gender"))
    status: PhysicianStatus = Field(
        default=PhysicianStatus.active,
        sa_column=_code_enum_column(PhysicianStatus, "status", nullable=False),
    )

    # NPPES enumeration details
    enumeration_date: Optional[date] = None
    last_updated_nppes: Optional[date] = None
    deactivation_date: Optional[date] = None
    deactivation_reason: Optional[str] = None
    reactivation_date: Optional[date] = None

    # Specialties, locations and contact info
    primary_specialty: Optional[Dict[str, Any]] = Field(
        default=None, sa_column=Column(JSONType)
    )
    secondary_specialties: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSONType, nullable=False)
    )
    addresses: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSONType, nullable=False)
    )
    phone_numbers: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSONType, nullable=False)
    )

    # Derived from the primary practice address during ETL
    address_state: Optional[str] = Field(default=None, index=True)  # uppercased
    address_zip5: Optional[str] = Field(default=None, index=True)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location: Optional[str] = Field(default=None, sa_column=Column(GeographyType))

    languages: List[str] = Field(
        default_factory=list, sa_column=Column(JSONType, nullable=False)
    )
    accepts_telehealth: bool = Field(default=False)

    # AI enrichment, populated out-of-band
    ai_bio: Optional[str] = Field(default=None, sa_column=Column(Text))
    ai_bio_source: Optional[str] = None
    ai_bio_version: Optional[str] = None  # "modelName_promptHash"
    ai_bio_enriched_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    geo_enriched_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )

    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamp_column(onupdate=utcnow)
    )

    # Populated by the physicians_full_name_tsv trigger
    full_name_tsv: Optional[str] = Field(default=None, sa_column=Column(TSVectorType))


# Table 2: User
class User(SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = {"extend_existing": True}

    user_id: str = Field(primary_key=True)  # id issued by the auth provider
    platform_role: UserRole = Field(default=UserRole.member)

    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamp_column(onupdate=utcnow)
    )

    memberships: List["OrganizationMembership"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


# Table 3: Organization
class Organization(SQLModel, table=True):
    __tablename__ = "organizations"
    __table_args__ = {"extend_existing": True}

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamp_column(onupdate=utcnow)
    )

    # Relationships
    memberships: List["OrganizationMembership"] = Relationship(
        back_populates="organization",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    finder_instances: List["FinderInstance"] = Relationship(
        back_populates="organization",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


# Table 4: Organization membership (users <-> organizations)
class OrganizationMembership(SQLModel, table=True):
    __tablename__ = "organization_memberships"
    __table_args__ = {"extend_existing": True}

    user_id: str = Field(
        foreign_key="users.user_id", primary_key=True, ondelete="CASCADE"
    )
    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", primary_key=True, ondelete="CASCADE"
    )
    role: UserRole = Field(default=UserRole.member)

    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamp_column(onupdate=utcnow)
    )

    user: Optional[User] = Relationship(back_populates="memberships")
    organization: Optional[Organization] = Relationship(back_populates="memberships")


# Table 5: Finder instance (per-organization finder configuration)
class FinderInstance(SQLModel, table=True):
    __tablename__ = "finder_instances"
    __table_args__ = (
        UniqueConstraint("canonical_host", name="canonical_host_idx"),
        UniqueConstraint("custom_domain", name="custom_domain_idx"),
        UniqueConstraint("embed_script_id", name="embed_script_id_idx"),
        {"extend_existing": True},
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", ondelete="CASCADE")

    name: str
    slug: str = Field(unique=True, index=True)  # path-based routing
    canonical_host: Optional[str] = None  # host-based routing
    custom_domain: Optional[str] = None
    domain_status: Optional[FinderDomainStatus] = None
    embed_script_id: Optional[str] = None

    configuration: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSONType, nullable=False)
    )

    created_at: datetime = Field(default_factory=utcnow, sa_column=_timestamp_column())
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=_timestamp_column(onupdate=utcnow)
    )

    organization: Optional[Organization] = Relationship(back_populates="finder_instances")


# Search prerequisites: extensions, full-name tsvector trigger, indexes
SEARCH_SETUP_STATEMENTS = [
    "CREATE EXTENSION IF NOT EXISTS pg_trgm",
    "CREATE EXTENSION IF NOT EXISTS postgis",
]

FULL_NAME_TSV_TRIGGER_STATEMENTS = [
    """
    CREATE OR REPLACE FUNCTION physicians_full_name_tsv_update() RETURNS trigger AS $$
    BEGIN
        NEW.full_name_tsv := to_tsvector(
            'simple',
            coalesce(NEW.first_name, '') || ' ' ||
            coalesce(NEW.middle_name, '') || ' ' ||
            coalesce(NEW.last_name, '')
        );
        RETURN NEW;
    END
    $$ LANGUAGE plpgsql
    """,
    "DROP TRIGGER IF EXISTS physicians_full_name_tsv_trigger ON physicians",
    """
    CREATE TRIGGER physicians_full_name_tsv_trigger
    BEFORE INSERT OR UPDATE OF first_name, middle_name, last_name ON physicians
    FOR EACH ROW EXECUTE FUNCTION physicians_full_name_tsv_update()
    """,
]

SEARCH_INDEX_STATEMENTS = [
    "CREATE INDEX IF NOT EXISTS first_name_trgm_idx ON physicians USING gin (first_name gin_trgm_ops)",
    "CREATE INDEX IF NOT EXISTS last_name_trgm_idx ON physicians USING gin (last_name gin_trgm_ops)",
    "CREATE INDEX IF NOT EXISTS full_name_tsv_idx ON physicians USING gin (full_name_tsv)",
    "CREATE INDEX IF NOT EXISTS location_idx ON physicians USING gist (location)",
    "CREATE INDEX IF NOT EXISTS state_zip_idx ON physicians (address_state, address_zip5)",
]


# Engine + Table Creation
def get_engine(echo: bool = False):
    return create_engine(DATABASE_URL, echo=echo, pool_pre_ping=True)


def install_search_extensions(engine) -> None:
    """Create extensions, tables, the tsvector trigger and search indexes (PostgreSQL only)."""
    with engine.begin() as conn:
        for statement in SEARCH_SETUP_STATEMENTS:
            conn.execute(sql_text(statement))

    SQLModel.metadata.create_all(engine)

    with engine.begin() as conn:
        for statement in FULL_NAME_TSV_TRIGGER_STATEMENTS + SEARCH_INDEX_STATEMENTS:
            conn.execute(sql_text(statement))


def create_all_tables():
    engine = get_engine()
    if engine.dialect.name == "postgresql":
        install_search_extensions(engine)
    else:
        SQLModel.metadata.create_all(engine)
    print("All tables created successfully.")


if __name__ == "__main__":
    create_all_tables()
