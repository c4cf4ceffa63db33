"""
Free-text search executed against PostgreSQL.

Set TEST_DATABASE_URL (a postgresql+psycopg2:// URL) to run these. Each run
works in a throwaway schema. When pg_trgm cannot be installed, a plain SQL
similarity() stands in for it.
"""

import os
import uuid

import pytest
from sqlalchemy import MetaData, Text, create_engine
from sqlalchemy import text as sql_text
from sqlalchemy.exc import DBAPIError
from sqlmodel import Session

from api.actions.physicians import search_physicians
from api.schemas import PhysicianSearchParams, SearchFilters
from conftest import make_physician
from dagster_pipeline.models.database import FULL_NAME_TSV_TRIGGER_STATEMENTS, Physician

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL is not set")

# 1 for an exact match, 0.5 for a prefix, otherwise 0
SIMILARITY_FALLBACK = """
CREATE OR REPLACE FUNCTION similarity(a text, b text) RETURNS real AS $$
    SELECT CASE
        WHEN lower(a) = lower(b) THEN 1.0
        WHEN starts_with(lower(a), lower(b)) THEN 0.5
        ELSE 0.0
    END::real
$$ LANGUAGE sql IMMUTABLE
"""

NEUROLOGY = {
    "taxonomy_code": "2084N0400X",
    "taxonomy_description": "Neurology",
    "license_number": "036-123456",
    "license_state": "IL",
    "primary_specialty": False,
}

DIRECTORY = [
    ("1100000001", "Ruth", "Okafor", "IL", "60611", "Cardiovascular Disease", [NEUROLOGY]),
    ("1100000002", "Hiroshi", "Mori", "NY", "10001", "Cardiovascular Disease", []),
    ("1100000003", "Priya", "Shah", "IL", "62701", "Family Medicine", []),
    ("1100000004", "John", "Adams", "CA", "94110", "Pediatrics", []),
    ("1100000005", "Mary", "Johnson", "CA", "94105", "Pediatrics", []),
    ("1100000006", "Dermot", "Kerr", "TX", "73301", "Internal Medicine", []),
    ("1100000007", "Elena", "Evans", "NY", "10002", "Dermatology", []),
]


def _install_search_schema(engine):
    with engine.connect() as conn:
        try:
            with conn.begin():
                conn.execute(sql_text("CREATE EXTENSION IF NOT EXISTS pg_trgm"))
        except DBAPIError:
            with conn.begin():
                conn.execute(sql_text(SIMILARITY_FALLBACK))

    # location is never searched, so postgis is not needed here
    metadata = MetaData()
    physicians = Physician.__table__.to_metadata(metadata)
    physicians.c.location.type = Text()
    metadata.create_all(engine)

    with engine.begin() as conn:
        for statement in FULL_NAME_TSV_TRIGGER_STATEMENTS:
            conn.execute(sql_text(statement))


@pytest.fixture(scope="module")
def pg_engine():
    schema = f"physician_search_{uuid.uuid4().hex[:8]}"
    admin = create_engine(TEST_DATABASE_URL)
    with admin.begin() as conn:
        conn.execute(sql_text(f"CREATE SCHEMA {schema}"))

    engine = create_engine(
        TEST_DATABASE_URL, connect_args={"options": f"-csearch_path={schema},public"}
    )
    try:
        _install_search_schema(engine)
        yield engine
    finally:
        engine.dispose()
        with admin.begin() as conn:
            conn.execute(sql_text(f"DROP SCHEMA {schema} CASCADE"))
        admin.dispose()


@pytest.fixture
def pg_session(pg_engine):
    with Session(pg_engine) as session:
        session.add_all(
            make_physician(*row[:6], secondary_specialties=row[6]) for row in DIRECTORY
        )
        session.commit()
        yield session

    with pg_engine.begin() as conn:
        conn.execute(sql_text("TRUNCATE physicians"))


def _search(session, query, **kwargs):
    filters = SearchFilters(**kwargs.pop("filters", {}))
    result = search_physicians(
        session, PhysicianSearchParams(query=query, filters=filters, **kwargs)
    )
    assert result.is_success, result.message
    return result.data


def _names(results):
    return [f"{p.first_name} {p.last_name}" for p in results.physicians]


def test_trigger_fills_full_name_tsv(pg_session):
    tsv = (
        pg_session.connection()
        .execute(sql_text("SELECT full_name_tsv::text FROM physicians WHERE npi = '1100000004'"))
        .scalar_one()
    )

    assert "'john'" in tsv
    assert "'adams'" in tsv


def test_specialty_query_with_state_filter(pg_session):
    results = _search(pg_session, "cardio", filters={"state": "IL"})

    assert _names(results) == ["Ruth Okafor"]
    assert results.total_count == 1
    assert results.total_pages == 1


def test_specialty_query_without_filter_spans_states(pg_session):
    results = _search(pg_session, "Cardio")

    assert sorted(_names(results)) == ["Hiroshi Mori", "Ruth Okafor"]


def test_name_prefix_ranks_closest_name_first(pg_session):
    results = _search(pg_session, "john")

    assert _names(results) == ["John Adams", "Mary Johnson"]


def test_fulltext_match_ranks_above_specialty_only_match(pg_session):
    results = _search(pg_session, "derm")

    assert _names(results) == ["Dermot Kerr", "Elena Evans"]


def test_secondary_specialty_description_matches(pg_session):
    results = _search(pg_session, "neurology")

    assert _names(results) == ["Ruth Okafor"]


@pytest.mark.parametrize("query", ["license", "taxonomy", "036", "false", "2084N"])
def test_secondary_specialty_keys_and_codes_do_not_match(pg_session, query):
    results = _search(pg_session, query)

    assert results.physicians == []
    assert results.total_count == 0


def test_state_and_zip_text_matches(pg_session):
    assert sorted(_names(_search(pg_session, "ny"))) == ["Elena Evans", "Hiroshi Mori"]
    assert sorted(_names(_search(pg_session, "941"))) == ["John Adams", "Mary Johnson"]


def test_text_query_paginates_with_stable_order(pg_session):
    first = _search(pg_session, "cardio", limit=1, page=1)
    second = _search(pg_session, "cardio", limit=1, page=2)

    assert first.total_count == second.total_count == 2
    assert first.total_pages == 2
    assert {first.physicians[0].npi, second.physicians[0].npi} == {"1100000001", "1100000002"}
