"""Shape of the PostgreSQL search statements (compiled, not executed)."""

import pytest
from sqlalchemy.dialects import postgresql

from api.actions.physicians import (
    MIN_SIMILARITY_THRESHOLD,
    build_prefix_tsquery,
    build_search_statements,
)
from api.schemas import PhysicianSearchParams, SearchFilters


def compile_pg(statement):
    compiled = statement.compile(dialect=postgresql.dialect())
    return str(compiled), list(compiled.params.values())


def order_by_clause(sql: str) -> str:
    return sql.split("ORDER BY", 1)[1]


@pytest.mark.parametrize(
    "query, expected",
    [
        ("cardio", "cardio:*"),
        ("Jo  smi", "jo:* & smi:*"),
        ("O'Brien", "o:* & brien:*"),
        ("smith & jones | !x", "smith:* & jones:* & x:*"),
        ("!!!", None),
        ("", None),
    ],
)
def test_build_prefix_tsquery(query, expected):
    assert build_prefix_tsquery(query) == expected


def test_text_query_matches_on_fulltext_trigram_specialty_and_location():
    page_query, _ = build_search_statements(PhysicianSearchParams(query="cardio"))
    sql, params = compile_pg(page_query)

    assert "physicians.full_name_tsv @@ to_tsquery(" in sql
    assert "similarity(physicians.first_name" in sql
    assert "similarity(physicians.last_name" in sql
    assert "physicians.primary_specialty ->>" in sql
    assert "EXISTS (SELECT 1" in sql
    assert "FROM jsonb_array_elements(physicians.secondary_specialties) AS secondary_specialty" in sql
    assert "secondary_specialty.value ->>" in sql
    assert "CAST(physicians.secondary_specialties" not in sql
    assert "physicians.address_state" in sql
    assert "physicians.address_zip5" in sql

    assert "cardio:*" in params
    assert "simple" in params
    assert MIN_SIMILARITY_THRESHOLD in params


def test_text_query_orders_by_rank_then_similarity_then_npi():
    page_query, _ = build_search_statements(PhysicianSearchParams(query="smith"))
    order = order_by_clause(compile_pg(page_query)[0])

    rank = order.index("coalesce(ts_rank(physicians.full_name_tsv, to_tsquery(")
    similarity = order.index("greatest(similarity(physicians.first_name")
    npi = order.index("physicians.npi ASC")
    assert rank < similarity < npi
    assert "physicians.last_name ASC" not in order
    assert "physicians.last_name DESC" not in order


def test_sort_by_only_breaks_ties_when_querying():
    params = PhysicianSearchParams(query="smith", sort_by="name", sort_order="desc")
    order = order_by_clause(compile_pg(build_search_statements(params)[0])[0])

    similarity = order.index("greatest(")
    last_name = order.index("physicians.last_name DESC")
    first_name = order.index("physicians.first_name DESC")
    npi = order.index("physicians.npi ASC")
    assert similarity < last_name < first_name < npi


def test_query_without_words_skips_fulltext_but_keeps_trigram():
    page_query, _ = build_search_statements(PhysicianSearchParams(query="!!!"))
    sql, _ = compile_pg(page_query)

    assert "@@" not in sql
    assert "ts_rank" not in sql
    assert "similarity(physicians.first_name" in sql


def test_no_query_means_no_text_predicate_and_name_order():
    page_query, _ = build_search_statements(PhysicianSearchParams())
    sql, _ = compile_pg(page_query)

    assert "similarity" not in sql
    assert "WHERE" not in sql
    assert order_by_clause(sql).strip().startswith(
        "physicians.last_name ASC, physicians.first_name ASC, physicians.npi ASC"
    )


def test_specialty_sort_uses_taxonomy_description():
    params = PhysicianSearchParams(sort_by="specialty", sort_order="desc")
    order = order_by_clause(compile_pg(build_search_statements(params)[0])[0])

    assert order.index("physicians.primary_specialty ->>") < order.index("physicians.npi ASC")
    assert "DESC" in order


def test_filters_are_anded_with_the_text_condition():
    params = PhysicianSearchParams(
        query="smith", filters=SearchFilters(state="il", zip="606")
    )
    sql, values = compile_pg(build_search_statements(params)[0])

    assert "physicians.address_state = " in sql
    assert "IL" in values
    assert "606" in values
    assert " AND " in sql.split("WHERE", 1)[1]


def test_pagination_offset_and_limit():
    params = PhysicianSearchParams(page=3, limit=10)
    sql, values = compile_pg(build_search_statements(params)[0])

    assert "LIMIT" in sql and "OFFSET" in sql
    assert 10 in values
    assert 20 in values


def test_count_query_shares_the_predicate_without_order_or_limit():
    params = PhysicianSearchParams(query="smith", filters=SearchFilters(state="NY"), page=2)
    _, count_query = build_search_statements(params)
    sql, values = compile_pg(count_query)

    assert sql.startswith("SELECT count(*)")
    assert "similarity(physicians.first_name" in sql
    assert "NY" in values
    assert "ORDER BY" not in sql
    assert "LIMIT" not in sql
