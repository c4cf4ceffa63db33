"""
Physician search and lookup actions.

Both actions take a request-scoped Session and return an ActionState; they
never raise on store failures. Errors are logged here and the caller gets a
generic "try again later" message without partial data.

Search composes three things into one query:
    - a free-text condition: prefix full-text match on full_name_tsv, pg_trgm
      similarity on first/last name, and ILIKE on specialty, state and zip
    - structured filters: exact (uppercased) state, zip prefix
    - ordering: full-text rank, then name similarity, then the caller's sort

The full-text and trigram expressions need PostgreSQL with pg_trgm.
"""

import logging
import math
import re
from typing import List, Optional

from sqlalchemy import asc, column, desc, func, literal_column, or_
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from api.schemas import (
    ActionError,
    ActionState,
    PhysicianResponse,
    PhysicianSearchParams,
    PhysicianSearchResults,
)
from dagster_pipeline.models.database import Physician

logger = logging.getLogger(__name__)

MIN_SIMILARITY_THRESHOLD = 0.1
TEXT_SEARCH_CONFIG = "simple"

SEARCH_FAILED_MESSAGE = "Failed to search physicians. Please try again later."
LOOKUP_FAILED_MESSAGE = "Failed to retrieve physician details."

_WORD = re.compile(r"\w+", re.UNICODE)


def build_prefix_tsquery(query: str) -> Optional[str]:
    """
    Turn free text into a prefix-matching tsquery string.

    Every word becomes a prefix term and terms are AND-ed:
        "Jo  smi" -> "jo:* & smi:*"
    Punctuation is dropped so user input can never break tsquery syntax.
    Returns None when nothing searchable is left.
    """
    terms = [f"{word.lower()}:*" for word in _WORD.findall(query)]
    return " & ".join(terms) or None


def specialty_description():
    """primary_specialty ->> 'taxonomy_description'"""
    return col(Physician.primary_specialty)["taxonomy_description"].as_string()


def secondary_specialty_matches(text_query: str):
    """
    EXISTS over secondary_specialties whose taxonomy_description contains the text.

    Only description values are searched, never keys, codes or license numbers.
    """
    specialty = (
        func.jsonb_array_elements(Physician.secondary_specialties)
        .table_valued(column("value", JSONB))
        .alias("secondary_specialty")
    )
    description = specialty.c.value["taxonomy_description"].astext
    return (
        select(literal_column("1"))
        .select_from(specialty)
        .where(description.icontains(text_query, autoescape=True))
        .exists()
    )


def _text_query(params: PhysicianSearchParams) -> Optional[str]:
    if params.query and params.query.strip():
        return params.query.strip()
    return None


def build_search_conditions(params: PhysicianSearchParams) -> list:
    """WHERE clauses for a search; the list is AND-ed by the caller."""
    conditions = []

    text_query = _text_query(params)
    if text_query:
        matches = [
            func.similarity(Physician.first_name, text_query) > MIN_SIMILARITY_THRESHOLD,
            func.similarity(Physician.last_name, text_query) > MIN_SIMILARITY_THRESHOLD,
            specialty_description().icontains(text_query, autoescape=True),
            secondary_specialty_matches(text_query),
            col(Physician.address_state).icontains(text_query, autoescape=True),
            col(Physician.address_zip5).istartswith(text_query, autoescape=True),
        ]
        tsquery = build_prefix_tsquery(text_query)
        if tsquery:
            ts_query = func.to_tsquery(TEXT_SEARCH_CONFIG, tsquery)
            matches.insert(0, col(Physician.full_name_tsv).bool_op("@@")(ts_query))
        conditions.append(or_(*matches))

    filters = params.filters
    if filters.state and filters.state.strip():
        # States are stored uppercased by the ETL
        conditions.append(Physician.address_state == filters.state.strip().upper())
    if filters.zip and filters.zip.strip():
        conditions.append(col(Physician.address_zip5).startswith(filters.zip.strip(), autoescape=True))

    return conditions


def build_search_order(params: PhysicianSearchParams) -> list:
    """ORDER BY clauses for a search. Always ends with npi so pages are stable."""
    order_by = []
    direction = asc if params.sort_order == "asc" else desc

    text_query = _text_query(params)
    if text_query:
        tsquery = build_prefix_tsquery(text_query)
        if tsquery:
            rank = func.ts_rank(
                Physician.full_name_tsv, func.to_tsquery(TEXT_SEARCH_CONFIG, tsquery)
            )
            order_by.append(func.coalesce(rank, 0).desc())
        order_by.append(
            func.greatest(
                func.similarity(Physician.first_name, text_query),
                func.similarity(Physician.last_name, text_query),
            ).desc()
        )

    if params.sort_by == "name":
        order_by += [direction(Physician.last_name), direction(Physician.first_name)]
    elif params.sort_by == "specialty":
        order_by.append(direction(specialty_description()))
    elif not text_query:
        order_by += [asc(Physician.last_name), asc(Physician.first_name)]

    order_by.append(asc(Physician.npi))
    return order_by


def build_search_statements(params: PhysicianSearchParams):
    """Return (page query, count query) sharing the same predicate."""
    query = select(Physician).where(*build_search_conditions(params))

    count_query = select(func.count()).select_from(query.subquery())

    offset = (params.page - 1) * params.limit
    page_query = query.order_by(*build_search_order(params)).offset(offset).limit(params.limit)

    return page_query, count_query


def search_physicians(
    session: Session, params: PhysicianSearchParams
) -> ActionState[PhysicianSearchResults]:
    """Ranked, filtered, paginated physician search."""
    page_query, count_query = build_search_statements(params)

    try:
        rows = session.exec(page_query).all()
        total_count = session.exec(count_query).one()
    except SQLAlchemyError:
        logger.exception(
            "Error searching physicians (query=%r, filters=%s, page=%d)",
            params.query,
            params.filters.model_dump(exclude_none=True),
            params.page,
        )
        session.rollback()
        return ActionState[PhysicianSearchResults].fail(
            ActionError.unavailable, SEARCH_FAILED_MESSAGE
        )

    physicians: List[PhysicianResponse] = [
        PhysicianResponse.model_validate(row) for row in rows
    ]
    logger.debug(
        "Physician search matched %d rows (page %d, limit %d)",
        total_count,
        params.page,
        params.limit,
    )

    return ActionState[PhysicianSearchResults].ok(
        "Physicians retrieved successfully",
        PhysicianSearchResults(
            physicians=physicians,
            total_count=total_count,
            current_page=params.page,
            total_pages=math.ceil(total_count / params.limit),
        ),
    )


def get_physician_by_npi(session: Session, npi: str) -> ActionState[PhysicianResponse]:
    """Equality lookup on the primary key."""
    if not npi or not npi.strip():
        return ActionState[PhysicianResponse].fail(ActionError.invalid_input, "NPI is required")

    try:
        physician = session.get(Physician, npi.strip())
    except SQLAlchemyError:
        logger.exception("Error getting physician by NPI %s", npi)
        session.rollback()
        return ActionState[PhysicianResponse].fail(
            ActionError.unavailable, LOOKUP_FAILED_MESSAGE
        )

    if physician is None:
        return ActionState[PhysicianResponse].fail(ActionError.not_found, "Physician not found")

    return ActionState[PhysicianResponse].ok(
        "Physician retrieved successfully",
        PhysicianResponse.model_validate(physician),
    )
