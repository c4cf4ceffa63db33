"""
Physicians API Router.

Endpoints:
    GET /physicians/search  — Ranked text search with state/zip filters + pagination
    GET /physicians/{npi}   — Single physician profile by NPI
"""

import re
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from api.actions.physicians import get_physician_by_npi, search_physicians
from api.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from api.database import get_session
from api.routes.errors import unwrap
from api.schemas import (
    PhysicianResponse,
    PhysicianSearchParams,
    PhysicianSearchResults,
    SearchFilters,
)

router = APIRouter(prefix="/physicians", tags=["Physicians"])

ZIP5_PATTERN = re.compile(r"^\d{5}$")


def filters_from_location(
    state: Optional[str], zip: Optional[str], location: Optional[str]
) -> SearchFilters:
    """
    Merge explicit filters with the free-form `location` box.

    A five-digit location is treated as a zip, anything else as a state.
    Explicit state/zip parameters win over the location shortcut.
    """
    filters = SearchFilters(state=state or None, zip=zip or None)
    location = (location or "").strip()
    if location:
        if ZIP5_PATTERN.match(location):
            filters.zip = filters.zip or location
        else:
            filters.state = filters.state or location
    return filters


@router.get("/search", response_model=PhysicianSearchResults)
def search(
    query: Optional[str] = Query(None, description="Name, specialty, state or zip"),
    # Filters
    state: Optional[str] = Query(None, description="Two-letter state code (exact)"),
    zip: Optional[str] = Query(None, description="Zip prefix"),
    location: Optional[str] = Query(None, description="5-digit zip or a state code"),
    # Pagination
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT, description="Items per page"),
    # Sorting
    sort_by: Optional[Literal["name", "specialty"]] = Query(None),
    sort_order: Literal["asc", "desc"] = Query("asc"),
    # Session
    session: Session = Depends(get_session),
):
    """
    Search physicians.

    With a query, results are ranked by full-text relevance and then name
    similarity; sort_by only breaks ties. Without a query, sort_by decides
    the order (last name A-Z by default).
    """
    params = PhysicianSearchParams(
        query=query,
        filters=filters_from_location(state, zip, location),
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return unwrap(search_physicians(session, params))


@router.get("/{npi}", response_model=PhysicianResponse)
def get_physician(npi: str, session: Session = Depends(get_session)):
    """Get a single physician profile."""
    return unwrap(get_physician_by_npi(session, npi))
