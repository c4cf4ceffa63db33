"""
Finder Instances API Router.

Endpoints:
    POST  /finders               — Create a finder instance for an organization
    GET   /finders/resolve?host= — Resolve the instance served on a host
    GET   /finders/{slug}        — Get a finder instance by slug
    PATCH /finders/{finder_id}   — Update name, hosts, domain status or configuration
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from api.actions.finder_instances import (
    create_finder_instance,
    get_finder_instance_by_slug,
    resolve_finder_instance_by_host,
    update_finder_instance,
)
from api.database import get_session
from api.routes.errors import unwrap
from api.schemas import FinderInstanceCreate, FinderInstanceResponse, FinderInstanceUpdate

router = APIRouter(prefix="/finders", tags=["Finder Instances"])


@router.post("", response_model=FinderInstanceResponse, status_code=201)
def create(data: FinderInstanceCreate, session: Session = Depends(get_session)):
    return unwrap(create_finder_instance(session, data))


@router.get("/resolve", response_model=FinderInstanceResponse)
def resolve(
    host: str = Query(..., min_length=1, description="Request host, e.g. findadoc.partner.com"),
    session: Session = Depends(get_session),
):
    return unwrap(resolve_finder_instance_by_host(session, host))


@router.get("/{slug}", response_model=FinderInstanceResponse)
def get_by_slug(slug: str, session: Session = Depends(get_session)):
    return unwrap(get_finder_instance_by_slug(session, slug))


@router.patch("/{finder_id}", response_model=FinderInstanceResponse)
def update(
    finder_id: uuid.UUID,
    data: FinderInstanceUpdate,
    session: Session = Depends(get_session),
):
    return unwrap(update_finder_instance(session, finder_id, data))
