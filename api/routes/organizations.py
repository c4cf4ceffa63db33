"""
Organizations API Router.

Endpoints:
    POST   /organizations                              — Create an organization
    GET    /organizations                              — List organizations
    GET    /organizations/slug/{slug}                  — Get an organization by slug
    GET    /organizations/{organization_id}            — Get an organization
    PATCH  /organizations/{organization_id}            — Rename / re-slug
    DELETE /organizations/{organization_id}            — Delete (cascades)
    POST   /organizations/{organization_id}/members    — Add a member
    GET    /organizations/{organization_id}/members    — List members
    DELETE /organizations/{organization_id}/members/{user_id}
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlmodel import Session

from api.actions.organizations import (
    add_organization_member,
    create_organization,
    delete_organization,
    get_organization,
    get_organization_by_slug,
    list_organization_members,
    list_organizations,
    remove_organization_member,
    update_organization,
)
from api.database import get_session
from api.routes.errors import unwrap
from api.schemas import (
    MembershipCreate,
    MembershipResponse,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
)

router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.post("", response_model=OrganizationResponse, status_code=201)
def create(data: OrganizationCreate, session: Session = Depends(get_session)):
    return unwrap(create_organization(session, data))


@router.get("", response_model=List[OrganizationResponse])
def list_all(session: Session = Depends(get_session)):
    """ List all organizations ordered by name. """
    return unwrap(list_organizations(session))


@router.get("/slug/{slug}", response_model=OrganizationResponse)
def get_by_slug(slug: str, session: Session = Depends(get_session)):
    return unwrap(get_organization_by_slug(session, slug))


@router.get("/{organization_id}", response_model=OrganizationResponse)
def get(organization_id: uuid.UUID, session: Session = Depends(get_session)):
    return unwrap(get_organization(session, organization_id))


@router.patch("/{organization_id}", response_model=OrganizationResponse)
def update(
    organization_id: uuid.UUID,
    data: OrganizationUpdate,
    session: Session = Depends(get_session),
):
    return unwrap(update_organization(session, organization_id, data))


@router.delete("/{organization_id}", status_code=204)
def delete(organization_id: uuid.UUID, session: Session = Depends(get_session)):
    """Delete an organization together with its memberships and finder instances."""
    unwrap(delete_organization(session, organization_id))


@router.post("/{organization_id}/members", response_model=MembershipResponse, status_code=201)
def add_member(
    organization_id: uuid.UUID,
    data: MembershipCreate,
    session: Session = Depends(get_session),
):
    return unwrap(add_organization_member(session, organization_id, data))


@router.get("/{organization_id}/members", response_model=List[MembershipResponse])
def list_members(organization_id: uuid.UUID, session: Session = Depends(get_session)):
    return unwrap(list_organization_members(session, organization_id))


@router.delete("/{organization_id}/members/{user_id}", status_code=204)
def remove_member(
    organization_id: uuid.UUID,
    user_id: str,
    session: Session = Depends(get_session),
):
    unwrap(remove_organization_member(session, organization_id, user_id))
