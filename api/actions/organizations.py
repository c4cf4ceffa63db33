"""
Organization and membership actions.

Organizations own finder instances; memberships attach users to an
organization with a per-organization role.
"""

import logging
import uuid
from typing import List

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from api.schemas import (
    ActionError,
    ActionState,
    MembershipCreate,
    MembershipResponse,
    OrganizationCreate,
    OrganizationResponse,
    OrganizationUpdate,
)
from dagster_pipeline.models.database import Organization, OrganizationMembership, User

logger = logging.getLogger(__name__)

ORGANIZATION_NOT_FOUND = "Organization not found"


def create_organization(
    session: Session, data: OrganizationCreate
) -> ActionState[OrganizationResponse]:
    organization = Organization(name=data.name.strip(), slug=data.slug)
    try:
        session.add(organization)
        session.commit()
        session.refresh(organization)
    except IntegrityError:
        session.rollback()
        return ActionState[OrganizationResponse].fail(
            ActionError.conflict, f"Organization slug '{data.slug}' is already taken."
        )
    except SQLAlchemyError:
        logger.exception("Error creating organization %s", data.slug)
        session.rollback()
        return ActionState[OrganizationResponse].fail(
            ActionError.unavailable, "Failed to create organization"
        )

    logger.info("Created organization %s (%s)", organization.slug, organization.id)
    return ActionState[OrganizationResponse].ok(
        "Organization created successfully", OrganizationResponse.model_validate(organization)
    )


def get_organization(
    session: Session, organization_id: uuid.UUID
) -> ActionState[OrganizationResponse]:
    try:
        organization = session.get(Organization, organization_id)
    except SQLAlchemyError:
        logger.exception("Error getting organization %s", organization_id)
        session.rollback()
        return ActionState[OrganizationResponse].fail(
            ActionError.unavailable, "Failed to get organization"
        )

    if organization is None:
        return ActionState[OrganizationResponse].fail(ActionError.not_found, ORGANIZATION_NOT_FOUND)

    return ActionState[OrganizationResponse].ok(
        "Organization retrieved successfully", OrganizationResponse.model_validate(organization)
    )


def get_organization_by_slug(session: Session, slug: str) -> ActionState[OrganizationResponse]:
    if not slug:
        return ActionState[OrganizationResponse].fail(ActionError.invalid_input, "Slug is required")

    try:
        organization = session.exec(
            select(Organization).where(Organization.slug == slug)
        ).first()
    except SQLAlchemyError:
        logger.exception("Error getting organization by slug %s", slug)
        session.rollback()
        return ActionState[OrganizationResponse].fail(
            ActionError.unavailable, "Failed to get organization"
        )

    if organization is None:
        return ActionState[OrganizationResponse].fail(ActionError.not_found, ORGANIZATION_NOT_FOUND)

    return ActionState[OrganizationResponse].ok(
        "Organization retrieved successfully", OrganizationResponse.model_validate(organization)
    )


def list_organizations(session: Session) -> ActionState[List[OrganizationResponse]]:
    try:
        organizations = session.exec(select(Organization).order_by(Organization.name)).all()
    except SQLAlchemyError:
        logger.exception("Error listing organizations")
        session.rollback()
        return ActionState[List[OrganizationResponse]].fail(
            ActionError.unavailable, "Failed to list organizations"
        )

    return ActionState[List[OrganizationResponse]].ok(
        "Organizations retrieved successfully",
        [OrganizationResponse.model_validate(o) for o in organizations],
    )


def update_organization(
    session: Session, organization_id: uuid.UUID, data: OrganizationUpdate
) -> ActionState[OrganizationResponse]:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        return ActionState[OrganizationResponse].fail(
            ActionError.invalid_input, "No update data provided"
        )

    try:
        organization = session.get(Organization, organization_id)
        if organization is None:
            return ActionState[OrganizationResponse].fail(
                ActionError.not_found, ORGANIZATION_NOT_FOUND
            )

        for field, value in changes.items():
            setattr(organization, field, value)
        session.add(organization)
        session.commit()
        session.refresh(organization)
    except IntegrityError:
        session.rollback()
        return ActionState[OrganizationResponse].fail(
            ActionError.conflict, f"Organization slug '{changes.get('slug')}' is already taken."
        )
    except SQLAlchemyError:
        logger.exception("Error updating organization %s", organization_id)
        session.rollback()
        return ActionState[OrganizationResponse].fail(
            ActionError.unavailable, "Failed to update organization"
        )

    return ActionState[OrganizationResponse].ok(
        "Organization updated successfully", OrganizationResponse.model_validate(organization)
    )


def delete_organization(session: Session, organization_id: uuid.UUID) -> ActionState[None]:
    """Delete an organization along with its memberships and finder instances."""
    try:
        organization = session.get(Organization, organization_id)
        if organization is None:
            return ActionState[None].fail(ActionError.not_found, ORGANIZATION_NOT_FOUND)

        session.delete(organization)
        session.commit()
    except SQLAlchemyError:
        logger.exception("Error deleting organization %s", organization_id)
        session.rollback()
        return ActionState[None].fail(ActionError.unavailable, "Failed to delete organization")

    logger.info("Deleted organization %s", organization_id)
    return ActionState[None].ok("Organization deleted successfully")


# ========================
# Memberships
# ========================
def add_organization_member(
    session: Session, organization_id: uuid.UUID, data: MembershipCreate
) -> ActionState[MembershipResponse]:
    try:
        if session.get(Organization, organization_id) is None:
            return ActionState[MembershipResponse].fail(ActionError.not_found, ORGANIZATION_NOT_FOUND)
        if session.get(User, data.user_id) is None:
            return ActionState[MembershipResponse].fail(ActionError.not_found, "User not found")
        if session.get(OrganizationMembership, (data.user_id, organization_id)) is not None:
            return ActionState[MembershipResponse].fail(
                ActionError.conflict, "User is already a member of this organization."
            )

        membership = OrganizationMembership(
            user_id=data.user_id, organization_id=organization_id, role=data.role
        )
        session.add(membership)
        session.commit()
        session.refresh(membership)
    except IntegrityError:
        session.rollback()
        return ActionState[MembershipResponse].fail(
            ActionError.conflict, "User is already a member of this organization."
        )
    except SQLAlchemyError:
        logger.exception("Error adding %s to organization %s", data.user_id, organization_id)
        session.rollback()
        return ActionState[MembershipResponse].fail(ActionError.unavailable, "Failed to add member")

    return ActionState[MembershipResponse].ok(
        "Member added successfully", MembershipResponse.model_validate(membership)
    )


def list_organization_members(
    session: Session, organization_id: uuid.UUID
) -> ActionState[List[MembershipResponse]]:
    try:
        if session.get(Organization, organization_id) is None:
            return ActionState[List[MembershipResponse]].fail(
                ActionError.not_found, ORGANIZATION_NOT_FOUND
            )
        memberships = session.exec(
            select(OrganizationMembership)
            .where(OrganizationMembership.organization_id == organization_id)
            .order_by(OrganizationMembership.created_at, OrganizationMembership.user_id)
        ).all()
    except SQLAlchemyError:
        logger.exception("Error listing members of organization %s", organization_id)
        session.rollback()
        return ActionState[List[MembershipResponse]].fail(
            ActionError.unavailable, "Failed to list members"
        )

    return ActionState[List[MembershipResponse]].ok(
        "Members retrieved successfully",
        [MembershipResponse.model_validate(m) for m in memberships],
    )


def remove_organization_member(
    session: Session, organization_id: uuid.UUID, user_id: str
) -> ActionState[None]:
    try:
        membership = session.get(OrganizationMembership, (user_id, organization_id))
        if membership is None:
            return ActionState[None].fail(ActionError.not_found, "Membership not found")

        session.delete(membership)
        session.commit()
    except SQLAlchemyError:
        logger.exception("Error removing %s from organization %s", user_id, organization_id)
        session.rollback()
        return ActionState[None].fail(ActionError.unavailable, "Failed to remove member")

    return ActionState[None].ok("Member removed successfully")
