"""
Finder instance actions.

A finder instance is one organization's branded physician finder. It is
served either under a slug path or on its own host (platform subdomain or
custom domain), and carries a FinderConfiguration document.
"""

import logging
import secrets
import uuid
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from api.schemas import (
    ActionError,
    ActionState,
    FinderInstanceCreate,
    FinderInstanceResponse,
    FinderInstanceUpdate,
)
from dagster_pipeline.models.database import FinderDomainStatus, FinderInstance, Organization

logger = logging.getLogger(__name__)

FINDER_NOT_FOUND = "Finder instance not found"
FINDER_CONFLICT = "Finder slug, host or domain is already in use."


def normalize_host(host: str) -> str:
    """Lowercase, drop any port and trailing dot: "Find.Example.com:443." -> "find.example.com"."""
    return host.strip().lower().split(":", 1)[0].rstrip(".")


def clean_host(host: Optional[str]) -> Optional[str]:
    """normalize_host, with None and blank hosts stored as None."""
    if host is None:
        return None
    return normalize_host(host) or None


def create_finder_instance(
    session: Session, data: FinderInstanceCreate
) -> ActionState[FinderInstanceResponse]:
    try:
        if session.get(Organization, data.organization_id) is None:
            return ActionState[FinderInstanceResponse].fail(
                ActionError.not_found, "Organization not found"
            )

        canonical_host = clean_host(data.canonical_host)
        custom_domain = clean_host(data.custom_domain)
        finder = FinderInstance(
            organization_id=data.organization_id,
            name=data.name.strip(),
            slug=data.slug,
            canonical_host=canonical_host,
            custom_domain=custom_domain,
            domain_status=FinderDomainStatus.pending if custom_domain else None,
            embed_script_id=secrets.token_urlsafe(12),
            configuration=data.configuration.model_dump(exclude_none=True),
        )
        session.add(finder)
        session.commit()
        session.refresh(finder)
    except IntegrityError:
        session.rollback()
        return ActionState[FinderInstanceResponse].fail(ActionError.conflict, FINDER_CONFLICT)
    except SQLAlchemyError:
        logger.exception("Error creating finder instance %s", data.slug)
        session.rollback()
        return ActionState[FinderInstanceResponse].fail(
            ActionError.unavailable, "Failed to create finder instance"
        )

    logger.info("Created finder instance %s for organization %s", finder.slug, finder.organization_id)
    return ActionState[FinderInstanceResponse].ok(
        "Finder instance created successfully", FinderInstanceResponse.model_validate(finder)
    )


def get_finder_instance_by_slug(session: Session, slug: str) -> ActionState[FinderInstanceResponse]:
    if not slug:
        return ActionState[FinderInstanceResponse].fail(ActionError.invalid_input, "Slug is required")

    try:
        finder = session.exec(select(FinderInstance).where(FinderInstance.slug == slug)).first()
    except SQLAlchemyError:
        logger.exception("Error getting finder instance %s", slug)
        session.rollback()
        return ActionState[FinderInstanceResponse].fail(
            ActionError.unavailable, "Failed to get finder instance"
        )

    if finder is None:
        return ActionState[FinderInstanceResponse].fail(ActionError.not_found, FINDER_NOT_FOUND)

    return ActionState[FinderInstanceResponse].ok(
        "Finder instance retrieved successfully", FinderInstanceResponse.model_validate(finder)
    )


def resolve_finder_instance_by_host(
    session: Session, host: str
) -> ActionState[FinderInstanceResponse]:
    """Find the instance served on `host`, by canonical host or custom domain."""
    if not host or not host.strip():
        return ActionState[FinderInstanceResponse].fail(ActionError.invalid_input, "Host is required")

    host = normalize_host(host)
    try:
        finder = session.exec(
            select(FinderInstance).where(
                or_(
                    func.lower(FinderInstance.canonical_host) == host,
                    func.lower(FinderInstance.custom_domain) == host,
                )
            )
        ).first()
    except SQLAlchemyError:
        logger.exception("Error resolving finder instance for host %s", host)
        session.rollback()
        return ActionState[FinderInstanceResponse].fail(
            ActionError.unavailable, "Failed to resolve finder instance"
        )

    if finder is None:
        return ActionState[FinderInstanceResponse].fail(
            ActionError.not_found, f"No finder instance is served on {host}"
        )

    return ActionState[FinderInstanceResponse].ok(
        "Finder instance retrieved successfully", FinderInstanceResponse.model_validate(finder)
    )


def update_finder_instance(
    session: Session, finder_id: uuid.UUID, data: FinderInstanceUpdate
) -> ActionState[FinderInstanceResponse]:
    """
    Replace the given fields.

    A changed custom domain goes back to `pending` until it is verified again.
    A null or blank host clears that host. Clearing the custom domain also
    clears its domain status.
    The configuration document is replaced as a whole, not merged.
    """
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return ActionState[FinderInstanceResponse].fail(
            ActionError.invalid_input, "No update data provided"
        )

    try:
        finder = session.get(FinderInstance, finder_id)
        if finder is None:
            return ActionState[FinderInstanceResponse].fail(ActionError.not_found, FINDER_NOT_FOUND)

        if changes.get("name") is not None:
            finder.name = changes["name"].strip()
        if "canonical_host" in changes:
            finder.canonical_host = clean_host(changes["canonical_host"])
        if "custom_domain" in changes:
            custom_domain = clean_host(changes["custom_domain"])
            if custom_domain != finder.custom_domain:
                finder.custom_domain = custom_domain
                finder.domain_status = FinderDomainStatus.pending if custom_domain else None
        if "domain_status" in changes:
            finder.domain_status = changes["domain_status"]
        if data.configuration is not None:
            finder.configuration = data.configuration.model_dump(exclude_none=True)

        session.add(finder)
        session.commit()
        session.refresh(finder)
    except IntegrityError:
        session.rollback()
        return ActionState[FinderInstanceResponse].fail(ActionError.conflict, FINDER_CONFLICT)
    except SQLAlchemyError:
        logger.exception("Error updating finder instance %s", finder_id)
        session.rollback()
        return ActionState[FinderInstanceResponse].fail(
            ActionError.unavailable, "Failed to update finder instance"
        )

    return ActionState[FinderInstanceResponse].ok(
        "Finder instance updated successfully", FinderInstanceResponse.model_validate(finder)
    )
