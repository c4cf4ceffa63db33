"""
User actions.

A user row links an external auth-provider id to a platform role. Actions
return ActionState; integrity errors become `conflict`, any other store
error becomes `unavailable`.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from api.schemas import ActionError, ActionState, UserCreate, UserResponse, UserUpdate
from dagster_pipeline.models.database import User

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"


def create_user(session: Session, data: UserCreate) -> ActionState[UserResponse]:
    if not data.user_id or not data.user_id.strip():
        return ActionState[UserResponse].fail(
            ActionError.invalid_input, "User ID is required to create user"
        )

    user = User(user_id=data.user_id.strip(), platform_role=data.platform_role)
    try:
        if session.get(User, user.user_id) is not None:
            return ActionState[UserResponse].fail(ActionError.conflict, "User already exists.")
        session.add(user)
        session.commit()
        session.refresh(user)
    except IntegrityError:
        session.rollback()
        return ActionState[UserResponse].fail(ActionError.conflict, "User already exists.")
    except SQLAlchemyError:
        logger.exception("Error creating user %s", data.user_id)
        session.rollback()
        return ActionState[UserResponse].fail(ActionError.unavailable, "Failed to create user")

    logger.info("Created user %s", user.user_id)
    return ActionState[UserResponse].ok("User created successfully", UserResponse.model_validate(user))


def get_user_by_id(session: Session, user_id: str) -> ActionState[UserResponse]:
    if not user_id or not user_id.strip():
        return ActionState[UserResponse].fail(ActionError.invalid_input, "User ID is required")

    try:
        user = session.get(User, user_id.strip())
    except SQLAlchemyError:
        logger.exception("Error getting user by user id %s", user_id)
        session.rollback()
        return ActionState[UserResponse].fail(ActionError.unavailable, "Failed to get user")

    if user is None:
        return ActionState[UserResponse].fail(ActionError.not_found, USER_NOT_FOUND)

    return ActionState[UserResponse].ok("User retrieved successfully", UserResponse.model_validate(user))


def get_or_create_user(
    session: Session, user_id: str, defaults: Optional[UserUpdate] = None
) -> ActionState[UserResponse]:
    """
    Fetch a user, creating the row if it does not exist yet.

    Meant to run right after sign-in. Only a `not_found` lookup leads to a
    create; any other failure is returned unchanged.
    """
    result = get_user_by_id(session, user_id)
    if result.is_success or result.error != ActionError.not_found:
        return result

    logger.info("User %s not found, creating new user record.", user_id)
    data = UserCreate(user_id=user_id)
    if defaults is not None and defaults.platform_role is not None:
        data.platform_role = defaults.platform_role
    return create_user(session, data)


def update_user(session: Session, user_id: str, data: UserUpdate) -> ActionState[UserResponse]:
    """Replace the given fields. The user id itself cannot change."""
    if not user_id or not user_id.strip():
        return ActionState[UserResponse].fail(ActionError.invalid_input, "User ID is required")

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        return ActionState[UserResponse].fail(ActionError.invalid_input, "No update data provided")

    try:
        user = session.get(User, user_id.strip())
        if user is None:
            return ActionState[UserResponse].fail(ActionError.not_found, "User not found to update")

        for field, value in changes.items():
            setattr(user, field, value)
        session.add(user)
        session.commit()
        session.refresh(user)
    except SQLAlchemyError:
        logger.exception("Error updating user %s", user_id)
        session.rollback()
        return ActionState[UserResponse].fail(ActionError.unavailable, "Failed to update user")

    return ActionState[UserResponse].ok("User updated successfully", UserResponse.model_validate(user))


def delete_user(session: Session, user_id: str) -> ActionState[None]:
    if not user_id or not user_id.strip():
        return ActionState[None].fail(ActionError.invalid_input, "User ID is required")

    try:
        user = session.get(User, user_id.strip())
        if user is None:
            return ActionState[None].fail(ActionError.not_found, "User not found to delete")

        session.delete(user)
        session.commit()
    except SQLAlchemyError:
        logger.exception("Error deleting user %s", user_id)
        session.rollback()
        return ActionState[None].fail(ActionError.unavailable, "Failed to delete user")

    logger.info("Deleted user %s", user_id)
    return ActionState[None].ok("User deleted successfully")
