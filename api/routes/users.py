"""
Users API Router.

Endpoints:
    POST   /users            — Create a user
    GET    /users/{user_id}  — Get a user
    PUT    /users/{user_id}  — Get the user, creating it if missing (post sign-in)
    PATCH  /users/{user_id}  — Update a user's platform role
    DELETE /users/{user_id}  — Delete a user
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from api.actions.users import (
    create_user,
    delete_user,
    get_or_create_user,
    get_user_by_id,
    update_user,
)
from api.database import get_session
from api.routes.errors import unwrap
from api.schemas import UserCreate, UserResponse, UserUpdate

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=201)
def create(data: UserCreate, session: Session = Depends(get_session)):
    return unwrap(create_user(session, data))


@router.get("/{user_id}", response_model=UserResponse)
def get(user_id: str, session: Session = Depends(get_session)):
    return unwrap(get_user_by_id(session, user_id))


@router.put("/{user_id}", response_model=UserResponse)
def get_or_create(
    user_id: str,
    defaults: Optional[UserUpdate] = Body(None),
    session: Session = Depends(get_session),
):
    """Idempotent: returns the existing user or creates it with `defaults`."""
    return unwrap(get_or_create_user(session, user_id, defaults))


@router.patch("/{user_id}", response_model=UserResponse)
def update(user_id: str, data: UserUpdate, session: Session = Depends(get_session)):
    return unwrap(update_user(session, user_id, data))


@router.delete("/{user_id}", status_code=204)
def delete(user_id: str, session: Session = Depends(get_session)):
    unwrap(delete_user(session, user_id))
