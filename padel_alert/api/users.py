from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException

from padel_alert.api.deps import get_user_storage
from padel_alert.api.schemas import UserRequest, UserResponse
from padel_alert.models import User
from padel_alert.storage.user_storage import UserStorage

router = APIRouter(prefix="/api/users", tags=["users"])


def _to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        telegram_chat_id=user.telegram_chat_id,
    )


@router.post("", status_code=201, response_model=UserResponse)
def create_user(body: UserRequest, storage: UserStorage = Depends(get_user_storage)):
    user_id = body.id or uuid.uuid4().hex
    if storage.get_user(user_id) is not None:
        raise HTTPException(status_code=409, detail="User already exists")

    user = User(
        id=user_id,
        email=body.email,
        name=body.name,
        telegram_chat_id=body.telegram_chat_id,
    )
    storage.create_user(user)
    return _to_response(user)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, storage: UserStorage = Depends(get_user_storage)):
    user = storage.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _to_response(user)
