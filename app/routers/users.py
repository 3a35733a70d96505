import math

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, current_identity
from app.errors import NotFoundError, error_response
from app.guards import GuardResult, authorize
from app.models import Role
from app.schemas import UserContent, UserEnvelope, UserResponse, UsersContent, UsersEnvelope, ok
from app.services import user_service

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("", response_model=UsersEnvelope)
async def list_users(
    pagination: PaginationParams = Depends(),
    guard: GuardResult = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
):
    guard = await authorize(db, guard, {Role.ADMIN})
    if guard.error:
        return error_response(guard.error)

    total = await user_service.count_users(db)
    users = await user_service.get_users(db, pagination.offset, pagination.page_size)
    return UsersEnvelope(
        status=ok("Users fetched successfully."),
        content=UsersContent(
            data=[UserResponse.model_validate(u) for u in users],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            pages=math.ceil(total / pagination.page_size) if total else 0,
        ),
    )


@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user(
    user_id: int,
    guard: GuardResult = Depends(current_identity),
    db: AsyncSession = Depends(get_db),
):
    if guard.error:
        return error_response(guard.error)
    user = await user_service.get_user(db, user_id)
    if not user:
        return error_response(NotFoundError("User not found."))
    return UserEnvelope(status=ok("User fetched successfully."), content=UserContent(data=user))
