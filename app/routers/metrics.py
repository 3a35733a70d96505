from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import cache
from app.database import get_db, utcnow
from app.models import UserSession
from app.schemas import MetricsResponse
from app.services import user_service

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):
    total_users = await user_service.count_users(db)

    active_sessions = (await db.execute(
        select(func.count()).select_from(UserSession).where(
            UserSession.revoked.is_(False), UserSession.expires_at > utcnow()
        )
    )).scalar_one()

    revoked_sessions = (await db.execute(
        select(func.count()).select_from(UserSession).where(UserSession.revoked.is_(True))
    )).scalar_one()

    return MetricsResponse(
        total_users=total_users,
        active_sessions=active_sessions,
        revoked_sessions=revoked_sessions,
        cache_info=cache.stats,
    )
