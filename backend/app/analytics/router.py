from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.analytics.schemas import ResponseTimeStats
from app.analytics.service import get_response_time_stats
from app.database import get_db
from app.dependencies import require_admin
from app.users.models import User

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get(
    "/response-times",
    response_model=ResponseTimeStats,
    response_model_exclude_none=True,
)
async def response_times(
    owner_id: str | None = Query(None),
    debug: bool = Query(False),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    owner_id = (owner_id or "").strip() or None
    return await get_response_time_stats(db, owner_id=owner_id, debug=debug)
