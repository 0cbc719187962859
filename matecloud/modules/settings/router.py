# matecloud/modules/settings/router.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from matecloud.core.dependencies import get_db
from .crud import PRIVATE_KEYS, get_settings_map

router = APIRouter()


@router.get("", response_model=dict[str, str])
async def public_settings(db: AsyncSession = Depends(get_db)):
    values = await get_settings_map(db)
    return {k: v for k, v in values.items() if k not in PRIVATE_KEYS}
