"""Reporter profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from safewatch.core.metrics import profile_summary
from safewatch.core.models import utc_now

router = APIRouter(prefix="/api/v1")


@router.get("/profiles/{reporter_id}")
async def get_profile(reporter_id: str) -> JSONResponse:
    """Reporter metrics plus whether a ban or premium window is running."""
    from safewatch.main import get_service

    profile = await get_service().get_profile(reporter_id)
    return JSONResponse(content={"profile": profile_summary(profile, utc_now())})
