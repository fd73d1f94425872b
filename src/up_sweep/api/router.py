"""Scheduler endpoint for the resolution sweep (Authorization: Bearer <CRON_SECRET>)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.up_common.database import get_db_session
from src.up_common.response import ApiResponse, success_response
from src.up_gateway.auth.dependencies import require_cron_secret
from src.up_sweep.application.service import ResolutionSweeper, get_sweeper

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])


# GET as well: some schedulers can only issue GET requests.
@router.api_route("/resolve-bids", methods=["POST", "GET"])
async def resolve_bids(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    sweeper: Annotated[ResolutionSweeper, Depends(get_sweeper)],
    request: Request,
) -> ApiResponse:
    result = await sweeper.run_sweep(db)
    return success_response(result.model_dump(mode="json"), request)
