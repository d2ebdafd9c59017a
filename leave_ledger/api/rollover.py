# ruff: noqa: TC001
from __future__ import annotations

from fastapi import APIRouter

from leave_ledger.api.deps import AdminDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.rollover import RolloverRunResponse
from leave_ledger.services.rollover import run_year_end_rollover

rollover_router = APIRouter(
    prefix="/rollover",
    tags=["rollover"],
)


@rollover_router.post("/{year}", response_model=RolloverRunResponse)
async def trigger_rollover(
    year: int,
    session: SessionDep,
    auth: AdminDep,
) -> RolloverRunResponse:
    """Close out ``year`` and open next year's balances (admin only).

    Safe to re-run: keys already rolled over are counted, not credited again.
    Keys with outstanding reservations are reported in ``skipped`` for retry.
    """
    result = await run_year_end_rollover(session, year)
    return RolloverRunResponse(
        year=result.year,
        processed=result.processed,
        already_rolled_over=result.already_rolled_over,
        skipped=result.skipped,
        outcomes=result.outcomes,
        total_encashment_amount=result.total_encashment_amount,
    )
