"""
Advisor Router
Generates a structured budget plan from the current month's spending.
"""
import asyncio
import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request, Response

from spendwise.core.deps import current_period_start, get_aggregator, get_ledger_store, get_planner
from spendwise.core.security import get_current_user_id
from spendwise.models.advisory import AdviceRequest
from spendwise.utils.advisor import AdvisoryPlanner
from spendwise.utils.aggregator import LedgerAggregator

router = APIRouter()
logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.5


async def _run_until_disconnect(request: Request, coro):
    """Await coro, cancelling it if the client goes away first."""
    task = asyncio.ensure_future(coro)
    while True:
        done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
        if done:
            return task.result()
        if await request.is_disconnected():
            task.cancel()
            logger.info("Client disconnected, advisory request abandoned")
            return None


@router.post("/recommend")
async def recommend(
    body: AdviceRequest,
    request: Request,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    ledger=Depends(get_ledger_store),
    planner: AdvisoryPlanner = Depends(get_planner),
    aggregator: LedgerAggregator = Depends(get_aggregator),
) -> Dict:
    """
    Build a budget plan for the given monthly income.
    The plan is returned as-is; saving it is a separate call to /budgets.
    """
    result = await _run_until_disconnect(
        request,
        planner.advise_async(user_id, body.income, ledger, current_period_start(), aggregator),
    )
    if result is None:
        return Response(status_code=499)

    plan = result.unwrap()
    if result.warnings:
        response.headers["X-Advisory-Warning"] = "; ".join(result.warnings)
    return plan.to_dict()
