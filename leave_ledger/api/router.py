from fastapi import APIRouter

from leave_ledger.api.applications import applications_router
from leave_ledger.api.balances import employee_balance_router
from leave_ledger.api.leave_types import leave_types_router
from leave_ledger.api.policies import policies_router
from leave_ledger.api.rollover import rollover_router

api_router = APIRouter()
api_router.include_router(leave_types_router)
api_router.include_router(policies_router)
api_router.include_router(employee_balance_router)
api_router.include_router(applications_router)
api_router.include_router(rollover_router)
