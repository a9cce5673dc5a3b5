from fastapi import APIRouter

from leave_ledger.api.applications import applications_router
from leave_ledger.api.balances import balances_router
from leave_ledger.api.categories import categories_router
from leave_ledger.api.jobs import jobs_router
from leave_ledger.api.notifications import notifications_router

api_router = APIRouter()
api_router.include_router(categories_router)
api_router.include_router(balances_router)
api_router.include_router(applications_router)
api_router.include_router(notifications_router)
api_router.include_router(jobs_router)
