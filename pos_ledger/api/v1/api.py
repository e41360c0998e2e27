"""API v1 router composition."""

from fastapi import APIRouter

from pos_ledger.api.v1.endpoints import orders, reports

api_router: APIRouter = APIRouter()
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
