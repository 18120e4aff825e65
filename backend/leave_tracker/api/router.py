from fastapi import APIRouter

from leave_tracker.api.balances import balances_router, calendar_router
from leave_tracker.api.cache import cache_router
from leave_tracker.api.requests import requests_router
from leave_tracker.api.toil import toil_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(balances_router)
api_router.include_router(calendar_router)
api_router.include_router(toil_router)
api_router.include_router(cache_router)
