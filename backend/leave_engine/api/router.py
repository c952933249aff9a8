from fastapi import APIRouter

from leave_engine.api.calendar import calendar_router
from leave_engine.api.comp_off import comp_off_router
from leave_engine.api.leaves import leaves_router

api_router = APIRouter()
api_router.include_router(leaves_router)
api_router.include_router(comp_off_router)
api_router.include_router(calendar_router)
