import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from leave_engine.config import get_settings
from leave_engine.db import SessionDep

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["health"])

Status = Literal["ok", "degraded"]


class HealthResponse(BaseModel):
    """Liveness of the engine and reachability of the ledger database."""

    status: Status
    service: str
    version: str
    environment: str
    database: Literal["reachable", "unreachable"]


@health_router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    settings = get_settings()
    database: Literal["reachable", "unreachable"] = "reachable"

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: ledger database unreachable")
        database = "unreachable"

    return HealthResponse(
        status="ok" if database == "reachable" else "degraded",
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        database=database,
    )
