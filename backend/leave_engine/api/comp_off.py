# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status

from leave_engine.api.deps import AuthDep, validate_org_scope
from leave_engine.db import SessionDep
from leave_engine.models.enums import CompOffStatus
from leave_engine.schemas.comp_off import (
    CompOffGrantResponse,
    CompOffListResponse,
    CompOffRevokeResponse,
    GrantCompOffPayload,
    RevokeCompOffPayload,
)
from leave_engine.services import comp_off as comp_off_service

comp_off_router = APIRouter(
    prefix="/orgs/{org_id}/comp-off",
    tags=["comp-off"],
    dependencies=[Depends(validate_org_scope)],
)


@comp_off_router.post("", response_model=CompOffGrantResponse, status_code=status.HTTP_201_CREATED)
async def grant_comp_off(
    payload: GrantCompOffPayload,
    session: SessionDep,
    auth: AuthDep,
) -> CompOffGrantResponse:
    """Grant a comp-off credit for work on a non-working day."""
    return await comp_off_service.grant_comp_off(session, auth, payload)


@comp_off_router.get("", response_model=CompOffListResponse)
async def list_comp_off(
    session: SessionDep,
    auth: AuthDep,
    user_id: uuid.UUID | None = Query(default=None),
    status_filter: CompOffStatus | None = Query(default=None, alias="status"),
) -> CompOffListResponse:
    """List a user's comp-off credits (the caller's own by default)."""
    return await comp_off_service.list_comp_off_credits(session, auth, user_id, status_filter)


@comp_off_router.post("/{credit_id}/revoke", response_model=CompOffRevokeResponse)
async def revoke_comp_off(
    credit_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: RevokeCompOffPayload | None = None,
) -> CompOffRevokeResponse:
    """Revoke a granted comp-off credit."""
    return await comp_off_service.revoke_comp_off(session, auth, credit_id, payload)
