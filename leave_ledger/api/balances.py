# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from leave_ledger.api.deps import AdminDep, AuthDep, DirectoryDep, ManagerDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.balance import (
    AdjustBalanceRequest,
    AllBalancesResponse,
    BalanceListResponse,
    BalanceResponse,
    InitializeBalancesRequest,
)
from leave_ledger.services import balance as balance_service

balances_router = APIRouter(prefix="/balances", tags=["balances"])


@balances_router.get("", response_model=AllBalancesResponse)
async def list_all_balances(
    session: SessionDep,
    auth: ManagerDep,
    directory: DirectoryDep,
) -> AllBalancesResponse:
    """Ledger rows of every employee, grouped by employee (manager or admin)."""
    return await balance_service.list_all_balances(session, directory)


@balances_router.get("/me", response_model=BalanceListResponse)
async def list_my_balances(session: SessionDep, auth: AuthDep) -> BalanceListResponse:
    """Ledger rows of the authenticated employee."""
    return await balance_service.list_balances_for_employee(session, auth.user_id)


@balances_router.get("/employees/{employee_id}", response_model=BalanceListResponse)
async def list_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: ManagerDep,
) -> BalanceListResponse:
    """Ledger rows of one employee (manager or admin)."""
    return await balance_service.list_balances_for_employee(session, employee_id)


@balances_router.post("/initialize", response_model=BalanceListResponse, status_code=status.HTTP_201_CREATED)
async def initialize_balances(
    payload: InitializeBalancesRequest,
    session: SessionDep,
    auth: AdminDep,
    directory: DirectoryDep,
) -> BalanceListResponse:
    """Create the missing ledger rows of an employee (admin only)."""
    return await balance_service.initialize_balances(session, directory, auth, payload.employee_id)


@balances_router.patch("/{row_id}", response_model=BalanceResponse)
async def adjust_balance(
    row_id: uuid.UUID,
    payload: AdjustBalanceRequest,
    session: SessionDep,
    auth: AdminDep,
) -> BalanceResponse:
    """Overwrite the balance or carried-over days of a ledger row (admin only)."""
    return await balance_service.adjust_balance(session, auth, row_id, payload)
