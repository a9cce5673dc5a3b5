# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from leave_ledger.api.deps import AdminDep, AuthDep, DirectoryDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.category import (
    CategoryListResponse,
    CategoryResponse,
    CreateCategoryRequest,
    UpdateCategoryRequest,
)
from leave_ledger.services import category as category_service

categories_router = APIRouter(prefix="/categories", tags=["categories"])


@categories_router.get("", response_model=CategoryListResponse)
async def list_categories(session: SessionDep, auth: AuthDep) -> CategoryListResponse:
    """List all leave categories."""
    return await category_service.list_categories(session)


@categories_router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: uuid.UUID, session: SessionDep, auth: AuthDep) -> CategoryResponse:
    """Get a single leave category."""
    return await category_service.get_category(session, category_id)


@categories_router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CreateCategoryRequest,
    session: SessionDep,
    auth: AdminDep,
    directory: DirectoryDep,
) -> CategoryResponse:
    """Create a leave category and seed ledger rows for every employee (admin only)."""
    return await category_service.create_category(session, directory, auth, payload)


@categories_router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: uuid.UUID,
    payload: UpdateCategoryRequest,
    session: SessionDep,
    auth: AdminDep,
) -> CategoryResponse:
    """Partially update a leave category (admin only)."""
    return await category_service.update_category(session, auth, category_id, payload)


@categories_router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: uuid.UUID, session: SessionDep, auth: AdminDep) -> None:
    """Delete an unreferenced leave category (admin only)."""
    await category_service.delete_category(session, auth, category_id)
