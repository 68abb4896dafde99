from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from warden.core.modules.account.models import AccountView
from warden.core.modules.session.models import SessionView
from warden.web.deps import AdminDep, AppDep
from warden.web.openapi import ErrorResponse

router = APIRouter(tags=["admin"])


class CreateAccountRequest(BaseModel):
    """Request to create a new, already verified account."""

    email: str = Field(..., min_length=3, description="Email for the new account")
    password: str = Field(..., min_length=1, description="Password for the new account")
    name: str = Field("", description="Display name")
    is_admin: bool = Field(False, description="Grant admin privileges")


class SetBlockedRequest(BaseModel):
    is_blocked: bool = Field(..., description="True to ban the account, false to lift the ban")


@router.post(
    "/admin/accounts",
    summary="Create account",
    description="Create a verified account. Only accessible by admins.",
    operation_id="createAccount",
    status_code=201,
    responses={
        201: {"description": "Account created successfully"},
        400: {"model": ErrorResponse, "description": "Invalid request or email already taken"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
    },
)
async def create_account(data: CreateAccountRequest, app: AppDep, ctx: AdminDep) -> AccountView:
    return await app.create_account(ctx, data.email, data.password, name=data.name, is_admin=data.is_admin)


@router.put(
    "/admin/accounts/{account_id}/block",
    summary="Ban or unban account",
    description="Ban or unban an account. Banning terminates all of its sessions; admins cannot be banned.",
    operation_id="setAccountBlocked",
    responses={
        200: {"description": "Account updated"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required or target is an admin"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
)
async def set_account_blocked(account_id: UUID, data: SetBlockedRequest, app: AppDep, ctx: AdminDep) -> AccountView:
    return await app.set_account_blocked(ctx, account_id, data.is_blocked)


@router.get(
    "/admin/accounts/{account_id}/sessions",
    summary="List account sessions",
    description="List live sessions of any account.",
    operation_id="getAccountSessions",
    responses={
        200: {"description": "Live sessions"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
)
async def get_account_sessions(account_id: UUID, app: AppDep, ctx: AdminDep) -> list[SessionView]:
    return await app.get_account_sessions(ctx, account_id)


@router.put(
    "/admin/accounts/{account_id}/soft-delete",
    summary="Soft delete account",
    description="Mark an account as deleted, lift any ban and terminate all of its sessions. Admins cannot be deleted.",
    operation_id="softDeleteAccount",
    responses={
        200: {"description": "Account marked as deleted"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required or target is an admin"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
)
async def soft_delete_account(account_id: UUID, app: AppDep, ctx: AdminDep) -> AccountView:
    return await app.set_account_deleted(ctx, account_id, True)


@router.put(
    "/admin/accounts/{account_id}/undelete",
    summary="Undelete account",
    description="Restore a soft deleted account so it can log in again.",
    operation_id="undeleteAccount",
    responses={
        200: {"description": "Account restored"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required or target is an admin"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
)
async def undelete_account(account_id: UUID, app: AppDep, ctx: AdminDep) -> AccountView:
    return await app.set_account_deleted(ctx, account_id, False)
