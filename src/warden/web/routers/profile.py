from fastapi import APIRouter
from pydantic import BaseModel, Field

from warden.core.modules.account.models import AccountView
from warden.web.deps import AppDep, AuthDep
from warden.web.openapi import ErrorResponse

router = APIRouter(tags=["profile"])


class ChangePasswordRequest(BaseModel):
    """Request to change account password."""

    old_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=1, description="New password")


@router.get(
    "/profile",
    summary="Get current account",
    description="Get the account of the currently authenticated user.",
    operation_id="getCurrentAccount",
    responses={
        200: {"description": "Current account"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def get_profile(app: AppDep, ctx: AuthDep) -> AccountView:
    return await app.get_current_account(ctx)


@router.post(
    "/profile/change-password",
    summary="Change password",
    description="Change the password of the current account. All other sessions are logged out.",
    operation_id="changePassword",
    status_code=204,
    responses={
        204: {"description": "Password changed successfully"},
        400: {"model": ErrorResponse, "description": "Invalid current password or weak new password"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def change_password(request: ChangePasswordRequest, app: AppDep, ctx: AuthDep) -> None:
    await app.change_password(ctx, request.old_password, request.new_password)


@router.delete(
    "/profile",
    summary="Delete account",
    description="Soft delete the current account and terminate all of its sessions.",
    operation_id="deleteAccount",
    status_code=204,
    responses={
        204: {"description": "Account deleted"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def delete_account(app: AppDep, ctx: AuthDep) -> None:
    await app.delete_account(ctx)
