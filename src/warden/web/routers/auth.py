from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel, Field

from warden.core.modules.account.models import LoginResult
from warden.core.modules.session.models import DeviceInfo, SessionView
from warden.web.deps import AnonymousDep, AppDep, AuthDep
from warden.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class LoginRequest(DeviceInfo):
    """Authentication request with the device it is made from."""

    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Account password")


class CloseSessionRequest(BaseModel):
    id: UUID = Field(..., description="ID of the session to close")


class MessageResponse(BaseModel):
    message: str


@router.post(
    "/auth/login",
    summary="Authenticate user",
    description=(
        "Authenticate with email and password to receive a token bound to a new session. "
        "When the account is at its session limit the least recently active sessions are closed."
    ),
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        400: {"model": ErrorResponse, "description": "Invalid credentials or unverified account"},
        403: {"model": ErrorResponse, "description": "Client or account is blocked"},
    },
)
async def login(login_data: LoginRequest, app: AppDep, request_info: AnonymousDep) -> LoginResult:
    device = DeviceInfo.model_validate(login_data.model_dump(exclude={"email", "password"}))
    return await app.login(login_data.email, login_data.password, device, request_info.client_ip)


@router.post(
    "/auth/logout",
    summary="End session",
    description="Terminate the current session. Its token stops working immediately.",
    operation_id="logout",
    status_code=204,
    responses={
        204: {"description": "Successfully logged out"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def logout(app: AppDep, ctx: AuthDep) -> None:
    await app.logout(ctx)


@router.get(
    "/auth/sessions",
    summary="List sessions",
    description="List live sessions of the current account, most recently active first.",
    operation_id="listSessions",
    responses={
        200: {"description": "Live sessions"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def list_sessions(app: AppDep, ctx: AuthDep) -> list[SessionView]:
    return await app.list_sessions(ctx)


@router.post(
    "/auth/close-session",
    summary="Close a session",
    description="Terminate one session owned by the current account.",
    operation_id="closeSession",
    responses={
        200: {"description": "Session closed"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Session not found or not owned"},
    },
)
async def close_session(request: CloseSessionRequest, app: AppDep, ctx: AuthDep) -> MessageResponse:
    await app.close_session(ctx, request.id)
    return MessageResponse(message="Session closed successfully")


@router.post(
    "/auth/close-other-sessions",
    summary="Close other sessions",
    description="Terminate every session of the current account except the one making the request.",
    operation_id="closeOtherSessions",
    responses={
        200: {"description": "Other sessions closed"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def close_other_sessions(app: AppDep, ctx: AuthDep) -> MessageResponse:
    closed = await app.close_other_sessions(ctx)
    return MessageResponse(message=f"Closed {closed} other session(s)")
