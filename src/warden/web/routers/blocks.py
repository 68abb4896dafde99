from uuid import UUID

from fastapi import APIRouter

from warden.core.modules.block.models import BlockRule, BlockRuleCreate, BlockRuleUpdate
from warden.web.deps import AdminDep, AppDep
from warden.web.openapi import ErrorResponse

router = APIRouter(tags=["admin"])

ADMIN_ERRORS: dict[int | str, dict[str, object]] = {
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Admin privileges required"},
}


@router.get(
    "/admin/blocks",
    summary="List block rules",
    description="List every block rule, newest first, including inactive and expired ones.",
    operation_id="listBlockRules",
    responses={200: {"description": "Block rules"}, **ADMIN_ERRORS},
)
async def list_block_rules(app: AppDep, ctx: AdminDep) -> list[BlockRule]:
    return await app.list_block_rules(ctx)


@router.post(
    "/admin/blocks",
    summary="Create block rule",
    description="Block an IP, an IP range (first three octets, e.g. 10.0.0) or an email.",
    operation_id="createBlockRule",
    status_code=201,
    responses={
        201: {"description": "Block rule created"},
        400: {"model": ErrorResponse, "description": "Invalid value or already blocked"},
        **ADMIN_ERRORS,
    },
)
async def create_block_rule(data: BlockRuleCreate, app: AppDep, ctx: AdminDep) -> BlockRule:
    return await app.create_block_rule(ctx, data)


@router.get(
    "/admin/blocks/{rule_id}",
    summary="Get block rule",
    operation_id="getBlockRule",
    responses={
        200: {"description": "Block rule"},
        404: {"model": ErrorResponse, "description": "Block rule not found"},
        **ADMIN_ERRORS,
    },
)
async def get_block_rule(rule_id: UUID, app: AppDep, ctx: AdminDep) -> BlockRule:
    return await app.get_block_rule(ctx, rule_id)


@router.put(
    "/admin/blocks/{rule_id}",
    summary="Update block rule",
    description="Change reason, activity or expiry of a rule. Kind and value are immutable.",
    operation_id="updateBlockRule",
    responses={
        200: {"description": "Block rule updated"},
        400: {"model": ErrorResponse, "description": "Re-activation would duplicate an active rule"},
        404: {"model": ErrorResponse, "description": "Block rule not found"},
        **ADMIN_ERRORS,
    },
)
async def update_block_rule(rule_id: UUID, data: BlockRuleUpdate, app: AppDep, ctx: AdminDep) -> BlockRule:
    return await app.update_block_rule(ctx, rule_id, data)


@router.delete(
    "/admin/blocks/{rule_id}",
    summary="Delete block rule",
    operation_id="deleteBlockRule",
    status_code=204,
    responses={
        204: {"description": "Block rule deleted"},
        404: {"model": ErrorResponse, "description": "Block rule not found"},
        **ADMIN_ERRORS,
    },
)
async def delete_block_rule(rule_id: UUID, app: AppDep, ctx: AdminDep) -> None:
    await app.delete_block_rule(ctx, rule_id)
