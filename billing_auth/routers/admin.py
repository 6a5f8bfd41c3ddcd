"""
Admin endpoints – read-only views over the credential store.
"""

from fastapi import APIRouter, Depends, Request

from billing_auth.dependencies import AuthServiceDep, require_role
from billing_auth.models import Role, UserInfo
from billing_auth.rate_limit import DEFAULT, limiter

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_role(Role.ADMIN))],
)


@router.get(
    "/users",
    response_model=list[UserInfo],
    operation_id="listUsers",
    summary="List every user account",
)
@limiter.limit(DEFAULT)
async def list_users(request: Request, service: AuthServiceDep) -> list[UserInfo]:
    return [UserInfo.from_user(user) for user in await service.list_users()]
