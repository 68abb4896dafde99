from warden.web.routers.accounts import router as accounts_router
from warden.web.routers.auth import router as auth_router
from warden.web.routers.blocks import router as blocks_router
from warden.web.routers.profile import router as profile_router

__all__ = [
    "accounts_router",
    "auth_router",
    "blocks_router",
    "profile_router",
]
