import json
from typing import Annotated, Any, cast

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from warden.app import App
from warden.core.modules.identity.client_ip import resolve_client_ip
from warden.core.modules.identity.models import AuthContext, AuthMode, RequestInfo

# Missing or non-bearer credentials are reported by the identity pipeline, not by FastAPI
bearer_scheme = HTTPBearer(auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


def _email_from(source: Any) -> str | None:
    if hasattr(source, "get"):
        value = source.get("email")
        if isinstance(value, str) and value.strip():
            return value
    return None


async def _candidate_email(request: Request) -> str | None:
    """First email found in JSON body, query string, path params, then the email header."""
    body: Any = None
    if request.method not in ("GET", "HEAD", "OPTIONS"):
        raw = await request.body()
        if raw:
            try:
                body = json.loads(raw)
            except ValueError:
                body = None
    for source in (body, request.query_params, request.path_params, request.headers):
        email = _email_from(source)
        if email is not None:
            return email
    return None


async def get_request_info(
    request: Request,
    app: Annotated[App, Depends(get_app)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
) -> RequestInfo:
    peer = request.client.host if request.client else None
    return RequestInfo(
        client_ip=resolve_client_ip(peer, request.headers.get("x-forwarded-for"), app.trusted_proxies),
        email=await _candidate_email(request),
        token=credentials.credentials if credentials else None,
    )


async def allow_anonymous(
    app: Annotated[App, Depends(get_app)], info: Annotated[RequestInfo, Depends(get_request_info)]
) -> RequestInfo:
    """Optional variant: rejects blocked clients, lets anonymous callers through."""
    await app.resolve_identity(info, AuthMode.OPTIONAL)
    return info


async def require_user(
    app: Annotated[App, Depends(get_app)], info: Annotated[RequestInfo, Depends(get_request_info)]
) -> AuthContext:
    return cast(AuthContext, await app.resolve_identity(info, AuthMode.USER))


async def require_admin(
    app: Annotated[App, Depends(get_app)], info: Annotated[RequestInfo, Depends(get_request_info)]
) -> AuthContext:
    return cast(AuthContext, await app.resolve_identity(info, AuthMode.ADMIN))


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
AnonymousDep = Annotated[RequestInfo, Depends(allow_anonymous)]
AuthDep = Annotated[AuthContext, Depends(require_user)]
AdminDep = Annotated[AuthContext, Depends(require_admin)]
