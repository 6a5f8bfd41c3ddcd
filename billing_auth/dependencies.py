import logging
from typing import Annotated, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from billing_auth.errors import AuthenticationError, PermissionDeniedError
from billing_auth.models import Role, SessionClaims
from billing_auth.services.auth_service import AuthService

logger = logging.getLogger(__name__)

# Security scheme
bearer = HTTPBearer(auto_error=False)


# ── Service ────────────────────────────────────────────────────────────────


def get_auth_service(request: Request) -> AuthService:
    """The AuthService built during application startup."""
    return request.app.state.auth_service


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


# ── Bearer token / session ────────────────────────────────────────────────


async def get_current_session(
    service: AuthServiceDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer)],
) -> SessionClaims:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Authorization header required")
    # Pure signature + expiry check, no store round-trip.
    return service.authenticate(credentials.credentials)


CurrentSession = Annotated[SessionClaims, Depends(get_current_session)]


def require_role(*roles: Role) -> Callable:
    """Dependency factory: only let sessions holding one of *roles* through."""
    allowed = frozenset(roles)

    async def _check(session: CurrentSession) -> SessionClaims:
        if session.role not in allowed:
            logger.info("User %d (%s) denied: needs one of %s",
                        session.user_id, session.role.value, sorted(r.value for r in allowed))
            raise PermissionDeniedError("Forbidden: insufficient permissions")
        return session

    return _check
