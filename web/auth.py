"""Authentication for the web app: token persistence, session resolution, route guards."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config
from arena.gateway import AuthSession, Gateway
from arena.session import SessionProvider, SessionState

http_bearer = HTTPBearer(auto_error=False)

ACCESS_COOKIE = f"{config.SESSION_STORAGE_KEY}-access-token"
REFRESH_COOKIE = f"{config.SESSION_STORAGE_KEY}-refresh-token"


class CookieTokenStore:
    """Session tokens persisted in cookies. Accepts Authorization: Bearer (wins over cookies)."""

    def __init__(self, request: Request, response: Response, bearer: Optional[str] = None):
        self.response = response
        if bearer:
            self.access_token, self.refresh_token = bearer, None
        else:
            self.access_token = request.cookies.get(ACCESS_COOKIE)
            self.refresh_token = request.cookies.get(REFRESH_COOKIE)
        if config.DETECT_SESSION_IN_URL and request.query_params.get("access_token"):
            self.save_tokens(request.query_params["access_token"], request.query_params.get("refresh_token"))

    def load(self):
        return self.access_token, self.refresh_token

    def save_tokens(self, access_token: str, refresh_token: Optional[str]) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        max_age = config.REFRESH_TOKEN_DAYS * 86400
        self.response.set_cookie(
            ACCESS_COOKIE, access_token, max_age=max_age, httponly=True, samesite="lax", secure=config.COOKIE_SECURE
        )
        if refresh_token:
            self.response.set_cookie(
                REFRESH_COOKIE, refresh_token, max_age=max_age, httponly=True, samesite="lax", secure=config.COOKIE_SECURE
            )

    def save(self, session: AuthSession) -> None:
        self.save_tokens(session.access_token, session.refresh_token)

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.response.delete_cookie(ACCESS_COOKIE)
        self.response.delete_cookie(REFRESH_COOKIE)


def get_gateway(request: Request) -> Gateway:
    """The gateway created in the app lifespan."""
    return request.app.state.gateway


async def get_provider(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    gateway: Gateway = Depends(get_gateway),
) -> SessionProvider:
    bearer = credentials.credentials if credentials and credentials.credentials else None
    return SessionProvider(gateway, CookieTokenStore(request, response, bearer))


async def get_session(provider: SessionProvider = Depends(get_provider)) -> SessionState:
    """Current session; signed-out visitors get an empty state."""
    return await provider.resolve()


async def require_user(session: SessionState = Depends(get_session)) -> SessionState:
    """Signed-out visitors are sent to /auth."""
    if not session.signed_in:
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            detail="Sign in required",
            headers={"Location": "/auth"},
        )
    return session


async def require_admin(session: SessionState = Depends(require_user)) -> SessionState:
    """Non-admins are sent back to their dashboard."""
    if not session.is_admin:
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            detail="Admin access required",
            headers={"Location": "/dashboard"},
        )
    return session
