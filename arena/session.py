"""Session provider: resolves the current identity and profile from persisted tokens."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import config
from arena.errors import GatewayError
from arena.gateway import AuthSession, Gateway, Identity, Query
from arena.security import token_expiry

logger = logging.getLogger("arena")


class TokenStore(Protocol):
    """Where the session tokens are persisted between requests (cookies in the web app)."""

    def load(self) -> tuple[Optional[str], Optional[str]]:
        """Return ``(access_token, refresh_token)``."""

    def save(self, session: AuthSession) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryTokenStore:
    """Token store kept in memory. Used by scripts and tests."""

    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None):
        self.access_token = access_token
        self.refresh_token = refresh_token

    def load(self):
        return self.access_token, self.refresh_token

    def save(self, session: AuthSession) -> None:
        self.access_token = session.access_token
        self.refresh_token = session.refresh_token

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None


@dataclass
class SessionState:
    identity: Optional[Identity] = None
    profile: Optional[dict] = None
    loading: bool = True

    @property
    def signed_in(self) -> bool:
        return self.identity is not None

    @property
    def is_admin(self) -> bool:
        return bool(self.profile) and self.profile.get("role") == "admin"

    @property
    def display_name(self) -> str:
        if not self.profile:
            return "User"
        return self.profile.get("full_name") or self.profile.get("username") or "User"

    def to_dict(self) -> dict:
        return {
            "loading": self.loading,
            "signed_in": self.signed_in,
            "user": {"id": self.identity.id, "email": self.identity.email} if self.identity else None,
            "profile": self.profile,
        }


class SessionProvider:
    """Exposes ``{identity, profile, loading}`` and ``sign_out()`` to page controllers."""

    def __init__(self, gateway: Gateway, store: TokenStore):
        self.gateway = gateway
        self.store = store
        self.state = SessionState()

    def _needs_refresh(self, access_token: str) -> bool:
        expires_at = token_expiry(access_token)
        if expires_at is None:
            return False
        return expires_at - time.time() <= config.AUTH_REFRESH_MARGIN_SECONDS

    async def _force_sign_out(self, access_token: Optional[str]) -> None:
        self.store.clear()
        if not access_token:
            return
        try:
            await self.gateway.sign_out(access_token)
        except GatewayError as e:
            logger.warning("Sign-out of broken session failed: %s", e)

    async def reset_auth_if_invalid(self) -> Optional[Identity]:
        """Resolve the identity; on any error force a sign-out and report no session."""
        access_token, refresh_token = self.store.load()
        if not access_token and not refresh_token:
            return None
        try:
            if refresh_token and (not access_token or self._needs_refresh(access_token)):
                session = await self.gateway.refresh_session(refresh_token)
                self.store.save(session)
                access_token = session.access_token
                logger.debug("Session refreshed for %s", session.user_id)
            return await self.gateway.get_identity(access_token)
        except GatewayError as e:
            logger.warning("Session error, signing out: %s", e)
            await self._force_sign_out(access_token)
            return None

    async def resolve(self) -> SessionState:
        self.state = SessionState(loading=True)
        identity = await self.reset_auth_if_invalid()
        profile = None
        if identity is not None:
            try:
                result = await self.gateway.select(Query("profiles").eq("id", identity.id).limit(1))
                profile = result.first()
            except GatewayError:
                logger.exception("Error fetching profile for %s", identity.id)
        self.state = SessionState(identity=identity, profile=profile, loading=False)
        return self.state

    async def sign_in(self, email: str, password: str) -> SessionState:
        """Raises ``AuthError`` on bad credentials."""
        session = await self.gateway.sign_in(email, password)
        self.store.save(session)
        return await self.resolve()

    async def sign_up(
        self,
        email: str,
        password: str,
        username: str,
        full_name: Optional[str] = None,
        role: str = "player",
    ) -> SessionState:
        session = await self.gateway.sign_up(email, password, username, full_name, role=role)
        if session is not None:
            self.store.save(session)
        return await self.resolve()

    async def sign_out(self) -> None:
        """Safe to call when already signed out."""
        access_token, _ = self.store.load()
        self.store.clear()
        self.state = SessionState(loading=False)
        if not access_token:
            return
        try:
            await self.gateway.sign_out(access_token)
        except GatewayError as e:
            logger.warning("Sign-out failed: %s", e)
