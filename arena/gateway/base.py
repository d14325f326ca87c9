"""Remote data gateway interface shared by the SQL and hosted backends."""
from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Optional

from arena.gateway.query import Query, QueryResult


@dataclass(frozen=True)
class Identity:
    """Authenticated user as reported by the auth backend."""

    id: str
    email: str


@dataclass(frozen=True)
class AuthSession:
    """Token pair issued on sign-in or refresh. ``expires_at`` is a unix timestamp."""

    access_token: str
    refresh_token: str
    expires_at: int
    user_id: str


class Gateway(abc.ABC):
    """Rows in, rows out. No validation and no business rules live here."""

    @abc.abstractmethod
    async def select(self, query: Query) -> QueryResult:
        ...

    async def count(self, query: Query) -> int:
        result = await self.select(query.count(query.count_method or "exact").limit(1))
        return result.count or 0

    @abc.abstractmethod
    async def insert(self, table: str, values: dict) -> dict:
        ...

    @abc.abstractmethod
    async def update(self, query: Query, values: dict) -> list[dict]:
        ...

    @abc.abstractmethod
    async def delete(self, query: Query) -> list[dict]:
        ...

    @abc.abstractmethod
    async def sign_up(
        self,
        email: str,
        password: str,
        username: str,
        full_name: Optional[str] = None,
        role: str = "player",
    ) -> Optional[AuthSession]:
        """Create an identity and its profile. Returns None when the backend defers sign-in (e-mail confirmation)."""

    @abc.abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    @abc.abstractmethod
    async def get_identity(self, access_token: str) -> Identity:
        ...

    @abc.abstractmethod
    async def refresh_session(self, refresh_token: str) -> AuthSession:
        ...

    @abc.abstractmethod
    async def sign_out(self, access_token: str) -> None:
        ...

    async def init(self) -> None:
        """Prepare the backend (create tables, warm connections). No-op by default."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
