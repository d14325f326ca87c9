"""
Supabase gateway: rows and auth served by the hosted backend.

The Supabase Python SDK is synchronous; every call is pushed onto a
dedicated bounded thread pool so the event loop is never blocked.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from datetime import datetime
from functools import wraps
from typing import Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AuthError as SupabaseAuthError
from supabase import Client, create_client
from supabase.lib.client_options import SyncClientOptions

import config
from arena.errors import AuthError, ConflictError, GatewayError
from arena.gateway.base import AuthSession, Gateway, Identity
from arena.gateway.query import Filter, Query, QueryResult

logger = logging.getLogger("arena")

UNIQUE_VIOLATION = "23505"


def run_sync(func):
    """Run a synchronous SDK method on the gateway's thread pool."""
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: func(self, *args, **kwargs))
    return wrapper


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _api_error(e: APIError) -> GatewayError:
    if e.code == UNIQUE_VIOLATION:
        return ConflictError(e.message or str(e))
    return GatewayError(e.message or str(e))


class SupabaseGateway(Gateway):
    """Gateway over a Supabase project (PostgREST rows + GoTrue auth)."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        schema: Optional[str] = None,
        max_workers: int = 10,
    ):
        self.url = url or config.SUPABASE_URL
        self.key = key or config.SUPABASE_KEY
        options = SyncClientOptions(
            schema=schema or config.SUPABASE_SCHEMA,
            auto_refresh_token=True,
            persist_session=True,
        )
        self.client: Client = create_client(self.url, self.key, options=options)
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="supabase-db",
        )

    async def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _auth_client(self) -> Client:
        """Throwaway client for auth calls that would replace the shared handle's session."""
        return create_client(
            self.url,
            self.key,
            options=SyncClientOptions(auto_refresh_token=False, persist_session=False),
        )

    @staticmethod
    def _apply(builder, f: Filter):
        value = _jsonable(f.value)
        if f.op == "eq" and value is None:
            return builder.is_(f.column, "null")
        if f.op == "is":
            return builder.is_(f.column, "null" if value is None else value)
        if f.op == "in":
            return builder.in_(f.column, value)
        return getattr(builder, f.op)(f.column, value)

    def _filtered(self, builder, query: Query):
        for f in query.filters:
            builder = self._apply(builder, f)
        return builder

    # --- rows ---

    def _select_builder(self, query: Query):
        fragments = [",".join(query.columns)]
        for embed in query.embeds:
            fragments.append(f"{embed.alias}:{embed.local_key}({','.join(embed.columns)})")
        builder = self.client.table(query.table).select(",".join(fragments), count=query.count_method)
        builder = self._filtered(builder, query)
        for column, desc in query.ordering:
            builder = builder.order(column, desc=desc)
        if query.ordering:
            # Stable windows: ties are broken by primary key
            builder = builder.order("id")
        if query.offset is not None and query.limit_to is not None:
            builder = builder.range(query.offset, query.offset + query.limit_to - 1)
        elif query.limit_to is not None:
            builder = builder.limit(query.limit_to)
        return builder

    @run_sync
    def select(self, query: Query) -> QueryResult:
        builder = self._select_builder(query)
        try:
            response = builder.execute()
        except APIError as e:
            raise _api_error(e) from e
        except httpx.HTTPError as e:
            raise GatewayError(str(e), public="Could not load data.") from e
        return QueryResult(rows=response.data or [], count=response.count)

    @run_sync
    def insert(self, table: str, values: dict) -> dict:
        try:
            response = self.client.table(table).insert(_jsonable(values)).execute()
        except APIError as e:
            raise _api_error(e) from e
        except httpx.HTTPError as e:
            raise GatewayError(str(e)) from e
        if not response.data:
            raise GatewayError(f"Insert into {table} returned no row")
        return response.data[0]

    @run_sync
    def update(self, query: Query, values: dict) -> list[dict]:
        if not query.filters:
            raise GatewayError("UPDATE requires a filter")
        builder = self._filtered(self.client.table(query.table).update(_jsonable(values)), query)
        try:
            return builder.execute().data or []
        except APIError as e:
            raise _api_error(e) from e
        except httpx.HTTPError as e:
            raise GatewayError(str(e)) from e

    @run_sync
    def delete(self, query: Query) -> list[dict]:
        if not query.filters:
            raise GatewayError("DELETE requires a filter")
        builder = self._filtered(self.client.table(query.table).delete(), query)
        try:
            return builder.execute().data or []
        except APIError as e:
            raise _api_error(e) from e
        except httpx.HTTPError as e:
            raise GatewayError(str(e)) from e

    # --- auth ---

    @staticmethod
    def _session(session) -> AuthSession:
        return AuthSession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=int(session.expires_at or 0),
            user_id=session.user.id,
        )

    @run_sync
    def sign_up(
        self,
        email: str,
        password: str,
        username: str,
        full_name: Optional[str] = None,
        role: str = "player",
    ) -> Optional[AuthSession]:
        try:
            response = self._auth_client().auth.sign_up({
                "email": email,
                "password": password,
                "options": {"data": {"username": username, "full_name": full_name}},
            })
        except SupabaseAuthError as e:
            raise AuthError(str(e), public="Could not create the account.") from e
        if response.user is None:
            raise AuthError("Sign-up returned no user", public="Could not create the account.")
        profile = {
            "id": response.user.id,
            "username": username,
            "full_name": full_name,
            "role": role,
            "game_ids": [],
        }
        try:
            # A database trigger may already have created the row
            self.client.table("profiles").upsert(profile).execute()
        except APIError as e:
            raise _api_error(e) from e
        logger.info("Account created: %s (%s)", username, role)
        return self._session(response.session) if response.session else None

    @run_sync
    def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            response = self._auth_client().auth.sign_in_with_password({"email": email, "password": password})
        except SupabaseAuthError as e:
            raise AuthError(str(e), public="Invalid e-mail or password.") from e
        if response.session is None:
            raise AuthError("Sign-in returned no session", public="Invalid e-mail or password.")
        return self._session(response.session)

    @run_sync
    def get_identity(self, access_token: str) -> Identity:
        try:
            response = self.client.auth.get_user(access_token)
        except SupabaseAuthError as e:
            raise AuthError(str(e)) from e
        if response is None or response.user is None:
            raise AuthError("No user for token")
        return Identity(id=response.user.id, email=response.user.email or "")

    @run_sync
    def refresh_session(self, refresh_token: str) -> AuthSession:
        try:
            response = self._auth_client().auth.refresh_session(refresh_token)
        except SupabaseAuthError as e:
            raise AuthError(str(e)) from e
        if response.session is None:
            raise AuthError("Refresh returned no session")
        return self._session(response.session)

    @run_sync
    def sign_out(self, access_token: str) -> None:
        try:
            self.client.auth.admin.sign_out(access_token)
        except SupabaseAuthError as e:
            raise AuthError(str(e)) from e
