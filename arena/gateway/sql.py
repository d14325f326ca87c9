"""SQL gateway: the hosted row and auth API served from a SQLAlchemy database."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

import jwt
from sqlalchemy import DateTime, delete, event, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import config
from arena.errors import AuthError, ConflictError, GatewayError
from arena.gateway.base import AuthSession, Gateway, Identity
from arena.gateway.query import Embed, Filter, Query, QueryResult
from arena.models import Account, Base, LoginSession, Profile
from arena.security import ACCESS, REFRESH, create_token, decode_token, hash_password, verify_password

logger = logging.getLogger("arena")

# Tables reachable through the row API. Auth tables are only touched by the auth methods.
ROW_TABLES = ("profiles", "news", "tournaments", "tournament_participants", "tournament_results")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SqlGateway(Gateway):
    """Gateway over any async SQLAlchemy URL (aiosqlite by default)."""

    def __init__(self, database_url: Optional[str] = None, **engine_kwargs):
        self.database_url = database_url or config.DATABASE_URL
        self.engine = create_async_engine(self.database_url, echo=False, **engine_kwargs)
        self._sqlite = self.engine.dialect.name == "sqlite"
        if self._sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def init(self) -> None:
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    # --- value conversion ---

    def _table(self, name: str):
        if name not in ROW_TABLES:
            raise GatewayError(f"Unknown table: {name}")
        return Base.metadata.tables[name]

    @staticmethod
    def _column(table, name: str):
        try:
            return table.c[name]
        except KeyError:
            raise GatewayError(f"Unknown column {table.name}.{name}") from None

    def _bind(self, column, value):
        """Normalize timestamps to UTC; SQLite stores them without an offset."""
        if not isinstance(column.type, DateTime) or value is None:
            return value
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                raise GatewayError(f"Invalid timestamp for {column.name}: {value!r}") from None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        return value.replace(tzinfo=None) if self._sqlite else value

    @staticmethod
    def _row(mapping) -> dict:
        row = dict(mapping)
        for key, value in row.items():
            if isinstance(value, datetime) and value.tzinfo is None:
                row[key] = value.replace(tzinfo=timezone.utc)
        return row

    def _values(self, table, values: dict) -> dict:
        return {name: self._bind(self._column(table, name), v) for name, v in values.items()}

    def _columns(self, table, names, extra=()):
        """Return (columns to fetch, names fetched only for internal use)."""
        if "*" in names:
            return list(table.c), set()
        columns = [self._column(table, n) for n in names]
        hidden = set()
        for name in extra:
            if name not in names:
                columns.append(self._column(table, name))
                hidden.add(name)
        return columns, hidden

    def _condition(self, table, f: Filter):
        column = self._column(table, f.column)
        if f.op == "in":
            return column.in_([self._bind(column, v) for v in f.value])
        value = self._bind(column, f.value)
        if f.op == "eq":
            return column.is_(None) if value is None else column == value
        if f.op == "neq":
            return column.is_not(None) if value is None else column != value
        if f.op == "gt":
            return column > value
        if f.op == "gte":
            return column >= value
        if f.op == "lt":
            return column < value
        if f.op == "lte":
            return column <= value
        if f.op == "ilike":
            return column.ilike(value)
        if f.op == "is":
            return column.is_(value)
        raise GatewayError(f"Unsupported filter operator: {f.op}")

    def _conditions(self, table, query: Query) -> list:
        return [self._condition(table, f) for f in query.filters]

    @staticmethod
    def _integrity(e: IntegrityError) -> GatewayError:
        message = str(e.orig)
        code = getattr(e.orig, "pgcode", None) or getattr(e.orig, "sqlstate", None)
        if code == "23505" or "UNIQUE" in message.upper():
            return ConflictError(message)
        if "NOT NULL" in message.upper() or code == "23502":
            return GatewayError(message, public="A required value is missing.")
        return GatewayError(message, public="The record references data that does not exist.")

    # --- rows ---

    async def select(self, query: Query) -> QueryResult:
        table = self._table(query.table)
        columns, hidden = self._columns(table, query.columns, extra=[e.local_key for e in query.embeds])
        conditions = self._conditions(table, query)
        stmt = select(*columns)
        if conditions:
            stmt = stmt.where(*conditions)
        for name, desc in query.ordering:
            column = self._column(table, name)
            stmt = stmt.order_by(column.desc() if desc else column.asc())
        if query.ordering:
            # Stable windows: ties are broken by primary key
            stmt = stmt.order_by(*table.primary_key.columns)
        if query.offset:
            stmt = stmt.offset(query.offset)
        if query.limit_to is not None:
            stmt = stmt.limit(query.limit_to)
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(stmt)
                rows = [self._row(r) for r in result.mappings()]
                total = None
                if query.count_method:
                    count_stmt = select(func.count()).select_from(table)
                    if conditions:
                        count_stmt = count_stmt.where(*conditions)
                    total = (await conn.execute(count_stmt)).scalar_one()
                for embed in query.embeds:
                    await self._attach(conn, rows, embed)
        except SQLAlchemyError as e:
            raise GatewayError(str(e), public="Could not load data.") from e
        for row in rows:
            for name in hidden:
                row.pop(name, None)
        return QueryResult(rows=rows, count=total)

    async def _attach(self, conn, rows: list[dict], embed: Embed) -> None:
        keys = {row.get(embed.local_key) for row in rows} - {None}
        related = {}
        if keys:
            remote = self._table(embed.table)
            columns, hidden = self._columns(remote, embed.columns, extra=[embed.remote_key])
            key_column = self._column(remote, embed.remote_key)
            result = await conn.execute(select(*columns).where(key_column.in_(keys)))
            for mapping in result.mappings():
                item = self._row(mapping)
                key = item[embed.remote_key]
                for name in hidden:
                    item.pop(name, None)
                related[key] = item
        for row in rows:
            row[embed.alias] = related.get(row.get(embed.local_key))

    async def insert(self, table: str, values: dict) -> dict:
        t = self._table(table)
        stmt = insert(t).values(**self._values(t, values)).returning(*t.c)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return self._row(result.mappings().one())
        except IntegrityError as e:
            raise self._integrity(e) from e
        except SQLAlchemyError as e:
            raise GatewayError(str(e)) from e

    async def update(self, query: Query, values: dict) -> list[dict]:
        t = self._table(query.table)
        conditions = self._conditions(t, query)
        if not conditions:
            raise GatewayError("UPDATE requires a filter")
        stmt = update(t).where(*conditions).values(**self._values(t, values)).returning(*t.c)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return [self._row(r) for r in result.mappings()]
        except IntegrityError as e:
            raise self._integrity(e) from e
        except SQLAlchemyError as e:
            raise GatewayError(str(e)) from e

    async def delete(self, query: Query) -> list[dict]:
        t = self._table(query.table)
        conditions = self._conditions(t, query)
        if not conditions:
            raise GatewayError("DELETE requires a filter")
        stmt = delete(t).where(*conditions).returning(*t.c)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(stmt)
                return [self._row(r) for r in result.mappings()]
        except IntegrityError as e:
            raise self._integrity(e) from e
        except SQLAlchemyError as e:
            raise GatewayError(str(e)) from e

    # --- auth ---

    async def _issue(self, account_id: str) -> AuthSession:
        async with self.session_factory() as session:
            record = LoginSession(account_id=account_id)
            session.add(record)
            await session.commit()
        return self._tokens(account_id, record.id)

    @staticmethod
    def _tokens(account_id: str, session_id: str) -> AuthSession:
        access, expires_at = create_token(account_id, session_id, ACCESS)
        refresh, _ = create_token(account_id, session_id, REFRESH)
        return AuthSession(
            access_token=access,
            refresh_token=refresh,
            expires_at=expires_at,
            user_id=account_id,
        )

    async def sign_up(
        self,
        email: str,
        password: str,
        username: str,
        full_name: Optional[str] = None,
        role: str = "player",
    ) -> Optional[AuthSession]:
        email = email.strip().lower()
        try:
            async with self.session_factory() as session:
                account = Account(email=email, password_hash=hash_password(password))
                session.add(account)
                await session.flush()
                session.add(
                    Profile(id=account.id, username=username, full_name=full_name, role=role, game_ids=[])
                )
                await session.commit()
        except IntegrityError as e:
            raise ConflictError(
                str(e.orig), public="An account with that e-mail or username already exists."
            ) from e
        except SQLAlchemyError as e:
            raise GatewayError(str(e)) from e
        logger.info("Account created: %s (%s)", username, role)
        return await self._issue(account.id)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Account).where(Account.email == email.strip().lower()))
                account = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise GatewayError(str(e)) from e
        if not account or not verify_password(password, account.password_hash):
            raise AuthError("Invalid login credentials", public="Invalid e-mail or password.")
        return await self._issue(account.id)

    async def _session_for(self, token: str, token_type: str, verify_exp: bool = True):
        try:
            payload = decode_token(token, token_type, verify_exp=verify_exp)
        except jwt.ExpiredSignatureError as e:
            raise AuthError("Token expired") from e
        except jwt.InvalidTokenError as e:
            raise AuthError(f"Invalid token: {e}") from e
        try:
            async with self.session_factory() as session:
                record = await session.get(LoginSession, payload["sid"])
                account = await session.get(Account, payload["sub"])
        except SQLAlchemyError as e:
            raise GatewayError(str(e)) from e
        return payload, record, account

    async def get_identity(self, access_token: str) -> Identity:
        payload, record, account = await self._session_for(access_token, ACCESS)
        if not record or not account or record.account_id != account.id:
            raise AuthError("Session revoked")
        return Identity(id=account.id, email=account.email)

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        payload, record, account = await self._session_for(refresh_token, REFRESH)
        if not record or not account or record.account_id != account.id:
            raise AuthError("Session revoked")
        return self._tokens(account.id, record.id)

    async def sign_out(self, access_token: str) -> None:
        payload, record, _ = await self._session_for(access_token, ACCESS, verify_exp=False)
        if not record:
            return
        try:
            async with self.engine.begin() as conn:
                await conn.execute(delete(LoginSession.__table__).where(LoginSession.id == record.id))
        except SQLAlchemyError as e:
            raise GatewayError(str(e)) from e
