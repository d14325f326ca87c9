"""Backend-neutral description of a row query.

Page controllers build a ``Query`` with the same fluent calls regardless of
which gateway executes it::

    Query("news").embed("profiles", "profiles", "author_id", ("username", "full_name"))
        .eq("published", True).order("created_at", desc=True).range(0, 8)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

FILTER_OPS = ("eq", "neq", "gt", "gte", "lt", "lte", "in", "ilike", "is")
COUNT_METHODS = ("exact", "estimated")


@dataclass(frozen=True)
class Embed:
    """Related row fetched together with each result row, stored under ``alias``."""

    alias: str
    table: str
    local_key: str
    columns: tuple[str, ...] = ("*",)
    remote_key: str = "id"


@dataclass(frozen=True)
class Filter:
    op: str
    column: str
    value: Any


@dataclass
class Query:
    table: str
    columns: tuple[str, ...] = ("*",)
    filters: list[Filter] = field(default_factory=list)
    ordering: list[tuple[str, bool]] = field(default_factory=list)  # (column, descending)
    embeds: list[Embed] = field(default_factory=list)
    offset: Optional[int] = None
    limit_to: Optional[int] = None
    count_method: Optional[str] = None

    def select(self, *columns: str) -> "Query":
        self.columns = tuple(columns) or ("*",)
        return self

    def embed(
        self,
        alias: str,
        table: str,
        local_key: str,
        columns: tuple[str, ...] = ("*",),
        remote_key: str = "id",
    ) -> "Query":
        self.embeds.append(Embed(alias, table, local_key, tuple(columns), remote_key))
        return self

    def where(self, op: str, column: str, value: Any) -> "Query":
        if op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter operator: {op}")
        self.filters.append(Filter(op, column, value))
        return self

    def eq(self, column: str, value: Any) -> "Query":
        return self.where("eq", column, value)

    def neq(self, column: str, value: Any) -> "Query":
        return self.where("neq", column, value)

    def gt(self, column: str, value: Any) -> "Query":
        return self.where("gt", column, value)

    def gte(self, column: str, value: Any) -> "Query":
        return self.where("gte", column, value)

    def lt(self, column: str, value: Any) -> "Query":
        return self.where("lt", column, value)

    def lte(self, column: str, value: Any) -> "Query":
        return self.where("lte", column, value)

    def in_(self, column: str, values) -> "Query":
        return self.where("in", column, list(values))

    def ilike(self, column: str, pattern: str) -> "Query":
        return self.where("ilike", column, pattern)

    def is_(self, column: str, value: Any) -> "Query":
        return self.where("is", column, value)

    def order(self, column: str, desc: bool = False) -> "Query":
        self.ordering.append((column, desc))
        return self

    def range(self, start: int, end: int) -> "Query":
        """Inclusive offset window, e.g. ``range(0, 8)`` is the first nine rows."""
        if start < 0 or end < start:
            raise ValueError(f"Invalid range {start}..{end}")
        self.offset = start
        self.limit_to = end - start + 1
        return self

    def limit(self, n: int) -> "Query":
        self.limit_to = n
        return self

    def count(self, method: str = "exact") -> "Query":
        if method not in COUNT_METHODS:
            raise ValueError(f"Unsupported count method: {method}")
        self.count_method = method
        return self


@dataclass
class QueryResult:
    rows: list[dict] = field(default_factory=list)
    count: Optional[int] = None

    def first(self) -> Optional[dict]:
        return self.rows[0] if self.rows else None
