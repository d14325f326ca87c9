"""Remote data gateway: one configured handle to the backend, injected where needed."""
import logging

import config
from arena.gateway.base import AuthSession, Gateway, Identity
from arena.gateway.query import Embed, Filter, Query, QueryResult

logger = logging.getLogger("arena")

__all__ = [
    "AuthSession",
    "Embed",
    "Filter",
    "Gateway",
    "Identity",
    "Query",
    "QueryResult",
    "create_gateway",
]


def create_gateway() -> Gateway:
    """Hosted backend when Supabase credentials are configured, local SQL otherwise."""
    if config.SUPABASE_URL and config.SUPABASE_KEY:
        from arena.gateway.supabase_gateway import SupabaseGateway

        logger.info("Using Supabase backend at %s", config.SUPABASE_URL)
        return SupabaseGateway()
    from arena.gateway.sql import SqlGateway

    logger.info("Using SQL backend")
    return SqlGateway()
