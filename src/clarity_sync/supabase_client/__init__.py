"""
Supabase REST client (relational store).

Provides query/insert/update/remove over PostgREST, each returning a
QueryResult(success, data, error) envelope.
"""

from .client import QueryFilter, QueryOrder, QueryResult, SupabaseClient

__all__ = [
    "QueryFilter",
    "QueryOrder",
    "QueryResult",
    "SupabaseClient",
]
