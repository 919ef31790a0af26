"""
Database module for the support desk.

Provides the Supabase client factory and the gateway the read-models use.
"""

from supportdesk.database.gateway import (
    ALL_EVENTS,
    Filter,
    Subscription,
    SupabaseGateway,
    eq,
    gte,
    neq,
)
from supportdesk.database.supabase_client import create_supabase_client


__all__ = [
    'ALL_EVENTS',
    'Filter',
    'Subscription',
    'SupabaseGateway',
    'create_supabase_client',
    'eq',
    'gte',
    'neq',
]
