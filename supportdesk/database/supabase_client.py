import logging

from supabase import acreate_client, AsyncClient

from supportdesk.config import SupportDeskSettings

logger = logging.getLogger(__name__)


async def create_supabase_client(settings: SupportDeskSettings) -> AsyncClient:
    """
    Create the async Supabase client for one session.

    A new client is created per session so that signing out and signing in
    as someone else never shares auth state or realtime channels.
    """
    logger.info(f"Connecting to Supabase at {settings.supabase_url}")
    return await acreate_client(settings.supabase_url, settings.supabase_key)
