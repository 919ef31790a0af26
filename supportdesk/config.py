"""
Support Desk configuration.

Settings are read from environment variables (a local .env file is loaded
first) and passed explicitly to the session; nothing here is global.
"""

import os
from dataclasses import dataclass
from typing import Optional

import pytz
from dotenv import load_dotenv


@dataclass
class SupportDeskSettings:
    """Connection and presentation settings for a support desk session."""

    supabase_url: str
    supabase_key: str
    schema: str = "public"
    timezone: str = "UTC"  # used for "resolved today"
    notice_limit: int = 50  # notices kept by the Notifier
    log_format: str = "text"  # text, json
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.supabase_url or not self.supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY (or SUPABASE_SECRET_KEY) must be set")
        try:
            pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown timezone: {self.timezone}")
        if self.log_format not in ("text", "json"):
            raise ValueError(f"Unsupported log format: {self.log_format}")
        if self.notice_limit < 1:
            raise ValueError("notice_limit must be at least 1")

    @property
    def tzinfo(self):
        return pytz.timezone(self.timezone)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SupportDeskSettings":
        """Build settings from the environment, loading .env first."""
        load_dotenv(env_file)

        try:
            notice_limit = int(os.getenv("SUPPORTDESK_NOTICE_LIMIT", "50"))
        except ValueError:
            raise ValueError("SUPPORTDESK_NOTICE_LIMIT must be an integer")

        return cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_SECRET_KEY", ""),
            schema=os.getenv("SUPPORTDESK_SCHEMA", "public"),
            timezone=os.getenv("SUPPORTDESK_TIMEZONE", "UTC"),
            notice_limit=notice_limit,
            log_format=os.getenv("SUPPORTDESK_LOG_FORMAT", "text").lower(),
            log_level=os.getenv("SUPPORTDESK_LOG_LEVEL", "INFO").upper(),
        )
