"""Exceptions raised inside the support desk core."""

from typing import Optional


class SupportDeskError(Exception):
    """Base class for support desk errors."""


class GatewayError(SupportDeskError):
    """A Supabase request (query, write or subscription) failed."""

    def __init__(self, action: str, table: str, cause: Optional[BaseException] = None):
        self.action = action
        self.table = table
        self.cause = cause
        message = f"{action} on {table} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ChangeEventError(SupportDeskError):
    """A realtime payload did not have the shape of a row change."""


class AuthenticationError(SupportDeskError):
    """Sign-in or sign-up was rejected."""


class ValidationError(SupportDeskError):
    """Form input was rejected before any request was issued."""
