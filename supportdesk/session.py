"""
Support desk session.

Carries the gateway, the signed-in user, the settings and the notice sink.
Every read-model and view receives the session explicitly; its lifetime
runs from connect()/sign_in() to sign_out().
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import pytz

from supportdesk.config import SupportDeskSettings
from supportdesk.database.gateway import SupabaseGateway, eq
from supportdesk.database.supabase_client import create_supabase_client
from supportdesk.exceptions import AuthenticationError, GatewayError
from supportdesk.notices import Notifier

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_CUSTOMER = "customer"


@dataclass(frozen=True)
class SessionUser:
    id: str
    email: Optional[str] = None
    role: str = ROLE_CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


class SupportSession:
    """
    Explicit session context for the read-models.

    Usage:
        session = await SupportSession.connect(SupportDeskSettings.from_env())
        await session.sign_in("agent@example.com", "secret")
        panel = AdminPanel(session)
        await panel.activate()
        ...
        await session.sign_out()   # tears down every live read-model
    """

    def __init__(
        self,
        gateway,
        settings: Optional[SupportDeskSettings] = None,
        user: Optional[SessionUser] = None,
        notifier: Optional[Notifier] = None,
        auth=None,
    ):
        self.gateway = gateway
        self.settings = settings
        self.user = user
        self.notifier = notifier or Notifier(settings.notice_limit if settings else 50)
        self._auth = auth
        self._models: List = []

    @classmethod
    async def connect(cls, settings: SupportDeskSettings) -> "SupportSession":
        client = await create_supabase_client(settings)
        gateway = SupabaseGateway(client, schema=settings.schema)
        return cls(gateway, settings=settings, auth=client.auth)

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def is_signed_in(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    @property
    def tzinfo(self):
        return self.settings.tzinfo if self.settings else pytz.utc

    @property
    def active_models(self) -> List:
        return list(self._models)

    # =========================================================================
    # Authentication
    # =========================================================================

    async def sign_in(self, email: str, password: str) -> SessionUser:
        if self._auth is None:
            raise AuthenticationError("Session has no auth client")
        try:
            response = await self._auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            raise AuthenticationError(f"Sign-in failed: {e}") from e

        if not response or not getattr(response, "user", None):
            raise AuthenticationError("Sign-in failed: invalid login credentials")

        role = await self._load_role(response.user.id)
        self.user = SessionUser(id=response.user.id, email=response.user.email, role=role)
        logger.info(f"Signed in as {self.user.email} ({self.user.role})")
        return self.user

    async def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> Optional[SessionUser]:
        """
        Register a new customer account.

        Returns the signed-in user when the project does not require email
        confirmation, otherwise None.
        """
        if self._auth is None:
            raise AuthenticationError("Session has no auth client")
        credentials = {"email": email, "password": password}
        if full_name:
            credentials["options"] = {"data": {"full_name": full_name}}
        try:
            response = await self._auth.sign_up(credentials)
        except Exception as e:
            raise AuthenticationError(f"Sign-up failed: {e}") from e

        if not response or not getattr(response, "user", None):
            raise AuthenticationError("Sign-up failed")
        if not getattr(response, "session", None):
            logger.info(f"Sign-up for {email} awaits email confirmation")
            return None

        self.user = SessionUser(id=response.user.id, email=response.user.email, role=ROLE_CUSTOMER)
        return self.user

    async def _load_role(self, user_id: str) -> str:
        try:
            rows = await self.gateway.select("user_roles", [eq("user_id", user_id)], columns="role")
        except GatewayError as e:
            logger.error(f"Error loading role for {user_id}: {e}")
            return ROLE_CUSTOMER
        roles = {row.get("role") for row in rows}
        return ROLE_ADMIN if ROLE_ADMIN in roles else ROLE_CUSTOMER

    async def sign_out(self) -> None:
        """Deactivate every live read-model, then end the auth session."""
        await self.deactivate_all()
        if self._auth is not None and self.user is not None:
            try:
                await self._auth.sign_out()
            except Exception as e:
                logger.error(f"Error signing out: {e}")
        self.user = None

    # =========================================================================
    # Read-model registry
    # =========================================================================

    def register(self, model) -> None:
        if model not in self._models:
            self._models.append(model)

    def unregister(self, model) -> None:
        try:
            self._models.remove(model)
        except ValueError:
            pass

    async def deactivate_all(self) -> None:
        for model in reversed(self._models[:]):
            await model.deactivate()
