from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from .exceptions import GatewayError, get_error_message
from .gateway import IdentityGateway, Subscription
from .models import DEFAULT_DISPLAY_NAME, OK, Identity, OperationResult

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class SessionState:
    """
    Authentication state of one client context.

    The only component that talks to the identity gateway. ``identity`` is
    written from gateway responses and identity-change notifications only.
    """

    def __init__(self, gateway: IdentityGateway) -> None:
        self._gateway = gateway
        self.identity: Optional[Identity] = None
        self.initialized = False
        self.loading = False
        self.error: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._ready: Optional[asyncio.Future] = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.identity.uid if self.identity else None

    @property
    def display_name(self) -> str:
        if self.identity is None:
            return DEFAULT_DISPLAY_NAME
        return self.identity.display_name or self.identity.email or DEFAULT_DISPLAY_NAME

    def _on_identity_change(self, identity: Optional[Identity]) -> None:
        self.identity = identity
        if not self.initialized:
            self.initialized = True
            logger.info("Session initialized (authenticated=%s)", identity is not None)
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(identity)

    async def initialize_session(self) -> Optional[Identity]:
        """
        Subscribe to identity changes and wait for the first notification.

        Repeated calls share one subscription and return the identity reported
        by that first notification.
        """
        if self._ready is None:
            self._ready = asyncio.get_running_loop().create_future()
            self._subscription = self._gateway.subscribe_to_identity_changes(self._on_identity_change)
        return await asyncio.shield(self._ready)

    async def login(self, email: str, password: str) -> OperationResult:
        self.loading = True
        self.error = None
        try:
            self.identity = await self._gateway.authenticate(email, password)
            logger.info("Signed in %s", self.identity.uid)
            return OK
        except GatewayError as exc:
            logger.info("Sign-in failed: %s", exc.code)
            self.error = get_error_message(exc.code)
            return OperationResult(success=False, error=self.error)
        finally:
            self.loading = False

    async def register(self, email: str, password: str, display_name: str) -> OperationResult:
        """
        Create an account, set its display name, then adopt it.

        A failed display-name update fails the whole operation even though the
        account already exists with the provider.
        """
        self.loading = True
        self.error = None
        try:
            created = await self._gateway.create_account(email, password)
            await self._gateway.update_display_name(created, display_name)
            self.identity = replace(created, display_name=display_name)
            logger.info("Registered %s", created.uid)
            return OK
        except GatewayError as exc:
            logger.info("Registration failed: %s", exc.code)
            self.error = get_error_message(exc.code)
            return OperationResult(success=False, error=self.error)
        finally:
            self.loading = False

    async def logout(self) -> OperationResult:
        self.loading = True
        try:
            await self._gateway.end_session()
            self.identity = None
            logger.info("Signed out")
            return OK
        except GatewayError as exc:
            logger.info("Sign-out failed: %s", exc.code)
            self.error = get_error_message(exc.code)
            return OperationResult(success=False, error=self.error)
        finally:
            self.loading = False

    def clear_error(self) -> None:
        self.error = None

    def close(self) -> None:
        """Stop listening for identity changes."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
