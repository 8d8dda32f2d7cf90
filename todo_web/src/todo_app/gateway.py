from __future__ import annotations

import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from .exceptions import GatewayError
from .models import Identity

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[Identity]], None]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


class Subscription:
    """Handle returned by ``subscribe_to_identity_changes``; call ``unsubscribe`` to stop."""

    def __init__(self, listeners: List[IdentityListener], listener: IdentityListener) -> None:
        self._listeners = listeners
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            self._listeners.remove(self._listener)
        except ValueError:
            pass


# PUBLIC_INTERFACE
class IdentityGateway(ABC):
    """
    Abstract contract for identity providers.

    One gateway instance represents one client's sign-in state with the
    provider: it tracks the current identity and notifies subscribers each
    time that identity changes.
    """

    def __init__(self) -> None:
        self._listeners: List[IdentityListener] = []
        self._current: Optional[Identity] = None

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._current

    def current_id_token(self) -> Optional[str]:
        """Return the credential of the signed-in identity, if any."""
        return self._current.id_token if self._current else None

    def subscribe_to_identity_changes(self, listener: IdentityListener) -> Subscription:
        """
        Register ``listener``. It is invoked once immediately with the current
        identity (or None) and again on every later change until unsubscribed.
        """
        self._listeners.append(listener)
        listener(self._current)
        return Subscription(self._listeners, listener)

    def _set_current(self, identity: Optional[Identity]) -> None:
        self._current = identity
        for listener in list(self._listeners):
            listener(identity)

    @abstractmethod
    async def authenticate(self, email: str, password: str) -> Identity:
        """Sign in with email/password and return the identity. Raises GatewayError."""

    @abstractmethod
    async def create_account(self, email: str, password: str) -> Identity:
        """Create an account, sign it in and return its identity. Raises GatewayError."""

    @abstractmethod
    async def update_display_name(self, identity: Identity, display_name: str) -> None:
        """Set the profile display name of ``identity``. Raises GatewayError."""

    @abstractmethod
    async def end_session(self) -> None:
        """Sign out the current identity. Raises GatewayError."""


@dataclass
class _Account:
    uid: str
    email: str
    password: str
    display_name: Optional[str] = None

    def to_identity(self) -> Identity:
        return Identity(
            uid=self.uid,
            email=self.email,
            display_name=self.display_name,
            id_token=f"memory-token-{self.uid}",
        )


class InMemoryAccountDirectory:
    """
    Account registry shared by every in-memory gateway of one application.
    """

    def __init__(self) -> None:
        self._accounts: Dict[str, _Account] = {}

    def _key(self, email: str) -> str:
        return email.strip().lower()

    def create(self, email: str, password: str) -> _Account:
        if not _EMAIL_RE.match(email.strip()):
            raise GatewayError("auth/invalid-email")
        if self._key(email) in self._accounts:
            raise GatewayError("auth/email-already-in-use")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise GatewayError("auth/weak-password")
        account = _Account(uid=uuid.uuid4().hex, email=email.strip(), password=password)
        self._accounts[self._key(email)] = account
        return account

    def verify(self, email: str, password: str) -> _Account:
        if not _EMAIL_RE.match(email.strip()):
            raise GatewayError("auth/invalid-email")
        account = self._accounts.get(self._key(email))
        if account is None:
            raise GatewayError("auth/user-not-found")
        if account.password != password:
            raise GatewayError("auth/wrong-password")
        return account

    def rename(self, uid: str, display_name: str) -> None:
        for account in self._accounts.values():
            if account.uid == uid:
                account.display_name = display_name
                return
        raise GatewayError("auth/user-not-found")


class InMemoryIdentityGateway(IdentityGateway):
    """
    Gateway backed by an InMemoryAccountDirectory, suitable for testing and
    default runtime.
    """

    def __init__(self, directory: InMemoryAccountDirectory) -> None:
        super().__init__()
        self._directory = directory

    async def authenticate(self, email: str, password: str) -> Identity:
        identity = self._directory.verify(email, password).to_identity()
        self._set_current(identity)
        return identity

    async def create_account(self, email: str, password: str) -> Identity:
        identity = self._directory.create(email, password).to_identity()
        logger.info("Created account %s", identity.uid)
        self._set_current(identity)
        return identity

    async def update_display_name(self, identity: Identity, display_name: str) -> None:
        self._directory.rename(identity.uid, display_name)
        # Profile updates are not identity changes; listeners are not notified.
        if self._current is not None and self._current.uid == identity.uid:
            self._current = replace(self._current, display_name=display_name)

    async def end_session(self) -> None:
        self._set_current(None)
