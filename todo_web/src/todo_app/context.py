from __future__ import annotations

import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import httpx

from .gateway import InMemoryAccountDirectory, InMemoryIdentityGateway
from .session import SessionState
from .settings import Settings
from .store import InMemoryDocumentStore
from .todos import TodoCollectionState

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
@dataclass
class ClientContext:
    """Session and todo state belonging to one client (one browser)."""

    client_id: str
    session: SessionState
    todos: TodoCollectionState

    def close(self) -> None:
        self.session.close()


ContextFactory = Callable[[str], ClientContext]


class ContextRegistry:
    """
    Creates client contexts on first use and tears them all down on close.

    Contexts idle for longer than ``ttl_seconds`` are discarded on the next
    lookup, and once more than ``max_contexts`` are alive the least recently
    used one is discarded. A discarded client simply starts over as a guest.
    """

    def __init__(
        self,
        factory: ContextFactory,
        max_contexts: int = 1000,
        ttl_seconds: float = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._max_contexts = max_contexts
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        # Least recently used first; values are (context, last seen).
        self._contexts: OrderedDict[str, Tuple[ClientContext, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._contexts

    @staticmethod
    def new_client_id() -> str:
        return uuid.uuid4().hex

    def _prune(self, now: float) -> None:
        while self._contexts:
            client_id, (_, last_seen) = next(iter(self._contexts.items()))
            if now - last_seen <= self._ttl_seconds:
                break
            logger.debug("Discarding idle client context %s", client_id)
            self.discard(client_id)

    def get(self, client_id: str) -> ClientContext:
        now = self._clock()
        self._prune(now)
        entry = self._contexts.pop(client_id, None)
        if entry is None:
            ctx = self._factory(client_id)
            logger.debug("Created client context %s", client_id)
        else:
            ctx = entry[0]
        self._contexts[client_id] = (ctx, now)
        while len(self._contexts) > self._max_contexts:
            oldest = next(iter(self._contexts))
            logger.info("Client context limit %d reached, discarding %s", self._max_contexts, oldest)
            self.discard(oldest)
        return ctx

    def discard(self, client_id: str) -> None:
        entry = self._contexts.pop(client_id, None)
        if entry is not None:
            entry[0].close()

    def close(self) -> None:
        for client_id in list(self._contexts):
            self.discard(client_id)


# PUBLIC_INTERFACE
def build_context_factory(settings: Settings, http: Optional[httpx.AsyncClient] = None) -> ContextFactory:
    """
    Return a factory creating client contexts for the configured backend.
    - memory: one shared account directory and document store per application
    - firebase: per-client Identity Toolkit gateway and Firestore store over ``http``
    """
    collection = settings.todos_collection

    if settings.backend == "firebase":
        if http is None:
            raise ValueError("The firebase backend needs an httpx.AsyncClient")
        from .firebase import FirebaseIdentityGateway, FirestoreDocumentStore

        api_key = settings.firebase_api_key or ""
        project_id = settings.firebase_project_id or ""

        def firebase_context(client_id: str) -> ClientContext:
            gateway = FirebaseIdentityGateway(http, api_key)
            session = SessionState(gateway)
            store = FirestoreDocumentStore(http, project_id, gateway.current_id_token)
            return ClientContext(client_id, session, TodoCollectionState(session, store, collection))

        return firebase_context

    directory = InMemoryAccountDirectory()
    shared_store = InMemoryDocumentStore()

    def memory_context(client_id: str) -> ClientContext:
        session = SessionState(InMemoryIdentityGateway(directory))
        return ClientContext(client_id, session, TodoCollectionState(session, shared_store, collection))

    return memory_context
