from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from todo_app.gateway import InMemoryAccountDirectory, InMemoryIdentityGateway
from todo_app.main import create_app
from todo_app.models import Identity
from todo_app.session import SessionState
from todo_app.settings import get_settings
from todo_app.store import InMemoryDocumentStore
from todo_app.todos import TodoCollectionState


@pytest.fixture
def directory():
    return InMemoryAccountDirectory()


@pytest.fixture
def gateway(directory):
    return InMemoryIdentityGateway(directory)


@pytest.fixture
def session(gateway):
    return SessionState(gateway)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def todos(session, store):
    return TodoCollectionState(session, store, "todos")


@pytest.fixture
def user_u1(session):
    """Sign the session in as U1 without going through the gateway."""
    session.identity = Identity(uid="U1", email="u1@example.com")
    return session.identity


@pytest.fixture
def settings():
    return replace(get_settings(), backend="memory", client_cookie_name="todo_client")


@pytest.fixture
def client(settings):
    # Fresh app per test so accounts and todos never leak between tests
    with TestClient(create_app(settings)) as c:
        yield c
