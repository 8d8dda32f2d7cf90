from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, TypedDict

DEFAULT_DISPLAY_NAME = "用戶"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class Identity:
    """
    A signed-in user as reported by an identity gateway.

    Fields:
    - uid: Provider-assigned user id; owner key of todo records
    - email: Sign-in email address
    - display_name: Optional profile name set at registration
    - id_token: Provider credential forwarded to remote document stores
    """

    uid: str
    email: str
    display_name: Optional[str] = None
    id_token: Optional[str] = field(default=None, repr=False, compare=False)


# PUBLIC_INTERFACE
class TodoEntity(TypedDict, total=False):
    """
    A todo record as held in a client's local mirror.

    Fields:
    - id: Store-assigned identifier, immutable
    - owner_id: uid of the owning identity, immutable
    - title / description / completed / due_date: user-supplied fields
    - created_at: creation timestamp (server-assigned, client clock locally)
    - updated_at: last update timestamp, refreshed on every mutation

    Other user-supplied keys are carried through unchanged.
    """

    id: str
    owner_id: str
    title: str
    description: Optional[str]
    completed: bool
    due_date: Optional[datetime]
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class OperationResult:
    """Outcome of a session or collection operation."""

    success: bool
    error: Optional[str] = None
    failed_ids: List[str] = field(default_factory=list)


OK = OperationResult(success=True)
# Returned by collection operations invoked without a signed-in identity.
SKIPPED = OperationResult(success=False)
