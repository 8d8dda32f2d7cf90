"""
Firebase-backed identity gateway and document store.

Both talk to the public REST endpoints with httpx: Identity Toolkit for
email/password accounts and Cloud Firestore for todo documents. The Firestore
requests carry the signed-in user's id token, so the project's security rules
apply exactly as they would for a browser client.
"""
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from .exceptions import GatewayError, StoreError
from .gateway import IdentityGateway
from .models import Identity
from .store import SERVER_TIMESTAMP, DocumentStore, Record

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
FIRESTORE_URL = "https://firestore.googleapis.com/v1"

# Identity Toolkit error messages -> client error codes
_PROVIDER_CODES: Dict[str, str] = {
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "WEAK_PASSWORD": "auth/weak-password",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_PASSWORD": "auth/missing-password",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "USER_DISABLED": "auth/user-disabled",
    "INVALID_ID_TOKEN": "auth/invalid-user-token",
    "TOKEN_EXPIRED": "auth/user-token-expired",
}


def provider_error_code(message: str) -> str:
    """Map an Identity Toolkit error message (e.g. 'WEAK_PASSWORD : ...') to a client code."""
    key = message.split(":", 1)[0].strip()
    return _PROVIDER_CODES.get(key, "auth/internal-error")


class FirebaseIdentityGateway(IdentityGateway):
    """
    Email/password accounts through the Identity Toolkit REST API.

    Signing out is local: the id token is dropped and listeners are notified.
    """

    def __init__(self, http: httpx.AsyncClient, api_key: str) -> None:
        super().__init__()
        self._http = http
        self._api_key = api_key

    async def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            res = await self._http.post(
                f"{IDENTITY_TOOLKIT_URL}/accounts:{method}",
                params={"key": self._api_key},
                json=payload,
            )
        except httpx.TransportError as exc:
            raise GatewayError("auth/network-request-failed", str(exc)) from exc
        try:
            body = res.json() if res.content else {}
        except ValueError:
            body = {}
        if res.is_error:
            message = (body.get("error") or {}).get("message", "") if isinstance(body, dict) else ""
            raise GatewayError(provider_error_code(message), message)
        return body

    @staticmethod
    def _identity(body: Mapping[str, Any]) -> Identity:
        return Identity(
            uid=body["localId"],
            email=body.get("email", ""),
            display_name=body.get("displayName") or None,
            id_token=body.get("idToken"),
        )

    # TODO: refresh id tokens through securetoken.googleapis.com once they expire (1h).
    async def authenticate(self, email: str, password: str) -> Identity:
        body = await self._call(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        identity = self._identity(body)
        self._set_current(identity)
        return identity

    async def create_account(self, email: str, password: str) -> Identity:
        body = await self._call(
            "signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        identity = self._identity(body)
        self._set_current(identity)
        return identity

    async def update_display_name(self, identity: Identity, display_name: str) -> None:
        await self._call(
            "update",
            {"idToken": identity.id_token, "displayName": display_name, "returnSecureToken": False},
        )
        if self._current is not None and self._current.uid == identity.uid:
            self._current = replace(self._current, display_name=display_name)

    async def end_session(self) -> None:
        self._set_current(None)


@dataclass(frozen=True)
class _Fields:
    owner_id: str = "userId"
    created_at: str = "createdAt"
    updated_at: str = "updatedAt"
    due_date: str = "dueDate"


_FIELDS = _Fields()
_TO_WIRE = {k: getattr(_FIELDS, k) for k in ("owner_id", "created_at", "updated_at", "due_date")}
_FROM_WIRE = {v: k for k, v in _TO_WIRE.items()}

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits


def _auto_id() -> str:
    return "".join(secrets.choice(_AUTO_ID_ALPHABET) for _ in range(20))


def _parse_timestamp(value: str) -> datetime:
    # Firestore returns up to nanosecond precision; datetime keeps microseconds.
    text = value.rstrip("Z")
    if "." in text:
        head, frac = text.split(".", 1)
        text = f"{head}.{frac[:6]}"
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


def encode_value(value: Any) -> Dict[str, Any]:
    """Encode a Python value as a Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return {"timestampValue": value.isoformat() + "Z"}
    if isinstance(value, Mapping):
        return {"mapValue": {"fields": {k: encode_value(v) for k, v in value.items()}}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def decode_value(value: Mapping[str, Any]) -> Any:
    """Decode a Firestore typed value to a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return _parse_timestamp(value["timestampValue"])
    if "mapValue" in value:
        return {k: decode_value(v) for k, v in (value["mapValue"].get("fields") or {}).items()}
    if "arrayValue" in value:
        return [decode_value(v) for v in (value["arrayValue"].get("values") or [])]
    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


class FirestoreDocumentStore(DocumentStore):
    """
    Todo documents in Cloud Firestore through its REST API.

    ``token_provider`` returns the id token of the signed-in user; requests are
    sent unauthenticated when it returns None.

    Writes and deletes carry the signed-in user's id token, so ownership of
    existing documents is enforced by the project's security rules (a rule
    comparing `resource.data.userId` with `request.auth.uid`); a denied write
    comes back as 403 and is raised as StoreError.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        project_id: str,
        token_provider: Callable[[], Optional[str]],
    ) -> None:
        self._http = http
        self._token_provider = token_provider
        self._root = f"projects/{project_id}/databases/(default)/documents"

    def _headers(self) -> Dict[str, str]:
        token = self._token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            res = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TransportError as exc:
            raise StoreError(f"{method} {url} failed: {exc}") from exc
        if res.is_error:
            raise StoreError(f"{method} {url} returned {res.status_code}: {res.text}")
        return res.json() if res.content else None

    def _doc_name(self, collection: str, record_id: str) -> str:
        return f"{self._root}/{collection}/{record_id}"

    def _split(self, fields: Mapping[str, Any]):
        """Split fields into encoded values and server-timestamp transforms."""
        values: Dict[str, Any] = {}
        transforms: List[Dict[str, str]] = []
        for key, value in fields.items():
            wire = _TO_WIRE.get(key, key)
            if value is SERVER_TIMESTAMP:
                transforms.append({"fieldPath": wire, "setToServerValue": "REQUEST_TIME"})
            else:
                values[wire] = encode_value(value)
        return values, transforms

    def _to_record(self, document: Mapping[str, Any]) -> Record:
        record: Record = {
            _FROM_WIRE.get(k, k): decode_value(v) for k, v in (document.get("fields") or {}).items()
        }
        record["id"] = document["name"].rsplit("/", 1)[-1]
        return record

    async def query_records(
        self,
        collection: str,
        owner_id: str,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> List[Record]:
        body = {
            "structuredQuery": {
                "from": [{"collectionId": collection}],
                "where": {
                    "fieldFilter": {
                        "field": {"fieldPath": _FIELDS.owner_id},
                        "op": "EQUAL",
                        "value": encode_value(owner_id),
                    }
                },
                "orderBy": [
                    {
                        "field": {"fieldPath": _TO_WIRE.get(order_by, order_by)},
                        "direction": "DESCENDING" if descending else "ASCENDING",
                    }
                ],
            }
        }
        rows = await self._request("POST", f"{FIRESTORE_URL}/{self._root}:runQuery", json=body)
        return [self._to_record(row["document"]) for row in rows or [] if "document" in row]

    async def insert_record(self, collection: str, fields: Mapping[str, Any]) -> str:
        record_id = _auto_id()
        values, transforms = self._split(fields)
        write: Dict[str, Any] = {
            "update": {"name": self._doc_name(collection, record_id), "fields": values},
            "currentDocument": {"exists": False},
        }
        if transforms:
            write["updateTransforms"] = transforms
        await self._request("POST", f"{FIRESTORE_URL}/{self._root}:commit", json={"writes": [write]})
        return record_id

    async def merge_fields(
        self, collection: str, record_id: str, fields: Mapping[str, Any], owner_id: str
    ) -> None:
        values, transforms = self._split(fields)
        write: Dict[str, Any] = {
            "update": {"name": self._doc_name(collection, record_id), "fields": values},
            "updateMask": {"fieldPaths": list(values)},
            "currentDocument": {"exists": True},
        }
        if transforms:
            write["updateTransforms"] = transforms
        await self._request("POST", f"{FIRESTORE_URL}/{self._root}:commit", json={"writes": [write]})

    async def delete_record(self, collection: str, record_id: str, owner_id: str) -> None:
        await self._request("DELETE", f"{FIRESTORE_URL}/{self._doc_name(collection, record_id)}")
