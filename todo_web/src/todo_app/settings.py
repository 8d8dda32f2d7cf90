from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - BACKEND: 'memory' (default) or 'firebase'
    - FIREBASE_API_KEY: web API key of the Firebase project (required for 'firebase')
    - FIREBASE_PROJECT_ID: Firebase/Firestore project id (required for 'firebase')
    - TODOS_COLLECTION: document collection holding todo records. Default 'todos'
    - CLIENT_COOKIE_NAME: cookie identifying a client context. Default 'todo_client'
    - CLIENT_CONTEXT_TTL_SECONDS: idle time after which a client context is dropped. Default 1800
    - MAX_CLIENT_CONTEXTS: client contexts kept alive at once. Default 1000
    - HTTP_TIMEOUT_SECONDS: transport timeout for provider calls. Default 10
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: logging level name. Default 'INFO'
    """

    backend: str
    firebase_api_key: Optional[str]
    firebase_project_id: Optional[str]
    todos_collection: str
    client_cookie_name: str
    client_context_ttl_seconds: float
    max_client_contexts: int
    http_timeout_seconds: float
    cors_allow_origins: List[str]
    log_level: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_float(value: str, default: float) -> float:
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_int(value: str, default: int) -> int:
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("BACKEND", "memory").strip().lower()
    api_key = os.getenv("FIREBASE_API_KEY") or None
    project_id = os.getenv("FIREBASE_PROJECT_ID") or None

    if backend not in {"memory", "firebase"}:
        logger.warning("Unsupported BACKEND %r, using in-memory backend", backend)
        backend = "memory"
    elif backend == "firebase" and not (api_key and project_id):
        logger.warning(
            "BACKEND=firebase requires FIREBASE_API_KEY and FIREBASE_PROJECT_ID; "
            "using in-memory backend"
        )
        backend = "memory"

    return Settings(
        backend=backend,
        firebase_api_key=api_key,
        firebase_project_id=project_id,
        todos_collection=_get_env("TODOS_COLLECTION", "todos").strip(),
        client_cookie_name=_get_env("CLIENT_COOKIE_NAME", "todo_client").strip(),
        client_context_ttl_seconds=_parse_float(_get_env("CLIENT_CONTEXT_TTL_SECONDS", "1800"), 1800.0),
        max_client_contexts=_parse_int(_get_env("MAX_CLIENT_CONTEXTS", "1000"), 1000),
        http_timeout_seconds=_parse_float(_get_env("HTTP_TIMEOUT_SECONDS", "10"), 10.0),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
