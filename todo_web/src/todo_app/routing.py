from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .session import SessionState

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
HOME_PATH = "/"
CATCH_ALL = "*"


@dataclass(frozen=True)
class RouteMeta:
    """Access policy of a route."""

    requires_auth: bool = False
    requires_guest: bool = False


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class RouteRecord:
    """
    One entry of the route table.

    ``path`` is absolute for top-level records and relative for children.
    ``path='*'`` matches any path not matched by an earlier record.
    """

    path: str
    name: Optional[str] = None
    meta: RouteMeta = RouteMeta()
    redirect: Optional[str] = None
    children: Tuple["RouteRecord", ...] = ()


@dataclass(frozen=True)
class Navigation:
    """Result of guarding one navigation attempt."""

    path: str
    matched: Tuple[RouteRecord, ...]
    redirect: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.redirect is None


DEFAULT_ROUTES: Tuple[RouteRecord, ...] = (
    RouteRecord(LOGIN_PATH, name="login", meta=RouteMeta(requires_guest=True)),
    RouteRecord(HOME_PATH, name="dashboard", meta=RouteMeta(requires_auth=True)),
    RouteRecord(CATCH_ALL, redirect=HOME_PATH),
)


def normalize_path(path: str) -> str:
    return "/" + path.strip("/")


def _join(parent: str, child: str) -> str:
    if child.startswith("/"):
        return normalize_path(child)
    return normalize_path(f"{parent.rstrip('/')}/{child}")


class RouteTable:
    """Resolves a path to its chain of matched records, ancestors first."""

    def __init__(self, routes: Sequence[RouteRecord] = DEFAULT_ROUTES) -> None:
        self._entries: List[Tuple[str, Tuple[RouteRecord, ...]]] = []
        self._catch_all: Optional[RouteRecord] = None
        for record in routes:
            self._register(record, "/", ())

    def _register(self, record: RouteRecord, parent: str, ancestors: Tuple[RouteRecord, ...]) -> None:
        if record.path == CATCH_ALL:
            self._catch_all = record
            return
        full = _join(parent, record.path)
        chain = ancestors + (record,)
        self._entries.append((full, chain))
        for child in record.children:
            self._register(child, full, chain)

    def match(self, path: str) -> Tuple[RouteRecord, ...]:
        target = normalize_path(path)
        for full, chain in self._entries:
            if full == target:
                return chain
        if self._catch_all is not None:
            return (self._catch_all,)
        return ()


# PUBLIC_INTERFACE
class NavigationGuard:
    """
    Decides, for each navigation attempt, whether it proceeds or redirects.

    Waits for the session's first identity notification before deciding.
    """

    def __init__(
        self,
        table: Optional[RouteTable] = None,
        login_path: str = LOGIN_PATH,
        home_path: str = HOME_PATH,
    ) -> None:
        self._table = table or RouteTable()
        self._login_path = login_path
        self._home_path = home_path

    async def resolve(self, path: str, session: SessionState) -> Navigation:
        matched = self._table.match(path)
        if not matched:
            return Navigation(path, matched, redirect=self._home_path)
        if matched[-1].redirect is not None:
            return Navigation(path, matched, redirect=matched[-1].redirect)

        if not session.initialized:
            await session.initialize_session()
        authed = session.identity is not None

        if any(r.meta.requires_auth for r in matched) and not authed:
            logger.debug("Redirecting %s to %s: not signed in", path, self._login_path)
            return Navigation(path, matched, redirect=self._login_path)
        if any(r.meta.requires_guest for r in matched) and authed:
            logger.debug("Redirecting %s to %s: already signed in", path, self._home_path)
            return Navigation(path, matched, redirect=self._home_path)
        return Navigation(path, matched)
