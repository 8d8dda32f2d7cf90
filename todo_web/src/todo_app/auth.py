from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from .context import ClientContext, ContextRegistry
from .routing import Navigation, NavigationGuard


class NavigationRedirect(Exception):
    """Raised by page dependencies when the navigation guard redirects."""

    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(location)


# PUBLIC_INTERFACE
def get_client_context(request: Request) -> ClientContext:
    """
    Return the client context of the calling browser.

    The client id is assigned by the client-cookie middleware in main; the
    registry lives on ``app.state``.
    """
    registry: ContextRegistry = request.app.state.contexts
    return registry.get(request.state.client_id)


# PUBLIC_INTERFACE
async def require_authenticated(ctx: ClientContext = Depends(get_client_context)) -> ClientContext:
    """
    Dependency for API routes that act on the signed-in user's data.

    Waits for the session's first identity notification, then raises 401 if
    nobody is signed in.
    """
    if not ctx.session.initialized:
        await ctx.session.initialize_session()
    if not ctx.session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return ctx


# PUBLIC_INTERFACE
async def guard_navigation(request: Request, ctx: ClientContext = Depends(get_client_context)) -> Navigation:
    """
    Dependency for page routes: run the navigation guard for the request path.

    Raises NavigationRedirect (turned into a 302 by main) when the guard
    redirects; otherwise returns the allowed navigation.
    """
    guard: NavigationGuard = request.app.state.guard
    navigation = await guard.resolve(request.url.path, ctx.session)
    if navigation.redirect is not None:
        raise NavigationRedirect(navigation.redirect)
    return navigation
