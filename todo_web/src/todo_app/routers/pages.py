from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..auth import NavigationRedirect, get_client_context, guard_navigation
from ..context import ClientContext
from ..routing import Navigation, normalize_path
from ..schemas import DashboardOut, LoginViewOut, TodoCollectionOut

# Every page passes through the navigation guard before its handler runs.
router = APIRouter(tags=["pages"], dependencies=[Depends(guard_navigation)])


# PUBLIC_INTERFACE
@router.get("/login", response_model=LoginViewOut, summary="Login Page")
async def login_page(ctx: ClientContext = Depends(get_client_context)) -> LoginViewOut:
    """
    Login/register view. Guests only; signed-in users are sent to the dashboard.
    """
    return LoginViewOut(loading=ctx.session.loading, error=ctx.session.error)


# PUBLIC_INTERFACE
@router.get("/", response_model=DashboardOut, summary="Dashboard Page")
async def dashboard_page(ctx: ClientContext = Depends(get_client_context)) -> DashboardOut:
    """
    Dashboard with the signed-in user's todos, loaded on entry.
    """
    result = await ctx.todos.fetch_all()
    return DashboardOut(
        display_name=ctx.session.display_name,
        user_id=ctx.session.user_id or "",
        todos=TodoCollectionOut.from_state(ctx.todos, result),
    )


# Unmatched GETs. Kept apart from the guarded router so unknown API paths 404
# instead of being redirected like pages.
fallback_router = APIRouter(tags=["pages"])


@fallback_router.get("/{path:path}", summary="Unknown Page", include_in_schema=False)
async def unknown_page(path: str, request: Request, ctx: ClientContext = Depends(get_client_context)) -> None:
    """
    Unmatched paths are redirected by the guard's catch-all record. A path that
    differs from a page only by slashes is allowed by the guard and sent to that page.
    """
    if path.startswith("api/"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    navigation: Navigation = await request.app.state.guard.resolve(request.url.path, ctx.session)
    raise NavigationRedirect(navigation.redirect or normalize_path(navigation.path))
