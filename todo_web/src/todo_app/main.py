import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from .auth import NavigationRedirect
from .context import ContextRegistry, build_context_factory
from .routers import pages as pages_router
from .routers import session as session_router
from .routers import todos as todos_router
from .routing import NavigationGuard
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "session", "description": "Sign in, register, sign out and session state."},
    {"name": "todos", "description": "Operations on the signed-in user's todo list."},
    {"name": "pages", "description": "Guarded application pages."},
]


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application for ``settings`` (read from the environment when omitted).

    Every browser gets its own client context, keyed by a cookie assigned on
    its first request.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    http = httpx.AsyncClient(timeout=settings.http_timeout_seconds) if settings.backend == "firebase" else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting todo app with %s backend", settings.backend)
        yield
        app.state.contexts.close()
        if http is not None:
            await http.aclose()

    app = FastAPI(
        title="Todo App",
        description="Todo list with email/password sign-in, guarded pages and per-user todos.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.contexts = ContextRegistry(
        build_context_factory(settings, http),
        max_contexts=settings.max_client_contexts,
        ttl_seconds=settings.client_context_ttl_seconds,
    )
    app.state.guard = NavigationGuard()

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def assign_client_cookie(request: Request, call_next):
        cookie_name = settings.client_cookie_name
        client_id = request.cookies.get(cookie_name)
        is_new = not client_id
        if is_new:
            client_id = ContextRegistry.new_client_id()
        request.state.client_id = client_id
        response = await call_next(request)
        if is_new:
            response.set_cookie(cookie_name, client_id, httponly=True, samesite="lax")
        return response

    @app.exception_handler(NavigationRedirect)
    async def navigation_redirect_handler(request: Request, exc: NavigationRedirect) -> RedirectResponse:
        return RedirectResponse(exc.location, status_code=status.HTTP_302_FOUND)

    # Global exception handlers for consistent JSON on validation errors
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "detail": [... pydantic/fastapi error details ...],
                "message": "Request validation failed"
            }
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    # PUBLIC_INTERFACE
    @app.get("/health", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.backend}

    app.include_router(session_router.router)
    app.include_router(todos_router.router)
    # Pages last: the catch-all page route would shadow anything after it.
    app.include_router(pages_router.router)
    app.include_router(pages_router.fallback_router)
    return app


app = create_app()
