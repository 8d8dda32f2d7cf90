"""
Todo web application package.

Exposes the FastAPI app instance for convenience imports (todo_app.app).
"""

from .main import app, create_app  # noqa: F401
