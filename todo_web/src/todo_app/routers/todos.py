from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..auth import require_authenticated
from ..context import ClientContext
from ..models import OperationResult
from ..schemas import TodoCollectionOut, TodoCreate, TodoUpdate

router = APIRouter(
    prefix="/api/v1/todos",
    tags=["todos"],
)

_STORE_FAILURE = {502: {"description": "Document store call failed; the mirror is unchanged"}}


def _snapshot(ctx: ClientContext, result: OperationResult, response: Response) -> TodoCollectionOut:
    if not result.success:
        response.status_code = status.HTTP_502_BAD_GATEWAY
    return TodoCollectionOut.from_state(ctx.todos, result)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TodoCollectionOut,
    summary="Fetch Todos",
    description="Reload the signed-in user's todos from the store, newest first.",
    responses=_STORE_FAILURE,
)
async def fetch_todos(response: Response, ctx: ClientContext = Depends(require_authenticated)) -> TodoCollectionOut:
    """
    Replace the local mirror with the store's records for the current user.
    """
    result = await ctx.todos.fetch_all()
    return _snapshot(ctx, result, response)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TodoCollectionOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add Todo",
    description="Create a todo owned by the current user; it is placed first in the mirror.",
    responses=_STORE_FAILURE,
)
async def add_todo(
    payload: TodoCreate,
    response: Response,
    ctx: ClientContext = Depends(require_authenticated),
) -> TodoCollectionOut:
    result = await ctx.todos.add(payload.model_dump())
    return _snapshot(ctx, result, response)


# PUBLIC_INTERFACE
@router.delete(
    "/error",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear Todo Error",
)
async def clear_todo_error(ctx: ClientContext = Depends(require_authenticated)) -> None:
    ctx.todos.clear_error()
    return None


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    response_model=TodoCollectionOut,
    summary="Update Todo",
    description="Merge the provided fields into a todo.",
    responses=_STORE_FAILURE,
)
async def update_todo(
    todo_id: str,
    payload: TodoUpdate,
    response: Response,
    ctx: ClientContext = Depends(require_authenticated),
) -> TodoCollectionOut:
    """
    Partial update of a todo. Only fields present in the body are merged.
    """
    result = await ctx.todos.update(todo_id, payload.changes())
    return _snapshot(ctx, result, response)


# PUBLIC_INTERFACE
@router.delete(
    "/{todo_id}",
    response_model=TodoCollectionOut,
    summary="Delete Todo",
    description="Delete one todo by id.",
    responses=_STORE_FAILURE,
)
async def delete_todo(
    todo_id: str,
    response: Response,
    ctx: ClientContext = Depends(require_authenticated),
) -> TodoCollectionOut:
    result = await ctx.todos.remove(todo_id)
    return _snapshot(ctx, result, response)


# PUBLIC_INTERFACE
@router.delete(
    "/",
    response_model=TodoCollectionOut,
    summary="Delete All Todos",
    description=(
        "Delete every todo of the current user. If any delete fails the mirror is kept, "
        "deletes that succeeded are not undone, and failed_ids lists the remaining ids."
    ),
    responses=_STORE_FAILURE,
)
async def delete_all_todos(response: Response, ctx: ClientContext = Depends(require_authenticated)) -> TodoCollectionOut:
    result = await ctx.todos.remove_all()
    return _snapshot(ctx, result, response)
