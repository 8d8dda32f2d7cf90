from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..auth import get_client_context
from ..context import ClientContext
from ..models import OperationResult
from ..schemas import LoginRequest, RegisterRequest, ResultOut, SessionOut

router = APIRouter(
    prefix="/api/v1/session",
    tags=["session"],
)

_FAILURE = {400: {"description": "Operation failed; error carries the message to display", "model": ResultOut}}


def _result(result: OperationResult, response: Response) -> ResultOut:
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
    return ResultOut.from_result(result)


# PUBLIC_INTERFACE
@router.get("", response_model=SessionOut, summary="Get Session")
async def get_session(ctx: ClientContext = Depends(get_client_context)) -> SessionOut:
    """
    Return the caller's session once its first identity notification arrived.
    """
    await ctx.session.initialize_session()
    return SessionOut.from_state(ctx.session)


# PUBLIC_INTERFACE
@router.post("/login", response_model=ResultOut, summary="Sign In", responses=_FAILURE)
async def login(payload: LoginRequest, response: Response, ctx: ClientContext = Depends(get_client_context)) -> ResultOut:
    await ctx.session.initialize_session()
    result = await ctx.session.login(payload.email, payload.password)
    return _result(result, response)


# PUBLIC_INTERFACE
@router.post("/register", response_model=ResultOut, summary="Register", responses=_FAILURE)
async def register(
    payload: RegisterRequest,
    response: Response,
    ctx: ClientContext = Depends(get_client_context),
) -> ResultOut:
    """
    Create an account and set its display name. A failed display-name update
    is reported as a failure although the account was created.
    """
    await ctx.session.initialize_session()
    result = await ctx.session.register(payload.email, payload.password, payload.name)
    return _result(result, response)


# PUBLIC_INTERFACE
@router.post("/logout", response_model=ResultOut, summary="Sign Out", responses=_FAILURE)
async def logout(response: Response, ctx: ClientContext = Depends(get_client_context)) -> ResultOut:
    await ctx.session.initialize_session()
    result = await ctx.session.logout()
    return _result(result, response)


# PUBLIC_INTERFACE
@router.delete("/error", status_code=status.HTTP_204_NO_CONTENT, summary="Clear Session Error")
async def clear_session_error(ctx: ClientContext = Depends(get_client_context)) -> None:
    ctx.session.clear_error()
    return None
