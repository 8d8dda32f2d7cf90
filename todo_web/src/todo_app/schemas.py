from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import OperationResult, TodoEntity
from .session import SessionState
from .todos import TodoCollectionState

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Internal helper to normalize due_date input into a datetime (naive allowed).
    - If value is a string, attempt to parse via datetime.fromisoformat; if time is missing, set to 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is a datetime, return as-is.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return datetime(d.year, d.month, d.day, 0, 0, 0)
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use ISO8601 date or datetime string (e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _strip_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy milk",
                "description": "2 bottles",
                "completed": False,
                "due_date": "2025-02-01",
            }
        }
    )

    title: str = Field(..., description="Short title for the todo item", min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(default=False, description="Completion status flag")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the todo item. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        if v is None:
            raise ValueError("title is required")
        return _strip_title(v)  # type: ignore[return-value]

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields are merged into the record.
    title and completed may be omitted but never set to null.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "completed": True,
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title for the todo item", min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time of the todo item. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        return _strip_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return _parse_due_date(v)

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "TodoUpdate":
        for name in ("title", "completed"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly sent by the client."""
        return self.model_dump(exclude_unset=True)


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Store-assigned identifier of the todo item")
    owner_id: str = Field(..., description="uid of the owning user")
    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(default=False, description="Completion status flag")
    due_date: Optional[datetime] = Field(default=None, description="Due date/time as an ISO8601 datetime")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @classmethod
    def from_entity(cls, entity: TodoEntity) -> "TodoOut":
        return cls(**entity)  # type: ignore[arg-type]


class TodoCollectionOut(BaseModel):
    """
    Snapshot of a client's todo mirror after an operation.
    """

    items: List[TodoOut] = Field(..., description="Todo items, newest first")
    error: Optional[str] = Field(default=None, description="Last collection error, if not cleared")
    failed_ids: List[str] = Field(default_factory=list, description="Ids a bulk delete could not remove")

    @classmethod
    def from_state(cls, state: TodoCollectionState, result: Optional[OperationResult] = None) -> "TodoCollectionOut":
        return cls(
            items=[TodoOut.from_entity(t) for t in state.todos],
            error=state.error,
            failed_ids=list(result.failed_ids) if result else [],
        )


class LoginRequest(BaseModel):
    model_config = ConfigDict(json_schema_extra={"example": {"email": "a@b.com", "password": "pw123456"}})

    email: str = Field(..., description="Sign-in email")
    password: str = Field(..., description="Account password")


class RegisterRequest(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={"example": {"email": "a@b.com", "password": "pw123456", "name": "Ann"}}
    )

    email: str = Field(..., description="Sign-in email")
    password: str = Field(..., description="Account password")
    name: str = Field(..., description="Display name of the new account")


class ResultOut(BaseModel):
    success: bool = Field(..., description="Whether the operation succeeded")
    error: Optional[str] = Field(default=None, description="Message to show the user on failure")

    @classmethod
    def from_result(cls, result: OperationResult) -> "ResultOut":
        return cls(success=result.success, error=result.error)


class SessionOut(BaseModel):
    """
    Session snapshot of the calling client.
    """

    initialized: bool
    loading: bool
    error: Optional[str] = None
    is_authenticated: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    display_name: str

    @classmethod
    def from_state(cls, session: SessionState) -> "SessionOut":
        return cls(
            initialized=session.initialized,
            loading=session.loading,
            error=session.error,
            is_authenticated=session.is_authenticated,
            user_id=session.user_id,
            email=session.identity.email if session.identity else None,
            display_name=session.display_name,
        )


class LoginViewOut(BaseModel):
    view: str = "login"
    loading: bool
    error: Optional[str] = None


class DashboardOut(BaseModel):
    view: str = "dashboard"
    display_name: str
    user_id: str
    todos: TodoCollectionOut
