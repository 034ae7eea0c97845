"""
Pydantic models for API request/response validation.

Request bodies accept the camelCase keys used by the web client as well as
snake_case field names.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict


# Auth schemas
class LoginRequest(BaseModel):
    """Request to login with email and password."""

    email: str
    password: str


class SignupRequest(BaseModel):
    """Request to create a new (pending) account."""

    model_config = ConfigDict(populate_by_name=True)
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")
    full_name: Optional[str] = Field(default=None, alias="fullName")


class UserResponse(BaseModel):
    """Public user data (never includes the password hash)."""

    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    status: str
    has_accepted_terms: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AuthResponse(BaseModel):
    """Login response with the bearer token."""

    token: str
    user: UserResponse


class UserActionResponse(BaseModel):
    """Result of an account lifecycle action."""

    message: str
    user: UserResponse


class UserListResponse(BaseModel):
    users: List[UserResponse]


# Bet schemas
class CreateBetRequest(BaseModel):
    """Request to create a bet. Assignees are required for private bets."""

    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[int] = None
    options: Optional[List[str]] = None
    visibility: Optional[str] = "public"
    assignees: Optional[List[int]] = None


class EditBetRequest(BaseModel):
    """Request to edit a bet's fields and visibility. Options are replaced separately."""

    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[int] = None
    visibility: Optional[str] = None
    assignees: Optional[List[int]] = None


class ReplaceOptionsRequest(BaseModel):
    options: Optional[List[str]] = None


class ChangeStatusRequest(BaseModel):
    """Request to move a bet to a new status."""

    model_config = ConfigDict(populate_by_name=True)
    status: Optional[str] = None
    winning_option: Optional[str] = Field(default=None, alias="winningOption")


class ParticipateRequest(BaseModel):
    """Request to participate in a bet by selecting one option."""

    model_config = ConfigDict(populate_by_name=True)
    selected_option_id: Optional[int] = Field(default=None, alias="selectedOptionId")


class AddAssigneesRequest(BaseModel):
    assignees: Optional[List[int]] = None


class RemoveAssigneeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    user_id: Optional[int] = Field(default=None, alias="userId")


# Notification schemas
class NotificationResponse(BaseModel):
    """Notification response."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: int
    type: str
    title: str
    message: str
    data: Optional[dict] = None
    is_read: bool
    read_at: Optional[str] = None
    link_url: Optional[str] = None
    created_at: Optional[str] = None


class NotificationListResponse(BaseModel):
    """Paginated notification list response."""

    notifications: List[NotificationResponse]
    total_count: int
    has_more: bool


class UnreadCountResponse(BaseModel):
    """Unread notification count response."""

    count: int
