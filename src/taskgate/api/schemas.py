"""API request/response schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskgate.models import Task


# ============================================================================
# Auth schemas
# ============================================================================


class RegisterRequest(BaseModel):
    """Register user request."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8, max_length=72, description="bcrypt limits input to 72 bytes")

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes when UTF-8 encoded")
        return v


class RegisterResponse(BaseModel):
    """Register user response."""

    subject: str
    username: str


class TokenRequest(BaseModel):
    """Token request (login)."""

    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Identity token response."""

    subject: str
    token: str
    token_type: str = "bearer"
    issued_at: datetime
    expires_at: datetime


class WhoAmIResponse(BaseModel):
    """Subject of the presented token."""

    subject: str


# ============================================================================
# Task schemas
# ============================================================================


class CreateTaskRequest(BaseModel):
    """Create task request.

    Unknown fields (including any attempt to name an owner) are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., description="Task title; must not be blank")


class UpdateTaskRequest(BaseModel):
    """Partial task update. Omitted fields are left unchanged."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    completed: Optional[bool] = None


class TaskResponse(BaseModel):
    """Task response."""

    id: UUID
    owner: str
    title: str
    completed: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(**task.model_dump())


class ListTasksResponse(BaseModel):
    """List tasks response."""

    tasks: list[TaskResponse]


# ============================================================================
# Health & metrics
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class MetricsResponse(BaseModel):
    """Metrics snapshot response."""

    counters: dict[str, float]
    gauges: dict[str, float]
    histograms: dict[str, dict[str, Any]]
