"""API request/response schemas for FastAPI endpoints."""

from pydantic import BaseModel, Field


class ChangePlanRequest(BaseModel):
    plan_code: str = Field(min_length=1, max_length=50)


class CancelSubscriptionRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)

