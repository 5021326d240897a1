"""Pydantic models for API request payloads."""

from pydantic import BaseModel, Field


class SelectSchoolRequest(BaseModel):
    """Select the school a session acts as."""

    school_id: str


class CandidateDeltaRequest(BaseModel):
    """Increment or decrement one category count."""

    category: str
    delta: int = Field(default=1)


class SendMessageRequest(BaseModel):
    """Post a chat message."""

    school_id: str
    school_name: str
    content: str
