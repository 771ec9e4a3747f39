"""Conversation and messaging schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ConversationCreate(BaseModel):
    """Open a conversation between a patient and a doctor."""

    patient_id: UUID
    doctor_id: UUID


class Participant(BaseModel):
    """Flattened participant details."""

    id: UUID
    full_name: str
    email: str


class MessageCreate(BaseModel):
    """Message payload."""

    content: str = Field(..., max_length=5000)


class MessageResponse(BaseModel):
    """Schema for message response."""

    id: UUID
    conversation_id: UUID
    sender_id: UUID
    sender_name: str | None = None
    content: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    """Schema for conversation response."""

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    created_at: datetime
    patient: Participant | None = None
    doctor: Participant | None = None
    messages: list[MessageResponse] = []


class ConversationActivity(BaseModel):
    """Whether the messaging window is open."""

    active: bool
    reason: str
    remaining_days: int | None = None
    appointment_end_time: datetime | None = None
    chat_window_end: datetime | None = None
