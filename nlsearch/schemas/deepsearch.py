"""Schemas for the Sourcegraph Deep Search conversation API (read-through views of remote state)."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class QuestionStatus(str, Enum):
    """Terminal question statuses. Any other label the remote emits is still in progress."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Question(BaseModel):
    """One natural-language request tracked within a conversation."""

    id: int = 0
    conversation_id: int = 0
    question: str = ""
    status: str = ""
    answer: str = Field("", description="Set once the question completes; null while processing.")
    sources: list[dict[str, Any]] | None = Field(None, description="Provenance records (repositories, files).")
    stats: dict[str, Any] | None = None

    @field_validator("id", "conversation_id", "question", "status", "answer", mode="before")
    @classmethod
    def null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        # The remote sends null for fields it has not filled in yet
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class Conversation(BaseModel):
    """A Deep Search conversation; questions are append-only, newest last."""

    id: int
    questions: list[Question] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def null_id_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    def latest_question(self) -> Question | None:
        """Most recently appended question, or None while the list is empty."""
        if not self.questions:
            return None
        return self.questions[-1]


class CreateConversationRequest(BaseModel):
    """Body for POST /.api/deepsearch/v1."""

    question: str
