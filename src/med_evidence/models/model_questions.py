"""Follow-up question models."""

from pydantic import BaseModel, field_validator

from med_evidence.constants import MAX_FOLLOW_UP_QUESTIONS

MAX_QUESTION_LENGTH = 200


class FollowUpQuestions(BaseModel):
    """Schema the LLM's follow-up question JSON must satisfy."""

    questions: list[str]

    @field_validator("questions")
    @classmethod
    def clean_questions(cls, questions: list[str]) -> list[str]:
        cleaned = [q.strip() for q in questions if isinstance(q, str) and q.strip()]
        cleaned = [q for q in cleaned if len(q) <= MAX_QUESTION_LENGTH]
        if not cleaned:
            raise ValueError("at least one non-empty question is required")
        return cleaned[:MAX_FOLLOW_UP_QUESTIONS]
