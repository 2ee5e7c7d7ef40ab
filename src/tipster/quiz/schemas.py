"""Request/response models for quiz endpoints."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class QuestionResponse(BaseModel):
    id: int
    question: str
    options: list[str]
    points: int
    category: str | None = None


class StartQuizRequest(BaseModel):
    """Contact details are required only when taking the quiz signed out."""

    email: EmailStr | None = None
    full_name: str | None = Field(None, min_length=1, max_length=128)
    phone: str | None = Field(None, max_length=32)
    betting_experience: str | None = Field(None, max_length=32)
    referral_code: str | None = Field(None, min_length=4, max_length=16)


class AnswerRequest(BaseModel):
    question_id: int
    selected_answer: str = Field(..., min_length=1, max_length=256)


class AnswerResponse(BaseModel):
    is_correct: bool
    points_earned: int
    correct_answer: str
    total_score: int


class CompleteQuizResponse(BaseModel):
    participation_id: int
    total_points: int
    correct_answers: int
    total_questions: int
    accuracy: int
    bonus_points: int
