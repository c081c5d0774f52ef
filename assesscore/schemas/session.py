from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class SaveProgressRequest(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)
    # проверка на None/отрицательное -- в session_tracker, чтобы ответ был InvalidInput
    time_remaining: Optional[int] = Field(default=None, alias="timeRemaining")

    class Config:
        populate_by_name = True


class SubmitAnswersRequest(BaseModel):
    answers: Dict[str, Any]


class Submission(BaseModel):
    score: int
    total_questions: int
    correct_answers: int
    remarks: str


class SubmitResponse(BaseModel):
    success: bool
    message: str
    submission: Submission
