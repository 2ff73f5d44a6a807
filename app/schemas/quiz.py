"""
Pydantic schemas for quiz authoring and submission.
"""

from pydantic import AliasChoices, BaseModel, Field
from typing import Any, List, Optional, Union

from app.services.grading import QuestionType


# ---- Authoring ----
class MediaRef(BaseModel):
    type: Optional[str] = None
    url: Optional[str] = None


class QuestionCreate(BaseModel):
    question: str
    type: QuestionType
    options: Optional[List[Any]] = None
    correct_answer: Optional[Any] = Field(
        None, validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )
    points: Optional[int] = Field(None, ge=0)
    media: Optional[MediaRef] = None


class QuizCreate(BaseModel):
    title: str = Field(min_length=1)
    grade: int = Field(ge=1, le=12)
    description: Optional[str] = None
    time_limit: Optional[int] = Field(
        None, ge=1, validation_alias=AliasChoices("time_limit", "timeLimit")
    )
    status: str = "draft"  # draft, published
    questions: List[QuestionCreate] = Field(min_length=1)


class StatusUpdate(BaseModel):
    status: str  # draft, published


class ClassAssign(BaseModel):
    class_ids: List[str] = Field(validation_alias=AliasChoices("class_ids", "classIds"))
    due_date: Optional[str] = Field(None, validation_alias=AliasChoices("due_date", "dueDate"))


# ---- Submission ----
class AnswerEntry(BaseModel):
    # ids arrive loosely typed from the browser; canonicalized by the grader
    question_id: Union[str, int] = Field(
        validation_alias=AliasChoices("question_id", "questionId")
    )
    answer: Optional[Any] = None


class QuizSubmit(BaseModel):
    answers: List[AnswerEntry]
