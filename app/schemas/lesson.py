"""
Pydantic schemas for lessons, media and completions.
"""

from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class LessonFile(BaseModel):
    name: str
    type: str
    url: str
    size: Optional[int] = None
    path: Optional[str] = None


class LessonCreate(BaseModel):
    title: str = Field(min_length=1)
    grade: int = Field(ge=1, le=12)
    description: Optional[str] = None
    objectives: Optional[str] = None
    status: str = "draft"  # draft, published
    files: List[LessonFile] = []


class LessonAssign(BaseModel):
    class_ids: List[str]


class LessonComplete(BaseModel):
    stars: Optional[int] = Field(None, ge=0, le=3)


class MediaUpload(BaseModel):
    kind: Literal["lesson", "quiz"] = "quiz"
    file_name: str
    file_type: str
    file_data: str  # base64, optionally a data URL
