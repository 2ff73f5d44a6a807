"""
Pydantic schemas for classes, enrollment, the classroom feed and role profiles.
"""

from pydantic import AliasChoices, BaseModel, Field
from typing import Optional


# ---- Class ----
class ClassCreate(BaseModel):
    class_name: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    grade: int = Field(ge=1, le=12)


# ---- Enrollment ----
class EnrollRequest(BaseModel):
    class_code: str = Field(min_length=1)


# ---- Student profile ----
class StudentProfileCreate(BaseModel):
    grade: Optional[int] = Field(None, ge=1, le=12)


class GradeUpdate(BaseModel):
    grade: int = Field(ge=1, le=12)


# ---- Classroom feed ----
class AnnouncementCreate(BaseModel):
    class_id: str = Field(validation_alias=AliasChoices("class_id", "classId"))
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class ActivityCreate(BaseModel):
    class_id: str = Field(validation_alias=AliasChoices("class_id", "classId"))
    title: str = Field(min_length=1)
    description: Optional[str] = None
    due_date: Optional[str] = Field(None, validation_alias=AliasChoices("due_date", "dueDate"))


# ---- Parent ----
class LinkStudent(BaseModel):
    student_number: str = Field(min_length=1)
