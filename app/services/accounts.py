"""
Role profiles: student numbering and parent-student links.

Student numbers look like STU-0001 and come from the store-owned
sequence, never from read-max-then-increment.
"""

import logging

from postgrest.exceptions import APIError

from app.core.config import settings
from app.core.database import first_row, is_unique_violation, next_student_sequence
from app.core.errors import AlreadyLinked, Conflict, Forbidden, StudentNotFound, ValidationError

logger = logging.getLogger(__name__)

MIN_GRADE = 1
MAX_GRADE = 12


def format_student_number(sequence: int) -> str:
    return f"{settings.STUDENT_NUMBER_PREFIX}-{sequence:04d}"


def normalize_student_number(raw: str) -> str:
    """Uppercase, trim, and restore the dash in inputs like 'stu0042'."""
    prefix = settings.STUDENT_NUMBER_PREFIX.upper()
    value = raw.strip().upper()
    if value.startswith(prefix) and not value.startswith(prefix + "-"):
        value = f"{prefix}-{value[len(prefix):]}"
    return value


def create_student_profile(db, user_id: str, grade: int | None = None) -> dict:
    existing = first_row(db.table("students").select("*").eq("user_id", user_id).limit(1).execute())
    if existing:
        raise Conflict("Student profile already exists")

    sequence = next_student_sequence(db)
    try:
        student = first_row(
            db.table("students")
            .insert({
                "user_id": user_id,
                "student_sequence": sequence,
                "student_number": format_student_number(sequence),
                "grade": grade,
            })
            .execute()
        )
    except APIError as e:
        if is_unique_violation(e):
            raise Conflict("Student profile already exists") from e
        raise

    logger.info("Created student %s with number %s", student["id"], student["student_number"])
    return student


def update_grade(db, student_id: str, grade: int) -> dict:
    """Set the student's grade (1-12). Class enrollment checks against it."""
    if not MIN_GRADE <= grade <= MAX_GRADE:
        raise ValidationError(f"Valid grade ({MIN_GRADE}-{MAX_GRADE}) is required")
    student = first_row(
        db.table("students").update({"grade": grade}).eq("id", student_id).execute()
    )
    if not student:
        raise StudentNotFound()
    logger.info("Student %s moved to grade %d", student_id, grade)
    return student


def link_student(db, parent_id: str, student_number: str) -> dict:
    number = normalize_student_number(student_number)
    student = first_row(
        db.table("students").select("*").eq("student_number", number).limit(1).execute()
    )
    if not student:
        raise StudentNotFound()

    try:
        db.table("parent_student_links").insert({
            "parent_id": parent_id,
            "student_id": student["id"],
        }).execute()
    except APIError as e:
        if is_unique_violation(e):
            raise AlreadyLinked() from e
        raise

    logger.info("Parent %s linked student %s", parent_id, student["id"])
    return student


def ensure_linked(db, parent_id: str, student_id: str) -> None:
    link = first_row(
        db.table("parent_student_links")
        .select("id")
        .eq("parent_id", parent_id)
        .eq("student_id", student_id)
        .limit(1)
        .execute()
    )
    if not link:
        raise Forbidden("Access denied to this student")
