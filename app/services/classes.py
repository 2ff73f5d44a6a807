"""Classes and class-code enrollment."""

import logging
import secrets
import string

from postgrest.exceptions import APIError

from app.core.database import first_row, is_unique_violation
from app.core.errors import AlreadyEnrolled, ClassNotFound, StudentNotFound, ValidationError
from app.services.scoring import utc_now_iso

logger = logging.getLogger(__name__)

CLASS_CODE_ALPHABET = string.ascii_uppercase + string.digits
CLASS_CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 20
CLASS_DELETE_ACTIONS = ("delete", "disenroll")


def generate_class_code() -> str:
    return "".join(secrets.choice(CLASS_CODE_ALPHABET) for _ in range(CLASS_CODE_LENGTH))


def create_class(db, teacher_id: str, class_name: str, subject: str, grade: int) -> dict:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_class_code()
        taken = first_row(db.table("classes").select("id").eq("class_code", code).limit(1).execute())
        if taken:
            continue
        try:
            created = first_row(
                db.table("classes")
                .insert({
                    "teacher_id": teacher_id,
                    "class_code": code,
                    "class_name": class_name,
                    "subject": subject,
                    "grade": grade,
                })
                .execute()
            )
        except APIError as e:
            if is_unique_violation(e):
                continue
            raise
        logger.info("Teacher %s created class %s (%s)", teacher_id, created["id"], code)
        return created
    raise RuntimeError("Could not generate a unique class code")


def get_owned_class(db, teacher_id: str, class_id: str) -> dict:
    cls = first_row(
        db.table("classes")
        .select("*")
        .eq("id", class_id)
        .eq("teacher_id", teacher_id)
        .limit(1)
        .execute()
    )
    if not cls:
        raise ClassNotFound()
    return cls


def enroll_student(db, student_id: str, class_code: str) -> dict:
    student = first_row(db.table("students").select("*").eq("id", student_id).limit(1).execute())
    if not student:
        raise StudentNotFound()

    cls = first_row(
        db.table("classes")
        .select("*")
        .eq("class_code", class_code.strip().upper())
        .limit(1)
        .execute()
    )
    if not cls:
        raise ClassNotFound("Invalid class code")

    if student.get("grade") and cls.get("grade") and student["grade"] != cls["grade"]:
        raise ValidationError(
            f"This class is for Grade {cls['grade']} students. You are enrolled in Grade {student['grade']}."
        )

    try:
        enrollment = first_row(
            db.table("enrollments")
            .insert({
                "student_id": student_id,
                "class_id": cls["id"],
                "progress": 0,
                "enrolled_date": utc_now_iso(),
            })
            .execute()
        )
    except APIError as e:
        if is_unique_violation(e):
            raise AlreadyEnrolled() from e
        raise

    logger.info("Student %s enrolled in class %s", student_id, cls["id"])
    return {"enrollment": enrollment, "class": cls}


def delete_class(db, teacher_id: str, class_id: str, action: str = "delete") -> str:
    """
    Delete an owned class, or with action="disenroll" keep the class and
    remove every enrollment in it. Returns the action taken.
    """
    if action not in CLASS_DELETE_ACTIONS:
        raise ValidationError(f"Action must be one of {list(CLASS_DELETE_ACTIONS)}")
    get_owned_class(db, teacher_id, class_id)

    if action == "disenroll":
        removed = db.table("enrollments").delete().eq("class_id", class_id).execute()
        logger.info("Teacher %s disenrolled %d student(s) from class %s",
                    teacher_id, len(removed.data or []), class_id)
    else:
        # Enrollments, assignments and feed posts cascade in the store.
        db.table("classes").delete().eq("id", class_id).execute()
        logger.info("Teacher %s deleted class %s", teacher_id, class_id)
    return action
