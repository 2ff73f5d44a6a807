"""Lesson authoring (teacher side)."""

import logging

from app.core.database import first_row
from app.core.errors import LessonNotFound, ValidationError
from app.core.storage import delete_objects
from app.services.quizzes import ensure_own_classes
from app.services.scoring import utc_now_iso

logger = logging.getLogger(__name__)

LESSON_STATUSES = ("draft", "published")


def get_owned_lesson(db, teacher_id: str, lesson_id: str) -> dict:
    lesson = first_row(
        db.table("lessons")
        .select("*")
        .eq("id", lesson_id)
        .eq("teacher_id", teacher_id)
        .limit(1)
        .execute()
    )
    if not lesson:
        raise LessonNotFound()
    return lesson


def create_lesson(db, teacher_id: str, payload: dict) -> dict:
    lesson = first_row(
        db.table("lessons")
        .insert({
            "teacher_id": teacher_id,
            "title": payload["title"],
            "grade": payload["grade"],
            "description": payload.get("description"),
            "objectives": payload.get("objectives"),
            "status": payload.get("status") or "draft",
        })
        .execute()
    )

    files = payload.get("files") or []
    if files:
        db.table("lesson_files").insert([
            {
                "lesson_id": lesson["id"],
                "file_name": f["name"],
                "file_type": f["type"],
                "file_url": f["url"],
                "file_size": f.get("size"),
                "storage_path": f.get("path"),
            }
            for f in files
        ]).execute()
    lesson["files"] = files
    logger.info("Teacher %s created lesson %s", teacher_id, lesson["id"])
    return lesson


def assign_lesson(db, teacher_id: str, lesson_id: str, class_ids: list[str]) -> list[str]:
    """Replace the set of classes a lesson is assigned to."""
    get_owned_lesson(db, teacher_id, lesson_id)
    class_ids = list(dict.fromkeys(class_ids))
    ensure_own_classes(db, teacher_id, class_ids)

    db.table("lesson_assignments").delete().eq("lesson_id", lesson_id).execute()
    if class_ids:
        now = utc_now_iso()
        db.table("lesson_assignments").insert([
            {"lesson_id": lesson_id, "class_id": class_id, "assigned_date": now}
            for class_id in class_ids
        ]).execute()
    return class_ids


def set_lesson_status(db, teacher_id: str, lesson_id: str, status: str) -> dict:
    if status not in LESSON_STATUSES:
        raise ValidationError(f"Status must be one of {list(LESSON_STATUSES)}")
    get_owned_lesson(db, teacher_id, lesson_id)
    result = (
        db.table("lessons")
        .update({"status": status, "updated_at": utc_now_iso()})
        .eq("id", lesson_id)
        .execute()
    )
    return first_row(result)


def delete_lesson(db, teacher_id: str, lesson_id: str) -> None:
    """Delete a lesson and its stored media; completions and assignments cascade."""
    get_owned_lesson(db, teacher_id, lesson_id)
    files = db.table("lesson_files").select("storage_path").eq("lesson_id", lesson_id).execute()
    keys = [f["storage_path"] for f in files.data or [] if f.get("storage_path")]

    db.table("lessons").delete().eq("id", lesson_id).execute()
    delete_objects(db, keys)
    logger.info("Teacher %s deleted lesson %s", teacher_id, lesson_id)


def get_assigned_class_ids(db, teacher_id: str, lesson_id: str) -> list[str]:
    get_owned_lesson(db, teacher_id, lesson_id)
    result = db.table("lesson_assignments").select("class_id").eq("lesson_id", lesson_id).execute()
    return [a["class_id"] for a in result.data or []]
