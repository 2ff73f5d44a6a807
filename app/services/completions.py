"""
Lesson completions. One record per (student, lesson): completing again
refreshes the stars and timestamp instead of adding a row.
"""

import logging

from postgrest.exceptions import APIError

from app.core.database import first_row, is_unique_violation
from app.core.errors import LessonNotFound
from app.services import progress
from app.services.scoring import utc_now_iso

logger = logging.getLogger(__name__)


def _get_completion(db, student_id: str, lesson_id: str) -> dict | None:
    return first_row(
        db.table("lesson_completions")
        .select("*")
        .eq("student_id", student_id)
        .eq("lesson_id", lesson_id)
        .limit(1)
        .execute()
    )


def _update_completion(db, existing: dict, stars: int | None) -> dict:
    data = {
        "stars": stars if stars is not None else (existing.get("stars") or 0),
        "completed_at": utc_now_iso(),
    }
    result = db.table("lesson_completions").update(data).eq("id", existing["id"]).execute()
    return first_row(result) or {**existing, **data}


def complete_lesson(db, student_id: str, lesson_id: str, stars: int | None = None) -> dict:
    lesson = first_row(db.table("lessons").select("id").eq("id", lesson_id).limit(1).execute())
    if not lesson:
        raise LessonNotFound()

    created = False
    existing = _get_completion(db, student_id, lesson_id)
    if existing:
        completion = _update_completion(db, existing, stars)
    else:
        data = {
            "student_id": student_id,
            "lesson_id": lesson_id,
            "stars": stars or 0,
            "completed_at": utc_now_iso(),
        }
        try:
            completion = first_row(db.table("lesson_completions").insert(data).execute()) or data
            created = True
        except APIError as e:
            if not is_unique_violation(e):
                raise
            # Lost a race with a concurrent first completion: update that row instead.
            completion = _update_completion(db, _get_completion(db, student_id, lesson_id), stars)

    logger.info(
        "Student %s %s lesson %s with %s star(s)",
        student_id, "completed" if created else "re-completed", lesson_id, completion.get("stars"),
    )

    try:
        progress.recompute_for_lesson(db, student_id, lesson_id)
    except Exception:
        logger.exception("Progress refresh failed after lesson %s completion by %s", lesson_id, student_id)

    return {
        "completion_id": completion.get("id"),
        "lesson_id": lesson_id,
        "stars": completion.get("stars"),
        "completed_at": completion.get("completed_at"),
        "created": created,
    }
