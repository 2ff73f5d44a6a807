"""
Progress aggregator.

Progress for a (student, class) enrollment is the share of the class's
assigned activities (lessons + quizzes) the student has finished:

    round-half-up(100 * completed / total), and 0 when nothing is assigned.

Triggers run after a lesson completion or quiz submission; `recompute_all`
is the reconciliation pass that repairs drift across every enrollment.
"""

import logging
from dataclasses import dataclass, asdict

from app.core.config import settings
from app.core.database import first_row
from app.core.errors import EnrollmentNotFound
from app.services.scoring import percentage

logger = logging.getLogger(__name__)


@dataclass
class RecomputeSummary:
    total: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def calculate_progress(completed: int, total: int) -> int:
    return percentage(completed, total)


def _ids(rows, column: str) -> set[str]:
    return {row[column] for row in rows or [] if row.get(column) is not None}


def assigned_activity_ids(db, class_id: str) -> tuple[set[str], set[str]]:
    """Lesson ids and quiz ids assigned to a class."""
    lessons = (
        db.table("lesson_assignments").select("lesson_id").eq("class_id", class_id).execute()
    )
    quizzes = (
        db.table("quiz_assignments").select("quiz_id").eq("class_id", class_id).execute()
    )
    return _ids(lessons.data, "lesson_id"), _ids(quizzes.data, "quiz_id")


def completed_activity_ids(
    db, student_id: str, lesson_ids: set[str], quiz_ids: set[str]
) -> tuple[set[str], set[str]]:
    """Which of the given lessons / quizzes the student has completed / submitted."""
    done_lessons: set[str] = set()
    done_quizzes: set[str] = set()
    if lesson_ids:
        result = (
            db.table("lesson_completions")
            .select("lesson_id")
            .eq("student_id", student_id)
            .in_("lesson_id", sorted(lesson_ids))
            .execute()
        )
        done_lessons = _ids(result.data, "lesson_id") & lesson_ids
    if quiz_ids:
        result = (
            db.table("quiz_submissions")
            .select("quiz_id")
            .eq("student_id", student_id)
            .in_("quiz_id", sorted(quiz_ids))
            .execute()
        )
        done_quizzes = _ids(result.data, "quiz_id") & quiz_ids
    return done_lessons, done_quizzes


def compute_progress(db, student_id: str, class_id: str) -> int:
    lesson_ids, quiz_ids = assigned_activity_ids(db, class_id)
    done_lessons, done_quizzes = completed_activity_ids(db, student_id, lesson_ids, quiz_ids)
    return calculate_progress(
        len(done_lessons) + len(done_quizzes),
        len(lesson_ids) + len(quiz_ids),
    )


def _refresh(db, enrollment: dict) -> tuple[int, bool]:
    """Recompute one enrollment and write it back when it changed."""
    new_progress = compute_progress(db, enrollment["student_id"], enrollment["class_id"])
    old_progress = enrollment.get("progress")
    if new_progress == old_progress:
        return new_progress, False

    db.table("enrollments").update({"progress": new_progress}).eq("id", enrollment["id"]).execute()
    logger.info(
        "Enrollment %s progress %s%% -> %s%%", enrollment["id"], old_progress, new_progress
    )
    return new_progress, True


def get_enrollment(db, student_id: str, class_id: str) -> dict | None:
    return first_row(
        db.table("enrollments")
        .select("id, student_id, class_id, progress")
        .eq("student_id", student_id)
        .eq("class_id", class_id)
        .limit(1)
        .execute()
    )


def recompute_enrollment_progress(db, student_id: str, class_id: str) -> int:
    enrollment = get_enrollment(db, student_id, class_id)
    if not enrollment:
        raise EnrollmentNotFound()
    new_progress, _ = _refresh(db, enrollment)
    return new_progress


def _recompute_for_classes(db, student_id: str, class_ids: set[str]) -> dict[str, int]:
    if not class_ids:
        return {}
    enrollments = (
        db.table("enrollments")
        .select("id, student_id, class_id, progress")
        .eq("student_id", student_id)
        .in_("class_id", sorted(class_ids))
        .execute()
    )
    # A class the student is not enrolled in simply has nothing to update.
    updated = {}
    for enrollment in enrollments.data or []:
        try:
            value, _ = _refresh(db, enrollment)
            updated[enrollment["class_id"]] = value
        except Exception:
            logger.exception(
                "Progress refresh failed for student %s in class %s", student_id, enrollment["class_id"]
            )
    return updated


def recompute_for_lesson(db, student_id: str, lesson_id: str) -> dict[str, int]:
    """Refresh the student's progress in every enrolled class the lesson is assigned to."""
    assignments = (
        db.table("lesson_assignments").select("class_id").eq("lesson_id", lesson_id).execute()
    )
    return _recompute_for_classes(db, student_id, _ids(assignments.data, "class_id"))


def recompute_for_quiz(db, student_id: str, quiz_id: str) -> dict[str, int]:
    """Refresh the student's progress in every enrolled class the quiz is assigned to."""
    assignments = (
        db.table("quiz_assignments").select("class_id").eq("quiz_id", quiz_id).execute()
    )
    return _recompute_for_classes(db, student_id, _ids(assignments.data, "class_id"))


def _iter_enrollments(db, page_size: int):
    # Keyset paging: rows inserted or deleted mid-run never shift a later page.
    last_id = None
    while True:
        query = db.table("enrollments").select("id, student_id, class_id, progress")
        if last_id is not None:
            query = query.gt("id", last_id)
        rows = query.order("id").limit(page_size).execute().data or []
        yield from rows
        if len(rows) < page_size:
            return
        last_id = rows[-1]["id"]


def recompute_all(db) -> RecomputeSummary:
    """
    Reconcile every enrollment's stored progress with its completion records.
    One bad enrollment is logged and counted; it never aborts the batch.
    """
    logger.info("Starting progress recalculation")
    summary = RecomputeSummary()
    page_size = max(1, settings.RECOMPUTE_PAGE_SIZE)

    for enrollment in _iter_enrollments(db, page_size):
        summary.total += 1
        try:
            _, changed = _refresh(db, enrollment)
        except Exception:
            summary.failed += 1
            logger.exception("Failed to recalculate enrollment %s", enrollment.get("id"))
            continue
        if changed:
            summary.updated += 1
        else:
            summary.skipped += 1

    logger.info(
        "Progress recalculation finished: total=%d updated=%d skipped=%d failed=%d",
        summary.total, summary.updated, summary.skipped, summary.failed,
    )
    return summary
