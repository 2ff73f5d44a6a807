"""
Quiz authoring (teacher side) and the student's pre-submission quiz view.

Every mutation of a quiz's question set ends with `sync_total_points`, so
quizzes.total_points always equals the sum of its questions' points.
"""

import logging

from app.core.database import first_row
from app.core.errors import (
    AlreadySubmitted, ClassNotFound, QuizNotAssigned, QuizNotFound, ValidationError,
)
from app.services.grading import QuestionType, get_questions, get_submission, normalize_answer
from app.services.scoring import points_value, utc_now_iso

logger = logging.getLogger(__name__)

QUIZ_STATUSES = ("draft", "published")


def get_owned_quiz(db, teacher_id: str, quiz_id: str) -> dict:
    quiz = first_row(
        db.table("quizzes")
        .select("*")
        .eq("id", quiz_id)
        .eq("teacher_id", teacher_id)
        .limit(1)
        .execute()
    )
    if not quiz:
        raise QuizNotFound()
    return quiz


def _question_row(quiz_id: str, question: dict, order_number: int) -> dict:
    question_type = QuestionType(question["type"])
    options = question.get("options")
    if question_type.has_options and not options:
        raise ValidationError(f"Question {order_number}: '{question_type.value}' needs options")

    media = question.get("media") or {}
    return {
        "quiz_id": quiz_id,
        "question_text": question["question"],
        "question_type": question_type.value,
        "options": options or None,
        "correct_answer": normalize_answer(question.get("correct_answer")),
        "media_type": media.get("type"),
        "media_url": media.get("url"),
        "points": points_value(question.get("points")),
        "order_number": order_number,
    }


def sync_total_points(db, quiz_id: str) -> int:
    """Recompute quizzes.total_points from the stored question set."""
    total = sum(points_value(q.get("points")) for q in get_questions(db, quiz_id))
    db.table("quizzes").update({"total_points": total}).eq("id", quiz_id).execute()
    return total


def create_quiz(db, teacher_id: str, payload: dict) -> dict:
    questions = payload.get("questions") or []
    if not questions:
        raise ValidationError("Title, grade, and questions are required")

    quiz = first_row(
        db.table("quizzes")
        .insert({
            "teacher_id": teacher_id,
            "title": payload["title"],
            "grade": payload["grade"],
            "description": payload.get("description"),
            "time_limit": payload.get("time_limit"),
            "status": payload.get("status") or "draft",
            "total_points": 0,
        })
        .execute()
    )

    try:
        rows = [_question_row(quiz["id"], q, i + 1) for i, q in enumerate(questions)]
        db.table("quiz_questions").insert(rows).execute()
    except Exception:
        # No half-built quizzes: drop the quiz row (questions cascade).
        db.table("quizzes").delete().eq("id", quiz["id"]).execute()
        raise

    quiz["total_points"] = sync_total_points(db, quiz["id"])
    logger.info("Teacher %s created quiz %s with %d question(s)", teacher_id, quiz["id"], len(rows))
    return quiz


def add_question(db, teacher_id: str, quiz_id: str, question: dict) -> dict:
    get_owned_quiz(db, teacher_id, quiz_id)
    existing = get_questions(db, quiz_id)
    next_order = max((q.get("order_number") or 0 for q in existing), default=0) + 1
    row = first_row(
        db.table("quiz_questions").insert(_question_row(quiz_id, question, next_order)).execute()
    )
    total = sync_total_points(db, quiz_id)
    return {"question": row, "total_points": total}


def delete_question(db, teacher_id: str, quiz_id: str, question_id: str) -> int:
    get_owned_quiz(db, teacher_id, quiz_id)
    db.table("quiz_questions").delete().eq("id", question_id).eq("quiz_id", quiz_id).execute()
    return sync_total_points(db, quiz_id)


def set_quiz_status(db, teacher_id: str, quiz_id: str, status: str) -> dict:
    if status not in QUIZ_STATUSES:
        raise ValidationError(f"Status must be one of {list(QUIZ_STATUSES)}")
    get_owned_quiz(db, teacher_id, quiz_id)
    result = (
        db.table("quizzes")
        .update({"status": status, "updated_at": utc_now_iso()})
        .eq("id", quiz_id)
        .execute()
    )
    return first_row(result)


def delete_quiz(db, teacher_id: str, quiz_id: str) -> None:
    """Delete a quiz; questions, assignments and submissions cascade in the store."""
    get_owned_quiz(db, teacher_id, quiz_id)
    db.table("quizzes").delete().eq("id", quiz_id).execute()
    logger.info("Teacher %s deleted quiz %s", teacher_id, quiz_id)


def ensure_own_classes(db, teacher_id: str, class_ids: list[str]) -> None:
    if not class_ids:
        return
    owned = (
        db.table("classes")
        .select("id")
        .eq("teacher_id", teacher_id)
        .in_("id", class_ids)
        .execute()
    )
    missing = set(class_ids) - {c["id"] for c in owned.data or []}
    if missing:
        raise ClassNotFound(f"Class not found: {', '.join(sorted(missing))}")


def assign_quiz(db, teacher_id: str, quiz_id: str, class_ids: list[str], due_date: str | None = None) -> list[str]:
    """Replace the set of classes a quiz is assigned to."""
    get_owned_quiz(db, teacher_id, quiz_id)
    class_ids = list(dict.fromkeys(class_ids))
    ensure_own_classes(db, teacher_id, class_ids)

    db.table("quiz_assignments").delete().eq("quiz_id", quiz_id).execute()
    if class_ids:
        now = utc_now_iso()
        db.table("quiz_assignments").insert([
            {"quiz_id": quiz_id, "class_id": class_id, "assigned_date": now, "due_date": due_date}
            for class_id in class_ids
        ]).execute()
    return class_ids


def get_assigned_class_ids(db, teacher_id: str, quiz_id: str) -> list[str]:
    get_owned_quiz(db, teacher_id, quiz_id)
    result = db.table("quiz_assignments").select("class_id").eq("quiz_id", quiz_id).execute()
    return [a["class_id"] for a in result.data or []]


def student_class_ids(db, student_id: str) -> list[str]:
    result = db.table("enrollments").select("class_id").eq("student_id", student_id).execute()
    return [e["class_id"] for e in result.data or []]


def ensure_quiz_assigned(db, student_id: str, quiz_id: str) -> None:
    """A student may only take quizzes assigned to one of their classes."""
    class_ids = student_class_ids(db, student_id)
    if not class_ids:
        raise QuizNotAssigned()
    assignment = first_row(
        db.table("quiz_assignments")
        .select("id")
        .eq("quiz_id", quiz_id)
        .in_("class_id", class_ids)
        .limit(1)
        .execute()
    )
    if not assignment:
        raise QuizNotAssigned()


def get_student_quiz(db, student_id: str, quiz_id: str) -> dict:
    """Quiz with its questions for a student who has not submitted yet. Answer keys stay server side."""
    quiz = first_row(db.table("quizzes").select("*").eq("id", quiz_id).limit(1).execute())
    if not quiz:
        raise QuizNotFound()
    if get_submission(db, student_id, quiz_id):
        raise AlreadySubmitted()
    ensure_quiz_assigned(db, student_id, quiz_id)

    return {
        "id": quiz["id"],
        "title": quiz.get("title"),
        "description": quiz.get("description"),
        "time_limit_minutes": quiz.get("time_limit"),
        "total_points": quiz.get("total_points"),
        "questions": [
            {
                "id": q["id"],
                "question_text": q.get("question_text"),
                "question_type": q.get("question_type"),
                "options": q.get("options"),
                "points": points_value(q.get("points")),
                "media_url": q.get("media_url"),
                "media_type": q.get("media_type"),
            }
            for q in get_questions(db, quiz_id)
        ],
    }
