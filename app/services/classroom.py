"""
Teacher classroom feed: the roster across all of a teacher's classes,
announcements, and class activities with their hand-in counts.
"""

import logging
from datetime import datetime, timezone

from app.core.database import first_row
from app.services.classes import get_owned_class
from app.services.scoring import average_score, parse_timestamp

logger = logging.getLogger(__name__)

ACTIVE_WITHIN_DAYS = 2
RECENT_ANNOUNCEMENT_COUNT = 10


def _teacher_classes(db, teacher_id: str) -> list[dict]:
    return (db.table("classes").select("*").eq("teacher_id", teacher_id).execute()).data or []


def _last_active_label(days: int) -> str:
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    return f"{days} days ago"


def _latest_by_student(rows: list[dict], column: str) -> dict[str, datetime]:
    latest: dict[str, datetime] = {}
    for row in rows:
        ts = parse_timestamp(row.get(column))
        if ts is not None and (row["student_id"] not in latest or ts > latest[row["student_id"]]):
            latest[row["student_id"]] = ts
    return latest


def classroom_overview(db, teacher_id: str, now: datetime | None = None) -> dict:
    """Every student across the teacher's classes with score and activity status."""
    now = now or datetime.now(timezone.utc)
    classes = _teacher_classes(db, teacher_id)
    class_ids = [c["id"] for c in classes]

    enrollments = []
    if class_ids:
        enrollments = (
            db.table("enrollments")
            .select("*, students(*, users(name, email)), classes(id, class_name, grade)")
            .in_("class_id", class_ids)
            .execute()
        ).data or []

    student_ids = sorted({e["student_id"] for e in enrollments})
    submissions, completions = [], []
    if student_ids:
        submissions = (
            db.table("quiz_submissions")
            .select("student_id, score, submitted_at")
            .in_("student_id", student_ids)
            .execute()
        ).data or []
        completions = (
            db.table("lesson_completions")
            .select("student_id, completed_at")
            .in_("student_id", student_ids)
            .execute()
        ).data or []

    scores: dict[str, list] = {}
    for s in submissions:
        scores.setdefault(s["student_id"], []).append(s.get("score"))
    last_quiz = _latest_by_student(submissions, "submitted_at")
    last_lesson = _latest_by_student(completions, "completed_at")

    students = []
    for e in enrollments:
        student = e.get("students") or {}
        user = student.get("users") or {}
        cls = e.get("classes") or {}
        moments = [
            ts for ts in (
                parse_timestamp(e.get("enrolled_date")),
                last_quiz.get(e["student_id"]),
                last_lesson.get(e["student_id"]),
            )
            if ts is not None
        ]
        days = (now - max(moments)).days if moments else None
        students.append({
            "id": e["student_id"],
            "name": user.get("name"),
            "email": user.get("email"),
            "class": cls.get("class_name"),
            "class_id": e["class_id"],
            "grade": cls.get("grade"),
            "progress": e.get("progress") or 0,
            "avg_score": average_score(scores.get(e["student_id"], [])),
            "quizzes_taken": len(scores.get(e["student_id"], [])),
            "last_active": _last_active_label(days) if days is not None else None,
            "status": "active" if days is not None and days <= ACTIVE_WITHIN_DAYS else "inactive",
        })

    counts: dict[str, int] = {}
    for e in enrollments:
        counts[e["class_id"]] = counts.get(e["class_id"], 0) + 1

    return {
        "classes": [{"id": "all", "name": "All Students", "count": len(students)}] + [
            {"id": c["id"], "name": c.get("class_name"), "count": counts.get(c["id"], 0)}
            for c in classes
        ],
        "students": students,
    }


def classroom_posts(db, teacher_id: str) -> dict:
    class_ids = [c["id"] for c in _teacher_classes(db, teacher_id)]
    if not class_ids:
        return {"activities": [], "announcements": []}

    activities = (
        db.table("activities")
        .select("*, classes(id, class_name)")
        .in_("class_id", class_ids)
        .order("created_at", desc=True)
        .execute()
    ).data or []

    enrolled: dict[str, int] = {}
    for e in (
        db.table("enrollments").select("class_id").in_("class_id", class_ids).execute()
    ).data or []:
        enrolled[e["class_id"]] = enrolled.get(e["class_id"], 0) + 1

    handed_in: dict[str, list[str]] = {}
    if activities:
        for s in (
            db.table("activity_submissions")
            .select("activity_id, student_id, students(users(name))")
            .in_("activity_id", [a["id"] for a in activities])
            .execute()
        ).data or []:
            name = (((s.get("students") or {}).get("users")) or {}).get("name")
            handed_in.setdefault(s["activity_id"], []).append(name)

    announcements = (
        db.table("announcements")
        .select("*, classes(id, class_name)")
        .in_("class_id", class_ids)
        .order("created_at", desc=True)
        .limit(RECENT_ANNOUNCEMENT_COUNT)
        .execute()
    ).data or []

    formatted_activities = []
    for a in activities:
        total = enrolled.get(a["class_id"], 0)
        submitted = handed_in.get(a["id"], [])
        formatted_activities.append({
            "id": a["id"],
            "title": a.get("title"),
            "description": a.get("description"),
            "class": (a.get("classes") or {}).get("class_name"),
            "class_id": a["class_id"],
            "due_date": a.get("due_date"),
            "total_students": total,
            "submitted": len(submitted),
            "pending": max(0, total - len(submitted)),
            "submitted_students": submitted,
            "created_at": a.get("created_at"),
        })

    return {
        "activities": formatted_activities,
        "announcements": [
            {
                "id": n["id"],
                "title": n.get("title"),
                "message": n.get("content"),
                "class": (n.get("classes") or {}).get("class_name"),
                "class_id": n["class_id"],
                "date": n.get("created_at"),
            }
            for n in announcements
        ],
    }


def post_announcement(db, teacher_id: str, class_id: str, title: str, content: str) -> dict:
    cls = get_owned_class(db, teacher_id, class_id)
    announcement = first_row(
        db.table("announcements")
        .insert({"class_id": class_id, "title": title, "content": content})
        .execute()
    )
    logger.info("Teacher %s posted announcement %s to class %s", teacher_id, announcement["id"], class_id)
    return {
        "id": announcement["id"],
        "title": announcement.get("title"),
        "message": announcement.get("content"),
        "class": cls.get("class_name"),
        "date": announcement.get("created_at"),
    }


def post_activity(
    db, teacher_id: str, class_id: str, title: str,
    description: str | None = None, due_date: str | None = None,
) -> dict:
    cls = get_owned_class(db, teacher_id, class_id)
    activity = first_row(
        db.table("activities")
        .insert({"class_id": class_id, "title": title, "description": description, "due_date": due_date})
        .execute()
    )
    logger.info("Teacher %s posted activity %s to class %s", teacher_id, activity["id"], class_id)
    return {
        "id": activity["id"],
        "title": activity.get("title"),
        "description": activity.get("description"),
        "class": cls.get("class_name"),
        "due_date": activity.get("due_date"),
    }
