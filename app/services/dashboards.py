"""
Read-only dashboard projections for students, teachers and parents.
Denormalized names come from PostgREST embedded selects.
"""

from datetime import datetime, timezone

from app.core.database import first_row
from app.core.errors import StudentNotFound
from app.services.classes import get_owned_class
from app.services.scoring import (
    average_score, average_stars, level_for_stars, parse_timestamp,
    stars_for_score, within_window,
)

RECENT_QUIZ_COUNT = 5
RECENT_ACTIVITY_COUNT = 10
PERFORMER_LIST_SIZE = 20

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _newest_first(rows: list[dict], column: str) -> list[dict]:
    return sorted(rows, key=lambda r: parse_timestamp(r.get(column)) or _EPOCH, reverse=True)


def _teacher_name(cls: dict | None) -> str:
    teacher = (cls or {}).get("teachers") or {}
    user = teacher.get("users") or {}
    return user.get("name") or "No teacher assigned"


# ---------------------------------------------------------------------------
# Student
# ---------------------------------------------------------------------------
def student_dashboard(db, student_id: str) -> dict:
    student = first_row(db.table("students").select("*").eq("id", student_id).limit(1).execute())
    if not student:
        raise StudentNotFound()

    enrollments = (
        db.table("enrollments")
        .select("*, classes(*, teachers(users(name)))")
        .eq("student_id", student_id)
        .execute()
    ).data or []

    classes = [
        {
            "id": e["classes"]["id"],
            "class_code": e["classes"].get("class_code"),
            "class_name": e["classes"].get("class_name"),
            "teacher": _teacher_name(e["classes"]),
            "subject": e["classes"].get("subject"),
            "grade": e["classes"].get("grade"),
            "progress": e.get("progress") or 0,
        }
        for e in enrollments
        if e.get("classes")
    ]
    class_names = {c["id"]: c["class_name"] for c in classes}

    assignments = []
    if class_names:
        assignments = (
            db.table("lesson_assignments")
            .select("*, lessons(*, lesson_files(*))")
            .in_("class_id", list(class_names))
            .execute()
        ).data or []

    completions = (
        db.table("lesson_completions").select("*").eq("student_id", student_id).execute()
    ).data or []
    completion_map = {c["lesson_id"]: c for c in completions}

    lessons = []
    for a in assignments:
        lesson = a.get("lessons")
        if not lesson:
            continue
        completion = completion_map.get(lesson["id"])
        lessons.append({
            "id": lesson["id"],
            "title": lesson.get("title"),
            "grade": lesson.get("grade"),
            "description": lesson.get("description"),
            "objectives": lesson.get("objectives"),
            "status": lesson.get("status"),
            "class_id": a["class_id"],
            "class_name": class_names.get(a["class_id"], "Unknown Class"),
            "files": lesson.get("lesson_files") or [],
            "completed": completion is not None,
            "stars": (completion or {}).get("stars") or 0,
            "completed_at": (completion or {}).get("completed_at"),
        })

    submissions = _newest_first(
        (
            db.table("quiz_submissions")
            .select("id, quiz_id, score, submitted_at, quizzes(title)")
            .eq("student_id", student_id)
            .execute()
        ).data or [],
        "submitted_at",
    )

    lesson_stars = sum(c.get("stars") or 0 for c in completions)
    quiz_stars = sum(stars_for_score(s.get("score")) for s in submissions)
    total_stars = lesson_stars + quiz_stars

    return {
        "student": {
            "id": student["id"],
            "grade": student.get("grade"),
            "student_number": student.get("student_number"),
        },
        "classes": classes,
        "lessons": lessons,
        "stats": {
            "total_stars": total_stars,
            "level": level_for_stars(total_stars),
            "completed_lessons": len(completions),
            "total_lessons": len(lessons),
            "average_score": average_score(s.get("score") for s in submissions),
        },
        "current_lesson": next((l["title"] for l in lessons if not l["completed"]), None),
        "recent_quizzes": [
            {
                "id": s["quiz_id"],
                "title": (s.get("quizzes") or {}).get("title") or "Quiz",
                "score": s.get("score") or 0,
                "submitted_at": s.get("submitted_at"),
            }
            for s in submissions[:RECENT_QUIZ_COUNT]
        ],
    }


def student_quizzes(db, student_id: str) -> list[dict]:
    """Quizzes assigned to the student's classes, with completion state."""
    enrollments = db.table("enrollments").select("class_id").eq("student_id", student_id).execute()
    class_ids = [e["class_id"] for e in enrollments.data or []]
    if not class_ids:
        return []

    assignments = (
        db.table("quiz_assignments")
        .select("*, quizzes(*), classes(class_name, grade)")
        .in_("class_id", class_ids)
        .execute()
    ).data or []
    quiz_ids = list({a["quiz_id"] for a in assignments})
    if not quiz_ids:
        return []

    submissions = (
        db.table("quiz_submissions")
        .select("quiz_id, score, submitted_at")
        .eq("student_id", student_id)
        .in_("quiz_id", quiz_ids)
        .execute()
    ).data or []
    submission_map = {s["quiz_id"]: s for s in submissions}

    questions = (
        db.table("quiz_questions").select("quiz_id").in_("quiz_id", quiz_ids).execute()
    ).data or []
    question_counts: dict[str, int] = {}
    for q in questions:
        question_counts[q["quiz_id"]] = question_counts.get(q["quiz_id"], 0) + 1

    result = []
    for a in assignments:
        quiz = a.get("quizzes") or {}
        cls = a.get("classes") or {}
        submission = submission_map.get(a["quiz_id"])
        result.append({
            "id": a["quiz_id"],
            "title": quiz.get("title"),
            "description": quiz.get("description"),
            "total_points": quiz.get("total_points") or 0,
            "time_limit": quiz.get("time_limit"),
            "question_count": question_counts.get(a["quiz_id"], 0),
            "class_id": a["class_id"],
            "class_name": cls.get("class_name"),
            "grade": cls.get("grade"),
            "due_date": a.get("due_date"),
            "completed": submission is not None,
            "score": (submission or {}).get("score"),
            "submitted_at": (submission or {}).get("submitted_at"),
        })
    return result


# ---------------------------------------------------------------------------
# Teacher
# ---------------------------------------------------------------------------
def _teacher_quiz_ids(db, teacher_id: str) -> list[str]:
    quizzes = db.table("quizzes").select("id").eq("teacher_id", teacher_id).execute()
    return [q["id"] for q in quizzes.data or []]


def teacher_dashboard(db, teacher_id: str, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    classes = (
        db.table("classes").select("*").eq("teacher_id", teacher_id).execute()
    ).data or []
    class_ids = [c["id"] for c in classes]

    enrollments = []
    if class_ids:
        enrollments = (
            db.table("enrollments")
            .select("*, students(*, users(name))")
            .in_("class_id", class_ids)
            .execute()
        ).data or []

    quiz_ids = _teacher_quiz_ids(db, teacher_id)
    scores = []
    upcoming = 0
    if quiz_ids:
        submissions = (
            db.table("quiz_submissions").select("score").in_("quiz_id", quiz_ids).execute()
        ).data or []
        scores = [s.get("score") for s in submissions]
        assignments = (
            db.table("quiz_assignments")
            .select("due_date")
            .in_("quiz_id", quiz_ids)
            .gte("due_date", now.isoformat())
            .execute()
        ).data or []
        upcoming = len(assignments)

    class_names = {c["id"]: c.get("class_name") for c in classes}
    formatted_classes = []
    for c in classes:
        members = [e for e in enrollments if e["class_id"] == c["id"]]
        formatted_classes.append({
            "id": c["id"],
            "name": c.get("class_name"),
            "code": c.get("class_code"),
            "subject": c.get("subject"),
            "grade": c.get("grade"),
            "students": len(members),
            "progress": average_score(e.get("progress") for e in members),
        })

    students = [
        {
            "id": e["student_id"],
            "name": ((e.get("students") or {}).get("users") or {}).get("name"),
            "class": class_names.get(e["class_id"]),
            "progress": e.get("progress") or 0,
        }
        for e in enrollments
    ]

    return {
        "stats": {
            "total_students": len(enrollments),
            "total_classes": len(classes),
            "average_score": average_score(scores),
            "upcoming_quizzes": upcoming,
        },
        "classes": formatted_classes,
        "top_performers": sorted(students, key=lambda s: -s["progress"])[:PERFORMER_LIST_SIZE],
        "needing_support": sorted(students, key=lambda s: s["progress"])[:PERFORMER_LIST_SIZE],
    }


def class_students(db, teacher_id: str, class_id: str) -> list[dict]:
    """Students of one class with progress and their average score on the class's quizzes."""
    get_owned_class(db, teacher_id, class_id)
    enrollments = (
        db.table("enrollments")
        .select("*, students(*, users(name, email))")
        .eq("class_id", class_id)
        .execute()
    ).data or []
    student_ids = [e["student_id"] for e in enrollments]

    quiz_ids = [
        a["quiz_id"]
        for a in (
            db.table("quiz_assignments").select("quiz_id").eq("class_id", class_id).execute()
        ).data or []
    ]

    scores: dict[str, list] = {}
    if student_ids and quiz_ids:
        submissions = (
            db.table("quiz_submissions")
            .select("student_id, score")
            .in_("student_id", student_ids)
            .in_("quiz_id", quiz_ids)
            .execute()
        ).data or []
        for s in submissions:
            scores.setdefault(s["student_id"], []).append(s.get("score"))

    result = []
    for e in enrollments:
        student = e.get("students") or {}
        user = student.get("users") or {}
        result.append({
            "id": e["student_id"],
            "name": user.get("name"),
            "email": user.get("email"),
            "student_number": student.get("student_number"),
            "progress": e.get("progress") or 0,
            "score": average_score(scores.get(e["student_id"], [])),
            "enrolled_date": e.get("enrolled_date"),
        })
    return result


def teacher_quizzes(db, teacher_id: str, now: datetime | None = None) -> list[dict]:
    """Per-quiz statistics: submissions, average score and a Draft/Active/Completed status."""
    now = now or datetime.now(timezone.utc)
    quizzes = _newest_first(
        (db.table("quizzes").select("*").eq("teacher_id", teacher_id).execute()).data or [],
        "created_at",
    )

    result = []
    for quiz in quizzes:
        assignments = (
            db.table("quiz_assignments").select("*").eq("quiz_id", quiz["id"]).execute()
        ).data or []
        class_ids = [a["class_id"] for a in assignments]
        total_students = 0
        if class_ids:
            total_students = len(
                (db.table("enrollments").select("id").in_("class_id", class_ids).execute()).data or []
            )
        submissions = (
            db.table("quiz_submissions").select("score").eq("quiz_id", quiz["id"]).execute()
        ).data or []
        question_count = len(
            (db.table("quiz_questions").select("id").eq("quiz_id", quiz["id"]).execute()).data or []
        )

        status = "Active" if quiz.get("status") == "published" else "Draft"
        past_due = any(
            a.get("due_date") and parse_timestamp(a["due_date"]) < now for a in assignments
        )
        if past_due and total_students > 0 and len(submissions) >= total_students:
            status = "Completed"

        result.append({
            "id": quiz["id"],
            "title": quiz.get("title"),
            "grade": quiz.get("grade"),
            "description": quiz.get("description"),
            "questions": question_count,
            "total_points": quiz.get("total_points") or 0,
            "time_limit": quiz.get("time_limit"),
            "assigned": bool(assignments),
            "submissions": len(submissions),
            "total_students": total_students,
            "avg_score": average_score(s.get("score") for s in submissions),
            "status": status,
            "due_date": assignments[0].get("due_date") if assignments else None,
            "created_at": quiz.get("created_at"),
        })
    return result


# ---------------------------------------------------------------------------
# Parent
# ---------------------------------------------------------------------------
def linked_students(db, parent_id: str) -> list[dict]:
    links = (
        db.table("parent_student_links")
        .select("student_id, students(*, users(name, email))")
        .eq("parent_id", parent_id)
        .execute()
    ).data or []

    result = []
    for link in links:
        student = link.get("students") or {}
        enrollments = (
            db.table("enrollments")
            .select("class_id, classes(class_name, subject, teachers(users(name)))")
            .eq("student_id", link["student_id"])
            .execute()
        ).data or []
        result.append({
            "id": link["student_id"],
            "student_number": student.get("student_number"),
            "name": (student.get("users") or {}).get("name"),
            "grade": student.get("grade"),
            "teacher": _teacher_name(enrollments[0].get("classes")) if enrollments else "No teacher assigned",
            "classes": [(e.get("classes") or {}).get("class_name") for e in enrollments],
        })
    return result


def student_progress(db, student_id: str, since: datetime | None = None, until: datetime | None = None) -> dict:
    """
    Progress report for a parent. Stats cover every quiz and lesson in the
    [since, until] window (all time by default); the activity feed keeps the
    newest entries.
    """
    submissions = [
        s for s in (
            db.table("quiz_submissions")
            .select("score, submitted_at, quizzes(title, grade)")
            .eq("student_id", student_id)
            .execute()
        ).data or []
        if within_window(s.get("submitted_at"), since, until)
    ]
    completions = [
        c for c in (
            db.table("lesson_completions")
            .select("stars, completed_at, lessons(title, grade)")
            .eq("student_id", student_id)
            .execute()
        ).data or []
        if within_window(c.get("completed_at"), since, until)
    ]
    enrollments = (
        db.table("enrollments")
        .select("progress, classes(class_name, subject, grade)")
        .eq("student_id", student_id)
        .execute()
    ).data or []

    activities = [
        {
            "type": "quiz",
            "title": (s.get("quizzes") or {}).get("title") or "Quiz",
            "score": s.get("score"),
            "date": s.get("submitted_at"),
        }
        for s in submissions
    ] + [
        {
            "type": "lesson",
            "title": (c.get("lessons") or {}).get("title") or "Lesson",
            "stars": c.get("stars"),
            "date": c.get("completed_at"),
        }
        for c in completions
    ]

    return {
        "stats": {
            "average_score": average_score(s.get("score") for s in submissions),
            "total_lessons": len(completions),
            "average_stars": average_stars(c.get("stars") for c in completions),
            "total_quizzes": len(submissions),
        },
        "recent_activities": _newest_first(activities, "date")[:RECENT_ACTIVITY_COUNT],
        "enrollments": [
            {
                "class_name": (e.get("classes") or {}).get("class_name"),
                "subject": (e.get("classes") or {}).get("subject"),
                "grade": (e.get("classes") or {}).get("grade"),
                "progress": e.get("progress") or 0,
            }
            for e in enrollments
        ],
    }
