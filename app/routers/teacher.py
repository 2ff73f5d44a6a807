"""
Teacher router — Classes, quiz & lesson authoring, assignments, analytics, classroom feed, media.
"""

from fastapi import APIRouter, Depends
from app.core.security import require_role
from app.core.middleware import get_profile_id
from app.core.database import get_supabase
from app.core.storage import upload_media
from app.schemas.account import ActivityCreate, AnnouncementCreate, ClassCreate
from app.schemas.lesson import LessonAssign, LessonCreate, MediaUpload
from app.schemas.quiz import ClassAssign, QuestionCreate, QuizCreate, StatusUpdate
from app.services import classes, classroom, dashboards, lessons, quizzes
from app.utils.response import success_response

router = APIRouter(prefix="/api/teacher", tags=["Teacher"])


@router.get("/dashboard")
async def get_dashboard(
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    return success_response(data=dashboards.teacher_dashboard(db, teacher_id))


# ===== CLASSES =====

@router.post("/class", status_code=201)
async def create_class(
    body: ClassCreate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    created = classes.create_class(db, teacher_id, body.class_name, body.subject, body.grade)
    return success_response(data=created, message="Class created successfully")


@router.delete("/class/{class_id}")
async def delete_class(
    class_id: str,
    action: str = "delete",
    user: dict = Depends(require_role(["teacher"])),
):
    """Delete a class, or with ?action=disenroll remove every student from it."""
    db = get_supabase()
    teacher_id = get_profile_id(user)
    done = classes.delete_class(db, teacher_id, class_id, action)
    message = "All students disenrolled successfully" if done == "disenroll" else "Class deleted successfully"
    return success_response(message=message)


@router.get("/students/{class_id}")
async def get_class_students(
    class_id: str,
    user: dict = Depends(require_role(["teacher"])),
):
    """Enrolled students with progress and average quiz score."""
    db = get_supabase()
    teacher_id = get_profile_id(user)
    return success_response(data=dashboards.class_students(db, teacher_id, class_id))


# ===== QUIZZES =====

@router.get("/quizzes")
async def get_quizzes(
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    return success_response(data=dashboards.teacher_quizzes(db, teacher_id))


@router.post("/quiz", status_code=201)
async def create_quiz(
    body: QuizCreate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    quiz = quizzes.create_quiz(db, teacher_id, body.model_dump())
    return success_response(data=quiz, message="Quiz created successfully")


@router.post("/quiz/{quiz_id}/questions", status_code=201)
async def add_question(
    quiz_id: str,
    body: QuestionCreate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    result = quizzes.add_question(db, teacher_id, quiz_id, body.model_dump())
    return success_response(data=result, message="Question added")


@router.delete("/quiz/{quiz_id}/questions/{question_id}")
async def delete_question(
    quiz_id: str,
    question_id: str,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    total = quizzes.delete_question(db, teacher_id, quiz_id, question_id)
    return success_response(data={"total_points": total}, message="Question deleted")


@router.patch("/quiz/{quiz_id}/status")
async def update_quiz_status(
    quiz_id: str,
    body: StatusUpdate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    quiz = quizzes.set_quiz_status(db, teacher_id, quiz_id, body.status)
    return success_response(data=quiz, message=f"Quiz marked {body.status}")


@router.delete("/quiz/{quiz_id}")
async def delete_quiz(
    quiz_id: str,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    quizzes.delete_quiz(db, teacher_id, quiz_id)
    return success_response(message="Quiz deleted successfully")


@router.get("/quiz/{quiz_id}/assignments")
async def get_quiz_assignments(
    quiz_id: str,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    class_ids = quizzes.get_assigned_class_ids(db, teacher_id, quiz_id)
    return success_response(data={"assigned_class_ids": class_ids})


@router.post("/quiz/{quiz_id}/assign")
async def assign_quiz(
    quiz_id: str,
    body: ClassAssign,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    class_ids = quizzes.assign_quiz(db, teacher_id, quiz_id, body.class_ids, body.due_date)
    return success_response(data={"assigned_class_ids": class_ids}, message="Quiz assigned successfully")


# ===== LESSONS =====

@router.post("/lesson", status_code=201)
async def create_lesson(
    body: LessonCreate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    lesson = lessons.create_lesson(db, teacher_id, body.model_dump())
    return success_response(data=lesson, message="Lesson created successfully")


@router.get("/lesson/{lesson_id}/assignments")
async def get_lesson_assignments(
    lesson_id: str,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    class_ids = lessons.get_assigned_class_ids(db, teacher_id, lesson_id)
    return success_response(data={"assigned_class_ids": class_ids})


@router.post("/lesson/{lesson_id}/assign")
async def assign_lesson(
    lesson_id: str,
    body: LessonAssign,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    class_ids = lessons.assign_lesson(db, teacher_id, lesson_id, body.class_ids)
    return success_response(data={"assigned_class_ids": class_ids}, message="Lesson assigned successfully")


@router.patch("/lesson/{lesson_id}/status")
async def update_lesson_status(
    lesson_id: str,
    body: StatusUpdate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    lesson = lessons.set_lesson_status(db, teacher_id, lesson_id, body.status)
    return success_response(data=lesson, message=f"Lesson marked {body.status}")


@router.delete("/lesson/{lesson_id}")
async def delete_lesson(
    lesson_id: str,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    lessons.delete_lesson(db, teacher_id, lesson_id)
    return success_response(message="Lesson deleted successfully")


# ===== CLASSROOM FEED =====

@router.get("/classroom")
async def get_classroom(
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    return success_response(data=classroom.classroom_overview(db, teacher_id))


@router.get("/classroom/posts")
async def get_classroom_posts(
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    return success_response(data=classroom.classroom_posts(db, teacher_id))


@router.post("/announcement", status_code=201)
async def post_announcement(
    body: AnnouncementCreate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    announcement = classroom.post_announcement(db, teacher_id, body.class_id, body.title, body.content)
    return success_response(data=announcement, message="Announcement posted successfully")


@router.post("/activity", status_code=201)
async def post_activity(
    body: ActivityCreate,
    user: dict = Depends(require_role(["teacher"])),
):
    db = get_supabase()
    teacher_id = get_profile_id(user)
    activity = classroom.post_activity(
        db, teacher_id, body.class_id, body.title, body.description, body.due_date,
    )
    return success_response(data=activity, message="Activity posted successfully")


# ===== MEDIA =====

@router.post("/media", status_code=201)
async def upload_file(
    body: MediaUpload,
    user: dict = Depends(require_role(["teacher"])),
):
    """Upload lesson / quiz media (base64 body) to the storage bucket."""
    db = get_supabase()
    stored = upload_media(db, body.kind, body.file_name, body.file_type, body.file_data)
    return success_response(data=stored, message="File uploaded")
