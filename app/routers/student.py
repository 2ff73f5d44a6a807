"""
Student router — Profile and grade, dashboard, enrollment, lesson completion, quiz taking.
All queries use the student profile id (students.id), not the user id.
"""

from fastapi import APIRouter, Depends
from app.core.security import require_role
from app.core.middleware import get_profile_id
from app.core.database import get_supabase
from app.schemas.account import EnrollRequest, GradeUpdate, StudentProfileCreate
from app.schemas.lesson import LessonComplete
from app.schemas.quiz import QuizSubmit
from app.services import accounts, classes, completions, dashboards, grading, quizzes
from app.utils.response import success_response

router = APIRouter(prefix="/api/student", tags=["Student"])


@router.post("/profile", status_code=201)
async def create_profile(
    body: StudentProfileCreate,
    user: dict = Depends(require_role(["student"])),
):
    """Create the student profile for this account and assign its student number."""
    db = get_supabase()
    student = accounts.create_student_profile(db, user["user_id"], body.grade)
    return success_response(data=student, message="Student profile created")


@router.patch("/grade")
async def update_grade(
    body: GradeUpdate,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    student_id = get_profile_id(user)
    student = accounts.update_grade(db, student_id, body.grade)
    return success_response(data={"grade": student["grade"]}, message="Grade updated successfully")


@router.get("/dashboard")
async def get_dashboard(
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    student_id = get_profile_id(user)
    return success_response(data=dashboards.student_dashboard(db, student_id))


@router.post("/enroll", status_code=201)
async def enroll(
    body: EnrollRequest,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    student_id = get_profile_id(user)
    result = classes.enroll_student(db, student_id, body.class_code)
    return success_response(data=result, message="Enrolled successfully")


# ===== LESSONS =====

@router.post("/lesson/{lesson_id}/complete")
async def complete_lesson(
    lesson_id: str,
    body: LessonComplete,
    user: dict = Depends(require_role(["student"])),
):
    """Record (or refresh) a lesson completion. Repeat calls update the same record."""
    db = get_supabase()
    student_id = get_profile_id(user)
    result = completions.complete_lesson(db, student_id, lesson_id, body.stars)
    message = "Lesson completed successfully" if result["created"] else "Lesson completion updated"
    return success_response(data=result, message=message)


# ===== QUIZZES =====

@router.get("/quizzes")
async def get_my_quizzes(
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    student_id = get_profile_id(user)
    return success_response(data=dashboards.student_quizzes(db, student_id))


@router.get("/quiz/{quiz_id}")
async def get_quiz(
    quiz_id: str,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    student_id = get_profile_id(user)
    return success_response(data=quizzes.get_student_quiz(db, student_id, quiz_id))


@router.post("/quiz/{quiz_id}/submit", status_code=201)
async def submit_quiz(
    quiz_id: str,
    body: QuizSubmit,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    student_id = get_profile_id(user)

    answers = [a.model_dump() for a in body.answers]
    result = grading.submit_quiz(
        db, quiz_id, student_id, answers, authorize=quizzes.ensure_quiz_assigned,
    )
    return success_response(data=result, message="Quiz submitted successfully")
