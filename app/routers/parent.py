"""
Parent router — Link children by student number, view their progress.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from app.core.security import require_role
from app.core.middleware import get_profile_id
from app.core.database import get_supabase
from app.schemas.account import LinkStudent
from app.services import accounts, dashboards
from app.utils.response import success_response

router = APIRouter(prefix="/api/parent", tags=["Parent"])


@router.post("/link-student", status_code=201)
async def link_student(
    body: LinkStudent,
    user: dict = Depends(require_role(["parent"])),
):
    db = get_supabase()
    parent_id = get_profile_id(user)
    student = accounts.link_student(db, parent_id, body.student_number)
    return success_response(
        data={
            "id": student["id"],
            "student_number": student.get("student_number"),
            "grade": student.get("grade"),
        },
        message="Student linked",
    )


@router.get("/linked-students")
async def get_linked_students(
    user: dict = Depends(require_role(["parent"])),
):
    db = get_supabase()
    parent_id = get_profile_id(user)
    return success_response(data=dashboards.linked_students(db, parent_id))


@router.get("/student-progress/{student_id}")
async def get_student_progress(
    student_id: str,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    user: dict = Depends(require_role(["parent"])),
):
    db = get_supabase()
    parent_id = get_profile_id(user)
    accounts.ensure_linked(db, parent_id, student_id)
    return success_response(data=dashboards.student_progress(db, student_id, since, until))
