"""
Admin router — Progress reconciliation.

recalculate-progress rebuilds every enrollment's progress from completion and
submission records. It is safe to run at any time: unchanged enrollments are
skipped and a failing enrollment is counted, not fatal.
"""

from fastapi import APIRouter, Depends
from app.core.security import require_role
from app.core.database import get_supabase
from app.services import progress
from app.utils.response import success_response

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/recalculate-progress")
async def recalculate_progress(
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    summary = progress.recompute_all(db)
    return success_response(data=summary.as_dict(), message="Progress recalculation completed")


@router.post("/enrollments/{student_id}/{class_id}/recalculate")
async def recalculate_enrollment(
    student_id: str,
    class_id: str,
    user: dict = Depends(require_role(["admin", "teacher"])),
):
    db = get_supabase()
    value = progress.recompute_enrollment_progress(db, student_id, class_id)
    return success_response(
        data={"student_id": student_id, "class_id": class_id, "progress": value},
        message="Enrollment progress recalculated",
    )
