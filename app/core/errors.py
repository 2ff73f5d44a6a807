"""
Domain error taxonomy.

Services raise these; the handlers registered in app.main turn them into the
standard error envelope so clients can tell "already done" from "not found"
from "bad input".
"""

from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "error"
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ---- Not found ----
class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Not found"


class QuizNotFound(NotFound):
    code = "quiz_not_found"
    default_message = "Quiz not found"


class LessonNotFound(NotFound):
    code = "lesson_not_found"
    default_message = "Lesson not found"


class StudentNotFound(NotFound):
    code = "student_not_found"
    default_message = "Student not found"


class ClassNotFound(NotFound):
    code = "class_not_found"
    default_message = "Class not found"


class EnrollmentNotFound(NotFound):
    code = "enrollment_not_found"
    default_message = "Enrollment not found"


class ProfileNotFound(NotFound):
    code = "profile_not_found"
    default_message = "Profile not found for this account"


# ---- Conflict ----
class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflict"


class AlreadySubmitted(Conflict):
    code = "already_submitted"
    default_message = "Quiz already submitted"


class AlreadyEnrolled(Conflict):
    code = "already_enrolled"
    default_message = "Already enrolled in this class"


class AlreadyLinked(Conflict):
    code = "already_linked"
    default_message = "Student already linked"


# ---- Bad input ----
class ValidationError(AppError):
    status_code = 422
    code = "validation_error"
    default_message = "Invalid request"


# ---- Authorization ----
class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Access denied"


class QuizNotAssigned(Forbidden):
    code = "quiz_not_assigned"
    default_message = "Quiz not assigned to your class"


# ---- Collaborators ----
class BlobStoreError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "blob_store_error"
    default_message = "Failed to upload file"
