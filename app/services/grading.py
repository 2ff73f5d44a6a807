"""
Quiz grader.

`grade_submission` is a pure function over a quiz's question rows and the
student's answers. `submit_quiz` wraps it with the store round-trips: quiz
lookup, the one-submission-per-student guard, persistence and the progress
trigger.

Grading steps:
1. canonicalize identifiers: question ids and submitted ids compare as
   trimmed strings, so 7, "7" and " 7 " all match question 7
2. normalize answer values: trimmed strings, booleans as "true"/"false"
3. mark correctness: open-ended is never auto-graded; every other
   type is exact string equality against the answer key
4. score: round-half-up(earned / total * 100), 0 if total is 0
"""

import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from postgrest.exceptions import APIError

from app.core.database import first_row, is_unique_violation
from app.core.errors import AlreadySubmitted, QuizNotFound
from app.services import progress
from app.services.scoring import percentage, points_value, utc_now_iso

logger = logging.getLogger(__name__)


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    OPEN_ENDED = "open-ended"
    POLL = "poll"
    SCALE = "scale"
    WORD_CLOUD = "word-cloud"
    DROP_PIN = "drop-pin"
    BRAINSTORM = "brainstorm"
    PUZZLE = "puzzle"

    @property
    def auto_graded(self) -> bool:
        # Open-ended answers wait for a manual grading pass that does not exist yet.
        return self is not QuestionType.OPEN_ENDED

    @property
    def has_options(self) -> bool:
        return self in (QuestionType.MULTIPLE_CHOICE, QuestionType.POLL, QuestionType.PUZZLE)


@dataclass
class QuestionResult:
    question_id: str
    student_answer: Any
    correct_answer: Optional[str]
    is_correct: bool
    points: int


@dataclass
class GradingResult:
    score: int
    earned_points: int
    total_points: int
    results: list[QuestionResult] = field(default_factory=list)

    def results_as_dicts(self) -> list[dict]:
        return [asdict(r) for r in self.results]


def canonical_id(value: Any) -> str:
    """Canonical string form of a loosely typed identifier."""
    if value is None:
        return ""
    return str(value).strip()


def normalize_answer(value: Any) -> Optional[str]:
    """Trimmed string form of an answer value; None when there is no answer."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value).strip()
    return text or None


def index_answers(answers: Iterable[dict]) -> dict[str, Any]:
    """Map canonical question id -> raw answer. The first answer for an id wins."""
    indexed = {}
    for entry in answers or []:
        key = canonical_id(entry.get("question_id"))
        if key and key not in indexed:
            indexed[key] = entry.get("answer")
    return indexed


def grade_question(question: dict, raw_answer: Any) -> QuestionResult:
    question_type = QuestionType(question["question_type"])
    points = points_value(question.get("points"))
    student_answer = normalize_answer(raw_answer)
    correct_answer = normalize_answer(question.get("correct_answer"))

    is_correct = (
        question_type.auto_graded
        and student_answer is not None
        and correct_answer is not None
        and student_answer == correct_answer
    )
    return QuestionResult(
        question_id=canonical_id(question["id"]),
        student_answer=raw_answer,
        correct_answer=question.get("correct_answer"),
        is_correct=is_correct,
        points=points if is_correct else 0,
    )


def grade_submission(questions: list[dict], answers: Iterable[dict]) -> GradingResult:
    """
    Grade a student's answers against a quiz's questions.
    Unanswered questions are incorrect, never an error.
    """
    indexed = index_answers(answers)
    results = []
    total_points = 0
    earned_points = 0

    for question in questions:
        result = grade_question(question, indexed.get(canonical_id(question["id"])))
        total_points += points_value(question.get("points"))
        earned_points += result.points
        results.append(result)

    return GradingResult(
        score=percentage(earned_points, total_points),
        earned_points=earned_points,
        total_points=total_points,
        results=results,
    )


# ---------------------------------------------------------------------------
# Store-backed operations
# ---------------------------------------------------------------------------
def get_quiz(db, quiz_id: str) -> dict:
    quiz = first_row(db.table("quizzes").select("*").eq("id", quiz_id).limit(1).execute())
    if not quiz:
        raise QuizNotFound()
    return quiz


def get_questions(db, quiz_id: str) -> list[dict]:
    result = (
        db.table("quiz_questions")
        .select("*")
        .eq("quiz_id", quiz_id)
        .order("order_number")
        .execute()
    )
    return result.data or []


def get_submission(db, student_id: str, quiz_id: str) -> dict | None:
    return first_row(
        db.table("quiz_submissions")
        .select("*")
        .eq("quiz_id", quiz_id)
        .eq("student_id", student_id)
        .limit(1)
        .execute()
    )


def submit_quiz(
    db,
    quiz_id: str,
    student_id: str,
    answers: list[dict],
    authorize: Optional[Callable[[Any, str, str], None]] = None,
) -> dict:
    """
    Grade and persist a student's one-time quiz submission, then refresh the
    student's progress in every class the quiz is assigned to.

    `authorize(db, student_id, quiz_id)` runs after the duplicate check, so a
    repeat submission is reported as such even once access has lapsed.

    The pre-check gives a fast answer; the UNIQUE (quiz_id, student_id)
    constraint closes the race between two simultaneous submissions.
    """
    get_quiz(db, quiz_id)

    if get_submission(db, student_id, quiz_id):
        raise AlreadySubmitted()
    if authorize is not None:
        authorize(db, student_id, quiz_id)

    grading = grade_submission(get_questions(db, quiz_id), answers)
    record = {
        "quiz_id": quiz_id,
        "student_id": student_id,
        "answers": answers,
        "score": grading.score,
        "results": grading.results_as_dicts(),
        "submitted_at": utc_now_iso(),
    }

    try:
        inserted = db.table("quiz_submissions").insert(record).execute()
    except APIError as e:
        if is_unique_violation(e):
            logger.info("Duplicate submission for quiz %s by student %s", quiz_id, student_id)
            raise AlreadySubmitted() from e
        raise

    submission = first_row(inserted) or record
    logger.info(
        "Student %s scored %d on quiz %s (%d/%d points)",
        student_id, grading.score, quiz_id, grading.earned_points, grading.total_points,
    )

    try:
        progress.recompute_for_quiz(db, student_id, quiz_id)
    except Exception:
        # The submission is stored; the reconciliation pass repairs the progress value.
        logger.exception("Progress refresh failed after quiz %s submission by %s", quiz_id, student_id)

    return {
        "id": submission.get("id"),
        "score": grading.score,
        "earned_points": grading.earned_points,
        "total_points": grading.total_points,
        "results": grading.results_as_dicts(),
        "submitted_at": submission.get("submitted_at", record["submitted_at"]),
    }
