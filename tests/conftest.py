"""
Shared fixtures.

`FakeSupabase` is an in-memory stand-in for the slice of the supabase-py
client the app uses: table queries (select / insert / update / delete with
eq, in_, gt, gte, order, limit, range), one level of PostgREST embedding per
relation (nested as deep as needed), UNIQUE constraints that raise
postgrest's APIError with SQLSTATE 23505, cascade deletes, the student
number RPC and a storage bucket.
"""

import copy
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from app.core import database
from app.core.config import settings

UNIQUE_KEYS = {
    "quiz_submissions": [("quiz_id", "student_id")],
    "lesson_completions": [("student_id", "lesson_id")],
    "enrollments": [("student_id", "class_id")],
    "quiz_assignments": [("quiz_id", "class_id")],
    "lesson_assignments": [("lesson_id", "class_id")],
    "parent_student_links": [("parent_id", "student_id")],
    "activity_submissions": [("activity_id", "student_id")],
    "classes": [("class_code",)],
    "students": [("user_id",), ("student_number",)],
    "users": [("email",)],
}

# table -> column other tables use to reference it
FOREIGN_KEYS = {
    "users": "user_id",
    "students": "student_id",
    "teachers": "teacher_id",
    "parents": "parent_id",
    "classes": "class_id",
    "lessons": "lesson_id",
    "quizzes": "quiz_id",
    "activities": "activity_id",
}

CASCADES = {
    "quizzes": ["quiz_questions", "quiz_assignments", "quiz_submissions"],
    "lessons": ["lesson_files", "lesson_assignments", "lesson_completions"],
    "classes": ["enrollments", "quiz_assignments", "lesson_assignments", "announcements", "activities"],
    "activities": ["activity_submissions"],
}


def _split_top_level(text: str) -> list[str]:
    parts, depth, current = [], 0, ""
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append(current.strip())
            current = ""
        else:
            current += ch
    if current.strip():
        parts.append(current.strip())
    return parts


def _embeds(columns: str) -> list[tuple[str, str]]:
    result = []
    for item in _split_top_level(columns or "*"):
        if "(" in item and item.endswith(")"):
            name, inner = item.split("(", 1)
            result.append((name.strip(), inner[:-1]))
    return result


class FakeResult:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.count = None
        self.payload = None
        self.filters = []
        self.eq_values = {}
        self._order = []
        self._limit = None
        self._range = None

    # ---- operations ----
    def select(self, columns="*", count=None):
        self.op = "select"
        self.columns = columns
        self.count = count
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    # ---- filters / modifiers ----
    def eq(self, column, value):
        self.eq_values[column] = value
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column, value):
        self.filters.append(
            lambda row: row.get(column) is not None and str(row.get(column)) >= str(value)
        )
        return self

    def gt(self, column, value):
        self.filters.append(
            lambda row: row.get(column) is not None and str(row.get(column)) > str(value)
        )
        return self

    def order(self, column, desc=False):
        self._order.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    # ---- execution ----
    def _matching(self):
        return [r for r in self.db.rows(self.table) if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.queries.append((self.table, self.op))
        for table, op, predicate in self.db.failures:
            if table == self.table and op == self.op and predicate(self):
                raise RuntimeError(f"injected failure on {table}.{op}")
        return getattr(self, f"_execute_{self.op}")()

    def _execute_select(self):
        rows = self._matching()
        for column, desc in reversed(self._order):
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        total = len(rows)
        if self._range is not None:
            start, end = self._range
            rows = rows[start:end + 1]
        if self._limit is not None:
            rows = rows[: self._limit]
        data = [self.db.project(self.table, r, self.columns) for r in rows]
        return FakeResult(data, count=total if self.count else None)

    def _execute_insert(self):
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        new_rows = []
        for item in payload:
            row = copy.deepcopy(item)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            self.db.check_unique(self.table, row, new_rows)
            new_rows.append(row)
        self.db.rows(self.table).extend(new_rows)
        return FakeResult(copy.deepcopy(new_rows))

    def _execute_update(self):
        rows = self._matching()
        for row in rows:
            row.update(copy.deepcopy(self.payload))
        return FakeResult(copy.deepcopy(rows))

    def _execute_delete(self):
        rows = self._matching()
        for row in rows:
            self.db.remove(self.table, row)
        return FakeResult(copy.deepcopy(rows))


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        if self.name != "get_next_student_number":
            raise APIError({"code": "42883", "message": f"function {self.name} does not exist"})
        self.db.sequence += 1
        return FakeResult(self.db.sequence)


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, content, options=None):
        if self.storage.fail_uploads > 0:
            self.storage.fail_uploads -= 1
            raise RuntimeError("fetch failed")
        self.storage.objects[(self.name, path)] = content
        return {"path": path}

    def get_public_url(self, path):
        return f"https://storage.test/{self.name}/{path}"

    def remove(self, paths):
        for path in paths:
            self.storage.objects.pop((self.name, path), None)
        return paths


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.fail_uploads = 0

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.failures = []
        self.queries = []
        self.sequence = 0
        self.storage = FakeStorage()

    # ---- client surface ----
    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params or {})

    # ---- helpers ----
    def rows(self, table):
        return self.tables.setdefault(table, [])

    def fail_when(self, table, op, predicate=lambda query: True):
        self.failures.append((table, op, predicate))

    def check_unique(self, table, row, pending):
        for key in UNIQUE_KEYS.get(table, []):
            if any(row.get(col) is None for col in key):
                continue
            for other in self.rows(table) + pending:
                if all(other.get(col) == row.get(col) for col in key):
                    raise APIError({
                        "code": "23505",
                        "message": f"duplicate key value violates unique constraint on {table} {key}",
                        "details": None,
                        "hint": None,
                    })

    def remove(self, table, row):
        self.tables[table] = [r for r in self.rows(table) if r is not row]
        fk = FOREIGN_KEYS.get(table)
        for child in CASCADES.get(table, []):
            for child_row in [r for r in self.rows(child) if r.get(fk) == row["id"]]:
                self.remove(child, child_row)

    def project(self, table, row, columns):
        result = copy.deepcopy(row)
        for name, inner in _embeds(columns):
            fk = FOREIGN_KEYS.get(name)
            if fk and fk in row:
                target = next((r for r in self.rows(name) if r["id"] == row[fk]), None)
                result[name] = self.project(name, target, inner) if target else None
            else:
                parent_fk = FOREIGN_KEYS[table]
                result[name] = [
                    self.project(name, r, inner)
                    for r in self.rows(name)
                    if r.get(parent_fk) == row["id"]
                ]
        return result

    def insert(self, table, **row):
        return self.table(table).insert(row).execute().data[0]

    def find(self, table, **match):
        return [r for r in self.rows(table) if all(r.get(k) == v for k, v in match.items())]


class World:
    """Builder for the records most tests need."""

    def __init__(self, db: FakeSupabase):
        self.db = db

    def user(self, role, name, profile_id=None, **profile):
        email = f"{name.lower().replace(' ', '.')}@example.com"
        user = self.db.insert("users", email=email, name=name, role=role)
        table = {"student": "students", "teacher": "teachers", "parent": "parents"}[role]
        row = self.db.insert(table, id=profile_id or f"{role}-{name.lower()}", user_id=user["id"], **profile)
        return {"token": f"mock-{email}", "user": user, "profile": row, "id": row["id"]}

    def klass(self, class_id, teacher_id, grade=3, code=None):
        return self.db.insert(
            "classes", id=class_id, teacher_id=teacher_id, class_code=code or class_id.upper(),
            class_name=f"Class {class_id}", subject="Math", grade=grade,
        )

    def quiz(self, quiz_id, teacher_id, questions, status="published"):
        quiz = self.db.insert(
            "quizzes", id=quiz_id, teacher_id=teacher_id, title=f"Quiz {quiz_id}", grade=3,
            status=status, total_points=0,
        )
        total = 0
        for i, q in enumerate(questions, start=1):
            row = {"quiz_id": quiz_id, "order_number": i, "question_text": f"Q{i}", **q}
            self.db.insert("quiz_questions", **row)
            total += 1 if row.get("points") is None else row["points"]
        quiz["total_points"] = total
        self.db.find("quizzes", id=quiz_id)[0]["total_points"] = total
        return quiz

    def lesson(self, lesson_id, teacher_id):
        return self.db.insert("lessons", id=lesson_id, teacher_id=teacher_id, title=f"Lesson {lesson_id}", grade=3)

    def assign_quiz(self, quiz_id, class_id, due_date=None):
        return self.db.insert("quiz_assignments", quiz_id=quiz_id, class_id=class_id, due_date=due_date)

    def assign_lesson(self, lesson_id, class_id):
        return self.db.insert("lesson_assignments", lesson_id=lesson_id, class_id=class_id)

    def enroll(self, student_id, class_id, progress=0):
        return self.db.insert("enrollments", student_id=student_id, class_id=class_id, progress=progress)

    def complete(self, student_id, lesson_id, stars=0):
        return self.db.insert("lesson_completions", student_id=student_id, lesson_id=lesson_id, stars=stars)

    def submission(self, student_id, quiz_id, score, submitted_at=None):
        return self.db.insert(
            "quiz_submissions", student_id=student_id, quiz_id=quiz_id, answers=[], score=score,
            submitted_at=submitted_at or datetime.now(timezone.utc).isoformat(),
        )

    def progress_of(self, student_id, class_id):
        return self.db.find("enrollments", student_id=student_id, class_id=class_id)[0]["progress"]


@pytest.fixture
def db(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(database, "_supabase_client", fake)
    monkeypatch.setattr(settings, "AUTH_MODE", "mock")
    monkeypatch.setattr(settings, "UPLOAD_RETRY_DELAY", 0)
    return fake


@pytest.fixture
def world(db):
    return World(db)


@pytest.fixture
def client(db):
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth():
    def headers(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    return headers
