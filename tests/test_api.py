"""
End-to-end tests through the FastAPI app with mock auth and the in-memory store.
"""

import pytest


@pytest.fixture
def school(world):
    teacher = world.user("teacher", "Tess")
    student = world.user("student", "Ana", grade=3, student_number="STU-0007")
    parent = world.user("parent", "Pat")
    world.klass("c1", teacher["id"], code="MATH3A")
    world.enroll(student["id"], "c1")
    world.quiz("quiz1", teacher["id"], [
        {"question_type": "multiple-choice", "correct_answer": "A", "options": ["A", "B", "C"]},
        {"question_type": "multiple-choice", "correct_answer": "B", "options": ["A", "B", "C"]},
    ])
    world.assign_quiz("quiz1", "c1")
    world.lesson("l1", teacher["id"])
    world.assign_lesson("l1", "c1")
    return {"teacher": teacher, "student": student, "parent": parent}


def question_ids(db, quiz_id="quiz1"):
    questions = sorted(db.find("quiz_questions", quiz_id=quiz_id), key=lambda q: q["order_number"])
    return [q["id"] for q in questions]


def test_health(client):
    assert client.get("/api/health").json()["status"] == "healthy"
    assert client.get("/").json()["name"] == "MathMates"


def test_request_id_is_echoed(client):
    response = client.get("/api/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
    assert client.get("/").headers["X-Request-ID"]


def test_missing_or_unknown_token(client):
    assert client.get("/api/student/dashboard").status_code in (401, 403)
    response = client.get("/api/student/dashboard", headers={"Authorization": "Bearer nobody"})
    assert response.status_code == 401


def test_role_guard(client, auth, school):
    response = client.get("/api/student/dashboard", headers=auth(school["teacher"]["token"]))
    assert response.status_code == 403


def test_account_without_profile(client, db, auth):
    db.insert("users", email="new@example.com", name="New", role="student")

    response = client.get("/api/student/dashboard", headers=auth("mock-new@example.com"))

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "profile_not_found"


# ---------------------------------------------------------------------------
# Quiz taking
# ---------------------------------------------------------------------------
def test_take_and_submit_quiz(client, db, world, auth, school):
    headers = auth(school["student"]["token"])
    q1, q2 = question_ids(db)

    view = client.get("/api/student/quiz/quiz1", headers=headers)
    assert view.status_code == 200
    assert all("correct_answer" not in q for q in view.json()["data"]["questions"])

    response = client.post("/api/student/quiz/quiz1/submit", headers=headers, json={
        "answers": [{"questionId": q1, "answer": "A"}, {"question_id": q2, "answer": "C"}],
    })

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["score"] == 50
    assert [r["is_correct"] for r in body["data"]["results"]] == [True, False]
    # one of two activities done
    assert world.progress_of(school["student"]["id"], "c1") == 50


def test_second_submission_conflicts(client, db, auth, school):
    headers = auth(school["student"]["token"])
    answers = {"answers": [{"question_id": qid, "answer": "A"} for qid in question_ids(db)]}

    assert client.post("/api/student/quiz/quiz1/submit", headers=headers, json=answers).status_code == 201
    response = client.post("/api/student/quiz/quiz1/submit", headers=headers, json=answers)

    assert response.status_code == 409
    assert response.json()["data"]["code"] == "already_submitted"
    assert len(db.find("quiz_submissions", quiz_id="quiz1")) == 1
    assert client.get("/api/student/quiz/quiz1", headers=headers).status_code == 409


def test_submit_unknown_quiz(client, auth, school):
    response = client.post(
        "/api/student/quiz/nope/submit", headers=auth(school["student"]["token"]), json={"answers": []},
    )
    assert response.status_code == 404
    assert response.json()["data"]["code"] == "quiz_not_found"


def test_submit_unassigned_quiz(client, world, auth, school):
    world.quiz("quiz2", school["teacher"]["id"], [{"question_type": "poll", "options": ["x"]}])

    response = client.post(
        "/api/student/quiz/quiz2/submit", headers=auth(school["student"]["token"]), json={"answers": []},
    )
    assert response.status_code == 403
    assert response.json()["data"]["code"] == "quiz_not_assigned"


def test_submit_malformed_body(client, auth, school):
    response = client.post(
        "/api/student/quiz/quiz1/submit", headers=auth(school["student"]["token"]), json={"answers": "A"},
    )
    assert response.status_code == 422
    assert response.json()["data"]["code"] == "validation_error"


def test_resubmit_after_leaving_the_class(client, db, auth, school):
    headers = auth(school["student"]["token"])
    answers = {"answers": [{"question_id": qid, "answer": "A"} for qid in question_ids(db)]}
    client.post("/api/student/quiz/quiz1/submit", headers=headers, json=answers)
    db.tables["enrollments"] = []

    response = client.post("/api/student/quiz/quiz1/submit", headers=headers, json=answers)

    assert response.status_code == 409
    assert response.json()["data"]["code"] == "already_submitted"
    assert client.get("/api/student/quiz/quiz1", headers=headers).status_code == 409


def test_submit_reads_the_quiz_once(client, db, auth, school):
    answers = {"answers": [{"question_id": qid, "answer": "A"} for qid in question_ids(db)]}

    client.post("/api/student/quiz/quiz1/submit", headers=auth(school["student"]["token"]), json=answers)

    assert db.queries.count(("quizzes", "select")) == 1


def test_student_quiz_list(client, db, auth, school):
    headers = auth(school["student"]["token"])
    client.post("/api/student/quiz/quiz1/submit", headers=headers, json={
        "answers": [{"question_id": qid, "answer": "A"} for qid in question_ids(db)],
    })

    quizzes = client.get("/api/student/quizzes", headers=headers).json()["data"]

    assert len(quizzes) == 1
    assert quizzes[0]["completed"] is True
    assert quizzes[0]["score"] == 50
    assert quizzes[0]["question_count"] == 2


# ---------------------------------------------------------------------------
# Lessons and dashboards
# ---------------------------------------------------------------------------
def test_complete_lesson_twice(client, db, world, auth, school):
    headers = auth(school["student"]["token"])

    first = client.post("/api/student/lesson/l1/complete", headers=headers, json={"stars": 2})
    second = client.post("/api/student/lesson/l1/complete", headers=headers, json={"stars": 3})

    assert first.json()["message"] == "Lesson completed successfully"
    assert second.json()["message"] == "Lesson completion updated"
    assert second.json()["data"]["stars"] == 3
    assert len(db.find("lesson_completions", lesson_id="l1")) == 1
    assert world.progress_of(school["student"]["id"], "c1") == 50


def test_lesson_stars_out_of_range(client, auth, school):
    response = client.post(
        "/api/student/lesson/l1/complete", headers=auth(school["student"]["token"]), json={"stars": 5},
    )
    assert response.status_code == 422


def test_student_dashboard(client, world, auth, school):
    world.complete(school["student"]["id"], "l1", stars=3)
    world.submission(school["student"]["id"], "quiz1", 80)

    data = client.get("/api/student/dashboard", headers=auth(school["student"]["token"])).json()["data"]

    assert data["classes"][0]["teacher"] == "Tess"
    assert data["lessons"][0]["completed"] is True
    assert data["stats"]["total_stars"] == 5
    assert data["stats"]["average_score"] == 80
    assert data["recent_quizzes"][0]["title"] == "Quiz quiz1"


def test_enroll_with_class_code(client, world, auth, school):
    other = world.user("student", "Bo", grade=3)
    headers = auth(other["token"])

    assert client.post("/api/student/enroll", headers=headers, json={"class_code": "math3a"}).status_code == 201
    response = client.post("/api/student/enroll", headers=headers, json={"class_code": "MATH3A"})
    assert response.status_code == 409
    assert response.json()["data"]["code"] == "already_enrolled"


def test_student_changes_grade(client, db, auth, school):
    headers = auth(school["student"]["token"])

    response = client.patch("/api/student/grade", headers=headers, json={"grade": 4})
    assert response.status_code == 200
    assert response.json()["data"] == {"grade": 4}

    assert client.patch("/api/student/grade", headers=headers, json={"grade": 13}).status_code == 422
    assert db.find("students", id=school["student"]["id"])[0]["grade"] == 4


# ---------------------------------------------------------------------------
# Teacher
# ---------------------------------------------------------------------------
def test_teacher_authors_and_assigns_quiz(client, db, auth, school):
    headers = auth(school["teacher"]["token"])

    created = client.post("/api/teacher/quiz", headers=headers, json={
        "title": "Shapes",
        "grade": 3,
        "timeLimit": 15,
        "status": "published",
        "questions": [
            {"question": "Sides of a square?", "type": "multiple-choice", "options": ["3", "4"], "correctAnswer": "4", "points": 2},
            {"question": "A circle has corners", "type": "true-false", "correctAnswer": False},
        ],
    })
    assert created.status_code == 201
    quiz = created.json()["data"]
    assert quiz["total_points"] == 3
    assert quiz["time_limit"] == 15

    assigned = client.post(f"/api/teacher/quiz/{quiz['id']}/assign", headers=headers, json={"classIds": ["c1"]})
    assert assigned.json()["data"]["assigned_class_ids"] == ["c1"]

    listing = client.get("/api/teacher/quizzes", headers=headers).json()["data"]
    shapes = next(q for q in listing if q["id"] == quiz["id"])
    assert shapes["status"] == "Active"
    assert shapes["total_students"] == 1
    assert shapes["questions"] == 2


def test_teacher_rejects_question_without_options(client, db, auth, school):
    response = client.post("/api/teacher/quiz", headers=auth(school["teacher"]["token"]), json={
        "title": "Poll", "grade": 3,
        "questions": [{"question": "Favourite shape?", "type": "poll"}],
    })

    assert response.status_code == 422
    assert db.find("quizzes", title="Poll") == []


def test_teacher_class_roster(client, world, auth, school):
    world.submission(school["student"]["id"], "quiz1", 90)

    roster = client.get("/api/teacher/students/c1", headers=auth(school["teacher"]["token"])).json()["data"]

    assert roster[0]["name"] == "Ana"
    assert roster[0]["student_number"] == "STU-0007"
    assert roster[0]["score"] == 90


def test_teacher_dashboard(client, world, auth, school):
    world.submission(school["student"]["id"], "quiz1", 70)

    data = client.get("/api/teacher/dashboard", headers=auth(school["teacher"]["token"])).json()["data"]

    assert data["stats"]["total_students"] == 1
    assert data["stats"]["total_classes"] == 1
    assert data["stats"]["average_score"] == 70
    assert data["classes"][0]["code"] == "MATH3A"


def test_teacher_media_upload(client, db, auth, school):
    response = client.post("/api/teacher/media", headers=auth(school["teacher"]["token"]), json={
        "kind": "quiz", "file_name": "shape.png", "file_type": "image/png", "file_data": "data:image/png;base64,aGVsbG8=",
    })

    assert response.status_code == 201
    assert response.json()["data"]["size"] == 5


def test_teacher_media_upload_failure(client, db, auth, school):
    db.storage.fail_uploads = 10

    response = client.post("/api/teacher/media", headers=auth(school["teacher"]["token"]), json={
        "file_name": "shape.png", "file_type": "image/png", "file_data": "aGVsbG8=",
    })

    assert response.status_code == 502
    assert response.json()["data"]["code"] == "blob_store_error"


def test_teacher_disenrolls_then_deletes_class(client, db, auth, school):
    headers = auth(school["teacher"]["token"])

    cleared = client.delete("/api/teacher/class/c1", headers=headers, params={"action": "disenroll"})
    assert cleared.json()["message"] == "All students disenrolled successfully"
    assert db.find("enrollments", class_id="c1") == []
    assert db.find("classes", id="c1")

    deleted = client.delete("/api/teacher/class/c1", headers=headers)
    assert deleted.json()["message"] == "Class deleted successfully"
    assert db.find("classes", id="c1") == []

    assert client.delete("/api/teacher/class/c1", headers=headers).status_code == 404


def test_other_teacher_cannot_delete_class(client, db, world, auth, school):
    other = world.user("teacher", "Otto")

    response = client.delete("/api/teacher/class/c1", headers=auth(other["token"]))

    assert response.status_code == 404
    assert response.json()["data"]["code"] == "class_not_found"
    assert db.find("enrollments", class_id="c1")


def test_teacher_lesson_assignments(client, auth, school):
    response = client.get("/api/teacher/lesson/l1/assignments", headers=auth(school["teacher"]["token"]))

    assert response.json()["data"] == {"assigned_class_ids": ["c1"]}


# ---------------------------------------------------------------------------
# Classroom feed
# ---------------------------------------------------------------------------
def test_classroom_feed(client, db, auth, school):
    headers = auth(school["teacher"]["token"])

    announced = client.post("/api/teacher/announcement", headers=headers, json={
        "classId": "c1", "title": "Quiz Friday", "content": "Revise shapes",
    })
    assert announced.status_code == 201
    assert announced.json()["data"]["class"] == "Class c1"

    activity = client.post("/api/teacher/activity", headers=headers, json={
        "classId": "c1", "title": "Shape hunt", "dueDate": "2026-05-20",
    })
    assert activity.status_code == 201
    assert activity.json()["data"]["due_date"] == "2026-05-20"

    posts = client.get("/api/teacher/classroom/posts", headers=headers).json()["data"]
    assert posts["announcements"][0]["message"] == "Revise shapes"
    assert posts["activities"][0]["pending"] == 1

    overview = client.get("/api/teacher/classroom", headers=headers).json()["data"]
    assert overview["classes"][0] == {"id": "all", "name": "All Students", "count": 1}
    assert overview["students"][0]["name"] == "Ana"


def test_announcement_needs_a_title(client, auth, school):
    response = client.post("/api/teacher/announcement", headers=auth(school["teacher"]["token"]), json={
        "classId": "c1", "title": "", "content": "Revise shapes",
    })
    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Parent
# ---------------------------------------------------------------------------
def test_parent_links_and_views_progress(client, world, auth, school):
    headers = auth(school["parent"]["token"])
    student_id = school["student"]["id"]
    world.submission(student_id, "quiz1", 80, submitted_at="2026-03-05T10:00:00+00:00")
    world.submission(student_id, "quiz2", 60, submitted_at="2026-01-05T10:00:00+00:00")
    world.db.insert(
        "lesson_completions", student_id=student_id, lesson_id="l1", stars=3,
        completed_at="2026-03-06T10:00:00+00:00",
    )

    assert client.get(f"/api/parent/student-progress/{student_id}", headers=headers).status_code == 403

    linked = client.post("/api/parent/link-student", headers=headers, json={"student_number": "stu0007"})
    assert linked.status_code == 201
    assert linked.json()["data"]["id"] == student_id

    students = client.get("/api/parent/linked-students", headers=headers).json()["data"]
    assert students[0]["name"] == "Ana"
    assert students[0]["teacher"] == "Tess"

    everything = client.get(f"/api/parent/student-progress/{student_id}", headers=headers).json()["data"]
    assert everything["stats"]["total_quizzes"] == 2
    assert everything["stats"]["average_score"] == 70
    assert everything["recent_activities"][0]["type"] == "lesson"

    march = client.get(
        f"/api/parent/student-progress/{student_id}",
        headers=headers,
        params={"since": "2026-03-01T00:00:00Z", "until": "2026-03-31T23:59:59Z"},
    ).json()["data"]
    assert march["stats"]["total_quizzes"] == 1
    assert march["stats"]["average_score"] == 80
    assert march["stats"]["average_stars"] == 3.0


def test_parent_duplicate_link(client, auth, school):
    headers = auth(school["parent"]["token"])
    client.post("/api/parent/link-student", headers=headers, json={"student_number": "STU-0007"})

    response = client.post("/api/parent/link-student", headers=headers, json={"student_number": "STU-0007"})

    assert response.status_code == 409
    assert response.json()["data"]["code"] == "already_linked"


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
def test_admin_recalculates_progress(client, world, auth, school):
    world.complete(school["student"]["id"], "l1")

    response = client.post("/api/admin/recalculate-progress", headers=auth("admin-token"))

    assert response.status_code == 200
    assert response.json()["data"] == {"total": 1, "updated": 1, "skipped": 0, "failed": 0}
    assert world.progress_of(school["student"]["id"], "c1") == 50


def test_recalculate_single_enrollment(client, world, auth, school):
    student_id = school["student"]["id"]
    world.complete(student_id, "l1")

    response = client.post(f"/api/admin/enrollments/{student_id}/c1/recalculate", headers=auth("admin-token"))
    assert response.json()["data"]["progress"] == 50

    missing = client.post(f"/api/admin/enrollments/{student_id}/c9/recalculate", headers=auth("admin-token"))
    assert missing.status_code == 404


def test_students_cannot_recalculate(client, auth, school):
    response = client.post("/api/admin/recalculate-progress", headers=auth(school["student"]["token"]))
    assert response.status_code == 403
