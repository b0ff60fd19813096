"""
Tests for the reviewer and student HTTP routes
Auth dependencies and the store are overridden; no database or session needed
"""
import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from conftest import F1, F2, F3
from models.user_models import User
from routes import assignment_routes, student_routes
from services.exceptions import ConcurrentUpdateError
from utils.dependencies import get_store, require_reviewer, require_student

STUDENT = User(user_id="u-stu", email="kim@student", name="Kim", role="student",
               organization="org-1", student_id="stu-1")
TEACHER = User(user_id="u-t", email="lee@school", name="Lee", role="teacher", organization="org-1")
OUTSIDER = User(user_id="u-o", email="park@other", name="Park", role="org_admin", organization="org-2")
ADMIN = User(user_id="u-a", email="admin@hq", name="Admin", role="admin")


def _build_client(store, student=STUDENT, reviewer=TEACHER) -> TestClient:
    app = FastAPI()
    app.include_router(assignment_routes.router, prefix="/api")
    app.include_router(student_routes.router, prefix="/api")
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[require_student] = lambda: student
    app.dependency_overrides[require_reviewer] = lambda: reviewer
    return TestClient(app)


@pytest.fixture
def client(store):
    return _build_client(store)


class TestStudentRoutes:

    def test_batch_submit(self, client):
        resp = client.post("/api/student/assignments/hw-1/submit", json={
            "images": [{"pHash": F1}, {"fingerprint": F2}, {"pHash": None}]
        })

        assert resp.status_code == 200
        data = resp.json()
        assert [r["pageNumber"] for r in data["results"]] == [1, 2, None]
        assert data["summary"]["notMatched"] == 1
        assert data["summary"]["totalPassedCount"] == 2

    def test_empty_batch_rejected(self, client):
        resp = client.post("/api/student/assignments/hw-1/submit", json={"images": []})
        assert resp.status_code == 422

    def test_single_page_submit(self, client):
        resp = client.post("/api/student/assignments/hw-1/pages/3", json={"pHash": F3})

        assert resp.status_code == 200
        data = resp.json()
        assert data["savedPageNumber"] == 3
        assert data["totalSubmitted"] == 1
        assert data["passedCount"] == 0
        assert data["totalPages"] == 3

    def test_single_page_out_of_range(self, client):
        resp = client.post("/api/student/assignments/hw-1/pages/7", json={"pHash": F3})
        assert resp.status_code == 422

    def test_inactive_assignment(self, store, client):
        store.add_assignment("hw-draft", [F1], status="draft")
        resp = client.post("/api/student/assignments/hw-draft/pages/1", json={"pHash": F1})
        assert resp.status_code == 400

    def test_other_organization(self, store, client):
        store.add_assignment("hw-other", [F1], organization="org-2")
        resp = client.post("/api/student/assignments/hw-other/submit", json={"images": [{"pHash": F1}]})
        assert resp.status_code == 403

    def test_unknown_assignment(self, client):
        resp = client.get("/api/student/assignments/missing")
        assert resp.status_code == 404

    def test_detail_view(self, client):
        client.post("/api/student/assignments/hw-1/pages/1", json={"pHash": F1})

        resp = client.get("/api/student/assignments/hw-1")

        assert resp.status_code == 200
        statuses = [p["status"] for p in resp.json()["pages"]]
        assert statuses == ["pending_review", "not_submitted", "not_submitted"]

    def test_concurrent_update_conflict(self, store, client):
        async def conflicting_save(submission):
            raise ConcurrentUpdateError("Submission was modified by another request")

        store.save_submission = conflicting_save
        resp = client.post("/api/student/assignments/hw-1/pages/1", json={"pHash": F1})
        assert resp.status_code == 409


class TestReviewerRoutes:

    def test_verdict_then_recheck(self, client):
        client.post("/api/student/assignments/hw-1/pages/2", json={"pHash": F1})

        resp = client.put("/api/assignments/hw-1/submissions/stu-1/pages/2", json={"passed": True})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Page approved"
        assert resp.json()["passedCount"] == 1

        resp = client.post("/api/assignments/hw-1/submissions/stu-1/check-similarity")
        assert resp.status_code == 200
        data = resp.json()
        assert data["results"] == [
            {"pageNumber": 2, "similarity": None, "passed": True, "manuallyReviewed": True}
        ]
        assert data["passedCount"] == 1

    def test_verdict_must_be_boolean(self, client):
        client.post("/api/student/assignments/hw-1/pages/2", json={"pHash": F1})
        resp = client.put("/api/assignments/hw-1/submissions/stu-1/pages/2", json={"passed": "yes"})
        assert resp.status_code == 422

    def test_verdict_without_submission(self, client):
        resp = client.put("/api/assignments/hw-1/submissions/stu-9/pages/1", json={"passed": False})
        assert resp.status_code == 404

    def test_recheck_without_submission(self, client):
        resp = client.post("/api/assignments/hw-1/submissions/stu-9/check-similarity")
        assert resp.status_code == 404

    def test_other_organization_denied(self, store):
        client = _build_client(store, reviewer=OUTSIDER)
        resp = client.get("/api/assignments/hw-1/submissions")
        assert resp.status_code == 403

    def test_admin_sees_every_organization(self, store):
        client = _build_client(store, reviewer=ADMIN)
        resp = client.get("/api/assignments/hw-1/submissions")
        assert resp.status_code == 200
        assert resp.json()["submissions"] == []

    def test_comment(self, client):
        resp = client.put("/api/assignments/hw-1/submissions/stu-1/comment", json={"comment": "Good"})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Comment added successfully"
        assert resp.json()["commentedBy"] == "lee@school"

        resp = client.put("/api/assignments/hw-1/submissions/stu-1/comment", json={"comment": None})
        assert resp.json()["message"] == "Comment removed"

    def test_comment_key_required(self, client):
        resp = client.put("/api/assignments/hw-1/submissions/stu-1/comment", json={})
        assert resp.status_code == 422

    def test_register_pages(self, store, client):
        resp = client.put("/api/assignments/hw-1/pages", json={
            "pages": [{"pageNumber": 1, "pHash": F1}, {"pageNumber": 2, "thumbnailKey": "thumbs/2.jpg"}]
        })

        assert resp.status_code == 200
        assert resp.json()["totalPages"] == 2
        assert store.assignments["hw-1"]["totalPages"] == 2


class TestRoleGuards:

    @pytest.mark.asyncio
    async def test_student_cannot_review(self):
        with pytest.raises(HTTPException) as exc:
            await require_reviewer(STUDENT)
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_teacher_cannot_submit(self):
        with pytest.raises(HTTPException) as exc:
            await require_student(TEACHER)
        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_student_without_id(self):
        with pytest.raises(HTTPException) as exc:
            await require_student(STUDENT.model_copy(update={"student_id": None}))
        assert exc.value.status_code == 400
