"""
Tests for the admin dashboard endpoints.
"""
import pytest

ADMIN_GET_PATHS = [
    "/api/admin/students",
    "/api/admin/students/search?query=2024",
    "/api/admin/students/filter",
    "/api/admin/students/1",
    "/api/admin/submissions",
    "/api/admin/submissions/filter",
    "/api/admin/analytics/summary",
    "/api/admin/analytics/issue-distribution",
    "/api/admin/analytics/severity-distribution",
    "/api/admin/reports/export-csv",
    "/api/admin/logs",
]


def _sign_in(client, headers) -> dict:
    return client.get("/api/auth/me", headers=headers).json()


def _create_profile(client, headers, student_id, course="BS Dentistry", year_level=1):
    response = client.post(
        "/api/student/profile",
        json={
            "firstName": "Test",
            "surname": "Student",
            "studentId": student_id,
            "course": course,
            "yearLevel": year_level,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text


def _analyze(client, headers, submission_id, analyzer):
    client.app.state.analyzer = analyzer
    response = client.post(f"/api/submissions/{submission_id}/analyze", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def _actions(client, headers):
    return [entry["action"] for entry in client.get("/api/admin/logs", headers=headers).json()]


class TestAccess:
    @pytest.mark.parametrize("path", ADMIN_GET_PATHS)
    def test_non_admin_is_forbidden(self, client, user_headers, path):
        _sign_in(client, user_headers)
        response = client.get(path, headers=user_headers)
        assert response.status_code == 403
        assert response.json() == {"detail": "Admin access required", "code": "FORBIDDEN"}

    @pytest.mark.parametrize("path", ADMIN_GET_PATHS)
    def test_anonymous_is_unauthorized(self, client, path):
        assert client.get(path).status_code == 401

    @pytest.mark.parametrize("path", [p for p in ADMIN_GET_PATHS if p != "/api/admin/students/1"])
    def test_admin_is_allowed(self, client, admin_headers, path):
        assert client.get(path, headers=admin_headers).status_code == 200


class TestStudents:
    @pytest.fixture
    def students(self, client, user_headers, other_user_headers):
        ana = _sign_in(client, user_headers)
        ben = _sign_in(client, other_user_headers)
        _create_profile(client, user_headers, "2024-00123", course="BS Dentistry", year_level=2)
        _create_profile(client, other_user_headers, "2023-00456", course="BS Nursing", year_level=3)
        return ana, ben

    def test_list_excludes_admins(self, client, admin_headers, students):
        rows = client.get("/api/admin/students", headers=admin_headers).json()
        assert sorted(row["studentId"] for row in rows) == ["2023-00456", "2024-00123"]
        assert all(row["email"] != "admin@example.edu" for row in rows)

    def test_students_without_profile_are_listed(self, client, admin_headers, make_headers):
        _sign_in(client, make_headers("student-3", name="No Profile"))
        rows = client.get("/api/admin/students", headers=admin_headers).json()
        assert [(row["name"], row["studentId"]) for row in rows] == [("No Profile", None)]

    def test_search_by_student_id_substring(self, client, admin_headers, students):
        rows = client.get("/api/admin/students/search?query=00123", headers=admin_headers).json()
        assert [row["name"] for row in rows] == ["Ana Reyes"]

    def test_search_treats_wildcards_literally(self, client, admin_headers, students):
        assert client.get("/api/admin/students/search?query=%25", headers=admin_headers).json() == []

    def test_filter_by_course_and_year(self, client, admin_headers, students):
        rows = client.get(
            "/api/admin/students/filter?course=BS%20Nursing&yearLevel=3", headers=admin_headers
        ).json()
        assert [row["studentId"] for row in rows] == ["2023-00456"]

        none = client.get("/api/admin/students/filter?course=BS%20Nursing&yearLevel=1", headers=admin_headers)
        assert none.json() == []

    def test_filter_is_logged(self, client, admin_headers, students):
        client.get("/api/admin/students/filter?course=BS%20Dentistry", headers=admin_headers)
        entry = client.get("/api/admin/logs", headers=admin_headers).json()[0]
        assert entry["action"] == "filter_students"
        assert entry["details"]["course"] == "BS Dentistry"
        assert entry["details"]["yearLevel"] is None
        assert "ipAddress" in entry["details"]

    def test_student_detail(self, client, admin_headers, user_headers, students, upload):
        ana, _ = students
        submission_id = upload(user_headers)["submissionId"]

        body = client.get(f"/api/admin/students/{ana['id']}", headers=admin_headers).json()
        assert body["user"]["email"] == "ana@example.edu"
        assert body["profile"]["studentId"] == "2024-00123"
        assert [s["id"] for s in body["submissions"]] == [submission_id]

        entry = client.get("/api/admin/logs", headers=admin_headers).json()[0]
        assert entry["action"] == "view_student_profile"
        assert entry["targetUserId"] == ana["id"]

    def test_missing_student(self, client, admin_headers):
        response = client.get("/api/admin/students/999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "User not found"


class TestSubmissions:
    @pytest.fixture
    def submissions(self, client, user_headers, other_user_headers, upload, fixed_analyzer, make_issue):
        analyzed = upload(user_headers, file_name="a.jpg")["submissionId"]
        pending = upload(user_headers, file_name="b.jpg")["submissionId"]
        other = upload(other_user_headers, file_name="c.jpg")["submissionId"]
        _analyze(client, user_headers, analyzed, fixed_analyzer([make_issue("cavity", "high")]))
        return {"analyzed": analyzed, "pending": pending, "other": other}

    def test_list_all_newest_first(self, client, admin_headers, submissions):
        rows = client.get("/api/admin/submissions", headers=admin_headers).json()
        assert [row["id"] for row in rows] == [submissions["other"], submissions["pending"], submissions["analyzed"]]

    def test_list_builds_image_urls_on_read(self, client, admin_headers, submissions, storage):
        storage.base_url = "http://cdn.example.edu"
        rows = client.get("/api/admin/submissions", headers=admin_headers).json()
        assert all(row["imageUrl"] == f"http://cdn.example.edu/uploads/{row['imageKey']}" for row in rows)

    def test_filter_by_status(self, client, admin_headers, submissions):
        rows = client.get("/api/admin/submissions/filter?status=completed", headers=admin_headers).json()
        assert [row["id"] for row in rows] == [submissions["analyzed"]]

    def test_filter_by_severity(self, client, admin_headers, submissions):
        high = client.get("/api/admin/submissions/filter?severity=high", headers=admin_headers).json()
        assert [row["id"] for row in high] == [submissions["analyzed"]]
        assert client.get("/api/admin/submissions/filter?severity=low", headers=admin_headers).json() == []

    def test_filter_by_owner_and_dates(self, client, admin_headers, user_headers, submissions):
        ana_id = _sign_in(client, user_headers)["id"]
        rows = client.get(f"/api/admin/submissions/filter?userId={ana_id}", headers=admin_headers).json()
        assert {row["id"] for row in rows} == {submissions["analyzed"], submissions["pending"]}

        future = client.get(
            "/api/admin/submissions/filter?startDate=2999-01-01T00:00:00", headers=admin_headers
        ).json()
        assert future == []

    @pytest.mark.parametrize("query", ["status=done", "severity=critical"])
    def test_invalid_filter_values(self, client, admin_headers, query):
        response = client.get(f"/api/admin/submissions/filter?{query}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "BAD_REQUEST"

    def test_filter_is_logged(self, client, admin_headers, submissions):
        client.get("/api/admin/submissions/filter?status=pending", headers=admin_headers)
        entry = client.get("/api/admin/logs", headers=admin_headers).json()[0]
        assert entry["action"] == "filter_submissions"
        assert entry["details"]["status"] == "pending"


class TestAnalytics:
    def test_empty_dashboard(self, client, admin_headers):
        summary = client.get("/api/admin/analytics/summary", headers=admin_headers).json()
        assert summary == {"totalStudents": 0, "totalSubmissions": 0, "analysisStats": None}
        assert client.get("/api/admin/analytics/issue-distribution", headers=admin_headers).json() == []
        assert client.get("/api/admin/analytics/severity-distribution", headers=admin_headers).json() == {
            "low": 0, "moderate": 0, "high": 0
        }

    def test_populated_dashboard(self, client, admin_headers, user_headers, upload, fixed_analyzer, make_issue):
        first = upload(user_headers)["submissionId"]
        second = upload(user_headers)["submissionId"]
        upload(user_headers)
        _analyze(client, user_headers, first, fixed_analyzer([
            make_issue("cavity", "high"), make_issue("cavity", "high"), make_issue("plaque", "moderate"),
        ]))
        _analyze(client, user_headers, second, fixed_analyzer([make_issue("plaque", "low")]))

        summary = client.get("/api/admin/analytics/summary", headers=admin_headers).json()
        assert summary["totalStudents"] == 1
        assert summary["totalSubmissions"] == 3
        assert summary["analysisStats"] == {
            "totalAnalyses": 2,
            "severityDistribution": {"low": 1, "moderate": 0, "high": 1},
            "commonIssues": [["cavity", 2], ["plaque", 2]],
        }
        assert client.get("/api/admin/analytics/issue-distribution", headers=admin_headers).json() == [
            ["cavity", 2], ["plaque", 2]
        ]

    def test_common_issues_capped_at_six(self, client, admin_headers, user_headers, upload, fixed_analyzer, make_issue):
        types = ["cavity", "plaque", "crack", "discoloration", "gum_disease", "inflammation", "tartar"]
        submission_id = upload(user_headers)["submissionId"]
        _analyze(client, user_headers, submission_id, fixed_analyzer([make_issue(t) for t in types]))

        issues = client.get("/api/admin/analytics/issue-distribution", headers=admin_headers).json()
        assert len(issues) == 6
        assert [t for t, _ in issues] == types[:6]


class TestReportsAndLogs:
    def test_export_csv(self, client, admin_headers, user_headers, upload):
        ana_id = _sign_in(client, user_headers)["id"]
        submission_id = upload(user_headers)["submissionId"]

        response = client.get("/api/admin/reports/export-csv", headers=admin_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].startswith("attachment; filename=submissions_")

        lines = response.text.strip().split("\n")
        assert lines[0] == "ID,User ID,Status,Created At"
        assert lines[1].startswith(f"{submission_id},{ana_id},pending,")
        assert _actions(client, admin_headers)[0] == "export_csv"

    def test_logs_newest_first_and_per_admin(self, client, admin_headers, make_admin):
        client.get("/api/admin/students/filter", headers=admin_headers)
        client.get("/api/admin/submissions/filter", headers=admin_headers)
        client.get("/api/admin/reports/export-csv", headers=admin_headers)

        assert _actions(client, admin_headers) == ["export_csv", "filter_submissions", "filter_students"]

        second_admin = make_admin("admin-2", email="second@example.edu")
        assert client.get("/api/admin/logs", headers=second_admin).json() == []
