"""Tests for the admin back-office: dashboard, settings, logs, users and packages."""

import pytest

from app.models.admin import AdminLog
from app.models.package import QuestionPackage

from conftest import auth_headers, question_data


PACKAGE = {
    "title": "Tryout Akbar",
    "description": "Simulasi SKD lengkap",
    "duration_minutes": 100,
    "price": 75000,
    "original_price": 100000,
    "discount_percentage": 25,
    "threshold_twk": 65,
    "threshold_tiu": 80,
    "threshold_tkp": 166,
}


class TestAdminAccess:
    @pytest.mark.parametrize(
        "path",
        ["/api/v1/admin/dashboard", "/api/v1/admin/settings", "/api/v1/admin/logs", "/api/v1/admin/users/"],
    )
    def test_students_are_forbidden(self, client, student, path):
        response = client.get(path, headers=auth_headers(student))
        assert response.status_code == 403

    def test_mentors_are_forbidden(self, client, tentor):
        response = client.get("/api/v1/admin/packages/", headers=auth_headers(tentor))
        assert response.status_code == 403

    def test_anonymous_is_unauthorized(self, client):
        assert client.get("/api/v1/admin/dashboard").status_code == 401


class TestDashboard:
    def test_statistics(self, client, admin, student, tentor, make_package):
        make_package()
        make_package(title="Lama", is_active=False)

        stats = client.get("/api/v1/admin/dashboard", headers=auth_headers(admin)).json()["statistics"]

        assert stats["users"]["students"] == 1
        assert stats["users"]["mentors"] == 1
        assert stats["packages"] == {"active": 1, "inactive": 1, "questions": 2}
        assert stats["payments"] == {"completed": 0, "revenue": 0}
        assert stats["pending_withdrawals"] == 0
        assert stats["vouchers"]["total_vouchers"] == 0


class TestSettings:
    def test_settings_grouped_by_category(self, client, admin):
        grouped = client.get("/api/v1/admin/settings", headers=auth_headers(admin)).json()

        assert {"features", "chat", "payments"} <= set(grouped)
        keys = [s["key"] for s in grouped["payments"]]
        assert "mentor_commission_rate" in keys

    def test_update_is_validated_and_logged(self, client, db, admin):
        headers = auth_headers(admin)

        too_high = client.put(
            "/api/v1/admin/settings/mentor_commission_rate", json={"value": 150}, headers=headers
        )
        assert too_high.status_code == 400

        updated = client.put(
            "/api/v1/admin/settings/mentor_commission_rate", json={"value": 60}, headers=headers
        )
        assert updated.status_code == 200
        assert updated.json()["setting"]["value"] == 60

        log = db.query(AdminLog).filter(AdminLog.entity_type == "system_settings").one()
        assert log.details["old_value"] == 70
        assert log.details["new_value"] == 60

    def test_unknown_setting(self, client, admin):
        response = client.put("/api/v1/admin/settings/nope", json={"value": 1}, headers=auth_headers(admin))
        assert response.status_code == 404

    def test_logs_filter_by_entity(self, client, admin):
        headers = auth_headers(admin)
        client.put("/api/v1/admin/settings/chat_duration_minutes", json={"value": 45}, headers=headers)

        logs = client.get(
            "/api/v1/admin/logs", params={"entity_type": "system_settings"}, headers=headers
        ).json()
        assert logs["total"] == 1
        assert logs["logs"][0]["action"] == "settings_change"


class TestUsers:
    def test_search_and_role_filter(self, client, admin, student, tentor):
        headers = auth_headers(admin)

        found = client.get("/api/v1/admin/users/", params={"search": "budi"}, headers=headers).json()
        assert [u["id"] for u in found["users"]] == [student.id]

        mentors = client.get("/api/v1/admin/users/", params={"role": "tentor"}, headers=headers).json()
        assert [u["id"] for u in mentors["users"]] == [tentor.id]

    def test_deactivate_user_blocks_access(self, client, admin, student):
        response = client.put(
            f"/api/v1/admin/users/{student.id}/status", json={"is_active": False}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        me = client.get("/api/v1/auth/me", headers=auth_headers(student))
        assert me.status_code == 403

    def test_admin_cannot_deactivate_self(self, client, admin):
        response = client.put(
            f"/api/v1/admin/users/{admin.id}/status", json={"is_active": False}, headers=auth_headers(admin)
        )
        assert response.status_code == 400


class TestAdminPackages:
    def test_package_lifecycle(self, client, db, admin):
        headers = auth_headers(admin)

        created = client.post("/api/v1/admin/packages/", json=PACKAGE, headers=headers)
        assert created.status_code == 201
        package_id = created.json()["id"]

        for index in (1, 2):
            response = client.post(
                f"/api/v1/admin/packages/{package_id}/questions",
                json=question_data(order_index=index),
                headers=headers,
            )
            assert response.status_code == 201

        updated = client.put(
            f"/api/v1/admin/packages/{package_id}", json={"price": 50000}, headers=headers
        )
        assert updated.json()["price"] == 50000

        detail = client.get(f"/api/v1/admin/packages/{package_id}", headers=headers).json()
        assert detail["question_count"] == 2

        searched = client.get("/api/v1/admin/packages/", params={"search": "akbar"}, headers=headers).json()
        assert searched["total"] == 1

        stats = client.get(f"/api/v1/admin/packages/{package_id}/stats", headers=headers).json()
        assert stats["total_buyers"] == 0

        deleted = client.delete(f"/api/v1/admin/packages/{package_id}", headers=headers)
        assert deleted.status_code == 200
        assert db.query(QuestionPackage).count() == 0

    def test_invalid_question_answer(self, client, admin, make_package):
        package = make_package()
        payload = dict(question_data(), correct_answer="F")
        response = client.post(
            f"/api/v1/admin/packages/{package.id}/questions", json=payload, headers=auth_headers(admin)
        )
        assert response.status_code == 422

    def test_null_fields_leave_package_unchanged(self, client, admin, make_package):
        package = make_package(title="Tryout Tetap", price=30000, requires_payment=True)
        headers = auth_headers(admin)

        response = client.put(
            f"/api/v1/admin/packages/{package.id}",
            json={"title": None, "price": None, "is_active": None, "duration_minutes": 90},
            headers=headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Tryout Tetap"
        assert body["price"] == 30000
        assert body["is_active"] is True
        assert body["duration_minutes"] == 90

    def test_null_fields_leave_question_unchanged(self, client, admin, make_package):
        package = make_package()
        question_id = package.questions[0].id
        url = f"/api/v1/admin/packages/{package.id}/questions/{question_id}"

        response = client.put(
            url,
            json={"question_text": None, "correct_answer": None, "order_index": None, "explanation": None},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["question_text"] == "Question 1"
        assert body["correct_answer"] == "A"
        assert body["order_index"] == 1
        assert body["explanation"] is None

    @pytest.mark.parametrize("payload", [{"title": "   "}, {"description": "\t"}])
    def test_blank_package_text_is_rejected(self, client, admin, make_package, payload):
        package = make_package(title="Tryout Asli")
        response = client.put(
            f"/api/v1/admin/packages/{package.id}", json=payload, headers=auth_headers(admin)
        )
        assert response.status_code == 422

        detail = client.get(f"/api/v1/admin/packages/{package.id}", headers=auth_headers(admin)).json()
        assert detail["title"] == "Tryout Asli"

    def test_blank_question_text_is_rejected(self, client, admin, make_package):
        package = make_package()
        headers = auth_headers(admin)
        base = f"/api/v1/admin/packages/{package.id}/questions"

        updated = client.put(f"{base}/{package.questions[0].id}", json={"question_text": "  "}, headers=headers)
        assert updated.status_code == 422

        created = client.post(base, json=dict(question_data(), question_text=" "), headers=headers)
        assert created.status_code == 422

    def test_new_question_goes_after_highest_position(self, client, admin, make_package):
        package = make_package(questions=[question_data(order_index=10), question_data(order_index=3)])
        headers = auth_headers(admin)
        base = f"/api/v1/admin/packages/{package.id}/questions"

        appended = client.post(base, json=question_data(order_index=None), headers=headers)
        assert appended.status_code == 201
        assert appended.json()["order_index"] == 11

        first = client.post(base, json=question_data(order_index=0), headers=headers)
        assert first.json()["order_index"] == 0

        detail = client.get(f"/api/v1/admin/packages/{package.id}", headers=headers).json()
        assert [q["order_index"] for q in detail["questions"]] == [0, 3, 10, 11]

    def test_first_question_of_empty_package(self, client, admin, make_package):
        package = make_package(questions=[])
        response = client.post(
            f"/api/v1/admin/packages/{package.id}/questions",
            json=question_data(order_index=None),
            headers=auth_headers(admin),
        )
        assert response.json()["order_index"] == 1

    def test_delete_blocked_while_session_in_progress(self, client, admin, student, make_package):
        package = make_package()
        client.post("/api/v1/tryouts/start", json={"package_id": package.id}, headers=auth_headers(student))

        response = client.delete(f"/api/v1/admin/packages/{package.id}", headers=auth_headers(admin))
        assert response.status_code == 400

    def test_payments_listing(self, client, admin):
        listing = client.get("/api/v1/admin/payments/", headers=auth_headers(admin)).json()
        assert listing == {"payments": [], "total": 0, "skip": 0, "limit": 50, "total_revenue": 0}
