"""Tests for the tryout session engine: timing, resume, scoring and review."""

from datetime import timedelta

import pytest

from app.core.exceptions import (
    BusinessRuleError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from app.models.tryout import QuestionTagStats, SessionStatus, TryoutSession, UserAnswer
from app.services import tryout_engine
from app.utils.dates import utcnow

from conftest import auth_headers, question_data


@pytest.fixture
def skd_package(make_package):
    return make_package(
        title="SKD Lengkap",
        questions=[
            question_data("TWK", "Pancasila", correct="A", order_index=1),
            question_data("TIU", "Numerik", correct="B", order_index=2),
            question_data(
                "TKP", "Pelayanan", correct="E",
                points={"A": 1, "B": 2, "C": 3, "D": 4, "E": 5}, order_index=3,
            ),
            question_data(None, None, correct="C", order_index=4),
        ],
        threshold_twk=5,
        threshold_tiu=5,
        threshold_tkp=4,
    )


def _question_ids(package):
    return [q.id for q in package.questions]


class TestFormatTime:
    def test_under_an_hour(self):
        assert tryout_engine.format_time(59) == "0:59"
        assert tryout_engine.format_time(605) == "10:05"

    def test_hours(self):
        assert tryout_engine.format_time(3600) == "1:00:00"
        assert tryout_engine.format_time(5400) == "1:30:00"

    def test_negative_is_zero(self):
        assert tryout_engine.format_time(-5) == "0:00"


class TestStartAndResume:
    def test_new_session_gets_full_duration(self, db, student, skd_package):
        now = utcnow()
        view = tryout_engine.start_or_resume(db, student, skd_package.id, now=now)

        assert view["resumed"] is False
        assert view["session"]["status"] == SessionStatus.IN_PROGRESS.value
        assert view["time_left_seconds"] == 100 * 60
        assert view["current_question_index"] == 0
        assert view["answers"] == {}
        assert len(view["questions"]) == 4
        assert "correct_answer" not in view["questions"][0]

    def test_resume_returns_same_session_with_answers(self, db, student, skd_package):
        t0 = utcnow()
        first = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0)
        session_id = first["session"]["id"]
        q1 = _question_ids(skd_package)[0]
        tryout_engine.save_answer(db, student, session_id, q1, "a", 30, now=t0 + timedelta(minutes=1))

        resumed = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0 + timedelta(minutes=10))

        assert resumed["resumed"] is True
        assert resumed["session"]["id"] == session_id
        assert resumed["answers"] == {str(q1): "A"}
        assert resumed["current_question_index"] == 1
        assert resumed["time_left_seconds"] == 90 * 60
        assert resumed["time_left_display"] == "1:30:00"
        assert db.query(TryoutSession).count() == 1

    def test_index_is_zero_when_everything_is_answered(self, db, student, skd_package):
        t0 = utcnow()
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0)["session"]["id"]
        for qid in _question_ids(skd_package):
            tryout_engine.save_answer(db, student, session_id, qid, "B", now=t0)

        state = tryout_engine.get_state(db, student, session_id, now=t0 + timedelta(seconds=5))
        assert state["current_question_index"] == 0
        assert state["answered_count"] == 4

    def test_resume_after_time_is_up_auto_submits(self, db, student, skd_package):
        t0 = utcnow()
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0)["session"]["id"]

        view = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0 + timedelta(minutes=101))

        assert view["session"]["id"] == session_id
        assert view["session"]["status"] == SessionStatus.COMPLETED.value
        assert view["session"]["auto_submitted"] is True
        assert view["time_left_seconds"] == 0
        assert view["result"]["unanswered"] == 4

    def test_paid_package_requires_access(self, db, student, make_package):
        package = make_package(price=50000, requires_payment=True)
        with pytest.raises(PermissionDeniedError):
            tryout_engine.start_or_resume(db, student, package.id)

    def test_package_without_questions_cannot_start(self, db, student, make_package):
        package = make_package(questions=[])
        with pytest.raises(BusinessRuleError):
            tryout_engine.start_or_resume(db, student, package.id)

    def test_inactive_package_is_hidden(self, db, student, make_package):
        package = make_package(is_active=False)
        with pytest.raises(NotFoundError):
            tryout_engine.start_or_resume(db, student, package.id)


class TestSaveAnswer:
    def test_answer_is_upserted(self, db, student, skd_package):
        t0 = utcnow()
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0)["session"]["id"]
        q1 = _question_ids(skd_package)[0]

        tryout_engine.save_answer(db, student, session_id, q1, "B", 10, now=t0)
        result = tryout_engine.save_answer(db, student, session_id, q1, "a", 20, now=t0)

        rows = db.query(UserAnswer).filter(UserAnswer.session_id == session_id).all()
        assert len(rows) == 1
        assert rows[0].user_answer == "A"
        assert rows[0].awarded_points == 5
        assert rows[0].is_correct is True
        assert result["answer"] == "A"
        assert result["time_spent_seconds"] == 20

    def test_invalid_option_is_rejected(self, db, student, skd_package):
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id)["session"]["id"]
        with pytest.raises(BusinessRuleError):
            tryout_engine.save_answer(db, student, session_id, _question_ids(skd_package)[0], "F")

    def test_question_from_another_package(self, db, student, skd_package, make_package):
        other = make_package(title="Lain")
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id)["session"]["id"]
        with pytest.raises(NotFoundError):
            tryout_engine.save_answer(db, student, session_id, other.questions[0].id, "A")

    def test_only_owner_can_answer(self, db, student, make_user, skd_package):
        intruder = make_user()
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id)["session"]["id"]
        with pytest.raises(PermissionDeniedError):
            tryout_engine.save_answer(db, intruder, session_id, _question_ids(skd_package)[0], "A")

    def test_answer_after_finish_conflicts(self, db, student, skd_package):
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id)["session"]["id"]
        tryout_engine.finish(db, student, session_id)
        with pytest.raises(InvalidStateError):
            tryout_engine.save_answer(db, student, session_id, _question_ids(skd_package)[0], "A")

    def test_answer_after_time_is_up_submits_and_conflicts(self, db, student, skd_package):
        t0 = utcnow()
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0)["session"]["id"]

        with pytest.raises(InvalidStateError):
            tryout_engine.save_answer(
                db, student, session_id, _question_ids(skd_package)[0], "A",
                now=t0 + timedelta(minutes=100, seconds=1),
            )

        session = db.query(TryoutSession).filter(TryoutSession.id == session_id).one()
        assert session.status == SessionStatus.COMPLETED.value
        assert session.auto_submitted is True
        assert db.query(UserAnswer).filter(UserAnswer.session_id == session_id).count() == 0


class TestFinishAndScoring:
    def _answer_and_finish(self, db, student, package):
        t0 = utcnow()
        session_id = tryout_engine.start_or_resume(db, student, package.id, now=t0)["session"]["id"]
        q_twk, q_tiu, q_tkp, _q_untagged = _question_ids(package)
        tryout_engine.save_answer(db, student, session_id, q_twk, "A", 40, now=t0)
        tryout_engine.save_answer(db, student, session_id, q_tiu, "C", 20, now=t0)
        tryout_engine.save_answer(db, student, session_id, q_tkp, "D", 30, now=t0)
        return session_id, tryout_engine.finish(db, student, session_id, now=t0 + timedelta(minutes=5))

    def test_scores_and_pass_flags(self, db, student, skd_package):
        _, result = self._answer_and_finish(db, student, skd_package)

        assert result["total_score"] == 9
        assert result["correct_answers"] == 1
        assert result["wrong_answers"] == 2
        assert result["unanswered"] == 1
        assert result["category_points"] == {"TWK": 5, "TIU": 0, "TKP": 4}
        assert result["passed"] == {"TWK": True, "TIU": False, "TKP": True}
        assert result["passed_overall"] is False
        assert result["auto_submitted"] is False

    def test_zero_thresholds_pass(self, db, student, make_package):
        package = make_package(questions=[question_data("TWK", "Nasionalisme", order_index=1)])
        session_id = tryout_engine.start_or_resume(db, student, package.id)["session"]["id"]
        result = tryout_engine.finish(db, student, session_id)
        assert result["passed_overall"] is True

    def test_tag_stats_per_category(self, db, student, skd_package):
        session_id, _ = self._answer_and_finish(db, student, skd_package)

        rows = {
            (r.main_category, r.sub_category): r
            for r in db.query(QuestionTagStats).filter(QuestionTagStats.session_id == session_id).all()
        }
        assert set(rows) == {
            ("TWK", "Pancasila"), ("TIU", "Numerik"), ("TKP", "Pelayanan"), ("Non Tag", "Umum"),
        }
        twk = rows[("TWK", "Pancasila")]
        assert (twk.correct_answers, twk.total_points, twk.total_time_seconds) == (1, 5, 40)
        assert twk.average_time_seconds == 40
        untagged = rows[("Non Tag", "Umum")]
        assert (untagged.unanswered, untagged.total_points) == (1, 0)

    def test_finish_is_idempotent(self, db, student, skd_package):
        session_id, first = self._answer_and_finish(db, student, skd_package)
        second = tryout_engine.finish(db, student, session_id, now=utcnow() + timedelta(hours=1))

        assert second["total_score"] == first["total_score"]
        assert second["end_time"] == first["end_time"]
        assert db.query(QuestionTagStats).filter(QuestionTagStats.session_id == session_id).count() == 4

    def test_review_requires_completion(self, db, student, skd_package):
        session_id = tryout_engine.start_or_resume(db, student, skd_package.id)["session"]["id"]
        with pytest.raises(InvalidStateError):
            tryout_engine.review(db, student, session_id)

    def test_review_statuses(self, db, student, skd_package):
        session_id, _ = self._answer_and_finish(db, student, skd_package)
        review = tryout_engine.review(db, student, session_id)

        statuses = [item["status"] for item in review["questions"]]
        assert statuses == ["correct", "wrong", "wrong", "unanswered"]
        first = review["questions"][0]
        assert first["number"] == 1
        assert first["correct_answer"] == "A"
        assert first["user_answer"] == "A"
        assert first["awarded_points"] == 5
        assert first["option_points"]["A"] == 5
        assert first["explanation"] == "Because."

    def test_admin_can_review_any_session(self, db, student, admin, skd_package):
        session_id, _ = self._answer_and_finish(db, student, skd_package)
        review = tryout_engine.review(db, admin, session_id)
        assert review["result"]["session_id"] == session_id


class TestHistory:
    def test_history_stats(self, db, student, skd_package):
        t0 = utcnow()
        first = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0)["session"]["id"]
        tryout_engine.save_answer(db, student, first, _question_ids(skd_package)[0], "A", now=t0)
        tryout_engine.finish(db, student, first, now=t0 + timedelta(minutes=1))

        second = tryout_engine.start_or_resume(db, student, skd_package.id, now=t0 + timedelta(minutes=2))["session"]["id"]
        tryout_engine.finish(db, student, second, now=t0 + timedelta(minutes=3))

        history = tryout_engine.history(db, student)

        assert [s["id"] for s in history["sessions"]] == [second, first]
        assert history["sessions"][1]["category_points"]["TWK"] == 5
        assert history["sessions"][0]["package_title"] == "SKD Lengkap"
        assert history["stats"] == {
            "total_tryouts": 2,
            "average_score": 2,
            "highest_score": 5,
            "accuracy": 12,
        }

    def test_empty_history(self, db, student):
        history = tryout_engine.history(db, student)
        assert history["sessions"] == []
        assert history["stats"]["total_tryouts"] == 0


class TestTryoutEndpoints:
    def test_full_flow(self, client, student, skd_package):
        headers = auth_headers(student)

        started = client.post("/api/v1/tryouts/start", json={"package_id": skd_package.id}, headers=headers)
        assert started.status_code == 200
        session_id = started.json()["session"]["id"]
        question_id = started.json()["questions"][0]["id"]

        saved = client.post(
            f"/api/v1/tryouts/{session_id}/answers",
            json={"question_id": question_id, "answer": "a", "time_spent_seconds": 12},
            headers=headers,
        )
        assert saved.status_code == 200
        assert saved.json()["answer"] == "A"

        finished = client.post(f"/api/v1/tryouts/{session_id}/finish", headers=headers)
        assert finished.status_code == 200
        assert finished.json()["total_score"] == 5

        again = client.post(
            f"/api/v1/tryouts/{session_id}/answers",
            json={"question_id": question_id, "answer": "B"},
            headers=headers,
        )
        assert again.status_code == 409

        review = client.get(f"/api/v1/tryouts/{session_id}/review", headers=headers)
        assert review.status_code == 200
        assert review.json()["questions"][0]["status"] == "correct"

        history = client.get("/api/v1/tryouts/history", headers=headers)
        assert history.json()["stats"]["total_tryouts"] == 1

    def test_requires_authentication(self, client, skd_package):
        response = client.post("/api/v1/tryouts/start", json={"package_id": skd_package.id})
        assert response.status_code == 401

    def test_other_users_session_is_forbidden(self, client, student, make_user, skd_package):
        started = client.post(
            "/api/v1/tryouts/start", json={"package_id": skd_package.id}, headers=auth_headers(student)
        )
        session_id = started.json()["session"]["id"]

        response = client.get(f"/api/v1/tryouts/{session_id}", headers=auth_headers(make_user()))
        assert response.status_code == 403
