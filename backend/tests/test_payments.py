"""Tests for package purchases, the Midtrans flow and mentor commission."""

import asyncio

import pytest

from app.core.exceptions import BusinessRuleError, PaymentGatewayError
from app.models.mentor import MentorBalance, MentorEarning
from app.models.payment import Payment, PaymentStatus, UserPackageAccess
from app.models.voucher import Voucher
from app.services import payment_service
from app.services.access import has_paid_access
from app.services.midtrans import map_transaction_status

from conftest import auth_headers, signed_notification


@pytest.fixture
def paid_package(make_package):
    return make_package(title="Tryout Premium", price=50000, requires_payment=True)


def _create(db, user, package, gateway=None, voucher_code=None):
    return asyncio.run(
        payment_service.create_payment(db, user, package.id, gateway=gateway, voucher_code=voucher_code)
    )


class TestStatusMapping:
    @pytest.mark.parametrize("gateway_status", ["settlement", "capture", "SETTLEMENT"])
    def test_completed(self, gateway_status):
        assert map_transaction_status(gateway_status) == PaymentStatus.COMPLETED.value

    @pytest.mark.parametrize("gateway_status", ["deny", "expire", "cancel", "failure"])
    def test_failed(self, gateway_status):
        assert map_transaction_status(gateway_status) == PaymentStatus.FAILED.value

    @pytest.mark.parametrize("gateway_status", ["pending", "authorize", None])
    def test_pending(self, gateway_status):
        assert map_transaction_status(gateway_status) == PaymentStatus.PENDING.value


class TestCreatePayment:
    def test_full_discount_completes_without_gateway(self, db, student, admin, paid_package):
        db.add(Voucher(
            code="GRATIS", name="Gratis", discount_type="fixed", discount_value=50000,
            created_by=admin.id, applicable_packages=[],
        ))
        db.commit()

        payment = _create(db, student, paid_package, voucher_code="gratis")

        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.payment_method == "voucher"
        assert payment.amount == 0
        assert payment.discount_amount == 50000
        assert has_paid_access(db, student, paid_package.id)
        voucher = db.query(Voucher).filter(Voucher.code == "GRATIS").one()
        assert voucher.used_count == 1

    def test_gateway_transaction_is_stored(self, db, student, paid_package, gateway, midtrans_stub):
        payment = _create(db, student, paid_package, gateway=gateway)

        assert payment.status == PaymentStatus.PENDING.value
        assert payment.gateway_order_id.startswith(f"SKD-{payment.id}-")
        assert payment.gateway_token == f"snap-{payment.gateway_order_id}"
        assert payment.gateway_redirect_url.endswith(payment.gateway_order_id)

        request = midtrans_stub.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/snap/v1/transactions"
        assert request.headers["authorization"].startswith("Basic ")

    def test_missing_gateway_creates_nothing(self, db, student, paid_package):
        with pytest.raises(PaymentGatewayError):
            _create(db, student, paid_package)
        assert db.query(Payment).count() == 0

    def test_gateway_failure_marks_payment_failed(self, db, student, paid_package, gateway, midtrans_stub):
        midtrans_stub.fail_with = 500
        with pytest.raises(PaymentGatewayError):
            _create(db, student, paid_package, gateway=gateway)

        payment = db.query(Payment).one()
        assert payment.status == PaymentStatus.FAILED.value

    def test_invalid_voucher_is_rejected(self, db, student, paid_package, gateway):
        with pytest.raises(BusinessRuleError, match="Voucher not found"):
            _create(db, student, paid_package, gateway=gateway, voucher_code="NOPE")

    def test_pending_payments_hold_limited_voucher(self, db, student, admin, make_user, paid_package, gateway):
        db.add(Voucher(
            code="SATU", name="Sekali pakai", discount_type="fixed", discount_value=10000,
            usage_limit=1, created_by=admin.id, applicable_packages=[],
        ))
        db.commit()
        other = make_user(email="other@example.com")

        first = _create(db, student, paid_package, gateway=gateway, voucher_code="SATU")
        assert first.status == PaymentStatus.PENDING.value
        with pytest.raises(BusinessRuleError, match="usage limit"):
            _create(db, other, paid_package, gateway=gateway, voucher_code="SATU")

        payment_service.apply_gateway_status(db, first, "expire")
        db.commit()
        second = _create(db, other, paid_package, gateway=gateway, voucher_code="SATU")
        payment_service.apply_gateway_status(db, second, "settlement")
        db.commit()

        voucher = db.query(Voucher).filter(Voucher.code == "SATU").one()
        assert voucher.used_count == 1
        assert voucher.is_active is False
        assert db.query(Payment).filter(Payment.voucher_id == voucher.id).count() == 2

    def test_free_package_cannot_be_bought(self, db, student, make_package, gateway):
        with pytest.raises(BusinessRuleError):
            _create(db, student, make_package(), gateway=gateway)

    def test_cannot_buy_twice(self, db, student, paid_package, gateway):
        payment = _create(db, student, paid_package, gateway=gateway)
        payment_service.complete_payment(db, payment, "settlement")
        db.commit()

        with pytest.raises(BusinessRuleError):
            _create(db, student, paid_package, gateway=gateway)


class TestCompletion:
    def test_complete_is_idempotent(self, db, student, paid_package, gateway):
        payment = _create(db, student, paid_package, gateway=gateway)
        payment_service.complete_payment(db, payment, "settlement")
        payment_service.complete_payment(db, payment, "settlement")
        db.commit()

        assert db.query(UserPackageAccess).filter(UserPackageAccess.user_id == student.id).count() == 1

    def test_completed_payment_never_reverts(self, db, student, paid_package, gateway):
        payment = _create(db, student, paid_package, gateway=gateway)
        payment_service.apply_gateway_status(db, payment, "settlement")
        payment_service.apply_gateway_status(db, payment, "expire")
        db.commit()

        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.gateway_status == "expire"

    def test_failed_payment_can_still_settle(self, db, student, paid_package, gateway):
        payment = _create(db, student, paid_package, gateway=gateway)
        payment_service.apply_gateway_status(db, payment, "deny")
        assert payment.status == PaymentStatus.FAILED.value

        payment_service.apply_gateway_status(db, payment, "settlement")
        db.commit()
        assert payment.status == PaymentStatus.COMPLETED.value

    def test_mentor_is_credited_once(self, db, student, tentor, make_package, gateway):
        package = make_package(title="Paket Mentor", price=100000, requires_payment=True, creator=tentor)
        payment = _create(db, student, package, gateway=gateway)

        payment_service.complete_payment(db, payment, "settlement")
        payment_service.complete_payment(db, payment, "settlement")
        db.commit()

        earning = db.query(MentorEarning).one()
        assert earning.commission_rate == 70
        assert earning.commission_amount == 70000
        balance = db.query(MentorBalance).filter(MentorBalance.mentor_id == tentor.id).one()
        assert balance.total_earnings == 70000
        assert balance.available_balance == 70000

    def test_admin_packages_earn_no_commission(self, db, student, admin, make_package, gateway):
        package = make_package(price=100000, requires_payment=True, creator=admin)
        payment = _create(db, student, package, gateway=gateway)
        payment_service.complete_payment(db, payment)
        db.commit()
        assert db.query(MentorEarning).count() == 0


class TestPaymentEndpoints:
    def test_purchase_then_refresh_unlocks_package(self, client, student, paid_package, midtrans_stub):
        headers = auth_headers(student)

        created = client.post("/api/v1/payments/", json={"package_id": paid_package.id}, headers=headers)
        assert created.status_code == 201
        payment = created.json()["payment"]
        assert payment["status"] == "pending"
        assert payment["token"].startswith("snap-")

        blocked = client.post("/api/v1/tryouts/start", json={"package_id": paid_package.id}, headers=headers)
        assert blocked.status_code == 403

        midtrans_stub.transaction_status = "settlement"
        refreshed = client.post(f"/api/v1/payments/{payment['id']}/refresh-status", headers=headers)
        assert refreshed.status_code == 200
        assert refreshed.json()["status"] == "completed"

        started = client.post("/api/v1/tryouts/start", json={"package_id": paid_package.id}, headers=headers)
        assert started.status_code == 200

        mine = client.get("/api/v1/payments/my", headers=headers).json()
        assert mine["total"] == 1
        assert client.get("/api/v1/payments/pending", headers=headers).json()["total"] == 0

    def test_notification_completes_payment(self, client, db, student, paid_package):
        created = client.post(
            "/api/v1/payments/", json={"package_id": paid_package.id}, headers=auth_headers(student)
        )
        order_id = created.json()["payment"]["order_id"]

        response = client.post(
            "/api/v1/payments/midtrans/notification", json=signed_notification(order_id, "settlement")
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "completed"
        assert has_paid_access(db, student, paid_package.id)

    def test_notification_with_bad_signature(self, client, student, paid_package):
        created = client.post(
            "/api/v1/payments/", json={"package_id": paid_package.id}, headers=auth_headers(student)
        )
        payload = signed_notification(created.json()["payment"]["order_id"], "settlement")
        payload["signature_key"] = "forged"

        response = client.post("/api/v1/payments/midtrans/notification", json=payload)
        assert response.status_code == 403

    def test_notification_for_unknown_order(self, client):
        response = client.post(
            "/api/v1/payments/midtrans/notification", json=signed_notification("SKD-404-x", "settlement")
        )
        assert response.status_code == 404

    def test_other_users_payment_is_forbidden(self, client, student, make_user, paid_package):
        created = client.post(
            "/api/v1/payments/", json={"package_id": paid_package.id}, headers=auth_headers(student)
        )
        payment_id = created.json()["payment"]["id"]

        response = client.get(f"/api/v1/payments/{payment_id}", headers=auth_headers(make_user()))
        assert response.status_code == 403

    def test_gateway_outage_returns_502(self, client, student, paid_package, midtrans_stub):
        midtrans_stub.fail_with = 503
        response = client.post(
            "/api/v1/payments/", json={"package_id": paid_package.id}, headers=auth_headers(student)
        )
        assert response.status_code == 502
