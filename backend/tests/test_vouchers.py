"""Tests for voucher validation, discounts, redemption and the admin endpoints."""

from datetime import timedelta

import pytest

from app.core.exceptions import BusinessRuleError
from app.models.voucher import DiscountType, Voucher, VoucherUsage
from app.services import voucher_service
from app.utils.dates import utcnow

from conftest import auth_headers


@pytest.fixture
def make_voucher(db, admin):
    def _make(code="HEMAT10", discount_type=DiscountType.PERCENTAGE.value, discount_value=10, **fields):
        voucher = Voucher(
            code=code,
            name=f"Voucher {code}",
            discount_type=discount_type,
            discount_value=discount_value,
            created_by=admin.id,
            applicable_packages=fields.pop("applicable_packages", []),
            **fields,
        )
        db.add(voucher)
        db.commit()
        db.refresh(voucher)
        return voucher

    return _make


class TestComputeDiscount:
    def test_percentage_rounds_half_up(self, make_voucher):
        voucher = make_voucher(discount_value=15)
        assert voucher_service.compute_discount(voucher, 10010) == 1502

    def test_percentage_is_capped(self, make_voucher):
        voucher = make_voucher(discount_value=50, max_discount_amount=20000)
        assert voucher_service.compute_discount(voucher, 100000) == 20000

    def test_fixed_never_exceeds_amount(self, make_voucher):
        voucher = make_voucher(code="POTONG", discount_type=DiscountType.FIXED.value, discount_value=75000)
        assert voucher_service.compute_discount(voucher, 50000) == 50000
        assert voucher_service.compute_discount(voucher, 100000) == 75000


class TestValidateVoucher:
    def test_valid_voucher(self, db, make_voucher):
        make_voucher(discount_value=20)
        result = voucher_service.validate_voucher(db, " hemat10 ", 50000)

        assert result["valid"] is True
        assert result["voucher_code"] == "HEMAT10"
        assert result["discount_amount"] == 10000
        assert result["original_price"] == 50000
        assert result["final_price"] == 40000

    @pytest.mark.parametrize(
        "fields, message",
        [
            ({"is_active": False}, "Voucher is not active"),
            ({"usage_limit": 1, "used_count": 1}, "Voucher usage limit has been reached"),
            ({"applicable_packages": [999]}, "Voucher cannot be used for this package"),
            ({"min_purchase_amount": 100000}, "Minimum purchase is Rp 100,000"),
        ],
    )
    def test_rejections(self, db, make_voucher, fields, message):
        make_voucher(**fields)
        result = voucher_service.validate_voucher(db, "HEMAT10", 50000, package_id=1)
        assert result == {"valid": False, "message": message}

    def test_reserved_uses_count_toward_limit(self, make_voucher):
        voucher = make_voucher(usage_limit=3, used_count=1)

        assert voucher_service.check_voucher(voucher, 50000, reserved=1) is None
        assert voucher_service.check_voucher(voucher, 50000, reserved=2) == "Voucher usage limit has been reached"

    def test_unknown_code(self, db):
        result = voucher_service.validate_voucher(db, "NOPE", 50000)
        assert result["message"] == "Voucher not found"

    def test_validity_window(self, db, make_voucher):
        now = utcnow()
        make_voucher(code="SOON", valid_from=now + timedelta(days=1))
        make_voucher(code="OLD", valid_until=now - timedelta(days=1))

        assert voucher_service.validate_voucher(db, "SOON", 50000, now=now)["message"] == "Voucher is not valid yet"
        assert voucher_service.validate_voucher(db, "OLD", 50000, now=now)["message"] == "Voucher has expired"

    def test_package_restriction_allows_listed_package(self, db, make_voucher):
        make_voucher(applicable_packages=[7])
        assert voucher_service.validate_voucher(db, "HEMAT10", 50000, package_id=7)["valid"] is True


class TestRedeemVoucher:
    def test_redeem_counts_and_deactivates_at_limit(self, db, student, make_voucher):
        voucher = make_voucher(usage_limit=1)
        voucher_service.redeem_voucher(db, voucher, student.id, None, None, 5000, 50000, 45000)
        db.commit()

        assert voucher.used_count == 1
        assert voucher.is_active is False
        assert db.query(VoucherUsage).count() == 1


class TestVoucherAdmin:
    def test_create_rejects_duplicate_code(self, db, admin, make_voucher):
        make_voucher()
        with pytest.raises(BusinessRuleError):
            voucher_service.create_voucher(
                db,
                {"code": "hemat10", "name": "dup", "discount_type": "fixed", "discount_value": 1000},
                admin,
            )

    def test_update_tracks_changes(self, db, make_voucher):
        voucher = make_voucher()
        changes = voucher_service.update_voucher(db, voucher, {"discount_value": 25, "name": voucher.name})
        assert changes == {"discount_value": {"old": 10, "new": 25}}

    def test_update_rejects_percentage_over_100(self, db, make_voucher):
        voucher = make_voucher()
        with pytest.raises(BusinessRuleError):
            voucher_service.update_voucher(db, voucher, {"discount_value": 150})

    def test_admin_crud_endpoints(self, client, admin):
        headers = auth_headers(admin)
        created = client.post(
            "/api/v1/admin/vouchers/",
            json={"code": "cpns25", "name": "CPNS 25", "discount_type": "percentage", "discount_value": 25},
            headers=headers,
        )
        assert created.status_code == 201
        voucher_id = created.json()["id"]
        assert created.json()["code"] == "CPNS25"

        updated = client.put(
            f"/api/v1/admin/vouchers/{voucher_id}", json={"usage_limit": 100}, headers=headers
        )
        assert updated.json()["usage_limit"] == 100

        stats = client.get("/api/v1/admin/vouchers/stats", headers=headers).json()
        assert stats["total_vouchers"] == 1
        assert stats["active_vouchers"] == 1

        deleted = client.delete(f"/api/v1/admin/vouchers/{voucher_id}", headers=headers)
        assert deleted.status_code == 200
        assert client.get(f"/api/v1/admin/vouchers/{voucher_id}", headers=headers).status_code == 404

    def test_create_validates_percentage(self, client, admin):
        response = client.post(
            "/api/v1/admin/vouchers/",
            json={"code": "BIG", "name": "Big", "discount_type": "percentage", "discount_value": 120},
            headers=auth_headers(admin),
        )
        assert response.status_code == 422

    def test_students_cannot_manage_vouchers(self, client, student):
        response = client.get("/api/v1/admin/vouchers/", headers=auth_headers(student))
        assert response.status_code == 403

    def test_validate_endpoint(self, client, student, make_voucher):
        make_voucher()
        response = client.post(
            "/api/v1/vouchers/validate", json={"code": "HEMAT10", "amount": 30000}, headers=auth_headers(student)
        )
        assert response.status_code == 200
        assert response.json()["final_price"] == 27000
