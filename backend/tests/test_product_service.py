# Overview: Pytest coverage for the product catalog service.

import pytest
from datetime import date
from decimal import Decimal

from pantrypal.errors import ConflictError, NotFoundError, ValidationError
from pantrypal.models import ProductStatus
from pantrypal.services import product_service


class TestCreateProduct:

    def test_create_with_defaults(self, db_session, org_a):
        product = product_service.create_product(
            org_id=org_a.id,
            payload={"name": "Toor Dal 500g", "category": "pulses", "mrp": "85.00", "cost": "70.00"},
        )
        assert product.org_id == org_a.id
        assert product.status == ProductStatus.ACTIVE
        assert product.quantity_in_stock == 0
        assert product.min_stock_level == 5
        assert product.unit == "piece"
        assert product.mrp == Decimal("85.00")

    def test_missing_required_fields(self, db_session, org_a):
        with pytest.raises(ValidationError):
            product_service.create_product(org_id=org_a.id, payload={"name": "No price"})

    def test_float_price_rejected(self, db_session, org_a):
        with pytest.raises(ValidationError):
            product_service.create_product(
                org_id=org_a.id, payload={"name": "Salt", "category": "staples", "mrp": 20.5, "cost": "10"}
            )

    def test_negative_opening_stock_rejected(self, db_session, org_a):
        with pytest.raises(ValidationError):
            product_service.create_product(
                org_id=org_a.id,
                payload={"name": "Salt", "category": "staples", "mrp": "20", "cost": "10", "quantity_in_stock": -1},
            )

    def test_duplicate_barcode_conflicts(self, db_session, org_a, product_a, make_product):
        with pytest.raises(ConflictError):
            make_product(org_a, barcode=product_a.barcode)

    def test_duplicate_qr_code_conflicts(self, db_session, org_a, make_product):
        make_product(org_a, qr_code="QR-ABC")
        with pytest.raises(ConflictError):
            make_product(org_a, qr_code="QR-ABC")

    def test_expiry_before_manufacturing_rejected(self, db_session, org_a, make_product):
        with pytest.raises(ValidationError):
            make_product(org_a, manufacturing_date="2026-05-01", expiry_date="2026-04-01")


class TestLookups:

    def test_find_by_code_tries_barcode_then_qr(self, db_session, org_a, make_product):
        by_qr = make_product(org_a, qr_code="QR-123")
        assert product_service.find_by_code(org_id=org_a.id, code="QR-123").id == by_qr.id
        assert product_service.find_by_code(org_id=org_a.id, code="QR-123", kind="qr").id == by_qr.id
        with pytest.raises(NotFoundError):
            product_service.find_by_code(org_id=org_a.id, code="QR-123", kind="barcode")

    def test_find_by_code_bad_kind(self, db_session, org_a):
        with pytest.raises(ValidationError):
            product_service.find_by_code(org_id=org_a.id, code="x", kind="sku")

    def test_list_by_category(self, db_session, org_a, make_product):
        make_product(org_a, name="Milk", category="dairy")
        make_product(org_a, name="Curd", category="dairy")
        make_product(org_a, name="Soap", category="household")

        dairy = product_service.list_products(org_id=org_a.id, category="dairy")
        assert [p.name for p in dairy] == ["Curd", "Milk"]
        assert len(product_service.list_products(org_id=org_a.id)) == 3


class TestUpdateAndArchive:

    def test_update_catalog_fields(self, db_session, org_a, product_a):
        updated = product_service.update_product(
            org_id=org_a.id,
            product_id=product_a.id,
            payload={"name": "Basmati Rice 5kg", "expiry_date": "2027-01-31"},
        )
        assert updated.name == "Basmati Rice 5kg"
        assert updated.expiry_date == date(2027, 1, 31)

    def test_quantity_is_not_editable(self, db_session, org_a, product_a):
        with pytest.raises(ValidationError):
            product_service.update_product(org_id=org_a.id, product_id=product_a.id, payload={"quantity_in_stock": 99})

    def test_update_barcode_to_existing_conflicts(self, db_session, org_a, product_a, make_product):
        other = make_product(org_a, barcode="111")
        with pytest.raises(ConflictError):
            product_service.update_product(org_id=org_a.id, product_id=other.id, payload={"barcode": product_a.barcode})

    def test_archive_hides_product_and_restore_brings_it_back(self, db_session, org_a, product_a):
        archived = product_service.archive_product(org_id=org_a.id, product_id=product_a.id)
        assert archived.status == ProductStatus.ARCHIVED
        assert archived.is_active is False

        with pytest.raises(NotFoundError):
            product_service.get_product(org_id=org_a.id, product_id=product_a.id)
        assert product_service.list_products(org_id=org_a.id) == []

        restored = product_service.restore_product(org_id=org_a.id, product_id=product_a.id)
        assert restored.is_active is True
        assert restored.quantity_in_stock == 10
