# Overview: Pytest coverage for the bill lifecycle (draft edits, finalize atomicity, immutability).

"""
Bill Lifecycle Tests

Covers:
- Draft bills: numbering, items, totals, header edits, delete
- Finalize: stock commitment, re-validation, all-or-nothing rollback
- Immutability of finalized bills and replayed finalize
"""

from decimal import Decimal

import pytest
from pantrypal.errors import (
    BillFinalizedError,
    ConflictError,
    EmptyBillError,
    InsufficientStockError,
    NotFoundError,
    StockValidationFailedError,
    ValidationError,
)
from pantrypal.models import Bill, BillItem, BillSequence, BillStatus, InventoryTransaction, Product, TransactionType
from pantrypal.services import billing_service, inventory_service, product_service


def _stock(db_session, product_id):
    db_session.expire_all()
    return db_session.get(Product, product_id).quantity_in_stock


def _bill(db_session, bill_id):
    db_session.expire_all()
    return db_session.get(Bill, bill_id)


class TestDraftBills:
    """Creating and editing draft bills."""

    def test_create_bill_is_draft_with_sequential_number(self, db_session, org_a):
        first = billing_service.create_bill(org_id=org_a.id)
        second = billing_service.create_bill(org_id=org_a.id)

        assert first.status == BillStatus.DRAFT
        assert first.finalized_at is None
        assert first.finalized_by is None
        assert first.bill_number == "INV-000001"
        assert second.bill_number == "INV-000002"
        assert first.items == []

    def test_bill_numbers_are_per_tenant(self, db_session, org_a, org_b):
        billing_service.create_bill(org_id=org_a.id)
        bill_b = billing_service.create_bill(org_id=org_b.id)
        assert bill_b.bill_number == "INV-000001"

    def test_sequence_row_created_by_another_writer(self, db_session, org_a, monkeypatch):
        """The first UPDATE misses, but another transaction creates the sequence row before our insert."""
        db_session.add(BillSequence(org_id=org_a.id, next_number=7))
        db_session.commit()

        real_bump = billing_service._bump_sequence
        calls = {"n": 0}

        def bump_after_race(org_id):
            calls["n"] += 1
            return None if calls["n"] == 1 else real_bump(org_id)

        monkeypatch.setattr(billing_service, "_bump_sequence", bump_after_race)

        bill = billing_service.create_bill(org_id=org_a.id)

        assert bill.bill_number == "INV-000007"
        assert calls["n"] == 2
        db_session.expire_all()
        assert db_session.query(BillSequence).filter_by(org_id=org_a.id).one().next_number == 8

    def test_duplicate_bill_number_conflicts(self, db_session, org_a):
        billing_service.create_bill(org_id=org_a.id, bill_number="WALKIN-1")
        with pytest.raises(ConflictError):
            billing_service.create_bill(org_id=org_a.id, bill_number="WALKIN-1")

    def test_create_bill_rejects_float_money(self, db_session, org_a):
        with pytest.raises(ValidationError):
            billing_service.create_bill(org_id=org_a.id, discount_amount=1.5)

    def test_create_bill_with_foreign_customer_is_not_found(self, db_session, org_a, org_b):
        from pantrypal.services import customer_service

        customer_b = customer_service.create_customer(org_id=org_b.id, payload={"name": "Ravi"})
        with pytest.raises(NotFoundError):
            billing_service.create_bill(org_id=org_a.id, customer_id=customer_b.id)

    def test_add_item_snapshots_price_and_updates_totals(self, db_session, org_a, make_product):
        product = make_product(org_a, stock=10, mrp="12.50")
        bill = billing_service.create_bill(org_id=org_a.id, tax_amount="1.00", discount_amount="0.50")

        item = billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product.id, quantity=3)

        assert item.unit_price == Decimal("12.50")
        assert item.total_price == Decimal("37.50")

        # Later price changes do not touch the snapshot
        product_service.update_product(org_id=org_a.id, product_id=product.id, payload={"mrp": "20.00"})
        db_session.expire_all()
        assert db_session.get(BillItem, item.id).unit_price == Decimal("12.50")

        refreshed = _bill(db_session, bill.id)
        assert refreshed.total_amount == Decimal("37.50")
        assert refreshed.final_amount == Decimal("38.00")

    def test_add_item_does_not_touch_stock(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=4)
        assert _stock(db_session, product_a.id) == 10

    def test_add_item_over_stock_fails(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        with pytest.raises(InsufficientStockError):
            billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=11)
        assert billing_service.get_bill_details(org_id=org_a.id, bill_id=bill.id)["items"] == []

    def test_add_item_unknown_product(self, db_session, org_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        with pytest.raises(NotFoundError):
            billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=424242, quantity=1)

    def test_add_item_archived_product(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        product_service.archive_product(org_id=org_a.id, product_id=product_a.id)
        with pytest.raises(NotFoundError):
            billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=1)

    def test_add_item_rejects_non_positive_quantity(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        with pytest.raises(ValidationError):
            billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=0)

    def test_remove_item_recomputes_totals(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        keep = billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=1)
        drop = billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=2)

        updated = billing_service.remove_item(org_id=org_a.id, bill_id=bill.id, item_id=drop.id)

        assert updated.total_amount == Decimal("10.00")
        items = billing_service.get_bill_details(org_id=org_a.id, bill_id=bill.id)["items"]
        assert [i.id for i in items] == [keep.id]

    def test_remove_item_of_other_bill_is_not_found(self, db_session, org_a, product_a):
        bill_1 = billing_service.create_bill(org_id=org_a.id)
        bill_2 = billing_service.create_bill(org_id=org_a.id)
        item = billing_service.add_item(org_id=org_a.id, bill_id=bill_1.id, product_id=product_a.id, quantity=1)

        with pytest.raises(NotFoundError):
            billing_service.remove_item(org_id=org_a.id, bill_id=bill_2.id, item_id=item.id)

    def test_update_bill_recomputes_final_amount(self, db_session, org_a, product_a, customer_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=2)

        updated = billing_service.update_bill(
            org_id=org_a.id,
            bill_id=bill.id,
            payload={"discount_amount": "5.00", "tax_amount": "1.80", "payment_method": "card", "customer_id": customer_a.id},
        )

        assert updated.final_amount == Decimal("16.80")
        assert updated.payment_method == "card"
        assert updated.customer_id == customer_a.id

    def test_discount_larger_than_total_floors_at_zero(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id, discount_amount="50.00")
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=1)
        assert _bill(db_session, bill.id).final_amount == Decimal("0.00")

    def test_update_bill_rejects_unknown_fields(self, db_session, org_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        with pytest.raises(ValidationError):
            billing_service.update_bill(org_id=org_a.id, bill_id=bill.id, payload={"finalized_at": "2026-01-01T00:00:00Z"})

    def test_delete_draft_bill(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=1)

        billing_service.delete_bill(org_id=org_a.id, bill_id=bill.id)

        with pytest.raises(NotFoundError):
            billing_service.get_bill(org_id=org_a.id, bill_id=bill.id)
        assert db_session.query(BillItem).count() == 0


class TestFinalize:
    """Finalize commits every decrement and the bill lock together."""

    def test_finalize_decrements_stock_and_sets_finalized(self, db_session, org_a, make_product):
        """Draft bill with one item (qty 5) against stock 5; finalize succeeds and stock becomes 0."""
        product = make_product(org_a, stock=5)
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product.id, quantity=5)

        finalized = billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")

        assert finalized.finalized_at is not None
        assert finalized.finalized_by == "cashier-1"
        assert finalized.status == BillStatus.FINALIZED
        assert _stock(db_session, product.id) == 0

        sale_txs = (
            db_session.query(InventoryTransaction)
            .filter_by(product_id=product.id, reference_type="sale")
            .all()
        )
        assert len(sale_txs) == 1
        assert sale_txs[0].transaction_type == TransactionType.OUT
        assert sale_txs[0].reference_id == str(bill.id)

    def test_finalize_fails_when_stock_drifted(self, db_session, org_a, make_product):
        """Stock drops to 3 between add and finalize; finalize fails and nothing moves."""
        product = make_product(org_a, stock=5)
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product.id, quantity=5)

        inventory_service.stock_out(org_id=org_a.id, product_id=product.id, quantity=2, reference_type="damage")

        with pytest.raises(StockValidationFailedError) as exc_info:
            billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")

        assert exc_info.value.details["product_id"] == product.id
        assert exc_info.value.details["available"] == 3
        assert _stock(db_session, product.id) == 3
        assert _bill(db_session, bill.id).status == BillStatus.DRAFT

    def test_finalize_is_all_or_nothing(self, db_session, org_a, make_product):
        """One short item out of several: no product is decremented."""
        p1 = make_product(org_a, stock=10)
        p2 = make_product(org_a, stock=10)
        p3 = make_product(org_a, stock=10)
        bill = billing_service.create_bill(org_id=org_a.id)
        for p in (p1, p2, p3):
            billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=p.id, quantity=4)

        inventory_service.adjust_stock(org_id=org_a.id, product_id=p3.id, delta=-8, reason="recount")

        with pytest.raises(StockValidationFailedError) as exc_info:
            billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")

        assert exc_info.value.details["product_id"] == p3.id
        assert _stock(db_session, p1.id) == 10
        assert _stock(db_session, p2.id) == 10
        assert _stock(db_session, p3.id) == 2
        assert _bill(db_session, bill.id).finalized_at is None
        assert db_session.query(InventoryTransaction).filter_by(reference_type="sale").count() == 0

    def test_finalize_validates_summed_quantity_per_product(self, db_session, org_a, make_product):
        product = make_product(org_a, stock=5)
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product.id, quantity=3)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product.id, quantity=3)

        with pytest.raises(StockValidationFailedError) as exc_info:
            billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")

        assert exc_info.value.details["requested"] == 6
        assert _stock(db_session, product.id) == 5

    def test_finalize_archived_product_fails(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=1)
        product_service.archive_product(org_id=org_a.id, product_id=product_a.id)

        with pytest.raises(StockValidationFailedError) as exc_info:
            billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")

        assert exc_info.value.details["reason"] == "product_unavailable"
        assert _bill(db_session, bill.id).status == BillStatus.DRAFT

    def test_finalize_empty_bill(self, db_session, org_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        with pytest.raises(EmptyBillError):
            billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")

    def test_finalize_requires_finalized_by(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=1)
        with pytest.raises(ValidationError):
            billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by=None)

    def test_replayed_finalize_does_not_double_decrement(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=4)
        billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")

        with pytest.raises(BillFinalizedError):
            billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")

        assert _stock(db_session, product_a.id) == 6


class TestFinalizedImmutability:
    """Every mutation of a finalized bill fails with BillFinalizedError."""

    @pytest.fixture
    def finalized_bill(self, db_session, org_a, product_a):
        bill = billing_service.create_bill(org_id=org_a.id)
        item = billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=product_a.id, quantity=2)
        billing_service.finalize_bill(org_id=org_a.id, bill_id=bill.id, finalized_by="cashier-1")
        return bill.id, item.id

    def _snapshot(self, db_session, bill_id):
        db_session.expire_all()
        bill = db_session.get(Bill, bill_id)
        return bill.to_dict(), [i.to_dict() for i in bill.items]

    def test_all_mutations_rejected(self, db_session, org_a, product_a, finalized_bill):
        bill_id, item_id = finalized_bill
        before = self._snapshot(db_session, bill_id)

        with pytest.raises(BillFinalizedError):
            billing_service.add_item(org_id=org_a.id, bill_id=bill_id, product_id=product_a.id, quantity=1)
        with pytest.raises(BillFinalizedError):
            billing_service.remove_item(org_id=org_a.id, bill_id=bill_id, item_id=item_id)
        with pytest.raises(BillFinalizedError):
            billing_service.update_bill(org_id=org_a.id, bill_id=bill_id, payload={"discount_amount": "1.00"})
        with pytest.raises(BillFinalizedError):
            billing_service.delete_bill(org_id=org_a.id, bill_id=bill_id)

        assert self._snapshot(db_session, bill_id) == before


class TestBillReads:
    """Details, totals, listings and stats."""

    def test_calculate_bill_totals(self, db_session, org_a, make_product):
        p1 = make_product(org_a, stock=10, mrp="3.30")
        p2 = make_product(org_a, stock=10, mrp="0.99")
        bill = billing_service.create_bill(org_id=org_a.id, discount_amount="1.00", tax_amount="0.50")
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=p1.id, quantity=3)
        billing_service.add_item(org_id=org_a.id, bill_id=bill.id, product_id=p2.id, quantity=7)

        totals = billing_service.calculate_bill_totals(org_id=org_a.id, bill_id=bill.id)

        assert totals["subtotal"] == Decimal("16.83")
        assert totals["discount"] == Decimal("1.00")
        assert totals["tax"] == Decimal("0.50")
        assert totals["total_credit"] == Decimal("0.00")
        assert totals["final"] == Decimal("16.33")

    def test_list_bills_filters(self, db_session, org_a, product_a, customer_a):
        draft = billing_service.create_bill(org_id=org_a.id, customer_id=customer_a.id)
        done = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=done.id, product_id=product_a.id, quantity=1)
        billing_service.finalize_bill(org_id=org_a.id, bill_id=done.id, finalized_by="cashier-1")

        assert [b.id for b in billing_service.list_bills(org_id=org_a.id, finalized=True)] == [done.id]
        assert [b.id for b in billing_service.list_bills(org_id=org_a.id, finalized=False)] == [draft.id]
        assert [b.id for b in billing_service.list_bills(org_id=org_a.id, customer_id=customer_a.id)] == [draft.id]
        assert len(billing_service.list_bills(org_id=org_a.id)) == 2

    def test_find_by_bill_number(self, db_session, org_a):
        bill = billing_service.create_bill(org_id=org_a.id, bill_number="POS-42")
        assert billing_service.find_by_bill_number(org_id=org_a.id, bill_number="POS-42").id == bill.id
        with pytest.raises(NotFoundError):
            billing_service.find_by_bill_number(org_id=org_a.id, bill_number="POS-43")

    def test_bill_stats(self, db_session, org_a, product_a):
        done = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=done.id, product_id=product_a.id, quantity=3)
        billing_service.finalize_bill(org_id=org_a.id, bill_id=done.id, finalized_by="cashier-1")
        draft = billing_service.create_bill(org_id=org_a.id)
        billing_service.add_item(org_id=org_a.id, bill_id=draft.id, product_id=product_a.id, quantity=1)

        stats = billing_service.get_bill_stats(org_id=org_a.id)

        assert stats["total_bills"] == 2
        assert stats["finalized_bills"] == 1
        assert stats["total_amount"] == "40.00"
        assert stats["finalized_amount"] == "30.00"
        assert stats["average_bill"] == "20.00"
