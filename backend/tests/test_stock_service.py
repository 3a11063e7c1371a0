# Overview: Pytest coverage for the stock status ledger.

"""
Stock status ledger tests.

Verifies:
- Per-type status defaults and request validation (no database)
- Counters, legacy mirrors and audit rows written by one adjustment
- Audit rows of a transfer sum to zero; inbound types add +quantity
- Rejected adjustments write nothing, including failures after the header is written
- Counter rows created by a concurrent writer are reused
- Lock conflicts are retried
- Adjustment numbers are allocated per organization
"""

import pytest
from sqlalchemy import false
from sqlalchemy.exc import OperationalError

from duka.extensions import db
from duka.models import ProductStock, StockAdjustment, StockAuditLogEntry
from duka.services import concurrency, stock_service
from duka.services.concurrency import run_with_retry
from duka.services.stock_service import (
    StockAdjustmentError,
    StockTransition,
    resolve_transition,
    plan_counter_changes,
)


# =============================================================================
# PURE VALIDATION
# =============================================================================

class TestResolveTransition:

    @pytest.mark.parametrize(
        "adjustment_type,expected_from,expected_to",
        [
            ("damage", "available", "damaged"),
            ("repair", "damaged", "available"),
            ("scrap", "damaged", "scrap"),
            ("return_to_supplier", "damaged", "returned_qc"),
            ("receive", None, "available"),
            ("correction", None, "available"),
        ],
    )
    def test_defaults(self, adjustment_type, expected_from, expected_to):
        t = resolve_transition(adjustment_type, 2, reason="checked")
        assert (t.from_status, t.to_status, t.quantity) == (expected_from, expected_to, 2)

    def test_explicit_statuses_override_defaults(self):
        t = resolve_transition("repair", 1, from_status="returned_qc")
        assert (t.from_status, t.to_status) == ("returned_qc", "available")

    def test_inbound_ignores_from_status(self):
        t = resolve_transition("receive", 4, from_status="damaged", to_status="reserved")
        assert t.from_status is None
        assert t.to_status == "reserved"
        assert t.is_inbound

    def test_transfer_requires_both_statuses(self):
        with pytest.raises(StockAdjustmentError, match="from_status is required"):
            resolve_transition("transfer", 1, to_status="reserved")
        with pytest.raises(StockAdjustmentError, match="to_status is required"):
            resolve_transition("transfer", 1, from_status="available")

    def test_same_status_rejected(self):
        with pytest.raises(StockAdjustmentError, match="must differ"):
            resolve_transition("transfer", 1, from_status="available", to_status="available")

    def test_damage_requires_reason(self):
        with pytest.raises(StockAdjustmentError, match="reason is required"):
            resolve_transition("damage", 1, reason="   ")

    def test_unknown_type(self):
        with pytest.raises(StockAdjustmentError) as exc:
            resolve_transition("theft", 1)
        assert "damage" in exc.value.details["allowed"]

    def test_unknown_status(self):
        with pytest.raises(StockAdjustmentError, match="Invalid to_status"):
            resolve_transition("transfer", 1, from_status="available", to_status="lost")

    @pytest.mark.parametrize("quantity", [0, -3, 1.5, "2.0", True, None, "abc"])
    def test_bad_quantity(self, quantity):
        with pytest.raises(StockAdjustmentError):
            resolve_transition("receive", quantity)

    def test_digit_string_quantity_accepted(self):
        assert resolve_transition("receive", "7").quantity == 7

    @pytest.mark.parametrize("reason", [123, {"text": "Flood"}, ["Flood"], True])
    def test_non_string_reason_rejected(self, reason):
        with pytest.raises(StockAdjustmentError, match="reason must be a string"):
            resolve_transition("damage", 1, reason=reason)

    def test_overlong_reason_rejected(self):
        with pytest.raises(StockAdjustmentError, match="longer than 255"):
            resolve_transition("damage", 1, reason="x" * 256)


class TestPlanCounterChanges:

    def test_transfer_plans_decrease_then_increase(self):
        t = StockTransition("damage", "available", "damaged", 3)
        changes = plan_counter_changes(t, {"available": 10, "damaged": 1})

        assert [(c.status, c.action, c.quantity_before, c.quantity_after) for c in changes] == [
            ("available", "decrease", 10, 7),
            ("damaged", "increase", 1, 4),
        ]
        assert sum(c.quantity_change for c in changes) == 0

    def test_inbound_plans_single_increase(self):
        t = StockTransition("receive", None, "available", 5)
        changes = plan_counter_changes(t, {})
        assert len(changes) == 1
        assert changes[0].quantity_change == 5
        assert changes[0].quantity_after == 5

    def test_insufficient_source(self):
        t = StockTransition("scrap", "damaged", "scrap", 2)
        with pytest.raises(StockAdjustmentError) as exc:
            plan_counter_changes(t, {"damaged": 1})
        assert exc.value.details == {"status": "damaged", "available": 1, "requested": 2}


# =============================================================================
# DATABASE
# =============================================================================

class TestCreateAdjustment:

    def test_damage_moves_stock_and_mirrors(self, org_a, product_a, owner_a):
        adjustment = stock_service.create_adjustment(
            organization_id=org_a.id,
            product_id=product_a.id,
            adjustment_type="damage",
            quantity=3,
            reason="Water damage",
            warehouse_location="Shelf B2",
            performed_by=owner_a.id,
        )

        levels = stock_service.get_stock_by_status(org_a.id, product_a.id)
        assert levels == {"available": 7, "reserved": 0, "damaged": 3, "returned_qc": 0, "scrap": 0}

        db.session.refresh(product_a)
        assert product_a.stock_quantity == 7
        assert product_a.defective_quantity == 3

        assert adjustment.adjustment_number == "ADJ-00002"  # ADJ-00001 is the opening stock
        assert adjustment.approval_status == "approved"
        assert adjustment.reason == "Water damage"

    def test_transfer_audit_rows_sum_to_zero(self, org_a, product_a):
        adjustment = stock_service.create_adjustment(
            organization_id=org_a.id,
            product_id=product_a.id,
            adjustment_type="transfer",
            quantity=4,
            from_status="available",
            to_status="reserved",
        )

        rows = db.session.query(StockAuditLogEntry).filter_by(adjustment_id=adjustment.id).all()
        assert len(rows) == 2
        assert sum(r.quantity_change for r in rows) == 0
        assert {r.action for r in rows} == {"increase", "decrease"}
        for r in rows:
            assert r.quantity_after == r.quantity_before + r.quantity_change
            assert r.reference_type == "stock_adjustment"
            assert r.reference_id == adjustment.id

    def test_receive_adds_single_audit_row(self, org_a, product_a):
        adjustment = stock_service.create_adjustment(
            organization_id=org_a.id,
            product_id=product_a.id,
            adjustment_type="receive",
            quantity=5,
        )

        rows = db.session.query(StockAuditLogEntry).filter_by(adjustment_id=adjustment.id).all()
        assert len(rows) == 1
        assert rows[0].quantity_change == 5
        assert rows[0].from_status is None
        assert stock_service.get_stock_by_status(org_a.id, product_a.id)["available"] == 15

    def test_overdraw_rejected_and_nothing_written(self, org_a, product_a):
        before_adjustments = db.session.query(StockAdjustment).count()
        before_audit = db.session.query(StockAuditLogEntry).count()

        with pytest.raises(StockAdjustmentError, match="Insufficient stock"):
            stock_service.create_adjustment(
                organization_id=org_a.id,
                product_id=product_a.id,
                adjustment_type="damage",
                quantity=11,
                reason="Flood",
            )

        assert db.session.query(StockAdjustment).count() == before_adjustments
        assert db.session.query(StockAuditLogEntry).count() == before_audit
        assert stock_service.get_stock_by_status(org_a.id, product_a.id)["available"] == 10

        # The rejected adjustment did not consume a number
        next_adj = stock_service.create_adjustment(
            organization_id=org_a.id,
            product_id=product_a.id,
            adjustment_type="receive",
            quantity=1,
        )
        assert next_adj.adjustment_number == "ADJ-00002"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("notes", {"x": 1}),
            ("notes", 42),
            ("warehouse_location", ["Shelf B2"]),
            ("warehouse_location", "B" * 129),
        ],
    )
    def test_bad_text_fields_rejected_and_nothing_written(self, org_a, product_a, field, value):
        before_adjustments = db.session.query(StockAdjustment).count()

        with pytest.raises(StockAdjustmentError) as exc:
            stock_service.create_adjustment(
                organization_id=org_a.id,
                product_id=product_a.id,
                adjustment_type="receive",
                quantity=1,
                **{field: value},
            )

        assert exc.value.details == {"field": field}
        assert db.session.query(StockAdjustment).count() == before_adjustments

    def test_failure_after_header_rolls_everything_back(self, monkeypatch, org_a, product_a):
        before_adjustments = db.session.query(StockAdjustment).count()
        before_audit = db.session.query(StockAuditLogEntry).count()

        def broken(**kwargs):
            raise RuntimeError("counter write failed")

        monkeypatch.setattr(stock_service, "apply_counter_changes", broken)
        with pytest.raises(RuntimeError, match="counter write failed"):
            stock_service.create_adjustment(
                organization_id=org_a.id,
                product_id=product_a.id,
                adjustment_type="transfer",
                quantity=4,
                from_status="available",
                to_status="reserved",
            )
        monkeypatch.undo()

        assert db.session.query(StockAdjustment).count() == before_adjustments
        assert db.session.query(StockAuditLogEntry).count() == before_audit
        levels = stock_service.get_stock_by_status(org_a.id, product_a.id)
        assert levels["available"] == 10
        assert levels["reserved"] == 0
        db.session.refresh(product_a)
        assert product_a.stock_quantity == 10

        next_adj = stock_service.create_adjustment(
            organization_id=org_a.id,
            product_id=product_a.id,
            adjustment_type="receive",
            quantity=1,
        )
        assert next_adj.adjustment_number == "ADJ-00002"

    def test_counter_created_concurrently_is_reused(self, monkeypatch, org_a, product_a):
        real_query = stock_service._locked_counter_query
        reads = []

        def first_read_misses(product_id, statuses):
            reads.append(list(statuses))
            query = real_query(product_id, statuses)
            if len(reads) == 1:
                return query.filter(false())
            return query

        monkeypatch.setattr(stock_service, "_locked_counter_query", first_read_misses)
        stock_service.create_adjustment(
            organization_id=org_a.id,
            product_id=product_a.id,
            adjustment_type="damage",
            quantity=2,
            reason="Torn bags",
        )

        # "available" already existed: its insert conflicted and was re-read
        assert ["available"] in reads[1:]
        assert db.session.query(ProductStock).filter_by(product_id=product_a.id).count() == 2
        levels = stock_service.get_stock_by_status(org_a.id, product_a.id)
        assert (levels["available"], levels["damaged"]) == (8, 2)

    def test_inactive_product_rejected(self, org_a, product_a):
        product_a.is_active = False
        db.session.commit()

        with pytest.raises(StockAdjustmentError, match="inactive"):
            stock_service.create_adjustment(
                organization_id=org_a.id,
                product_id=product_a.id,
                adjustment_type="receive",
                quantity=1,
            )

    def test_foreign_product_not_found(self, org_a, org_b, product_b):
        with pytest.raises(StockAdjustmentError, match="Product not found"):
            stock_service.create_adjustment(
                organization_id=org_a.id,
                product_id=product_b.id,
                adjustment_type="receive",
                quantity=1,
            )

    def test_numbers_are_per_organization(self, org_a, org_b, product_a, product_b):
        a = stock_service.create_adjustment(
            organization_id=org_a.id, product_id=product_a.id, adjustment_type="receive", quantity=1,
        )
        b = stock_service.create_adjustment(
            organization_id=org_b.id, product_id=product_b.id, adjustment_type="receive", quantity=1,
        )
        assert a.adjustment_number == "ADJ-00002"
        assert b.adjustment_number == "ADJ-00002"

    def test_full_cycle_damage_repair_scrap(self, org_a, product_a):
        for kwargs in (
            {"adjustment_type": "damage", "quantity": 4, "reason": "Dropped"},
            {"adjustment_type": "repair", "quantity": 1},
            {"adjustment_type": "scrap", "quantity": 2},
            {"adjustment_type": "return_to_supplier", "quantity": 1},
        ):
            stock_service.create_adjustment(organization_id=org_a.id, product_id=product_a.id, **kwargs)

        levels = stock_service.get_stock_by_status(org_a.id, product_a.id)
        assert levels == {"available": 7, "reserved": 0, "damaged": 0, "returned_qc": 1, "scrap": 2}
        assert sum(levels.values()) == 10


class TestReads:

    def test_organization_summary(self, org_a, product_a):
        stock_service.create_adjustment(
            organization_id=org_a.id, product_id=product_a.id,
            adjustment_type="damage", quantity=2, reason="Torn bag",
        )
        summary = stock_service.get_organization_stock_summary(org_a.id)

        assert summary["totals"]["available"] == 8
        assert summary["totals"]["damaged"] == 2
        assert summary["total_units"] == 10

    def test_audit_log_filters(self, org_a, product_a):
        stock_service.create_adjustment(
            organization_id=org_a.id, product_id=product_a.id,
            adjustment_type="damage", quantity=2, reason="Torn bag",
        )

        damaged = stock_service.list_audit_log(org_a.id, status="damaged")
        assert len(damaged) == 2
        decreases = stock_service.list_audit_log(org_a.id, action="decrease")
        assert len(decreases) == 1
        assert decreases[0].quantity_change == -2

        assert stock_service.list_audit_log(org_a.id, search="sugar")
        assert stock_service.list_audit_log(org_a.id, search="nothing-like-this") == []

    def test_adjustment_list_search_by_number(self, org_a, product_a):
        adjustments = stock_service.list_adjustments(org_a.id, search="ADJ-00001")
        assert [a.adjustment_type for a in adjustments] == ["receive"]

    def test_stock_for_foreign_product_raises(self, org_a, product_b):
        with pytest.raises(StockAdjustmentError):
            stock_service.get_stock_by_status(org_a.id, product_b.id)


# =============================================================================
# RETRY ON LOCK CONFLICTS
# =============================================================================

def _locked(statement="UPDATE product_stock"):
    return OperationalError(statement, {}, Exception("database is locked"))


class TestRunWithRetry:

    @pytest.fixture(autouse=True)
    def no_sleep(self, monkeypatch):
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

    def test_operational_error_retried_then_succeeds(self, db_session):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise _locked()
            return "done"

        assert run_with_retry(flaky) == "done"
        assert len(attempts) == 2

    def test_gives_up_after_last_attempt(self, db_session):
        attempts = []

        def always_locked():
            attempts.append(1)
            raise _locked()

        with pytest.raises(OperationalError):
            run_with_retry(always_locked, attempts=3)
        assert len(attempts) == 3

    def test_other_errors_not_retried(self, db_session):
        attempts = []

        def rejected():
            attempts.append(1)
            raise StockAdjustmentError("nope")

        with pytest.raises(StockAdjustmentError):
            run_with_retry(rejected)
        assert len(attempts) == 1

    def test_adjustment_survives_one_lock_conflict(self, monkeypatch, org_a, product_a):
        real_lock = stock_service.lock_counters
        calls = []

        def locked_once(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise _locked("SELECT product_stock FOR UPDATE")
            return real_lock(*args, **kwargs)

        monkeypatch.setattr(stock_service, "lock_counters", locked_once)
        adjustment = stock_service.create_adjustment(
            organization_id=org_a.id,
            product_id=product_a.id,
            adjustment_type="receive",
            quantity=3,
        )

        assert len(calls) == 2
        assert adjustment.adjustment_number == "ADJ-00002"
        assert stock_service.get_stock_by_status(org_a.id, product_a.id)["available"] == 13
