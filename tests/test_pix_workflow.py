"""
Fluxo do pedido PIX
===================
Chama o workflow direto, sem HTTP.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from matecloud.modules.pix_orders import workflow
from matecloud.modules.pix_orders.models import (
    PaymentStatus,
    PixOrder,
    legacy_status,
    normalize_payment_status,
    statuses_for_filter,
)
from matecloud.modules.plans.models import Plan
from matecloud.modules.profiles.models import Profile, Subscription
from matecloud.utils.dates import as_utc
from tests.conftest import USER_ID

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 64


def _order(order_id="o1", plan_id="p1", status=PaymentStatus.WAITING_REVIEW.value, **kw):
    return PixOrder(
        id=order_id,
        user_id=kw.pop("user_id", USER_ID),
        email="u1@example.com",
        plan_id=plan_id,
        plan_name="Mate Core",
        amount=49.90,
        payment_status=status,
        **kw,
    )


# ═══════════════════════════════════════════════════════════
# STATUS
# ═══════════════════════════════════════════════════════════

class TestStatus:

    def test_legacy_values_are_normalized(self):
        assert normalize_payment_status("pending") is PaymentStatus.WAITING_PAYMENT
        assert normalize_payment_status("Pagado") is PaymentStatus.APPROVED
        assert normalize_payment_status("cancelled") is PaymentStatus.REJECTED
        assert normalize_payment_status("waiting_review") is PaymentStatus.WAITING_REVIEW

    def test_unknown_value_raises(self):
        with pytest.raises(ValueError):
            normalize_payment_status("refunded")

    def test_legacy_pending_filter_covers_both_open_states(self):
        assert set(statuses_for_filter("pending")) == {"waiting_payment", "waiting_review"}
        assert set(statuses_for_filter("Pendiente")) == {"waiting_payment", "waiting_review"}
        assert statuses_for_filter("waiting_payment") == ("waiting_payment",)
        assert statuses_for_filter("paid") == ("approved",)

    def test_legacy_status_is_derived(self):
        assert legacy_status("waiting_payment") == "pending"
        assert legacy_status("waiting_review") == "pending"
        assert legacy_status("approved") == "paid"
        assert legacy_status("rejected") == "canceled"


# ═══════════════════════════════════════════════════════════
# APROVAÇÃO
# ═══════════════════════════════════════════════════════════

class TestApprove:

    def test_approve_grants_plan_and_removes_order(self, seeded, add_rows, run_db):
        add_rows(_order())

        result = run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))

        assert result.stock_decremented is True
        sub = result.subscription
        assert sub.plan_name == "Mate Core"
        assert sub.user_id == USER_ID
        assert as_utc(sub.end_date) - as_utc(sub.start_date) == timedelta(days=30)

        async def _check(db):
            profile = await db.get(Profile, USER_ID)
            plan = await db.get(Plan, "p1")
            order = await db.get(PixOrder, "o1")
            subs = (await db.execute(select(Subscription))).scalars().all()
            return profile, plan, order, subs

        profile, plan, order, subs = run_db(_check)
        assert profile.active_plan == "p1"
        assert as_utc(profile.active_plan_until) == as_utc(sub.end_date)
        assert plan.stock == 4
        assert order is None
        assert len(subs) == 1

    def test_approve_from_waiting_payment(self, seeded, add_rows, run_db):
        add_rows(_order(status=PaymentStatus.WAITING_PAYMENT.value))
        result = run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))
        assert result.order_id == "o1"

    def test_plan_without_duration_uses_default(self, seeded, add_rows, run_db):
        add_rows(Plan(id="p2", name="Mate Lite", price="R$ 19,90", stock=1), _order(plan_id="p2"))

        result = run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))

        assert as_utc(result.active_plan_until) == NOW + timedelta(days=30)

    def test_empty_stock_still_approves(self, seeded, add_rows, run_db):
        add_rows(Plan(id="p3", name="Mate Max", price="R$ 99,90", stock=0, duration_days=7), _order(plan_id="p3"))

        result = run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))

        assert result.stock_decremented is False
        plan = run_db(lambda db: db.get(Plan, "p3"))
        assert plan.stock == 0

    def test_missing_plan_changes_nothing(self, seeded, add_rows, run_db):
        add_rows(_order(plan_id="ghost"))

        with pytest.raises(workflow.OrderNotFound):
            run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))

        async def _check(db):
            profile = await db.get(Profile, USER_ID)
            order = await db.get(PixOrder, "o1")
            subs = (await db.execute(select(Subscription))).scalars().all()
            return profile, order, subs

        profile, order, subs = run_db(_check)
        assert profile.active_plan is None
        assert order is not None
        assert subs == []

    def test_missing_profile_changes_nothing(self, seeded, add_rows, run_db):
        add_rows(_order(user_id="nobody"))

        with pytest.raises(workflow.OrderNotFound):
            run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))

        plan = run_db(lambda db: db.get(Plan, "p1"))
        assert plan.stock == 5

    def test_second_approve_is_not_found(self, seeded, add_rows, run_db):
        add_rows(_order())
        run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))

        with pytest.raises(workflow.OrderNotFound):
            run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))

        plan = run_db(lambda db: db.get(Plan, "p1"))
        assert plan.stock == 4

    def test_rejected_order_cannot_be_approved(self, seeded, add_rows, run_db):
        add_rows(_order(status=PaymentStatus.REJECTED.value, admin_notes="x"))

        with pytest.raises(workflow.InvalidTransition):
            run_db(lambda db: workflow.approve_order(db, "o1", now=NOW))


# ═══════════════════════════════════════════════════════════
# REJEIÇÃO
# ═══════════════════════════════════════════════════════════

class TestReject:

    def test_reject_keeps_order_with_notes(self, seeded, add_rows, run_db):
        add_rows(_order())

        order = run_db(lambda db: workflow.reject_order(db, "o1", "  comprovante ilegível ", now=NOW))

        assert order.payment_status == "rejected"
        assert order.status == "canceled"
        assert order.admin_notes == "comprovante ilegível"
        assert as_utc(order.reviewed_at) == NOW

    def test_blank_notes_rejected_before_touching_db(self):
        with pytest.raises(workflow.OrderValidationError):
            asyncio.run(workflow.reject_order(None, "o1", "   "))

    def test_blank_notes_leave_order_untouched(self, seeded, add_rows, run_db):
        add_rows(_order())

        with pytest.raises(workflow.OrderValidationError):
            run_db(lambda db: workflow.reject_order(db, "o1", ""))

        order = run_db(lambda db: db.get(PixOrder, "o1"))
        assert order.payment_status == "waiting_review"
        assert order.admin_notes is None

    def test_reject_twice_is_conflict(self, seeded, add_rows, run_db):
        add_rows(_order())
        run_db(lambda db: workflow.reject_order(db, "o1", "sem pagamento"))

        with pytest.raises(workflow.InvalidTransition):
            run_db(lambda db: workflow.reject_order(db, "o1", "de novo"))


# ═══════════════════════════════════════════════════════════
# COMPROVANTE E DADOS PIX
# ═══════════════════════════════════════════════════════════

class TestUploads:

    def test_validate_upload_accepts_image_and_pdf(self):
        assert workflow.validate_upload(PNG, "image/png") == "image/png"
        assert workflow.validate_upload(b"%PDF-1.4", "application/pdf; charset=binary") == "application/pdf"

    def test_validate_upload_rejects_bad_input(self):
        with pytest.raises(workflow.OrderValidationError):
            workflow.validate_upload(b"", "image/png")
        with pytest.raises(workflow.OrderValidationError):
            workflow.validate_upload(b"hello", "text/plain")
        with pytest.raises(workflow.OrderValidationError):
            workflow.validate_upload(b"x" * 11, "image/png", max_bytes=10)
        with pytest.raises(workflow.OrderValidationError):
            workflow.validate_upload(b"%PDF", "application/pdf", allow_pdf=False)

    def test_invalid_proof_fails_before_db(self):

        # db=None: qualquer acesso ao banco quebraria com AttributeError
        with pytest.raises(workflow.OrderValidationError):
            asyncio.run(workflow.submit_payment_proof(
                None, "o1", USER_ID, content=b"text", filename="a.txt", content_type="text/plain",
            ))

    def test_proof_moves_to_waiting_review(self, seeded, add_rows, run_db):
        add_rows(_order(status=PaymentStatus.WAITING_PAYMENT.value))

        order = run_db(lambda db: workflow.submit_payment_proof(
            db, "o1", USER_ID, content=PNG, filename="pix.png", content_type="image/png", now=NOW,
        ))

        assert order.payment_status == "waiting_review"
        assert order.payment_proof_filename == "pix.png"
        assert order.payment_proof_mime == "image/png"
        assert order.payment_proof
        assert as_utc(order.payment_confirmed_at) == NOW

    def test_proof_for_someone_elses_order_is_not_found(self, seeded, add_rows, run_db):
        add_rows(_order(status=PaymentStatus.WAITING_PAYMENT.value))

        with pytest.raises(workflow.OrderNotFound):
            run_db(lambda db: workflow.submit_payment_proof(
                db, "o1", "intruder", content=PNG, filename="pix.png", content_type="image/png",
            ))

    def test_attach_code_then_image_keeps_only_one(self, seeded, add_rows, run_db):
        add_rows(_order(status=PaymentStatus.WAITING_PAYMENT.value))

        order = run_db(lambda db: workflow.attach_pix_details(db, "o1", pix_code="chave@pix.com"))
        assert order.pix_type == "code"
        assert order.pix_code == "chave@pix.com"

        order = run_db(lambda db: workflow.attach_pix_details(db, "o1", qr_image=PNG, qr_mime="image/png"))
        assert order.pix_type == "qr_image"
        assert order.pix_code is None
        assert order.pix_qr_image
        assert order.payment_status == "waiting_payment"

    def test_attach_requires_exactly_one(self, seeded, add_rows, run_db):
        add_rows(_order(status=PaymentStatus.WAITING_PAYMENT.value))

        with pytest.raises(workflow.OrderValidationError):
            run_db(lambda db: workflow.attach_pix_details(db, "o1"))
        with pytest.raises(workflow.OrderValidationError):
            run_db(lambda db: workflow.attach_pix_details(
                db, "o1", pix_code="abc", qr_image=PNG, qr_mime="image/png",
            ))

    def test_attach_after_proof_is_conflict(self, seeded, add_rows, run_db):
        add_rows(_order(status=PaymentStatus.WAITING_REVIEW.value))

        with pytest.raises(workflow.InvalidTransition):
            run_db(lambda db: workflow.attach_pix_details(db, "o1", pix_code="abc"))


# ═══════════════════════════════════════════════════════════
# CRIAÇÃO E LISTAGEM
# ═══════════════════════════════════════════════════════════

class TestCreate:

    def test_duplicate_open_order_is_conflict(self, seeded, run_db):
        run_db(lambda db: workflow.create_order(db, plan_id="p1", amount=49.9, user_id=USER_ID))

        with pytest.raises(workflow.OrderConflict):
            run_db(lambda db: workflow.create_order(db, plan_id="p1", amount=49.9, user_id=USER_ID))

    def test_unexpired_plan_blocks_purchase(self, seeded, run_db):
        async def _give_plan(db):
            profile = await db.get(Profile, USER_ID)
            profile.active_plan = "p1"
            profile.active_plan_until = datetime.now(timezone.utc) + timedelta(days=3)
            await db.commit()

        run_db(_give_plan)

        with pytest.raises(workflow.OrderConflict):
            run_db(lambda db: workflow.create_order(
                db, plan_id="p1", amount=49.9, user_id=USER_ID, check_availability=True,
            ))

    def test_out_of_stock_uses_configured_message(self, seeded, add_rows, run_db):
        add_rows(Plan(id="p3", name="Mate Max", price="R$ 99,90", stock=0))

        with pytest.raises(workflow.OrderValidationError) as exc:
            run_db(lambda db: workflow.create_order(
                db, plan_id="p3", amount=99.9, user_id=USER_ID, check_availability=True,
            ))
        assert "indisponível" in exc.value.message

    def test_list_orders_accepts_legacy_filter(self, seeded, add_rows, run_db):
        add_rows(
            _order("o1", status=PaymentStatus.WAITING_PAYMENT.value),
            _order("o2", status=PaymentStatus.REJECTED.value),
            _order("o3", status=PaymentStatus.WAITING_REVIEW.value),
        )

        pending = run_db(lambda db: workflow.list_orders(db, "pending"))
        assert sorted(o.id for o in pending) == ["o1", "o3"]

        waiting = run_db(lambda db: workflow.list_orders(db, "waiting_payment"))
        assert [o.id for o in waiting] == ["o1"]

        with pytest.raises(workflow.OrderValidationError):
            run_db(lambda db: workflow.list_orders(db, "refunded"))

    def test_delete_missing_order_is_not_found(self, seeded, run_db):
        with pytest.raises(workflow.OrderNotFound):
            run_db(lambda db: workflow.delete_order(db, "nope"))

    def test_explicit_order_id_must_be_new(self, seeded, add_rows, run_db):
        add_rows(_order("o1", status=PaymentStatus.REJECTED.value))

        with pytest.raises(workflow.OrderConflict):
            run_db(lambda db: workflow.create_order(
                db, plan_id="p1", amount=49.9, email="u1@example.com", order_id="o1",
            ))

    def test_order_needs_user_or_email(self, seeded, run_db):
        with pytest.raises(workflow.OrderValidationError):
            run_db(lambda db: workflow.create_order(db, plan_id="p1", amount=10))
