"""
Tests for receivables ORM models.

Covers:
- DTO round trips through the database
- Store-level guards (CHECK constraints, unique indexes, version counter)
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from billing_engines.charges import ChargeAggregator, build_line
from billing_kernel.domain.dtos import InvoiceStatus, Payment, PaymentMethod
from billing_modules.receivables.orm import (
    CustomerModel,
    InvoiceModel,
    JobModel,
    PaymentModel,
)
from tests.conftest import TEST_ACTOR_ID


def _draft(customer, job_id=None, number="INV-2024-9001", total="500.00"):
    return ChargeAggregator().build_invoice(
        customer=customer,
        charges=[build_line("Clearance", total, tax_rate=10)],
        invoice_number=number,
        issue_date=date(2024, 3, 1),
        job_id=job_id,
    ).invoice


class TestRoundTrip:

    def test_customer(self, session, create_customer):
        customer = create_customer(credit_limit=Decimal("5000"))

        loaded = session.get(CustomerModel, customer.id).to_dto()

        assert loaded.name == customer.name
        assert loaded.credit_limit == Decimal("5000.00")
        assert loaded.current_balance == Decimal("0.00")

    def test_job_with_charges(self, session, create_customer, create_job):
        customer = create_customer()
        job = create_job(customer, charges=[
            build_line("Customs Clearance", "350.00", tax_rate=10),
            build_line("Storage", "200.00"),
        ])
        session.expire_all()

        loaded = session.get(JobModel, job.id).to_dto()

        assert [c.description for c in loaded.charges] == ["Customs Clearance", "Storage"]
        assert loaded.charges[0].tax_amount == Decimal("35.00")
        assert loaded.charges[0].tax_rate == Decimal("10.0000")
        assert all(c.job_id == job.id for c in loaded.charges)
        assert loaded.total_amount == Decimal("585.00")

    def test_invoice_with_items(self, session, create_customer):
        customer = create_customer()
        invoice = _draft(customer)
        session.add(InvoiceModel.from_dto(invoice, TEST_ACTOR_ID))
        session.commit()
        session.expire_all()

        loaded = session.get(InvoiceModel, invoice.id).to_dto()

        assert loaded.total_amount == Decimal("550.00")
        assert loaded.status is InvoiceStatus.DRAFT
        assert len(loaded.items) == 1
        assert loaded.items[0].total == Decimal("550.00")
        assert loaded.due_date == date(2024, 3, 31)

    def test_payment(self, session, create_customer):
        customer = create_customer()
        invoice = _draft(customer)
        session.add(InvoiceModel.from_dto(invoice, TEST_ACTOR_ID))
        payment = Payment(
            id=uuid4(),
            invoice_id=invoice.id,
            customer_id=customer.id,
            amount=Decimal("125.50"),
            payment_date=date(2024, 3, 5),
            payment_method=PaymentMethod.CHEQUE,
            reference_number="CHQ-77",
            sequence=3,
        )
        session.add(PaymentModel.from_dto(payment, TEST_ACTOR_ID))
        session.commit()

        loaded = session.get(PaymentModel, payment.id).to_dto()

        assert loaded == payment


class TestStoreGuards:

    def test_invoice_number_unique(self, session, create_customer):
        customer = create_customer()
        session.add(InvoiceModel.from_dto(_draft(customer), TEST_ACTOR_ID))
        session.commit()

        session.add(InvoiceModel.from_dto(_draft(customer), TEST_ACTOR_ID))
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_one_live_invoice_per_job(self, session, create_customer, create_job):
        customer = create_customer()
        job = create_job(customer)
        session.add(InvoiceModel.from_dto(_draft(customer, job.id, "INV-2024-9001"), TEST_ACTOR_ID))
        session.commit()

        session.add(InvoiceModel.from_dto(_draft(customer, job.id, "INV-2024-9002"), TEST_ACTOR_ID))
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_void_invoice_frees_the_job(self, session, create_customer, create_job):
        customer = create_customer()
        job = create_job(customer)
        first = _draft(customer, job.id, "INV-2024-9001")
        session.add(InvoiceModel.from_dto(first, TEST_ACTOR_ID))
        session.commit()
        session.get(InvoiceModel, first.id).status = InvoiceStatus.VOID.value
        session.commit()

        session.add(InvoiceModel.from_dto(_draft(customer, job.id, "INV-2024-9002"), TEST_ACTOR_ID))
        session.commit()

        live = session.execute(
            select(InvoiceModel).where(
                InvoiceModel.job_id == job.id, InvoiceModel.status != InvoiceStatus.VOID.value
            )
        ).scalars().all()
        assert [m.invoice_number for m in live] == ["INV-2024-9002"]

    def test_paid_amount_cannot_exceed_total(self, session, create_customer):
        customer = create_customer()
        invoice = _draft(customer)
        session.add(InvoiceModel.from_dto(invoice, TEST_ACTOR_ID))
        session.commit()

        session.get(InvoiceModel, invoice.id).paid_amount = Decimal("9999.00")
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_invalid_status_rejected(self, session, create_customer):
        customer = create_customer()
        invoice = _draft(customer)
        session.add(InvoiceModel.from_dto(invoice, TEST_ACTOR_ID))
        session.commit()

        session.get(InvoiceModel, invoice.id).status = "settled"
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_stale_writer_detected(self, session, create_customer):
        customer = create_customer()
        invoice = _draft(customer)
        session.add(InvoiceModel.from_dto(invoice, TEST_ACTOR_ID))
        session.commit()
        model = session.get(InvoiceModel, invoice.id)
        assert model.version == 1

        # Another writer bumps the version behind the session's back.
        session.execute(
            update(InvoiceModel)
            .where(InvoiceModel.id == invoice.id)
            .values(version=InvoiceModel.version + 1)
            .execution_options(synchronize_session=False)
        )
        model.notes = "late edit"
        with pytest.raises(StaleDataError):
            session.flush()
        session.rollback()
