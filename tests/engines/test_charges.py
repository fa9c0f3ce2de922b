"""
Tests for charge snapshots and invoice aggregation.

Covers:
- Fee snapshot arithmetic (tax on the extended amount)
- Invoice totals equal the sum of their lines
- One non-void invoice per job
- Numbering and due dates
"""

import dataclasses
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.charges import (
    ChargeAggregator,
    build_charge_from_fee,
    build_line,
    compute_due_date,
    format_invoice_number,
)
from billing_kernel.domain.dtos import Customer, Fee, InvoiceStatus
from billing_kernel.exceptions import (
    DuplicateInvoiceError,
    EmptyChargeSetError,
    InactiveFeeError,
    NonPositiveInvoiceTotalError,
)
from tests.factories import make_invoice


@pytest.fixture
def customer():
    return Customer(id=uuid4(), name="Harbour Imports Ltd", payment_terms_days=30)


@pytest.fixture
def clearance_fee():
    return Fee(
        id=uuid4(),
        name="Customs Clearance",
        default_amount=Decimal("350.00"),
        is_taxable=True,
        tax_rate=Decimal("10"),
    )


class TestFeeSnapshot:

    def test_taxable_fee(self, clearance_fee):
        charge = build_charge_from_fee(clearance_fee, job_id=uuid4())

        assert charge.amount == Decimal("350.00")
        assert charge.quantity == Decimal("1")
        assert charge.tax_amount == Decimal("35.00")
        assert charge.total == Decimal("385.00")
        assert charge.fee_id == clearance_fee.id
        assert charge.description == "Customs Clearance"

    def test_override_amount_and_quantity(self, clearance_fee):
        charge = build_charge_from_fee(
            clearance_fee, job_id=uuid4(), amount=Decimal("100.00"), quantity=3,
            description="Clearance (3 entries)",
        )

        assert charge.tax_amount == Decimal("30.00")
        assert charge.total == Decimal("330.00")
        assert charge.description == "Clearance (3 entries)"

    def test_untaxed_fee_ignores_rate(self):
        fee = Fee(id=uuid4(), name="Storage", default_amount=Decimal("200.00"),
                  is_taxable=False, tax_rate=Decimal("10"))
        charge = build_charge_from_fee(fee, job_id=uuid4())

        assert charge.tax_amount == Decimal("0.00")
        assert charge.tax_rate == Decimal("0")
        assert charge.total == Decimal("200.00")

    def test_inactive_fee_rejected(self, clearance_fee):
        retired = dataclasses.replace(clearance_fee, is_active=False)
        with pytest.raises(InactiveFeeError):
            build_charge_from_fee(retired, job_id=uuid4())

    def test_free_form_line(self):
        line = build_line("Courier", "45.50", quantity=2, tax_rate="7.5")

        assert line.job_id is None
        assert line.tax_amount == Decimal("6.83")  # 91.00 * 7.5% = 6.825
        assert line.total == Decimal("97.83")


class TestAggregation:

    def setup_method(self):
        self.aggregator = ChargeAggregator()

    def test_scenario_clearance_and_storage(self, customer):
        """Clearance 350 at 10% tax plus storage 200 untaxed."""
        job_id = uuid4()
        charges = [
            build_line("Customs Clearance", "350.00", tax_rate=10, job_id=job_id),
            build_line("Storage", "200.00", job_id=job_id),
        ]

        draft = self.aggregator.build_invoice(
            customer=customer,
            charges=charges,
            invoice_number="INV-2024-0001",
            issue_date=date(2024, 3, 1),
            job_id=job_id,
        )

        invoice = draft.invoice
        assert invoice.subtotal == Decimal("550.00")
        assert invoice.tax_amount == Decimal("35.00")
        assert invoice.total_amount == Decimal("585.00")
        assert invoice.paid_amount == Decimal("0.00")
        assert invoice.status is InvoiceStatus.DRAFT
        assert invoice.due_date == date(2024, 3, 31)
        assert [i.line_number for i in draft.items] == [1, 2]
        assert all(i.invoice_id == invoice.id for i in draft.items)
        assert draft.items[0].tax_rate == Decimal("10")

    def test_items_copy_charge_fields(self, customer):
        charge = build_line("Inspection", "80.00", quantity=2, tax_rate=5)
        draft = self.aggregator.build_invoice(
            customer=customer, charges=[charge], invoice_number="INV-2024-0002",
            issue_date=date(2024, 3, 1),
        )
        item = draft.items[0]

        assert item.description == "Inspection"
        assert item.unit_price == charge.amount
        assert item.quantity == charge.quantity
        assert item.tax_amount == charge.tax_amount
        assert item.total == charge.total

    def test_missing_tax_rate_is_derived(self, customer):
        charge = dataclasses.replace(build_line("Legacy", "200.00", tax_rate=15), tax_rate=None)
        items = self.aggregator.build_items(uuid4(), [charge])

        assert items[0].tax_rate == Decimal("15.0000")

    def test_totals(self):
        totals = self.aggregator.totals([
            build_line("A", "10.00", quantity=3, tax_rate=10),
            build_line("B", "5.00"),
        ])

        assert totals.subtotal == Decimal("35.00")
        assert totals.tax_amount == Decimal("3.00")
        assert totals.total_amount == Decimal("38.00")
        assert totals.line_count == 2

    def test_subtotal_sums_rounded_lines(self):
        """Fractional quantities round per line, so subtotal + tax always equals total."""
        lines = [build_line("Storage", "10.00", quantity="0.3335") for _ in range(2)]
        totals = self.aggregator.totals(lines)

        assert [line.line_amount for line in lines] == [Decimal("3.34"), Decimal("3.34")]
        assert totals.subtotal == Decimal("6.68")
        assert totals.subtotal + totals.tax_amount == totals.total_amount


    def test_empty_charges_rejected(self, customer):
        with pytest.raises(EmptyChargeSetError):
            self.aggregator.build_invoice(
                customer=customer, charges=[], invoice_number="INV-2024-0003",
                issue_date=date(2024, 3, 1), job_id=uuid4(),
            )

    def test_zero_total_rejected(self, customer):
        with pytest.raises(NonPositiveInvoiceTotalError):
            self.aggregator.build_invoice(
                customer=customer, charges=[build_line("Waived", "0.00")],
                invoice_number="INV-2024-0004", issue_date=date(2024, 3, 1),
            )

    def test_second_live_invoice_for_job_rejected(self, customer):
        job_id = uuid4()
        existing = make_invoice(job_id=job_id, invoice_number="INV-2024-0007",
                                customer_id=customer.id)

        with pytest.raises(DuplicateInvoiceError) as exc_info:
            self.aggregator.build_invoice(
                customer=customer, charges=[build_line("Clearance", "100.00")],
                invoice_number="INV-2024-0008", issue_date=date(2024, 3, 1),
                job_id=job_id, existing_invoices=[existing],
            )
        assert exc_info.value.invoice_number == "INV-2024-0007"

    def test_void_invoice_does_not_block_rebilling(self, customer):
        job_id = uuid4()
        voided = make_invoice(job_id=job_id, status=InvoiceStatus.VOID)

        draft = self.aggregator.build_invoice(
            customer=customer, charges=[build_line("Clearance", "100.00")],
            invoice_number="INV-2024-0009", issue_date=date(2024, 3, 1),
            job_id=job_id, existing_invoices=[voided],
        )
        assert draft.invoice.job_id == job_id


class TestNumberingAndTerms:

    def test_invoice_number_format(self):
        assert format_invoice_number(2026, 7) == "INV-2026-0007"
        assert format_invoice_number(2026, 12345) == "INV-2026-12345"
        assert format_invoice_number(2024, 3, prefix="CB", padding=6) == "CB-2024-000003"

    def test_due_date_uses_customer_terms(self):
        assert compute_due_date(date(2024, 1, 31), 14) == date(2024, 2, 14)

    def test_due_date_default_terms(self):
        assert compute_due_date(date(2024, 1, 1), None) == date(2024, 1, 31)
        assert compute_due_date(date(2024, 1, 1), None, default_terms_days=45) == date(2024, 2, 15)

    def test_zero_terms_is_due_on_issue(self):
        assert compute_due_date(date(2024, 1, 1), 0) == date(2024, 1, 1)
