"""
Module: billing_engines.charges
Responsibility:
    Snapshot catalog fees into job charges, and aggregate a job's charges
    into an invoice with its items.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel domain and exceptions.

Invariants enforced:
    - Charges are snapshots: aggregation copies description, quantity,
      unit price and tax fields verbatim, never re-reading the fee catalog.
    - subtotal = sum(amount * quantity), tax_amount = sum(line tax),
      total_amount = sum(line total).
    - At most one non-void invoice per job (DuplicateInvoiceError).
    - The invoice and its items are produced together or not at all.

Failure modes:
    - EmptyChargeSetError when no charges are supplied.
    - DuplicateInvoiceError naming the conflicting invoice number.
    - NonPositiveInvoiceTotalError when charges total zero or less.
    - InactiveFeeError when snapshotting an inactive fee.

Usage:
    aggregator = ChargeAggregator()
    draft = aggregator.build_invoice(
        customer=customer,
        charges=job.charges,
        invoice_number=format_invoice_number(2026, 17),
        issue_date=date(2026, 3, 1),
        job_id=job.id,
        existing_invoices=invoices_for_job,
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID, uuid4

from billing_kernel.domain.dtos import (
    Customer,
    Fee,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    JobCharge,
)
from billing_kernel.domain.money import (
    ZERO,
    compute_tax,
    derive_tax_rate,
    multiply,
    round_money,
    sum_money,
    to_money,
)
from billing_kernel.exceptions import (
    DuplicateInvoiceError,
    EmptyChargeSetError,
    InactiveFeeError,
    NonPositiveInvoiceTotalError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.charges")

DEFAULT_PAYMENT_TERMS_DAYS = 30


def format_invoice_number(
    year: int,
    sequence: int,
    prefix: str = "INV",
    padding: int = 4,
) -> str:
    """``INV-<year>-<sequence>``, sequence zero-padded: ``INV-2026-0007``."""
    return f"{prefix}-{year}-{sequence:0{padding}d}"


def compute_due_date(
    issue_date: date,
    payment_terms_days: int | None,
    default_terms_days: int = DEFAULT_PAYMENT_TERMS_DAYS,
) -> date:
    """Issue date plus the customer's terms (``default_terms_days`` when absent)."""
    terms = default_terms_days if payment_terms_days is None else payment_terms_days
    return issue_date + timedelta(days=terms)


def build_charge_from_fee(
    fee: Fee,
    job_id: UUID,
    amount: Decimal | None = None,
    quantity: Decimal | int = 1,
    description: str | None = None,
    charge_id: UUID | None = None,
) -> JobCharge:
    """
    Snapshot a catalog fee into a job charge.

    The amount defaults to the fee's default amount.  Tax is charged on the
    extended line amount at the fee's rate when the fee is taxable.
    """
    if not fee.is_active:
        raise InactiveFeeError(str(fee.id), fee.name)

    unit_price = round_money(fee.default_amount if amount is None else amount)
    qty = to_money(quantity)
    base = multiply(unit_price, qty)
    rate = to_money(fee.tax_rate) if fee.is_taxable else Decimal("0")
    tax_amount = compute_tax(base, rate) if fee.is_taxable else ZERO

    return JobCharge(
        id=charge_id or uuid4(),
        job_id=job_id,
        description=description or fee.name,
        amount=unit_price,
        quantity=qty,
        tax_amount=tax_amount,
        total=round_money(base + tax_amount),
        tax_rate=rate,
        fee_id=fee.id,
    )


def build_line(
    description: str,
    unit_price: Decimal | int | str,
    quantity: Decimal | int = 1,
    tax_rate: Decimal | int | str = 0,
    job_id: UUID | None = None,
) -> JobCharge:
    """A free-form charge line, as entered on a manual invoice."""
    price = round_money(unit_price)
    qty = to_money(quantity)
    rate = to_money(tax_rate)
    base = multiply(price, qty)
    tax_amount = compute_tax(base, rate)
    return JobCharge(
        id=uuid4(),
        job_id=job_id,
        description=description,
        amount=price,
        quantity=qty,
        tax_amount=tax_amount,
        total=round_money(base + tax_amount),
        tax_rate=rate,
    )


@dataclass(frozen=True)
class ChargeTotals:
    """Aggregated amounts for a set of charges."""

    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    line_count: int


@dataclass(frozen=True)
class InvoiceDraft:
    """An invoice and its items, produced together."""

    invoice: Invoice
    items: tuple[InvoiceItem, ...]


class ChargeAggregator:
    """
    Turns job charges into an invoice.

    Stateless; one instance may be shared.
    """

    def totals(self, charges: Sequence[JobCharge]) -> ChargeTotals:
        """Subtotal, tax and total of ``charges``."""
        return ChargeTotals(
            subtotal=sum_money(c.line_amount for c in charges),
            tax_amount=sum_money(c.tax_amount for c in charges),
            total_amount=sum_money(c.total for c in charges),
            line_count=len(charges),
        )

    def build_items(
        self,
        invoice_id: UUID,
        charges: Sequence[JobCharge],
    ) -> tuple[InvoiceItem, ...]:
        """One item per charge, in charge order."""
        items = []
        for line_number, charge in enumerate(charges, start=1):
            if charge.tax_rate is not None:
                tax_rate = charge.tax_rate
            else:
                tax_rate = derive_tax_rate(charge.line_amount, charge.tax_amount)
            items.append(
                InvoiceItem(
                    id=uuid4(),
                    invoice_id=invoice_id,
                    line_number=line_number,
                    description=charge.description,
                    quantity=charge.quantity,
                    unit_price=charge.amount,
                    tax_rate=tax_rate,
                    tax_amount=charge.tax_amount,
                    total=charge.total,
                )
            )
        return tuple(items)

    def build_invoice(
        self,
        customer: Customer,
        charges: Sequence[JobCharge],
        invoice_number: str,
        issue_date: date,
        job_id: UUID | None = None,
        existing_invoices: Iterable[Invoice] = (),
        default_terms_days: int = DEFAULT_PAYMENT_TERMS_DAYS,
        notes: str | None = None,
        invoice_id: UUID | None = None,
        sequence: int = 0,
    ) -> InvoiceDraft:
        """
        Build a draft invoice and its items from ``charges``.

        Args:
            customer: The billed customer (supplies payment terms).
            charges: Ordered charge snapshots.
            invoice_number: Pre-allocated human-readable number.
            issue_date: Issue date; due date = issue date + terms.
            job_id: Linked job, or None for a manual invoice.
            existing_invoices: Invoices already linked to ``job_id``.
            default_terms_days: Terms used when the customer has none.

        Raises:
            EmptyChargeSetError, DuplicateInvoiceError,
            NonPositiveInvoiceTotalError.
        """
        if not charges:
            raise EmptyChargeSetError(str(job_id) if job_id else None)

        if job_id is not None:
            for existing in existing_invoices:
                if existing.job_id == job_id and not existing.is_void:
                    logger.warning(
                        "duplicate_invoice_rejected",
                        extra={
                            "job_id": str(job_id),
                            "existing_invoice_number": existing.invoice_number,
                        },
                    )
                    raise DuplicateInvoiceError(str(job_id), existing.invoice_number)

        totals = self.totals(charges)
        if totals.total_amount <= 0:
            raise NonPositiveInvoiceTotalError(totals.total_amount)

        invoice_id = invoice_id or uuid4()
        items = self.build_items(invoice_id, charges)
        invoice = Invoice(
            id=invoice_id,
            invoice_number=invoice_number,
            customer_id=customer.id,
            issue_date=issue_date,
            due_date=compute_due_date(
                issue_date, customer.payment_terms_days, default_terms_days
            ),
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            paid_amount=ZERO,
            status=InvoiceStatus.DRAFT,
            job_id=job_id,
            items=items,
            notes=notes,
            sequence=sequence,
        )

        logger.info(
            "invoice_drafted",
            extra={
                "invoice_number": invoice_number,
                "customer_id": str(customer.id),
                "job_id": str(job_id) if job_id else None,
                "line_count": totals.line_count,
                "subtotal": str(totals.subtotal),
                "tax_amount": str(totals.tax_amount),
                "total_amount": str(totals.total_amount),
            },
        )
        return InvoiceDraft(invoice=invoice, items=items)
