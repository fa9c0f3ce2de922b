"""
Module: billing_engines.aging
Responsibility:
    Age outstanding invoices by days past due and classify them into
    buckets for the outstanding-receivables report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel domain.

Invariants enforced:
    - Purity: no clock access; ``as_of_date`` is always passed in.
    - Decimal-only arithmetic for all amounts.
    - days_overdue = max(0, as_of_date - due_date); not-yet-due is "Current".
    - Only non-void, unpaid invoices with a positive balance are reported.

Failure modes:
    - ValueError from AgeBucket on a malformed range, or from
      ``buckets_from_thresholds`` on non-increasing thresholds.

Usage:
    calculator = AgingCalculator()
    report = calculator.build_report(invoices, as_of_date=date(2026, 3, 31))
    report.total_by_bucket()   # {"Current": ..., "1-30": ..., ...}
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence
from uuid import UUID

from billing_kernel.domain.dtos import Invoice, InvoiceStatus
from billing_kernel.domain.money import ZERO, sum_money
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """A contiguous range of days overdue.  ``max_days=None`` is unbounded."""

    name: str
    min_days: int
    max_days: int | None

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, days: int) -> bool:
        if days < self.min_days:
            return False
        return self.max_days is None or days <= self.max_days


def buckets_from_thresholds(thresholds: Sequence[int]) -> tuple[AgeBucket, ...]:
    """
    Build buckets from upper bounds: ``(30, 60)`` gives
    Current, 1-30, 31-60, 60+.
    """
    if any(t <= 0 for t in thresholds) or list(thresholds) != sorted(set(thresholds)):
        raise ValueError(f"thresholds must be positive and increasing: {thresholds!r}")
    buckets = [AgeBucket("Current", 0, 0)]
    lower = 1
    for upper in thresholds:
        buckets.append(AgeBucket(f"{lower}-{upper}", lower, upper))
        lower = upper + 1
    last = thresholds[-1] if thresholds else 0
    buckets.append(AgeBucket(f"{last}+", lower, None))
    return tuple(buckets)


STANDARD_BUCKETS: tuple[AgeBucket, ...] = buckets_from_thresholds((30, 60))


@dataclass(frozen=True)
class AgedItem:
    """An outstanding invoice with its age classification."""

    invoice_id: UUID
    invoice_number: str
    customer_id: UUID
    issue_date: date
    due_date: date
    total_amount: Decimal
    paid_amount: Decimal
    outstanding: Decimal
    days_overdue: int
    bucket: AgeBucket
    customer_name: str | None = None

    @property
    def is_overdue(self) -> bool:
        return self.days_overdue > 0


@dataclass(frozen=True)
class AgingReport:
    """Outstanding receivables as of one date."""

    as_of_date: date
    buckets: tuple[AgeBucket, ...]
    items: tuple[AgedItem, ...]

    @property
    def item_count(self) -> int:
        return len(self.items)

    def total_outstanding(self) -> Decimal:
        return sum_money(i.outstanding for i in self.items)

    def total_by_bucket(self) -> dict[str, Decimal]:
        """Outstanding per bucket; every bucket is present."""
        return {
            bucket.name: sum_money(i.outstanding for i in self.items if i.bucket == bucket)
            for bucket in self.buckets
        }

    def total_by_customer(self) -> dict[UUID, Decimal]:
        result: dict[UUID, Decimal] = {}
        for item in self.items:
            result[item.customer_id] = sum_money(
                (result.get(item.customer_id, ZERO), item.outstanding)
            )
        return result

    def items_in_bucket(self, bucket_name: str) -> tuple[AgedItem, ...]:
        return tuple(i for i in self.items if i.bucket.name == bucket_name)

    def overdue_items(self) -> tuple[AgedItem, ...]:
        return tuple(i for i in self.items if i.is_overdue)

    @property
    def overdue_count(self) -> int:
        return len(self.overdue_items())

    def overdue_amount(self) -> Decimal:
        return sum_money(i.outstanding for i in self.overdue_items())


class AgingCalculator:
    """
    Ages invoices.

    Contract:
        Pure functions -- no I/O, no database access.
    Guarantees:
        - ``classify`` maps every non-negative age to exactly one bucket
          of a well-formed bucket sequence.
    """

    DEFAULT_BUCKETS = STANDARD_BUCKETS

    def __init__(self, buckets: Sequence[AgeBucket] | None = None):
        self.buckets = tuple(buckets) if buckets is not None else self.DEFAULT_BUCKETS

    @staticmethod
    def days_overdue(due_date: date, as_of_date: date) -> int:
        return max(0, (as_of_date - due_date).days)

    def classify(self, days: int) -> AgeBucket:
        for bucket in self.buckets:
            if bucket.contains(days):
                return bucket
        logger.warning(
            "age_classification_no_bucket",
            extra={"days_overdue": days, "bucket_count": len(self.buckets)},
        )
        raise ValueError(f"Age {days} does not fit any bucket")

    @staticmethod
    def is_outstanding(invoice: Invoice) -> bool:
        return (
            invoice.status not in (InvoiceStatus.VOID, InvoiceStatus.PAID)
            and invoice.balance_due > 0
        )

    def age_invoice(
        self,
        invoice: Invoice,
        as_of_date: date,
        customer_name: str | None = None,
    ) -> AgedItem:
        days = self.days_overdue(invoice.due_date, as_of_date)
        return AgedItem(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            customer_id=invoice.customer_id,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            total_amount=invoice.total_amount,
            paid_amount=invoice.paid_amount,
            outstanding=invoice.balance_due,
            days_overdue=days,
            bucket=self.classify(days),
            customer_name=customer_name,
        )

    def build_report(
        self,
        invoices: Sequence[Invoice],
        as_of_date: date,
        customer_names: Mapping[UUID, str] | None = None,
    ) -> AgingReport:
        """
        Age every outstanding invoice in ``invoices`` as of ``as_of_date``.

        Items are ordered most overdue first, then by invoice number.
        """
        names = customer_names or {}
        items = [
            self.age_invoice(invoice, as_of_date, names.get(invoice.customer_id))
            for invoice in invoices
            if self.is_outstanding(invoice)
        ]
        items.sort(key=lambda i: (-i.days_overdue, i.invoice_number))

        report = AgingReport(
            as_of_date=as_of_date,
            buckets=self.buckets,
            items=tuple(items),
        )
        logger.info(
            "aging_report_generated",
            extra={
                "as_of_date": as_of_date.isoformat(),
                "item_count": report.item_count,
                "overdue_count": report.overdue_count,
                "total_outstanding": str(report.total_outstanding()),
            },
        )
        return report
