"""
Pure revenue and customer-activity report functions.

Monthly revenue groups non-void invoices by the month of their issue date
and reports what was billed, what has been collected and what is still
pending.  Customer analysis rolls the same invoices up per customer,
together with each customer's job count.

ZERO I/O.  No clock access.  All amounts are Decimal.
"""

from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Mapping, Sequence
from uuid import UUID

from billing_kernel.domain.dtos import Invoice
from billing_kernel.domain.money import ZERO, round_money, sum_money

_HUNDRED = Decimal("100")
_RATE_PLACES = 1


def collection_rate(billed: Decimal, collected: Decimal) -> Decimal:
    """``collected / billed`` as a percentage to one decimal place; 0.0 when nothing was billed."""
    if billed <= 0:
        return round_money(ZERO, _RATE_PLACES)
    return round_money(collected / billed * _HUNDRED, _RATE_PLACES)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def _live(invoices: Iterable[Invoice]) -> list[Invoice]:
    return [i for i in invoices if not i.is_void]


# =========================================================================
# Monthly revenue
# =========================================================================


@dataclasses.dataclass(frozen=True)
class MonthlyRevenue:
    """Billing and collection totals for one calendar month."""

    month: str  # YYYY-MM
    invoice_count: int
    billed: Decimal
    collected: Decimal
    pending: Decimal

    @property
    def collection_rate(self) -> Decimal:
        return collection_rate(self.billed, self.collected)


@dataclasses.dataclass(frozen=True)
class RevenueReport:
    """Months newest first, plus the grand totals across them."""

    months: tuple[MonthlyRevenue, ...]

    @property
    def invoice_count(self) -> int:
        return sum(m.invoice_count for m in self.months)

    @property
    def billed(self) -> Decimal:
        return sum_money(m.billed for m in self.months)

    @property
    def collected(self) -> Decimal:
        return sum_money(m.collected for m in self.months)

    @property
    def pending(self) -> Decimal:
        return sum_money(m.pending for m in self.months)

    @property
    def collection_rate(self) -> Decimal:
        return collection_rate(self.billed, self.collected)

    def for_month(self, key: str) -> RevenueReport:
        """The report narrowed to a single ``YYYY-MM`` month."""
        return RevenueReport(months=tuple(m for m in self.months if m.month == key))


def build_revenue_report(invoices: Sequence[Invoice]) -> RevenueReport:
    """Group non-void invoices by issue month. Months with no invoices are omitted."""
    by_month: dict[str, list[Invoice]] = {}
    for invoice in _live(invoices):
        by_month.setdefault(month_key(invoice.issue_date), []).append(invoice)

    months = [
        MonthlyRevenue(
            month=key,
            invoice_count=len(group),
            billed=sum_money(i.total_amount for i in group),
            collected=sum_money(i.paid_amount for i in group),
            pending=sum_money(i.balance_due for i in group),
        )
        for key, group in by_month.items()
    ]
    months.sort(key=lambda m: m.month, reverse=True)
    return RevenueReport(months=tuple(months))


# =========================================================================
# Customer analysis
# =========================================================================


class PaymentRating(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


# (minimum payment rate, rating), best first
_RATING_THRESHOLDS: tuple[tuple[Decimal, PaymentRating], ...] = (
    (Decimal("90"), PaymentRating.EXCELLENT),
    (Decimal("75"), PaymentRating.GOOD),
    (Decimal("50"), PaymentRating.FAIR),
)


def rate_payer(payment_rate: Decimal) -> PaymentRating:
    for minimum, rating in _RATING_THRESHOLDS:
        if payment_rate >= minimum:
            return rating
    return PaymentRating.POOR


@dataclasses.dataclass(frozen=True)
class CustomerActivity:
    """One customer's billing history in aggregate."""

    customer_id: UUID
    customer_name: str
    job_count: int
    billed: Decimal
    paid: Decimal
    outstanding: Decimal

    @property
    def average_job_value(self) -> Decimal:
        if self.job_count == 0:
            return ZERO
        return round_money(self.billed / self.job_count)

    @property
    def payment_rate(self) -> Decimal:
        return collection_rate(self.billed, self.paid)

    @property
    def rating(self) -> PaymentRating:
        return rate_payer(self.payment_rate)


class CustomerSort(str, Enum):
    REVENUE = "revenue"
    JOBS = "jobs"
    OUTSTANDING = "outstanding"
    PAYMENT_RATE = "payment_rate"


_SORT_KEYS = {
    CustomerSort.REVENUE: lambda c: c.billed,
    CustomerSort.JOBS: lambda c: c.job_count,
    CustomerSort.OUTSTANDING: lambda c: c.outstanding,
    CustomerSort.PAYMENT_RATE: lambda c: c.payment_rate,
}


@dataclasses.dataclass(frozen=True)
class CustomerAnalysis:
    rows: tuple[CustomerActivity, ...]
    sort_by: CustomerSort

    @property
    def job_count(self) -> int:
        return sum(r.job_count for r in self.rows)

    @property
    def billed(self) -> Decimal:
        return sum_money(r.billed for r in self.rows)

    @property
    def paid(self) -> Decimal:
        return sum_money(r.paid for r in self.rows)

    @property
    def outstanding(self) -> Decimal:
        return sum_money(r.outstanding for r in self.rows)


def build_customer_analysis(
    customer_names: Mapping[UUID, str],
    job_counts: Mapping[UUID, int],
    invoices: Sequence[Invoice],
    sort_by: CustomerSort | str = CustomerSort.REVENUE,
) -> CustomerAnalysis:
    """
    Roll up jobs and non-void invoices per customer.

    Only customers named in ``customer_names`` are reported, and of those
    only the ones with at least one job or a positive billed amount.
    Rows are ordered descending by ``sort_by``, ties by customer name.

    Raises:
        ValueError: ``sort_by`` is not a CustomerSort value.
    """
    order = CustomerSort(sort_by)
    by_customer: dict[UUID, list[Invoice]] = {}
    for invoice in _live(invoices):
        by_customer.setdefault(invoice.customer_id, []).append(invoice)

    rows = []
    for customer_id, name in customer_names.items():
        group = by_customer.get(customer_id, [])
        row = CustomerActivity(
            customer_id=customer_id,
            customer_name=name,
            job_count=job_counts.get(customer_id, 0),
            billed=sum_money(i.total_amount for i in group),
            paid=sum_money(i.paid_amount for i in group),
            outstanding=sum_money(i.balance_due for i in group),
        )
        if row.job_count > 0 or row.billed > 0:
            rows.append(row)

    rows.sort(key=lambda r: r.customer_name)
    rows.sort(key=_SORT_KEYS[order], reverse=True)
    return CustomerAnalysis(rows=tuple(rows), sort_by=order)
