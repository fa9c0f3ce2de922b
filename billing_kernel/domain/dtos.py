"""
DTOs -- frozen domain records for the billing core.

Responsibility:
    The nouns the engines operate on: customers, catalog fees, jobs and
    their charges, invoices with their items, and payments.  Also the
    closed status/method enums, so that an illegal status string can
    never reach an engine.

Architecture position:
    Kernel > Domain -- pure data definitions with ZERO I/O.  Produced by
    the receivables ORM (``to_dto``) and by engines; never by SQL directly.

Invariants enforced:
    - All records are ``frozen=True``; engines return new records instead
      of mutating.
    - All monetary fields are ``Decimal`` -- NEVER ``float``.
    - ``Job.total_amount`` is computed from its charges, never stored
      independently on the record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.money import ZERO, round_money, sum_money
from billing_kernel.exceptions import InvalidPaymentAmountError


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""

    DRAFT = "draft"
    SENT = "sent"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    VOID = "void"


class JobStatus(str, Enum):
    """Clearance job states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    INVOICED = "invoiced"
    PARTIALLY_PAID = "partially_paid"
    CLEARED = "cleared"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CARD = "Card"
    CHEQUE = "Cheque"


@dataclass(frozen=True)
class Customer:
    """A customer billed for clearance work."""

    id: UUID
    name: str
    email: str | None = None
    payment_terms_days: int | None = None
    credit_limit: Decimal | None = None
    current_balance: Decimal = ZERO
    is_active: bool = True


@dataclass(frozen=True)
class Fee:
    """Catalog fee. A template only -- copied by value into job charges."""

    id: UUID
    name: str
    default_amount: Decimal
    is_taxable: bool = False
    tax_rate: Decimal = Decimal("0")
    is_active: bool = True
    description: str | None = None


@dataclass(frozen=True)
class JobCharge:
    """Snapshot of a billable fee line on a job (``job_id`` None on manual invoices)."""

    id: UUID
    job_id: UUID | None
    description: str
    amount: Decimal
    quantity: Decimal
    tax_amount: Decimal
    total: Decimal
    tax_rate: Decimal | None = None
    fee_id: UUID | None = None

    @property
    def line_amount(self) -> Decimal:
        """Pre-tax extended amount."""
        return round_money(self.amount * self.quantity)


@dataclass(frozen=True)
class Job:
    """A clearance job and its charges."""

    id: UUID
    job_number: str
    customer_id: UUID
    status: JobStatus = JobStatus.PENDING
    charges: tuple[JobCharge, ...] = field(default_factory=tuple)
    description: str | None = None

    @property
    def total_amount(self) -> Decimal:
        return sum_money(charge.total for charge in self.charges)

    @property
    def is_cancelled(self) -> bool:
        return self.status is JobStatus.CANCELLED


@dataclass(frozen=True)
class InvoiceItem:
    """A line on an invoice. Created with the invoice, never mutated."""

    id: UUID
    invoice_id: UUID
    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal


@dataclass(frozen=True)
class Invoice:
    """A customer invoice."""

    id: UUID
    invoice_number: str
    customer_id: UUID
    issue_date: date
    due_date: date
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal = ZERO
    status: InvoiceStatus = InvoiceStatus.DRAFT
    job_id: UUID | None = None
    items: tuple[InvoiceItem, ...] = field(default_factory=tuple)
    notes: str | None = None
    sequence: int = 0

    @property
    def balance_due(self) -> Decimal:
        return round_money(self.total_amount - self.paid_amount)

    @property
    def is_void(self) -> bool:
        return self.status is InvoiceStatus.VOID


@dataclass(frozen=True)
class Payment:
    """A payment received against one invoice. Immutable once recorded."""

    id: UUID
    invoice_id: UUID
    customer_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    reference_number: str | None = None
    notes: str | None = None
    sequence: int = 0

    def __post_init__(self):
        if self.amount <= 0:
            raise InvalidPaymentAmountError(self.amount)
