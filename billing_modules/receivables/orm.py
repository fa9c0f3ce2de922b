"""
Receivables ORM Models (``billing_modules.receivables.orm``).

Responsibility
--------------
SQLAlchemy persistence models for customers, the fee catalog, jobs and
their charges, invoices with their items, and payments.  Maps the frozen
domain records in ``billing_kernel.domain.dtos`` to database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db.base``
and the kernel DTOs.  MUST NOT be imported by ``billing_kernel`` or
``billing_engines``.

Store-level guards
------------------
- ``invoices.invoice_number`` is unique.
- At most one non-void invoice per job: partial unique index on
  ``invoices(job_id) WHERE status <> 'void'``.
- ``0 <= paid_amount <= total_amount`` and ``payments.amount > 0`` as
  CHECK constraints.
- ``invoices.version`` is an optimistic version counter; a concurrent
  writer that read a stale row fails with ``StaleDataError``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase
from billing_kernel.domain.dtos import (
    Customer,
    Fee,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Job,
    JobCharge,
    JobStatus,
    Payment,
    PaymentMethod,
)
from billing_kernel.domain.money import ZERO, round_money


def _in_list(column: str, values) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


def _rate(value: Decimal | None) -> Decimal | None:
    return None if value is None else round_money(value, 4)


# ---------------------------------------------------------------------------
# 1. CustomerModel
# ---------------------------------------------------------------------------


class CustomerModel(TrackedBase):
    """
    ORM model for customers.

    Guarantees:
        - current_balance is a snapshot.  ReceivablesService rewrites it in
          the same transaction as the invoice, payment or void that changed
          it; nothing else writes it.
    """

    __tablename__ = "customers"

    __table_args__ = (
        Index("idx_customers_name", "name"),
        CheckConstraint(
            "payment_terms_days IS NULL OR payment_terms_days >= 0",
            name="ck_customers_payment_terms",
        ),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_terms_days: Mapped[int | None] = mapped_column(nullable=True)
    credit_limit: Mapped[Decimal | None] = mapped_column(nullable=True)
    current_balance: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self) -> Customer:
        """Convert ORM model to frozen dataclass."""
        return Customer(
            id=self.id,
            name=self.name,
            email=self.email,
            payment_terms_days=self.payment_terms_days,
            credit_limit=(
                round_money(self.credit_limit) if self.credit_limit is not None else None
            ),
            current_balance=round_money(self.current_balance or ZERO),
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto: Customer, created_by_id: UUID) -> "CustomerModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            name=dto.name,
            email=dto.email,
            payment_terms_days=dto.payment_terms_days,
            credit_limit=dto.credit_limit,
            current_balance=dto.current_balance,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<CustomerModel {self.name}>"


# ---------------------------------------------------------------------------
# 2. FeeModel
# ---------------------------------------------------------------------------


class FeeModel(TrackedBase):
    """
    ORM model for the fee catalog.

    A template only: job charges copy its values and never refer back.
    """

    __tablename__ = "fees"

    __table_args__ = (
        UniqueConstraint("name", name="uq_fees_name"),
        CheckConstraint("tax_rate >= 0", name="ck_fees_tax_rate"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_amount: Mapped[Decimal] = mapped_column(nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, default=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self) -> Fee:
        """Convert ORM model to frozen dataclass."""
        return Fee(
            id=self.id,
            name=self.name,
            default_amount=round_money(self.default_amount),
            is_taxable=self.is_taxable,
            tax_rate=_rate(self.tax_rate),
            is_active=self.is_active,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: Fee, created_by_id: UUID) -> "FeeModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            name=dto.name,
            description=dto.description,
            default_amount=dto.default_amount,
            is_taxable=dto.is_taxable,
            tax_rate=dto.tax_rate,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<FeeModel {self.name}: {self.default_amount}>"


# ---------------------------------------------------------------------------
# 3. JobModel
# ---------------------------------------------------------------------------


class JobModel(TrackedBase):
    """
    ORM model for clearance jobs.

    Guarantees:
        - total_amount equals the sum of its charge totals after every
          ReceivablesService.save_job_charges().
        - status is one of the JobStatus values.
    """

    __tablename__ = "jobs"

    __table_args__ = (
        UniqueConstraint("job_number", name="uq_jobs_job_number"),
        Index("idx_jobs_customer_id", "customer_id"),
        Index("idx_jobs_status", "status"),
        CheckConstraint(_in_list("status", JobStatus), name="ck_jobs_valid_status"),
    )

    job_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(ForeignKey("customers.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=JobStatus.PENDING.value
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    charges: Mapped[list["JobChargeModel"]] = relationship(
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobChargeModel.line_number",
        lazy="selectin",
    )

    def to_dto(self) -> Job:
        """Convert ORM model to frozen dataclass."""
        return Job(
            id=self.id,
            job_number=self.job_number,
            customer_id=self.customer_id,
            status=JobStatus(self.status),
            charges=tuple(charge.to_dto() for charge in self.charges),
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: Job, created_by_id: UUID) -> "JobModel":
        """Create ORM model from frozen dataclass."""
        model = cls(
            id=dto.id,
            job_number=dto.job_number,
            customer_id=dto.customer_id,
            status=dto.status.value,
            description=dto.description,
            total_amount=dto.total_amount,
            created_by_id=created_by_id,
        )
        for line_number, charge in enumerate(dto.charges, start=1):
            model.charges.append(
                JobChargeModel.from_dto(charge, line_number, created_by_id)
            )
        return model

    def __repr__(self) -> str:
        return f"<JobModel {self.job_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# 4. JobChargeModel
# ---------------------------------------------------------------------------


class JobChargeModel(TrackedBase):
    """
    ORM model for job charges (the ``job_fees`` table).

    Snapshot of a fee at charge time; ``fee_id`` is informational only.
    """

    __tablename__ = "job_fees"

    __table_args__ = (
        UniqueConstraint("job_id", "line_number", name="uq_job_fees_job_line"),
        Index("idx_job_fees_job_id", "job_id"),
        CheckConstraint("quantity >= 0", name="ck_job_fees_quantity"),
    )

    job_id: Mapped[UUID] = mapped_column(ForeignKey("jobs.id"), nullable=False)
    fee_id: Mapped[UUID | None] = mapped_column(ForeignKey("fees.id"), nullable=True)
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(9, 4), nullable=True)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total: Mapped[Decimal] = mapped_column(nullable=False)

    job: Mapped["JobModel"] = relationship(back_populates="charges")

    def to_dto(self) -> JobCharge:
        """Convert ORM model to frozen dataclass."""
        return JobCharge(
            id=self.id,
            job_id=self.job_id,
            description=self.description,
            amount=round_money(self.amount),
            quantity=self.quantity,
            tax_amount=round_money(self.tax_amount),
            total=round_money(self.total),
            tax_rate=_rate(self.tax_rate),
            fee_id=self.fee_id,
        )

    @classmethod
    def from_dto(
        cls,
        dto: JobCharge,
        line_number: int,
        created_by_id: UUID,
    ) -> "JobChargeModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            job_id=dto.job_id,
            fee_id=dto.fee_id,
            line_number=line_number,
            description=dto.description,
            amount=dto.amount,
            quantity=dto.quantity,
            tax_rate=dto.tax_rate,
            tax_amount=dto.tax_amount,
            total=dto.total,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<JobChargeModel {self.line_number}: {self.description}>"


# ---------------------------------------------------------------------------
# 5. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Guarantees:
        - invoice_number is unique (uq_invoices_invoice_number).
        - One non-void invoice per job (uq_invoices_job_id_live).
        - paid_amount within [0, total_amount] (ck_invoices_paid_amount_*).
        - version is bumped on every UPDATE; a stale writer fails.
        - total_amount and the items never change after INSERT.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        Index(
            "uq_invoices_job_id_live",
            "job_id",
            unique=True,
            postgresql_where=text("status <> 'void'"),
            sqlite_where=text("status <> 'void'"),
        ),
        Index("idx_invoices_customer_id", "customer_id"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_due_date", "due_date"),
        CheckConstraint("paid_amount >= 0", name="ck_invoices_paid_amount_non_negative"),
        CheckConstraint(
            "paid_amount <= total_amount", name="ck_invoices_paid_amount_within_total"
        ),
        CheckConstraint(_in_list("status", InvoiceStatus), name="ck_invoices_valid_status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(ForeignKey("customers.id"), nullable=False)
    job_id: Mapped[UUID | None] = mapped_column(ForeignKey("jobs.id"), nullable=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=InvoiceStatus.DRAFT.value
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(nullable=False, default=0)
    version: Mapped[int] = mapped_column(nullable=False)

    items: Mapped[list["InvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItemModel.line_number",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> Invoice:
        """Convert ORM model to frozen dataclass."""
        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            customer_id=self.customer_id,
            issue_date=self.issue_date,
            due_date=self.due_date,
            subtotal=round_money(self.subtotal),
            tax_amount=round_money(self.tax_amount),
            total_amount=round_money(self.total_amount),
            paid_amount=round_money(self.paid_amount),
            status=InvoiceStatus(self.status),
            job_id=self.job_id,
            items=tuple(item.to_dto() for item in self.items),
            notes=self.notes,
            sequence=self.sequence,
        )

    @classmethod
    def from_dto(cls, dto: Invoice, created_by_id: UUID) -> "InvoiceModel":
        """Create ORM model (with its items) from frozen dataclass."""
        model = cls(
            id=dto.id,
            invoice_number=dto.invoice_number,
            customer_id=dto.customer_id,
            job_id=dto.job_id,
            issue_date=dto.issue_date,
            due_date=dto.due_date,
            subtotal=dto.subtotal,
            tax_amount=dto.tax_amount,
            total_amount=dto.total_amount,
            paid_amount=dto.paid_amount,
            status=dto.status.value,
            notes=dto.notes,
            sequence=dto.sequence,
            created_by_id=created_by_id,
        )
        for item in dto.items:
            model.items.append(InvoiceItemModel.from_dto(item, created_by_id))
        return model

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} [{self.status}]>"


# ---------------------------------------------------------------------------
# 6. InvoiceItemModel
# ---------------------------------------------------------------------------


class InvoiceItemModel(TrackedBase):
    """ORM model for invoice items.  Written with the invoice, never updated."""

    __tablename__ = "invoice_items"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_invoice_items_invoice_line"),
        Index("idx_invoice_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="items")

    def to_dto(self) -> InvoiceItem:
        """Convert ORM model to frozen dataclass."""
        return InvoiceItem(
            id=self.id,
            invoice_id=self.invoice_id,
            line_number=self.line_number,
            description=self.description,
            quantity=self.quantity,
            unit_price=round_money(self.unit_price),
            tax_rate=_rate(self.tax_rate),
            tax_amount=round_money(self.tax_amount),
            total=round_money(self.total),
        )

    @classmethod
    def from_dto(cls, dto: InvoiceItem, created_by_id: UUID) -> "InvoiceItemModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            line_number=dto.line_number,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            tax_rate=dto.tax_rate,
            tax_amount=dto.tax_amount,
            total=dto.total,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<InvoiceItemModel {self.line_number}: {self.description}>"


# ---------------------------------------------------------------------------
# 7. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """
    ORM model for payments.  Immutable once inserted.

    Guarantees:
        - amount > 0 (ck_payments_amount_positive).
        - payment_method is one of the PaymentMethod values.
    """

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payments_invoice_id", "invoice_id"),
        Index("idx_payments_customer_id", "customer_id"),
        Index("idx_payments_payment_date", "payment_date"),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            _in_list("payment_method", PaymentMethod), name="ck_payments_valid_method"
        ),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(ForeignKey("customers.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sequence: Mapped[int] = mapped_column(nullable=False, default=0)

    def to_dto(self) -> Payment:
        """Convert ORM model to frozen dataclass."""
        return Payment(
            id=self.id,
            invoice_id=self.invoice_id,
            customer_id=self.customer_id,
            amount=round_money(self.amount),
            payment_date=self.payment_date,
            payment_method=PaymentMethod(self.payment_method),
            reference_number=self.reference_number,
            notes=self.notes,
            sequence=self.sequence,
        )

    @classmethod
    def from_dto(cls, dto: Payment, created_by_id: UUID) -> "PaymentModel":
        """Create ORM model from frozen dataclass."""
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            customer_id=dto.customer_id,
            amount=dto.amount,
            payment_date=dto.payment_date,
            payment_method=dto.payment_method.value,
            reference_number=dto.reference_number,
            notes=dto.notes,
            sequence=dto.sequence,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.amount} via {self.payment_method}>"
