"""
Receivables Module Service - Orchestrates billing operations via engines + kernel.

Thin glue layer that:
1. Calls ChargeAggregator to turn a job's charges into an invoice
2. Calls PaymentLedger to apply payments (driving the invoice lifecycle)
3. Calls project_job_status to reflect the invoice back onto its job
4. Calls StatementReconciler, AgingCalculator and the revenue report
   functions for the read paths

All computation lives in engines.  This service owns the transaction
boundary: it commits on success, rolls back on any failure and re-raises.
Each mutation runs as one ordered sequence inside one transaction:

    lock invoice (FOR UPDATE) -> engine -> write invoice/payment
        -> project job status -> recompute customer balance -> commit

Audit records and notifications are dispatched only after the commit and
are best-effort: their failure never undoes the business transaction.

Usage:
    service = ReceivablesService(session, clock=SystemClock())
    invoice = service.generate_invoice_for_job(job_id)
    result = service.apply_payment(invoice.id, Decimal("250.00"), "Cash")
"""

from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from billing_engines.aging import AgingCalculator, AgingReport, buckets_from_thresholds
from billing_engines.charges import (
    ChargeAggregator,
    build_charge_from_fee,
    format_invoice_number,
)
from billing_engines.job_status import (
    INVOICE_DRIVEN_STATUSES,
    MANUAL_STATUSES,
    project_job_status,
)
from billing_engines.ledger import PaymentApplication, PaymentLedger
from billing_engines.lifecycle import status_after_mark_sent, status_after_void
from billing_engines.revenue import (
    CustomerAnalysis,
    CustomerSort,
    RevenueReport,
    build_customer_analysis,
    build_revenue_report,
)
from billing_engines.statement import Statement, StatementReconciler
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import (
    Customer,
    Invoice,
    InvoiceStatus,
    Job,
    JobCharge,
    JobStatus,
    PaymentMethod,
)
from billing_kernel.domain.money import MoneyLike, round_money, sum_money
from billing_kernel.exceptions import (
    CreditLimitExceededError,
    CustomerNotFoundError,
    DuplicateInvoiceError,
    FeeNotFoundError,
    InvalidJobStatusError,
    InvoiceNotFoundError,
    JobCancelledError,
    JobNotEditableError,
    JobNotFoundError,
    OptimisticLockError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.services.audit import (
    AuditAction,
    AuditRecord,
    AuditSink,
    LoggingAuditSink,
    emit_audit,
)
from billing_kernel.services.notifications import (
    InvoiceGenerated,
    NotificationBus,
    PaymentRecorded,
)
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.receivables.config import BillingConfig
from billing_modules.receivables.orm import (
    CustomerModel,
    FeeModel,
    InvoiceModel,
    JobChargeModel,
    JobModel,
    PaymentModel,
)

logger = get_logger("modules.receivables.service")

SYSTEM_ACTOR_ID = UUID(int=0)

_EDITABLE_JOB_STATUSES = frozenset({JobStatus.PENDING, JobStatus.IN_PROGRESS})


def _invoice_state(invoice: Invoice) -> dict:
    return {
        "invoice_number": invoice.invoice_number,
        "status": invoice.status.value,
        "paid_amount": str(invoice.paid_amount),
        "total_amount": str(invoice.total_amount),
    }


class ReceivablesService:
    """
    Orchestrates billing operations through engines and kernel.

    Engine composition:
    - ChargeAggregator: job charges -> invoice + items
    - PaymentLedger: payment validation and application
    - StatementReconciler: statement of account
    - AgingCalculator: outstanding receivables

    Transaction boundary: this service commits on success, rolls back on failure.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
        audit_sink: AuditSink | None = None,
        notifier: NotificationBus | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig.with_defaults()
        self._audit_sink = audit_sink or LoggingAuditSink()
        self._notifier = notifier or NotificationBus()
        self._actor_id = actor_id

        self._sequences = SequenceService(session)

        # Stateless engines
        self._aggregator = ChargeAggregator()
        self._ledger = PaymentLedger()
        self._reconciler = StatementReconciler()
        self._aging = AgingCalculator(buckets_from_thresholds(self._config.aging_buckets))

    # =========================================================================
    # Loading
    # =========================================================================

    def _customer(self, customer_id: UUID, lock: bool = False) -> CustomerModel:
        stmt = select(CustomerModel).where(CustomerModel.id == customer_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise CustomerNotFoundError(str(customer_id))
        return model

    def _job(self, job_id: UUID, lock: bool = False) -> JobModel:
        stmt = select(JobModel).where(JobModel.id == job_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise JobNotFoundError(str(job_id))
        return model

    def _invoice(self, invoice_id: UUID, lock: bool = False) -> InvoiceModel:
        stmt = select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        model = self._session.execute(stmt).scalar_one_or_none()
        if model is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return model

    def _invoices_for_job(self, job_id: UUID) -> list[Invoice]:
        models = self._session.execute(
            select(InvoiceModel).where(InvoiceModel.job_id == job_id)
        ).scalars()
        return [m.to_dto() for m in models]

    def _invoices_for_customer(self, customer_id: UUID) -> list[Invoice]:
        models = self._session.execute(
            select(InvoiceModel).where(InvoiceModel.customer_id == customer_id)
        ).scalars()
        return [m.to_dto() for m in models]

    # =========================================================================
    # Write helpers (run inside the caller's transaction)
    # =========================================================================

    def _flush(self, entity_type: str, entity_id: UUID) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(entity_type, str(entity_id)) from exc

    def _write_invoice_state(self, model: InvoiceModel, invoice: Invoice) -> None:
        model.paid_amount = invoice.paid_amount
        model.status = invoice.status.value
        model.updated_by_id = self._actor_id
        self._flush("Invoice", model.id)

    def _project_job(self, invoice: Invoice) -> tuple[JobStatus, JobStatus] | None:
        """Reflect ``invoice`` onto its job.  Returns (old, new) when it changed."""
        if invoice.job_id is None:
            return None
        job = self._job(invoice.job_id, lock=True)
        current = JobStatus(job.status)
        projected = project_job_status(current, invoice)
        if projected is current:
            return None
        job.status = projected.value
        job.updated_by_id = self._actor_id
        self._flush("Job", job.id)
        logger.info(
            "job_status_projected",
            extra={
                "job_number": job.job_number,
                "from_status": current.value,
                "to_status": projected.value,
            },
        )
        return current, projected

    def _refresh_customer_balance(self, customer_id: UUID) -> Decimal:
        """Recompute and store the customer's balance snapshot."""
        customer = self._customer(customer_id, lock=True)
        balance = sum_money(
            invoice.balance_due
            for invoice in self._invoices_for_customer(customer_id)
            if not invoice.is_void
        )
        customer.current_balance = balance
        customer.updated_by_id = self._actor_id
        self._flush("Customer", customer.id)
        return balance

    def _check_credit_limit(self, customer: Customer, additional: Decimal) -> None:
        if not self._config.enforce_credit_limit or customer.credit_limit is None:
            return
        outstanding = sum_money(
            invoice.balance_due
            for invoice in self._invoices_for_customer(customer.id)
            if not invoice.is_void
        )
        projected = round_money(outstanding + additional)
        if projected > customer.credit_limit:
            logger.warning(
                "credit_limit_exceeded",
                extra={
                    "credit_limit": str(customer.credit_limit),
                    "projected_balance": str(projected),
                },
            )
            raise CreditLimitExceededError(str(customer.id), customer.credit_limit, projected)

    def _next_invoice_number(self, issue_date: date) -> str:
        sequence = self._sequences.next_value(
            SequenceService.invoice_number_name(issue_date.year)
        )
        return format_invoice_number(
            issue_date.year,
            sequence,
            prefix=self._config.invoice_number_prefix,
            padding=self._config.invoice_number_padding,
        )

    def _audit(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        old_state: dict | None = None,
        new_state: dict | None = None,
    ) -> None:
        emit_audit(
            self._audit_sink,
            AuditRecord(
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                actor_id=self._actor_id,
                occurred_at=self._clock.now(),
                old_state=old_state,
                new_state=new_state,
            ),
        )

    # =========================================================================
    # Jobs
    # =========================================================================

    def charge_from_fee(
        self,
        job_id: UUID,
        fee_id: UUID,
        amount: Decimal | None = None,
        quantity: Decimal | int = 1,
        description: str | None = None,
    ) -> JobCharge:
        """Snapshot catalog fee ``fee_id`` into a charge for ``job_id``.  Read-only."""
        fee = self._session.get(FeeModel, fee_id)
        if fee is None:
            raise FeeNotFoundError(str(fee_id))
        return build_charge_from_fee(
            fee.to_dto(),
            job_id,
            amount=amount,
            quantity=quantity,
            description=description,
        )

    def save_job_charges(self, job_id: UUID, charges: Sequence[JobCharge]) -> Job:
        """
        Replace the charges on a job and update its total.

        Raises:
            JobNotFoundError, JobNotEditableError.
        """
        with LogContext.bind(job_id=job_id):
            try:
                job = self._job(job_id, lock=True)
                status = JobStatus(job.status)
                if status not in _EDITABLE_JOB_STATUSES:
                    raise JobNotEditableError(str(job_id), status.value)

                old_total = job.total_amount
                job.charges.clear()
                self._session.flush()

                snapshots = [dataclasses.replace(c, job_id=job_id) for c in charges]
                for line_number, charge in enumerate(snapshots, start=1):
                    job.charges.append(
                        JobChargeModel.from_dto(charge, line_number, self._actor_id)
                    )
                job.total_amount = sum_money(c.total for c in snapshots)
                job.updated_by_id = self._actor_id
                self._flush("Job", job.id)

                result = job.to_dto()
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "job_charges_saved",
                extra={
                    "job_number": result.job_number,
                    "charge_count": len(result.charges),
                    "total_amount": str(result.total_amount),
                },
            )
            self._audit(
                AuditAction.JOB_CHARGES_SAVED,
                "Job",
                job_id,
                old_state={"total_amount": str(round_money(old_total))},
                new_state={
                    "total_amount": str(result.total_amount),
                    "charge_count": len(result.charges),
                },
            )
            return result

    def update_job_status(self, job_id: UUID, status: JobStatus | str) -> Job:
        """
        Manually move a job between pending, in_progress and cancelled.

        Invoice-driven statuses (invoiced, partially_paid, cleared) are
        only ever set by projection from the linked invoice.

        Raises:
            JobNotFoundError, InvalidJobStatusError, JobCancelledError.
        """
        with LogContext.bind(job_id=job_id):
            try:
                try:
                    requested = JobStatus(status)
                except ValueError:
                    raise InvalidJobStatusError(str(job_id), str(status)) from None
                if requested not in MANUAL_STATUSES:
                    raise InvalidJobStatusError(str(job_id), requested.value)

                job = self._job(job_id, lock=True)
                current = JobStatus(job.status)
                if current is JobStatus.CANCELLED and requested is not JobStatus.CANCELLED:
                    raise JobCancelledError(str(job_id), f"move to {requested.value}")
                if current in INVOICE_DRIVEN_STATUSES and requested is not JobStatus.CANCELLED:
                    raise InvalidJobStatusError(str(job_id), requested.value)

                job.status = requested.value
                job.updated_by_id = self._actor_id
                self._flush("Job", job.id)
                result = job.to_dto()
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            if requested is not current:
                logger.info(
                    "job_status_changed",
                    extra={"from_status": current.value, "to_status": requested.value},
                )
                self._audit(
                    AuditAction.JOB_STATUS_CHANGED,
                    "Job",
                    job_id,
                    old_state={"status": current.value},
                    new_state={"status": requested.value},
                )
            return result

    # =========================================================================
    # Invoices
    # =========================================================================

    def _insert_invoice(self, invoice: Invoice) -> None:
        self._session.add(InvoiceModel.from_dto(invoice, self._actor_id))
        try:
            self._session.flush()
        except IntegrityError:
            if invoice.job_id is None:
                raise
            # Lost a race on the one-live-invoice-per-job index.
            self._session.rollback()
            live = [i for i in self._invoices_for_job(invoice.job_id) if not i.is_void]
            if not live:
                raise
            raise DuplicateInvoiceError(str(invoice.job_id), live[0].invoice_number) from None

    def _publish_generated(self, invoice: Invoice) -> None:
        logger.info(
            "invoice_generated",
            extra={
                "invoice_number": invoice.invoice_number,
                "total_amount": str(invoice.total_amount),
                "due_date": invoice.due_date.isoformat(),
            },
        )
        self._audit(
            AuditAction.INVOICE_GENERATED,
            "Invoice",
            invoice.id,
            new_state=_invoice_state(invoice),
        )
        self._notifier.publish(InvoiceGenerated(invoice))

    def generate_invoice_for_job(
        self,
        job_id: UUID,
        issue_date: date | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Generate the invoice for a job from its charges.

        Invoice and items are inserted, the job moves to ``invoiced`` and the
        customer's balance snapshot is refreshed, all in one transaction.

        Raises:
            JobNotFoundError, JobCancelledError, EmptyChargeSetError,
            DuplicateInvoiceError, NonPositiveInvoiceTotalError,
            CreditLimitExceededError.
        """
        issue_date = issue_date or self._clock.today()
        with LogContext.bind(job_id=job_id):
            try:
                job_model = self._job(job_id, lock=True)
                job = job_model.to_dto()
                if job.is_cancelled:
                    raise JobCancelledError(str(job_id), "invoice")
                customer = self._customer(job.customer_id, lock=True).to_dto()

                draft = self._aggregator.build_invoice(
                    customer=customer,
                    charges=job.charges,
                    invoice_number=self._next_invoice_number(issue_date),
                    issue_date=issue_date,
                    job_id=job.id,
                    existing_invoices=self._invoices_for_job(job.id),
                    default_terms_days=self._config.default_payment_terms_days,
                    notes=notes,
                    sequence=self._sequences.next_value(SequenceService.BILLING_DOCUMENT),
                )
                invoice = draft.invoice
                self._check_credit_limit(customer, invoice.total_amount)
                self._insert_invoice(invoice)
                self._project_job(invoice)
                self._refresh_customer_balance(customer.id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            self._publish_generated(invoice)
            return invoice

    def create_manual_invoice(
        self,
        customer_id: UUID,
        lines: Sequence[JobCharge],
        issue_date: date | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """
        Create an invoice not linked to any job.

        ``lines`` are charge snapshots, typically from ``build_line()``.

        Raises:
            CustomerNotFoundError, EmptyChargeSetError,
            NonPositiveInvoiceTotalError, CreditLimitExceededError.
        """
        issue_date = issue_date or self._clock.today()
        with LogContext.bind(customer_id=customer_id):
            try:
                customer = self._customer(customer_id, lock=True).to_dto()
                draft = self._aggregator.build_invoice(
                    customer=customer,
                    charges=lines,
                    invoice_number=self._next_invoice_number(issue_date),
                    issue_date=issue_date,
                    default_terms_days=self._config.default_payment_terms_days,
                    notes=notes,
                    sequence=self._sequences.next_value(SequenceService.BILLING_DOCUMENT),
                )
                invoice = draft.invoice
                self._check_credit_limit(customer, invoice.total_amount)
                self._insert_invoice(invoice)
                self._refresh_customer_balance(customer.id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            self._publish_generated(invoice)
            return invoice

    def mark_invoice_sent(self, invoice_id: UUID) -> Invoice:
        """
        draft -> sent.  A no-op on an invoice that is already sent or paid.

        Raises:
            InvoiceNotFoundError, InvoiceVoidError.
        """
        with LogContext.bind(invoice_id=invoice_id):
            try:
                model = self._invoice(invoice_id, lock=True)
                before = model.to_dto()
                new_status = status_after_mark_sent(before.status, before.invoice_number)
                after = dataclasses.replace(before, status=new_status)
                if new_status is not before.status:
                    self._write_invoice_state(model, after)
                    self._project_job(after)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            if after.status is not before.status:
                logger.info("invoice_sent", extra={"invoice_number": after.invoice_number})
                self._audit(
                    AuditAction.INVOICE_SENT,
                    "Invoice",
                    invoice_id,
                    old_state=_invoice_state(before),
                    new_state=_invoice_state(after),
                )
            return after

    def void_invoice(self, invoice_id: UUID, reason: str | None = None) -> Invoice:
        """
        Void an invoice with no money applied.

        The linked job, if any, returns to ``in_progress`` and the customer's
        balance snapshot drops by the invoice total.

        Raises:
            InvoiceNotFoundError, InvoiceVoidError, CannotVoidPaidInvoiceError.
        """
        with LogContext.bind(invoice_id=invoice_id):
            try:
                model = self._invoice(invoice_id, lock=True)
                before = model.to_dto()
                new_status = status_after_void(
                    before.status, before.paid_amount, before.invoice_number
                )
                after = dataclasses.replace(before, status=new_status)
                self._write_invoice_state(model, after)
                self._project_job(after)
                self._refresh_customer_balance(after.customer_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "invoice_voided",
                extra={"invoice_number": after.invoice_number, "reason": reason},
            )
            new_state = _invoice_state(after)
            if reason:
                new_state["reason"] = reason
            self._audit(
                AuditAction.INVOICE_VOIDED,
                "Invoice",
                invoice_id,
                old_state=_invoice_state(before),
                new_state=new_state,
            )
            return after

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        """Raises InvoiceNotFoundError."""
        return self._invoice(invoice_id).to_dto()

    # =========================================================================
    # Payments
    # =========================================================================

    def apply_payment(
        self,
        invoice_id: UUID,
        amount: MoneyLike,
        method: PaymentMethod | str,
        payment_date: date | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> PaymentApplication:
        """
        Apply a payment to an invoice.

        The invoice row is re-read under lock and the balance re-validated
        inside the transaction.  Payment insert, invoice update, job
        projection and customer balance refresh commit together.

        Raises:
            InvoiceNotFoundError, InvoiceVoidError, InvoiceAlreadyPaidError,
            InvalidPaymentAmountError, InvalidPaymentMethodError,
            PaymentExceedsBalanceError, OptimisticLockError.
        """
        payment_date = payment_date or self._clock.today()
        with LogContext.bind(invoice_id=invoice_id):
            try:
                model = self._invoice(invoice_id, lock=True)
                invoice = model.to_dto()
                application = self._ledger.apply_payment(
                    invoice,
                    amount,
                    method,
                    payment_date,
                    reference=reference,
                    notes=notes,
                )
                payment = dataclasses.replace(
                    application.payment,
                    sequence=self._sequences.next_value(SequenceService.BILLING_DOCUMENT),
                )
                application = dataclasses.replace(application, payment=payment)

                self._session.add(PaymentModel.from_dto(payment, self._actor_id))
                self._write_invoice_state(model, application.invoice)
                self._project_job(application.invoice)
                self._refresh_customer_balance(invoice.customer_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "payment_recorded",
                extra={
                    "invoice_number": application.invoice.invoice_number,
                    "amount": str(payment.amount),
                    "payment_method": payment.payment_method.value,
                    "to_status": application.invoice.status.value,
                },
            )
            self._audit(
                AuditAction.PAYMENT_RECORDED,
                "Payment",
                payment.id,
                old_state=_invoice_state(invoice),
                new_state={**_invoice_state(application.invoice), "amount": str(payment.amount)},
            )
            self._notifier.publish(PaymentRecorded(application.invoice, payment))
            return application

    # =========================================================================
    # Read paths
    # =========================================================================

    def build_statement(
        self,
        customer_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        strict: bool | None = None,
    ) -> Statement:
        """
        Statement of account for a customer.

        Raises:
            CustomerNotFoundError, NegativeClosingBalanceError (strict).
        """
        self._customer(customer_id)
        payments = self._session.execute(
            select(PaymentModel).where(PaymentModel.customer_id == customer_id)
        ).scalars()
        return self._reconciler.build(
            customer_id,
            self._invoices_for_customer(customer_id),
            [p.to_dto() for p in payments],
            start_date=start_date,
            end_date=end_date,
            strict=self._config.strict_statements if strict is None else strict,
        )

    def customer_balance(self, customer_id: UUID) -> Decimal:
        """What the customer owes, recomputed from the statement."""
        return self.build_statement(customer_id).closing_balance

    def outstanding_report(
        self,
        as_of_date: date | None = None,
        customer_id: UUID | None = None,
    ) -> AgingReport:
        """Unpaid invoices aged by days overdue."""
        as_of_date = as_of_date or self._clock.today()
        stmt = select(InvoiceModel).where(
            InvoiceModel.status.notin_(
                [InvoiceStatus.VOID.value, InvoiceStatus.PAID.value]
            )
        )
        if customer_id is not None:
            stmt = stmt.where(InvoiceModel.customer_id == customer_id)
        invoices = [m.to_dto() for m in self._session.execute(stmt).scalars()]
        names = dict(
            self._session.execute(
                select(CustomerModel.id, CustomerModel.name).where(
                    CustomerModel.id.in_(list({i.customer_id for i in invoices}))
                )
            ).all()
        ) if invoices else {}
        return self._aging.build_report(invoices, as_of_date, names)

    def revenue_report(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> RevenueReport:
        """Billed, collected and pending per issue month, newest month first."""
        stmt = select(InvoiceModel).where(InvoiceModel.status != InvoiceStatus.VOID.value)
        if start_date is not None:
            stmt = stmt.where(InvoiceModel.issue_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(InvoiceModel.issue_date <= end_date)
        invoices = [m.to_dto() for m in self._session.execute(stmt).scalars()]
        report = build_revenue_report(invoices)
        logger.info(
            "revenue_report_generated",
            extra={
                "month_count": len(report.months),
                "billed": str(report.billed),
                "collected": str(report.collected),
            },
        )
        return report

    def customer_analysis(
        self,
        sort_by: CustomerSort | str = CustomerSort.REVENUE,
    ) -> CustomerAnalysis:
        """Per-customer job count, billed, paid and outstanding amounts."""
        names = dict(self._session.execute(select(CustomerModel.id, CustomerModel.name)).all())
        job_counts = dict(
            self._session.execute(
                select(JobModel.customer_id, func.count()).group_by(JobModel.customer_id)
            ).all()
        )
        invoices = [
            m.to_dto()
            for m in self._session.execute(
                select(InvoiceModel).where(InvoiceModel.status != InvoiceStatus.VOID.value)
            ).scalars()
        ]
        return build_customer_analysis(names, job_counts, invoices, sort_by)
