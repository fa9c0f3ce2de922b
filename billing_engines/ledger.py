"""
Module: billing_engines.ledger
Responsibility:
    Apply one payment to one invoice: validate it against the remaining
    balance, produce the immutable Payment record, raise the invoice's paid
    amount and move its status through the lifecycle state machine.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The transactional shell
    (ReceivablesService.apply_payment) re-reads the invoice under a row lock,
    calls this engine, and persists both results in one transaction.

Invariants enforced:
    - No overpayment: amount <= total_amount - paid_amount, checked here and
      not only at the UI.
    - paid_amount never decreases on a non-void invoice.
    - The returned invoice passes verify_invoice_state().

Failure modes (checked in this order):
    - InvoiceVoidError           invoice is void
    - InvoiceAlreadyPaidError    invoice is paid
    - InvalidPaymentAmountError  amount <= 0, or finer than one cent
    - PaymentExceedsBalanceError amount > balance due
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from billing_engines.lifecycle import status_after_payment, verify_invoice_state
from billing_kernel.domain.dtos import Invoice, InvoiceStatus, Payment, PaymentMethod
from billing_kernel.domain.money import MoneyLike, round_money, to_money
from billing_kernel.exceptions import (
    InvalidPaymentAmountError,
    InvalidPaymentMethodError,
    InvoiceAlreadyPaidError,
    InvoiceVoidError,
    PaymentExceedsBalanceError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.ledger")


def parse_payment_method(method: PaymentMethod | str) -> PaymentMethod:
    """Coerce ``method`` to a PaymentMethod, accepting enum names or values."""
    if isinstance(method, PaymentMethod):
        return method
    if not isinstance(method, str):
        raise InvalidPaymentMethodError(repr(method), tuple(m.value for m in PaymentMethod))
    for candidate in PaymentMethod:
        if method == candidate.value or method.upper().replace(" ", "_") == candidate.name:
            return candidate
    raise InvalidPaymentMethodError(method, tuple(m.value for m in PaymentMethod))


@dataclass(frozen=True)
class PaymentApplication:
    """Result of applying a payment: the updated invoice and the new payment."""

    invoice: Invoice
    payment: Payment
    previous_status: InvoiceStatus

    @property
    def settled_invoice(self) -> bool:
        return self.invoice.status is InvoiceStatus.PAID


class PaymentLedger:
    """
    Applies payments to invoices.

    Stateless; never mutates its inputs.
    """

    def validate(self, invoice: Invoice, amount: Decimal) -> None:
        """Raise the first rule ``amount`` breaks against ``invoice``."""
        if invoice.status is InvoiceStatus.VOID:
            raise InvoiceVoidError(invoice.invoice_number, "apply payment to")
        if invoice.status is InvoiceStatus.PAID:
            raise InvoiceAlreadyPaidError(invoice.invoice_number)
        if amount <= 0:
            raise InvalidPaymentAmountError(amount)
        if amount != round_money(amount):
            raise InvalidPaymentAmountError(amount, "must be a whole number of cents")
        balance_due = invoice.balance_due
        if amount > balance_due:
            logger.warning(
                "payment_exceeds_balance",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "amount": str(amount),
                    "balance_due": str(balance_due),
                },
            )
            raise PaymentExceedsBalanceError(invoice.invoice_number, amount, balance_due)

    def apply_payment(
        self,
        invoice: Invoice,
        amount: MoneyLike,
        method: PaymentMethod | str,
        payment_date: date,
        reference: str | None = None,
        notes: str | None = None,
        payment_id: UUID | None = None,
        sequence: int = 0,
    ) -> PaymentApplication:
        """
        Apply ``amount`` to ``invoice``.

        Returns:
            PaymentApplication with the updated invoice and the new payment.
        """
        payment_method = parse_payment_method(method)
        value = to_money(amount)
        self.validate(invoice, value)
        value = round_money(value)

        new_paid = round_money(invoice.paid_amount + value)
        new_status = status_after_payment(
            invoice.status, new_paid, invoice.total_amount, invoice.invoice_number
        )
        updated = dataclasses.replace(invoice, paid_amount=new_paid, status=new_status)
        verify_invoice_state(updated)

        payment = Payment(
            id=payment_id or uuid4(),
            invoice_id=invoice.id,
            customer_id=invoice.customer_id,
            amount=value,
            payment_date=payment_date,
            payment_method=payment_method,
            reference_number=reference,
            notes=notes,
            sequence=sequence,
        )

        logger.info(
            "payment_applied",
            extra={
                "invoice_number": invoice.invoice_number,
                "amount": str(value),
                "paid_amount": str(new_paid),
                "balance_due": str(updated.balance_due),
                "from_status": invoice.status.value,
                "to_status": new_status.value,
            },
        )
        return PaymentApplication(
            invoice=updated,
            payment=payment,
            previous_status=invoice.status,
        )
