"""
Module: billing_engines.lifecycle
Responsibility:
    The invoice status state machine.  Given the current status and the
    paid/total amounts, decide the next status for each action, and verify
    that a status agrees with its amounts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Holds no history: every
    decision is a function of (status, paid_amount, total_amount).

Invariants enforced (non-void invoices):
    - 0 <= paid_amount <= total_amount
    - status == paid            <=> paid_amount >= total_amount
    - status == partially_paid  <=> 0 < paid_amount < total_amount
    - void is terminal; an invoice with money on it cannot be voided.

Failure modes:
    - InvoiceVoidError: any action on a void invoice.
    - InvoiceAlreadyPaidError: payment against a paid invoice.
    - CannotVoidPaidInvoiceError: void with paid_amount > 0.
    - InvoiceStateInconsistentError: verify_invoice_state() found a breach.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from billing_kernel.domain.dtos import Invoice, InvoiceStatus
from billing_kernel.exceptions import (
    CannotVoidPaidInvoiceError,
    InvoiceAlreadyPaidError,
    InvoiceStateInconsistentError,
    InvoiceVoidError,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.lifecycle")


class InvoiceAction(str, Enum):
    MARK_SENT = "mark_sent"
    APPLY_PAYMENT = "apply_payment"
    VOID = "void"


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""

    from_state: InvoiceStatus
    to_state: InvoiceStatus
    action: InvoiceAction


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""

    name: str
    initial_state: InvoiceStatus
    terminal_states: frozenset[InvoiceStatus]
    transitions: tuple[Transition, ...]

    def allows(
        self,
        from_state: InvoiceStatus,
        action: InvoiceAction,
        to_state: InvoiceStatus,
    ) -> bool:
        return Transition(from_state, to_state, action) in self.transitions

    def targets(self, from_state: InvoiceStatus, action: InvoiceAction) -> frozenset[InvoiceStatus]:
        return frozenset(
            t.to_state
            for t in self.transitions
            if t.from_state is from_state and t.action is action
        )


_S = InvoiceStatus
_A = InvoiceAction

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    initial_state=_S.DRAFT,
    terminal_states=frozenset({_S.VOID}),
    transitions=(
        Transition(_S.DRAFT, _S.SENT, _A.MARK_SENT),
        Transition(_S.DRAFT, _S.PARTIALLY_PAID, _A.APPLY_PAYMENT),
        Transition(_S.DRAFT, _S.PAID, _A.APPLY_PAYMENT),
        Transition(_S.SENT, _S.PARTIALLY_PAID, _A.APPLY_PAYMENT),
        Transition(_S.SENT, _S.PAID, _A.APPLY_PAYMENT),
        Transition(_S.PARTIALLY_PAID, _S.PARTIALLY_PAID, _A.APPLY_PAYMENT),
        Transition(_S.PARTIALLY_PAID, _S.PAID, _A.APPLY_PAYMENT),
        Transition(_S.DRAFT, _S.VOID, _A.VOID),
        Transition(_S.SENT, _S.VOID, _A.VOID),
    ),
)


def _checked(
    current: InvoiceStatus,
    action: InvoiceAction,
    target: InvoiceStatus,
    invoice_number: str,
) -> InvoiceStatus:
    """Return ``target`` if the workflow allows it (staying put is always allowed)."""
    if target is not current and not INVOICE_WORKFLOW.allows(current, action, target):
        raise InvoiceStateInconsistentError(
            invoice_number,
            current.value,
            Decimal("0"),
            Decimal("0"),
            f"no {action.value} transition from {current.value} to {target.value}",
        )
    logger.debug(
        "invoice_transition",
        extra={
            "invoice_number": invoice_number,
            "action": action.value,
            "from_status": current.value,
            "to_status": target.value,
        },
    )
    return target


def status_after_payment(
    current: InvoiceStatus,
    paid_amount: Decimal,
    total_amount: Decimal,
    invoice_number: str = "",
) -> InvoiceStatus:
    """
    Status once ``paid_amount`` (already including the new payment) is on the invoice.

    Raises:
        InvoiceVoidError: current is void.
        InvoiceAlreadyPaidError: current is paid.
    """
    if current is InvoiceStatus.VOID:
        raise InvoiceVoidError(invoice_number, InvoiceAction.APPLY_PAYMENT.value)
    if current is InvoiceStatus.PAID:
        raise InvoiceAlreadyPaidError(invoice_number)

    if paid_amount >= total_amount:
        target = InvoiceStatus.PAID
    elif paid_amount > 0:
        target = InvoiceStatus.PARTIALLY_PAID
    else:
        target = current
    return _checked(current, InvoiceAction.APPLY_PAYMENT, target, invoice_number)


def status_after_mark_sent(current: InvoiceStatus, invoice_number: str = "") -> InvoiceStatus:
    """
    draft -> sent.  Re-sending a sent or (partially) paid invoice keeps its status.
    """
    if current is InvoiceStatus.VOID:
        raise InvoiceVoidError(invoice_number, InvoiceAction.MARK_SENT.value)
    target = InvoiceStatus.SENT if current is InvoiceStatus.DRAFT else current
    return _checked(current, InvoiceAction.MARK_SENT, target, invoice_number)


def status_after_void(
    current: InvoiceStatus,
    paid_amount: Decimal,
    invoice_number: str = "",
) -> InvoiceStatus:
    """
    Any non-void status -> void, provided no money has been applied.
    """
    if current is InvoiceStatus.VOID:
        raise InvoiceVoidError(invoice_number, InvoiceAction.VOID.value)
    if paid_amount > 0:
        raise CannotVoidPaidInvoiceError(invoice_number, paid_amount)
    return _checked(current, InvoiceAction.VOID, InvoiceStatus.VOID, invoice_number)


def _violation(status: InvoiceStatus, paid_amount: Decimal, total_amount: Decimal) -> str | None:
    if status is InvoiceStatus.VOID:
        return None
    if paid_amount < 0:
        return "paid_amount is negative"
    if paid_amount > total_amount:
        return "paid_amount exceeds total_amount"
    is_paid = paid_amount >= total_amount
    if (status is InvoiceStatus.PAID) != is_paid:
        return "paid status disagrees with amounts"
    is_partial = 0 < paid_amount < total_amount
    if (status is InvoiceStatus.PARTIALLY_PAID) != is_partial:
        return "partially_paid status disagrees with amounts"
    return None


def verify_invoice_state(invoice: Invoice) -> None:
    """
    Raise InvoiceStateInconsistentError if ``invoice`` breaks a lifecycle invariant.

    Never clamps or repairs; a breach is a defect.
    """
    violation = _violation(invoice.status, invoice.paid_amount, invoice.total_amount)
    if violation is None:
        return
    logger.error(
        "invoice_state_inconsistent",
        extra={
            "invoice_number": invoice.invoice_number,
            "status": invoice.status.value,
            "paid_amount": str(invoice.paid_amount),
            "total_amount": str(invoice.total_amount),
            "violation": violation,
        },
    )
    raise InvoiceStateInconsistentError(
        invoice.invoice_number,
        invoice.status.value,
        invoice.paid_amount,
        invoice.total_amount,
        violation,
    )


def is_consistent(status: InvoiceStatus, paid_amount: Decimal, total_amount: Decimal) -> bool:
    """True when ``status`` agrees with ``paid_amount`` and ``total_amount``."""
    return _violation(status, paid_amount, total_amount) is None
