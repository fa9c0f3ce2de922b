"""
Module: billing_engines.statement
Responsibility:
    Merge one customer's invoices (debits) and payments (credits) into a
    single chronological statement of account with a running balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Read paths only; a
    statement folds already-committed records and may be rebuilt at will.

Invariants enforced:
    - Void invoices contribute nothing, and neither do payments against them.
    - Ordering is total: (date, sequence, kind, id).  Identical input sets
      yield identical output regardless of the order they were supplied in.
    - closing_balance = opening_balance + total_debit - total_credit.

Failure modes:
    - NegativeClosingBalanceError (strict mode only) when the customer has
      been credited more than they were billed.  Under the no-overpayment
      rule this never happens; when it does, the data is corrupt.

Audit relevance:
    The closing balance is the figure ``customers.current_balance`` is
    reconciled against.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Sequence
from uuid import UUID

from billing_kernel.domain.dtos import Invoice, Payment
from billing_kernel.domain.money import ZERO, round_money, sum_money
from billing_kernel.exceptions import NegativeClosingBalanceError
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.statement")


class TransactionKind(str, Enum):
    INVOICE = "invoice"
    PAYMENT = "payment"


# Invoices sort ahead of payments when date and sequence tie.
_KIND_RANK = {TransactionKind.INVOICE: 0, TransactionKind.PAYMENT: 1}


@dataclass(frozen=True)
class StatementTransaction:
    """One line of a statement of account."""

    date: date
    kind: TransactionKind
    reference: str
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    source_id: UUID
    sequence: int = 0


@dataclass(frozen=True)
class Statement:
    """A customer's statement of account."""

    customer_id: UUID
    transactions: tuple[StatementTransaction, ...]
    total_debit: Decimal
    total_credit: Decimal
    opening_balance: Decimal = ZERO
    start_date: date | None = None
    end_date: date | None = None

    @property
    def closing_balance(self) -> Decimal:
        return round_money(self.opening_balance + self.total_debit - self.total_credit)

    @property
    def is_settled(self) -> bool:
        """True when nothing is owed."""
        return self.closing_balance <= 0


@dataclass(frozen=True)
class _Entry:
    date: date
    sequence: int
    kind: TransactionKind
    source_id: UUID
    reference: str
    description: str
    debit: Decimal
    credit: Decimal

    @property
    def sort_key(self) -> tuple:
        return (self.date, self.sequence, _KIND_RANK[self.kind], str(self.source_id))


def payment_reference(payment: Payment) -> str:
    """The payment's own reference number, else ``PAY-`` plus the id prefix."""
    return payment.reference_number or f"PAY-{str(payment.id)[:8]}"


class StatementReconciler:
    """
    Builds statements of account.

    Stateless and side-effect free; safe to share across threads.
    """

    def _entries(
        self,
        customer_id: UUID,
        invoices: Iterable[Invoice],
        payments: Iterable[Payment],
    ) -> list[_Entry]:
        live: dict[UUID, Invoice] = {}
        void_ids: set[UUID] = set()
        for invoice in invoices:
            if invoice.customer_id != customer_id:
                continue
            if invoice.is_void:
                void_ids.add(invoice.id)
            else:
                live[invoice.id] = invoice

        entries = [
            _Entry(
                date=invoice.issue_date,
                sequence=invoice.sequence,
                kind=TransactionKind.INVOICE,
                source_id=invoice.id,
                reference=invoice.invoice_number,
                description=f"Invoice - {invoice.status.value.upper()}",
                debit=invoice.total_amount,
                credit=ZERO,
            )
            for invoice in live.values()
        ]

        skipped = 0
        for payment in payments:
            if payment.customer_id != customer_id:
                continue
            if payment.invoice_id in void_ids:
                skipped += 1
                continue
            invoice = live.get(payment.invoice_id)
            target = invoice.invoice_number if invoice is not None else str(payment.invoice_id)
            entries.append(
                _Entry(
                    date=payment.payment_date,
                    sequence=payment.sequence,
                    kind=TransactionKind.PAYMENT,
                    source_id=payment.id,
                    reference=payment_reference(payment),
                    description=f"Payment via {payment.payment_method.value} for {target}",
                    debit=ZERO,
                    credit=payment.amount,
                )
            )

        if skipped:
            logger.debug(
                "statement_void_payments_excluded",
                extra={"customer_id": str(customer_id), "count": skipped},
            )

        entries.sort(key=lambda e: e.sort_key)
        return entries

    def build(
        self,
        customer_id: UUID,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
        start_date: date | None = None,
        end_date: date | None = None,
        strict: bool = True,
    ) -> Statement:
        """
        Build the statement of account for ``customer_id``.

        Args:
            customer_id: Customer whose records are folded; others are ignored.
            invoices: The customer's invoices, in any order, void included.
            payments: The customer's payments, in any order.
            start_date: Entries dated earlier fold into the opening balance.
            end_date: Entries dated later are left out.
            strict: Raise on a negative closing balance.

        Raises:
            NegativeClosingBalanceError: strict and the closing balance < 0.
        """
        entries = self._entries(customer_id, invoices, payments)

        opening = ZERO
        in_window: list[_Entry] = []
        for entry in entries:
            if start_date is not None and entry.date < start_date:
                opening = round_money(opening + entry.debit - entry.credit)
                continue
            if end_date is not None and entry.date > end_date:
                continue
            in_window.append(entry)

        running = opening
        transactions = []
        for entry in in_window:
            running = round_money(running + entry.debit - entry.credit)
            transactions.append(
                StatementTransaction(
                    date=entry.date,
                    kind=entry.kind,
                    reference=entry.reference,
                    description=entry.description,
                    debit=entry.debit,
                    credit=entry.credit,
                    balance=running,
                    source_id=entry.source_id,
                    sequence=entry.sequence,
                )
            )

        statement = Statement(
            customer_id=customer_id,
            transactions=tuple(transactions),
            total_debit=sum_money(t.debit for t in transactions),
            total_credit=sum_money(t.credit for t in transactions),
            opening_balance=opening,
            start_date=start_date,
            end_date=end_date,
        )

        logger.info(
            "statement_built",
            extra={
                "customer_id": str(customer_id),
                "transaction_count": len(transactions),
                "opening_balance": str(opening),
                "total_debit": str(statement.total_debit),
                "total_credit": str(statement.total_credit),
                "closing_balance": str(statement.closing_balance),
            },
        )

        if statement.closing_balance < 0:
            logger.error(
                "statement_negative_closing_balance",
                extra={
                    "customer_id": str(customer_id),
                    "closing_balance": str(statement.closing_balance),
                    "strict": strict,
                },
            )
            if strict:
                raise NegativeClosingBalanceError(str(customer_id), statement.closing_balance)

        return statement
