"""
Tests for the statement of account.

Covers:
- Chronological merge of invoices and payments with running balances
- Void exclusion
- Determinism under input permutation
- Date windows and the opening balance
- Negative closing balance handling
"""

import itertools
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.statement import (
    StatementReconciler,
    TransactionKind,
    payment_reference,
)
from billing_kernel.domain.dtos import InvoiceStatus
from billing_kernel.exceptions import NegativeClosingBalanceError
from tests.factories import make_invoice, make_payment


@pytest.fixture
def customer_id():
    return uuid4()


@pytest.fixture
def reconciler():
    return StatementReconciler()


class TestOrderingAndBalances:

    def test_out_of_order_input(self, reconciler, customer_id):
        """Invoice on day 10, payments on day 5 and day 20, supplied in any order."""
        invoice = make_invoice(
            total="500.00", paid="500.00", status=InvoiceStatus.PAID,
            customer_id=customer_id, issue_date=date(2024, 1, 10),
        )
        early = make_payment(invoice, "200.00", date(2024, 1, 5))
        late = make_payment(invoice, "300.00", date(2024, 1, 20))

        statement = reconciler.build(customer_id, [invoice], [late, early], strict=False)

        assert [t.date.day for t in statement.transactions] == [5, 10, 20]
        assert [t.balance for t in statement.transactions] == [
            Decimal("-200.00"),
            Decimal("300.00"),
            Decimal("0.00"),
        ]
        assert [t.kind for t in statement.transactions] == [
            TransactionKind.PAYMENT,
            TransactionKind.INVOICE,
            TransactionKind.PAYMENT,
        ]
        assert statement.closing_balance == Decimal("0.00")
        assert statement.is_settled

    def test_full_payment_closes_at_zero(self, reconciler, customer_id):
        invoice = make_invoice(total="935.00", paid="935.00", status=InvoiceStatus.PAID,
                               customer_id=customer_id)
        payment = make_payment(invoice, "935.00", date(2024, 1, 15))

        statement = reconciler.build(customer_id, [invoice], [payment])

        assert statement.total_debit == Decimal("935.00")
        assert statement.total_credit == Decimal("935.00")
        assert statement.closing_balance == Decimal("0.00")

    def test_same_day_invoice_precedes_payment(self, reconciler, customer_id):
        invoice = make_invoice(total="100.00", paid="100.00", status=InvoiceStatus.PAID,
                               customer_id=customer_id, issue_date=date(2024, 2, 1))
        payment = make_payment(invoice, "100.00", date(2024, 2, 1))

        statement = reconciler.build(customer_id, [invoice], [payment])

        assert [t.kind for t in statement.transactions] == [
            TransactionKind.INVOICE,
            TransactionKind.PAYMENT,
        ]
        assert statement.transactions[0].balance == Decimal("100.00")

    def test_sequence_breaks_same_day_ties(self, reconciler, customer_id):
        day = date(2024, 2, 1)
        second = make_invoice(total="50.00", customer_id=customer_id, issue_date=day,
                              sequence=2, invoice_number="INV-2024-0002")
        first = make_invoice(total="70.00", customer_id=customer_id, issue_date=day,
                             sequence=1, invoice_number="INV-2024-0001")

        statement = reconciler.build(customer_id, [second, first], [])

        assert [t.reference for t in statement.transactions] == ["INV-2024-0001", "INV-2024-0002"]

    def test_descriptions(self, reconciler, customer_id):
        invoice = make_invoice(total="300.00", paid="100.00", status=InvoiceStatus.PARTIALLY_PAID,
                               customer_id=customer_id, invoice_number="INV-2024-0042")
        payment = make_payment(invoice, "100.00", date(2024, 1, 12), reference_number="TT-991")

        statement = reconciler.build(customer_id, [invoice], [payment])

        inv_line, pay_line = statement.transactions
        assert inv_line.description == "Invoice - PARTIALLY_PAID"
        assert pay_line.description == "Payment via Bank Transfer for INV-2024-0042"
        assert pay_line.reference == "TT-991"

    def test_payment_reference_fallback(self, customer_id):
        payment = make_payment(make_invoice(customer_id=customer_id), "10.00", date(2024, 1, 1))
        assert payment_reference(payment) == f"PAY-{str(payment.id)[:8]}"

    def test_other_customers_ignored(self, reconciler, customer_id):
        mine = make_invoice(total="100.00", customer_id=customer_id)
        theirs = make_invoice(total="999.00")

        statement = reconciler.build(customer_id, [mine, theirs], [])

        assert statement.closing_balance == Decimal("100.00")
        assert len(statement.transactions) == 1

    def test_empty_statement(self, reconciler, customer_id):
        statement = reconciler.build(customer_id, [], [])

        assert statement.transactions == ()
        assert statement.closing_balance == Decimal("0.00")


class TestVoidExclusion:

    def test_void_invoice_leaves_no_trace(self, reconciler, customer_id):
        live = make_invoice(total="200.00", customer_id=customer_id, invoice_number="INV-2024-0001")
        voided = make_invoice(total="800.00", status=InvoiceStatus.VOID, customer_id=customer_id,
                              invoice_number="INV-2024-0002")

        statement = reconciler.build(customer_id, [live, voided], [])

        assert [t.reference for t in statement.transactions] == ["INV-2024-0001"]
        assert statement.total_debit == Decimal("200.00")

    def test_payments_on_void_invoice_excluded(self, reconciler, customer_id):
        voided = make_invoice(total="800.00", status=InvoiceStatus.VOID, customer_id=customer_id)
        stray = make_payment(voided, "50.00", date(2024, 1, 15))

        statement = reconciler.build(customer_id, [voided], [stray])

        assert statement.transactions == ()


class TestDeterminism:

    def test_every_permutation_gives_same_statement(self, reconciler, customer_id):
        inv_a = make_invoice(total="400.00", paid="150.00", status=InvoiceStatus.PARTIALLY_PAID,
                             customer_id=customer_id, issue_date=date(2024, 1, 3),
                             invoice_number="INV-2024-0001", sequence=1)
        inv_b = make_invoice(total="250.00", customer_id=customer_id, issue_date=date(2024, 1, 3),
                             invoice_number="INV-2024-0002", sequence=2)
        pay_1 = make_payment(inv_a, "100.00", date(2024, 1, 3), sequence=3)
        pay_2 = make_payment(inv_a, "50.00", date(2024, 1, 9), sequence=4)

        invoices = [inv_a, inv_b]
        payments = [pay_1, pay_2]
        baseline = reconciler.build(customer_id, invoices, payments)

        for inv_order in itertools.permutations(invoices):
            for pay_order in itertools.permutations(payments):
                again = reconciler.build(customer_id, list(inv_order), list(pay_order))
                assert again == baseline

        assert baseline.closing_balance == Decimal("500.00")


class TestWindow:

    def setup_method(self):
        self.reconciler = StatementReconciler()
        self.customer_id = uuid4()
        self.jan = make_invoice(total="300.00", paid="300.00", status=InvoiceStatus.PAID,
                                customer_id=self.customer_id, issue_date=date(2024, 1, 10),
                                invoice_number="INV-2024-0001")
        self.feb = make_invoice(total="120.00", customer_id=self.customer_id,
                                issue_date=date(2024, 2, 10), invoice_number="INV-2024-0002")
        self.mar = make_invoice(total="80.00", customer_id=self.customer_id,
                                issue_date=date(2024, 3, 10), invoice_number="INV-2024-0003")
        self.partial = make_payment(self.jan, "100.00", date(2024, 1, 20))
        self.rest = make_payment(self.jan, "200.00", date(2024, 2, 15))

    def _build(self, **kwargs):
        return self.reconciler.build(
            self.customer_id,
            [self.jan, self.feb, self.mar],
            [self.partial, self.rest],
            **kwargs,
        )

    def test_earlier_entries_fold_into_opening_balance(self):
        statement = self._build(start_date=date(2024, 2, 1))

        assert statement.opening_balance == Decimal("200.00")
        assert statement.transactions[0].balance == Decimal("320.00")
        assert statement.closing_balance == Decimal("200.00")

    def test_later_entries_dropped(self):
        statement = self._build(end_date=date(2024, 2, 28))

        assert [t.reference for t in statement.transactions][-1] != "INV-2024-0003"
        assert statement.closing_balance == Decimal("120.00")

    def test_window_closing_matches_full_history_at_end_date(self):
        windowed = self._build(start_date=date(2024, 2, 1), end_date=date(2024, 2, 28))
        full = self._build(end_date=date(2024, 2, 28))

        assert windowed.closing_balance == full.closing_balance


class TestNegativeClosingBalance:

    def _overpaid(self, customer_id):
        invoice = make_invoice(total="100.00", paid="100.00", status=InvoiceStatus.PAID,
                               customer_id=customer_id)
        payments = [
            make_payment(invoice, "100.00", date(2024, 1, 11)),
            make_payment(invoice, "25.00", date(2024, 1, 12)),
        ]
        return [invoice], payments

    def test_strict_raises(self, reconciler, customer_id):
        invoices, payments = self._overpaid(customer_id)

        with pytest.raises(NegativeClosingBalanceError) as exc_info:
            reconciler.build(customer_id, invoices, payments)
        assert exc_info.value.closing_balance == "-25.00"

    def test_lenient_returns_statement(self, reconciler, customer_id, captured_logs):
        invoices, payments = self._overpaid(customer_id)

        statement = reconciler.build(customer_id, invoices, payments, strict=False)

        assert statement.closing_balance == Decimal("-25.00")
        assert any(
            r["message"] == "statement_negative_closing_balance" for r in captured_logs()
        )

    def test_transient_negative_balance_is_not_an_error(self, reconciler, customer_id):
        invoice = make_invoice(total="500.00", paid="200.00", status=InvoiceStatus.PARTIALLY_PAID,
                               customer_id=customer_id, issue_date=date(2024, 1, 10))
        prepayment = make_payment(invoice, "200.00", date(2024, 1, 5))

        statement = reconciler.build(customer_id, [invoice], [prepayment])

        assert statement.transactions[0].balance == Decimal("-200.00")
        assert statement.closing_balance == Decimal("300.00")
