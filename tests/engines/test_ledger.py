"""
Tests for applying payments to invoices.

Covers:
- Full and partial settlement
- The order in which payment rules are checked
- Payment method parsing
"""

from datetime import date
from decimal import Decimal

import pytest

from billing_engines.ledger import PaymentLedger, parse_payment_method
from billing_kernel.domain.dtos import InvoiceStatus, PaymentMethod
from billing_kernel.exceptions import (
    InvalidPaymentAmountError,
    InvalidPaymentMethodError,
    InvoiceAlreadyPaidError,
    InvoiceVoidError,
    PaymentExceedsBalanceError,
)
from tests.factories import make_invoice

PAY_DATE = date(2024, 3, 5)


class TestApplyPayment:

    def setup_method(self):
        self.ledger = PaymentLedger()

    def test_full_payment_settles_invoice(self):
        """A single payment of 935.00 against 935.00 leaves nothing due."""
        invoice = make_invoice(total="935.00")

        result = self.ledger.apply_payment(invoice, "935.00", PaymentMethod.BANK_TRANSFER, PAY_DATE)

        assert result.invoice.paid_amount == Decimal("935.00")
        assert result.invoice.balance_due == Decimal("0.00")
        assert result.invoice.status is InvoiceStatus.PAID
        assert result.previous_status is InvoiceStatus.SENT
        assert result.settled_invoice
        assert result.payment.amount == Decimal("935.00")
        assert result.payment.invoice_id == invoice.id
        assert result.payment.customer_id == invoice.customer_id

    def test_two_part_payment_then_rejection(self):
        """687.50 paid as 250.00 then 437.50; a third payment is refused."""
        invoice = make_invoice(total="687.50")

        first = self.ledger.apply_payment(invoice, Decimal("250.00"), "Cash", PAY_DATE)
        assert first.invoice.status is InvoiceStatus.PARTIALLY_PAID
        assert first.invoice.balance_due == Decimal("437.50")
        assert not first.settled_invoice

        second = self.ledger.apply_payment(first.invoice, Decimal("437.50"), "Cash", PAY_DATE)
        assert second.invoice.status is InvoiceStatus.PAID
        assert second.invoice.balance_due == Decimal("0.00")

        with pytest.raises(InvoiceAlreadyPaidError):
            self.ledger.apply_payment(second.invoice, Decimal("1.00"), "Cash", PAY_DATE)

    def test_overpayment_rejected(self):
        """400.00 against a balance of 385.00 is refused and nothing changes."""
        invoice = make_invoice(total="385.00")

        with pytest.raises(PaymentExceedsBalanceError) as exc_info:
            self.ledger.apply_payment(invoice, Decimal("400.00"), "Card", PAY_DATE)

        assert exc_info.value.balance_due == "385.00"
        assert invoice.paid_amount == Decimal("0.00")
        assert invoice.status is InvoiceStatus.SENT

    def test_sub_cent_amount_rejected(self):
        invoice = make_invoice(total="100.00")

        with pytest.raises(InvalidPaymentAmountError) as exc_info:
            self.ledger.apply_payment(invoice, "33.335", "Cash", PAY_DATE)

        assert exc_info.value.amount == "33.335"
        assert invoice.paid_amount == Decimal("0.00")

    def test_whole_units_normalized_to_cents(self):
        invoice = make_invoice(total="100.00")

        result = self.ledger.apply_payment(invoice, 40, "Cash", PAY_DATE)

        assert result.payment.amount == Decimal("40.00")
        assert str(result.invoice.paid_amount) == "40.00"


    def test_payment_on_draft_invoice_allowed(self):
        invoice = make_invoice(total="100.00", status=InvoiceStatus.DRAFT)

        result = self.ledger.apply_payment(invoice, "100.00", "Cash", PAY_DATE)

        assert result.invoice.status is InvoiceStatus.PAID

    def test_reference_and_sequence_carried(self):
        invoice = make_invoice(total="100.00")

        result = self.ledger.apply_payment(
            invoice, "10.00", "Cheque", PAY_DATE, reference="CHQ-001", notes="first", sequence=7,
        )

        assert result.payment.reference_number == "CHQ-001"
        assert result.payment.notes == "first"
        assert result.payment.sequence == 7
        assert result.payment.payment_method is PaymentMethod.CHEQUE


class TestValidationOrder:

    def setup_method(self):
        self.ledger = PaymentLedger()

    def test_void_checked_before_amount(self):
        invoice = make_invoice(status=InvoiceStatus.VOID)
        with pytest.raises(InvoiceVoidError):
            self.ledger.validate(invoice, Decimal("-5.00"))

    def test_paid_checked_before_amount(self):
        invoice = make_invoice(total="100.00", paid="100.00", status=InvoiceStatus.PAID)
        with pytest.raises(InvoiceAlreadyPaidError):
            self.ledger.validate(invoice, Decimal("0.00"))

    @pytest.mark.parametrize("amount", ["0.00", "-10.00"])
    def test_non_positive_amount(self, amount):
        with pytest.raises(InvalidPaymentAmountError):
            self.ledger.validate(make_invoice(), Decimal(amount))

    def test_exact_balance_accepted(self):
        invoice = make_invoice(total="500.00", paid="200.00", status=InvoiceStatus.PARTIALLY_PAID)
        self.ledger.validate(invoice, Decimal("300.00"))

    def test_one_cent_over_balance(self):
        invoice = make_invoice(total="500.00", paid="200.00", status=InvoiceStatus.PARTIALLY_PAID)
        with pytest.raises(PaymentExceedsBalanceError):
            self.ledger.validate(invoice, Decimal("300.01"))

    @pytest.mark.parametrize("amount", ["0.005", "385.004", "10.001"])
    def test_fraction_of_a_cent_rejected(self, amount):
        """Amounts are never rounded into a value that was not tendered."""
        invoice = make_invoice(total="385.00")
        with pytest.raises(InvalidPaymentAmountError):
            self.ledger.validate(invoice, Decimal(amount))



class TestPaymentMethod:

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Bank Transfer", PaymentMethod.BANK_TRANSFER),
            ("bank_transfer", PaymentMethod.BANK_TRANSFER),
            ("CASH", PaymentMethod.CASH),
            (PaymentMethod.CARD, PaymentMethod.CARD),
        ],
    )
    def test_accepted_spellings(self, raw, expected):
        assert parse_payment_method(raw) is expected

    def test_unknown_method(self):
        with pytest.raises(InvalidPaymentMethodError):
            parse_payment_method("Bitcoin")

    @pytest.mark.parametrize("raw", [None, 3, b"Cash"])
    def test_non_string_method(self, raw):
        with pytest.raises(InvalidPaymentMethodError):
            parse_payment_method(raw)
