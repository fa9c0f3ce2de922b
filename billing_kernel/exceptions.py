"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must never parse error messages to decide what went wrong. Every
error in the billing core is:
  1. A TYPED exception class (catch by type, not message)
  2. Carrying a CODE class attribute (machine-readable, API-safe)
  3. Carrying structured DATA as attributes (not just a message string)

Example - RIGHT way:
    try:
        service.apply_payment(invoice_id, amount, method, payment_date)
    except PaymentExceedsBalanceError as e:
        api_response(code=e.code, balance_due=e.balance_due)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BillingError. The four middle classes are the
error *kinds* a calling layer translates into user-facing messages:

    BillingError (base)
    |
    +-- ValidationError                 bad input
    |   +-- InvalidAmountError
    |   +-- InvalidQuantityError
    |   +-- EmptyChargeSetError
    |   +-- NonPositiveInvoiceTotalError
    |   +-- InvalidPaymentAmountError
    |   +-- InvalidPaymentMethodError
    |   +-- InactiveFeeError
    |   +-- InvalidJobStatusError
    |
    +-- ConflictError                   request collides with current state
    |   +-- DuplicateInvoiceError
    |   +-- PaymentExceedsBalanceError
    |   +-- CannotVoidPaidInvoiceError
    |   +-- InvoiceAlreadyPaidError
    |   +-- InvoiceVoidError
    |   +-- JobNotEditableError
    |   +-- JobCancelledError
    |   +-- CreditLimitExceededError
    |   +-- OptimisticLockError
    |
    +-- NotFoundError                   referenced entity absent
    |   +-- CustomerNotFoundError
    |   +-- JobNotFoundError
    |   +-- FeeNotFoundError
    |   +-- InvoiceNotFoundError
    |
    +-- ConsistencyError                invariant broken -- a defect, never clamp
        +-- InvoiceStateInconsistentError
        +-- NegativeClosingBalanceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind         | Code                          | When Raised
-------------|-------------------------------|-----------------------------------
Validation   | INVALID_AMOUNT                | NaN / Infinity / unparsable money
             | INVALID_QUANTITY              | Negative quantity
             | EMPTY_CHARGE_SET              | Invoice requested with no charges
             | NON_POSITIVE_INVOICE_TOTAL    | Charges sum to zero or less
             | INVALID_PAYMENT_AMOUNT        | Payment amount <= 0
             | INVALID_PAYMENT_METHOD        | Unknown payment method
             | INACTIVE_FEE                  | Charge built from inactive fee
             | INVALID_JOB_STATUS            | Manual move to invoice-driven state
-------------|-------------------------------|-----------------------------------
Conflict     | DUPLICATE_INVOICE             | Job already has a non-void invoice
             | PAYMENT_EXCEEDS_BALANCE       | Payment larger than balance due
             | CANNOT_VOID_PAID_INVOICE      | Void requested with paid_amount > 0
             | INVOICE_ALREADY_PAID          | Payment against a paid invoice
             | INVOICE_VOID                  | Operation on a void invoice
             | JOB_NOT_EDITABLE              | Charges edited after invoicing
             | JOB_CANCELLED                 | Cancelled job reopened / billed
             | CREDIT_LIMIT_EXCEEDED         | Invoice pushes balance over limit
             | OPTIMISTIC_LOCK_CONFLICT      | Concurrent modification detected
-------------|-------------------------------|-----------------------------------
NotFound     | CUSTOMER_NOT_FOUND            |
             | JOB_NOT_FOUND                 |
             | FEE_NOT_FOUND                 |
             | INVOICE_NOT_FOUND             |
-------------|-------------------------------|-----------------------------------
Consistency  | INVOICE_STATE_INCONSISTENT    | status disagrees with paid amount
             | NEGATIVE_CLOSING_BALANCE      | customer overpaid in aggregate
"""

from decimal import Decimal


class BillingError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_ERROR"


class ValidationError(BillingError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class ConflictError(BillingError):
    """Base exception for requests that conflict with current state."""

    code: str = "CONFLICT"


class NotFoundError(BillingError):
    """Base exception for missing referenced entities."""

    code: str = "NOT_FOUND"


class ConsistencyError(BillingError):
    """
    Base exception for broken invariants.

    Never expected in correct operation. Raised loudly instead of clamping.
    """

    code: str = "CONSISTENCY_ERROR"


# Validation


class InvalidAmountError(ValidationError):
    """Monetary value is not a finite decimal number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str = "not a finite decimal"):
        self.value = repr(value)
        self.reason = reason
        super().__init__(f"Invalid monetary amount {value!r}: {reason}")


class InvalidQuantityError(ValidationError):
    """Quantity is negative."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: Decimal):
        self.quantity = str(quantity)
        super().__init__(f"Quantity must be non-negative, got {quantity}")


class EmptyChargeSetError(ValidationError):
    """An invoice was requested from zero charges."""

    code: str = "EMPTY_CHARGE_SET"

    def __init__(self, job_id: str | None = None):
        self.job_id = job_id
        target = f" for job {job_id}" if job_id else ""
        super().__init__(f"Cannot create an invoice with no charges{target}")


class NonPositiveInvoiceTotalError(ValidationError):
    """The charges aggregate to a total of zero or less."""

    code: str = "NON_POSITIVE_INVOICE_TOTAL"

    def __init__(self, total_amount: Decimal):
        self.total_amount = str(total_amount)
        super().__init__(
            f"Invoice total must be positive, charges sum to {total_amount}"
        )


class InvalidPaymentAmountError(ValidationError):
    """Payment amount is not a positive whole-cent value."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: Decimal, reason: str = "must be positive"):
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Payment amount {reason}, got {amount}")


class InvalidPaymentMethodError(ValidationError):
    """Payment method is not one of the accepted methods."""

    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, method: str, allowed: tuple[str, ...]):
        self.method = method
        self.allowed = allowed
        super().__init__(
            f"Unknown payment method {method!r}; expected one of {', '.join(allowed)}"
        )


class InactiveFeeError(ValidationError):
    """A charge was requested from an inactive catalog fee."""

    code: str = "INACTIVE_FEE"

    def __init__(self, fee_id: str, fee_name: str):
        self.fee_id = fee_id
        self.fee_name = fee_name
        super().__init__(f"Fee {fee_name!r} ({fee_id}) is inactive")


class InvalidJobStatusError(ValidationError):
    """A job status cannot be set by hand."""

    code: str = "INVALID_JOB_STATUS"

    def __init__(self, job_id: str, requested_status: str):
        self.job_id = job_id
        self.requested_status = requested_status
        super().__init__(
            f"Job {job_id} cannot be set to {requested_status!r}: "
            "status is derived from its invoice"
        )


# Conflict


class DuplicateInvoiceError(ConflictError):
    """Job already has a non-void invoice."""

    code: str = "DUPLICATE_INVOICE"

    def __init__(self, job_id: str, invoice_number: str):
        self.job_id = job_id
        self.invoice_number = invoice_number
        super().__init__(
            f"Invoice {invoice_number} already exists for job {job_id}"
        )


class PaymentExceedsBalanceError(ConflictError):
    """Payment amount is larger than the invoice balance due."""

    code: str = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(self, invoice_number: str, amount: Decimal, balance_due: Decimal):
        self.invoice_number = invoice_number
        self.amount = str(amount)
        self.balance_due = str(balance_due)
        super().__init__(
            f"Payment of {amount} exceeds balance due {balance_due} "
            f"on invoice {invoice_number}"
        )


class CannotVoidPaidInvoiceError(ConflictError):
    """Void requested on an invoice that has received money."""

    code: str = "CANNOT_VOID_PAID_INVOICE"

    def __init__(self, invoice_number: str, paid_amount: Decimal):
        self.invoice_number = invoice_number
        self.paid_amount = str(paid_amount)
        super().__init__(
            f"Invoice {invoice_number} cannot be voided: {paid_amount} already paid"
        )


class InvoiceAlreadyPaidError(ConflictError):
    """Payment attempted against a fully paid invoice."""

    code: str = "INVOICE_ALREADY_PAID"

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice {invoice_number} is already paid")


class InvoiceVoidError(ConflictError):
    """Operation attempted on a void invoice."""

    code: str = "INVOICE_VOID"

    def __init__(self, invoice_number: str, action: str):
        self.invoice_number = invoice_number
        self.action = action
        super().__init__(f"Cannot {action} invoice {invoice_number}: invoice is void")


class JobNotEditableError(ConflictError):
    """Job charges can no longer be changed."""

    code: str = "JOB_NOT_EDITABLE"

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Charges of job {job_id} are locked (status {status})")


class JobCancelledError(ConflictError):
    """Job is cancelled; cancellation is terminal."""

    code: str = "JOB_CANCELLED"

    def __init__(self, job_id: str, action: str):
        self.job_id = job_id
        self.action = action
        super().__init__(f"Cannot {action} job {job_id}: job is cancelled")


class CreditLimitExceededError(ConflictError):
    """New invoice would push the customer over its credit limit."""

    code: str = "CREDIT_LIMIT_EXCEEDED"

    def __init__(self, customer_id: str, credit_limit: Decimal, projected_balance: Decimal):
        self.customer_id = customer_id
        self.credit_limit = str(credit_limit)
        self.projected_balance = str(projected_balance)
        super().__init__(
            f"Customer {customer_id} balance would reach {projected_balance}, "
            f"above credit limit {credit_limit}"
        )


class OptimisticLockError(ConflictError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Not found


class CustomerNotFoundError(NotFoundError):
    """Customer with given ID was not found."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class JobNotFoundError(NotFoundError):
    """Job with given ID was not found."""

    code: str = "JOB_NOT_FOUND"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class FeeNotFoundError(NotFoundError):
    """Catalog fee with given ID was not found."""

    code: str = "FEE_NOT_FOUND"

    def __init__(self, fee_id: str):
        self.fee_id = fee_id
        super().__init__(f"Fee not found: {fee_id}")


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


# Consistency


class InvoiceStateInconsistentError(ConsistencyError):
    """Invoice status disagrees with its paid and total amounts."""

    code: str = "INVOICE_STATE_INCONSISTENT"

    def __init__(
        self,
        invoice_number: str,
        status: str,
        paid_amount: Decimal,
        total_amount: Decimal,
        violation: str,
    ):
        self.invoice_number = invoice_number
        self.status = status
        self.paid_amount = str(paid_amount)
        self.total_amount = str(total_amount)
        self.violation = violation
        super().__init__(
            f"Invoice {invoice_number} is inconsistent ({violation}): "
            f"status={status} paid={paid_amount} total={total_amount}"
        )


class NegativeClosingBalanceError(ConsistencyError):
    """Customer statement closes below zero (overpaid in aggregate)."""

    code: str = "NEGATIVE_CLOSING_BALANCE"

    def __init__(self, customer_id: str, closing_balance: Decimal):
        self.customer_id = customer_id
        self.closing_balance = str(closing_balance)
        super().__init__(
            f"Statement for customer {customer_id} closes at {closing_balance}: "
            "payments exceed invoiced totals"
        )
