"""
Job status projection.

A job's status is user-controlled until it is invoiced; from then on it
mirrors its linked invoice.  ``cancelled`` is sticky and never overwritten.

    draft / sent     -> invoiced
    partially_paid   -> partially_paid
    paid             -> cleared
    void             -> in_progress (so the job can be re-billed)

Pure; recomputed by ReceivablesService every time the linked invoice changes.
"""

from __future__ import annotations

from billing_kernel.domain.dtos import Invoice, InvoiceStatus, JobStatus
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.job_status")

INVOICE_DRIVEN_STATUSES = frozenset(
    {JobStatus.INVOICED, JobStatus.PARTIALLY_PAID, JobStatus.CLEARED}
)
MANUAL_STATUSES = frozenset(
    {JobStatus.PENDING, JobStatus.IN_PROGRESS, JobStatus.CANCELLED}
)

_MIRROR = {
    InvoiceStatus.DRAFT: JobStatus.INVOICED,
    InvoiceStatus.SENT: JobStatus.INVOICED,
    InvoiceStatus.PARTIALLY_PAID: JobStatus.PARTIALLY_PAID,
    InvoiceStatus.PAID: JobStatus.CLEARED,
}


def project_job_status(current: JobStatus, invoice: Invoice | None) -> JobStatus:
    """Job status implied by ``current`` and the job's linked invoice."""
    if current is JobStatus.CANCELLED:
        return current

    if invoice is None:
        return current

    if invoice.is_void:
        projected = JobStatus.IN_PROGRESS if current in INVOICE_DRIVEN_STATUSES else current
    else:
        projected = _MIRROR[invoice.status]

    if projected is not current:
        logger.debug(
            "job_status_projected",
            extra={
                "invoice_number": invoice.invoice_number,
                "invoice_status": invoice.status.value,
                "from_status": current.value,
                "to_status": projected.value,
            },
        )
    return projected
