"""
Audit boundary -- best-effort audit records for state-changing operations.

Responsibility:
    Defines the abstract audit record every invoice create, invoice send,
    invoice void, payment apply and job change emits, the ``AuditSink``
    protocol an external audit store implements, and two concrete sinks
    (structured log, in-memory).

Architecture position:
    Kernel > Services.  Called by ReceivablesService AFTER its transaction
    commits.  Audit storage itself is an external collaborator.

Invariants enforced:
    - Best-effort: a failing sink never rolls back or fails the business
      transaction.  The failure is logged with its traceback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from billing_kernel.logging_config import get_logger

logger = get_logger("services.audit")


class AuditAction(str, Enum):
    """Audited actions."""

    INVOICE_GENERATED = "invoice_generated"
    INVOICE_SENT = "invoice_sent"
    INVOICE_VOIDED = "invoice_voided"
    PAYMENT_RECORDED = "payment_recorded"
    JOB_CHARGES_SAVED = "job_charges_saved"
    JOB_STATUS_CHANGED = "job_status_changed"


@dataclass(frozen=True)
class AuditRecord:
    """One audit entry: ``{action, entity_type, entity_id, old_state?, new_state?}``."""

    action: AuditAction
    entity_type: str
    entity_id: UUID
    actor_id: UUID
    occurred_at: datetime
    old_state: dict[str, Any] | None = None
    new_state: dict[str, Any] | None = None


class AuditSink(Protocol):
    """External audit store."""

    def record(self, entry: AuditRecord) -> None: ...


class LoggingAuditSink:
    """Writes each audit record as one structured log line."""

    def __init__(self) -> None:
        self._logger = get_logger("audit")

    def record(self, entry: AuditRecord) -> None:
        self._logger.info(
            "audit_record",
            extra={
                "action": entry.action.value,
                "entity_type": entry.entity_type,
                "entity_id": str(entry.entity_id),
                "audit_actor_id": str(entry.actor_id),
                "occurred_at": entry.occurred_at.isoformat(),
                "old_state": entry.old_state,
                "new_state": entry.new_state,
            },
        )


@dataclass
class InMemoryAuditSink:
    """Collects audit records in a list. Used by tests and local tooling."""

    records: list[AuditRecord] = field(default_factory=list)

    def record(self, entry: AuditRecord) -> None:
        self.records.append(entry)

    def actions(self) -> list[AuditAction]:
        return [r.action for r in self.records]


def emit_audit(sink: AuditSink, entry: AuditRecord) -> bool:
    """
    Hand ``entry`` to ``sink``.

    Returns:
        True if the sink accepted the record, False if it raised.
    """
    try:
        sink.record(entry)
    except Exception:
        logger.error(
            "audit_record_failed",
            extra={
                "action": entry.action.value,
                "entity_type": entry.entity_type,
                "entity_id": str(entry.entity_id),
            },
            exc_info=True,
        )
        return False
    return True
