"""
Notification boundary -- events an email/notification collaborator may follow.

Responsibility:
    The billing core emits ``InvoiceGenerated`` and ``PaymentRecorded``.
    ``NotificationBus`` fans an event out to the handlers subscribed to its
    type.  The core does not know or care whether delivery succeeds: a
    failing handler is logged and the remaining handlers still run.

Architecture position:
    Kernel > Services.  Published by ReceivablesService after commit.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, TypeVar

from billing_kernel.domain.dtos import Invoice, Payment
from billing_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


@dataclass(frozen=True)
class InvoiceGenerated:
    invoice: Invoice


@dataclass(frozen=True)
class PaymentRecorded:
    invoice: Invoice
    payment: Payment


NotificationEvent = InvoiceGenerated | PaymentRecorded
E = TypeVar("E", InvoiceGenerated, PaymentRecorded)


class NotificationBus:
    """In-process publish/subscribe keyed by event type."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: NotificationEvent) -> int:
        """
        Deliver ``event`` to every subscribed handler.

        Returns:
            Number of handlers that completed without raising.
        """
        delivered = 0
        for handler in self._handlers.get(type(event), ()):
            try:
                handler(event)
            except Exception:
                logger.error(
                    "notification_handler_failed",
                    extra={
                        "event_type": type(event).__name__,
                        "handler": getattr(handler, "__qualname__", repr(handler)),
                    },
                    exc_info=True,
                )
                continue
            delivered += 1
        logger.debug(
            "notification_published",
            extra={"event_type": type(event).__name__, "delivered": delivered},
        )
        return delivered
