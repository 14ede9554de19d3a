# poliprint/services/payment_service.py
import logging
from dataclasses import dataclass

from sqlmodel import Session

from poliprint.schemas.payment import PaymentEvent, PaymentStatusKind
from poliprint.services.order_service import OrderService

logger = logging.getLogger(__name__)

# outcome kind -> (order status, acknowledgement message)
_OUTCOMES: dict[PaymentStatusKind, tuple[str, str]] = {
    PaymentStatusKind.PAID: ("paid", "Payment processed successfully"),
    PaymentStatusKind.FAILED: ("payment_failed", "Payment failure processed"),
    PaymentStatusKind.PROCESSING: ("payment_processing", "Payment processing status updated"),
}


@dataclass(frozen=True)
class PaymentProcessingResult:
    processed: bool
    message: str
    new_transition: bool = False


class PaymentProcessor:
    """
    Applies verified webhook events to orders.

    The caller has already checked the signature. Failures while applying
    are reported as processed=False and never escape, so the provider
    always gets an acknowledgement.
    """

    def __init__(self, order_service: OrderService):
        self.order_service = order_service

    def process(self, session: Session, event: PaymentEvent) -> PaymentProcessingResult:
        outcome = _OUTCOMES.get(event.kind)
        if outcome is None:
            logger.warning(
                "Unhandled payment status %r for order %s",
                event.status,
                event.order_reference,
            )
            return PaymentProcessingResult(
                processed=True,
                message=f"Status '{event.status}' processed",
            )

        order_status, message = outcome
        try:
            applied = self.order_service.apply_payment_status(
                session,
                event.order_reference,
                order_status,
                event,
            )
        except Exception:
            logger.exception(
                "Failed to apply payment status %s to order %s",
                event.status,
                event.order_reference,
            )
            return PaymentProcessingResult(processed=False, message="Order processing failed")

        if not applied:
            message = f"{message} (already applied)"
        return PaymentProcessingResult(processed=True, message=message, new_transition=applied)
