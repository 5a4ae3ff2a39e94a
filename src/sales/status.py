"""Order status transitions.

A status change is the primary write; the history row and the customer
notification are best-effort follow-ups whose failures come back as warnings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from asgiref.sync import sync_to_async
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from core.effects import SideEffect, SideEffectWarning, run_best_effort
from visibility.errors import InvalidInput

from .models import Customer, Order, OrderHistory, OrderStatus

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS: dict[str, tuple[str, ...]] = {
    OrderStatus.PENDING: (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    OrderStatus.PROCESSING: (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    OrderStatus.SHIPPED: (OrderStatus.COMPLETED, OrderStatus.CANCELLED),
    OrderStatus.COMPLETED: (),
    OrderStatus.CANCELLED: (),
}

STATUS_DISPLAY: dict[str, dict[str, str]] = {
    OrderStatus.PENDING: {
        "color": "#fbbf24",
        "icon": "Clock",
        "description": "Order received, waiting to be processed",
    },
    OrderStatus.PROCESSING: {
        "color": "#3b82f6",
        "icon": "Settings",
        "description": "Order is being prepared",
    },
    OrderStatus.SHIPPED: {
        "color": "#8b5cf6",
        "icon": "Truck",
        "description": "Order has left the warehouse",
    },
    OrderStatus.COMPLETED: {
        "color": "#10b981",
        "icon": "CheckCircle",
        "description": "Order delivered to the customer",
    },
    OrderStatus.CANCELLED: {
        "color": "#ef4444",
        "icon": "XCircle",
        "description": "Order was cancelled",
    },
}

TIMESTAMP_FIELDS = {
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def allowed_transitions(current: str) -> tuple[str, ...]:
    return STATUS_TRANSITIONS.get(current, ())


def status_config() -> dict[str, Any]:
    """Display metadata and allowed transitions for every order status."""
    return {
        "statusConfig": {
            status.value: {"label": status.label, **STATUS_DISPLAY[status]}
            for status in OrderStatus
        },
        "statusTransitions": {
            str(status): [str(target) for target in targets]
            for status, targets in STATUS_TRANSITIONS.items()
        },
    }


def validate_transition(current: str, target: Any) -> str:
    """Return ``target`` as a status value or raise ``InvalidInput``."""
    if target not in OrderStatus.values:
        raise InvalidInput(
            f"Invalid status. Must be one of: {', '.join(OrderStatus.values)}"
        )
    allowed = allowed_transitions(current)
    if target not in allowed:
        options = ", ".join(str(status) for status in allowed) or "none"
        raise InvalidInput(
            f"Cannot change status from {current} to {target}. Allowed: {options}"
        )
    return str(target)


class OrderNotifier:
    """Email the customer about a status change."""

    subject_template = "Order {number} is now {status}"

    async def notify(self, order: Order, previous: str) -> bool:
        customer = None
        if order.customer_id is not None:
            customer = await Customer.objects.filter(pk=order.customer_id).afirst()
        if customer is None or not customer.email:
            logger.warning("Order %s has no customer email, skipping notification", order.order_number)
            return False

        await sync_to_async(send_mail)(
            self.subject_template.format(number=order.order_number, status=order.status),
            (
                f"Your order {order.order_number} moved from {previous} to {order.status}."
            ),
            settings.DEFAULT_FROM_EMAIL,
            [customer.email],
        )
        logger.info("Status notification sent for order %s", order.order_number)
        return True


@dataclass
class StatusChange:
    order: Order
    previous: str
    warnings: list[SideEffectWarning] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "id": self.order.id,
            "orderNumber": self.order.order_number,
            "previousStatus": self.previous,
            "status": self.order.status,
            "warnings": [warning.as_dict() for warning in self.warnings],
        }


class OrderStatusService:
    def __init__(self, notifier: OrderNotifier | None = None) -> None:
        self.notifier = notifier or OrderNotifier()

    async def change_status(
        self,
        order: Order,
        target: Any,
        *,
        note: str = "",
        changed_by_id: Any = None,
    ) -> StatusChange:
        previous = order.status
        order.status = validate_transition(previous, target)
        update_fields = ["status", "updated_at"]
        stamp_field = TIMESTAMP_FIELDS.get(order.status)
        if stamp_field:
            setattr(order, stamp_field, timezone.now())
            update_fields.append(stamp_field)
        await order.asave(update_fields=update_fields)

        async def record_history():
            await OrderHistory.objects.acreate(
                order_id=order.id,
                from_status=previous,
                to_status=order.status,
                note=note or "",
                changed_by_id=changed_by_id,
            )

        async def notify_customer():
            await self.notifier.notify(order, previous)

        warnings = await run_best_effort(
            [
                SideEffect("order_history", record_history),
                SideEffect("status_notification", notify_customer),
            ]
        )
        return StatusChange(order=order, previous=previous, warnings=warnings)


__all__ = [
    "OrderNotifier",
    "OrderStatusService",
    "STATUS_DISPLAY",
    "STATUS_TRANSITIONS",
    "StatusChange",
    "allowed_transitions",
    "status_config",
    "validate_transition",
]
