from typing import Dict, Optional


class OrderWorkflowError(Exception):
    """Base class for every failure surfaced by the order workflow."""


class ValidationFailed(OrderWorkflowError, ValueError):
    """A precondition was violated. Nothing has been written."""

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class InvalidTransition(OrderWorkflowError):
    """The status change is not legal from the current status, or another writer won the race."""

    def __init__(self, current_status, event: str, message: Optional[str] = None):
        self.current_status = current_status
        self.event = event
        status_value = getattr(current_status, "value", current_status)
        super().__init__(message or f"Cannot apply {event} to an order in status '{status_value}'")


class NotFound(OrderWorkflowError):
    def __init__(self, order_id, entity: str = "Order"):
        self.order_id = order_id
        self.entity = entity
        super().__init__(f"{entity} #{order_id} not found")


class PersistenceFailed(OrderWorkflowError):
    """A required write (or read) against the database failed."""

    def __init__(self, operation: str, detail: str = ""):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}" if detail else f"Persistence failure during {operation}")


class NotificationFailed(OrderWorkflowError):
    """The email could not be sent. Carries enough context to retry only the notification."""

    def __init__(self, order_id, kind, detail: str = ""):
        self.order_id = order_id
        self.kind = kind
        self.detail = detail
        kind_value = getattr(kind, "value", kind)
        super().__init__(f"Could not send {kind_value} email for order #{order_id}: {detail}")
