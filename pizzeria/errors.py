"""
Application error taxonomy. Every AppError is rendered as {"message": ...} with its status code.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class InternalError(AppError):
    status_code = 500


class InvalidTransitionError(ConflictError):
    """Raised when an order status transition is not allowed. The stored status is left unchanged."""

    def __init__(self, current_status: str | None = None, new_status: str | None = None):
        self.current_status = current_status
        self.new_status = new_status
        super().__init__(f"Invalid status transition from {current_status} to {new_status}")


class OrderCreationError(InternalError):
    """Raised when the create-order transaction rolled back."""
    default_message = "Failed to create order"


class StaleOrderError(ConflictError):
    """The order's stored status changed after it was loaded; nothing was written."""

    def __init__(self, expected_status: str, current_status: str):
        self.expected_status = expected_status
        self.current_status = current_status
        super().__init__(f"Order status changed from {expected_status} to {current_status}; reload and retry")
