"""
Storefront exceptions
=====================

Service-layer code raises these instead of HTTPException so the same
functions can run from request handlers and from scheduled jobs.
The app registers a handler that renders them as:

    {"detail": <message>, "code": <code>, "details": {...}}

Usage:
    from storefront.core.exceptions import ResourceNotFoundError

    if not product:
        raise ResourceNotFoundError("Product", product_id)
"""

from typing import Optional, Any, Dict


class StorefrontError(Exception):
    """Base exception for all storefront errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(StorefrontError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(StorefrontError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(StorefrontError):
    """Requested record does not exist (or is not visible to the caller)"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any = None):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id) if resource_id is not None else None}
        )


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(StorefrontError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConflictError(StorefrontError):
    """Unique value already taken"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="CONFLICT", details=details)


class InsufficientStockError(StorefrontError):
    """Requested quantity is more than what is on the shelf"""

    status_code = 400

    def __init__(self, message: str, product_name: str, available: int):
        super().__init__(
            message,
            code="INSUFFICIENT_STOCK",
            details={"product": product_name, "available": available}
        )


# ============================================
# Payment Errors
# ============================================

class PaymentError(StorefrontError):
    """Payment gateway or verification failure"""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PAYMENT_ERROR", details=details)


class PaymentGatewayUnavailableError(PaymentError):
    """Razorpay keys missing or SDK unusable"""

    status_code = 503

    def __init__(self):
        super().__init__("Payment gateway not configured")
        self.code = "PAYMENT_GATEWAY_UNAVAILABLE"


# ============================================
# Email Errors
# ============================================

class EmailError(StorefrontError):
    """SMTP delivery failure"""

    status_code = 502

    def __init__(self, message: str, recipient: Optional[str] = None):
        details = {"recipient": recipient} if recipient else {}
        super().__init__(message, code="EMAIL_ERROR", details=details)


def error_response(error: StorefrontError) -> Dict[str, Any]:
    """Body returned by the app-level StorefrontError handler"""
    return {
        "detail": error.message,
        "code": error.code,
        "details": error.details,
    }
