"""Typed errors raised by the services and mapped to HTTP responses."""

from typing import Any, Optional


class SweetShopError(Exception):
    """Base exception for the Sweet Shop API"""

    status_code = 500

    def __init__(self, message: str, details: Optional[list[Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(SweetShopError):
    """Malformed or out-of-range input"""
    status_code = 400


class UnauthorizedError(SweetShopError):
    """Missing or invalid credential"""
    status_code = 401


class ForbiddenError(SweetShopError):
    """Credential present but role is insufficient"""
    status_code = 403


class NotFoundError(SweetShopError):
    """Unknown identifier"""
    status_code = 404


class ConflictError(SweetShopError):
    """Duplicate unique field or reused idempotency key"""
    status_code = 409


class InsufficientStockError(SweetShopError):
    """Requested quantity exceeds quantity on hand"""
    status_code = 400


class UnavailableError(SweetShopError):
    """Store timeout or transient failure. Retryable."""
    status_code = 503


class InternalError(SweetShopError):
    status_code = 500
