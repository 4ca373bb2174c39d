# backend/iqraquest/core/exceptions.py
"""
Domain-specific exceptions for the IqraQuest payouts backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Default conversion to HTTPException (override in subclasses)."""
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=HTTP_422_UNPROCESSABLE,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class PaymentMethodUnavailableException(BusinessRuleException):
    """Raised when a teacher has no active payment method to pay out to."""

    def __init__(self, user_id: str):
        super().__init__(
            message="No payment method available for auto-payout",
            code="PAYMENT_METHOD_UNAVAILABLE",
            details={"user_id": user_id},
        )


class InsufficientBalanceException(BusinessRuleException):
    """Raised when a ledger debit exceeds the available balance."""

    def __init__(self, *, available: Decimal, requested: Decimal):
        super().__init__(
            message="Insufficient balance for payout request",
            code="INSUFFICIENT_BALANCE",
            details={"available": str(available), "requested": str(requested)},
        )


class OpenPayoutRequestExistsException(ConflictException):
    """Raised when a teacher already has a non-terminal payout request."""

    def __init__(self, user_id: str):
        super().__init__(
            message="Teacher already has a payout request in progress",
            code="PAYOUT_REQUEST_OPEN",
            details={"user_id": user_id},
        )


class InvalidPayoutTransitionException(BusinessRuleException):
    """Raised when a payout request is moved to a status it cannot reach."""

    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Illegal payout transition: {current} -> {target}",
            code="INVALID_PAYOUT_TRANSITION",
            details={"current": current, "target": target},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class WebhookVerificationError(Exception):
    """
    Raised when an inbound webhook fails its provider's signature check.

    ``reason`` is for logs only; callers always receive the same generic body.
    """

    def __init__(self, provider: str, reason: Optional[str] = None):
        self.provider = provider
        self.reason = reason
        super().__init__(f"Webhook verification failed for {provider}")
