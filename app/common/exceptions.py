"""
Billing error taxonomy.

Every error is an HTTPException so services can raise them directly and
routers return them without translation.
"""
import logging
from typing import List, Optional, Sequence, Union

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class BillingError(HTTPException):
    """Base class for billing errors"""

    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.default_status, detail=detail)

    @property
    def message(self) -> str:
        if isinstance(self.detail, dict):
            return "; ".join(self.detail.get("errors", [])) or str(self.detail)
        return str(self.detail)


class InvoiceValidationError(BillingError):
    """Missing or invalid required field; the operation is aborted with no write."""

    default_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, errors: Union[str, Sequence[str]]):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: List[str] = list(errors)
        super().__init__(detail={"errors": self.errors})


class NumberingExhausted(BillingError):
    default_status = status.HTTP_409_CONFLICT

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            detail=f"Unable to generate unique invoice number after {attempts} attempts"
        )


class StatusEditForbidden(BillingError):
    """Edit attempted on an invoice whose status does not allow it."""

    default_status = status.HTTP_409_CONFLICT

    def __init__(self, invoice_status: str, detail: Optional[str] = None):
        self.invoice_status = invoice_status
        super().__init__(detail=detail or f"Cannot edit invoice with status: {invoice_status}")


class InvalidStatusTransition(StatusEditForbidden):
    def __init__(self, current: str, target: str):
        self.target = target
        super().__init__(
            current,
            detail=f"Cannot change invoice status from {current} to {target}"
        )


class NotFound(BillingError):
    default_status = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, identifier=None):
        self.entity = entity
        detail = f"{entity} not found" if identifier is None else f"{entity} {identifier} not found"
        super().__init__(detail=detail)


class DependencyUnavailable(BillingError):
    """A store, email or payment collaborator failed."""

    default_status = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, category: str, detail: str):
        self.category = category
        super().__init__(detail=detail)


# (category, substrings, user-facing message); first match wins
_DEPENDENCY_CATEGORIES = [
    ("duplicate", ("duplicate key", "already exists", "unique constraint"),
     "A record with the same identifier already exists. Please try again."),
    ("invalid_reference", ("foreign key", "invalid customer"),
     "Invalid customer or product reference. Please refresh and try again."),
    ("invalid_data", ("check constraint",),
     "Invalid data provided. Please check all fields."),
    ("network", ("network", "connection"),
     "Network error. Please check your connection and try again."),
    ("timeout", ("timeout", "timed out"),
     "The request timed out. Please try again."),
    ("permission", ("permission", "unauthorized"),
     "Permission denied. Please check your access rights."),
    ("not_found", ("not found",),
     "The referenced record could not be found."),
]


def classify_dependency_error(exc: BaseException, action: str) -> DependencyUnavailable:
    """Map a collaborator failure to a single human-readable DependencyUnavailable."""
    raw = str(getattr(exc, "orig", None) or exc)
    lowered = raw.lower()
    for category, needles, message in _DEPENDENCY_CATEGORIES:
        if any(needle in lowered for needle in needles):
            logger.error(f"Failed to {action} ({category}): {raw}")
            return DependencyUnavailable(category, message)
    logger.error(f"Failed to {action}: {raw}")
    return DependencyUnavailable("unknown", f"Failed to {action}: {raw}")
