"""
ParcelOps Domain Errors

Typed failures raised by the shipment and finance services. The API layer
maps them to HTTP responses in api/main.py; workers log them.
"""


class ParcelOpsError(Exception):
    """Base class for domain errors. Extra keyword context is kept for logging."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(ParcelOpsError, LookupError):
    """A required shipment, payout, user, zone or status does not exist."""


class InvalidArgumentError(ParcelOpsError, ValueError):
    """Caller supplied a bad value (duplicate/unknown status name, empty id set)."""


class DomainViolationError(ParcelOpsError):
    """A business rule was broken, e.g. a courier-only action on a merchant."""


class ConfigurationError(ParcelOpsError, RuntimeError):
    """Baseline reference data (statuses) is missing. A deployment defect."""
