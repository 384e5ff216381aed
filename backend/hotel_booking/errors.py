"""Domain exceptions raised by services and translated to HTTP responses by routers."""

from typing import Any


class HotelBookingError(Exception):
    """Base class for all booking/payment domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(HotelBookingError):
    """Missing or malformed request data. Nothing was mutated."""


class NotFoundError(HotelBookingError):
    """A room, room type, reservation, user or payment does not exist."""


class ConflictError(HotelBookingError):
    """No availability, or the dates overlap an active reservation."""


class InvalidStateError(HotelBookingError):
    """The entity's current state does not permit the requested operation."""


class GatewayConfigurationError(HotelBookingError):
    """Payment gateway credentials are missing."""


class GatewayCommunicationError(HotelBookingError):
    """Network or HTTP failure talking to the payment gateway."""


class GatewayTimeoutError(GatewayCommunicationError):
    """The gateway did not answer within the configured budget.

    The outcome of the transaction is unknown, so the payment stays Pending
    and is settled later by the webhook.
    """


class GatewayRejectedError(HotelBookingError):
    """The gateway answered but did not approve the transaction."""


class WebhookFormatError(HotelBookingError):
    """A gateway notification could not be parsed or recognized."""


class InvalidSignatureError(WebhookFormatError):
    """A legacy notification carried a signature that does not match."""
