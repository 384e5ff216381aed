"""Translation of domain errors into HTTP errors."""

from fastapi import HTTPException, status

from hotel_booking.errors import (
    ConflictError,
    GatewayCommunicationError,
    GatewayConfigurationError,
    GatewayRejectedError,
    HotelBookingError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    WebhookFormatError,
)

_STATUS_BY_ERROR: list[tuple[type[HotelBookingError], int]] = [
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (GatewayRejectedError, status.HTTP_400_BAD_REQUEST),
    (WebhookFormatError, status.HTTP_400_BAD_REQUEST),
    (GatewayConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (GatewayCommunicationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def http_error(exc: HotelBookingError, status_code: int | None = None) -> HTTPException:
    """Build the HTTPException for a domain error, optionally forcing the status."""
    if status_code is None:
        status_code = next(
            (code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return HTTPException(status_code=status_code, detail=exc.message)
