"""Schemas for the availability check endpoint."""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import Field, model_validator

from hotel_booking.schemas.common import CamelModel


class AvailabilityCheckRequest(CamelModel):
    room_type_id: uuid.UUID
    check_in_date: date
    check_out_date: date
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)

    @model_validator(mode="after")
    def check_dates(self) -> "AvailabilityCheckRequest":
        if self.check_out_date <= self.check_in_date:
            raise ValueError("checkOutDate must be after checkInDate")
        return self


class AvailabilityCheckResponse(CamelModel):
    available: bool
    available_rooms: int
    nights: int
    base_price: Decimal
    additional_guest_charge: Decimal
    total_price: Decimal
    message: str
