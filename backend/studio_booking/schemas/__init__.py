from studio_booking.schemas.booking import (
    BookingCreate, BookingUpdate, BookingResponse, BookingCompleteRequest,
    BookingCompleteResponse, BookingCancelResponse,
)
from studio_booking.schemas.public import PublicBookingCreate, PublicBookingResponse
from studio_booking.schemas.availability import TimeWindow, AvailabilityResponse
from studio_booking.schemas.package import PackageAssign, ClientPackageResponse, CreditSummary
from studio_booking.schemas.payment import PaymentEvent, PaymentEventResult

__all__ = [
    "BookingCreate", "BookingUpdate", "BookingResponse", "BookingCompleteRequest",
    "BookingCompleteResponse", "BookingCancelResponse",
    "PublicBookingCreate", "PublicBookingResponse",
    "TimeWindow", "AvailabilityResponse",
    "PackageAssign", "ClientPackageResponse", "CreditSummary",
    "PaymentEvent", "PaymentEventResult",
]
