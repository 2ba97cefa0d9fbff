from studio_booking.models.studio import Studio
from studio_booking.models.trainer import Trainer
from studio_booking.models.client import Client
from studio_booking.models.service import Service
from studio_booking.models.availability import AvailabilityBlock
from studio_booking.models.booking import Booking, BookingStatus
from studio_booking.models.package import Package, ClientPackage, CreditUsage, PackageStatus

__all__ = [
    "Studio", "Trainer", "Client", "Service", "AvailabilityBlock",
    "Booking", "BookingStatus",
    "Package", "ClientPackage", "CreditUsage", "PackageStatus",
]
