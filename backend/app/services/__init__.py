# Business Services
from app.services.booking_service import BookingService
from app.services.service_booking_service import ServiceBookingService
from app.services.payment_service import PaymentService
from app.services.notification_service import NotificationService
from app.services.report_service import ReportService

__all__ = [
    'BookingService', 'ServiceBookingService', 'PaymentService',
    'NotificationService', 'ReportService'
]
