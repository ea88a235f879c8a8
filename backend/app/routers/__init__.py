# API Routers
from app.routers import bookings, admin, service_bookings, payments, notifications

__all__ = ['bookings', 'admin', 'service_bookings', 'payments', 'notifications']
