"""Models package - exports all SQLAlchemy models."""
# Staff
from pharmacy.models.app_user import AppUser, UserRole

# Inventory and patients
from pharmacy.models.medicine import Medicine
from pharmacy.models.customer import Customer
from pharmacy.models.prescription import (
    Prescription, PrescriptionItem, PrescriptionStatus, ALLOWED_STATUS_UPDATES
)

# Point of sale
from pharmacy.models.sale import Sale, PaymentMethod, normalize_payment_method
from pharmacy.models.sale_item import SaleItem

# Notifications
from pharmacy.models.alert import Alert, AlertType, AlertSeverity

__all__ = [
    'AppUser', 'UserRole',
    'Medicine', 'Customer',
    'Prescription', 'PrescriptionItem', 'PrescriptionStatus', 'ALLOWED_STATUS_UPDATES',
    'Sale', 'PaymentMethod', 'normalize_payment_method', 'SaleItem',
    'Alert', 'AlertType', 'AlertSeverity',
]
