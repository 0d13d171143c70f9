"""Persistence stores used by the transactional services."""
from pharmacy.stores.alert_store import AlertStore
from pharmacy.stores.customer_store import CustomerStore
from pharmacy.stores.medicine_store import MedicineStore
from pharmacy.stores.prescription_store import PrescriptionStore
from pharmacy.stores.sale_store import SaleStore
from pharmacy.stores.bundle import SqlAlchemyStores

__all__ = [
    'AlertStore', 'CustomerStore', 'MedicineStore', 'PrescriptionStore', 'SaleStore',
    'SqlAlchemyStores',
]
