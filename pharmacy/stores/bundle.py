"""Store bundle with a single transactional boundary."""
from contextlib import contextmanager

from pharmacy.stores.alert_store import AlertStore
from pharmacy.stores.customer_store import CustomerStore
from pharmacy.stores.medicine_store import MedicineStore
from pharmacy.stores.prescription_store import PrescriptionStore
from pharmacy.stores.sale_store import SaleStore


class SqlAlchemyStores:
    """All stores sharing one SQLAlchemy session, and so one transaction."""

    def __init__(self, session):
        self.session = session
        self.medicines = MedicineStore(session)
        self.sales = SaleStore(session)
        self.alerts = AlertStore(session)
        self.prescriptions = PrescriptionStore(session)
        self.customers = CustomerStore(session)

    @contextmanager
    def transaction(self):
        """Commit everything done inside the block, or roll all of it back."""
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
