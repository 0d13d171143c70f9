"""Customer persistence (read-only for sales)."""
from typing import Optional

from pharmacy.models import Customer


class CustomerStore:
    """SQLAlchemy-backed customer store."""

    def __init__(self, session):
        self.session = session

    def get_by_id(self, customer_id) -> Optional[Customer]:
        return self.session.get(Customer, customer_id)
