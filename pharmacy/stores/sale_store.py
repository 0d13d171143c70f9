"""Sale persistence."""
from typing import Any, Dict, List

from pharmacy.models import Sale, SaleItem


class SaleStore:
    """SQLAlchemy-backed sale store."""

    def __init__(self, session):
        self.session = session

    def insert(self, sale_fields: Dict[str, Any], items: List[Dict[str, Any]]) -> Sale:
        """Insert a sale together with its items. Items are never persisted alone."""
        sale = Sale(**sale_fields)
        sale.items = [SaleItem(**item) for item in items]
        self.session.add(sale)
        self.session.flush()
        return sale
