"""Medicine persistence: row locks and atomic stock updates."""
import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy import update

from pharmacy.exceptions import TransactionFailure
from pharmacy.models import Medicine

logger = logging.getLogger(__name__)


class MedicineStore:
    """SQLAlchemy-backed medicine store."""

    def __init__(self, session):
        self.session = session

    def lock_many(self, medicine_ids: Iterable[int]) -> Dict[int, Medicine]:
        """Lock medicine rows FOR UPDATE and return them with fresh stock levels.

        Rows are locked in id order so that two carts touching the same
        medicines always acquire their locks in the same sequence.
        """
        ids = sorted(set(medicine_ids))
        if not ids:
            return {}

        medicines = (
            self.session.query(Medicine)
            .filter(Medicine.id.in_(ids))
            .order_by(Medicine.id)
            .with_for_update()
            .populate_existing()
            .all()
        )
        return {m.id: m for m in medicines}

    def adjust_quantity(self, medicine_id: int, delta: int) -> Optional[Medicine]:
        """
        Atomically add delta to the stock level.

        The update only matches when the resulting quantity stays >= 0, so a
        stale read elsewhere can never overdraw stock.

        Returns:
            The refreshed Medicine, or None when the row is missing or the
            adjustment would make the quantity negative.
        """
        stmt = (
            update(Medicine)
            .where(Medicine.id == medicine_id, Medicine.quantity + delta >= 0)
            .values(quantity=Medicine.quantity + delta)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            return None
        return self._reload(medicine_id)

    def decrement_quantity(self, medicine_id: int, amount: int) -> Medicine:
        """Decrement stock by amount; rejects the write if it would go negative."""
        medicine = self.adjust_quantity(medicine_id, -amount)
        if medicine is None:
            logger.warning(f"Stock decrement rejected for medicine {medicine_id} (amount={amount})")
            raise TransactionFailure(
                f'Stock for medicine {medicine_id} changed concurrently; nothing was applied'
            )
        return medicine

    def list_low_stock(self, lock: bool = False) -> List[Medicine]:
        """Medicines whose quantity is at or below their minimum level."""
        query = (
            self.session.query(Medicine)
            .filter(Medicine.quantity <= Medicine.min_stock_level)
            .order_by(Medicine.id)
        )
        if lock:
            query = query.with_for_update().populate_existing()
        return query.all()

    def list_expiring(self, until: date, lock: bool = False) -> List[Medicine]:
        """Medicines expiring on or before the given date."""
        query = (
            self.session.query(Medicine)
            .filter(Medicine.expiry_date <= until)
            .order_by(Medicine.expiry_date, Medicine.id)
        )
        if lock:
            query = query.with_for_update().populate_existing()
        return query.all()

    def _reload(self, medicine_id: int) -> Medicine:
        return (
            self.session.query(Medicine)
            .filter(Medicine.id == medicine_id)
            .populate_existing()
            .one()
        )
