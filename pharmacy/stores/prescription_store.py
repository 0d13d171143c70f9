"""Prescription persistence."""
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import selectinload

from pharmacy.models import Prescription, PrescriptionStatus


class PrescriptionStore:
    """SQLAlchemy-backed prescription store."""

    def __init__(self, session):
        self.session = session

    def get_by_id_with_items(self, prescription_id, lock: bool = False) -> Optional[Prescription]:
        """Load a prescription and its items, optionally locking the prescription row."""
        query = (
            self.session.query(Prescription)
            .options(selectinload(Prescription.items))
            .filter(Prescription.id == prescription_id)
        )
        if lock:
            query = query.with_for_update(of=Prescription).populate_existing()
        return query.first()

    def update_status(
        self,
        prescription_id: int,
        status: PrescriptionStatus,
        expected: Optional[PrescriptionStatus] = None
    ) -> bool:
        """
        Set the prescription status.

        When expected is given the update only applies if the row is still in
        that status, which makes the transition a compare-and-swap.

        Returns:
            True if a row was updated.
        """
        stmt = update(Prescription).where(Prescription.id == prescription_id)
        if expected is not None:
            stmt = stmt.where(Prescription.status == expected)
        stmt = stmt.values(status=status).execution_options(synchronize_session=False)

        result = self.session.execute(stmt)
        updated = result.rowcount == 1
        if updated:
            # Keep any loaded instance in sync with the row
            prescription = self.session.get(Prescription, prescription_id)
            if prescription is not None:
                self.session.refresh(prescription, attribute_names=['status'])
        return updated
