"""Prescription and prescription item models."""
import enum
from sqlalchemy import Column, BigInteger, String, Text, Date, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmacy.database import Base, BigIntId


class PrescriptionStatus(str, enum.Enum):
    """Prescription lifecycle status."""
    PENDING = 'PENDING'
    FILLED = 'FILLED'
    PARTIAL = 'PARTIAL'
    CANCELLED = 'CANCELLED'


# FILLED is only reachable through fulfillment; FILLED and CANCELLED are terminal.
ALLOWED_STATUS_UPDATES = {
    PrescriptionStatus.PENDING: {PrescriptionStatus.PARTIAL, PrescriptionStatus.CANCELLED},
    PrescriptionStatus.PARTIAL: {PrescriptionStatus.PENDING, PrescriptionStatus.CANCELLED},
    PrescriptionStatus.FILLED: set(),
    PrescriptionStatus.CANCELLED: set(),
}


class Prescription(Base):
    """Prescription issued by a doctor for a customer."""

    __tablename__ = 'prescription'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=False)
    doctor_name = Column(String(200), nullable=False)
    prescription_number = Column(String(100), nullable=False, unique=True)
    issue_date = Column(Date, nullable=False)
    status = Column(
        Enum(PrescriptionStatus, name='prescription_status'),
        nullable=False,
        default=PrescriptionStatus.PENDING
    )
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='prescriptions')
    items = relationship(
        'PrescriptionItem',
        back_populates='prescription',
        cascade='all, delete-orphan',
        order_by='PrescriptionItem.id'
    )
    sales = relationship('Sale', back_populates='prescription')

    def __repr__(self):
        return f"<Prescription(id={self.id}, number='{self.prescription_number}', status={self.status})>"


class PrescriptionItem(Base):
    """Prescription line."""

    __tablename__ = 'prescription_item'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_prescription_item_quantity_positive'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    prescription_id = Column(BigInteger, ForeignKey('prescription.id'), nullable=False)
    medicine_id = Column(BigInteger, ForeignKey('medicine.id'), nullable=False)
    quantity = Column(BigInteger, nullable=False)
    dosage = Column(String(100), nullable=False)
    frequency = Column(String(100), nullable=False)
    duration = Column(String(100), nullable=False)
    instructions = Column(Text, nullable=True)

    # Relationships
    prescription = relationship('Prescription', back_populates='items')
    medicine = relationship('Medicine')

    def __repr__(self):
        return f"<PrescriptionItem(id={self.id}, medicine_id={self.medicine_id}, quantity={self.quantity})>"
