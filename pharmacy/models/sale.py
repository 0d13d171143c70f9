"""Sale model."""
import enum
from sqlalchemy import Column, BigInteger, Text, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from pharmacy.database import Base, BigIntId


class PaymentMethod(str, enum.Enum):
    """Accepted payment methods."""
    CASH = 'CASH'
    CARD = 'CARD'
    INSURANCE = 'INSURANCE'
    CREDIT = 'CREDIT'


def normalize_payment_method(method):
    """Normalize a raw payment method value, returning None when unknown."""
    if isinstance(method, PaymentMethod):
        return method
    if not isinstance(method, str):
        return None
    try:
        return PaymentMethod(method.strip().upper())
    except ValueError:
        return None


class Sale(Base):
    """Completed sale. Immutable once created."""

    __tablename__ = 'sale'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    customer_id = Column(BigInteger, ForeignKey('customer.id'), nullable=True)
    prescription_id = Column(BigInteger, ForeignKey('prescription.id'), nullable=True)
    cashier_id = Column(BigInteger, ForeignKey('app_user.id'), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0, server_default='0')
    total = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod, name='payment_method'), nullable=False)
    notes = Column(Text, nullable=True)
    sale_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    prescription = relationship('Prescription', back_populates='sales')
    cashier = relationship('AppUser')
    items = relationship(
        'SaleItem',
        back_populates='sale',
        cascade='all, delete-orphan',
        order_by='SaleItem.id'
    )

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total}, method={self.payment_method})>"
