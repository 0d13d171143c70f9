"""Sale Item model."""
from sqlalchemy import Column, BigInteger, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from pharmacy.database import Base, BigIntId


class SaleItem(Base):
    """Sale line, persisted only together with its sale."""

    __tablename__ = 'sale_item'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sale.id'), nullable=False)
    medicine_id = Column(BigInteger, ForeignKey('medicine.id'), nullable=False)
    quantity = Column(BigInteger, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    subtotal = Column(Numeric(12, 2), nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='items')
    medicine = relationship('Medicine')

    def __repr__(self):
        return f"<SaleItem(id={self.id}, medicine_id={self.medicine_id}, quantity={self.quantity})>"
