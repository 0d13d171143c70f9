"""Medicine model."""
from sqlalchemy import Column, BigInteger, String, Text, Numeric, Date, DateTime, CheckConstraint
from sqlalchemy.sql import func
from pharmacy.database import Base, BigIntId


class Medicine(Base):
    """Medicine with its on-hand stock level."""

    __tablename__ = 'medicine'
    __table_args__ = (
        # Stock can never be overdrawn, whatever the application does
        CheckConstraint('quantity >= 0', name='ck_medicine_quantity_non_negative'),
        CheckConstraint('min_stock_level >= 0', name='ck_medicine_min_stock_non_negative'),
        CheckConstraint('price >= 0', name='ck_medicine_price_non_negative'),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    generic_name = Column(String(200), nullable=True)
    manufacturer = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(BigInteger, nullable=False, default=0)
    min_stock_level = Column(BigInteger, nullable=False, default=0, server_default='0')
    expiry_date = Column(Date, nullable=False)
    batch_number = Column(String(100), nullable=False)
    location = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def is_low_stock(self):
        """True when the on-hand quantity is at or below the minimum level."""
        return self.quantity <= self.min_stock_level

    def __repr__(self):
        return f"<Medicine(id={self.id}, name='{self.name}', quantity={self.quantity})>"
