"""Alert model."""
import enum
from sqlalchemy import Column, BigInteger, String, Text, Boolean, DateTime, Enum, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, expression
from pharmacy.database import Base, BigIntId


class AlertType(str, enum.Enum):
    """Alert categories."""
    STOCK = 'STOCK'
    EXPIRY = 'EXPIRY'
    SYSTEM = 'SYSTEM'
    PRESCRIPTION = 'PRESCRIPTION'


class AlertSeverity(str, enum.Enum):
    """Alert severities."""
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'
    CRITICAL = 'CRITICAL'


class Alert(Base):
    """System notification. Stock and expiry alerts reference their medicine."""

    __tablename__ = 'alert'
    __table_args__ = (
        # At most one unread alert of each type per medicine
        Index(
            'uq_alert_unread_type_medicine',
            'type', 'medicine_id',
            unique=True,
            postgresql_where=text('is_read = false AND medicine_id IS NOT NULL'),
            sqlite_where=text('is_read = 0 AND medicine_id IS NOT NULL'),
        ),
    )

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    type = Column(Enum(AlertType, name='alert_type'), nullable=False)
    severity = Column(Enum(AlertSeverity, name='alert_severity'), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    medicine_id = Column(BigInteger, ForeignKey('medicine.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    medicine = relationship('Medicine')

    def __repr__(self):
        return f"<Alert(id={self.id}, type={self.type}, severity={self.severity}, read={self.is_read})>"
