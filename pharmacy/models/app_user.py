"""AppUser model - pharmacy staff with email/password authentication."""
import enum
from sqlalchemy import Column, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
from werkzeug.security import generate_password_hash, check_password_hash
from pharmacy.database import Base, BigIntId


class UserRole(str, enum.Enum):
    """Staff roles."""
    ADMIN = 'ADMIN'
    PHARMACIST = 'PHARMACIST'
    TECHNICIAN = 'TECHNICIAN'
    CASHIER = 'CASHIER'


class AppUser(Base):
    """Staff member. The authenticated user is the cashier recorded on a sale."""

    __tablename__ = 'app_user'

    id = Column(BigIntId, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    name = Column(String(200), nullable=False)
    role = Column(Enum(UserRole, name='user_role'), nullable=False, default=UserRole.CASHIER)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}', role={self.role})>"
