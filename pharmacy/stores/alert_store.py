"""Alert persistence."""
from typing import Optional

from pharmacy.models import Alert, AlertType


class AlertStore:
    """SQLAlchemy-backed alert store."""

    def __init__(self, session):
        self.session = session

    def find_unread(self, alert_type: AlertType, medicine_id: int) -> Optional[Alert]:
        """Find the unread alert of a type for a medicine, if any."""
        return (
            self.session.query(Alert)
            .filter(
                Alert.type == alert_type,
                Alert.medicine_id == medicine_id,
                Alert.is_read.is_(False)
            )
            .first()
        )

    def find_unread_stock_alert(self, medicine_id: int) -> Optional[Alert]:
        return self.find_unread(AlertType.STOCK, medicine_id)

    def insert(self, **fields) -> Alert:
        alert = Alert(**fields)
        self.session.add(alert)
        self.session.flush()
        return alert
