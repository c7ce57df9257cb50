#  --- storefront/model/notification.py ---
from ..extensions import db
from sqlalchemy.sql import func


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False, default="")
    message = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(255), nullable=True)
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "url": self.url,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
