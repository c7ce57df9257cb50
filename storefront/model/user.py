# --- storefront/model/user.py ---

from ..extensions import db

ROLE_CUSTOMER = "customer"
ROLE_MERCHANT = "merchant"


class User(db.Model):
    """Identity record resolved from the JWT subject; credentials live with the auth service."""
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    phone = db.Column(db.String(50), nullable=True)
    role = db.Column(db.String(50), nullable=False, default=ROLE_CUSTOMER, index=True)  # customer, merchant
