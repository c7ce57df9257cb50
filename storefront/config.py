import os


def _flag(name, default):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}} if not os.getenv("DATABASE_URL") else {}
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # payments
    PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "fake")        # "fake" | "razorpay"
    PAYMENT_KEY_ID = os.getenv("PAYMENT_KEY_ID", "")
    PAYMENT_KEY_SECRET = os.getenv("PAYMENT_KEY_SECRET", "dev-payment-secret")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
    PAYMENT_TIMEOUT_SECONDS = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "10"))
    ONLINE_PAYMENT_ENABLED = _flag("ONLINE_PAYMENT_ENABLED", True)

    # store settings, amounts in minor units (paise)
    DEFAULT_DELIVERY_CHARGE = int(os.getenv("DEFAULT_DELIVERY_CHARGE", "0"))

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")
