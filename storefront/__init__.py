import logging
from datetime import timedelta

from flask import Flask, jsonify

from .config import Config
from .extensions import db, jwt, cors, migrate


def create_app(overrides=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(days=1)
    if overrides:
        app.config.update(overrides)
    Config.init_app(app)

    app.json.sort_keys = False
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("storefront").setLevel(app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}})
    migrate.init_app(app, db)

    from .gateway import init_gateway
    init_gateway(app)

    # Register blueprints
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .payment import bp as payment_bp; app.register_blueprint(payment_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .merchant import bp as merchant_bp; app.register_blueprint(merchant_bp)
    from .notification import bp as notification_bp; app.register_blueprint(notification_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401  (register tables)
        db.create_all()

    return app
