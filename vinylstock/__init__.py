import logging

from flask import Flask

from config import Config
from .extensions import db, login_manager
from .inventory import format_feet
from .models.user import User

logger = logging.getLogger(__name__)


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    app.add_template_filter(format_feet, "feet")

    # Blueprints
    from vinylstock.blueprints.auth import auth_bp
    from vinylstock.blueprints.rolls import rolls_bp
    from vinylstock.blueprints.reports import reports_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(rolls_bp)
    app.register_blueprint(reports_bp)

    from vinylstock.permissions import on_session_change

    def _log_session(event, user):
        logger.info("session %s: %s", event, getattr(user, "email", user))

    app.extensions["session_log"] = on_session_change(_log_session, app)

    # tables + default login
    with app.app_context():
        db.create_all()
        seed_admin(app)

    return app


def seed_admin(app):
    email = (app.config.get("ADMIN_EMAIL") or "").strip().lower()
    password = app.config.get("ADMIN_PASSWORD")
    if not email or not password:
        return

    if not User.query.filter_by(email=email).first():
        u = User(email=email, active=True)
        u.set_password(password)
        db.session.add(u)
        db.session.commit()
        logger.info("seeded user %s", email)
