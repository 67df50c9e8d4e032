"""Reset the database and recreate the default login.

Usage:
  python reset_db.py

Drops every table of the configured database (DATABASE_URL, or the local
SQLite file), recreates them and seeds ADMIN_EMAIL / ADMIN_PASSWORD.
"""

from vinylstock import create_app, seed_admin
from vinylstock.extensions import db


def reset_database():
    app = create_app()
    with app.app_context():
        db.drop_all()
        db.create_all()
        seed_admin(app)

        print("OK! Database recreated.")
        print(f"Login: {app.config['ADMIN_EMAIL']}  |  Password: {app.config['ADMIN_PASSWORD']}")


if __name__ == "__main__":
    reset_database()
