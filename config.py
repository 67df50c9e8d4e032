import os


def _database_url():
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        return "sqlite:///vinylstock.db"
    if db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql+psycopg://", 1)
    return db_url


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # usage report / history screens
    REPORT_DEFAULT_DAYS = int(os.getenv("REPORT_DEFAULT_DAYS", "30"))

    # seeded on first start
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
