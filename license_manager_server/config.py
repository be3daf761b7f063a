# config.py
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base


def get_database_uri() -> str:
    """
    DATABASE_URL selects the store (mysql+pymysql://... in production).
    Local dev falls back to sqlite.
    """
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        return "sqlite:///license_manager_server.db"

    # SQLAlchemy expects postgresql:// not postgres://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


SQLALCHEMY_DATABASE_URL = get_database_uri()

_connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(SQLALCHEMY_DATABASE_URL, pool_pre_ping=True, echo=False, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

JWT_SECRET = os.environ.get("JWT_SECRET", "change-me-jwt-secret")
JWT_ALGORITHM = "HS256"
ADMIN_USERNAME = os.environ.get("ADMIN_USERNAME", "admin")
# bcrypt hash of the admin password, generate with app.utils.auth.hash_password()
ADMIN_PASSWORD_HASH = os.environ.get("ADMIN_PASSWORD_HASH", "")

# Internal callers (order completion) send this as X-API-KEY
LICENSE_API_KEY = os.environ.get("LICENSE_API_KEY", "")


# --------------------------------------------------------
# LICENSE CLIENT CREDENTIALS
# --------------------------------------------------------
# Pre-shared with every client site (defined on both sides out-of-band).
LMFWC_SHARED_SECRET = os.environ.get("LMFWC_SHARED_SECRET", "validate_license")
AUTH_SCHEME = "TWS"
