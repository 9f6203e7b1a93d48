# mentorhub/database.py - Database Configuration
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from mentorhub.config import settings

# Database URL loaded from .env via mentorhub/config.py
DATABASE_URL = settings.DATABASE_URL


def _create_engine(url: str):
    if str(url).startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


# Create engine (with local fallback when postgres driver is unavailable)
try:
    engine = _create_engine(DATABASE_URL)
except ModuleNotFoundError as exc:  # pragma: no cover - environment fallback
    if "psycopg2" not in str(exc):
        raise
    engine = _create_engine(settings.FALLBACK_DATABASE_URL)

# Session maker
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


# Dependency to get database session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
