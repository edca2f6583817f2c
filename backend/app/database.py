from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from backend.app.config import get_settings

settings = get_settings()
DATABASE_URL = settings.database_url

def _connect_args(database_url: str, timeout_seconds: int) -> dict:
    """Per-driver options that bound how long a single store call may block"""
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": timeout_seconds}
    if database_url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={timeout_seconds * 1000}"}
    return {}

# Create SQLAlchemy engine
engine = create_engine(
    DATABASE_URL, connect_args=_connect_args(DATABASE_URL, settings.db_timeout_seconds)
)

# Create sessionmaker
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create tables in the database
def create_tables():
    from backend.app.models.models import Base
    Base.metadata.create_all(bind=engine)

# Dependency to get the database session
def get_db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
