from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import redis
from .config import settings


def build_engine(database_url: str):
    """Create an engine with pool settings suited to the backend."""
    if database_url.startswith("sqlite"):
        # SQLite sessions are handed across threads by the request workers
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    # PostgreSQL connection pool; FOR UPDATE row locks are honoured here
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,  # Recycle connections after 30 minutes
        pool_pre_ping=True,
    )


engine = build_engine(settings.get_database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Redis is only contacted when LOCK_BACKEND is "redis"; from_url does not connect
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client

# Database initialization
def init_db():
    """Initialize database tables."""
    # Register models on Base.metadata before creating tables
    from ..models import appointment, doctor, patient  # noqa: F401

    Base.metadata.create_all(bind=engine)
