"""SQLAlchemy engine and session factory for the session link tables."""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from collab.core.config import get_settings

settings = get_settings()

engine = create_engine(settings.database_url, pool_pre_ping=True, echo=settings.debug)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a session and always close it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    # Import models so Base.metadata is complete
    import collab.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
