from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from tournex.core.config import settings


def _engine_args(url: str) -> dict:
    # SQLite connections are shared between the threadpool workers FastAPI runs sync code on
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


engine = create_engine(settings.DATABASE_URL, **_engine_args(settings.DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_db(bind=None):
    # Import all models so they are registered with Base before create_all
    import tournex.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
