"""
Engine, session factory and declarative base.

PostgreSQL in production, SQLite for local runs. Services own transaction
boundaries; get_db only hands out and closes the session.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from appraisal_api.core.config import settings


def _create_engine(url: str):
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a threadpool
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


engine = _create_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ping() -> bool:
    """Round trip to the database; raises if it is unreachable."""
    with SessionLocal() as session:
        session.execute(text("SELECT 1"))
    return True


def init_db():
    """Creates any missing tables. Called once from the app lifespan."""
    import appraisal_api.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
