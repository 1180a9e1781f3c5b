# SQLAlchemy engine/session wiring. Endpoints get a session through the
# get_db dependency; jobs open SessionLocal() directly.

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from mordomozap.core.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    echo=settings.DB_ECHO,
    future=True,
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
