from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from passwordless.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Request-scoped database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # Table models must be imported so they register on Base.metadata
    from passwordless.models import otp_code, session, user  # noqa: F401

    Base.metadata.create_all(bind=engine)
