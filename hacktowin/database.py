from contextlib import contextmanager

import structlog
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

logger = structlog.get_logger(__name__)

Base = declarative_base()


class Database:
    """Owns the engine and session factory for one running app."""

    def __init__(self, url: str, timeout: float = 5.0):
        if not url:
            raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

        if url.startswith("sqlite"):
            engine_options = {
                "connect_args": {"check_same_thread": False, "timeout": timeout},
            }
        else:
            engine_options = {"pool_timeout": timeout, "pool_pre_ping": True}

        self.engine = create_engine(url, **engine_options)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)

    def create_all(self):
        # Models must be imported so their tables are registered on Base
        from hacktowin import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("database_initialized", url=self.engine.url.render_as_string(hide_password=True))

    def dispose(self):
        self.engine.dispose()
        logger.info("database_disposed")

    @contextmanager
    def session(self):
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()
