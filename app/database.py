import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from app.core.config import settings

logger = logging.getLogger(__name__)

# Support both PostgreSQL and SQLite via centralized settings
DATABASE_URL = settings.database_url


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    @event.listens_for(target, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if DATABASE_URL.startswith("postgresql"):
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)
else:
    # SQLite configuration for local development/testing
    engine = create_engine(
        DATABASE_URL, connect_args={"check_same_thread": False}
    )
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """
    Session Provider: Provides a database session per request.
    Transaction management is handled explicitly in the Service Layer.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_session_factory():
    """
    Session factory for long-lived endpoints (websockets) that must not
    hold a pooled connection for their whole lifetime.
    """
    return SessionLocal

def init_db(bind: Engine = None):
    """
    Registers all domain models and initializes the database schema.
    This should be called during the application startup lifespan.
    """
    bind = bind or engine
    # Import all models to ensure they are registered with Base.metadata before create_all
    from app.models import profile, notification, audit_log  # noqa: F401
    Base.metadata.create_all(bind=bind)

    if bind.dialect.name == "postgresql":
        # Full before-images for logical replication consumers
        with bind.begin() as conn:
            conn.execute(text("ALTER TABLE notifications REPLICA IDENTITY FULL"))
        logger.info("notifications replica identity set to FULL")
