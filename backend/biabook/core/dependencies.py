from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from biabook.core.config import get_settings

settings = get_settings()

engine = None
if settings.database_url:
    connect_args: dict[str, object] = {}
    is_sqlite = settings.database_url.startswith("sqlite")
    is_sqlite_file = is_sqlite and settings.database_url not in ("sqlite://", "sqlite:///:memory:")

    if is_sqlite:
        # Queue drains and cleanup sweeps open their sessions inside asyncio.to_thread workers,
        # while request handlers commit from the FastAPI threadpool.
        connect_args = {"check_same_thread": False, "timeout": 30}

    engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=30000")
            if is_sqlite_file:
                # Booking cancellations must not block on a drain that is reading the queue.
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None


def get_db() -> Generator[Session, None, None]:
    if SessionLocal is None:
        raise RuntimeError("DATABASE_URL is not configured")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
