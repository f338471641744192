from datetime import datetime, timezone

from sqlalchemy.orm import Session


def dialect_name(db: Session) -> str:
    dialect = getattr(getattr(db, "bind", None), "dialect", None)
    return (getattr(dialect, "name", "") or "").lower()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_db_dt(db: Session, dt: datetime) -> datetime:
    # SQLite stores timezone-aware datetimes as naive values; compare in naive UTC there.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    if dialect_name(db) == "sqlite":
        return dt_utc.replace(tzinfo=None)
    return dt_utc


def db_now(db: Session) -> datetime:
    return as_db_dt(db, utc_now())


def as_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
