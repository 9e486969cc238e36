import time
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy import create_engine, Column, Integer, String, Float, DateTime, JSON
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings
from .store import KeyValueStore

engine = create_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Database Models
class KeyValueEntry(Base):
    __tablename__ = "key_value_entries"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(191), unique=True, nullable=False, index=True)
    value = Column(JSON, nullable=True)

    # Expiry (epoch seconds), NULL never expires
    expires_at = Column(Float, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


def init_db(bind=None):
    """Create tables on the given engine (defaults to the configured one)."""
    Base.metadata.create_all(bind=bind or engine)


class SqlStore(KeyValueStore):
    """
    Key-value store backed by the host database.

    Each operation runs in its own session so a failed write never leaves a
    half-applied registry document behind.
    """

    def __init__(self, session_factory: Callable = SessionLocal, clock: Callable[[], float] = time.time):
        super().__init__()
        self.session_factory = session_factory
        self.clock = clock

    def get(self, key: str) -> Optional[Any]:
        with self.session_factory() as db:
            entry = db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()

            if not entry:
                return None

            if entry.expires_at is not None and self.clock() >= entry.expires_at:
                db.delete(entry)
                db.commit()
                return None

            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self.clock() + ttl if ttl else None

        with self.session_factory() as db:
            entry = db.query(KeyValueEntry).filter(KeyValueEntry.key == key).first()

            if entry:
                entry.value = value
                entry.expires_at = expires_at
            else:
                db.add(KeyValueEntry(key=key, value=value, expires_at=expires_at))

            db.commit()

    def delete(self, key: str) -> None:
        with self.session_factory() as db:
            db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
            db.commit()
