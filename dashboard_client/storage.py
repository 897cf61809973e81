"""
Key-value persistence for client-side session state.
MemoryStorage for tests and throwaway sessions; SqlStorage keeps entries in a SQLite table
so a restart does not force re-authentication.
"""
from typing import Protocol

from sqlalchemy import String, Text, create_engine, delete, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str | None = None) -> None: ...


class MemoryStorage:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self, key: str | None = None) -> None:
        if key is None:
            self._data.clear()
        else:
            self._data.pop(key, None)


class Base(DeclarativeBase):
    pass


class KeyValueEntry(Base):
    __tablename__ = "kv_entries"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)


class SqlStorage:
    """SQLAlchemy-backed storage; one row per key."""

    def __init__(self, database_url: str):
        # In-memory needs StaticPool so every connection sees the same DB
        if database_url.startswith("sqlite:///:memory:"):
            self._engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            connect_args = {"check_same_thread": False} if "sqlite" in database_url else {}
            self._engine = create_engine(database_url, connect_args=connect_args)
        Base.metadata.create_all(bind=self._engine)
        self._sessions = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)

    def get(self, key: str) -> str | None:
        with self._sessions() as db:
            row = db.get(KeyValueEntry, key)
            return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        with self._sessions() as db:
            row = db.get(KeyValueEntry, key)
            if row is None:
                db.add(KeyValueEntry(key=key, value=value))
            else:
                row.value = value
            db.commit()

    def clear(self, key: str | None = None) -> None:
        with self._sessions() as db:
            stmt = delete(KeyValueEntry)
            if key is not None:
                stmt = stmt.where(KeyValueEntry.key == key)
            db.execute(stmt)
            db.commit()

    def keys(self) -> list[str]:
        with self._sessions() as db:
            return list(db.scalars(select(KeyValueEntry.key)))
