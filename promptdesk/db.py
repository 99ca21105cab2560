"""
Prompt table abstraction: Supabase, direct SQL (Postgres) and in-memory.

Every write is scoped to the owning user; a write that matches no row the
user owns raises PromptNotFoundError.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Protocol

from sqlalchemy import Column, DateTime, String, Text, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from supabase import Client, PostgrestAPIError

from promptdesk.errors import BackendError, PromptNotFoundError
from promptdesk.types import WRITABLE_FIELDS, PromptRecord

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _writable(values: dict) -> dict:
    return {key: values[key] for key in WRITABLE_FIELDS if key in values}


class PromptTable(Protocol):
    """Operations the app needs from the prompts table."""

    def select_for_user(self, user_id: str) -> List[PromptRecord]:
        """All rows owned by user_id, newest first."""
        ...

    def insert(self, user_id: str, values: dict) -> PromptRecord:
        ...

    def update(self, prompt_id: str, user_id: str, values: dict) -> PromptRecord:
        ...

    def delete(self, prompt_id: str, user_id: str) -> None:
        ...


class InMemoryPromptTable:
    """Simple in-memory table for development and tests."""

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self.rows: Dict[str, PromptRecord] = {}
        self._order: Dict[str, int] = {}
        self._seq = 0

    def select_for_user(self, user_id: str) -> List[PromptRecord]:
        owned = [row for row in self.rows.values() if row.user_id == user_id]
        owned.sort(key=lambda row: (row.created_at, self._order[row.id]), reverse=True)
        return [PromptRecord(**vars(row)) for row in owned]

    def insert(self, user_id: str, values: dict) -> PromptRecord:
        now = self.clock()
        row = dict(_writable(values))
        row.update(
            id=uuid.uuid4().hex, user_id=user_id, created_at=now, updated_at=now
        )
        record = PromptRecord.from_row(row)
        self._seq += 1
        self._order[record.id] = self._seq
        self.rows[record.id] = record
        return PromptRecord(**vars(record))

    def update(self, prompt_id: str, user_id: str, values: dict) -> PromptRecord:
        current = self.rows.get(prompt_id)
        if current is None or current.user_id != user_id:
            raise PromptNotFoundError(prompt_id)
        row = current.as_dict()
        row.update(_writable(values))
        row["updated_at"] = self.clock()
        record = PromptRecord.from_row(row)
        self.rows[prompt_id] = record
        return PromptRecord(**vars(record))

    def delete(self, prompt_id: str, user_id: str) -> None:
        current = self.rows.get(prompt_id)
        if current is None or current.user_id != user_id:
            raise PromptNotFoundError(prompt_id)
        del self.rows[prompt_id]
        del self._order[prompt_id]


class SupabasePromptTable:
    """
    Prompts table reached through the Supabase REST client. Row level security
    on the hosted side scopes queries to the signed-in user as well.
    """

    def __init__(self, client: Client, table_name: str = "prompts"):
        self._client = client
        self.table_name = table_name

    def _table(self):
        return self._client.table(self.table_name)

    def select_for_user(self, user_id: str) -> List[PromptRecord]:
        try:
            response = (
                self._table()
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except PostgrestAPIError as exc:
            raise BackendError(exc.message or str(exc)) from exc
        return [PromptRecord.from_row(row) for row in response.data or []]

    def insert(self, user_id: str, values: dict) -> PromptRecord:
        payload = dict(_writable(values), user_id=user_id)
        try:
            response = self._table().insert(payload).execute()
        except PostgrestAPIError as exc:
            raise BackendError(exc.message or str(exc)) from exc
        if not response.data:
            raise BackendError("Insert returned no row")
        return PromptRecord.from_row(response.data[0])

    def update(self, prompt_id: str, user_id: str, values: dict) -> PromptRecord:
        try:
            response = (
                self._table()
                .update(_writable(values))
                .eq("id", prompt_id)
                .eq("user_id", user_id)
                .execute()
            )
        except PostgrestAPIError as exc:
            raise BackendError(exc.message or str(exc)) from exc
        if not response.data:
            raise PromptNotFoundError(prompt_id)
        return PromptRecord.from_row(response.data[0])

    def delete(self, prompt_id: str, user_id: str) -> None:
        try:
            response = (
                self._table()
                .delete()
                .eq("id", prompt_id)
                .eq("user_id", user_id)
                .execute()
            )
        except PostgrestAPIError as exc:
            raise BackendError(exc.message or str(exc)) from exc
        if not response.data:
            raise PromptNotFoundError(prompt_id)


class SqlPromptTable:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., the
    project's Postgres connection string, or SQLite for tests).
    """

    def __init__(self, database_url: str, clock: Clock = utcnow):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlPromptTable")
        self.clock = clock
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, row: "PromptRow") -> PromptRecord:
        return PromptRecord.from_row(
            {column.name: getattr(row, column.name) for column in PromptRow.__table__.columns}
        )

    def select_for_user(self, user_id: str) -> List[PromptRecord]:
        try:
            with self.Session() as session:
                stmt = (
                    select(PromptRow)
                    .where(PromptRow.user_id == user_id)
                    .order_by(PromptRow.created_at.desc())
                )
                return [self._to_record(row) for row in session.execute(stmt).scalars()]
        except SQLAlchemyError as exc:
            raise BackendError(str(exc)) from exc

    def insert(self, user_id: str, values: dict) -> PromptRecord:
        now = self.clock()
        try:
            with self.Session() as session:
                row = PromptRow(
                    id=uuid.uuid4().hex,
                    user_id=user_id,
                    created_at=now,
                    updated_at=now,
                    **_writable(values),
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise BackendError(str(exc)) from exc

    def update(self, prompt_id: str, user_id: str, values: dict) -> PromptRecord:
        try:
            with self.Session() as session:
                row = session.get(PromptRow, prompt_id)
                if row is None or row.user_id != user_id:
                    raise PromptNotFoundError(prompt_id)
                for key, value in _writable(values).items():
                    setattr(row, key, value)
                row.updated_at = self.clock()
                session.commit()
                session.refresh(row)
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise BackendError(str(exc)) from exc

    def delete(self, prompt_id: str, user_id: str) -> None:
        try:
            with self.Session() as session:
                result = session.execute(
                    delete(PromptRow).where(
                        PromptRow.id == prompt_id, PromptRow.user_id == user_id
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise BackendError(str(exc)) from exc
        if not result.rowcount:
            raise PromptNotFoundError(prompt_id)


Base = declarative_base()


class PromptRow(Base):
    __tablename__ = "prompts"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, default="Work")
    ai_provider = Column(String, nullable=False, default="OpenAI")
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
