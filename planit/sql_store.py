"""
Relational backend for the document store.

One table per collection; nested structures (template fields, response
data, custom logos) live in JSON columns. Works with SQLite for local use
and PostgreSQL in production.
"""

from datetime import UTC, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from .logging_utils import get_logger
from .store import (
    COLL_MISSIONS,
    COLL_RESPONSES,
    COLL_SETTINGS,
    COLL_TEMPLATES,
    COLL_USERS,
    Store,
    StoreError,
)


class UserRow(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    display_name: str = ""
    initials: str = ""
    role: str = Field(default="TECHNICIAN", index=True)
    credential_secret: str = "1234"
    email: str = ""
    phone: str = ""
    avatar_url: str = ""
    updated_at: Optional[datetime] = Field(default=None)


class MissionRow(SQLModel, table=True):
    __tablename__ = "missions"

    id: str = Field(primary_key=True)
    date: str = Field(index=True)  # YYYY-MM-DD format
    job_code: str = Field(default="", index=True)
    work_hours: float = 0.0
    travel_hours: float = 0.0
    overtime_hours: float = 0.0
    technician_id: str = Field(index=True)
    status: str = Field(default="PENDING", index=True)
    category: str = "WORK"
    manager_initials: str = ""
    igd: bool = False
    address: str = ""
    description: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rejection_comment: Optional[str] = None
    updated_at: Optional[datetime] = Field(default=None)


class TemplateRow(SQLModel, table=True):
    __tablename__ = "form_templates"

    id: str = Field(primary_key=True)
    name: str = ""
    description: str = ""
    fields: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: str = ""
    updated_at: Optional[datetime] = Field(default=None)


class ResponseRow(SQLModel, table=True):
    __tablename__ = "form_responses"

    id: str = Field(primary_key=True)
    template_id: str = Field(index=True)
    technician_id: str = Field(index=True)
    mission_id: Optional[str] = Field(default=None, index=True)
    submitted_at: str = ""
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    updated_at: Optional[datetime] = Field(default=None)


class SettingsRow(SQLModel, table=True):
    __tablename__ = "app_settings"

    id: str = Field(primary_key=True)
    app_name: str = ""
    app_logo_url: str = ""
    report_logo_url: str = ""
    custom_logos: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    updated_at: Optional[datetime] = Field(default=None)


TABLES = {
    COLL_USERS: UserRow,
    COLL_MISSIONS: MissionRow,
    COLL_TEMPLATES: TemplateRow,
    COLL_RESPONSES: ResponseRow,
    COLL_SETTINGS: SettingsRow,
}


def normalize_database_url(url: str) -> str:
    """Hosted PostgreSQL providers hand out postgres://; SQLAlchemy wants postgresql://."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


class SQLStore(Store):
    """
    Store backed by SQLModel tables.

    Upserts select the row by id and update it in place, or insert a new
    one, inside a single transaction per batch.
    """

    def __init__(self, database_url: str, echo: bool = False):
        super().__init__()
        self.database_url = normalize_database_url(database_url)
        connect_args = {"check_same_thread": False} if self.database_url.startswith("sqlite") else {}
        self.engine = create_engine(self.database_url, echo=echo, connect_args=connect_args)

        driver = self.database_url.split(":", 1)[0]
        get_logger().debug(f"DB_URL_DRIVER={driver}")

        try:
            SQLModel.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot initialise database: {e}") from e

    @staticmethod
    def _to_doc(row: SQLModel) -> Dict[str, Any]:
        return row.model_dump(exclude={"updated_at"})

    @staticmethod
    def _columns(table) -> set:
        return set(table.model_fields) - {"updated_at"}

    def _list(self, collection):
        table = TABLES[collection]
        try:
            with Session(self.engine) as session:
                return [self._to_doc(r) for r in session.exec(select(table)).all()]
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot read {collection}: {e}") from e

    def _get(self, collection, doc_id):
        table = TABLES[collection]
        try:
            with Session(self.engine) as session:
                row = session.get(table, doc_id)
                return self._to_doc(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot read {collection}/{doc_id}: {e}") from e

    def _write(self, session, table, docs):
        columns = self._columns(table)
        now = datetime.now(UTC)
        for doc in docs:
            values = {k: v for k, v in doc.items() if k in columns}
            existing = session.get(table, doc["id"])
            if existing:
                for key, value in values.items():
                    setattr(existing, key, value)
                existing.updated_at = now
                session.add(existing)
            else:
                session.add(table(**values, updated_at=now))

    def _put(self, collection, docs):
        table = TABLES[collection]
        try:
            with Session(self.engine) as session:
                self._write(session, table, docs)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot write {collection}: {e}") from e

    def _remove(self, collection, doc_id):
        table = TABLES[collection]
        try:
            with Session(self.engine) as session:
                row = session.get(table, doc_id)
                if row is None:
                    return False
                session.delete(row)
                session.commit()
                return True
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot delete {collection}/{doc_id}: {e}") from e

    def _clear(self, collection):
        table = TABLES[collection]
        try:
            with Session(self.engine) as session:
                session.execute(delete(table))
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot clear {collection}: {e}") from e

    def _replace(self, collection, docs):
        table = TABLES[collection]
        try:
            with Session(self.engine) as session:
                session.execute(delete(table))
                self._write(session, table, docs)
                session.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot replace {collection}: {e}") from e

    def close(self):
        self.engine.dispose()
