"""
Persistent mirror for the persona store.

The mirror keeps one JSON record per namespace: the full positional persona
list (``null`` for empty slots), the visible ``personaCount`` and an
index -> portrait URL cache. Reads never raise: an absent or corrupt record
loads as an empty one.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from adsmith.domain.models.persona import Persona
from adsmith.infrastructure.constants.generation_constants import (
    DEFAULT_PERSONA_COUNT,
    MIRROR_RECORD_VERSION,
)
from adsmith.services.generative.exceptions import PersistenceError

logger = logging.getLogger(__name__)

Base = declarative_base()


class MirrorRecord(BaseModel):
    """Serialized form of the persona store."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = MIRROR_RECORD_VERSION
    persona_count: int = Field(default=DEFAULT_PERSONA_COUNT, alias="personaCount")
    personas: List[Optional[Persona]] = Field(default_factory=list)
    portraits: Dict[int, str] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any(persona is not None for persona in self.personas)


class PersonaMirror(ABC):
    """Key-value mirror addressed by namespace."""

    def load(self, namespace: str) -> MirrorRecord:
        """Read the record for ``namespace``; absent or corrupt data gives an empty record."""
        try:
            raw = self._read(namespace)
        except PersistenceError as e:
            logger.warning(f"Could not read persona mirror '{namespace}': {str(e)}")
            return MirrorRecord()

        if raw is None:
            return MirrorRecord()

        try:
            return MirrorRecord.model_validate_json(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Discarding corrupt persona mirror record '{namespace}': {str(e)}")
            self._discard_corrupt(namespace)
            return MirrorRecord()

    def save(self, namespace: str, record: MirrorRecord) -> None:
        """Write ``record``; raises PersistenceError on failure."""
        self._write(namespace, record.model_dump_json(by_alias=True))

    def clear(self, namespace: str) -> None:
        self._delete(namespace)

    def _discard_corrupt(self, namespace: str) -> None:
        try:
            self._delete(namespace)
        except PersistenceError as e:
            logger.warning(f"Could not remove corrupt record '{namespace}': {str(e)}")

    @abstractmethod
    def _read(self, namespace: str) -> Optional[str]:
        pass

    @abstractmethod
    def _write(self, namespace: str, payload: str) -> None:
        pass

    @abstractmethod
    def _delete(self, namespace: str) -> None:
        pass


class InMemoryPersonaMirror(PersonaMirror):
    """Mirror held in a dict of raw JSON strings."""

    def __init__(self):
        self._records: Dict[str, str] = {}
        self.writes = 0

    def put_raw(self, namespace: str, payload: str) -> None:
        """Store ``payload`` verbatim, bypassing validation."""
        self._records[namespace] = payload

    def get_raw(self, namespace: str) -> Optional[str]:
        return self._records.get(namespace)

    def _read(self, namespace: str) -> Optional[str]:
        return self._records.get(namespace)

    def _write(self, namespace: str, payload: str) -> None:
        self._records[namespace] = payload
        self.writes += 1

    def _delete(self, namespace: str) -> None:
        self._records.pop(namespace, None)


class PersonaMirrorRow(Base):
    __tablename__ = "persona_mirror"
    __table_args__ = {"extend_existing": True}

    namespace = Column(String, primary_key=True)
    payload = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class SqlAlchemyPersonaMirror(PersonaMirror):
    """Mirror stored in a single SQL table, one row per namespace."""

    def __init__(self, database_url: Optional[str] = None, engine=None):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            connect_args = {"check_same_thread": False} if database_url.startswith("sqlite:") else {}
            engine = create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)
        self.engine = engine
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        Base.metadata.create_all(bind=engine, tables=[PersonaMirrorRow.__table__])

    def _read(self, namespace: str) -> Optional[str]:
        session = self.SessionLocal()
        try:
            row = session.get(PersonaMirrorRow, namespace)
            return row.payload if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def _write(self, namespace: str, payload: str) -> None:
        session = self.SessionLocal()
        try:
            row = session.get(PersonaMirrorRow, namespace)
            now = datetime.now(timezone.utc)
            if row is None:
                session.add(PersonaMirrorRow(namespace=namespace, payload=payload, updated_at=now))
            else:
                row.payload = payload
                row.updated_at = now
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to write persona mirror '{namespace}': {str(e)}")
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def _delete(self, namespace: str) -> None:
        session = self.SessionLocal()
        try:
            row = session.get(PersonaMirrorRow, namespace)
            if row is not None:
                session.delete(row)
                session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def put_raw(self, namespace: str, payload: str) -> None:
        """Store ``payload`` verbatim, bypassing validation."""
        self._write(namespace, payload)
