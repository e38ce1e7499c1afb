"""
Entity Store

Typed record tables on top of SQLAlchemy. Every call runs in its own session and
commits once, so each operation is atomic for the record(s) it touches. There are no
cross-call transactions: a caller that needs a follow-up write (stage history) issues
it as a second call right after the first succeeds.

Records leave the store as plain dicts in the same shape the API returns.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from sqlalchemy.orm import Session, sessionmaker

from ..models.assessment import Assessment
from ..models.candidate import Candidate
from ..models.job import Job
from ..models.note import Note
from ..models.response import Response
from ..models.stage_history import StageHistoryEntry
from ..utils.error_handlers import NotFoundError, ValidationError, get_error_message

logger = logging.getLogger(__name__)


class EntityType(str, Enum):
    JOBS = "jobs"
    CANDIDATES = "candidates"
    ASSESSMENTS = "assessments"
    RESPONSES = "responses"
    STAGE_HISTORY = "stage_history"
    NOTES = "notes"


_MODELS = {
    EntityType.JOBS: Job,
    EntityType.CANDIDATES: Candidate,
    EntityType.ASSESSMENTS: Assessment,
    EntityType.RESPONSES: Response,
    EntityType.STAGE_HISTORY: StageHistoryEntry,
    EntityType.NOTES: Note,
}

# Writable columns per table. Anything else in a payload is rejected.
_FIELDS = {
    EntityType.JOBS: ("title", "slug", "status", "order", "tags"),
    EntityType.CANDIDATES: ("name", "email", "stage", "job_id"),
    EntityType.ASSESSMENTS: ("job_id", "title", "questions"),
    EntityType.RESPONSES: ("assessment_id", "candidate_id", "answers", "submitted_at"),
    EntityType.STAGE_HISTORY: ("candidate_id", "previous_stage", "new_stage", "timestamp"),
    EntityType.NOTES: ("candidate_id", "author", "content", "timestamp"),
}

# Columns persisted as JSON text, with the value used when the column is empty.
_JSON_FIELDS = {
    "tags": list,
    "questions": list,
    "answers": dict,
}

# Append-only tables: rows are written once and never changed.
_IMMUTABLE = {EntityType.STAGE_HISTORY, EntityType.NOTES, EntityType.RESPONSES}

_NOT_FOUND_KEYS = {
    EntityType.JOBS: "job_not_found",
    EntityType.CANDIDATES: "candidate_not_found",
    EntityType.ASSESSMENTS: "assessment_not_found",
}


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def _load_json(raw: str | None, default_factory):
    if not raw:
        return default_factory()
    try:
        data = json.loads(raw)
    except Exception:
        logger.warning("Unreadable JSON column value, using empty default")
        return default_factory()
    return data if isinstance(data, default_factory) else default_factory()


def _to_record(kind: EntityType, row) -> dict:
    record: dict[str, Any] = {"id": row.id}
    for field in _FIELDS[kind]:
        value = getattr(row, field)
        if field in _JSON_FIELDS:
            value = _load_json(value, _JSON_FIELDS[field])
        record[field] = _iso(value)
    if kind == EntityType.JOBS:
        record["created_at"] = _iso(row.created_at)
    return record


def _apply_fields(kind: EntityType, row, fields: dict[str, Any]) -> None:
    unknown = sorted(set(fields) - set(_FIELDS[kind]))
    if unknown:
        raise ValidationError(
            f"Unknown field(s) for {kind.value}: {', '.join(unknown)}",
            details={"fields": unknown},
        )
    for field, value in fields.items():
        if field in _JSON_FIELDS and value is not None:
            value = json.dumps(value, ensure_ascii=False)
        setattr(row, field, value)


class EntityStore:
    """Durable state for every entity type, addressed by (type, id)."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def _check_mutable(self, kind: EntityType) -> None:
        if kind in _IMMUTABLE:
            raise ValidationError(f"{kind.value} records are immutable once created")

    def _not_found(self, kind: EntityType, entity_id: int) -> NotFoundError:
        key = _NOT_FOUND_KEYS.get(kind, "not_found")
        return NotFoundError(
            get_error_message(key),
            details={"type": kind.value, "id": entity_id},
        )

    def get(self, kind: EntityType, entity_id: int) -> dict:
        kind = EntityType(kind)
        db = self._session()
        try:
            row = db.get(_MODELS[kind], int(entity_id))
            if row is None:
                raise self._not_found(kind, entity_id)
            return _to_record(kind, row)
        finally:
            db.close()

    def list(
        self,
        kind: EntityType,
        predicate: Callable[[dict], bool] | None = None,
        **filters: Any,
    ) -> list[dict]:
        """
        Return records of one type.

        Keyword filters are equality matches evaluated by the database; ``predicate``
        runs afterwards on the serialized records. Jobs come back in board order,
        everything else in insertion order.
        """
        kind = EntityType(kind)
        model = _MODELS[kind]
        db = self._session()
        try:
            q = db.query(model)
            for field, value in filters.items():
                if field != "id" and field not in _FIELDS[kind]:
                    raise ValidationError(f"Cannot filter {kind.value} by {field}")
                q = q.filter(getattr(model, field) == value)
            if kind == EntityType.JOBS:
                q = q.order_by(model.order.asc(), model.id.asc())
            else:
                q = q.order_by(model.id.asc())
            records = [_to_record(kind, row) for row in q.all()]
        finally:
            db.close()

        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return records

    def count(self, kind: EntityType, **filters: Any) -> int:
        kind = EntityType(kind)
        model = _MODELS[kind]
        db = self._session()
        try:
            q = db.query(model)
            for field, value in filters.items():
                q = q.filter(getattr(model, field) == value)
            return q.count()
        finally:
            db.close()

    def create(self, kind: EntityType, fields: dict[str, Any]) -> dict:
        kind = EntityType(kind)
        db = self._session()
        try:
            row = _MODELS[kind]()
            _apply_fields(kind, row, fields)
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.debug("Created %s id=%s", kind.value, row.id)
            return _to_record(kind, row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def update(self, kind: EntityType, entity_id: int, fields: dict[str, Any]) -> dict:
        kind = EntityType(kind)
        self._check_mutable(kind)
        db = self._session()
        try:
            row = db.get(_MODELS[kind], int(entity_id))
            if row is None:
                raise self._not_found(kind, entity_id)
            _apply_fields(kind, row, fields)
            db.commit()
            db.refresh(row)
            return _to_record(kind, row)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def update_many(self, kind: EntityType, changes: dict[int, dict[str, Any]]) -> list[dict]:
        """Apply several partial updates in one commit. All ids must exist."""
        kind = EntityType(kind)
        self._check_mutable(kind)
        model = _MODELS[kind]
        db = self._session()
        try:
            rows = []
            for entity_id, fields in changes.items():
                row = db.get(model, int(entity_id))
                if row is None:
                    raise self._not_found(kind, entity_id)
                _apply_fields(kind, row, fields)
                rows.append(row)
            db.commit()
            for row in rows:
                db.refresh(row)
            return [_to_record(kind, row) for row in rows]
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
