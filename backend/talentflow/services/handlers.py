"""
Server-side request handlers.

One function per logical operation, registered by name with its kind. The transport
calls them with the store and the operation payload once the request has survived
the latency and failure roll.
"""

import logging
from typing import Any, Callable

from ..schemas.assessment import ResponseIn
from ..schemas.candidate import NoteCreate, StageUpdate
from ..schemas.job import JobCreate, JobUpdate, ReorderIn
from ..utils.error_handlers import ValidationError, get_error_message
from ..utils.validation import generate_slug, parse_model, validate_integer_field
from .assessments import normalize_assessment, validate_response
from .audit import record_stage_change, stage_history_for, utc_now
from .store import EntityStore, EntityType
from .transport import OperationKind

logger = logging.getLogger(__name__)

HANDLERS: dict[str, tuple[OperationKind, Callable[[EntityStore, dict], Any]]] = {}


def operation(name: str, kind: OperationKind):
    def register(func):
        HANDLERS[name] = (kind, func)
        return func
    return register


def _id(payload: dict, key: str, label: str) -> int:
    return validate_integer_field(payload.get(key), label, min_value=1)


# -------------------- Jobs --------------------

@operation("jobs.list", OperationKind.READ)
def list_jobs(store: EntityStore, payload: dict) -> list[dict]:
    status = (payload.get("status") or "").strip().lower()
    search = (payload.get("search") or "").strip().lower()
    filters = {"status": status} if status and status != "all" else {}
    predicate = (lambda j: search in (j.get("title") or "").lower()) if search else None
    return store.list(EntityType.JOBS, predicate, **filters)


@operation("jobs.get", OperationKind.READ)
def get_job(store: EntityStore, payload: dict) -> dict:
    return store.get(EntityType.JOBS, _id(payload, "job_id", "Job ID"))


@operation("jobs.create", OperationKind.WRITE)
def create_job(store: EntityStore, payload: dict) -> dict:
    data = parse_model(JobCreate, payload)
    existing = store.list(EntityType.JOBS)
    # New jobs go to the bottom of the board.
    next_order = max((j["order"] for j in existing), default=-1) + 1
    job = store.create(
        EntityType.JOBS,
        {
            "title": data.title,
            "slug": (data.slug or "").strip() or generate_slug(data.title),
            "status": data.status,
            "tags": data.tags,
            "order": next_order,
        },
    )
    logger.info("Created job id=%s slug=%s", job["id"], job["slug"])
    return job


@operation("jobs.update", OperationKind.WRITE)
def update_job(store: EntityStore, payload: dict) -> dict:
    job_id = _id(payload, "job_id", "Job ID")
    data = parse_model(JobUpdate, payload.get("fields") or {})
    fields = data.model_dump(exclude_none=True)
    if not fields:
        raise ValidationError(get_error_message("validation_error"))
    if "title" in fields:
        fields["title"] = fields["title"].strip()
    return store.update(EntityType.JOBS, job_id, fields)


@operation("jobs.reorder", OperationKind.WRITE)
def reorder_job(store: EntityStore, payload: dict) -> list[dict]:
    """
    Move one job to ``to_index`` on the full board and renumber every sibling.

    Returns the whole board in its new order. Orders are rewritten as 0..n-1 in one
    commit; only rows whose value changes are touched.
    """
    job_id = _id(payload, "job_id", "Job ID")
    to_index = parse_model(ReorderIn, {"to_index": payload.get("to_index")}).to_index

    board = store.list(EntityType.JOBS)
    position = next((i for i, j in enumerate(board) if j["id"] == job_id), None)
    if position is None:
        store.get(EntityType.JOBS, job_id)  # raises NotFoundError
    if to_index >= len(board):
        raise ValidationError(f"to_index must be less than {len(board)}")

    moved = board.pop(position)
    board.insert(to_index, moved)
    changes = {j["id"]: {"order": i} for i, j in enumerate(board) if j["order"] != i}
    if changes:
        store.update_many(EntityType.JOBS, changes)
    logger.info("Reordered job id=%s to index %s (%s rows)", job_id, to_index, len(changes))
    return store.list(EntityType.JOBS)


# -------------------- Candidates --------------------

@operation("candidates.list", OperationKind.READ)
def list_candidates(store: EntityStore, payload: dict) -> list[dict]:
    filters: dict[str, Any] = {}
    if payload.get("job_id") is not None:
        filters["job_id"] = _id(payload, "job_id", "Job ID")
    if payload.get("stage"):
        filters["stage"] = parse_model(StageUpdate, {"stage": payload["stage"]}).stage
    search = (payload.get("search") or "").strip().lower()
    predicate = None
    if search:
        def predicate(c: dict) -> bool:
            return search in (c.get("name") or "").lower() or search in (c.get("email") or "").lower()
    return store.list(EntityType.CANDIDATES, predicate, **filters)


@operation("candidates.get", OperationKind.READ)
def get_candidate(store: EntityStore, payload: dict) -> dict:
    return store.get(EntityType.CANDIDATES, _id(payload, "candidate_id", "Candidate ID"))


@operation("candidates.update_stage", OperationKind.WRITE)
def update_candidate_stage(store: EntityStore, payload: dict) -> dict:
    candidate_id = _id(payload, "candidate_id", "Candidate ID")
    stage = parse_model(StageUpdate, {"stage": payload.get("stage")}).stage

    previous_stage = store.get(EntityType.CANDIDATES, candidate_id)["stage"]
    candidate = store.update(EntityType.CANDIDATES, candidate_id, {"stage": stage})
    # The history row follows the committed stage write unconditionally.
    record_stage_change(
        store,
        candidate_id=candidate_id,
        previous_stage=previous_stage,
        new_stage=candidate["stage"],
        now=utc_now(),
    )
    return candidate


@operation("candidates.timeline", OperationKind.READ)
def candidate_timeline(store: EntityStore, payload: dict) -> list[dict]:
    """Stage changes and notes for one candidate, newest first."""
    candidate_id = _id(payload, "candidate_id", "Candidate ID")
    store.get(EntityType.CANDIDATES, candidate_id)

    events = [
        {**h, "type": "stage_change"}
        for h in stage_history_for(store, candidate_id)
    ] + [
        {**n, "type": "note"}
        for n in store.list(EntityType.NOTES, candidate_id=candidate_id)
    ]
    events.sort(key=lambda e: (e["timestamp"] or "", e["type"] == "note", e["id"]), reverse=True)
    return events


@operation("notes.create", OperationKind.WRITE)
def create_note(store: EntityStore, payload: dict) -> dict:
    candidate_id = _id(payload, "candidate_id", "Candidate ID")
    data = parse_model(NoteCreate, {k: v for k, v in payload.items() if k != "candidate_id"})
    store.get(EntityType.CANDIDATES, candidate_id)
    note = store.create(
        EntityType.NOTES,
        {
            "candidate_id": candidate_id,
            "content": data.content,
            "author": (data.author or "").strip() or "Anonymous",
            "timestamp": utc_now(),
        },
    )
    return {**note, "type": "note"}


# -------------------- Assessments --------------------

@operation("assessments.list", OperationKind.READ)
def list_assessments(store: EntityStore, payload: dict) -> list[dict] | dict | None:
    """All assessments, or the one for ``job_id`` (None when the job has none yet)."""
    if payload.get("job_id") is not None:
        matches = store.list(EntityType.ASSESSMENTS, job_id=_id(payload, "job_id", "Job ID"))
        return matches[0] if matches else None
    return store.list(EntityType.ASSESSMENTS)


@operation("assessments.create", OperationKind.WRITE)
def create_assessment(store: EntityStore, payload: dict) -> dict:
    fields = normalize_assessment(payload)
    store.get(EntityType.JOBS, fields["job_id"])
    return store.create(EntityType.ASSESSMENTS, fields)


@operation("assessments.update", OperationKind.WRITE)
def update_assessment(store: EntityStore, payload: dict) -> dict:
    assessment_id = _id(payload, "assessment_id", "Assessment ID")
    fields = normalize_assessment({k: v for k, v in payload.items() if k != "assessment_id"})
    return store.update(EntityType.ASSESSMENTS, assessment_id, fields)


@operation("responses.list", OperationKind.READ)
def list_responses(store: EntityStore, payload: dict) -> list[dict]:
    if payload.get("assessment_id") is not None:
        return store.list(
            EntityType.RESPONSES,
            assessment_id=_id(payload, "assessment_id", "Assessment ID"),
        )
    return store.list(EntityType.RESPONSES)


@operation("responses.create", OperationKind.WRITE)
def create_response(store: EntityStore, payload: dict) -> dict:
    data = parse_model(ResponseIn, payload)
    assessment = store.get(EntityType.ASSESSMENTS, data.assessment_id)
    if data.candidate_id is not None:
        store.get(EntityType.CANDIDATES, data.candidate_id)
    errors = validate_response(assessment, data.answers)
    if errors:
        raise ValidationError(get_error_message("response_invalid"), details={"errors": errors})
    return store.create(
        EntityType.RESPONSES,
        {
            "assessment_id": data.assessment_id,
            "candidate_id": data.candidate_id,
            "answers": data.answers,
            "submitted_at": utc_now(),
        },
    )
