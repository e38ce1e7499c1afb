"""
Mutation Coordinator

Runs every client-side write against the unreliable transport.

Optimistic flows (reorder, archive toggle, stage move) follow one state machine:

    IDLE -> OPTIMISTIC -> RECONCILED | ROLLED_BACK

The snapshot is taken and the change applied to ``ClientState`` before the request
is awaited. A successful response replaces the guess with the server's records; a
rejected write restores the snapshot and pushes a transient notice. An unresolved
or unchanged target is a no-op: no request, no state change.

Mutations on the same entity are serialized with per-entity asyncio locks. A reorder
rewrites every job's position, so it holds the board lock plus every job lock.

Confirmed writes (create/update job, save assessment, add note, submit response)
validate first, wait for the server, and only then touch client state.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..utils.error_handlers import (
    AppError,
    NotFoundError,
    TransientWriteFailure,
    ValidationError,
    get_error_message,
)
from ..utils.validation import (
    CANDIDATE_STAGES,
    clean_tags,
    ensure_slug_unique,
    generate_slug,
    validate_job_status,
    validate_string_field,
)
from .assessments import normalize_assessment, validate_response
from .client_state import ClientState, Notice
from .transport import Operation, UnreliableTransport

logger = logging.getLogger(__name__)

JOBS_BOARD = "jobs:*"


def job_key(job_id: int) -> str:
    return f"jobs:{job_id}"


def candidate_key(candidate_id: int) -> str:
    return f"candidates:{candidate_id}"


class MutationPhase(str, Enum):
    IDLE = "idle"
    OPTIMISTIC = "optimistic"
    RECONCILED = "reconciled"
    ROLLED_BACK = "rolled_back"


_TRANSITIONS = {
    MutationPhase.IDLE: {MutationPhase.OPTIMISTIC},
    MutationPhase.OPTIMISTIC: {MutationPhase.RECONCILED, MutationPhase.ROLLED_BACK},
    MutationPhase.RECONCILED: set(),
    MutationPhase.ROLLED_BACK: set(),
}


@dataclass
class Mutation:
    name: str
    entity: str
    phase: MutationPhase = MutationPhase.IDLE
    result: Any = None
    notice: Notice | None = None

    def advance(self, phase: MutationPhase) -> None:
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"{self.name}: illegal transition {self.phase.value} -> {phase.value}")
        logger.debug("%s %s: %s -> %s", self.name, self.entity, self.phase.value, phase.value)
        self.phase = phase

    @property
    def is_noop(self) -> bool:
        return self.phase == MutationPhase.IDLE


@dataclass
class WriteResult:
    ok: bool
    record: Any = None
    notice: Notice | None = None


class EntityLocks:
    """
    Lazily created asyncio locks keyed by entity; multi-key holds acquire in sorted order.

    A lock lives only while some hold is holding or waiting on its key.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        # key -> number of holds currently holding or waiting on that key
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, *keys: str):
        keys = sorted(set(keys))
        for key in keys:
            self._users[key] = self._users.get(key, 0) + 1
        acquired: list[asyncio.Lock] = []
        try:
            for key in keys:
                lock = self._lock(key)
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in keys:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    self._locks.pop(key, None)


class MutationCoordinator:
    def __init__(self, state: ClientState, transport: UnreliableTransport):
        self.state = state
        self.transport = transport
        self.locks = EntityLocks()

    def is_pending(self, key: str) -> bool:
        """True while a mutation holds ``key``; the UI can disable dragging that entity."""
        return self.locks.is_locked(key)

    async def _send(self, op: Operation) -> Any:
        return await self.transport.send(op)

    def _fail(self, mutation: Mutation, message_key: str) -> Mutation:
        mutation.notice = self.state.push_notice(get_error_message(message_key))
        logger.warning("%s %s rolled back", mutation.name, mutation.entity)
        return mutation

    # -------------------- loaders --------------------

    async def load_jobs(self) -> list[dict]:
        async with self.locks.hold(JOBS_BOARD):
            jobs = await self._send(Operation.read("jobs.list"))
            self.state.set_collection("jobs", jobs)
        return self.state.jobs

    async def load_candidates(self, job_id: int | None = None) -> list[dict]:
        payload = {"job_id": job_id} if job_id is not None else {}
        candidates = await self._send(Operation.read("candidates.list", **payload))
        self.state.set_collection("candidates", candidates)
        return self.state.candidates

    async def load_timeline(self, candidate_id: int) -> list[dict]:
        timeline = await self._send(Operation.read("candidates.timeline", candidate_id=candidate_id))
        self.state.timelines[candidate_id] = timeline
        return timeline

    async def load_assessment(self, job_id: int) -> dict | None:
        assessment = await self._send(Operation.read("assessments.list", job_id=job_id))
        self.state.assessments[job_id] = assessment
        return assessment

    # -------------------- optimistic: reorder --------------------

    async def reorder_job(self, job_id: int, target_id: Any) -> Mutation:
        """
        Move ``job_id`` to the board position currently held by ``target_id``.

        On failure the whole previous board is restored, not just the moved job.
        """
        mutation = Mutation("reorder", job_key(job_id))
        async with self.locks.hold(JOBS_BOARD):
            sibling_keys = [job_key(j["id"]) for j in self.state.jobs]
            async with self.locks.hold(*sibling_keys):
                src = self.state.index_of("jobs", job_id)
                if src is None:
                    raise NotFoundError(get_error_message("job_not_found"), details={"id": job_id})
                dst = self.state.index_of("jobs", target_id) if target_id is not None else None
                if dst is None or dst == src:
                    return mutation

                snapshot = self.state.snapshot("jobs")
                board = [dict(j) for j in self.state.jobs]
                board.insert(dst, board.pop(src))
                for i, job in enumerate(board):
                    job["order"] = i
                self.state.jobs = board
                mutation.advance(MutationPhase.OPTIMISTIC)

                try:
                    server_board = await self._send(
                        Operation.write("jobs.reorder", job_id=job_id, to_index=dst)
                    )
                except AppError as e:
                    self.state.restore(snapshot)
                    mutation.advance(MutationPhase.ROLLED_BACK)
                    if isinstance(e, TransientWriteFailure):
                        return self._fail(mutation, "reorder_failed")
                    raise

                self.state.set_collection("jobs", server_board)
                mutation.result = self.state.jobs
                mutation.advance(MutationPhase.RECONCILED)
                return mutation

    # -------------------- optimistic: archive toggle --------------------

    async def toggle_archive(self, job_id: int) -> Mutation:
        """Flip a job between ``archived`` and ``open``; only its status is touched."""
        mutation = Mutation("archive_toggle", job_key(job_id))
        async with self.locks.hold(job_key(job_id)):
            job = self.state.find("jobs", job_id)
            if job is None:
                raise NotFoundError(get_error_message("job_not_found"), details={"id": job_id})
            previous_status = job["status"]
            new_status = "open" if previous_status == "archived" else "archived"

            self.state.patch("jobs", job_id, status=new_status)
            mutation.advance(MutationPhase.OPTIMISTIC)

            try:
                server_job = await self._send(
                    Operation.write("jobs.update", job_id=job_id, fields={"status": new_status})
                )
            except AppError as e:
                if self.state.find("jobs", job_id) is not None:
                    self.state.patch("jobs", job_id, status=previous_status)
                mutation.advance(MutationPhase.ROLLED_BACK)
                if isinstance(e, TransientWriteFailure):
                    return self._fail(mutation, "job_status_failed")
                raise

            if self.state.find("jobs", job_id) is not None:
                self.state.replace("jobs", server_job)
            mutation.result = server_job
            mutation.advance(MutationPhase.RECONCILED)
            return mutation

    # -------------------- optimistic: stage transition --------------------

    def resolve_stage_target(self, target: Any) -> str | None:
        """A drop target is either a stage column or a candidate card in some column."""
        if isinstance(target, str) and target in CANDIDATE_STAGES:
            return target
        card = self.state.find("candidates", target)
        return card["stage"] if card else None

    async def move_candidate(self, candidate_id: int, target: Any) -> Mutation:
        """
        Move a candidate to the stage named by ``target``.

        The server records the stage history entry as part of a successful write; a
        rejected write creates none and the visible stage is put back.
        """
        mutation = Mutation("stage_transition", candidate_key(candidate_id))
        async with self.locks.hold(candidate_key(candidate_id)):
            candidate = self.state.find("candidates", candidate_id)
            if candidate is None:
                raise NotFoundError(get_error_message("candidate_not_found"), details={"id": candidate_id})
            new_stage = self.resolve_stage_target(target)
            if new_stage is None or new_stage == candidate["stage"]:
                return mutation

            previous_stage = candidate["stage"]
            self.state.patch("candidates", candidate_id, stage=new_stage)
            mutation.advance(MutationPhase.OPTIMISTIC)

            try:
                server_candidate = await self._send(
                    Operation.write("candidates.update_stage", candidate_id=candidate_id, stage=new_stage)
                )
            except AppError as e:
                # A reload while the request was out may have dropped the card from
                # view (pipeline filtered to another job); then there is nothing to put back.
                if self.state.find("candidates", candidate_id) is not None:
                    self.state.patch("candidates", candidate_id, stage=previous_stage)
                mutation.advance(MutationPhase.ROLLED_BACK)
                if isinstance(e, TransientWriteFailure):
                    return self._fail(mutation, "stage_move_failed")
                raise

            if self.state.find("candidates", candidate_id) is not None:
                self.state.replace("candidates", server_candidate)
            # The cached timeline is missing the new history entry.
            self.state.timelines.pop(candidate_id, None)
            mutation.result = server_candidate
            mutation.advance(MutationPhase.RECONCILED)
            return mutation

    # -------------------- confirmed writes --------------------

    async def _confirmed(self, op: Operation, message_key: str) -> WriteResult:
        try:
            record = await self._send(op)
        except TransientWriteFailure:
            notice = self.state.push_notice(get_error_message(message_key))
            logger.warning("%s rejected; client state unchanged", op.name)
            return WriteResult(ok=False, notice=notice)
        return WriteResult(ok=True, record=record)

    async def create_job(
        self,
        title: str,
        *,
        slug: str | None = None,
        status: str | None = "open",
        tags: Any = None,
    ) -> WriteResult:
        title = validate_string_field(title, "Title", max_length=150)
        slug = (slug or "").strip() or generate_slug(title)
        status = validate_job_status(status)
        tags = clean_tags(tags)

        async with self.locks.hold(JOBS_BOARD):
            ensure_slug_unique(slug, self.state.jobs)
            result = await self._confirmed(
                Operation.write("jobs.create", title=title, slug=slug, status=status, tags=tags),
                "job_create_failed",
            )
            if result.ok:
                self.state.set_collection("jobs", self.state.jobs + [result.record])
        return result

    async def update_job(self, job_id: int, **fields: Any) -> WriteResult:
        """Edit title, slug, status or tags. Board position only changes through reorder."""
        if "order" in fields:
            raise ValueError("Use reorder_job to move a job")
        if "title" in fields:
            fields["title"] = validate_string_field(fields["title"], "Title", max_length=150)
        if "status" in fields:
            fields["status"] = validate_job_status(fields["status"])
        if "tags" in fields:
            fields["tags"] = clean_tags(fields["tags"])

        async with self.locks.hold(job_key(job_id)):
            if self.state.find("jobs", job_id) is None:
                raise NotFoundError(get_error_message("job_not_found"), details={"id": job_id})
            if "slug" in fields:
                fields["slug"] = validate_string_field(fields["slug"], "Slug", max_length=180)
                ensure_slug_unique(fields["slug"], self.state.jobs, exclude_id=job_id)
            result = await self._confirmed(
                Operation.write("jobs.update", job_id=job_id, fields=fields),
                "job_update_failed",
            )
            if result.ok:
                self.state.replace("jobs", result.record)
        return result

    async def save_assessment(
        self,
        job_id: int,
        *,
        title: str = "New Assessment",
        questions: list[dict] | None = None,
        assessment_id: int | None = None,
    ) -> WriteResult:
        """Create the job's assessment, or update it when ``assessment_id`` is given."""
        fields = normalize_assessment({"job_id": job_id, "title": title, "questions": questions or []})

        async with self.locks.hold(f"assessments:job:{job_id}"):
            if assessment_id is None:
                op = Operation.write("assessments.create", **fields)
            else:
                op = Operation.write("assessments.update", assessment_id=assessment_id, **fields)
            result = await self._confirmed(op, "assessment_save_failed")
            if result.ok:
                self.state.assessments[job_id] = result.record
        return result

    async def add_note(self, candidate_id: int, content: str, *, author: str | None = None) -> WriteResult:
        content = validate_string_field(content, "Note", max_length=5000)

        async with self.locks.hold(f"notes:{candidate_id}"):
            result = await self._confirmed(
                Operation.write("notes.create", candidate_id=candidate_id, content=content, author=author),
                "note_failed",
            )
            if result.ok and candidate_id in self.state.timelines:
                self.state.timelines[candidate_id] = [result.record] + self.state.timelines[candidate_id]
        return result

    async def submit_response(
        self,
        assessment: dict,
        answers: dict[str, Any],
        *,
        candidate_id: int | None = None,
    ) -> WriteResult:
        errors = validate_response(assessment, answers)
        if errors:
            raise ValidationError(get_error_message("response_invalid"), details={"errors": errors})

        return await self._confirmed(
            Operation.write(
                "responses.create",
                assessment_id=assessment["id"],
                candidate_id=candidate_id,
                answers=answers,
            ),
            "response_failed",
        )
