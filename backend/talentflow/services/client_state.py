"""
Client-visible state.

The in-memory mirror of what the UI shows: the job board, the candidate pipeline,
loaded timelines and assessments, and transient notices. It is owned by whoever
creates it and handed to the coordinator explicitly. Snapshots are deep copies, so
later edits to the live collections can never leak into a saved snapshot.
"""

import copy
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from .. import config

logger = logging.getLogger(__name__)

COLLECTIONS = ("jobs", "candidates")


@dataclass(frozen=True)
class Snapshot:
    collection: str
    records: tuple


@dataclass(frozen=True)
class Notice:
    """A dismissible error message with a bounded lifetime (clock seconds)."""

    id: int
    message: str
    created_at: float
    expires_at: float

    def is_active(self, now: float) -> bool:
        return now < self.expires_at


class ClientState:
    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        notice_ttl_ms: int = config.NOTICE_TTL_MS,
    ):
        self.jobs: list[dict] = []
        self.candidates: list[dict] = []
        # candidate id -> timeline (newest first)
        self.timelines: dict[int, list[dict]] = {}
        # job id -> assessment, or None when the job has none yet
        self.assessments: dict[int, dict | None] = {}
        self._notices: list[Notice] = []
        self._notice_ids = itertools.count(1)
        self._clock = clock
        self.notice_ttl_ms = notice_ttl_ms

    # -------------------- collections --------------------

    def _collection(self, name: str) -> list[dict]:
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {name}")
        return getattr(self, name)

    def set_collection(self, name: str, records: list[dict]) -> None:
        self._collection(name)
        records = copy.deepcopy(list(records))
        if name == "jobs":
            records.sort(key=lambda j: (j["order"], j["id"]))
        setattr(self, name, records)

    def find(self, name: str, record_id: Any) -> dict | None:
        for record in self._collection(name):
            if record["id"] == record_id:
                return record
        return None

    def index_of(self, name: str, record_id: Any) -> int | None:
        for i, record in enumerate(self._collection(name)):
            if record["id"] == record_id:
                return i
        return None

    def replace(self, name: str, record: dict) -> None:
        """Swap in a new version of a record, matched by id, keeping its position."""
        records = self._collection(name)
        i = self.index_of(name, record["id"])
        if i is None:
            raise KeyError(record["id"])
        records[i] = copy.deepcopy(record)

    def patch(self, name: str, record_id: Any, **fields: Any) -> dict:
        current = self.find(name, record_id)
        if current is None:
            raise KeyError(record_id)
        updated = {**current, **copy.deepcopy(fields)}
        self.replace(name, updated)
        return updated

    def snapshot(self, name: str) -> Snapshot:
        return Snapshot(name, tuple(copy.deepcopy(self._collection(name))))

    def restore(self, snapshot: Snapshot) -> None:
        setattr(self, snapshot.collection, copy.deepcopy(list(snapshot.records)))

    # -------------------- notices --------------------

    def push_notice(self, message: str) -> Notice:
        now = self._clock()
        notice = Notice(
            id=next(self._notice_ids),
            message=message,
            created_at=now,
            expires_at=now + self.notice_ttl_ms / 1000.0,
        )
        self._notices.append(notice)
        logger.info("Notice %s: %s", notice.id, message)
        return notice

    def active_notices(self) -> list[Notice]:
        now = self._clock()
        self._notices = [n for n in self._notices if n.is_active(now)]
        return list(self._notices)

    def dismiss(self, notice_id: int) -> None:
        self._notices = [n for n in self._notices if n.id != notice_id]
