import logging
from datetime import datetime, timezone

from .store import EntityStore, EntityType

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def record_stage_change(
    store: EntityStore,
    *,
    candidate_id: int,
    previous_stage: str | None,
    new_stage: str,
    now: datetime | None = None,
) -> dict:
    """
    Append one stage history entry for a candidate.

    Only the stage-update handler calls this, right after its candidate write has
    committed. Inputs are trusted: the caller already checked the candidate id and
    both stage values. Entries are never updated afterwards.
    """
    entry = store.create(
        EntityType.STAGE_HISTORY,
        {
            "candidate_id": int(candidate_id),
            "previous_stage": previous_stage,
            "new_stage": new_stage,
            "timestamp": now or utc_now(),
        },
    )
    logger.info(
        "Stage history candidate=%s %s -> %s", candidate_id, previous_stage, new_stage
    )
    return entry


def stage_history_for(store: EntityStore, candidate_id: int) -> list[dict]:
    return store.list(EntityType.STAGE_HISTORY, candidate_id=int(candidate_id))
