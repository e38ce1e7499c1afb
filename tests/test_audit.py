import asyncio
from datetime import datetime, timezone

import pytest

from backend.talentflow.services.audit import record_stage_change, stage_history_for
from backend.talentflow.services.store import EntityType
from backend.talentflow.services.transport import Operation
from backend.talentflow.utils.error_handlers import NotFoundError, TransientWriteFailure, ValidationError

from conftest import FAIL


def test_record_stage_change_appends_entry(store, make_candidate):
    candidate = make_candidate("Ada")
    when = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)

    entry = record_stage_change(
        store, candidate_id=candidate["id"], previous_stage="applied", new_stage="screening", now=when
    )

    assert entry["candidate_id"] == candidate["id"]
    assert entry["previous_stage"] == "applied"
    assert entry["new_stage"] == "screening"
    assert entry["timestamp"].startswith("2024-05-01T09:30")
    assert stage_history_for(store, candidate["id"]) == [entry]


def test_successful_stage_write_adds_exactly_one_entry(store, make_transport, make_candidate):
    candidate = make_candidate("Ada", stage="applied")
    transport = make_transport()

    updated = asyncio.run(
        transport.send(Operation.write("candidates.update_stage", candidate_id=candidate["id"], stage="interview"))
    )

    assert updated["stage"] == "interview"
    history = stage_history_for(store, candidate["id"])
    assert len(history) == 1
    assert history[0]["previous_stage"] == "applied"
    assert history[0]["new_stage"] == "interview"


def test_rejected_stage_write_adds_no_entry(store, make_transport, make_candidate):
    candidate = make_candidate("Ada", stage="applied")
    transport = make_transport([FAIL])

    with pytest.raises(TransientWriteFailure):
        asyncio.run(
            transport.send(Operation.write("candidates.update_stage", candidate_id=candidate["id"], stage="offer"))
        )

    assert store.get(EntityType.CANDIDATES, candidate["id"])["stage"] == "applied"
    assert stage_history_for(store, candidate["id"]) == []


def test_stage_write_for_missing_candidate_adds_no_entry(store, make_transport):
    transport = make_transport()

    with pytest.raises(NotFoundError):
        asyncio.run(transport.send(Operation.write("candidates.update_stage", candidate_id=77, stage="offer")))
    assert store.count(EntityType.STAGE_HISTORY) == 0


def test_history_entries_cannot_be_edited(store, make_candidate):
    candidate = make_candidate("Ada")
    entry = record_stage_change(store, candidate_id=candidate["id"], previous_stage="applied", new_stage="offer")

    with pytest.raises(ValidationError):
        store.update(EntityType.STAGE_HISTORY, entry["id"], {"new_stage": "hired"})
    assert stage_history_for(store, candidate["id"]) == [entry]


def test_timeline_merges_history_and_notes_newest_first(store, make_transport, make_candidate):
    candidate = make_candidate("Ada")
    transport = make_transport()
    cid = candidate["id"]

    asyncio.run(transport.send(Operation.write("candidates.update_stage", candidate_id=cid, stage="screening")))
    asyncio.run(transport.send(Operation.write("notes.create", candidate_id=cid, content="Strong portfolio")))
    asyncio.run(transport.send(Operation.write("candidates.update_stage", candidate_id=cid, stage="interview")))

    timeline = asyncio.run(transport.send(Operation.read("candidates.timeline", candidate_id=cid)))

    assert [e["type"] for e in timeline] == ["stage_change", "note", "stage_change"]
    assert timeline[0]["new_stage"] == "interview"
    assert timeline[1]["author"] == "Anonymous"
    assert timeline[2]["previous_stage"] == "applied"
