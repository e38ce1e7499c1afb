import pytest

from backend.talentflow.services.client_state import ClientState

from conftest import FakeClock


def _state(clock=None):
    return ClientState(clock=clock or FakeClock(), notice_ttl_ms=3000)


def test_jobs_are_kept_in_board_order():
    state = _state()
    state.set_collection("jobs", [{"id": 2, "order": 1}, {"id": 3, "order": 0}, {"id": 1, "order": 1}])
    assert [j["id"] for j in state.jobs] == [3, 1, 2]


def test_snapshot_is_isolated_from_later_edits():
    state = _state()
    state.set_collection("jobs", [{"id": 1, "order": 0, "tags": ["a"]}])
    snapshot = state.snapshot("jobs")

    state.jobs[0]["tags"].append("b")
    state.patch("jobs", 1, order=5)

    assert snapshot.records == ({"id": 1, "order": 0, "tags": ["a"]},)
    state.restore(snapshot)
    assert state.jobs == [{"id": 1, "order": 0, "tags": ["a"]}]


def test_set_collection_copies_input():
    records = [{"id": 1, "stage": "applied"}]
    state = _state()
    state.set_collection("candidates", records)
    records[0]["stage"] = "hired"
    assert state.find("candidates", 1)["stage"] == "applied"


def test_patch_and_replace_keep_position():
    state = _state()
    state.set_collection("candidates", [{"id": 1, "stage": "applied"}, {"id": 2, "stage": "offer"}])

    state.patch("candidates", 1, stage="screening")
    state.replace("candidates", {"id": 2, "stage": "hired", "name": "Bo"})

    assert state.candidates == [
        {"id": 1, "stage": "screening"},
        {"id": 2, "stage": "hired", "name": "Bo"},
    ]
    with pytest.raises(KeyError):
        state.patch("candidates", 9, stage="offer")


def test_unknown_collection_is_rejected():
    with pytest.raises(ValueError):
        _state().find("notes", 1)


def test_notices_expire_after_ttl():
    clock = FakeClock(100.0)
    state = _state(clock)
    first = state.push_notice("Failed to reorder jobs.")
    clock.now += 2.0
    second = state.push_notice("Failed to update candidate.")

    assert state.active_notices() == [first, second]
    clock.now += 1.5
    assert state.active_notices() == [second]
    clock.now += 2.0
    assert state.active_notices() == []


def test_notice_can_be_dismissed_early():
    state = _state()
    notice = state.push_notice("Failed to add note.")
    other = state.push_notice("Failed to save assessment.")

    state.dismiss(notice.id)

    assert state.active_notices() == [other]
    assert notice.id != other.id
