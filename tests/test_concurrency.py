import asyncio

from backend.talentflow.services.coordinator import MutationPhase, candidate_key, job_key
from backend.talentflow.services.store import EntityType
from backend.talentflow.utils.error_handlers import get_error_message

from conftest import FAIL


class InFlight:
    """Sleep stand-in that counts how many requests are waiting at once."""

    def __init__(self):
        self.current = 0
        self.peak = 0

    async def __call__(self, seconds):
        self.current += 1
        self.peak = max(self.peak, self.current)
        for _ in range(3):
            await asyncio.sleep(0)
        self.current -= 1


def test_moves_on_the_same_candidate_are_serialized(store, make_coordinator, make_candidate):
    candidate = make_candidate("C", stage="applied")
    flight = InFlight()
    coord = make_coordinator(sleep=flight)

    async def scenario():
        await coord.load_candidates()
        flight.peak = 0
        return await asyncio.gather(
            coord.move_candidate(candidate["id"], "screening"),
            coord.move_candidate(candidate["id"], "interview"),
        )

    first, second = asyncio.run(scenario())

    assert flight.peak == 1
    assert first.phase == second.phase == MutationPhase.RECONCILED
    history = store.list(EntityType.STAGE_HISTORY, candidate_id=candidate["id"])
    assert [(h["previous_stage"], h["new_stage"]) for h in history] == [
        ("applied", "screening"),
        ("screening", "interview"),
    ]
    assert coord.state.find("candidates", candidate["id"])["stage"] == "interview"


def test_moves_on_different_candidates_run_concurrently(store, make_coordinator, make_candidate):
    one = make_candidate("One")
    two = make_candidate("Two")
    flight = InFlight()
    coord = make_coordinator(sleep=flight)

    async def scenario():
        await coord.load_candidates()
        flight.peak = 0
        await asyncio.gather(
            coord.move_candidate(one["id"], "offer"),
            coord.move_candidate(two["id"], "hired"),
        )

    asyncio.run(scenario())

    assert flight.peak == 2
    assert store.get(EntityType.CANDIDATES, one["id"])["stage"] == "offer"
    assert store.get(EntityType.CANDIDATES, two["id"])["stage"] == "hired"


def test_archive_waits_for_a_running_reorder(store, make_coordinator, seed_board):
    a, b, c = seed_board("A", "B", "C")
    flight = InFlight()
    coord = make_coordinator(sleep=flight)

    async def scenario():
        await coord.load_jobs()
        flight.peak = 0
        reorder = asyncio.create_task(coord.reorder_job(a["id"], c["id"]))
        await asyncio.sleep(0)
        pending = coord.is_pending(job_key(b["id"]))
        archive = await coord.toggle_archive(b["id"])
        return pending, await reorder, archive

    pending, reorder, archive = asyncio.run(scenario())

    assert pending is True
    assert flight.peak == 1
    assert reorder.phase == archive.phase == MutationPhase.RECONCILED
    assert [(j["title"], j["status"]) for j in coord.state.jobs] == [
        ("B", "archived"),
        ("C", "open"),
        ("A", "open"),
    ]
    assert [j["title"] for j in store.list(EntityType.JOBS)] == ["B", "C", "A"]


def test_failed_move_does_not_block_the_next_one(store, make_coordinator, make_candidate):
    candidate = make_candidate("C", stage="applied")
    coord = make_coordinator([FAIL])

    async def scenario():
        await coord.load_candidates()
        results = await asyncio.gather(
            coord.move_candidate(candidate["id"], "screening"),
            coord.move_candidate(candidate["id"], "interview"),
        )
        return results, coord.is_pending(candidate_key(candidate["id"]))

    (first, second), still_pending = asyncio.run(scenario())

    assert first.phase == MutationPhase.ROLLED_BACK
    assert second.phase == MutationPhase.RECONCILED
    assert still_pending is False
    history = store.list(EntityType.STAGE_HISTORY, candidate_id=candidate["id"])
    assert [(h["previous_stage"], h["new_stage"]) for h in history] == [("applied", "interview")]


class HoldNext:
    """Sleep stand-in that parks the next request until released; others pass straight through."""

    def __init__(self):
        self._pending = None

    def hold_next(self) -> asyncio.Event:
        self._pending = asyncio.Event()
        return self._pending

    async def __call__(self, seconds):
        gate, self._pending = self._pending, None
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)


def _move_while_pipeline_reloads(coord, gate, mover, other):
    async def scenario():
        await coord.load_candidates()
        release = gate.hold_next()
        move = asyncio.create_task(coord.move_candidate(mover["id"], "interview"))
        await asyncio.sleep(0)
        # The pipeline is switched to another job while the move is in flight.
        await coord.load_candidates(job_id=other["job_id"])
        release.set()
        return await move

    return asyncio.run(scenario())


def test_move_reconciles_after_card_left_the_view(store, make_coordinator, make_candidate):
    mover = make_candidate("Mover", stage="applied")
    other = make_candidate("Other", stage="offer")
    gate = HoldNext()
    coord = make_coordinator(sleep=gate)

    mutation = _move_while_pipeline_reloads(coord, gate, mover, other)

    assert mutation.phase == MutationPhase.RECONCILED
    assert mutation.result["stage"] == "interview"
    assert [c["id"] for c in coord.state.candidates] == [other["id"]]
    assert store.get(EntityType.CANDIDATES, mover["id"])["stage"] == "interview"
    assert store.count(EntityType.STAGE_HISTORY, candidate_id=mover["id"]) == 1


def test_failed_move_rolls_back_after_card_left_the_view(store, make_coordinator, make_candidate):
    mover = make_candidate("Mover", stage="applied")
    other = make_candidate("Other", stage="offer")
    gate = HoldNext()
    coord = make_coordinator([FAIL], sleep=gate)

    mutation = _move_while_pipeline_reloads(coord, gate, mover, other)

    assert mutation.phase == MutationPhase.ROLLED_BACK
    assert mutation.notice is not None
    assert [n.message for n in coord.state.active_notices()] == [get_error_message("stage_move_failed")]
    assert coord.state.candidates == [store.get(EntityType.CANDIDATES, other["id"])]
    assert store.get(EntityType.CANDIDATES, mover["id"])["stage"] == "applied"
    assert store.count(EntityType.STAGE_HISTORY) == 0


def test_locks_are_dropped_once_released(make_coordinator, make_candidate):
    candidates = [make_candidate(f"C{i}") for i in range(5)]
    coord = make_coordinator()

    async def scenario():
        await coord.load_jobs()
        await coord.load_candidates()
        await asyncio.gather(
            *(coord.move_candidate(c["id"], "screening") for c in candidates),
            coord.move_candidate(candidates[0]["id"], "offer"),
        )
        jobs = coord.state.jobs
        await coord.reorder_job(jobs[0]["id"], jobs[-1]["id"])
        await coord.toggle_archive(jobs[0]["id"])

    asyncio.run(scenario())

    assert len(coord.locks) == 0
    assert coord.state.find("candidates", candidates[0]["id"])["stage"] == "offer"
