import asyncio
import os
import random
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# Ensure `import backend.talentflow...` works regardless of where pytest is run from.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Must be set before anything imports backend.talentflow.config.
os.environ["DISABLE_DOTENV"] = "1"
os.environ["SEED_ON_STARTUP"] = "0"

from backend.talentflow.database import init_db, make_engine  # noqa: E402
from backend.talentflow.services.client_state import ClientState  # noqa: E402
from backend.talentflow.services.coordinator import MutationCoordinator  # noqa: E402
from backend.talentflow.services.store import EntityStore, EntityType  # noqa: E402
from backend.talentflow.services.transport import UnreliableTransport  # noqa: E402

# Failure draws for ScriptedRandom: below any non-zero rate fails, above it passes.
FAIL = 0.0
PASS = 0.99


class ScriptedRandom(random.Random):
    """Failure draws come from a script (then PASS); delays are always the minimum."""

    def __init__(self, draws=()):
        super().__init__(0)
        self.draws = list(draws)

    def random(self):
        return self.draws.pop(0) if self.draws else PASS

    def uniform(self, a, b):
        return a


async def no_sleep(seconds: float) -> None:
    # Still yield to the loop so concurrent mutations interleave like real requests.
    await asyncio.sleep(0)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def store(tmp_path: Path) -> EntityStore:
    engine = make_engine(f"sqlite+pysqlite:///{tmp_path / 'test.sqlite3'}")
    init_db(bind=engine)
    yield EntityStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


@pytest.fixture()
def make_transport(store: EntityStore):
    def _make(draws=(), *, failure_rate: float = 0.075, sleep=no_sleep) -> UnreliableTransport:
        return UnreliableTransport(
            store,
            min_delay_ms=0,
            max_delay_ms=0,
            failure_rate=failure_rate,
            rng=ScriptedRandom(draws),
            sleep=sleep,
        )
    return _make


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_coordinator(make_transport, clock):
    def _make(draws=(), **kwargs) -> MutationCoordinator:
        state = ClientState(clock=clock, notice_ttl_ms=3000)
        return MutationCoordinator(state, make_transport(draws, **kwargs))
    return _make


@pytest.fixture()
def seed_board(store: EntityStore):
    """Create jobs A, B, ... with orders 0, 1, ... and return them."""
    def _seed(*titles: str) -> list[dict]:
        jobs = []
        for i, title in enumerate(titles):
            jobs.append(
                store.create(
                    EntityType.JOBS,
                    {"title": title, "slug": title.lower(), "status": "open", "order": i, "tags": ["tech"]},
                )
            )
        return jobs
    return _seed


@pytest.fixture()
def make_candidate(store: EntityStore):
    def _make(name: str = "Cand", stage: str = "applied") -> dict:
        job = store.create(EntityType.JOBS, {"title": "Role", "slug": f"role-{name.lower()}", "status": "open", "order": 0})
        return store.create(
            EntityType.CANDIDATES,
            {"name": name, "email": f"{name.lower()}@example.com", "stage": stage, "job_id": job["id"]},
        )
    return _make


@pytest.fixture()
def client(store: EntityStore, make_transport) -> TestClient:
    from backend.talentflow.main import create_app

    app = create_app(store=store, transport=make_transport(failure_rate=0.0), seed=False)
    return TestClient(app)
