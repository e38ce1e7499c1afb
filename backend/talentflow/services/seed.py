import logging
import random

from ..utils.validation import CANDIDATE_STAGES, generate_slug
from .store import EntityStore, EntityType

logger = logging.getLogger(__name__)

JOB_TITLES = [
    "Software Engineer",
    "Product Manager",
    "UX Designer",
    "Data Scientist",
    "Recruiter",
]
SEED_JOB_STATUSES = ["open", "closed", "draft"]


def seed_database(
    store: EntityStore,
    *,
    rng: random.Random | None = None,
    job_count: int = 25,
    candidate_count: int = 1000,
) -> bool:
    """Fill an empty store with demo jobs and candidates. Returns False if jobs already exist."""
    if store.count(EntityType.JOBS) > 0:
        return False

    rng = rng or random.Random()
    job_ids = []
    for i in range(job_count):
        title = rng.choice(JOB_TITLES)
        job = store.create(
            EntityType.JOBS,
            {
                "title": title,
                "slug": f"{generate_slug(title)}-{i}",
                "status": rng.choice(SEED_JOB_STATUSES),
                "order": i,
                "tags": ["tech", "full-time"],
            },
        )
        job_ids.append(job["id"])

    for i in range(candidate_count):
        store.create(
            EntityType.CANDIDATES,
            {
                "name": f"Candidate {i + 1}",
                "email": f"candidate{i + 1}@example.com",
                "stage": rng.choice(CANDIDATE_STAGES),
                "job_id": rng.choice(job_ids) if job_ids else None,
            },
        )

    logger.info("Seeded %s jobs and %s candidates", job_count, candidate_count)
    return True
