import os
from pathlib import Path
from dotenv import load_dotenv

# Override=True so changes in backend/.env take effect on process reload.
#
# Tests point DATABASE_URL at a temporary SQLite file; set DISABLE_DOTENV=1 so a
# developer .env cannot override it.
if os.getenv("DISABLE_DOTENV") != "1":
    load_dotenv(override=True)


def _env_bool(name: str, default: str) -> bool:
    return (os.getenv(name, default) or default).strip() in {"1", "true", "True", "yes", "YES"}


_raw_database_url = (os.getenv("DATABASE_URL") or "").strip()
# The local store is a SQLite file next to the package; absolute so the working
# directory does not matter.
_default_sqlite_path = (Path(__file__).resolve().parent.parent / "talentflow.db").as_posix()
DATABASE_URL = _raw_database_url or f"sqlite:///{_default_sqlite_path}"

# -------------------- Simulated network --------------------
# Latency is drawn uniformly from [min, max] milliseconds for every request.
TRANSPORT_MIN_DELAY_MS = float(os.getenv("TRANSPORT_MIN_DELAY_MS", "200") or "200")
TRANSPORT_MAX_DELAY_MS = float(os.getenv("TRANSPORT_MAX_DELAY_MS", "1200") or "1200")
# Probability that a write is rejected before it reaches the store.
WRITE_FAILURE_RATE = float(os.getenv("WRITE_FAILURE_RATE", "0.075") or "0.075")

# How long a rollback notice stays visible before it expires on its own.
NOTICE_TTL_MS = int(os.getenv("NOTICE_TTL_MS", "3000") or "3000")

# Fill an empty store with demo jobs and candidates at startup.
SEED_ON_STARTUP = _env_bool("SEED_ON_STARTUP", "1")

LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()
