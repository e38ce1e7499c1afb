"""Repo-root Uvicorn entrypoint.

Allows running the simulated backend from the repo root:

    uvicorn app.main:app --reload

This simply re-exports the FastAPI app defined in `backend/talentflow/main.py`.
"""

from backend.talentflow.main import app  # re-export
