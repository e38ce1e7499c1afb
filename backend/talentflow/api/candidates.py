from fastapi import APIRouter, Depends, Query

from ..schemas.candidate import NoteCreate, StageUpdate
from ..services.transport import Operation, UnreliableTransport
from ..utils.dependencies import get_transport

router = APIRouter(prefix="/api/candidates", tags=["Candidates"])


@router.get("")
async def list_candidates(
    job_id: int | None = Query(default=None, ge=1),
    stage: str | None = Query(default=None),
    search: str | None = Query(default=None, description="Matches name or email"),
    transport: UnreliableTransport = Depends(get_transport),
):
    candidates = await transport.send(
        Operation.read("candidates.list", job_id=job_id, stage=stage, search=search)
    )
    return {"success": True, "candidates": candidates}


@router.get("/{candidate_id:int}")
async def get_candidate(candidate_id: int, transport: UnreliableTransport = Depends(get_transport)):
    candidate = await transport.send(Operation.read("candidates.get", candidate_id=candidate_id))
    return {"success": True, "candidate": candidate}


@router.patch("/{candidate_id:int}")
async def update_candidate_stage(
    candidate_id: int,
    payload: StageUpdate,
    transport: UnreliableTransport = Depends(get_transport),
):
    """Move a candidate to another stage; a stage history entry is written with it."""
    candidate = await transport.send(
        Operation.write("candidates.update_stage", candidate_id=candidate_id, stage=payload.stage)
    )
    return {"success": True, "candidate": candidate}


@router.get("/{candidate_id:int}/timeline")
async def candidate_timeline(candidate_id: int, transport: UnreliableTransport = Depends(get_transport)):
    timeline = await transport.send(Operation.read("candidates.timeline", candidate_id=candidate_id))
    return {"success": True, "timeline": timeline}


@router.post("/{candidate_id:int}/notes", status_code=201)
async def create_note(
    candidate_id: int,
    payload: NoteCreate,
    transport: UnreliableTransport = Depends(get_transport),
):
    note = await transport.send(
        Operation.write("notes.create", candidate_id=candidate_id, **payload.model_dump())
    )
    return {"success": True, "note": note}
