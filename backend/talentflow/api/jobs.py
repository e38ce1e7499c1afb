from fastapi import APIRouter, Depends, Query

from ..schemas.job import JobCreate, JobUpdate, ReorderIn
from ..services.transport import Operation, UnreliableTransport
from ..utils.dependencies import get_transport

router = APIRouter(prefix="/api/jobs", tags=["Jobs"])


@router.get("")
async def list_jobs(
    status: str | None = Query(default=None, description="open/closed/draft/archived, or all"),
    search: str | None = Query(default=None, description="Case-insensitive title match"),
    transport: UnreliableTransport = Depends(get_transport),
):
    jobs = await transport.send(Operation.read("jobs.list", status=status, search=search))
    return {"success": True, "jobs": jobs}


@router.get("/{job_id:int}")
async def get_job(job_id: int, transport: UnreliableTransport = Depends(get_transport)):
    job = await transport.send(Operation.read("jobs.get", job_id=job_id))
    return {"success": True, "job": job}


@router.post("", status_code=201)
async def create_job(payload: JobCreate, transport: UnreliableTransport = Depends(get_transport)):
    job = await transport.send(Operation.write("jobs.create", **payload.model_dump()))
    return {"success": True, "job": job}


@router.patch("/{job_id:int}")
async def update_job(
    job_id: int,
    payload: JobUpdate,
    transport: UnreliableTransport = Depends(get_transport),
):
    fields = payload.model_dump(exclude_none=True)
    job = await transport.send(Operation.write("jobs.update", job_id=job_id, fields=fields))
    return {"success": True, "job": job}


@router.patch("/{job_id:int}/reorder")
async def reorder_job(
    job_id: int,
    payload: ReorderIn,
    transport: UnreliableTransport = Depends(get_transport),
):
    jobs = await transport.send(
        Operation.write("jobs.reorder", job_id=job_id, to_index=payload.to_index)
    )
    return {"success": True, "jobs": jobs}
