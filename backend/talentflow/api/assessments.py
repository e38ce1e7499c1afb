from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from ..schemas.assessment import ResponseIn
from ..services.transport import Operation, UnreliableTransport
from ..utils.dependencies import get_transport

router = APIRouter(prefix="/api", tags=["Assessments"])


@router.get("/assessments")
async def list_assessments(
    job_id: int | None = Query(default=None, ge=1),
    transport: UnreliableTransport = Depends(get_transport),
):
    """All assessments, or the single assessment for ``job_id`` (null when none exists)."""
    result = await transport.send(Operation.read("assessments.list", job_id=job_id))
    if job_id is not None:
        return {"success": True, "assessment": result}
    return {"success": True, "assessments": result}


# Assessment bodies are validated by the handler so structural problems (unknown
# conditional targets, cycles) come back as a single 400 rather than a 422.
@router.post("/assessments", status_code=201)
async def create_assessment(
    payload: dict[str, Any] = Body(...),
    transport: UnreliableTransport = Depends(get_transport),
):
    assessment = await transport.send(Operation.write("assessments.create", **payload))
    return {"success": True, "assessment": assessment}


@router.put("/assessments/{assessment_id:int}")
async def update_assessment(
    assessment_id: int,
    payload: dict[str, Any] = Body(...),
    transport: UnreliableTransport = Depends(get_transport),
):
    fields = {k: v for k, v in payload.items() if k not in ("id", "assessment_id")}
    assessment = await transport.send(
        Operation.write("assessments.update", assessment_id=assessment_id, **fields)
    )
    return {"success": True, "assessment": assessment}


@router.get("/responses")
async def list_responses(
    assessment_id: int | None = Query(default=None, ge=1),
    transport: UnreliableTransport = Depends(get_transport),
):
    responses = await transport.send(Operation.read("responses.list", assessment_id=assessment_id))
    return {"success": True, "responses": responses}


@router.post("/responses", status_code=201)
async def create_response(payload: ResponseIn, transport: UnreliableTransport = Depends(get_transport)):
    response = await transport.send(Operation.write("responses.create", **payload.model_dump()))
    return {"success": True, "response": response}
