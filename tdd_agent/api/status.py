"""
GET /status/{run_id}
Provides progress polling for the frontend: run status and the run's log lines.
"""
from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from tdd_agent.services.run_registry import get_run

router = APIRouter()


class StatusResponse(BaseModel):
    run_id: str
    status: str
    qualified_name: str
    iterations_run: int
    logs: List[str]
    error: str = ""


@router.get("/status/{run_id}", response_model=StatusResponse)
async def get_status(run_id: str, tail: int = 200):
    run = get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    logs = run.logs[-tail:] if tail > 0 else []
    return StatusResponse(
        run_id=run.run_id,
        status=run.status,
        qualified_name=run.target.qualified_name,
        iterations_run=run.result.iterations_run if run.result else 0,
        logs=logs,
        error=run.error,
    )
