"""
GET /results/{run_id}
Returns the final RunResult of a finished run.
"""
from fastapi import APIRouter, HTTPException

from tdd_agent.models.run_result import RunResult
from tdd_agent.services.run_registry import get_run

router = APIRouter()


@router.get("/results/{run_id}", response_model=RunResult)
async def get_results(run_id: str):
    run = get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    if run.result is None:
        raise HTTPException(status_code=409, detail=f"Run is {run.status}; no results yet")
    return run.result
