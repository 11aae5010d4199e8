"""
POST /run-agent
Accepts the target class, its package, the specification and the Maven
project root. Registers a run and starts the convergence loop in the
background; poll GET /status/{run_id} for progress.
"""
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import BaseModel, ValidationError

from tdd_agent.core.constants import MANIFEST_FILE
from tdd_agent.models.generation_target import GenerationTarget
from tdd_agent.services.run_registry import create_run, execute_run

router = APIRouter()


class RunAgentRequest(BaseModel):
    class_name: str
    package_name: Optional[str] = None
    specification: str = ""
    project_root: str


class RunAgentResponse(BaseModel):
    run_id: str
    status: str
    qualified_name: str


@router.post("/run-agent", response_model=RunAgentResponse, status_code=202)
async def run_agent(request: RunAgentRequest, background_tasks: BackgroundTasks):
    root = Path(request.project_root).expanduser()
    if not root.is_dir():
        raise HTTPException(status_code=400, detail=f"Project root not found: {root}")
    if not (root / MANIFEST_FILE).is_file():
        raise HTTPException(status_code=400, detail=f"No {MANIFEST_FILE} in project root: {root}")

    try:
        target = GenerationTarget(
            class_name=request.class_name,
            package_name=request.package_name,
            specification=request.specification,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=[err["msg"] for err in e.errors()])

    run = create_run(target, str(root))
    background_tasks.add_task(execute_run, run.run_id)
    return RunAgentResponse(run_id=run.run_id, status=run.status, qualified_name=target.qualified_name)
