"""
Run Registry
============
In-memory bookkeeping for convergence runs started through the API.

Responsibilities:
    - Assign run ids and keep per-run status, log lines and final result
    - Serialize runs that share a project root (and therefore a pom.xml);
      runs on different roots proceed concurrently
    - Capture the run's own log records for GET /status

Registry is per-process and not persisted; a restart forgets all runs.
Finished runs beyond MAX_KEPT_RUNS are evicted oldest first (their results
JSON stays on disk), and a root's lock is dropped once no queued or running
run still refers to that root.
"""
import asyncio
import logging
import os
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel

from tdd_agent.agents.orchestrator import Orchestrator
from tdd_agent.core.config import RESULTS_DIR, MAX_KEPT_RUNS
from tdd_agent.llm.client import LLMClient
from tdd_agent.models.generation_target import GenerationTarget
from tdd_agent.models.run_result import RunResult
from tdd_agent.services.results_writer import ResultsWriter

logger = logging.getLogger(__name__)

_MAX_LOG_LINES = 2000

_current_run: ContextVar[Optional[str]] = ContextVar("tdd_agent_run_id", default=None)


class RunRecord(BaseModel):
    run_id: str
    target: GenerationTarget
    project_root: str
    status: Literal["queued", "running", "success", "exhausted", "error"] = "queued"
    logs: List[str] = []
    result: Optional[RunResult] = None
    results_path: str = ""
    error: str = ""


_RUNS: Dict[str, RunRecord] = {}
_ROOT_LOCKS: Dict[str, asyncio.Lock] = {}
_FINISHED = ("success", "exhausted", "error")


class _RunLogHandler(logging.Handler):
    """Routes log records emitted inside a run to that run's record."""

    def emit(self, record: logging.LogRecord) -> None:
        run_id = _current_run.get()
        run = _RUNS.get(run_id) if run_id else None
        if run is None:
            return
        run.logs.append(self.format(record))
        if len(run.logs) > _MAX_LOG_LINES:
            del run.logs[: len(run.logs) - _MAX_LOG_LINES]


_handler = _RunLogHandler()
_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s", datefmt="%H:%M:%S"))
logging.getLogger("tdd_agent").addHandler(_handler)


def _root_key(project_root: str) -> str:
    return str(Path(project_root).resolve())


def create_run(target: GenerationTarget, project_root: str) -> RunRecord:
    """Register a new queued run."""
    run = RunRecord(run_id=uuid.uuid4().hex[:12], target=target, project_root=project_root)
    _RUNS[run.run_id] = run
    return run


def get_run(run_id: str) -> Optional[RunRecord]:
    return _RUNS.get(run_id)


def _release_root(root_key: str) -> None:
    """Drop the root's lock when no pending run can still be waiting on it."""
    pending = any(
        r.status in ("queued", "running") and _root_key(r.project_root) == root_key
        for r in _RUNS.values()
    )
    if not pending:
        _ROOT_LOCKS.pop(root_key, None)


def _evict_finished(keep: int) -> None:
    finished = [run_id for run_id, r in _RUNS.items() if r.status in _FINISHED]
    for run_id in finished[: max(len(finished) - keep, 0)]:
        logger.debug("Evicting finished run %s", run_id)
        del _RUNS[run_id]


def clear_runs() -> None:
    """Forget all runs (tests, restarts)."""
    _RUNS.clear()
    _ROOT_LOCKS.clear()


async def execute_run(run_id: str, results_dir: str = RESULTS_DIR, keep_runs: int = MAX_KEPT_RUNS) -> None:
    """Run the convergence loop for a registered run and record the outcome."""
    run = _RUNS.get(run_id)
    if run is None:
        logger.error("Unknown run id: %s", run_id)
        return

    token = _current_run.set(run_id)
    root_key = _root_key(run.project_root)
    lock = _ROOT_LOCKS.setdefault(root_key, asyncio.Lock())
    client = LLMClient()
    try:
        async with lock:
            run.status = "running"
            logger.info("Run %s started for %s in %s", run_id, run.target.qualified_name, run.project_root)

            orchestrator = Orchestrator(generator=client)
            result = await orchestrator.run_full_process(run.target, Path(run.project_root))

            run.result = result
            run.status = result.status if result.status != "pending" else "error"

            output_path = os.path.join(results_dir, f"{run_id}.json")
            if ResultsWriter.write_results(result, run.target, run.project_root, output_path):
                run.results_path = os.path.abspath(output_path)
    except Exception as e:
        logger.exception("Run %s failed unexpectedly", run_id)
        run.status = "error"
        run.error = f"{type(e).__name__}: {e}"
    finally:
        await client.close()
        _current_run.reset(token)
        _release_root(root_key)
        _evict_finished(keep_runs)
