"""
Run Result Model
================
Final outcome of one ``run_full_process`` call.

Exhaustion is an expected, non-exceptional outcome: it is reported here
with ``success=False`` and ``status="exhausted"`` rather than raised.
"""
from typing import List, Literal

from pydantic import BaseModel

from .iteration_snapshot import IterationSnapshot


class RunResult(BaseModel):
    success: bool = False
    status: Literal["pending", "success", "exhausted"] = "pending"
    cycles_run: int = 0
    iterations_run: int = 0
    snapshots: List[IterationSnapshot] = []
    elapsed_seconds: float = 0.0
    summary: str = ""
