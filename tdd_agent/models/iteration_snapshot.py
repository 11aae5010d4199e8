"""
Iteration Snapshot Model
========================
Pydantic model representing one iteration of the convergence loop.

Represents one pass: Build → Classify → (Manifest fix | Source fix).

Fields:
    cycle             — outer cycle counter (1-based)
    iteration         — iteration counter within the cycle (1-based, 0 = escalation)
    category          — FailureCategory value observed for this build
    action            — what the loop did with it (see ACTION_* constants)
    model             — generator model consulted this round ("" if none)
    build_log_snippet — abbreviated build output for the dashboard
    iteration_time_seconds — wall clock time for this iteration

Snapshots are an observation log only; the loop never reads them back.
"""
from pydantic import BaseModel

ACTION_TESTS_GREEN = "tests_green"
ACTION_MANIFEST_UPDATED = "manifest_updated"
ACTION_SOURCE_WRITTEN = "source_written"
ACTION_NO_CODE = "no_code"
ACTION_ESCALATED = "escalated"


class IterationSnapshot(BaseModel):
    cycle: int
    iteration: int
    category: str = ""
    action: str = ""
    model: str = ""
    build_log_snippet: str = ""
    iteration_time_seconds: float = 0.0
