"""
Merge Result Model
==================
Outcome of reconciling a candidate dependency fragment into a manifest.

Fields:
    status          — "applied" | "no_op" | "error"
    manifest_text   — merged manifest ("applied") or the untouched original
    added           — keys appended to the dependency section
    updated         — keys replaced in place
    skipped         — descriptors dropped by parsing or filter policy, with reason
    error           — description when status is "error"

Only an "applied" result may be written back to disk.
"""
from typing import List, Literal

from pydantic import BaseModel

APPLIED = "applied"
NO_OP = "no_op"
ERROR = "error"


class SkippedDependency(BaseModel):
    dependency: str
    reason: str


class MergeResult(BaseModel):
    status: Literal["applied", "no_op", "error"]
    manifest_text: str
    added: List[str] = []
    updated: List[str] = []
    skipped: List[SkippedDependency] = []
    error: str = ""

    @property
    def applied(self) -> bool:
        return self.status == APPLIED
