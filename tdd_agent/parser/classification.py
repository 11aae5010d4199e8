"""
Classification
==============
Maps raw build-tool output to one of three failure categories.

Categories:
    NO_FAILURE                     — the success marker is present
    DEPENDENCY_RESOLUTION_FAILURE  — Maven could not resolve an artifact
    OTHER_FAILURE                  — anything else (compile errors, failing tests, ...)

Classification Strategy:
    1. SUCCESS MARKER FIRST — case-sensitive substring, wins over everything
    2. UNIT EXISTENCE GATE  — before the unit exists, every failure is OTHER_FAILURE
    3. PHRASE TABLE SECOND  — lower-cased substring lookup
    4. NEVER dynamic inference or LLM

Dependency errors only mean something once the generated class is present
to be compiled; a missing class produces errors that merely look like
resolution failures.
"""
from enum import Enum

from tdd_agent.core.config import SUCCESS_MARKER


class FailureCategory(str, Enum):
    NO_FAILURE = "NO_FAILURE"
    DEPENDENCY_RESOLUTION_FAILURE = "DEPENDENCY_RESOLUTION_FAILURE"
    OTHER_FAILURE = "OTHER_FAILURE"


# ---------------------------------------------------------------------------
# Dependency Error Phrases
# ---------------------------------------------------------------------------
# Each entry matches when ALL of its lower-cased parts occur in the output.
_DEPENDENCY_PHRASES: list[tuple[str, ...]] = [
    ("could not resolve dependencies",),
    ("missing artifact",),
    ("was not found in", "repository"),
    ("failed to read artifact descriptor",),
    ("dependencyresolutionexception",),
]


def is_success(output: str, success_marker: str = SUCCESS_MARKER) -> bool:
    """Return True if the build output carries the success marker."""
    return bool(output) and success_marker in output


def has_dependency_error(output: str) -> bool:
    """Return True if the output mentions a dependency resolution failure."""
    lower = (output or "").lower()
    return any(all(part in lower for part in parts) for parts in _DEPENDENCY_PHRASES)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def classify(
    output: str,
    unit_exists: bool,
    success_marker: str = SUCCESS_MARKER,
) -> FailureCategory:
    """
    Classify build-tool output.

    Parameters
    ----------
    output : str
        Raw combined build/test output.
    unit_exists : bool
        Whether the target source unit is already present on disk.
    success_marker : str
        Literal substring signalling a fully passing run.

    Returns
    -------
    FailureCategory
        Pure result; no side effects.
    """
    if is_success(output, success_marker):
        return FailureCategory.NO_FAILURE
    if not unit_exists:
        return FailureCategory.OTHER_FAILURE
    if has_dependency_error(output):
        return FailureCategory.DEPENDENCY_RESOLUTION_FAILURE
    return FailureCategory.OTHER_FAILURE
