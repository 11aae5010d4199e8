"""
POM Writer
==========
Reads pom.xml, merges a candidate dependency fragment, writes it back.

The write is all-or-nothing: the file is only replaced when the merge
reports "applied". Read errors become an "error" MergeResult so the loop
can carry on with normal source handling.
"""
import logging
from pathlib import Path
from typing import Iterable

from tdd_agent.core.config import ALLOWED_DEPENDENCY_GROUPS
from tdd_agent.core.constants import MANIFEST_FILE
from tdd_agent.manifest.merger import merge_dependencies
from tdd_agent.models.merge_result import MergeResult, ERROR

logger = logging.getLogger(__name__)


def manifest_path(project_root: Path) -> Path:
    return Path(project_root) / MANIFEST_FILE


def apply_manifest_fragment(
    project_root: Path,
    fragment: str,
    allowed_groups: Iterable[str] = ALLOWED_DEPENDENCY_GROUPS,
) -> MergeResult:
    """
    Merge ``fragment`` into ``<project_root>/pom.xml`` and persist the result.

    Returns
    -------
    MergeResult
        The merge outcome. On "applied" the manifest on disk now holds
        ``result.manifest_text``; otherwise the file is untouched.
    """
    pom = manifest_path(project_root)
    try:
        pom_text = pom.read_text(encoding="utf-8")
    except OSError as e:
        logger.error("Failed to read %s: %s", pom, e)
        return MergeResult(status=ERROR, manifest_text="", error=f"Failed to read manifest: {e}")

    result = merge_dependencies(pom_text, fragment, allowed_groups)
    if not result.applied:
        logger.info("pom.xml not modified (%s%s)", result.status, f": {result.error}" if result.error else "")
        return result

    try:
        pom.write_text(result.manifest_text, encoding="utf-8")
    except OSError as e:
        logger.error("Failed to write %s: %s", pom, e)
        return MergeResult(
            status=ERROR,
            manifest_text=pom_text,
            skipped=result.skipped,
            error=f"Failed to write manifest: {e}",
        )

    logger.info(
        "pom.xml updated | added=%s | updated=%s | skipped=%d",
        result.added, result.updated, len(result.skipped),
    )
    return result
