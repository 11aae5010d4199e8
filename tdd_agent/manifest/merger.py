"""
Manifest Dependency Merger
==========================
Reconciles generator-suggested <dependency> entries into an existing
pom.xml without destroying pre-existing entries.

Pipeline:
    1. Sanitize the candidate fragment (comments, <dependencies> wrappers)
    2. Parse <dependency> blocks in document order (per-block tolerant)
    3. Filter policy: allow-listed groups only, never BOM imports
    4. Nothing left → no-op, manifest returned unchanged
    5. Parse the manifest's project-level <dependencies> section into an ordered map
    6. Upsert candidates by groupId:artifactId (replace in place / append)
    7. Rebuild that one section from the map; everything else byte-identical

Contract:
    - DETERMINISTIC and total: always returns a MergeResult, never raises.
    - Idempotent: merging the same fragment twice equals merging it once.
    - Regex based, same as the rest of the parsing layer; no XML DOM
      round-trip, so formatting outside the section is untouched.
"""
import re
import logging
from typing import Iterable, Iterator, Optional

from tdd_agent.core.config import ALLOWED_DEPENDENCY_GROUPS
from tdd_agent.models.dependency import DependencyDescriptor
from tdd_agent.models.merge_result import (
    MergeResult,
    SkippedDependency,
    APPLIED,
    NO_OP,
    ERROR,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_WRAPPER_RE = re.compile(r"</?dependencies\s*>")
_SECTION_RE = re.compile(r"<dependencies\s*>.*?</dependencies\s*>", re.DOTALL)
_BLOCK_RE = re.compile(r"<dependency\s*>.*?</dependency\s*>", re.DOTALL)
# <dependencies> lists that are not the project's own
_NESTED_RE = re.compile(
    r"<(dependencyManagement|plugin|profile)\b[^>]*>.*?</\1\s*>", re.DOTALL
)

_BOM_TYPE = "pom"


def _field(xml: str, tag: str) -> Optional[str]:
    match = re.search(rf"<{tag}\s*>(.*?)</{tag}\s*>", xml, re.DOTALL)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def parse_dependency(xml: str) -> Optional[DependencyDescriptor]:
    """
    Parse one <dependency> element.

    Returns None when groupId or artifactId is missing.
    """
    group_id = _field(xml, "groupId")
    artifact_id = _field(xml, "artifactId")
    if group_id is None or artifact_id is None:
        return None
    return DependencyDescriptor(
        group_id=group_id,
        artifact_id=artifact_id,
        version=_field(xml, "version"),
        scope=_field(xml, "scope"),
        type=_field(xml, "type"),
        raw=xml,
    )


def _iter_blocks(text: str) -> Iterator[tuple[str, Optional[DependencyDescriptor]]]:
    for match in _BLOCK_RE.finditer(text):
        raw = match.group(0)
        yield raw, parse_dependency(raw)


def sanitize_fragment(fragment: str) -> str:
    """Drop comments and any <dependencies> wrapper tags from a fragment."""
    cleaned = _COMMENT_RE.sub("", fragment or "")
    cleaned = _WRAPPER_RE.sub("", cleaned)
    return cleaned.strip()


def _find_project_section(manifest: str) -> Optional[re.Match]:
    """
    First <dependencies> region outside comments, <dependencyManagement>,
    <plugin> and <profile>. Offsets refer to ``manifest`` itself.
    """
    def blank(match: re.Match) -> str:
        return " " * len(match.group(0))

    masked = _COMMENT_RE.sub(blank, manifest)
    masked = _NESTED_RE.sub(blank, masked)
    return _SECTION_RE.search(masked)


def _line_indent(text: str, position: int) -> str:
    """Whitespace between the start of the line and ``position``."""
    line_start = text.rfind("\n", 0, position) + 1
    prefix = text[line_start:position]
    return prefix if not prefix.strip() else ""


def _render_section(deps: Iterable[DependencyDescriptor], rebuilt: set[str], indent: str) -> str:
    entry_indent = indent + "  "
    lines = ["<dependencies>"]
    for dep in deps:
        if dep.key in rebuilt or not dep.raw:
            lines.append(dep.to_xml(entry_indent))
        else:
            lines.append(entry_indent + dep.raw)
    lines.append(f"{indent}</dependencies>")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def merge_dependencies(
    existing_manifest: str,
    fragment: str,
    allowed_groups: Iterable[str] = ALLOWED_DEPENDENCY_GROUPS,
) -> MergeResult:
    """
    Merge candidate dependencies into the manifest's dependency section.

    Parameters
    ----------
    existing_manifest : str
        Full current pom.xml text.
    fragment : str
        Generator output containing one or more <dependency> elements.
    allowed_groups : Iterable[str]
        groupIds the merge is allowed to add or replace.

    Returns
    -------
    MergeResult
        status "applied" with the new manifest text, "no_op" when nothing
        survived filtering, or "error" when the fragment or manifest could
        not be parsed at all. Only "applied" results should be written.
    """
    allowed = set(allowed_groups)
    skipped: list[SkippedDependency] = []

    # --- Steps 1-2: sanitize and parse candidate blocks ---
    cleaned = sanitize_fragment(fragment)
    blocks = list(_iter_blocks(cleaned))
    if not blocks:
        logger.warning("No <dependency> elements found in candidate fragment")
        return MergeResult(
            status=ERROR,
            manifest_text=existing_manifest,
            error="Candidate fragment contains no <dependency> elements",
        )

    # --- Step 3: filter policy ---
    candidates: list[DependencyDescriptor] = []
    for raw, dep in blocks:
        if dep is None:
            logger.warning("Skipping dependency without groupId/artifactId: %s", " ".join(raw.split()))
            skipped.append(SkippedDependency(
                dependency=" ".join(raw.split()),
                reason="missing groupId or artifactId",
            ))
            continue
        if dep.group_id not in allowed:
            logger.info("Skipping dependency outside allowed groups: %s", dep)
            skipped.append(SkippedDependency(dependency=str(dep), reason="group not allowed"))
            continue
        if dep.type == _BOM_TYPE:
            logger.info("Skipping BOM dependency: %s", dep)
            skipped.append(SkippedDependency(dependency=str(dep), reason="bill-of-materials import"))
            continue
        candidates.append(dep)

    # --- Step 4: nothing to merge ---
    if not candidates:
        logger.info("No valid dependencies to add; manifest left unchanged")
        return MergeResult(status=NO_OP, manifest_text=existing_manifest, skipped=skipped)

    # --- Step 5: existing dependency section ---
    section = _find_project_section(existing_manifest or "")
    if section is None:
        logger.error("Manifest has no project <dependencies> section; merge aborted")
        return MergeResult(
            status=ERROR,
            manifest_text=existing_manifest,
            skipped=skipped,
            error="Manifest has no project <dependencies> section",
        )

    state: dict[str, DependencyDescriptor] = {}
    for _raw, dep in _iter_blocks(_COMMENT_RE.sub("", existing_manifest[section.start():section.end()])):
        if dep is not None:
            state[dep.key] = dep

    # --- Step 6: upsert by key ---
    added: list[str] = []
    updated: list[str] = []
    for dep in candidates:
        if dep.key in state:
            logger.info("Updating existing dependency: %s", dep.key)
            if dep.key not in updated:
                updated.append(dep.key)
        else:
            logger.info("Adding new dependency: %s", dep.key)
            added.append(dep.key)
        state[dep.key] = dep

    # --- Step 7: rebuild the section in place ---
    rebuilt_keys = {dep.key for dep in candidates}
    indent = _line_indent(existing_manifest, section.start())
    block = _render_section(state.values(), rebuilt_keys, indent)
    merged = existing_manifest[:section.start()] + block + existing_manifest[section.end():]

    return MergeResult(
        status=APPLIED,
        manifest_text=merged,
        added=added,
        updated=updated,
        skipped=skipped,
    )
