"""
Workspace Service
=================
File-system side of the convergence loop inside a Maven project.

Layout (fixed conventions):
    <root>/src/main/java/<package path>/<Class>.java       — target unit
    <root>/src/test/java/<package path>/<Class>Test.java   — test unit

Philosophy:
    - The unit is always written in full, never patched.
    - A missing test class is not fatal; an empty source is used instead.
"""
import re
import logging
from pathlib import Path
from typing import Optional

from tdd_agent.core.constants import SOURCE_ROOT, TEST_ROOT, SOURCE_EXTENSION, TEST_CLASS_SUFFIX
from tdd_agent.models.generation_target import GenerationTarget

logger = logging.getLogger(__name__)

_PACKAGE_RE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.MULTILINE)


def extract_package(source: str) -> Optional[str]:
    """Return the package declared in ``source``, or None."""
    match = _PACKAGE_RE.search(source or "")
    return match.group(1) if match else None


def _package_dir(package_name: Optional[str]) -> str:
    return package_name.replace(".", "/") if package_name else ""


def unit_path(target: GenerationTarget, project_root: Path) -> Path:
    """Conventional path of the target unit for the target's own package."""
    return Path(project_root) / SOURCE_ROOT / target.package_path / f"{target.class_name}{SOURCE_EXTENSION}"


def conventional_test_path(target: GenerationTarget, project_root: Path) -> Path:
    return (
        Path(project_root) / TEST_ROOT / target.package_path
        / f"{target.class_name}{TEST_CLASS_SUFFIX}{SOURCE_EXTENSION}"
    )


def unit_exists(target: GenerationTarget, project_root: Path) -> bool:
    return unit_path(target, project_root).is_file()


def write_unit(
    class_name: str,
    package_name: Optional[str],
    source: str,
    project_root: Path,
) -> Path:
    """
    Write the full source of a unit, creating directories as needed.

    The package declared in ``source`` decides the file location; when the
    source declares none and ``package_name`` is given, a declaration is
    prepended.

    Returns
    -------
    Path
        The file that was written.
    """
    declared = extract_package(source)
    final_package = declared or package_name or ""

    if declared is None and final_package:
        source = f"package {final_package};\n\n{source}"

    path = Path(project_root) / SOURCE_ROOT / _package_dir(final_package) / f"{class_name}{SOURCE_EXTENSION}"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source, encoding="utf-8")

    logger.info("Wrote class to: %s", path)
    return path


def load_test_source(target: GenerationTarget, project_root: Path) -> str:
    """Read the conventional test class for ``target``; "" if absent or unreadable."""
    path = conventional_test_path(target, project_root)
    if not path.is_file():
        logger.warning("Test class not found: %s", path)
        return ""
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to read test class %s: %s", path, e)
        return ""
    logger.info("Loaded test class: %s", path)
    return source
