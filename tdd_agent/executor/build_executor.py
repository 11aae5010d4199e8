"""
Build Executor
==============
Runs ``mvn -Dstyle.color=never test`` for a project, either as a local
subprocess or inside an ephemeral Docker container, and returns the
combined output.

BOUNDARY RULES (CRITICAL):
    - Executor ONLY observes execution.
    - Executor NEVER fixes code or edits the manifest.
    - Executor NEVER classifies failures — that is the Classifier's job.
    - Executor NEVER calls the LLM.

FAIL-OPEN:
    Infrastructure problems (Maven missing, Docker unreachable, timeout) are
    reported as "Error running Maven: ..." text. Such output never contains
    the success marker, so the loop simply sees a failing build.

DOCKER STRATEGY:
    - One container per build (ephemeral).
    - Project mounted as volume at /workspace.
    - Container destroyed after execution.
"""
import time
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import docker
from docker.errors import ImageNotFound, APIError, DockerException

from tdd_agent.core.config import BUILD_MODE, MAVEN_COMMAND, DOCKER_IMAGE, BUILD_TIMEOUT_SECONDS
from tdd_agent.core.constants import MAVEN_TEST_ARGS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Execution Result
# ---------------------------------------------------------------------------
@dataclass
class ExecutionResult:
    """
    Structured output from a single build/test execution.

    Fields
    ------
    exit_code : int
        Process exit code (0 = success, -1 = infrastructure failure).
    full_log : str
        Combined stdout + stderr.
    execution_time_seconds : float
        Wall clock duration of the execution.
    environment_metadata : dict
        Runtime info: mode, image, container id, timeout applied.
    error : str | None
        Infrastructure error message (not build errors).
    """
    exit_code: int = -1
    full_log: str = ""
    execution_time_seconds: float = 0.0
    environment_metadata: dict = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def output(self) -> str:
        """Text handed to the loop: the build log, or the infrastructure error."""
        if self.error:
            return f"Error running Maven: {self.error}\n{self.full_log}".rstrip("\n") + "\n"
        return self.full_log


# ---------------------------------------------------------------------------
# Log Excerpt Helper
# ---------------------------------------------------------------------------
_EXCERPT_HEAD_LINES = 30
_EXCERPT_TAIL_LINES = 30


def create_log_excerpt(full_log: str,
                       head: int = _EXCERPT_HEAD_LINES,
                       tail: int = _EXCERPT_TAIL_LINES) -> str:
    """
    Create an abbreviated log showing the first and last N lines.

    If the log is short enough, it is returned as-is.
    """
    lines = full_log.splitlines()
    total = len(lines)

    if total <= head + tail:
        return full_log

    omitted = total - head - tail
    return "\n".join(
        lines[:head]
        + [f"\n... ({omitted} lines omitted) ...\n"]
        + lines[-tail:]
    )


# ---------------------------------------------------------------------------
# Local Execution
# ---------------------------------------------------------------------------
def run_locally(
    project_root: Path,
    maven_command: str = MAVEN_COMMAND,
    timeout_seconds: Optional[float] = BUILD_TIMEOUT_SECONDS,
) -> ExecutionResult:
    """Run Maven as a subprocess in ``project_root``."""
    result = ExecutionResult()
    start_time = time.monotonic()
    result.environment_metadata = {
        "mode": "local",
        "command": maven_command,
        "timeout_applied": timeout_seconds,
    }

    try:
        completed = subprocess.run(
            [maven_command, *MAVEN_TEST_ARGS],
            cwd=str(project_root),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout_seconds,
        )
        result.exit_code = completed.returncode
        result.full_log = completed.stdout or ""
    except subprocess.TimeoutExpired as e:
        result.error = f"build timed out after {timeout_seconds}s"
        partial = e.stdout or ""
        result.full_log = partial.decode("utf-8", errors="replace") if isinstance(partial, bytes) else partial
        logger.error(result.error)
    except OSError as e:
        result.error = f"{type(e).__name__}: {e}"
        logger.error("Could not start Maven (%s): %s", maven_command, e)

    result.execution_time_seconds = round(time.monotonic() - start_time, 3)
    return result


# ---------------------------------------------------------------------------
# Container Execution
# ---------------------------------------------------------------------------
_MEMORY_LIMIT = "2g"
_CPU_COUNT = 2


def run_in_container(
    project_root: Path,
    docker_image: str = DOCKER_IMAGE,
    timeout_seconds: Optional[float] = BUILD_TIMEOUT_SECONDS,
) -> ExecutionResult:
    """
    Run Maven inside an ephemeral Docker container with the project mounted.

    Always returns a result — never raises.
    """
    result = ExecutionResult()
    start_time = time.monotonic()
    container = None
    workspace = str(Path(project_root).resolve())

    try:
        client = docker.from_env()

        logger.info(
            "Starting container | image=%s | project=%s | timeout=%s",
            docker_image, workspace, timeout_seconds,
        )

        container = client.containers.run(
            image=docker_image,
            command=["mvn", *MAVEN_TEST_ARGS],
            volumes={workspace: {"bind": "/workspace", "mode": "rw"}},
            working_dir="/workspace",
            mem_limit=_MEMORY_LIMIT,
            nano_cpus=_CPU_COUNT * 1_000_000_000,
            labels={"project": "tdd-agent", "role": "maven-build"},
            detach=True,
            stdout=True,
            stderr=True,
        )

        wait_result = container.wait(timeout=timeout_seconds)
        result.exit_code = wait_result.get("StatusCode", -1)

        log_bytes = container.logs(stdout=True, stderr=True)
        result.full_log = log_bytes.decode("utf-8", errors="replace")

        result.environment_metadata = {
            "mode": "docker",
            "image": docker_image,
            "container_id": container.short_id,
            "timeout_applied": timeout_seconds,
        }

    except ImageNotFound:
        result.error = f"Docker image '{docker_image}' not found"
        logger.error(result.error)

    except APIError as e:
        result.error = f"Docker API error: {e}"
        logger.error(result.error)

    except DockerException as e:
        result.error = f"Docker unavailable: {e}"
        logger.error(result.error)

    except Exception as e:
        # Catch-all: the loop must always receive a result
        result.error = f"Unexpected executor error: {type(e).__name__}: {e}"
        logger.exception(result.error)

    finally:
        if container is not None:
            try:
                container.remove(force=True)
                logger.info("Container %s destroyed", container.short_id)
            except Exception:
                logger.warning("Failed to remove container", exc_info=True)

    result.execution_time_seconds = round(time.monotonic() - start_time, 3)
    return result


# ---------------------------------------------------------------------------
# Loop-facing entry point
# ---------------------------------------------------------------------------
def execute_build(project_root: Path, mode: str = BUILD_MODE) -> ExecutionResult:
    """Run the build/test cycle in the configured mode."""
    if mode == "docker":
        result = run_in_container(project_root)
    else:
        result = run_locally(project_root)

    logger.info(
        "Build complete | mode=%s | exit=%d | time=%.2fs",
        mode, result.exit_code, result.execution_time_seconds,
    )
    return result


def run_build_and_tests(project_root: Path) -> str:
    """Run the build and return its raw output text (fail-open)."""
    return execute_build(project_root).output
