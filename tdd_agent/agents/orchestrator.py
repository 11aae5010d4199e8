"""
Orchestrator Agent
==================
The convergence loop of the TDD agent.
Drives the Build → Classify → Fix → Build loop for one target class.

Policy:
    - Up to ``max_cycles`` cycles (default: 2); a cycle stops on the first
      build whose output carries the success marker.
    - Each cycle runs up to ``max_iterations`` iterations (default: 30):
        1. run the build
        2. dependency-resolution failure → manifest round (pom.xml merge);
           when the merge is applied the source round is skipped
        3. success marker → done
        4. otherwise primary-fix prompt → primary model → ```java block →
           full overwrite of the unit
    - Budget spent → escalation: fallback prompt → fallback model, write,
      one more build per written attempt (``fallback_attempts``, default 1);
      that outcome is the cycle's result.
    - A failed cycle is not rolled back; the next cycle starts from disk.

Statelessness:
    Nothing carries over between iterations except the files on disk and
    the last build output. Progress is only ever judged by re-running the
    real build, never by inspecting what the generator produced.

Blocking Work:
    The build runner is synchronous (subprocess / Docker). It is run in a
    worker thread so that other runs and API requests keep being served
    while Maven works.

Fault Tolerance:
    Collaborator failures (generator, build tool, disk) are logged and
    turned into "no actionable output this round". Exhaustion is returned
    as a RunResult, never raised.
"""
import time
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from tdd_agent.core.config import (
    MAX_CYCLES,
    MAX_ITERATIONS,
    FALLBACK_ATTEMPTS,
    SUCCESS_MARKER,
    PRIMARY_MODEL,
    FALLBACK_MODEL,
    ALLOWED_DEPENDENCY_GROUPS,
)
from tdd_agent.executor.build_executor import run_build_and_tests, create_log_excerpt
from tdd_agent.llm.client import Generator, LLMClient
from tdd_agent.llm.prompts import build_primary_prompt, build_fallback_prompt, build_manifest_prompt
from tdd_agent.manifest.pom_writer import apply_manifest_fragment
from tdd_agent.models.build_result import BuildResult
from tdd_agent.models.generation_target import GenerationTarget
from tdd_agent.models.iteration_snapshot import (
    IterationSnapshot,
    ACTION_TESTS_GREEN,
    ACTION_MANIFEST_UPDATED,
    ACTION_SOURCE_WRITTEN,
    ACTION_NO_CODE,
    ACTION_ESCALATED,
)
from tdd_agent.models.run_result import RunResult
from tdd_agent.parser.classification import FailureCategory, classify
from tdd_agent.parser.code_extractor import extract_java, extract_xml
from tdd_agent.services.workspace import write_unit, load_test_source, unit_exists

logger = logging.getLogger(__name__)

BuildRunner = Callable[[Path], str]


@dataclass(frozen=True)
class LoopConfig:
    """Convergence policy and generator identities for one orchestrator."""
    max_cycles: int = MAX_CYCLES
    max_iterations: int = MAX_ITERATIONS
    fallback_attempts: int = FALLBACK_ATTEMPTS
    success_marker: str = SUCCESS_MARKER
    primary_model: str = PRIMARY_MODEL
    fallback_model: str = FALLBACK_MODEL
    allowed_dependency_groups: tuple[str, ...] = ALLOWED_DEPENDENCY_GROUPS


class Orchestrator:
    """
    Runs the convergence loop for a GenerationTarget inside a Maven project.

    Parameters
    ----------
    config : LoopConfig or None
        Loop policy (defaults from environment).
    generator : Generator or None
        Text generator (an LLMClient is created if not provided).
    build_runner : callable or None
        ``project_root -> raw build output`` (Maven executor by default).
    """

    def __init__(
        self,
        config: Optional[LoopConfig] = None,
        generator: Optional[Generator] = None,
        build_runner: Optional[BuildRunner] = None,
    ) -> None:
        self.config = config or LoopConfig()
        self.generator = generator or LLMClient()
        self.build_runner = build_runner or run_build_and_tests

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def run_full_process(self, target: GenerationTarget, project_root: Path) -> RunResult:
        """Run up to ``max_cycles`` cycles; stop at the first successful one."""
        project_root = Path(project_root)
        start = time.time()
        result = RunResult()

        for cycle in range(1, self.config.max_cycles + 1):
            logger.info("=== Starting TDD cycle %d for %s ===", cycle, target.qualified_name)
            result.cycles_run = cycle

            success = await self.run_cycle(target, project_root, cycle=cycle, snapshots=result.snapshots)
            if success:
                result.success = True
                result.status = "success"
                result.summary = f"All tests green after cycle {cycle}."
                logger.info(result.summary)
                break

            logger.warning("Cycle %d did not fully succeed.", cycle)
        else:
            result.status = "exhausted"
            result.summary = f"All {self.config.max_cycles} cycle(s) completed. Tests still not green."
            logger.warning(result.summary)

        result.iterations_run = sum(1 for s in result.snapshots if s.iteration > 0)
        result.elapsed_seconds = round(time.time() - start, 3)
        logger.info("Run finished | status=%s | time=%.2fs", result.status, result.elapsed_seconds)
        return result

    async def run_cycle(
        self,
        target: GenerationTarget,
        project_root: Path,
        cycle: int = 1,
        snapshots: Optional[List[IterationSnapshot]] = None,
    ) -> bool:
        """
        Run up to ``max_iterations`` iterations, then escalate once.

        Returns
        -------
        bool
            True as soon as a build output carries the success marker.
        """
        project_root = Path(project_root)
        if snapshots is None:
            snapshots = []

        test_source = load_test_source(target, project_root)
        last_output = ""

        for iteration in range(1, self.config.max_iterations + 1):
            iter_start = time.time()
            logger.info("=== Cycle %d, iteration %d ===", cycle, iteration)

            # --- (a) Build ---
            build = await self._build(project_root)
            last_output = build.output
            category = classify(
                build.output,
                unit_exists(target, project_root),
                self.config.success_marker,
            )

            def record(action: str, model: str = "") -> None:
                snapshots.append(IterationSnapshot(
                    cycle=cycle,
                    iteration=iteration,
                    category=category.value,
                    action=action,
                    model=model,
                    build_log_snippet=create_log_excerpt(build.output),
                    iteration_time_seconds=round(time.time() - iter_start, 3),
                ))

            # --- (b) Dependency round ---
            if category is FailureCategory.DEPENDENCY_RESOLUTION_FAILURE:
                logger.info("Dependency resolution errors detected. Attempting to fix pom.xml...")
                if await self._fix_manifest(project_root, build.output):
                    logger.info("pom.xml updated. Re-running tests...")
                    record(ACTION_MANIFEST_UPDATED, self.config.primary_model)
                    continue
                logger.warning("Failed to fix pom.xml; falling back to a source round.")

            # --- (c) Success ---
            if category is FailureCategory.NO_FAILURE:
                logger.info("All tests green!")
                record(ACTION_TESTS_GREEN)
                return True

            # --- (d) Source round ---
            logger.info("Test failures detected (cycle %d, iteration %d)", cycle, iteration)
            logger.debug("Build output:\n%s", build.output)
            prompt = build_primary_prompt(target, test_source, build.output)
            response = await self._generate(self.config.primary_model, prompt)
            written = self._write_source(target, project_root, response)
            record(ACTION_SOURCE_WRITTEN if written else ACTION_NO_CODE, self.config.primary_model)

        logger.warning(
            "Primary model stuck after %d iterations. Switching to %s for final attempt...",
            self.config.max_iterations, self.config.fallback_model,
        )
        return await self._escalate(target, project_root, test_source, last_output, cycle, snapshots)

    # -------------------------------------------------------------------
    # Internal Helpers
    # -------------------------------------------------------------------
    async def _escalate(
        self,
        target: GenerationTarget,
        project_root: Path,
        test_source: str,
        last_output: str,
        cycle: int,
        snapshots: List[IterationSnapshot],
    ) -> bool:
        """Call the fallback model, write its class and judge it by one build."""
        for attempt in range(1, self.config.fallback_attempts + 1):
            attempt_start = time.time()
            prompt = build_fallback_prompt(target, test_source, last_output)
            response = await self._generate(self.config.fallback_model, prompt)

            if not self._write_source(target, project_root, response):
                logger.warning("Fallback attempt %d did not return valid Java code.", attempt)
                snapshots.append(IterationSnapshot(
                    cycle=cycle,
                    iteration=0,
                    action=ACTION_NO_CODE,
                    model=self.config.fallback_model,
                    iteration_time_seconds=round(time.time() - attempt_start, 3),
                ))
                continue

            logger.info("Fallback model wrote a full class. Re-running tests...")
            build = await self._build(project_root)
            snapshots.append(IterationSnapshot(
                cycle=cycle,
                iteration=0,
                category=classify(
                    build.output, unit_exists(target, project_root), self.config.success_marker,
                ).value,
                action=ACTION_ESCALATED,
                model=self.config.fallback_model,
                build_log_snippet=create_log_excerpt(build.output),
                iteration_time_seconds=round(time.time() - attempt_start, 3),
            ))
            if build.tests_passed:
                logger.info("All tests green after escalation!")
                return True
            last_output = build.output

        return False

    async def _build(self, project_root: Path) -> BuildResult:
        # Maven blocks for the whole build; keep the event loop free
        try:
            output = await asyncio.to_thread(self.build_runner, project_root)
        except Exception as e:
            logger.exception("Build runner failed")
            output = f"Error running Maven: {type(e).__name__}: {e}"
        return BuildResult.from_output(output, self.config.success_marker)

    async def _generate(self, model: str, prompt: str) -> str:
        logger.debug("Prompt sent to %s:\n%s", model, prompt)
        try:
            response = await self.generator.generate(model, prompt)
        except Exception as e:
            logger.exception("Generator call to %s failed", model)
            return f"Error calling generator ({model}): {type(e).__name__}: {e}"
        logger.debug("AI response from %s:\n%s", model, response)
        return response or ""

    async def _fix_manifest(self, project_root: Path, build_output: str) -> bool:
        """Ask for missing <dependency> entries and merge them into pom.xml."""
        prompt = build_manifest_prompt(build_output)
        response = await self._generate(self.config.primary_model, prompt)

        fragment = extract_xml(response)
        if fragment is None:
            logger.warning("No ```xml block with <dependency> entries found in AI response.")
            return False

        result = apply_manifest_fragment(
            project_root, fragment, self.config.allowed_dependency_groups,
        )
        for skipped in result.skipped:
            logger.info("Skipped dependency %s (%s)", skipped.dependency, skipped.reason)
        return result.applied

    def _write_source(self, target: GenerationTarget, project_root: Path, response: str) -> bool:
        """Extract the ```java block and overwrite the unit; False if nothing usable."""
        source = extract_java(response)
        if source is None:
            logger.warning("No valid Java code found in AI response.")
            return False

        logger.debug("Extracted Java class:\n%s", source)
        try:
            write_unit(target.class_name, target.package_name, source, project_root)
        except OSError as e:
            logger.error("Error writing class file: %s", e)
            return False
        logger.info("Class written. Re-running tests...")
        return True
