"""
Results Writer
==============
Serializes a finished RunResult into a results JSON file.
"""
import json
import logging
import os
from datetime import datetime, timezone

from tdd_agent.models.generation_target import GenerationTarget
from tdd_agent.models.run_result import RunResult

logger = logging.getLogger(__name__)


class ResultsWriter:
    """
    Service responsible for compiling the history of a convergence run
    into a structured JSON file for the dashboard.
    """

    @staticmethod
    def build_payload(result: RunResult, target: GenerationTarget, project_root: str) -> dict:
        return {
            "target": {
                "class_name": target.class_name,
                "package_name": target.package_name or "",
                "qualified_name": target.qualified_name,
                "project_root": str(project_root),
            },
            "iterations": [s.model_dump() for s in result.snapshots],
            "final_results": {
                "success": result.success,
                "status": result.status,
                "cycles_run": result.cycles_run,
                "iterations_run": result.iterations_run,
                "elapsed_seconds": result.elapsed_seconds,
                "summary": result.summary,
            },
            "written_at": datetime.now(timezone.utc).isoformat(),
        }

    @staticmethod
    def write_results(
        result: RunResult,
        target: GenerationTarget,
        project_root: str,
        output_path: str = "results.json",
    ) -> bool:
        """
        Compile the run and write it as JSON. Returns False on failure.
        """
        try:
            data = ResultsWriter.build_payload(result, target, project_root)

            abs_output = os.path.abspath(output_path)
            os.makedirs(os.path.dirname(abs_output), exist_ok=True)
            logger.info("Writing final results to %s", abs_output)

            with open(abs_output, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)

            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write results: %s", e, exc_info=True)
            return False
