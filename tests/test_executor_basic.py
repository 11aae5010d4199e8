"""
Unit Tests — Build Executor (Basic)
====================================
Tests for log excerpting, local Maven execution, container execution and
mode dispatch, all with mocked subprocess / Docker.

Neither Maven nor a Docker daemon is required to run these tests.
"""
import subprocess
import pytest
from unittest.mock import patch, MagicMock

from tdd_agent.executor.build_executor import (
    create_log_excerpt,
    run_locally,
    run_in_container,
    execute_build,
    run_build_and_tests,
    ExecutionResult,
)


# ---------------------------------------------------------------------------
# 1. Log Excerpt
# ---------------------------------------------------------------------------
class TestLogExcerpt:

    def test_short_log_returned_as_is(self):
        log = "line1\nline2\nline3"
        assert create_log_excerpt(log) == log

    def test_long_log_truncated(self):
        lines = [f"line {i}" for i in range(200)]
        full = "\n".join(lines)
        excerpt = create_log_excerpt(full, head=5, tail=5)
        assert "line 0" in excerpt
        assert "line 199" in excerpt
        assert "line 100" not in excerpt
        assert "(190 lines omitted)" in excerpt

    def test_empty_log(self):
        assert create_log_excerpt("") == ""

    def test_exact_boundary(self):
        """Log with exactly head+tail lines should not be truncated."""
        lines = [f"line {i}" for i in range(10)]
        full = "\n".join(lines)
        excerpt = create_log_excerpt(full, head=5, tail=5)
        assert "omitted" not in excerpt


# ---------------------------------------------------------------------------
# 2. ExecutionResult Structure
# ---------------------------------------------------------------------------
class TestExecutionResult:

    def test_default_values(self):
        r = ExecutionResult()
        assert r.exit_code == -1
        assert r.full_log == ""
        assert r.execution_time_seconds == 0.0
        assert r.environment_metadata == {}
        assert r.error is None

    def test_output_is_log_when_no_error(self):
        r = ExecutionResult(exit_code=1, full_log="[INFO] BUILD FAILURE\n")
        assert r.output == "[INFO] BUILD FAILURE\n"

    def test_output_reports_infrastructure_error(self):
        r = ExecutionResult(error="FileNotFoundError: mvn")
        assert r.output.startswith("Error running Maven: FileNotFoundError: mvn")
        assert "BUILD SUCCESS" not in r.output


# ---------------------------------------------------------------------------
# 3. run_locally (Mocked subprocess)
# ---------------------------------------------------------------------------
class TestRunLocally:

    @patch("tdd_agent.executor.build_executor.subprocess.run")
    def test_runs_maven_test_in_project(self, mock_run, tmp_path):
        mock_run.return_value = subprocess.CompletedProcess(
            args=["mvn"], returncode=0, stdout="[INFO] BUILD SUCCESS\n",
        )

        result = run_locally(tmp_path, maven_command="mvn", timeout_seconds=60)

        args, kwargs = mock_run.call_args
        assert args[0] == ["mvn", "-Dstyle.color=never", "test"]
        assert kwargs["cwd"] == str(tmp_path)
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["timeout"] == 60
        assert result.exit_code == 0
        assert result.full_log == "[INFO] BUILD SUCCESS\n"
        assert result.error is None
        assert result.environment_metadata["mode"] == "local"

    @patch("tdd_agent.executor.build_executor.subprocess.run")
    def test_failing_build_is_not_an_error(self, mock_run, tmp_path):
        mock_run.return_value = subprocess.CompletedProcess(
            args=["mvn"], returncode=1, stdout="[ERROR] Tests run: 1, Failures: 1\n",
        )
        result = run_locally(tmp_path)
        assert result.exit_code == 1
        assert result.error is None
        assert "Failures: 1" in result.output

    @patch("tdd_agent.executor.build_executor.subprocess.run")
    def test_missing_maven_returns_error(self, mock_run, tmp_path):
        mock_run.side_effect = FileNotFoundError(2, "No such file or directory", "mvn")
        result = run_locally(tmp_path)
        assert result.exit_code == -1
        assert "FileNotFoundError" in result.error
        assert result.output.startswith("Error running Maven:")

    @patch("tdd_agent.executor.build_executor.subprocess.run")
    def test_timeout_keeps_partial_output(self, mock_run, tmp_path):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="mvn", timeout=5, output=b"[INFO] Compiling\n")
        result = run_locally(tmp_path, timeout_seconds=5)
        assert "timed out" in result.error
        assert "[INFO] Compiling" in result.full_log


# ---------------------------------------------------------------------------
# 4. run_in_container (Mocked Docker)
# ---------------------------------------------------------------------------
class TestRunInContainerMocked:

    @patch("tdd_agent.executor.build_executor.docker")
    def test_successful_execution(self, mock_docker, tmp_path):
        """Mock a full successful container run."""
        mock_container = MagicMock()
        mock_container.wait.return_value = {"StatusCode": 0}
        mock_container.logs.return_value = b"[INFO] BUILD SUCCESS\n"
        mock_container.short_id = "abc123"

        mock_client = MagicMock()
        mock_client.containers.run.return_value = mock_container
        mock_docker.from_env.return_value = mock_client

        result = run_in_container(tmp_path, docker_image="maven:test")

        kwargs = mock_client.containers.run.call_args.kwargs
        assert kwargs["image"] == "maven:test"
        assert kwargs["command"] == ["mvn", "-Dstyle.color=never", "test"]
        assert kwargs["working_dir"] == "/workspace"
        assert str(tmp_path.resolve()) in kwargs["volumes"]
        assert result.exit_code == 0
        assert "BUILD SUCCESS" in result.full_log
        assert result.error is None
        assert result.environment_metadata["container_id"] == "abc123"
        mock_container.remove.assert_called_once_with(force=True)

    @patch("tdd_agent.executor.build_executor.docker")
    def test_failed_execution_returns_result(self, mock_docker, tmp_path):
        """Non-zero exit must still return a valid ExecutionResult."""
        mock_container = MagicMock()
        mock_container.wait.return_value = {"StatusCode": 1}
        mock_container.logs.return_value = b"[INFO] BUILD FAILURE\n"
        mock_container.short_id = "def456"

        mock_client = MagicMock()
        mock_client.containers.run.return_value = mock_container
        mock_docker.from_env.return_value = mock_client

        result = run_in_container(tmp_path)

        assert result.exit_code == 1
        assert "BUILD FAILURE" in result.full_log
        assert result.error is None  # build failure, not infra error

    @patch("tdd_agent.executor.build_executor.docker")
    def test_unexpected_error_returns_error(self, mock_docker, tmp_path):
        """Container start failure must return error, not raise."""
        mock_client = MagicMock()
        mock_client.containers.run.side_effect = Exception("Image not found")
        mock_docker.from_env.return_value = mock_client

        result = run_in_container(tmp_path)

        assert result.exit_code == -1
        assert result.error is not None
        assert result.output.startswith("Error running Maven:")

    @patch("tdd_agent.executor.build_executor.docker")
    def test_container_always_cleaned_up(self, mock_docker, tmp_path):
        """Container must be removed even if log capture fails."""
        mock_container = MagicMock()
        mock_container.wait.return_value = {"StatusCode": 0}
        mock_container.logs.side_effect = RuntimeError("log stream broke")
        mock_container.short_id = "ghi789"

        mock_client = MagicMock()
        mock_client.containers.run.return_value = mock_container
        mock_docker.from_env.return_value = mock_client

        result = run_in_container(tmp_path)

        assert result.error is not None
        mock_container.remove.assert_called_once_with(force=True)


# ---------------------------------------------------------------------------
# 5. Mode Dispatch
# ---------------------------------------------------------------------------
class TestExecuteBuild:

    @patch("tdd_agent.executor.build_executor.run_in_container")
    @patch("tdd_agent.executor.build_executor.run_locally")
    def test_local_mode(self, mock_local, mock_container, tmp_path):
        mock_local.return_value = ExecutionResult(exit_code=0, full_log="ok")
        execute_build(tmp_path, mode="local")
        mock_local.assert_called_once_with(tmp_path)
        mock_container.assert_not_called()

    @patch("tdd_agent.executor.build_executor.run_in_container")
    @patch("tdd_agent.executor.build_executor.run_locally")
    def test_docker_mode(self, mock_local, mock_container, tmp_path):
        mock_container.return_value = ExecutionResult(exit_code=0, full_log="ok")
        execute_build(tmp_path, mode="docker")
        mock_container.assert_called_once_with(tmp_path)
        mock_local.assert_not_called()

    @patch("tdd_agent.executor.build_executor.execute_build")
    def test_run_build_and_tests_returns_text(self, mock_execute, tmp_path):
        mock_execute.return_value = ExecutionResult(exit_code=0, full_log="[INFO] BUILD SUCCESS\n")
        assert run_build_and_tests(tmp_path) == "[INFO] BUILD SUCCESS\n"
