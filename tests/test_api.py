"""
API and Run Registry Tests
==========================
Tests for POST /run-agent, GET /status/{run_id} and GET /results/{run_id}.
The orchestrator and LLM client are mocked: no real model or Maven calls.
"""
import json
import time
import asyncio
import threading

import pytest
from unittest.mock import patch, MagicMock, AsyncMock
from fastapi.testclient import TestClient

from tdd_agent.models.generation_target import GenerationTarget
from tdd_agent.models.iteration_snapshot import IterationSnapshot
from tdd_agent.models.run_result import RunResult
from tdd_agent.services import run_registry
from tdd_agent.services.results_writer import ResultsWriter


def _fake_result(status="success"):
    return RunResult(
        success=status == "success",
        status=status,
        cycles_run=1,
        iterations_run=2,
        snapshots=[
            IterationSnapshot(cycle=1, iteration=1, category="OTHER_FAILURE", action="source_written", model="primary"),
            IterationSnapshot(cycle=1, iteration=2, category="NO_FAILURE", action="tests_green"),
        ],
        elapsed_seconds=1.5,
        summary="All tests green after cycle 1.",
    )


@pytest.fixture(autouse=True)
def _clean_registry():
    run_registry.clear_runs()
    yield
    run_registry.clear_runs()


@pytest.fixture
def client():
    from main import app
    return TestClient(app)


@pytest.fixture
def project(tmp_path):
    (tmp_path / "pom.xml").write_text("<project><dependencies></dependencies></project>", encoding="utf-8")
    return tmp_path


@pytest.fixture
def mocked_loop():
    """Orchestrator and LLMClient replaced inside the registry."""
    with patch("tdd_agent.services.run_registry.Orchestrator") as mock_orch_cls, \
         patch("tdd_agent.services.run_registry.LLMClient") as mock_client_cls, \
         patch("tdd_agent.services.run_registry.ResultsWriter") as mock_writer:
        mock_orch = MagicMock()
        mock_orch.run_full_process = AsyncMock(return_value=_fake_result())
        mock_orch_cls.return_value = mock_orch

        mock_llm = MagicMock()
        mock_llm.close = AsyncMock()
        mock_client_cls.return_value = mock_llm

        mock_writer.write_results.return_value = True
        yield mock_orch, mock_llm


# ===================================================================
# POST /run-agent — validation
# ===================================================================
def test_missing_project_root_returns_400(client, tmp_path):
    resp = client.post("/run-agent", json={
        "class_name": "Calculator",
        "project_root": str(tmp_path / "nope"),
    })
    assert resp.status_code == 400
    assert "not found" in resp.json()["detail"]


def test_project_without_pom_returns_400(client, tmp_path):
    resp = client.post("/run-agent", json={"class_name": "Calculator", "project_root": str(tmp_path)})
    assert resp.status_code == 400
    assert "pom.xml" in resp.json()["detail"]


def test_invalid_class_name_returns_422(client, project):
    resp = client.post("/run-agent", json={"class_name": "Not A Class", "project_root": str(project)})
    assert resp.status_code == 422
    assert isinstance(resp.json()["detail"], list)


def test_missing_class_name_returns_422(client, project):
    resp = client.post("/run-agent", json={"project_root": str(project)})
    assert resp.status_code == 422


# ===================================================================
# Full round trip with a mocked loop
# ===================================================================
def test_run_agent_then_status_and_results(client, project, mocked_loop):
    mock_orch, mock_llm = mocked_loop

    resp = client.post("/run-agent", json={
        "class_name": "Calculator",
        "package_name": "com.example",
        "specification": "Adds numbers.",
        "project_root": str(project),
    })
    assert resp.status_code == 202
    data = resp.json()
    assert data["qualified_name"] == "com.example.Calculator"
    run_id = data["run_id"]

    # TestClient runs background tasks before returning
    mock_orch.run_full_process.assert_awaited_once()
    target, root = mock_orch.run_full_process.call_args.args
    assert target.qualified_name == "com.example.Calculator"
    assert root == project
    mock_llm.close.assert_awaited_once()

    status = client.get(f"/status/{run_id}").json()
    assert status["status"] == "success"
    assert status["iterations_run"] == 2
    assert any("started" in line for line in status["logs"])

    results = client.get(f"/results/{run_id}").json()
    assert results["success"] is True
    assert [s["action"] for s in results["snapshots"]] == ["source_written", "tests_green"]


def test_status_tail_limits_logs(client, project, mocked_loop):
    run_id = client.post("/run-agent", json={"class_name": "Calculator", "project_root": str(project)}).json()["run_id"]
    assert client.get(f"/status/{run_id}", params={"tail": 0}).json()["logs"] == []


def test_unexpected_failure_marks_run_as_error(client, project, mocked_loop):
    mock_orch, mock_llm = mocked_loop
    mock_orch.run_full_process.side_effect = RuntimeError("boom")

    run_id = client.post("/run-agent", json={"class_name": "Calculator", "project_root": str(project)}).json()["run_id"]

    status = client.get(f"/status/{run_id}").json()
    assert status["status"] == "error"
    assert "RuntimeError: boom" in status["error"]
    mock_llm.close.assert_awaited_once()
    assert client.get(f"/results/{run_id}").status_code == 409


def test_unknown_run_returns_404(client):
    assert client.get("/status/does-not-exist").status_code == 404
    assert client.get("/results/does-not-exist").status_code == 404


def test_results_before_completion_returns_409(client, project):
    target = GenerationTarget(class_name="Calculator")
    run = run_registry.create_run(target, str(project))
    resp = client.get(f"/results/{run.run_id}")
    assert resp.status_code == 409
    assert "queued" in resp.json()["detail"]


def test_health(client):
    data = client.get("/health").json()
    assert data["status"] == "ok"
    assert data["settings"]["max_cycles"] >= 1
    assert "build_mode" in data["settings"]


# ===================================================================
# Run registry — per-root serialization
# ===================================================================
class _TrackingOrchestrator:
    active = 0
    peak = 0

    def __init__(self, *args, **kwargs):
        pass

    async def run_full_process(self, target, project_root):
        cls = type(self)
        cls.active += 1
        cls.peak = max(cls.peak, cls.active)
        await asyncio.sleep(0.05)
        cls.active -= 1
        return _fake_result()


def _run_pair(tmp_path, root_a, root_b) -> int:
    _TrackingOrchestrator.active = 0
    _TrackingOrchestrator.peak = 0
    target = GenerationTarget(class_name="Calculator")
    a = run_registry.create_run(target, str(root_a))
    b = run_registry.create_run(target, str(root_b))

    async def both():
        await asyncio.gather(
            run_registry.execute_run(a.run_id, results_dir=str(tmp_path / "results")),
            run_registry.execute_run(b.run_id, results_dir=str(tmp_path / "results")),
        )

    with patch("tdd_agent.services.run_registry.Orchestrator", _TrackingOrchestrator), \
         patch("tdd_agent.services.run_registry.LLMClient") as mock_client_cls:
        mock_client_cls.return_value.close = AsyncMock()
        asyncio.run(both())

    assert run_registry.get_run(a.run_id).status == "success"
    assert run_registry.get_run(b.run_id).results_path.endswith(f"{b.run_id}.json")
    return _TrackingOrchestrator.peak


def test_same_root_runs_are_serialized(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    assert _run_pair(tmp_path, root, root) == 1


def test_different_roots_run_concurrently(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    assert _run_pair(tmp_path, tmp_path / "a", tmp_path / "b") == 2


# ===================================================================
# Results writer
# ===================================================================
def test_results_writer_writes_json(tmp_path):
    target = GenerationTarget(class_name="Calculator", package_name="com.example")
    path = tmp_path / "out" / "run.json"

    assert ResultsWriter.write_results(_fake_result(), target, "/proj", str(path)) is True

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["target"]["qualified_name"] == "com.example.Calculator"
    assert data["final_results"]["status"] == "success"
    assert len(data["iterations"]) == 2


def test_results_writer_reports_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    target = GenerationTarget(class_name="Calculator")
    assert ResultsWriter.write_results(_fake_result(), target, "/proj", str(blocker / "run.json")) is False


# ===================================================================
# Run registry — blocking builds do not stall other runs
# ===================================================================
class _BlockingBuild:
    """Synchronous build that sleeps like Maven and records overlap."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def __call__(self, project_root):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(self.seconds)
        with self._lock:
            self.active -= 1
        return "[INFO] BUILD SUCCESS\n"


def test_builds_on_distinct_roots_overlap(tmp_path):
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    target = GenerationTarget(class_name="Calculator")
    a = run_registry.create_run(target, str(tmp_path / "a"))
    b = run_registry.create_run(target, str(tmp_path / "b"))
    build = _BlockingBuild(0.3)
    ticks = []

    async def heartbeat():
        for _ in range(5):
            await asyncio.sleep(0.05)
            ticks.append(build.active)

    async def scenario():
        start = time.monotonic()
        await asyncio.gather(
            run_registry.execute_run(a.run_id, results_dir=str(tmp_path / "results")),
            run_registry.execute_run(b.run_id, results_dir=str(tmp_path / "results")),
            heartbeat(),
        )
        return time.monotonic() - start

    with patch("tdd_agent.agents.orchestrator.run_build_and_tests", build), \
         patch("tdd_agent.services.run_registry.LLMClient") as mock_client_cls:
        mock_client_cls.return_value.close = AsyncMock()
        elapsed = asyncio.run(scenario())

    assert build.peak == 2
    assert elapsed < 0.55
    # The event loop kept running while both builds were in progress
    assert any(active == 2 for active in ticks)
    assert run_registry.get_run(a.run_id).status == "success"
    assert run_registry.get_run(b.run_id).status == "success"


# ===================================================================
# Run registry — bounded memory
# ===================================================================
def _execute(run_id, tmp_path, keep_runs):
    with patch("tdd_agent.services.run_registry.Orchestrator", _TrackingOrchestrator), \
         patch("tdd_agent.services.run_registry.LLMClient") as mock_client_cls:
        mock_client_cls.return_value.close = AsyncMock()
        asyncio.run(run_registry.execute_run(
            run_id, results_dir=str(tmp_path / "results"), keep_runs=keep_runs,
        ))


def test_oldest_finished_runs_are_evicted(tmp_path):
    target = GenerationTarget(class_name="Calculator")
    run_ids = []
    for _ in range(3):
        run = run_registry.create_run(target, str(tmp_path))
        run_ids.append(run.run_id)
        _execute(run.run_id, tmp_path, keep_runs=2)

    assert run_registry.get_run(run_ids[0]) is None
    assert run_registry.get_run(run_ids[1]).status == "success"
    assert run_registry.get_run(run_ids[2]).status == "success"
    # Results of evicted runs stay on disk
    assert (tmp_path / "results" / f"{run_ids[0]}.json").is_file()


def test_queued_runs_are_never_evicted(tmp_path):
    target = GenerationTarget(class_name="Calculator")
    queued = run_registry.create_run(target, str(tmp_path / "other"))
    run = run_registry.create_run(target, str(tmp_path))
    _execute(run.run_id, tmp_path, keep_runs=0)

    assert run_registry.get_run(run.run_id) is None
    assert run_registry.get_run(queued.run_id).status == "queued"


def test_root_lock_released_after_last_run(tmp_path):
    target = GenerationTarget(class_name="Calculator")
    run = run_registry.create_run(target, str(tmp_path))
    _execute(run.run_id, tmp_path, keep_runs=10)

    assert run_registry._ROOT_LOCKS == {}


def test_root_lock_kept_while_a_run_is_queued(tmp_path):
    target = GenerationTarget(class_name="Calculator")
    first = run_registry.create_run(target, str(tmp_path))
    run_registry.create_run(target, str(tmp_path))
    _execute(first.run_id, tmp_path, keep_runs=10)

    assert str(tmp_path.resolve()) in run_registry._ROOT_LOCKS
