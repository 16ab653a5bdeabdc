"""HTTP surface: manual runs, SSE streaming, status, executors, reload, health."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from skillflow.api.main import create_app
from skillflow.exceptions import TaskBusyError
from skillflow.service import SkillflowService
from skillflow.types import QueuedTask, TriggerType
from skillflow.workflows.store import WorkflowStore

WORKFLOWS_YAML = """
workflows:
  - id: greet
    name: Greet
    userInputs:
      - {name: who, defaultValue: world}
    steps:
      - {id: hello, executorType: scripted, action: noop, params: {msg: 'hello {{who}}'}}
  - id: nightly
    name: Nightly
    steps:
      - {id: a, executorType: scripted, action: noop}
    schedule: {enabled: true, cron: '0 3 * * *', timezone: UTC}
"""


def _parse_sse(text: str) -> list[tuple[str, dict]]:
    events = []
    for block in text.strip().split("\n\n"):
        name, data = None, None
        for line in block.splitlines():
            if line.startswith("event: "):
                name = line[len("event: "):]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: "):])
        events.append((name, data))
    return events


def _busy() -> TaskBusyError:
    return TaskBusyError(QueuedTask(id="t-1", workflow_id="nightly", workflow_name="Nightly", trigger_type=TriggerType.SCHEDULED))


@pytest.fixture
def workflows_file(tmp_path):
    path = tmp_path / "workflows.yaml"
    path.write_text(WORKFLOWS_YAML, encoding="utf-8")
    return path


@pytest.fixture
def service(workflows_file, registry, config):
    store = WorkflowStore(config_dir=workflows_file.parent)
    return SkillflowService(store, registry, config=config, callbacks=[])


@pytest.fixture
def client(service):
    with TestClient(create_app(service=service)) as c:
        yield c


# ── Runs ─────────────────────────────────────────────────────────────────────


def test_run_returns_result(client):
    resp = client.post("/v1/workflows/greet/run", json={"inputs": {"who": "Ada"}})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["workflowId"] == "greet"
    assert body["finalOutput"] == {"success": True, "data": {"msg": "hello Ada"}}
    assert body["stepResults"][0]["stepId"] == "hello"


def test_run_without_body_uses_defaults(client, backend):
    resp = client.post("/v1/workflows/greet/run")
    assert resp.status_code == 200
    assert backend.actions("noop") == [{"msg": "hello world"}]


def test_run_unknown_workflow_404(client):
    assert client.post("/v1/workflows/ghost/run").status_code == 404


def test_run_while_busy_409(client, service):
    service.run_now = AsyncMock(side_effect=_busy())
    resp = client.post("/v1/workflows/greet/run")
    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert "already running" in detail["message"]
    assert detail["currentTask"]["workflowName"] == "Nightly"


def test_stream_emits_sse_events(client):
    resp = client.post("/v1/workflows/greet/run/stream", json={"inputs": {"who": "SSE"}})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")

    events = _parse_sse(resp.text)
    assert [name for name, _ in events] == ["step-start", "step-complete", "execution-complete"]
    assert events[0][1]["stepId"] == "hello"
    assert events[1][1]["output"] == {"success": True, "data": {"msg": "hello SSE"}}
    assert events[-1][1]["result"]["success"] is True


def test_stream_unknown_workflow_404(client):
    assert client.post("/v1/workflows/ghost/run/stream").status_code == 404


def test_stream_while_busy_sends_single_error_event(client, service):
    service.run_now_streaming = MagicMock(side_effect=_busy())
    resp = client.post("/v1/workflows/greet/run/stream")
    events = _parse_sse(resp.text)
    assert len(events) == 1
    name, data = events[0]
    assert name == "execution-error"
    assert data["success"] is False
    assert "already running" in data["error"]


# ── Status ───────────────────────────────────────────────────────────────────


def test_schedules(client):
    schedules = client.get("/v1/schedules").json()
    assert [s["workflowId"] for s in schedules] == ["nightly"]

    one = client.get("/v1/workflows/nightly/schedule").json()
    assert one["cron"] == "0 3 * * *"
    assert one["timezone"] == "UTC"
    assert one["enabled"] is True
    assert client.get("/v1/workflows/ghost/schedule").status_code == 404


def test_queue_and_history_after_run(client):
    client.post("/v1/workflows/greet/run")
    client.post("/v1/workflows/greet/run")

    queue = client.get("/v1/queue").json()
    assert queue["currentTask"] is None
    assert queue["queuedTasks"] == []
    assert queue["recentTasks"][0]["workflowId"] == "greet"
    assert queue["recentTasks"][0]["status"] == "completed"
    assert queue["recentTasks"][0]["triggerType"] == "manual"

    history = client.get("/v1/history", params={"workflowId": "greet", "limit": 1}).json()
    assert len(history) == 1
    assert history[0]["success"] is True
    assert len(client.get("/v1/history").json()) == 2
    assert client.get("/v1/history", params={"limit": 0}).status_code == 422


def test_cancel_unknown_task_404(client):
    assert client.delete("/v1/queue/nope").status_code == 404


def test_builtin_variables(client):
    names = [v["name"] for v in client.get("/v1/builtin-variables").json()]
    assert names == ["currentDate", "currentTime", "currentDatetime", "randomId"]


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["workflows"] == 2
    assert body["schedules"] == 1
    assert body["busy"] is False
    assert body["currentTask"] is None


# ── Executors ────────────────────────────────────────────────────────────────


def test_list_executors(client):
    executors = client.get("/v1/executors").json()
    assert [e["executor"]["name"] for e in executors] == ["scripted-1", "scripted-2", "builtin"]
    builtin = executors[2]
    assert "extract" in [a["name"] for a in builtin["actions"]]
    assert executors[1]["executor"]["enabled"] is False


def test_check_executor(client):
    resp = client.post("/v1/executors/builtin/check")
    assert resp.status_code == 200
    assert resp.json()["healthy"] is True
    assert client.post("/v1/executors/ghost/check").status_code == 404


# ── Reload ───────────────────────────────────────────────────────────────────


def test_reload_rereads_definitions(client, workflows_file):
    workflows_file.write_text(
        "workflows:\n  - id: only\n    name: Only\n    steps:\n      - {id: a, executorType: builtin, action: echo}\n",
        encoding="utf-8",
    )
    resp = client.post("/v1/reload")
    assert resp.status_code == 200
    assert resp.json() == {"workflows": 1, "schedules": 0}
    assert client.get("/health").json()["workflows"] == 1


def test_reload_with_broken_file_400(client, workflows_file):
    workflows_file.write_text("workflows: [unclosed\n", encoding="utf-8")
    resp = client.post("/v1/reload")
    assert resp.status_code == 400
    assert resp.json()["detail"].startswith("Reload failed")
