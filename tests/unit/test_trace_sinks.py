"""Tests for trace delivery sinks."""

import json

import httpx
import pytest

from echos.core.config import parse_workflow
from echos.tracing import sinks as sinks_module
from echos.tracing import (
    FileTraceSink,
    HttpTraceSink,
    TraceRecorder,
    TraceSink,
    TraceSinkError,
    deliver_trace,
    load_trace,
)


@pytest.fixture
def envelope(basic_workflow):
    recorder = TraceRecorder("task-42", parse_workflow(basic_workflow), "hello")
    return recorder.end("ok")


class ExplodingSink(TraceSink):
    async def emit(self, envelope):
        raise RuntimeError("disk on fire")


@pytest.mark.asyncio
async def test_file_sink_writes_task_json(tmp_path, envelope):
    sink = FileTraceSink(tmp_path / "traces")
    await sink.emit(envelope)

    path = tmp_path / "traces" / "task-42.json"
    assert path.exists()
    assert json.loads(path.read_text())["taskId"] == "task-42"
    assert load_trace(path).status == "ok"


@pytest.mark.asyncio
async def test_file_sink_writes_off_the_event_loop(tmp_path, envelope, monkeypatch):
    calls = []

    async def fake_to_thread(func, *args):
        calls.append(func.__name__)
        return func(*args)

    monkeypatch.setattr(sinks_module.asyncio, "to_thread", fake_to_thread)
    await FileTraceSink(tmp_path).emit(envelope)

    assert calls == ["atomic_write_model"]
    assert (tmp_path / "task-42.json").exists()


@pytest.mark.asyncio
async def test_http_sink_posts_with_bearer_token(envelope):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "t1"})

    sink = HttpTraceSink("https://api.example.com/", "secret", transport=httpx.MockTransport(handler))
    await sink.emit(envelope)

    assert captured["url"] == "https://api.example.com/traces"
    assert captured["auth"] == "Bearer secret"
    assert captured["body"]["workflowName"] == "basic"
    assert captured["body"]["data"]["taskId"] == "task-42"


@pytest.mark.asyncio
async def test_http_sink_raises_on_error_status(envelope):
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="bad key"))
    sink = HttpTraceSink("https://api.example.com", "wrong", transport=transport)

    with pytest.raises(TraceSinkError, match="401"):
        await sink.emit(envelope)


@pytest.mark.asyncio
async def test_deliver_trace_skips_failing_sinks(tmp_path, envelope):
    delivered = await deliver_trace(envelope, [ExplodingSink(), FileTraceSink(tmp_path)])

    assert delivered == 1
    assert (tmp_path / "task-42.json").exists()
