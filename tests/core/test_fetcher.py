# tests/core/test_fetcher.py
from __future__ import annotations

import asyncio

import httpx
import pytest

from ngsi_source.contracts.entity import AttrsFormat
from ngsi_source.core.fetcher import FetchTask
from ngsi_source.core.ngsi.client import NgsiV2Client
from ngsi_source.core.ngsi.errors import BrokerConnectionError
from ngsi_source.core.preferences import SourceConfig
from tests.conftest import FakeBroker, make_entity


def _config(**kwargs) -> SourceConfig:
    return SourceConfig(server_url="http://orion:1026", types=("Room",), **kwargs)


class Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[AttrsFormat, list[dict]]] = []

    def __call__(self, attrs_format, entities) -> None:
        self.events.append((attrs_format, list(entities)))


@pytest.mark.asyncio
async def test_unbuffered_emits_one_event_per_page():
    broker = FakeBroker(total=250)
    recorder = Recorder()

    task = FetchTask(broker, _config(), AttrsFormat.NORMALIZED, recorder).start()
    await task.wait()

    assert [len(entities) for _, entities in recorder.events] == [100, 100, 50]
    assert [c["offset"] for c in broker.calls_to("list")] == [0, 100, 200]
    assert task.pages_fetched == 3


@pytest.mark.asyncio
async def test_buffered_emits_single_batch_in_page_order():
    broker = FakeBroker(total=250)
    recorder = Recorder()

    task = FetchTask(
        broker, _config(buffering=True), AttrsFormat.NORMALIZED, recorder
    ).start()
    await task.wait()

    assert len(recorder.events) == 1
    _, entities = recorder.events[0]
    assert [e["id"] for e in entities] == [f"Room:{i}" for i in range(250)]


@pytest.mark.asyncio
async def test_buffered_empty_result_still_emits_once():
    recorder = Recorder()

    await FetchTask(
        FakeBroker([]), _config(buffering=True), AttrsFormat.KEY_VALUES, recorder
    ).start().wait()

    assert recorder.events == [(AttrsFormat.KEY_VALUES, [])]


@pytest.mark.asyncio
async def test_request_parameters():
    broker = FakeBroker(total=1)
    config = SourceConfig(
        server_url="http://orion:1026",
        types=("Room", "Car"),
        id_pattern="^Room",
        query="temperature>20",
    )

    await FetchTask(broker, config, AttrsFormat.KEY_VALUES, Recorder()).start().wait()

    (call,) = broker.calls_to("list")
    assert call == {
        "offset": 0,
        "limit": 100,
        "type": "Room,Car",
        "q": "temperature>20",
        "key_values": True,
    }


@pytest.mark.asyncio
async def test_page_cap_terminates_after_101_requests():
    broker = FakeBroker(total=50_000)
    recorder = Recorder()

    task = FetchTask(broker, _config(), AttrsFormat.KEY_VALUES, recorder).start()
    await task.wait()

    offsets = [c["offset"] for c in broker.calls_to("list")]
    assert len(offsets) == 101
    assert offsets[-1] == 100 * 100
    assert sum(len(e) for _, e in recorder.events) == 10_100


@pytest.mark.asyncio
async def test_custom_page_size_and_cap():
    broker = FakeBroker(total=100)
    recorder = Recorder()

    await FetchTask(
        broker, _config(), AttrsFormat.KEY_VALUES, recorder, page_size=10, max_page=2
    ).start().wait()

    assert [c["offset"] for c in broker.calls_to("list")] == [0, 10, 20]


@pytest.mark.asyncio
async def test_cancel_from_emission_stops_pagination():
    broker = FakeBroker(total=500)
    recorder = Recorder()
    task: FetchTask

    def cancel_after_first(attrs_format, entities):
        recorder(attrs_format, entities)
        task.cancel()

    task = FetchTask(broker, _config(), AttrsFormat.KEY_VALUES, cancel_after_first).start()
    await task.wait()

    assert len(recorder.events) == 1
    assert len(broker.calls_to("list")) == 1
    assert task.cancelled


@pytest.mark.asyncio
async def test_cancel_discards_in_flight_page():
    broker = FakeBroker(total=500)
    broker.list_gate = asyncio.Event()
    recorder = Recorder()

    task = FetchTask(broker, _config(), AttrsFormat.KEY_VALUES, recorder).start()
    while not broker.calls_to("list"):
        await asyncio.sleep(0)

    task.cancel()
    broker.list_gate.set()
    await task.wait()

    assert recorder.events == []
    assert len(broker.calls_to("list")) == 1
    assert task.pages_fetched == 0


@pytest.mark.asyncio
async def test_cancelled_buffered_fetch_emits_nothing():
    broker = FakeBroker(total=300)
    recorder = Recorder()
    task = FetchTask(broker, _config(buffering=True), AttrsFormat.KEY_VALUES, recorder)

    original = broker.list_entities

    async def list_and_cancel(**kwargs):
        page = await original(**kwargs)
        if kwargs["offset"] == 100:
            task.cancel()
        return page

    broker.list_entities = list_and_cancel
    await task.start().wait()

    assert recorder.events == []


@pytest.mark.asyncio
async def test_page_failure_halts_without_further_emission(caplog):
    broker = FakeBroker([make_entity(i) for i in range(250)])
    broker.list_errors[100] = BrokerConnectionError("boom")
    recorder = Recorder()

    with caplog.at_level("WARNING"):
        await FetchTask(broker, _config(), AttrsFormat.NORMALIZED, recorder).start().wait()

    assert len(recorder.events) == 1
    assert [c["offset"] for c in broker.calls_to("list")] == [0, 100]
    assert "Error retrieving initial values" in caplog.text


@pytest.mark.asyncio
async def test_buffered_page_failure_emits_nothing():
    broker = FakeBroker(total=250)
    broker.list_errors[200] = BrokerConnectionError("boom")
    recorder = Recorder()

    await FetchTask(
        broker, _config(buffering=True), AttrsFormat.NORMALIZED, recorder
    ).start().wait()

    assert recorder.events == []


@pytest.mark.asyncio
async def test_start_twice_raises():
    task = FetchTask(FakeBroker([]), _config(), AttrsFormat.KEY_VALUES, Recorder()).start()
    with pytest.raises(RuntimeError):
        task.start()
    await task.wait()


@pytest.mark.asyncio
async def test_html_page_is_logged_and_halts(monkeypatch, caplog):
    async def handler(request):
        return httpx.Response(200, content=b"<html>oops</html>")

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        lambda **kw: real_client(transport=transport, **kw),
    )
    recorder = Recorder()

    with caplog.at_level("WARNING"):
        await FetchTask(
            NgsiV2Client(base_url="http://orion:1026"),
            _config(),
            AttrsFormat.KEY_VALUES,
            recorder,
        ).start().wait()

    assert recorder.events == []
    assert "Error retrieving initial values" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_failure_is_logged_by_the_task(caplog):
    broker = FakeBroker(total=10)
    broker.list_errors[0] = RuntimeError("decoder exploded")
    task = FetchTask(broker, _config(), AttrsFormat.KEY_VALUES, Recorder()).start()

    with caplog.at_level("ERROR"):
        with pytest.raises(RuntimeError):
            await task.wait()
        await asyncio.sleep(0)

    assert "Task 'ngsi-initial-fetch' failed: decoder exploded" in caplog.text
