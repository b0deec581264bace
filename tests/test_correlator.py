"""
Tests for outbound frame correlation
"""

import asyncio

import pytest

from conftest import FakeSession
from slackgw.correlator import OutboundCorrelator
from slackgw.exceptions import AckTimeout, SessionLost, TransportError
from slackgw.frames import RTMCodec


class Clock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def bound_correlator(session, **kwargs):
    correlator = OutboundCorrelator(RTMCodec(), **kwargs)
    correlator.bind(session, epoch=1)
    return correlator


@pytest.mark.asyncio
async def test_submit_writes_frame_and_resolves_on_ack():
    session = FakeSession("wss://a")
    correlator = bound_correlator(session)

    frame_id, future = await correlator.submit({"type": "message", "text": "hi"})

    assert session.sent == [{"type": "message", "text": "hi", "id": frame_id}]
    assert frame_id in correlator
    assert correlator.resolve(frame_id, {"ts": "1.0"}) is True
    assert await future == {"ts": "1.0"}
    assert len(correlator) == 0


@pytest.mark.asyncio
async def test_ids_are_unique_and_increasing():
    correlator = bound_correlator(FakeSession("wss://a"))

    ids = [(await correlator.submit({"type": "message"}))[0] for _ in range(5)]
    probe_id = correlator.next_id()

    assert ids == sorted(set(ids))
    assert probe_id > ids[-1]


@pytest.mark.asyncio
async def test_duplicate_and_unknown_signals_are_ignored():
    correlator = bound_correlator(FakeSession("wss://a"))
    frame_id, future = await correlator.submit({"type": "message"})

    assert correlator.resolve(frame_id, "first") is True
    assert correlator.resolve(frame_id, "second") is False
    assert correlator.fail(frame_id, SessionLost("late")) is False
    assert correlator.resolve(999, "nobody") is False
    assert await future == "first"


@pytest.mark.asyncio
async def test_sweep_times_out_old_records():
    clock = Clock()
    correlator = bound_correlator(FakeSession("wss://a"), ack_timeout=5.0, clock=clock)
    old_id, old = await correlator.submit({"type": "message"})
    clock.now += 3.0
    new_id, new = await correlator.submit({"type": "message"})

    clock.now += 2.0
    assert correlator.sweep() == 1

    with pytest.raises(AckTimeout):
        await old
    assert not new.done()
    assert new_id in correlator and old_id not in correlator


@pytest.mark.asyncio
async def test_sweeper_fails_after_deadline():
    correlator = bound_correlator(FakeSession("wss://a"), ack_timeout=0.1)
    sweeper = asyncio.create_task(correlator.run_sweeper(0.01))
    loop = asyncio.get_running_loop()
    try:
        started = loop.time()
        _, future = await correlator.submit({"type": "message"})
        with pytest.raises(AckTimeout):
            await asyncio.wait_for(future, 1.0)
        elapsed = loop.time() - started
    finally:
        sweeper.cancel()

    assert 0.1 <= elapsed < 0.5


@pytest.mark.asyncio
async def test_fail_all_marks_every_record_lost():
    correlator = bound_correlator(FakeSession("wss://a"))
    futures = [(await correlator.submit({"type": "message"}))[1] for _ in range(3)]

    assert correlator.fail_all(SessionLost("gone")) == 3

    for future in futures:
        with pytest.raises(SessionLost):
            await future
    assert len(correlator) == 0


@pytest.mark.asyncio
async def test_submit_without_session():
    correlator = OutboundCorrelator(RTMCodec())

    _, future = await correlator.submit({"type": "message"})

    with pytest.raises(SessionLost):
        await future
    assert len(correlator) == 0


@pytest.mark.asyncio
async def test_write_failure_fails_send_and_reports_fault():
    faults = []
    session = FakeSession("wss://a")
    await session.close()
    correlator = OutboundCorrelator(RTMCodec(), on_fault=lambda e, epoch: faults.append((e, epoch)))
    correlator.bind(session, epoch=3)

    _, future = await correlator.submit({"type": "message"})

    with pytest.raises(TransportError):
        await future
    assert len(faults) == 1 and faults[0][1] == 3


@pytest.mark.asyncio
async def test_unencodable_payload_leaves_no_record():
    session = FakeSession("wss://a")
    correlator = bound_correlator(session)

    with pytest.raises(TypeError):
        await correlator.submit({"type": "message", "text": object()})

    assert len(correlator) == 0
    assert session.sent == []
    assert correlator.sweep(now=float("inf")) == 0
