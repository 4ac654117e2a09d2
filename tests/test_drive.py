import asyncio
import logging
from typing import List

import pytest

from meg_relay.dispatcher import Dispatcher
from meg_relay.drive import DriveLoop, DriveState
from meg_relay.records import RecordParseError
from meg_relay.transmitter import Transmitter


class RecordingSink:
    def __init__(self) -> None:
        self.blocks: List[str] = []

    def __call__(self, block: str) -> None:
        self.blocks.append(block)


async def _run_until(loop_under_test: DriveLoop, predicate, wait_until) -> None:
    stop_event = asyncio.Event()
    task = asyncio.create_task(loop_under_test.run(stop_event))
    try:
        await wait_until(predicate)
    finally:
        stop_event.set()
        await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_drive_loop_relays_fragmented_telemetry(
    device_factory, dispatcher: Dispatcher, wait_until
) -> None:
    device = device_factory()
    device.queue(b"MEG_C3:5", b"12\nMEG_CZ:", b"90\r\n")
    drive = DriveLoop(device, Transmitter(device), dispatcher=dispatcher, poll_interval=0.005)

    await _run_until(drive, lambda: len(device.writes) == 3, wait_until)

    assert device.written_lines == ["5,1,2|s_j_1", "5,1,2|s_j_2", "9,0|stp_200_360"]
    assert drive.state is DriveState.STOPPED
    assert drive.stats.blocks_forwarded == 2


@pytest.mark.asyncio
async def test_drive_loop_forwards_one_block_per_record(
    device_factory, dispatcher: Dispatcher, wait_until
) -> None:
    device = device_factory()
    device.queue(b"MEG_SMA:120\n")
    sink = RecordingSink()
    drive = DriveLoop(device, sink, dispatcher=dispatcher, poll_interval=0.005)

    await _run_until(drive, lambda: bool(sink.blocks), wait_until)

    assert sink.blocks == ["1,2,0|s_j_3\n1,2,0|stp_200_360"]


@pytest.mark.asyncio
async def test_unknown_channel_produces_single_warning_and_no_output(
    device_factory, dispatcher: Dispatcher, wait_until, caplog
) -> None:
    device = device_factory()
    device.queue(b"UNKNOWN:99\n")
    drive = DriveLoop(device, Transmitter(device), dispatcher=dispatcher, poll_interval=0.005)

    with caplog.at_level(logging.WARNING):
        await _run_until(drive, lambda: drive.stats.lines == 1, wait_until)

    assert device.writes == []
    warnings = [r for r in caplog.records if r.levelno >= logging.WARNING]
    assert len(warnings) == 1
    assert "UNKNOWN" in warnings[0].getMessage()


@pytest.mark.asyncio
async def test_bad_records_are_skipped_without_stopping(
    device_factory, dispatcher: Dispatcher, wait_until, caplog
) -> None:
    device = device_factory()
    device.queue(b"MEG_C3\nMEG_C3:abc\nA:1:2\nMEG_CZ:7\n")
    drive = DriveLoop(device, Transmitter(device), dispatcher=dispatcher, poll_interval=0.005)

    with caplog.at_level(logging.WARNING, logger="meg_relay.drive"):
        await _run_until(drive, lambda: bool(device.writes), wait_until)

    assert device.written_lines == ["7|stp_200_360"]
    assert drive.stats.parse_errors == 3
    parse_warnings = [r for r in caplog.records if r.name == "meg_relay.drive"]
    assert len(parse_warnings) == 3


@pytest.mark.asyncio
async def test_read_errors_do_not_end_the_loop(
    device_factory, dispatcher: Dispatcher, wait_until
) -> None:
    device = device_factory()
    device.queue(OSError("device unplugged"), b"MEG_CZ:1\n")
    drive = DriveLoop(device, Transmitter(device), dispatcher=dispatcher, poll_interval=0.005)

    await _run_until(drive, lambda: bool(device.writes), wait_until)

    assert drive.stats.read_errors == 1
    assert device.written_lines == ["1|stp_200_360"]


@pytest.mark.asyncio
async def test_sink_failures_are_counted_and_loop_continues(
    device_factory, dispatcher: Dispatcher, wait_until
) -> None:
    device = device_factory()
    device.queue(b"MEG_CZ:1\nMEG_CZ:2\n")
    calls: List[str] = []

    def flaky_sink(block: str) -> None:
        calls.append(block)
        if len(calls) == 1:
            raise RuntimeError("sink exploded")

    drive = DriveLoop(device, flaky_sink, dispatcher=dispatcher, poll_interval=0.005)

    await _run_until(drive, lambda: len(calls) == 2, wait_until)

    assert drive.stats.sink_errors == 1
    assert drive.stats.blocks_forwarded == 1


@pytest.mark.asyncio
async def test_async_sink_is_awaited(
    device_factory, dispatcher: Dispatcher, wait_until
) -> None:
    device = device_factory()
    device.queue(b"MEG_C4:63\n")
    received: List[str] = []

    async def sink(block: str) -> None:
        await asyncio.sleep(0)
        received.append(block)

    drive = DriveLoop(device, sink, dispatcher=dispatcher, poll_interval=0.005)

    await _run_until(drive, lambda: bool(received), wait_until)

    assert received == ["6,3|s_j_3\n6,3|s_j_4"]


@pytest.mark.asyncio
async def test_stop_event_stops_idle_loop_promptly(
    device_factory, dispatcher: Dispatcher
) -> None:
    device = device_factory()
    drive = DriveLoop(device, RecordingSink(), dispatcher=dispatcher, poll_interval=0.5)
    stop_event = asyncio.Event()
    task = asyncio.create_task(drive.run(stop_event))
    await asyncio.sleep(0.01)

    assert drive.state is DriveState.RUNNING
    stop_event.set()
    await asyncio.wait_for(task, timeout=0.2)

    assert drive.state is DriveState.STOPPED


@pytest.mark.asyncio
async def test_cancellation_marks_loop_stopped(
    device_factory, dispatcher: Dispatcher
) -> None:
    drive = DriveLoop(device_factory(), RecordingSink(), dispatcher=dispatcher)
    task = asyncio.create_task(drive.run(asyncio.Event()))
    await asyncio.sleep(0.01)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert drive.state is DriveState.STOPPED


def test_process_line_parses_and_dispatches(device_factory, dispatcher: Dispatcher) -> None:
    drive = DriveLoop(device_factory(), RecordingSink(), dispatcher=dispatcher)

    assert [c.format() for c in drive.process_line("MEG_PM_L:45")] == ["4,5|s_j_R"]
    with pytest.raises(RecordParseError):
        drive.process_line("MEG_PM_L")


def test_drive_loop_requires_endpoints(device_factory, dispatcher: Dispatcher) -> None:
    with pytest.raises(ValueError):
        DriveLoop(None, RecordingSink(), dispatcher=dispatcher)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        DriveLoop(device_factory(), None, dispatcher=dispatcher)  # type: ignore[arg-type]


def test_same_line_twice_yields_same_commands(device_factory, dispatcher: Dispatcher) -> None:
    drive = DriveLoop(device_factory(), RecordingSink(), dispatcher=dispatcher)

    first = drive.process_line("MEG_C3:512")
    second = drive.process_line("MEG_C3:512")

    assert first == second
    assert [c.format() for c in second] == ["5,1,2|s_j_1", "5,1,2|s_j_2"]


@pytest.mark.asyncio
async def test_unexpected_line_failures_are_counted(
    device_factory, dispatcher: Dispatcher, wait_until, monkeypatch, caplog
) -> None:
    device = device_factory()
    device.queue(b"MEG_C3:1\nMEG_CZ:2\n")
    drive = DriveLoop(device, Transmitter(device), dispatcher=dispatcher, poll_interval=0.005)
    original = drive.process_line

    def flaky(line: str):
        if line.startswith("MEG_C3"):
            raise RuntimeError("index corrupted")
        return original(line)

    monkeypatch.setattr(drive, "process_line", flaky)

    with caplog.at_level(logging.ERROR, logger="meg_relay.drive"):
        await _run_until(drive, lambda: bool(device.writes), wait_until)

    assert drive.stats.line_errors == 1
    assert drive.stats.as_dict()["lineErrors"] == 1
    assert device.written_lines == ["2|stp_200_360"]
    assert any("MEG_C3:1" in r.getMessage() for r in caplog.records)
