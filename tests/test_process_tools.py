"""Tests for ProcessTools result shaping."""

import pytest
import pytest_asyncio

from process_adapter.domain import (
    ProcessTools,
    SessionRegistry,
    StartProcessRequest,
    ErrorKind,
    INVALID_PROCESS_ID,
    OVERRIDE_TOKEN,
)


@pytest_asyncio.fixture
async def tools():
    registry = SessionRegistry()
    yield ProcessTools(registry)
    await registry.shutdown()


@pytest.mark.asyncio
async def test_finished_process(tools):
    result = await tools.start_process(StartProcessRequest(command="echo hi", timeout_ms=5000))

    assert not result.is_error
    assert result.initial_output == "hi\n"
    assert result.status_hint == "Process finished with exit code 0."
    assert result.text.startswith(f"Process started with PID {result.process_id}\nInitial output:\nhi\n")


@pytest.mark.asyncio
async def test_running_process(tools):
    result = await tools.start_process(StartProcessRequest(command="sleep 2", timeout_ms=50))

    assert result.still_running
    assert "Use read_output" in result.status_hint
    assert tools.read_output(result.process_id) == ""
    assert [s["process_id"] for s in tools.list_sessions()] == [result.process_id]
    assert tools.terminate(result.process_id)


@pytest.mark.asyncio
async def test_completion_phrase_from_live_process_is_not_an_exit(tools):
    result = await tools.start_process(StartProcessRequest(command="echo done; sleep 2", timeout_ms=300))

    assert result.still_running
    assert result.exit_code is None
    assert result.status_hint == "Process is running. Use read_output to get more output."
    assert "exit code None" not in result.text
    assert tools.terminate(result.process_id)


@pytest.mark.asyncio
async def test_waiting_for_input(tools):
    result = await tools.start_process(
        StartProcessRequest(command="printf 'Continue? [y/n] '; read answer", timeout_ms=300)
    )

    assert result.still_running
    assert "waiting for input" in result.status_hint
    assert await tools.write_input(result.process_id, "y")


@pytest.mark.asyncio
async def test_destructive_rejection_has_guidance(tools):
    result = await tools.start_process(StartProcessRequest(command="rm -rf build", timeout_ms=1000))

    assert result.is_error
    assert result.error_kind == ErrorKind.GATE_REJECTION
    assert result.process_id == INVALID_PROCESS_ID
    assert OVERRIDE_TOKEN in result.text


@pytest.mark.asyncio
async def test_blocked_rejection_has_guidance(tools):
    result = await tools.start_process(StartProcessRequest(command="sed -i 's/a/b/' f.txt"))

    assert result.is_error
    assert result.error_kind == ErrorKind.GATE_REJECTION
    assert "SED COMMAND BLOCKED" in result.text


@pytest.mark.asyncio
async def test_spawn_failure(tools):
    result = await tools.start_process(
        StartProcessRequest(command="echo hi", timeout_ms=1000, shell="/nonexistent/shell")
    )

    assert result.is_error
    assert result.error_kind == ErrorKind.SPAWN_FAILURE


@pytest.mark.asyncio
async def test_list_completed(tools):
    result = await tools.start_process(StartProcessRequest(command="echo done", timeout_ms=5000))

    completed = tools.list_completed()
    assert len(completed) == 1
    assert completed[0]["process_id"] == result.process_id
    assert completed[0]["full_output"] == "done\n"
    assert completed[0]["exit_code"] == 0
    assert isinstance(completed[0]["started_at"], str)
