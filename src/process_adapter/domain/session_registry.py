"""
Process Adapter - Session Registry

Tracks every spawned process from start to exit:

- Live store: process id -> running session (handle + output buffer)
- Terminal store: process id -> completed session record, bounded and
  evicted in insertion order (oldest first, regardless of access)

A session leaves the live store and enters the terminal store in a single
transition when its process exits. All store mutations happen under one lock.
"""

import time
import asyncio
import logging
import threading
import dataclasses
from collections import OrderedDict
from typing import Dict, Optional, List, Any
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .command_gate import CommandGate, GateResult
from .output_buffer import OutputAggregator
from .process_handle import ProcessHandle

logger = logging.getLogger("process-adapter.registry")

INVALID_PROCESS_ID = -1
DEFAULT_COMPLETED_CAPACITY = 100
DEFAULT_KILL_GRACE_SECONDS = 1.0
READER_DRAIN_TIMEOUT = 0.5


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LiveSession:
    """Bookkeeping for a running process."""
    process_id: int
    handle: ProcessHandle
    output: OutputAggregator = field(default_factory=OutputAggregator)
    created_at: datetime = field(default_factory=_now)
    started_monotonic: float = field(default_factory=time.monotonic)
    blocked: bool = False
    exit_task: Optional[asyncio.Task] = None
    kill_timer: Optional[asyncio.TimerHandle] = None

    @property
    def runtime_ms(self) -> int:
        return int((time.monotonic() - self.started_monotonic) * 1000)


@dataclass
class CompletedSession:
    """Terminal record of a process that has exited.

    ``exit_code`` is None when the process was killed by a signal, in which
    case ``signal`` holds the signal number.
    """
    process_id: int
    command: str
    full_output: str
    exit_code: Optional[int]
    started_at: datetime
    ended_at: datetime
    signal: Optional[int] = None
    pending_output: str = ""
    completion_reported: bool = False

    @property
    def runtime_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def summary(self) -> str:
        return (
            f"Process completed with exit code {self.exit_code}\n"
            f"Runtime: {self.runtime_seconds:g}s"
        )


@dataclass
class StartResult:
    """Outcome of a start request.

    ``process_id`` is INVALID_PROCESS_ID when nothing was spawned; then either
    ``rejection`` (gate) or ``error`` (spawn failure) explains why.
    """
    process_id: int
    initial_output: str = ""
    still_running: bool = False
    exit_code: Optional[int] = None
    rejection: Optional[GateResult] = None
    error: Optional[str] = None

    @property
    def started(self) -> bool:
        return self.process_id != INVALID_PROCESS_ID


class SessionRegistry:
    """Owns all live and completed process sessions.

    Must be used from a single asyncio event loop; drain_output() and the
    list methods may also be called from other threads.
    """

    def __init__(
        self,
        gate: Optional[CommandGate] = None,
        default_shell: Optional[str] = None,
        cwd: Optional[str] = None,
        completed_capacity: int = DEFAULT_COMPLETED_CAPACITY,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
    ):
        self.gate = gate or CommandGate()
        self.default_shell = default_shell
        self.cwd = cwd
        self.completed_capacity = completed_capacity
        self.kill_grace_seconds = kill_grace_seconds
        self._live: Dict[int, LiveSession] = {}
        self._completed: "OrderedDict[int, CompletedSession]" = OrderedDict()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    async def start(
        self,
        command: str,
        timeout_ms: int,
        shell: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> StartResult:
        """Classify and spawn ``command``, then wait up to ``timeout_ms``.

        The deadline bounds only this call. If it elapses first the process
        keeps running, the session is marked blocked and ``still_running`` is
        True. The returned initial output is drained from the session buffer.
        """
        verdict = self.gate.classify(command)
        if not verdict.is_allowed:
            return StartResult(process_id=INVALID_PROCESS_ID, rejection=verdict)

        output = OutputAggregator()
        try:
            handle = await ProcessHandle.spawn(
                verdict.command,
                shell=shell or self.default_shell,
                cwd=self.cwd,
                env=env,
                on_output=output.append,
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to spawn '{verdict.command}': {e}")
            return StartResult(
                process_id=INVALID_PROCESS_ID,
                error=f"Error: Failed to start process. The command could not be executed: {e}",
            )

        session = LiveSession(process_id=handle.pid, handle=handle, output=output)
        with self._lock:
            # A recycled pid supersedes any retained record for it
            self._completed.pop(session.process_id, None)
            self._live[session.process_id] = session
        session.exit_task = asyncio.create_task(self._watch_exit(session))

        done, _ = await asyncio.wait({session.exit_task}, timeout=max(timeout_ms, 0) / 1000)

        if done:
            initial_output = ""
            with self._lock:
                record = self._completed.get(session.process_id)
                if record is not None:
                    initial_output, record.pending_output = record.pending_output, ""
            return StartResult(
                process_id=session.process_id,
                initial_output=initial_output,
                still_running=False,
                exit_code=record.exit_code if record else handle.returncode,
            )

        session.blocked = True
        logger.info(f"pid={session.process_id} still running after {timeout_ms}ms")
        return StartResult(
            process_id=session.process_id,
            initial_output=output.drain(),
            still_running=True,
        )

    async def _watch_exit(self, session: LiveSession) -> None:
        """Wait for exit, collect trailing output, move the session to the terminal store."""
        returncode = await session.handle.wait()
        await session.handle.finish_reading(READER_DRAIN_TIMEOUT)
        self._complete(session, returncode)

    def _complete(self, session: LiveSession, returncode: Optional[int]) -> CompletedSession:
        exit_code: Optional[int] = returncode
        sig: Optional[int] = None
        if returncode is not None and returncode < 0:
            exit_code, sig = None, -returncode

        record = CompletedSession(
            process_id=session.process_id,
            command=session.handle.command,
            full_output=session.output.full_output,
            exit_code=exit_code,
            started_at=session.created_at,
            ended_at=_now(),
            signal=sig,
        )

        with self._lock:
            if self._live.get(session.process_id) is session:
                del self._live[session.process_id]
            # Undelivered output moves with the record
            record.pending_output = session.output.drain()
            evicted = self._insert_completed_locked(record)

        if session.kill_timer is not None:
            session.kill_timer.cancel()
            session.kill_timer = None

        for pid in evicted:
            logger.debug(f"Evicted completed session pid={pid}")
        logger.info(
            f"pid={session.process_id} exited (exit_code={exit_code}, signal={sig}, "
            f"runtime={record.runtime_seconds:.2f}s)"
        )
        return record

    def _insert_completed_locked(self, record: CompletedSession) -> List[int]:
        """Append a terminal record and evict the oldest beyond capacity.

        Caller must hold the lock.

        Returns:
            Process ids evicted to make room
        """
        self._completed[record.process_id] = record
        self._completed.move_to_end(record.process_id)
        evicted = []
        while len(self._completed) > self.completed_capacity:
            pid, _ = self._completed.popitem(last=False)
            evicted.append(pid)
        return evicted

    # ------------------------------------------------------------------
    # Follow-up operations
    # ------------------------------------------------------------------

    async def send_input(self, process_id: int, text: str) -> bool:
        """Write ``text`` (newline-terminated) to a live session's stdin.

        Returns:
            False if the session is unknown or its stdin is closed
        """
        with self._lock:
            session = self._live.get(process_id)
        if session is None or not session.handle.stdin_open:
            return False
        data = text if text.endswith("\n") else text + "\n"
        return await session.handle.write(data)

    def drain_output(self, process_id: int) -> Optional[str]:
        """Return output produced since the last drain.

        Live session: the pending text, possibly "". Completed session: any
        output not yet delivered followed by the completion summary the first
        time, None afterwards. Unknown id: None.
        """
        with self._lock:
            session = self._live.get(process_id)
            if session is not None:
                return session.output.drain()

            record = self._completed.get(process_id)
            if record is None or record.completion_reported:
                return None
            record.completion_reported = True
            tail, record.pending_output = record.pending_output, ""
            if tail and not tail.endswith("\n"):
                tail += "\n"
            return tail + record.summary()

    def force_terminate(self, process_id: int) -> bool:
        """Interrupt a live process, then kill it after the grace period.

        The follow-up kill fires only if the session is still live by then.

        Returns:
            False if the id has no live session or signalling failed
        """
        with self._lock:
            session = self._live.get(process_id)
        if session is None:
            return False

        try:
            session.handle.interrupt()
        except OSError as e:
            logger.error(f"Failed to terminate process {process_id}: {e}")
            return False

        logger.info(f"Sent SIGINT to pid={process_id}")
        if session.kill_timer is None:
            loop = asyncio.get_running_loop()
            session.kill_timer = loop.call_later(
                self.kill_grace_seconds, self._kill_if_live, session
            )
        return True

    def _kill_if_live(self, session: LiveSession) -> None:
        session.kill_timer = None
        with self._lock:
            still_live = self._live.get(session.process_id) is session
        if not still_live:
            return
        try:
            session.handle.kill()
            logger.info(f"Sent SIGKILL to pid={session.process_id}")
        except OSError as e:
            logger.error(f"Failed to kill process {session.process_id}: {e}")

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_active(self) -> List[Dict[str, Any]]:
        """Snapshot of live sessions."""
        with self._lock:
            return [
                {
                    "process_id": s.process_id,
                    "blocked": s.blocked,
                    "runtime_ms": s.runtime_ms,
                }
                for s in self._live.values()
            ]

    def list_completed(self) -> List[CompletedSession]:
        """Snapshot of completed sessions, oldest first."""
        with self._lock:
            return [dataclasses.replace(r) for r in self._completed.values()]

    def is_live(self, process_id: int) -> bool:
        with self._lock:
            return process_id in self._live

    def get_completed(self, process_id: int) -> Optional[CompletedSession]:
        with self._lock:
            record = self._completed.get(process_id)
            return dataclasses.replace(record) if record else None

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Kill every live process and wait for their exit watchers."""
        with self._lock:
            sessions = list(self._live.values())

        for session in sessions:
            if session.kill_timer is not None:
                session.kill_timer.cancel()
                session.kill_timer = None
            try:
                session.handle.kill()
            except OSError as e:
                logger.warning(f"Could not kill pid={session.process_id} on shutdown: {e}")

        tasks = [s.exit_task for s in sessions if s.exit_task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Registry shut down ({len(sessions)} live session(s) killed)")
