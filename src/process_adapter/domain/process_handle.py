"""
Process Adapter - Process Handle

Wraps one spawned OS process: its stdin pipe, and stdout/stderr merged into a
single chronological stream of decoded text chunks.
"""

import os
import codecs
import signal
import asyncio
import logging
from typing import Dict, Optional, Callable, List

logger = logging.getLogger("process-adapter.process")

READ_CHUNK_SIZE = 4096

# Loader injection variables never accepted from callers
DANGEROUS_ENV = {"LD_PRELOAD", "LD_LIBRARY_PATH", "DYLD_INSERT_LIBRARIES"}


def build_environment(overrides: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Host environment plus filtered caller overrides."""
    env = dict(os.environ)
    if overrides:
        for k, v in overrides.items():
            if k in DANGEROUS_ENV:
                logger.warning(f"Ignoring environment override {k}")
                continue
            env[k] = v
    return env


class ProcessHandle:
    """A running child process with one reader task per output stream.

    Use ProcessHandle.spawn() to create one. Output chunks are passed to
    ``on_output`` in the order the reads complete.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: str,
        on_output: Optional[Callable[[str], None]] = None,
    ):
        self.process = process
        self.command = command
        self.on_output = on_output
        self._readers: List[asyncio.Task] = []

    @classmethod
    async def spawn(
        cls,
        command: str,
        shell: Optional[str] = None,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        on_output: Optional[Callable[[str], None]] = None,
    ) -> "ProcessHandle":
        """Start ``command`` under a shell and begin reading its output.

        Args:
            command: Command text handed to the shell
            shell: Interpreter to run as ``<shell> -c <command>``; the host's
                standard shell when omitted
            cwd: Working directory
            env: Environment overrides
            on_output: Callback for each decoded output chunk

        Raises:
            OSError: If the OS cannot start the process
        """
        kwargs = dict(
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=build_environment(env),
        )
        if os.name == "posix":
            # Own process group so signals reach shell-wrapped children
            kwargs["start_new_session"] = True

        if shell:
            process = await asyncio.create_subprocess_exec(shell, "-c", command, **kwargs)
        else:
            process = await asyncio.create_subprocess_shell(command, **kwargs)

        handle = cls(process, command, on_output)
        handle._start_readers()
        logger.info(f"Spawned pid={process.pid}: {command}")
        return handle

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def _start_readers(self) -> None:
        for name, stream in (("stdout", self.process.stdout), ("stderr", self.process.stderr)):
            if stream is not None:
                self._readers.append(asyncio.create_task(self._read_stream(name, stream)))

    async def _read_stream(self, name: str, stream: asyncio.StreamReader) -> None:
        """Read one stream to EOF, forwarding decoded chunks."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text:
                    self._emit(text)
            tail = decoder.decode(b"", final=True)
            if tail:
                self._emit(tail)
        except Exception as e:
            logger.error(f"Read error on {name} for pid={self.pid}: {e}")

    def _emit(self, text: str) -> None:
        if self.on_output:
            self.on_output(text)

    @property
    def stdin_open(self) -> bool:
        stdin = self.process.stdin
        return stdin is not None and not stdin.is_closing()

    async def write(self, data: str) -> bool:
        """Write text to stdin.

        Returns:
            True if written, False if stdin is closed or the pipe broke
        """
        if not self.stdin_open:
            return False
        try:
            self.process.stdin.write(data.encode("utf-8"))
            await self.process.stdin.drain()
            logger.debug(f"Wrote {len(data)} chars to pid={self.pid}")
            return True
        except OSError as e:
            logger.error(f"Write error for pid={self.pid}: {e}")
            return False

    def send_signal(self, sig: int) -> None:
        """Deliver ``sig`` to the process (and its group on POSIX).

        Raises:
            ProcessLookupError: If the process is already gone
            OSError: If the signal could not be delivered
        """
        if os.name == "posix":
            os.killpg(self.pid, sig)
        else:
            self.process.send_signal(sig)

    def interrupt(self) -> None:
        self.send_signal(signal.SIGINT)

    def kill(self) -> None:
        self.send_signal(signal.SIGKILL if hasattr(signal, "SIGKILL") else signal.SIGTERM)

    async def wait(self) -> int:
        """Wait for the process to exit and return its return code."""
        return await self.process.wait()

    async def finish_reading(self, timeout: float) -> None:
        """Give the readers up to ``timeout`` seconds to reach EOF.

        Readers still blocked afterwards (pipe held open by an orphaned
        grandchild) are cancelled.
        """
        if not self._readers:
            return
        _, pending = await asyncio.wait(self._readers, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} output reader(s) for pid={self.pid}")
            await asyncio.gather(*pending, return_exceptions=True)
        if self.process.stdin is not None and not self.process.stdin.is_closing():
            self.process.stdin.close()

    async def close(self) -> None:
        """Cancel readers without waiting for EOF."""
        for task in self._readers:
            task.cancel()
        await asyncio.gather(*self._readers, return_exceptions=True)
