"""
Command Executor
================

Runs external helper processes under a time budget.

Each invocation gets one daemon worker thread that drains the process's
combined stdout/stderr and reaps it. The caller waits on that worker for at
most the timeout. On timeout the process is sent a kill signal but the call
does not wait for it to die: a timed-out command may still be running when
ExecutionTimeoutError reaches the caller. The worker closes the pipe and
reaps the process once it does exit.
"""

import logging
import math
import shlex
import subprocess
import threading
from typing import List, Optional, Sequence

from pipeline_configs import IntegrityConfig
from resilience_patterns import ExecutionError, ExecutionTimeoutError

logger = logging.getLogger(__name__)


def format_command(binary: str, args: Sequence[str]) -> str:
    return shlex.join([binary, *args])


class _OutputCollector:
    """Drains a process's output pipe on a worker thread"""

    def __init__(self, process: subprocess.Popen, read_size: int):
        self.process = process
        self.read_size = read_size
        self.chunks: List[bytes] = []
        self.error: Optional[BaseException] = None

    def run(self):
        stdout = self.process.stdout
        try:
            for chunk in iter(lambda: stdout.read1(self.read_size), b''):
                self.chunks.append(chunk)
            self.process.wait()
        except (OSError, ValueError) as e:
            self.error = e
        finally:
            stdout.close()

    def output(self) -> str:
        # list() takes a snapshot while the worker may still be appending
        return b''.join(list(self.chunks)).decode('utf-8', errors='replace')


class CommandExecutor:
    """Runs external commands with a deadline"""

    def __init__(self, config: Optional[IntegrityConfig] = None):
        self.config = config or IntegrityConfig()

    def run(self, binary: str, args: Optional[Sequence[str]] = None,
            timeout: Optional[float] = None) -> str:
        """
        Run ``binary`` with ``args`` and return its combined output.

        Args:
            binary: Executable name or path
            args: Argument list
            timeout: Seconds to wait; defaults to config.command_timeout

        Raises:
            ExecutionTimeoutError: the command outlived ``timeout``; carries
                whatever output had been captured so far
            ExecutionError: the command could not start or exited non-zero
        """
        args = list(args or [])
        if timeout is None:
            timeout = self.config.command_timeout
        if not math.isfinite(timeout) or timeout <= 0:
            raise ValueError(f"timeout must be a positive finite number of seconds, got {timeout}")

        command_line = format_command(binary, args)
        logger.debug(f"Executing: {command_line} (timeout {timeout}s)")

        try:
            process = subprocess.Popen(
                [binary, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except (OSError, ValueError) as e:
            raise ExecutionError(command_line, cause=e) from e

        collector = _OutputCollector(process, self.config.output_read_size)
        worker = threading.Thread(target=collector.run, name=f"exec-{binary}", daemon=True)
        worker.start()
        worker.join(timeout)

        if worker.is_alive():
            self._cancel(process)
            output = collector.output()
            logger.warning(f"Timeout after {timeout}s executing: {command_line}")
            raise ExecutionTimeoutError(command_line, timeout, output=output)

        output = collector.output()
        if collector.error is not None:
            raise ExecutionError(command_line, output=output, cause=collector.error) from collector.error
        if process.returncode != 0:
            raise ExecutionError(command_line, output=output, returncode=process.returncode)

        return output

    @staticmethod
    def _cancel(process: subprocess.Popen):
        """Request termination without waiting for it"""
        try:
            process.kill()
        except OSError as e:
            logger.debug(f"Failed to signal process {process.pid}: {e}")


def execute(binary: str, args: Optional[Sequence[str]] = None) -> str:
    """Run a command with the default command timeout"""
    return CommandExecutor().run(binary, args)


def execute_with_custom_timeout(binary: str, args: Optional[Sequence[str]], timeout: float) -> str:
    """Run a command with an explicit timeout in seconds"""
    return CommandExecutor().run(binary, args, timeout=timeout)
