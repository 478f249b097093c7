"""Execution supervisor for the external automation runner."""

import asyncio
import os
import re
import shlex
import shutil
import signal
import tempfile
import time
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from codialog.config import settings
from codialog.core.models import AcceptedScript, ExecutionResult, ExitReason
from codialog.utils.logging import execution_context, get_logger

logger = get_logger(__name__)

# Grace period for collecting output after the runner was killed
KILL_GRACE_SECONDS = 5.0


class ExecutionState(str, Enum):
    """Lifecycle of one execution: IDLE -> STAGED -> RUNNING -> terminal state."""
    IDLE = "idle"
    STAGED = "staged"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    LAUNCH_FAILED = "launch_failed"


class SessionBusyError(Exception):
    """Raised when a session already runs a script and the caller chose not to wait."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' is already running a script")


def split_command(command: Union[str, Sequence[str]]) -> List[str]:
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


def check_runner_installed(runner_command: Union[str, Sequence[str], None] = None) -> bool:
    """Check whether the runner executable is on PATH or at its configured location."""
    parts = split_command(runner_command or settings.runner_command)
    if not parts:
        return False
    executable = parts[0]
    if shutil.which(executable):
        return True
    # Local checkout, e.g. ./tagui/tagui
    return Path(executable).is_file() or Path(executable, executable).is_file()


class ExecutionSupervisor:
    """
    Runs accepted scripts through the automation runner, one at a time per session.

    Each call stages the script in a uniquely named temporary file, launches the
    runner as a child process, enforces the timeout by killing the runner's process
    group, and deletes the staged file on every exit path.
    """

    def __init__(
        self,
        runner_command: Union[str, Sequence[str], None] = None,
        browser_target: Optional[str] = None,
        staging_dir: Optional[str] = None,
        default_timeout: Optional[float] = None,
        script_suffix: Optional[str] = None
    ):
        """
        Initialize the execution supervisor.

        Args:
            runner_command: Runner command line; the script path and browser target are appended
            browser_target: Browser identifier passed to the runner
            staging_dir: Directory for staged scripts (system temp dir if None)
            default_timeout: Timeout in seconds when a call gives none
            script_suffix: File suffix for staged scripts
        """
        self.runner_command = split_command(runner_command or settings.runner_command)
        self.browser_target = browser_target or settings.browser_target
        self.staging_dir = staging_dir if staging_dir is not None else settings.staging_dir
        self.default_timeout = default_timeout if default_timeout is not None else settings.execution_timeout
        self.script_suffix = script_suffix or settings.script_suffix
        self.logger = logger.bind(component="execution_supervisor")

        self._locks: Dict[str, asyncio.Lock] = {}
        self._states: Dict[str, ExecutionState] = {}
        # Calls holding or waiting for a session lock
        self._in_flight: Dict[str, int] = {}

    def state_of(self, session_id: str = "default") -> ExecutionState:
        """Current or last terminal state of a session."""
        return self._states.get(session_id, ExecutionState.IDLE)

    def is_busy(self, session_id: str = "default") -> bool:
        return self._in_flight.get(session_id, 0) > 0

    def running_sessions(self) -> List[str]:
        return [sid for sid, state in self._states.items() if state == ExecutionState.RUNNING]

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    def _set_state(self, session_id: str, state: ExecutionState) -> None:
        self._states[session_id] = state
        self.logger.debug("Execution state changed", session_id=session_id, state=state.value)

    async def execute(
        self,
        script: AcceptedScript,
        timeout: Union[float, timedelta, None] = None,
        session_id: str = "default",
        wait: bool = True
    ) -> ExecutionResult:
        """
        Execute an accepted script against a browser session.

        Args:
            script: Script that passed validation
            timeout: Deadline in seconds (or timedelta); settings default if None
            session_id: Logical browser session; runs within one session are serialized
            wait: Queue behind a running script (True) or raise SessionBusyError (False)

        Returns:
            Execution result; never raises for runner failures

        Raises:
            TypeError: If the script has not been accepted by the validator
            SessionBusyError: If wait is False and the session is busy
        """
        if not isinstance(script, AcceptedScript):
            raise TypeError("Only accepted scripts can be executed; validate the draft first")

        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        if timeout is None:
            timeout = self.default_timeout

        lock = self._lock_for(session_id)
        if not wait and self.is_busy(session_id):
            self.logger.warning("Execution rejected, session busy", session_id=session_id)
            raise SessionBusyError(session_id)

        if self.is_busy(session_id):
            self.logger.info("Execution queued behind running script", session_id=session_id)

        # Counted before awaiting the lock so a queued call keeps the session busy
        self._in_flight[session_id] = self._in_flight.get(session_id, 0) + 1
        try:
            with execution_context(session_id=session_id, runner=self.runner_command[0] if self.runner_command else None):
                async with lock:
                    return await self._run(script, float(timeout), session_id)
        finally:
            self._in_flight[session_id] -= 1
            if not self._in_flight[session_id]:
                del self._in_flight[session_id]

    async def _run(self, script: AcceptedScript, timeout: float, session_id: str) -> ExecutionResult:
        started = time.monotonic()
        try:
            path = self._stage(script, session_id)
        except OSError as e:
            self.logger.error(
                "Failed to stage script",
                session_id=session_id,
                error=str(e),
                error_type=type(e).__name__
            )
            self._set_state(session_id, ExecutionState.LAUNCH_FAILED)
            return ExecutionResult(
                success=False,
                stderr=f"Failed to stage script: {e}",
                exit_reason=ExitReason.LAUNCH_FAILED,
                duration_seconds=time.monotonic() - started,
                session_id=session_id,
            )

        try:
            return await self._launch(path, timeout, session_id, started)
        finally:
            self._cleanup(path)

    def _stage(self, script: AcceptedScript, session_id: str) -> Path:
        prefix = "codialog-" + re.sub(r"[^A-Za-z0-9_-]", "_", session_id)[:32] + "-"
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=self.script_suffix, dir=self.staging_dir)
        path = Path(name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
                handle.write(script.to_text())
        except OSError:
            self._cleanup(path)
            raise

        self._set_state(session_id, ExecutionState.STAGED)
        self.logger.info(
            "Script staged",
            session_id=session_id,
            path=str(path),
            actions=len(script.actions)
        )
        return path

    async def _launch(self, path: Path, timeout: float, session_id: str, started: float) -> ExecutionResult:
        command = [*self.runner_command, str(path), self.browser_target]

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                **_process_group_options()
            )
        except (OSError, ValueError) as e:
            self.logger.error(
                "Failed to launch automation runner",
                session_id=session_id,
                command=command[0] if command else None,
                error=str(e),
                error_type=type(e).__name__
            )
            self._set_state(session_id, ExecutionState.LAUNCH_FAILED)
            return ExecutionResult(
                success=False,
                stderr=str(e),
                exit_reason=ExitReason.LAUNCH_FAILED,
                duration_seconds=time.monotonic() - started,
                session_id=session_id,
            )

        self._set_state(session_id, ExecutionState.RUNNING)
        self.logger.info("Automation runner started", session_id=session_id, pid=process.pid, timeout=timeout)

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(process)
            stdout, stderr = await self._drain(process)
            self._set_state(session_id, ExecutionState.TIMED_OUT)
            self.logger.warning(
                "Automation runner timed out",
                session_id=session_id,
                timeout=timeout,
                pid=process.pid
            )
            return ExecutionResult(
                success=False,
                stdout=_decode(stdout),
                stderr=_decode(stderr),
                exit_reason=ExitReason.TIMED_OUT,
                return_code=process.returncode,
                duration_seconds=time.monotonic() - started,
                session_id=session_id,
            )
        except asyncio.CancelledError:
            await self._terminate(process)
            self._set_state(session_id, ExecutionState.IDLE)
            raise

        success = process.returncode == 0
        self._set_state(session_id, ExecutionState.COMPLETED)
        log = self.logger.info if success else self.logger.error
        log(
            "Automation runner finished",
            session_id=session_id,
            return_code=process.returncode,
            success=success,
            stderr=_decode(stderr)[-500:] if not success else None
        )
        return ExecutionResult(
            success=success,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            exit_reason=ExitReason.COMPLETED,
            return_code=process.returncode,
            duration_seconds=time.monotonic() - started,
            session_id=session_id,
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Kill the runner and anything it spawned."""
        if process.returncode is not None:
            return
        try:
            if os.name == "posix":
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(process.wait(), timeout=KILL_GRACE_SECONDS)
        except asyncio.TimeoutError:
            self.logger.error("Automation runner did not exit after kill", pid=process.pid)

    async def _drain(self, process: asyncio.subprocess.Process):
        """Collect whatever output is still buffered after a kill."""
        async def read(stream) -> bytes:
            if stream is None:
                return b""
            try:
                return await asyncio.wait_for(stream.read(), timeout=KILL_GRACE_SECONDS)
            except (asyncio.TimeoutError, OSError, ValueError):
                return b""

        return await read(process.stdout), await read(process.stderr)

    def _cleanup(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning(
                "Failed to remove staged script",
                path=str(path),
                error=str(e)
            )


def _process_group_options() -> Dict[str, bool]:
    # New session so a timeout can kill the runner's children too
    return {"start_new_session": True} if os.name == "posix" else {}


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def create_execution_supervisor(**kwargs) -> ExecutionSupervisor:
    """Factory function to create an execution supervisor."""
    return ExecutionSupervisor(**kwargs)
