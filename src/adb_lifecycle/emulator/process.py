"""Emulator process handle - detached subprocess with output observers."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Sequence

import structlog

from adb_lifecycle.errors import emulator_start_error

logger = structlog.get_logger()

OutputCallback = Callable[[str, str], None]  # (stream name, line)

STOP_TIMEOUT_S = 10.0


class EmulatorProcess:
    """A launched emulator owned by the caller once launch() returns.

    Output is drained by a background observer task that nothing awaits;
    subscribers are notified per line and their failures are logged only.
    """

    def __init__(self, binary_path: str, args: Sequence[str], capture_output: bool = True) -> None:
        self.binary_path = binary_path
        self.args = list(args)
        self.capture_output = capture_output
        self._process: asyncio.subprocess.Process | None = None
        self._observer: asyncio.Task[None] | None = None
        self._callbacks: list[OutputCallback] = []

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process else None

    def on_output(self, callback: OutputCallback) -> None:
        """Subscribe to emulator output lines."""
        self._callbacks.append(callback)

    async def start(self) -> None:
        """Spawn the emulator and start the output observer. Does not wait for boot."""
        if self.is_running:
            return
        devnull = asyncio.subprocess.DEVNULL
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.binary_path,
                *self.args,
                stdin=devnull,
                stdout=asyncio.subprocess.PIPE if self.capture_output else devnull,
                stderr=asyncio.subprocess.STDOUT if self.capture_output else devnull,
                start_new_session=True,
            )
        except OSError as exc:
            raise emulator_start_error(self.binary_path, self.args, str(exc)) from exc

        logger.info("emulator_process_started", pid=self._process.pid, args=self.args)
        if self.capture_output:
            self._observer = asyncio.create_task(self._read_output_loop())

    async def stop(self) -> None:
        """Terminate the emulator and its observer."""
        if self._process is not None and self._process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                self._process.terminate()
            try:
                await asyncio.wait_for(self._process.wait(), timeout=STOP_TIMEOUT_S)
            except TimeoutError:
                logger.warning("emulator_process_kill", pid=self._process.pid)
                with contextlib.suppress(ProcessLookupError):
                    self._process.kill()
                await self._process.wait()
            logger.info("emulator_process_stopped", pid=self._process.pid)

        if self._observer and not self._observer.done():
            self._observer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._observer
        self._observer = None

    async def _read_output_loop(self) -> None:
        """Forward emulator output lines to subscribers."""
        assert self._process is not None and self._process.stdout is not None
        try:
            while True:
                raw = await self._process.stdout.readline()
                if not raw:
                    break
                line = raw.decode(errors="replace").rstrip()
                if not line:
                    continue
                for callback in self._callbacks:
                    try:
                        callback("stdout", line)
                    except Exception:
                        logger.exception("avd_output_callback_error")
        except asyncio.CancelledError:
            return
        except Exception:
            logger.exception("avd_output_loop_error")
