"""Launching and supervising an mpv process with its IPC server enabled."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from .errors import MPVProcessError
from .protocol.transport import is_named_pipe

_logger = logging.getLogger("mpv_jsonipc.process")

START_TIMEOUT = 10.0
POLL_INTERVAL = 0.1
STOP_TIMEOUT = 5.0


class MPVProcess:
    """Manages an mpv process and waits for its IPC socket or pipe to appear."""

    def __init__(
        self,
        ipc_socket: str,
        mpv_location: str | None = None,
        mpv_args: dict[str, str] | None = None,
        start_timeout: float = START_TIMEOUT,
    ):
        self.ipc_socket = ipc_socket
        self.mpv_location = mpv_location
        self.mpv_args = dict(mpv_args or {})
        self.start_timeout = start_timeout
        self._process: asyncio.subprocess.Process | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def build_args(self) -> list[str]:
        """Command line for mpv; the IPC options always override user args."""
        args = dict(self.mpv_args)
        args["idle"] = "yes"
        args["input-ipc-server"] = self.ipc_socket
        args["input-terminal"] = "no"
        args["terminal"] = "no"
        return [self.mpv_location or "mpv"] + [f"--{k}={v}" for k, v in args.items()]

    def _ipc_exists(self) -> bool:
        return os.path.exists(self.ipc_socket)

    def _remove_socket(self) -> None:
        if is_named_pipe(self.ipc_socket):
            return
        path = Path(self.ipc_socket)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            _logger.warning("Could not remove IPC socket %s: %s", path, e)

    async def start(self) -> None:
        self._remove_socket()

        cmd = self.build_args()
        _logger.info("Starting mpv: %s", " ".join(cmd))
        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise MPVProcessError(f"Could not start mpv ({cmd[0]}): {e}") from e

        attempts = max(1, int(self.start_timeout / POLL_INTERVAL))
        for _ in range(attempts):
            await asyncio.sleep(POLL_INTERVAL)
            if self._ipc_exists():
                _logger.debug("mpv IPC available at %s", self.ipc_socket)
                return
            returncode = self._process.returncode
            if returncode is not None:
                self._process = None
                raise MPVProcessError(
                    f"MPV failed with returncode {returncode}.", returncode=returncode
                )

        await self.stop()
        raise MPVProcessError("MPV start timed out.")

    async def stop(self) -> None:
        """Terminate the process and remove its socket file."""
        process, self._process = self._process, None
        if process is not None and process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), STOP_TIMEOUT)
            except asyncio.TimeoutError:
                _logger.warning("mpv did not exit after SIGTERM, killing it")
                process.kill()
                await process.wait()
        self._remove_socket()
