"""Pytest configuration and fixtures for mpv-jsonipc tests."""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, AsyncGenerator, Generator

import pytest
import pytest_asyncio

from mpv_jsonipc import MPV


class FakeMPVServer:
    """A stand-in for mpv's IPC server on a Unix socket.

    Every request is recorded. By default each command is answered with
    ``{"error": "success"}``; ``results`` and ``errors`` map command names to
    a reply ``data`` value or error string, and commands listed in
    ``silent`` get no reply at all.
    """

    def __init__(self, path: str):
        self.path = path
        self.requests: list[dict[str, Any]] = []
        self.results: dict[str, Any] = {}
        self.errors: dict[str, str] = {}
        self.silent: set[str] = set()
        self._server: asyncio.AbstractServer | None = None
        self._writers: list[asyncio.StreamWriter] = []
        self._received: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._client, path=self.path)

    async def stop(self) -> None:
        await self.disconnect()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
        if os.path.exists(self.path):
            os.unlink(self.path)

    async def disconnect(self) -> None:
        writers, self._writers = self._writers, []
        for writer in writers:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def _client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.append(writer)
        while line := await reader.readline():
            request = json.loads(line)
            self.requests.append(request)
            await self._received.put(request)
            reply = self.reply_for(request)
            if reply is not None:
                self.send(reply)

    def reply_for(self, request: dict[str, Any]) -> dict[str, Any] | None:
        name = request["command"][0]
        if name in self.silent:
            return None
        reply: dict[str, Any] = {"request_id": request["request_id"]}
        if name in self.errors:
            reply["error"] = self.errors[name]
        else:
            reply["error"] = "success"
            if name in self.results:
                reply["data"] = self.results[name]
        return reply

    def send(self, message: dict[str, Any]) -> None:
        self.send_raw(json.dumps(message).encode() + b"\n")

    def send_raw(self, data: bytes) -> None:
        for writer in self._writers:
            writer.write(data)

    async def next_request(self, timeout: float = 2.0) -> dict[str, Any]:
        return await asyncio.wait_for(self._received.get(), timeout)

    def commands(self) -> list[list[Any]]:
        return [r["command"] for r in self.requests]


@pytest.fixture
def short_tmp() -> Generator[Path, None, None]:
    """A temporary directory with a path short enough for AF_UNIX sockets."""
    path = Path(tempfile.mkdtemp(prefix="mpvt", dir="/tmp" if os.path.isdir("/tmp") else None))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def socket_path(short_tmp: Path) -> str:
    return str(short_tmp / "mpv.sock")


@pytest_asyncio.fixture
async def server(socket_path: str) -> AsyncGenerator[FakeMPVServer, None]:
    srv = FakeMPVServer(socket_path)
    await srv.start()
    yield srv
    await srv.stop()


@pytest_asyncio.fixture
async def mpv(server: FakeMPVServer) -> AsyncGenerator[MPV, None]:
    session = await MPV.connect(server.path, command_timeout=2.0)
    yield session
    await session.terminate()


@pytest.fixture
def fake_mpv_binary(short_tmp: Path) -> Path:
    """A shell script that behaves like mpv: creates the IPC path and stays alive."""
    script = short_tmp / "fake-mpv"
    script.write_text(
        "#!/bin/sh\n"
        'for arg in "$@"; do\n'
        '  case "$arg" in --input-ipc-server=*) touch "${arg#--input-ipc-server=}";; esac\n'
        "done\n"
        "exec sleep 30\n"
    )
    script.chmod(0o755)
    return script


@pytest.fixture
def temp_config_dir(tmp_path: Path) -> Generator[Path, None, None]:
    """Point XDG_CONFIG_HOME at a temporary directory."""
    old_env = os.environ.get("XDG_CONFIG_HOME")
    os.environ["XDG_CONFIG_HOME"] = str(tmp_path)
    os.environ.pop("MPV_JSONIPC_CONFIG", None)

    yield tmp_path / "mpv-jsonipc"

    if old_env:
        os.environ["XDG_CONFIG_HOME"] = old_env
    else:
        os.environ.pop("XDG_CONFIG_HOME", None)
