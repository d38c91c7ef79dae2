"""mpv-jsonipc CLI - Click commands and output formatters over an mpv IPC session."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import click

from .client import MPV, forward_to_logging
from .config import Config, load_config
from .errors import MPVError
from .protocol.messages import LogLevel

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def setup_logging(level: int) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
    root = logging.getLogger("mpv_jsonipc")
    root.setLevel(level)
    root.addHandler(handler)


# ---------------------------------------------------------------------------
# Output formatters
# ---------------------------------------------------------------------------


def fmt_value(value: Any) -> str:
    if value is None:
        return "(none)"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def fmt_change(name: str, value: Any) -> str:
    return f"{name}: {fmt_value(value)}"


def fmt_event(evt: dict) -> str:
    name = evt.get("event", "")
    if name == "property-change":
        return f"[property-change] {fmt_change(evt.get('name', ''), evt.get('data'))}"
    if name == "log-message":
        return f"[log] {evt.get('level', '')} {evt.get('prefix', '')}: {str(evt.get('text', '')).strip()}"
    if name == "client-message":
        return f"[client-message] {' '.join(str(a) for a in evt.get('args', []))}"
    if name == "end-file":
        return f"[end-file] {evt.get('reason', '')}"
    return f"[{name}]"


def print_result(value: Any, json_output: bool = False, formatter=fmt_value) -> None:
    if json_output:
        click.echo(json.dumps(value, ensure_ascii=False))
    elif value is None:
        click.echo("OK")
    else:
        click.echo(formatter(value))


def parse_arg(text: str) -> Any:
    """Interpret a command-line argument as JSON when it parses, else as a string."""
    try:
        return json.loads(text)
    except ValueError:
        return text


# ---------------------------------------------------------------------------
# Session runner
# ---------------------------------------------------------------------------


def run_session(
    ctx: click.Context,
    action: Callable[[MPV], Awaitable[Any]],
) -> Any:
    """Connect, run ``action`` and disconnect; MPV errors exit with status 1."""
    config: Config = ctx.obj["config"]
    if not ctx.obj["socket"]:
        raise click.UsageError("No IPC socket given (use --socket or set ipc_socket in config)")

    async def runner() -> Any:
        mpv = await MPV.connect(
            ctx.obj["socket"],
            log_level=ctx.obj["log_level"],
            log_handler=forward_to_logging,
            command_timeout=ctx.obj["timeout"],
            connect_timeout=config.client.connect_timeout,
        )
        try:
            return await action(mpv)
        finally:
            await mpv.terminate()

    try:
        return asyncio.run(runner())
    except MPVError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        return None


# ---------------------------------------------------------------------------
# Click CLI
# ---------------------------------------------------------------------------


@click.group()
@click.option("-s", "--socket", "socket_path", envvar="MPV_JSONIPC_SOCKET", help="mpv IPC socket or pipe")
@click.option("--json", "json_output", is_flag=True, help="Output raw JSON")
@click.option("--timeout", type=float, default=None, help="Command timeout in seconds")
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None)
@click.option("-v", "--verbose", count=True, help="Log protocol traffic (-vv for mpv's own log)")
@click.pass_context
def cli(ctx, socket_path, json_output, timeout, config_path, verbose):
    """mpv-jsonipc - talk to a running mpv over its JSON IPC socket."""
    config = load_config(config_path)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["socket"] = socket_path or config.client.ipc_socket
    ctx.obj["json"] = json_output
    ctx.obj["timeout"] = timeout if timeout is not None else config.client.command_timeout
    ctx.obj["log_level"] = LogLevel.DEBUG if verbose > 1 else config.log_level
    if verbose:
        setup_logging(logging.DEBUG)


# ── Commands ───────────────────────────────────────────────────────────────


@cli.command("command")
@click.argument("name")
@click.argument("args", nargs=-1)
@click.pass_context
def command(ctx, name, args):
    """Run an mpv command (arguments are parsed as JSON when possible)."""
    parsed = [parse_arg(a) for a in args]
    result = run_session(ctx, lambda mpv: mpv.command(name, *parsed))
    print_result(result, ctx.obj["json"])


@cli.command("get")
@click.argument("name")
@click.pass_context
def get_property(ctx, name):
    """Print a property value."""
    print_result(run_session(ctx, lambda mpv: mpv.get_property(name)), ctx.obj["json"])


@cli.command("set")
@click.argument("name")
@click.argument("value")
@click.pass_context
def set_property(ctx, name, value):
    """Set a property (value parsed as JSON when possible)."""
    run_session(ctx, lambda mpv: mpv.set_property(name, parse_arg(value)))
    print_result(None, ctx.obj["json"])


@cli.command()
@click.argument("url")
@click.pass_context
def play(ctx, url):
    """Load and play a file or URL."""
    p = Path(url).expanduser()
    target = str(p.resolve()) if p.exists() else url
    run_session(ctx, lambda mpv: mpv.play(target))
    print_result(None, ctx.obj["json"])


@cli.command()
@click.argument("name")
@click.pass_context
def wait(ctx, name):
    """Block until a property changes, then print its new value."""
    value = run_session(ctx, lambda mpv: mpv.wait_for_property(name))
    print_result(value, ctx.obj["json"])


# ── Streams ────────────────────────────────────────────────────────────────


@cli.command()
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def observe(ctx, names):
    """Print property changes until mpv exits or Ctrl-C."""
    json_output = ctx.obj["json"]

    def on_change(name: str, value: Any) -> None:
        if json_output:
            click.echo(json.dumps({"name": name, "data": value}, ensure_ascii=False))
        else:
            click.echo(fmt_change(name, value))

    async def action(mpv: MPV) -> None:
        for name in names:
            await mpv.observe_property(name, on_change)
        await mpv.wait_closed()

    run_session(ctx, action)


@cli.command()
@click.argument("names", nargs=-1)
@click.pass_context
def events(ctx, names):
    """Stream the common playback events, or only NAMES."""
    json_output = ctx.obj["json"]
    wanted = set(names)

    def on_message(evt: dict) -> None:
        click.echo(json.dumps(evt, ensure_ascii=False) if json_output else fmt_event(evt))

    async def action(mpv: MPV) -> None:
        for name in wanted or _COMMON_EVENTS:
            mpv.on_event(name, on_message)
        await mpv.wait_closed()

    run_session(ctx, action)


_COMMON_EVENTS = (
    "start-file",
    "end-file",
    "file-loaded",
    "seek",
    "playback-restart",
    "shutdown",
    "idle",
    "video-reconfig",
    "audio-reconfig",
    "client-message",
    "log-message",
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    cli()
