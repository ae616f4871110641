"""Command-line entry point for inspecting normalized records.

This module provides a small Typer CLI that runs single values through the
normalization pipeline with the configured settings and prints the resulting
record as JSON. It is meant for checking source line policies, body limits
and URL resolution against a real environment:

    python -m apm_normalizer message '{"message": "foo%s", "params": ["bar"]}' --json
    python -m apm_normalizer frame src/app.py 42 --function handler
    python -m apm_normalizer request /search?q=1 --header host:example.com
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import List, Optional

import typer

# Load .env file if present (before any config access)
try:
    from dotenv import find_dotenv, load_dotenv

    env_file = find_dotenv(usecwd=True) or find_dotenv()
    if env_file:
        load_dotenv(env_file)
        logging.debug("Loaded environment from %s", env_file)
except Exception:
    pass

from .callsites import CallSite, is_library_path, is_runtime_path, relative_filename
from .config import get_settings
from .models.http import IncomingRequest, RequestSocket
from .models.records import Record
from .normalizing.callsite import parse_callsite
from .normalizing.message import parse_message
from .normalizing.request_context import get_context_from_request

app = typer.Typer(help="APM telemetry normalizer CLI")


def _echo(record: Record) -> None:
    typer.echo(record.model_dump_json(exclude_unset=True, indent=2))


@app.callback()
def main() -> None:
    """apm-normalizer CLI.

    Use a subcommand like 'message' to normalize a value.
    """
    logging.basicConfig(level=get_settings().LOG_LEVEL)


@app.command(help="Normalize a log value into a log record.")
def message(
    value: str = typer.Argument(..., help="Log value (plain text, or JSON with --json)"),
    as_json: bool = typer.Option(False, "--json", help="Decode VALUE as JSON before normalizing"),
) -> None:
    payload: object = value
    if as_json:
        try:
            payload = json.loads(value)
        except json.JSONDecodeError as e:
            raise typer.BadParameter(f"VALUE is not valid JSON: {e}") from e
    _echo(parse_message(payload))


@app.command(help="Normalize one call site with the configured source line policy.")
def frame(
    path: str = typer.Argument(..., help="Source file of the call site"),
    lineno: int = typer.Argument(..., min=1, help="1-based line number"),
    function: str = typer.Option("<module>", help="Function name to report"),
    library: Optional[bool] = typer.Option(
        None,
        "--library/--app",
        help="Force the frame origin. If not specified, it is classified from PATH.",
    ),
    span: bool = typer.Option(False, "--span", help="Treat as a span frame instead of an error frame"),
) -> None:
    settings = get_settings()
    abs_path = path if is_runtime_path(path) else os.path.abspath(path)
    site = CallSite(
        abs_path=abs_path,
        filename=relative_filename(abs_path, settings.PROJECT_ROOT),
        lineno=lineno,
        function=function,
        library_frame=is_library_path(abs_path) if library is None else library,
    )
    result = asyncio.run(parse_callsite(site, not span, settings.source_line_policy()))
    _echo(result)


@app.command(help="Print the request context of a synthetic request.")
def request(
    url: str = typer.Argument(..., help="Request target: origin-relative path or absolute URI"),
    method: str = typer.Option("GET", help="HTTP method"),
    header: List[str] = typer.Option([], "--header", "-H", help="Header as name:value (repeatable)"),
    body: Optional[str] = typer.Option(None, help="Request body text"),
    capture_body: Optional[bool] = typer.Option(
        None,
        "--capture-body/--no-capture-body",
        help="Capture the body. If not specified, uses CAPTURE_BODY from config/env.",
    ),
    encrypted: bool = typer.Option(False, "--encrypted", help="Mark the socket as TLS"),
) -> None:
    settings = get_settings()
    headers = {}
    for raw in header:
        name, sep, value = raw.partition(":")
        if not sep:
            raise typer.BadParameter(f"header {raw!r} is not in name:value form")
        headers[name.strip()] = value.strip()
    req = IncomingRequest(
        method=method,
        url=url,
        headers=headers,
        socket=RequestSocket(remote_address="127.0.0.1", encrypted=encrypted),
        body=body,
    )
    effective_capture = settings.CAPTURE_BODY if capture_body is None else capture_body
    _echo(
        get_context_from_request(
            req, effective_capture, max_body_chars=settings.MAX_HTTP_BODY_CHARS
        )
    )


if __name__ == "__main__":  # pragma: no cover
    app()
