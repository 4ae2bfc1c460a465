"""
Courier CLI Main Entry Point

Command-line interface for sending test requests and inspecting history.
"""

import asyncio
import json
import sys
from typing import Dict, Optional, Tuple

import click

from ..core.config import CourierConfig, get_config
from ..core.logging import setup_logging
from ..core.models import HttpMethod, RequestDescriptor, serialize_model
from ..history import HistoryStore
from ..orchestrator import create_orchestrator
from ..processors import create_default_registry


def parse_header(value: str) -> Tuple[str, str]:
    """Split a ``"Name: value"`` header option."""
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"Expected 'Name: value', got {value!r}")
    return name.strip(), header_value.strip()


def parse_field(value: str) -> Tuple[str, str]:
    """Split a ``key=value`` field option."""
    key, sep, field_value = value.partition("=")
    if not sep or not key:
        raise click.BadParameter(f"Expected 'key=value', got {value!r}")
    return key, field_value


def apply_history_path(config: CourierConfig, history_path: Optional[str]) -> None:
    """Point history at a file; the CLI never keeps history in memory only."""
    if history_path:
        config.history.path = history_path
    if config.history.backend == "memory":
        path = config.history.path or ""
        config.history.backend = "sqlite" if path.endswith(".db") else "json"


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level",
)
def cli(log_level: str):
    """
    Courier - HTTP test-request execution core

    Send requests through the security gate, cache and executors.
    """
    setup_logging(log_level=log_level.upper())


@cli.command()
@click.argument("url")
@click.option(
    "--method",
    "-X",
    default="GET",
    type=click.Choice([m.value for m in HttpMethod], case_sensitive=False),
    help="HTTP method",
)
@click.option("--header", "-H", "headers", multiple=True, help="Header as 'Name: value'")
@click.option("--data", "-d", default=None, help="Raw request body")
@click.option("--field", "-f", "fields", multiple=True, help="Body field as key=value")
@click.option("--content-type", "-t", default=None, help="Body content type")
@click.option("--timeout-ms", type=int, default=None, help="Request timeout in ms")
@click.option("--isolated", is_flag=True, help="Run in an isolated context")
@click.option("--history-path", default=None, help="History file path")
def send(
    url: str,
    method: str,
    headers: tuple,
    data: Optional[str],
    fields: tuple,
    content_type: Optional[str],
    timeout_ms: Optional[int],
    isolated: bool,
    history_path: Optional[str],
):
    """
    Send one request and print its outcome as JSON.

    Example:
        courier send https://example.com -X POST -t application/json -f a=1
    """
    if data is not None and fields:
        raise click.UsageError("Use either --data or --field, not both")

    field_map: Optional[Dict[str, str]] = None
    if fields:
        field_map = dict(parse_field(f) for f in fields)

    request = RequestDescriptor(
        method=method,
        url=url,
        headers=dict(parse_header(h) for h in headers),
        raw_body=data,
        fields=field_map,
        content_type=content_type,
        cross_origin_restricted=isolated,
    )

    config = get_config().model_copy(deep=True)
    if timeout_ms is not None:
        config.execution.timeout_ms = timeout_ms
    apply_history_path(config, history_path)

    async def run():
        async with create_orchestrator(config) as orchestrator:
            return await orchestrator.submit(request)

    outcome = asyncio.run(run())
    click.echo(json.dumps(serialize_model(outcome), indent=2))
    if not outcome.success:
        sys.exit(1)


@cli.command()
@click.option("--history-path", default=None, help="History file path")
@click.option("--limit", "-n", type=int, default=20, help="Records to show")
def history(history_path: Optional[str], limit: int):
    """
    Show recorded requests, newest first.

    Example:
        courier history --history-path ./history.json -n 5
    """
    config = get_config().model_copy(deep=True)
    apply_history_path(config, history_path)

    async def load():
        store = HistoryStore.from_config(config.history)
        try:
            return await store.list()
        finally:
            await store.close()

    records = asyncio.run(load())
    if not records:
        click.echo("No history recorded.")
        return

    for record in records[:limit]:
        request = record.request
        if record.outcome is None:
            result = "pending"
        elif record.outcome.success:
            result = str(record.outcome.status)
        else:
            result = record.outcome.error_kind.value
        click.echo(
            f"{request.created_at.strftime('%Y-%m-%d %H:%M:%S')}  "
            f"{request.method.value:<7} {request.url}  [{record.status.value}: {result}]"
        )


@cli.command()
def processors():
    """List the registered body content types."""
    registry = create_default_registry()
    for content_type in registry.content_types():
        marker = " (default)" if content_type == registry.default.content_type else ""
        click.echo(f"{content_type}{marker}")


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
