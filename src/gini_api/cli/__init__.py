"""CLI module for gini-api."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer

from gini_api import __version__
from gini_api.api import DocumentHandle, DocumentSet, GiniClient
from gini_api.config import ConfigurationError, load_settings
from gini_api.exceptions import ApiError
from gini_api.observability import LogLevel, configure_logging


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from gini_api.config import Settings


app = typer.Typer(
    name="gini",
    help="Command line client for the Gini document-processing API.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:  # noqa: FBT001
    """Print version and exit."""
    if value:
        typer.echo(f"gini version {__version__}")
        raise typer.Exit


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(  # noqa: FBT001
        False,  # noqa: FBT003
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(  # noqa: FBT001
        False,  # noqa: FBT003
        "--verbose",
        "-V",
        help="Enable verbose (debug) logging.",
    ),
    quiet: bool = typer.Option(  # noqa: FBT001
        False,  # noqa: FBT003
        "--quiet",
        "-q",
        help="Only show warnings and errors.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
    ),
) -> None:
    """Gini API command line client."""
    del version  # Handled by callback

    if verbose and quiet:
        typer.echo("Error: --verbose and --quiet are mutually exclusive.", err=True)
        raise typer.Exit(1)

    try:
        settings = load_settings(config_file)
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(2) from exc

    logging_config = settings.observability.logging
    if verbose:
        level = LogLevel.DEBUG
    elif quiet:
        level = LogLevel.WARNING
    else:
        level = logging_config.level

    configure_logging(level=level, log_format=logging_config.format)
    ctx.obj = settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _document_json(doc: DocumentHandle) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": doc.id,
        "location": doc.location,
        "progress": doc.progress,
        "links": doc.links.model_dump(exclude_none=True),
        "pages": len(doc.pages),
    }
    if doc.duration is not None:
        data["duration"] = {
            "upload": round(doc.duration.upload, 3),
            "processing": round(doc.duration.processing, 3),
        }
    return data


def _set_json(documents: DocumentSet) -> dict[str, Any]:
    data: dict[str, Any] = {
        "total": documents.total,
        "documents": [_document_json(doc) for doc in documents],
    }
    if documents.next is not None:
        data["next"] = documents.next
    return data


def _run(
    ctx: typer.Context,
    action: Callable[[GiniClient, str | None], Awaitable[Any]],
) -> None:
    """Log in, run ``action``, log out and print its result as JSON."""
    settings: Settings = ctx.obj
    credentials = settings.credentials

    async def runner() -> Any:  # noqa: ANN401
        async with GiniClient.from_settings(settings) as client:
            await client.login(
                auth_code=credentials.auth_code,
                username=credentials.username,
                password=credentials.password,
            )
            try:
                return await action(client, credentials.user_identifier)
            finally:
                await client.logout()

    try:
        result = asyncio.run(runner())
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(2) from exc
    except ApiError as exc:
        typer.echo(f"Error: {exc}", err=True)
        if exc.details:
            typer.echo(exc.details, err=True)
        raise typer.Exit(1) from exc

    if result is not None:
        typer.echo(json.dumps(result, indent=2, default=str))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def upload(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Document to upload.", exists=True),
    text: bool = typer.Option(  # noqa: FBT001
        False,  # noqa: FBT003
        "--text",
        help="Upload the file content as plain text.",
    ),
    interval: float | None = typer.Option(
        None,
        "--interval",
        help="Seconds between status polls.",
    ),
) -> None:
    """Upload a document and wait for processing to end."""
    settings: Settings = ctx.obj
    poll_interval = interval or settings.polling.interval

    async def action(client: GiniClient, user_identifier: str | None) -> Any:  # noqa: ANN401
        document: Path | str = path.read_text(encoding="utf-8") if text else path
        doc = await client.upload(
            document,
            text=text,
            filename=path.name,
            interval=poll_interval,
            user_identifier=user_identifier,
        )
        return _document_json(doc)

    _run(ctx, action)


@app.command()
def get(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
) -> None:
    """Show a document."""

    async def action(client: GiniClient, user_identifier: str | None) -> Any:  # noqa: ANN401
        doc = await client.get(document_id, user_identifier=user_identifier)
        return _document_json(doc)

    _run(ctx, action)


@app.command(name="list")
def list_documents(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", help="Documents per page."),
    offset: int = typer.Option(0, "--offset", "-o", help="Start offset."),
) -> None:
    """List documents."""

    async def action(client: GiniClient, user_identifier: str | None) -> Any:  # noqa: ANN401
        documents = await client.list(
            limit=limit, offset=offset, user_identifier=user_identifier
        )
        return _set_json(documents)

    _run(ctx, action)


@app.command()
def search(
    ctx: typer.Context,
    query: list[str] = typer.Argument(..., help="Search terms."),
    doc_type: str = typer.Option("", "--type", "-t", help="Document type filter."),
    limit: int = typer.Option(20, "--limit", "-l", help="Results per page (1-250)."),
    offset: int = typer.Option(0, "--offset", "-o", help="Start offset."),
) -> None:
    """Search documents."""

    async def action(client: GiniClient, user_identifier: str | None) -> Any:  # noqa: ANN401
        documents = await client.search(
            query,
            doc_type=doc_type,
            limit=limit,
            offset=offset,
            user_identifier=user_identifier,
        )
        return _set_json(documents)

    _run(ctx, action)


@app.command()
def delete(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
) -> None:
    """Delete a document."""

    async def action(client: GiniClient, user_identifier: str | None) -> None:
        await client.delete(document_id, user_identifier=user_identifier)
        typer.echo(f"Deleted document {document_id}", err=True)

    _run(ctx, action)


@app.command()
def extractions(
    ctx: typer.Context,
    document_id: str = typer.Argument(..., help="Document ID."),
    incubator: bool = typer.Option(  # noqa: FBT001
        False,  # noqa: FBT003
        "--incubator",
        help="Include experimental extractions.",
    ),
) -> None:
    """Show the extractions of a document."""

    async def action(client: GiniClient, user_identifier: str | None) -> Any:  # noqa: ANN401
        doc = await client.get(document_id, user_identifier=user_identifier)
        result = await client.extractions(
            doc, incubator=incubator, user_identifier=user_identifier
        )
        return {
            label: result.extraction(label).model_dump(exclude_none=True)
            for label in result.labels
        }

    _run(ctx, action)


__all__ = ["app"]
