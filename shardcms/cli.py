"""
CLI interface for the shard store.

Usage:
    shardcms list
    shardcms get post-1
    shardcms rename post-1 hello-world
    shardcms tags add react
    shardcms dates set post-1 2021-04-01
"""

import dataclasses
import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import ContentStore
from .logging_config import configure_quiet_mode, enable_debug_mode

# Configure quiet mode by default
# Set SHARDCMS_VERBOSE=1 to enable debug mode via environment
if os.environ.get("SHARDCMS_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"shardcms {version('shardcms')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_data_dir_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _data_dir_callback(value: Optional[Path]):
    global _data_dir_override
    _data_dir_override = value


app = typer.Typer(
    name="shardcms",
    help="Per-content SQLite shard store.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

tags_app = typer.Typer(name="tags", help="Global tag catalog.", rich_markup_mode=None)
dates_app = typer.Typer(name="dates", help="Manual display dates.", rich_markup_mode=None)
app.add_typer(tags_app)
app.add_typer(dates_app)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    data_dir: Annotated[Optional[Path], typer.Option(
        "--data-dir", "-d",
        envvar="SHARDCMS_DATA_DIR",
        help="Path to the data directory",
        callback=_data_dir_callback,
        is_eager=True,
    )] = None,
):
    """Per-content SQLite shard store."""


def _get_store() -> ContentStore:
    return ContentStore(_data_dir_override, ops_log=True)


def _emit(obj) -> None:
    if dataclasses.is_dataclass(obj):
        obj = dataclasses.asdict(obj)
    elif isinstance(obj, list):
        obj = [dataclasses.asdict(o) if dataclasses.is_dataclass(o) else o for o in obj]
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _report_skipped(result) -> None:
    for skipped in result.skipped:
        typer.echo(f"Skipped {skipped.path}: {skipped.reason}", err=True)
    if result.error:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------------

@app.command("list")
def list_cmd():
    """List every content item, newest first."""
    store = _get_store()
    result = store.list_all()
    if _json_output:
        _emit({"status": result.status, "items": [dataclasses.asdict(s) for s in result],
               "skipped": [dataclasses.asdict(s) for s in result.skipped]})
    else:
        for s in result:
            tags = f"  [{', '.join(s.tags)}]" if s.tags else ""
            typer.echo(f"{s.id}  {s.created_at[:10]}  {s.status:<9}  {s.title}{tags}")
    store.close()
    _report_skipped(result)


@app.command()
def get(id: Annotated[str, typer.Argument(help="Content id")]):
    """Show one content item."""
    store = _get_store()
    content = store.get_by_id(id)
    store.close()
    if content is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    if _json_output:
        _emit(content)
    else:
        typer.echo(f"id: {content.id}")
        typer.echo(f"title: {content.title}")
        typer.echo(f"status: {content.status} ({content.visibility})")
        typer.echo(f"created: {content.created_at}")
        typer.echo(f"updated: {content.updated_at}")
        if content.tags:
            typer.echo(f"tags: {', '.join(content.tags)}")
        if content.summary:
            typer.echo(f"\n{content.summary}")


@app.command()
def rename(
    old_id: Annotated[str, typer.Argument(help="Current content id")],
    new_id: Annotated[str, typer.Argument(help="New content id")],
):
    """Move a content item to a new id."""
    store = _get_store()
    result = store.rename(old_id, new_id)
    store.close()
    if not result:
        typer.echo(f"Rename failed ({result.reason.value}): {result.detail}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Renamed {old_id} -> {new_id}")


@app.command("delete")
def delete_cmd(
    id: Annotated[list[str], typer.Argument(help="Content id(s) to delete")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
):
    """Delete content shards and their companion files."""
    if not yes and not typer.confirm(f"Delete {len(id)} content item(s)?"):
        raise typer.Exit(0)
    store = _get_store()
    had_errors = False
    for one_id in id:
        if store.delete(one_id):
            typer.echo(f"Deleted {one_id}")
        else:
            typer.echo(f"Not found: {one_id}", err=True)
            had_errors = True
    store.close()
    if had_errors:
        raise typer.Exit(1)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Words to search for")],
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum results")] = 20,
):
    """Full-text search across all content and markdown pages."""
    store = _get_store()
    result = store.index.search(query, limit=limit)
    if _json_output:
        _emit(result.items)
    else:
        for hit in result:
            where = f"{hit.content_id}#{hit.slug}" if hit.slug else hit.content_id
            typer.echo(f"{where}  {hit.title}  {hit.snippet}")
    store.close()
    _report_skipped(result)


@app.command()
def stats():
    """Shard count and disk usage."""
    store = _get_store()
    s = store.index.stats()
    store.close()
    if _json_output:
        _emit(s)
        return
    typer.echo(f"contents: {s.total_contents}")
    typer.echo(f"files:    {s.total_db_files}")
    typer.echo(f"size:     {s.total_size} bytes")
    for info in s.contents:
        typer.echo(f"  {info.db_file}  {info.size:>10}  {info.title}")


# -----------------------------------------------------------------------------
# Tag catalog
# -----------------------------------------------------------------------------

@tags_app.command("list")
def tags_list():
    """List catalog entries."""
    store = _get_store()
    entries = store.tags.list()
    store.close()
    if _json_output:
        _emit(entries)
        return
    for e in entries:
        typer.echo(f"{e.name}  created {e.created_at}  last used {e.last_used or '-'}")


@tags_app.command("add")
def tags_add(
    name: Annotated[str, typer.Argument(help="Tag name")],
    metadata: Annotated[Optional[str], typer.Option(
        "--metadata", "-m", help="JSON metadata to attach"
    )] = None,
):
    """Add a tag or mark it as used now."""
    meta = None
    if metadata is not None:
        try:
            meta = json.loads(metadata)
        except ValueError as e:
            typer.echo(f"Error: --metadata is not valid JSON: {e}", err=True)
            raise typer.Exit(1)
    store = _get_store()
    entry = store.tags.upsert(name, meta)
    store.close()
    typer.echo(f"{entry.name}  created {entry.created_at}  last used {entry.last_used}")


@tags_app.command("rm")
def tags_rm(name: Annotated[str, typer.Argument(help="Tag name")]):
    """Remove a tag from the catalog."""
    store = _get_store()
    removed = store.tags.remove(name)
    store.close()
    if not removed:
        typer.echo(f"Not found: {name}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Removed {name}")


# -----------------------------------------------------------------------------
# Manual dates
# -----------------------------------------------------------------------------

@dates_app.command("list")
def dates_list():
    """List every manual date override."""
    store = _get_store()
    result = store.manual_dates.list_all()
    if _json_output:
        _emit(result.items)
    else:
        for e in result:
            typer.echo(f"{e.content_id}  {e.date}  (set {e.updated_at})")
    store.close()
    _report_skipped(result)


@dates_app.command("get")
def dates_get(content_id: Annotated[str, typer.Argument(help="Content id")]):
    """Show the manual date of one content item."""
    store = _get_store()
    entry = store.manual_dates.get(content_id)
    store.close()
    if entry is None:
        typer.echo(f"No manual date for {content_id}", err=True)
        raise typer.Exit(1)
    typer.echo(entry.date)


@dates_app.command("set")
def dates_set(
    content_id: Annotated[str, typer.Argument(help="Content id")],
    date: Annotated[str, typer.Argument(help="Display date (YYYY-MM-DD)")],
):
    """Set the manual date of a content item."""
    store = _get_store()
    try:
        entry = store.manual_dates.set(content_id, date)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        store.close()
    typer.echo(f"{entry.content_id}  {entry.date}")


@dates_app.command("rm")
def dates_rm(content_id: Annotated[str, typer.Argument(help="Content id")]):
    """Remove the manual date of a content item."""
    store = _get_store()
    removed = store.manual_dates.remove(content_id)
    store.close()
    if not removed:
        typer.echo(f"No manual date for {content_id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Removed manual date for {content_id}")


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="shardcms CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
