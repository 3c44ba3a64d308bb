"""
CLI interface for tagfolio.

Usage:
    tagfolio list holidays --tag beach
    tagfolio tag-rename holidays beach coast
    tagfolio tag-update holidays "sunset #beach.jpg" --tag sun
"""

import atexit
import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from . import encoding
from .api import Tagfolio, collection_token
from .element_service import BatchResult
from .errors import TagfolioError
from .forms import RequestErrors
from .logging_config import configure_quiet_mode, enable_debug_mode
from .types import Element, Tag

# Set TAGFOLIO_VERBOSE=1 to enable debug mode via environment
if os.environ.get("TAGFOLIO_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"tagfolio {version('tagfolio')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_root_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _root_callback(value: Optional[Path]):
    global _root_override
    if value is not None:
        _root_override = value


app = typer.Typer(
    name="tagfolio",
    help="Collections of tagged files, with the tags kept in the file names.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


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
    root: Annotated[Optional[Path], typer.Option(
        "--root", "-R",
        envvar="TAGFOLIO_ROOT",
        help="Library root directory (default: current directory)",
        callback=_root_callback,
        is_eager=True,
    )] = None,
):
    """Collections of tagged files, with the tags kept in the file names."""


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

CollectionArg = Annotated[str, typer.Argument(help="Collection directory, relative to the root")]


def _get_tagfolio() -> Tagfolio:
    try:
        tf = Tagfolio(_root_override)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(tf.close)
    return tf


def _fail(message) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _format_element(element: Element) -> str:
    tags = ", ".join(element.tags)
    return f"{element.basename}\t{element.type.value}\t{element.name}\t{tags}"


def _format_elements(elements: list[Element]) -> str:
    if _get_json_output():
        return json.dumps([e.to_dict() for e in elements], indent=2)
    return "\n".join(_format_element(e) for e in elements)


def _format_tags(tags: list[Tag]) -> str:
    if _get_json_output():
        return json.dumps([t.to_dict() for t in tags], indent=2)
    return "\n".join(t.name for t in tags)


def _report_batch(batch: BatchResult) -> None:
    """Print renames and failures; exit 1 if any element failed."""
    if _get_json_output():
        typer.echo(json.dumps(batch.to_dict(), indent=2))
    else:
        for renamed in batch.renamed:
            typer.echo(f"{renamed.old} -> {renamed.new}")
    for failure in batch.failed:
        typer.echo(f"Failed: {failure.basename}: {failure.error}", err=True)
    if batch.failed:
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command("list")
def list_cmd(
    collection: CollectionArg,
    tag: Annotated[Optional[str], typer.Option(
        "--tag", "-t",
        help="Only elements carrying this tag",
    )] = None,
):
    """
    List the elements of a collection.

    \b
    Examples:
        tagfolio list holidays
        tagfolio list holidays --tag beach
    """
    tf = _get_tagfolio()
    try:
        elements = tf.elements.list(tf.collection(collection), tag=tag)
    except TagfolioError as e:
        _fail(e)
    typer.echo(_format_elements(elements))


@app.command()
def show(
    collection: CollectionArg,
    basename: Annotated[str, typer.Argument(help="Element file name")],
):
    """Show one element, with its content for notes and links."""
    tf = _get_tagfolio()
    try:
        coll = tf.collection(collection)
        token = encoding.encode(basename)
        element = tf.elements.get(coll, token)
        content = tf.elements.get_content(coll, token)
    except TagfolioError as e:
        _fail(e)

    if _get_json_output():
        d = element.to_dict()
        d["content"] = content
        typer.echo(json.dumps(d, indent=2))
        return
    typer.echo(_format_element(element))
    if content is not None:
        typer.echo()
        typer.echo(content)


@app.command()
def rename(
    collection: CollectionArg,
    basename: Annotated[str, typer.Argument(help="Element file name")],
    name: Annotated[str, typer.Argument(help="New element name (tags are kept)")],
):
    """Rename an element, keeping its tags and extension."""
    tf = _get_tagfolio()
    try:
        coll = tf.collection(collection)
        result = tf.elements.update(coll, encoding.encode(basename), {"name": name})
    except TagfolioError as e:
        _fail(e)
    if isinstance(result, RequestErrors):
        _fail(result)
    typer.echo(_format_elements([result]))


@app.command("tag-update")
def tag_update(
    collection: CollectionArg,
    basename: Annotated[str, typer.Argument(help="Element file name")],
    tags: Annotated[Optional[list[str]], typer.Option(
        "--tag", "-t",
        help="Tag to add; a tag the element already carries is left as it is",
    )] = None,
    remove: Annotated[Optional[list[str]], typer.Option(
        "--remove", "-r",
        help="Tag to remove",
    )] = None,
):
    """
    Add or remove tags on one element.

    Unlike the element API, adding a tag the element already carries is not
    an error here: the tag is kept and the command goes on.

    \b
    Examples:
        tagfolio tag-update holidays "sunset.jpg" --tag beach
        tagfolio tag-update holidays "sunset #beach.jpg" --remove beach
    """
    if not tags and not remove:
        _fail("Specify at least one --tag or --remove")

    tf = _get_tagfolio()
    try:
        coll = tf.collection(collection)
        element = tf.elements.get(coll, encoding.encode(basename))
        element_file = tf.elements.open(coll, element)
        for name in remove or []:
            element_file.remove_tag(name)
        for name in tags or []:
            if not element_file.has_tag(name):
                element_file.add_tag(name)
        updated = tf.elements.find(coll, element_file.commit())
    except TagfolioError as e:
        _fail(e)
    typer.echo(_format_elements([updated]))


@app.command("tag-list")
def tag_list(collection: CollectionArg):
    """List the registered tags of a collection."""
    tf = _get_tagfolio()
    try:
        tags = tf.tags.list(collection_token(collection))
    except TagfolioError as e:
        _fail(e)
    typer.echo(_format_tags(tags))


@app.command("tag-create")
def tag_create(
    collection: CollectionArg,
    name: Annotated[str, typer.Argument(help="Tag name")],
):
    """Register a new tag in a collection."""
    tf = _get_tagfolio()
    try:
        result = tf.tags.create(collection_token(collection), {"name": name})
    except TagfolioError as e:
        _fail(e)
    if isinstance(result, RequestErrors):
        _fail(result)
    typer.echo(_format_tags([result]))


@app.command("tag-rename")
def tag_rename(
    collection: CollectionArg,
    old: Annotated[str, typer.Argument(help="Current tag name")],
    new: Annotated[str, typer.Argument(help="New tag name")],
):
    """
    Rename a tag and every element carrying it.

    \b
    Examples:
        tagfolio tag-rename holidays beach coast
    """
    tf = _get_tagfolio()
    try:
        result = tf.tags.update(collection_token(collection), encoding.encode(old), {"name": new})
    except TagfolioError as e:
        _fail(e)
    if isinstance(result, RequestErrors):
        _fail(result)
    _report_batch(result.batch)


@app.command("tag-delete")
def tag_delete(
    collection: CollectionArg,
    name: Annotated[str, typer.Argument(help="Tag name")],
):
    """Unregister a tag and remove it from every element carrying it."""
    tf = _get_tagfolio()
    try:
        batch = tf.tags.delete(collection_token(collection), encoding.encode(name))
    except TagfolioError as e:
        _fail(e)
    _report_batch(batch)


@app.command("tag-sync")
def tag_sync(collection: CollectionArg):
    """Register tags that elements carry but the registry is missing."""
    tf = _get_tagfolio()
    try:
        added = tf.tags.reconcile(collection_token(collection))
    except TagfolioError as e:
        _fail(e)
    typer.echo(_format_tags(added))


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
        log_path = log_exception(e, context="tagfolio CLI", root=_root_override)
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
